"""Per-owner extraction debounce backed by Redis.

One key per owner, ``<prefix>:<owner_id>``, holds the epoch second of the
last allowed trigger and expires after the interval. A call is allowed
when the key is missing or at least ``min_interval_seconds`` old; a denied
call leaves the key untouched, so the window is measured from the previous
allowed trigger.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from redis.asyncio import Redis  # type: ignore[import-untyped]

from memlayers.config import RateGateConfig
from memlayers.observability import increment_event

logger = logging.getLogger(__name__)


class ExtractionRateGate:
    """At most one extraction trigger per owner per interval."""

    def __init__(
        self,
        redis: Redis,
        config: RateGateConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._redis = redis
        self._config = config or RateGateConfig()
        self._clock = clock or time.time

    @property
    def interval(self) -> float:
        return self._config.min_interval_seconds

    def _key(self, owner_id: str) -> str:
        return f"{self._config.key_prefix}:{owner_id}"

    async def last_trigger(self, owner_id: str) -> float | None:
        """Epoch seconds of the last allowed trigger, or ``None``."""
        raw = await self._redis.get(self._key(owner_id))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return float(raw)
        except ValueError:
            logger.warning("Ignoring unreadable rate-gate value for owner=%s", owner_id)
            return None

    async def should_extract(self, owner_id: str) -> bool:
        interval = self.interval
        if interval <= 0:
            return True

        now = self._clock()
        last = await self.last_trigger(owner_id)
        elapsed = math.inf if last is None else now - last
        if elapsed < interval:
            logger.debug(
                "Extraction throttled owner=%s elapsed=%.1fs interval=%.1fs",
                owner_id,
                elapsed,
                interval,
            )
            increment_event("rate_gate.throttled")
            return False

        await self._redis.set(self._key(owner_id), f"{now}", ex=math.ceil(interval))
        return True

    async def close(self) -> None:
        await self._redis.aclose()
