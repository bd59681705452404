"""Bearer-secret protection for the memory tools."""

from __future__ import annotations

import hashlib
import hmac
import logging

from fastmcp.server.auth import AccessToken
from fastmcp.server.auth import TokenVerifier

from memlayers import settings

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = ["memlayers:extract", "memlayers:context"]


class SharedSecretVerifier(TokenVerifier):
    """Accepts exactly one shared bearer secret, compared in constant time."""

    def __init__(self, secret: str, *, scopes: list[str] | None = None) -> None:
        normalized = secret.strip()
        if not normalized:
            raise ValueError("secret must be a non-empty, non-whitespace string")
        super().__init__()
        self._secret = normalized
        self._scopes = scopes[:] if scopes else list(DEFAULT_SCOPES)

    async def verify_token(self, token: str) -> AccessToken | None:
        if hmac.compare_digest(token.encode("utf-8"), self._secret.encode("utf-8")):
            return AccessToken(
                token=token,
                client_id="memlayers-host",
                scopes=self._scopes,
                expires_at=None,
            )

        token_fp = hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
        logger.debug("Rejected memory auth token (token_len=%d, token_fp=%s)", len(token), token_fp)
        return None


def create_auth() -> SharedSecretVerifier | None:
    """Verifier for ``MEMLAYERS_AUTH_KEY``; ``None`` leaves the tools open."""
    secret = settings.get_auth_key()
    if secret is None:
        return None
    return SharedSecretVerifier(secret, scopes=settings.get_auth_scopes())
