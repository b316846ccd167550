"""
JWT bearer token verification.

Credentials are issued elsewhere; this service only checks them. A valid
token yields the caller's owner id, read from the `uid` claim or, failing
that, the standard `sub` claim. Every failure is the same AuthError so
callers can't tell a missing token from a forged or expired one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from ...core.progress.errors import AuthError

logger = logging.getLogger(__name__)

OWNER_CLAIMS = ("uid", "sub")


@dataclass
class TokenConfig:
    """Configuration for token verification."""
    secret: str
    algorithm: str = "HS256"


class TokenVerifier:
    """
    Resolve a bearer credential to an owner id.

    Stateless; one instance can serve every request.
    """

    def __init__(self, config: TokenConfig) -> None:
        if not config.secret:
            raise ValueError("Token secret must be configured")
        self._config = config

    def authenticate(self, credential: Optional[str]) -> str:
        """
        Return the owner id for `credential`.

        Raises:
            AuthError: Credential missing, malformed, expired or unsigned
        """
        if not credential:
            raise AuthError("Authentication required")

        try:
            payload = jwt.decode(
                credential,
                self._config.secret,
                algorithms=[self._config.algorithm],
            )
        except JWTError as e:
            logger.warning("Rejected bearer token", extra={"reason": type(e).__name__})
            raise AuthError("Authentication required") from e

        for claim in OWNER_CLAIMS:
            owner_id = payload.get(claim)
            if owner_id:
                return str(owner_id)

        logger.warning("Bearer token has no owner claim")
        raise AuthError("Authentication required")


def create_access_token(
    owner_id: str,
    config: TokenConfig,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a token for `owner_id`. Used by tests and local tooling."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    payload = {"uid": owner_id, "exp": expire}
    return jwt.encode(payload, config.secret, algorithm=config.algorithm)
