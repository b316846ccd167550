"""Bearer token verification."""

from .tokens import TokenConfig, TokenVerifier, create_access_token

__all__ = ["TokenConfig", "TokenVerifier", "create_access_token"]
