"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized
- Connection lifecycle is managed per request

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.progress.errors import AuthError
from ..core.progress.service import ProgressService
from ..infrastructure.auth.tokens import TokenConfig, TokenVerifier
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    SnowflakeConfig,
    get_snowflake_connection,
)
from ..infrastructure.snowflake.repositories.entries import EntryRepository

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Shared mock connection: it *is* the database in mock mode, so it has to
# outlive individual requests.
_mock_snowflake_connection: Optional[MockSnowflakeConnection] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_token_verifier(
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenVerifier:
    return TokenVerifier(TokenConfig(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    ))


async def get_current_owner(
    verifier: Annotated[TokenVerifier, Depends(get_token_verifier)],
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """
    Resolve the bearer token to the caller's owner id.

    Missing and invalid tokens get the same 401, on purpose indistinguishable.
    """
    token = credentials.credentials if credentials else None
    try:
        return verifier.authenticate(token)
    except AuthError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ---------------------------------------------------------------------------
# Storage Dependencies
# ---------------------------------------------------------------------------

def get_mock_connection() -> MockSnowflakeConnection:
    """Return the process-wide mock connection, creating it on first use."""
    global _mock_snowflake_connection

    if _mock_snowflake_connection is None:
        _mock_snowflake_connection = MockSnowflakeConnection()
        logger.info("Created shared mock Snowflake connection")
    return _mock_snowflake_connection


def get_entry_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[EntryRepository, None, None]:
    """
    Provide EntryRepository with database connection.

    This is a generator function (yields instead of returns) because
    we need to manage the connection lifecycle:
    1. Create connection
    2. Create repository
    3. Yield repository (FastAPI injects it)
    4. Close connection (cleanup after request)

    In mock mode, we reuse the same connection across requests
    so that data persists during the session.
    """
    if settings.snowflake_mock_mode:
        yield EntryRepository(get_mock_connection(), table=settings.entries_table)
        return

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
        network_timeout=settings.snowflake_network_timeout,
    )

    with get_snowflake_connection(config) as conn:
        logger.debug("Created EntryRepository with Snowflake connection")
        yield EntryRepository(conn, table=settings.entries_table)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_progress_service(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[EntryRepository, Depends(get_entry_repository)],
) -> ProgressService:
    """
    Provide ProgressService bound to this request's repository.

    The service is stateless, so a new instance per request is cheap.
    """
    return ProgressService(
        repository,
        tz=settings.tzinfo,
        max_page_limit=settings.max_page_limit,
        default_period_days=settings.default_period_days,
        max_period_days=settings.max_period_days,
        streak_window_days=settings.streak_window_days,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CurrentOwner = Annotated[str, Depends(get_current_owner)]
EntryRepositoryDep = Annotated[EntryRepository, Depends(get_entry_repository)]
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
