"""
FastAPI dependencies for authentication, authorization and database access.

Request handlers never reach for global clients: settings and the database
live on ``app.state`` and are handed out through the dependencies below.
"""

from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings
from storefront.core.logging import get_logger, set_user_id
from storefront.core.security import TokenError, decode_token
from storefront.database.connection import Database
from storefront.schemas.auth import Principal, TokenPayload, UserRole
from storefront.services.orders.service import OrderService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_database(request: Request) -> Database:
    """Database owned by the application."""
    return request.app.state.database


async def get_db(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a session for the duration of one request.

    Yields:
        AsyncSession committed on success and rolled back on error
    """
    async with database.session() as session:
        yield session


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Principal:
    """
    Verify the bearer token and return the caller.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        claims = decode_token(credentials.credentials, settings)
        payload = TokenPayload.model_validate(claims)
    except TokenError as e:
        logger.warning(
            "Authentication failed: Token rejected",
            code=e.code,
        )
        raise credentials_exception from e
    except ValidationError as e:
        logger.warning(
            "Authentication failed: Token claims invalid",
            error_count=e.error_count(),
        )
        raise credentials_exception from e

    set_user_id(payload.sub)

    return Principal(user_id=payload.sub, role=payload.role)


def require_role(*allowed_roles: UserRole):
    """
    Create a dependency that requires one of ``allowed_roles``.

    Example:
        @router.get("/", dependencies=[Depends(require_role(UserRole.ADMIN))])
        async def admin_endpoint():
            ...
    """

    async def role_checker(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if not principal.has_role(*allowed_roles):
            logger.warning(
                "Access denied: Insufficient permissions",
                user_id=principal.user_id,
                user_role=principal.role.value,
                required_roles=[role.value for role in allowed_roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

        return principal

    return role_checker


async def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> OrderService:
    """Order service bound to the request session."""
    return OrderService(db, settings)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
CurrentAdmin = Annotated[Principal, Depends(require_role(UserRole.ADMIN))]
CurrentSupplier = Annotated[Principal, Depends(require_role(UserRole.SUPPLIER))]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
