"""FastAPI dependencies for authentication, database and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.security import decode_access_token
from app.db.session import get_async_session
from app.models.user import User
from app.services.notifications import EmailSender
from app.services.stores import SqlAlchemyAutomationStore, SqlAlchemySegmentStore
from packages.core.automation import AutomationTriggerEngine
from packages.core.segmentation import SegmentRefresher

# HTTP Bearer token security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """
    Dependency to get the current authenticated user.

    Validates the JWT token and returns the corresponding User.

    Raises:
        HTTPException 401: If the token is invalid, the user is gone, or the
            user no longer belongs to the token's tenant.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise credentials_exception

    result = await session.execute(select(User).where(User.id == claims.user_id))
    user = result.scalar_one_or_none()

    # Tokens issued for a previous tenant are not honoured
    if user is None or user.tenant_id != claims.tenant_id:
        raise credentials_exception

    return user


# Type alias for convenience
CurrentUser = Annotated[User, Depends(get_current_user)]
AsyncSessionDep = Annotated[AsyncSession, Depends(get_async_session)]


def get_segment_refresher(session: AsyncSessionDep) -> SegmentRefresher:
    """Segment refresher bound to the request's database session."""
    settings = get_settings()
    store = SqlAlchemySegmentStore(session, batch_size=settings.segment_membership_batch_size)
    return SegmentRefresher(store, customer_limit=settings.segment_refresh_customer_limit)


def get_trigger_engine(session: AsyncSessionDep) -> AutomationTriggerEngine:
    """Automation trigger engine bound to the request's database session."""
    return AutomationTriggerEngine(SqlAlchemyAutomationStore(session))


def get_email_sender() -> EmailSender:
    """Email sender using the cached notification settings."""
    return EmailSender()


SegmentRefresherDep = Annotated[SegmentRefresher, Depends(get_segment_refresher)]
TriggerEngineDep = Annotated[AutomationTriggerEngine, Depends(get_trigger_engine)]
EmailSenderDep = Annotated[EmailSender, Depends(get_email_sender)]
