"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from sos_dispatch.core.config import settings
from sos_dispatch.core.security import user_id_from_token
from sos_dispatch.db.session import get_db
from sos_dispatch.models.user import User
from sos_dispatch.services.matching_service import VolunteerMatcher
from sos_dispatch.services.notification_service import NotificationDispatcher, eta_estimator

security = HTTPBearer(auto_error=False)


def get_current_user(
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User:
    """Require authenticated user. Raises 401 if not authenticated."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User is inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_volunteer(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    """Require the volunteer role (admins pass too)."""
    if current_user.role not in ("volunteer", "admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only volunteers can respond to alerts",
        )
    return current_user


def require_admin(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def get_matcher() -> VolunteerMatcher:
    return VolunteerMatcher(
        radius_km=settings.alert_search_radius_km,
        max_count=settings.max_volunteers_to_notify,
    )


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Dispatcher wired to the publisher and gateway created in the app lifespan."""
    return NotificationDispatcher(
        publisher=request.app.state.publisher,
        gateway=request.app.state.gateway,
        location_base_url=settings.live_location_base_url,
        estimate_eta=eta_estimator(settings.eta_meters_per_minute),
    )
