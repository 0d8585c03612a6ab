import logging

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from imageshare.core.config import Settings
from imageshare.core.errors import Unauthenticated
from imageshare.core.permissions import Action, authorize
from imageshare.core.sessions import SessionManager
from imageshare.db.models.user import User
from imageshare.db.session import get_db

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_session_token(
    request: Request,
    bearer_token: str | None = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> str | None:
    return bearer_token or request.cookies.get(settings.session_cookie_name)


def get_optional_user(
    token: str | None = Depends(get_session_token),
    sessions: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db),
) -> User | None:
    user_id = sessions.resolve(token)
    if user_id is None:
        return None

    # Always re-read the row so role and ban changes apply on the next request.
    user = db.get(User, user_id)
    if user is None:
        logger.info("session_dropped reason=user_missing user_id=%s", user_id)
        sessions.close(token)
        return None
    if user.is_banned:
        logger.info("session_dropped reason=banned user_id=%s", user_id)
        sessions.close(token)
        return None
    return user


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthenticated()
    return user


def require_action(action: Action):
    """Dependency for endpoints gated by a role rather than a specific row."""

    def _dependency(current_user: User | None = Depends(get_optional_user)) -> User:
        authorize(current_user, action)
        return current_user

    return _dependency
