import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from imageshare.api.deps import get_notifier
from imageshare.core.api_response import success_response_payload
from imageshare.core.config import Settings
from imageshare.core.errors import ValidationError
from imageshare.core.observability import log_business_event
from imageshare.core.permissions import permissions_matrix_payload
from imageshare.core.security import (
    get_current_user,
    get_session_manager,
    get_session_token,
    get_settings,
)
from imageshare.core.sessions import SessionManager
from imageshare.db.models.user import User
from imageshare.db.session import get_db
from imageshare.schemas.auth import LoginIn, RegisterIn
from imageshare.services.accounts import (
    authenticate,
    consume_verification_token,
    issue_verification_token,
    register_user,
    serialize_user,
)
from imageshare.services.notifications import Notify, safe_notify, verification_notification

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


def _set_session_cookie(response: Response, settings: Settings, sessions: SessionManager, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=sessions.max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def _send_verification(db: Session, user: User, notify: Notify, base_url: str) -> None:
    token = issue_verification_token(db, user.id)
    safe_notify(notify, verification_notification(to=user.email, token=token, base_url=base_url))


@router.post("/register", status_code=201)
def register(
    payload: RegisterIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    sessions: SessionManager = Depends(get_session_manager),
    notify: Notify = Depends(get_notifier),
):
    user = register_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        confirm_password=payload.confirm_password,
        auto_verify=settings.auto_verify_users,
    )
    if not user.is_verified:
        _send_verification(db, user, notify, settings.base_url)

    token = sessions.open(user.id)
    _set_session_cookie(response, settings, sessions, token)
    log_business_event(logger, request, event="auth.register", user_id=user.id, verified=user.is_verified)
    return success_response_payload(request, data={"user": serialize_user(user), "token": token})


@router.post("/login")
def login(
    payload: LoginIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    sessions: SessionManager = Depends(get_session_manager),
):
    user = authenticate(db, payload.email, payload.password)
    token = sessions.open(user.id)
    _set_session_cookie(response, settings, sessions, token)
    log_business_event(logger, request, event="auth.login", user_id=user.id)
    return success_response_payload(request, data={"user": serialize_user(user), "token": token})


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    token: str | None = Depends(get_session_token),
    settings: Settings = Depends(get_settings),
    sessions: SessionManager = Depends(get_session_manager),
):
    sessions.close(token)
    response.delete_cookie(settings.session_cookie_name)
    log_business_event(logger, request, event="auth.logout")
    return success_response_payload(request, data={"logged_out": True})


@router.get("/user")
def current_user_info(request: Request, current_user: User = Depends(get_current_user)):
    return success_response_payload(request, data=serialize_user(current_user))


@router.get("/auth/permissions-matrix")
def permissions_matrix(request: Request):
    return success_response_payload(request, data=permissions_matrix_payload())


@router.get("/verify/{token}")
def verify_email(token: str, request: Request, db: Session = Depends(get_db)):
    user = consume_verification_token(db, token)
    log_business_event(logger, request, event="auth.verify", user_id=user.id)
    return success_response_payload(request, data={"message": "Email verified successfully", "user": serialize_user(user)})


@router.post("/resend-verification")
def resend_verification(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    notify: Notify = Depends(get_notifier),
):
    if current_user.is_verified:
        raise ValidationError("Email already verified")
    if not (current_user.email or "").strip():
        raise ValidationError("No valid email address found for user")

    _send_verification(db, current_user, notify, settings.base_url)
    log_business_event(logger, request, event="auth.resend_verification", user_id=current_user.id)
    return success_response_payload(request, data={"message": "Verification email sent"})
