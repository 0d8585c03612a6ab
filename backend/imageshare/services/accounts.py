import json
import logging
import re
import secrets
from collections.abc import Callable

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from imageshare.core.errors import Conflict, InvalidCredentials, InvalidToken, NotFound, ValidationError
from imageshare.core.passwords import hash_password, verify_password
from imageshare.core.permissions import authorize, primary_role
from imageshare.db.base import utc_now_naive
from imageshare.db.models.user import User
from imageshare.services.audit import with_reason

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
PROFILE_FIELDS = ("bio", "profile_picture", "website", "social_links", "theme_preference")

LogAction = Callable[[str, User, dict | None], None]


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def _decode_social_links(raw: str | None):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def serialize_user(user: User) -> dict:
    """User payload without the password hash or verification token."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": primary_role(user),
        "is_verified": bool(user.is_verified),
        "is_moderator": bool(user.is_moderator),
        "is_admin": bool(user.is_admin),
        "is_banned": bool(user.is_banned),
        "ban_reason": user.ban_reason,
        "banned_by": user.banned_by,
        "banned_at": _isoformat(user.banned_at),
        "bio": user.bio,
        "profile_picture": user.profile_picture,
        "website": user.website,
        "social_links": _decode_social_links(user.social_links),
        "theme_preference": user.theme_preference or "default",
        "created_at": _isoformat(user.created_at),
    }


def serialize_public_profile(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "bio": user.bio,
        "profile_picture": user.profile_picture,
        "website": user.website,
        "social_links": _decode_social_links(user.social_links),
    }


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.query(User).filter(func.lower(User.email) == normalized).first()


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def list_moderators_with_email(db: Session) -> list[User]:
    return (
        db.query(User)
        .filter(User.is_moderator.is_(True), User.email != "")
        .order_by(User.id.asc())
        .all()
    )


def register_user(
    db: Session,
    *,
    email: str,
    password: str,
    name: str = "",
    confirm_password: str | None = None,
    auto_verify: bool = True,
) -> User:
    email_value = (email or "").strip()
    if not EMAIL_RE.match(email_value):
        raise ValidationError("Invalid email format", details={"field": "email"})
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"field": "password"},
        )
    if confirm_password is not None and confirm_password != password:
        raise ValidationError("Passwords do not match", details={"field": "confirm_password"})
    if get_user_by_email(db, email_value) is not None:
        raise Conflict("Email already in use")

    user = User(
        name=(name or "").strip(),
        email=email_value,
        hashed_password=hash_password(password),
        is_verified=auto_verify,
        verification_token=None,
        is_moderator=False,
        is_admin=False,
        is_banned=False,
        theme_preference="default",
        created_at=utc_now_naive(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Email already in use") from exc
    db.refresh(user)
    logger.info("user_registered user_id=%s verified=%s", user.id, user.is_verified)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = get_user_by_email(db, email)
    if user is None:
        logger.info("login_failed reason=unknown_email")
        raise InvalidCredentials()

    if user.is_banned:
        logger.info("login_failed reason=banned user_id=%s", user.id)
        message = "Your account has been banned."
        if user.ban_reason:
            message = f"{message} Reason: {user.ban_reason}"
        raise InvalidCredentials(message, details={"reason": "banned", "ban_reason": user.ban_reason})

    if not verify_password(password or "", user.hashed_password):
        logger.info("login_failed reason=bad_password user_id=%s", user.id)
        raise InvalidCredentials()
    return user


def issue_verification_token(db: Session, user_id: int) -> str:
    token = secrets.token_hex(32)
    updated = (
        db.query(User)
        .filter(User.id == user_id)
        .update({User.verification_token: token}, synchronize_session=False)
    )
    if not updated:
        raise NotFound("User not found")
    db.commit()
    return token


def consume_verification_token(db: Session, token: str) -> User:
    if not token:
        raise InvalidToken()
    user = db.query(User).filter(User.verification_token == token).first()
    if user is None:
        raise InvalidToken()

    # Guarding on the token makes a concurrent second consume a no-op.
    updated = (
        db.query(User)
        .filter(User.id == user.id, User.verification_token == token)
        .update({User.is_verified: True, User.verification_token: None}, synchronize_session=False)
    )
    if not updated:
        raise InvalidToken()
    db.commit()
    db.refresh(user)
    logger.info("user_verified user_id=%s", user.id)
    return user


def set_user_roles(
    db: Session,
    *,
    target_id: int,
    is_moderator: bool | None = None,
    is_admin: bool | None = None,
    reason: str | None = None,
    log_action: LogAction | None = None,
) -> User:
    user = get_user(db, target_id)
    values = {}
    if is_moderator is not None:
        values[User.is_moderator] = bool(is_moderator)
    if is_admin is not None:
        values[User.is_admin] = bool(is_admin)
    if not values:
        return user

    old_roles = {"is_moderator": bool(user.is_moderator), "is_admin": bool(user.is_admin)}
    db.query(User).filter(User.id == target_id).update(values, synchronize_session=False)
    user = db.get(User, target_id, populate_existing=True)
    if log_action is not None:
        new_roles = {"is_moderator": bool(user.is_moderator), "is_admin": bool(user.is_admin)}
        log_action("set_role", user, with_reason({"old": old_roles, "new": new_roles}, reason))
    db.commit()
    return user


def ban_user(
    db: Session,
    *,
    target_id: int,
    admin_id: int,
    reason: str | None = None,
    log_action: LogAction | None = None,
) -> User:
    reason_value = (reason or "").strip() or None
    updated = (
        db.query(User)
        .filter(User.id == target_id)
        .update(
            {
                User.is_banned: True,
                User.ban_reason: reason_value,
                User.banned_by: admin_id,
                User.banned_at: utc_now_naive(),
            },
            synchronize_session=False,
        )
    )
    if not updated:
        raise NotFound("User not found")
    user = db.get(User, target_id, populate_existing=True)
    if log_action is not None:
        log_action("ban", user, with_reason({}, reason_value))
    db.commit()
    return user


def unban_user(
    db: Session,
    *,
    target_id: int,
    admin_id: int,
    log_action: LogAction | None = None,
) -> User:
    updated = (
        db.query(User)
        .filter(User.id == target_id)
        .update(
            {
                User.is_banned: False,
                User.ban_reason: None,
                User.banned_by: None,
                User.banned_at: None,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        raise NotFound("User not found")
    user = db.get(User, target_id, populate_existing=True)
    if log_action is not None:
        log_action("unban", user, {"unbanned_by": admin_id})
    db.commit()
    return user


def update_profile(db: Session, *, actor: User, user_id: int, changes: dict) -> User:
    authorize(actor, "profile.edit", db.get(User, user_id), resource_name="User")

    values = {}
    for field in PROFILE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "social_links" and value is not None and not isinstance(value, str):
            value = json.dumps(value)
        if field == "theme_preference" and not value:
            value = "default"
        values[getattr(User, field)] = value
    if values:
        db.query(User).filter(User.id == user_id).update(values, synchronize_session=False)
        db.commit()
    return db.get(User, user_id, populate_existing=True)
