import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from imageshare.core.passwords import hash_password
from imageshare.db.base import utc_now_naive
from imageshare.db.models.user import User
from imageshare.services.accounts import EMAIL_RE, normalize_email

logger = logging.getLogger(__name__)


def parse_admin_emails(raw: str | list[str]) -> list[str]:
    items = raw.split(",") if isinstance(raw, str) else raw
    emails = [normalize_email(x) for x in items if x and x.strip()]
    return sorted(set(emails))


def validate_admin_emails(emails: list[str]) -> None:
    invalid = [email for email in emails if not EMAIL_RE.match(email)]
    if invalid:
        raise ValueError(f"Invalid emails: {', '.join(invalid)}")


@dataclass
class AdminSyncResult:
    created: int = 0
    promoted: int = 0
    skipped_create_without_password: int = 0


def sync_admin_users(db: Session, admin_emails: list[str], admin_password: str | None) -> AdminSyncResult:
    """Make sure every configured admin account exists with admin and moderator flags."""
    result = AdminSyncResult()
    emails = parse_admin_emails(admin_emails)
    validate_admin_emails(emails)

    for email in emails:
        existing = db.query(User).filter(func.lower(User.email) == email).first()
        if existing:
            changed = False
            if not existing.is_admin:
                existing.is_admin = True
                changed = True
            if not existing.is_moderator:
                existing.is_moderator = True
                changed = True
            if not existing.is_verified:
                existing.is_verified = True
                changed = True
            if changed:
                result.promoted += 1
            continue

        if not admin_password:
            result.skipped_create_without_password += 1
            continue

        db.add(
            User(
                name="Admin",
                email=email,
                hashed_password=hash_password(admin_password),
                is_verified=True,
                is_moderator=True,
                is_admin=True,
                is_banned=False,
                theme_preference="default",
                created_at=utc_now_naive(),
            )
        )
        result.created += 1

    db.commit()
    logger.info(
        "admin_sync created=%s promoted=%s skipped_create_without_password=%s",
        result.created,
        result.promoted,
        result.skipped_create_without_password,
    )
    return result
