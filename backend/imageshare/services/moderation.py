import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from imageshare.core.errors import NotFound, NotPending, ValidationError
from imageshare.core.permissions import authorize
from imageshare.db.base import utc_now_naive
from imageshare.db.models.image import (
    IMAGE_STATUS_APPROVED,
    IMAGE_STATUS_PENDING,
    IMAGE_STATUS_REJECTED,
    Image,
)
from imageshare.db.models.user import User
from imageshare.services.accounts import list_moderators_with_email
from imageshare.services.notifications import (
    Notify,
    decision_notification,
    new_submission_notification,
    safe_notify,
)

logger = logging.getLogger(__name__)

DECISION_OUTCOMES = (IMAGE_STATUS_APPROVED, IMAGE_STATUS_REJECTED)


def serialize_image(image: Image, *, uploader: User | None = None) -> dict:
    payload = {
        "id": image.id,
        "title": image.title,
        "description": image.description,
        "filename": image.filename,
        "url": f"/uploads/{image.filename}",
        "status": image.status,
        "user_id": image.user_id,
        "reviewed_by": image.reviewed_by,
        "rejection_reason": image.rejection_reason,
        "is_public": bool(image.is_public),
        "created_at": image.created_at.isoformat() if image.created_at else None,
        "updated_at": image.updated_at.isoformat() if image.updated_at else None,
    }
    if uploader is not None:
        payload["uploader"] = {"id": uploader.id, "name": uploader.name, "email": uploader.email}
    return payload


def get_image(db: Session, image_id: int) -> Image:
    image = db.get(Image, image_id)
    if image is None:
        raise NotFound("Image not found")
    return image


def submit_image(
    db: Session,
    *,
    owner: User,
    title: str,
    filename: str,
    description: str | None = None,
    notify: Notify | None = None,
    base_url: str = "",
) -> Image:
    title_value = (title or "").strip()
    if not title_value:
        raise ValidationError("Title is required", details={"field": "title"})
    if not filename:
        raise ValidationError("No image file provided")

    now = utc_now_naive()
    image = Image(
        title=title_value,
        description=(description or "").strip() or None,
        filename=filename,
        status=IMAGE_STATUS_PENDING,
        user_id=owner.id,
        is_public=True,
        created_at=now,
        updated_at=now,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    logger.info("image_submitted image_id=%s user_id=%s", image.id, owner.id)

    for moderator in list_moderators_with_email(db):
        safe_notify(
            notify,
            new_submission_notification(to=moderator.email, image_title=image.title, base_url=base_url),
        )
    return image


def decide_image(
    db: Session,
    *,
    image_id: int,
    outcome: str,
    moderator: User,
    reason: str | None = None,
    notify: Notify | None = None,
    base_url: str = "",
) -> Image:
    """Move a pending image to ``approved`` or ``rejected``.

    The transition is one conditional UPDATE, so two moderators racing on the
    same image cannot both win; the loser gets ``NotPending``.
    """
    if outcome not in DECISION_OUTCOMES:
        raise ValidationError(
            "Status must be approved or rejected",
            details={"field": "status", "allowed": list(DECISION_OUTCOMES)},
        )
    reason_value = (reason or "").strip() or None
    if outcome == IMAGE_STATUS_APPROVED:
        reason_value = None

    updated = (
        db.query(Image)
        .filter(Image.id == image_id, Image.status == IMAGE_STATUS_PENDING)
        .update(
            {
                Image.status: outcome,
                Image.reviewed_by: moderator.id,
                Image.rejection_reason: reason_value,
                Image.updated_at: utc_now_naive(),
            },
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        image = db.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        raise NotPending(details={"status": image.status})
    db.commit()

    image = db.get(Image, image_id, populate_existing=True)
    logger.info("image_decided image_id=%s status=%s moderator_id=%s", image.id, outcome, moderator.id)

    owner = db.get(User, image.user_id)
    if owner is not None and owner.email:
        safe_notify(
            notify,
            decision_notification(
                to=owner.email,
                image_title=image.title,
                status=outcome,
                reason=reason_value,
                base_url=base_url,
            ),
        )
    return image


def set_image_visibility(db: Session, *, actor: User, image_id: int, is_public: bool) -> Image:
    image = db.get(Image, image_id)
    authorize(actor, "image.set_visibility", image, resource_name="Image")
    db.query(Image).filter(Image.id == image_id).update(
        {Image.is_public: bool(is_public), Image.updated_at: utc_now_naive()},
        synchronize_session=False,
    )
    db.commit()
    return db.get(Image, image_id, populate_existing=True)


def list_pending(db: Session) -> list[tuple[Image, User]]:
    return (
        db.query(Image, User)
        .join(User, User.id == Image.user_id)
        .filter(Image.status == IMAGE_STATUS_PENDING)
        .order_by(Image.created_at.desc(), Image.id.desc())
        .all()
    )


def list_public_approved(db: Session) -> list[tuple[Image, User]]:
    return (
        db.query(Image, User)
        .join(User, User.id == Image.user_id)
        .filter(Image.status == IMAGE_STATUS_APPROVED, Image.is_public.is_(True))
        .order_by(Image.created_at.desc(), Image.id.desc())
        .all()
    )


def list_user_images(db: Session, user_id: int) -> list[Image]:
    return (
        db.query(Image)
        .filter(Image.user_id == user_id)
        .order_by(Image.created_at.desc(), Image.id.desc())
        .all()
    )


def _today_start_utc(now: datetime | None) -> datetime:
    # Naive values are read as local time; the boundary is stored-format UTC.
    local_now = (now or datetime.now()).astimezone()
    local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def moderation_stats(db: Session, now: datetime | None = None) -> dict[str, int]:
    since = _today_start_utc(now)

    def count(*criteria) -> int:
        return int(db.query(func.count(Image.id)).filter(*criteria).scalar() or 0)

    return {
        "pending": count(Image.status == IMAGE_STATUS_PENDING),
        "approved_today": count(Image.status == IMAGE_STATUS_APPROVED, Image.updated_at >= since),
        "rejected_today": count(Image.status == IMAGE_STATUS_REJECTED, Image.updated_at >= since),
    }
