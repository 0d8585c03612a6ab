import json
import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session

from imageshare.api.deps import get_file_store, get_notifier
from imageshare.core.api_response import success_response_payload
from imageshare.core.config import Settings
from imageshare.core.errors import NotFound, ValidationError
from imageshare.core.observability import log_business_event
from imageshare.core.permissions import authorize, has_permission
from imageshare.core.security import get_current_user, get_optional_user, get_settings
from imageshare.core.uploads import LocalFileStore
from imageshare.db.models.image import IMAGE_STATUS_APPROVED, Image
from imageshare.db.models.user import User
from imageshare.db.session import get_db
from imageshare.schemas.images import ImageMetaIn, ImageStatusIn, ImageVisibilityIn
from imageshare.services.moderation import (
    decide_image,
    list_public_approved,
    list_user_images,
    serialize_image,
    set_image_visibility,
    submit_image,
)
from imageshare.services.notifications import Notify

router = APIRouter(tags=["images"])
logger = logging.getLogger(__name__)


def _optional_str(value) -> str | None:
    return str(value) if value is not None else None


def _parse_image_meta(data: str | None, title: str | None, description: str | None) -> ImageMetaIn:
    if data:
        try:
            raw = json.loads(data)
        except ValueError:
            raw = None
        if isinstance(raw, dict):
            return ImageMetaIn(
                title=str(raw.get("title") or "Untitled Image"),
                description=_optional_str(raw.get("description")),
            )
    return ImageMetaIn(title=title or "Untitled Image", description=description)


@router.get("/images")
def public_gallery(request: Request, db: Session = Depends(get_db)):
    rows = list_public_approved(db)
    items = [serialize_image(image, uploader=uploader) for image, uploader in rows]
    return success_response_payload(request, data=items, meta={"total": len(items)})


@router.get("/my-images")
def my_images(request: Request, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    items = [serialize_image(image) for image in list_user_images(db, current_user.id)]
    return success_response_payload(request, data=items, meta={"total": len(items)})


@router.get("/images/{image_id}")
def get_image_detail(
    image_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    image = db.get(Image, image_id)
    # Moderators review submissions regardless of their visibility.
    if image is not None and image.status != IMAGE_STATUS_APPROVED and has_permission(current_user, "images.moderate"):
        return success_response_payload(request, data=serialize_image(image))

    authorize(current_user, "image.view", image, resource_name="Image")
    is_owner = current_user is not None and current_user.id == image.user_id
    if image.status != IMAGE_STATUS_APPROVED and not is_owner:
        raise NotFound("Image not found")
    return success_response_payload(request, data=serialize_image(image))


@router.post("/images", status_code=201)
def upload_image(
    request: Request,
    image: UploadFile | None = File(default=None),
    data: str | None = Form(default=None),
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    file_store: LocalFileStore = Depends(get_file_store),
    notify: Notify = Depends(get_notifier),
):
    if image is None:
        raise ValidationError("No image file provided")
    meta = _parse_image_meta(data, title, description)

    content = image.file.read(file_store.max_bytes + 1)
    filename = file_store.save(content, image.content_type, image.filename)
    try:
        created = submit_image(
            db,
            owner=current_user,
            title=meta.title,
            description=meta.description,
            filename=filename,
            notify=notify,
            base_url=settings.base_url,
        )
    except Exception:
        file_store.delete(filename)
        raise

    log_business_event(logger, request, event="image.submit", image_id=created.id, user_id=current_user.id)
    return success_response_payload(request, data=serialize_image(created))


@router.patch("/images/{image_id}/status")
def update_image_status(
    image_id: int,
    payload: ImageStatusIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
    notify: Notify = Depends(get_notifier),
):
    image = db.get(Image, image_id)
    authorize(current_user, "image.moderate", image, resource_name="Image")
    decided = decide_image(
        db,
        image_id=image_id,
        outcome=payload.status,
        moderator=current_user,
        reason=payload.reason,
        notify=notify,
        base_url=settings.base_url,
    )
    log_business_event(
        logger,
        request,
        event="image.decide",
        image_id=decided.id,
        status=decided.status,
        moderator_id=current_user.id,
    )
    return success_response_payload(request, data=serialize_image(decided))


@router.patch("/images/{image_id}/visibility")
def update_image_visibility(
    image_id: int,
    payload: ImageVisibilityIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    updated = set_image_visibility(db, actor=current_user, image_id=image_id, is_public=payload.is_public)
    log_business_event(
        logger,
        request,
        event="image.visibility",
        image_id=updated.id,
        is_public=updated.is_public,
        user_id=current_user.id,
    )
    return success_response_payload(request, data=serialize_image(updated))
