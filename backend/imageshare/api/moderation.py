from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from imageshare.core.api_response import success_response_payload
from imageshare.core.security import require_action
from imageshare.db.models.user import User
from imageshare.db.session import get_db
from imageshare.services.moderation import list_pending, moderation_stats, serialize_image

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.get("")
def pending_queue(
    request: Request,
    db: Session = Depends(get_db),
    _: User = Depends(require_action("moderation.view")),
):
    items = [serialize_image(image, uploader=uploader) for image, uploader in list_pending(db)]
    return success_response_payload(request, data=items, meta={"total": len(items)})


@router.get("/stats")
def stats(
    request: Request,
    db: Session = Depends(get_db),
    _: User = Depends(require_action("moderation.view")),
):
    return success_response_payload(request, data=moderation_stats(db))
