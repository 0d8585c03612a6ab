import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from imageshare.core.api_response import success_response_payload
from imageshare.core.observability import log_business_event
from imageshare.core.security import get_current_user
from imageshare.db.models.user import User
from imageshare.db.session import get_db
from imageshare.schemas.users import ProfileUpdate
from imageshare.services.accounts import get_user, serialize_public_profile, serialize_user, update_profile

router = APIRouter(tags=["profiles"])
logger = logging.getLogger(__name__)


def _edit_profile(request: Request, db: Session, actor: User, user_id: int, payload: ProfileUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    user = update_profile(db, actor=actor, user_id=user_id, changes=changes)
    log_business_event(logger, request, event="profile.update", user_id=user.id, fields=",".join(sorted(changes)))
    return success_response_payload(request, data=serialize_user(user))


@router.get("/users/{user_id}/profile")
def public_profile(user_id: int, request: Request, db: Session = Depends(get_db)):
    user = get_user(db, user_id)
    return success_response_payload(request, data=serialize_public_profile(user))


@router.patch("/users/{user_id}/profile")
def edit_user_profile(
    user_id: int,
    payload: ProfileUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _edit_profile(request, db, current_user, user_id, payload)


@router.patch("/profile")
def edit_profile(
    payload: ProfileUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _edit_profile(request, db, current_user, current_user.id, payload)
