import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from imageshare.core.api_response import success_response_payload
from imageshare.core.observability import log_business_event
from imageshare.core.permissions import authorize
from imageshare.core.security import get_current_user, get_optional_user
from imageshare.db.models.album import Album
from imageshare.db.models.user import User
from imageshare.db.session import get_db
from imageshare.schemas.albums import AlbumCreate, AlbumImageIn, AlbumUpdate
from imageshare.services.albums import (
    add_image,
    album_detail,
    album_summary,
    create_album,
    delete_album,
    list_public_albums,
    list_user_albums,
    remove_image,
    update_album,
)

router = APIRouter(tags=["albums"])
logger = logging.getLogger(__name__)


@router.get("/albums")
def my_albums(request: Request, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    items = [album_summary(db, album, viewer=current_user) for album in list_user_albums(db, current_user.id)]
    return success_response_payload(request, data=items, meta={"total": len(items)})


def _public_albums_payload(request: Request, db: Session, viewer: User | None) -> dict:
    items = [album_summary(db, album, viewer=viewer, owner=owner) for album, owner in list_public_albums(db)]
    return success_response_payload(request, data=items, meta={"total": len(items)})


@router.get("/public-albums")
def public_albums(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    return _public_albums_payload(request, db, current_user)


@router.get("/albums/public")
def public_albums_alias(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    return _public_albums_payload(request, db, current_user)


@router.get("/albums/{album_id}")
def get_album_detail(
    album_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    album = db.get(Album, album_id)
    authorize(current_user, "album.view", album, resource_name="Album")
    return success_response_payload(request, data=album_detail(db, album, viewer=current_user))


@router.post("/albums", status_code=201)
def create_album_endpoint(
    payload: AlbumCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    album = create_album(
        db,
        owner=current_user,
        title=payload.title,
        description=payload.description,
        is_public=payload.is_public,
    )
    log_business_event(logger, request, event="album.create", album_id=album.id, user_id=current_user.id)
    return success_response_payload(request, data=album_detail(db, album, viewer=current_user))


@router.patch("/albums/{album_id}")
def update_album_endpoint(
    album_id: int,
    payload: AlbumUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    album = update_album(db, actor=current_user, album_id=album_id, changes=payload.model_dump(exclude_unset=True))
    log_business_event(logger, request, event="album.update", album_id=album.id, user_id=current_user.id)
    return success_response_payload(request, data=album_detail(db, album, viewer=current_user))


@router.delete("/albums/{album_id}")
def delete_album_endpoint(
    album_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    delete_album(db, actor=current_user, album_id=album_id)
    log_business_event(logger, request, event="album.delete", album_id=album_id, user_id=current_user.id)
    return success_response_payload(request, data={"id": album_id, "deleted": True})


@router.post("/albums/{album_id}/images")
def add_album_image(
    album_id: int,
    payload: AlbumImageIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    album = add_image(db, actor=current_user, album_id=album_id, image_id=payload.image_id)
    log_business_event(
        logger,
        request,
        event="album.add_image",
        album_id=album_id,
        image_id=payload.image_id,
        user_id=current_user.id,
    )
    return success_response_payload(request, data=album_detail(db, album, viewer=current_user))


@router.delete("/albums/{album_id}/images/{image_id}")
def remove_album_image(
    album_id: int,
    image_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    album = remove_image(db, actor=current_user, album_id=album_id, image_id=image_id)
    log_business_event(
        logger,
        request,
        event="album.remove_image",
        album_id=album_id,
        image_id=image_id,
        user_id=current_user.id,
    )
    return success_response_payload(request, data=album_detail(db, album, viewer=current_user))
