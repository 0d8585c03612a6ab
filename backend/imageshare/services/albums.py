import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from imageshare.core.errors import Conflict, Forbidden, NotFound, ValidationError
from imageshare.core.permissions import authorize
from imageshare.db.base import utc_now_naive
from imageshare.db.models.album import Album, AlbumImage
from imageshare.db.models.image import IMAGE_STATUS_APPROVED, Image
from imageshare.db.models.user import User
from imageshare.services.moderation import serialize_image

logger = logging.getLogger(__name__)


def get_album(db: Session, album_id: int) -> Album:
    album = db.get(Album, album_id)
    if album is None:
        raise NotFound("Album not found")
    return album


def album_members(db: Session, album: Album, viewer: User | None = None) -> list[Image]:
    """Approved members visible to ``viewer``, most recently added first.

    Private images only show up for the album owner.
    """
    query = (
        db.query(Image)
        .join(AlbumImage, AlbumImage.image_id == Image.id)
        .filter(AlbumImage.album_id == album.id, Image.status == IMAGE_STATUS_APPROVED)
    )
    if viewer is not None and viewer.id == album.user_id:
        query = query.filter(or_(Image.is_public.is_(True), Image.user_id == album.user_id))
    else:
        query = query.filter(Image.is_public.is_(True))
    return query.order_by(AlbumImage.added_at.desc(), AlbumImage.id.desc()).all()


def effective_cover_id(album: Album, members: list[Image]) -> int | None:
    member_ids = [image.id for image in members]
    if album.cover_image_id in member_ids:
        return album.cover_image_id
    return member_ids[0] if member_ids else None


def serialize_album(album: Album, *, cover_image_id: int | None, owner: User | None = None) -> dict:
    payload = {
        "id": album.id,
        "title": album.title,
        "description": album.description,
        "cover_image_id": cover_image_id,
        "user_id": album.user_id,
        "is_public": bool(album.is_public),
        "created_at": album.created_at.isoformat() if album.created_at else None,
        "updated_at": album.updated_at.isoformat() if album.updated_at else None,
    }
    if owner is not None:
        payload["owner"] = {"id": owner.id, "name": owner.name}
    return payload


def album_summary(db: Session, album: Album, *, viewer: User | None = None, owner: User | None = None) -> dict:
    members = album_members(db, album, viewer)
    payload = serialize_album(album, cover_image_id=effective_cover_id(album, members), owner=owner)
    payload["image_count"] = len(members)
    cover = next((image for image in members if image.id == payload["cover_image_id"]), None)
    payload["cover_image"] = serialize_image(cover) if cover is not None else None
    return payload


def album_detail(db: Session, album: Album, *, viewer: User | None = None) -> dict:
    members = album_members(db, album, viewer)
    payload = serialize_album(album, cover_image_id=effective_cover_id(album, members))
    payload["images"] = [serialize_image(image) for image in members]
    payload["image_count"] = len(members)
    return payload


def list_user_albums(db: Session, user_id: int) -> list[Album]:
    return (
        db.query(Album)
        .filter(Album.user_id == user_id)
        .order_by(Album.created_at.desc(), Album.id.desc())
        .all()
    )


def list_public_albums(db: Session) -> list[tuple[Album, User]]:
    return (
        db.query(Album, User)
        .join(User, User.id == Album.user_id)
        .filter(Album.is_public.is_(True))
        .order_by(Album.created_at.desc(), Album.id.desc())
        .all()
    )


def create_album(
    db: Session,
    *,
    owner: User,
    title: str,
    description: str | None = None,
    is_public: bool = True,
) -> Album:
    title_value = (title or "").strip()
    if not title_value:
        raise ValidationError("Title is required", details={"field": "title"})

    now = utc_now_naive()
    album = Album(
        title=title_value,
        description=(description or "").strip() or None,
        cover_image_id=None,
        user_id=owner.id,
        is_public=bool(is_public),
        created_at=now,
        updated_at=now,
    )
    db.add(album)
    db.commit()
    db.refresh(album)
    logger.info("album_created album_id=%s user_id=%s", album.id, owner.id)
    return album


def _is_member(db: Session, album_id: int, image_id: int) -> bool:
    return (
        db.query(AlbumImage.id)
        .filter(AlbumImage.album_id == album_id, AlbumImage.image_id == image_id)
        .first()
        is not None
    )


def update_album(db: Session, *, actor: User, album_id: int, changes: dict) -> Album:
    album = db.get(Album, album_id)
    authorize(actor, "album.edit", album, resource_name="Album")

    values = {}
    if "title" in changes:
        title_value = (changes["title"] or "").strip()
        if not title_value:
            raise ValidationError("Title is required", details={"field": "title"})
        values[Album.title] = title_value
    if "description" in changes:
        values[Album.description] = (changes["description"] or "").strip() or None
    if "is_public" in changes and changes["is_public"] is not None:
        values[Album.is_public] = bool(changes["is_public"])
    if "cover_image_id" in changes:
        cover_id = changes["cover_image_id"]
        if cover_id is not None and not _is_member(db, album_id, cover_id):
            raise ValidationError(
                "Cover image must be an image in this album",
                details={"field": "cover_image_id"},
            )
        values[Album.cover_image_id] = cover_id

    if values:
        values[Album.updated_at] = utc_now_naive()
        db.query(Album).filter(Album.id == album_id).update(values, synchronize_session=False)
        db.commit()
    return db.get(Album, album_id, populate_existing=True)


def delete_album(db: Session, *, actor: User, album_id: int) -> None:
    album = db.get(Album, album_id)
    authorize(actor, "album.delete", album, resource_name="Album")
    db.query(AlbumImage).filter(AlbumImage.album_id == album_id).delete(synchronize_session=False)
    db.delete(album)
    db.commit()
    logger.info("album_deleted album_id=%s user_id=%s", album_id, actor.id)


def add_image(db: Session, *, actor: User, album_id: int, image_id: int) -> Album:
    album = db.get(Album, album_id)
    authorize(actor, "album.add_image", album, resource_name="Album")

    image = db.get(Image, image_id)
    if image is None:
        raise NotFound("Image not found")
    if image.status != IMAGE_STATUS_APPROVED:
        raise Conflict("Only approved images can be added to an album", details={"status": image.status})
    if not image.is_public and image.user_id != album.user_id:
        raise Forbidden("Image is private")

    if not _is_member(db, album_id, image_id):
        db.add(AlbumImage(album_id=album_id, image_id=image_id, added_at=utc_now_naive()))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent add of the same pair already landed.
            db.rollback()
        else:
            logger.info("album_image_added album_id=%s image_id=%s", album_id, image_id)

    db.query(Album).filter(Album.id == album_id, Album.cover_image_id.is_(None)).update(
        {Album.cover_image_id: image_id, Album.updated_at: utc_now_naive()},
        synchronize_session=False,
    )
    db.commit()
    return db.get(Album, album_id, populate_existing=True)


def remove_image(db: Session, *, actor: User, album_id: int, image_id: int) -> Album:
    album = db.get(Album, album_id)
    authorize(actor, "album.remove_image", album, resource_name="Album")

    removed = (
        db.query(AlbumImage)
        .filter(AlbumImage.album_id == album_id, AlbumImage.image_id == image_id)
        .delete(synchronize_session=False)
    )
    if not removed:
        raise NotFound("Image is not in this album")

    next_cover = (
        db.query(AlbumImage.image_id)
        .filter(AlbumImage.album_id == album_id)
        .order_by(AlbumImage.added_at.desc(), AlbumImage.id.desc())
        .first()
    )
    db.query(Album).filter(Album.id == album_id, Album.cover_image_id == image_id).update(
        {
            Album.cover_image_id: next_cover[0] if next_cover else None,
            Album.updated_at: utc_now_naive(),
        },
        synchronize_session=False,
    )
    db.commit()
    logger.info("album_image_removed album_id=%s image_id=%s", album_id, image_id)
    return db.get(Album, album_id, populate_existing=True)
