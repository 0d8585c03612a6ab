import pytest

from imageshare.core.errors import Conflict, Forbidden, NotFound, ValidationError
from imageshare.db.models.album import AlbumImage
from imageshare.db.models.image import IMAGE_STATUS_APPROVED, IMAGE_STATUS_PENDING, Image
from imageshare.services.albums import (
    add_image,
    album_detail,
    album_members,
    create_album,
    delete_album,
    list_public_albums,
    list_user_albums,
    remove_image,
    update_album,
)


@pytest.fixture()
def owner(make_user):
    return make_user(email="owner@example.com")


@pytest.fixture()
def album(db_session, owner):
    return create_album(db_session, owner=owner, title="Trips", description="2026")


def test_create_album_requires_title(db_session, owner):
    with pytest.raises(ValidationError):
        create_album(db_session, owner=owner, title="   ")


def test_only_approved_images_can_be_added(db_session, owner, album, make_image):
    pending = make_image(owner, status=IMAGE_STATUS_PENDING)
    with pytest.raises(Conflict):
        add_image(db_session, actor=owner, album_id=album.id, image_id=pending.id)
    with pytest.raises(NotFound):
        add_image(db_session, actor=owner, album_id=album.id, image_id=999)
    assert db_session.query(AlbumImage).count() == 0


def test_add_image_is_idempotent_and_sets_cover(db_session, owner, album, make_image):
    image = make_image(owner, status=IMAGE_STATUS_APPROVED)
    add_image(db_session, actor=owner, album_id=album.id, image_id=image.id)
    updated = add_image(db_session, actor=owner, album_id=album.id, image_id=image.id)

    assert db_session.query(AlbumImage).filter(AlbumImage.album_id == album.id).count() == 1
    assert updated.cover_image_id == image.id


def test_cover_stays_on_first_image_and_moves_on_removal(db_session, owner, album, make_image):
    first = make_image(owner, title="first", status=IMAGE_STATUS_APPROVED)
    second = make_image(owner, title="second", status=IMAGE_STATUS_APPROVED)
    third = make_image(owner, title="third", status=IMAGE_STATUS_APPROVED)
    for image in (first, second, third):
        add_image(db_session, actor=owner, album_id=album.id, image_id=image.id)
    assert db_session.get(type(album), album.id).cover_image_id == first.id

    after_first = remove_image(db_session, actor=owner, album_id=album.id, image_id=first.id)
    assert after_first.cover_image_id == third.id

    after_second = remove_image(db_session, actor=owner, album_id=album.id, image_id=second.id)
    assert after_second.cover_image_id == third.id

    emptied = remove_image(db_session, actor=owner, album_id=album.id, image_id=third.id)
    assert emptied.cover_image_id is None

    with pytest.raises(NotFound):
        remove_image(db_session, actor=owner, album_id=album.id, image_id=third.id)


def test_non_owner_cannot_modify_album(db_session, album, make_user, make_image):
    stranger = make_user(is_moderator=True, is_admin=True)
    image = make_image(stranger, status=IMAGE_STATUS_APPROVED)
    with pytest.raises(Forbidden):
        add_image(db_session, actor=stranger, album_id=album.id, image_id=image.id)
    with pytest.raises(Forbidden):
        update_album(db_session, actor=stranger, album_id=album.id, changes={"title": "mine"})
    with pytest.raises(Forbidden):
        delete_album(db_session, actor=stranger, album_id=album.id)


def test_private_image_of_another_user_cannot_be_added(db_session, owner, album, make_user, make_image):
    other_private = make_image(make_user(), status=IMAGE_STATUS_APPROVED, is_public=False)
    with pytest.raises(Forbidden):
        add_image(db_session, actor=owner, album_id=album.id, image_id=other_private.id)

    other_public = make_image(make_user(), status=IMAGE_STATUS_APPROVED)
    add_image(db_session, actor=owner, album_id=album.id, image_id=other_public.id)


def test_update_album_cover_must_be_member(db_session, owner, album, make_image):
    member = make_image(owner, status=IMAGE_STATUS_APPROVED)
    outsider = make_image(owner, status=IMAGE_STATUS_APPROVED)
    add_image(db_session, actor=owner, album_id=album.id, image_id=member.id)

    with pytest.raises(ValidationError):
        update_album(db_session, actor=owner, album_id=album.id, changes={"cover_image_id": outsider.id})

    updated = update_album(
        db_session,
        actor=owner,
        album_id=album.id,
        changes={"title": "Renamed", "is_public": False, "cover_image_id": None},
    )
    assert updated.title == "Renamed"
    assert updated.is_public is False
    assert updated.cover_image_id is None
    assert album_detail(db_session, updated)["cover_image_id"] == member.id


def test_detail_revalidates_stale_cover(db_session, owner, album, make_image):
    first = make_image(owner, title="first", status=IMAGE_STATUS_APPROVED)
    second = make_image(owner, title="second", status=IMAGE_STATUS_APPROVED)
    add_image(db_session, actor=owner, album_id=album.id, image_id=first.id)
    add_image(db_session, actor=owner, album_id=album.id, image_id=second.id)

    db_session.query(AlbumImage).filter(AlbumImage.image_id == first.id).delete()
    db_session.commit()

    detail = album_detail(db_session, db_session.get(type(album), album.id))
    assert detail["cover_image_id"] == second.id
    assert [image["id"] for image in detail["images"]] == [second.id]


def test_delete_album_removes_memberships(db_session, owner, album, make_image):
    image = make_image(owner, status=IMAGE_STATUS_APPROVED)
    add_image(db_session, actor=owner, album_id=album.id, image_id=image.id)

    delete_album(db_session, actor=owner, album_id=album.id)
    assert db_session.query(AlbumImage).count() == 0
    assert db_session.get(Image, image.id) is not None
    assert list_user_albums(db_session, owner.id) == []


def test_public_album_listing(db_session, owner, make_user):
    create_album(db_session, owner=owner, title="Hidden", is_public=False)
    visible = create_album(db_session, owner=owner, title="Shown")
    rows = list_public_albums(db_session)
    assert [(a.id, u.id) for a, u in rows] == [(visible.id, owner.id)]


def test_private_members_only_listed_for_owner(db_session, owner, album, make_user, make_image):
    hidden = make_image(owner, title="hidden", status=IMAGE_STATUS_APPROVED, is_public=False)
    add_image(db_session, actor=owner, album_id=album.id, image_id=hidden.id)

    assert [image.id for image in album_members(db_session, album, owner)] == [hidden.id]
    assert album_members(db_session, album) == []
    assert album_members(db_session, album, make_user()) == []
    assert album_detail(db_session, album)["cover_image_id"] is None
    assert album_detail(db_session, album, viewer=owner)["cover_image_id"] == hidden.id
