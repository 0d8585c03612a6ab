from datetime import datetime, timedelta

import pytest

from imageshare.core.errors import Forbidden, NotFound, NotPending, ValidationError
from imageshare.db.models.image import IMAGE_STATUS_APPROVED, IMAGE_STATUS_PENDING, IMAGE_STATUS_REJECTED
from imageshare.services.moderation import (
    _today_start_utc,
    decide_image,
    list_pending,
    list_public_approved,
    list_user_images,
    moderation_stats,
    set_image_visibility,
    submit_image,
)


def test_submit_image_is_pending_and_notifies_moderators(db_session, make_user):
    owner = make_user()
    make_user(email="mod@example.com", is_moderator=True)
    make_user(email="", is_moderator=True)
    sent = []

    image = submit_image(
        db_session,
        owner=owner,
        title=" Sunset ",
        filename="1-abc.png",
        notify=sent.append,
        base_url="http://site",
    )
    assert image.status == IMAGE_STATUS_PENDING
    assert image.is_public is True
    assert image.title == "Sunset"
    assert [n.to for n in sent] == ["mod@example.com"]
    assert "Sunset" in sent[0].text


def test_submit_image_requires_title(db_session, make_user):
    with pytest.raises(ValidationError):
        submit_image(db_session, owner=make_user(), title="  ", filename="x.png")


def test_decide_image_approve_then_redecide_is_rejected(db_session, make_user, make_image):
    owner = make_user(email="owner@example.com")
    moderator = make_user(is_moderator=True)
    image = make_image(owner)
    sent = []

    approved = decide_image(
        db_session,
        image_id=image.id,
        outcome=IMAGE_STATUS_APPROVED,
        moderator=moderator,
        reason="ignored",
        notify=sent.append,
    )
    assert approved.status == IMAGE_STATUS_APPROVED
    assert approved.reviewed_by == moderator.id
    assert approved.rejection_reason is None
    assert [n.to for n in sent] == ["owner@example.com"]
    assert sent[0].subject == "Your Image Has Been Approved"

    with pytest.raises(NotPending):
        decide_image(db_session, image_id=image.id, outcome=IMAGE_STATUS_REJECTED, moderator=moderator)
    db_session.refresh(approved)
    assert approved.status == IMAGE_STATUS_APPROVED


def test_decide_image_reject_keeps_reason(db_session, make_user, make_image):
    moderator = make_user(is_moderator=True)
    image = make_image(make_user())
    rejected = decide_image(
        db_session,
        image_id=image.id,
        outcome=IMAGE_STATUS_REJECTED,
        moderator=moderator,
        reason="blurry",
    )
    assert rejected.status == IMAGE_STATUS_REJECTED
    assert rejected.rejection_reason == "blurry"


def test_decide_image_errors(db_session, make_user, make_image):
    moderator = make_user(is_moderator=True)
    image = make_image(make_user())
    with pytest.raises(NotFound):
        decide_image(db_session, image_id=999, outcome=IMAGE_STATUS_APPROVED, moderator=moderator)
    with pytest.raises(ValidationError):
        decide_image(db_session, image_id=image.id, outcome=IMAGE_STATUS_PENDING, moderator=moderator)


def test_notification_failure_does_not_fail_decision(db_session, make_user, make_image):
    moderator = make_user(is_moderator=True)
    image = make_image(make_user(email="owner@example.com"))

    def broken_notify(_notification):
        raise RuntimeError("smtp down")

    decided = decide_image(
        db_session,
        image_id=image.id,
        outcome=IMAGE_STATUS_APPROVED,
        moderator=moderator,
        notify=broken_notify,
    )
    assert decided.status == IMAGE_STATUS_APPROVED


def test_moderation_stats_counts_today_only(db_session, make_user, make_image):
    owner = make_user()
    now = datetime.now()
    today_start = _today_start_utc(now)
    make_image(owner, title="p1")
    make_image(owner, title="p2")
    make_image(owner, title="a1", status=IMAGE_STATUS_APPROVED, updated_at=today_start + timedelta(seconds=1))
    make_image(owner, title="r1", status=IMAGE_STATUS_REJECTED, updated_at=today_start - timedelta(hours=1))

    assert moderation_stats(db_session, now=now) == {"pending": 2, "approved_today": 1, "rejected_today": 0}


def test_listings(db_session, make_user, make_image):
    owner = make_user()
    other = make_user()
    pending = make_image(owner, title="pending")
    approved = make_image(owner, title="approved", status=IMAGE_STATUS_APPROVED)
    make_image(owner, title="hidden", status=IMAGE_STATUS_APPROVED, is_public=False)
    make_image(other, title="rejected", status=IMAGE_STATUS_REJECTED)

    assert [image.id for image, _ in list_pending(db_session)] == [pending.id]
    assert list_pending(db_session)[0][1].id == owner.id
    assert [image.id for image, _ in list_public_approved(db_session)] == [approved.id]
    assert len(list_user_images(db_session, owner.id)) == 3


def test_set_image_visibility_owner_only(db_session, make_user, make_image):
    owner = make_user()
    image = make_image(owner, status=IMAGE_STATUS_APPROVED)

    updated = set_image_visibility(db_session, actor=owner, image_id=image.id, is_public=False)
    assert updated.is_public is False
    assert updated.status == IMAGE_STATUS_APPROVED

    with pytest.raises(Forbidden):
        set_image_visibility(db_session, actor=make_user(is_moderator=True), image_id=image.id, is_public=True)
    with pytest.raises(NotFound):
        set_image_visibility(db_session, actor=owner, image_id=999, is_public=True)
