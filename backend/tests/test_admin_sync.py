import pytest

from imageshare.core.admin_sync import parse_admin_emails, sync_admin_users
from imageshare.core.passwords import verify_password
from imageshare.db.models.user import User


def test_parse_admin_emails_normalizes_and_dedupes():
    assert parse_admin_emails(" B@x.io, a@x.io ,b@X.io,,") == ["a@x.io", "b@x.io"]
    assert parse_admin_emails(["A@x.io"]) == ["a@x.io"]


def test_sync_admin_users_creates_and_promotes(db_session, make_user):
    existing = make_user(email="Boss@Example.com")

    result = sync_admin_users(db_session, ["boss@example.com", "root@example.com"], "rootpass1")
    assert result.created == 1
    assert result.promoted == 1

    db_session.refresh(existing)
    assert existing.is_admin is True and existing.is_moderator is True

    created = db_session.query(User).filter(User.email == "root@example.com").one()
    assert created.is_admin is True
    assert verify_password("rootpass1", created.hashed_password)

    again = sync_admin_users(db_session, ["boss@example.com", "root@example.com"], "rootpass1")
    assert (again.created, again.promoted) == (0, 0)


def test_sync_admin_users_skips_creation_without_password(db_session):
    result = sync_admin_users(db_session, ["nobody@example.com"], None)
    assert result.skipped_create_without_password == 1
    assert db_session.query(User).count() == 0


def test_sync_admin_users_rejects_invalid_email(db_session):
    with pytest.raises(ValueError):
        sync_admin_users(db_session, ["not-an-email"], "pw")
