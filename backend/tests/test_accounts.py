import json

import pytest

from imageshare.core.errors import Conflict, Forbidden, InvalidCredentials, InvalidToken, NotFound, ValidationError
from imageshare.db.models.user import User
from imageshare.services.accounts import (
    authenticate,
    ban_user,
    consume_verification_token,
    get_user_by_email,
    issue_verification_token,
    register_user,
    serialize_public_profile,
    serialize_user,
    set_user_roles,
    unban_user,
    update_profile,
)


def test_register_user_stores_trimmed_email_and_hash(db_session):
    user = register_user(db_session, name="Ann", email="  Ann@Example.com ", password="secret1")
    assert user.email == "Ann@Example.com"
    assert user.hashed_password != "secret1"
    assert user.is_verified is True
    assert user.is_moderator is False and user.is_admin is False


def test_register_user_rejects_duplicate_email_case_insensitively(db_session):
    register_user(db_session, email="dup@example.com", password="secret1")
    with pytest.raises(Conflict):
        register_user(db_session, email="DUP@example.com", password="secret1")
    assert db_session.query(User).count() == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"email": "not-an-email", "password": "secret1"},
        {"email": "a@b.co", "password": "short"},
        {"email": "a@b.co", "password": "secret1", "confirm_password": "secret2"},
    ],
)
def test_register_user_validation(db_session, kwargs):
    with pytest.raises(ValidationError):
        register_user(db_session, **kwargs)


def test_register_user_unverified_when_auto_verify_off(db_session):
    user = register_user(db_session, email="new@example.com", password="secret1", auto_verify=False)
    assert user.is_verified is False


def test_authenticate_is_case_insensitive(db_session, make_user):
    make_user(email="Login@Example.com", password="pass1234")
    user = authenticate(db_session, "  login@example.COM ", "pass1234")
    assert user.email == "Login@Example.com"
    assert get_user_by_email(db_session, "LOGIN@example.com").id == user.id


def test_authenticate_failures(db_session, make_user):
    make_user(email="who@example.com", password="pass1234")
    with pytest.raises(InvalidCredentials):
        authenticate(db_session, "who@example.com", "wrong-pass")
    with pytest.raises(InvalidCredentials):
        authenticate(db_session, "nobody@example.com", "pass1234")


def test_authenticate_banned_user_reports_reason(db_session, make_user):
    admin = make_user(is_admin=True)
    user = make_user(email="bad@example.com", password="pass1234")
    ban_user(db_session, target_id=user.id, admin_id=admin.id, reason="spam")

    with pytest.raises(InvalidCredentials) as exc:
        authenticate(db_session, "bad@example.com", "pass1234")
    assert "Reason: spam" in exc.value.message
    assert exc.value.details["reason"] == "banned"


def test_verification_token_is_single_use(db_session, make_user):
    user = make_user(is_verified=False)
    token = issue_verification_token(db_session, user.id)
    assert len(token) == 64

    verified = consume_verification_token(db_session, token)
    assert verified.is_verified is True
    assert verified.verification_token is None

    with pytest.raises(InvalidToken):
        consume_verification_token(db_session, token)


def test_issuing_new_token_invalidates_previous(db_session, make_user):
    user = make_user(is_verified=False)
    first = issue_verification_token(db_session, user.id)
    second = issue_verification_token(db_session, user.id)
    assert first != second

    with pytest.raises(InvalidToken):
        consume_verification_token(db_session, first)
    assert consume_verification_token(db_session, second).id == user.id


def test_issue_verification_token_unknown_user(db_session):
    with pytest.raises(NotFound):
        issue_verification_token(db_session, 999)
    with pytest.raises(InvalidToken):
        consume_verification_token(db_session, "")


def test_ban_and_unban_record_and_clear_fields(db_session, make_user):
    admin = make_user(is_admin=True)
    user = make_user()
    logged = []

    banned = ban_user(
        db_session,
        target_id=user.id,
        admin_id=admin.id,
        reason="  abuse ",
        log_action=lambda action, target, meta: logged.append((action, target.id, meta)),
    )
    assert banned.is_banned is True
    assert banned.ban_reason == "abuse"
    assert banned.banned_by == admin.id
    assert banned.banned_at is not None

    unbanned = unban_user(db_session, target_id=user.id, admin_id=admin.id)
    assert unbanned.is_banned is False
    assert unbanned.ban_reason is None
    assert unbanned.banned_by is None
    assert unbanned.banned_at is None
    assert logged == [("ban", user.id, {"reason": "abuse"})]


def test_ban_unknown_user(db_session):
    with pytest.raises(NotFound):
        ban_user(db_session, target_id=404, admin_id=1)


def test_set_user_roles_is_partial(db_session, make_user):
    user = make_user(is_moderator=True)
    logged = []

    updated = set_user_roles(
        db_session,
        target_id=user.id,
        is_admin=True,
        log_action=lambda action, target, meta: logged.append(meta),
    )
    assert updated.is_admin is True
    assert updated.is_moderator is True
    assert logged == [
        {"old": {"is_moderator": True, "is_admin": False}, "new": {"is_moderator": True, "is_admin": True}}
    ]

    updated = set_user_roles(db_session, target_id=user.id, is_moderator=False)
    assert updated.is_moderator is False
    assert updated.is_admin is True


def test_update_profile_only_touches_profile_fields(db_session, make_user):
    user = make_user(email="p@example.com")
    updated = update_profile(
        db_session,
        actor=user,
        user_id=user.id,
        changes={"bio": "hello", "social_links": {"github": "ann"}, "theme_preference": "", "email": "x@y.z"},
    )
    assert updated.bio == "hello"
    assert json.loads(updated.social_links) == {"github": "ann"}
    assert updated.theme_preference == "default"
    assert updated.email == "p@example.com"


def test_update_profile_of_another_user_is_denied(db_session, make_user):
    owner = make_user(email="owner@example.com")
    admin = make_user(is_admin=True, is_moderator=True)

    with pytest.raises(Forbidden):
        update_profile(db_session, actor=admin, user_id=owner.id, changes={"bio": "hijacked"})
    with pytest.raises(NotFound):
        update_profile(db_session, actor=owner, user_id=999, changes={"bio": "x"})

    db_session.refresh(owner)
    assert owner.bio is None


def test_serializers_never_expose_secrets(make_user):
    user = make_user(password="pass1234")
    payload = serialize_user(user)
    assert "hashed_password" not in payload
    assert "verification_token" not in payload
    assert payload["role"] == "user"

    profile = serialize_public_profile(user)
    assert "email" not in profile
