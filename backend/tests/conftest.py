from collections.abc import Generator
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from imageshare.core.config import Settings
from imageshare.core.mailer import Notification
from imageshare.core.passwords import hash_password
from imageshare.db import models  # noqa: F401
from imageshare.db.base import Base, utc_now_naive
from imageshare.db.models.image import IMAGE_STATUS_PENDING, Image
from imageshare.db.models.user import User
from imageshare.db.session import create_db_engine, create_session_factory, get_db
from imageshare.main import create_app


class RecordingMailer:
    configured = True

    def __init__(self):
        self.sent: list[Notification] = []

    def send_notification(self, notification: Notification) -> bool:
        self.sent.append(notification)
        return True


@pytest.fixture()
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(
        *,
        email: str | None = None,
        password: str | None = None,
        name: str = "",
        is_moderator: bool = False,
        is_admin: bool = False,
        is_banned: bool = False,
        is_verified: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"user{counter['n']}",
            email=email if email is not None else f"user{counter['n']}@test.local",
            hashed_password=hash_password(password) if password else "x",
            is_verified=is_verified,
            is_moderator=is_moderator,
            is_admin=is_admin,
            is_banned=is_banned,
            theme_preference="default",
            created_at=utc_now_naive(),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_image(db_session):
    def _make_image(
        owner: User,
        *,
        title: str = "photo",
        status: str = IMAGE_STATUS_PENDING,
        is_public: bool = True,
        updated_at: datetime | None = None,
    ) -> Image:
        now = utc_now_naive()
        image = Image(
            title=title,
            filename=f"{title}.png",
            status=status,
            user_id=owner.id,
            is_public=is_public,
            created_at=now,
            updated_at=updated_at or now,
        )
        db_session.add(image)
        db_session.commit()
        db_session.refresh(image)
        return image

    return _make_image


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite://",
        secret_key="test-secret",
        upload_dir=str(tmp_path / "uploads"),
        max_upload_bytes=1024,
        base_url="http://testserver",
        auto_migrate=False,
    )


@pytest.fixture()
def app(settings, session_factory, mailer):
    application = create_app(settings)
    application.state.mailer = mailer

    def _get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = _get_db
    try:
        yield application
    finally:
        application.dependency_overrides.clear()
        application.state.engine.dispose()


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def auth_header(app):
    def _auth_header(user: User) -> dict[str, str]:
        token = app.state.sessions.open(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _auth_header
