from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass
