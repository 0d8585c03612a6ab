import logging
import secrets
import threading
import time
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class SessionStore:
    """In-process ``session id -> user id`` bindings with a sliding expiry."""

    def __init__(self, ttl_seconds: int, clock=time.monotonic):
        self._ttl_seconds = max(1, int(ttl_seconds))
        self._clock = clock
        self._lock = threading.Lock()
        self._items: dict[str, tuple[float, int]] = {}
        self._next_sweep_at = 0.0

    def set(self, sid: str, user_id: int) -> None:
        now = self._clock()
        with self._lock:
            # Abandoned sessions are swept at most once per TTL window.
            if now >= self._next_sweep_at:
                self._purge_locked(now)
                self._next_sweep_at = now + self._ttl_seconds
            self._items[sid] = (now + self._ttl_seconds, int(user_id))

    def get(self, sid: str) -> int | None:
        now = self._clock()
        with self._lock:
            item = self._items.get(sid)
            if item is None:
                return None
            expires_at, user_id = item
            if expires_at <= now:
                self._items.pop(sid, None)
                return None
            self._items[sid] = (now + self._ttl_seconds, user_id)
            return user_id

    def delete(self, sid: str) -> None:
        with self._lock:
            self._items.pop(sid, None)

    def _purge_locked(self, now: float) -> None:
        expired = [sid for sid, (expires_at, _) in self._items.items() if expires_at <= now]
        for sid in expired:
            del self._items[sid]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class SessionManager:
    """Issues signed session tokens backed by a :class:`SessionStore`.

    The token only carries a random session id; the user id stays server side
    so closing a session takes effect immediately.
    """

    def __init__(self, secret_key: str | None, ttl_minutes: int, store: SessionStore | None = None):
        if not secret_key:
            logger.warning("SESSION_SECRET is not set, using a random per-process key")
            secret_key = secrets.token_hex(32)
        self._secret_key = secret_key
        self._ttl = timedelta(minutes=ttl_minutes)
        self.store = store or SessionStore(ttl_seconds=int(self._ttl.total_seconds()))

    @property
    def max_age_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def _encode(self, sid: str) -> str:
        expire = datetime.now(timezone.utc) + self._ttl
        return jwt.encode({"sid": sid, "exp": expire}, self._secret_key, algorithm=ALGORITHM)

    def _decode_sid(self, token: str | None) -> str | None:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        sid = payload.get("sid")
        return sid if isinstance(sid, str) and sid else None

    def open(self, user_id: int) -> str:
        sid = secrets.token_urlsafe(32)
        self.store.set(sid, user_id)
        return self._encode(sid)

    def resolve(self, token: str | None) -> int | None:
        sid = self._decode_sid(token)
        if sid is None:
            return None
        return self.store.get(sid)

    def close(self, token: str | None) -> None:
        sid = self._decode_sid(token)
        if sid is not None:
            self.store.delete(sid)
