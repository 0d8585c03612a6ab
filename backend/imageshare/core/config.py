import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [x.strip() for x in raw.split(",") if x.strip()]


@dataclass
class Settings:
    database_url: str = "sqlite:///./data/imageshare.db"
    secret_key: str | None = None
    session_ttl_minutes: int = 60 * 24 * 7
    session_cookie_name: str = "imageshare_session"
    session_cookie_secure: bool = False
    auto_verify_users: bool = True
    upload_dir: str = "./uploads"
    max_upload_bytes: int = 10 * 1024 * 1024
    base_url: str = "http://localhost:5000"
    email_from: str = "noreply@imageshare.com"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    admin_emails: list[str] = field(default_factory=list)
    admin_password: str | None = None
    auto_migrate: bool = True
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./data/imageshare.db"),
            secret_key=os.getenv("SESSION_SECRET") or None,
            session_ttl_minutes=int(os.getenv("SESSION_TTL_MINUTES", str(60 * 24 * 7))),
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "imageshare_session"),
            session_cookie_secure=_env_bool("SESSION_COOKIE_SECURE", "false"),
            auto_verify_users=_env_bool("AUTO_VERIFY_USERS", "true"),
            upload_dir=os.getenv("UPLOAD_DIR", "./uploads"),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
            base_url=os.getenv("BASE_URL", "http://localhost:5000").rstrip("/"),
            email_from=os.getenv("EMAIL_FROM", "noreply@imageshare.com"),
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            smtp_use_tls=_env_bool("SMTP_USE_TLS", "true"),
            admin_emails=_env_list("ADMIN_EMAILS"),
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            auto_migrate=_env_bool("AUTO_MIGRATE", "true"),
            cors_origins=_env_list("CORS_ORIGINS") or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
