import logging

from fastapi import Request
from sqlalchemy.orm import Session

from imageshare.core.observability import log_business_event
from imageshare.db.base import utc_now_naive
from imageshare.db.models.admin_audit_log import AdminAuditLog
from imageshare.db.models.user import User

logger = logging.getLogger(__name__)

ADMIN_ACTION_TITLE: dict[str, str] = {
    "set_role": "Role change",
    "ban": "User banned",
    "unban": "User unbanned",
}


def client_ip(request: Request | None) -> str | None:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64]
    if request.client and request.client.host:
        return request.client.host[:64]
    return None


def with_reason(meta: dict | None, reason: str | None) -> dict | None:
    base = dict(meta or {})
    value = (reason or "").strip()
    if value:
        base["reason"] = value
    return base or None


def record_admin_action(
    db: Session,
    request: Request | None,
    actor: User,
    action: str,
    *,
    target_user_id: int | None = None,
    meta_json: dict | None = None,
) -> AdminAuditLog:
    entry = AdminAuditLog(
        actor_user_id=actor.id,
        target_user_id=target_user_id,
        action=action,
        meta_json=meta_json,
        ip=client_ip(request),
        user_agent=(request.headers.get("user-agent", "")[:255] or None) if request else None,
        created_at=utc_now_naive(),
    )
    db.add(entry)
    db.flush()
    log_business_event(
        logger,
        request,
        event=f"admin.{action}",
        actor_id=actor.id,
        target_id=target_user_id,
        audit_log_id=entry.id,
    )
    return entry


def serialize_audit_entry(entry: AdminAuditLog) -> dict:
    return {
        "id": entry.id,
        "action": entry.action,
        "title": ADMIN_ACTION_TITLE.get(entry.action, f"Admin action: {entry.action}"),
        "actor_user_id": entry.actor_user_id,
        "target_user_id": entry.target_user_id,
        "meta": entry.meta_json,
        "ip": entry.ip,
        "user_agent": entry.user_agent,
        "created_at": entry.created_at.isoformat(),
    }


def list_audit_entries(
    db: Session,
    *,
    action: str | None = None,
    target_user_id: int | None = None,
    limit: int = 100,
) -> list[AdminAuditLog]:
    query = db.query(AdminAuditLog)
    if action:
        query = query.filter(AdminAuditLog.action == action)
    if target_user_id is not None:
        query = query.filter(AdminAuditLog.target_user_id == target_user_id)
    safe_limit = max(1, min(limit, 500))
    return query.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc()).limit(safe_limit).all()
