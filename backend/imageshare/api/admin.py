from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from imageshare.core.api_response import success_response_payload
from imageshare.core.permissions import authorize
from imageshare.core.security import get_optional_user, require_action
from imageshare.db.models.user import User
from imageshare.db.session import get_db
from imageshare.schemas.users import UserBanIn, UserRoleIn
from imageshare.services.accounts import ban_user, list_users, serialize_user, set_user_roles, unban_user
from imageshare.services.audit import list_audit_entries, record_admin_action, serialize_audit_entry

router = APIRouter(prefix="/admin", tags=["admin"])


def _audit_logger(db: Session, request: Request, actor: User):
    def _log(action: str, target: User, meta: dict | None) -> None:
        record_admin_action(db, request, actor, action, target_user_id=target.id, meta_json=meta)

    return _log


@router.get("/users")
def users(
    request: Request,
    db: Session = Depends(get_db),
    _: User = Depends(require_action("users.list")),
):
    items = [serialize_user(user) for user in list_users(db)]
    return success_response_payload(request, data=items, meta={"total": len(items)})


@router.patch("/users/{user_id}/role")
def update_role(
    user_id: int,
    payload: UserRoleIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User | None = Depends(get_optional_user),
):
    target = db.get(User, user_id)
    authorize(admin, "user.set_role", target, resource_name="User")
    user = set_user_roles(
        db,
        target_id=user_id,
        is_moderator=payload.is_moderator,
        is_admin=payload.is_admin,
        reason=payload.reason,
        log_action=_audit_logger(db, request, admin),
    )
    return success_response_payload(request, data=serialize_user(user))


@router.patch("/users/{user_id}/ban")
def update_ban(
    user_id: int,
    payload: UserBanIn,
    request: Request,
    db: Session = Depends(get_db),
    admin: User | None = Depends(get_optional_user),
):
    target = db.get(User, user_id)
    authorize(admin, "user.ban", target, resource_name="User")
    log_action = _audit_logger(db, request, admin)
    if payload.is_banned:
        user = ban_user(db, target_id=user_id, admin_id=admin.id, reason=payload.ban_reason, log_action=log_action)
    else:
        user = unban_user(db, target_id=user_id, admin_id=admin.id, log_action=log_action)
    return success_response_payload(request, data=serialize_user(user))


@router.get("/audit")
def audit_trail(
    request: Request,
    action: str | None = None,
    target_user_id: int | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    _: User = Depends(require_action("audit.view")),
):
    entries = list_audit_entries(db, action=action, target_user_id=target_user_id, limit=limit)
    items = [serialize_audit_entry(entry) for entry in entries]
    return success_response_payload(request, data=items, meta={"total": len(items)})
