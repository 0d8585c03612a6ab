from enum import Enum
from typing import Literal

from imageshare.core.errors import Forbidden, NotFound, Unauthenticated

Role = Literal["user", "moderator", "admin"]

Permission = Literal[
    "images.moderate",
    "users.manage",
    "audit.view",
]

Action = Literal[
    "image.view",
    "image.set_visibility",
    "image.moderate",
    "moderation.view",
    "album.view",
    "album.edit",
    "album.delete",
    "album.add_image",
    "album.remove_image",
    "profile.edit",
    "user.set_role",
    "user.ban",
    "users.list",
    "audit.view",
]

PERMISSIONS_BY_ROLE: dict[Role, set[Permission]] = {
    "user": set(),
    "moderator": {"images.moderate"},
    "admin": {"users.manage", "audit.view"},
}

PERMISSION_LABELS: dict[Permission, str] = {
    "images.moderate": "Approve or reject pending images",
    "users.manage": "Change roles, ban and unban users",
    "audit.view": "Read the admin audit trail",
}

OWNER_ACTIONS: set[Action] = {
    "image.set_visibility",
    "album.edit",
    "album.delete",
    "album.add_image",
    "album.remove_image",
    "profile.edit",
}
VIEW_ACTIONS: set[Action] = {"image.view", "album.view"}
PERMISSION_BY_ACTION: dict[Action, Permission] = {
    "image.moderate": "images.moderate",
    "moderation.view": "images.moderate",
    "user.set_role": "users.manage",
    "user.ban": "users.manage",
    "users.list": "users.manage",
    "audit.view": "audit.view",
}
# Admin actions that can never target the acting admin.
SELF_FORBIDDEN_ACTIONS: set[Action] = {"user.set_role", "user.ban"}
RESOURCE_ACTIONS: set[Action] = SELF_FORBIDDEN_ACTIONS | {"image.moderate"}


class AccessDecision(str, Enum):
    ALLOW = "allow"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


def user_roles(user) -> set[Role]:
    roles: set[Role] = {"user"}
    if getattr(user, "is_moderator", False):
        roles.add("moderator")
    if getattr(user, "is_admin", False):
        roles.add("admin")
    return roles


def primary_role(user) -> Role:
    roles = user_roles(user)
    if "admin" in roles:
        return "admin"
    if "moderator" in roles:
        return "moderator"
    return "user"


def has_permission(user, permission: Permission) -> bool:
    if user is None:
        return False
    return any(permission in PERMISSIONS_BY_ROLE[role] for role in user_roles(user))


def resource_owner_id(resource) -> int | None:
    # Users own themselves; content rows carry user_id.
    owner_id = getattr(resource, "user_id", None)
    if owner_id is None and hasattr(resource, "hashed_password"):
        owner_id = getattr(resource, "id", None)
    return owner_id


def check_access(actor, action: Action, resource=None) -> AccessDecision:
    """Decide whether ``actor`` (``None`` when anonymous) may perform ``action``.

    ``resource`` is the target row; ``None`` means it does not exist. Public
    resources are viewable anonymously, everything else needs an actor.
    """
    if action in VIEW_ACTIONS:
        if resource is None:
            return AccessDecision.NOT_FOUND
        if getattr(resource, "is_public", False):
            return AccessDecision.ALLOW
        if actor is None:
            return AccessDecision.UNAUTHENTICATED
        if actor.id == resource_owner_id(resource):
            return AccessDecision.ALLOW
        return AccessDecision.FORBIDDEN

    if actor is None:
        return AccessDecision.UNAUTHENTICATED

    permission = PERMISSION_BY_ACTION.get(action)
    if permission is not None:
        if not has_permission(actor, permission):
            return AccessDecision.FORBIDDEN
        if action in RESOURCE_ACTIONS and resource is None:
            return AccessDecision.NOT_FOUND
        if action in SELF_FORBIDDEN_ACTIONS and actor.id == resource_owner_id(resource):
            return AccessDecision.FORBIDDEN
        return AccessDecision.ALLOW

    if resource is None:
        return AccessDecision.NOT_FOUND
    if actor.id == resource_owner_id(resource):
        return AccessDecision.ALLOW
    return AccessDecision.FORBIDDEN


def authorize(actor, action: Action, resource=None, *, resource_name: str = "Resource") -> None:
    decision = check_access(actor, action, resource)
    if decision is AccessDecision.ALLOW:
        return
    if decision is AccessDecision.NOT_FOUND:
        raise NotFound(f"{resource_name} not found")
    if decision is AccessDecision.UNAUTHENTICATED:
        raise Unauthenticated()
    if action in SELF_FORBIDDEN_ACTIONS and actor.id == resource_owner_id(resource):
        raise Forbidden("Admins cannot change their own role or ban status")
    raise Forbidden(f"Permission denied: {action}")


def permissions_matrix_payload() -> dict:
    role_order: list[Role] = ["user", "moderator", "admin"]
    return {
        "roles": [
            {"role": role, "permissions": sorted(PERMISSIONS_BY_ROLE[role])}
            for role in role_order
        ],
        "permission_labels": PERMISSION_LABELS,
    }
