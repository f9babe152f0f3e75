from __future__ import annotations

from enum import IntEnum
from uuid import UUID

from services.portal.app.errors import PermissionDeniedError


class PermissionLevel(IntEnum):
    # Lower numbers carry more access.
    SUPER_ADMIN = 0
    LEAD_MANAGER = 1
    REGULAR = 2


_LABELS = {
    PermissionLevel.SUPER_ADMIN: "Super Admin",
    PermissionLevel.LEAD_MANAGER: "Lead Manager",
    PermissionLevel.REGULAR: "Regular User",
}


def permission_level_of(level: int | None) -> int:
    """A profile without a permission row is treated as a regular user."""
    return PermissionLevel.REGULAR if level is None else int(level)


def has_minimum_permission(level: int | None, required: int) -> bool:
    return permission_level_of(level) <= required


def is_super_admin(level: int | None) -> bool:
    return permission_level_of(level) == PermissionLevel.SUPER_ADMIN


def permission_label(level: int | None) -> str:
    try:
        return _LABELS[PermissionLevel(permission_level_of(level))]
    except ValueError:
        return "Unknown"


def admin_landing_path(level: int | None) -> str:
    lvl = permission_level_of(level)
    if lvl == PermissionLevel.SUPER_ADMIN:
        return "/admin/dashboard"
    if lvl == PermissionLevel.LEAD_MANAGER:
        return "/admin/leads"
    return "/not-authorized"


def lead_scope_user_id(user_id: UUID, level: int | None) -> UUID | None:
    """
    Resolve which assignee a caller's lead queries are pinned to.

    Super admins see every lead (None); lead managers only the leads assigned to them.
    Anyone else has no lead access at all.
    """
    lvl = permission_level_of(level)
    if lvl == PermissionLevel.SUPER_ADMIN:
        return None
    if lvl == PermissionLevel.LEAD_MANAGER:
        return user_id
    raise PermissionDeniedError("lead access requires lead manager permissions")
