"""Role capabilities and branch authorization.

Every handler receives an explicit :class:`RequestContext` built from the
session; the checks below are pure functions of that context.
"""
from dataclasses import dataclass, field
from typing import Literal, Optional

from . import errors
from .models import UserRole

Action = Literal["read", "write", "delete"]


@dataclass(frozen=True)
class RequestContext:
    user_id: int
    role: UserRole
    branch_id: Optional[int] = None
    # Only consulted for the custom role
    permissions: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Capabilities:
    unrestricted: bool = False
    # Writes are pinned to the caller's own branch whatever the payload says
    pins_branch: bool = False
    # None means every module
    allowed_modules: Optional[frozenset] = None
    denied_modules: frozenset = frozenset()
    # None means delete follows allowed_modules
    deletable_modules: Optional[frozenset] = None
    uses_permission_map: bool = False


_CAPABILITIES = {
    UserRole.SUPERADMIN: Capabilities(unrestricted=True),
    UserRole.BRANCH_ADMIN: Capabilities(denied_modules=frozenset({"users", "branches", "settings"})),
    UserRole.FRONT_DESK: Capabilities(
        allowed_modules=frozenset({"dashboard", "reservations", "rooms", "guests", "billing"}),
        deletable_modules=frozenset({"reservations"}),
    ),
    UserRole.CUSTOM: Capabilities(pins_branch=True, uses_permission_map=True),
}


def resolve_capabilities(role: UserRole | str) -> Capabilities:
    try:
        return _CAPABILITIES[UserRole(role)]
    except ValueError:
        # Unknown roles get nothing
        return Capabilities(allowed_modules=frozenset())


def has_permission(ctx: RequestContext, module: str, action: Action) -> bool:
    caps = resolve_capabilities(ctx.role)
    if caps.unrestricted:
        return True
    if caps.uses_permission_map:
        grants = ctx.permissions.get(module) or {}
        return bool(grants.get(action, False))
    if module in caps.denied_modules:
        return False
    if caps.allowed_modules is not None and module not in caps.allowed_modules:
        return False
    if action == "delete" and caps.deletable_modules is not None:
        return module in caps.deletable_modules
    return True


def check_branch_permissions(role: UserRole | str, user_branch_id: Optional[int], target_branch_id: Optional[int]) -> bool:
    if resolve_capabilities(role).unrestricted:
        return True
    # Branch-agnostic operations
    if not target_branch_id:
        return True
    return user_branch_id == target_branch_id


def require_permission(ctx: RequestContext, module: str, action: Action, message: str | None = None) -> None:
    if not has_permission(ctx, module, action):
        raise errors.PermissionError(message or f"You do not have permission to {action} {module}")


def require_branch(ctx: RequestContext, target_branch_id: Optional[int]) -> None:
    if not check_branch_permissions(ctx.role, ctx.branch_id, target_branch_id):
        raise errors.PermissionError("Insufficient permissions for this branch")


def require_role(ctx: RequestContext, *roles: UserRole) -> None:
    if ctx.role not in roles:
        raise errors.PermissionError()


def resolve_target_branch(ctx: RequestContext, requested_branch_id: Optional[int]) -> Optional[int]:
    """Return the branch a write should land in, raising if the caller may not use it."""
    if resolve_capabilities(ctx.role).pins_branch:
        if not ctx.branch_id:
            raise errors.PermissionError("Custom role user must have a branch assignment")
        return ctx.branch_id
    require_branch(ctx, requested_branch_id)
    return requested_branch_id


def scoped_branch(ctx: RequestContext, requested_branch_id: Optional[int] = None) -> Optional[int]:
    """Branch filter for list queries: unrestricted callers may pick one, others see their own."""
    if resolve_capabilities(ctx.role).unrestricted:
        return requested_branch_id
    if not ctx.branch_id:
        raise errors.PermissionError("User has no branch assignment")
    return ctx.branch_id
