"""Structured staff permissions.

A staff member's permissions are a mapping from resource name to the three
actions {view, edit, delete}. Unknown resources grant nothing.
"""

from typing import Any

from pydantic import BaseModel, Field

from src.da_common.enums import PermissionAction

ADMIN_ROLE = "ADMIN"

# Resources guarded by the routers
RESOURCES = ("pnl", "wallets", "referrals", "plans")


class ResourcePermission(BaseModel):
    view: bool = False
    edit: bool = False
    delete: bool = False

    def allows(self, action: PermissionAction) -> bool:
        return bool(getattr(self, action.value))


class StaffPrincipal(BaseModel):
    staff_id: str
    role: str
    permissions: dict[str, ResourcePermission] = Field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "StaffPrincipal":
        raw = claims.get("permissions") or {}
        if not isinstance(raw, dict):
            raw = {}
        return cls(
            staff_id=str(claims["sub"]),
            role=str(claims.get("role", "")),
            permissions={
                name: ResourcePermission.model_validate(perm)
                for name, perm in raw.items()
                if isinstance(perm, dict)
            },
        )

    def can(self, resource: str, action: PermissionAction) -> bool:
        if self.role == ADMIN_ROLE:
            return True
        perm = self.permissions.get(resource)
        return perm is not None and perm.allows(action)
