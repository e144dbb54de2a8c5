"""
Role-scoped write authorization for repair records.

The policy is a pure function of the acting role: it never looks at the
record being written.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Tuple

from repairdesk.domain.models import UserRole
from repairdesk.domain.patches import RepairField, RepairPatch
from repairdesk.errors import AuthorizationError
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)

ALL_FIELDS: FrozenSet[RepairField] = frozenset(RepairField)
TECHNICIAN_FIELDS: FrozenSet[RepairField] = frozenset(
    {RepairField.REPAIR_STATUS, RepairField.REPAIR_REPORT}
)

_WRITABLE: Dict[UserRole, FrozenSet[RepairField]] = {
    UserRole.ADMIN: ALL_FIELDS,
    UserRole.CSR: ALL_FIELDS,
    UserRole.TECHNICIAN: TECHNICIAN_FIELDS,
}
_CREATORS = frozenset({UserRole.ADMIN, UserRole.CSR})


class AuthorizationPolicy:
    """
    Decide which repair fields a role may write.

    Parameters
    ----------
    strict : bool
        When False (default) fields outside the writable set are dropped from
        a patch. When True they raise AuthorizationError instead.
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict

    def writable_fields(self, role: UserRole | str) -> FrozenSet[RepairField]:
        return _WRITABLE[UserRole(role)]

    def can_create(self, role: UserRole | str) -> bool:
        return UserRole(role) in _CREATORS

    def ensure_can_create(self, role: Optional[UserRole | str]) -> None:
        if role is not None and not self.can_create(role):
            raise AuthorizationError(f"role '{UserRole(role).value}' may not create repair records")

    def marks_highlight(self, role: UserRole | str) -> bool:
        """Whether a write by `role` flags the record for admin/csr review."""
        return UserRole(role) is UserRole.TECHNICIAN

    def restrict(
        self, patch: RepairPatch, role: UserRole | str
    ) -> Tuple[RepairPatch, FrozenSet[RepairField]]:
        """
        Narrow `patch` to what `role` may write.

        Returns the narrowed patch and the fields that were removed.
        """
        allowed = self.writable_fields(role)
        dropped = patch.fields - allowed
        if not dropped:
            return patch, frozenset()
        names = ", ".join(sorted(field.value for field in dropped))
        if self.strict:
            raise AuthorizationError(f"role '{UserRole(role).value}' may not write: {names}")
        log.info(
            "Dropped unauthorized patch fields",
            extra={"role": UserRole(role).value, "dropped": names},
        )
        return patch.only(allowed), dropped


__all__ = ["AuthorizationPolicy", "ALL_FIELDS", "TECHNICIAN_FIELDS"]
