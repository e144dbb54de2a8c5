"""
Domain package for repairdesk.

Exports the entity models, enumerations, and the field-patch value used by the
repository and authorization policy. Keep this package focused on data
definitions and validation concerns.
"""

from repairdesk.domain.models import (
    Collection,
    Entity,
    ModeOfTransaction,
    RepairFields,
    RepairRecord,
    RepairStatus,
    SessionUser,
    ShippingStatus,
    Technician,
    UserAccount,
    UserRole,
    WorkWeek,
)
from repairdesk.domain.patches import RepairField, RepairPatch

__all__ = [
    "Collection",
    "Entity",
    "ModeOfTransaction",
    "RepairField",
    "RepairFields",
    "RepairPatch",
    "RepairRecord",
    "RepairStatus",
    "SessionUser",
    "ShippingStatus",
    "Technician",
    "UserAccount",
    "UserRole",
    "WorkWeek",
]
