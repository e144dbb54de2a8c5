"""
repairdesk - resilient record store for a device repair shop.

Keeps repair, technician and user records consistent across a primary
PostgreSQL store and a local JSON fallback cache, and enforces role-scoped
partial-field updates:

- Dual write with fallback: remote failures degrade to local-only operation
  and surface as warnings
- Per-collection fallback to the cached snapshot at startup
- Idempotent schema setup, default seeding, and local-to-remote migration
- Role policy: technicians may only write status and report, and their
  writes highlight the record for review
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from repairdesk.config import Settings, get_settings
from repairdesk.domain import (
    Collection,
    ModeOfTransaction,
    RepairField,
    RepairFields,
    RepairPatch,
    RepairRecord,
    RepairStatus,
    SessionUser,
    ShippingStatus,
    Technician,
    UserAccount,
    UserRole,
    WorkWeek,
)
from repairdesk.errors import (
    AuthorizationError,
    ConflictError,
    RecordNotFoundError,
    RepairDeskError,
    TransportError,
    ValidationError,
)
from repairdesk.filters import RepairFilter, filter_records
from repairdesk.notifications import StoreWarning
from repairdesk.policy import AuthorizationPolicy
from repairdesk.repository import RecordRepository
from repairdesk.runtime import open_repository
from repairdesk.schema import SchemaInitializer
from repairdesk.session import SessionManager
from repairdesk.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Collection",
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
    # Errors
    "AuthorizationError",
    "ConflictError",
    "RecordNotFoundError",
    "RepairDeskError",
    "TransportError",
    "ValidationError",
    # Store
    "AuthorizationPolicy",
    "RecordRepository",
    "RepairFilter",
    "SchemaInitializer",
    "SessionManager",
    "StoreWarning",
    "filter_records",
    "open_repository",
    # Logging
    "configure_logging",
    "get_logger",
]
