"""
Non-fatal store warnings.

A failed remote call still succeeds locally from the caller's point of view;
the discrepancy is reported as a StoreWarning so it is never silent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from repairdesk.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class StoreWarning:
    operation: str
    collection: str
    message: str
    key: Optional[str] = None

    def __str__(self) -> str:
        target = f"{self.collection}/{self.key}" if self.key else self.collection
        return f"{self.operation} {target}: {self.message}"


WarningCallback = Callable[[StoreWarning], None]


class WarningSink:
    """Collects warnings for the session and forwards them to an optional callback."""

    def __init__(self, on_warning: Optional[WarningCallback] = None) -> None:
        self._on_warning = on_warning
        self.items: List[StoreWarning] = []

    def emit(self, warning: StoreWarning) -> None:
        self.items.append(warning)
        log.warning(
            str(warning),
            extra={
                "operation": warning.operation,
                "collection": warning.collection,
                "key": warning.key,
            },
        )
        if self._on_warning is not None:
            self._on_warning(warning)

    def clear(self) -> None:
        self.items.clear()


__all__ = ["StoreWarning", "WarningCallback", "WarningSink"]
