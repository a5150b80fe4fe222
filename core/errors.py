from __future__ import annotations

from datetime import datetime


class PeriodLockedError(ValueError):
    """A ledger write would land before a movement that is already locked."""

    def __init__(self, locked_by: str, locked_at: datetime):
        self.locked_by = locked_by
        self.locked_at = locked_at
        super().__init__(
            f"Period locked: cannot add transaction, period is locked by {locked_by} "
            f"starting from {locked_at.date().isoformat()}"
        )


class LockedMovementError(ValueError):
    """Locked or protected movements can't be edited or deleted."""

    def __init__(self, movement_id: int, reason: str):
        self.movement_id = movement_id
        self.reason = reason
        super().__init__(f"Movement {movement_id} is locked ({reason}).")


class ReportFetchError(RuntimeError):
    """Loading the report window failed; no partial results are produced."""


class PermissionDenied(PermissionError):
    def __init__(self, role: str, resource: str, action: str):
        self.role = role
        self.resource = resource
        self.action = action
        super().__init__(f"Role '{role}' is not allowed to {action} {resource}.")
