"""PlacementSync exception hierarchy.

Only StoreUnavailable aborts a batch. Every other error is raised at the
per-target or per-mapping seam and folded into the TransferResult by the
propagation engine.
"""

from __future__ import annotations


class PlacementSyncError(Exception):
    """Base exception for all PlacementSync failures."""


class StoreUnavailable(PlacementSyncError):
    """Raised when the snapshot store cannot be opened or read."""


class SnapshotNotFound(PlacementSyncError):
    """Raised when no snapshot resolves for a placement target."""

    def __init__(self, target_id: int, detail: str = "") -> None:
        self.target_id = target_id
        message = f"No persisted snapshot found for placement {target_id}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class AttributeNotFoundOnTarget(PlacementSyncError):
    """Raised when the target attribute of a mapping does not exist."""

    def __init__(self, target_id: int, attribute_name: str, *, critical: bool) -> None:
        self.target_id = target_id
        self.attribute_name = attribute_name
        self.critical = critical
        super().__init__(
            f"Target attribute '{attribute_name}' not found on placement {target_id}"
        )


class AttributeReadOnly(PlacementSyncError):
    """Raised when the target attribute cannot be written."""

    def __init__(self, target_id: int, attribute_name: str) -> None:
        self.target_id = target_id
        self.attribute_name = attribute_name
        super().__init__(f"Attribute '{attribute_name}' on placement {target_id} is read-only")


class AttributeTypeMismatch(PlacementSyncError):
    """Raised when a value does not fit the storage type of the target attribute."""

    def __init__(self, target_id: int, attribute_name: str, value: str, reason: str) -> None:
        self.target_id = target_id
        self.attribute_name = attribute_name
        self.value = value
        super().__init__(
            f"Cannot store '{value}' in attribute '{attribute_name}' on placement "
            f"{target_id}: {reason}"
        )


class TargetBecameInvalid(PlacementSyncError):
    """Raised when a placement target was removed while the batch was running."""

    def __init__(self, target_id: int, detail: str = "") -> None:
        self.target_id = target_id
        message = f"Placement {target_id} became invalid during transfer"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BatchStrategyFault(PlacementSyncError):
    """Raised when an execution strategy fails for the batch as a whole."""

    def __init__(self, strategy: str, cause: BaseException) -> None:
        self.strategy = strategy
        self.cause = cause
        super().__init__(f"{strategy} transfer strategy failed: {cause}")
