"""Database models for PlacementSync."""

from placement_sync.models.base import Base
from placement_sync.models.combined import CombinedConstituent, CombinedPlacement
from placement_sync.models.enums import (
    ExecutionStrategy,
    ResolutionPath,
    SnapshotSourceType,
    StorageType,
    TransferKind,
    WriteOutcome,
)
from placement_sync.models.placement import PlacementAttribute, PlacementElement
from placement_sync.models.snapshot import PlacementSnapshot
from placement_sync.models.stable_id import StableIdBinding

__all__ = [
    "Base",
    "CombinedConstituent",
    "CombinedPlacement",
    "ExecutionStrategy",
    "PlacementAttribute",
    "PlacementElement",
    "PlacementSnapshot",
    "ResolutionPath",
    "SnapshotSourceType",
    "StableIdBinding",
    "StorageType",
    "TransferKind",
    "WriteOutcome",
]
