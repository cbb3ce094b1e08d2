"""Snapshot index module for PlacementSync.

Submodules:
- index: AttributeBag, Snapshot, ConstituentReference and the frozen SnapshotIndex
- repository: loads the SnapshotIndex from the snapshot store
"""

from placement_sync.snapshots.index import (
    SYNTHETIC_SNAPSHOT_ID,
    AttributeBag,
    ConstituentReference,
    Snapshot,
    SnapshotIndex,
)
from placement_sync.snapshots.repository import SnapshotRepository

__all__ = [
    "SYNTHETIC_SNAPSHOT_ID",
    "AttributeBag",
    "ConstituentReference",
    "Snapshot",
    "SnapshotIndex",
    "SnapshotRepository",
]
