"""Services for PlacementSync."""

from placement_sync.services.capture_policy import CapturePolicy
from placement_sync.services.snapshot_capture import (
    ConstituentSpec,
    SnapshotCapture,
    SnapshotCaptureService,
)

__all__ = [
    "CapturePolicy",
    "ConstituentSpec",
    "SnapshotCapture",
    "SnapshotCaptureService",
]
