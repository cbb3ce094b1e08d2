"""Enumerations for PlacementSync data model."""

from enum import Enum


class SnapshotSourceType(str, Enum):
    """Placement tier a snapshot was captured for."""

    INDIVIDUAL = "individual"  # One placement per source object
    CLUSTER = "cluster"  # Several individuals of one category
    COMBINED = "combined"  # Clusters/individuals across categories


class TransferKind(str, Enum):
    """Which captured attribute bag a mapping reads from."""

    SOURCE_TO_TARGET = "source_to_target"  # Source object's own attributes
    CONTEXT_TO_TARGET = "context_to_target"  # Host/context structure attributes
    LEVEL_DERIVED_TO_TARGET = "level_derived_to_target"
    METADATA_TO_TARGET = "metadata_to_target"


class StorageType(str, Enum):
    """Storage type of a target attribute."""

    TEXT = "text"
    INTEGER = "integer"
    DOUBLE = "double"


class ExecutionStrategy(str, Enum):
    """Loop order used by the propagation engine."""

    OPTIMIZED = "optimized"  # Target outer, mapping inner
    LEGACY = "legacy"  # Mapping outer, target inner


class ResolutionPath(str, Enum):
    """How the owning snapshot of a target was found."""

    COMBINED = "combined"
    CLUSTER = "cluster"
    INDIVIDUAL = "individual"
    STABLE_ID = "stable_id"


class WriteOutcome(str, Enum):
    """Per (target, mapping) outcome of a transfer."""

    WRITTEN = "written"
    SKIPPED = "skipped"  # Current value already matched
    MISSING_VALUE = "missing_value"  # Nothing to transfer (warning)
    WARNING = "warning"  # Non-critical target problem
    FAILED = "failed"
