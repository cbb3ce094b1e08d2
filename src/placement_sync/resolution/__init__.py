"""Snapshot resolution and value extraction for PlacementSync.

Submodules:
- attribute_resolver: resolution chain, alias/variant matching
- aggregator: merges constituent bags for combined targets
"""

from placement_sync.resolution.aggregator import (
    CombinedAggregator,
    normalize_size_token,
    split_tokens,
)
from placement_sync.resolution.attribute_resolver import (
    SnapshotResolution,
    candidate_names,
    extract_value,
    resolve,
    resolve_snapshot,
)

__all__ = [
    "CombinedAggregator",
    "SnapshotResolution",
    "candidate_names",
    "extract_value",
    "normalize_size_token",
    "resolve",
    "resolve_snapshot",
    "split_tokens",
]
