"""Attribute resolver: finds the owning snapshot of a target and extracts values.

Snapshot resolution is an ordered chain of resolver functions, each returning
a Snapshot or None. The first hit wins:
1. Combined: the target id is a combined target → synthesized snapshot
2. Cluster: the cluster id recorded on the target
3. Individual: the individual id recorded on the target, then the target's own id
4. Stable id: individual id → stable id bridge → snapshot

Value extraction tries, in order, the exact name, name variants and a fixed
list of aliases. Whitespace-only values count as absent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from placement_sync.models.enums import ResolutionPath, SnapshotSourceType, TransferKind
from placement_sync.resolution.aggregator import DEFAULT_SEPARATOR, CombinedAggregator
from placement_sync.snapshots.index import AttributeBag, Snapshot, SnapshotIndex
from placement_sync.targets.protocols import TargetDocument, TargetHandle

if TYPE_CHECKING:
    from placement_sync.transfer.mappings import AttributeMapping

logger = logging.getLogger(__name__)

MEP_PREFIX = "MEP "
CABLE_TRAYS = "cable trays"

# Category-specific aliases, tried before the general aliases
CATEGORY_ALIASES: dict[str, dict[str, tuple[str, ...]]] = {
    CABLE_TRAYS: {
        "system type": ("Service Type",),
        "service type": ("System Type",),
    },
}

GENERAL_ALIASES: dict[str, tuple[str, ...]] = {
    "size": ("MEP Size", "MepElementFormattedSize"),
    "mep size": ("Size", "MepElementFormattedSize"),
    "service size": ("MepElementFormattedSize",),
}

_default_aggregator = CombinedAggregator()


@dataclass(frozen=True)
class SnapshotResolution:
    """The snapshot owning a target and the path it was found through."""

    snapshot: Snapshot
    path: ResolutionPath

    @property
    def source_type(self) -> SnapshotSourceType:
        return self.snapshot.source_type


Resolver = Callable[[TargetHandle, SnapshotIndex, str], Snapshot | None]


def _individual_candidates(target: TargetHandle) -> list[int]:
    candidates: list[int] = []
    for value in (target.individual_id, target.target_id):
        if value is not None and value > 0 and value not in candidates:
            candidates.append(value)
    return candidates


def resolve_combined(
    target: TargetHandle, index: SnapshotIndex, separator: str
) -> Snapshot | None:
    if index.get_constituents(target.target_id) is None:
        return None
    return _default_aggregator.synthesize(target.target_id, index, separator)


def resolve_cluster(
    target: TargetHandle, index: SnapshotIndex, separator: str
) -> Snapshot | None:
    return index.get_by_cluster(target.cluster_id)


def resolve_individual(
    target: TargetHandle, index: SnapshotIndex, separator: str
) -> Snapshot | None:
    for individual_id in _individual_candidates(target):
        snapshot = index.get_by_individual(individual_id)
        if snapshot is not None:
            return snapshot
    return None


def resolve_stable_id(
    target: TargetHandle, index: SnapshotIndex, separator: str
) -> Snapshot | None:
    for individual_id in _individual_candidates(target):
        snapshot = index.get_by_stable_id(index.stable_id_for(individual_id))
        if snapshot is not None:
            return snapshot
    return None


RESOLUTION_CHAIN: tuple[tuple[ResolutionPath, Resolver], ...] = (
    (ResolutionPath.COMBINED, resolve_combined),
    (ResolutionPath.CLUSTER, resolve_cluster),
    (ResolutionPath.INDIVIDUAL, resolve_individual),
    (ResolutionPath.STABLE_ID, resolve_stable_id),
)


def resolve_snapshot(
    target: TargetHandle,
    index: SnapshotIndex,
    separator: str = DEFAULT_SEPARATOR,
) -> SnapshotResolution | None:
    """Walk the resolution chain for one target. Returns None when nothing resolves."""
    for path, resolver in RESOLUTION_CHAIN:
        snapshot = resolver(target, index, separator)
        if snapshot is not None:
            logger.debug(
                "Placement %s resolved via %s (snapshot %s)",
                target.target_id,
                path.value,
                snapshot.snapshot_id,
            )
            return SnapshotResolution(snapshot=snapshot, path=path)
    logger.debug("Placement %s: no snapshot resolved", target.target_id)
    return None


def bags_for(snapshot: Snapshot, kind: TransferKind) -> tuple[AttributeBag, ...]:
    """Bags a mapping of ``kind`` reads from, in lookup order."""
    if kind == TransferKind.CONTEXT_TO_TARGET:
        return (snapshot.context_bag,)
    if kind == TransferKind.SOURCE_TO_TARGET:
        return (snapshot.source_bag,)
    return (snapshot.source_bag, snapshot.context_bag)


def name_variants(name: str) -> list[str]:
    """Space/underscore swaps and the "MEP " prefix added or removed."""
    variants = [name.replace(" ", "_"), name.replace("_", " ")]
    if name[: len(MEP_PREFIX)].casefold() == MEP_PREFIX.casefold():
        variants.append(name[len(MEP_PREFIX) :])
    else:
        variants.append(MEP_PREFIX + name)
    return variants


def name_aliases(name: str, category: str | None) -> list[str]:
    key = name.strip().casefold()
    aliases: list[str] = []
    if category:
        aliases.extend(CATEGORY_ALIASES.get(category.strip().casefold(), {}).get(key, ()))
    aliases.extend(GENERAL_ALIASES.get(key, ()))
    return aliases


def candidate_names(name: str, category: str | None = None) -> list[str]:
    """All names tried for ``name``, exact first, without case-insensitive repeats."""
    names: list[str] = []
    seen: set[str] = set()
    for candidate in [name, *name_variants(name), *name_aliases(name, category)]:
        key = candidate.casefold()
        if candidate and key not in seen:
            seen.add(key)
            names.append(candidate)
    return names


def snapshot_category(snapshot: Snapshot) -> str | None:
    if snapshot.category:
        return snapshot.category
    for bag in (snapshot.source_bag, snapshot.context_bag):
        category = bag.get_value("Category")
        if category:
            return category
    return None


def extract_value(
    snapshot: Snapshot,
    mapping: AttributeMapping,
    category: str | None = None,
) -> str | None:
    """Extract the best-matching value for ``mapping`` from ``snapshot``.

    Args:
        snapshot: The resolved owning snapshot.
        mapping: The mapping whose source attribute is looked up.
        category: Target category used for alias selection. Falls back to
            the snapshot's category.

    Returns:
        The trimmed value, or None when no candidate name holds a non-blank value.
    """
    category = category or snapshot_category(snapshot)
    bags = bags_for(snapshot, mapping.transfer_kind)
    for candidate in candidate_names(mapping.source_attribute, category):
        for bag in bags:
            value = bag.get_value(candidate)
            if value is not None:
                if candidate != mapping.source_attribute:
                    logger.debug(
                        "Found '%s' as '%s' in snapshot %s",
                        mapping.source_attribute,
                        candidate,
                        snapshot.snapshot_id,
                    )
                return value
    return None


def resolve(
    target_id: int,
    mapping: AttributeMapping,
    index: SnapshotIndex,
    document: TargetDocument,
) -> tuple[str | None, SnapshotSourceType | None]:
    """Resolve one (target, mapping) pair end to end.

    Returns:
        The value (None when absent) and the source type of the snapshot it
        came from (None when no snapshot resolved or the target is unknown).
    """
    target = document.get_target(target_id)
    if target is None:
        return None, None
    resolution = resolve_snapshot(target, index, mapping.separator)
    if resolution is None:
        return None, None
    value = extract_value(resolution.snapshot, mapping, target.category)
    return value, resolution.source_type
