"""In-memory snapshot index built once per transfer batch.

The index offers four resolution paths for a placement target:
- by individual id
- by cluster id
- by stable id (reached directly, or through the individual → stable id bridge)
- by combined id, which yields the ordered constituent references that the
  combined aggregator merges into a synthetic snapshot

It is immutable after construction and never shared between batches.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from placement_sync.models.enums import SnapshotSourceType

SYNTHETIC_SNAPSHOT_ID = -1
"""Snapshot id carried by snapshots synthesized for combined targets."""


class AttributeBag(Mapping[str, str]):
    """Immutable, case-insensitive mapping of attribute name to string value.

    Lookups ignore case. Iteration yields names in their captured spelling.
    When two captured names differ only by case, the first one wins.
    """

    __slots__ = ("_items", "_index")

    def __init__(self, items: Mapping[str, Any] | None = None) -> None:
        self._items: dict[str, str] = {}
        self._index: dict[str, str] = {}
        for name, value in (items or {}).items():
            if not isinstance(name, str):
                continue
            key = name.casefold()
            if key in self._index:
                continue
            self._index[key] = name
            self._items[name] = "" if value is None else str(value)

    def __getitem__(self, name: str) -> str:
        return self._items[self._index[name.casefold()]]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"AttributeBag({self._items!r})"

    def get_value(self, name: str) -> str | None:
        """Return the trimmed value for ``name``, or None when absent or blank."""
        value = self.get(name)
        if value is None or not value.strip():
            return None
        return value.strip()


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of one persisted (or synthesized) snapshot."""

    snapshot_id: int
    target_id: int
    source_type: SnapshotSourceType
    source_bag: AttributeBag = field(default_factory=AttributeBag)
    context_bag: AttributeBag = field(default_factory=AttributeBag)
    stable_id: str | None = None
    category: str | None = None

    @property
    def is_synthetic(self) -> bool:
        return self.snapshot_id == SYNTHETIC_SNAPSHOT_ID


@dataclass(frozen=True)
class ConstituentReference:
    """Identifies one contributor to a combined target."""

    stable_id: str | None = None
    cluster_id: int | None = None
    source_type: SnapshotSourceType = SnapshotSourceType.INDIVIDUAL


def _freeze(mapping: dict[Any, Any]) -> Mapping[Any, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class SnapshotIndex:
    """Lookup structures for one batch. Rebuilt, never patched."""

    by_individual: Mapping[int, Snapshot] = field(default_factory=lambda: _freeze({}))
    by_cluster: Mapping[int, Snapshot] = field(default_factory=lambda: _freeze({}))
    individual_to_stable_id: Mapping[int, str] = field(default_factory=lambda: _freeze({}))
    by_stable_id: Mapping[str, Snapshot] = field(default_factory=lambda: _freeze({}))
    """Keys are casefolded stable ids."""

    by_combined: Mapping[int, tuple[ConstituentReference, ...]] = field(
        default_factory=lambda: _freeze({})
    )

    @classmethod
    def build(
        cls,
        *,
        by_individual: dict[int, Snapshot] | None = None,
        by_cluster: dict[int, Snapshot] | None = None,
        individual_to_stable_id: dict[int, str] | None = None,
        by_stable_id: dict[str, Snapshot] | None = None,
        by_combined: dict[int, list[ConstituentReference]] | None = None,
    ) -> SnapshotIndex:
        """Freeze plain dicts into an index, normalizing stable id keys."""
        return cls(
            by_individual=_freeze(by_individual or {}),
            by_cluster=_freeze(by_cluster or {}),
            individual_to_stable_id=_freeze(individual_to_stable_id or {}),
            by_stable_id=_freeze(
                {key.strip().casefold(): snap for key, snap in (by_stable_id or {}).items()}
            ),
            by_combined=_freeze(
                {key: tuple(refs) for key, refs in (by_combined or {}).items()}
            ),
        )

    def get_by_individual(self, individual_id: int | None) -> Snapshot | None:
        if individual_id is None or individual_id <= 0:
            return None
        return self.by_individual.get(individual_id)

    def get_by_cluster(self, cluster_id: int | None) -> Snapshot | None:
        if cluster_id is None or cluster_id <= 0:
            return None
        return self.by_cluster.get(cluster_id)

    def get_by_stable_id(self, stable_id: str | None) -> Snapshot | None:
        if not stable_id or not stable_id.strip():
            return None
        return self.by_stable_id.get(stable_id.strip().casefold())

    def stable_id_for(self, individual_id: int | None) -> str | None:
        if individual_id is None or individual_id <= 0:
            return None
        return self.individual_to_stable_id.get(individual_id)

    def get_constituents(self, combined_id: int) -> tuple[ConstituentReference, ...] | None:
        return self.by_combined.get(combined_id)

    @property
    def is_empty(self) -> bool:
        """True when no individual, cluster or stable-id snapshot is loaded."""
        return not (self.by_individual or self.by_cluster or self.by_stable_id)

    def stats(self) -> dict[str, int]:
        return {
            "individual": len(self.by_individual),
            "cluster": len(self.by_cluster),
            "stable_id": len(self.by_stable_id),
            "stable_id_bridge": len(self.individual_to_stable_id),
            "combined": len(self.by_combined),
        }
