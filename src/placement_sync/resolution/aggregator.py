"""Combined aggregator: merges constituent attribute bags for combined targets.

A combined target owns an ordered list of constituent references. Each
constituent is resolved through its stable id, then its cluster id. The
combined path itself is never consulted, so combined targets cannot recurse.

Per attribute name the tokens of every resolvable constituent are collected:
1. Raw values are split on the mapping separator and on ","
   (the output delimiter), so already-aggregated values are not re-duplicated
2. Tokens are trimmed; blank tokens are dropped
3. Size tokens are pair-normalized ("100-100" → "100") and kept as a list
4. Other tokens are deduplicated case-insensitively
5. The result is sorted case-insensitively and joined with ", "
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable

from placement_sync.models.enums import SnapshotSourceType
from placement_sync.snapshots.index import (
    SYNTHETIC_SNAPSHOT_ID,
    AttributeBag,
    ConstituentReference,
    Snapshot,
    SnapshotIndex,
)

logger = logging.getLogger(__name__)

OUTPUT_DELIMITER = ", "
DEFAULT_SEPARATOR = ";"

BagSelector = Callable[[Snapshot], AttributeBag]


def source_bag(snapshot: Snapshot) -> AttributeBag:
    return snapshot.source_bag


def context_bag(snapshot: Snapshot) -> AttributeBag:
    return snapshot.context_bag


def is_size_attribute(name: str) -> bool:
    return "size" in name.casefold()


def normalize_size_token(token: str) -> str:
    """Collapse a paired size token whose two sides are identical.

    "100-100" → "100", "475x200-475x200" → "475x200".
    Any other shape ("475x200-500x200", "10-20-30") passes through unchanged.
    """
    parts = [part for part in token.split("-") if part]
    if len(parts) == 2:
        left, right = parts[0].strip(), parts[1].strip()
        if left and left.casefold() == right.casefold():
            return left
    return token


def split_tokens(value: str, separator: str = DEFAULT_SEPARATOR) -> list[str]:
    """Split a raw value on the separator and on ",", dropping blank tokens."""
    separators = {",", separator} if separator else {","}
    pattern = "|".join(re.escape(sep) for sep in sorted(separators))
    return [token.strip() for token in re.split(pattern, value) if token.strip()]


class _TokenCollector:
    """Per-attribute token accumulator."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.is_size = is_size_attribute(name)
        self._tokens: list[str] = []
        self._seen: set[str] = set()

    def add(self, token: str) -> None:
        if self.is_size:
            self._tokens.append(normalize_size_token(token))
            return
        key = token.casefold()
        if key in self._seen:
            return
        self._seen.add(key)
        self._tokens.append(token)

    def render(self) -> str | None:
        if not self._tokens:
            return None
        return OUTPUT_DELIMITER.join(sorted(self._tokens, key=lambda t: (t.casefold(), t)))


class CombinedAggregator:
    """Builds synthetic snapshots for combined targets.

    Usage:
        aggregator = CombinedAggregator()
        snapshot = aggregator.synthesize(combined_id, index, separator=";")
    """

    def resolve_constituent(
        self, reference: ConstituentReference, index: SnapshotIndex
    ) -> Snapshot | None:
        """Resolve one constituent: stable id first, then cluster id."""
        snapshot = index.get_by_stable_id(reference.stable_id)
        if snapshot is not None:
            return snapshot
        return index.get_by_cluster(reference.cluster_id)

    def aggregate(
        self,
        combined_id: int,
        index: SnapshotIndex,
        bag_selector: BagSelector = source_bag,
        separator: str = DEFAULT_SEPARATOR,
    ) -> AttributeBag:
        """Merge the selected bag of every resolvable constituent.

        Returns an empty bag when ``combined_id`` has no constituents.
        """
        references = index.get_constituents(combined_id) or ()
        snapshots = self._resolve_all(combined_id, references, index)
        return self.merge_bags((bag_selector(s) for s in snapshots), separator)

    def merge_bags(
        self, bags: Iterable[AttributeBag], separator: str = DEFAULT_SEPARATOR
    ) -> AttributeBag:
        collectors: dict[str, _TokenCollector] = {}
        for bag in bags:
            for name, value in bag.items():
                key = name.casefold()
                collector = collectors.get(key)
                if collector is None:
                    collector = collectors[key] = _TokenCollector(name)
                for token in split_tokens(value, separator):
                    collector.add(token)

        merged: dict[str, str] = {}
        for collector in collectors.values():
            rendered = collector.render()
            if rendered is not None:
                merged[collector.name] = rendered
        return AttributeBag(merged)

    def synthesize(
        self,
        combined_id: int,
        index: SnapshotIndex,
        separator: str = DEFAULT_SEPARATOR,
    ) -> Snapshot:
        """Build the synthetic snapshot (id -1) for a combined target."""
        references = index.get_constituents(combined_id) or ()
        snapshots = self._resolve_all(combined_id, references, index)
        categories = {s.category for s in snapshots if s.category}
        snapshot = Snapshot(
            snapshot_id=SYNTHETIC_SNAPSHOT_ID,
            target_id=combined_id,
            source_type=SnapshotSourceType.COMBINED,
            source_bag=self.merge_bags((s.source_bag for s in snapshots), separator),
            context_bag=self.merge_bags((s.context_bag for s in snapshots), separator),
            category=categories.pop() if len(categories) == 1 else None,
        )
        logger.debug(
            "Combined %s: %d/%d constituents resolved, %d source and %d context attributes",
            combined_id,
            len(snapshots),
            len(references),
            len(snapshot.source_bag),
            len(snapshot.context_bag),
        )
        return snapshot

    def _resolve_all(
        self,
        combined_id: int,
        references: Iterable[ConstituentReference],
        index: SnapshotIndex,
    ) -> list[Snapshot]:
        snapshots: list[Snapshot] = []
        for reference in references:
            snapshot = self.resolve_constituent(reference, index)
            if snapshot is None:
                logger.debug(
                    "Combined %s: constituent stable_id=%r cluster_id=%r not resolvable",
                    combined_id,
                    reference.stable_id,
                    reference.cluster_id,
                )
                continue
            snapshots.append(snapshot)
        return snapshots
