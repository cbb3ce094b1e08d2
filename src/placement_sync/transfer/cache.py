"""Batch-level cache of target and attribute handles.

Handles are pre-resolved in bulk before the per-target loop. Every cached
handle is re-validated on use: the owning target id, the attribute name and
the handle's own validity must still match, otherwise the entry is dropped
and a fresh lookup is made. This guards against structural edits the caller
made between cache fill and use.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from placement_sync.targets.protocols import TargetAttribute, TargetDocument, TargetHandle

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    target_hits: int = 0
    attribute_hits: int = 0
    fresh_lookups: int = 0
    invalidations: int = 0


class TargetCache:
    """Per-batch handle cache. Never shared between batches."""

    def __init__(self, document: TargetDocument, *, batch_lookups: bool = True) -> None:
        self._document = document
        self._batch_lookups = batch_lookups
        self._targets: dict[int, TargetHandle] = {}
        self._attributes: dict[tuple[int, str], TargetAttribute] = {}
        self.stats = CacheStats()

    def prefill(self, target_ids: Iterable[int], attribute_names: Iterable[str] = ()) -> None:
        """Resolve all targets (and, with batch lookups, their attributes) up front."""
        ids = list(dict.fromkeys(target_ids))
        self._targets.update(self._document.get_targets(ids))

        if not self._batch_lookups:
            logger.debug("Cached %d/%d targets", len(self._targets), len(ids))
            return

        names = list(dict.fromkeys(name.casefold() for name in attribute_names))
        for target in self._targets.values():
            for name in names:
                attribute = target.lookup_attribute(name)
                if attribute is not None:
                    self._attributes[(target.target_id, name)] = attribute
        logger.debug(
            "Cached %d/%d targets and %d attribute handles",
            len(self._targets),
            len(ids),
            len(self._attributes),
        )

    def get_target(self, target_id: int) -> TargetHandle | None:
        cached = self._targets.get(target_id)
        if cached is not None:
            if cached.target_id == target_id and cached.is_valid():
                self.stats.target_hits += 1
                return cached
            logger.debug("Cached handle for placement %s is stale", target_id)
            self.stats.invalidations += 1
            del self._targets[target_id]

        self.stats.fresh_lookups += 1
        fresh = self._document.get_target(target_id)
        if fresh is not None:
            self._targets[target_id] = fresh
        return fresh

    def get_attribute(self, target: TargetHandle, name: str) -> TargetAttribute | None:
        key = (target.target_id, name.casefold())
        cached = self._attributes.get(key)
        if cached is not None:
            if (
                cached.owner_id == target.target_id
                and cached.name.casefold() == key[1]
                and cached.is_valid()
            ):
                self.stats.attribute_hits += 1
                return cached
            logger.debug(
                "Cached attribute '%s' of placement %s is stale", name, target.target_id
            )
            self.stats.invalidations += 1
            del self._attributes[key]

        self.stats.fresh_lookups += 1
        fresh = target.lookup_attribute(name)
        if fresh is not None:
            self._attributes[key] = fresh
        return fresh
