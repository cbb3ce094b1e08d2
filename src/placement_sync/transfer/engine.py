"""Propagation engine: writes resolved snapshot values onto placement targets.

Two loop orders share one write contract:
- optimized: target outer, mapping inner. The owning snapshot is resolved
  once per target (per separator) and handles come from a TargetCache.
- legacy: mapping outer, target inner. Every (mapping, target) pair is
  resolved from scratch. Slower, structurally simpler, used as the fallback.

Per-target and per-mapping faults are folded into the TransferResult. The
engine runs inside the caller's transaction and never commits or rolls back.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from placement_sync.config import settings
from placement_sync.errors import (
    AttributeNotFoundOnTarget,
    AttributeReadOnly,
    AttributeTypeMismatch,
    PlacementSyncError,
    SnapshotNotFound,
    TargetBecameInvalid,
)
from placement_sync.models.enums import ExecutionStrategy, SnapshotSourceType, WriteOutcome
from placement_sync.resolution.attribute_resolver import (
    SnapshotResolution,
    extract_value,
    resolve,
    resolve_snapshot,
)
from placement_sync.snapshots.index import SnapshotIndex
from placement_sync.targets.protocols import TargetAttribute, TargetDocument, TargetHandle
from placement_sync.transfer.cache import TargetCache
from placement_sync.transfer.mappings import AttributeMapping
from placement_sync.transfer.result import MappingOutcome, TransferResult
from placement_sync.transfer.writer import write_attribute

logger = logging.getLogger(__name__)

NO_TARGETS_MESSAGE = "No placement targets supplied"
EMPTY_INDEX_WARNING = (
    "Snapshot store is empty; refresh placement snapshots before transferring"
)


class PropagationEngine:
    """Runs one transfer batch against a target document.

    Usage:
        engine = PropagationEngine(SqlTargetDocument(session))
        result = engine.run_optimized(target_ids, mappings, index)
    """

    def __init__(
        self,
        document: TargetDocument,
        *,
        skip_unchanged: bool | None = None,
        batch_lookups: bool | None = None,
        text_max_length: int | None = None,
    ) -> None:
        self.document = document
        self.skip_unchanged = (
            settings.transfer_skip_unchanged if skip_unchanged is None else skip_unchanged
        )
        self.batch_lookups = (
            settings.transfer_batch_lookups if batch_lookups is None else batch_lookups
        )
        self.text_max_length = (
            settings.transfer_text_max_length if text_max_length is None else text_max_length
        )

    # ── Optimized: target outer, mapping inner ───────────────────────────────

    def run_optimized(
        self,
        target_ids: Sequence[int],
        mappings: Sequence[AttributeMapping],
        index: SnapshotIndex,
        *,
        result: TransferResult | None = None,
    ) -> TransferResult:
        """Transfer with one snapshot resolution per target.

        Outcomes are recorded into ``result`` when one is passed, so a caller
        keeps the writes made before an unexpected fault.
        """
        strategy = ExecutionStrategy.OPTIMIZED
        if not target_ids:
            return TransferResult.failed(NO_TARGETS_MESSAGE, strategy=strategy)

        result = self._start(strategy, target_ids, mappings, index, result)
        active = [mapping for mapping in mappings if mapping.enabled]
        ids = list(dict.fromkeys(target_ids))

        cache = TargetCache(self.document, batch_lookups=self.batch_lookups)
        cache.prefill(ids, [mapping.target_attribute for mapping in active])

        for target_id in ids:
            try:
                self._transfer_target(target_id, active, index, cache, result)
            except PlacementSyncError as exc:
                logger.info("Placement %s failed: %s", target_id, exc)
                result.add_error(str(exc))
            except Exception as exc:
                logger.exception("Unexpected error transferring placement %s", target_id)
                result.add_error(f"Placement {target_id}: {exc}")

        return self._finish(result, cache)

    def _transfer_target(
        self,
        target_id: int,
        mappings: Sequence[AttributeMapping],
        index: SnapshotIndex,
        cache: TargetCache,
        result: TransferResult,
    ) -> None:
        target = cache.get_target(target_id)
        if target is None:
            raise TargetBecameInvalid(target_id, "not found in document")

        resolutions: dict[str, SnapshotResolution | None] = {}
        warned = False
        for mapping in mappings:
            if not mapping.applies_to(target.category):
                continue

            if mapping.separator not in resolutions:
                resolutions[mapping.separator] = resolve_snapshot(
                    target, index, mapping.separator
                )
            resolution = resolutions[mapping.separator]

            if resolution is None:
                if not warned:
                    result.add_warning(str(SnapshotNotFound(target_id)))
                    warned = True
                result.record(
                    MappingOutcome(target_id, mapping.target_attribute, WriteOutcome.MISSING_VALUE)
                )
                continue

            value = extract_value(resolution.snapshot, mapping, target.category)
            self._apply(
                target,
                mapping,
                value,
                resolution.source_type,
                cache.get_attribute(target, mapping.target_attribute),
                result,
            )

    # ── Legacy: mapping outer, target inner ──────────────────────────────────

    def run_legacy(
        self,
        target_ids: Sequence[int],
        mappings: Sequence[AttributeMapping],
        index: SnapshotIndex,
    ) -> TransferResult:
        """Transfer re-resolving every (mapping, target) pair."""
        strategy = ExecutionStrategy.LEGACY
        if not target_ids:
            return TransferResult.failed(NO_TARGETS_MESSAGE, strategy=strategy)

        result = self._start(strategy, target_ids, mappings, index)
        ids = list(dict.fromkeys(target_ids))
        failed_targets: set[int] = set()
        unresolved_targets: set[int] = set()

        for mapping in mappings:
            if not mapping.enabled:
                continue
            for target_id in ids:
                if target_id in failed_targets:
                    continue
                try:
                    target = self.document.get_target(target_id)
                    if target is None:
                        raise TargetBecameInvalid(target_id, "not found in document")
                    if not mapping.applies_to(target.category):
                        continue

                    value, source_type = resolve(target_id, mapping, index, self.document)
                    if source_type is None:
                        if target_id not in unresolved_targets:
                            result.add_warning(str(SnapshotNotFound(target_id)))
                            unresolved_targets.add(target_id)
                        result.record(
                            MappingOutcome(
                                target_id, mapping.target_attribute, WriteOutcome.MISSING_VALUE
                            )
                        )
                        continue

                    self._apply(target, mapping, value, source_type, None, result)
                except PlacementSyncError as exc:
                    logger.info("Placement %s failed: %s", target_id, exc)
                    failed_targets.add(target_id)
                    result.add_error(str(exc))
                except Exception as exc:
                    logger.exception("Unexpected error transferring placement %s", target_id)
                    failed_targets.add(target_id)
                    result.add_error(f"Placement {target_id}: {exc}")

        return self._finish(result)

    # ── Shared ───────────────────────────────────────────────────────────────

    def _start(
        self,
        strategy: ExecutionStrategy,
        target_ids: Sequence[int],
        mappings: Sequence[AttributeMapping],
        index: SnapshotIndex,
        result: TransferResult | None = None,
    ) -> TransferResult:
        if result is None:
            result = TransferResult(strategy=strategy)
        logger.info(
            "Starting %s transfer: %d targets, %d mappings (%d enabled)",
            strategy.value,
            len(target_ids),
            len(mappings),
            sum(1 for mapping in mappings if mapping.enabled),
        )
        if index.is_empty:
            logger.warning(EMPTY_INDEX_WARNING)
            result.add_warning(EMPTY_INDEX_WARNING)
        return result

    def _finish(self, result: TransferResult, cache: TargetCache | None = None) -> TransferResult:
        result.finalize()
        if cache is not None:
            logger.debug("Cache stats: %s", cache.stats)
        logger.info(result.message)
        return result

    def _apply(
        self,
        target: TargetHandle,
        mapping: AttributeMapping,
        value: str | None,
        source_type: SnapshotSourceType,
        attribute: TargetAttribute | None,
        result: TransferResult,
    ) -> None:
        """Write one resolved value and record the outcome.

        TargetBecameInvalid propagates so the caller fails the whole target.
        """
        target_id = target.target_id
        name = mapping.target_attribute

        if value is None:
            result.record(
                MappingOutcome(
                    target_id,
                    name,
                    WriteOutcome.MISSING_VALUE,
                    detail=(
                        f"Placement {target_id}: no value for '{mapping.source_attribute}' "
                        f"in {source_type.value} snapshot"
                    ),
                )
            )
            return

        try:
            outcome = write_attribute(
                target,
                name,
                value,
                attribute=attribute,
                skip_unchanged=self.skip_unchanged,
                text_max_length=self.text_max_length,
            )
        except AttributeNotFoundOnTarget as exc:
            outcome = WriteOutcome.FAILED if exc.critical else WriteOutcome.WARNING
            result.record(MappingOutcome(target_id, name, outcome, value, str(exc)))
            return
        except (AttributeReadOnly, AttributeTypeMismatch) as exc:
            result.record(MappingOutcome(target_id, name, WriteOutcome.FAILED, value, str(exc)))
            return

        result.record(MappingOutcome(target_id, name, outcome, value))
