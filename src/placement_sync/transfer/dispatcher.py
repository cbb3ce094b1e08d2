"""Execution dispatcher: optimized strategy with a one-shot legacy fallback.

The dispatcher is long-lived (one per session) and owns the strategy toggle.
When the optimized path faults for the batch as a whole, the dispatcher logs
it, turns the toggle off and re-runs the entire batch on the legacy path.
The toggle is never turned back on; a new dispatcher starts optimized.
Nothing is raised past ``run_transfer``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from sqlalchemy.orm import Session

from placement_sync.config import settings
from placement_sync.errors import BatchStrategyFault, StoreUnavailable
from placement_sync.models.enums import ExecutionStrategy
from placement_sync.snapshots.index import SnapshotIndex
from placement_sync.snapshots.repository import SnapshotRepository
from placement_sync.targets.protocols import TargetDocument
from placement_sync.targets.sql import SqlTargetDocument
from placement_sync.transfer.engine import PropagationEngine
from placement_sync.transfer.mappings import AttributeMapping
from placement_sync.transfer.result import TransferResult

logger = logging.getLogger(__name__)

IndexLoader = Callable[[], SnapshotIndex]
EngineFactory = Callable[[TargetDocument], PropagationEngine]


class ExecutionDispatcher:
    """Chooses the execution strategy for transfer batches.

    Usage:
        dispatcher = ExecutionDispatcher()
        with session_factory() as session, session.begin():
            result = dispatcher.run_transfer(
                SqlTargetDocument(session),
                target_ids,
                mappings,
                index_loader=SnapshotRepository(session).load_index,
            )
    """

    def __init__(
        self,
        use_optimized: bool | None = None,
        *,
        engine_factory: EngineFactory = PropagationEngine,
    ) -> None:
        self.use_optimized = (
            settings.transfer_use_optimized if use_optimized is None else use_optimized
        )
        self._engine_factory = engine_factory

    @property
    def strategy(self) -> ExecutionStrategy:
        return ExecutionStrategy.OPTIMIZED if self.use_optimized else ExecutionStrategy.LEGACY

    def run_transfer(
        self,
        document: TargetDocument,
        target_ids: Sequence[int],
        mappings: Sequence[AttributeMapping],
        *,
        index_loader: IndexLoader,
    ) -> TransferResult:
        """Run one batch. Always returns a TransferResult.

        Args:
            document: Target document inside the caller's open transaction.
            target_ids: Placement ids to transfer to.
            mappings: Attribute mappings to apply.
            index_loader: Builds this batch's SnapshotIndex.
        """
        try:
            index = index_loader()
        except StoreUnavailable as exc:
            logger.error("Snapshot store unavailable, aborting transfer: %s", exc)
            return TransferResult.failed(str(exc), strategy=self.strategy)
        except Exception as exc:
            logger.exception("Snapshot index could not be loaded")
            return TransferResult.failed(
                f"Snapshot index could not be loaded: {exc}", strategy=self.strategy
            )

        engine = self._engine_factory(document)
        fallback_note: str | None = None
        partial: TransferResult | None = None

        if self.use_optimized:
            partial = TransferResult(strategy=ExecutionStrategy.OPTIMIZED)
            try:
                return engine.run_optimized(target_ids, mappings, index, result=partial)
            except Exception as exc:
                fault = BatchStrategyFault(ExecutionStrategy.OPTIMIZED.value, exc)
                logger.warning("%s; disabling it and retrying with legacy", fault, exc_info=True)
                self.use_optimized = False
                fallback_note = f"{fault}. Batch re-run with the legacy strategy."

        try:
            result = engine.run_legacy(target_ids, mappings, index)
        except Exception as exc:
            fault = BatchStrategyFault(ExecutionStrategy.LEGACY.value, exc)
            logger.error("%s", fault, exc_info=True)
            return TransferResult.failed(str(fault), strategy=ExecutionStrategy.LEGACY)

        if fallback_note:
            if partial is not None:
                result.absorb_writes(partial)
            result.warnings.insert(0, fallback_note)
            result.finalize()
        return result


def run_transfer(
    session: Session,
    target_ids: Sequence[int],
    mappings: Sequence[AttributeMapping],
    *,
    dispatcher: ExecutionDispatcher | None = None,
) -> TransferResult:
    """Run a batch against the SQL-backed document of ``session``.

    The caller owns the transaction; nothing is committed here.
    """
    dispatcher = dispatcher or ExecutionDispatcher()
    return dispatcher.run_transfer(
        SqlTargetDocument(session),
        target_ids,
        mappings,
        index_loader=SnapshotRepository(session).load_index,
    )
