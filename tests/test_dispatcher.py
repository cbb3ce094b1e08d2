"""Tests for strategy selection and the one-shot legacy fallback."""

from __future__ import annotations

import logging
import shutil

import pytest

from placement_sync.diagnostics import configure_transfer_log, remove_transfer_log
from placement_sync.errors import StoreUnavailable
from placement_sync.models import ExecutionStrategy, PlacementElement, WriteOutcome
from placement_sync.snapshots import SnapshotIndex, SnapshotRepository
from placement_sync.targets import SqlTargetDocument
from placement_sync.transfer import AttributeMapping, ExecutionDispatcher, PropagationEngine, run_transfer

MAPPINGS = [AttributeMapping(source_attribute="System Type", target_attribute="MEP_System_Type")]


class FaultyOptimizedEngine(PropagationEngine):
    """Engine whose optimized path dies after writing the first target."""

    optimized_calls = 0

    def run_optimized(self, target_ids, mappings, index, *, result=None):
        type(self).optimized_calls += 1
        super().run_optimized(list(target_ids)[:1], mappings, index, result=result)
        raise RuntimeError("cache corrupted")


class FaultyEngine(PropagationEngine):
    def run_optimized(self, target_ids, mappings, index, *, result=None):
        raise RuntimeError("optimized broke")

    def run_legacy(self, target_ids, mappings, index):
        raise RuntimeError("legacy broke")


@pytest.fixture(autouse=True)
def reset_counter():
    FaultyOptimizedEngine.optimized_calls = 0


@pytest.fixture
def placements(add_snapshot, add_element):
    for element_id in (1, 2, 3):
        add_snapshot(individual_id=element_id, source={"System Type": f"System {element_id}"})
        add_element(element_id)


@pytest.fixture
def document(db_session) -> SqlTargetDocument:
    return SqlTargetDocument(db_session)


@pytest.fixture
def loader(db_session):
    return SnapshotRepository(db_session).load_index


class TestExecutionDispatcher:
    """ExecutionDispatcher.run_transfer()"""

    def test_optimized_by_default(self, document, loader, placements):
        dispatcher = ExecutionDispatcher(use_optimized=True)

        result = dispatcher.run_transfer(document, [1, 2, 3], MAPPINGS, index_loader=loader)

        assert result.strategy == ExecutionStrategy.OPTIMIZED
        assert result.transferred_count == 3
        assert dispatcher.use_optimized

    def test_legacy_when_disabled(self, document, loader, placements):
        dispatcher = ExecutionDispatcher(use_optimized=False)

        result = dispatcher.run_transfer(document, [1, 2, 3], MAPPINGS, index_loader=loader)

        assert result.strategy == ExecutionStrategy.LEGACY
        assert result.transferred_count == 3

    def test_optimized_fault_falls_back_once(
        self, document, loader, placements, db_session, read_value, caplog
    ):
        dispatcher = ExecutionDispatcher(use_optimized=True, engine_factory=FaultyOptimizedEngine)

        with caplog.at_level(logging.WARNING, logger="placement_sync"):
            result = dispatcher.run_transfer(document, [1, 2, 3], MAPPINGS, index_loader=loader)

        assert result.strategy == ExecutionStrategy.LEGACY
        assert result.success
        assert "cache corrupted" in result.warnings[0]
        assert "legacy" in result.warnings[0]
        assert not dispatcher.use_optimized
        assert dispatcher.strategy == ExecutionStrategy.LEGACY
        assert "cache corrupted" in caplog.text
        for element_id in (1, 2, 3):
            element = db_session.get(PlacementElement, element_id)
            assert read_value(element, "MEP_System_Type") == f"System {element_id}"
        # Target 1 was written before the fault and still counts as transferred
        assert sorted(result.transferred_target_ids) == [1, 2, 3]
        assert result.transferred_count == 3
        assert result.skipped_count == 0
        assert result.outcome_for(1, "MEP_System_Type") == WriteOutcome.WRITTEN
        assert "3 placements updated" in result.message

    def test_toggle_stays_off(self, document, loader, placements):
        dispatcher = ExecutionDispatcher(use_optimized=True, engine_factory=FaultyOptimizedEngine)

        dispatcher.run_transfer(document, [1], MAPPINGS, index_loader=loader)
        second = dispatcher.run_transfer(document, [2], MAPPINGS, index_loader=loader)

        assert FaultyOptimizedEngine.optimized_calls == 1
        assert second.strategy == ExecutionStrategy.LEGACY
        assert second.warnings == []

    def test_new_dispatcher_starts_optimized(self, document, loader, placements):
        first = ExecutionDispatcher(use_optimized=True, engine_factory=FaultyOptimizedEngine)
        first.run_transfer(document, [1], MAPPINGS, index_loader=loader)

        second = ExecutionDispatcher(use_optimized=True)
        result = second.run_transfer(document, [2], MAPPINGS, index_loader=loader)

        assert result.strategy == ExecutionStrategy.OPTIMIZED

    def test_legacy_fault_returns_failed_result(self, document, loader, placements):
        dispatcher = ExecutionDispatcher(use_optimized=True, engine_factory=FaultyEngine)

        result = dispatcher.run_transfer(document, [1], MAPPINGS, index_loader=loader)

        assert not result.success
        assert result.strategy == ExecutionStrategy.LEGACY
        assert "legacy broke" in result.message

    def test_store_unavailable_aborts(self, document, placements):
        def broken_loader() -> SnapshotIndex:
            raise StoreUnavailable("snapshot store unreachable")

        dispatcher = ExecutionDispatcher(use_optimized=True)

        result = dispatcher.run_transfer(document, [1, 2], MAPPINGS, index_loader=broken_loader)

        assert not result.success
        assert result.message == "snapshot store unreachable"
        assert result.transferred_count == 0
        assert dispatcher.use_optimized

    def test_unexpected_loader_error_is_a_failed_result(self, document, placements):
        def broken_loader() -> SnapshotIndex:
            raise RuntimeError("index build crashed")

        result = ExecutionDispatcher(use_optimized=True).run_transfer(
            document, [1], MAPPINGS, index_loader=broken_loader
        )

        assert not result.success
        assert "index build crashed" in result.message
        assert result.transferred_count == 0

    def test_unwritable_diagnostics_log_does_not_fail_transfer(
        self, tmp_path, document, loader, placements, db_session, read_value
    ):
        log_dir = tmp_path / "logs"
        handler = configure_transfer_log(log_dir / "transfer.log")
        shutil.rmtree(log_dir)
        try:
            result = ExecutionDispatcher(use_optimized=True).run_transfer(
                document, [1, 2, 3], MAPPINGS, index_loader=loader
            )
        finally:
            remove_transfer_log(handler)

        assert result.success
        assert result.transferred_count == 3
        assert read_value(db_session.get(PlacementElement, 3), "MEP_System_Type") == "System 3"

    def test_empty_targets(self, document, loader):
        result = ExecutionDispatcher(use_optimized=True).run_transfer(
            document, [], MAPPINGS, index_loader=loader
        )
        assert not result.success
        assert result.transferred_count == 0


class TestRunTransfer:
    def test_session_entry_point(self, db_session, placements, read_value):
        result = run_transfer(db_session, [1, 2], MAPPINGS, dispatcher=ExecutionDispatcher(True))

        assert result.success
        assert read_value(db_session.get(PlacementElement, 2), "MEP_System_Type") == "System 2"
