"""Tests for the propagation engine (optimized and legacy loops)."""

from __future__ import annotations

import pytest

from placement_sync.models import (
    ExecutionStrategy,
    PlacementElement,
    StorageType,
    TransferKind,
    WriteOutcome,
)
from placement_sync.snapshots import SnapshotRepository
from placement_sync.targets import SqlTargetDocument
from placement_sync.transfer import AttributeMapping, PropagationEngine
from placement_sync.transfer.engine import EMPTY_INDEX_WARNING, NO_TARGETS_MESSAGE

STRATEGIES = ["run_optimized", "run_legacy"]

MAPPINGS = [
    AttributeMapping(source_attribute="System Type", target_attribute="MEP_System_Type"),
    AttributeMapping(source_attribute="Size", target_attribute="MEP_Size"),
    AttributeMapping(source_attribute="ElementId", target_attribute="MEP_ElementId"),
]


@pytest.fixture
def engine(db_session) -> PropagationEngine:
    return PropagationEngine(SqlTargetDocument(db_session), skip_unchanged=True, batch_lookups=True)


@pytest.fixture
def load_index(db_session):
    return SnapshotRepository(db_session).load_index


@pytest.fixture
def three_placements(add_snapshot, add_element):
    """Three individual placements with complete snapshots."""
    for element_id in (101, 102, 103):
        add_snapshot(
            individual_id=element_id,
            source={"System Type": f"Supply {element_id}", "Size": "200x100", "ElementId": "5000"},
        )
        add_element(element_id, individual_id=element_id)


@pytest.mark.parametrize("strategy", STRATEGIES)
class TestBothStrategies:
    """Behavior shared by the optimized and legacy paths."""

    def test_transfers_values(self, strategy, engine, load_index, three_placements, db_session, read_value):
        result = getattr(engine, strategy)([101, 102, 103], MAPPINGS, load_index())

        assert result.success
        assert result.transferred_count == 3
        assert result.failed_count == 0
        assert sorted(result.transferred_target_ids) == [101, 102, 103]
        element = db_session.get(PlacementElement, 102)
        assert read_value(element, "MEP_System_Type") == "Supply 102"
        assert read_value(element, "MEP_Size") == "200x100"
        assert read_value(element, "MEP_ElementId") == 5000

    def test_second_run_is_all_skips(self, strategy, engine, load_index, three_placements, db_session, read_value):
        index = load_index()
        first = getattr(engine, strategy)([101, 102, 103], MAPPINGS, index)
        before = {
            element_id: {
                name: read_value(db_session.get(PlacementElement, element_id), name)
                for name in ("MEP_System_Type", "MEP_Size", "MEP_ElementId")
            }
            for element_id in (101, 102, 103)
        }

        second = getattr(engine, strategy)([101, 102, 103], MAPPINGS, load_index())

        after = {
            element_id: {
                name: read_value(db_session.get(PlacementElement, element_id), name)
                for name in ("MEP_System_Type", "MEP_Size", "MEP_ElementId")
            }
            for element_id in (101, 102, 103)
        }
        assert before == after
        written = [o for o in first.outcomes if o.outcome == WriteOutcome.WRITTEN]
        assert len(written) == 9
        for outcome in written:
            assert second.outcome_for(outcome.target_id, outcome.target_attribute) == WriteOutcome.SKIPPED
        assert second.transferred_count == 0
        assert second.skipped_count == 9
        assert second.success

    def test_combined_value_wins(self, strategy, engine, load_index, add_snapshot, add_element, add_combined, db_session, read_value):
        # Placement 900 has its own individual snapshot AND is a combined target
        add_snapshot(individual_id=900, source={"System Type": "Individual Value"})
        add_snapshot(individual_id=1, stable_id="guid-1", source={"System Type": "Supply"})
        add_snapshot(cluster_id=50, source={"System Type": "Return"})
        add_combined(900, [{"stable_id": "guid-1"}, {"cluster_id": 50}])
        add_element(900, individual_id=900)

        result = getattr(engine, strategy)([900], MAPPINGS[:1], load_index())

        assert result.success
        assert read_value(db_session.get(PlacementElement, 900), "MEP_System_Type") == "Return, Supply"

    def test_missing_critical_attribute_fails(self, strategy, engine, load_index, add_snapshot, add_element):
        add_snapshot(individual_id=1, source={"System Type": "Supply", "Comments": "hi"})
        add_element(1, attributes={"MEP_Size": StorageType.TEXT})
        mappings = [
            AttributeMapping(source_attribute="System Type", target_attribute="MEP_ElementId"),
        ]

        result = getattr(engine, strategy)([1], mappings, load_index())

        assert result.failed_count == 1
        assert not result.success
        assert "MEP_ElementId" in result.errors[0]

    def test_missing_plain_attribute_only_warns(self, strategy, engine, load_index, add_snapshot, add_element):
        add_snapshot(individual_id=1, source={"Comments": "hi"})
        add_element(1, attributes={"MEP_Size": StorageType.TEXT})
        mappings = [AttributeMapping(source_attribute="Comments", target_attribute="MEP_Comments")]

        result = getattr(engine, strategy)([1], mappings, load_index())

        assert result.failed_count == 0
        assert result.success
        assert any("MEP_Comments" in w for w in result.warnings)

    def test_read_only_and_type_mismatch_fail(self, strategy, engine, load_index, add_snapshot, add_element):
        add_snapshot(individual_id=1, source={"Size": "wide", "Mark": "A"})
        add_element(
            1,
            attributes={
                "Reference_Width": StorageType.DOUBLE,
                "Mark": (StorageType.TEXT, True),
            },
        )
        mappings = [
            AttributeMapping(source_attribute="Size", target_attribute="Reference_Width"),
            AttributeMapping(source_attribute="Mark", target_attribute="Mark"),
        ]

        result = getattr(engine, strategy)([1], mappings, load_index())

        assert result.failed_count == 2
        assert result.outcome_for(1, "Reference_Width") == WriteOutcome.FAILED
        assert result.outcome_for(1, "Mark") == WriteOutcome.FAILED

    def test_missing_value_warns_and_continues(self, strategy, engine, load_index, add_snapshot, add_element, db_session, read_value):
        add_snapshot(individual_id=1, source={"Size": "100", "System Type": "  "})
        add_element(1)

        result = getattr(engine, strategy)([1], MAPPINGS, load_index())

        assert result.success
        assert result.outcome_for(1, "MEP_System_Type") == WriteOutcome.MISSING_VALUE
        assert read_value(db_session.get(PlacementElement, 1), "MEP_Size") == "100"
        assert any("System Type" in w for w in result.warnings)

    def test_no_snapshot_is_a_warning(self, strategy, engine, load_index, add_snapshot, add_element):
        add_snapshot(individual_id=1, source={"Size": "100"})
        add_element(1)
        add_element(2)

        result = getattr(engine, strategy)([1, 2], MAPPINGS, load_index())

        assert result.success
        assert result.transferred_target_ids == [1]
        snapshot_warnings = [w for w in result.warnings if "No persisted snapshot" in w]
        assert len(snapshot_warnings) == 1

    def test_unknown_target_fails_only_that_target(self, strategy, engine, load_index, three_placements):
        result = getattr(engine, strategy)([101, 404, 102], MAPPINGS, load_index())

        assert result.failed_count == 1
        assert "404" in result.errors[0]
        assert sorted(result.transferred_target_ids) == [101, 102]

    def test_category_scope(self, strategy, engine, load_index, add_snapshot, add_element, db_session, read_value):
        add_snapshot(individual_id=1, source={"Size": "100"})
        add_snapshot(individual_id=2, source={"Size": "200"})
        add_element(1, category="Ducts")
        add_element(2, category="Pipes")
        mappings = [
            AttributeMapping(source_attribute="Size", target_attribute="MEP_Size", category_scope="pipes"),
        ]

        result = getattr(engine, strategy)([1, 2], mappings, load_index())

        assert result.transferred_target_ids == [2]
        assert read_value(db_session.get(PlacementElement, 1), "MEP_Size") is None
        assert read_value(db_session.get(PlacementElement, 2), "MEP_Size") == "200"

    def test_disabled_mapping_is_ignored(self, strategy, engine, load_index, three_placements):
        mappings = [MAPPINGS[0].model_copy(update={"enabled": False})]
        result = getattr(engine, strategy)([101], mappings, load_index())
        assert result.transferred_count == 0
        assert result.outcomes == []

    def test_context_mapping(self, strategy, engine, load_index, add_snapshot, add_element, db_session, read_value):
        add_snapshot(individual_id=1, source={"Level": "wrong"}, context={"Level": "Level 2"})
        add_element(1, attributes={"Reference_Level": StorageType.TEXT})
        mappings = [
            AttributeMapping(
                source_attribute="Level",
                target_attribute="Reference_Level",
                transfer_kind=TransferKind.CONTEXT_TO_TARGET,
            )
        ]

        getattr(engine, strategy)([1], mappings, load_index())

        assert read_value(db_session.get(PlacementElement, 1), "Reference_Level") == "Level 2"

    def test_empty_target_list(self, strategy, engine, load_index):
        result = getattr(engine, strategy)([], MAPPINGS, load_index())
        assert not result.success
        assert result.message == NO_TARGETS_MESSAGE

    def test_empty_store_warns(self, strategy, engine, load_index, add_element):
        add_element(1)
        result = getattr(engine, strategy)([1], MAPPINGS, load_index())
        assert EMPTY_INDEX_WARNING in result.warnings


class TestOptimized:
    def test_strategy_recorded(self, engine, load_index, three_placements):
        result = engine.run_optimized([101], MAPPINGS, load_index())
        assert result.strategy == ExecutionStrategy.OPTIMIZED
        assert "Optimized transfer complete" in result.message

    def test_per_target_exception_is_absorbed(self, engine, load_index, three_placements, monkeypatch):
        original = engine._transfer_target

        def flaky(target_id, *args, **kwargs):
            if target_id == 102:
                raise RuntimeError("host exploded")
            return original(target_id, *args, **kwargs)

        monkeypatch.setattr(engine, "_transfer_target", flaky)

        result = engine.run_optimized([101, 102, 103], MAPPINGS, load_index())

        assert result.failed_count == 1
        assert "host exploded" in result.errors[0]
        assert sorted(result.transferred_target_ids) == [101, 103]

    def test_target_removed_mid_batch(self, engine, load_index, three_placements, db_session):
        index = load_index()
        original = engine._transfer_target

        def remove_next(target_id, *args, **kwargs):
            if target_id == 101:
                db_session.delete(db_session.get(PlacementElement, 102))
                db_session.flush()
            return original(target_id, *args, **kwargs)

        engine._transfer_target = remove_next

        result = engine.run_optimized([101, 102, 103], MAPPINGS, index)

        assert result.failed_count == 1
        assert "102" in result.errors[0]
        assert sorted(result.transferred_target_ids) == [101, 103]


class TestLegacy:
    def test_strategy_recorded(self, engine, load_index, three_placements):
        result = engine.run_legacy([101], MAPPINGS, load_index())
        assert result.strategy == ExecutionStrategy.LEGACY

    def test_same_values_as_optimized(self, db_session, add_snapshot, add_element, load_index, read_value):
        add_snapshot(individual_id=1, source={"System Type": "A", "Size": "1"})
        add_snapshot(individual_id=2, source={"System Type": "B", "Size": "2"})
        add_element(1)
        add_element(2)
        engine = PropagationEngine(SqlTargetDocument(db_session), skip_unchanged=False)

        optimized = engine.run_optimized([1, 2], MAPPINGS, load_index())
        values_optimized = [
            read_value(db_session.get(PlacementElement, i), "MEP_Size") for i in (1, 2)
        ]
        legacy = engine.run_legacy([1, 2], MAPPINGS, load_index())
        values_legacy = [read_value(db_session.get(PlacementElement, i), "MEP_Size") for i in (1, 2)]

        assert values_optimized == values_legacy == ["1", "2"]
        assert optimized.transferred_count == legacy.transferred_count == 2
