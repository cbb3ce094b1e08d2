"""Snapshot repository: loads the per-batch SnapshotIndex from the store.

Reads the three access shapes of the snapshot store in one pass:
1. placement_snapshots rows (attribute bags keyed by individual/cluster/stable id)
2. stable_id_bindings (individual id → stable id fallback bridge)
3. combined_constituents (combined id → ordered constituent references)

Reading is pure. Any database error surfaces as StoreUnavailable, which is
the only condition that aborts a transfer batch before writes begin.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from placement_sync.errors import StoreUnavailable
from placement_sync.models.combined import CombinedConstituent, CombinedPlacement
from placement_sync.models.enums import SnapshotSourceType
from placement_sync.models.snapshot import PlacementSnapshot
from placement_sync.models.stable_id import StableIdBinding
from placement_sync.snapshots.index import (
    AttributeBag,
    ConstituentReference,
    Snapshot,
    SnapshotIndex,
)

logger = logging.getLogger(__name__)


def _coerce_bag(raw: Any, *, snapshot_id: int, bag_name: str) -> AttributeBag:
    """Turn a stored bag (dict, JSON text or None) into an AttributeBag.

    Malformed bags degrade to empty with a warning rather than failing the load.
    """
    if raw is None:
        return AttributeBag()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except ValueError:
            logger.warning("Snapshot %s: %s bag is not valid JSON", snapshot_id, bag_name)
            return AttributeBag()
    if not isinstance(raw, dict):
        logger.warning(
            "Snapshot %s: %s bag has unexpected type %s",
            snapshot_id,
            bag_name,
            type(raw).__name__,
        )
        return AttributeBag()
    return AttributeBag(raw)


def snapshot_from_row(row: PlacementSnapshot) -> Snapshot:
    """Build the read-only Snapshot view for a persisted row."""
    if row.source_type == SnapshotSourceType.CLUSTER and row.cluster_id:
        target_id = row.cluster_id
    else:
        target_id = row.individual_id or row.cluster_id or 0
    return Snapshot(
        snapshot_id=row.snapshot_id,
        target_id=target_id,
        source_type=row.source_type,
        source_bag=_coerce_bag(
            row.source_attributes, snapshot_id=row.snapshot_id, bag_name="source"
        ),
        context_bag=_coerce_bag(
            row.context_attributes, snapshot_id=row.snapshot_id, bag_name="context"
        ),
        stable_id=row.stable_id or None,
        category=row.category,
    )


class SnapshotRepository:
    """Read-only access to persisted placement snapshots.

    Usage:
        with session_factory() as session, session.begin():
            index = SnapshotRepository(session).load_index()
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with the caller's database session."""
        self._session = session

    def load_index(self) -> SnapshotIndex:
        """Build the SnapshotIndex for one batch.

        Returns:
            A frozen SnapshotIndex.

        Raises:
            StoreUnavailable: If the store cannot be opened or queried.
        """
        try:
            snapshot_rows = list(
                self._session.execute(
                    select(PlacementSnapshot).order_by(PlacementSnapshot.snapshot_id)
                ).scalars()
            )
            binding_rows = self._session.execute(
                select(StableIdBinding.individual_id, StableIdBinding.stable_id)
            ).all()
            constituent_rows = self._session.execute(
                select(
                    CombinedPlacement.combined_id,
                    CombinedConstituent.constituent_type,
                    CombinedConstituent.stable_id,
                    CombinedConstituent.cluster_id,
                )
                .join(
                    CombinedPlacement,
                    CombinedConstituent.combined_placement_id
                    == CombinedPlacement.combined_placement_id,
                )
                .order_by(
                    CombinedPlacement.combined_id,
                    CombinedConstituent.position,
                    CombinedConstituent.constituent_id,
                )
            ).all()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to load placement snapshots: {exc}") from exc

        by_individual: dict[int, Snapshot] = {}
        by_cluster: dict[int, Snapshot] = {}
        by_stable_id: dict[str, Snapshot] = {}
        individual_to_stable_id: dict[int, str] = {}

        # Later rows (higher snapshot_id) supersede earlier ones for the same key
        for row in snapshot_rows:
            view = snapshot_from_row(row)

            is_cluster = row.source_type == SnapshotSourceType.CLUSTER

            if is_cluster:
                if row.cluster_id is not None and row.cluster_id > 0:
                    by_cluster[row.cluster_id] = view
            elif row.individual_id is not None and row.individual_id > 0:
                by_individual[row.individual_id] = view
                if view.stable_id:
                    individual_to_stable_id[row.individual_id] = view.stable_id
            elif row.individual_id is not None:
                logger.debug(
                    "Snapshot %s has invalid individual_id=%s",
                    row.snapshot_id,
                    row.individual_id,
                )

            if view.stable_id:
                by_stable_id[view.stable_id] = view

        # The bridge table wins over ids recorded on snapshot rows
        for individual_id, stable_id in binding_rows:
            if individual_id and individual_id > 0 and stable_id and stable_id.strip():
                individual_to_stable_id[individual_id] = stable_id.strip()

        by_combined: dict[int, list[ConstituentReference]] = {}
        for combined_id, constituent_type, stable_id, cluster_id in constituent_rows:
            by_combined.setdefault(combined_id, []).append(
                ConstituentReference(
                    stable_id=stable_id or None,
                    cluster_id=cluster_id,
                    source_type=constituent_type,
                )
            )

        index = SnapshotIndex.build(
            by_individual=by_individual,
            by_cluster=by_cluster,
            individual_to_stable_id=individual_to_stable_id,
            by_stable_id=by_stable_id,
            by_combined=by_combined,
        )
        logger.info("Loaded snapshot index: %s", index.stats())
        return index

    def count_snapshots(self) -> int:
        """Number of persisted snapshot rows."""
        try:
            return self._session.execute(
                select(func.count()).select_from(PlacementSnapshot)
            ).scalar_one()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to count placement snapshots: {exc}") from exc
