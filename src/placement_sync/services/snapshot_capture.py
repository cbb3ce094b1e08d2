"""Snapshot capture service: writes the snapshots transfers later read.

Capturing supersedes: any prior snapshot for the same individual (or
cluster) is deleted and a new row is inserted. Rows are never patched.
The service flushes but never commits; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from placement_sync.models.combined import CombinedConstituent, CombinedPlacement
from placement_sync.models.enums import SnapshotSourceType
from placement_sync.models.snapshot import PlacementSnapshot
from placement_sync.models.stable_id import StableIdBinding
from placement_sync.services.capture_policy import CapturePolicy

logger = logging.getLogger(__name__)


class SnapshotCapture(BaseModel):
    """Attributes captured for one individual or cluster placement."""

    source_type: SnapshotSourceType = SnapshotSourceType.INDIVIDUAL
    individual_id: int | None = Field(default=None, gt=0)
    cluster_id: int | None = Field(default=None, gt=0)
    stable_id: str | None = None
    category: str | None = None
    source_attributes: dict[str, Any] = Field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=dict
    )
    context_attributes: dict[str, Any] = Field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=dict
    )
    source_element_ids: list[int] = Field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=list
    )
    context_element_ids: list[int] = Field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=list
    )

    @model_validator(mode="after")
    def _check_key(self) -> SnapshotCapture:
        if self.source_type == SnapshotSourceType.COMBINED:
            raise ValueError("combined snapshots are synthesized, not captured")
        if self.source_type == SnapshotSourceType.CLUSTER and self.cluster_id is None:
            raise ValueError("cluster snapshots require cluster_id")
        if self.source_type == SnapshotSourceType.INDIVIDUAL and self.individual_id is None:
            raise ValueError("individual snapshots require individual_id")
        if self.stable_id is not None:
            self.stable_id = self.stable_id.strip() or None
        return self


class ConstituentSpec(BaseModel):
    """One constituent of a combined placement, as registered."""

    stable_id: str | None = None
    cluster_id: int | None = Field(default=None, gt=0)
    constituent_type: SnapshotSourceType = SnapshotSourceType.INDIVIDUAL

    @model_validator(mode="after")
    def _check_reference(self) -> ConstituentSpec:
        if self.stable_id is not None:
            self.stable_id = self.stable_id.strip() or None
        if self.stable_id is None and self.cluster_id is None:
            raise ValueError("a constituent needs a stable_id or a cluster_id")
        return self


class SnapshotCaptureService:
    """Captures snapshots and registers combined placements.

    Usage:
        with session_factory() as session, session.begin():
            service = SnapshotCaptureService(session)
            service.capture(SnapshotCapture(individual_id=101, ...))
    """

    def __init__(self, session: Session, policy: CapturePolicy | None = None) -> None:
        """Initialize the service with a database session and capture policy."""
        self._session = session
        self._policy = policy or CapturePolicy()

    def capture(self, payload: SnapshotCapture) -> PlacementSnapshot:
        """Store a snapshot, superseding any prior one for the same placement."""
        superseded = self._delete_existing(payload)

        snapshot = PlacementSnapshot(
            individual_id=payload.individual_id,
            cluster_id=payload.cluster_id,
            source_type=payload.source_type,
            stable_id=payload.stable_id,
            category=payload.category,
            source_attributes=self._policy.select(payload.source_attributes, payload.category),
            context_attributes=self._policy.select(payload.context_attributes),
            source_element_ids=list(payload.source_element_ids),
            context_element_ids=list(payload.context_element_ids),
        )
        self._session.add(snapshot)

        if payload.individual_id is not None and payload.stable_id:
            self.bind_stable_id(payload.individual_id, payload.stable_id)

        self._session.flush()
        logger.info(
            "Captured %s snapshot %s (individual=%s, cluster=%s, superseded=%d, "
            "%d source / %d context attributes)",
            payload.source_type.value,
            snapshot.snapshot_id,
            payload.individual_id,
            payload.cluster_id,
            superseded,
            len(snapshot.source_attributes),
            len(snapshot.context_attributes),
        )
        return snapshot

    def capture_many(self, payloads: Sequence[SnapshotCapture]) -> list[PlacementSnapshot]:
        return [self.capture(payload) for payload in payloads]

    def bind_stable_id(self, individual_id: int, stable_id: str) -> StableIdBinding:
        """Create or update the individual id → stable id bridge."""
        binding = self._session.get(StableIdBinding, individual_id)
        if binding is None:
            binding = StableIdBinding(individual_id=individual_id, stable_id=stable_id)
            self._session.add(binding)
        elif binding.stable_id != stable_id:
            logger.debug(
                "Rebinding individual %s: %s -> %s", individual_id, binding.stable_id, stable_id
            )
            binding.stable_id = stable_id
        return binding

    def register_combined(
        self,
        combined_id: int,
        constituents: Sequence[ConstituentSpec],
    ) -> CombinedPlacement:
        """Replace the ordered constituent list of a combined placement."""
        combined = self._session.execute(
            select(CombinedPlacement).where(CombinedPlacement.combined_id == combined_id)
        ).scalar_one_or_none()
        if combined is None:
            combined = CombinedPlacement(combined_id=combined_id)
            self._session.add(combined)

        combined.constituents = [
            CombinedConstituent(
                position=position,
                constituent_type=ref.constituent_type,
                stable_id=ref.stable_id,
                cluster_id=ref.cluster_id,
            )
            for position, ref in enumerate(constituents)
        ]
        self._session.flush()
        logger.info(
            "Registered combined placement %s with %d constituents",
            combined_id,
            len(constituents),
        )
        return combined

    def _delete_existing(self, payload: SnapshotCapture) -> int:
        stmt = delete(PlacementSnapshot)
        if payload.source_type == SnapshotSourceType.CLUSTER:
            stmt = stmt.where(
                PlacementSnapshot.cluster_id == payload.cluster_id,
                PlacementSnapshot.source_type == SnapshotSourceType.CLUSTER,
            )
        else:
            stmt = stmt.where(
                PlacementSnapshot.individual_id == payload.individual_id,
                PlacementSnapshot.source_type == SnapshotSourceType.INDIVIDUAL,
            )
        result = self._session.execute(stmt.execution_options(synchronize_session="fetch"))
        return result.rowcount or 0
