"""Placement snapshot model: attribute bags captured at placement time."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from placement_sync.models.base import Base
from placement_sync.models.enums import SnapshotSourceType


class PlacementSnapshot(Base):
    """Attributes captured from the sources of one placement object.

    Keyed by either ``individual_id`` (individual placements) or ``cluster_id``
    (cluster placements). Two bags are stored: the source objects' own
    attributes and the attributes of the host structure the placement sits
    in. Rows are superseded on re-capture, never patched.
    """

    __tablename__ = "placement_snapshots"

    snapshot_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    individual_id: Mapped[int | None] = mapped_column(Integer, index=True)
    cluster_id: Mapped[int | None] = mapped_column(Integer, index=True)
    source_type: Mapped[SnapshotSourceType] = mapped_column(
        default=SnapshotSourceType.INDIVIDUAL
    )
    stable_id: Mapped[str | None] = mapped_column(String(64), index=True)
    """Durable identifier surviving renumbering of the placement object."""

    category: Mapped[str | None] = mapped_column(String(128))
    source_attributes: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    context_attributes: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    source_element_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    context_element_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
