"""Combined placement models: membership of combined targets."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from placement_sync.models.base import Base
from placement_sync.models.enums import SnapshotSourceType


class CombinedPlacement(Base):
    """A combined placement built from clusters/individuals across categories."""

    __tablename__ = "combined_placements"

    combined_placement_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    combined_id: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    """Placement object id of the combined target."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    constituents: Mapped[list[CombinedConstituent]] = relationship(
        back_populates="combined",
        cascade="all, delete-orphan",
        order_by="CombinedConstituent.position",
    )


class CombinedConstituent(Base):
    """One contributor to a combined placement, in combination order."""

    __tablename__ = "combined_constituents"

    constituent_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    combined_placement_id: Mapped[int] = mapped_column(
        ForeignKey("combined_placements.combined_placement_id"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    constituent_type: Mapped[SnapshotSourceType] = mapped_column(
        default=SnapshotSourceType.INDIVIDUAL
    )
    stable_id: Mapped[str | None] = mapped_column(String(64))
    cluster_id: Mapped[int | None] = mapped_column(Integer)

    combined: Mapped[CombinedPlacement] = relationship(back_populates="constituents")
