"""Placement element models: the targets attributes are written to."""

from __future__ import annotations

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from placement_sync.models.base import Base
from placement_sync.models.enums import StorageType


class PlacementElement(Base):
    """A placement object living in the host model.

    ``individual_id`` and ``cluster_id`` are the identity attributes stamped
    on the element when it was placed; they link it back to its snapshot.
    """

    __tablename__ = "placement_elements"

    element_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    category: Mapped[str | None] = mapped_column(String(128))
    individual_id: Mapped[int | None] = mapped_column(Integer, index=True)
    cluster_id: Mapped[int | None] = mapped_column(Integer, index=True)

    attributes: Mapped[list[PlacementAttribute]] = relationship(
        back_populates="element",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class PlacementAttribute(Base):
    """A typed, named attribute on a placement element."""

    __tablename__ = "placement_attributes"

    attribute_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    element_id: Mapped[int] = mapped_column(
        ForeignKey("placement_elements.element_id"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    storage_type: Mapped[StorageType] = mapped_column(default=StorageType.TEXT)
    text_value: Mapped[str | None] = mapped_column(String(255))
    integer_value: Mapped[int | None] = mapped_column(Integer)
    double_value: Mapped[float | None] = mapped_column(Float)
    read_only: Mapped[bool] = mapped_column(Boolean, default=False)

    element: Mapped[PlacementElement] = relationship(back_populates="attributes")

    __table_args__ = (UniqueConstraint("element_id", "name", name="uq_placement_attribute_name"),)
