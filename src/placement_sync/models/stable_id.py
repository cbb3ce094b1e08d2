"""Stable ID binding model for fallback snapshot lookup."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from placement_sync.models.base import Base


class StableIdBinding(Base):
    """Bridge from an individual placement id to its stable id.

    Used when a snapshot row carries a stale or missing ``individual_id`` but
    the placement is still known under its stable id.
    """

    __tablename__ = "stable_id_bindings"

    individual_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    stable_id: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
