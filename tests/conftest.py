"""Shared pytest fixtures for PlacementSync tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from placement_sync.models import (
    Base,
    CombinedConstituent,
    CombinedPlacement,
    PlacementAttribute,
    PlacementElement,
    PlacementSnapshot,
    SnapshotSourceType,
    StableIdBinding,
    StorageType,
)

# Attributes every test placement carries unless a test overrides them
DEFAULT_ATTRIBUTES: dict[str, StorageType] = {
    "MEP_ElementId": StorageType.INTEGER,
    "MEP_System_Type": StorageType.TEXT,
    "MEP_Size": StorageType.TEXT,
    "Service_Category": StorageType.TEXT,
    "Reference_Height": StorageType.DOUBLE,
}


@pytest.fixture
def test_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared across threads.

    Creates all tables at the start and drops them at the end.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(test_engine, class_=Session, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Fresh session; everything it did is rolled back at the end."""
    with session_factory() as session:
        yield session
        session.rollback()


# Type aliases for factory fixtures
AddSnapshot = Callable[..., PlacementSnapshot]
AddElement = Callable[..., PlacementElement]
AddCombined = Callable[..., CombinedPlacement]


@pytest.fixture
def add_snapshot(db_session: Session) -> AddSnapshot:
    """Factory fixture persisting a PlacementSnapshot."""

    def _make(
        *,
        individual_id: int | None = None,
        cluster_id: int | None = None,
        source_type: SnapshotSourceType | None = None,
        stable_id: str | None = None,
        category: str | None = "Ducts",
        source: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> PlacementSnapshot:
        if source_type is None:
            source_type = (
                SnapshotSourceType.CLUSTER
                if individual_id is None and cluster_id is not None
                else SnapshotSourceType.INDIVIDUAL
            )
        snapshot = PlacementSnapshot(
            individual_id=individual_id,
            cluster_id=cluster_id,
            source_type=source_type,
            stable_id=stable_id,
            category=category,
            source_attributes=source or {},
            context_attributes=context or {},
        )
        db_session.add(snapshot)
        if individual_id is not None and stable_id:
            db_session.merge(StableIdBinding(individual_id=individual_id, stable_id=stable_id))
        db_session.flush()
        return snapshot

    return _make


@pytest.fixture
def add_element(db_session: Session) -> AddElement:
    """Factory fixture persisting a PlacementElement with typed attributes.

    ``attributes`` maps name → StorageType, or name → (StorageType, read_only).
    ``values`` pre-populates attribute values.
    """

    def _make(
        element_id: int,
        *,
        category: str | None = "Ducts",
        individual_id: int | None = None,
        cluster_id: int | None = None,
        attributes: dict[str, Any] | None = None,
        values: dict[str, Any] | None = None,
    ) -> PlacementElement:
        element = PlacementElement(
            element_id=element_id,
            category=category,
            individual_id=individual_id,
            cluster_id=cluster_id,
        )
        values = values or {}
        for name, entry in (DEFAULT_ATTRIBUTES if attributes is None else attributes).items():
            storage_type, read_only = entry if isinstance(entry, tuple) else (entry, False)
            row = PlacementAttribute(name=name, storage_type=storage_type, read_only=read_only)
            value = values.get(name)
            if value is not None:
                if storage_type == StorageType.INTEGER:
                    row.integer_value = int(value)
                elif storage_type == StorageType.DOUBLE:
                    row.double_value = float(value)
                else:
                    row.text_value = str(value)
            element.attributes.append(row)
        db_session.add(element)
        db_session.flush()
        return element

    return _make


@pytest.fixture
def add_combined(db_session: Session) -> AddCombined:
    """Factory fixture persisting a combined placement and its constituents.

    Each constituent is a dict with ``stable_id`` and/or ``cluster_id``.
    """

    def _make(combined_id: int, constituents: list[dict[str, Any]]) -> CombinedPlacement:
        combined = CombinedPlacement(combined_id=combined_id)
        for position, ref in enumerate(constituents):
            combined.constituents.append(
                CombinedConstituent(
                    position=position,
                    stable_id=ref.get("stable_id"),
                    cluster_id=ref.get("cluster_id"),
                    constituent_type=ref.get("constituent_type", SnapshotSourceType.INDIVIDUAL),
                )
            )
        db_session.add(combined)
        db_session.flush()
        return combined

    return _make


ReadValue = Callable[[PlacementElement, str], Any]


@pytest.fixture
def read_value() -> ReadValue:
    """Returns the current stored value of an attribute on an element."""

    def _read(element: PlacementElement, name: str) -> Any:
        for row in element.attributes:
            if row.name == name:
                if row.storage_type == StorageType.INTEGER:
                    return row.integer_value
                if row.storage_type == StorageType.DOUBLE:
                    return row.double_value
                return row.text_value
        raise KeyError(name)

    return _read
