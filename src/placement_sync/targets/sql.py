"""SQL-backed target document over placement_elements/placement_attributes."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from placement_sync.models.enums import StorageType
from placement_sync.models.placement import PlacementAttribute, PlacementElement
from placement_sync.targets.protocols import AttributeValue

logger = logging.getLogger(__name__)


def _is_live(session: Session, obj: object) -> bool:
    state = inspect(obj)
    if state.deleted or state.was_deleted or state.detached or state.transient:
        return False
    return obj not in session.deleted


class SqlTargetAttribute:
    """TargetAttribute backed by a PlacementAttribute row."""

    def __init__(self, session: Session, row: PlacementAttribute) -> None:
        self._session = session
        self._row = row

    @property
    def name(self) -> str:
        return self._row.name

    @property
    def storage_type(self) -> StorageType:
        return self._row.storage_type

    @property
    def read_only(self) -> bool:
        return bool(self._row.read_only)

    @property
    def owner_id(self) -> int:
        return self._row.element_id

    def is_valid(self) -> bool:
        return _is_live(self._session, self._row)

    def has_value(self) -> bool:
        value = self.get()
        if value is None:
            return False
        if isinstance(value, str):
            return value != ""
        return True

    def get(self) -> AttributeValue:
        if self._row.storage_type == StorageType.INTEGER:
            return self._row.integer_value
        if self._row.storage_type == StorageType.DOUBLE:
            return self._row.double_value
        return self._row.text_value

    def set(self, value: AttributeValue) -> None:
        if self._row.storage_type == StorageType.INTEGER:
            self._row.integer_value = None if value is None else int(value)
        elif self._row.storage_type == StorageType.DOUBLE:
            self._row.double_value = None if value is None else float(value)
        else:
            self._row.text_value = None if value is None else str(value)

    def __repr__(self) -> str:
        return f"SqlTargetAttribute(owner={self.owner_id}, name={self.name!r})"


class SqlTargetHandle:
    """TargetHandle backed by a PlacementElement row."""

    def __init__(self, session: Session, element: PlacementElement) -> None:
        self._session = session
        self._element = element

    @property
    def target_id(self) -> int:
        return self._element.element_id

    @property
    def category(self) -> str | None:
        return self._element.category

    @property
    def individual_id(self) -> int | None:
        return self._element.individual_id

    @property
    def cluster_id(self) -> int | None:
        return self._element.cluster_id

    def is_valid(self) -> bool:
        return _is_live(self._session, self._element)

    def lookup_attribute(self, name: str) -> SqlTargetAttribute | None:
        key = name.casefold()
        for row in self._element.attributes:
            if row.name.casefold() == key and _is_live(self._session, row):
                return SqlTargetAttribute(self._session, row)
        return None

    def __repr__(self) -> str:
        return f"SqlTargetHandle(target_id={self.target_id})"


class SqlTargetDocument:
    """TargetDocument over the caller's session.

    Never commits or rolls back; writes become visible when the caller's
    transaction scope commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def get_target(self, target_id: int) -> SqlTargetHandle | None:
        element = self._session.get(PlacementElement, target_id)
        if element is None or not _is_live(self._session, element):
            return None
        return SqlTargetHandle(self._session, element)

    def get_targets(self, target_ids: Iterable[int]) -> Mapping[int, SqlTargetHandle]:
        ids = list(dict.fromkeys(target_ids))
        if not ids:
            return {}
        stmt = select(PlacementElement).where(PlacementElement.element_id.in_(ids))
        elements = self._session.execute(stmt).scalars().all()
        handles = {
            element.element_id: SqlTargetHandle(self._session, element)
            for element in elements
            if _is_live(self._session, element)
        }
        logger.debug("Resolved %d of %d placement targets", len(handles), len(ids))
        return handles
