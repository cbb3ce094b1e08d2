"""Host-application boundary for placement targets.

The propagation engine never touches the host model directly. It talks to a
TargetDocument, which hands out TargetHandle objects (one per placement
element) and TargetAttribute objects (one per named, typed attribute).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable

from placement_sync.models.enums import StorageType

AttributeValue = str | int | float | None


@runtime_checkable
class TargetAttribute(Protocol):
    """A writable (or read-only) attribute of one placement target."""

    @property
    def name(self) -> str: ...

    @property
    def storage_type(self) -> StorageType: ...

    @property
    def read_only(self) -> bool: ...

    @property
    def owner_id(self) -> int:
        """Id of the placement target that owns this attribute."""
        ...

    def is_valid(self) -> bool: ...

    def has_value(self) -> bool: ...

    def get(self) -> AttributeValue: ...

    def set(self, value: AttributeValue) -> None: ...


@runtime_checkable
class TargetHandle(Protocol):
    """One placement target in the host model."""

    @property
    def target_id(self) -> int: ...

    @property
    def category(self) -> str | None: ...

    @property
    def individual_id(self) -> int | None: ...

    @property
    def cluster_id(self) -> int | None: ...

    def is_valid(self) -> bool: ...

    def lookup_attribute(self, name: str) -> TargetAttribute | None:
        """Find an attribute by name, ignoring case."""
        ...


class TargetDocument(Protocol):
    """The open host model a batch writes into."""

    def get_target(self, target_id: int) -> TargetHandle | None: ...

    def get_targets(self, target_ids: Iterable[int]) -> Mapping[int, TargetHandle]:
        """Resolve many targets at once. Unknown ids are left out."""
        ...
