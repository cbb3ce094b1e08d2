"""Pydantic models for attribute mappings and transfer configurations.

A TransferConfiguration is an ordered list of AttributeMapping entries. Order
matters only for diagnostics; mappings are independent of each other.
Configurations round-trip through JSON so a saved setup can be reapplied.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from placement_sync.models.enums import TransferKind


class AttributeMapping(BaseModel):
    """Maps one captured source attribute onto one target attribute."""

    model_config = ConfigDict(frozen=True)

    source_attribute: str = Field(
        min_length=1,
        description="Attribute name in the snapshot bag (e.g., 'System Type')",
    )
    target_attribute: str = Field(
        min_length=1,
        description="Attribute name on the placement target (e.g., 'MEP_System_Type')",
    )
    category_scope: str | None = Field(
        default=None,
        description="Only apply to targets of this category. None applies to all.",
    )
    transfer_kind: TransferKind = Field(
        default=TransferKind.SOURCE_TO_TARGET,
        description="Which snapshot bag the value is read from",
    )
    enabled: bool = True
    separator: str = Field(
        default=";",
        description="Token separator used when aggregating combined values",
    )
    description: str = ""

    @field_validator("source_attribute", "target_attribute")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("attribute name must not be blank")
        return value

    @field_validator("category_scope")
    @classmethod
    def _blank_scope_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    def applies_to(self, category: str | None) -> bool:
        """True when the mapping is enabled and in scope for ``category``."""
        if not self.enabled:
            return False
        if self.category_scope is None:
            return True
        return category is not None and category.strip().casefold() == self.category_scope.casefold()


class TransferConfiguration(BaseModel):
    """A named, ordered set of attribute mappings."""

    name: str = "default"
    mappings: list[AttributeMapping] = Field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=list
    )

    @property
    def enabled_mappings(self) -> list[AttributeMapping]:
        return [mapping for mapping in self.mappings if mapping.enabled]

    @classmethod
    def load(cls, path: str | Path) -> TransferConfiguration:
        """Read a configuration saved with ``save``."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    def save(self, path: str | Path) -> Path:
        """Write the configuration as indented JSON. Returns the written path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target
