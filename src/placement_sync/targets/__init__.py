"""Placement target boundary: protocols plus the SQL-backed document."""

from placement_sync.targets.protocols import (
    AttributeValue,
    TargetAttribute,
    TargetDocument,
    TargetHandle,
)
from placement_sync.targets.sql import SqlTargetAttribute, SqlTargetDocument, SqlTargetHandle

__all__ = [
    "AttributeValue",
    "SqlTargetAttribute",
    "SqlTargetDocument",
    "SqlTargetHandle",
    "TargetAttribute",
    "TargetDocument",
    "TargetHandle",
]
