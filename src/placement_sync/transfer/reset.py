"""Reset: clears previously transferred attributes, independent of any mapping."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from placement_sync.models.enums import StorageType
from placement_sync.targets.protocols import AttributeValue, TargetDocument
from placement_sync.transfer.writer import render_value

logger = logging.getLogger(__name__)

RESET_ATTRIBUTES: tuple[str, ...] = (
    "MEP_Entity",
    "MEP_Type",
    "MEP_Size",
    "MEP_System_Type",
    "Service_Category",
    "Reference_Level",
    "Reference_Height",
    "Reference_Width",
    "Reference_Diameter",
    "Angle",
    "Offset_From_Host_Bottom",
    "Offset_From_Host_Top",
)


def cleared_value(storage_type: StorageType) -> AttributeValue:
    if storage_type == StorageType.INTEGER:
        return 0
    if storage_type == StorageType.DOUBLE:
        return 0.0
    return ""


def reset_attributes(document: TargetDocument, target_ids: Iterable[int]) -> int:
    """Clear RESET_ATTRIBUTES on the given targets.

    Only the targets passed in are touched. Read-only attributes and
    attributes that are already empty are left alone. Runs inside the
    caller's transaction.

    Returns:
        Number of targets visited.
    """
    visited = 0
    cleared = 0
    for target_id in dict.fromkeys(target_ids):
        target = document.get_target(target_id)
        if target is None or not target.is_valid():
            logger.debug("Reset: placement %s not found, skipping", target_id)
            continue
        visited += 1
        for name in RESET_ATTRIBUTES:
            attribute = target.lookup_attribute(name)
            if attribute is None or attribute.read_only:
                continue
            empty = cleared_value(attribute.storage_type)
            if not attribute.has_value() or render_value(attribute.get()) == render_value(empty):
                continue
            attribute.set(empty)
            cleared += 1

    logger.info("Reset %d attributes on %d placements", cleared, visited)
    return visited
