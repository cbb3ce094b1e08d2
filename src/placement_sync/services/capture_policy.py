"""Capture policy: which source attributes a snapshot keeps.

- Must-capture keys are always kept and never count against the limit
- Other keys are kept when they are on the essential whitelist or the
  user whitelist, up to ``max_attributes`` of them
- On cable trays, "System Type" is read from "Service Type"
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from placement_sync.config import settings
from placement_sync.snapshots.index import AttributeBag

logger = logging.getLogger(__name__)

ESSENTIAL_ATTRIBUTES: frozenset[str] = frozenset(
    {
        # Source object
        "System Name", "System Abbreviation", "System Type",
        "MEP System Name", "MEP System Abbreviation", "MEP System Type",
        "MEP System Classification", "MEP Size",
        "Width", "Height", "Diameter", "Size",
        "Level", "Offset", "Insulation Thickness",
        # Host structure
        "Family", "Family Name", "Thickness", "Structural", "Function",
        "Base Offset", "Top Offset",
        # Common
        "Mark", "Comments", "Phase Created", "Category",
        "Nominal Diameter", "Outside Diameter",
        "Reference Level", "Schedule Level", "Schedule of Level", "Reference Level Elevation",
        "System Classification", "Service Type", "Fire Rating",
    }
)  # fmt: skip

MUST_CAPTURE_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "System Type",
        "System Name",
        "System Abbreviation",
        "Reference Level",
        "Schedule of Level",
        "Schedule Level",
    }
)

USER_WHITELIST_LIMIT = 50


def is_cable_tray(category: str | None) -> bool:
    return category is not None and "cable tray" in category.casefold()


class CapturePolicy:
    """Filters raw source attributes down to what a snapshot stores."""

    def __init__(
        self,
        user_whitelist: Iterable[str] = (),
        *,
        max_attributes: int | None = None,
    ) -> None:
        user_keys = list(dict.fromkeys(user_whitelist))[:USER_WHITELIST_LIMIT]
        self._whitelist = {name.casefold() for name in (*ESSENTIAL_ATTRIBUTES, *user_keys)}
        self._must_capture = {name.casefold() for name in MUST_CAPTURE_ATTRIBUTES}
        self.max_attributes = (
            settings.snapshot_max_attributes if max_attributes is None else max_attributes
        )

    def is_must_capture(self, name: str) -> bool:
        return name.casefold() in self._must_capture

    def should_capture(self, name: str) -> bool:
        key = name.casefold()
        return key in self._must_capture or key in self._whitelist

    def select(self, raw: Mapping[str, Any], category: str | None = None) -> dict[str, str]:
        """Return the attributes to store for one bag, in captured order."""
        bag = AttributeBag(raw)
        must: list[str] = []
        optional: list[str] = []
        for name in bag:
            if bag.get_value(name) is None:
                continue
            if self.is_must_capture(name):
                must.append(name)
            elif self.should_capture(name):
                optional.append(name)

        if len(optional) > self.max_attributes:
            logger.warning(
                "Capture limit reached: keeping %d of %d optional attributes",
                self.max_attributes,
                len(optional),
            )
            optional = optional[: self.max_attributes]

        selected = {name: bag[name].strip() for name in (*must, *optional)}

        if is_cable_tray(category):
            service_type = bag.get_value("Service Type")
            if service_type is not None:
                for name in [n for n in selected if n.casefold() == "system type"]:
                    del selected[name]
                selected["System Type"] = service_type

        return selected
