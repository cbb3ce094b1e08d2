"""Write contract for one resolved value onto one target attribute.

Checks, in order:
1. The target is still valid (TargetBecameInvalid)
2. The attribute exists (AttributeNotFoundOnTarget, critical or not)
3. The attribute is writable (AttributeReadOnly)
4. The value fits the storage type (AttributeTypeMismatch)
5. The current value differs from the new one (otherwise SKIPPED)
"""

from __future__ import annotations

import logging
import math
import sys

from placement_sync.errors import (
    AttributeNotFoundOnTarget,
    AttributeReadOnly,
    AttributeTypeMismatch,
    TargetBecameInvalid,
)
from placement_sync.models.enums import StorageType, WriteOutcome
from placement_sync.targets.protocols import AttributeValue, TargetAttribute, TargetHandle

logger = logging.getLogger(__name__)

# Identity/linkage attributes: missing on a target is a failure, not a warning
CRITICAL_TARGET_ATTRIBUTES: frozenset[str] = frozenset(
    {"MEP_ElementId", "MEP System Type", "System Type"}
)
_CRITICAL_KEYS = frozenset(name.casefold() for name in CRITICAL_TARGET_ATTRIBUTES)

INTEGER_MIN = 0
INTEGER_MAX = 2_147_483_647
DOUBLE_MAX = sys.float_info.max
DEFAULT_TEXT_MAX_LENGTH = 255


def is_critical(attribute_name: str) -> bool:
    return attribute_name.strip().casefold() in _CRITICAL_KEYS


def format_double(value: float) -> str:
    """Locale-independent rendering: 2.0 → "2", 2.5 → "2.5"."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def render_value(value: AttributeValue) -> str:
    """Render a stored value as text for comparison."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float):
        return format_double(value)
    return str(value)


def _parse_integer(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        number = float(text)
        if not number.is_integer():
            raise
        return int(number)


def coerce_value(
    attribute: TargetAttribute,
    value: str,
    target_id: int,
    *,
    text_max_length: int = DEFAULT_TEXT_MAX_LENGTH,
) -> str | int | float:
    """Convert ``value`` to the storage type of ``attribute``.

    Raises:
        AttributeTypeMismatch: If the value does not parse or is out of range.
    """
    text = value.strip()

    if attribute.storage_type == StorageType.INTEGER:
        try:
            number = _parse_integer(text)
        except (ValueError, OverflowError) as exc:
            raise AttributeTypeMismatch(
                target_id, attribute.name, value, "not an integer"
            ) from exc
        if not INTEGER_MIN <= number <= INTEGER_MAX:
            raise AttributeTypeMismatch(
                target_id,
                attribute.name,
                value,
                f"outside integer range {INTEGER_MIN}..{INTEGER_MAX}",
            )
        return number

    if attribute.storage_type == StorageType.DOUBLE:
        try:
            number = float(text)
        except ValueError as exc:
            raise AttributeTypeMismatch(target_id, attribute.name, value, "not a number") from exc
        if not math.isfinite(number) or abs(number) > DOUBLE_MAX:
            raise AttributeTypeMismatch(
                target_id, attribute.name, value, "outside double range"
            )
        return number

    if len(value) > text_max_length:
        logger.debug(
            "Truncating '%s' on placement %s to %d characters",
            attribute.name,
            target_id,
            text_max_length,
        )
        return value[:text_max_length]
    return value


def values_match(current: AttributeValue, new: str | int | float) -> bool:
    """Trimmed, case-insensitive comparison; numeric values compare by value."""
    if current is None:
        return False
    if isinstance(new, (int, float)) and isinstance(current, (int, float)):
        return float(current) == float(new)
    return render_value(current).strip().casefold() == render_value(new).strip().casefold()


def write_attribute(
    target: TargetHandle,
    attribute_name: str,
    value: str,
    *,
    attribute: TargetAttribute | None = None,
    skip_unchanged: bool = True,
    text_max_length: int = DEFAULT_TEXT_MAX_LENGTH,
) -> WriteOutcome:
    """Write ``value`` to ``attribute_name`` on ``target``.

    Args:
        target: The placement target.
        attribute_name: Target attribute name (case-insensitive).
        value: Resolved value as text.
        attribute: Pre-resolved attribute handle. Looked up when None.
        skip_unchanged: Skip the write when the current value already matches.
        text_max_length: Truncation length for text attributes.

    Returns:
        WriteOutcome.WRITTEN or WriteOutcome.SKIPPED.

    Raises:
        TargetBecameInvalid: If the target was removed.
        AttributeNotFoundOnTarget: If the attribute does not exist.
        AttributeReadOnly: If the attribute cannot be written.
        AttributeTypeMismatch: If the value does not fit the storage type.
    """
    if not target.is_valid():
        raise TargetBecameInvalid(target.target_id)

    if attribute is None or not attribute.is_valid():
        attribute = target.lookup_attribute(attribute_name)
    if attribute is None:
        raise AttributeNotFoundOnTarget(
            target.target_id, attribute_name, critical=is_critical(attribute_name)
        )
    if attribute.read_only:
        raise AttributeReadOnly(target.target_id, attribute.name)

    coerced = coerce_value(attribute, value, target.target_id, text_max_length=text_max_length)

    if skip_unchanged and attribute.has_value() and values_match(attribute.get(), coerced):
        logger.debug(
            "Placement %s: '%s' already '%s', skipping",
            target.target_id,
            attribute.name,
            render_value(coerced),
        )
        return WriteOutcome.SKIPPED

    attribute.set(coerced)
    logger.debug(
        "Placement %s: wrote '%s' = '%s'",
        target.target_id,
        attribute.name,
        render_value(coerced),
    )
    return WriteOutcome.WRITTEN
