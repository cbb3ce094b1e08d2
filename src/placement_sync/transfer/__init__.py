"""Attribute transfer for PlacementSync.

Submodules:
- mappings: AttributeMapping and TransferConfiguration
- writer: the write contract for a single attribute
- cache: batch-level handle cache with re-validation
- engine: optimized and legacy propagation loops
- dispatcher: strategy selection with one-shot fallback
- reset: clears transferred attributes
"""

from placement_sync.transfer.dispatcher import ExecutionDispatcher, run_transfer
from placement_sync.transfer.engine import PropagationEngine
from placement_sync.transfer.mappings import AttributeMapping, TransferConfiguration
from placement_sync.transfer.reset import RESET_ATTRIBUTES, reset_attributes
from placement_sync.transfer.result import MappingOutcome, TransferResult
from placement_sync.transfer.writer import CRITICAL_TARGET_ATTRIBUTES, write_attribute

__all__ = [
    "CRITICAL_TARGET_ATTRIBUTES",
    "RESET_ATTRIBUTES",
    "AttributeMapping",
    "ExecutionDispatcher",
    "MappingOutcome",
    "PropagationEngine",
    "TransferConfiguration",
    "TransferResult",
    "reset_attributes",
    "run_transfer",
    "write_attribute",
]
