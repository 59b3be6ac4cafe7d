"""
Carrots Liability Engine

Computes every member's liability per (action, unit) as the fixed point
of a group's conditional commitments.

Components:
- domain:     which slots and users are tracked
- initial:    optimistic initial guess
- conditions: condition evaluator
- promises:   promise evaluator
- fixpoint:   iteration loop, strategies, LiabilityEngine
- result:     liability records and fingerprints
- changes:    change detection between calculations
"""

from carrots.engine.changes import LiabilityChange, detect_changes, format_changes
from carrots.engine.fixpoint import (
    CalculationResult,
    EngineState,
    IterationStrategy,
    LiabilityEngine,
    MonotoneStrategy,
    RecomputeStrategy,
    calculate_liabilities,
)
from carrots.engine.result import LiabilityRecord, result_fingerprint

__all__ = [
    "LiabilityEngine",
    "CalculationResult",
    "EngineState",
    "IterationStrategy",
    "RecomputeStrategy",
    "MonotoneStrategy",
    "LiabilityRecord",
    "LiabilityChange",
    "calculate_liabilities",
    "detect_changes",
    "format_changes",
    "result_fingerprint",
]
