"""
carrots/__init__.py

Carrots: Conditional Commitment Liability Engine

Members of a group promise "if C holds, I will do P", where C tests
other members' resulting liabilities. The engine computes every
member's liability per (action, unit) as a fixed point of the group's
active commitments.
"""

__version__ = "0.3.0"

from carrots.core.exceptions import (
    CarrotsError,
    ConfigurationError,
    NonConvergenceError,
    SnapshotError,
    ValidationError,
)
from carrots.core.models import (
    AggregateCondition,
    Commitment,
    GroupSnapshot,
    Member,
    Promise,
    PromiseKind,
    SingleUserCondition,
    SlotKey,
    Unconditional,
)
from carrots.core.modes import (
    EngineConfig,
    IntegrityMode,
    config_from_env,
    init_lenient_mode,
    init_strict_mode,
)
from carrots.engine import (
    CalculationResult,
    LiabilityEngine,
    LiabilityRecord,
    calculate_liabilities,
    detect_changes,
    format_changes,
)
from carrots.loader import load_snapshot

__all__ = [
    # Model
    "Commitment",
    "SingleUserCondition",
    "AggregateCondition",
    "Unconditional",
    "Promise",
    "PromiseKind",
    "SlotKey",
    "Member",
    "GroupSnapshot",
    # Engine
    "LiabilityEngine",
    "CalculationResult",
    "LiabilityRecord",
    "calculate_liabilities",
    "detect_changes",
    "format_changes",
    "load_snapshot",
    # Configuration
    "EngineConfig",
    "IntegrityMode",
    "init_lenient_mode",
    "init_strict_mode",
    "config_from_env",
    # Errors
    "CarrotsError",
    "ValidationError",
    "SnapshotError",
    "ConfigurationError",
    "NonConvergenceError",
]
