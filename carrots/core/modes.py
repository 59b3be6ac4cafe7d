"""
Carrots: Strict and Lenient Modes.

Lenient Mode: Default. Malformed conditions become InvalidCondition
              (never holds), malformed promises and commitments are
              skipped. Every such record is logged.
Strict Mode:  Malformed records raise ValidationError at load time.

EngineConfig also carries the numeric knobs of the fixed-point loop.
"""

import math
import os
from dataclasses import dataclass, replace
from enum import Enum

from carrots.core.exceptions import ConfigurationError


MAX_ITERATIONS           = 100
CONVERGENCE_TOLERANCE    = 1e-3
UNCAPPED_SEED_MULTIPLIER = 1000.0

STRATEGY_RECOMPUTE = "recompute"
STRATEGY_MONOTONE  = "monotone"
STRATEGIES         = (STRATEGY_RECOMPUTE, STRATEGY_MONOTONE)


class IntegrityMode(Enum):
    LENIENT = "lenient"
    STRICT  = "strict"


@dataclass(frozen=True)
class EngineConfig:
    mode:                     IntegrityMode = IntegrityMode.LENIENT
    max_iterations:           int = MAX_ITERATIONS
    tolerance:                float = CONVERGENCE_TOLERANCE
    uncapped_seed_multiplier: float = UNCAPPED_SEED_MULTIPLIER
    strategy:                 str = STRATEGY_RECOMPUTE

    def __post_init__(self):
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int):
            raise ConfigurationError(
                "max_iterations must be an integer",
                {"max_iterations": self.max_iterations},
            )
        if self.max_iterations < 1:
            raise ConfigurationError(
                "max_iterations must be at least 1",
                {"max_iterations": self.max_iterations},
            )
        if math.isnan(self.tolerance) or self.tolerance < 0:
            raise ConfigurationError(
                "tolerance must be a nonnegative number",
                {"tolerance": self.tolerance},
            )
        if self.uncapped_seed_multiplier < 0:
            raise ConfigurationError(
                "uncapped_seed_multiplier must be nonnegative",
                {"uncapped_seed_multiplier": self.uncapped_seed_multiplier},
            )
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                "Unknown iteration strategy",
                {"strategy": self.strategy, "expected": "|".join(STRATEGIES)},
            )

    @property
    def strict(self) -> bool:
        return self.mode == IntegrityMode.STRICT

    def with_overrides(self, **overrides) -> "EngineConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


# ─────────────────────────────────────────────────────────────
# Factory Functions
# ─────────────────────────────────────────────────────────────

def init_lenient_mode() -> EngineConfig:
    return EngineConfig(mode=IntegrityMode.LENIENT)


def init_strict_mode() -> EngineConfig:
    return EngineConfig(mode=IntegrityMode.STRICT)


def config_from_env(environ=None) -> EngineConfig:
    """
    Read CARROTS_MODE, CARROTS_STRATEGY, CARROTS_MAX_ITERATIONS and
    CARROTS_TOLERANCE. Unset variables keep their defaults.
    """
    env = os.environ if environ is None else environ

    config = init_strict_mode() \
        if env.get("CARROTS_MODE", "lenient").lower() == "strict" \
        else init_lenient_mode()

    try:
        max_iterations = env.get("CARROTS_MAX_ITERATIONS")
        tolerance      = env.get("CARROTS_TOLERANCE")
        return config.with_overrides(
            strategy=env.get("CARROTS_STRATEGY"),
            max_iterations=int(max_iterations) if max_iterations else None,
            tolerance=float(tolerance) if tolerance else None,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid CARROTS_* environment value: {e}") from e
