"""
Liability fixed-point engine.

Solves, for every tracked user and slot,

    L_u(s) = max { promised(p, L) | commitment c by u, conditions(c) hold under L,
                                    p in c.promises, p.slot == s }

by bounded iteration from an optimistic initial guess.

State machine (one FixedPointIteration per calculation):

    INITIALIZING → ITERATING → CONVERGED
                             → NON_CONVERGENT   (raises NonConvergenceError)

Every iteration reads only the previous, immutable snapshot and builds
the next one separately. The iteration rule is an IterationStrategy so
the default reset-then-recompute heuristic can be swapped for a
monotone variant without touching callers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from carrots.core.exceptions import NonConvergenceError
from carrots.core.models import Commitment, GroupSnapshot, Member
from carrots.core.modes import (
    EngineConfig,
    STRATEGY_MONOTONE,
    STRATEGY_RECOMPUTE,
    init_lenient_mode,
)
from carrots.engine.conditions import conditions_hold
from carrots.engine.domain import extract_slots, tracked_users
from carrots.engine.initial import initial_guess
from carrots.engine.promises import promised_amount
from carrots.engine.result import LiabilityRecord, materialize, result_fingerprint
from carrots.engine.snapshot import LiabilitySnapshot, SnapshotBuilder

logger = logging.getLogger(__name__)


class EngineState(Enum):
    INITIALIZING   = "initializing"
    ITERATING      = "iterating"
    CONVERGED      = "converged"
    NON_CONVERGENT = "non_convergent"


# ─────────────────────────────────────────────────────────────
# Iteration strategies
# ─────────────────────────────────────────────────────────────

class IterationStrategy(ABC):
    """One application of the liability operator."""

    name: str = ""

    @abstractmethod
    def step(
        self,
        commitments: Sequence[Commitment],
        previous: LiabilitySnapshot,
    ) -> LiabilitySnapshot:
        """Build the next snapshot from previous. Must not mutate previous."""
        raise NotImplementedError


class RecomputeStrategy(IterationStrategy):
    """
    Reset every slot to zero, then recompute from the commitments whose
    conditions hold under the previous snapshot.

    Not monotone: a slot can rise again after falling, so different
    initial guesses may reach different fixed points.
    """

    name = STRATEGY_RECOMPUTE

    def step(self, commitments, previous):
        builder = SnapshotBuilder(previous.users, previous.slots)

        for commitment in commitments:
            if not conditions_hold(commitment.conditions, previous, commitment.creator_id):
                continue
            for promise in commitment.promises:
                builder.offer(
                    commitment.creator_id,
                    promise.slot,
                    promised_amount(promise, previous),
                    commitment.id,
                )

        return builder.freeze(version=previous.version + 1)


class MonotoneStrategy(IterationStrategy):
    """
    Decreasing iteration: recompute, then never let a slot rise above
    its previous value.

    Starting from the initial guess this yields a non-increasing chain,
    so it cannot oscillate.
    """

    name = STRATEGY_MONOTONE

    def __init__(self):
        self._recompute = RecomputeStrategy()

    def step(self, commitments, previous):
        recomputed = self._recompute.step(commitments, previous)
        builder = SnapshotBuilder(previous.users, previous.slots)

        for user_id, slot, state in recomputed.items():
            before = previous.state(user_id, slot)
            if state.amount <= before.amount:
                builder.set(user_id, slot, state)
            else:
                builder.set(user_id, slot, before)

        return builder.freeze(version=recomputed.version)


def strategy_for(name: str) -> IterationStrategy:
    if name == STRATEGY_MONOTONE:
        return MonotoneStrategy()
    return RecomputeStrategy()


# ─────────────────────────────────────────────────────────────
# One calculation
# ─────────────────────────────────────────────────────────────

class FixedPointIteration:
    """
    A single, self-contained fixed-point calculation.

    Created per call by LiabilityEngine; never reused.
    """

    def __init__(
        self,
        commitments: Sequence[Commitment],
        users: Sequence[str],
        strategy: IterationStrategy,
        config: EngineConfig,
        group_id: Optional[str] = None,
    ):
        self.commitments = tuple(commitments)
        self.strategy    = strategy
        self.config      = config
        self.group_id    = group_id
        self.state       = EngineState.INITIALIZING
        self.iterations  = 0
        self.max_delta   = 0.0

        slots = extract_slots(self.commitments)
        self.current = initial_guess(self.commitments, users, slots, config)

    def run(self) -> LiabilitySnapshot:
        """
        Iterate until every slot moves by at most the tolerance.

        Raises:
            NonConvergenceError: max_iterations passes without settling
        """
        self.state = EngineState.ITERATING
        previous = self.current

        while self.iterations < self.config.max_iterations:
            current = self.strategy.step(self.commitments, previous)
            self.iterations += 1
            self.max_delta = current.max_delta(previous)
            self.current = current

            logger.debug(
                "Iteration %d: max delta %.6f", self.iterations, self.max_delta
            )

            if self.max_delta <= self.config.tolerance:
                self.state = EngineState.CONVERGED
                return current

            previous = current

        self.state = EngineState.NON_CONVERGENT
        logger.warning(
            "Liability calculation did not converge after %d iterations (group=%s, max delta %.6f)",
            self.iterations, self.group_id, self.max_delta,
        )
        raise NonConvergenceError(
            iterations=self.iterations,
            max_iterations=self.config.max_iterations,
            tolerance=self.config.tolerance,
            max_delta=self.max_delta,
            group_id=self.group_id,
        )


# ─────────────────────────────────────────────────────────────
# Engine facade
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CalculationResult:
    """Outcome of a converged calculation."""
    liabilities: List[LiabilityRecord]
    iterations:  int
    strategy:    str
    fingerprint: str
    group_id:    Optional[str] = None
    state:       EngineState = EngineState.CONVERGED
    users:       Tuple[str, ...] = field(default=(), compare=False)

    def to_dict(self) -> dict:
        return {
            "groupId": self.group_id,
            "state": self.state.value,
            "strategy": self.strategy,
            "iterations": self.iterations,
            "fingerprint": self.fingerprint,
            "liabilities": [r.to_dict() for r in self.liabilities],
        }


class LiabilityEngine:
    """
    Computes group liabilities from a snapshot of active commitments.

    Holds only immutable configuration, so one engine can serve
    calculations for different groups from several threads.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        strategy: Optional[IterationStrategy] = None,
    ):
        self.config   = config or init_lenient_mode()
        self.strategy = strategy or strategy_for(self.config.strategy)

    def calculate(
        self,
        commitments: Iterable[Commitment],
        members: Iterable[Union[str, Member]],
        group_id: Optional[str] = None,
    ) -> CalculationResult:
        """
        Calculate liabilities for every member of a group.

        Args:
            commitments: active commitments of the group
            members: member ids or Member records (usernames are display-only)
            group_id: used for logging and the result only

        Returns:
            CalculationResult with one record per positive liability

        Raises:
            NonConvergenceError: the iteration bound was reached
        """
        commitments = tuple(commitments)
        members = [Member.from_value(m) for m in members]
        usernames = {m.user_id: m.username for m in members}

        logger.info("Calculating liabilities for group %s", group_id)
        logger.debug("Found %d active commitments", len(commitments))

        if not commitments:
            return CalculationResult(
                liabilities=[],
                iterations=0,
                strategy=self.strategy.name,
                fingerprint=result_fingerprint([]),
                group_id=group_id,
            )

        users = tracked_users([m.user_id for m in members], commitments)
        run = FixedPointIteration(
            commitments, users, self.strategy, self.config, group_id=group_id,
        )
        final = run.run()

        logger.info(
            "Liability calculation converged after %d iterations", run.iterations
        )

        records = materialize(final, usernames)
        return CalculationResult(
            liabilities=records,
            iterations=run.iterations,
            strategy=self.strategy.name,
            fingerprint=result_fingerprint(records),
            group_id=group_id,
            state=run.state,
            users=users,
        )

    def calculate_group(self, snapshot: GroupSnapshot) -> CalculationResult:
        """Calculate liabilities for a loaded GroupSnapshot."""
        return self.calculate(
            snapshot.commitments, snapshot.members, group_id=snapshot.group_id,
        )


def calculate_liabilities(
    commitments: Iterable[Commitment],
    members: Iterable[Union[str, Member]],
    config: Optional[EngineConfig] = None,
) -> List[LiabilityRecord]:
    """Convenience wrapper: just the liability records."""
    return LiabilityEngine(config).calculate(commitments, members).liabilities
