"""
Initial-guess construction.

The loop settles down from an optimistic starting point: every promised
slot starts at the most its creator could possibly promise there, so
conditions that depend on it start out satisfied and infeasible
commitments drop out over the iterations.
"""

from typing import Iterable, Sequence

from carrots.core.models import Commitment, Promise, PromiseKind, SlotKey
from carrots.core.modes import EngineConfig
from carrots.engine.snapshot import LiabilitySnapshot, SnapshotBuilder


def seed_amount(promise: Promise, config: EngineConfig) -> float:
    """Upper estimate of what a promise can contribute."""
    kind = promise.kind
    if kind == PromiseKind.PROPORTIONAL_CAPPED:
        return promise.base_amount + promise.max_amount
    if kind == PromiseKind.PROPORTIONAL_UNCAPPED:
        return promise.base_amount + config.uncapped_seed_multiplier * promise.proportional_amount
    return promise.base_amount


def initial_guess(
    commitments: Iterable[Commitment],
    users: Sequence[str],
    slots: Sequence[SlotKey],
    config: EngineConfig,
) -> LiabilitySnapshot:
    """Seed snapshot (version 0). Unpromised (user, slot) pairs hold 0."""
    builder = SnapshotBuilder(users, slots)
    for commitment in commitments:
        for promise in commitment.promises:
            builder.offer(
                commitment.creator_id,
                promise.slot,
                seed_amount(promise, config),
                commitment.id,
            )
    return builder.freeze(version=0)
