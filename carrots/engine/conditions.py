"""
Condition evaluation against a fixed liability snapshot.
"""

import logging
from typing import Iterable

from carrots.core.models import (
    AggregateCondition,
    Condition,
    InvalidCondition,
    SingleUserCondition,
    Unconditional,
)
from carrots.engine.snapshot import LiabilitySnapshot

logger = logging.getLogger(__name__)


def condition_holds(
    condition: Condition,
    snapshot: LiabilitySnapshot,
    creator_id: str,
) -> bool:
    """Evaluate one condition for a commitment created by creator_id."""
    if isinstance(condition, SingleUserCondition):
        return snapshot.amount(condition.target_user_id, condition.slot) >= condition.min_amount

    if isinstance(condition, AggregateCondition):
        # The creator's own liability never counts toward "others"
        others = snapshot.total(condition.slot, exclude=creator_id)
        return others >= condition.min_amount

    if isinstance(condition, Unconditional):
        return True

    if isinstance(condition, InvalidCondition):
        logger.warning(
            "Invalid condition on commitment by %s never holds: %s",
            creator_id, condition.reason,
        )
        return False

    raise TypeError(f"Unsupported condition type: {type(condition).__name__}")


def conditions_hold(
    conditions: Iterable[Condition],
    snapshot: LiabilitySnapshot,
    creator_id: str,
) -> bool:
    """
    Check if a commitment's conditions all hold.

    ALL conditions must be satisfied (AND logic). No conditions = always holds.
    """
    return all(condition_holds(c, snapshot, creator_id) for c in conditions)
