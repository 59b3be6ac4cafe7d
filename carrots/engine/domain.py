"""
Action/unit domain extraction.

Determines which slots and which users the fixed-point loop tracks.
"""

import logging
from typing import Iterable, List, Sequence, Tuple

from carrots.core.models import Commitment, SlotKey

logger = logging.getLogger(__name__)


def extract_slots(commitments: Iterable[Commitment]) -> Tuple[SlotKey, ...]:
    """
    Distinct (action, unit) pairs referenced anywhere: conditions,
    promise slots and promise reference slots. First-seen order.
    """
    seen = {}
    for commitment in commitments:
        for condition in commitment.conditions:
            if condition.slot is not None:
                seen.setdefault(condition.slot, None)
        for promise in commitment.promises:
            seen.setdefault(promise.slot, None)
            if promise.reference_slot is not None:
                seen.setdefault(promise.reference_slot, None)
    return tuple(seen)


def tracked_users(member_ids: Sequence[str], commitments: Iterable[Commitment]) -> Tuple[str, ...]:
    """
    Member ids in membership order, then any creator who is not a member.

    A non-member creator is logged: their promises still count, but the
    loader handed the engine an inconsistent snapshot.
    """
    users: List[str] = []
    for user_id in member_ids:
        if user_id not in users:
            users.append(user_id)

    for commitment in commitments:
        if commitment.creator_id not in users:
            logger.warning(
                "Commitment %s created by non-member %s; tracking creator anyway",
                commitment.id, commitment.creator_id,
            )
            users.append(commitment.creator_id)

    return tuple(users)
