"""
Promise evaluation against a fixed liability snapshot.

    amount = base + min(max, proportional × max(0, reference − threshold))

The cap is applied only when the promise has one.
"""

from carrots.core.models import Promise, PromiseKind
from carrots.engine.snapshot import LiabilitySnapshot


def reference_value(promise: Promise, snapshot: LiabilitySnapshot) -> float:
    """Current value of the promise's reference slot: one user, or everyone."""
    slot = promise.reference_slot
    if slot is None:
        return 0.0
    if promise.reference_user_id:
        return snapshot.amount(promise.reference_user_id, slot)
    return snapshot.total(slot)


def promised_amount(promise: Promise, snapshot: LiabilitySnapshot) -> float:
    """Amount a promise contributes under snapshot. Always >= base_amount."""
    amount = promise.base_amount

    if promise.kind == PromiseKind.FIXED:
        return amount

    excess = max(0.0, reference_value(promise, snapshot) - promise.threshold_amount)
    contribution = promise.proportional_amount * excess
    if promise.kind == PromiseKind.PROPORTIONAL_CAPPED:
        contribution = min(promise.max_amount, contribution)

    return amount + contribution
