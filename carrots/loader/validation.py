"""
Commitment validation rules applied at load time.

The models reject structurally impossible values on construction.
These rules reject records that are well-typed but meaningless as a
commitment, mirroring the checks made when a commitment is created.
"""

from typing import Iterable

from carrots.core.exceptions import ValidationError
from carrots.core.models import Commitment, Promise

MAX_ACTION_LENGTH = 100
MAX_UNIT_LENGTH   = 50


def check_promise(promise: Promise) -> Promise:
    """A promise must be able to contribute something."""
    if promise.base_amount == 0 and promise.proportional_amount == 0:
        raise ValidationError(
            "Promise has neither a base nor a proportional amount",
            {"action": promise.action, "unit": promise.unit},
        )
    if len(promise.action) > MAX_ACTION_LENGTH:
        raise ValidationError(
            f"Action must be at most {MAX_ACTION_LENGTH} characters",
            {"action": promise.action[:20] + "..."},
        )
    if len(promise.unit) > MAX_UNIT_LENGTH:
        raise ValidationError(
            f"Unit must be at most {MAX_UNIT_LENGTH} characters",
            {"unit": promise.unit[:20] + "..."},
        )
    return promise


def check_commitment(commitment: Commitment) -> Commitment:
    """A commitment must promise something, and every promise must be valid."""
    if not commitment.promises:
        raise ValidationError("Commitment has no promises", {"id": commitment.id})
    for promise in commitment.promises:
        check_promise(promise)
    return commitment


def check_unique_ids(commitments: Iterable[Commitment]) -> None:
    seen = set()
    for commitment in commitments:
        if commitment.id in seen:
            raise ValidationError("Duplicate commitment id", {"id": commitment.id})
        seen.add(commitment.id)
