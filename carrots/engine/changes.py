"""
Liability change detection between two calculations.

Produces the "liability update" summary a group is shown after a
recalculation: new liabilities, increases, decreases and releases.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from carrots.core.modes import CONVERGENCE_TOLERANCE
from carrots.engine.result import LiabilityRecord


@dataclass(frozen=True)
class LiabilityChange:
    user_id:    str
    action:     str
    unit:       str
    old_amount: float
    new_amount: float

    @property
    def kind(self) -> str:
        if self.old_amount == 0:
            return "new"
        if self.new_amount == 0:
            return "released"
        if self.new_amount > self.old_amount:
            return "increased"
        return "decreased"

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "action": self.action,
            "unit": self.unit,
            "oldAmount": self.old_amount,
            "newAmount": self.new_amount,
            "kind": self.kind,
        }


def detect_changes(
    old: Sequence[LiabilityRecord],
    new: Sequence[LiabilityRecord],
    tolerance: float = CONVERGENCE_TOLERANCE,
) -> List[LiabilityChange]:
    """
    Compare two liability lists keyed by (user, action, unit).

    Changes come in new-list order, followed by released liabilities
    in old-list order.
    """
    old_by_key: Dict[Tuple[str, str, str], LiabilityRecord] = {r.key: r for r in old}
    new_keys = set()
    changes: List[LiabilityChange] = []

    for record in new:
        new_keys.add(record.key)
        before = old_by_key.get(record.key)
        old_amount = before.amount if before else 0.0
        if before is None or abs(record.amount - old_amount) > tolerance:
            changes.append(LiabilityChange(
                user_id=record.user_id,
                action=record.action,
                unit=record.unit,
                old_amount=old_amount,
                new_amount=record.amount,
            ))

    for record in old:
        if record.key not in new_keys and record.amount > 0:
            changes.append(LiabilityChange(
                user_id=record.user_id,
                action=record.action,
                unit=record.unit,
                old_amount=record.amount,
                new_amount=0.0,
            ))

    return changes


def _fmt(amount: float) -> str:
    return f"{amount:g}"


def format_changes(
    changes: Sequence[LiabilityChange],
    usernames: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    """One bullet line per change."""
    usernames = usernames or {}
    lines = []
    for change in changes:
        who = usernames.get(change.user_id)
        prefix = f"{who}: " if who else ""
        kind = change.kind
        if kind == "new":
            text = f"New: {change.action} - {_fmt(change.new_amount)} {change.unit}"
        elif kind == "released":
            text = f"{change.action} released (was {_fmt(change.old_amount)} {change.unit})"
        else:
            text = (
                f"{change.action} {kind} from {_fmt(change.old_amount)} "
                f"to {_fmt(change.new_amount)} {change.unit}"
            )
        lines.append(f"• {prefix}{text}")
    return "\n".join(lines)
