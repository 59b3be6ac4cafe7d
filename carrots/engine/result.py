"""
Result materialization: the final snapshot as liability records.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from carrots.core.canonical import canonical_hash
from carrots.engine.snapshot import LiabilitySnapshot


@dataclass(frozen=True)
class LiabilityRecord:
    """One positive liability: what user_id owes on (action, unit)."""
    user_id:                  str
    action:                   str
    amount:                   float
    unit:                     str
    effective_commitment_ids: Tuple[str, ...]
    username:                 Optional[str] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.user_id, self.action, self.unit)

    def to_dict(self) -> dict:
        """Wire form, using the camelCase names of the liabilities API."""
        return {
            "userId": self.user_id,
            "username": self.username,
            "action": self.action,
            "amount": self.amount,
            "unit": self.unit,
            "effectiveCommitmentIds": list(self.effective_commitment_ids),
        }

    @staticmethod
    def from_dict(data: dict) -> "LiabilityRecord":
        """Accepts the wire form or snake_case keys."""
        def get(name, camel, default=None):
            return data[name] if name in data else data.get(camel, default)

        return LiabilityRecord(
            user_id=get("user_id", "userId"),
            action=data["action"],
            amount=float(data["amount"]),
            unit=data.get("unit", ""),
            effective_commitment_ids=tuple(
                get("effective_commitment_ids", "effectiveCommitmentIds", ()) or ()
            ),
            username=data.get("username"),
        )


def materialize(
    snapshot: LiabilitySnapshot,
    usernames: Optional[Mapping[str, Optional[str]]] = None,
) -> List[LiabilityRecord]:
    """
    Positive-amount slots only, grouped by user in tracked order,
    then sorted by action and unit.
    """
    usernames = usernames or {}
    records: List[LiabilityRecord] = []

    for user_id in snapshot.users:
        for slot in sorted(snapshot.slots):
            state = snapshot.state(user_id, slot)
            if state.amount > 0:
                records.append(LiabilityRecord(
                    user_id=user_id,
                    action=slot.action,
                    amount=state.amount,
                    unit=slot.unit,
                    effective_commitment_ids=state.commitment_ids,
                    username=usernames.get(user_id),
                ))

    return records


def result_fingerprint(records: Sequence[LiabilityRecord]) -> str:
    """SHA-256 over RFC 8785 canonical JSON of the records' wire form."""
    return canonical_hash([r.to_dict() for r in records])


def records_by_user(records: Sequence[LiabilityRecord]) -> Dict[str, List[LiabilityRecord]]:
    """Group records by user_id, preserving order."""
    grouped: Dict[str, List[LiabilityRecord]] = {}
    for record in records:
        grouped.setdefault(record.user_id, []).append(record)
    return grouped
