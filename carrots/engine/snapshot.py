"""
Immutable liability snapshots.

A snapshot is the full user × slot liability map at one iteration.
The evaluators only ever read a snapshot; the next iteration is built
in a separate SnapshotBuilder and frozen when complete.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, Optional, Sequence, Tuple

from carrots.core.models import SlotKey


@dataclass(frozen=True)
class SlotState:
    """
    Liability held for one (user, slot).

    commitment_ids is non-empty iff amount > 0.
    """
    amount:         float = 0.0
    commitment_ids: Tuple[str, ...] = ()


EMPTY = SlotState()


class LiabilitySnapshot:
    """Read-only (user, slot) → SlotState map, versioned by iteration."""

    __slots__ = ("_users", "_slots", "_states", "_version")

    def __init__(
        self,
        users: Sequence[str],
        slots: Sequence[SlotKey],
        states: Dict[Tuple[str, SlotKey], SlotState],
        version: int = 0,
    ):
        self._users   = tuple(users)
        self._slots   = tuple(slots)
        self._states  = MappingProxyType(dict(states))
        self._version = version

    @property
    def users(self) -> Tuple[str, ...]:
        return self._users

    @property
    def slots(self) -> Tuple[SlotKey, ...]:
        return self._slots

    @property
    def version(self) -> int:
        return self._version

    def state(self, user_id: str, slot: SlotKey) -> SlotState:
        return self._states.get((user_id, slot), EMPTY)

    def amount(self, user_id: str, slot: SlotKey) -> float:
        """Liability of one user on one slot. Unknown users read 0."""
        return self.state(user_id, slot).amount

    def total(self, slot: SlotKey, exclude: Optional[str] = None) -> float:
        """Sum of every tracked user's liability on slot, optionally minus one user."""
        total = 0.0
        for user_id in self._users:
            if user_id != exclude:
                total += self.amount(user_id, slot)
        return total

    def items(self) -> Iterator[Tuple[str, SlotKey, SlotState]]:
        """Every (user, slot, state) in tracked-user then slot order."""
        for user_id in self._users:
            for slot in self._slots:
                yield user_id, slot, self.state(user_id, slot)

    def max_delta(self, other: "LiabilitySnapshot") -> float:
        """Largest absolute per-slot difference between two snapshots."""
        delta = 0.0
        for user_id, slot, state in self.items():
            delta = max(delta, abs(state.amount - other.amount(user_id, slot)))
        return delta

    def as_dict(self) -> Dict[str, Dict[str, float]]:
        """Nested {user: {"action:unit": amount}} view, for debugging and tests."""
        return {
            user_id: {str(slot): self.amount(user_id, slot) for slot in self._slots}
            for user_id in self._users
        }

    def __repr__(self) -> str:
        return (
            f"LiabilitySnapshot(version={self._version}, "
            f"users={len(self._users)}, slots={len(self._slots)})"
        )


class SnapshotBuilder:
    """
    Mutable staging area for the next snapshot.

    Every (user, slot) starts at (0, ()). offer() keeps the maximum
    amount and every commitment that ties it.
    """

    def __init__(self, users: Sequence[str], slots: Sequence[SlotKey]):
        self.users  = tuple(users)
        self.slots  = tuple(slots)
        self._states: Dict[Tuple[str, SlotKey], SlotState] = {}

    def state(self, user_id: str, slot: SlotKey) -> SlotState:
        return self._states.get((user_id, slot), EMPTY)

    def offer(self, user_id: str, slot: SlotKey, amount: float, commitment_id: str) -> None:
        current = self.state(user_id, slot)
        if amount > current.amount:
            self._states[(user_id, slot)] = SlotState(amount, (commitment_id,))
        elif amount == current.amount and amount > 0:
            if commitment_id not in current.commitment_ids:
                self._states[(user_id, slot)] = SlotState(
                    amount, current.commitment_ids + (commitment_id,)
                )

    def set(self, user_id: str, slot: SlotKey, state: SlotState) -> None:
        self._states[(user_id, slot)] = state

    def freeze(self, version: int) -> LiabilitySnapshot:
        return LiabilitySnapshot(self.users, self.slots, self._states, version)
