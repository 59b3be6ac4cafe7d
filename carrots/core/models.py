"""
carrots/core/models.py

Commitment Data Model

═══════════════════════════════════════════════════════════════════
MODEL CONTRACTS
═══════════════════════════════════════════════════════════════════

CONTRACT 1 — Slots
    A liability slot is (action, unit). Same action text under a
    different unit is a different slot. Units are never converted.

CONTRACT 2 — Conditions
    Condition is a tagged union:
        SingleUserCondition  → tested against one user's liability
        AggregateCondition   → tested against everyone except the creator
        Unconditional        → always holds
        InvalidCondition     → never holds (lenient loading only)
    A commitment's conditions are a conjunction. Empty = unconditional.

CONTRACT 3 — Promises
    amount = base + min(max, proportional × max(0, reference − threshold))
    The cap applies to the proportional contribution alone.
    Uncapped proportional promises are an explicit PromiseKind.

CONTRACT 4 — Immutability
    Every model here is a frozen dataclass. Lists passed in are
    stored as tuples. Invariants are enforced at construction time,
    never re-checked by the evaluators.
═══════════════════════════════════════════════════════════════════
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union

from carrots.core.exceptions import ValidationError


# ─────────────────────────────────────────────────────────────
# Field helpers
# ─────────────────────────────────────────────────────────────

def _field(data: dict, name: str, camel: str, default: Any = None) -> Any:
    """Read a snake_case key, falling back to its camelCase wire name."""
    if name in data:
        return data[name]
    return data.get(camel, default)


def _amount(value: Any, name: str) -> float:
    """Coerce an amount to a finite, nonnegative float."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(
            f"{name} must be a number",
            {"value": repr(value)},
        )
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"{name} must be finite", {"value": value})
    if value < 0:
        raise ValidationError(f"{name} must be nonnegative", {"value": value})
    return value


def _text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string", {"value": repr(value)})
    return value


def _ident(value: Any) -> Any:
    """Ids may arrive as YAML integers; they are compared as strings."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# ─────────────────────────────────────────────────────────────
# Slots and members
# ─────────────────────────────────────────────────────────────

class SlotKey(NamedTuple):
    """A liability slot: the (action, unit) pair a liability is kept for."""
    action: str
    unit: str

    def __str__(self) -> str:
        return f"{self.action}:{self.unit}"


@dataclass(frozen=True)
class Member:
    """A group member. username is display-only."""
    user_id:  str
    username: Optional[str] = None

    @staticmethod
    def from_value(value: Any) -> "Member":
        """Accept a bare id, a Member, or a {"id", "username"} mapping."""
        if isinstance(value, Member):
            return value
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return Member(user_id=_text(_ident(value), "member id"))
        if isinstance(value, dict):
            user_id = value.get("id", _field(value, "user_id", "userId"))
            return Member(
                user_id=_text(_ident(user_id), "member id"),
                username=value.get("username"),
            )
        raise ValidationError("Member must be an id or a mapping", {"value": repr(value)})


# ─────────────────────────────────────────────────────────────
# Conditions
# ─────────────────────────────────────────────────────────────

class ConditionType(Enum):
    """Wire names of the condition variants"""
    SINGLE_USER   = "single_user"
    AGGREGATE     = "aggregate"
    UNCONDITIONAL = "unconditional"
    INVALID       = "invalid"


@dataclass(frozen=True)
class SingleUserCondition:
    """Holds iff target user's liability on the slot is at least min_amount."""
    target_user_id: str
    action:         str
    unit:           str
    min_amount:     float

    type = ConditionType.SINGLE_USER

    def __post_init__(self):
        _text(self.target_user_id, "Single-user condition target_user_id")
        _text(self.action, "Condition action")
        _text(self.unit, "Condition unit")
        object.__setattr__(self, "min_amount", _amount(self.min_amount, "min_amount"))

    @property
    def slot(self) -> SlotKey:
        return SlotKey(self.action, self.unit)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "target_user_id": self.target_user_id,
            "action": self.action,
            "unit": self.unit,
            "min_amount": self.min_amount,
        }


@dataclass(frozen=True)
class AggregateCondition:
    """
    Holds iff the combined liability of every user except the
    commitment's creator is at least min_amount.
    """
    action:     str
    unit:       str
    min_amount: float

    type = ConditionType.AGGREGATE

    def __post_init__(self):
        _text(self.action, "Condition action")
        _text(self.unit, "Condition unit")
        object.__setattr__(self, "min_amount", _amount(self.min_amount, "min_amount"))

    @property
    def slot(self) -> SlotKey:
        return SlotKey(self.action, self.unit)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "action": self.action,
            "unit": self.unit,
            "min_amount": self.min_amount,
        }


@dataclass(frozen=True)
class Unconditional:
    """Always holds."""

    type = ConditionType.UNCONDITIONAL

    @property
    def slot(self) -> Optional[SlotKey]:
        return None

    def to_dict(self) -> dict:
        return {"type": self.type.value}


@dataclass(frozen=True)
class InvalidCondition:
    """
    A condition record that failed validation under lenient loading.

    Never holds. Kept so the engine can report the integrity problem
    instead of silently treating the commitment as unconditional.
    """
    reason: str
    raw:    Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    type = ConditionType.INVALID

    @property
    def slot(self) -> Optional[SlotKey]:
        return None

    def to_dict(self) -> dict:
        return {"type": self.type.value, "reason": self.reason}


Condition = Union[SingleUserCondition, AggregateCondition, Unconditional, InvalidCondition]


def condition_from_dict(data: dict) -> Condition:
    """
    Build a Condition from a record.

    `type` is optional: a target implies single_user, an action
    without a target implies aggregate, neither implies unconditional.

    Raises:
        ValidationError: the record does not describe a valid condition
    """
    if not isinstance(data, dict):
        raise ValidationError("Condition must be a mapping", {"value": repr(data)})

    target = _ident(_field(data, "target_user_id", "targetUserId"))
    action = data.get("action")
    declared = data.get("type")

    if declared is None:
        if target:
            declared = ConditionType.SINGLE_USER.value
        elif action:
            declared = ConditionType.AGGREGATE.value
        else:
            declared = ConditionType.UNCONDITIONAL.value

    try:
        kind = ConditionType(declared)
    except ValueError:
        raise ValidationError("Unknown condition type", {"type": declared})

    if kind == ConditionType.UNCONDITIONAL:
        if target or action:
            raise ValidationError(
                "Unconditional condition must not carry a target or action",
                {"target_user_id": target, "action": action},
            )
        return Unconditional()

    if kind == ConditionType.INVALID:
        raise ValidationError("Condition record is marked invalid", {"reason": data.get("reason")})

    min_amount = _field(data, "min_amount", "minAmount")
    if min_amount is None:
        raise ValidationError("Condition min_amount is required", {"action": action})

    if kind == ConditionType.SINGLE_USER:
        return SingleUserCondition(
            target_user_id=target,
            action=action,
            unit=data.get("unit"),
            min_amount=min_amount,
        )

    if target:
        raise ValidationError(
            "Aggregate condition must not carry a target user",
            {"target_user_id": target},
        )
    return AggregateCondition(
        action=action,
        unit=data.get("unit"),
        min_amount=min_amount,
    )


# ─────────────────────────────────────────────────────────────
# Promises
# ─────────────────────────────────────────────────────────────

class PromiseKind(Enum):
    FIXED                 = "fixed"
    PROPORTIONAL_CAPPED   = "proportional_capped"
    PROPORTIONAL_UNCAPPED = "proportional_uncapped"


@dataclass(frozen=True)
class Promise:
    """
    A contribution to the creator's (action, unit) slot.

    The reference slot of a proportional promise is
    (reference_action, unit): the promise's own unit.
    """
    action:              str
    unit:                str
    base_amount:         float = 0.0
    proportional_amount: float = 0.0
    reference_action:    Optional[str] = None
    reference_user_id:   Optional[str] = None
    threshold_amount:    float = 0.0
    max_amount:          Optional[float] = None

    def __post_init__(self):
        _text(self.action, "Promise action")
        _text(self.unit, "Promise unit")
        object.__setattr__(self, "base_amount", _amount(self.base_amount, "base_amount"))
        object.__setattr__(
            self, "proportional_amount",
            _amount(self.proportional_amount, "proportional_amount"),
        )
        object.__setattr__(
            self, "threshold_amount",
            _amount(self.threshold_amount or 0.0, "threshold_amount"),
        )
        if self.max_amount is not None:
            object.__setattr__(self, "max_amount", _amount(self.max_amount, "max_amount"))
        if self.proportional_amount > 0 and not self.reference_action:
            raise ValidationError(
                "Proportional promise requires reference_action",
                {"action": self.action, "proportional_amount": self.proportional_amount},
            )

    @property
    def slot(self) -> SlotKey:
        return SlotKey(self.action, self.unit)

    @property
    def reference_slot(self) -> Optional[SlotKey]:
        if not self.reference_action:
            return None
        return SlotKey(self.reference_action, self.unit)

    @property
    def kind(self) -> PromiseKind:
        if self.proportional_amount <= 0:
            return PromiseKind.FIXED
        if self.max_amount is not None:
            return PromiseKind.PROPORTIONAL_CAPPED
        return PromiseKind.PROPORTIONAL_UNCAPPED

    def to_dict(self) -> dict:
        data = {
            "action": self.action,
            "unit": self.unit,
            "base_amount": self.base_amount,
            "proportional_amount": self.proportional_amount,
            "threshold_amount": self.threshold_amount,
        }
        if self.reference_action is not None:
            data["reference_action"] = self.reference_action
        if self.reference_user_id is not None:
            data["reference_user_id"] = self.reference_user_id
        if self.max_amount is not None:
            data["max_amount"] = self.max_amount
        return data

    @staticmethod
    def from_dict(data: dict) -> "Promise":
        """Create a promise from a snake_case or camelCase record."""
        if not isinstance(data, dict):
            raise ValidationError("Promise must be a mapping", {"value": repr(data)})
        return Promise(
            action=data.get("action"),
            unit=data.get("unit"),
            base_amount=_field(data, "base_amount", "baseAmount", 0.0),
            proportional_amount=_field(data, "proportional_amount", "proportionalAmount", 0.0),
            reference_action=_field(data, "reference_action", "referenceAction"),
            reference_user_id=_ident(_field(data, "reference_user_id", "referenceUserId")),
            threshold_amount=_field(data, "threshold_amount", "thresholdAmount", 0.0),
            max_amount=_field(data, "max_amount", "maxAmount"),
        )


# ─────────────────────────────────────────────────────────────
# Commitment
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Commitment:
    """A creator's conjunction of conditions plus one or more promises."""
    id:         str
    creator_id: str
    conditions: Tuple[Condition, ...] = ()
    promises:   Tuple[Promise, ...] = ()

    def __post_init__(self):
        _text(self.id, "Commitment id")
        _text(self.creator_id, "Commitment creator_id")
        object.__setattr__(self, "conditions", tuple(self.conditions))
        object.__setattr__(self, "promises", tuple(self.promises))

    @property
    def is_unconditional(self) -> bool:
        return all(isinstance(c, Unconditional) for c in self.conditions)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "creator_id": self.creator_id,
            "conditions": [c.to_dict() for c in self.conditions],
            "promises": [p.to_dict() for p in self.promises],
        }

    @staticmethod
    def from_dict(data: dict) -> "Commitment":
        """
        Create a commitment from a record. Strict: any malformed
        condition or promise raises ValidationError.

        The original wire shape nests conditions and promises under
        `parsedCommitment`; both shapes are accepted.
        """
        commitment_id, creator_id, conditions, promises = commitment_fields(data)
        return Commitment(
            id=commitment_id,
            creator_id=creator_id,
            conditions=tuple(condition_from_dict(c) for c in conditions),
            promises=tuple(Promise.from_dict(p) for p in promises),
        )


def commitment_fields(data: Any) -> Tuple[Any, Any, list, list]:
    """
    Split a commitment record into (id, creator_id, raw conditions,
    raw promises) without validating the individual entries.

    Raises:
        ValidationError: the record, its body, or its lists have the wrong shape
    """
    if not isinstance(data, dict):
        raise ValidationError("Commitment must be a mapping", {"value": repr(data)})

    commitment_id = _ident(data.get("id"))
    body = _field(data, "parsed_commitment", "parsedCommitment")
    if body is None:
        body = data
    elif not isinstance(body, dict):
        raise ValidationError(
            "Commitment body must be a mapping",
            {"id": commitment_id, "value": repr(body)},
        )

    lists = []
    for name in ("conditions", "promises"):
        value = body.get(name)
        if value is None:
            value = []
        if not isinstance(value, (list, tuple)):
            raise ValidationError(
                f"Commitment {name} must be a list",
                {"id": commitment_id, "value": repr(value)},
            )
        lists.append(list(value))

    creator_id = _ident(_field(data, "creator_id", "creatorId"))
    return commitment_id, creator_id, lists[0], lists[1]


# ─────────────────────────────────────────────────────────────
# Group snapshot
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GroupSnapshot:
    """Everything one calculation needs: membership plus active commitments."""
    group_id:    Optional[str]
    members:     Tuple[Member, ...] = ()
    commitments: Tuple[Commitment, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))
        object.__setattr__(self, "commitments", tuple(self.commitments))

    @property
    def member_ids(self) -> Tuple[str, ...]:
        return tuple(m.user_id for m in self.members)

    @property
    def usernames(self) -> Dict[str, Optional[str]]:
        return {m.user_id: m.username for m in self.members}
