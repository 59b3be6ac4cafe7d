"""
Group snapshot loading.

Reads a group's members and active commitments from a YAML or JSON
document and builds a GroupSnapshot for the engine.

Strict mode raises ValidationError on the first malformed record.
Lenient mode keeps going: a malformed condition becomes an
InvalidCondition (the commitment can then never apply), a malformed
promise or commitment is dropped. Both are logged.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import yaml

from carrots.core.exceptions import SnapshotError, ValidationError
from carrots.core.models import (
    Commitment,
    GroupSnapshot,
    InvalidCondition,
    Member,
    Promise,
    commitment_fields,
    condition_from_dict,
)
from carrots.core.modes import EngineConfig, init_lenient_mode
from carrots.loader.validation import check_commitment, check_promise, check_unique_ids

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"


def load_snapshot(path: Path, config: Optional[EngineConfig] = None) -> GroupSnapshot:
    """
    Load a group snapshot file.

    `.json` files are parsed as JSON, anything else as YAML.

    Raises:
        SnapshotError: file missing, unparseable, or not a snapshot document
        ValidationError: malformed record (strict mode only)
    """
    path = Path(path)
    if not path.exists():
        raise SnapshotError(f"Snapshot not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SnapshotError(f"Could not parse snapshot {path}: {e}") from e
    except OSError as e:
        raise SnapshotError(f"Could not read snapshot {path}: {e}") from e

    return snapshot_from_dict(data, config)


def snapshot_from_dict(data: Any, config: Optional[EngineConfig] = None) -> GroupSnapshot:
    """Build a GroupSnapshot from an already-parsed document."""
    config = config or init_lenient_mode()

    if not isinstance(data, dict):
        raise SnapshotError("Snapshot document must be a mapping")

    members_data = data.get("members") or []
    commitments_data = data.get("commitments") or []
    if not isinstance(members_data, list) or not isinstance(commitments_data, list):
        raise SnapshotError("Snapshot 'members' and 'commitments' must be lists")

    group_id = data.get("group_id", data.get("groupId"))
    members = _load_members(members_data, config)

    commitments: List[Commitment] = []
    for index, record in enumerate(commitments_data):
        if isinstance(record, dict) and record.get("status", ACTIVE_STATUS) != ACTIVE_STATUS:
            logger.debug("Skipping %s commitment %s", record.get("status"), record.get("id"))
            continue
        commitment = _load_commitment(record, index, config)
        if commitment is not None:
            commitments.append(commitment)

    if config.strict:
        check_unique_ids(commitments)
    else:
        commitments = _drop_duplicates(commitments)

    logger.info(
        "Loaded snapshot for group %s: %d members, %d active commitments",
        group_id, len(members), len(commitments),
    )
    return GroupSnapshot(group_id=group_id, members=members, commitments=commitments)


# ─────────────────────────────────────────────────────────────
# Internals
# ─────────────────────────────────────────────────────────────

def _load_members(records: list, config: EngineConfig) -> List[Member]:
    members: List[Member] = []
    seen = set()
    for record in records:
        try:
            member = Member.from_value(record)
        except ValidationError as e:
            if config.strict:
                raise
            logger.warning("Skipping malformed member %r: %s", record, e)
            continue
        if member.user_id in seen:
            continue
        seen.add(member.user_id)
        members.append(member)
    return members


def _load_commitment(record: Any, index: int, config: EngineConfig) -> Optional[Commitment]:
    if config.strict:
        return check_commitment(Commitment.from_dict(record))

    try:
        commitment_id, creator_id, raw_conditions, raw_promises = commitment_fields(record)
    except ValidationError as e:
        logger.warning("Skipping commitment #%d: %s", index, e)
        return None

    conditions = []
    for raw in raw_conditions:
        try:
            conditions.append(condition_from_dict(raw))
        except ValidationError as e:
            logger.warning(
                "Commitment %s has an invalid condition and can never apply: %s",
                commitment_id, e,
            )
            conditions.append(InvalidCondition(
                reason=str(e),
                raw=raw if isinstance(raw, dict) else {"value": raw},
            ))

    promises = []
    for raw in raw_promises:
        try:
            promises.append(check_promise(Promise.from_dict(raw)))
        except ValidationError as e:
            logger.warning("Dropping invalid promise of commitment %s: %s", commitment_id, e)

    if not promises:
        logger.warning("Skipping commitment %s: no valid promises", commitment_id)
        return None

    try:
        return Commitment(
            id=commitment_id,
            creator_id=creator_id,
            conditions=conditions,
            promises=promises,
        )
    except ValidationError as e:
        logger.warning("Skipping commitment #%d: %s", index, e)
        return None


def _drop_duplicates(commitments: List[Commitment]) -> List[Commitment]:
    unique: List[Commitment] = []
    seen = set()
    for commitment in commitments:
        if commitment.id in seen:
            logger.warning("Skipping duplicate commitment id %s", commitment.id)
            continue
        seen.add(commitment.id)
        unique.append(commitment)
    return unique
