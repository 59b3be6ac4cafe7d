"""
Carrots Snapshot Loader

Supplies the engine with a group's members and active commitments.

Components:
- snapshot:   YAML / JSON snapshot documents → GroupSnapshot
- validation: commitment rules checked at load time
"""

from carrots.loader.snapshot import load_snapshot, snapshot_from_dict
from carrots.loader.validation import check_commitment, check_promise

__all__ = [
    "load_snapshot",
    "snapshot_from_dict",
    "check_commitment",
    "check_promise",
]
