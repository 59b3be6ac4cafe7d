"""
Carrots: Canonical JSON Encoding — RFC 8785 (JCS)

Result fingerprints MUST use this module so that two computations
over identical input produce byte-identical digests.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib
from typing import Any

try:
    import jcs as _jcs
except ImportError as exc:
    raise ImportError(
        "Carrots requires the 'jcs' package for RFC 8785 compliance.\n"
        "Install with: pip install jcs\n"
        f"Original error: {exc}"
    ) from exc


def canonicalize(obj: Any) -> bytes:
    """
    Encode a JSON-primitive structure to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    Tuples must be converted to lists by the caller.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj: Any) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()
