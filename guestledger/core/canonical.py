"""
guestledger: Canonical JSON Encoding (RFC 8785 / JCS)

Record hashing and signing go through this module only.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

import jcs as _jcs


def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    Values must be JSON primitives; convert datetimes to strings first.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """
    SHA-256 of the canonical form, as 64 lowercase hex characters.

    Used for prev_hash chaining between ledger records.
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()
