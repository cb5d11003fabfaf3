"""Deterministic reference ids for derived transactions (refunds, reversals).

Identical retries of the same intent hash to the same reference id and
collapse on the (ledger_id, reference_id) unique constraint.
"""

import hashlib

_HASH_CHARS = 32


def content_reference(prefix: str, *parts: object) -> str:
    canonical = "|".join("" if p is None else str(p) for p in parts)
    digest = hashlib.sha256(canonical.encode()).hexdigest()[:_HASH_CHARS]
    return f"{prefix}:{digest}"


def keyed_reference(prefix: str, key: str) -> str:
    return f"{prefix}:{key}"
