"""Authorizing instrument fingerprints.

Two registrations with the same external ref and terms produce the same
SHA-256 fingerprint; the (ledger_id, fingerprint) unique constraint turns
the second into a DuplicateInstrumentError.
"""

import hashlib


def instrument_fingerprint(
    external_ref: str,
    amount: int,
    currency: str,
    cadence: str,
    counterparty_name: str,
) -> str:
    canonical = "|".join([
        external_ref,
        str(amount),
        currency.upper(),
        cadence.lower(),
        counterparty_name.strip().lower(),
    ])
    return hashlib.sha256(canonical.encode()).hexdigest()
