"""
Deterministic hashing utilities.

All hashing in the engine must be deterministic and reproducible.  This
module provides the canonical JSON form and the inventory history chain hash.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS_HASH = "GENESIS"


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Normalize so 1.50 and 1.5 hash identically
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, there is no whitespace, and Decimal, datetime, UUID and
    Enum values have one fixed representation each.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def history_entry_payload(
    item_id: UUID,
    sequence: int,
    entry_type: str,
    quantity_change: int,
    previous_quantity: int,
    new_quantity: int,
    order_id: UUID | None,
    reason: str,
    occurred_at: datetime,
) -> dict:
    """Canonical payload of an inventory history entry."""
    return {
        "item_id": item_id,
        "sequence": sequence,
        "entry_type": entry_type,
        "quantity_change": quantity_change,
        "previous_quantity": previous_quantity,
        "new_quantity": new_quantity,
        "order_id": order_id,
        "reason": reason,
        "occurred_at": occurred_at,
    }


def hash_history_entry(payload: dict, prev_hash: str | None) -> str:
    """
    Compute the chain hash of an inventory history entry.

    The hash covers the entry payload plus the previous entry's hash,
    creating a tamper-evident chain per item.

    Args:
        payload: Output of ``history_entry_payload``.
        prev_hash: Hash of the previous entry (None for the first entry).

    Returns:
        Hex-encoded SHA-256 hash.
    """
    data = "|".join([hash_payload(payload), prev_hash or GENESIS_HASH])
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
