"""Core receipt primitives shared by every Mkulima module.

Functions:
    dual_hash: SHA256:BLAKE3 dual-hash format
    emit_receipt: Emit receipt with required fields to the receipt sink
    set_receipt_sink: Redirect emitted receipts (stdout by default)
    utc_now: ISO8601 UTC timestamp with Z suffix
    StopRule: Exception for programming errors that must never be retried
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Callable

import blake3


class StopRule(Exception):
    """Raised when a stoprule triggers. Never catch silently."""
    pass


def _print_receipt(receipt: dict) -> None:
    print(json.dumps(receipt, sort_keys=True, default=str), flush=True)


_sink: Callable[[dict], None] | None = _print_receipt


def set_receipt_sink(sink: Callable[[dict], None] | None) -> None:
    """Route emitted receipts to sink. None silences receipts entirely."""
    global _sink
    _sink = sink


def utc_now() -> str:
    """Current time as ISO8601 with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def dual_hash(data: bytes | str | dict) -> str:
    """Compute dual hash in format 'sha256hex:blake3hex'.

    Pure function with no side effects.

    Args:
        data: Bytes, string, or dict to hash

    Returns:
        String in format 'sha256hex:blake3hex' (both 64 hex chars)
    """
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    if isinstance(data, str):
        data = data.encode("utf-8")

    sha256_hex = hashlib.sha256(data).hexdigest()
    blake3_hex = blake3.blake3(data).hexdigest()

    return f"{sha256_hex}:{blake3_hex}"


def emit_receipt(receipt_type: str, data: dict, tenant_id: str = "default") -> dict:
    """Emit a receipt with standard required fields.

    Args:
        receipt_type: Type of receipt (action_enqueue, sync_pass, escrow_release, ...)
        data: Receipt payload data
        tenant_id: Tenant identifier (default: "default")

    Returns:
        Complete receipt dict with receipt_type, ts, tenant_id, payload_hash
    """
    tenant_id = data.get("tenant_id", tenant_id)

    receipt = {
        "receipt_type": receipt_type,
        "ts": utc_now(),
        "tenant_id": tenant_id,
        "payload_hash": dual_hash(data),
        **data
    }

    if _sink is not None:
        _sink(receipt)

    return receipt
