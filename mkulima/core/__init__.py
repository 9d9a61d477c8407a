"""Receipts, events and durable storage shared across the client."""
from mkulima.core.receipt import StopRule, dual_hash, emit_receipt, set_receipt_sink, utc_now
from mkulima.core.events import EventHub
from mkulima.core.store import LogStore

__all__ = [
    "StopRule",
    "dual_hash",
    "emit_receipt",
    "set_receipt_sink",
    "utc_now",
    "EventHub",
    "LogStore",
]
