"""Mkulima constants and thresholds.

All magic numbers live here. No exceptions.
"""
from pathlib import Path

# Storage
DEFAULT_DATA_DIR = Path.home() / ".mkulima"
QUEUE_FILENAME = "pending_action_queue.jsonl"
DEAD_LETTER_FILENAME = "dead_letters.jsonl"
LEDGER_FILENAME = "transaction_ledger.jsonl"
ESCROW_FILENAME = "escrow_records.jsonl"

# Queue log compaction: rewrite once this many superseded entries pile up
COMPACT_THRESHOLD = 200

# Retry ceiling. None keeps every action until it is delivered.
MAX_ATTEMPTS = None

# Connectivity probing
PROBE_HOST = ""
PROBE_PORT = 443
PROBE_TIMEOUT_SECONDS = 5.0
CHECK_INTERVAL_SECONDS = 30.0

# Payments
MIN_PHONE_LENGTH = 9
DEFAULT_PAYMENT_DESCRIPTION = "Payment"
DEFAULT_RELEASE_REASON = "delivery_confirmed"
DEFAULT_RELEASE_CONDITIONS = ("delivery_confirmed", "no_dispute_7days")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "TSH": "TSh ",
    "KES": "KSh ",
    "UGX": "USh ",
    "RWF": "RF ",
}

# Events kept in memory per hub for inspection
EVENT_HISTORY_LIMIT = 500
