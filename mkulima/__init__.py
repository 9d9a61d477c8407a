"""
Mkulima - offline action queue and sync engine for Mkulima Connect

Captures listings, messages, payments and profile edits while the device
is disconnected and delivers them in order once connectivity returns.
Payments settle through an escrow state machine.
"""

__version__ = "0.4.0"
__author__ = "Mkulima Connect"

from mkulima.config import MkulimaConfig
from mkulima.core.receipt import StopRule, dual_hash, emit_receipt
from mkulima.client import MkulimaClient

__all__ = [
    "MkulimaConfig",
    "MkulimaClient",
    "StopRule",
    "dual_hash",
    "emit_receipt",
    "__version__",
]
