"""Payments: provider fees, the transaction ledger and escrow."""
from mkulima.payments.providers import (
    DEFAULT_PROVIDERS,
    AmountOutOfRange,
    InvalidPayment,
    PaymentError,
    Provider,
    UnknownProvider,
    compute_fee,
    format_currency,
    get_provider,
    validate_payment,
)
from mkulima.payments.ledger import (
    EscrowStatus,
    Transaction,
    TransactionLedger,
    TransactionNotFound,
    TransactionStatus,
)
from mkulima.payments.escrow import (
    EscrowAlreadyHeld,
    EscrowError,
    EscrowNotFound,
    EscrowRecord,
    EscrowStateMachine,
    InvalidEscrowTransition,
)
from mkulima.payments.processor import (
    Authorization,
    AuthorizationSource,
    GatewayAuthorizer,
    PaymentProcessor,
    StaticAuthorizer,
)

__all__ = [
    # Providers
    "DEFAULT_PROVIDERS",
    "Provider",
    "PaymentError",
    "UnknownProvider",
    "InvalidPayment",
    "AmountOutOfRange",
    "compute_fee",
    "format_currency",
    "get_provider",
    "validate_payment",
    # Ledger
    "Transaction",
    "TransactionLedger",
    "TransactionNotFound",
    "TransactionStatus",
    "EscrowStatus",
    # Escrow
    "EscrowRecord",
    "EscrowStateMachine",
    "EscrowError",
    "EscrowNotFound",
    "EscrowAlreadyHeld",
    "InvalidEscrowTransition",
    # Processor
    "Authorization",
    "AuthorizationSource",
    "StaticAuthorizer",
    "GatewayAuthorizer",
    "PaymentProcessor",
]
