"""Mobile money provider catalogue and fee rules."""
from dataclasses import dataclass

from mkulima.constants import CURRENCY_SYMBOLS, MIN_PHONE_LENGTH


class PaymentError(Exception):
    """Base class for payment rejections surfaced to the caller.

    Business-rule failures: retrying the same payload cannot succeed.
    """
    retryable = False


class UnknownProvider(PaymentError):
    pass


class InvalidPayment(PaymentError):
    pass


class AmountOutOfRange(PaymentError):
    """Amount falls outside the provider's [min, max] limits."""

    def __init__(self, amount: float, provider: "Provider"):
        super().__init__(
            f"Amount {amount} outside {provider.display_name} limits "
            f"{provider.min_amount}-{provider.max_amount} {provider.currency}"
        )
        self.amount = amount
        self.min_amount = provider.min_amount
        self.max_amount = provider.max_amount


@dataclass(frozen=True)
class Provider:
    name: str
    display_name: str
    currency: str
    fee_percent: float
    fee_fixed: float
    min_amount: float
    max_amount: float
    countries: tuple[str, ...] = ()

    def fee_for(self, amount: float) -> float:
        return round(amount * self.fee_percent / 100 + self.fee_fixed, 2)

    def accepts(self, amount: float) -> bool:
        return self.min_amount <= amount <= self.max_amount

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "currency": self.currency,
            "fee_percent": self.fee_percent,
            "fee_fixed": self.fee_fixed,
            "min_amount": self.min_amount,
            "max_amount": self.max_amount,
            "countries": list(self.countries),
        }


DEFAULT_PROVIDERS: dict[str, Provider] = {
    "mpesa": Provider("mpesa", "M-Pesa", "KES", 1.5, 0, 10, 50000, ("KE", "TZ")),
    "tigopesa": Provider("tigopesa", "Tigo Pesa", "TSH", 1, 100, 1000, 1000000, ("TZ",)),
    "airtelmoney": Provider("airtelmoney", "Airtel Money", "TSH", 1.2, 0, 500, 500000, ("TZ", "UG", "RW")),
    "vodacom": Provider("vodacom", "Vodacom M-Pesa", "TSH", 1.5, 0, 1000, 3000000, ("TZ",)),
}


def get_provider(name: str, providers: dict[str, Provider] | None = None) -> Provider:
    """Look up a provider by id.

    Raises:
        UnknownProvider: If name is not in the catalogue
    """
    catalogue = DEFAULT_PROVIDERS if providers is None else providers
    provider = catalogue.get(name)
    if provider is None:
        raise UnknownProvider(f"Invalid payment provider: {name!r}")
    return provider


def compute_fee(provider: Provider, amount: float) -> tuple[float, float]:
    """Return (fee, total) for amount paid through provider."""
    fee = provider.fee_for(amount)
    return fee, round(amount + fee, 2)


def validate_payment(provider: Provider, amount: float, phone: str) -> None:
    """Business-rule checks run before a payment is queued.

    Raises:
        InvalidPayment: Non-positive amount or short phone number
        AmountOutOfRange: Amount outside provider limits (inclusive)
    """
    if amount is None or amount <= 0:
        raise InvalidPayment("Invalid amount")
    if not phone or len(phone) < MIN_PHONE_LENGTH:
        raise InvalidPayment("Valid phone number is required")
    if not provider.accepts(amount):
        raise AmountOutOfRange(amount, provider)


def format_currency(amount: float, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, "")
    return f"{symbol}{amount:,.2f}"
