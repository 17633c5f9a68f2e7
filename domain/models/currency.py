from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal

from domain.exceptions.currency import InvalidCurrencyError

# ISO 4217 minor units for currencies that don't use two decimal places
_MINOR_UNITS: dict[str, int] = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "UYI": 0, "VND": 0, "VUV": 0,
    "XAF": 0, "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
    "CLF": 4, "UYW": 4,
}
DEFAULT_MINOR_UNITS = 2


@dataclass(frozen=True)
class Currency:
    """ISO 4217 currency. Two currencies are equal when their codes are."""

    iso_code: str
    exponent: int | None = field(default=None, compare=False)

    def __post_init__(self):
        code = self.iso_code.strip().upper() if isinstance(self.iso_code, str) else ""
        if len(code) != 3 or not code.isalpha():
            raise InvalidCurrencyError(f"Invalid ISO currency code: {self.iso_code!r}")
        object.__setattr__(self, "iso_code", code)
        if self.exponent is None:
            object.__setattr__(self, "exponent", _MINOR_UNITS.get(code, DEFAULT_MINOR_UNITS))

    @classmethod
    def wrap(cls, value: "Currency | str") -> "Currency":
        if isinstance(value, Currency):
            return value
        if isinstance(value, str):
            return cls(value)
        raise InvalidCurrencyError(f"Expected an ISO code or Currency, got {type(value).__name__}")

    def __str__(self) -> str:
        return self.iso_code


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: Currency

    @classmethod
    def from_amount(cls, amount: Decimal | int | str, currency: Currency | str) -> "Money":
        """Builds a Money rounded to the currency's minor unit (banker's rounding)."""
        currency = Currency.wrap(currency)
        quantum = Decimal(1).scaleb(-currency.exponent)
        return cls(Decimal(amount).quantize(quantum, rounding=ROUND_HALF_EVEN), currency)

    @classmethod
    def from_fractional(cls, fractional: int, currency: Currency | str) -> "Money":
        currency = Currency.wrap(currency)
        return cls.from_amount(Decimal(fractional).scaleb(-currency.exponent), currency)

    @property
    def fractional(self) -> int:
        return int(self.amount.scaleb(self.currency.exponent))

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.iso_code}"
