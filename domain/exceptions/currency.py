from enum import Enum


class ErrorKind(Enum):
    VALIDATION = "validation"
    TRANSPORT = "transport"
    UNKNOWN_RATE = "unknown_rate"


class CurrencyException(Exception):
    kind: ErrorKind


class ValidationError(CurrencyException, ValueError):
    """Raised for bad arguments, always before any I/O takes place."""

    kind = ErrorKind.VALIDATION


class InvalidCurrencyError(ValidationError):
    pass


class RequestFailed(CurrencyException):
    """A store or provider request failed. The cause is chained."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.context = context


class StoreRequestFailed(RequestFailed):
    pass


class ProviderRequestFailed(RequestFailed):
    pass


class UnknownRateError(CurrencyException):
    kind = ErrorKind.UNKNOWN_RATE

    def __init__(self, currency: str, base_currency: str, date: str):
        super().__init__(f"Rate from {currency} to {base_currency} on {date} not found")
        self.currency = currency
        self.base_currency = base_currency
        self.date = date
