import logging
import time
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from application.monitoring.logger import ProductionLogger
from domain.exceptions.currency import RequestFailed, UnknownRateError, ValidationError
from domain.models.currency import Currency
from domain.utils.time import to_utc_date, yesterday_utc
from infrastructure.cache.memory_cache import HistoricalRateCache
from infrastructure.cache.redis_cache import HistoricalRedisStore
from infrastructure.providers.base import HistoricalRatesProvider

logger = logging.getLogger(__name__)

ONE = Decimal(1)


class RateService:
    """Resolves historical rates through memory, then the shared store, then the provider.

    Every rate kept by the memory cache and the store is the value of 1 unit of
    ``base_currency`` in the quote currency. Cross rates are triangulated through it.
    Safe to share between threads.
    """

    def __init__(
        self,
        base_currency: Currency | str,
        store: HistoricalRedisStore,
        provider: HistoricalRatesProvider,
        cache: HistoricalRateCache | None = None,
        event_logger: ProductionLogger | None = None,
    ):
        self.base_currency = Currency.wrap(base_currency)
        self.store = store
        self.provider = provider
        self.cache = cache or HistoricalRateCache()
        self.event_logger = event_logger or ProductionLogger()

    def add_rates(self, currency_date_rates: dict[str, dict[str, Decimal]]) -> None:
        """Adds rates relative to the base currency in bulk, e.g. with USD as base::

            service.add_rates({
                "EUR": {"2015-09-10": Decimal("0.11"), "2015-09-11": Decimal("0.22")},
                "GBP": {"2015-09-10": Decimal("0.44"), "2015-09-11": Decimal("0.55")},
            })

        Only the store is written; the memory cache picks these up on the next read.
        """
        normalized = {
            Currency.wrap(iso_currency).iso_code: {
                _iso_date(on_date): _to_decimal(rate) for on_date, rate in date_rates.items()
            }
            for iso_currency, date_rates in currency_date_rates.items()
        }
        self.store.add_rates(normalized)
        self.event_logger.log_rate_insertion(
            sorted(normalized), sum(len(date_rates) for date_rates in normalized.values())
        )

    def add_rate(
        self,
        from_currency: Currency | str,
        to_currency: Currency | str,
        rate: Decimal | float | str,
        moment: date | datetime | None = None,
    ) -> None:
        """Adds the price of 1 ``from_currency`` in ``to_currency``. One side must be the base."""
        from_currency = Currency.wrap(from_currency)
        to_currency = Currency.wrap(to_currency)

        if self.base_currency not in (from_currency, to_currency):
            raise ValidationError(
                f"`from_currency` ({from_currency.iso_code}) or `to_currency` "
                f"({to_currency.iso_code}) should match the base currency "
                f"{self.base_currency.iso_code}"
            )

        iso_date = self._resolve_date(moment).isoformat()
        rate = _to_decimal(rate)
        if rate <= 0:
            raise ValidationError(
                f"Rate from {from_currency.iso_code} to {to_currency.iso_code} "
                f"must be positive, got {rate}"
            )

        if from_currency == self.base_currency:
            self.add_rates({to_currency.iso_code: {iso_date: rate}})
        else:
            self.add_rates({from_currency.iso_code: {iso_date: ONE / rate}})

    def get_rate(
        self,
        from_currency: Currency | str,
        to_currency: Currency | str,
        moment: date | datetime | None = None,
    ) -> Decimal:
        """Price of 1 ``from_currency`` in ``to_currency`` at the close of ``moment``'s UTC day.

        Defaults to yesterday (UTC), the latest day with final rates.
        """
        return self.rate_on_date(
            Currency.wrap(from_currency),
            Currency.wrap(to_currency),
            self._resolve_date(moment),
        )

    def rate_on_date(self, from_currency: Currency, to_currency: Currency, on_date: date) -> Decimal:
        if from_currency == to_currency:
            return ONE

        # e.g. with EUR as base: 1 EUR = 1.21 USD and 1 EUR = 0.83 GBP,
        # so 1 USD = 0.83 / 1.21 GBP
        from_rate = self.base_rate_on_date(from_currency, on_date)
        to_rate = self.base_rate_on_date(to_currency, on_date)

        return to_rate / from_rate

    def base_rate_on_date(self, currency: Currency, on_date: date) -> Decimal:
        """Value of 1 unit of the base currency in ``currency``."""
        if currency == self.base_currency:
            return ONE

        iso_code = currency.iso_code
        iso_date = on_date.isoformat()
        start_time = time.time()

        tier = "memory"
        rate = self.cache.get(iso_code, iso_date)
        if rate is None:
            tier = "store"
            rate = self._fetch_stored_base_rate(currency, iso_date)
        if rate is None:
            tier = "provider"
            rate = self._fetch_provider_base_rate(currency, on_date)

        duration_ms = (time.time() - start_time) * 1000
        if rate is None:
            error = UnknownRateError(iso_code, self.base_currency.iso_code, iso_date)
            self.event_logger.log_rate_resolution(
                iso_code, iso_date, tier, duration_ms, error_message=str(error)
            )
            raise error

        self.event_logger.log_rate_resolution(iso_code, iso_date, tier, duration_ms, rate=rate)
        return rate

    def _fetch_stored_base_rate(self, currency: Currency, iso_date: str) -> Decimal | None:
        date_rates = self.store.get_rates(currency)
        if not date_rates:
            return None

        # keep every stored date, later lookups for the same currency skip the store
        self.cache.merge(currency.iso_code, date_rates)
        return date_rates.get(iso_date)

    def _fetch_provider_base_rate(self, currency: Currency, on_date: date) -> Decimal | None:
        currency_date_rates = self.provider.fetch_rates(on_date)
        date_rates = currency_date_rates.get(currency.iso_code)

        store_error: RequestFailed | None = None
        if currency_date_rates:
            try:
                self.store.add_rates(currency_date_rates)
            except RequestFailed as e:
                store_error = e

        # the provider did answer, memory gets its data even if the store write failed
        if date_rates:
            self.cache.merge(currency.iso_code, date_rates)

        if store_error is not None:
            logger.error(
                "Failed to store provider rates for %s: %s", on_date.isoformat(), store_error
            )
            raise store_error

        return date_rates.get(on_date.isoformat()) if date_rates else None

    @staticmethod
    def _resolve_date(moment: date | datetime | None) -> date:
        return yesterday_utc() if moment is None else to_utc_date(moment)


def _to_decimal(value: Decimal | float | int | str) -> Decimal:
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid rate {value!r}, expected a decimal number") from e
    if not rate.is_finite():
        raise ValidationError(f"Invalid rate {value!r}, expected a finite number")
    return rate


def _iso_date(value: date | datetime | str) -> str:
    if not isinstance(value, str):
        return to_utc_date(value).isoformat()
    try:
        parsed = date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from e
    # fromisoformat also reads "20150910"; only the canonical form matches stored fields
    if parsed.isoformat() != value:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return value
