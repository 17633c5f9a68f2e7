import calendar
import time
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable

import httpx

from application.monitoring.logger import ProductionLogger
from domain.exceptions.currency import ProviderRequestFailed, ValidationError
from domain.models.currency import Currency
from domain.utils.time import yesterday_utc
from infrastructure.providers.base import HistoricalRatesProvider


class AccountType(str, Enum):
    FREE = "free"
    DEVELOPER = "developer"
    ENTERPRISE = "enterprise"
    UNLIMITED = "unlimited"

    @property
    def supports_time_series(self) -> bool:
        return self in (AccountType.ENTERPRISE, AccountType.UNLIMITED)


class OpenExchangeRatesProvider(HistoricalRatesProvider):
    """Historical rates from openexchangerates.org for all quote currencies at once.

    The API bills per date requested, and fetching every currency costs the same as
    fetching one. Enterprise and Unlimited accounts get a whole month per call through
    ``time-series.json``; the other tiers fall back to one ``historical`` call per day.
    """

    BASE_URL = "https://openexchangerates.org/api"
    # earliest date the API has data for
    MIN_DATE = date(1999, 1, 1)

    def __init__(
        self,
        app_id: str,
        base_currency: Currency,
        timeout: float = 15,
        account_type: AccountType | str = AccountType.ENTERPRISE,
        client: httpx.Client | None = None,
        event_logger: ProductionLogger | None = None,
    ):
        self.app_id = app_id
        self.base_currency = base_currency
        self.timeout = timeout
        self.account_type = AccountType(account_type)
        self._client = client or httpx.Client(timeout=timeout)
        self.event_logger = event_logger or ProductionLogger()

    @property
    def name(self) -> str:
        return "openexchange"

    def fetch_rates(self, on_date: date) -> dict[str, dict[str, Decimal]]:
        max_date = yesterday_utc()
        if on_date < self.MIN_DATE or on_date > max_date:
            raise ValidationError(
                f"Provided date {on_date.isoformat()} for OER query should be "
                f"between {self.MIN_DATE.isoformat()} and {max_date.isoformat()}"
            )

        if self.account_type.supports_time_series:
            return self._fetch_month_rates(on_date, max_date)
        return self._fetch_day_rates(on_date)

    def _fetch_day_rates(self, on_date: date) -> dict[str, dict[str, Decimal]]:
        iso_date = on_date.isoformat()

        def reshape(rates: dict) -> dict[str, dict[str, Decimal]]:
            return {
                iso_currency: {iso_date: _to_rate(rate)}
                for iso_currency, rate in rates.items()
            }

        return self._request(f"historical/{iso_date}.json", {}, f"Day rates request for {iso_date}", reshape)

    def _fetch_month_rates(self, on_date: date, max_date: date) -> dict[str, dict[str, Decimal]]:
        last_day = calendar.monthrange(on_date.year, on_date.month)[1]
        start_date = on_date.replace(day=1)
        end_date = min(on_date.replace(day=last_day), max_date)

        # the API answers rates[date][currency]; lookups are per currency, so flip it
        def reshape(rates: dict) -> dict[str, dict[str, Decimal]]:
            result: dict[str, dict[str, Decimal]] = {}
            for iso_date, day_rates in rates.items():
                if not isinstance(day_rates, dict):
                    raise ValueError(f"rates for {iso_date} are not an object")
                for iso_currency, rate in day_rates.items():
                    result.setdefault(iso_currency, {})[iso_date] = _to_rate(rate)
            return result

        return self._request(
            "time-series.json",
            {"start": start_date.isoformat(), "end": end_date.isoformat()},
            f"Month rates request for {on_date.isoformat()} "
            f"({start_date.isoformat()} to {end_date.isoformat()})",
            reshape,
        )

    def _request(
        self,
        endpoint: str,
        params: dict,
        description: str,
        reshape: Callable[[dict], dict[str, dict[str, Decimal]]],
    ) -> dict[str, dict[str, Decimal]]:
        params = {**params, "app_id": self.app_id, "base": self.base_currency.iso_code}
        url = f"{self.BASE_URL}/{endpoint}"
        start_time = time.time()

        try:
            response = self._client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict) or not isinstance(data.get("rates"), dict):
                raise ValueError("response has no 'rates' object")
            result = reshape(data["rates"])
        except httpx.HTTPStatusError as e:
            self._log_failure(endpoint, start_time, f"HTTP {e.response.status_code}")
            raise ProviderRequestFailed(
                f"{description} failed - Code: {e.response.status_code} - Body: {e.response.text[:200]}",
                endpoint=endpoint,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            self._log_failure(endpoint, start_time, e.__class__.__name__)
            raise ProviderRequestFailed(
                f"{description} failed: {e.__class__.__name__}",
                endpoint=endpoint,
            ) from e
        except ValueError as e:
            self._log_failure(endpoint, start_time, str(e))
            raise ProviderRequestFailed(
                f"{description} returned an unreadable response: {e}",
                endpoint=endpoint,
            ) from e

        self.event_logger.log_api_call(
            self.name, endpoint, True, (time.time() - start_time) * 1000, currency_count=len(result)
        )
        return result

    def _log_failure(self, endpoint: str, start_time: float, error_message: str) -> None:
        self.event_logger.log_api_call(
            self.name, endpoint, False, (time.time() - start_time) * 1000, error_message=error_message
        )

    def close(self) -> None:
        self._client.close()


def _to_rate(value) -> Decimal:
    # bool is an int, but never a rate
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"rate {value!r} is not a number")
    try:
        rate = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"rate {value!r} is not a number") from e
    if not rate.is_finite():
        raise ValueError(f"rate {value!r} is not a number")
    return rate
