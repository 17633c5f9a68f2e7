import logging
import time
from decimal import Decimal, InvalidOperation

import redis

from application.monitoring.logger import LogLevel, ProductionLogger
from domain.exceptions.currency import StoreRequestFailed, ValidationError
from domain.models.currency import Currency

logger = logging.getLogger(__name__)


class HistoricalRedisStore:
    """Rates relative to ``base_currency`` kept in Redis hashes.

    Each quote currency lives under ``namespace:BASE:QUOTE`` as a hash of ISO date
    to rate string, e.g. ``currency:USD:HUF`` -> ``{"2016-05-01": "272.511002"}``.
    Other systems read these keys directly, so the format must not change.
    """

    def __init__(self, redis_client: redis.Redis, base_currency: Currency, namespace: str = "currency",
                 event_logger: ProductionLogger | None = None):
        self.redis = redis_client
        self.base_currency = base_currency
        self.namespace = namespace
        self.event_logger = event_logger or ProductionLogger()

    @classmethod
    def from_url(cls, redis_url: str, base_currency: Currency, namespace: str = "currency",
                 event_logger: ProductionLogger | None = None) -> "HistoricalRedisStore":
        return cls(redis.Redis.from_url(redis_url, decode_responses=True), base_currency, namespace, event_logger)

    def _make_key(self, iso_currency: str) -> str:
        return f"{self.namespace}:{self.base_currency.iso_code}:{iso_currency}"

    def add_rates(self, currency_date_rates: dict[str, dict[str, Decimal]]) -> None:
        base_code = self.base_currency.iso_code
        base_rates = currency_date_rates.get(base_code)
        if base_rates is not None and not all(_is_one(rate) for rate in base_rates.values()):
            raise ValidationError(
                f"When base currency {base_code} is included in the given rates "
                f"{currency_date_rates}, its rate should be equal to 1"
            )

        keys = [self._make_key(iso_currency) for iso_currency, date_rates in currency_date_rates.items() if date_rates]
        cache_key = ",".join(keys)
        start_time = time.time()
        try:
            with self.redis.pipeline(transaction=False) as pipeline:
                for iso_currency, date_rates in currency_date_rates.items():
                    if not date_rates:
                        continue
                    pipeline.hset(
                        self._make_key(iso_currency),
                        mapping={iso_date: str(rate) for iso_date, rate in date_rates.items()},
                    )
                pipeline.execute()
        except redis.RedisError as e:
            self.event_logger.log_cache_operation(
                "set", cache_key, False, (time.time() - start_time) * 1000,
                level=LogLevel.ERROR, error_message=str(e)
            )
            raise StoreRequestFailed(
                f"Error while storing rates - {e} - rates: {currency_date_rates}",
                rates=currency_date_rates,
            ) from e

        self.event_logger.log_cache_operation(
            "set", cache_key, True, (time.time() - start_time) * 1000,
            entry_count=sum(len(date_rates) for date_rates in currency_date_rates.values())
        )

    def get_rates(self, currency: Currency) -> dict[str, Decimal]:
        key = self._make_key(currency.iso_code)
        start_time = time.time()
        try:
            data = self.redis.hgetall(key)
        except redis.RedisError as e:
            self.event_logger.log_cache_operation(
                "get", key, False, (time.time() - start_time) * 1000,
                level=LogLevel.ERROR, error_message=str(e)
            )
            raise StoreRequestFailed(
                f"Error while retrieving rates for {currency.iso_code} - {e}",
                key=key,
            ) from e

        self.event_logger.log_cache_operation(
            "get", key, bool(data), (time.time() - start_time) * 1000, entry_count=len(data)
        )
        try:
            return {_decode(iso_date): Decimal(_decode(rate)) for iso_date, rate in data.items()}
        except InvalidOperation as e:
            logger.error("Corrupt rate data under %s", key)
            raise StoreRequestFailed(f"Invalid rate data stored under {key}", key=key) from e


def _is_one(rate: Decimal | float | str) -> bool:
    try:
        return Decimal(str(rate)) == 1
    except InvalidOperation as e:
        raise ValidationError(f"Invalid rate {rate!r}, expected a decimal number") from e


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value
