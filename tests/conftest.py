"""
Shared fixtures: an in-memory stand-in for the Redis client and a frozen UTC clock.
"""
from datetime import date
from unittest.mock import Mock

import pytest
import redis

from application.services import ConversionService, RateService
from domain.models.currency import Currency
from infrastructure.cache.redis_cache import HistoricalRedisStore
from infrastructure.providers.base import HistoricalRatesProvider

TEST_NAMESPACE = "currency_test"
# yesterday (UTC) is 2017-12-04 for every test using the frozen clock
FROZEN_TODAY = date(2017, 12, 5)


class FakePipeline:
    def __init__(self, client: "FakeRedis"):
        self.client = client
        self.commands = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.commands = []

    def hset(self, key, mapping):
        self.commands.append((key, dict(mapping)))

    def execute(self):
        self.client.calls.append(("execute", [key for key, _ in self.commands]))
        if self.client.error:
            raise self.client.error
        for key, mapping in self.commands:
            self.client.hashes.setdefault(key, {}).update(mapping)
        return [len(mapping) for _, mapping in self.commands]


class FakeRedis:
    """Just enough of ``redis.Redis`` (decode_responses=True) for the rates store."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.calls = []
        self.error: redis.RedisError | None = None

    def hgetall(self, key):
        self.calls.append(("hgetall", key))
        if self.error:
            raise self.error
        return dict(self.hashes.get(key, {}))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def close(self):
        pass

    def count(self, command):
        return sum(1 for name, _ in self.calls if name == command)


@pytest.fixture
def frozen_today(monkeypatch):
    monkeypatch.setattr("domain.utils.time.utc_today", lambda: FROZEN_TODAY)
    return FROZEN_TODAY


@pytest.fixture
def base_currency():
    return Currency("EUR")


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis, base_currency):
    return HistoricalRedisStore(fake_redis, base_currency, TEST_NAMESPACE)


@pytest.fixture
def provider():
    """A provider that fails the test if it is ever called."""
    provider = Mock(spec=HistoricalRatesProvider)
    provider.fetch_rates.side_effect = AssertionError("provider must not be called")
    return provider


@pytest.fixture
def rate_service(base_currency, store, provider):
    return RateService(base_currency, store, provider)


@pytest.fixture
def conversion_service(rate_service):
    return ConversionService(rate_service)
