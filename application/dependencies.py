import logging

from application.monitoring.logger import ProductionLogger, setup_logging
from application.services import ConversionService, RateService, RetryingRateService
from config.settings import Settings, get_settings
from domain.exceptions.currency import ValidationError
from domain.models.currency import Currency
from infrastructure.cache.memory_cache import HistoricalRateCache
from infrastructure.cache.redis_cache import HistoricalRedisStore
from infrastructure.providers import OpenExchangeRatesProvider

logger = logging.getLogger(__name__)


class AppDependencies:
	"""Container for the process-wide services, filled by ``init_dependencies``."""

	store: HistoricalRedisStore | None = None
	provider: OpenExchangeRatesProvider | None = None
	rate_service: RateService | RetryingRateService | None = None
	conversion_service: ConversionService | None = None


deps = AppDependencies()


def init_dependencies(settings: Settings | None = None, configure_logging: bool = False) -> None:
	"""Build (or rebuild) every service. Any previously configured services are closed first.

	Changing the base currency must go together with a fresh Redis namespace, rates
	already stored are never reinterpreted.
	"""
	settings = settings or get_settings()
	if configure_logging:
		setup_logging(settings.LOG_LEVEL, settings.LOG_DIRECTORY)

	if not settings.OPENEXCHANGE_APP_ID:
		raise ValidationError('OPENEXCHANGE_APP_ID must be set')

	reset_dependencies()
	logger.info('Initializing dependencies...')

	base_currency = Currency.wrap(settings.BASE_CURRENCY)
	event_logger = ProductionLogger()
	provider = OpenExchangeRatesProvider(
		settings.OPENEXCHANGE_APP_ID,
		base_currency,
		timeout=settings.OPENEXCHANGE_TIMEOUT,
		account_type=settings.OPENEXCHANGE_ACCOUNT_TYPE,
		event_logger=event_logger,
	)
	deps.provider = provider
	deps.store = HistoricalRedisStore.from_url(
		settings.REDIS_URL, base_currency, settings.REDIS_NAMESPACE, event_logger
	)

	rate_service = RateService(base_currency, deps.store, deps.provider, HistoricalRateCache(), event_logger)
	if settings.RETRY_ATTEMPTS > 1:
		rate_service = RetryingRateService(rate_service, attempts=settings.RETRY_ATTEMPTS)

	deps.rate_service = rate_service
	deps.conversion_service = ConversionService(rate_service)

	event_logger.log_lifecycle(
		'Dependencies initialized',
		base_currency=base_currency.iso_code,
		namespace=settings.REDIS_NAMESPACE,
		account_type=deps.provider.account_type.value,
	)


def reset_dependencies() -> None:
	if deps.provider:
		deps.provider.close()
	if deps.store:
		deps.store.redis.close()

	deps.store = None
	deps.provider = None
	deps.rate_service = None
	deps.conversion_service = None


def get_rate_service() -> RateService | RetryingRateService:
	if deps.rate_service is None:
		raise RuntimeError('Dependencies are not initialized, call init_dependencies() first')
	return deps.rate_service


def get_conversion_service() -> ConversionService:
	if deps.conversion_service is None:
		raise RuntimeError('Dependencies are not initialized, call init_dependencies() first')
	return deps.conversion_service
