import logging
from datetime import date, datetime
from decimal import Decimal

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from application.services.rate_service import RateService
from domain.exceptions.currency import RequestFailed
from domain.models.currency import Currency

logger = logging.getLogger(__name__)


class RetryingRateService:
    """Retries lookups that failed on a store or provider request.

    Validation and unknown-rate errors are final and are raised straight away.
    Anything not overridden here is forwarded to the wrapped service.
    """

    def __init__(
        self,
        rate_service: RateService,
        attempts: int = 3,
        min_wait: float = 1,
        max_wait: float = 10,
    ):
        self.rate_service = rate_service
        self._retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_exception_type(RequestFailed),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def get_rate(
        self,
        from_currency: Currency | str,
        to_currency: Currency | str,
        moment: date | datetime | None = None,
    ) -> Decimal:
        return self._retrying(self.rate_service.get_rate, from_currency, to_currency, moment)

    def __getattr__(self, name):
        return getattr(self.rate_service, name)
