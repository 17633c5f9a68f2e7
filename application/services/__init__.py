from .conversion_service import ConversionService
from .rate_service import RateService
from .retry import RetryingRateService

__all__ = ['ConversionService', 'RateService', 'RetryingRateService']
