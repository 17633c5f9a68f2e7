from .base import HistoricalRatesProvider
from .openexchange import AccountType, OpenExchangeRatesProvider

__all__ = ['AccountType', 'HistoricalRatesProvider', 'OpenExchangeRatesProvider']
