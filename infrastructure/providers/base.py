from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal


class HistoricalRatesProvider(ABC):
    """Source of historical rates relative to a fixed base currency."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def fetch_rates(self, on_date: date) -> dict[str, dict[str, Decimal]]:
        """Returns ``{quote_iso: {iso_date: rate}}``. ``on_date`` is always included when known."""
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
