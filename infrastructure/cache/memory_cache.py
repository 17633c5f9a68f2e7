import threading
from decimal import Decimal


class HistoricalRateCache:
    """In-process rates relative to the base currency, keyed by ISO code then ISO date.

    Entries are never evicted, only merged in. One lock guards the whole map and is
    held only for the dictionary access itself.
    """

    def __init__(self):
        self._rates: dict[str, dict[str, Decimal]] = {}
        self._lock = threading.Lock()

    def get(self, currency: str, iso_date: str) -> Decimal | None:
        with self._lock:
            rates = self._rates.get(currency)
            return rates.get(iso_date) if rates else None

    def merge(self, currency: str, date_rates: dict[str, Decimal]) -> None:
        with self._lock:
            self._rates.setdefault(currency, {}).update(date_rates)
