from datetime import date, datetime

from application.services.rate_service import RateService
from domain.models.currency import Currency, Money
from domain.utils.time import yesterday_utc


class ConversionService:
	def __init__(self, rate_service: RateService):
		self.rate_service = rate_service

	def exchange(self, money: Money, to_currency: Currency | str, moment: date | datetime) -> Money:
		"""Converts ``money`` with the closing rates of ``moment``'s UTC day."""
		to_currency = Currency.wrap(to_currency)
		if money.currency == to_currency:
			return Money.from_amount(money.amount, to_currency)

		rate = self.rate_service.get_rate(money.currency, to_currency, moment)

		return Money.from_amount(money.amount * rate, to_currency)

	def exchange_latest(self, money: Money, to_currency: Currency | str) -> Money:
		return self.exchange(money, to_currency, yesterday_utc())
