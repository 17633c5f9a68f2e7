# nosec B101

from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import httpx
import pytest

from application.monitoring.logger import ProductionLogger
from domain.exceptions.currency import ErrorKind, ProviderRequestFailed, ValidationError
from domain.models.currency import Currency
from infrastructure.providers import AccountType, OpenExchangeRatesProvider

BASE_URL = "https://openexchangerates.org/api"

TIME_SERIES_RESPONSE = {
    "disclaimer": "Usage subject to terms: https://openexchangerates.org/terms",
    "license": "https://openexchangerates.org/license",
    "start_date": "2016-10-01",
    "end_date": "2016-10-31",
    "base": "EUR",
    "rates": {
        "2016-10-01": {"USD": 1.1239, "GBP": 0.86621, "EUR": 1},
        "2016-10-02": {"USD": 1.1226, "GBP": 0.86757, "EUR": 1},
    },
}

HISTORICAL_RESPONSE = {
    "disclaimer": "Usage subject to terms: https://openexchangerates.org/terms",
    "license": "https://openexchangerates.org/license",
    "timestamp": 1483574399,
    "base": "EUR",
    "rates": {"USD": 1.042, "GBP": 0.84901, "EUR": 1},
}


def make_response(status_code=200, json_data=None, text=None, url=f"{BASE_URL}/time-series.json"):
    request = httpx.Request("GET", url)
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


@pytest.fixture
def mock_client():
    return Mock(spec=httpx.Client)


@pytest.fixture
def enterprise_provider(mock_client):
    return OpenExchangeRatesProvider("test_app_id", Currency("EUR"), client=mock_client)


@pytest.fixture
def free_provider(mock_client):
    return OpenExchangeRatesProvider(
        "test_app_id", Currency("EUR"), account_type=AccountType.FREE, client=mock_client
    )


# ============================================================================
# TEST: fetch_rates() - month range accounts
# ============================================================================

def test_month_rates_request(enterprise_provider, mock_client, frozen_today):
    mock_client.get.return_value = make_response(json_data=TIME_SERIES_RESPONSE)

    enterprise_provider.fetch_rates(date(2016, 10, 5))

    mock_client.get.assert_called_once_with(
        f"{BASE_URL}/time-series.json",
        params={"start": "2016-10-01", "end": "2016-10-31", "app_id": "test_app_id", "base": "EUR"},
    )


def test_month_rates_are_transposed(enterprise_provider, mock_client, frozen_today):
    mock_client.get.return_value = make_response(json_data=TIME_SERIES_RESPONSE)

    rates = enterprise_provider.fetch_rates(date(2016, 10, 5))

    assert rates == {
        "USD": {"2016-10-01": Decimal("1.1239"), "2016-10-02": Decimal("1.1226")},
        "GBP": {"2016-10-01": Decimal("0.86621"), "2016-10-02": Decimal("0.86757")},
        "EUR": {"2016-10-01": Decimal("1"), "2016-10-02": Decimal("1")},
    }


def test_month_range_clipped_to_yesterday(enterprise_provider, mock_client, frozen_today):
    mock_client.get.return_value = make_response(json_data={**TIME_SERIES_RESPONSE, "rates": {}})

    enterprise_provider.fetch_rates(date(2017, 12, 2))

    params = mock_client.get.call_args.kwargs["params"]
    assert params["start"] == "2017-12-01"
    assert params["end"] == "2017-12-04"


def test_month_range_february_leap_year(enterprise_provider, mock_client, frozen_today):
    mock_client.get.return_value = make_response(json_data={**TIME_SERIES_RESPONSE, "rates": {}})

    enterprise_provider.fetch_rates(date(2016, 2, 10))

    assert mock_client.get.call_args.kwargs["params"]["end"] == "2016-02-29"


@pytest.mark.parametrize("account_type", ["enterprise", "unlimited", AccountType.UNLIMITED])
def test_time_series_account_types(mock_client, frozen_today, account_type):
    provider = OpenExchangeRatesProvider("id", Currency("USD"), account_type=account_type, client=mock_client)
    mock_client.get.return_value = make_response(json_data=TIME_SERIES_RESPONSE)

    provider.fetch_rates(date(2016, 10, 5))

    assert mock_client.get.call_args.args[0].endswith("/time-series.json")
    assert mock_client.get.call_args.kwargs["params"]["base"] == "USD"


# ============================================================================
# TEST: fetch_rates() - single day accounts
# ============================================================================

def test_day_rates_request_and_shape(free_provider, mock_client, frozen_today):
    mock_client.get.return_value = make_response(
        json_data=HISTORICAL_RESPONSE, url=f"{BASE_URL}/historical/2017-01-04.json"
    )

    rates = free_provider.fetch_rates(date(2017, 1, 4))

    mock_client.get.assert_called_once_with(
        f"{BASE_URL}/historical/2017-01-04.json",
        params={"app_id": "test_app_id", "base": "EUR"},
    )
    assert rates == {
        "USD": {"2017-01-04": Decimal("1.042")},
        "GBP": {"2017-01-04": Decimal("0.84901")},
        "EUR": {"2017-01-04": Decimal("1")},
    }


def test_developer_account_uses_day_rates(mock_client, frozen_today):
    provider = OpenExchangeRatesProvider("id", Currency("EUR"), account_type="developer", client=mock_client)
    mock_client.get.return_value = make_response(json_data=HISTORICAL_RESPONSE)

    provider.fetch_rates(date(2017, 1, 4))

    assert "historical/2017-01-04.json" in mock_client.get.call_args.args[0]


def test_unknown_account_type():
    with pytest.raises(ValueError):
        OpenExchangeRatesProvider("id", Currency("EUR"), account_type="platinum", client=Mock())


# ============================================================================
# TEST: fetch_rates() - date boundaries
# ============================================================================

@pytest.mark.parametrize("on_date", [date(2017, 12, 5), date(2018, 1, 1), date(1998, 12, 31)])
def test_dates_out_of_range(enterprise_provider, mock_client, frozen_today, on_date):
    with pytest.raises(ValidationError) as exc_info:
        enterprise_provider.fetch_rates(on_date)

    assert on_date.isoformat() in str(exc_info.value)
    assert exc_info.value.kind is ErrorKind.VALIDATION
    mock_client.get.assert_not_called()


@pytest.mark.parametrize("on_date", [date(1999, 1, 1), date(2017, 12, 4)])
def test_boundary_dates_accepted(enterprise_provider, mock_client, frozen_today, on_date):
    mock_client.get.return_value = make_response(json_data={**TIME_SERIES_RESPONSE, "rates": {}})

    assert enterprise_provider.fetch_rates(on_date) == {}
    mock_client.get.assert_called_once()


# ============================================================================
# TEST: fetch_rates() - failures
# ============================================================================

def test_http_error(enterprise_provider, mock_client, frozen_today):
    mock_client.get.return_value = make_response(
        status_code=401, text='{"error": true, "message": "invalid_app_id"}'
    )

    with pytest.raises(ProviderRequestFailed) as exc_info:
        enterprise_provider.fetch_rates(date(2016, 10, 5))

    message = str(exc_info.value)
    assert "2016-10-05" in message
    assert "401" in message
    assert "invalid_app_id" in message
    assert exc_info.value.kind is ErrorKind.TRANSPORT
    assert exc_info.value.context["status_code"] == 401


def test_network_error(enterprise_provider, mock_client, frozen_today):
    mock_client.get.side_effect = httpx.ConnectTimeout("timed out")

    with pytest.raises(ProviderRequestFailed) as exc_info:
        enterprise_provider.fetch_rates(date(2016, 10, 5))

    assert "ConnectTimeout" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)


@pytest.mark.parametrize("body", [
    "<html>oops</html>",
    '{"base": "EUR"}',
    "[]",
    '{"rates": []}',
    '{"rates": {"2016-10-01": {"USD": "x"}}}',
    '{"rates": {"2016-10-01": [1.1]}}',
    '{"rates": {"2016-10-01": {"USD": null}}}',
])
def test_unreadable_response(enterprise_provider, mock_client, frozen_today, body):
    mock_client.get.return_value = make_response(text=body)

    with pytest.raises(ProviderRequestFailed):
        enterprise_provider.fetch_rates(date(2016, 10, 5))


@pytest.mark.parametrize("body", ['{"rates": {"USD": "x"}}', '{"rates": {"USD": true}}', '{"rates": "none"}'])
def test_unreadable_day_response(free_provider, mock_client, frozen_today, body):
    mock_client.get.return_value = make_response(text=body, url=f"{BASE_URL}/historical/2017-01-04.json")

    with pytest.raises(ProviderRequestFailed) as exc_info:
        free_provider.fetch_rates(date(2017, 1, 4))

    assert exc_info.value.kind is ErrorKind.TRANSPORT


# ============================================================================
# TEST: API call events
# ============================================================================

def test_successful_call_is_logged(mock_client, frozen_today):
    event_logger = Mock(spec=ProductionLogger)
    provider = OpenExchangeRatesProvider("id", Currency("EUR"), client=mock_client, event_logger=event_logger)
    mock_client.get.return_value = make_response(json_data=TIME_SERIES_RESPONSE)

    provider.fetch_rates(date(2016, 10, 5))

    call = event_logger.log_api_call.call_args
    assert call.args[:3] == ("openexchange", "time-series.json", True)
    assert call.kwargs["currency_count"] == 3


def test_failed_call_is_logged(mock_client, frozen_today):
    event_logger = Mock(spec=ProductionLogger)
    provider = OpenExchangeRatesProvider("id", Currency("EUR"), client=mock_client, event_logger=event_logger)
    mock_client.get.return_value = make_response(status_code=503, text="unavailable")

    with pytest.raises(ProviderRequestFailed):
        provider.fetch_rates(date(2016, 10, 5))

    call = event_logger.log_api_call.call_args
    assert call.args[:3] == ("openexchange", "time-series.json", False)
    assert call.kwargs["error_message"] == "HTTP 503"


# ============================================================================
# TEST: client lifecycle
# ============================================================================

def test_timeout_forwarded_to_client():
    provider = OpenExchangeRatesProvider("id", Currency("EUR"), timeout=20)

    assert provider._client.timeout == httpx.Timeout(20)
    provider.close()


def test_context_manager_closes_client(mock_client):
    with OpenExchangeRatesProvider("id", Currency("EUR"), client=mock_client) as provider:
        assert provider.name == "openexchange"

    mock_client.close.assert_called_once()
