"""Unit tests for the exchange rate API client"""

import httpx
import pytest
from pledge_ledger.domain.exceptions import ExchangeRateAPIError
from pledge_ledger.infrastructure.clients.exchange_rates import ExchangeRateClient

BASE_URL = "https://rates.test/v2/exchange-rates"


def _client(handler) -> ExchangeRateClient:
    return ExchangeRateClient(base_url=BASE_URL, timeout=1.0, transport=httpx.MockTransport(handler))


async def test_get_rates_parses_table():
    """Test rates come back as decimal strings keyed by currency"""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["currency"] = request.url.params["currency"]
        return httpx.Response(200, json={"data": {"currency": "USD", "rates": {"ILS": "3.65", "EUR": 0.92}}})

    rates = await _client(handler).get_rates()

    assert rates == {"ILS": "3.65", "EUR": "0.92"}
    assert seen["currency"] == "USD"


async def test_http_error_wrapped():
    """Test provider errors surface as ExchangeRateAPIError"""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with pytest.raises(ExchangeRateAPIError, match="503"):
        await _client(handler).get_rates()


async def test_timeout_wrapped():
    """Test timeouts surface as ExchangeRateAPIError"""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ExchangeRateAPIError, match="timeout"):
        await _client(handler).get_rates()


@pytest.mark.parametrize(
    "body",
    [
        {"data": {}},
        {"data": {"rates": ["ILS", "3.65"]}},
        {"rates": {"ILS": "3.65"}},
    ],
)
async def test_malformed_payload_wrapped(body):
    """Test unexpected payload shapes surface as ExchangeRateAPIError"""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    with pytest.raises(ExchangeRateAPIError, match="Invalid rate data"):
        await _client(handler).get_rates()
