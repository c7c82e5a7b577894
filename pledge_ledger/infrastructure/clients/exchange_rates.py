"""Exchange rate HTTP client for the shared USD cross-rate table"""

import httpx
from typing import Dict, Optional
from pledge_ledger.domain.exceptions import ExchangeRateAPIError
from pledge_ledger.config import settings


class ExchangeRateClient:
    """Client for the public USD exchange rate API"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.exchange_rate_api_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def get_rates(self) -> Dict[str, str]:
        """
        Fetch the current rate table, keyed by currency code.

        Each value is the amount of that currency one USD buys, kept as the
        decimal string the provider returned.

        Raises:
            ExchangeRateAPIError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(self.base_url, params={"currency": "USD"})
                response.raise_for_status()
                data = response.json()

                rates = data["data"]["rates"]
                if not isinstance(rates, dict):
                    raise TypeError(f"rates is {type(rates).__name__}, expected object")
                return {str(code): str(rate) for code, rate in rates.items()}

            except httpx.TimeoutException as e:
                raise ExchangeRateAPIError(f"Exchange rate API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ExchangeRateAPIError(f"Exchange rate API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ExchangeRateAPIError(f"Exchange rate API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise ExchangeRateAPIError(f"Invalid rate data from exchange rate API: {e}") from e
