"""Dependency injection for FastAPI endpoints"""

import logging
from typing import Dict
from fastapi import Depends, Request
from pledge_ledger.domain.exceptions import ExchangeRateAPIError
from pledge_ledger.infrastructure.clients.exchange_rates import ExchangeRateClient
from pledge_ledger.infrastructure.observability.metrics import rate_fetch_failures_counter


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_exchange_rate_client() -> ExchangeRateClient:
    """Provide exchange rate API client instance"""
    return ExchangeRateClient()


async def get_rate_table(
    request: Request,
    client: ExchangeRateClient = Depends(get_exchange_rate_client),
) -> Dict[str, str]:
    """
    Current USD rate table for conversions.

    An unavailable provider yields an empty table: conversions then fall
    back to a rate of 1 and say so in their warnings.
    """
    try:
        return await client.get_rates()
    except ExchangeRateAPIError as e:
        rate_fetch_failures_counter.inc()
        logging.warning(
            f"Exchange rate API error: {e}",
            extra={"request_id": get_request_id(request), "step": "rate_fetch"},
        )
        return {}
