"""GET /v1/exchange-rates/convert - convert an amount with the live rate table"""

from decimal import Decimal
from typing import Dict
from fastapi import APIRouter, Depends, Query, Request

from pledge_ledger.api.v1.schemas import ConversionResponse
from pledge_ledger.api.dependencies import get_rate_table, get_request_id
from pledge_ledger.api.errors import raise_for_errors
from pledge_ledger.infrastructure.observability.metrics import record_degraded_conversions
from pledge_ledger.domain.currency import convert
from pledge_ledger.domain.money import Money

router = APIRouter()


@router.get("/exchange-rates/convert", response_model=ConversionResponse)
def convert_amount(
    request: Request,
    amount: Decimal = Query(..., description="Amount in the source currency"),
    from_currency: str = Query(..., min_length=3, max_length=3),
    to_currency: str = Query(..., min_length=3, max_length=3),
    rates: Dict[str, str] = Depends(get_rate_table),
):
    """
    Convert an amount between supported currencies via USD.

    Returns:
        Converted amount rounded to the cent, flagged degraded when a rate
        was missing and 1 was used instead
    """
    result = convert(amount, from_currency, to_currency, rates)
    if not result.ok:
        raise_for_errors(result.errors, get_request_id(request), "convert")

    conversion = result.value
    record_degraded_conversions(result.warnings)
    return ConversionResponse(
        amount=str(Money.of(amount)),
        from_currency=from_currency,
        to_currency=to_currency,
        converted_amount=str(Money.of(conversion.amount)),
        degraded=conversion.degraded,
        missing_rates=conversion.missing_rates,
        warnings=result.warnings,
    )
