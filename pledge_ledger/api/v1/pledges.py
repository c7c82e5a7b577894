"""POST/GET /v1/pledges - pledge records and their paid totals"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from pledge_ledger.api.v1.schemas import PledgeCreateRequest, PledgeResponse
from pledge_ledger.api.dependencies import get_rate_table, get_request_id
from pledge_ledger.api.errors import parse_id, raise_for_errors
from pledge_ledger.infrastructure.database.session import get_db
from pledge_ledger.infrastructure.database.models import Pledge as PledgeRow
from pledge_ledger.infrastructure.database.repositories import PledgeRepository
from pledge_ledger.infrastructure.observability.metrics import degraded_conversion_counter
from pledge_ledger.domain.currency import is_supported_currency, lookup_rate
from pledge_ledger.domain.exceptions import UnsupportedCurrencyError
from pledge_ledger.domain.money import Money

router = APIRouter()


def _amount(value) -> Optional[str]:
    return str(Money.of(value)) if value is not None else None


def pledge_response(row: PledgeRow, warnings: Optional[List[str]] = None) -> PledgeResponse:
    return PledgeResponse(
        pledge_id=row.id,
        contact_id=row.contact_id,
        description=row.description,
        original_amount=_amount(row.original_amount),
        currency=row.currency,
        total_paid=_amount(row.total_paid),
        balance=_amount(row.balance),
        exchange_rate=f"{Decimal(row.exchange_rate):.4f}" if row.exchange_rate is not None else None,
        original_amount_usd=_amount(row.original_amount_usd),
        total_paid_usd=_amount(row.total_paid_usd),
        balance_usd=_amount(row.balance_usd),
        warnings=warnings or [],
    )


@router.post("/pledges", response_model=PledgeResponse, status_code=201)
def create_pledge(
    request_body: PledgeCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    rates: Dict[str, str] = Depends(get_rate_table),
):
    """
    Record a pledge.

    When no exchange rate is given, the currency's rate is taken from the
    live rate table; if that is unavailable a rate of 1 is stored and the
    response carries a warning.
    """
    request_id = get_request_id(request)
    if not is_supported_currency(request_body.currency):
        raise_for_errors([UnsupportedCurrencyError(request_body.currency)], request_id, "pledge_create")

    warnings = []
    exchange_rate = request_body.exchange_rate
    if exchange_rate is None:
        exchange_rate = lookup_rate(rates, request_body.currency)
        if exchange_rate is None:
            exchange_rate = Decimal(1)
            degraded_conversion_counter.inc()
            warnings.append(f"No exchange rate for {request_body.currency}; a rate of 1 was used")

    try:
        db_pledge = PledgeRepository(db).create_pledge(
            original_amount=Money.of(request_body.original_amount),
            currency=request_body.currency,
            exchange_rate=exchange_rate,
            contact_id=request_body.contact_id,
            description=request_body.description,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    logging.info(
        "Pledge created",
        extra={"request_id": request_id, "step": "pledge_create", "pledge_id": db_pledge.id},
    )
    return pledge_response(db_pledge, warnings)


@router.get("/pledges/{pledge_id}", response_model=PledgeResponse)
def get_pledge(pledge_id: str, db: Session = Depends(get_db)):
    """Retrieve a pledge with its paid totals and balance"""
    db_pledge = PledgeRepository(db).get_pledge_by_id(parse_id(pledge_id, "pledge"))
    if not db_pledge:
        raise HTTPException(status_code=404, detail="Pledge not found")
    return pledge_response(db_pledge)
