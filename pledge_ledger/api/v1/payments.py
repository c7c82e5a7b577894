"""/v1/payments - direct and split payments against pledges"""

import time
import logging
from decimal import Decimal
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from pledge_ledger.api.v1.schemas import (
    AllocationRequest,
    AllocationResponse,
    PaymentCreateRequest,
    PaymentResponse,
    PaymentUpdateRequest,
    SplitPaymentUpdateRequest,
)
from pledge_ledger.api.dependencies import get_rate_table, get_request_id
from pledge_ledger.api.errors import parse_id, raise_for_errors
from pledge_ledger.infrastructure.database.session import get_db
from pledge_ledger.infrastructure.database.models import Payment as PaymentRow
from pledge_ledger.infrastructure.database.repositories import (
    PaymentPlanRepository,
    PaymentRepository,
    PledgeRepository,
    payment_to_domain,
)
from pledge_ledger.infrastructure.observability.logging import log_payment_mutation
from pledge_ledger.infrastructure.observability.metrics import record_degraded_conversions, record_payment_mutation
from pledge_ledger.domain.currency import lookup_rate
from pledge_ledger.domain.exceptions import DomainException, ReferenceNotFoundError
from pledge_ledger.domain.models import PaymentAllocation
from pledge_ledger.domain.money import Money
from pledge_ledger.domain.mutations import (
    PaymentChanges,
    PaymentPayload,
    PaymentRequest,
    prepare_payment_create,
    prepare_payment_update,
    prepare_split_payment_update,
)

router = APIRouter()


def _allocations(entries: Optional[List[AllocationRequest]]) -> Optional[List[PaymentAllocation]]:
    if entries is None:
        return None
    return [
        PaymentAllocation(id=e.id, pledge_id=e.pledge_id, allocated_amount=e.allocated_amount, notes=e.notes)
        for e in entries
    ]


def _changes(body: PaymentUpdateRequest) -> PaymentChanges:
    return PaymentChanges(
        amount=body.amount,
        currency=body.currency,
        exchange_rate=body.exchange_rate,
        payment_date=body.payment_date,
        received_date=body.received_date,
        payment_method=body.payment_method,
        status=body.status,
        pledge_id=body.pledge_id,
        reference_number=body.reference_number,
        notes=body.notes,
    )


def _amount(value) -> Optional[str]:
    return str(Money.of(value)) if value is not None else None


def payment_response(row: PaymentRow, warnings: Optional[List[str]] = None) -> PaymentResponse:
    return PaymentResponse(
        payment_id=row.id,
        pledge_id=row.pledge_id,
        payment_plan_id=row.payment_plan_id,
        amount=_amount(row.amount),
        currency=row.currency,
        exchange_rate=f"{Decimal(row.exchange_rate):.4f}",
        amount_usd=_amount(row.amount_usd),
        amount_in_pledge_currency=_amount(row.amount_in_pledge_currency),
        payment_date=row.payment_date,
        received_date=row.received_date,
        payment_method=row.payment_method,
        status=row.payment_status,
        reference_number=row.reference_number,
        notes=row.notes,
        is_split=bool(row.allocations),
        allocations=[
            AllocationResponse(
                allocation_id=alloc.id,
                pledge_id=alloc.pledge_id,
                allocated_amount=_amount(alloc.allocated_amount),
                allocated_amount_usd=_amount(alloc.allocated_amount_usd),
                amount_in_pledge_currency=_amount(alloc.amount_in_pledge_currency),
                currency=alloc.currency,
                notes=alloc.notes,
            )
            for alloc in row.allocations
        ],
        warnings=warnings or [],
    )


def _load_payment(db: Session, payment_id: str) -> PaymentRow:
    db_payment = PaymentRepository(db).get_payment_by_id(parse_id(payment_id, "payment"))
    if not db_payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return db_payment


def _refresh_totals(db: Session, payload: PaymentPayload, plan_ids) -> None:
    """Bring pledge and plan totals in line with the stored payments"""
    PledgeRepository(db).refresh_totals(payload.pledge_ids)
    plan_repo = PaymentPlanRepository(db)
    for plan_id in {pid for pid in plan_ids if pid is not None}:
        plan_repo.refresh_totals(plan_id)


def _finish(
    db_payment: PaymentRow,
    payload: PaymentPayload,
    operation: str,
    request_id: str,
    start_time: float,
) -> PaymentResponse:
    duration_ms = (time.time() - start_time) * 1000
    is_split = bool(db_payment.allocations)
    record_payment_mutation(operation, is_split)
    record_degraded_conversions(payload.warnings)
    log_payment_mutation(
        request_id,
        operation,
        db_payment.id,
        "split" if is_split else "direct",
        list(payload.pledge_ids),
        duration_ms,
        payload.warnings,
    )
    return payment_response(db_payment, payload.warnings)


@router.post("/payments", response_model=PaymentResponse, status_code=201)
def create_payment(
    request_body: PaymentCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    rates: Dict[str, str] = Depends(get_rate_table),
):
    """
    Record a payment.

    Flow:
    1. Resolve the exchange rate to USD (given, or from the rate table)
    2. Validate shape, pledges and, for split payments, allocations
    3. Persist payment (+ allocations)
    4. Recompute paid totals of every touched pledge and plan
    """
    start_time = time.time()
    request_id = get_request_id(request)
    warnings = []

    exchange_rate = request_body.exchange_rate
    if exchange_rate is None:
        exchange_rate = lookup_rate(rates, request_body.currency)
        if exchange_rate is None:
            exchange_rate = Decimal(1)
            warnings.append(f"No exchange rate for {request_body.currency}; a rate of 1 was used")

    allocations = _allocations(request_body.allocations) or []
    pledge_ids = {request_body.pledge_id} | {a.pledge_id for a in allocations}

    try:
        if request_body.payment_plan_id is not None:
            if PaymentPlanRepository(db).get_plan_by_id(request_body.payment_plan_id) is None:
                raise ReferenceNotFoundError("plan", request_body.payment_plan_id, field="payment_plan_id")

        result = prepare_payment_create(
            PaymentRequest(
                amount=request_body.amount,
                currency=request_body.currency,
                exchange_rate=exchange_rate,
                payment_date=request_body.payment_date,
                payment_method=request_body.payment_method,
                status=request_body.status,
                pledge_id=request_body.pledge_id,
                allocations=allocations,
                received_date=request_body.received_date,
                payment_plan_id=request_body.payment_plan_id,
                reference_number=request_body.reference_number,
                notes=request_body.notes,
            ),
            PledgeRepository(db).get_pledges(pledge_ids),
            rates,
        )
        if not result.ok:
            raise_for_errors(result.errors, request_id, "payment_create")
        payload = result.value
        payload.warnings[:0] = warnings

        db_payment = PaymentRepository(db).create_payment(payload)
        _refresh_totals(db, payload, [db_payment.payment_plan_id])
        db.commit()
        db.refresh(db_payment)

    except HTTPException:
        db.rollback()
        raise

    except DomainException as e:
        db.rollback()
        raise_for_errors([e], request_id, "payment_create")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return _finish(db_payment, payload, "create", request_id, start_time)


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: str, db: Session = Depends(get_db)):
    """Retrieve a payment with its allocations"""
    return payment_response(_load_payment(db, payment_id))


@router.patch("/payments/{payment_id}", response_model=PaymentResponse)
def update_payment(
    payment_id: str,
    request_body: PaymentUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    rates: Dict[str, str] = Depends(get_rate_table),
):
    """Update a direct payment; split payments are edited through /allocations"""
    start_time = time.time()
    request_id = get_request_id(request)
    db_payment = _load_payment(db, payment_id)

    try:
        existing = payment_to_domain(db_payment)
        changes = _changes(request_body)
        pledges = PledgeRepository(db).get_pledges({existing.pledge_id, changes.pledge_id})

        result = prepare_payment_update(existing, changes, pledges, rates)
        if not result.ok:
            raise_for_errors(result.errors, request_id, "payment_update")
        payload = result.value

        PaymentRepository(db).update_payment(db_payment, payload)
        _refresh_totals(db, payload, [db_payment.payment_plan_id])
        db.commit()
        db.refresh(db_payment)

    except HTTPException:
        db.rollback()
        raise

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return _finish(db_payment, payload, "update", request_id, start_time)


@router.patch("/payments/{payment_id}/allocations", response_model=PaymentResponse)
def update_split_payment(
    payment_id: str,
    request_body: SplitPaymentUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    rates: Dict[str, str] = Depends(get_rate_table),
):
    """
    Update a split payment and replace its allocation set.

    Allocations listed with an id are updated, ones without are added, and
    stored allocations left out are removed. Omitting allocations entirely
    keeps the stored set, re-checked against the new payment amount.
    """
    start_time = time.time()
    request_id = get_request_id(request)
    db_payment = _load_payment(db, payment_id)

    try:
        existing = payment_to_domain(db_payment)
        allocations = _allocations(request_body.allocations)
        pledge_ids = {a.pledge_id for a in existing.allocations} | {a.pledge_id for a in allocations or []}

        result = prepare_split_payment_update(
            existing,
            _changes(request_body),
            allocations,
            PledgeRepository(db).get_pledges(pledge_ids),
            rates,
        )
        if not result.ok:
            raise_for_errors(result.errors, request_id, "payment_allocations_update")
        payload = result.value

        PaymentRepository(db).update_payment(db_payment, payload)
        _refresh_totals(db, payload, [db_payment.payment_plan_id])
        db.commit()
        db.refresh(db_payment)

    except HTTPException:
        db.rollback()
        raise

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return _finish(db_payment, payload, "update", request_id, start_time)
