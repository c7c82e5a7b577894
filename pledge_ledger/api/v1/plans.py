"""/v1/payment-plans - create, preview, update and transition payment plans"""

import time
import logging
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from pledge_ledger.api.v1.schemas import (
    CustomInstallmentSchema,
    InstallmentSchema,
    PlanCreateRequest,
    PlanPreviewRequest,
    PlanResponse,
    PlanStatusRequest,
    PlanUpdateRequest,
)
from pledge_ledger.api.dependencies import get_request_id
from pledge_ledger.api.errors import parse_id, raise_for_errors
from pledge_ledger.config import settings
from pledge_ledger.infrastructure.database.session import get_db
from pledge_ledger.infrastructure.database.models import PaymentPlan as PlanRow
from pledge_ledger.infrastructure.database.repositories import PaymentPlanRepository, PledgeRepository, plan_to_domain
from pledge_ledger.infrastructure.observability.logging import log_plan_mutation
from pledge_ledger.infrastructure.observability.metrics import record_plan_mutation
from pledge_ledger.domain.exceptions import DomainException, ReferenceNotFoundError
from pledge_ledger.domain.installments import CustomInstallmentInput
from pledge_ledger.domain.money import Money
from pledge_ledger.domain.mutations import (
    PlanChanges,
    PlanPayload,
    PlanRequest,
    prepare_plan_create,
    prepare_plan_update,
    preview_plan,
    transition_plan_status,
)

router = APIRouter()


def _custom_inputs(entries: Optional[List[CustomInstallmentSchema]]) -> Optional[List[CustomInstallmentInput]]:
    if entries is None:
        return None
    return [CustomInstallmentInput(date=e.date, amount=e.amount, notes=e.notes) for e in entries]


def _plan_request(body: PlanPreviewRequest) -> PlanRequest:
    return PlanRequest(
        frequency=body.frequency.value,
        total_planned_amount=body.total_planned_amount,
        currency=body.currency,
        start_date=body.start_date,
        pledge_id=getattr(body, "pledge_id", None),
        distribution_type=body.distribution_type,
        driving_field=body.driving_field,
        number_of_installments=body.number_of_installments,
        installment_amount=body.installment_amount,
        custom_installments=_custom_inputs(body.custom_installments),
        plan_name=getattr(body, "plan_name", None),
        end_date=body.end_date,
        next_payment_date=getattr(body, "next_payment_date", None),
        auto_renew=getattr(body, "auto_renew", False),
        notes=getattr(body, "notes", None),
        internal_notes=getattr(body, "internal_notes", None),
    )


def _amount(value) -> Optional[str]:
    return str(Money.of(value)) if value is not None else None


def plan_response(row: PlanRow, warnings: Optional[List[str]] = None) -> PlanResponse:
    return PlanResponse(
        plan_id=row.id,
        pledge_id=row.pledge_id,
        plan_name=row.plan_name,
        frequency=row.frequency,
        distribution_type=row.distribution_type,
        total_planned_amount=_amount(row.total_planned_amount),
        currency=row.currency,
        installment_amount=_amount(row.installment_amount),
        number_of_installments=row.number_of_installments,
        start_date=row.start_date,
        end_date=row.end_date,
        next_payment_date=row.next_payment_date,
        total_paid=_amount(row.total_paid),
        remaining_amount=_amount(row.remaining_amount),
        status=row.plan_status,
        auto_renew=row.auto_renew,
        exchange_rate=f"{Decimal(row.exchange_rate):.4f}" if row.exchange_rate is not None else None,
        notes=row.notes,
        installments=[
            InstallmentSchema(
                installment_number=inst.installment_number,
                installment_date=inst.installment_date,
                installment_amount=_amount(inst.installment_amount),
                currency=inst.currency,
                status=inst.status,
                notes=inst.notes,
            )
            for inst in row.installments
        ],
        warnings=warnings or [],
    )


def preview_response(payload: PlanPayload) -> PlanResponse:
    fields = payload.fields
    return PlanResponse(
        frequency=fields["frequency"],
        distribution_type=fields["distribution_type"],
        total_planned_amount=fields["total_planned_amount"],
        currency=fields["currency"],
        installment_amount=fields["installment_amount"],
        number_of_installments=fields["number_of_installments"],
        start_date=fields["start_date"],
        end_date=fields["end_date"],
        installments=[
            InstallmentSchema(
                installment_number=inst.installment_number,
                installment_date=inst.installment_date,
                installment_amount=inst.installment_amount,
                currency=inst.currency,
                notes=inst.notes,
            )
            for inst in payload.installments or []
        ],
        warnings=payload.warnings,
    )


def _load_plan(db: Session, plan_id: str) -> PlanRow:
    db_plan = PaymentPlanRepository(db).get_plan_by_id(parse_id(plan_id, "plan"))
    if not db_plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return db_plan


@router.post("/payment-plans/preview", response_model=PlanResponse)
def preview_payment_plan(request_body: PlanPreviewRequest, request: Request):
    """
    Generate the schedule a plan would get, without saving anything.

    Lets a form show installment dates and amounts (and any drift between the
    scheduled sum and the total) before the plan is created.
    """
    result = preview_plan(
        _plan_request(request_body),
        adjust_cents=settings.custom_installment_adjust_cents,
        max_past_days=None,
    )
    if not result.ok:
        raise_for_errors(result.errors, get_request_id(request), "plan_preview")
    return preview_response(result.value)


@router.post("/payment-plans", response_model=PlanResponse, status_code=201)
def create_payment_plan(request_body: PlanCreateRequest, request: Request, db: Session = Depends(get_db)):
    """
    Create a payment plan with its installment schedule.

    Flow:
    1. Load the pledge the plan pays off
    2. Size the plan and generate (fixed) or validate (custom) the schedule
    3. Persist plan + installments
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        pledge = PledgeRepository(db).get_pledges([request_body.pledge_id]).get(request_body.pledge_id)
        if pledge is None:
            raise ReferenceNotFoundError("pledge", request_body.pledge_id, field="pledge_id")

        result = prepare_plan_create(
            _plan_request(request_body),
            pledge,
            adjust_cents=settings.custom_installment_adjust_cents,
            max_past_days=settings.custom_installment_max_past_days,
        )
        if not result.ok:
            raise_for_errors(result.errors, request_id, "plan_create")

        db_plan = PaymentPlanRepository(db).create_plan(result.value)
        db.commit()

    except HTTPException:
        db.rollback()
        raise

    except DomainException as e:
        db.rollback()
        raise_for_errors([e], request_id, "plan_create")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    duration_ms = (time.time() - start_time) * 1000
    record_plan_mutation("create", db_plan.distribution_type)
    log_plan_mutation(
        request_id,
        "create",
        db_plan.id,
        db_plan.pledge_id,
        db_plan.distribution_type,
        db_plan.number_of_installments,
        duration_ms,
        result.warnings,
    )
    return plan_response(db_plan, result.warnings)


@router.get("/payment-plans/{plan_id}", response_model=PlanResponse)
def get_payment_plan(plan_id: str, db: Session = Depends(get_db)):
    """Retrieve payment plan with installment schedule"""
    return plan_response(_load_plan(db, plan_id))


@router.patch("/payment-plans/{plan_id}", response_model=PlanResponse)
def update_payment_plan(
    plan_id: str,
    request_body: PlanUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Update a payment plan.

    Sending edited installments with installments_modified=true converts a
    fixed plan to a custom one; resizing a fixed plan regenerates its
    schedule.
    """
    start_time = time.time()
    request_id = get_request_id(request)
    db_plan = _load_plan(db, plan_id)

    changes = PlanChanges(
        plan_name=request_body.plan_name,
        frequency=request_body.frequency.value if request_body.frequency else None,
        distribution_type=request_body.distribution_type,
        driving_field=request_body.driving_field,
        total_planned_amount=request_body.total_planned_amount,
        currency=request_body.currency,
        installment_amount=request_body.installment_amount,
        number_of_installments=request_body.number_of_installments,
        start_date=request_body.start_date,
        end_date=request_body.end_date,
        next_payment_date=request_body.next_payment_date,
        auto_renew=request_body.auto_renew,
        status=request_body.status,
        notes=request_body.notes,
        internal_notes=request_body.internal_notes,
        custom_installments=_custom_inputs(request_body.custom_installments),
        installments_modified=request_body.installments_modified,
    )

    try:
        result = prepare_plan_update(plan_to_domain(db_plan), changes)
        if not result.ok:
            raise_for_errors(result.errors, request_id, "plan_update")

        PaymentPlanRepository(db).update_plan(db_plan, result.value)
        db.commit()
        db.refresh(db_plan)

    except HTTPException:
        db.rollback()
        raise

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    duration_ms = (time.time() - start_time) * 1000
    record_plan_mutation("update", db_plan.distribution_type)
    log_plan_mutation(
        request_id,
        "update",
        db_plan.id,
        db_plan.pledge_id,
        db_plan.distribution_type,
        db_plan.number_of_installments,
        duration_ms,
        result.warnings,
    )
    return plan_response(db_plan, result.warnings)


@router.post("/payment-plans/{plan_id}/status", response_model=PlanResponse)
def change_plan_status(
    plan_id: str,
    request_body: PlanStatusRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Pause, resume, complete or cancel a plan"""
    request_id = get_request_id(request)
    db_plan = _load_plan(db, plan_id)

    result = transition_plan_status(plan_to_domain(db_plan).status, request_body.action)
    if not result.ok:
        raise_for_errors(result.errors, request_id, "plan_status")

    try:
        db_plan.plan_status = result.value.value
        db.commit()
        db.refresh(db_plan)

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    record_plan_mutation("status", db_plan.distribution_type)
    logging.info(
        f"Payment plan {request_body.action} completed",
        extra={"request_id": request_id, "step": "plan_status", "plan_id": db_plan.id, "status": db_plan.plan_status},
    )
    return plan_response(db_plan)
