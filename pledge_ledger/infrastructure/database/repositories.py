"""Data access layer for pledges, payment plans and payments"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from pledge_ledger.infrastructure.database.models import (
    Payment as PaymentRow,
    PaymentAllocation as AllocationRow,
    PaymentPlan as PlanRow,
    InstallmentSchedule as InstallmentRow,
    Pledge as PledgeRow,
)
from pledge_ledger.domain.models import (
    DistributionType,
    Installment,
    Payment,
    PaymentAllocation,
    PaymentPlan,
    PaymentStatus,
    PlanStatus,
    Pledge,
)
from pledge_ledger.domain.mutations import PaymentPayload, PlanPayload
from pledge_ledger.domain.money import Money, ZERO, format_rate

NUMERIC_COLUMNS = {
    "amount",
    "amount_usd",
    "amount_in_pledge_currency",
    "exchange_rate",
    "total_planned_amount",
    "installment_amount",
    "remaining_amount",
    "total_paid",
    "allocated_amount",
    "allocated_amount_usd",
}


def _column_values(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Payload values ready for assignment; decimal strings become Decimal"""
    return {
        key: Decimal(value) if key in NUMERIC_COLUMNS and isinstance(value, str) else value
        for key, value in record.items()
    }


def _money(value) -> Optional[Money]:
    return Money.of(value) if value is not None else None


# ---------------------------------------------------------------------------
# Row -> domain conversion
# ---------------------------------------------------------------------------


def pledge_to_domain(row: PledgeRow) -> Pledge:
    return Pledge(
        id=row.id,
        original_amount=Money.of(row.original_amount),
        currency=row.currency,
        total_paid=Money.of(row.total_paid or 0),
        balance=_money(row.balance),
        exchange_rate=row.exchange_rate,
        original_amount_usd=_money(row.original_amount_usd),
        total_paid_usd=_money(row.total_paid_usd),
        balance_usd=_money(row.balance_usd),
        contact_id=row.contact_id,
        description=row.description,
    )


def plan_to_domain(row: PlanRow) -> PaymentPlan:
    return PaymentPlan(
        id=row.id,
        pledge_id=row.pledge_id,
        plan_name=row.plan_name,
        frequency=row.frequency,
        distribution_type=DistributionType(row.distribution_type),
        total_planned_amount=Money.of(row.total_planned_amount),
        currency=row.currency,
        installment_amount=Money.of(row.installment_amount),
        number_of_installments=row.number_of_installments,
        start_date=row.start_date,
        end_date=row.end_date,
        next_payment_date=row.next_payment_date,
        status=PlanStatus(row.plan_status),
        auto_renew=row.auto_renew,
        total_paid=Money.of(row.total_paid or 0),
        exchange_rate=row.exchange_rate,
        notes=row.notes,
        internal_notes=row.internal_notes,
        installments=[
            Installment(
                installment_number=inst.installment_number,
                date=inst.installment_date,
                amount=Money.of(inst.installment_amount),
                currency=inst.currency,
                is_paid=inst.status == "paid",
                paid_date=inst.paid_date,
                paid_amount=_money(inst.paid_amount),
                notes=inst.notes,
            )
            for inst in row.installments
        ],
    )


def payment_to_domain(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        amount=Money.of(row.amount),
        currency=row.currency,
        exchange_rate=row.exchange_rate,
        payment_date=row.payment_date,
        payment_method=row.payment_method,
        status=PaymentStatus(row.payment_status),
        pledge_id=row.pledge_id,
        amount_usd=_money(row.amount_usd),
        amount_in_pledge_currency=_money(row.amount_in_pledge_currency),
        received_date=row.received_date,
        payment_plan_id=row.payment_plan_id,
        reference_number=row.reference_number,
        notes=row.notes,
        allocations=[
            PaymentAllocation(
                id=alloc.id,
                payment_id=alloc.payment_id,
                pledge_id=alloc.pledge_id,
                allocated_amount=Money.of(alloc.allocated_amount),
                allocated_amount_usd=_money(alloc.allocated_amount_usd),
                amount_in_pledge_currency=_money(alloc.amount_in_pledge_currency),
                currency=alloc.currency,
                notes=alloc.notes,
            )
            for alloc in row.allocations
        ],
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class PledgeRepository:
    """Repository for pledges and their paid totals"""

    def __init__(self, db: Session):
        self.db = db

    def create_pledge(
        self,
        original_amount: Money,
        currency: str,
        exchange_rate: Decimal,
        contact_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> PledgeRow:
        """Persist a new pledge with nothing paid yet"""
        original_usd = Money.of(original_amount.amount * exchange_rate)
        db_pledge = PledgeRow(
            contact_id=contact_id,
            description=description,
            original_amount=original_amount.amount,
            currency=currency,
            total_paid=ZERO.amount,
            balance=original_amount.amount,
            exchange_rate=Decimal(format_rate(exchange_rate)),
            original_amount_usd=original_usd.amount,
            total_paid_usd=ZERO.amount,
            balance_usd=original_usd.amount,
        )
        self.db.add(db_pledge)
        self.db.flush()  # Get ID without committing
        return db_pledge

    def get_pledge_by_id(self, pledge_id: int) -> Optional[PledgeRow]:
        return self.db.query(PledgeRow).filter(PledgeRow.id == pledge_id).first()

    def get_pledges(self, pledge_ids: Iterable[int]) -> Dict[int, Pledge]:
        """Domain pledges keyed by id; unknown ids are simply absent"""
        ids = {pid for pid in pledge_ids if pid is not None}
        if not ids:
            return {}
        rows = self.db.query(PledgeRow).filter(PledgeRow.id.in_(ids)).all()
        return {row.id: pledge_to_domain(row) for row in rows}

    def refresh_totals(self, pledge_ids: Iterable[int]) -> None:
        """
        Recompute paid totals and balances from completed payments.

        A pledge is paid by direct payments linked to it and by allocations
        of split payments targeting it, both in the pledge's currency.
        """
        completed = PaymentStatus.COMPLETED.value
        for pledge_id in set(pledge_ids):
            pledge = self.get_pledge_by_id(pledge_id)
            if pledge is None:
                continue

            direct_paid, direct_usd = (
                self.db.query(
                    func.coalesce(func.sum(PaymentRow.amount_in_pledge_currency), 0),
                    func.coalesce(func.sum(PaymentRow.amount_usd), 0),
                )
                .filter(PaymentRow.pledge_id == pledge_id, PaymentRow.payment_status == completed)
                .one()
            )
            allocated_paid, allocated_usd = (
                self.db.query(
                    func.coalesce(func.sum(AllocationRow.amount_in_pledge_currency), 0),
                    func.coalesce(func.sum(AllocationRow.allocated_amount_usd), 0),
                )
                .select_from(AllocationRow)
                .join(PaymentRow, AllocationRow.payment_id == PaymentRow.id)
                .filter(AllocationRow.pledge_id == pledge_id, PaymentRow.payment_status == completed)
                .one()
            )

            total_paid = Money.of(direct_paid) + Money.of(allocated_paid)
            balance = Money.of(pledge.original_amount) - total_paid
            pledge.total_paid = total_paid.amount
            pledge.balance = max(balance, ZERO).amount

            total_paid_usd = Money.of(direct_usd) + Money.of(allocated_usd)
            pledge.total_paid_usd = total_paid_usd.amount
            if pledge.original_amount_usd is not None:
                balance_usd = Money.of(pledge.original_amount_usd) - total_paid_usd
                pledge.balance_usd = max(balance_usd, ZERO).amount

        self.db.flush()


class PaymentPlanRepository:
    """Repository for payment plans and their installment schedules"""

    def __init__(self, db: Session):
        self.db = db

    def create_plan(self, payload: PlanPayload) -> PlanRow:
        """Create payment plan with installments"""
        db_plan = PlanRow(**_column_values(payload.fields))
        self.db.add(db_plan)
        self.db.flush()

        self._replace_installments(db_plan, payload)
        return db_plan

    def get_plan_by_id(self, plan_id: int) -> Optional[PlanRow]:
        """Fetch plan with installments"""
        return self.db.query(PlanRow).filter(PlanRow.id == plan_id).first()

    def update_plan(self, db_plan: PlanRow, payload: PlanPayload) -> PlanRow:
        """Apply an update payload; a new schedule replaces the stored one"""
        for key, value in _column_values(payload.fields).items():
            setattr(db_plan, key, value)
        if payload.installments is not None:
            self._replace_installments(db_plan, payload)
        self.db.flush()
        return db_plan

    def _replace_installments(self, db_plan: PlanRow, payload: PlanPayload) -> None:
        db_plan.installments.clear()
        self.db.flush()
        for inst in payload.installments or []:
            db_plan.installments.append(
                InstallmentRow(
                    installment_number=inst.installment_number,
                    installment_date=inst.installment_date,
                    installment_amount=Decimal(inst.installment_amount),
                    currency=inst.currency,
                    notes=inst.notes,
                )
            )
        self.db.flush()

    def refresh_totals(self, plan_id: Optional[int]) -> None:
        """Recompute paid amount, paid count and remaining amount from completed payments"""
        if plan_id is None:
            return
        db_plan = self.get_plan_by_id(plan_id)
        if db_plan is None:
            return

        paid, count = (
            self.db.query(func.coalesce(func.sum(PaymentRow.amount), 0), func.count(PaymentRow.id))
            .filter(
                PaymentRow.payment_plan_id == plan_id,
                PaymentRow.payment_status == PaymentStatus.COMPLETED.value,
            )
            .one()
        )
        total_paid = Money.of(paid)
        remaining = Money.of(db_plan.total_planned_amount) - total_paid
        db_plan.total_paid = total_paid.amount
        db_plan.installments_paid = count
        db_plan.remaining_amount = max(remaining, ZERO).amount
        self.db.flush()


class PaymentRepository:
    """Repository for payments and split allocations"""

    def __init__(self, db: Session):
        self.db = db

    def create_payment(self, payload: PaymentPayload) -> PaymentRow:
        """Persist payment and, for split payments, its allocations"""
        db_payment = PaymentRow(**_column_values(payload.fields))
        self.db.add(db_payment)
        self.db.flush()

        for allocation in payload.allocations or []:
            record = _column_values(allocation.as_record())
            record.pop("id")
            db_payment.allocations.append(AllocationRow(**record))
        self.db.flush()
        return db_payment

    def get_payment_by_id(self, payment_id: int) -> Optional[PaymentRow]:
        return self.db.query(PaymentRow).filter(PaymentRow.id == payment_id).first()

    def update_payment(self, db_payment: PaymentRow, payload: PaymentPayload) -> PaymentRow:
        """
        Apply an update payload.

        A payload allocation list replaces the stored set: entries with an id
        update that allocation, entries without one are added, and stored
        allocations not mentioned are removed.
        """
        for key, value in _column_values(payload.fields).items():
            setattr(db_payment, key, value)

        if payload.allocations is not None:
            existing = {alloc.id: alloc for alloc in db_payment.allocations}
            kept: List[AllocationRow] = []
            for allocation in payload.allocations:
                record = _column_values(allocation.as_record())
                allocation_id = record.pop("id")
                row = existing.get(allocation_id) if allocation_id is not None else None
                if row is None:
                    row = AllocationRow(**record)
                else:
                    for key, value in record.items():
                        setattr(row, key, value)
                kept.append(row)
            db_payment.allocations[:] = kept

        self.db.flush()
        return db_payment
