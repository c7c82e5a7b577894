"""
Plan and payment mutation orchestration.

Turns a create/update request plus the current records into a fully formed
payload for the persistence layer, or into structured errors. Nothing here
touches the database: repositories apply the payloads.

Every numeric value in a payload is a fixed-precision decimal string
("3100.00", rates "3.6500"), never a float.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from pledge_ledger.domain.allocations import validate_allocations
from pledge_ledger.domain.currency import convert, is_supported_currency
from pledge_ledger.domain.exceptions import (
    DomainException,
    NotASplitPaymentError,
    ReferenceNotFoundError,
    UnsupportedCurrencyError,
    ValidationError,
    WrongPaymentShapeError,
)
from pledge_ledger.domain.installments import (
    CustomInstallmentInput,
    calculate_end_date,
    generate_installment_schedule,
    normalize_custom_installments,
    reconcile_installments,
    resolve_frequency,
    schedule_from_amounts,
)
from pledge_ledger.domain.models import (
    DistributionType,
    DrivingField,
    Installment,
    Payment,
    PaymentAllocation,
    PaymentPlan,
    PaymentStatus,
    PlanStatus,
    Pledge,
)
from pledge_ledger.domain.money import Money, ZERO, format_rate, to_decimal
from pledge_ledger.domain.results import Result

# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass
class InstallmentPayload:
    installment_number: int
    installment_date: date
    installment_amount: str
    currency: str
    notes: Optional[str] = None

    @classmethod
    def from_installment(cls, installment: Installment) -> "InstallmentPayload":
        return cls(
            installment_number=installment.installment_number,
            installment_date=installment.date,
            installment_amount=str(installment.amount),
            currency=installment.currency,
            notes=installment.notes,
        )

    def as_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PlanPayload:
    """Column values to write; installments None means the stored schedule is kept"""

    fields: Dict[str, Any]
    installments: Optional[List[InstallmentPayload]] = None
    warnings: List[str] = field(default_factory=list)

    def as_record(self) -> Dict[str, Any]:
        record = dict(self.fields)
        if self.installments is not None:
            record["installments"] = [inst.as_record() for inst in self.installments]
        return record


@dataclass
class AllocationPayload:
    pledge_id: int
    allocated_amount: str
    allocated_amount_usd: str
    amount_in_pledge_currency: str
    currency: str
    id: Optional[int] = None
    notes: Optional[str] = None

    def as_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PaymentPayload:
    """
    Column values to write for a payment.

    allocations None means the stored allocations are kept; a list replaces
    them (entries with an id are updated in place). pledge_ids lists every
    pledge whose paid totals must be recomputed afterwards.
    """

    fields: Dict[str, Any]
    allocations: Optional[List[AllocationPayload]] = None
    pledge_ids: Set[int] = field(default_factory=set)
    warnings: List[str] = field(default_factory=list)

    def as_record(self) -> Dict[str, Any]:
        record = dict(self.fields)
        if self.allocations is not None:
            record["allocations"] = [a.as_record() for a in self.allocations]
        return record


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass
class PlanRequest:
    frequency: str
    total_planned_amount: Any
    currency: str
    start_date: date
    pledge_id: Optional[int] = None
    distribution_type: DistributionType = DistributionType.FIXED
    driving_field: DrivingField = DrivingField.TOTAL
    number_of_installments: Optional[int] = None
    installment_amount: Any = None
    custom_installments: Optional[List[CustomInstallmentInput]] = None
    plan_name: Optional[str] = None
    end_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    auto_renew: bool = False
    notes: Optional[str] = None
    internal_notes: Optional[str] = None


@dataclass
class PlanChanges:
    """Partial plan update; None means "not provided" """

    plan_name: Optional[str] = None
    frequency: Optional[str] = None
    distribution_type: Optional[DistributionType] = None
    driving_field: DrivingField = DrivingField.TOTAL
    total_planned_amount: Any = None
    currency: Optional[str] = None
    installment_amount: Any = None
    number_of_installments: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    auto_renew: Optional[bool] = None
    status: Optional[PlanStatus] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    custom_installments: Optional[List[CustomInstallmentInput]] = None
    installments_modified: bool = False  # user edited individual installment dates/amounts


@dataclass
class PaymentRequest:
    amount: Any
    currency: str
    exchange_rate: Decimal
    payment_date: date
    payment_method: str
    status: PaymentStatus = PaymentStatus.COMPLETED
    pledge_id: Optional[int] = None
    allocations: List[PaymentAllocation] = field(default_factory=list)
    received_date: Optional[date] = None
    payment_plan_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class PaymentChanges:
    """Partial payment update; None means "not provided" """

    amount: Any = None
    currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    payment_date: Optional[date] = None
    received_date: Optional[date] = None
    payment_method: Optional[str] = None
    status: Optional[PaymentStatus] = None
    pledge_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


PASSTHROUGH_PAYMENT_FIELDS = ("payment_date", "received_date", "payment_method", "reference_number", "notes")
PASSTHROUGH_PLAN_FIELDS = ("plan_name", "end_date", "next_payment_date", "auto_renew", "notes", "internal_notes")

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _positive_money(value, field_name: str, label: str) -> Result[Money]:
    try:
        amount = Money.of(value)
        whole_cents = Money.is_whole_cents(value)
    except ValueError:
        return Result.failure(ValidationError(f"{label} must be a number", field_name))
    if not amount.is_positive():
        return Result.failure(ValidationError(f"{label} must be positive", field_name))
    if not whole_cents:
        return Result.failure(ValidationError(f"{label} cannot have more than 2 decimal places", field_name))
    return Result.success(amount)


def _positive_rate(value, field_name: str = "exchange_rate") -> Result[Decimal]:
    try:
        rate = to_decimal(value)
    except ValueError:
        return Result.failure(ValidationError("Exchange rate must be a number", field_name))
    if rate <= 0:
        return Result.failure(ValidationError("Exchange rate must be positive", field_name))
    return Result.success(rate)


def _usd_amount(amount: Money, exchange_rate: Decimal) -> Money:
    return Money.of(amount.amount * exchange_rate)


def _in_pledge_currency(
    amount: Money,
    currency: str,
    pledge: Pledge,
    rates: Optional[Mapping[str, str]],
    warnings: List[str],
) -> Result[Money]:
    conversion = convert(amount.amount, currency, pledge.currency, rates)
    if not conversion.ok:
        return Result.failure(*conversion.errors)
    warnings.extend(conversion.warnings)
    return Result.success(Money.of(conversion.value.amount))


def _average_installment(total: Money, count: int) -> Money:
    """Reference installment amount of a custom plan (floored average)"""
    return Money(total.cents // count) if count else ZERO


def _installment_payloads(installments: Sequence[Installment]) -> List[InstallmentPayload]:
    return [InstallmentPayload.from_installment(inst) for inst in installments]


# ---------------------------------------------------------------------------
# Payment plans
# ---------------------------------------------------------------------------


def _fixed_schedule(
    total: Money,
    frequency: str,
    start_date: date,
    currency: str,
    driving_field: DrivingField,
    count: Optional[int],
    installment_amount,
) -> Result[List[Installment]]:
    reconciliation = reconcile_installments(total, driving_field, count=count, installment_amount=installment_amount)
    if not reconciliation.ok:
        return Result.failure(*reconciliation.errors)
    rec = reconciliation.value

    if driving_field is DrivingField.TOTAL:
        installments = generate_installment_schedule(start_date, frequency, rec.number_of_installments, total, currency)
    else:
        installments = schedule_from_amounts(start_date, frequency, rec.amounts, currency)
    if any(not inst.amount.is_positive() for inst in installments):
        return Result.failure(
            ValidationError(
                f"{total} cannot be split into {len(installments)} installments of at least 0.01",
                "number_of_installments",
            )
        )
    return Result.success(installments, warnings=reconciliation.warnings)


def preview_plan(
    request: PlanRequest,
    today: Optional[date] = None,
    adjust_cents: int = 2,
    max_past_days: Optional[int] = 30,
) -> Result[PlanPayload]:
    """
    Size a plan and generate its schedule without binding it to a pledge.

    Fixed plans are sized by the request's driving field and their schedule
    generated; custom plans take their count and total from the entries,
    after absorbing up to adjust_cents of drift into the last entry.
    """
    if not is_supported_currency(request.currency):
        return Result.failure(UnsupportedCurrencyError(request.currency))

    total_result = _positive_money(request.total_planned_amount, "total_planned_amount", "Total planned amount")
    if not total_result.ok:
        return Result.failure(*total_result.errors)
    total = total_result.value

    if request.distribution_type is DistributionType.CUSTOM:
        schedule = normalize_custom_installments(
            request.custom_installments or [],
            request.currency,
            expected_total=total,
            adjust_cents=adjust_cents,
            today=today,
            max_past_days=max_past_days,
        )
    else:
        schedule = _fixed_schedule(
            total,
            request.frequency,
            request.start_date,
            request.currency,
            request.driving_field,
            request.number_of_installments,
            request.installment_amount,
        )
    if not schedule.ok:
        return Result.failure(*schedule.errors)
    installments = schedule.value

    if request.distribution_type is DistributionType.CUSTOM:
        total = Money.total(inst.amount for inst in installments)
        installment_amount = _average_installment(total, len(installments))
    else:
        installment_amount = installments[0].amount

    fields = {
        "frequency": resolve_frequency(request.frequency)[0].value,
        "distribution_type": request.distribution_type.value,
        "total_planned_amount": str(total),
        "currency": request.currency,
        "installment_amount": str(installment_amount),
        "number_of_installments": len(installments),
        "start_date": request.start_date,
        "end_date": request.end_date or max(inst.date for inst in installments),
    }
    return Result.success(
        PlanPayload(fields, _installment_payloads(installments), list(schedule.warnings)),
        warnings=schedule.warnings,
    )


def prepare_plan_create(
    request: PlanRequest,
    pledge: Pledge,
    today: Optional[date] = None,
    adjust_cents: int = 2,
    max_past_days: Optional[int] = 30,
) -> Result[PlanPayload]:
    """Build the insert payload and schedule for a new payment plan on a pledge"""
    preview = preview_plan(request, today=today, adjust_cents=adjust_cents, max_past_days=max_past_days)
    if not preview.ok:
        return preview
    payload = preview.value

    payload.fields.update(
        {
            "pledge_id": pledge.id,
            "plan_name": request.plan_name,
            "next_payment_date": request.next_payment_date or request.start_date,
            "remaining_amount": payload.fields["total_planned_amount"],
            "total_paid": str(ZERO),
            "plan_status": PlanStatus.ACTIVE.value,
            "auto_renew": request.auto_renew,
            "exchange_rate": format_rate(pledge.exchange_rate) if pledge.exchange_rate is not None else None,
            "notes": request.notes,
            "internal_notes": request.internal_notes,
        }
    )
    return Result.success(payload, warnings=preview.warnings)


def prepare_plan_update(existing: PaymentPlan, changes: PlanChanges) -> Result[PlanPayload]:
    """
    Build the update payload for an existing plan.

    - Editing individual installments of a fixed plan (installments_modified)
      promotes it to custom: total and count are recomputed from the edited
      list. The promotion cannot be undone within the same save.
    - An explicit switch to custom needs installments matching the total.
    - Fixed plans whose sizing or dates change get a regenerated schedule;
      switching back to fixed regenerates a uniform one.
    """
    fields: Dict[str, Any] = {}
    warnings: List[str] = []

    for name in PASSTHROUGH_PLAN_FIELDS:
        value = getattr(changes, name)
        if value is not None:
            fields[name] = value
    if changes.status is not None:
        fields["plan_status"] = changes.status.value

    currency = changes.currency or existing.currency
    if not is_supported_currency(currency):
        return Result.failure(UnsupportedCurrencyError(currency))
    if changes.currency is not None:
        fields["currency"] = currency

    frequency = changes.frequency or existing.frequency
    if changes.frequency is not None:
        fields["frequency"] = resolve_frequency(changes.frequency)[0].value
    start_date = changes.start_date or existing.start_date
    if changes.start_date is not None:
        fields["start_date"] = start_date

    if changes.total_planned_amount is not None:
        total_result = _positive_money(changes.total_planned_amount, "total_planned_amount", "Total planned amount")
        if not total_result.ok:
            return Result.failure(*total_result.errors)
        total = total_result.value
    else:
        total = existing.total_planned_amount

    target_type = changes.distribution_type or existing.distribution_type
    installments: Optional[List[Installment]] = None

    if changes.installments_modified and existing.distribution_type is DistributionType.FIXED:
        if not changes.custom_installments:
            return Result.failure(
                ValidationError("Edited installments must be provided", "custom_installments")
            )
        schedule = normalize_custom_installments(changes.custom_installments, currency)
        if not schedule.ok:
            return Result.failure(*schedule.errors)
        installments = schedule.value
        target_type = DistributionType.CUSTOM
        total = Money.total(inst.amount for inst in installments)
        warnings.append("Installments were edited; plan converted to custom distribution")

    elif target_type is DistributionType.CUSTOM and changes.custom_installments is not None:
        schedule = normalize_custom_installments(
            changes.custom_installments, currency, expected_total=total, adjust_cents=1
        )
        if not schedule.ok:
            return Result.failure(*schedule.errors)
        installments = schedule.value
        warnings.extend(schedule.warnings)

    elif target_type is DistributionType.CUSTOM:
        if existing.distribution_type is DistributionType.FIXED:
            return Result.failure(
                ValidationError(
                    "Custom installments are required when changing to custom distribution", "custom_installments"
                )
            )
        if changes.total_planned_amount is not None and existing.installments:
            scheduled = Money.total(inst.amount for inst in existing.installments)
            if abs(scheduled - total).cents > 1:
                return Result.failure(
                    ValidationError(
                        f"Sum of custom installments ({scheduled}) must equal the total planned amount ({total})",
                        "total_planned_amount",
                    )
                )

    else:
        if changes.custom_installments is not None:
            return Result.failure(
                ValidationError(
                    "Custom installments are only accepted for custom distribution or edited installments",
                    "custom_installments",
                )
            )
        resize = any(
            value is not None
            for value in (
                changes.frequency,
                changes.total_planned_amount,
                changes.installment_amount,
                changes.number_of_installments,
                changes.start_date,
            )
        )
        if resize or existing.distribution_type is DistributionType.CUSTOM:
            if changes.driving_field is DrivingField.INSTALLMENT_AMOUNT:
                installment_amount = changes.installment_amount or existing.installment_amount
                count = None
            else:
                installment_amount = None
                count = changes.number_of_installments or existing.number_of_installments
            schedule = _fixed_schedule(
                total, frequency, start_date, currency, changes.driving_field, count, installment_amount
            )
            if not schedule.ok:
                return Result.failure(*schedule.errors)
            installments = schedule.value
            warnings.extend(schedule.warnings)

    if installments is not None:
        count = len(installments)
        if target_type is DistributionType.CUSTOM:
            installment_amount = _average_installment(total, count)
        else:
            installment_amount = installments[0].amount
        fields.update(
            {
                "distribution_type": target_type.value,
                "number_of_installments": count,
                "installment_amount": str(installment_amount),
            }
        )
        if changes.end_date is None:
            if target_type is DistributionType.FIXED:
                fields["end_date"] = calculate_end_date(start_date, frequency, count)
            else:
                fields["end_date"] = max(inst.date for inst in installments)

    if installments is not None or changes.total_planned_amount is not None:
        fields["total_planned_amount"] = str(total)
        remaining = total - existing.total_paid
        fields["remaining_amount"] = str(remaining if remaining.cents > 0 else ZERO)

    payload = PlanPayload(
        fields,
        _installment_payloads(installments) if installments is not None else None,
        warnings,
    )
    return Result.success(payload, warnings=warnings)


PLAN_TRANSITIONS = {
    "pause": ({PlanStatus.ACTIVE, PlanStatus.OVERDUE}, PlanStatus.PAUSED),
    "resume": ({PlanStatus.PAUSED}, PlanStatus.ACTIVE),
    "complete": ({PlanStatus.ACTIVE, PlanStatus.PAUSED, PlanStatus.OVERDUE}, PlanStatus.COMPLETED),
    "cancel": ({PlanStatus.ACTIVE, PlanStatus.PAUSED, PlanStatus.OVERDUE}, PlanStatus.CANCELLED),
}


def transition_plan_status(current: PlanStatus, action: str) -> Result[PlanStatus]:
    """Apply a user action (pause, resume, complete, cancel) to a plan status"""
    if action not in PLAN_TRANSITIONS:
        return Result.failure(ValidationError(f"Unknown plan action '{action}'", "status"))
    allowed_from, target = PLAN_TRANSITIONS[action]
    if current not in allowed_from:
        return Result.failure(ValidationError(f"Cannot {action} a plan that is {current.value}", "status"))
    return Result.success(target)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def _allocation_payloads(
    allocations: Sequence[PaymentAllocation],
    currency: str,
    exchange_rate: Decimal,
    pledges: Mapping[int, Pledge],
    rates: Optional[Mapping[str, str]],
    warnings: List[str],
) -> Result[List[AllocationPayload]]:
    payloads = []
    for allocation in allocations:
        amount = Money.of(allocation.allocated_amount)
        in_pledge = _in_pledge_currency(amount, currency, pledges[allocation.pledge_id], rates, warnings)
        if not in_pledge.ok:
            return Result.failure(*in_pledge.errors)
        payloads.append(
            AllocationPayload(
                id=allocation.id,
                pledge_id=allocation.pledge_id,
                allocated_amount=str(amount),
                allocated_amount_usd=str(_usd_amount(amount, exchange_rate)),
                amount_in_pledge_currency=str(in_pledge.value),
                currency=currency,
                notes=allocation.notes,
            )
        )
    return Result.success(payloads)


def prepare_payment_create(
    request: PaymentRequest,
    pledges: Mapping[int, Pledge],
    rates: Optional[Mapping[str, str]] = None,
) -> Result[PaymentPayload]:
    """
    Build the insert payload for a direct or split payment.

    A direct payment names one pledge; a split payment carries allocations
    and no pledge. Supplying both, or neither, is rejected.
    """
    if not is_supported_currency(request.currency):
        return Result.failure(UnsupportedCurrencyError(request.currency))

    amount_result = _positive_money(request.amount, "amount", "Amount")
    if not amount_result.ok:
        return Result.failure(*amount_result.errors)
    amount = amount_result.value

    rate_result = _positive_rate(request.exchange_rate)
    if not rate_result.ok:
        return Result.failure(*rate_result.errors)
    exchange_rate = rate_result.value

    if request.pledge_id is not None and request.allocations:
        return Result.failure(
            WrongPaymentShapeError(
                "A payment is either linked to one pledge or split across allocations, not both", "allocations"
            )
        )
    if request.pledge_id is None and not request.allocations:
        return Result.failure(
            ValidationError("Provide a pledge_id for a single payment or allocations for a split payment", "pledge_id")
        )

    warnings: List[str] = []
    fields = {
        "amount": str(amount),
        "currency": request.currency,
        "exchange_rate": format_rate(exchange_rate),
        "amount_usd": str(_usd_amount(amount, exchange_rate)),
        "payment_status": request.status.value,
        "payment_plan_id": request.payment_plan_id,
    }
    for name in PASSTHROUGH_PAYMENT_FIELDS:
        fields[name] = getattr(request, name)

    if request.pledge_id is not None:
        pledge = pledges.get(request.pledge_id)
        if pledge is None:
            return Result.failure(ReferenceNotFoundError("pledge", request.pledge_id, field="pledge_id"))
        in_pledge = _in_pledge_currency(amount, request.currency, pledge, rates, warnings)
        if not in_pledge.ok:
            return Result.failure(*in_pledge.errors)
        fields["pledge_id"] = pledge.id
        fields["amount_in_pledge_currency"] = str(in_pledge.value)
        return Result.success(PaymentPayload(fields, None, {pledge.id}, warnings), warnings=warnings)

    check = validate_allocations(request.allocations, amount, pledges.keys())
    if not check.ok:
        return Result.failure(*check.errors)

    allocation_payloads = _allocation_payloads(
        request.allocations, request.currency, exchange_rate, pledges, rates, warnings
    )
    if not allocation_payloads.ok:
        return Result.failure(*allocation_payloads.errors)

    fields["pledge_id"] = None
    fields["amount_in_pledge_currency"] = None
    pledge_ids = {a.pledge_id for a in request.allocations}
    return Result.success(
        PaymentPayload(fields, allocation_payloads.value, pledge_ids, warnings), warnings=warnings
    )


def _apply_payment_changes(existing: Payment, changes: PaymentChanges) -> Result[Dict[str, Any]]:
    errors: List[DomainException] = []
    fields: Dict[str, Any] = {}

    for name in PASSTHROUGH_PAYMENT_FIELDS:
        value = getattr(changes, name)
        if value is not None:
            fields[name] = value
    if changes.status is not None:
        fields["payment_status"] = changes.status.value

    if changes.currency is not None:
        if not is_supported_currency(changes.currency):
            errors.append(UnsupportedCurrencyError(changes.currency))
        else:
            fields["currency"] = changes.currency
            if changes.currency != existing.currency and changes.exchange_rate is None:
                errors.append(
                    ValidationError(
                        f"An exchange rate for {changes.currency} is required when changing the payment currency",
                        "exchange_rate",
                    )
                )

    amount = existing.amount
    if changes.amount is not None:
        amount_result = _positive_money(changes.amount, "amount", "Amount")
        if amount_result.ok:
            amount = amount_result.value
            fields["amount"] = str(amount)
        else:
            errors.extend(amount_result.errors)

    exchange_rate = existing.exchange_rate
    if changes.exchange_rate is not None:
        rate_result = _positive_rate(changes.exchange_rate)
        if rate_result.ok:
            exchange_rate = rate_result.value
            fields["exchange_rate"] = format_rate(exchange_rate)
        else:
            errors.extend(rate_result.errors)

    if errors:
        return Result.failure(*errors)

    if changes.amount is not None or changes.exchange_rate is not None:
        fields["amount_usd"] = str(_usd_amount(amount, exchange_rate))
    return Result.success(fields)


def prepare_payment_update(
    existing: Payment,
    changes: PaymentChanges,
    pledges: Mapping[int, Pledge],
    rates: Optional[Mapping[str, str]] = None,
) -> Result[PaymentPayload]:
    """Direct-mode update: only for payments that are not split"""
    if existing.is_split:
        return Result.failure(
            WrongPaymentShapeError(
                f"Payment {existing.id} is split across {len(existing.allocations)} allocations; "
                "update it through its allocations",
                "allocations",
            )
        )

    applied = _apply_payment_changes(existing, changes)
    if not applied.ok:
        return Result.failure(*applied.errors)
    fields = applied.value

    pledge_id = changes.pledge_id if changes.pledge_id is not None else existing.pledge_id
    pledge = pledges.get(pledge_id)
    if pledge is None:
        return Result.failure(ReferenceNotFoundError("pledge", pledge_id, field="pledge_id"))
    if changes.pledge_id is not None:
        fields["pledge_id"] = pledge_id

    warnings: List[str] = []
    if any(v is not None for v in (changes.amount, changes.currency, changes.pledge_id)):
        amount = Money.parse(fields["amount"]) if "amount" in fields else existing.amount
        currency = fields.get("currency", existing.currency)
        in_pledge = _in_pledge_currency(amount, currency, pledge, rates, warnings)
        if not in_pledge.ok:
            return Result.failure(*in_pledge.errors)
        fields["amount_in_pledge_currency"] = str(in_pledge.value)

    pledge_ids = {pid for pid in (existing.pledge_id, pledge_id) if pid is not None}
    return Result.success(PaymentPayload(fields, None, pledge_ids, warnings), warnings=warnings)


def prepare_split_payment_update(
    existing: Payment,
    changes: PaymentChanges,
    allocations: Optional[Sequence[PaymentAllocation]],
    pledges: Mapping[int, Pledge],
    rates: Optional[Mapping[str, str]] = None,
) -> Result[PaymentPayload]:
    """
    Split-mode update: replaces the allocation set of a split payment.

    When allocations is None the stored allocations are re-validated against
    the (possibly new) payment amount and carried over unchanged.
    """
    if not existing.is_split:
        return Result.failure(
            NotASplitPaymentError(f"Payment {existing.id} has no allocations to update", "allocations")
        )
    if changes.pledge_id is not None:
        return Result.failure(
            WrongPaymentShapeError("Split payments cannot be linked to a single pledge", "pledge_id")
        )

    applied = _apply_payment_changes(existing, changes)
    if not applied.ok:
        return Result.failure(*applied.errors)
    fields = applied.value

    amount = Money.parse(fields["amount"]) if "amount" in fields else existing.amount
    currency = fields.get("currency", existing.currency)
    exchange_rate = Decimal(fields["exchange_rate"]) if "exchange_rate" in fields else existing.exchange_rate
    new_allocations = list(allocations) if allocations is not None else list(existing.allocations)

    check = validate_allocations(
        new_allocations,
        amount,
        pledges.keys(),
        payment_id=existing.id,
        owned_allocation_ids={a.id for a in existing.allocations if a.id is not None},
    )
    if not check.ok:
        return Result.failure(*check.errors)

    warnings: List[str] = []
    allocation_payloads = _allocation_payloads(new_allocations, currency, exchange_rate, pledges, rates, warnings)
    if not allocation_payloads.ok:
        return Result.failure(*allocation_payloads.errors)

    pledge_ids = {a.pledge_id for a in existing.allocations} | {a.pledge_id for a in new_allocations}
    return Result.success(
        PaymentPayload(fields, allocation_payloads.value, pledge_ids, warnings), warnings=warnings
    )
