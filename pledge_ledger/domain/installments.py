"""Installment schedule generation and amount reconciliation for payment plans"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple, Union

from pledge_ledger.domain.exceptions import ValidationError
from pledge_ledger.domain.models import DrivingField, Frequency, Installment
from pledge_ledger.domain.money import Money, ZERO
from pledge_ledger.domain.results import Result
from pledge_ledger.utils.date_utils import add_months, add_weeks, add_years

MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.BIANNUAL: 6,
}


def resolve_frequency(frequency: Union[Frequency, str]) -> Tuple[Frequency, bool]:
    """
    Map a frequency value onto the known set.

    Returns (frequency, fell_back). Unknown values step monthly and are
    logged, so callers can tell the schedule was not what they asked for.
    """
    if isinstance(frequency, Frequency):
        return frequency, False
    try:
        return Frequency(frequency), False
    except ValueError:
        logging.warning(
            f"Unknown frequency {frequency!r}, stepping monthly",
            extra={"step": "frequency_fallback", "frequency": str(frequency)},
        )
        return Frequency.MONTHLY, True


def installment_date(start_date: date, frequency: Frequency, index: int) -> date:
    """Due date of the installment at 0-based index"""
    if frequency is Frequency.WEEKLY:
        return add_weeks(start_date, index)
    if frequency is Frequency.ANNUAL:
        return add_years(start_date, index)
    if frequency is Frequency.ONE_TIME:
        return start_date
    return add_months(start_date, MONTH_STEPS[frequency] * index)


def distribute(total, count: int) -> List[Money]:
    """
    Split a total into count amounts that add up to exactly round(total, 2).

    Every installment gets round(total / count, 2); the last one also takes
    the remainder, which can be negative when the base was rounded up.

    Example:
        100.00 / 3 -> [33.33, 33.33, 33.34]
        200.00 / 3 -> [66.67, 66.67, 66.66]
    """
    if count <= 0:
        return []

    total = Money.of(total)
    base = Money(int((Decimal(total.cents) / count).quantize(Decimal(1), rounding=ROUND_HALF_UP)))
    remainder = total - base * count

    return [base] * (count - 1) + [base + remainder]


@dataclass
class Reconciliation:
    """Per-installment amounts for a fixed plan and how far they drift from the total"""

    installment_amount: Money
    number_of_installments: int
    amounts: List[Money]
    difference: Money = ZERO  # sum(amounts) - total

    @property
    def scheduled_total(self) -> Money:
        return Money.total(self.amounts)


def reconcile_installments(
    total,
    driving_field: DrivingField = DrivingField.TOTAL,
    count: Optional[int] = None,
    installment_amount=None,
) -> Result[Reconciliation]:
    """
    Size a fixed plan from whichever field the user is driving.

    - TOTAL: count is given, amounts come from distribute() and sum exactly.
    - INSTALLMENT_AMOUNT: count = ceil(total / installment_amount). Every
      installment keeps the user's amount and the drift from the total is
      reported in `difference`, never corrected.
    """
    total = Money.of(total)
    if not total.is_positive():
        return Result.failure(ValidationError("Total planned amount must be positive", "total_planned_amount"))

    if driving_field is DrivingField.INSTALLMENT_AMOUNT:
        if installment_amount is None or not Money.of(installment_amount).is_positive():
            return Result.failure(
                ValidationError("Installment amount must be positive", "installment_amount")
            )
        amount = Money.of(installment_amount)
        derived_count = -(-total.cents // amount.cents)
        amounts = [amount] * derived_count
        difference = Money.total(amounts) - total

        warnings = []
        if difference.cents:
            warnings.append(
                f"{derived_count} installments of {amount} total {Money.total(amounts)}, "
                f"which differs from the planned {total} by {difference}"
            )
        return Result.success(Reconciliation(amount, derived_count, amounts, difference), warnings=warnings)

    if count is None or count <= 0:
        return Result.failure(ValidationError("Number of installments must be positive", "number_of_installments"))

    amounts = distribute(total, count)
    return Result.success(Reconciliation(amounts[0], count, amounts))


def generate_installment_schedule(
    start_date: date,
    frequency: Union[Frequency, str],
    count: int,
    total_amount,
    currency: str,
) -> List[Installment]:
    """
    Generate the dated installments of a fixed-distribution plan.

    Requirements:
    - weekly: +7 days per installment; monthly/quarterly/biannual: +1/3/6
      months; annual: +1 year (calendar arithmetic, clamped to month end)
    - one_time: a single installment on the start date for the whole total
    - Last installment absorbs rounding remainder (see distribute)
    - Unknown frequencies step monthly (logged by resolve_frequency)

    Args:
        start_date: Due date of the first installment
        frequency: Plan frequency
        count: Number of installments; <= 0 yields an empty schedule
        total_amount: Total planned amount
        currency: Plan currency copied onto each installment

    Returns:
        List of unpaid Installment objects numbered from 1

    Example:
        2024-01-31, monthly, 3, $100.00 ->
        [(2024-01-31, 33.33), (2024-02-29, 33.33), (2024-03-31, 33.34)]
    """
    if count <= 0:
        return []

    resolved, _ = resolve_frequency(frequency)
    if resolved is Frequency.ONE_TIME:
        count = 1

    return [
        Installment(
            installment_number=i + 1,
            date=installment_date(start_date, resolved, i),
            amount=amount,
            currency=currency,
        )
        for i, amount in enumerate(distribute(total_amount, count))
    ]


def schedule_from_amounts(
    start_date: date,
    frequency: Union[Frequency, str],
    amounts: Sequence[Money],
    currency: str,
) -> List[Installment]:
    """Date a precomputed list of amounts (used when the installment amount drives the plan)"""
    resolved, _ = resolve_frequency(frequency)
    if resolved is Frequency.ONE_TIME:
        amounts = [Money.total(amounts)] if amounts else []

    return [
        Installment(
            installment_number=i + 1,
            date=installment_date(start_date, resolved, i),
            amount=amount,
            currency=currency,
        )
        for i, amount in enumerate(amounts)
    ]


def calculate_end_date(start_date: date, frequency: Union[Frequency, str], count: int) -> date:
    """Due date of the last installment"""
    resolved, _ = resolve_frequency(frequency)
    if count <= 1 or resolved is Frequency.ONE_TIME:
        return start_date
    return installment_date(start_date, resolved, count - 1)


@dataclass
class CustomInstallmentInput:
    """Author-supplied entry of a custom schedule, amount not yet validated"""

    date: date
    amount: object
    notes: Optional[str] = None


def normalize_custom_installments(
    entries: Sequence[CustomInstallmentInput],
    currency: str,
    expected_total=None,
    adjust_cents: int = 0,
    today: Optional[date] = None,
    max_past_days: Optional[int] = None,
) -> Result[List[Installment]]:
    """
    Validate a custom schedule and turn it into numbered installments.

    Checks:
    - at least one entry, every amount positive with at most 2 decimals
    - dates unique
    - if max_past_days is given, no date earlier than today - max_past_days
    - if expected_total is given, the entries must sum to it; a drift of up
      to adjust_cents is absorbed into the last entry
    """
    if not entries:
        return Result.failure(
            ValidationError("Custom installments must be provided for 'custom' distribution type", "custom_installments")
        )

    errors = []
    amounts: List[Money] = []
    for i, entry in enumerate(entries):
        field_name = f"custom_installments[{i}].amount"
        try:
            amount = Money.of(entry.amount)
            whole_cents = Money.is_whole_cents(entry.amount)
        except ValueError:
            errors.append(ValidationError("Installment amount must be a number", field_name))
            continue
        if not amount.is_positive():
            errors.append(ValidationError("Installment amount must be positive", field_name))
        elif not whole_cents:
            errors.append(ValidationError("Installment amount cannot have more than 2 decimal places", field_name))
        amounts.append(amount)

    dates = [entry.date for entry in entries]
    if len(set(dates)) != len(dates):
        errors.append(ValidationError("Installment dates must be unique", "custom_installments"))

    if max_past_days is not None:
        earliest = (today or date.today()) - timedelta(days=max_past_days)
        if any(d < earliest for d in dates):
            errors.append(
                ValidationError(
                    f"Installment dates cannot be more than {max_past_days} days in the past",
                    "custom_installments",
                )
            )

    if errors:
        return Result.failure(*errors)

    warnings = []
    if expected_total is not None:
        expected = Money.of(expected_total)
        difference = expected - Money.total(amounts)
        if abs(difference).cents > adjust_cents:
            return Result.failure(
                ValidationError(
                    f"Sum of custom installments ({Money.total(amounts)}) must equal "
                    f"the total planned amount ({expected})",
                    "total_planned_amount",
                )
            )
        if difference.cents:
            amounts[-1] = amounts[-1] + difference
            warnings.append(f"Last installment adjusted by {difference} to match the total")

    return Result.success(
        [
            Installment(
                installment_number=i + 1,
                date=entry.date,
                amount=amount,
                currency=currency,
                notes=entry.notes,
            )
            for i, (entry, amount) in enumerate(zip(entries, amounts))
        ],
        warnings=warnings,
    )
