"""Split payment allocation validation"""

from typing import Collection, List, Optional, Sequence

from pledge_ledger.domain.exceptions import (
    AllocationMismatchError,
    DomainException,
    ReferenceNotFoundError,
    ValidationError,
)
from pledge_ledger.domain.models import PaymentAllocation
from pledge_ledger.domain.money import Money
from pledge_ledger.domain.results import Result

ALLOCATION_TOLERANCE = Money(1)  # sums must differ by strictly less than one cent


def validate_allocations(
    allocations: Sequence[PaymentAllocation],
    payment_amount,
    known_pledge_ids: Collection[int],
    payment_id: Optional[int] = None,
    owned_allocation_ids: Collection[int] = (),
) -> Result[Money]:
    """
    Check that allocations form a valid split of one payment.

    Used for new split payments and for allocation updates alike. All
    problems are reported together:
    - every allocated amount positive with at most 2 decimal places
    - every pledge_id refers to an existing pledge
    - an allocation with an id must already belong to this payment
    - amounts add up to the payment amount (difference < 0.01)

    Amounts are compared exactly, so [50, 49.995] against 100 is rejected
    for its sub-cent amount instead of passing as float noise.

    Returns:
        Result whose value is the total allocated
    """
    if not allocations:
        return Result.failure(ValidationError("Split payments need at least one allocation", "allocations"))

    errors: List[DomainException] = []
    amounts: List[Money] = []

    for i, allocation in enumerate(allocations):
        amount_field = f"allocations[{i}].allocated_amount"
        raw_amount = allocation.allocated_amount
        try:
            amount = Money.of(raw_amount)
            whole_cents = Money.is_whole_cents(raw_amount)
        except ValueError:
            errors.append(ValidationError("Allocated amount must be a number", amount_field))
            continue

        if not amount.is_positive():
            errors.append(ValidationError("Allocated amount must be greater than zero", amount_field))
        elif not whole_cents:
            errors.append(ValidationError("Allocated amount cannot have more than 2 decimal places", amount_field))
        amounts.append(amount)

        if allocation.pledge_id not in known_pledge_ids:
            errors.append(
                ReferenceNotFoundError("pledge", allocation.pledge_id, field=f"allocations[{i}].pledge_id")
            )

        if allocation.id is not None and allocation.id not in owned_allocation_ids:
            errors.append(
                ReferenceNotFoundError(
                    "allocation",
                    allocation.id,
                    field=f"allocations[{i}].id",
                    message=f"Allocation {allocation.id} does not belong to payment {payment_id}",
                )
            )

    if errors:
        return Result.failure(*errors)

    total_allocated = Money.total(amounts)
    expected = Money.of(payment_amount)
    difference = expected - total_allocated
    if abs(difference) >= ALLOCATION_TOLERANCE:
        return Result.failure(AllocationMismatchError(total_allocated, expected, difference))

    return Result.success(total_allocated)
