"""Unit tests for split payment allocation validation"""

from pledge_ledger.domain.allocations import validate_allocations
from pledge_ledger.domain.exceptions import AllocationMismatchError, ReferenceNotFoundError, ValidationError
from pledge_ledger.domain.models import PaymentAllocation
from pledge_ledger.domain.money import Money

KNOWN_PLEDGES = {1, 2, 3}


def test_exact_split_accepted():
    """Test allocations summing to the payment amount"""
    allocations = [PaymentAllocation(1, "60.00"), PaymentAllocation(2, "40.00")]

    result = validate_allocations(allocations, "100.00", KNOWN_PLEDGES)

    assert result.ok
    assert result.value == Money.of(100)


def test_float_inputs_compared_exactly():
    """Test 0.1 + 0.2 against 0.3 passes without float residue"""
    allocations = [PaymentAllocation(1, 0.1), PaymentAllocation(2, 0.2)]

    assert validate_allocations(allocations, 0.3, KNOWN_PLEDGES).ok


def test_one_cent_short_rejected_with_details():
    """Test 999.99 allocated against a 1000.00 payment"""
    allocations = [PaymentAllocation(1, "500.00"), PaymentAllocation(2, "499.99")]

    result = validate_allocations(allocations, "1000.00", KNOWN_PLEDGES)

    assert not result.ok
    error = result.errors[0]
    assert isinstance(error, AllocationMismatchError)
    assert error.field == "allocations"
    assert error.to_dict()["total_allocated"] == "999.99"
    assert error.to_dict()["payment_amount"] == "1000.00"
    assert error.to_dict()["difference"] == "0.01"


def test_sub_cent_allocation_rejected():
    """Test [50, 49.995] against 100 fails on the sub-cent amount"""
    allocations = [PaymentAllocation(1, 50), PaymentAllocation(2, 49.995)]

    result = validate_allocations(allocations, 100, KNOWN_PLEDGES)

    assert not result.ok
    assert isinstance(result.errors[0], ValidationError)
    assert result.errors[0].field == "allocations[1].allocated_amount"


def test_empty_allocations_rejected():
    """Test a split payment needs at least one allocation"""
    result = validate_allocations([], "10", KNOWN_PLEDGES)

    assert result.errors[0].field == "allocations"


def test_all_problems_reported_together():
    """Test non-positive amount and unknown pledge are both reported"""
    allocations = [PaymentAllocation(1, "0"), PaymentAllocation(99, "10.00")]

    result = validate_allocations(allocations, "10.00", KNOWN_PLEDGES)

    fields = {e.field for e in result.errors}
    assert fields == {"allocations[0].allocated_amount", "allocations[1].pledge_id"}
    assert any(isinstance(e, ReferenceNotFoundError) for e in result.errors)


def test_foreign_allocation_id_rejected():
    """Test an allocation id owned by another payment"""
    allocations = [PaymentAllocation(1, "10.00", id=7), PaymentAllocation(2, "5.00", id=42)]

    result = validate_allocations(allocations, "15.00", KNOWN_PLEDGES, payment_id=5, owned_allocation_ids={7, 8})

    assert not result.ok
    error = result.errors[0]
    assert error.field == "allocations[1].id"
    assert error.message == "Allocation 42 does not belong to payment 5"
