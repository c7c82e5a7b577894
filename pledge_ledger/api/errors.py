"""Translation of domain errors into HTTP error responses"""

from typing import List, NoReturn
from fastapi import HTTPException
from pledge_ledger.domain.exceptions import (
    AllocationMismatchError,
    DomainException,
    ExchangeRateAPIError,
    ReferenceNotFoundError,
    UnsupportedCurrencyError,
    ValidationError,
    WrongPaymentShapeError,
)
from pledge_ledger.infrastructure.observability.logging import log_rejection
from pledge_ledger.infrastructure.observability.metrics import record_rejection

# Checked in order; NotASplitPaymentError is caught by its parent
STATUS_BY_ERROR = (
    (ReferenceNotFoundError, 404),
    (WrongPaymentShapeError, 409),
    (AllocationMismatchError, 422),
    (UnsupportedCurrencyError, 422),
    (ValidationError, 422),
    (ExchangeRateAPIError, 503),
)


def status_for(error: DomainException) -> int:
    for error_class, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_class):
            return status_code
    return 422


def raise_for_errors(errors: List[DomainException], request_id: str, operation: str) -> NoReturn:
    """
    Reject a mutation with every collected error in the body.

    The status code follows the first error, which is the one the domain
    layer considered decisive.
    """
    record_rejection(operation, errors)
    body = [error.to_dict() for error in errors]
    log_rejection(request_id, operation, body)
    raise HTTPException(status_code=status_for(errors[0]), detail={"errors": body})


def parse_id(raw_id: str, entity: str) -> int:
    """Path ids are positive integers; anything else is a 400"""
    try:
        value = int(raw_id)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {entity} ID format")
    if value <= 0:
        raise HTTPException(status_code=400, detail=f"Invalid {entity} ID format")
    return value
