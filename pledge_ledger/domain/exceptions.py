"""Domain-specific exceptions"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """
    Base exception for domain layer.

    Every error names the offending field and carries a message meant for
    end users, so the API can render it without reinterpreting it.
    """

    error_type = "DOMAIN_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def details(self) -> Dict[str, Any]:
        """Extra structured values (expected vs actual) for subclasses"""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type,
            "field": self.field,
            "message": self.message,
            **self.details(),
        }


class ValidationError(DomainException):
    """Positive-number, required-field or enum-membership violation"""

    error_type = "VALIDATION_ERROR"


class UnsupportedCurrencyError(DomainException):
    """Currency code outside the supported set"""

    error_type = "UNSUPPORTED_CURRENCY"

    def __init__(self, currency: str, field: str = "currency"):
        super().__init__(f"Currency '{currency}' is not supported", field)
        self.currency = currency

    def details(self) -> Dict[str, Any]:
        return {"currency": self.currency}


class AllocationMismatchError(DomainException):
    """Split payment allocations do not add up to the payment amount"""

    error_type = "ALLOCATION_MISMATCH"

    def __init__(self, total_allocated, payment_amount, difference):
        super().__init__(
            f"Allocations total {total_allocated} but the payment amount is {payment_amount} "
            f"(difference {difference})",
            "allocations",
        )
        self.total_allocated = total_allocated
        self.payment_amount = payment_amount
        self.difference = difference

    def details(self) -> Dict[str, Any]:
        return {
            "total_allocated": str(self.total_allocated),
            "payment_amount": str(self.payment_amount),
            "difference": str(self.difference),
        }


class WrongPaymentShapeError(DomainException):
    """Split-mode change on a direct payment or direct-mode change on a split one"""

    error_type = "WRONG_PAYMENT_SHAPE"


class NotASplitPaymentError(WrongPaymentShapeError):
    """Allocation update attempted on a payment without allocations"""

    error_type = "NOT_A_SPLIT_PAYMENT"


class ReferenceNotFoundError(DomainException):
    """Referenced pledge, plan, payment or allocation does not exist"""

    error_type = "REFERENCE_NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any, field: Optional[str] = None, message: Optional[str] = None):
        super().__init__(message or f"{entity.capitalize()} {entity_id} not found", field)
        self.entity = entity
        self.entity_id = entity_id

    def details(self) -> Dict[str, Any]:
        return {"entity": self.entity, "entity_id": self.entity_id}


class ExchangeRateAPIError(DomainException):
    """Exchange rate provider returned an error or is unavailable"""

    error_type = "EXCHANGE_RATE_UNAVAILABLE"
