"""Result wrapper for business-rule outcomes that are expected, not exceptional"""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from pledge_ledger.domain.exceptions import DomainException

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Value or errors, plus warnings about fallbacks that were applied.

    Validators collect every failure instead of stopping at the first one,
    so a form can highlight all offending fields at once.
    """

    value: Optional[T] = None
    errors: List[DomainException] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls, value: T, warnings: Optional[List[str]] = None) -> "Result[T]":
        return cls(value=value, warnings=list(warnings or []))

    @classmethod
    def failure(cls, *errors: DomainException) -> "Result[T]":
        return cls(errors=list(errors))

    def unwrap(self) -> T:
        """Return the value or raise the first error"""
        if self.errors:
            raise self.errors[0]
        return self.value
