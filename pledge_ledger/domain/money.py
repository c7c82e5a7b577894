"""Money value type - fixed-point amounts stored as integer cents"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

CENT = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")


def to_decimal(value) -> Decimal:
    """
    Parse a number without going through binary floats.

    Floats are read via str() so 49.995 stays 49.995 rather than
    49.99499999999999744204615126363933086395263671875.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a numeric amount: {value!r}") from e
    else:
        raise ValueError(f"Not a numeric amount: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def format_rate(rate: Decimal) -> str:
    """Exchange rates are stored with 4 decimal places"""
    return str(rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP))


@dataclass(frozen=True, order=True)
class Money:
    """
    Monetary amount with exactly two decimal places.

    Arithmetic happens on integer cents, so sums never pick up float residue.
    Currency is tracked by the owning record, not by the amount itself.

    Example:
        Money.of("100.005") -> Money(cents=10001) -> "100.01"
    """

    cents: int

    @classmethod
    def of(cls, value) -> "Money":
        """Round any numeric input half-up to the cent"""
        if isinstance(value, Money):
            return value
        amount = to_decimal(value)
        return cls(int((amount * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)))

    @classmethod
    def parse(cls, text: str) -> "Money":
        """Read a stored decimal string such as "1000.00" """
        return cls.of(text)

    @staticmethod
    def is_whole_cents(value) -> bool:
        """True when the value has no precision below one cent"""
        if isinstance(value, Money):
            return True
        amount = to_decimal(value)
        return amount == amount.quantize(CENT)

    @classmethod
    def total(cls, amounts: Iterable["Money"]) -> "Money":
        return cls(sum(m.cents for m in amounts))

    @property
    def amount(self) -> Decimal:
        return Decimal(self.cents).scaleb(-2)

    def is_positive(self) -> bool:
        return self.cents > 0

    def __add__(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        return Money(self.cents - other.cents)

    def __mul__(self, factor: int) -> "Money":
        if not isinstance(factor, int) or isinstance(factor, bool):
            return NotImplemented
        return Money(self.cents * factor)

    __rmul__ = __mul__

    def __neg__(self) -> "Money":
        return Money(-self.cents)

    def __abs__(self) -> "Money":
        return Money(abs(self.cents))

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


ZERO = Money(0)
