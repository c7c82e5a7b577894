"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pledge_ledger.domain.money import Money

SUPPORTED_CURRENCIES = ("USD", "ILS", "EUR", "JPY", "GBP", "AUD", "CAD", "ZAR")


class Frequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUAL = "biannual"
    ANNUAL = "annual"
    ONE_TIME = "one_time"


class DistributionType(str, Enum):
    FIXED = "fixed"
    CUSTOM = "custom"


class PlanStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PROCESSING = "processing"


class DrivingField(str, Enum):
    """Which input the user fixed when sizing a plan"""

    TOTAL = "total"  # count given, per-installment amount derived
    INSTALLMENT_AMOUNT = "installment_amount"  # amount given, count derived


@dataclass
class Pledge:
    """A contact's committed total donation"""

    id: int
    original_amount: Money
    currency: str
    total_paid: Money = Money(0)
    balance: Optional[Money] = None
    exchange_rate: Optional[Decimal] = None
    original_amount_usd: Optional[Money] = None
    total_paid_usd: Optional[Money] = None
    balance_usd: Optional[Money] = None
    contact_id: Optional[int] = None
    description: Optional[str] = None


@dataclass
class Installment:
    """Single scheduled (or paid) slice of a payment plan"""

    installment_number: int
    date: date
    amount: Money
    currency: str
    is_paid: bool = False
    paid_date: Optional[date] = None
    paid_amount: Optional[Money] = None
    notes: Optional[str] = None


@dataclass
class PaymentPlan:
    """Recurring schedule against one pledge"""

    pledge_id: int
    frequency: str
    distribution_type: DistributionType
    total_planned_amount: Money
    currency: str
    installment_amount: Money
    number_of_installments: int
    start_date: date
    id: Optional[int] = None
    plan_name: Optional[str] = None
    end_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    status: PlanStatus = PlanStatus.ACTIVE
    auto_renew: bool = False
    total_paid: Money = Money(0)
    exchange_rate: Optional[Decimal] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    installments: List[Installment] = field(default_factory=list)


@dataclass
class PaymentAllocation:
    """Portion of a split payment assigned to one pledge"""

    pledge_id: int
    allocated_amount: Money  # raw requested value until validate_allocations has run
    id: Optional[int] = None
    payment_id: Optional[int] = None
    allocated_amount_usd: Optional[Money] = None
    amount_in_pledge_currency: Optional[Money] = None
    currency: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Payment:
    """Money transfer applied to one pledge directly or split across several"""

    id: Optional[int]
    amount: Money
    currency: str
    exchange_rate: Decimal
    payment_date: date
    payment_method: str
    status: PaymentStatus = PaymentStatus.COMPLETED
    pledge_id: Optional[int] = None
    amount_usd: Optional[Money] = None
    amount_in_pledge_currency: Optional[Money] = None
    received_date: Optional[date] = None
    payment_plan_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    allocations: List[PaymentAllocation] = field(default_factory=list)

    @property
    def is_split(self) -> bool:
        return bool(self.allocations)
