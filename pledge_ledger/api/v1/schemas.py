"""Pydantic schemas for API request/response validation"""

import datetime
from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pledge_ledger.domain.models import (
    DistributionType,
    DrivingField,
    Frequency,
    PaymentStatus,
    PlanStatus,
)

# Pledges


class PledgeCreateRequest(BaseModel):
    """Request body for POST /v1/pledges"""

    original_amount: Decimal = Field(..., gt=0, description="Pledged amount in the pledge currency")
    currency: str = Field("USD", min_length=3, max_length=3)
    exchange_rate: Optional[Decimal] = Field(None, gt=0, description="Rate to USD; looked up when omitted")
    contact_id: Optional[int] = None
    description: Optional[str] = None


class PledgeResponse(BaseModel):
    pledge_id: int
    contact_id: Optional[int] = None
    description: Optional[str] = None
    original_amount: str
    currency: str
    total_paid: str
    balance: str
    exchange_rate: Optional[str] = None
    original_amount_usd: Optional[str] = None
    total_paid_usd: Optional[str] = None
    balance_usd: Optional[str] = None
    warnings: List[str] = []


# Payment plans


class CustomInstallmentSchema(BaseModel):
    """One author-chosen installment of a custom plan"""

    date: datetime.date
    amount: Decimal
    notes: Optional[str] = None


class PlanPreviewRequest(BaseModel):
    """Request body for POST /v1/payment-plans/preview"""

    frequency: Frequency
    distribution_type: DistributionType = DistributionType.FIXED
    driving_field: DrivingField = DrivingField.TOTAL
    total_planned_amount: Decimal = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    number_of_installments: Optional[int] = Field(None, gt=0)
    installment_amount: Optional[Decimal] = Field(None, gt=0)
    start_date: date
    end_date: Optional[date] = None
    custom_installments: Optional[List[CustomInstallmentSchema]] = None


class PlanCreateRequest(PlanPreviewRequest):
    """Request body for POST /v1/payment-plans"""

    pledge_id: int = Field(..., gt=0)
    plan_name: Optional[str] = None
    next_payment_date: Optional[date] = None
    auto_renew: bool = False
    notes: Optional[str] = None
    internal_notes: Optional[str] = None


class PlanUpdateRequest(BaseModel):
    """Request body for PATCH /v1/payment-plans/{plan_id}; omitted fields are left alone"""

    plan_name: Optional[str] = None
    frequency: Optional[Frequency] = None
    distribution_type: Optional[DistributionType] = None
    driving_field: DrivingField = DrivingField.TOTAL
    total_planned_amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    installment_amount: Optional[Decimal] = Field(None, gt=0)
    number_of_installments: Optional[int] = Field(None, gt=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    auto_renew: Optional[bool] = None
    status: Optional[PlanStatus] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    custom_installments: Optional[List[CustomInstallmentSchema]] = None
    installments_modified: bool = False


class PlanStatusRequest(BaseModel):
    """Request body for POST /v1/payment-plans/{plan_id}/status"""

    action: str = Field(..., description="pause | resume | complete | cancel")


class InstallmentSchema(BaseModel):
    """Single installment in a payment plan"""

    installment_number: int
    installment_date: date
    installment_amount: str
    currency: str
    status: str = "pending"
    notes: Optional[str] = None


class PlanResponse(BaseModel):
    plan_id: Optional[int] = None
    pledge_id: Optional[int] = None
    plan_name: Optional[str] = None
    frequency: str
    distribution_type: str
    total_planned_amount: str
    currency: str
    installment_amount: str
    number_of_installments: int
    start_date: date
    end_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    total_paid: Optional[str] = None
    remaining_amount: Optional[str] = None
    status: Optional[str] = None
    auto_renew: bool = False
    exchange_rate: Optional[str] = None
    notes: Optional[str] = None
    installments: List[InstallmentSchema]
    warnings: List[str] = []


# Payments


class AllocationRequest(BaseModel):
    """One slice of a split payment"""

    id: Optional[int] = Field(None, description="Existing allocation to update")
    pledge_id: int
    allocated_amount: Decimal
    notes: Optional[str] = None


class PaymentCreateRequest(BaseModel):
    """Request body for POST /v1/payments; pledge_id for a direct payment, allocations for a split one"""

    amount: Decimal = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    exchange_rate: Optional[Decimal] = Field(None, gt=0, description="Rate to USD; looked up when omitted")
    payment_date: date
    received_date: Optional[date] = None
    payment_method: str = Field(..., min_length=1)
    status: PaymentStatus = PaymentStatus.COMPLETED
    pledge_id: Optional[int] = None
    payment_plan_id: Optional[int] = None
    allocations: Optional[List[AllocationRequest]] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class PaymentUpdateRequest(BaseModel):
    """Request body for PATCH /v1/payments/{payment_id} (direct payments)"""

    amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    exchange_rate: Optional[Decimal] = Field(None, gt=0)
    payment_date: Optional[date] = None
    received_date: Optional[date] = None
    payment_method: Optional[str] = None
    status: Optional[PaymentStatus] = None
    pledge_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class SplitPaymentUpdateRequest(PaymentUpdateRequest):
    """Request body for PATCH /v1/payments/{payment_id}/allocations; allocations replace the stored set"""

    allocations: Optional[List[AllocationRequest]] = None


class AllocationResponse(BaseModel):
    allocation_id: int
    pledge_id: int
    allocated_amount: str
    allocated_amount_usd: Optional[str] = None
    amount_in_pledge_currency: Optional[str] = None
    currency: str
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    payment_id: int
    pledge_id: Optional[int] = None
    payment_plan_id: Optional[int] = None
    amount: str
    currency: str
    exchange_rate: str
    amount_usd: Optional[str] = None
    amount_in_pledge_currency: Optional[str] = None
    payment_date: date
    received_date: Optional[date] = None
    payment_method: str
    status: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    is_split: bool
    allocations: List[AllocationResponse] = []
    warnings: List[str] = []


# Exchange rates


class ConversionResponse(BaseModel):
    """Response for GET /v1/exchange-rates/convert"""

    amount: str
    from_currency: str
    to_currency: str
    converted_amount: str
    degraded: bool
    missing_rates: List[str] = []
    warnings: List[str] = []
