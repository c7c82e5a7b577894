"""SQLAlchemy ORM models for pledges, payment plans and payments"""

from sqlalchemy import Column, String, Boolean, Numeric, DateTime, Date, Integer, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Pledge(Base):
    """Committed donation with running paid totals"""

    __tablename__ = "pledge"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(Integer, nullable=True, index=True)
    description = Column(Text, nullable=True)
    original_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    total_paid = Column(Numeric(10, 2), nullable=False, default=0)
    balance = Column(Numeric(10, 2), nullable=False)
    exchange_rate = Column(Numeric(10, 4), nullable=True)
    original_amount_usd = Column(Numeric(10, 2), nullable=True)
    total_paid_usd = Column(Numeric(10, 2), nullable=True, default=0)
    balance_usd = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    plans = relationship("PaymentPlan", back_populates="pledge", cascade="all, delete-orphan")


class PaymentPlan(Base):
    """Recurring schedule against one pledge"""

    __tablename__ = "payment_plan"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pledge_id = Column(Integer, ForeignKey("pledge.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_name = Column(Text, nullable=True)
    frequency = Column(String(20), nullable=False)
    distribution_type = Column(String(10), nullable=False, default="fixed")
    total_planned_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    installment_amount = Column(Numeric(10, 2), nullable=False)
    number_of_installments = Column(Integer, nullable=False)
    exchange_rate = Column(Numeric(10, 4), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_payment_date = Column(Date, nullable=True)
    installments_paid = Column(Integer, nullable=False, default=0)
    total_paid = Column(Numeric(10, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(10, 2), nullable=True)
    plan_status = Column(String(20), nullable=False, default="active")
    auto_renew = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    pledge = relationship("Pledge", back_populates="plans")
    installments = relationship(
        "InstallmentSchedule",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="InstallmentSchedule.installment_number",
    )


class InstallmentSchedule(Base):
    """Individual installment within a payment plan"""

    __tablename__ = "installment_schedule"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_plan_id = Column(Integer, ForeignKey("payment_plan.id", ondelete="CASCADE"), nullable=False)
    installment_number = Column(Integer, nullable=False)
    installment_date = Column(Date, nullable=False)
    installment_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    paid_date = Column(Date, nullable=True)
    paid_amount = Column(Numeric(10, 2), nullable=True)
    notes = Column(Text, nullable=True)

    plan = relationship("PaymentPlan", back_populates="installments")


class Payment(Base):
    """Money received, applied to one pledge or split across allocations"""

    __tablename__ = "payment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pledge_id = Column(Integer, ForeignKey("pledge.id", ondelete="SET NULL"), nullable=True, index=True)
    payment_plan_id = Column(Integer, ForeignKey("payment_plan.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    exchange_rate = Column(Numeric(10, 4), nullable=False)
    amount_usd = Column(Numeric(10, 2), nullable=True)
    amount_in_pledge_currency = Column(Numeric(10, 2), nullable=True)
    payment_date = Column(Date, nullable=False)
    received_date = Column(Date, nullable=True)
    payment_method = Column(String(30), nullable=False)
    payment_status = Column(String(20), nullable=False, default="completed")
    reference_number = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    allocations = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.id",
    )


class PaymentAllocation(Base):
    """Portion of a split payment assigned to one pledge"""

    __tablename__ = "payment_allocation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(Integer, ForeignKey("payment.id", ondelete="CASCADE"), nullable=False, index=True)
    pledge_id = Column(Integer, ForeignKey("pledge.id", ondelete="CASCADE"), nullable=False, index=True)
    allocated_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    allocated_amount_usd = Column(Numeric(10, 2), nullable=True)
    amount_in_pledge_currency = Column(Numeric(10, 2), nullable=True)
    notes = Column(Text, nullable=True)

    payment = relationship("Payment", back_populates="allocations")
