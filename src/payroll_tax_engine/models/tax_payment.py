"""Tax payment obligation models (one row per company, period and payment type)."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from payroll_tax_engine.models.base import Base, TimestampMixin


class TaxPaymentMixin(TimestampMixin):
    """Columns shared by the four payment tables.

    ``FINANCIAL_FIELDS`` name the amounts frozen once a payment is paid;
    ``BOOKKEEPING_FIELDS`` may be refreshed at any time.
    """

    FINANCIAL_FIELDS: ClassVar[tuple[str, ...]] = ()
    BOOKKEEPING_FIELDS: ClassVar[tuple[str, ...]] = (
        "payroll_ids",
        "due_date",
        "period_start",
        "period_end",
    )

    payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(nullable=False)
    quarter: Mapped[int] = mapped_column(nullable=False)
    period_start: Mapped[date] = mapped_column(nullable=False)
    period_end: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)

    total_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    requires_immediate_payment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    paid_date: Mapped[date | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    confirmation_number: Mapped[str | None] = mapped_column(String, nullable=True)

    payroll_ids: Mapped[list[str]] = mapped_column(nullable=False, default=lambda: [])
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True, onupdate=func.now())


def _payment_table_args(table: str, monthly: bool) -> tuple:
    key = ("company_id", "year", "month") if monthly else ("company_id", "year", "quarter")
    return (
        UniqueConstraint(*key, name=f"{table}_period_unique"),
        CheckConstraint("status IN ('pending', 'paid')", name=f"{table}_status_check"),
        CheckConstraint("quarter BETWEEN 1 AND 4", name=f"{table}_quarter_check"),
    )


class Federal941Payment(Base, TaxPaymentMixin):
    """Monthly 941 deposit: income tax withheld plus both halves of FICA."""

    __tablename__ = "federal_941_payment"
    __table_args__ = _payment_table_args("federal_941_payment", monthly=True)

    BOOKKEEPING_FIELDS = TaxPaymentMixin.BOOKKEEPING_FIELDS + ("quarter",)
    FINANCIAL_FIELDS = (
        "federal_income_tax",
        "social_security_tax",
        "social_security_employer_tax",
        "medicare_tax",
        "medicare_employer_tax",
        "additional_medicare_tax",
        "total_tax",
        "requires_immediate_payment",
    )

    month: Mapped[int] = mapped_column(nullable=False)
    federal_income_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    social_security_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    social_security_employer_tax: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    medicare_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    medicare_employer_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    additional_medicare_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))


class Federal940Payment(Base, TaxPaymentMixin):
    """Quarterly FUTA deposit."""

    __tablename__ = "federal_940_payment"
    __table_args__ = _payment_table_args("federal_940_payment", monthly=False)

    FINANCIAL_FIELDS = ("futa_wages", "futa_tax", "total_tax", "requires_immediate_payment")

    futa_wages: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    futa_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))


class CAPitSdiPayment(Base, TaxPaymentMixin):
    """Monthly California PIT and SDI deposit (DE 88)."""

    __tablename__ = "ca_pit_sdi_payment"
    __table_args__ = _payment_table_args("ca_pit_sdi_payment", monthly=True)

    BOOKKEEPING_FIELDS = TaxPaymentMixin.BOOKKEEPING_FIELDS + ("quarter",)
    FINANCIAL_FIELDS = ("pit_withheld", "sdi_withheld", "total_tax", "requires_immediate_payment")

    month: Mapped[int] = mapped_column(nullable=False)
    pit_withheld: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sdi_withheld: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))


class CASuiEttPayment(Base, TaxPaymentMixin):
    """Quarterly California UI and ETT contribution."""

    __tablename__ = "ca_sui_ett_payment"
    __table_args__ = _payment_table_args("ca_sui_ett_payment", monthly=False)

    FINANCIAL_FIELDS = ("sui", "ett", "total_tax", "requires_immediate_payment")

    sui: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    ett: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))


TAX_PAYMENT_MODELS: dict[str, type[TaxPaymentMixin]] = {
    "federal941": Federal941Payment,
    "federal940": Federal940Payment,
    "ca_pit_sdi": CAPitSdiPayment,
    "ca_sui_ett": CASuiEttPayment,
}
