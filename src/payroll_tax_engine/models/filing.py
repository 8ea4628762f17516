"""Compliance filing models: Form 941, Form 940, DE 9 and DE 9C."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_tax_engine.models.base import Base, TimestampMixin

_ZERO = Decimal("0")


class FilingMixin(TimestampMixin):
    """Columns shared by every filing.

    Once filed, ``payroll_ids`` is the only column a recompute may touch.
    """

    filing_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(nullable=False)

    # Company header, denormalized for rendering
    company_name: Mapped[str] = mapped_column(String, nullable=False)
    ein: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False, default="computed")
    filed_at: Mapped[date | None] = mapped_column(nullable=True)
    filed_by: Mapped[str | None] = mapped_column(String, nullable=True)

    payroll_ids: Mapped[list[str]] = mapped_column(nullable=False, default=lambda: [])
    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)


def _filing_table_args(table: str, quarterly: bool = True) -> tuple:
    key = ("company_id", "year", "quarter") if quarterly else ("company_id", "year")
    args: list[Any] = [
        UniqueConstraint(*key, name=f"{table}_period_unique"),
        CheckConstraint("status IN ('computed', 'filed')", name=f"{table}_status_check"),
    ]
    if quarterly:
        args.append(CheckConstraint("quarter BETWEEN 1 AND 4", name=f"{table}_quarter_check"))
    return tuple(args)


class Form941Filing(Base, FilingMixin):
    """Form 941 for one company quarter."""

    __tablename__ = "form_941_filing"
    __table_args__ = _filing_table_args("form_941_filing")

    quarter: Mapped[int] = mapped_column(nullable=False)
    number_of_employees: Mapped[int] = mapped_column(nullable=False, default=0)
    wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    federal_income_tax_withheld: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    social_security_wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    social_security_tax: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    medicare_wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    medicare_tax: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    additional_medicare_wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    additional_medicare_tax: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_social_security_medicare_tax: Mapped[Decimal] = mapped_column(
        nullable=False, default=_ZERO
    )
    total_taxes_before_adjustments: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    fractions_of_cents_adjustment: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_taxes_after_adjustments: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_tax_liability: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_deposits: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    balance_due: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    overpayment: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    deposit_schedule: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    month1_liability: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    month2_liability: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    month3_liability: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    month1_deposits: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    month2_deposits: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    month3_deposits: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    lookback_total: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    schedule_b: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=lambda: [])


class Form940Filing(Base, FilingMixin):
    """Form 940 for one company year."""

    __tablename__ = "form_940_filing"
    __table_args__ = _filing_table_args("form_940_filing", quarterly=False)

    number_of_employees: Mapped[int] = mapped_column(nullable=False, default=0)
    total_payments: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    exempt_payments: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    payments_over_limit: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_exempt_and_excess: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    taxable_futa_wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    futa_tax_before_adjustments: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    excluded_wages_adjustment: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    late_state_payment_adjustment: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    credit_reduction: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    credit_reduction_rate: Mapped[Decimal] = mapped_column(Numeric(7, 5), nullable=False, default=_ZERO)
    total_futa_tax: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_deposits: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    balance_due: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    overpayment: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    q1_liability: Mapped[Decimal | None] = mapped_column(nullable=True)
    q2_liability: Mapped[Decimal | None] = mapped_column(nullable=True)
    q3_liability: Mapped[Decimal | None] = mapped_column(nullable=True)
    q4_liability: Mapped[Decimal | None] = mapped_column(nullable=True)


class De9Filing(Base, FilingMixin):
    """California DE 9 for one company quarter."""

    __tablename__ = "de9_filing"
    __table_args__ = _filing_table_args("de9_filing")

    quarter: Mapped[int] = mapped_column(nullable=False)
    edd_account_number: Mapped[str | None] = mapped_column(String, nullable=True)
    quarter_ended: Mapped[date] = mapped_column(nullable=False)
    delinquent_date: Mapped[date] = mapped_column(nullable=False)
    ui_rate: Mapped[str] = mapped_column(String, nullable=False)
    ett_rate: Mapped[str] = mapped_column(String, nullable=False)
    sdi_rate: Mapped[str] = mapped_column(String, nullable=False)
    total_subject_wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    ui_taxable_wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    sdi_taxable_wages: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    ui_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    ett_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    sdi_withheld: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    pit_withheld: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    contributions_paid: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)
    total_due: Mapped[Decimal] = mapped_column(nullable=False, default=_ZERO)


class De9cFiling(Base, FilingMixin):
    """California DE 9C employee detail for one company quarter."""

    __tablename__ = "de9c_filing"
    __table_args__ = _filing_table_args("de9c_filing")

    quarter: Mapped[int] = mapped_column(nullable=False)
    edd_account_number: Mapped[str | None] = mapped_column(String, nullable=True)
    employees: Mapped[list[dict[str, Any]]] = mapped_column(nullable=False, default=lambda: [])
    month1_employees: Mapped[int] = mapped_column(nullable=False, default=0)
    month2_employees: Mapped[int] = mapped_column(nullable=False, default=0)
    month3_employees: Mapped[int] = mapped_column(nullable=False, default=0)
    total_subject_wages: Mapped[str] = mapped_column(String, nullable=False, default="0.00")
    total_pit_wages: Mapped[str] = mapped_column(String, nullable=False, default="0.00")
    total_pit_withheld: Mapped[str] = mapped_column(String, nullable=False, default="0.00")


FILING_MODELS: dict[str, type[FilingMixin]] = {
    "form941": Form941Filing,
    "form940": Form940Filing,
    "de9": De9Filing,
    "de9c": De9cFiling,
}
