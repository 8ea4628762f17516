"""Payroll record model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_tax_engine.calculators.types import PayrollLine, TaxExemptions
from payroll_tax_engine.models.base import Base, TimestampMixin


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class PayrollRecord(Base, TimestampMixin):
    """One employee's pay for one pay period.

    Amounts are fixed when the record is built; the tax engine only reads
    approved records.
    """

    __tablename__ = "payroll_record"

    payroll_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )

    # Denormalized employee identity for form rendering
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String, nullable=True)
    ssn: Mapped[str | None] = mapped_column(String, nullable=True)

    pay_period_type: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[date] = mapped_column(nullable=False)
    period_end: Mapped[date] = mapped_column(nullable=False)
    pay_date: Mapped[date] = mapped_column(nullable=False)

    # Earnings
    regular_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bonus_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    commission_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    other_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    gross_pay: Mapped[Decimal] = mapped_column(nullable=False)

    # Deductions
    pre_tax_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    post_tax_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Employee taxes
    federal_income_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    social_security_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    medicare_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    additional_medicare_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    state_income_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sdi: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    employee_taxes_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Employer taxes
    employer_social_security_tax: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    employer_medicare_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    futa: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sui: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    ett: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    employer_taxes_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    net_pay: Mapped[Decimal] = mapped_column(nullable=False)

    # Election snapshots taken when the record was built
    federal_w4: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    california_de4: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    tax_exemptions: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    wage_plan_code: Mapped[str] = mapped_column(String(1), nullable=False, default="S")

    approval_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ApprovalStatus.PENDING.value
    )
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "approval_status IN ('pending', 'approved')",
            name="payroll_record_approval_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_record_period_check"),
        Index("ix_payroll_record_company_pay_date", "company_id", "pay_date"),
        Index("ix_payroll_record_company_period_end", "company_id", "period_end"),
        Index("ix_payroll_record_employee_period", "employee_id", "period_start"),
    )

    def to_line(self) -> PayrollLine:
        """Flatten into the calculator input type."""
        return PayrollLine(
            payroll_id=self.payroll_id,
            employee_id=self.employee_id,
            first_name=self.first_name,
            last_name=self.last_name,
            middle_name=self.middle_name,
            ssn=self.ssn,
            pay_date=self.pay_date,
            period_start=self.period_start,
            period_end=self.period_end,
            gross_pay=self.gross_pay,
            federal_income_tax=self.federal_income_tax,
            social_security_tax=self.social_security_tax,
            medicare_tax=self.medicare_tax,
            additional_medicare_tax=self.additional_medicare_tax,
            employer_social_security_tax=self.employer_social_security_tax,
            employer_medicare_tax=self.employer_medicare_tax,
            state_income_tax=self.state_income_tax,
            sdi=self.sdi,
            futa=self.futa,
            sui=self.sui,
            ett=self.ett,
            pre_tax_deductions=self.pre_tax_deductions,
            wage_plan_code=self.wage_plan_code,
            exemptions=TaxExemptions.from_dict(self.tax_exemptions),
        )
