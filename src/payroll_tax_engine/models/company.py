"""Company and employee models supplying tax configuration."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_tax_engine.models.base import Base, TimestampMixin


class Company(Base, TimestampMixin):
    """Employer filing federal and California returns."""

    __tablename__ = "company"

    company_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    ein: Mapped[str] = mapped_column(String, nullable=False)
    edd_account_number: Mapped[str | None] = mapped_column(String, nullable=True)
    address_line1: Mapped[str | None] = mapped_column(String, nullable=True)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    state: Mapped[str] = mapped_column(String(2), nullable=False, default="CA")
    postal_code: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (CheckConstraint("state = 'CA'", name="company_state_ca"),)

    state_rates: Mapped[list[CompanyStateRate]] = relationship(
        back_populates="company",
        order_by="CompanyStateRate.effective_date",
    )
    employees: Mapped[list[Employee]] = relationship(back_populates="company")

    @property
    def address(self) -> str | None:
        parts = [p for p in (self.address_line1, self.city) if p]
        if not parts:
            return None
        line = ", ".join(parts)
        tail = " ".join(p for p in (self.state, self.postal_code) if p)
        return f"{line}, {tail}" if tail else line


class CompanyStateRate(Base, TimestampMixin):
    """Effective-dated CA UI and ETT contribution rates."""

    __tablename__ = "company_state_rate"

    rate_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    ui_rate: Mapped[Decimal] = mapped_column(Numeric(7, 5), nullable=False)
    ett_rate: Mapped[Decimal] = mapped_column(Numeric(7, 5), nullable=False)
    effective_date: Mapped[date] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "effective_date", name="company_state_rate_effective_unique"),
        CheckConstraint("ui_rate >= 0 AND ett_rate >= 0", name="company_state_rate_nonnegative"),
    )

    company: Mapped[Company] = relationship(back_populates="state_rates")


class Employee(Base, TimestampMixin):
    """Employee identity plus current tax elections.

    Elections are copied onto each payroll record when it is built so later
    changes never alter historical tax results.
    """

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String, nullable=True)
    ssn: Mapped[str | None] = mapped_column(String, nullable=True)
    pay_period_type: Mapped[str] = mapped_column(String, nullable=False, default="biweekly")
    federal_w4: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    california_de4: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    tax_exemptions: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    wage_plan_code: Mapped[str] = mapped_column(String(1), nullable=False, default="S")

    __table_args__ = (
        CheckConstraint(
            "pay_period_type IN ('weekly', 'biweekly', 'semimonthly', 'monthly')",
            name="employee_pay_period_type_check",
        ),
        CheckConstraint("wage_plan_code IN ('A', 'J', 'P', 'S')", name="employee_wage_plan_check"),
    )

    company: Mapped[Company] = relationship(back_populates="employees")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
