"""Pytest fixtures for payroll tax engine tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from payroll_tax_engine.calculators.types import PayrollLine, TaxExemptions
from payroll_tax_engine.database import Database
from payroll_tax_engine.models import Company, CompanyStateRate, Employee, PayrollRecord

# In-memory SQLite shared across the one connection StaticPool hands out
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def db() -> AsyncGenerator[Database, None]:
    """Fresh schema per test."""
    database = Database(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
async def session(db: Database) -> AsyncGenerator[AsyncSession, None]:
    async with db.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_company(session: AsyncSession):
    """Factory for companies, with UI 3.4% and ETT 0.1% in force from 2024 unless told otherwise."""

    async def _make(
        name: str = "Golden Gate Bakery",
        ein: str = "12-3456789",
        ui_rate: Decimal | None = Decimal("0.034"),
        ett_rate: Decimal = Decimal("0.001"),
        rate_effective: date = date(2024, 1, 1),
    ) -> Company:
        company = Company(
            company_id=uuid4(),
            name=name,
            ein=ein,
            edd_account_number="123-4567-8",
            address_line1="1 Market St",
            city="San Francisco",
            state="CA",
            postal_code="94105",
        )
        session.add(company)
        await session.flush()
        if ui_rate is not None:
            session.add(
                CompanyStateRate(
                    company_id=company.company_id,
                    ui_rate=ui_rate,
                    ett_rate=ett_rate,
                    effective_date=rate_effective,
                )
            )
            await session.flush()
        return company

    return _make


@pytest.fixture
async def company(make_company) -> Company:
    return await make_company()


@pytest.fixture
def make_employee(session: AsyncSession):
    async def _make(company: Company, first_name: str = "Ada", last_name: str = "Lovelace", **overrides) -> Employee:
        values = {
            "employee_id": uuid4(),
            "company_id": company.company_id,
            "first_name": first_name,
            "last_name": last_name,
            "ssn": "123456789",
            "pay_period_type": "biweekly",
            "federal_w4": {"filing_status": "single"},
            "california_de4": {"filing_status": "single", "worksheet_a_allowances": 1},
            "tax_exemptions": None,
            "wage_plan_code": "S",
        }
        values.update(overrides)
        employee = Employee(**values)
        session.add(employee)
        await session.flush()
        return employee

    return _make


@pytest.fixture
async def employee(make_employee, company: Company) -> Employee:
    return await make_employee(company)


@pytest.fixture
def make_payroll(session: AsyncSession):
    """Factory for stored payroll records with explicit tax amounts.

    Amounts not passed default to zero; the period ends on the pay date and
    starts 13 days earlier unless given.
    """

    async def _make(
        company: Company,
        employee: Employee,
        pay_date: date,
        gross: str | Decimal = "1000.00",
        period_start: date | None = None,
        period_end: date | None = None,
        approved: bool = True,
        **amounts,
    ) -> PayrollRecord:
        gross = Decimal(str(gross))
        taxes = {name: Decimal(str(value)) for name, value in amounts.items()}
        employee_total = sum(
            (
                taxes.get(name, Decimal("0"))
                for name in (
                    "federal_income_tax",
                    "social_security_tax",
                    "medicare_tax",
                    "additional_medicare_tax",
                    "state_income_tax",
                    "sdi",
                )
            ),
            Decimal("0"),
        )
        period_end = period_end or pay_date
        record = PayrollRecord(
            payroll_id=uuid4(),
            company_id=company.company_id,
            employee_id=employee.employee_id,
            first_name=employee.first_name,
            last_name=employee.last_name,
            ssn=employee.ssn,
            pay_period_type=employee.pay_period_type,
            period_start=period_start or period_end - timedelta(days=13),
            period_end=period_end,
            pay_date=pay_date,
            regular_pay=gross,
            gross_pay=gross,
            employee_taxes_total=employee_total,
            net_pay=gross - employee_total,
            wage_plan_code=employee.wage_plan_code,
            tax_exemptions=employee.tax_exemptions,
            approval_status="approved" if approved else "pending",
            **taxes,
        )
        session.add(record)
        await session.flush()
        return record

    return _make


# Taxes on $2,000 biweekly for a single filer with one DE 4 allowance, 2025 tables,
# UI 3.4% and ETT 0.1%.
STANDARD_TAXES = {
    "federal_income_tax": "161.60",
    "social_security_tax": "124.00",
    "employer_social_security_tax": "124.00",
    "medicare_tax": "29.00",
    "employer_medicare_tax": "29.00",
    "state_income_tax": "50.03",
    "sdi": "24.00",
    "futa": "12.00",
    "sui": "68.00",
    "ett": "2.00",
}


@pytest.fixture
def make_taxed_payroll(make_payroll):
    """Approved $2,000 payroll carrying the standard tax amounts; overrides win."""

    async def _make(company: Company, employee: Employee, pay_date: date, **overrides) -> PayrollRecord:
        amounts = {"gross": "2000.00", **STANDARD_TAXES, **overrides}
        return await make_payroll(company, employee, pay_date, **amounts)

    return _make


@pytest.fixture
def make_line():
    """Factory for calculator input lines that never touch the database."""

    def _make(
        employee_id=None,
        pay_date: date = date(2025, 4, 15),
        gross: str = "1000.00",
        period_end: date | None = None,
        exemptions: TaxExemptions | None = None,
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        middle_name: str | None = None,
        ssn: str | None = "123456789",
        wage_plan_code: str = "S",
        **amounts,
    ) -> PayrollLine:
        end = period_end or pay_date
        return PayrollLine(
            payroll_id=uuid4(),
            employee_id=employee_id or uuid4(),
            first_name=first_name,
            last_name=last_name,
            middle_name=middle_name,
            ssn=ssn,
            wage_plan_code=wage_plan_code,
            pay_date=pay_date,
            period_start=end - timedelta(days=13),
            period_end=end,
            gross_pay=Decimal(gross),
            exemptions=exemptions or TaxExemptions(),
            **{name: Decimal(str(value)) for name, value in amounts.items()},
        )

    return _make
