"""Payroll record creation and approval."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax_engine.calculators.money import ZERO, round_cents
from payroll_tax_engine.calculators.types import (
    CaliforniaDE4,
    FederalW4,
    PayPeriodType,
    TaxExemptions,
    WagePlanCode,
    WithholdingInput,
    YTDWages,
)
from payroll_tax_engine.calculators.withholding import calculate_withholding
from payroll_tax_engine.dates import DateLike, to_utc_date, year_quarter
from payroll_tax_engine.exceptions import (
    InvalidInputError,
    NotFoundError,
    PayPeriodOverlapError,
)
from payroll_tax_engine.models import ApprovalStatus, Company, Employee, PayrollRecord
from payroll_tax_engine.services.filing_service import FilingService, state_rates_at
from payroll_tax_engine.services.tax_payment_service import TaxPaymentService
from payroll_tax_engine.services.ytd_service import YTDService

logger = logging.getLogger(__name__)


@dataclass
class Earnings:
    """Earnings for one pay period; gross is their sum."""

    regular: Decimal = ZERO
    overtime: Decimal = ZERO
    bonus: Decimal = ZERO
    commission: Decimal = ZERO
    other: Decimal = ZERO

    @property
    def gross(self) -> Decimal:
        return round_cents(self.regular + self.overtime + self.bonus + self.commission + self.other)


class PayrollService:
    """Builds payroll records with their taxes and approves them.

    Approval is what feeds the tax engine: once records are approved, the
    payment obligations and filings for every affected period are refreshed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.ytd = YTDService(session)

    async def create_payroll_record(
        self,
        company_id: UUID,
        employee_id: UUID,
        period_start: DateLike,
        period_end: DateLike,
        pay_date: DateLike,
        earnings: Earnings,
        pre_tax_deductions: Decimal | int | str = ZERO,
        post_tax_deductions: Decimal | int | str = ZERO,
    ) -> PayrollRecord:
        """Calculate taxes for one employee's pay period and store a pending record.

        Raises:
            NotFoundError: company or employee missing, or employee belongs to another company
            InvalidInputError: bad dates, negative amounts or missing tax elections
            PayPeriodOverlapError: the period overlaps an existing record for the employee
        """
        company = await self.session.get(Company, company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.company_id != company_id:
            raise NotFoundError("Employee", employee_id)

        start = to_utc_date(period_start)
        end = to_utc_date(period_end)
        paid_on = to_utc_date(pay_date)
        if end < start:
            raise InvalidInputError(f"Period end {end} is before period start {start}")

        pre_tax = round_cents(pre_tax_deductions)
        post_tax = round_cents(post_tax_deductions)
        if pre_tax < 0 or post_tax < 0:
            raise InvalidInputError("Deductions cannot be negative")

        await self._check_overlap(employee_id, start, end)

        # Wage bases reset with the tax year of the pay date, even when the period began in December
        wages_before = await self.ytd.get_wages_before(
            company_id, paid_on, "pay_date", employee_id=employee_id
        )
        exemptions = TaxExemptions.from_dict(employee.tax_exemptions)
        wage_plan = WagePlanCode(employee.wage_plan_code)
        result = calculate_withholding(
            WithholdingInput(
                gross_pay=earnings.gross,
                pay_period_type=PayPeriodType(employee.pay_period_type),
                tax_year=paid_on.year,
                ytd=YTDWages(gross_pay=wages_before.get(employee_id, ZERO)),
                federal_w4=FederalW4.from_dict(employee.federal_w4)
                if employee.federal_w4 is not None
                else None,
                california_de4=CaliforniaDE4.from_dict(employee.california_de4)
                if employee.california_de4 is not None
                else None,
                state_rates=await state_rates_at(self.session, company_id, paid_on),
                exemptions=exemptions,
                wage_plan_code=wage_plan,
                pre_tax_deductions=pre_tax,
                post_tax_deductions=post_tax,
            )
        )

        record = PayrollRecord(
            company_id=company_id,
            employee_id=employee_id,
            first_name=employee.first_name,
            last_name=employee.last_name,
            middle_name=employee.middle_name,
            ssn=employee.ssn,
            pay_period_type=employee.pay_period_type,
            period_start=start,
            period_end=end,
            pay_date=paid_on,
            regular_pay=round_cents(earnings.regular),
            overtime_pay=round_cents(earnings.overtime),
            bonus_pay=round_cents(earnings.bonus),
            commission_pay=round_cents(earnings.commission),
            other_pay=round_cents(earnings.other),
            gross_pay=result.gross_pay,
            pre_tax_deductions=pre_tax,
            post_tax_deductions=post_tax,
            federal_income_tax=result.employee.federal_income_tax,
            social_security_tax=result.employee.social_security_tax,
            medicare_tax=result.employee.medicare_tax,
            additional_medicare_tax=result.employee.additional_medicare_tax,
            state_income_tax=result.employee.state_income_tax,
            sdi=result.employee.sdi,
            employee_taxes_total=result.employee.total,
            employer_social_security_tax=result.employer.social_security_tax,
            employer_medicare_tax=result.employer.medicare_tax,
            futa=result.employer.futa,
            sui=result.employer.sui,
            ett=result.employer.ett,
            employer_taxes_total=result.employer.total,
            net_pay=result.net_pay,
            federal_w4=employee.federal_w4,
            california_de4=employee.california_de4,
            tax_exemptions=exemptions.to_dict(),
            wage_plan_code=wage_plan.value,
            approval_status=ApprovalStatus.PENDING.value,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def approve_payroll_records(
        self,
        company_id: UUID,
        payroll_ids: list[UUID],
    ) -> list[PayrollRecord]:
        """Approve records, then sync payments and recompute filings they touch.

        Already-approved records are left as they are and still trigger the
        refresh of their periods.
        """
        if not payroll_ids:
            return []
        result = await self.session.execute(
            select(PayrollRecord).where(
                PayrollRecord.company_id == company_id,
                PayrollRecord.payroll_id.in_(payroll_ids),
            )
        )
        records = list(result.scalars().all())
        found = {record.payroll_id for record in records}
        for payroll_id in payroll_ids:
            if payroll_id not in found:
                raise NotFoundError("PayrollRecord", payroll_id)

        await self.session.execute(
            update(PayrollRecord)
            .where(
                PayrollRecord.company_id == company_id,
                PayrollRecord.payroll_id.in_(payroll_ids),
                PayrollRecord.approval_status == ApprovalStatus.PENDING.value,
            )
            .values(
                approval_status=ApprovalStatus.APPROVED.value,
                approved_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        for record in records:
            await self.session.refresh(record)

        await self.refresh_tax_records(company_id, records)
        logger.info("Approved %d payroll records for company %s", len(records), company_id)
        return records

    async def refresh_tax_records(self, company_id: UUID, records: list[PayrollRecord]) -> None:
        """Sync payments and recompute filings for every period ``records`` fall in."""
        months = sorted({(r.pay_date.year, r.pay_date.month): r.pay_date for r in records}.items())
        pay_quarters = sorted({(q.year, q.quarter) for q in (year_quarter(r.pay_date) for r in records)})
        end_quarters = sorted(
            {(q.year, q.quarter) for q in (year_quarter(r.period_end) for r in records)}
        )

        payments = TaxPaymentService(self.session)
        for _, pay_date in months:
            await payments.sync_tax_payments(company_id, pay_date)

        filings = FilingService(self.session)
        for year, quarter in pay_quarters:
            await filings.recompute_form941(company_id, year, quarter)
        for year in sorted({year for year, _ in pay_quarters}):
            await filings.recompute_form940(company_id, year)
        for year, quarter in end_quarters:
            await filings.recompute_de9(company_id, year, quarter)
            await filings.recompute_de9c(company_id, year, quarter)

    async def list_payroll_records(
        self,
        company_id: UUID,
        employee_id: UUID | None = None,
        status: str | None = None,
    ) -> list[PayrollRecord]:
        stmt = select(PayrollRecord).where(PayrollRecord.company_id == company_id)
        if employee_id is not None:
            stmt = stmt.where(PayrollRecord.employee_id == employee_id)
        if status is not None:
            if status not in {s.value for s in ApprovalStatus}:
                raise InvalidInputError(f"Unknown approval status {status!r}")
            stmt = stmt.where(PayrollRecord.approval_status == status)
        stmt = stmt.order_by(PayrollRecord.pay_date, PayrollRecord.last_name).execution_options(
            populate_existing=True
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def _check_overlap(self, employee_id: UUID, start, end) -> None:
        overlapping = await self.session.scalar(
            select(PayrollRecord.payroll_id)
            .where(
                PayrollRecord.employee_id == employee_id,
                PayrollRecord.period_start <= end,
                PayrollRecord.period_end >= start,
            )
            .limit(1)
        )
        if overlapping is not None:
            raise PayPeriodOverlapError(employee_id, start, end)
