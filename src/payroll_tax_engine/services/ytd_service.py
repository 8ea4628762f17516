"""Year-to-date aggregation over approved payroll."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax_engine.calculators.money import ZERO, round_cents
from payroll_tax_engine.dates import DateLike, to_utc_date
from payroll_tax_engine.models import ApprovalStatus, PayrollRecord

_SUMMED_COLUMNS = (
    "regular_pay",
    "overtime_pay",
    "bonus_pay",
    "commission_pay",
    "other_pay",
    "gross_pay",
    "pre_tax_deductions",
    "post_tax_deductions",
    "federal_income_tax",
    "social_security_tax",
    "medicare_tax",
    "additional_medicare_tax",
    "state_income_tax",
    "sdi",
    "employee_taxes_total",
    "employer_social_security_tax",
    "employer_medicare_tax",
    "futa",
    "sui",
    "ett",
    "employer_taxes_total",
    "net_pay",
)


@dataclass
class YTDTotals:
    """Sums of approved payroll from Jan 1 up to a cutoff. All zero when nothing matched."""

    regular_pay: Decimal = ZERO
    overtime_pay: Decimal = ZERO
    bonus_pay: Decimal = ZERO
    commission_pay: Decimal = ZERO
    other_pay: Decimal = ZERO
    gross_pay: Decimal = ZERO
    pre_tax_deductions: Decimal = ZERO
    post_tax_deductions: Decimal = ZERO
    federal_income_tax: Decimal = ZERO
    social_security_tax: Decimal = ZERO
    medicare_tax: Decimal = ZERO
    additional_medicare_tax: Decimal = ZERO
    state_income_tax: Decimal = ZERO
    sdi: Decimal = ZERO
    employee_taxes_total: Decimal = ZERO
    employer_social_security_tax: Decimal = ZERO
    employer_medicare_tax: Decimal = ZERO
    futa: Decimal = ZERO
    sui: Decimal = ZERO
    ett: Decimal = ZERO
    employer_taxes_total: Decimal = ZERO
    net_pay: Decimal = ZERO
    record_count: int = 0

    @property
    def total_deductions(self) -> Decimal:
        return self.pre_tax_deductions + self.post_tax_deductions + self.employee_taxes_total

    @classmethod
    def zero(cls) -> YTDTotals:
        return cls()


class YTDService:
    """Sums approved payroll records for YTD wage-base math and reporting."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_employee_ytd(
        self,
        company_id: UUID,
        employee_id: UUID,
        period_start: DateLike,
    ) -> YTDTotals:
        """Totals for one employee from Jan 1 up to, not including, ``period_start``."""
        return await self._aggregate(
            company_id, period_start, PayrollRecord.employee_id == employee_id
        )

    async def get_company_ytd(self, company_id: UUID, period_start: DateLike) -> YTDTotals:
        return await self._aggregate(company_id, period_start)

    async def get_employee_ytd_batch(
        self,
        company_id: UUID,
        employee_ids: list[UUID],
        period_start: DateLike,
    ) -> dict[UUID, YTDTotals]:
        """YTD totals for many employees in one query; missing employees get zeros."""
        cutoff = to_utc_date(period_start)
        columns = [func.sum(getattr(PayrollRecord, name)) for name in _SUMMED_COLUMNS]
        stmt = (
            select(PayrollRecord.employee_id, func.count(), *columns)
            .where(
                PayrollRecord.company_id == company_id,
                PayrollRecord.employee_id.in_(employee_ids),
                PayrollRecord.approval_status == ApprovalStatus.APPROVED.value,
                PayrollRecord.period_start >= date(cutoff.year, 1, 1),
                PayrollRecord.period_start < cutoff,
            )
            .group_by(PayrollRecord.employee_id)
        )
        result = await self.session.execute(stmt)
        totals = {employee_id: YTDTotals.zero() for employee_id in employee_ids}
        for row in result.all():
            totals[row[0]] = self._from_row(row[1], row[2:])
        return totals

    async def get_wages_before(
        self,
        company_id: UUID,
        cutoff: DateLike,
        date_column: str = "pay_date",
        employee_id: UUID | None = None,
    ) -> dict[UUID, Decimal]:
        """Gross wages per employee from Jan 1 up to ``cutoff``, keyed on ``date_column``.

        Wage bases follow the pay date, the same year the tax tables come
        from; DE 9 prior wages follow the period end.
        """
        day = to_utc_date(cutoff)
        column = getattr(PayrollRecord, date_column)
        stmt = select(PayrollRecord.employee_id, func.sum(PayrollRecord.gross_pay)).where(
            PayrollRecord.company_id == company_id,
            PayrollRecord.approval_status == ApprovalStatus.APPROVED.value,
            column >= date(day.year, 1, 1),
            column < day,
        )
        if employee_id is not None:
            stmt = stmt.where(PayrollRecord.employee_id == employee_id)
        stmt = stmt.group_by(PayrollRecord.employee_id)
        result = await self.session.execute(stmt)
        return {row_id: round_cents(total) for row_id, total in result.all()}

    async def _aggregate(self, company_id: UUID, period_start: DateLike, *criteria) -> YTDTotals:
        cutoff = to_utc_date(period_start)
        columns = [func.sum(getattr(PayrollRecord, name)) for name in _SUMMED_COLUMNS]
        stmt = select(func.count(), *columns).where(
            PayrollRecord.company_id == company_id,
            PayrollRecord.approval_status == ApprovalStatus.APPROVED.value,
            PayrollRecord.period_start >= date(cutoff.year, 1, 1),
            PayrollRecord.period_start < cutoff,
            *criteria,
        )
        row = (await self.session.execute(stmt)).one()
        if not row[0]:
            return YTDTotals.zero()
        return self._from_row(row[0], row[1:])

    @staticmethod
    def _from_row(count: int, sums) -> YTDTotals:
        values = {
            name: round_cents(value) if value is not None else ZERO
            for name, value in zip(_SUMMED_COLUMNS, sums)
        }
        return YTDTotals(record_count=count, **values)
