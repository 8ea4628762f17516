"""Tax payment sync: derives payment obligations from approved payroll."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax_engine.calculators.form940 import calculate_form940
from payroll_tax_engine.calculators.money import ZERO, sum_cents
from payroll_tax_engine.calculators.rates import get_tax_rates
from payroll_tax_engine.database import guarded_upsert, lock_period
from payroll_tax_engine.dates import (
    DateLike,
    month_range,
    monthly_due_date,
    quarter_of_month,
    quarter_range,
    quarterly_due_date,
    to_utc_date,
    year_range,
)
from payroll_tax_engine.exceptions import InvalidInputError, NotFoundError
from payroll_tax_engine.models import (
    TAX_PAYMENT_MODELS,
    ApprovalStatus,
    Company,
    Federal940Payment,
    PayrollRecord,
    TaxPaymentMixin,
)
from payroll_tax_engine.services.state_machine import PaymentStateMachine, PaymentStatus

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one payment sync, keyed by payment type."""

    company_id: UUID
    year: int
    quarter: int
    month: int
    payments: dict[str, TaxPaymentMixin] = field(default_factory=dict)
    # Payment types whose amounts were left untouched because they are already paid
    frozen: list[str] = field(default_factory=list)


@dataclass
class UnpaidDeadline:
    payment_type: str
    payment_id: UUID
    year: int
    quarter: int
    month: int | None
    due_date: date
    total_tax: Decimal
    requires_immediate_payment: bool


async def approved_payroll(
    session: AsyncSession,
    company_id: UUID,
    start: date,
    end: date,
    date_column: str = "pay_date",
) -> list[PayrollRecord]:
    """Approved payroll records whose ``date_column`` falls within [start, end]."""
    column = getattr(PayrollRecord, date_column)
    result = await session.execute(
        select(PayrollRecord)
        .where(
            PayrollRecord.company_id == company_id,
            PayrollRecord.approval_status == ApprovalStatus.APPROVED.value,
            column >= start,
            column <= end,
        )
        .order_by(column, PayrollRecord.payroll_id)
    )
    return list(result.scalars().all())


def payroll_ids_of(records: list[PayrollRecord]) -> list[str]:
    return sorted(str(record.payroll_id) for record in records)


class TaxPaymentService:
    """Keeps the four payment tables in step with approved payroll.

    Each sync creates missing rows with insert-or-ignore, refreshes the
    bookkeeping fields unconditionally, and writes amounts only where the row
    is not yet paid. A paid row's amounts are never rewritten.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def sync_tax_payments(self, company_id: UUID, pay_date: DateLike) -> SyncResult:
        """Upsert the obligations for the month and quarter containing ``pay_date``."""
        day = to_utc_date(pay_date)
        company = await self.session.get(Company, company_id)
        if company is None:
            raise NotFoundError("Company", company_id)

        year, month = day.year, day.month
        quarter = quarter_of_month(month)
        # Unsupported tax years fail before anything is written
        get_tax_rates(year)

        await lock_period(self.session, f"tax_payment:{company_id}:{year}:{quarter}")

        month_start, month_end = month_range(year, month)
        quarter_start, quarter_end = quarter_range(year, quarter)
        month_payrolls = await approved_payroll(self.session, company_id, month_start, month_end)
        quarter_payrolls = await approved_payroll(
            self.session, company_id, quarter_start, quarter_end
        )

        result = SyncResult(company_id=company_id, year=year, quarter=quarter, month=month)
        month_bookkeeping = self._bookkeeping(
            month_payrolls, month_start, month_end, monthly_due_date(year, month), quarter
        )
        quarter_bookkeeping = self._bookkeeping(
            quarter_payrolls, quarter_start, quarter_end, quarterly_due_date(year, quarter), quarter
        )

        await self._store(
            result,
            "federal941",
            key={"company_id": company_id, "year": year, "month": month},
            financial=self._federal941_amounts(year, month_payrolls),
            bookkeeping=month_bookkeeping,
        )
        await self._store(
            result,
            "ca_pit_sdi",
            key={"company_id": company_id, "year": year, "month": month},
            financial=self._ca_pit_sdi_amounts(month_payrolls),
            bookkeeping=month_bookkeeping,
        )
        await self._store(
            result,
            "ca_sui_ett",
            key={"company_id": company_id, "year": year, "quarter": quarter},
            financial=self._ca_sui_ett_amounts(quarter_payrolls),
            bookkeeping=quarter_bookkeeping,
        )

        futa = await self._futa_by_quarter(company_id, year)
        await self._store(
            result,
            "federal940",
            key={"company_id": company_id, "year": year, "quarter": quarter},
            financial={
                "futa_wages": futa.quarterly_futa_wages[quarter],
                "futa_tax": futa.quarterly_futa[quarter],
                "total_tax": futa.quarterly_futa[quarter],
                "requires_immediate_payment": futa.deposit_required[quarter],
            },
            bookkeeping=quarter_bookkeeping,
        )
        await self.refresh_940_flags(company_id, year)

        logger.info(
            "Synced tax payments for company %s %d-%02d (Q%d): %d payrolls in month, "
            "%d in quarter, frozen=%s",
            company_id,
            year,
            month,
            quarter,
            len(month_payrolls),
            len(quarter_payrolls),
            result.frozen or "none",
        )
        return result

    async def refresh_940_flags(self, company_id: UUID, year: int) -> dict[int, bool]:
        """Re-derive the FUTA deposit flags for every quarter of ``year``.

        Flags come from the full year's approved payroll; paid quarters keep
        whatever they had when they were paid.
        """
        futa = await self._futa_by_quarter(company_id, year)
        for quarter, required in futa.deposit_required.items():
            await self.session.execute(
                update(Federal940Payment)
                .where(
                    Federal940Payment.company_id == company_id,
                    Federal940Payment.year == year,
                    Federal940Payment.quarter == quarter,
                    Federal940Payment.status != PaymentStatus.PAID.value,
                )
                .values(requires_immediate_payment=required)
                .execution_options(synchronize_session=False)
            )
        return futa.deposit_required

    async def list_payments(
        self,
        payment_type: str,
        company_id: UUID,
        year: int | None = None,
        status: str | None = None,
    ) -> list[TaxPaymentMixin]:
        model = payment_model(payment_type)
        stmt = select(model).where(model.company_id == company_id)
        if year is not None:
            stmt = stmt.where(model.year == year)
        if status is not None:
            if status not in PaymentStateMachine.VALID_TRANSITIONS:
                raise InvalidInputError(f"Unknown payment status {status!r}")
            stmt = stmt.where(model.status == status)
        # Statuses change through Core UPDATEs
        stmt = stmt.order_by(model.due_date, model.period_start).execution_options(
            populate_existing=True
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_unpaid_deadlines(self, company_id: UUID) -> list[UnpaidDeadline]:
        """Every pending obligation across the four payment types, soonest first."""
        deadlines: list[UnpaidDeadline] = []
        for payment_type, model in TAX_PAYMENT_MODELS.items():
            rows = await self.list_payments(
                payment_type, company_id, status=PaymentStatus.PENDING.value
            )
            for row in rows:
                deadlines.append(
                    UnpaidDeadline(
                        payment_type=payment_type,
                        payment_id=row.payment_id,
                        year=row.year,
                        quarter=row.quarter,
                        month=getattr(row, "month", None),
                        due_date=row.due_date,
                        total_tax=row.total_tax,
                        requires_immediate_payment=row.requires_immediate_payment,
                    )
                )
        deadlines.sort(key=lambda d: (d.due_date, d.payment_type))
        return deadlines

    async def _store(
        self,
        result: SyncResult,
        payment_type: str,
        key: dict[str, Any],
        financial: dict[str, Any],
        bookkeeping: dict[str, Any],
    ) -> None:
        model = TAX_PAYMENT_MODELS[payment_type]
        row, written = await guarded_upsert(
            self.session,
            model,
            key,
            {name: financial[name] for name in model.FINANCIAL_FIELDS},
            {name: bookkeeping[name] for name in model.BOOKKEEPING_FIELDS},
            locked_status=PaymentStatus.PAID.value,
        )
        result.payments[payment_type] = row
        if not written:
            result.frozen.append(payment_type)

    async def _futa_by_quarter(self, company_id: UUID, year: int):
        start, end = year_range(year)
        payrolls = await approved_payroll(self.session, company_id, start, end)
        paid = await self.session.execute(
            select(Federal940Payment.quarter).where(
                Federal940Payment.company_id == company_id,
                Federal940Payment.year == year,
                Federal940Payment.status == PaymentStatus.PAID.value,
            )
        )
        return calculate_form940(
            year,
            [record.to_line() for record in payrolls],
            paid_quarters=list(paid.scalars().all()),
        )

    @staticmethod
    def _bookkeeping(
        records: list[PayrollRecord],
        start: date,
        end: date,
        due: date,
        quarter: int,
    ) -> dict[str, Any]:
        # Quarterly tables key on the quarter; monthly ones carry it as bookkeeping
        return {
            "payroll_ids": payroll_ids_of(records),
            "period_start": start,
            "period_end": end,
            "due_date": due,
            "quarter": quarter,
        }

    @staticmethod
    def _federal941_amounts(year: int, records: list[PayrollRecord]) -> dict[str, Any]:
        fed = get_tax_rates(year).federal
        amounts = {
            "federal_income_tax": sum_cents(r.federal_income_tax for r in records),
            "social_security_tax": sum_cents(r.social_security_tax for r in records),
            "social_security_employer_tax": sum_cents(
                r.employer_social_security_tax for r in records
            ),
            "medicare_tax": sum_cents(r.medicare_tax for r in records),
            "medicare_employer_tax": sum_cents(r.employer_medicare_tax for r in records),
            "additional_medicare_tax": sum_cents(r.additional_medicare_tax for r in records),
        }
        total = sum(amounts.values(), ZERO)
        amounts["total_tax"] = total
        amounts["requires_immediate_payment"] = total > fed.form941_deposit_threshold
        return amounts

    @staticmethod
    def _ca_pit_sdi_amounts(records: list[PayrollRecord]) -> dict[str, Any]:
        pit = sum_cents(r.state_income_tax for r in records)
        sdi = sum_cents(r.sdi for r in records)
        return {
            "pit_withheld": pit,
            "sdi_withheld": sdi,
            "total_tax": pit + sdi,
            "requires_immediate_payment": False,
        }

    @staticmethod
    def _ca_sui_ett_amounts(records: list[PayrollRecord]) -> dict[str, Any]:
        sui = sum_cents(r.sui for r in records)
        ett = sum_cents(r.ett for r in records)
        return {
            "sui": sui,
            "ett": ett,
            "total_tax": sui + ett,
            "requires_immediate_payment": False,
        }


def payment_model(payment_type: str) -> type[TaxPaymentMixin]:
    try:
        return TAX_PAYMENT_MODELS[payment_type]
    except KeyError:
        raise InvalidInputError(
            f"Unknown payment type {payment_type!r}; expected one of {sorted(TAX_PAYMENT_MODELS)}"
        ) from None
