"""Filing recompute for Form 941, Form 940, DE 9 and DE 9C."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax_engine.calculators.de9 import calculate_de9
from payroll_tax_engine.calculators.de9c import calculate_de9c
from payroll_tax_engine.calculators.form940 import calculate_form940
from payroll_tax_engine.calculators.form941 import Deposit, calculate_form941
from payroll_tax_engine.calculators.money import ZERO, format_amount, round_cents
from payroll_tax_engine.calculators.types import StateRates
from payroll_tax_engine.database import guarded_upsert, lock_period
from payroll_tax_engine.dates import (
    DateLike,
    de9_due_dates,
    lookback_quarters,
    quarter_range,
    to_utc_date,
    year_range,
)
from payroll_tax_engine.exceptions import (
    InvalidInputError,
    MissingTaxConfigurationError,
    NotFoundError,
)
from payroll_tax_engine.models import (
    FILING_MODELS,
    CAPitSdiPayment,
    CASuiEttPayment,
    Company,
    CompanyStateRate,
    De9cFiling,
    De9Filing,
    Federal940Payment,
    Federal941Payment,
    FilingMixin,
    Form940Filing,
    Form941Filing,
    PayrollRecord,
)
from payroll_tax_engine.services.state_machine import FilingStatus, PaymentStatus
from payroll_tax_engine.services.tax_payment_service import approved_payroll, payroll_ids_of
from payroll_tax_engine.services.ytd_service import YTDService

logger = logging.getLogger(__name__)

# Refreshed on every recompute, so never part of a frozen-value comparison
_VOLATILE_FIELDS = ("computed_at",)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _same(stored: Any, fresh: Any) -> bool:
    if isinstance(fresh, Decimal) and stored is not None:
        return Decimal(str(stored)) == fresh
    return stored == fresh


def filing_model(filing_type: str) -> type[FilingMixin]:
    try:
        return FILING_MODELS[filing_type]
    except KeyError:
        raise InvalidInputError(
            f"Unknown filing type {filing_type!r}; expected one of {sorted(FILING_MODELS)}"
        ) from None


class FilingService:
    """Recomputes filings from approved payroll.

    A filing is created on first recompute and refreshed on each later one
    until it is filed. After that its line values stay as filed; only the
    contributing payroll ids are refreshed, and a WARNING is logged when the
    fresh numbers no longer match what was filed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.ytd = YTDService(session)

    async def recompute_form941(self, company_id: UUID, year: int, quarter: int) -> Form941Filing:
        company = await self._company(company_id)
        await lock_period(self.session, f"form941:{company_id}:{year}:{quarter}")

        start, end = quarter_range(year, quarter)
        records = await approved_payroll(self.session, company_id, start, end)
        ytd_before = await self.ytd.get_wages_before(company_id, start, "pay_date")

        paid = await self.session.execute(
            select(Federal941Payment).where(
                Federal941Payment.company_id == company_id,
                Federal941Payment.year == year,
                Federal941Payment.quarter == quarter,
                Federal941Payment.status == PaymentStatus.PAID.value,
            )
        )
        deposits = [Deposit(p.period_start, p.total_tax) for p in paid.scalars().all()]

        result = calculate_form941(
            year,
            quarter,
            [record.to_line() for record in records],
            ytd_wages_before_quarter=ytd_before,
            deposits=deposits,
            lookback_total=await self._lookback_total(company_id, year),
        )

        financial = {
            **self._header(company),
            "due_date": result.due_date,
            "computed_at": _utcnow(),
            "number_of_employees": result.number_of_employees,
            "wages": result.wages,
            "federal_income_tax_withheld": result.federal_income_tax_withheld,
            "social_security_wages": result.social_security_wages,
            "social_security_tax": result.social_security_tax,
            "medicare_wages": result.medicare_wages,
            "medicare_tax": result.medicare_tax,
            "additional_medicare_wages": result.additional_medicare_wages,
            "additional_medicare_tax": result.additional_medicare_tax,
            "total_social_security_medicare_tax": result.total_social_security_medicare_tax,
            "total_taxes_before_adjustments": result.total_taxes_before_adjustments,
            "fractions_of_cents_adjustment": result.fractions_of_cents_adjustment,
            "total_taxes_after_adjustments": result.total_taxes_after_adjustments,
            "total_tax_liability": result.total_tax_liability,
            "total_deposits": result.total_deposits,
            "balance_due": result.balance_due,
            "overpayment": result.overpayment,
            "deposit_schedule": result.deposit_schedule.value,
            "month1_liability": result.monthly_liability.month1,
            "month2_liability": result.monthly_liability.month2,
            "month3_liability": result.monthly_liability.month3,
            "month1_deposits": result.monthly_deposits.month1,
            "month2_deposits": result.monthly_deposits.month2,
            "month3_deposits": result.monthly_deposits.month3,
            "lookback_total": result.lookback_total,
            "schedule_b": [
                {
                    "pay_date": entry.pay_date.isoformat(),
                    "month_of_quarter": entry.month_of_quarter,
                    "day": entry.day,
                    "liability": format_amount(entry.liability),
                }
                for entry in result.schedule_b
            ],
        }
        return await self._save(
            Form941Filing,
            {"company_id": company_id, "year": year, "quarter": quarter},
            financial,
            records,
        )

    async def recompute_form940(self, company_id: UUID, year: int) -> Form940Filing:
        company = await self._company(company_id)
        await lock_period(self.session, f"form940:{company_id}:{year}")

        start, end = year_range(year)
        records = await approved_payroll(self.session, company_id, start, end)

        paid = (
            await self.session.execute(
                select(Federal940Payment).where(
                    Federal940Payment.company_id == company_id,
                    Federal940Payment.year == year,
                    Federal940Payment.status == PaymentStatus.PAID.value,
                )
            )
        ).scalars().all()

        result = calculate_form940(
            year,
            [record.to_line() for record in records],
            deposits_paid=sum((p.total_tax for p in paid), ZERO),
            paid_quarters=[p.quarter for p in paid],
        )

        part5 = result.quarterly_liability or {}
        financial = {
            **self._header(company),
            "due_date": result.due_date,
            "computed_at": _utcnow(),
            "number_of_employees": result.number_of_employees,
            "total_payments": result.total_payments,
            "exempt_payments": result.exempt_payments,
            "payments_over_limit": result.payments_over_limit,
            "total_exempt_and_excess": result.total_exempt_and_excess,
            "taxable_futa_wages": result.taxable_futa_wages,
            "futa_tax_before_adjustments": result.futa_tax_before_adjustments,
            "excluded_wages_adjustment": result.excluded_wages_adjustment,
            "late_state_payment_adjustment": result.late_state_payment_adjustment,
            "credit_reduction": result.credit_reduction,
            "credit_reduction_rate": result.credit_reduction_rate,
            "total_futa_tax": result.total_futa_tax,
            "total_deposits": result.total_deposits,
            "balance_due": result.balance_due,
            "overpayment": result.overpayment,
            "q1_liability": part5.get(1),
            "q2_liability": part5.get(2),
            "q3_liability": part5.get(3),
            "q4_liability": part5.get(4),
        }
        return await self._save(
            Form940Filing, {"company_id": company_id, "year": year}, financial, records
        )

    async def recompute_de9(self, company_id: UUID, year: int, quarter: int) -> De9Filing:
        company = await self._company(company_id)
        await lock_period(self.session, f"de9:{company_id}:{year}:{quarter}")

        start, end = quarter_range(year, quarter)
        records = await approved_payroll(self.session, company_id, start, end, "period_end")
        prior = await self.ytd.get_wages_before(company_id, start, "period_end")
        rates = await state_rates_at(self.session, company_id, end)

        paid_total = ZERO
        for model in (CAPitSdiPayment, CASuiEttPayment):
            total = await self.session.scalar(
                select(func.sum(model.total_tax)).where(
                    model.company_id == company_id,
                    model.year == year,
                    model.quarter == quarter,
                    model.status == PaymentStatus.PAID.value,
                )
            )
            paid_total += round_cents(total)

        result = calculate_de9(
            year,
            quarter,
            [record.to_line() for record in records],
            prior_wages=prior,
            state_rates=rates,
            company_name=company.name,
            ein=company.ein,
            edd_account_number=company.edd_account_number,
            address=company.address,
            contributions_paid=paid_total,
        )

        header = result.header
        financial = {
            "company_name": header.company_name,
            "ein": header.ein,
            "address": header.address,
            "edd_account_number": header.edd_account_number,
            "due_date": header.due_date,
            "quarter_ended": header.quarter_ended,
            "delinquent_date": header.delinquent_date,
            "ui_rate": header.ui_rate,
            "ett_rate": header.ett_rate,
            "sdi_rate": header.sdi_rate,
            "computed_at": _utcnow(),
            "total_subject_wages": result.total_subject_wages,
            "ui_taxable_wages": result.ui_taxable_wages,
            "sdi_taxable_wages": result.sdi_taxable_wages,
            "ui_contributions": result.ui_contributions,
            "ett_contributions": result.ett_contributions,
            "sdi_withheld": result.sdi_withheld,
            "pit_withheld": result.pit_withheld,
            "subtotal": result.subtotal,
            "contributions_paid": result.contributions_paid,
            "total_due": result.total_due,
        }
        return await self._save(
            De9Filing,
            {"company_id": company_id, "year": year, "quarter": quarter},
            financial,
            records,
        )

    async def recompute_de9c(self, company_id: UUID, year: int, quarter: int) -> De9cFiling:
        company = await self._company(company_id)
        await lock_period(self.session, f"de9c:{company_id}:{year}:{quarter}")

        start, end = quarter_range(year, quarter)
        records = await approved_payroll(self.session, company_id, start, end, "period_end")
        result = calculate_de9c(year, quarter, [record.to_line() for record in records])

        financial = {
            **self._header(company),
            "edd_account_number": company.edd_account_number,
            "due_date": de9_due_dates(year, quarter)[0],
            "computed_at": _utcnow(),
            "employees": [row.to_dict() for row in result.rows],
            "month1_employees": result.month1_employees,
            "month2_employees": result.month2_employees,
            "month3_employees": result.month3_employees,
            "total_subject_wages": result.total_subject_wages,
            "total_pit_wages": result.total_pit_wages,
            "total_pit_withheld": result.total_pit_withheld,
        }
        return await self._save(
            De9cFiling,
            {"company_id": company_id, "year": year, "quarter": quarter},
            financial,
            records,
        )

    async def list_filings(
        self,
        filing_type: str,
        company_id: UUID,
        year: int | None = None,
    ) -> list[Any]:
        model = filing_model(filing_type)
        stmt = select(model).where(model.company_id == company_id)
        if year is not None:
            stmt = stmt.where(model.year == year)
        order = [model.year, model.quarter] if hasattr(model, "quarter") else [model.year]
        stmt = stmt.order_by(*order).execution_options(populate_existing=True)
        return list((await self.session.execute(stmt)).scalars().all())

    async def _save(
        self,
        model: type[FilingMixin],
        key: dict[str, Any],
        financial: dict[str, Any],
        records: list[PayrollRecord],
    ) -> Any:
        row, written = await guarded_upsert(
            self.session,
            model,
            key,
            financial,
            {"payroll_ids": payroll_ids_of(records)},
            locked_status=FilingStatus.FILED.value,
        )
        period = "/".join(str(key[name]) for name in key if name != "company_id")
        if written:
            logger.info(
                "Recomputed %s for company %s %s from %d payroll records",
                model.__tablename__,
                key["company_id"],
                period,
                len(records),
            )
            return row

        changed = sorted(
            name
            for name, value in financial.items()
            if name not in _VOLATILE_FIELDS and not _same(getattr(row, name), value)
        )
        if changed:
            logger.warning(
                "%s for company %s %s is filed but recomputed values differ in: %s",
                model.__tablename__,
                key["company_id"],
                period,
                ", ".join(changed),
            )
        return row

    async def _company(self, company_id: UUID) -> Company:
        company = await self.session.get(Company, company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        return company

    @staticmethod
    def _header(company: Company) -> dict[str, Any]:
        return {"company_name": company.name, "ein": company.ein, "address": company.address}

    async def _lookback_total(self, company_id: UUID, year: int) -> Decimal:
        """Sum of line 12 over the stored 941s in the lookback period."""
        periods = [
            and_(Form941Filing.year == yq.year, Form941Filing.quarter == yq.quarter)
            for yq in lookback_quarters(year)
        ]
        total = await self.session.scalar(
            select(func.sum(Form941Filing.total_tax_liability)).where(
                Form941Filing.company_id == company_id,
                or_(*periods),
            )
        )
        return round_cents(total)


async def state_rates_at(session: AsyncSession, company_id: UUID, day: DateLike) -> StateRates:
    """The company UI and ETT rates in force on ``day``."""
    as_of = to_utc_date(day)
    rate = await session.scalar(
        select(CompanyStateRate)
        .where(
            CompanyStateRate.company_id == company_id,
            CompanyStateRate.effective_date <= as_of,
        )
        .order_by(CompanyStateRate.effective_date.desc())
        .limit(1)
    )
    if rate is None:
        raise MissingTaxConfigurationError("state_rates", f"company {company_id} on {as_of}")
    return StateRates(rate.ui_rate, rate.ett_rate, rate.effective_date)
