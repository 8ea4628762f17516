"""California DE 9 (Quarterly Contribution Return and Report of Wages)."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from payroll_tax_engine.calculators.money import ZERO, format_amount, round_cents
from payroll_tax_engine.calculators.rates import get_tax_rates
from payroll_tax_engine.calculators.types import PayrollLine, StateRates, WagePlanCode
from payroll_tax_engine.dates import YearQuarter, de9_due_dates, quarter_range, year_quarter
from payroll_tax_engine.exceptions import InvalidInputError


@dataclass
class De9Header:
    company_name: str
    ein: str
    edd_account_number: str | None
    address: str | None
    quarter_ended: date
    due_date: date
    delinquent_date: date
    ui_rate: str  # percent, e.g. "3.40"
    ett_rate: str
    sdi_rate: str


@dataclass
class De9Result:
    year: int
    quarter: int
    header: De9Header
    total_subject_wages: Decimal
    ui_taxable_wages: Decimal
    sdi_taxable_wages: Decimal
    ui_contributions: Decimal
    ett_contributions: Decimal
    sdi_withheld: Decimal
    pit_withheld: Decimal
    subtotal: Decimal
    contributions_paid: Decimal
    total_due: Decimal


def quarterly_ui_taxable_wages(prior_wages: Decimal, quarter_wages: Decimal, limit: Decimal) -> Decimal:
    """UI taxable wages for one employee in one quarter under the annual limit."""
    if prior_wages >= limit:
        return ZERO
    if prior_wages + quarter_wages <= limit:
        return quarter_wages
    return limit - prior_wages


def format_ein(ein: str) -> str:
    """Format a federal EIN as ``XX XXXXXXX``."""
    digits = "".join(ch for ch in ein if ch.isdigit())
    if len(digits) != 9:
        return ein
    return f"{digits[:2]} {digits[2:]}"


def format_rate(rate: Decimal) -> str:
    """Render a decimal rate as a two-decimal percentage."""
    return format_amount(rate * 100)


def calculate_de9(
    year: int,
    quarter: int,
    payrolls: list[PayrollLine],
    prior_wages: dict[UUID, Decimal],
    state_rates: StateRates,
    company_name: str,
    ein: str,
    edd_account_number: str | None = None,
    address: str | None = None,
    contributions_paid: Decimal = ZERO,
) -> De9Result:
    """Compute the DE 9 for payrolls whose period ends in the quarter.

    ``prior_wages`` maps employee id to wages from periods ending before the
    quarter started.
    """
    ca = get_tax_rates(year).california

    for line in payrolls:
        if year_quarter(line.period_end) != YearQuarter(year, quarter):
            raise InvalidInputError(
                f"Payroll {line.payroll_id} period does not end in {year} Q{quarter}"
            )

    by_employee: dict[UUID, list[PayrollLine]] = defaultdict(list)
    for line in payrolls:
        by_employee[line.employee_id].append(line)

    subject = ZERO
    ui_taxable = ZERO
    sdi_taxable = ZERO
    pit = ZERO
    sdi = ZERO

    for employee_id, lines in by_employee.items():
        quarter_wages = sum((ln.gross_pay for ln in lines), ZERO)
        subject += quarter_wages
        pit += sum((ln.state_income_tax for ln in lines), ZERO)
        sdi += sum((ln.sdi for ln in lines), ZERO)

        ui_subject = sum(
            (
                ln.gross_pay
                for ln in lines
                if WagePlanCode(ln.wage_plan_code).has_ui and not ln.exemptions.sui_ett
            ),
            ZERO,
        )
        ui_taxable += quarterly_ui_taxable_wages(
            prior_wages.get(employee_id, ZERO), ui_subject, ca.sui_wage_base
        )
        sdi_taxable += sum(
            (
                ln.gross_pay
                for ln in lines
                if WagePlanCode(ln.wage_plan_code).has_sdi and not ln.exemptions.sdi
            ),
            ZERO,
        )

    ui = round_cents(ui_taxable * state_rates.ui_rate)
    ett = round_cents(ui_taxable * state_rates.ett_rate)
    sdi = round_cents(sdi)
    pit = round_cents(pit)
    subtotal = ui + ett + sdi + pit
    paid = round_cents(contributions_paid)

    due, delinquent = de9_due_dates(year, quarter)
    header = De9Header(
        company_name=company_name,
        ein=format_ein(ein),
        edd_account_number=edd_account_number,
        address=address,
        quarter_ended=quarter_range(year, quarter)[1],
        due_date=due,
        delinquent_date=delinquent,
        ui_rate=format_rate(state_rates.ui_rate),
        ett_rate=format_rate(state_rates.ett_rate),
        sdi_rate=format_rate(ca.sdi_rate),
    )

    return De9Result(
        year=year,
        quarter=quarter,
        header=header,
        total_subject_wages=round_cents(subject),
        ui_taxable_wages=round_cents(ui_taxable),
        sdi_taxable_wages=round_cents(sdi_taxable),
        ui_contributions=ui,
        ett_contributions=ett,
        sdi_withheld=sdi,
        pit_withheld=pit,
        subtotal=subtotal,
        contributions_paid=paid,
        total_due=subtotal - paid,
    )
