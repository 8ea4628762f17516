"""Form 941 (Employer's Quarterly Federal Tax Return) calculation."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from payroll_tax_engine.calculators.money import ZERO, capped_taxable, round_cents
from payroll_tax_engine.calculators.rates import FederalRates, get_tax_rates
from payroll_tax_engine.calculators.types import PayrollLine
from payroll_tax_engine.dates import (
    YearQuarter,
    month_of_quarter,
    quarterly_due_date,
    to_utc_date,
    year_quarter,
)
from payroll_tax_engine.exceptions import InvalidInputError


class DepositSchedule(str, Enum):
    """Form 941 line 16 checkbox."""

    DE_MINIMIS = "de_minimis"
    MONTHLY = "monthly"
    SEMIWEEKLY = "semiweekly"


@dataclass
class MonthlyAmounts:
    """Amounts keyed by month of quarter (1, 2, 3)."""

    month1: Decimal = ZERO
    month2: Decimal = ZERO
    month3: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.month1 + self.month2 + self.month3

    def add(self, month: int, amount: Decimal) -> None:
        if month not in (1, 2, 3):
            raise InvalidInputError(f"Month of quarter must be 1-3, got {month}")
        attr = f"month{month}"
        setattr(self, attr, getattr(self, attr) + amount)

    def rounded(self) -> MonthlyAmounts:
        return MonthlyAmounts(
            round_cents(self.month1), round_cents(self.month2), round_cents(self.month3)
        )


@dataclass
class Deposit:
    """A paid 941 deposit, identified by the period it covers."""

    period_start: date
    amount: Decimal


@dataclass
class ScheduleBEntry:
    """Schedule B (Form 941) daily liability."""

    pay_date: date
    month_of_quarter: int
    day: int
    liability: Decimal


@dataclass
class Form941Result:
    year: int
    quarter: int
    number_of_employees: int
    wages: Decimal  # line 2
    federal_income_tax_withheld: Decimal  # line 3
    social_security_wages: Decimal  # line 5a col 1
    social_security_tax: Decimal  # line 5a col 2
    medicare_wages: Decimal  # line 5c col 1
    medicare_tax: Decimal  # line 5c col 2
    additional_medicare_wages: Decimal  # line 5d col 1
    additional_medicare_tax: Decimal  # line 5d col 2
    total_social_security_medicare_tax: Decimal  # line 5e
    total_taxes_before_adjustments: Decimal  # line 6
    fractions_of_cents_adjustment: Decimal  # line 7
    total_taxes_after_adjustments: Decimal  # line 10
    total_tax_liability: Decimal  # line 12
    total_deposits: Decimal  # line 13
    balance_due: Decimal  # line 14
    overpayment: Decimal  # line 15
    deposit_schedule: DepositSchedule  # line 16
    monthly_liability: MonthlyAmounts
    monthly_deposits: MonthlyAmounts
    due_date: date
    lookback_total: Decimal = ZERO
    schedule_b: list[ScheduleBEntry] = field(default_factory=list)


def monthly_liabilities(payrolls: Iterable[PayrollLine]) -> MonthlyAmounts:
    """Bucket each payroll's deposit liability by its pay date's UTC month of quarter."""
    buckets = MonthlyAmounts()
    for line in payrolls:
        buckets.add(month_of_quarter(line.pay_date), line.federal_liability)
    return buckets.rounded()


def monthly_deposits(deposits: Iterable[Deposit], year: int, quarter: int) -> MonthlyAmounts:
    """Match paid deposits to months by the calendar month of each deposit's period."""
    buckets = MonthlyAmounts()
    for deposit in deposits:
        if year_quarter(deposit.period_start) != YearQuarter(year, quarter):
            raise InvalidInputError(
                f"Deposit for {deposit.period_start} is outside {year} Q{quarter}"
            )
        buckets.add(month_of_quarter(deposit.period_start), deposit.amount)
    return buckets.rounded()


def daily_liabilities(payrolls: Iterable[PayrollLine]) -> dict[date, Decimal]:
    by_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for line in payrolls:
        by_day[to_utc_date(line.pay_date)] += line.federal_liability
    return {day: round_cents(amount) for day, amount in sorted(by_day.items())}


def classify_deposit_schedule(
    quarter_liability: Decimal,
    lookback_total: Decimal,
    by_day: dict[date, Decimal],
    rates: FederalRates,
) -> DepositSchedule:
    """Pick the line 16 deposit schedule.

    A single day at or above the next-day threshold makes the filer a
    semiweekly depositor for the rest of the year and the following one.
    """
    if any(amount >= rates.next_day_deposit_threshold for amount in by_day.values()):
        return DepositSchedule.SEMIWEEKLY
    if quarter_liability < rates.form941_deposit_threshold:
        return DepositSchedule.DE_MINIMIS
    if lookback_total > rates.lookback_threshold:
        return DepositSchedule.SEMIWEEKLY
    return DepositSchedule.MONTHLY


def calculate_form941(
    year: int,
    quarter: int,
    payrolls: list[PayrollLine],
    ytd_wages_before_quarter: dict[UUID, Decimal] | None = None,
    deposits: Iterable[Deposit] = (),
    lookback_total: Decimal = ZERO,
) -> Form941Result:
    """Compute every Form 941 line for one quarter of approved payroll.

    ``ytd_wages_before_quarter`` maps employee id to gross wages paid earlier
    in the year; it drives the Social Security wage base and the additional
    Medicare threshold.
    """
    fed = get_tax_rates(year).federal
    ytd_before = ytd_wages_before_quarter or {}

    for line in payrolls:
        if year_quarter(line.pay_date) != YearQuarter(year, quarter):
            raise InvalidInputError(f"Payroll {line.payroll_id} is not paid in {year} Q{quarter}")

    by_employee: dict[UUID, list[PayrollLine]] = defaultdict(list)
    for line in payrolls:
        by_employee[line.employee_id].append(line)

    wages = ZERO
    fit = ZERO
    ss_wages = ZERO
    medicare_wages = ZERO
    addl_wages = ZERO
    per_employee_fica = ZERO

    for employee_id, lines in by_employee.items():
        running = ytd_before.get(employee_id, ZERO)
        for line in sorted(lines, key=lambda ln: (to_utc_date(ln.pay_date), str(ln.payroll_id))):
            wages += line.income_tax_wages
            fit += line.federal_income_tax
            if not line.exemptions.fica:
                ss_wages += capped_taxable(line.gross_pay, fed.social_security_wage_base, running)
                medicare_wages += line.gross_pay
                over_after = max(ZERO, running + line.gross_pay - fed.additional_medicare_threshold)
                over_before = max(ZERO, running - fed.additional_medicare_threshold)
                addl_wages += over_after - over_before
                per_employee_fica += (
                    line.social_security_tax
                    + line.employer_social_security_tax
                    + line.medicare_tax
                    + line.employer_medicare_tax
                )
            running += line.gross_pay

    ss_tax = round_cents(ss_wages * fed.social_security_rate * 2)
    medicare_tax = round_cents(medicare_wages * fed.medicare_rate * 2)
    addl_tax = round_cents(addl_wages * fed.additional_medicare_rate)
    line_5e = ss_tax + medicare_tax + addl_tax
    line_6 = round_cents(fit) + line_5e
    line_7 = round_cents(per_employee_fica) - (ss_tax + medicare_tax)
    line_10 = line_6 + line_7
    line_12 = max(ZERO, line_10)

    deposits_by_month = monthly_deposits(deposits, year, quarter)
    line_13 = deposits_by_month.total

    by_day = daily_liabilities(payrolls)
    schedule = classify_deposit_schedule(line_12, lookback_total, by_day, fed)

    liability = monthly_liabilities(payrolls)
    # Line 16 months must add up to line 12; rounding drift lands in month 3.
    liability.month3 += line_12 - liability.total

    schedule_b: list[ScheduleBEntry] = []
    if schedule == DepositSchedule.SEMIWEEKLY:
        schedule_b = [
            ScheduleBEntry(
                pay_date=day,
                month_of_quarter=month_of_quarter(day),
                day=day.day,
                liability=amount,
            )
            for day, amount in by_day.items()
        ]

    return Form941Result(
        year=year,
        quarter=quarter,
        number_of_employees=len(by_employee),
        wages=round_cents(wages),
        federal_income_tax_withheld=round_cents(fit),
        social_security_wages=round_cents(ss_wages),
        social_security_tax=ss_tax,
        medicare_wages=round_cents(medicare_wages),
        medicare_tax=medicare_tax,
        additional_medicare_wages=round_cents(addl_wages),
        additional_medicare_tax=addl_tax,
        total_social_security_medicare_tax=line_5e,
        total_taxes_before_adjustments=line_6,
        fractions_of_cents_adjustment=line_7,
        total_taxes_after_adjustments=line_10,
        total_tax_liability=line_12,
        total_deposits=line_13,
        balance_due=max(ZERO, line_12 - line_13),
        overpayment=max(ZERO, line_13 - line_12),
        deposit_schedule=schedule,
        monthly_liability=liability,
        monthly_deposits=deposits_by_month,
        due_date=quarterly_due_date(year, quarter),
        lookback_total=round_cents(lookback_total),
        schedule_b=schedule_b,
    )
