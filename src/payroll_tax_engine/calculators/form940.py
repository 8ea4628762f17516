"""Form 940 (Employer's Annual FUTA Tax Return) calculation."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from payroll_tax_engine.calculators.money import ZERO, capped_taxable, round_cents
from payroll_tax_engine.calculators.rates import get_tax_rates
from payroll_tax_engine.calculators.types import PayrollLine
from payroll_tax_engine.dates import annual_940_due_date, to_utc_date, year_quarter
from payroll_tax_engine.exceptions import InvalidInputError

QUARTERS = (1, 2, 3, 4)


@dataclass
class Form940Result:
    year: int
    number_of_employees: int
    total_payments: Decimal  # line 3
    exempt_payments: Decimal  # line 4
    payments_over_limit: Decimal  # line 5
    total_exempt_and_excess: Decimal  # line 6
    taxable_futa_wages: Decimal  # line 7
    futa_tax_before_adjustments: Decimal  # line 8
    excluded_wages_adjustment: Decimal  # line 9
    late_state_payment_adjustment: Decimal  # line 10
    credit_reduction: Decimal  # line 11 (Schedule A)
    total_futa_tax: Decimal  # line 12
    total_deposits: Decimal  # line 13
    balance_due: Decimal  # line 14
    overpayment: Decimal  # line 15
    credit_reduction_rate: Decimal
    quarterly_futa_wages: dict[int, Decimal]
    quarterly_futa: dict[int, Decimal]  # net FUTA per quarter, drives deposits
    quarterly_liability: dict[int, Decimal] | None  # Part 5, lines 16a-16d
    deposit_required: dict[int, bool] = field(default_factory=dict)
    due_date: date | None = None


def futa_deposit_requirements(
    quarterly_futa: dict[int, Decimal],
    paid_quarters: Iterable[int],
    threshold: Decimal,
) -> dict[int, bool]:
    """Decide, per quarter, whether a FUTA deposit was mandatory.

    Liability carries forward while it stays at or under the threshold. It
    resets once a quarter requires a deposit or has already been paid.
    """
    paid = set(paid_quarters)
    required: dict[int, bool] = {}
    accumulated = ZERO
    for quarter in QUARTERS:
        accumulated += quarterly_futa.get(quarter, ZERO)
        if quarter in paid:
            required[quarter] = False
            accumulated = ZERO
            continue
        required[quarter] = accumulated > threshold
        if required[quarter]:
            accumulated = ZERO
    return required


def calculate_form940(
    year: int,
    payrolls: list[PayrollLine],
    deposits_paid: Decimal = ZERO,
    paid_quarters: Iterable[int] = (),
    credit_reduction_state: bool = True,
) -> Form940Result:
    """Compute Form 940 from the full year's approved payroll.

    Each record's taxable wages are ``min(gross, limit - ytd_before)`` where
    the running total counts only non-exempt wages for that employee.
    """
    rates = get_tax_rates(year)
    fed = rates.federal

    for line in payrolls:
        if to_utc_date(line.pay_date).year != year:
            raise InvalidInputError(f"Payroll {line.payroll_id} is not paid in {year}")

    by_employee: dict[UUID, list[PayrollLine]] = defaultdict(list)
    for line in payrolls:
        by_employee[line.employee_id].append(line)

    total_payments = ZERO
    exempt = ZERO
    excess = ZERO
    taxable_by_quarter: dict[int, Decimal] = {q: ZERO for q in QUARTERS}

    for lines in by_employee.values():
        running = ZERO
        for line in sorted(lines, key=lambda ln: (to_utc_date(ln.pay_date), str(ln.payroll_id))):
            total_payments += line.gross_pay
            if line.exemptions.futa:
                exempt += line.gross_pay
                continue
            taxable = capped_taxable(line.gross_pay, fed.futa_wage_base, running)
            excess += line.gross_pay - taxable
            taxable_by_quarter[year_quarter(line.pay_date).quarter] += taxable
            running += line.gross_pay

    line_6 = exempt + excess
    line_7 = max(ZERO, total_payments - line_6)
    line_8 = round_cents(line_7 * fed.futa_net_rate)
    line_9 = ZERO
    line_10 = ZERO
    reduction_rate = rates.california.futa_credit_reduction_rate if credit_reduction_state else ZERO
    line_11 = round_cents(line_7 * reduction_rate)
    line_12 = line_8 + line_9 + line_10 + line_11
    line_13 = round_cents(deposits_paid)

    quarterly_futa = {q: round_cents(taxable_by_quarter[q] * fed.futa_net_rate) for q in QUARTERS}

    part5: dict[int, Decimal] | None = None
    if line_12 > fed.futa_deposit_threshold:
        part5 = dict(quarterly_futa)
        # Credit reduction is owed with the fourth quarter; 16a-16d must total line 12.
        part5[4] += line_12 - sum(part5.values(), ZERO)

    return Form940Result(
        year=year,
        number_of_employees=len(by_employee),
        total_payments=round_cents(total_payments),
        exempt_payments=round_cents(exempt),
        payments_over_limit=round_cents(excess),
        total_exempt_and_excess=round_cents(line_6),
        taxable_futa_wages=round_cents(line_7),
        futa_tax_before_adjustments=line_8,
        excluded_wages_adjustment=line_9,
        late_state_payment_adjustment=line_10,
        credit_reduction=line_11,
        total_futa_tax=line_12,
        total_deposits=line_13,
        balance_due=max(ZERO, line_12 - line_13),
        overpayment=max(ZERO, line_13 - line_12),
        credit_reduction_rate=reduction_rate,
        quarterly_futa_wages={q: round_cents(taxable_by_quarter[q]) for q in QUARTERS},
        quarterly_futa=quarterly_futa,
        quarterly_liability=part5,
        deposit_required=futa_deposit_requirements(
            quarterly_futa, paid_quarters, fed.futa_deposit_threshold
        ),
        due_date=annual_940_due_date(year),
    )
