"""California DE 9C (Quarterly Contribution Return and Report of Wages, Continuation)."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from payroll_tax_engine.calculators.money import ZERO, format_amount, round_cents
from payroll_tax_engine.calculators.types import PayrollLine
from payroll_tax_engine.dates import YearQuarter, month_of_quarter, to_utc_date, year_quarter
from payroll_tax_engine.exceptions import InvalidInputError


@dataclass
class De9cRow:
    employee_id: UUID
    ssn: str
    first_name: str
    middle_initial: str
    last_name: str
    subject_wages: Decimal
    pit_wages: Decimal
    pit_withheld: Decimal
    wage_plan_code: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["employee_id"] = str(self.employee_id)
        for key in ("subject_wages", "pit_wages", "pit_withheld"):
            data[key] = format_amount(data[key])
        return data


@dataclass
class De9cResult:
    year: int
    quarter: int
    rows: list[De9cRow]
    month1_employees: int
    month2_employees: int
    month3_employees: int
    total_subject_wages: str
    total_pit_wages: str
    total_pit_withheld: str


def format_ssn(ssn: str | None) -> str:
    """Format an SSN as ``XXX-XX-XXXX``; anything not nine digits passes through."""
    if not ssn:
        return ""
    digits = "".join(ch for ch in ssn if ch.isdigit())
    if len(digits) != 9:
        return ssn
    return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"


def monthly_headcounts(payrolls: list[PayrollLine]) -> dict[int, int]:
    """Distinct employees per month of quarter, by UTC period-end month."""
    seen: dict[int, set[UUID]] = {1: set(), 2: set(), 3: set()}
    for line in payrolls:
        seen[month_of_quarter(line.period_end)].add(line.employee_id)
    return {month: len(ids) for month, ids in seen.items()}


def calculate_de9c(year: int, quarter: int, payrolls: list[PayrollLine]) -> De9cResult:
    for line in payrolls:
        if year_quarter(line.period_end) != YearQuarter(year, quarter):
            raise InvalidInputError(
                f"Payroll {line.payroll_id} period does not end in {year} Q{quarter}"
            )

    by_employee: dict[UUID, list[PayrollLine]] = defaultdict(list)
    for line in payrolls:
        by_employee[line.employee_id].append(line)

    rows: list[De9cRow] = []
    for employee_id, lines in by_employee.items():
        latest = max(lines, key=lambda ln: (to_utc_date(ln.period_end), str(ln.payroll_id)))
        wages = round_cents(sum((ln.gross_pay for ln in lines), ZERO))
        rows.append(
            De9cRow(
                employee_id=employee_id,
                ssn=format_ssn(latest.ssn),
                first_name=latest.first_name,
                middle_initial=(latest.middle_name or "")[:1].upper(),
                last_name=latest.last_name,
                subject_wages=wages,
                pit_wages=round_cents(sum((ln.income_tax_wages for ln in lines), ZERO)),
                pit_withheld=round_cents(sum((ln.state_income_tax for ln in lines), ZERO)),
                wage_plan_code=latest.wage_plan_code,
            )
        )

    rows.sort(key=lambda r: (r.last_name.casefold(), r.first_name.casefold(), str(r.employee_id)))
    counts = monthly_headcounts(payrolls)

    return De9cResult(
        year=year,
        quarter=quarter,
        rows=rows,
        month1_employees=counts[1],
        month2_employees=counts[2],
        month3_employees=counts[3],
        total_subject_wages=format_amount(sum((r.subject_wages for r in rows), ZERO)),
        total_pit_wages=format_amount(sum((r.pit_wages for r in rows), ZERO)),
        total_pit_withheld=format_amount(sum((r.pit_withheld for r in rows), ZERO)),
    )
