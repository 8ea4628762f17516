"""Type definitions for the tax calculation pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from payroll_tax_engine.calculators.money import ZERO


class PayPeriodType(str, Enum):
    """Pay frequencies and their periods per year."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        return {
            PayPeriodType.WEEKLY: 52,
            PayPeriodType.BIWEEKLY: 26,
            PayPeriodType.SEMIMONTHLY: 24,
            PayPeriodType.MONTHLY: 12,
        }[self]


class FederalFilingStatus(str, Enum):
    SINGLE = "single"
    MARRIED_JOINTLY = "married_jointly"
    HEAD_OF_HOUSEHOLD = "head_of_household"
    EXEMPT = "exempt"


class CaliforniaFilingStatus(str, Enum):
    """DE 4 filing status; married with two or more incomes files as single."""

    SINGLE = "single"
    MARRIED_ONE_INCOME = "married_one_income"
    HEAD_OF_HOUSEHOLD = "head_of_household"
    DO_NOT_WITHHOLD = "do_not_withhold"


class WagePlanCode(str, Enum):
    """EDD wage plan codes.

    A: UI and ETT only (no SDI)
    J, S: UI, ETT and SDI
    P: SDI only
    """

    A = "A"
    J = "J"
    P = "P"
    S = "S"

    @property
    def has_ui(self) -> bool:
        return self is not WagePlanCode.P

    @property
    def has_sdi(self) -> bool:
        return self is not WagePlanCode.A


@dataclass
class FederalW4:
    """Federal W-4 (2020+) elections."""

    filing_status: FederalFilingStatus = FederalFilingStatus.SINGLE
    multiple_jobs: bool = False  # Step 2 checkbox
    dependents_amount: Decimal = ZERO  # Step 3
    other_income: Decimal = ZERO  # Step 4(a)
    deductions: Decimal = ZERO  # Step 4(b)
    extra_withholding: Decimal = ZERO  # Step 4(c)
    effective_date: date | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FederalW4:
        return cls(
            filing_status=FederalFilingStatus(data.get("filing_status", "single")),
            multiple_jobs=bool(data.get("multiple_jobs", False)),
            dependents_amount=Decimal(str(data.get("dependents_amount", "0"))),
            other_income=Decimal(str(data.get("other_income", "0"))),
            deductions=Decimal(str(data.get("deductions", "0"))),
            extra_withholding=Decimal(str(data.get("extra_withholding", "0"))),
            effective_date=_parse_date(data.get("effective_date")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class CaliforniaDE4:
    """California DE 4 elections."""

    filing_status: CaliforniaFilingStatus = CaliforniaFilingStatus.SINGLE
    worksheet_a_allowances: int = 0  # regular withholding allowances
    worksheet_b_allowances: int = 0  # additional allowances for estimated deductions
    additional_withholding: Decimal = ZERO
    effective_date: date | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CaliforniaDE4:
        return cls(
            filing_status=CaliforniaFilingStatus(data.get("filing_status", "single")),
            worksheet_a_allowances=int(data.get("worksheet_a_allowances", 0)),
            worksheet_b_allowances=int(data.get("worksheet_b_allowances", 0)),
            additional_withholding=Decimal(str(data.get("additional_withholding", "0"))),
            effective_date=_parse_date(data.get("effective_date")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class TaxExemptions:
    """Per-tax exemption flags; a set flag zeroes the tax unconditionally."""

    fica: bool = False
    futa: bool = False
    sui_ett: bool = False
    sdi: bool = False
    effective_date: date | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TaxExemptions:
        data = data or {}
        return cls(
            fica=bool(data.get("fica", False)),
            futa=bool(data.get("futa", False)),
            sui_ett=bool(data.get("sui_ett", False)),
            sdi=bool(data.get("sdi", False)),
            effective_date=_parse_date(data.get("effective_date")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class StateRates:
    """Company CA UI and ETT rates in force for a date."""

    ui_rate: Decimal
    ett_rate: Decimal
    effective_date: date | None = None


@dataclass
class YTDWages:
    """Year-to-date totals before the period being calculated."""

    gross_pay: Decimal = ZERO
    social_security_wages: Decimal | None = None
    futa_wages: Decimal | None = None
    sui_wages: Decimal | None = None

    # Per-tax wages default to gross; exempt periods still count toward gross.
    @property
    def ss(self) -> Decimal:
        return self.gross_pay if self.social_security_wages is None else self.social_security_wages

    @property
    def futa(self) -> Decimal:
        return self.gross_pay if self.futa_wages is None else self.futa_wages

    @property
    def sui(self) -> Decimal:
        return self.gross_pay if self.sui_wages is None else self.sui_wages


@dataclass
class WithholdingInput:
    """Everything needed to calculate one employee's taxes for one period."""

    gross_pay: Decimal
    pay_period_type: PayPeriodType
    tax_year: int
    ytd: YTDWages
    federal_w4: FederalW4 | None
    california_de4: CaliforniaDE4 | None
    state_rates: StateRates | None
    exemptions: TaxExemptions = field(default_factory=TaxExemptions)
    wage_plan_code: WagePlanCode = WagePlanCode.S
    pre_tax_deductions: Decimal = ZERO
    post_tax_deductions: Decimal = ZERO


@dataclass
class EmployeeTaxes:
    federal_income_tax: Decimal = ZERO
    social_security_tax: Decimal = ZERO
    medicare_tax: Decimal = ZERO
    additional_medicare_tax: Decimal = ZERO
    state_income_tax: Decimal = ZERO
    sdi: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return (
            self.federal_income_tax
            + self.social_security_tax
            + self.medicare_tax
            + self.additional_medicare_tax
            + self.state_income_tax
            + self.sdi
        )


@dataclass
class EmployerTaxes:
    social_security_tax: Decimal = ZERO
    medicare_tax: Decimal = ZERO
    futa: Decimal = ZERO
    sui: Decimal = ZERO
    ett: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.social_security_tax + self.medicare_tax + self.futa + self.sui + self.ett


@dataclass
class WithholdingResult:
    """Result of one period's tax calculation."""

    gross_pay: Decimal
    employee: EmployeeTaxes
    employer: EmployerTaxes
    net_pay: Decimal
    social_security_wages: Decimal = ZERO
    medicare_wages: Decimal = ZERO
    futa_wages: Decimal = ZERO
    sui_wages: Decimal = ZERO


@dataclass
class PayrollLine:
    """Flattened view of an approved payroll record used by the form calculators."""

    payroll_id: UUID
    employee_id: UUID
    first_name: str
    last_name: str
    pay_date: date
    period_start: date
    period_end: date
    gross_pay: Decimal
    federal_income_tax: Decimal = ZERO
    social_security_tax: Decimal = ZERO
    medicare_tax: Decimal = ZERO
    additional_medicare_tax: Decimal = ZERO
    employer_social_security_tax: Decimal = ZERO
    employer_medicare_tax: Decimal = ZERO
    state_income_tax: Decimal = ZERO
    sdi: Decimal = ZERO
    futa: Decimal = ZERO
    sui: Decimal = ZERO
    ett: Decimal = ZERO
    pre_tax_deductions: Decimal = ZERO
    middle_name: str | None = None
    ssn: str | None = None
    wage_plan_code: str = WagePlanCode.S.value
    exemptions: TaxExemptions = field(default_factory=TaxExemptions)

    @property
    def income_tax_wages(self) -> Decimal:
        """Wages subject to federal and CA income tax, after pre-tax deductions."""
        return max(ZERO, self.gross_pay - self.pre_tax_deductions)

    @property
    def federal_liability(self) -> Decimal:
        """Amount this payroll adds to the 941 deposit liability."""
        return (
            self.federal_income_tax
            + self.social_security_tax
            + self.employer_social_security_tax
            + self.medicare_tax
            + self.employer_medicare_tax
            + self.additional_medicare_tax
        )


def _parse_date(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Enum):
            out[key] = value.value
        elif isinstance(value, Decimal):
            out[key] = str(value)
        elif isinstance(value, date):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out
