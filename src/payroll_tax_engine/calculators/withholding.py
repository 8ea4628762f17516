"""Per-period employee withholding and employer tax calculation."""

from __future__ import annotations

from decimal import Decimal

from payroll_tax_engine.calculators.money import ZERO, capped_taxable, round_cents
from payroll_tax_engine.calculators.rates import (
    FederalBracket,
    StateBracket,
    TaxRates,
    get_tax_rates,
)
from payroll_tax_engine.calculators.types import (
    CaliforniaDE4,
    CaliforniaFilingStatus,
    EmployeeTaxes,
    EmployerTaxes,
    FederalFilingStatus,
    FederalW4,
    PayPeriodType,
    StateRates,
    TaxExemptions,
    WagePlanCode,
    WithholdingInput,
    WithholdingResult,
    YTDWages,
)
from payroll_tax_engine.exceptions import InvalidInputError, MissingTaxConfigurationError


class WithholdingCalculator:
    """Calculates one pay period's taxes for one employee.

    Every tax line is rounded to the cent as it is produced, so totals summed
    across periods match the per-period amounts actually withheld.
    """

    def __init__(self, rates: TaxRates):
        self.rates = rates

    @classmethod
    def for_year(cls, year: int) -> WithholdingCalculator:
        return cls(get_tax_rates(year))

    def calculate(self, inp: WithholdingInput) -> WithholdingResult:
        """Calculate employee and employer taxes and net pay."""
        w4, de4, state_rates = self._require_config(inp)

        gross = inp.gross_pay
        exemptions = inp.exemptions
        income_wages = max(ZERO, gross - inp.pre_tax_deductions)
        fed = self.rates.federal

        employee = EmployeeTaxes()
        employer = EmployerTaxes()

        employee.federal_income_tax = self.federal_income_tax(
            income_wages, inp.pay_period_type, w4
        )
        employee.state_income_tax = self.california_income_tax(
            income_wages, inp.pay_period_type, de4
        )

        ss_wages = ZERO
        medicare_wages = ZERO
        if not exemptions.fica:
            ss_wages = capped_taxable(gross, fed.social_security_wage_base, inp.ytd.ss)
            medicare_wages = gross
            employee.social_security_tax = round_cents(ss_wages * fed.social_security_rate)
            employer.social_security_tax = round_cents(ss_wages * fed.social_security_rate)
            employee.medicare_tax = round_cents(gross * fed.medicare_rate)
            employer.medicare_tax = round_cents(gross * fed.medicare_rate)
            employee.additional_medicare_tax = self.additional_medicare_tax(gross, inp.ytd.gross_pay)

        futa_wages = ZERO
        if not exemptions.futa:
            futa_wages = capped_taxable(gross, fed.futa_wage_base, inp.ytd.futa)
            employer.futa = round_cents(futa_wages * fed.futa_net_rate)

        employer.sui, employer.ett, sui_wages = self.unemployment_taxes(
            gross, inp.ytd, state_rates, exemptions, inp.wage_plan_code
        )
        employee.sdi = self.sdi(gross, exemptions, inp.wage_plan_code)

        net_pay = round_cents(
            gross - employee.total - inp.pre_tax_deductions - inp.post_tax_deductions
        )

        return WithholdingResult(
            gross_pay=round_cents(gross),
            employee=employee,
            employer=employer,
            net_pay=net_pay,
            social_security_wages=round_cents(ss_wages),
            medicare_wages=round_cents(medicare_wages),
            futa_wages=round_cents(futa_wages),
            sui_wages=round_cents(sui_wages),
        )

    def _require_config(
        self, inp: WithholdingInput
    ) -> tuple[FederalW4, CaliforniaDE4, StateRates]:
        if inp.federal_w4 is None:
            raise MissingTaxConfigurationError("federal_w4", "employee")
        if inp.california_de4 is None:
            raise MissingTaxConfigurationError("california_de4", "employee")
        if inp.state_rates is None:
            raise MissingTaxConfigurationError("state_rates", "company")
        if inp.gross_pay < 0:
            raise InvalidInputError(f"Gross pay cannot be negative: {inp.gross_pay}")
        return inp.federal_w4, inp.california_de4, inp.state_rates

    # Federal

    def federal_income_tax(
        self,
        wages: Decimal,
        period_type: PayPeriodType,
        w4: FederalW4,
    ) -> Decimal:
        """Pub 15-T Worksheet 1A, annual percentage method."""
        if w4.filing_status == FederalFilingStatus.EXEMPT:
            return ZERO

        fed = self.rates.federal
        periods = Decimal(period_type.periods_per_year)

        annual = wages * periods + w4.other_income
        deduction = w4.deductions
        if not w4.multiple_jobs:
            deduction += fed.standard_deduction[w4.filing_status]
        adjusted = max(ZERO, annual - deduction)

        brackets = fed.brackets[(w4.filing_status, w4.multiple_jobs)]
        tentative = round_cents(self._federal_tentative_amount(adjusted, brackets) / periods)
        credit = round_cents(w4.dependents_amount / periods)
        return round_cents(max(ZERO, tentative - credit) + w4.extra_withholding)

    @staticmethod
    def _federal_tentative_amount(
        annual_wages: Decimal, brackets: tuple[FederalBracket, ...]
    ) -> Decimal:
        for bracket in brackets:
            if bracket.max_amount is None or annual_wages < bracket.max_amount:
                return bracket.tentative_amount + (annual_wages - bracket.min_amount) * bracket.rate
        return ZERO

    def additional_medicare_tax(self, gross: Decimal, ytd_gross: Decimal) -> Decimal:
        """0.9% on the slice of this period's wages above the YTD threshold."""
        fed = self.rates.federal
        threshold = fed.additional_medicare_threshold
        before = max(ZERO, ytd_gross - threshold)
        after = max(ZERO, ytd_gross + gross - threshold)
        return round_cents((after - before) * fed.additional_medicare_rate)

    # California

    def california_income_tax(
        self,
        wages: Decimal,
        period_type: PayPeriodType,
        de4: CaliforniaDE4,
    ) -> Decimal:
        """DE 44 Method B on annualized wages."""
        if de4.filing_status == CaliforniaFilingStatus.DO_NOT_WITHHOLD:
            return ZERO

        ca = self.rates.california
        periods = Decimal(period_type.periods_per_year)
        annual = wages * periods
        key = self._california_table_key(de4)

        if annual <= ca.low_income_exemption[key]:
            return round_cents(de4.additional_withholding)

        taxable = annual
        taxable -= ca.estimated_deduction_per_allowance * de4.worksheet_b_allowances
        taxable -= ca.standard_deduction[key]
        taxable = max(ZERO, taxable)

        tax = self._progressive_tax(taxable, ca.brackets[de4.filing_status])
        tax = max(ZERO, tax - ca.exemption_allowance_credit * de4.worksheet_a_allowances)

        return round_cents(round_cents(tax / periods) + de4.additional_withholding)

    @staticmethod
    def _california_table_key(de4: CaliforniaDE4) -> str:
        if de4.filing_status == CaliforniaFilingStatus.MARRIED_ONE_INCOME:
            return "married_high" if de4.worksheet_a_allowances >= 2 else "married_low"
        if de4.filing_status == CaliforniaFilingStatus.HEAD_OF_HOUSEHOLD:
            return "head_of_household"
        return "single"

    @staticmethod
    def _progressive_tax(amount: Decimal, brackets: tuple[StateBracket, ...]) -> Decimal:
        tax = ZERO
        for bracket in brackets:
            if amount <= bracket.min_amount:
                break
            top = amount if bracket.max_amount is None else min(amount, bracket.max_amount)
            tax += (top - bracket.min_amount) * bracket.rate
        return tax

    def unemployment_taxes(
        self,
        gross: Decimal,
        ytd: YTDWages,
        state_rates: StateRates,
        exemptions: TaxExemptions,
        wage_plan_code: WagePlanCode,
    ) -> tuple[Decimal, Decimal, Decimal]:
        """Return (SUI, ETT, SUI taxable wages)."""
        if exemptions.sui_ett or not wage_plan_code.has_ui:
            return ZERO, ZERO, ZERO
        ca = self.rates.california
        sui_wages = capped_taxable(gross, ca.sui_wage_base, ytd.sui)
        ett_wages = capped_taxable(gross, ca.ett_wage_base, ytd.sui)
        return (
            round_cents(sui_wages * state_rates.ui_rate),
            round_cents(ett_wages * state_rates.ett_rate),
            sui_wages,
        )

    def sdi(self, gross: Decimal, exemptions: TaxExemptions, wage_plan_code: WagePlanCode) -> Decimal:
        if exemptions.sdi or not wage_plan_code.has_sdi:
            return ZERO
        return round_cents(gross * self.rates.california.sdi_rate)


def calculate_withholding(inp: WithholdingInput) -> WithholdingResult:
    """Calculate one period's taxes using the tables for ``inp.tax_year``."""
    return WithholdingCalculator.for_year(inp.tax_year).calculate(inp)
