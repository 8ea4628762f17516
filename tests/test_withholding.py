"""Tests for per-period withholding and employer tax calculation."""

from decimal import Decimal

import pytest

from payroll_tax_engine.calculators.rates import TaxTableNotFoundError
from payroll_tax_engine.calculators.types import (
    CaliforniaDE4,
    CaliforniaFilingStatus,
    FederalFilingStatus,
    FederalW4,
    PayPeriodType,
    StateRates,
    TaxExemptions,
    WagePlanCode,
    WithholdingInput,
    YTDWages,
)
from payroll_tax_engine.calculators.withholding import WithholdingCalculator, calculate_withholding
from payroll_tax_engine.exceptions import InvalidInputError, MissingTaxConfigurationError


def make_input(gross="2000.00", ytd="0", **overrides) -> WithholdingInput:
    values = dict(
        gross_pay=Decimal(gross),
        pay_period_type=PayPeriodType.BIWEEKLY,
        tax_year=2025,
        ytd=YTDWages(gross_pay=Decimal(ytd)),
        federal_w4=FederalW4(filing_status=FederalFilingStatus.SINGLE),
        california_de4=CaliforniaDE4(
            filing_status=CaliforniaFilingStatus.SINGLE, worksheet_a_allowances=1
        ),
        state_rates=StateRates(ui_rate=Decimal("0.034"), ett_rate=Decimal("0.001")),
    )
    values.update(overrides)
    return WithholdingInput(**values)


class TestWithholding:
    """A single biweekly filer earning $2,000 in 2025."""

    def test_employee_taxes(self):
        result = calculate_withholding(make_input())

        assert result.employee.federal_income_tax == Decimal("161.60")
        assert result.employee.state_income_tax == Decimal("50.03")
        assert result.employee.social_security_tax == Decimal("124.00")
        assert result.employee.medicare_tax == Decimal("29.00")
        assert result.employee.additional_medicare_tax == Decimal("0.00")
        assert result.employee.sdi == Decimal("24.00")

    def test_employer_taxes(self):
        result = calculate_withholding(make_input())

        assert result.employer.social_security_tax == Decimal("124.00")
        assert result.employer.medicare_tax == Decimal("29.00")
        assert result.employer.futa == Decimal("12.00")
        assert result.employer.sui == Decimal("68.00")
        assert result.employer.ett == Decimal("2.00")

    def test_net_pay(self):
        result = calculate_withholding(make_input())

        assert result.employee.total == Decimal("388.63")
        assert result.net_pay == Decimal("1611.37")

    def test_deductions_reduce_net_pay(self):
        """Post-tax deductions come out of net pay without changing any tax."""
        base = calculate_withholding(make_input())
        result = calculate_withholding(make_input(post_tax_deductions=Decimal("100.00")))

        assert result.employee.total == base.employee.total
        assert result.net_pay == Decimal("1511.37")


class TestWageBases:
    """Annual wage limits apply to the slice of wages still under them."""

    def test_social_security_wage_base(self):
        result = calculate_withholding(make_input(ytd="175000"))

        assert result.social_security_wages == Decimal("1100.00")
        assert result.employee.social_security_tax == Decimal("68.20")
        assert result.employer.social_security_tax == Decimal("68.20")

    def test_social_security_wage_base_exhausted(self):
        result = calculate_withholding(make_input(ytd="180000"))

        assert result.employee.social_security_tax == Decimal("0.00")
        assert result.employee.medicare_tax == Decimal("29.00")

    def test_additional_medicare_on_excess_only(self):
        result = calculate_withholding(make_input(ytd="199000"))

        assert result.employee.additional_medicare_tax == Decimal("9.00")

    def test_futa_and_sui_caps(self):
        result = calculate_withholding(make_input(ytd="6500"))

        assert result.futa_wages == Decimal("500.00")
        assert result.employer.futa == Decimal("3.00")
        assert result.employer.sui == Decimal("17.00")
        assert result.employer.ett == Decimal("0.50")


class TestExemptionsAndWagePlans:
    def test_fica_exempt(self):
        result = calculate_withholding(make_input(exemptions=TaxExemptions(fica=True)))

        assert result.employee.social_security_tax == Decimal("0")
        assert result.employee.medicare_tax == Decimal("0")
        assert result.employer.social_security_tax == Decimal("0")
        assert result.employee.federal_income_tax == Decimal("161.60")

    def test_futa_and_state_exempt(self):
        result = calculate_withholding(
            make_input(exemptions=TaxExemptions(futa=True, sui_ett=True, sdi=True))
        )

        assert result.employer.futa == Decimal("0")
        assert result.employer.sui == Decimal("0")
        assert result.employer.ett == Decimal("0")
        assert result.employee.sdi == Decimal("0")

    def test_wage_plan_a_has_no_sdi(self):
        result = calculate_withholding(make_input(wage_plan_code=WagePlanCode.A))

        assert result.employee.sdi == Decimal("0")
        assert result.employer.sui == Decimal("68.00")

    def test_wage_plan_p_has_no_ui(self):
        result = calculate_withholding(make_input(wage_plan_code=WagePlanCode.P))

        assert result.employer.sui == Decimal("0")
        assert result.employer.ett == Decimal("0")
        assert result.employee.sdi == Decimal("24.00")

    def test_exempt_w4_and_do_not_withhold_de4(self):
        result = calculate_withholding(
            make_input(
                federal_w4=FederalW4(filing_status=FederalFilingStatus.EXEMPT),
                california_de4=CaliforniaDE4(
                    filing_status=CaliforniaFilingStatus.DO_NOT_WITHHOLD
                ),
            )
        )

        assert result.employee.federal_income_tax == Decimal("0")
        assert result.employee.state_income_tax == Decimal("0")

    def test_below_california_low_income_exemption(self):
        result = calculate_withholding(make_input(gross="500.00"))

        assert result.employee.state_income_tax == Decimal("0.00")


class TestInvalidInput:
    def test_missing_w4(self):
        with pytest.raises(MissingTaxConfigurationError) as exc_info:
            calculate_withholding(make_input(federal_w4=None))
        assert exc_info.value.what == "federal_w4"

    def test_missing_de4(self):
        with pytest.raises(MissingTaxConfigurationError):
            calculate_withholding(make_input(california_de4=None))

    def test_missing_state_rates(self):
        with pytest.raises(MissingTaxConfigurationError) as exc_info:
            calculate_withholding(make_input(state_rates=None))
        assert exc_info.value.what == "state_rates"

    def test_negative_gross(self):
        with pytest.raises(InvalidInputError):
            calculate_withholding(make_input(gross="-1.00"))

    def test_unsupported_year(self):
        with pytest.raises(TaxTableNotFoundError):
            WithholdingCalculator.for_year(2019)
