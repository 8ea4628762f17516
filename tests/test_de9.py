"""Tests for the California DE 9 quarterly return."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_tax_engine.calculators.de9 import (
    calculate_de9,
    format_ein,
    format_rate,
    quarterly_ui_taxable_wages,
)
from payroll_tax_engine.calculators.types import StateRates
from payroll_tax_engine.exceptions import InvalidInputError

RATES = StateRates(ui_rate=Decimal("0.034"), ett_rate=Decimal("0.001"))
LIMIT = Decimal("7000")


def q2_payrolls(make_line):
    """Two employees: one new this year, one with $4,000 earned in Q1."""
    new_hire = uuid4()
    returning = uuid4()
    payrolls = [
        make_line(
            employee_id=new_hire,
            pay_date=date(2025, 5, 2),
            gross="5000.00",
            state_income_tax="100.00",
            sdi="60.00",
        ),
        make_line(
            employee_id=returning,
            pay_date=date(2025, 6, 27),
            gross="6000.00",
            state_income_tax="150.00",
            sdi="72.00",
        ),
    ]
    return payrolls, {returning: Decimal("4000")}


class TestCalculateDe9:
    def test_contributions(self, make_line):
        payrolls, prior = q2_payrolls(make_line)

        result = calculate_de9(
            2025,
            2,
            payrolls,
            prior,
            RATES,
            company_name="Golden Gate Bakery",
            ein="123456789",
            contributions_paid=Decimal("100"),
        )

        assert result.total_subject_wages == Decimal("11000.00")
        assert result.ui_taxable_wages == Decimal("8000.00")
        assert result.sdi_taxable_wages == Decimal("11000.00")
        assert result.ui_contributions == Decimal("272.00")
        assert result.ett_contributions == Decimal("8.00")
        assert result.sdi_withheld == Decimal("132.00")
        assert result.pit_withheld == Decimal("250.00")
        assert result.subtotal == Decimal("662.00")
        assert result.contributions_paid == Decimal("100.00")
        assert result.total_due == Decimal("562.00")

    def test_header(self, make_line):
        payrolls, prior = q2_payrolls(make_line)

        header = calculate_de9(
            2025,
            2,
            payrolls,
            prior,
            RATES,
            company_name="Golden Gate Bakery",
            ein="12-3456789",
            edd_account_number="123-4567-8",
            address="1 Market St, San Francisco, CA 94105",
        ).header

        assert header.ein == "12 3456789"
        assert header.quarter_ended == date(2025, 6, 30)
        assert header.due_date == date(2025, 7, 1)
        assert header.delinquent_date == date(2025, 7, 31)
        assert header.ui_rate == "3.40"
        assert header.ett_rate == "0.10"
        assert header.sdi_rate == "1.20"
        assert header.edd_account_number == "123-4567-8"

    def test_wage_plan_p_excluded_from_ui(self, make_line):
        line = make_line(gross="1000.00", wage_plan_code="P", sdi="12.00")

        result = calculate_de9(2025, 2, [line], {}, RATES, company_name="X", ein="123456789")

        assert result.ui_taxable_wages == Decimal("0.00")
        assert result.ui_contributions == Decimal("0.00")
        assert result.sdi_taxable_wages == Decimal("1000.00")

    def test_quarter_membership_by_period_end(self, make_line):
        """A period ending June 30 belongs to Q2 even when paid in July."""
        line = make_line(pay_date=date(2025, 7, 3), period_end=date(2025, 6, 30))

        result = calculate_de9(2025, 2, [line], {}, RATES, company_name="X", ein="123456789")
        assert result.total_subject_wages == Decimal("1000.00")

        with pytest.raises(InvalidInputError):
            calculate_de9(2025, 3, [line], {}, RATES, company_name="X", ein="123456789")


class TestUiTaxableWages:
    def test_crosses_limit(self):
        assert quarterly_ui_taxable_wages(Decimal("6500"), Decimal("1000"), LIMIT) == Decimal("500")

    def test_limit_already_reached(self):
        assert quarterly_ui_taxable_wages(Decimal("7000"), Decimal("1000"), LIMIT) == Decimal("0")

    def test_under_limit(self):
        assert quarterly_ui_taxable_wages(Decimal("0"), Decimal("5000"), LIMIT) == Decimal("5000")


class TestFormatting:
    def test_format_ein(self):
        assert format_ein("12-3456789") == "12 3456789"
        assert format_ein("bad") == "bad"

    def test_format_rate(self):
        assert format_rate(Decimal("0.034")) == "3.40"
        assert format_rate(Decimal("0.0625")) == "6.25"
