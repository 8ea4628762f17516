"""Tests for Form 941 quarterly calculation and deposit schedules."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_tax_engine.calculators.form941 import (
    Deposit,
    DepositSchedule,
    calculate_form941,
    classify_deposit_schedule,
    monthly_deposits,
)
from payroll_tax_engine.calculators.rates import get_tax_rates
from payroll_tax_engine.calculators.types import TaxExemptions
from payroll_tax_engine.exceptions import InvalidInputError

FED_2025 = get_tax_rates(2025).federal


def utc(year, month, day, hour=0):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


class TestMonthlyLiability:
    """Line 16 buckets come from each pay date's UTC month."""

    def test_buckets_by_pay_month(self, make_line):
        payrolls = [
            make_line(pay_date=utc(2025, 4, 1), federal_income_tax="1000"),
            make_line(pay_date=utc(2025, 5, 1), federal_income_tax="2000"),
            make_line(pay_date=utc(2025, 6, 1), federal_income_tax="3000"),
        ]

        result = calculate_form941(2025, 2, payrolls)

        assert result.monthly_liability.month1 == Decimal("1000.00")
        assert result.monthly_liability.month2 == Decimal("2000.00")
        assert result.monthly_liability.month3 == Decimal("3000.00")
        assert result.total_tax_liability == Decimal("6000.00")

    def test_offset_datetime_lands_in_next_quarter(self, make_line):
        """June 30 at 8pm Pacific is July 1 in UTC."""
        pacific = timezone(timedelta(hours=-7))
        line = make_line(
            pay_date=datetime(2025, 6, 30, 20, 0, tzinfo=pacific), federal_income_tax="500"
        )

        result = calculate_form941(2025, 3, [line])

        assert result.monthly_liability.month1 == Decimal("500.00")
        with pytest.raises(InvalidInputError):
            calculate_form941(2025, 2, [line])

    def test_fractions_of_cents_and_month_total(self, make_line):
        """Per-employee rounding drift goes to line 7 and months still sum to line 12."""
        employee_id = uuid4()
        amounts = dict(
            gross="100.10",
            federal_income_tax="10.00",
            social_security_tax="6.21",
            employer_social_security_tax="6.21",
            medicare_tax="1.45",
            employer_medicare_tax="1.45",
        )
        payrolls = [
            make_line(employee_id=employee_id, pay_date=date(2025, month, 15), **amounts)
            for month in (4, 5, 6)
        ]

        result = calculate_form941(2025, 2, payrolls)

        assert result.social_security_tax == Decimal("37.24")
        assert result.medicare_tax == Decimal("8.71")
        assert result.fractions_of_cents_adjustment == Decimal("0.01")
        assert result.total_tax_liability == Decimal("75.96")
        assert result.monthly_liability.total == result.total_tax_liability
        assert result.number_of_employees == 1


class TestWageLimits:
    def test_social_security_wage_base_per_employee(self, make_line):
        employee_id = uuid4()
        line = make_line(employee_id=employee_id, gross="1000.00")

        result = calculate_form941(
            2025, 2, [line], ytd_wages_before_quarter={employee_id: Decimal("176000")}
        )

        assert result.social_security_wages == Decimal("100.00")
        assert result.medicare_wages == Decimal("1000.00")

    def test_additional_medicare(self, make_line):
        employee_id = uuid4()
        line = make_line(employee_id=employee_id, gross="1000.00")

        result = calculate_form941(
            2025, 2, [line], ytd_wages_before_quarter={employee_id: Decimal("199500")}
        )

        assert result.additional_medicare_wages == Decimal("500.00")
        assert result.additional_medicare_tax == Decimal("4.50")

    def test_fica_exempt_wages_still_count_as_wages(self, make_line):
        line = make_line(gross="1000.00", exemptions=TaxExemptions(fica=True))

        result = calculate_form941(2025, 2, [line])

        assert result.wages == Decimal("1000.00")
        assert result.social_security_wages == Decimal("0.00")
        assert result.medicare_wages == Decimal("0.00")

    def test_line_2_excludes_pre_tax_deductions(self, make_line):
        """Pre-tax deductions leave income-tax wages but not FICA wages."""
        line = make_line(gross="2000.00", pre_tax_deductions="200.00")

        result = calculate_form941(2025, 2, [line])

        assert result.wages == Decimal("1800.00")
        assert result.social_security_wages == Decimal("2000.00")
        assert result.medicare_wages == Decimal("2000.00")


class TestDeposits:
    def test_deposits_by_period_month(self):
        deposits = [
            Deposit(period_start=date(2025, 4, 1), amount=Decimal("800")),
            Deposit(period_start=date(2025, 6, 1), amount=Decimal("900")),
        ]

        buckets = monthly_deposits(deposits, 2025, 2)

        assert buckets.month1 == Decimal("800.00")
        assert buckets.month2 == Decimal("0.00")
        assert buckets.month3 == Decimal("900.00")

    def test_deposit_outside_quarter(self):
        with pytest.raises(InvalidInputError):
            monthly_deposits([Deposit(period_start=date(2025, 7, 1), amount=Decimal("1"))], 2025, 2)

    def test_balance_due_and_overpayment(self, make_line):
        line = make_line(federal_income_tax="1000.00")

        owed = calculate_form941(
            2025, 2, [line], deposits=[Deposit(date(2025, 4, 1), Decimal("400"))]
        )
        over = calculate_form941(
            2025, 2, [line], deposits=[Deposit(date(2025, 4, 1), Decimal("1200"))]
        )

        assert owed.total_deposits == Decimal("400.00")
        assert owed.balance_due == Decimal("600.00")
        assert owed.overpayment == Decimal("0")
        assert over.balance_due == Decimal("0")
        assert over.overpayment == Decimal("200.00")


class TestDepositSchedule:
    def test_large_single_day_is_semiweekly(self):
        schedule = classify_deposit_schedule(
            Decimal("100000"), Decimal("0"), {date(2025, 4, 15): Decimal("100000")}, FED_2025
        )
        assert schedule == DepositSchedule.SEMIWEEKLY

    def test_small_quarter_is_de_minimis(self):
        """Under $2,500 for the quarter wins over a large lookback."""
        schedule = classify_deposit_schedule(
            Decimal("2499.99"), Decimal("90000"), {date(2025, 4, 15): Decimal("2499.99")}, FED_2025
        )
        assert schedule == DepositSchedule.DE_MINIMIS

    def test_lookback_over_threshold_is_semiweekly(self):
        schedule = classify_deposit_schedule(
            Decimal("3000"), Decimal("50000.01"), {date(2025, 4, 15): Decimal("3000")}, FED_2025
        )
        assert schedule == DepositSchedule.SEMIWEEKLY

    def test_lookback_at_threshold_is_monthly(self):
        schedule = classify_deposit_schedule(
            Decimal("3000"), Decimal("50000"), {date(2025, 4, 15): Decimal("3000")}, FED_2025
        )
        assert schedule == DepositSchedule.MONTHLY

    def test_schedule_b_only_for_semiweekly(self, make_line):
        payrolls = [
            make_line(pay_date=date(2025, 4, 15), federal_income_tax="3000"),
            make_line(pay_date=date(2025, 5, 15), federal_income_tax="1000"),
        ]

        semiweekly = calculate_form941(2025, 2, payrolls, lookback_total=Decimal("60000"))
        monthly = calculate_form941(2025, 2, payrolls, lookback_total=Decimal("1000"))

        assert semiweekly.deposit_schedule == DepositSchedule.SEMIWEEKLY
        assert [(e.month_of_quarter, e.day, e.liability) for e in semiweekly.schedule_b] == [
            (1, 15, Decimal("3000.00")),
            (2, 15, Decimal("1000.00")),
        ]
        assert monthly.deposit_schedule == DepositSchedule.MONTHLY
        assert monthly.schedule_b == []

    def test_due_date(self, make_line):
        result = calculate_form941(2025, 1, [make_line(pay_date=date(2025, 2, 14))])
        assert result.due_date == date(2025, 4, 30)
