"""Tests for filing recompute from approved payroll."""

import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_tax_engine.exceptions import InvalidInputError, MissingTaxConfigurationError, NotFoundError
from payroll_tax_engine.models import Form941Filing
from payroll_tax_engine.services.filing_service import FilingService
from payroll_tax_engine.services.filing_update_service import FilingUpdateService
from payroll_tax_engine.services.tax_payment_service import TaxPaymentService


class TestRecomputeForm941:
    async def test_creates_computed_filing(self, session, company, employee, make_taxed_payroll):
        record = await make_taxed_payroll(company, employee, date(2025, 4, 15))

        filing = await FilingService(session).recompute_form941(company.company_id, 2025, 2)

        assert filing.status == "computed"
        assert filing.company_name == "Golden Gate Bakery"
        assert filing.due_date == date(2025, 7, 31)
        assert filing.number_of_employees == 1
        assert filing.wages == Decimal("2000.00")
        assert filing.federal_income_tax_withheld == Decimal("161.60")
        assert filing.social_security_tax == Decimal("248.00")
        assert filing.medicare_tax == Decimal("58.00")
        assert filing.fractions_of_cents_adjustment == Decimal("0.00")
        assert filing.total_tax_liability == Decimal("467.60")
        assert filing.month1_liability == Decimal("467.60")
        assert filing.deposit_schedule == "de_minimis"
        assert filing.schedule_b == []
        assert filing.payroll_ids == [str(record.payroll_id)]

    async def test_paid_deposits_flow_into_line_13(self, session, company, employee, make_taxed_payroll):
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        synced = await TaxPaymentService(session).sync_tax_payments(company.company_id, date(2025, 4, 15))
        await FilingUpdateService(session).mark_tax_payment_as_paid(
            "federal941", synced.payments["federal941"].payment_id, date(2025, 5, 10)
        )

        filing = await FilingService(session).recompute_form941(company.company_id, 2025, 2)

        assert filing.total_deposits == Decimal("467.60")
        assert filing.month1_deposits == Decimal("467.60")
        assert filing.balance_due == Decimal("0.00")

    async def test_lookback_makes_semiweekly(self, session, company, employee, make_taxed_payroll):
        for year, quarter in ((2023, 3), (2023, 4), (2024, 1), (2024, 2)):
            session.add(
                Form941Filing(
                    company_id=company.company_id,
                    year=year,
                    quarter=quarter,
                    company_name=company.name,
                    ein=company.ein,
                    total_tax_liability=Decimal("15000.00"),
                )
            )
        await session.flush()
        await make_taxed_payroll(company, employee, date(2025, 4, 15), federal_income_tax="3000.00")

        filing = await FilingService(session).recompute_form941(company.company_id, 2025, 2)

        assert filing.lookback_total == Decimal("60000.00")
        assert filing.deposit_schedule == "semiweekly"
        assert filing.schedule_b == [
            {"pay_date": "2025-04-15", "month_of_quarter": 1, "day": 15, "liability": "3306.00"}
        ]

    async def test_filed_values_not_overwritten(self, session, company, employee, make_taxed_payroll, caplog):
        service = FilingService(session)
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        filing = await service.recompute_form941(company.company_id, 2025, 2)
        await FilingUpdateService(session).mark_filing_as_filed("form941", filing.filing_id, date(2025, 7, 20))

        await make_taxed_payroll(company, employee, date(2025, 5, 15))
        with caplog.at_level(logging.WARNING, logger="payroll_tax_engine.services.filing_service"):
            refreshed = await service.recompute_form941(company.company_id, 2025, 2)

        assert refreshed.filing_id == filing.filing_id
        assert refreshed.status == "filed"
        assert refreshed.wages == Decimal("2000.00")
        assert refreshed.total_tax_liability == Decimal("467.60")
        assert len(refreshed.payroll_ids) == 2
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "form_941_filing" in warnings[0].getMessage()
        assert "wages" in warnings[0].getMessage()

    async def test_filed_without_changes_is_quiet(self, session, company, employee, make_taxed_payroll, caplog):
        service = FilingService(session)
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        filing = await service.recompute_form941(company.company_id, 2025, 2)
        await FilingUpdateService(session).mark_filing_as_filed("form941", filing.filing_id, date(2025, 7, 20))

        with caplog.at_level(logging.WARNING, logger="payroll_tax_engine.services.filing_service"):
            await service.recompute_form941(company.company_id, 2025, 2)

        assert [r for r in caplog.records if r.levelno == logging.WARNING] == []


class TestRecomputeForm940:
    async def test_annual_lines(self, session, company, employee, make_taxed_payroll):
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        await make_taxed_payroll(company, employee, date(2025, 10, 15))

        filing = await FilingService(session).recompute_form940(company.company_id, 2025)

        assert filing.total_payments == Decimal("4000.00")
        assert filing.taxable_futa_wages == Decimal("4000.00")
        assert filing.futa_tax_before_adjustments == Decimal("24.00")
        assert filing.credit_reduction == Decimal("48.00")
        assert filing.total_futa_tax == Decimal("72.00")
        assert filing.q1_liability is None
        assert filing.due_date == date(2026, 2, 2)

    async def test_paid_futa_counts_as_deposits(self, session, company, employee, make_taxed_payroll):
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        synced = await TaxPaymentService(session).sync_tax_payments(company.company_id, date(2025, 4, 15))
        await FilingUpdateService(session).mark_tax_payment_as_paid(
            "federal940", synced.payments["federal940"].payment_id, date(2025, 7, 1)
        )

        filing = await FilingService(session).recompute_form940(company.company_id, 2025)

        assert filing.total_deposits == Decimal("12.00")
        assert filing.balance_due == Decimal("24.00")


class TestRecomputeDe9:
    async def test_quarter_return(self, session, company, employee, make_taxed_payroll):
        await make_taxed_payroll(company, employee, date(2025, 4, 15))

        filing = await FilingService(session).recompute_de9(company.company_id, 2025, 2)

        assert filing.ein == "12 3456789"
        assert filing.edd_account_number == "123-4567-8"
        assert filing.address == "1 Market St, San Francisco, CA 94105"
        assert filing.quarter_ended == date(2025, 6, 30)
        assert filing.due_date == date(2025, 7, 1)
        assert filing.delinquent_date == date(2025, 7, 31)
        assert filing.ui_rate == "3.40"
        assert filing.ui_taxable_wages == Decimal("2000.00")
        assert filing.ui_contributions == Decimal("68.00")
        assert filing.ett_contributions == Decimal("2.00")
        assert filing.sdi_withheld == Decimal("24.00")
        assert filing.pit_withheld == Decimal("50.03")
        assert filing.subtotal == Decimal("144.03")
        assert filing.total_due == Decimal("144.03")

    async def test_paid_contributions(self, session, company, employee, make_taxed_payroll):
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        synced = await TaxPaymentService(session).sync_tax_payments(company.company_id, date(2025, 4, 15))
        await FilingUpdateService(session).mark_tax_payment_as_paid(
            "ca_sui_ett", synced.payments["ca_sui_ett"].payment_id, date(2025, 7, 15)
        )

        filing = await FilingService(session).recompute_de9(company.company_id, 2025, 2)

        assert filing.contributions_paid == Decimal("70.00")
        assert filing.total_due == Decimal("74.03")

    async def test_membership_by_period_end(self, session, company, employee, make_taxed_payroll):
        """Paid in July for a period ending in June: DE 9 Q2, Form 941 Q3."""
        await make_taxed_payroll(company, employee, date(2025, 7, 3), period_end=date(2025, 6, 28))
        service = FilingService(session)

        de9_q2 = await service.recompute_de9(company.company_id, 2025, 2)
        form941_q3 = await service.recompute_form941(company.company_id, 2025, 3)
        form941_q2 = await service.recompute_form941(company.company_id, 2025, 2)

        assert de9_q2.total_subject_wages == Decimal("2000.00")
        assert form941_q3.wages == Decimal("2000.00")
        assert form941_q2.wages == Decimal("0.00")

    async def test_missing_state_rates(self, session, make_company, make_employee, make_taxed_payroll):
        company = await make_company(ui_rate=None)
        employee = await make_employee(company)
        await make_taxed_payroll(company, employee, date(2025, 4, 15))

        with pytest.raises(MissingTaxConfigurationError):
            await FilingService(session).recompute_de9(company.company_id, 2025, 2)


class TestRecomputeDe9c:
    async def test_employee_detail(self, session, company, employee, make_taxed_payroll):
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        await make_taxed_payroll(company, employee, date(2025, 6, 20))

        filing = await FilingService(session).recompute_de9c(company.company_id, 2025, 2)

        assert filing.employees == [
            {
                "employee_id": str(employee.employee_id),
                "ssn": "123-45-6789",
                "first_name": "Ada",
                "middle_initial": "",
                "last_name": "Lovelace",
                "subject_wages": "4000.00",
                "pit_wages": "4000.00",
                "pit_withheld": "100.06",
                "wage_plan_code": "S",
            }
        ]
        assert (filing.month1_employees, filing.month2_employees, filing.month3_employees) == (1, 0, 1)
        assert filing.total_pit_withheld == "100.06"
        assert filing.due_date == date(2025, 7, 1)


class TestListFilings:
    async def test_lists_by_type(self, session, company, employee, make_taxed_payroll):
        service = FilingService(session)
        await make_taxed_payroll(company, employee, date(2025, 4, 15))
        await service.recompute_form941(company.company_id, 2025, 2)

        assert len(await service.list_filings("form941", company.company_id, year=2025)) == 1
        assert await service.list_filings("form940", company.company_id) == []

    async def test_unknown_type(self, session, company):
        with pytest.raises(InvalidInputError):
            await FilingService(session).list_filings("w2", company.company_id)

    async def test_unknown_company(self, session):
        with pytest.raises(NotFoundError):
            await FilingService(session).recompute_form941(uuid4(), 2025, 2)
