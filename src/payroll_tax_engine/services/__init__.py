"""Payroll tax engine services."""

from payroll_tax_engine.services.filing_service import FilingService
from payroll_tax_engine.services.filing_update_service import FilingUpdateService
from payroll_tax_engine.services.payroll_service import Earnings, PayrollService
from payroll_tax_engine.services.state_machine import (
    FilingStateMachine,
    FilingStatus,
    InvalidTransitionError,
    PaymentStateMachine,
    PaymentStatus,
)
from payroll_tax_engine.services.tax_payment_service import TaxPaymentService
from payroll_tax_engine.services.ytd_service import YTDService, YTDTotals

__all__ = [
    "FilingService",
    "FilingUpdateService",
    "Earnings",
    "PayrollService",
    "FilingStateMachine",
    "FilingStatus",
    "InvalidTransitionError",
    "PaymentStateMachine",
    "PaymentStatus",
    "TaxPaymentService",
    "YTDService",
    "YTDTotals",
]
