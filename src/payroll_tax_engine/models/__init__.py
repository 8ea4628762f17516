"""ORM models for the payroll tax engine."""

from payroll_tax_engine.models.base import Base, TimestampMixin
from payroll_tax_engine.models.company import Company, CompanyStateRate, Employee
from payroll_tax_engine.models.filing import (
    FILING_MODELS,
    De9cFiling,
    De9Filing,
    FilingMixin,
    Form940Filing,
    Form941Filing,
)
from payroll_tax_engine.models.payroll import ApprovalStatus, PayrollRecord
from payroll_tax_engine.models.tax_payment import (
    TAX_PAYMENT_MODELS,
    CAPitSdiPayment,
    CASuiEttPayment,
    Federal940Payment,
    Federal941Payment,
    TaxPaymentMixin,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Company",
    "CompanyStateRate",
    "Employee",
    "ApprovalStatus",
    "PayrollRecord",
    "TaxPaymentMixin",
    "Federal941Payment",
    "Federal940Payment",
    "CAPitSdiPayment",
    "CASuiEttPayment",
    "TAX_PAYMENT_MODELS",
    "FilingMixin",
    "Form941Filing",
    "Form940Filing",
    "De9Filing",
    "De9cFiling",
    "FILING_MODELS",
]
