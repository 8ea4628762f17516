"""Error taxonomy for the payroll tax engine."""

from __future__ import annotations

from datetime import date
from typing import Any


class PayrollTaxError(Exception):
    """Base class for payroll tax engine errors."""


class NotFoundError(PayrollTaxError):
    """Raised when a company, employee, payment or filing does not exist in scope."""

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class InvalidInputError(PayrollTaxError):
    """Raised for malformed input; always raised before any write."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MissingTaxConfigurationError(InvalidInputError):
    """Raised when company rates or employee tax elections are missing."""

    def __init__(self, what: str, subject: Any):
        self.what = what
        self.subject = subject
        super().__init__(f"Missing tax configuration '{what}' for {subject}")


class PayPeriodOverlapError(PayrollTaxError):
    """Raised when a pay period overlaps an existing record for the employee."""

    def __init__(self, employee_id: Any, period_start: date, period_end: date):
        self.employee_id = employee_id
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Pay period {period_start} to {period_end} overlaps an existing "
            f"payroll record for employee {employee_id}"
        )
