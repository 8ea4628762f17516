"""Pure tax calculators: withholding and the 941, 940, DE 9 and DE 9C returns."""

from payroll_tax_engine.calculators.de9 import De9Result, calculate_de9
from payroll_tax_engine.calculators.de9c import De9cResult, calculate_de9c
from payroll_tax_engine.calculators.form940 import Form940Result, calculate_form940
from payroll_tax_engine.calculators.form941 import DepositSchedule, Form941Result, calculate_form941
from payroll_tax_engine.calculators.rates import TaxTableNotFoundError, get_tax_rates
from payroll_tax_engine.calculators.withholding import WithholdingCalculator, calculate_withholding

__all__ = [
    "De9Result",
    "calculate_de9",
    "De9cResult",
    "calculate_de9c",
    "Form940Result",
    "calculate_form940",
    "DepositSchedule",
    "Form941Result",
    "calculate_form941",
    "TaxTableNotFoundError",
    "get_tax_rates",
    "WithholdingCalculator",
    "calculate_withholding",
]
