"""Payroll tax computation and compliance filing for federal and California returns."""
