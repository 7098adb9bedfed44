from __future__ import annotations

import math
from typing import List

from .errors import NegativeInputError
from .logging import get_logger
from .models import EmployeeContributions, EmployerContributions, TaxInput
from .tax_tables import TaxBracket, TaxTable

logger = get_logger(__name__)


def require_non_negative(amount: float, name: str) -> float:
    if amount is None or not math.isfinite(amount) or amount < 0:
        raise NegativeInputError(f"{name} must be a finite, non-negative amount, got {amount!r}", ref=name)
    return float(amount)


def apply_brackets(amount: float, brackets: List[TaxBracket]) -> float:
    """Marginal tax on ``amount``: each slice is taxed at its own bracket's rate."""
    remaining = amount
    last_cap = 0.0
    total_tax = 0.0
    for bracket in brackets:
        taxable_at_rate = max(min(remaining, bracket.up_to - last_cap), 0)
        total_tax += taxable_at_rate * bracket.rate
        remaining -= taxable_at_rate
        last_cap = bracket.up_to
        if remaining <= 0:
            break
    return total_tax


class TaxBracketCalculator:
    def __init__(self, table: TaxTable):
        self.table = table

    def compute_income_tax(self, tax_input: TaxInput) -> float:
        gross = require_non_negative(tax_input.monthly_gross_salary, "monthly_gross_salary")
        brackets = self.table.brackets_for(tax_input.tax_class)
        periods = self.table.periods_per_year

        tax = apply_brackets(gross * periods, brackets) / periods
        if tax_input.has_children:
            tax -= self.table.child_credit_for(tax_input.tax_class) / periods
        if tax_input.is_over_65:
            # no age-based schedule is published for this table
            logger.debug("over_65_flag_ignored", table=self.table.version)
        return max(tax, 0.0)


class ContributionCalculator:
    def __init__(self, table: TaxTable):
        self.table = table

    def compute_employee_contributions(self, gross_salary: float) -> EmployeeContributions:
        gross = require_non_negative(gross_salary, "gross_salary")
        rates = self.table.employee_rates
        dependency_base = max(0.0, gross - self.table.dependency_abatement)
        return EmployeeContributions(
            sickness=gross * rates["sickness"],
            pension=gross * rates["pension"],
            dependency=dependency_base * rates["dependency"],
        )

    def compute_employer_contributions(self, gross_salary: float) -> EmployerContributions:
        gross = require_non_negative(gross_salary, "gross_salary")
        return EmployerContributions(
            breakdown={name: gross * rate for name, rate in self.table.employer_rates.items()}
        )
