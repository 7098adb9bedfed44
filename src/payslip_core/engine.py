from __future__ import annotations

from typing import Optional, Union

from .assembler import PayrollResultAssembler
from .calculator import ContributionCalculator, TaxBracketCalculator, require_non_negative
from .errors import Failure, PayrollError
from .logging import get_logger
from .models import PayrollResult, TaxInput
from .tax_tables import TaxTable, load_default_table

logger = get_logger(__name__)


class PayrollEngine:
    """Tax, contributions and assembly for one rate table."""

    def __init__(self, table: TaxTable):
        self.table = table
        self.tax_calculator = TaxBracketCalculator(table)
        self.contribution_calculator = ContributionCalculator(table)
        self.assembler = PayrollResultAssembler()

    def calculate(self, tax_input: TaxInput, manual_deductions: float = 0.0) -> PayrollResult:
        gross = tax_input.monthly_gross_salary
        manual = require_non_negative(manual_deductions, "manual_deductions")
        income_tax = self.tax_calculator.compute_income_tax(tax_input)
        employee = self.contribution_calculator.compute_employee_contributions(gross)
        employer = self.contribution_calculator.compute_employer_contributions(gross)
        return self.assembler.assemble(
            gross,
            income_tax,
            employee,
            other_deductions=manual,
            employer=employer,
            table_version=self.table.version,
        )


def compute_payroll(
    tax_input: TaxInput,
    manual_deductions: float = 0.0,
    table: Optional[TaxTable] = None,
) -> Union[PayrollResult, Failure]:
    table = table or load_default_table()
    try:
        result = PayrollEngine(table).calculate(tax_input, manual_deductions)
    except PayrollError as exc:
        logger.warning("payroll_failed", kind=exc.kind.value, reason=exc.message, table=table.version)
        return exc.to_failure()
    logger.debug(
        "payroll_computed",
        table=table.version,
        tax_class=tax_input.tax_class,
        gross=str(result.gross_salary),
        net=str(result.net_salary),
    )
    return result
