from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .bindings import FieldBindingResolver, normalize_label
from .engine import compute_payroll
from .errors import Failure, is_failure
from .logging import get_logger
from .models import TaxInput
from .tax_tables import TaxTable

logger = get_logger(__name__)

MONTHS = tuple(range(12))
SALARY_KEYWORDS = ("salary", "basic", "allowance", "overtime", "bonus", "commission")
COMPUTED_ROWS = (
    "Gross Salary",
    "Income Tax",
    "Social Security Total",
    "Sickness Insurance",
    "Pension Contribution",
    "Dependency Insurance",
    "Total Deductions",
    "Net Salary",
    "Employer Cost",
)


class CellUpdate(NamedTuple):
    month: int
    row: str
    value: float


@dataclass(frozen=True)
class MonthlyLedger:
    """A year of payslip rows: ``months[month_index][row] -> amount`` plus row totals."""

    rows: Tuple[str, ...]
    months: Mapping[int, Mapping[str, float]]
    totals: Mapping[str, float]

    @classmethod
    def empty(cls, rows: Sequence[str]) -> "MonthlyLedger":
        return cls(
            rows=tuple(rows),
            months=MappingProxyType({month: MappingProxyType({}) for month in MONTHS}),
            totals=MappingProxyType({}),
        )

    def value(self, month: int, row: str) -> float:
        return self.months.get(month, {}).get(row, 0.0)


def is_salary_field(row: str) -> bool:
    normalized = normalize_label(row)
    return any(keyword in normalized for keyword in SALARY_KEYWORDS)


def dependent_rows(row: str) -> List[str]:
    dependents = [row]
    if is_salary_field(row):
        dependents.extend(COMPUTED_ROWS)
    return list(dict.fromkeys(dependents))


def recalculate_totals(ledger: MonthlyLedger, rows: Iterable[str]) -> MonthlyLedger:
    totals = dict(ledger.totals)
    for row in rows:
        totals[row] = sum(ledger.value(month, row) for month in MONTHS)
    return replace(ledger, totals=MappingProxyType(totals))


def batch_update(ledger: MonthlyLedger, updates: Iterable[CellUpdate]) -> MonthlyLedger:
    updates = list(updates)
    months = {month: dict(values) for month, values in ledger.months.items()}
    for update in updates:
        if update.month not in MONTHS:
            raise ValueError(f"Month index must be 0-11, got {update.month}")
        months.setdefault(update.month, {})[update.row] = float(update.value)

    rows = list(ledger.rows) + [u.row for u in updates if u.row not in ledger.rows]
    changed = dict.fromkeys(row for update in updates for row in dependent_rows(update.row))
    updated = replace(
        ledger,
        rows=tuple(dict.fromkeys(rows)),
        months=MappingProxyType({month: MappingProxyType(values) for month, values in months.items()}),
    )
    return recalculate_totals(updated, changed)


def update_cell(ledger: MonthlyLedger, month: int, row: str, value: float) -> MonthlyLedger:
    return batch_update(ledger, [CellUpdate(month, row, value)])


def month_gross(ledger: MonthlyLedger, month: int, resolver: FieldBindingResolver) -> float:
    """Sum of the month's earning rows; the gross row itself only when no earnings are filled in."""
    earnings = 0.0
    explicit = 0.0
    for row in ledger.rows:
        rule = resolver.match(row)
        if rule is not None and rule.name == "gross_salary":
            explicit = explicit or ledger.value(month, row)
        elif rule is None and is_salary_field(row):
            earnings += ledger.value(month, row)
    return earnings or explicit


def apply_payroll(
    ledger: MonthlyLedger,
    month: int,
    tax_class: int = 1,
    has_children: bool = False,
    table: Optional[TaxTable] = None,
    resolver: Optional[FieldBindingResolver] = None,
) -> Tuple[MonthlyLedger, Optional[Failure]]:
    """Fill every computed row of ``month`` that the binding rules recognise.

    Rows without a binding keep their manual value. A month without any
    earnings is left untouched.
    """
    resolver = resolver or FieldBindingResolver()
    gross = month_gross(ledger, month, resolver)
    if gross <= 0:
        return ledger, None

    manual = sum(ledger.value(month, row) for row in ledger.rows if "other deduction" in normalize_label(row))
    tax_input = TaxInput(monthly_gross_salary=gross, tax_class=tax_class, has_children=has_children)
    result = compute_payroll(tax_input, manual, table=table)
    if is_failure(result):
        logger.warning("ledger_payroll_failed", month=month, kind=result.kind.value)
        return ledger, result

    updates: List[CellUpdate] = []
    for row in ledger.rows:
        bound = resolver.bind(row, result)
        if bound is not None:
            updates.append(CellUpdate(month, row, float(bound)))
    return batch_update(ledger, updates), None


def row_totals(ledger: MonthlyLedger) -> Dict[str, float]:
    return {row: ledger.totals.get(row, 0.0) for row in ledger.rows}
