from types import MappingProxyType

import pytest

from payslip_core.errors import FailureKind
from payslip_core.ledger import (
    CellUpdate,
    MonthlyLedger,
    apply_payroll,
    batch_update,
    dependent_rows,
    is_salary_field,
    month_gross,
    row_totals,
    update_cell,
)
from payslip_core.bindings import FieldBindingResolver

ROWS = (
    "Basic Salary",
    "Allowances",
    "Gross Salary",
    "Income Tax",
    "Social Security Total",
    "Other Deductions",
    "Net Salary",
    "Employer Cost",
    "Notes",
)


@pytest.fixture
def ledger():
    return MonthlyLedger.empty(ROWS)


def test_salary_fields_are_recognised():
    assert is_salary_field("Basic Salary")
    assert is_salary_field("Overtime Hours Pay")
    assert not is_salary_field("Notes")


def test_editing_a_salary_row_marks_computed_rows_dirty():
    rows = dependent_rows("Bonus")

    assert rows[0] == "Bonus"
    assert "Net Salary" in rows
    assert dependent_rows("Notes") == ["Notes"]


def test_update_cell_recomputes_row_total(ledger):
    ledger = update_cell(ledger, 0, "Basic Salary", 4000)
    ledger = update_cell(ledger, 1, "Basic Salary", 4200)

    assert ledger.value(0, "Basic Salary") == 4000
    assert ledger.totals["Basic Salary"] == 8200


def test_batch_update_adds_new_rows(ledger):
    ledger = batch_update(ledger, [CellUpdate(0, "Commission", 300), CellUpdate(2, "Commission", 200)])

    assert "Commission" in ledger.rows
    assert row_totals(ledger)["Commission"] == 500


def test_batch_update_rejects_bad_month(ledger):
    with pytest.raises(ValueError):
        batch_update(ledger, [CellUpdate(12, "Basic Salary", 1)])


def test_ledger_is_not_mutated_by_updates(ledger):
    updated = update_cell(ledger, 0, "Basic Salary", 100)

    assert ledger.value(0, "Basic Salary") == 0
    assert updated.value(0, "Basic Salary") == 100


def test_month_gross_prefers_earning_rows(ledger):
    resolver = FieldBindingResolver()
    ledger = batch_update(ledger, [CellUpdate(0, "Gross Salary", 9999), CellUpdate(1, "Gross Salary", 3000)])
    ledger = batch_update(ledger, [CellUpdate(0, "Basic Salary", 4000), CellUpdate(0, "Allowances", 1000)])

    assert month_gross(ledger, 0, resolver) == 5000
    assert month_gross(ledger, 1, resolver) == 3000


def test_apply_payroll_fills_bound_rows(ledger, table):
    ledger = batch_update(
        ledger,
        [
            CellUpdate(0, "Basic Salary", 4000),
            CellUpdate(0, "Allowances", 1000),
            CellUpdate(0, "Other Deductions", 50),
            CellUpdate(0, "Notes", 7),
        ],
    )

    ledger, failure = apply_payroll(ledger, 0, table=table)

    assert failure is None
    assert ledger.value(0, "Gross Salary") == 5000
    assert ledger.value(0, "Social Security Total") == pytest.approx(600.77)
    assert ledger.value(0, "Income Tax") == pytest.approx(930.38, abs=0.011)
    assert ledger.value(0, "Employer Cost") == pytest.approx(5684.50)
    assert ledger.value(0, "Net Salary") == pytest.approx(
        5000 - ledger.value(0, "Income Tax") - 600.77 - 50
    )
    assert ledger.value(0, "Notes") == 7
    assert ledger.totals["Gross Salary"] == 5000


def test_apply_payroll_skips_month_without_earnings(ledger, table):
    result, failure = apply_payroll(ledger, 3, table=table)

    assert result is ledger
    assert failure is None


def test_apply_payroll_reports_failure_and_keeps_ledger(ledger, table):
    ledger = update_cell(ledger, 0, "Basic Salary", 3000)

    result, failure = apply_payroll(ledger, 0, tax_class=3, table=table)

    assert result is ledger
    assert failure.kind is FailureKind.UNSUPPORTED_TAX_CLASS


def test_update_fills_month_missing_from_a_partial_ledger():
    ledger = MonthlyLedger(
        rows=("Basic Salary",),
        months=MappingProxyType({0: MappingProxyType({"Basic Salary": 1000.0})}),
        totals=MappingProxyType({}),
    )

    updated = update_cell(ledger, 5, "Basic Salary", 2500)

    assert updated.value(5, "Basic Salary") == 2500
    assert updated.totals["Basic Salary"] == 3500
