from decimal import Decimal

import pytest

from payslip_core.assembler import PayrollResultAssembler, annualize, format_currency, format_result, round_money
from payslip_core.models import EmployeeContributions, EmployerContributions


@pytest.fixture
def assembled():
    return PayrollResultAssembler().assemble(
        gross=5000,
        tax=930.375,
        contributions=EmployeeContributions(sickness=140.0, pension=400.0, dependency=60.7677),
        other_deductions=25.005,
        employer=EmployerContributions({"accident": 50.0, "health": 7.0049}),
        table_version="lu_2025_v1",
    )


@pytest.mark.parametrize(
    "value, expected",
    [(2.675, "2.68"), (0.125, "0.13"), (1.005, "1.01"), (-1.005, "-1.01"), (10, "10.00"), (Decimal("3.3349"), "3.33")],
)
def test_round_money_rounds_half_up_to_cents(value, expected):
    assert round_money(value) == Decimal(expected)


def test_format_currency():
    assert format_currency(1234.5) == "€1234.50"
    assert format_currency(3, symbol="$") == "$3.00"


def test_every_amount_is_rounded_to_cents(assembled):
    assert assembled.income_tax == Decimal("930.38")
    assert assembled.social_security.dependency == Decimal("60.77")
    assert assembled.other_deductions == Decimal("25.01")
    assert assembled.employer_contributions["health"] == Decimal("7.00")


def test_totals_are_sums_of_rounded_parts(assembled):
    ss = assembled.social_security

    assert ss.total == ss.sickness + ss.pension + ss.dependency == Decimal("600.77")
    assert assembled.total_deductions == assembled.income_tax + ss.total + assembled.other_deductions
    assert assembled.net_salary == assembled.gross_salary - assembled.total_deductions
    assert assembled.net_salary == Decimal("3443.84")


def test_employer_cost_is_gross_plus_employer_total(assembled):
    assert assembled.employer_contributions_total == Decimal("57.00")
    assert assembled.employer_cost == Decimal("5057.00")


def test_assembly_without_employer_side():
    result = PayrollResultAssembler().assemble(
        gross=100, tax=0, contributions=EmployeeContributions(0, 0, 0)
    )

    assert result.employer_contributions == {}
    assert result.employer_cost == result.gross_salary
    assert result.net_salary == Decimal("100.00")


def test_assembly_is_idempotent():
    assembler = PayrollResultAssembler()
    contributions = EmployeeContributions(sickness=1.115, pension=2.225, dependency=0.0)

    assert assembler.assemble(10, 1.005, contributions) == assembler.assemble(10, 1.005, contributions)


def test_annualize_keeps_invariants(assembled):
    yearly = annualize(assembled)

    assert yearly.gross_salary == Decimal("60000.00")
    assert yearly.net_salary == yearly.gross_salary - yearly.total_deductions
    assert yearly.employer_cost == yearly.gross_salary + yearly.employer_contributions_total
    assert yearly.table_version == "lu_2025_v1"


def test_named_values_expose_snake_and_camel_case(assembled):
    values = assembled.named_values()

    assert values["net_salary"] == values["netSalary"] == assembled.net_salary
    assert values["social_security"] == assembled.social_security.total
    assert values["employerAccident"] == Decimal("50.00")


def test_format_result_lists_the_payslip(assembled):
    text = format_result(assembled)

    assert "Gross Salary: €5000.00" in text
    assert "Other Deductions: €25.01" in text
    assert "NET SALARY: €3443.84" in text
    assert "- Accident: €50.00" in text
    assert "Total Employer Cost: €5057.00" in text
