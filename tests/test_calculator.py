import pytest

from payslip_core.calculator import ContributionCalculator, TaxBracketCalculator, apply_brackets
from payslip_core.errors import NegativeInputError, UnsupportedTaxClassError
from payslip_core.models import TaxInput
from payslip_core.tax_tables import TaxBracket


def test_apply_brackets_uses_marginal_rates():
    brackets = [TaxBracket(1000, 0.0), TaxBracket(2000, 0.1), TaxBracket(float("inf"), 0.2)]

    assert apply_brackets(500, brackets) == 0
    assert apply_brackets(1500, brackets) == pytest.approx(50)
    # 1000 at 10% plus 1000 at 20%, not 3000 * 20%
    assert apply_brackets(3000, brackets) == pytest.approx(300)


def test_single_income_tax_for_5000_monthly(table):
    calc = TaxBracketCalculator(table)

    tax = calc.compute_income_tax(TaxInput.single(5000))

    assert tax == pytest.approx(11164.5 / 12)


def test_married_class_pays_less_than_single(table):
    calc = TaxBracketCalculator(table)

    single = calc.compute_income_tax(TaxInput.single(5000))
    married = calc.compute_income_tax(TaxInput.married(5000))

    assert married == pytest.approx(3997.8 / 12)
    assert married < single


def test_child_credit_is_subtracted_after_brackets(table):
    calc = TaxBracketCalculator(table)

    without = calc.compute_income_tax(TaxInput.single(5000))
    with_children = calc.compute_income_tax(TaxInput.single_parent(5000))

    assert without - with_children == pytest.approx(292)


def test_tax_never_goes_negative(table):
    calc = TaxBracketCalculator(table)

    assert calc.compute_income_tax(TaxInput.single_parent(1200)) == 0


def test_over_65_flag_has_no_effect(table):
    calc = TaxBracketCalculator(table)
    base = TaxInput(monthly_gross_salary=4200, tax_class=1)
    older = TaxInput(monthly_gross_salary=4200, tax_class=1, is_over_65=True)

    assert calc.compute_income_tax(base) == calc.compute_income_tax(older)


def test_income_tax_is_monotonic_in_gross(table):
    calc = TaxBracketCalculator(table)
    for tax_class in (1, 2):
        taxes = [calc.compute_income_tax(TaxInput(gross, tax_class)) for gross in range(0, 30001, 250)]

        assert taxes == sorted(taxes)


def test_unsupported_tax_class_raises(table):
    with pytest.raises(UnsupportedTaxClassError):
        TaxBracketCalculator(table).compute_income_tax(TaxInput(3000, tax_class=7))


def test_negative_gross_raises(table):
    with pytest.raises(NegativeInputError):
        TaxBracketCalculator(table).compute_income_tax(TaxInput(-1))


def test_employee_contributions_use_flat_rates_and_dependency_abatement(table):
    contributions = ContributionCalculator(table).compute_employee_contributions(5000)

    assert contributions.sickness == pytest.approx(140)
    assert contributions.pension == pytest.approx(400)
    assert contributions.dependency == pytest.approx((5000 - 659.45) * 0.014)
    assert contributions.total == pytest.approx(140 + 400 + (5000 - 659.45) * 0.014)


def test_dependency_is_zero_below_abatement(table):
    contributions = ContributionCalculator(table).compute_employee_contributions(500)

    assert contributions.dependency == 0


def test_employer_contributions_come_from_their_own_table(table):
    employer = ContributionCalculator(table).compute_employer_contributions(5000)

    assert set(employer.breakdown) == {"sickness_and_cash", "accident", "health", "mutuality", "pension"}
    assert employer.breakdown["sickness_and_cash"] == pytest.approx(152.5)
    assert employer.total == pytest.approx(684.5)


def test_table_versions_change_output(repo):
    calc_2024 = TaxBracketCalculator(repo.load("lu_2024_v1"))
    calc_2025 = TaxBracketCalculator(repo.load("lu_2025_v1"))

    tax_2024 = calc_2024.compute_income_tax(TaxInput.single(5000))
    tax_2025 = calc_2025.compute_income_tax(TaxInput.single(5000))

    assert tax_2025 < tax_2024
