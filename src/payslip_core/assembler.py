from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from functools import partial
from typing import Optional, Union

from .models import EmployeeContributions, EmployerContributions, PayrollResult, SocialSecurity

CENT = Decimal("0.01")

Amount = Union[int, float, Decimal]


def round_money(value: Amount) -> Decimal:
    # str() first so 2.675 rounds as written, not as its binary expansion
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(value: Amount, symbol: str = "€") -> str:
    return f"{symbol}{round_money(value)}"


class PayrollResultAssembler:
    """Combines raw calculator output into a rounded ``PayrollResult``.

    This is the only place amounts are rounded. Totals are derived from the
    rounded parts with exact decimal arithmetic, so the payslip adds up to
    the cent.
    """

    def assemble(
        self,
        gross: Amount,
        tax: Amount,
        contributions: EmployeeContributions,
        other_deductions: Amount = 0,
        employer: Optional[EmployerContributions] = None,
        table_version: Optional[str] = None,
    ) -> PayrollResult:
        gross_salary = round_money(gross)
        income_tax = round_money(tax)
        sickness = round_money(contributions.sickness)
        pension = round_money(contributions.pension)
        dependency = round_money(contributions.dependency)
        social_security = SocialSecurity(
            sickness=sickness,
            pension=pension,
            dependency=dependency,
            total=sickness + pension + dependency,
        )
        manual = round_money(other_deductions)
        total_deductions = income_tax + social_security.total + manual

        employer_breakdown = {
            name: round_money(value) for name, value in (employer.breakdown if employer else {}).items()
        }
        employer_total = sum(employer_breakdown.values(), Decimal("0.00"))

        return PayrollResult(
            gross_salary=gross_salary,
            income_tax=income_tax,
            social_security=social_security,
            other_deductions=manual,
            total_deductions=total_deductions,
            net_salary=gross_salary - total_deductions,
            employer_contributions=employer_breakdown,
            employer_contributions_total=employer_total,
            employer_cost=gross_salary + employer_total,
            table_version=table_version,
        )


def annualize(result: PayrollResult, periods: int = 12) -> PayrollResult:
    """Scale a monthly result to a year; totals still add up to the cent."""
    factor = Decimal(periods)
    employer = {name: value * factor for name, value in result.employer_contributions.items()}
    ss = result.social_security
    return PayrollResult(
        gross_salary=result.gross_salary * factor,
        income_tax=result.income_tax * factor,
        social_security=SocialSecurity(
            sickness=ss.sickness * factor,
            pension=ss.pension * factor,
            dependency=ss.dependency * factor,
            total=ss.total * factor,
        ),
        other_deductions=result.other_deductions * factor,
        total_deductions=result.total_deductions * factor,
        net_salary=result.net_salary * factor,
        employer_contributions=employer,
        employer_contributions_total=result.employer_contributions_total * factor,
        employer_cost=result.employer_cost * factor,
        table_version=result.table_version,
    )


_EMPLOYER_LABELS = {
    "sickness_and_cash": "Sickness & Cash",
    "accident": "Accident",
    "health": "Health",
    "mutuality": "Mutuality",
    "pension": "Pension",
}


def format_result(result: PayrollResult, symbol: str = "€") -> str:
    money = partial(format_currency, symbol=symbol)
    ss = result.social_security
    lines = [
        "Payslip Calculation",
        "===================",
        f"Gross Salary: {money(result.gross_salary)}",
        f"Income Tax: {money(result.income_tax)}",
        "",
        "Employee Social Security Contributions:",
        f"- Sickness Insurance: {money(ss.sickness)}",
        f"- Pension: {money(ss.pension)}",
        f"- Dependency: {money(ss.dependency)}",
        f"Total Employee Contributions: {money(ss.total)}",
    ]
    if result.other_deductions:
        lines.append(f"Other Deductions: {money(result.other_deductions)}")
    lines += [
        f"Total Deductions: {money(result.total_deductions)}",
        "",
        f"NET SALARY: {money(result.net_salary)}",
    ]
    if result.employer_contributions:
        lines += ["", "Employer Contributions:"]
        for name, value in result.employer_contributions.items():
            label = _EMPLOYER_LABELS.get(name, name.replace("_", " ").title())
            lines.append(f"- {label}: {money(value)}")
        lines.append(f"Total Employer Cost: {money(result.employer_cost)}")
    return "\n".join(lines)
