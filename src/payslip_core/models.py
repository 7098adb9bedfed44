from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional


@dataclass(frozen=True)
class Earnings:
    basic: float = 0.0
    allowances: float = 0.0
    overtime: float = 0.0
    bonus: float = 0.0
    commission: float = 0.0

    @property
    def gross(self) -> float:
        return self.basic + self.allowances + self.overtime + self.bonus + self.commission

    def to_tax_input(self, tax_class: int = 1, has_children: bool = False, is_over_65: bool = False) -> "TaxInput":
        return TaxInput(
            monthly_gross_salary=self.gross,
            tax_class=tax_class,
            has_children=has_children,
            is_over_65=is_over_65,
        )


@dataclass(frozen=True)
class TaxInput:
    monthly_gross_salary: float
    tax_class: int = 1  # 1 = single, 2 = married / civil partner
    has_children: bool = False
    is_over_65: bool = False

    @classmethod
    def single(cls, monthly_gross_salary: float) -> "TaxInput":
        return cls(monthly_gross_salary=monthly_gross_salary, tax_class=1)

    @classmethod
    def married(cls, monthly_gross_salary: float) -> "TaxInput":
        return cls(monthly_gross_salary=monthly_gross_salary, tax_class=2)

    @classmethod
    def single_parent(cls, monthly_gross_salary: float) -> "TaxInput":
        return cls(monthly_gross_salary=monthly_gross_salary, tax_class=1, has_children=True)


@dataclass(frozen=True)
class EmployeeContributions:
    sickness: float
    pension: float
    dependency: float

    @property
    def total(self) -> float:
        return self.sickness + self.pension + self.dependency


@dataclass(frozen=True)
class EmployerContributions:
    breakdown: Dict[str, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return sum(self.breakdown.values())


@dataclass(frozen=True)
class SocialSecurity:
    sickness: Decimal
    pension: Decimal
    dependency: Decimal
    total: Decimal


@dataclass(frozen=True)
class PayrollResult:
    gross_salary: Decimal
    income_tax: Decimal
    social_security: SocialSecurity
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    employer_contributions: Dict[str, Decimal]
    employer_contributions_total: Decimal
    employer_cost: Decimal
    table_version: Optional[str] = None

    def named_values(self) -> Dict[str, Decimal]:
        """Flat view of every monetary slot, keyed by snake_case and camelCase names."""
        values = {
            "gross_salary": self.gross_salary,
            "income_tax": self.income_tax,
            "sickness": self.social_security.sickness,
            "pension": self.social_security.pension,
            "dependency": self.social_security.dependency,
            "social_security": self.social_security.total,
            "other_deductions": self.other_deductions,
            "total_deductions": self.total_deductions,
            "net_salary": self.net_salary,
            "employer_contributions": self.employer_contributions_total,
            "employer_cost": self.employer_cost,
        }
        for name, value in self.employer_contributions.items():
            values[f"employer_{name}"] = value
        values.update({_camel(name): value for name, value in list(values.items())})
        return values


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
