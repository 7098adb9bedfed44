"""Projection of a ``PayrollResult`` onto free-text template fields.

Template authors label fields however they like ("NET SALARY", "Net Pay",
"Pension Contribution"). ``DEFAULT_RULES`` is the ordered keyword table that
decides which computed slot, if any, a label stands for. The first matching
rule wins; an unmatched label keeps whatever the user typed in.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from operator import attrgetter
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from .errors import Failure, is_failure
from .formula import evaluate
from .logging import get_logger
from .models import PayrollResult

logger = get_logger(__name__)

Predicate = Callable[[str], bool]
Selector = Callable[[PayrollResult], Optional[Decimal]]


def normalize_label(label: str) -> str:
    return " ".join(label.lower().split())


def contains(*needles: str) -> Predicate:
    """True when every needle occurs in the label."""
    return lambda label: all(needle in label for needle in needles)


def contains_any(*needles: str) -> Predicate:
    return lambda label: any(needle in label for needle in needles)


def has_word(word: str) -> Predicate:
    pattern = re.compile(rf"\b{re.escape(word)}\b")
    return lambda label: pattern.search(label) is not None


def all_of(*predicates: Predicate) -> Predicate:
    return lambda label: all(predicate(label) for predicate in predicates)


def none_of(*needles: str) -> Predicate:
    return lambda label: not any(needle in label for needle in needles)


def employer_line(name: str) -> Selector:
    return lambda result: result.employer_contributions.get(name)


@dataclass(frozen=True)
class BindingRule:
    name: str
    predicate: Predicate
    selector: Selector

    def matches(self, normalized_label: str) -> bool:
        return self.predicate(normalized_label)


DEFAULT_RULES: Tuple[BindingRule, ...] = (
    BindingRule(
        "employer_sickness",
        all_of(contains("employer"), contains_any("sickness", "cash")),
        employer_line("sickness_and_cash"),
    ),
    BindingRule("employer_accident", contains("employer", "accident"), employer_line("accident")),
    BindingRule("employer_health", contains("employer", "health"), employer_line("health")),
    BindingRule("employer_mutuality", contains("employer", "mutuality"), employer_line("mutuality")),
    BindingRule("employer_pension", contains("employer", "pension"), employer_line("pension")),
    BindingRule(
        "employer_contributions_total",
        all_of(contains("employer"), contains_any("contribution", "social security")),
        attrgetter("employer_contributions_total"),
    ),
    BindingRule("employer_cost", contains("cost"), attrgetter("employer_cost")),
    BindingRule("gross_salary", all_of(contains("gross"), none_of("cost")), attrgetter("gross_salary")),
    BindingRule("net_salary", has_word("net"), attrgetter("net_salary")),
    BindingRule("total_deductions", contains("total deduction"), attrgetter("total_deductions")),
    # employee lines below; employer labels never fall through to them
    BindingRule(
        "sickness",
        all_of(contains("sickness"), none_of("employer")),
        attrgetter("social_security.sickness"),
    ),
    BindingRule("pension", all_of(contains("pension"), none_of("employer")), attrgetter("social_security.pension")),
    BindingRule(
        "dependency",
        all_of(contains_any("dependency", "long-term care", "care insurance"), none_of("employer")),
        attrgetter("social_security.dependency"),
    ),
    BindingRule(
        "social_security",
        all_of(contains("social security"), none_of("employer")),
        attrgetter("social_security.total"),
    ),
    BindingRule(
        "income_tax",
        all_of(has_word("tax"), none_of("class", "social")),
        attrgetter("income_tax"),
    ),
)


class FieldBindingResolver:
    def __init__(self, rules: Sequence[BindingRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def match(self, field_label: str) -> Optional[BindingRule]:
        normalized = normalize_label(field_label)
        if not normalized:
            return None
        for rule in self.rules:
            if rule.matches(normalized):
                return rule
        return None

    def bind(self, field_label: str, result: PayrollResult) -> Optional[Decimal]:
        rule = self.match(field_label)
        return rule.selector(result) if rule else None


_default_resolver = FieldBindingResolver()


def resolve_field_value(label: str, result: PayrollResult) -> Optional[Decimal]:
    return _default_resolver.bind(label, result)


@dataclass(frozen=True)
class TemplateField:
    id: str
    label: str
    type: str = "number"
    formula: Optional[str] = None


@dataclass(frozen=True)
class FieldProjection:
    values: Dict[str, Any] = field(default_factory=dict)
    failures: Dict[str, Failure] = field(default_factory=dict)
    bound: Dict[str, str] = field(default_factory=dict)  # field id -> rule name


def evaluate_formula_field(
    template_field: TemplateField,
    result: PayrollResult,
    values: Optional[Mapping[str, Any]] = None,
) -> Union[float, Failure]:
    """Evaluate a custom field formula such as ``=netSalary*0.1``.

    Identifiers resolve to the result's named slots first, then to other
    field values by id.
    """
    named = result.named_values()
    others = values or {}

    def lookup(ref: str):
        if ref in named:
            return named[ref]
        return others.get(ref)

    return evaluate(template_field.formula or "", lookup)


def project_fields(
    fields: Sequence[TemplateField],
    result: PayrollResult,
    manual_values: Optional[Mapping[str, Any]] = None,
    resolver: Optional[FieldBindingResolver] = None,
) -> FieldProjection:
    resolver = resolver or _default_resolver
    values: Dict[str, Any] = dict(manual_values or {})
    failures: Dict[str, Failure] = {}
    bound: Dict[str, str] = {}

    for template_field in fields:
        if template_field.formula:
            outcome = evaluate_formula_field(template_field, result, values)
            if is_failure(outcome):
                logger.warning("formula_field_failed", field=template_field.id, kind=outcome.kind.value)
                failures[template_field.id] = outcome
                outcome = 0.0
            values[template_field.id] = outcome
            continue
        if template_field.type != "number":
            continue
        rule = resolver.match(template_field.label)
        if rule is None:
            continue
        value = rule.selector(result)
        if value is not None:
            values[template_field.id] = value
            bound[template_field.id] = rule.name

    return FieldProjection(values=values, failures=failures, bound=bound)
