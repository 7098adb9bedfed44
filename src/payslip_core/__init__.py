from .bindings import FieldBindingResolver, TemplateField, project_fields, resolve_field_value
from .engine import PayrollEngine, compute_payroll
from .errors import Failure, FailureKind, is_failure
from .formula import evaluate
from .models import Earnings, PayrollResult, TaxInput
from .recalc import RecalculationEngine

__all__ = [
    "evaluate",
    "compute_payroll",
    "resolve_field_value",
    "project_fields",
    "Earnings",
    "Failure",
    "FailureKind",
    "FieldBindingResolver",
    "PayrollEngine",
    "PayrollResult",
    "RecalculationEngine",
    "TaxInput",
    "TemplateField",
    "is_failure",
]
