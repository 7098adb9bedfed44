from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    SYNTAX_ERROR = "syntax_error"
    UNKNOWN_TOKEN = "unknown_token"
    DIVISION_BY_ZERO = "division_by_zero"
    NUMERIC_OVERFLOW = "numeric_overflow"
    CIRCULAR_REFERENCE = "circular_reference"
    UNSUPPORTED_TAX_CLASS = "unsupported_tax_class"
    NEGATIVE_INPUT = "negative_input"


@dataclass(frozen=True)
class Failure:
    """Typed failure returned in place of a value at the public boundary."""

    kind: FailureKind
    message: str
    ref: Optional[str] = None


class PayrollError(Exception):
    kind: FailureKind = FailureKind.SYNTAX_ERROR

    def __init__(self, message: str, ref: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.ref = ref

    def to_failure(self) -> Failure:
        return Failure(kind=self.kind, message=self.message, ref=self.ref)


class FormulaSyntaxError(PayrollError):
    kind = FailureKind.SYNTAX_ERROR


class UnknownTokenError(PayrollError):
    kind = FailureKind.UNKNOWN_TOKEN


class DivisionByZeroError(PayrollError):
    kind = FailureKind.DIVISION_BY_ZERO


class NumericOverflowError(PayrollError):
    kind = FailureKind.NUMERIC_OVERFLOW


class CircularReferenceError(PayrollError):
    kind = FailureKind.CIRCULAR_REFERENCE


class UnsupportedTaxClassError(PayrollError):
    kind = FailureKind.UNSUPPORTED_TAX_CLASS


class NegativeInputError(PayrollError):
    kind = FailureKind.NEGATIVE_INPUT


class RecalculationInProgress(RuntimeError):
    """Raised when a recalculation is triggered from inside another one."""


def is_failure(value: object) -> bool:
    return isinstance(value, Failure)
