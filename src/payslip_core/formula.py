"""Spreadsheet-style formula evaluation.

Formulas are a closed arithmetic grammar over numeric literals and
references::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := ("+" | "-") unary | primary
    primary := NUMBER | REFERENCE | "(" expr ")"

References (``B10``, ``basicSalary``) are looked up through a registry at
evaluation time. Nothing in a formula string is ever handed to Python's own
evaluator.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Any, Callable, FrozenSet, List, NamedTuple, Tuple, Union

from .errors import (
    DivisionByZeroError,
    Failure,
    FormulaSyntaxError,
    NumericOverflowError,
    PayrollError,
    UnknownTokenError,
)
from .logging import get_logger

logger = get_logger(__name__)

Lookup = Callable[[str], Any]
EvaluationResult = Union[float, Failure]

_TOKEN = re.compile(
    r"""
    (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    | (?P<ref>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<op>[-+*/()])
    """,
    re.VERBOSE,
)
_CELL_REF = re.compile(r"^([A-Z]+)(\d+)$")


class Token(NamedTuple):
    kind: str  # number, ref, op
    text: str
    pos: int


def tokenize(body: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(body):
        if body[pos].isspace():
            pos += 1
            continue
        match = _TOKEN.match(body, pos)
        if match is None:
            raise UnknownTokenError(f"Unexpected character {body[pos]!r} at position {pos}")
        tokens.append(Token(match.lastgroup, match.group(), pos))
        pos = match.end()
    return tokens


def _finite(value: float, source: str) -> float:
    if not math.isfinite(value):
        raise NumericOverflowError(f"Non-finite value produced by {source}")
    return value


def _coerce(ref: str, value: Any) -> float:
    # sparse sheets: blanks and text cells count as zero
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            logger.debug("reference_not_numeric", ref=ref)
            return 0.0
    else:
        return 0.0
    if not math.isfinite(number):
        raise NumericOverflowError(f"Reference {ref} holds a non-finite value", ref=ref)
    return number


@dataclass(frozen=True)
class Number:
    value: float

    def evaluate(self, lookup: Lookup) -> float:
        return _finite(self.value, "numeric literal")


@dataclass(frozen=True)
class Reference:
    name: str

    def evaluate(self, lookup: Lookup) -> float:
        try:
            value = lookup(self.name)
        except LookupError:
            value = None
        return _coerce(self.name, value)


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Any

    def evaluate(self, lookup: Lookup) -> float:
        value = self.operand.evaluate(lookup)
        return -value if self.op == "-" else value


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Any
    right: Any

    def evaluate(self, lookup: Lookup) -> float:
        left = self.left.evaluate(lookup)
        right = self.right.evaluate(lookup)
        if self.op == "+":
            result = left + right
        elif self.op == "-":
            result = left - right
        elif self.op == "*":
            result = left * right
        else:
            if right == 0:
                raise DivisionByZeroError("Division by zero")
            result = left / right
        return _finite(result, f"'{self.op}'")


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    def peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def parse(self):
        if not self.tokens:
            raise FormulaSyntaxError("Empty formula")
        node = self.expr()
        trailing = self.peek()
        if trailing is not None:
            raise FormulaSyntaxError(f"Unexpected {trailing.text!r} at position {trailing.pos}")
        return node

    def expr(self):
        node = self.term()
        while self._at_op("+", "-"):
            op = self.advance().text
            node = BinaryOp(op, node, self.term())
        return node

    def term(self):
        node = self.unary()
        while self._at_op("*", "/"):
            op = self.advance().text
            node = BinaryOp(op, node, self.unary())
        return node

    def unary(self):
        if self._at_op("+", "-"):
            op = self.advance().text
            return UnaryOp(op, self.unary())
        return self.primary()

    def primary(self):
        token = self.peek()
        if token is None:
            raise FormulaSyntaxError("Formula ends with a dangling operator")
        self.advance()
        if token.kind == "number":
            return Number(float(token.text))
        if token.kind == "ref":
            if self._at_op("("):
                raise FormulaSyntaxError(f"Function calls are not supported: {token.text}()", ref=token.text)
            return Reference(token.text)
        if token.text == "(":
            node = self.expr()
            if not self._at_op(")"):
                raise FormulaSyntaxError(f"Missing ')' for '(' at position {token.pos}")
            self.advance()
            return node
        raise FormulaSyntaxError(f"Unexpected {token.text!r} at position {token.pos}")

    def _at_op(self, *ops: str) -> bool:
        token = self.peek()
        return token is not None and token.kind == "op" and token.text in ops


@dataclass(frozen=True)
class Formula:
    source: str
    tree: Any
    references: FrozenSet[str]

    def evaluate(self, registry) -> float:
        return self.tree.evaluate(as_lookup(registry))


def _body(formula: str) -> str:
    text = formula.strip()
    return text[1:] if text.startswith("=") else text


@lru_cache(maxsize=512)
def compile_formula(formula: str) -> Formula:
    """Parse ``formula`` once; raises a PayrollError subclass when it is malformed."""
    tokens = tokenize(_body(formula))
    tree = _Parser(tokens).parse()
    refs = frozenset(token.text for token in tokens if token.kind == "ref")
    return Formula(source=formula, tree=tree, references=refs)


def as_lookup(registry) -> Lookup:
    """Accept a ``(ref) -> value`` callable, anything with ``get`` or None."""
    if registry is None:
        return lambda ref: None
    if callable(registry):
        return registry
    if hasattr(registry, "get"):
        return registry.get
    raise TypeError(f"Unsupported registry type: {type(registry).__name__}")


def evaluate(formula: str, registry) -> EvaluationResult:
    try:
        return compile_formula(formula).evaluate(registry)
    except PayrollError as exc:
        logger.debug("formula_failed", formula=formula, kind=exc.kind.value, reason=exc.message)
        return exc.to_failure()
    except RecursionError:
        logger.warning("formula_too_deep", length=len(formula))
        return FormulaSyntaxError("Formula nests too deeply to evaluate").to_failure()


def references(formula: str) -> FrozenSet[str]:
    try:
        return frozenset(t.text for t in tokenize(_body(formula)) if t.kind == "ref")
    except PayrollError:
        return frozenset()


def cell_to_coords(cell_ref: str) -> Tuple[int, int]:
    """``"B10"`` -> ``(9, 1)``: zero-based (row, column)."""
    match = _CELL_REF.match(cell_ref.strip().upper())
    if not match:
        raise ValueError(f"Invalid cell reference: {cell_ref}")
    col = 0
    for letter in match.group(1):
        col = col * 26 + (ord(letter) - ord("A") + 1)
    return int(match.group(2)) - 1, col - 1


def coords_to_cell(row: int, col: int) -> str:
    if row < 0 or col < 0:
        raise ValueError(f"Invalid coordinates: ({row}, {col})")
    letters = ""
    col_num = col + 1
    while col_num > 0:
        col_num, remainder = divmod(col_num - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return f"{letters}{row + 1}"
