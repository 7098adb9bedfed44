from __future__ import annotations

from dataclasses import dataclass, field
from itertools import chain
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional, Set

from .config import get_settings
from .errors import CircularReferenceError, Failure, RecalculationInProgress, is_failure
from .formula import EvaluationResult, Lookup, as_lookup, evaluate, references
from .logging import get_logger

logger = get_logger(__name__)

# Layout of the spreadsheet payslip: earnings B10-B14, manual deductions B20-B21.
PAYSLIP_FORMULAS: Mapping[str, str] = MappingProxyType(
    {
        "B15": "=B10+B11+B12+B13+B14",  # gross salary
        "B18": "=B15*0.15",  # income tax
        "B19": "=B10*0.07",  # social security
        "B22": "=B18+B19+B20+B21",  # total deductions
        "B24": "=B15-B22",  # net salary
    }
)


@dataclass(frozen=True)
class RecalculationResult:
    values: Dict[str, float]
    failures: Dict[str, Failure] = field(default_factory=dict)
    passes: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures


def _same(previous: EvaluationResult, current: EvaluationResult) -> bool:
    if is_failure(previous) or is_failure(current):
        return is_failure(previous) and is_failure(current) and previous.kind == current.kind
    return previous == current


class RecalculationEngine:
    """Re-evaluates a fixed set of ``{target: formula}`` declarations.

    Every pass evaluates every formula against the same snapshot: raw inputs
    overlaid with the target values published by the previous pass. Passes
    repeat until nothing changes. Only targets on a reference cycle (and
    those reading them) are cut off at ``max_passes`` and reported as
    circular references; an acyclic chain always runs to its fixed point.
    """

    def __init__(self, formulas: Mapping[str, str], max_passes: Optional[int] = None):
        if max_passes is None:
            max_passes = get_settings().max_recalc_passes
        if max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {max_passes}")
        self.formulas: Mapping[str, str] = MappingProxyType(dict(formulas))
        self.max_passes = max_passes
        self._reads: Dict[str, FrozenSet[str]] = {target: references(f) for target, f in self.formulas.items()}
        self._targets: FrozenSet[str] = frozenset(self.formulas)
        self.watched: FrozenSet[str] = frozenset(chain.from_iterable(self._reads.values())) - self._targets
        self.cyclic: FrozenSet[str] = frozenset(self._downstream(self._on_cycle()))
        self._running = False
        self._last_snapshot: Optional[Dict[str, object]] = None
        self._last_result: Optional[RecalculationResult] = None

    def recalculate(self, inputs) -> RecalculationResult:
        if self._running:
            raise RecalculationInProgress("Recalculation triggered while another pass is running")
        self._running = True
        try:
            return self._run(as_lookup(inputs))
        finally:
            self._running = False

    def refresh(self, inputs) -> RecalculationResult:
        """Recalculate only when a watched input differs from the previous call."""
        lookup = as_lookup(inputs)
        snapshot = {ref: lookup(ref) for ref in self.watched}
        if self._last_result is not None and snapshot == self._last_snapshot:
            return self._last_result
        result = self.recalculate(inputs)
        self._last_snapshot = snapshot
        self._last_result = result
        return result

    def _resolver(self, lookup: Lookup, published: Mapping[str, float]) -> Lookup:
        def resolve(ref: str):
            if ref in published:
                return published[ref]
            return lookup(ref)

        return resolve

    def _run(self, lookup: Lookup) -> RecalculationResult:
        published: Dict[str, float] = {}
        previous: Dict[str, EvaluationResult] = {}
        outcomes: Dict[str, EvaluationResult] = {}
        unsettled: Set[str] = set()
        passes = 0

        while True:
            passes += 1
            resolve = self._resolver(lookup, dict(published))
            outcomes = {target: evaluate(formula, resolve) for target, formula in self.formulas.items()}
            if previous:
                unsettled = {t for t, outcome in outcomes.items() if not _same(previous[t], outcome)}
            else:
                unsettled = {t for t, reads in self._reads.items() if reads & self._targets}
            previous = outcomes
            published = {t: 0.0 if is_failure(o) else o for t, o in outcomes.items()}
            if not unsettled:
                break
            # acyclic targets settle within depth + 1 passes, ceiling or not
            if passes >= self.max_passes and unsettled <= self.cyclic:
                break

        failures = {t: o for t, o in outcomes.items() if is_failure(o)}
        if unsettled:
            for target in self._downstream(unsettled):
                failures[target] = CircularReferenceError(
                    f"{target} did not stabilise within {self.max_passes} passes", ref=target
                ).to_failure()
                published[target] = 0.0
            logger.warning("recalculation_not_converged", targets=sorted(unsettled), passes=passes)

        logger.debug("recalculation_complete", targets=len(self.formulas), passes=passes, failures=len(failures))
        return RecalculationResult(values=published, failures=failures, passes=passes)

    def _on_cycle(self) -> Set[str]:
        """Targets that reach themselves through other targets' references."""
        edges = {target: reads & self._targets for target, reads in self._reads.items()}
        cyclic: Set[str] = set()
        for start in edges:
            stack = list(edges[start])
            seen: Set[str] = set()
            while stack:
                node = stack.pop()
                if node == start:
                    cyclic.add(start)
                    break
                if node not in seen:
                    seen.add(node)
                    stack.extend(edges[node])
        return cyclic

    def _downstream(self, targets: Set[str]) -> Set[str]:
        reached = set(targets)
        grew = True
        while grew:
            grew = False
            for target, reads in self._reads.items():
                if target not in reached and reads & reached:
                    reached.add(target)
                    grew = True
        return reached
