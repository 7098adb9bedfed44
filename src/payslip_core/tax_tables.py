from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .config import get_settings
from .errors import UnsupportedTaxClassError
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaxBracket:
    up_to: float
    rate: float


class BracketRow(BaseModel):
    up_to: Optional[float] = Field(default=None, gt=0)
    rate: float = Field(ge=0, le=1)


class ClassSchedule(BaseModel):
    description: str = ""
    child_credit: float = Field(default=0, ge=0)
    brackets: List[BracketRow] = Field(min_length=1)

    @model_validator(mode="after")
    def check_partition(self) -> "ClassSchedule":
        bounds = [row.up_to for row in self.brackets]
        if bounds[-1] is not None:
            raise ValueError("last bracket must be unbounded (up_to: null)")
        if any(bound is None for bound in bounds[:-1]):
            raise ValueError("only the last bracket may be unbounded")
        finite = bounds[:-1]
        if any(later <= earlier for earlier, later in zip(finite, finite[1:])):
            raise ValueError("bracket bounds must be strictly increasing")
        rates = [row.rate for row in self.brackets]
        if any(later < earlier for earlier, later in zip(rates, rates[1:])):
            raise ValueError("bracket rates must be non-decreasing")
        return self


class RateEntry(BaseModel):
    rate: float = Field(ge=0, le=1)


class TaxTableDocument(BaseModel):
    version: str
    jurisdiction: str = "LU"
    effective_from: date
    periods_per_year: int = Field(default=12, ge=1)
    income_tax: Dict[str, ClassSchedule]
    employee_contributions: Dict[str, RateEntry]
    dependency_abatement: float = Field(default=0, ge=0)
    employer_contributions: Dict[str, RateEntry]

    @model_validator(mode="after")
    def check_employee_rates(self) -> "TaxTableDocument":
        missing = {"sickness", "pension", "dependency"} - set(self.employee_contributions)
        if missing:
            raise ValueError(f"employee_contributions is missing {sorted(missing)}")
        return self


class TaxTable:
    """One effective-dated set of brackets, credits and contribution rates.

    Bracket bounds and credits are annual amounts; the dependency abatement
    is per pay period.
    """

    def __init__(self, document: TaxTableDocument):
        self.version = document.version
        self.jurisdiction = document.jurisdiction
        self.effective_from = document.effective_from
        self.periods_per_year = document.periods_per_year
        self.dependency_abatement = document.dependency_abatement
        self.employee_rates = {name: entry.rate for name, entry in document.employee_contributions.items()}
        self.employer_rates = {name: entry.rate for name, entry in document.employer_contributions.items()}
        self._schedules = document.income_tax

    @property
    def tax_classes(self) -> List[int]:
        return sorted(int(key) for key in self._schedules)

    def _schedule(self, tax_class: int) -> ClassSchedule:
        schedule = self._schedules.get(str(tax_class))
        if schedule is None:
            raise UnsupportedTaxClassError(
                f"Tax class {tax_class!r} not configured in tax table {self.version}", ref=str(tax_class)
            )
        return schedule

    def brackets_for(self, tax_class: int) -> List[TaxBracket]:
        return [
            TaxBracket(up_to=math.inf if row.up_to is None else row.up_to, rate=row.rate)
            for row in self._schedule(tax_class).brackets
        ]

    def child_credit_for(self, tax_class: int) -> float:
        return self._schedule(tax_class).child_credit


class TaxTableRepository:
    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def available_versions(self) -> List[str]:
        return sorted([p.stem for p in self.base_path.glob("*.json")])

    def load(self, version: str) -> TaxTable:
        file_path = self.base_path / f"{version}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Tax table version {version} not found at {file_path}")
        with file_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        table = TaxTable(TaxTableDocument.model_validate(data))
        logger.debug("tax_table_loaded", version=table.version, path=str(file_path))
        return table

    def for_date(self, on: date) -> TaxTable:
        """Latest table whose ``effective_from`` is on or before ``on``."""
        candidates = [self.load(version) for version in self.available_versions()]
        eligible = [table for table in candidates if table.effective_from <= on]
        if not eligible:
            raise LookupError(f"No tax table effective on {on.isoformat()} in {self.base_path}")
        return max(eligible, key=lambda table: (table.effective_from, table.version))


def default_repository() -> TaxTableRepository:
    return TaxTableRepository(get_settings().tax_table_dir)


@lru_cache(maxsize=16)
def _load_cached(base_path: Path, version: str) -> TaxTable:
    return TaxTableRepository(base_path).load(version)


def load_default_table(version: Optional[str] = None) -> TaxTable:
    settings = get_settings()
    return _load_cached(Path(settings.tax_table_dir), version or settings.tax_table_version)
