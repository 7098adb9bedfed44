from pathlib import Path

import pytest
import structlog

from payslip_core.config import get_settings
from payslip_core.tax_tables import TaxTable, TaxTableRepository, _load_cached

TABLES_DIR = Path(__file__).resolve().parent.parent / "src" / "payslip_core" / "tax_tables"


@pytest.fixture(autouse=True)
def clear_cached_settings():
    get_settings.cache_clear()
    _load_cached.cache_clear()
    yield
    get_settings.cache_clear()
    _load_cached.cache_clear()


@pytest.fixture(autouse=True)
def reset_structlog():
    # The CLI configures structlog to print to the (test-captured) stderr of
    # the moment; reset so later tests don't write to a closed stream.
    yield
    structlog.reset_defaults()


@pytest.fixture
def repo() -> TaxTableRepository:
    return TaxTableRepository(TABLES_DIR)


@pytest.fixture
def table(repo) -> TaxTable:
    return repo.load("lu_2025_v1")
