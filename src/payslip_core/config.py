import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    env: str = Field(default="dev", description="Deployment environment")
    log_level: str = "INFO"
    tax_table_dir: Path = Field(
        default=PACKAGE_DIR / "tax_tables",
        description="Directory holding versioned <version>.json rate tables",
    )
    tax_table_version: str = Field(default="lu_2025_v1", description="Rate table used when none is given")
    max_recalc_passes: int = Field(default=10, ge=1, description="Pass ceiling before reporting circular references")

    model_config = SettingsConfigDict(env_prefix="PAYSLIP_", extra="ignore")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return str(value).upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=get_settings_env_file())


def get_settings_env_file() -> str | None:
    """Resolve environment-specific env file if it exists."""
    base_dir = Path.cwd()
    env = os.getenv("PAYSLIP_ENV", "dev")
    env_file = base_dir / f".env.{env}"
    default_file = base_dir / ".env"
    if env_file.exists():
        return str(env_file)
    if default_file.exists():
        return str(default_file)
    return None
