"""Configuration management via environment variables.

Reads from .env file (via pydantic-settings) with sensible defaults.
All values can be overridden via environment variables.

Optional:
    FISCAL_YEAR_END  - MMDD fiscal-year end used when an inventory file
                       does not carry its own (default 0930)
    OUTPUT_SUFFIX    - Suffix replacing ".json" on the written file
    LOG_LEVEL        - Root log level for the CLI (default WARNING)
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings

from edgar_trim.fiscal import DEFAULT_FISCAL_YEAR_END, parse_fiscal_year_end


class Settings(BaseSettings):
    # MMDD, e.g. "0930" for a September 30 year end
    fiscal_year_end: str = DEFAULT_FISCAL_YEAR_END

    output_suffix: str = "-trimmed.json"

    log_level: str = "WARNING"

    # Strip whitespace and quotes; the .env file often has trailing
    # spaces or quoted values
    @field_validator("fiscal_year_end", "output_suffix", "log_level", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().strip('"').strip("'").strip()
        return v

    @field_validator("fiscal_year_end")
    @classmethod
    def check_fiscal_year_end(cls, v: str) -> str:
        parse_fiscal_year_end(v)
        return v

    @field_validator("output_suffix")
    @classmethod
    def check_output_suffix(cls, v: str) -> str:
        # an empty or bare ".json" suffix would write over the input file
        if v.lower() in ("", ".json"):
            raise ValueError(f"Output suffix must differ from the input name, got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"Unknown log level: {v!r}")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


_config: Settings | None = None


def get_config() -> Settings:
    """Get or create the shared Settings singleton."""
    global _config
    if _config is None:
        _config = Settings()
    return _config
