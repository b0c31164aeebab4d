"""Pydantic models for inventory input, canonical sections and trimmed output."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from edgar_trim.fiscal import (
    DEFAULT_FISCAL_YEAR_END,
    FiscalInfo,
    coerce_date,
    fiscal_info,
    parse_fiscal_year_end,
)

SOURCE_REPORTED = "reported"
SOURCE_DERIVED = "derived_delta"

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Inventory input
# ---------------------------------------------------------------------------

class RawFrame(BaseModel):
    """One reported fact-set for a single frame, as found in the inventory."""
    model_config = _CAMEL

    frame_id: str = Field(alias="frame")
    start: date | None = None
    end: date | None = None
    filed: date | None = None          # optional recency key, see order_by_recency
    tags: dict[str, float | None] = {}

    @field_validator("start", "end", "filed", mode="before")
    @classmethod
    def lenient_date(cls, v: Any) -> date | None:
        return coerce_date(v)


class FactsInventory(BaseModel):
    """A ticker's full facts inventory (the CLI input document)."""
    model_config = _CAMEL

    ticker: str
    fiscal_year_end: str | None = None
    facts_index: list[RawFrame]

    @field_validator("fiscal_year_end", mode="before")
    @classmethod
    def check_fiscal_year_end(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip() or None
        if v is not None:
            parse_fiscal_year_end(v)
        return v


# ---------------------------------------------------------------------------
# Canonical sections
# ---------------------------------------------------------------------------

class _Section(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def is_empty(self) -> bool:
        """True when every field is None (reported nothing we recognise)."""
        return all(getattr(self, name) is None for name in type(self).model_fields)


class IncomeStatement(_Section):
    revenue: float | None = None
    cogs: float | None = None
    gross_profit: float | None = None
    rnd: float | None = None
    sga: float | None = None
    operating_income: float | None = None
    non_operating: float | None = None
    depreciation_amortization: float | None = None
    income_tax: float | None = None
    net_income: float | None = None
    eps_diluted: float | None = None
    eps_basic: float | None = None


class CashFlow(_Section):
    cfo: float | None = None
    cfi: float | None = None
    cff: float | None = None
    capex: float | None = None
    fcf: float | None = None           # always cfo - capex, see with_fcf()
    dividends: float | None = None
    buybacks: float | None = None
    debt_issued: float | None = None
    debt_repaid: float | None = None

    def with_fcf(self) -> CashFlow:
        """Return a copy whose fcf is recomputed from cfo and capex."""
        fcf = None
        if self.cfo is not None and self.capex is not None:
            fcf = self.cfo - self.capex
        if fcf == self.fcf:
            return self
        return self.model_copy(update={"fcf": fcf})


class BalanceSheet(_Section):
    cash: float | None = None
    securities_current: float | None = None
    securities_non_current: float | None = None
    receivables: float | None = None
    inventory: float | None = None
    other_current_assets: float | None = None
    total_current_assets: float | None = None
    total_assets: float | None = None
    payables: float | None = None
    current_debt: float | None = None
    other_current_liabilities: float | None = None
    total_current_liabilities: float | None = None
    long_term_debt: float | None = None
    total_liabilities: float | None = None
    equity: float | None = None
    aoci: float | None = None
    shares: float | None = None


# ---------------------------------------------------------------------------
# Pipeline record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrimmedFrame:
    """A tag-resolved frame flowing through the reconciliation stages.

    Instances are never mutated; stages build new ones with
    dataclasses.replace. Fiscal classification is recomputed on access.
    """
    frame_id: str
    start: date | None = None
    end: date | None = None
    pl: IncomeStatement | None = None
    bs: BalanceSheet | None = None
    cf: CashFlow | None = None
    source: str = SOURCE_REPORTED
    fiscal_year_end: str = DEFAULT_FISCAL_YEAR_END

    @property
    def fiscal(self) -> FiscalInfo:
        return fiscal_info(self.frame_id, self.start, self.end, self.fiscal_year_end)

    @property
    def has_flows(self) -> bool:
        return self.pl is not None or self.cf is not None

    @property
    def is_instant_only(self) -> bool:
        return self.bs is not None and not self.has_flows


# ---------------------------------------------------------------------------
# Trimmed output
# ---------------------------------------------------------------------------

class TrimmedFrameOutput(BaseModel):
    """One consolidated record per fiscal frame."""
    model_config = _CAMEL

    frame: str
    start: date | None = None
    end: date | None = None
    pl: IncomeStatement | None = None
    bs: BalanceSheet | None = None
    cf: CashFlow | None = None
    source: Literal["reported", "derived_delta"] = SOURCE_REPORTED


class TrimmedInventory(BaseModel):
    ticker: str
    frames: list[TrimmedFrameOutput] = []
