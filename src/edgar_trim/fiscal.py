"""Frame classification and fiscal-calendar arithmetic.

A raw frame id follows the SEC ``frames`` convention: ``CY2024Q1`` is a
duration, ``CY2024Q1I`` the matching instant (balance-sheet snapshot).
Inventories also carry ad-hoc ``YYYY-MM-DD_YYYY-MM-DD`` ids for facts
the frames API never assigned, typically YTD durations.

Fiscal labels follow the convention that ``FYnnnn`` ends within
calendar year ``nnnn``.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import TYPE_CHECKING, Any, NamedTuple

import pandas as pd

if TYPE_CHECKING:
    from edgar_trim.models import TrimmedFrame

DEFAULT_FISCAL_YEAR_END = "0930"
INSTANT_MARKER = "I"

# Duration thresholds in days (same cut-offs the companyfacts filters use)
ANNUAL_MIN_DAYS = 300
QUARTER_MAX_DAYS = 120
THREE_QUARTER_MIN_DAYS = 240

_MMDD_RE = re.compile(r"^(\d{2})(\d{2})$")


class FiscalInfo(NamedTuple):
    fiscal_year: int | None
    fiscal_quarter: int | None     # 1..4, None for annual or undated frames
    is_annual: bool
    fiscal_frame: str | None       # "FY2024" / "FY2024Q1"


_UNCLASSIFIED = FiscalInfo(None, None, False, None)


# ═══════════════════════════════════════════════════════════════════════════
#  Parsing helpers
# ═══════════════════════════════════════════════════════════════════════════

@lru_cache(maxsize=64)
def parse_fiscal_year_end(mmdd: str) -> tuple[int, int]:
    """Parse an MMDD fiscal-year end into (month, day).

    Raises ValueError for anything that is not a real calendar day.
    February 29 is accepted (clamped to the 28th in non-leap years).
    """
    m = _MMDD_RE.match(mmdd or "")
    if not m:
        raise ValueError(f"Fiscal year end must be MMDD, got {mmdd!r}")
    month, day = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Fiscal year end month out of range: {mmdd!r}")
    if not 1 <= day <= calendar.monthrange(2000, month)[1]:
        raise ValueError(f"Fiscal year end day out of range: {mmdd!r}")
    return month, day


def coerce_date(value: Any) -> date | None:
    """Lenient date parsing: anything unparseable becomes None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    ts = pd.to_datetime(value.strip(), errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date()


# ═══════════════════════════════════════════════════════════════════════════
#  Frame ids
# ═══════════════════════════════════════════════════════════════════════════

def is_instant_frame(frame_id: str) -> bool:
    return frame_id.endswith(INSTANT_MARKER)


def base_frame_id(frame_id: str) -> str:
    """Strip the instant marker so CY2024Q1I and CY2024Q1 share one key."""
    if is_instant_frame(frame_id):
        return frame_id[: -len(INSTANT_MARKER)]
    return frame_id


# ═══════════════════════════════════════════════════════════════════════════
#  Fiscal calendar
# ═══════════════════════════════════════════════════════════════════════════

def fiscal_year_end_date(fiscal_year: int, fiscal_year_end: str) -> date:
    """Calendar date on which *fiscal_year* closes."""
    month, day = parse_fiscal_year_end(fiscal_year_end)
    day = min(day, calendar.monthrange(fiscal_year, month)[1])
    return date(fiscal_year, month, day)


def fiscal_year_for(end: date, fiscal_year_end: str) -> int:
    """Fiscal year containing *end*: the calendar year its fiscal year closes in."""
    if end <= fiscal_year_end_date(end.year, fiscal_year_end):
        return end.year
    return end.year + 1


def fiscal_year_start(end: date | None, fiscal_year_end: str) -> date | None:
    """First day of the fiscal year containing *end*."""
    if end is None:
        return None
    fy = fiscal_year_for(end, fiscal_year_end)
    return fiscal_year_end_date(fy - 1, fiscal_year_end) + timedelta(days=1)


def duration_days(start: date | None, end: date | None) -> int | None:
    if start is None or end is None:
        return None
    return (end - start).days


def fiscal_info(
    frame_id: str,
    start: date | None,
    end: date | None,
    fiscal_year_end: str = DEFAULT_FISCAL_YEAR_END,
) -> FiscalInfo:
    """Classify one frame against the fiscal calendar.

    Quarters are assigned by month offset from the fiscal start month, so
    52/53-week filers whose quarters close a few days into the next month
    land in the later quarter.
    """
    if end is None:
        return _UNCLASSIFIED

    fye_month, _ = parse_fiscal_year_end(fiscal_year_end)
    fiscal_start_month = (fye_month % 12) + 1
    months_from_start = (end.month - fiscal_start_month + 12) % 12
    fiscal_quarter = months_from_start // 3 + 1
    fiscal_year = fiscal_year_for(end, fiscal_year_end)

    span = None if is_instant_frame(frame_id) else duration_days(start, end)
    is_annual = span is not None and span > ANNUAL_MIN_DAYS

    if is_annual:
        return FiscalInfo(fiscal_year, None, True, f"FY{fiscal_year}")
    return FiscalInfo(fiscal_year, fiscal_quarter, False, f"FY{fiscal_year}Q{fiscal_quarter}")


# ═══════════════════════════════════════════════════════════════════════════
#  Duration shapes
# ═══════════════════════════════════════════════════════════════════════════

def is_ytd(frame: TrimmedFrame) -> bool:
    """A non-annual duration starting on the first day of its fiscal year."""
    if frame.start is None or frame.end is None or is_instant_frame(frame.frame_id):
        return False
    if frame.fiscal.is_annual:
        return False
    return frame.start == fiscal_year_start(frame.end, frame.fiscal_year_end)


def is_cumulative(frame: TrimmedFrame) -> bool:
    """A non-annual duration longer than one quarter (6- or 9-month YTD)."""
    span = duration_days(frame.start, frame.end)
    if span is None or is_instant_frame(frame.frame_id):
        return False
    return QUARTER_MAX_DAYS < span <= ANNUAL_MIN_DAYS


def covers_three_quarters(frame: TrimmedFrame) -> bool:
    info = frame.fiscal
    if info.is_annual or info.fiscal_quarter != 3:
        return False
    span = duration_days(frame.start, frame.end)
    return is_ytd(frame) or (span is not None and span >= THREE_QUARTER_MIN_DAYS)
