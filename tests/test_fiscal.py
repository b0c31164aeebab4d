"""Tests for frame classification and fiscal-calendar arithmetic."""

from datetime import date

import pytest

from edgar_trim.fiscal import (
    FiscalInfo,
    base_frame_id,
    coerce_date,
    duration_days,
    fiscal_info,
    fiscal_year_start,
    is_cumulative,
    is_instant_frame,
    is_ytd,
    parse_fiscal_year_end,
)
from edgar_trim.models import TrimmedFrame


def test_parse_fiscal_year_end():
    assert parse_fiscal_year_end("0930") == (9, 30)
    assert parse_fiscal_year_end("1231") == (12, 31)
    assert parse_fiscal_year_end("0229") == (2, 29)


@pytest.mark.parametrize("bad", ["", "930", "1330", "0231", "09-30", "abcd"])
def test_parse_fiscal_year_end_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_fiscal_year_end(bad)


def test_instant_marker():
    assert is_instant_frame("CY2024Q1I")
    assert not is_instant_frame("CY2024Q1")
    assert base_frame_id("CY2024Q1I") == "CY2024Q1"
    assert base_frame_id("CY2024") == "CY2024"


def test_coerce_date_is_lenient():
    assert coerce_date("2024-03-31") == date(2024, 3, 31)
    assert coerce_date(date(2024, 3, 31)) == date(2024, 3, 31)
    assert coerce_date("not-a-date") is None
    assert coerce_date("2024-02-30") is None
    assert coerce_date("") is None
    assert coerce_date(None) is None
    assert coerce_date(20240331) is None


# --- fiscal_info ---


def test_calendar_quarter():
    info = fiscal_info("CY2024Q1", date(2024, 1, 1), date(2024, 3, 31), "1231")
    assert info == FiscalInfo(2024, 1, False, "FY2024Q1")


def test_calendar_annual():
    info = fiscal_info("CY2024", date(2024, 1, 1), date(2024, 12, 31), "1231")
    assert info == FiscalInfo(2024, None, True, "FY2024")


def test_september_year_end_rolls_into_next_fiscal_year():
    # Oct–Dec quarter of a September filer is Q1 of the following fiscal year
    info = fiscal_info("CY2024Q4", date(2024, 9, 29), date(2024, 12, 28), "0930")
    assert info == FiscalInfo(2025, 1, False, "FY2025Q1")

    annual = fiscal_info("CY2024", date(2023, 10, 1), date(2024, 9, 28), "0930")
    assert annual == FiscalInfo(2024, None, True, "FY2024")

    q3 = fiscal_info("CY2024Q2", date(2024, 3, 31), date(2024, 6, 29), "0930")
    assert q3 == FiscalInfo(2024, 3, False, "FY2024Q3")


def test_instant_is_never_annual():
    info = fiscal_info("CY2024Q4I", date(2024, 1, 1), date(2024, 12, 31), "1231")
    assert not info.is_annual
    assert info.fiscal_frame == "FY2024Q4"


def test_missing_end_is_unclassified():
    info = fiscal_info("CY2024Q1", date(2024, 1, 1), None, "1231")
    assert info == FiscalInfo(None, None, False, None)


def test_missing_start_is_not_annual():
    info = fiscal_info("CY2024", None, date(2024, 12, 31), "1231")
    assert not info.is_annual
    assert info.fiscal_frame == "FY2024Q4"


def test_fiscal_year_start():
    assert fiscal_year_start(date(2025, 6, 30), "0930") == date(2024, 10, 1)
    assert fiscal_year_start(date(2024, 9, 30), "0930") == date(2023, 10, 1)
    assert fiscal_year_start(date(2024, 9, 30), "1231") == date(2024, 1, 1)
    assert fiscal_year_start(None, "1231") is None


def test_duration_days():
    assert duration_days(date(2024, 1, 1), date(2024, 3, 31)) == 90
    assert duration_days(None, date(2024, 3, 31)) is None


# --- Duration shapes ---


def test_ytd_and_cumulative_shapes():
    nine_months = TrimmedFrame("ytd", date(2024, 1, 1), date(2024, 9, 30), fiscal_year_end="1231")
    q1 = TrimmedFrame("CY2024Q1", date(2024, 1, 1), date(2024, 3, 31), fiscal_year_end="1231")
    q2 = TrimmedFrame("CY2024Q2", date(2024, 4, 1), date(2024, 6, 30), fiscal_year_end="1231")
    annual = TrimmedFrame("CY2024", date(2024, 1, 1), date(2024, 12, 31), fiscal_year_end="1231")

    assert is_ytd(nine_months) and is_cumulative(nine_months)
    assert is_ytd(q1) and not is_cumulative(q1)
    assert not is_ytd(q2) and not is_cumulative(q2)
    assert not is_ytd(annual) and not is_cumulative(annual)
