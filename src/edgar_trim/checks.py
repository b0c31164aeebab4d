"""Data-quality checks on consolidated fiscal frames.

Checks never change the output; they flag records worth a second look
(wrong concept picked, restatement mixed into a derived quarter, …).
"""

from __future__ import annotations

import logging

from edgar_trim.models import TrimmedFrameOutput, TrimmedInventory

log = logging.getLogger(__name__)


def _fmt(v: float | None) -> str:
    """Format a number for display (e.g., $1.23B, $456M)."""
    if v is None:
        return "N/A"
    sign = "-" if v < 0 else ""
    av = abs(v)
    if av >= 1e12:
        return f"{sign}${av / 1e12:,.2f}T"
    if av >= 1e9:
        return f"{sign}${av / 1e9:,.2f}B"
    if av >= 1e6:
        return f"{sign}${av / 1e6:,.2f}M"
    return f"{sign}${av:,.0f}"


def _rel_diff(actual: float, expected: float) -> float:
    if actual == expected:
        return 0.0
    base = max(abs(actual), abs(expected))
    return abs(actual - expected) / base


def validate_frame(frame: TrimmedFrameOutput) -> list[dict]:
    """Run validation rules on one output record."""
    warnings: list[dict] = []
    pl, bs, cf = frame.pl, frame.bs, frame.cf

    # Rule 1: nothing recognised at all
    if pl is None and bs is None and cf is None:
        warnings.append({
            "rule": "empty_frame",
            "severity": "info",
            "message": f"{frame.frame} has no income statement, balance sheet or cash flow.",
        })
        return warnings

    # Rule 2: gross profit = revenue − cost of revenue (within 1%)
    if pl is not None and None not in (pl.revenue, pl.cogs, pl.gross_profit):
        expected = pl.revenue - pl.cogs
        if _rel_diff(pl.gross_profit, expected) > 0.01:
            warnings.append({
                "rule": "gross_profit_identity",
                "severity": "warning",
                "message": (
                    f"{frame.frame}: gross profit ({_fmt(pl.gross_profit)}) != revenue "
                    f"({_fmt(pl.revenue)}) − COGS ({_fmt(pl.cogs)}) = {_fmt(expected)}."
                ),
            })

    if bs is not None:
        # Rule 3: accounting equation A = L + E (within 5% tolerance)
        ta, tl, eq = bs.total_assets, bs.total_liabilities, bs.equity
        if ta is not None and tl is not None and eq is not None and ta != 0:
            diff_pct = abs(ta - (tl + eq)) / abs(ta)
            if diff_pct > 0.05:
                warnings.append({
                    "rule": "accounting_equation",
                    "severity": "warning",
                    "message": (
                        f"{frame.frame}: assets ({_fmt(ta)}) != liabilities ({_fmt(tl)}) + "
                        f"equity ({_fmt(eq)}). Difference: {diff_pct:.1%}"
                    ),
                })

        # Rule 4: current assets cannot exceed total assets
        tca = bs.total_current_assets
        if tca is not None and ta is not None and tca > ta:
            warnings.append({
                "rule": "current_assets_exceed_total",
                "severity": "error",
                "message": (
                    f"{frame.frame}: current assets ({_fmt(tca)}) exceed "
                    f"total assets ({_fmt(ta)})."
                ),
            })

    # Rule 5: fcf must be cfo − capex
    if cf is not None and cf.cfo is not None and cf.capex is not None:
        if cf.fcf != cf.cfo - cf.capex:
            warnings.append({
                "rule": "fcf_identity",
                "severity": "error",
                "message": f"{frame.frame}: fcf ({_fmt(cf.fcf)}) != cfo − capex.",
            })

    return warnings


def run_checks(inventory: TrimmedInventory) -> list[dict]:
    """Validate every frame and log what was found."""
    issues: list[dict] = []
    for frame in inventory.frames:
        issues.extend(validate_frame(frame))

    for issue in issues:
        level = logging.INFO if issue["severity"] == "info" else logging.WARNING
        log.log(level, "[%s] %s", issue["rule"], issue["message"])
    if issues:
        log.info("%s: %d data-quality issue(s)", inventory.ticker, len(issues))
    return issues
