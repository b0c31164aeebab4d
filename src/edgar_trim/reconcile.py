"""Fiscal-period reconciliation engine.

Turns a ticker's raw frame inventory into one record per fiscal frame.

Data flow:
  1. order_by_recency()             → make the "later supersedes" order explicit
  2. trim_raw_frame()               → resolve tags into pl / bs / cf sections
  3. merge_by_base_frame()          → join instant + duration variants (CY2024Q1I + CY2024Q1)
  4. derive_missing_q4()            → Q4 = annual − three-quarter YTD
  5. backfill_from_ytd()            → quarter = YTD − prior YTD
  6. attach_annual_balance_sheets() → year-end snapshot onto annual records
  7. consolidate_by_fiscal_frame()  → exactly one output record per FYnnnn[Qn]

Every stage returns a new list; TrimmedFrame instances are frozen.
Derived arithmetic is null-propagating: an unknown operand yields an
unknown result, never zero.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from datetime import date
from typing import TypeVar

from edgar_trim.concepts import trim_raw_frame
from edgar_trim.fiscal import (
    DEFAULT_FISCAL_YEAR_END,
    FiscalInfo,
    QUARTER_MAX_DAYS,
    base_frame_id,
    covers_three_quarters,
    duration_days,
    is_cumulative,
    is_ytd,
)
from edgar_trim.models import (
    SOURCE_DERIVED,
    SOURCE_REPORTED,
    BalanceSheet,
    CashFlow,
    FactsInventory,
    IncomeStatement,
    RawFrame,
    TrimmedFrame,
    TrimmedFrameOutput,
    TrimmedInventory,
)

log = logging.getLogger(__name__)

S = TypeVar("S", IncomeStatement, CashFlow)


# ═══════════════════════════════════════════════════════════════════════════
#  Null-propagating arithmetic
# ═══════════════════════════════════════════════════════════════════════════

def _sub(a: float | None, b: float | None) -> float | None:
    """a − b, or None if either operand is unknown."""
    if a is None or b is None:
        return None
    return a - b


def _add(a: float | None, b: float | None) -> float | None:
    """a + b, or None if either operand is unknown."""
    if a is None or b is None:
        return None
    return a + b


def _combine(
    a: S | None,
    b: S | None,
    op: Callable[[float | None, float | None], float | None],
) -> S | None:
    if a is None:
        return None
    cls = type(a)
    values = {
        name: op(getattr(a, name), getattr(b, name) if b is not None else None)
        for name in cls.model_fields
    }
    section = cls(**values)
    if isinstance(section, CashFlow):
        section = section.with_fcf()
    return section


def subtract_sections(a: S | None, b: S | None) -> S | None:
    """Field-wise a − b.  None if *a* is None; all-None fields if *b* is None."""
    return _combine(a, b, _sub)


def add_sections(a: S | None, b: S | None) -> S | None:
    """Field-wise a + b with the same null rules as subtract_sections."""
    return _combine(a, b, _add)


# ═══════════════════════════════════════════════════════════════════════════
#  Small selection helpers
# ═══════════════════════════════════════════════════════════════════════════

def _latest(frames: Iterable[TrimmedFrame]) -> TrimmedFrame | None:
    """Frame with the latest end; on ties the later one in list order wins."""
    best = None
    for f in frames:
        if f.end is None:
            continue
        if best is None or f.end >= best.end:
            best = f
    return best


def _span_key(f: TrimmedFrame) -> tuple[int, date]:
    span = duration_days(f.start, f.end)
    return (span if span is not None else -1, f.end or date.min)


def _is_quarter_length(f: TrimmedFrame) -> bool:
    span = duration_days(f.start, f.end)
    return span is not None and span <= QUARTER_MAX_DAYS


def _needs(section: IncomeStatement | CashFlow | None) -> bool:
    return section is None or section.is_empty()


def _pick_snapshot(
    info: FiscalInfo,
    end: date | None,
    frames: Sequence[TrimmedFrame],
) -> BalanceSheet | None:
    """Find a balance sheet for a record that has none.

    Order: any snapshot taken on the same end date, then an instant-only
    frame in the same fiscal frame (same fiscal year for annual records),
    then the latest instant on or before *end*, then the latest instant
    overall.  The last two steps are approximate and can borrow a snapshot
    from a different period.
    """
    if end is not None:
        exact = [f for f in frames if f.bs is not None and f.end == end]
        if exact:
            return exact[-1].bs

    instants = [f for f in frames if f.is_instant_only and f.end is not None]
    if not instants:
        return None

    if info.is_annual:
        same = [i for i in instants if i.fiscal.fiscal_year == info.fiscal_year]
    else:
        same = [i for i in instants if i.fiscal.fiscal_frame == info.fiscal_frame]
    pick = _latest(same)
    if pick is None and end is not None:
        pick = _latest(i for i in instants if i.end <= end)
    if pick is None:
        pick = _latest(instants)
    return pick.bs if pick else None


# ═══════════════════════════════════════════════════════════════════════════
#  Ordering + tag resolution
# ═══════════════════════════════════════════════════════════════════════════

def order_by_recency(raws: Sequence[RawFrame]) -> list[RawFrame]:
    """Order raw frames so later entries are the more recent filings.

    Merging is "last non-null wins", which is only meaningful when the
    input is in filing order.  When frames carry a ``filed`` date they are
    stable-sorted by it (undated frames first, in their original order);
    otherwise the encounter order is taken as the filing order.
    """
    if not any(r.filed is not None for r in raws):
        return list(raws)
    return sorted(raws, key=lambda r: (r.filed is not None, r.filed or date.min))


def trim_frames(raws: Iterable[RawFrame], fiscal_year_end: str) -> list[TrimmedFrame]:
    return [trim_raw_frame(r, fiscal_year_end) for r in raws]


# ═══════════════════════════════════════════════════════════════════════════
#  Base-frame merge
# ═══════════════════════════════════════════════════════════════════════════

def merge_by_base_frame(frames: Iterable[TrimmedFrame]) -> list[TrimmedFrame]:
    """Merge frames sharing a base id into one candidate record.

    Dates are fill-if-absent (first non-null wins).  Each section is
    replaced whole by the last non-null value; a later, more complete
    filing supersedes an earlier partial one.
    """
    merged: dict[str, TrimmedFrame] = {}
    for f in frames:
        key = base_frame_id(f.frame_id)
        existing = merged.get(key)
        if existing is None:
            merged[key] = replace(f, frame_id=key)
            continue
        merged[key] = replace(
            existing,
            start=existing.start if existing.start is not None else f.start,
            end=existing.end if existing.end is not None else f.end,
            pl=f.pl if f.pl is not None else existing.pl,
            bs=f.bs if f.bs is not None else existing.bs,
            cf=f.cf if f.cf is not None else existing.cf,
        )
    return list(merged.values())


# ═══════════════════════════════════════════════════════════════════════════
#  Quarter derivation (Q4 = annual − Q1..Q3 YTD)
# ═══════════════════════════════════════════════════════════════════════════

def _summed_ytd(quarters: dict[int, TrimmedFrame]) -> TrimmedFrame | None:
    """Build a synthetic Q1–Q3 YTD from three reported quarters."""
    if not all(q in quarters for q in (1, 2, 3)):
        return None
    q1, q2, q3 = quarters[1], quarters[2], quarters[3]
    return TrimmedFrame(
        frame_id=f"{q1.frame_id}+{q2.frame_id}+{q3.frame_id}",
        start=q1.start,
        end=q3.end,
        pl=add_sections(add_sections(q1.pl, q2.pl), q3.pl),
        cf=add_sections(add_sections(q1.cf, q2.cf), q3.cf),
        fiscal_year_end=q3.fiscal_year_end,
    )


def derive_missing_q4(frames: Sequence[TrimmedFrame]) -> list[TrimmedFrame]:
    """Append a derived Q4 for every fiscal year that lacks a direct one.

    Requires an annual record and a YTD covering three quarters: the
    longest non-annual duration of the year (latest end on ties), or,
    failing that, the sum of three reported quarters.  Balance sheets are
    never subtracted; the Q4 snapshot is attached as-is when present.
    """
    annuals: dict[int, TrimmedFrame] = {}
    interim: dict[int, list[TrimmedFrame]] = {}
    quarters: dict[int, dict[int, TrimmedFrame]] = {}
    has_q4: set[int] = set()
    q4_snapshots: dict[int, list[TrimmedFrame]] = {}

    for f in frames:
        info = f.fiscal
        if info.fiscal_year is None:
            continue
        fy = info.fiscal_year
        if f.is_instant_only:
            if info.fiscal_quarter == 4:
                q4_snapshots.setdefault(fy, []).append(f)
            continue
        if not f.has_flows:
            continue
        if info.is_annual:
            annuals[fy] = f
            continue
        interim.setdefault(fy, []).append(f)
        if is_cumulative(f):
            continue
        if info.fiscal_quarter == 4:
            has_q4.add(fy)
        if _is_quarter_length(f):
            quarters.setdefault(fy, {})[info.fiscal_quarter] = f

    derived: list[TrimmedFrame] = []
    for fy, annual in annuals.items():
        if fy in has_q4:
            continue

        ytd = None
        candidates = interim.get(fy, [])
        if candidates:
            pick = max(candidates, key=_span_key)
            if covers_three_quarters(pick):
                ytd = pick
        if ytd is None:
            ytd = _summed_ytd(quarters.get(fy, {}))
        if ytd is None:
            log.debug("FY%d: no three-quarter YTD, Q4 not derived", fy)
            continue

        snapshot = _latest(q4_snapshots.get(fy, []))
        q4 = TrimmedFrame(
            frame_id=f"FY{fy}Q4",
            start=ytd.end,
            end=annual.end,
            pl=subtract_sections(annual.pl, ytd.pl),
            cf=subtract_sections(annual.cf, ytd.cf),
            bs=snapshot.bs if snapshot else None,
            source=SOURCE_DERIVED,
            fiscal_year_end=annual.fiscal_year_end,
        )
        if q4.fiscal.fiscal_frame != q4.frame_id:
            log.warning(
                "FY%d: derived Q4 %s–%s classifies as %s, skipped",
                fy, q4.start, q4.end, q4.fiscal.fiscal_frame,
            )
            continue
        derived.append(q4)

    if derived:
        log.info("Derived %d Q4 record(s) from annual − YTD", len(derived))
    return list(frames) + derived


# ═══════════════════════════════════════════════════════════════════════════
#  YTD backfill (quarter = YTD − prior YTD)
# ═══════════════════════════════════════════════════════════════════════════

def backfill_from_ytd(frames: Sequence[TrimmedFrame]) -> list[TrimmedFrame]:
    """Recover interim quarters that were only reported cumulatively.

    For each YTD record whose previous YTD in the same fiscal year ends at
    most one quarter earlier, the difference is that quarter's flow.  It
    fills the pl / cf of quarter records (often instant-only snapshots)
    ending on the same date whose sections are missing or all-null; if
    the quarter has no record at all, a fresh derived one is created.
    A wider gap spans several quarters and is left alone.
    """
    ytds: dict[date, TrimmedFrame] = {}
    for f in frames:
        if f.has_flows and is_ytd(f):
            ytds[f.end] = f

    result = list(frames)
    filled = created = 0

    for end in sorted(ytds):
        ytd = ytds[end]
        info = ytd.fiscal
        prior = _latest(
            y for e, y in ytds.items()
            if e < end and y.fiscal.fiscal_year == info.fiscal_year
        )
        if prior is None:
            # a single-quarter YTD already is the quarter; a longer one cannot be split
            continue
        if duration_days(prior.end, end) > QUARTER_MAX_DAYS:
            # prior YTD is more than one quarter back; the gap spans several quarters
            log.debug(
                "%s: prior YTD ends %s, gap too wide to backfill", info.fiscal_frame, prior.end,
            )
            continue

        delta_pl = subtract_sections(ytd.pl, prior.pl)
        delta_cf = subtract_sections(ytd.cf, prior.cf)

        touched = False
        for i, f in enumerate(result):
            if f is ytd or f.end != end or f.fiscal.is_annual or is_cumulative(f):
                continue
            touched = True
            updates: dict = {}
            if _needs(f.pl) and delta_pl is not None:
                updates["pl"] = delta_pl
            if _needs(f.cf) and delta_cf is not None:
                updates["cf"] = delta_cf
            if not updates:
                continue
            if f.start is None:
                updates["start"] = prior.end
            result[i] = replace(f, source=SOURCE_DERIVED, **updates)
            filled += 1

        if touched:
            continue

        quarter_reported = any(
            f.has_flows
            and not is_cumulative(f)
            and f.fiscal.fiscal_frame == info.fiscal_frame
            for f in result
        )
        if quarter_reported:
            continue

        result.append(TrimmedFrame(
            frame_id=info.fiscal_frame,
            start=prior.end,
            end=end,
            pl=delta_pl,
            cf=delta_cf,
            source=SOURCE_DERIVED,
            fiscal_year_end=ytd.fiscal_year_end,
        ))
        created += 1

    if filled or created:
        log.info("YTD backfill: %d record(s) filled, %d created", filled, created)
    return result


# ═══════════════════════════════════════════════════════════════════════════
#  Annual balance sheets
# ═══════════════════════════════════════════════════════════════════════════

def attach_annual_balance_sheets(frames: Sequence[TrimmedFrame]) -> list[TrimmedFrame]:
    """Give annual records without a balance sheet the year-end snapshot."""
    result = []
    for f in frames:
        info = f.fiscal
        if info.is_annual and f.bs is None:
            bs = _pick_snapshot(info, f.end, frames)
            if bs is not None:
                f = replace(f, bs=bs)
        result.append(f)
    return result


# ═══════════════════════════════════════════════════════════════════════════
#  Fiscal-frame consolidation
# ═══════════════════════════════════════════════════════════════════════════

def consolidate_by_fiscal_frame(frames: Sequence[TrimmedFrame]) -> list[TrimmedFrameOutput]:
    """Collapse all records into exactly one output record per fiscal frame.

    Cumulative (6/9-month) YTD records are inputs to the derivation
    stages, not quarter values, and are left out.  Within a group the
    latest end wins, the first start wins and each section follows
    last-non-null-wins.
    """
    groups: dict[str, dict] = {}
    infos: dict[str, FiscalInfo] = {}

    for f in frames:
        info = f.fiscal
        if info.fiscal_frame is None or is_cumulative(f):
            continue
        key = info.fiscal_frame
        entry = groups.get(key)
        if entry is None:
            entry = groups[key] = {
                "start": None, "end": None,
                "pl": None, "bs": None, "cf": None,
                "pl_source": None, "cf_source": None,
            }
            infos[key] = info
        if f.end is not None and (entry["end"] is None or f.end > entry["end"]):
            entry["end"] = f.end
        if entry["start"] is None:
            entry["start"] = f.start
        if f.pl is not None:
            entry["pl"], entry["pl_source"] = f.pl, f.source
        if f.cf is not None:
            entry["cf"], entry["cf_source"] = f.cf, f.source
        if f.bs is not None:
            entry["bs"] = f.bs

    out: list[TrimmedFrameOutput] = []
    for key, entry in groups.items():
        bs = entry["bs"]
        if bs is None:
            bs = _pick_snapshot(infos[key], entry["end"], frames)
        cf = entry["cf"].with_fcf() if entry["cf"] is not None else None
        derived = SOURCE_DERIVED in (entry["pl_source"], entry["cf_source"])
        out.append(TrimmedFrameOutput(
            frame=key,
            start=entry["start"],
            end=entry["end"],
            pl=entry["pl"],
            bs=bs,
            cf=cf,
            source=SOURCE_DERIVED if derived else SOURCE_REPORTED,
        ))

    out.sort(key=lambda r: (r.end or date.min, r.frame))
    return out


# ═══════════════════════════════════════════════════════════════════════════
#  Full pipeline
# ═══════════════════════════════════════════════════════════════════════════

def reconcile(
    inventory: FactsInventory,
    fiscal_year_end: str | None = None,
) -> TrimmedInventory:
    """Run every stage over one ticker's inventory.

    The inventory's own fiscalYearEnd wins over *fiscal_year_end*, which
    in turn wins over the 0930 default.  Pure: the same input in the same
    order always yields the same output.
    """
    fye = inventory.fiscal_year_end or fiscal_year_end or DEFAULT_FISCAL_YEAR_END

    raws = order_by_recency(inventory.facts_index)
    merged = merge_by_base_frame(trim_frames(raws, fye))
    with_q4 = derive_missing_q4(merged)
    filled = backfill_from_ytd(with_q4)
    working = attach_annual_balance_sheets(filled)
    frames = consolidate_by_fiscal_frame(working)

    log.info(
        "%s: %d raw frame(s) → %d base frame(s) → %d fiscal frame(s) (FYE %s)",
        inventory.ticker, len(raws), len(merged), len(frames), fye,
    )
    return TrimmedInventory(ticker=inventory.ticker, frames=frames)
