"""XBRL concept → canonical field mappings.

Each canonical field maps to an ordered list of us-gaap tags.  The tags
are aliases for the *same* fact (taxonomy versions, filer preference),
so resolution takes the first one present. Values are never summed or
averaged across aliases.

Sections:
  - Income statement (duration frames)
  - Cash flow        (duration frames)
  - Balance sheet    (instant frames)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import NamedTuple

from edgar_trim.fiscal import is_instant_frame
from edgar_trim.models import (
    BalanceSheet,
    CashFlow,
    IncomeStatement,
    RawFrame,
    TrimmedFrame,
)


# ═══════════════════════════════════════════════════════════════════════════
#  Concept entry
# ═══════════════════════════════════════════════════════════════════════════

class ConceptEntry(NamedTuple):
    xbrl_concept: str       # tag name (without us-gaap: prefix)
    display_name: str       # human label


# ═══════════════════════════════════════════════════════════════════════════
#  INCOME STATEMENT
# ═══════════════════════════════════════════════════════════════════════════

INCOME_CONCEPTS: dict[str, tuple[ConceptEntry, ...]] = {
    "revenue": (
        ConceptEntry("RevenueFromContractWithCustomerExcludingAssessedTax",
                     "Revenue from Contract with Customer"),
        ConceptEntry("Revenues", "Total Revenue"),
        ConceptEntry("SalesRevenueNet", "Net Sales Revenue"),
    ),
    "cogs": (
        ConceptEntry("CostOfGoodsAndServicesSold", "Cost of Goods and Services Sold"),
        ConceptEntry("CostOfRevenue", "Cost of Revenue"),
    ),
    "gross_profit": (
        ConceptEntry("GrossProfit", "Gross Profit"),
        ConceptEntry("GrossProfitLoss", "Gross Profit (Loss)"),
    ),
    "rnd": (
        ConceptEntry("ResearchAndDevelopmentExpense", "R&D Expense"),
    ),
    "sga": (
        ConceptEntry("SellingGeneralAndAdministrativeExpense", "SG&A Expense"),
        ConceptEntry("GeneralAndAdministrativeExpense", "G&A Expense"),
        ConceptEntry("SellingAndMarketingExpense", "Selling & Marketing Expense"),
    ),
    "operating_income": (
        ConceptEntry("OperatingIncomeLoss", "Operating Income (Loss)"),
    ),
    "non_operating": (
        ConceptEntry("NonoperatingIncomeExpense", "Non-operating Income (Expense)"),
    ),
    "depreciation_amortization": (
        ConceptEntry("DepreciationDepletionAndAmortization", "D&A (incl. Depletion)"),
        ConceptEntry("DepreciationAndAmortization", "D&A"),
        ConceptEntry("Depreciation", "Depreciation"),
        ConceptEntry("AmortizationOfIntangibleAssets", "Amortization of Intangibles"),
    ),
    "income_tax": (
        ConceptEntry("IncomeTaxExpenseBenefit", "Income Tax Expense (Benefit)"),
    ),
    "net_income": (
        ConceptEntry("NetIncomeLoss", "Net Income (Loss)"),
    ),
    # Basic EPS is the last resort when no diluted figure is reported
    "eps_diluted": (
        ConceptEntry("EarningsPerShareDiluted", "EPS Diluted"),
        ConceptEntry("EarningsPerShareBasicAndDiluted", "EPS Basic & Diluted"),
        ConceptEntry("EarningsPerShareBasic", "EPS Basic"),
    ),
    "eps_basic": (
        ConceptEntry("EarningsPerShareBasic", "EPS Basic"),
    ),
}


# ═══════════════════════════════════════════════════════════════════════════
#  CASH FLOW  (fcf is derived, never mapped)
# ═══════════════════════════════════════════════════════════════════════════

CASHFLOW_CONCEPTS: dict[str, tuple[ConceptEntry, ...]] = {
    "cfo": (
        ConceptEntry("NetCashProvidedByUsedInOperatingActivities", "Operating Cash Flow"),
        ConceptEntry("NetCashProvidedByUsedInOperatingActivitiesContinuingOperations",
                     "Operating Cash Flow (Continuing Ops)"),
    ),
    "cfi": (
        ConceptEntry("NetCashProvidedByUsedInInvestingActivities", "Investing Cash Flow"),
    ),
    "cff": (
        ConceptEntry("NetCashProvidedByUsedInFinancingActivities", "Financing Cash Flow"),
    ),
    "capex": (
        ConceptEntry("PaymentsToAcquirePropertyPlantAndEquipment", "Capital Expenditures"),
        ConceptEntry("PurchaseOfPropertyPlantAndEquipment", "Purchase of PP&E"),
        ConceptEntry("PaymentsToAcquireProductiveAssets", "Payments for Productive Assets"),
    ),
    "dividends": (
        ConceptEntry("PaymentsOfDividends", "Dividends Paid"),
    ),
    "buybacks": (
        ConceptEntry("PaymentsForRepurchaseOfCommonStock", "Share Repurchases"),
        ConceptEntry("StockRepurchasedAndRetiredDuringPeriodValue",
                     "Stock Repurchased and Retired"),
    ),
    "debt_issued": (
        ConceptEntry("ProceedsFromIssuanceOfLongTermDebt", "Long-term Debt Issued"),
    ),
    "debt_repaid": (
        ConceptEntry("RepaymentsOfLongTermDebt", "Long-term Debt Repaid"),
    ),
}


# ═══════════════════════════════════════════════════════════════════════════
#  BALANCE SHEET
# ═══════════════════════════════════════════════════════════════════════════

BALANCE_CONCEPTS: dict[str, tuple[ConceptEntry, ...]] = {
    "cash": (
        ConceptEntry("CashAndCashEquivalentsAtCarryingValue", "Cash & Equivalents"),
        ConceptEntry("CashCashEquivalentsRestrictedCashAndRestrictedCashEquivalents",
                     "Cash incl. Restricted Cash"),
    ),
    "securities_current": (
        ConceptEntry("MarketableSecuritiesCurrent", "Marketable Securities (Current)"),
    ),
    "securities_non_current": (
        ConceptEntry("MarketableSecuritiesNoncurrent", "Marketable Securities (Non-current)"),
    ),
    "receivables": (
        ConceptEntry("AccountsReceivableNetCurrent", "Accounts Receivable"),
    ),
    "inventory": (
        ConceptEntry("InventoryNet", "Inventory"),
    ),
    "other_current_assets": (
        ConceptEntry("OtherAssetsCurrent", "Other Current Assets"),
    ),
    "total_current_assets": (
        ConceptEntry("AssetsCurrent", "Total Current Assets"),
    ),
    "total_assets": (
        ConceptEntry("Assets", "Total Assets"),
    ),
    "payables": (
        ConceptEntry("AccountsPayableCurrent", "Accounts Payable"),
    ),
    "current_debt": (
        ConceptEntry("DebtCurrent", "Current Debt"),
        ConceptEntry("LongTermDebtCurrent", "Current Portion of LT Debt"),
    ),
    "other_current_liabilities": (
        ConceptEntry("OtherLiabilitiesCurrent", "Other Current Liabilities"),
    ),
    "total_current_liabilities": (
        ConceptEntry("LiabilitiesCurrent", "Total Current Liabilities"),
    ),
    "long_term_debt": (
        ConceptEntry("LongTermDebtNoncurrent", "Long-term Debt (Non-current)"),
        ConceptEntry("LongTermDebt", "Long-term Debt"),
    ),
    "total_liabilities": (
        ConceptEntry("Liabilities", "Total Liabilities"),
    ),
    "equity": (
        ConceptEntry("StockholdersEquity", "Stockholders' Equity"),
    ),
    "aoci": (
        ConceptEntry("AccumulatedOtherComprehensiveIncomeLossNetOfTax", "AOCI"),
    ),
    "shares": (
        ConceptEntry("EntityCommonStockSharesOutstanding", "Shares Outstanding"),
    ),
}


# ═══════════════════════════════════════════════════════════════════════════
#  Resolution
# ═══════════════════════════════════════════════════════════════════════════

def resolve_concept(
    tags: Mapping[str, float | None],
    aliases: tuple[ConceptEntry, ...] | list[ConceptEntry] | list[str],
) -> float | None:
    """Return the value of the first alias present in *tags*, else None.

    A tag carrying an explicit null counts as absent.  Zero is a real
    value and is returned as-is.
    """
    for entry in aliases:
        concept = entry.xbrl_concept if isinstance(entry, ConceptEntry) else entry
        value = tags.get(concept)
        if value is not None:
            return value
    return None


def _resolve_section(
    tags: Mapping[str, float | None],
    concept_map: dict[str, tuple[ConceptEntry, ...]],
) -> dict[str, float | None]:
    return {field: resolve_concept(tags, aliases) for field, aliases in concept_map.items()}


def build_income_statement(tags: Mapping[str, float | None]) -> IncomeStatement:
    return IncomeStatement(**_resolve_section(tags, INCOME_CONCEPTS))


def build_cash_flow(tags: Mapping[str, float | None]) -> CashFlow:
    return CashFlow(**_resolve_section(tags, CASHFLOW_CONCEPTS)).with_fcf()


def build_balance_sheet(tags: Mapping[str, float | None]) -> BalanceSheet:
    return BalanceSheet(**_resolve_section(tags, BALANCE_CONCEPTS))


def _non_empty(section):
    return None if section.is_empty() else section


def trim_raw_frame(raw: RawFrame, fiscal_year_end: str) -> TrimmedFrame:
    """Resolve a raw frame's tags into canonical sections.

    Instant frames only ever populate the balance sheet and carry no
    start date; duration frames only populate income statement and cash flow.
    A section with no recognised tag at all is None, so it cannot
    supersede a populated one during merging.
    """
    if is_instant_frame(raw.frame_id):
        return TrimmedFrame(
            frame_id=raw.frame_id,
            start=None,
            end=raw.end,
            bs=_non_empty(build_balance_sheet(raw.tags)),
            fiscal_year_end=fiscal_year_end,
        )

    return TrimmedFrame(
        frame_id=raw.frame_id,
        start=raw.start,
        end=raw.end,
        pl=_non_empty(build_income_statement(raw.tags)),
        cf=_non_empty(build_cash_flow(raw.tags)),
        fiscal_year_end=fiscal_year_end,
    )
