# -*- coding: utf-8 -*-
"""
标准报表模板

新建模型时的默认行集合，行顺序决定区段和类别边界
"""

from typing import List, Optional, Tuple

from .line import Line, LineKind, Statement, StatementKind, ValueType
from .model import Model, ModelMeta


_I = LineKind.INPUT
_C = LineKind.CALCULATED
_S = LineKind.SUBTOTAL
_T = LineKind.TOTAL

INCOME_STATEMENT_TEMPLATE: List[Tuple[str, str, LineKind, ValueType]] = [
    ("rev", "Revenue", _I, ValueType.CURRENCY),
    ("cogs", "Cost of Goods Sold", _I, ValueType.CURRENCY),
    ("gross_profit", "Gross Profit", _C, ValueType.CURRENCY),
    ("gross_margin", "Gross Margin %", _C, ValueType.PERCENT),
    ("sga", "SG&A", _I, ValueType.CURRENCY),
    ("rd", "R&D", _I, ValueType.CURRENCY),
    ("other_opex", "Other Operating Expenses", _I, ValueType.CURRENCY),
    ("ebitda", "EBITDA", _C, ValueType.CURRENCY),
    ("ebitda_margin", "EBITDA Margin %", _C, ValueType.PERCENT),
    ("danda", "Depreciation & Amortization", _I, ValueType.CURRENCY),
    ("ebit", "EBIT", _C, ValueType.CURRENCY),
    ("ebit_margin", "EBIT Margin %", _C, ValueType.PERCENT),
    ("interest_expense", "Interest Expense", _I, ValueType.CURRENCY),
    ("interest_income", "Interest Income", _I, ValueType.CURRENCY),
    ("other_income", "Other Income / (Expense)", _I, ValueType.CURRENCY),
    ("ebt", "EBT", _C, ValueType.CURRENCY),
    ("tax", "Income Tax", _I, ValueType.CURRENCY),
    ("net_income", "Net Income", _C, ValueType.CURRENCY),
    ("net_income_margin", "Net Income Margin %", _C, ValueType.PERCENT),
]

BALANCE_SHEET_TEMPLATE: List[Tuple[str, str, LineKind, ValueType]] = [
    ("cash", "Cash & Cash Equivalents", _I, ValueType.CURRENCY),
    ("ar", "Accounts Receivable", _I, ValueType.CURRENCY),
    ("inventory", "Inventory", _I, ValueType.CURRENCY),
    ("other_ca", "Other Current Assets", _I, ValueType.CURRENCY),
    ("total_current_assets", "Total Current Assets", _S, ValueType.CURRENCY),
    ("ppe", "PP&E", _I, ValueType.CURRENCY),
    ("intangible_assets", "Intangible Assets", _I, ValueType.CURRENCY),
    ("other_assets", "Other Assets", _I, ValueType.CURRENCY),
    ("total_fixed_assets", "Total Fixed Assets", _S, ValueType.CURRENCY),
    ("total_assets", "Total Assets", _T, ValueType.CURRENCY),
    ("ap", "Accounts Payable", _I, ValueType.CURRENCY),
    ("st_debt", "Short-Term Debt", _I, ValueType.CURRENCY),
    ("other_cl", "Other Current Liabilities", _I, ValueType.CURRENCY),
    ("total_current_liabilities", "Total Current Liabilities", _S, ValueType.CURRENCY),
    ("lt_debt", "Long-Term Debt", _I, ValueType.CURRENCY),
    ("other_liab", "Other Liabilities", _I, ValueType.CURRENCY),
    ("total_non_current_liabilities", "Total Non-Current Liabilities", _S, ValueType.CURRENCY),
    ("total_liabilities", "Total Liabilities", _T, ValueType.CURRENCY),
    ("preferred_stock", "Preferred Stock", _I, ValueType.CURRENCY),
    ("common_stock", "Common Stock", _I, ValueType.CURRENCY),
    ("apic", "Additional Paid-in Capital", _I, ValueType.CURRENCY),
    ("treasury_stock", "Treasury Stock", _I, ValueType.CURRENCY),
    ("aoci", "Accumulated Other Comprehensive Income", _I, ValueType.CURRENCY),
    ("retained_earnings", "Retained Earnings", _I, ValueType.CURRENCY),
    ("total_equity", "Total Equity", _T, ValueType.CURRENCY),
    ("total_liab_and_equity", "Total Liabilities & Equity", _T, ValueType.CURRENCY),
]

# wc_change 历史期为输入，预测期由资产负债表变动推导
CASH_FLOW_TEMPLATE: List[Tuple[str, str, LineKind, ValueType]] = [
    ("net_income", "Net Income", _C, ValueType.CURRENCY),
    ("danda", "Depreciation & Amortization", _C, ValueType.CURRENCY),
    ("sbc", "Stock-Based Compensation", _C, ValueType.CURRENCY),
    ("wc_change", "Change in Working Capital", _I, ValueType.CURRENCY),
    ("other_operating", "Other Operating Activities", _I, ValueType.CURRENCY),
    ("operating_cf", "Cash Flow from Operations", _S, ValueType.CURRENCY),
    ("capex", "Capital Expenditures", _I, ValueType.CURRENCY),
    ("other_investing", "Other Investing Activities", _I, ValueType.CURRENCY),
    ("investing_cf", "Cash Flow from Investing", _S, ValueType.CURRENCY),
    ("debt_issuance", "Debt Issuance", _I, ValueType.CURRENCY),
    ("debt_repayment", "Debt Repayment", _I, ValueType.CURRENCY),
    ("equity_issuance", "Equity Issuance", _I, ValueType.CURRENCY),
    ("dividends", "Dividends Paid", _I, ValueType.CURRENCY),
    ("financing_cf", "Cash Flow from Financing", _S, ValueType.CURRENCY),
    ("net_change_cash", "Net Change in Cash", _T, ValueType.CURRENCY),
]

TEMPLATES = {
    StatementKind.IS: INCOME_STATEMENT_TEMPLATE,
    StatementKind.BS: BALANCE_SHEET_TEMPLATE,
    StatementKind.CFS: CASH_FLOW_TEMPLATE,
}


def build_statement(kind: StatementKind) -> Statement:
    """按模板生成一张空报表"""
    return Statement(kind, [
        Line(id=line_id, label=label, kind=line_kind, value_type=value_type)
        for line_id, label, line_kind, value_type in TEMPLATES[kind]
    ])


def create_model(company_name: str = "",
                 historical_periods: Optional[List[str]] = None,
                 projection_periods: Optional[List[str]] = None,
                 currency_unit: str = "millions",
                 config=None) -> Model:
    """
    按标准模板新建模型

    Args:
        company_name: 公司名称
        historical_periods: 历史期，如 ["2023A", "2024A"]
        projection_periods: 预测期，如 ["2025E", "2026E"]
        currency_unit: 显示单位

    Returns:
        三张报表均为模板行、数值为空的 Model
    """
    meta = ModelMeta(
        company_name=company_name,
        historical_periods=list(historical_periods or []),
        projection_periods=list(projection_periods or []),
        currency_unit=currency_unit,
    )
    return Model(
        meta,
        build_statement(StatementKind.IS),
        build_statement(StatementKind.BS),
        build_statement(StatementKind.CFS),
        config=config,
    )
