# -*- coding: utf-8 -*-
"""
资产负债表平衡检查

资产合计 = 负债合计 + 权益合计，差额在容差内为平衡。
只报告，不修正：用户录入过程中模型允许暂时不平衡。
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from ..core.line import Category, Statement
from ..classify.classifier import rows_for_category
from .formulas import current_value

BALANCE_TOLERANCE = 0.01


@dataclass
class BalanceResult:
    """单期平衡检查结果"""
    period: str
    assets: float
    liab_equity: float
    difference: float
    balanced: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "assets": self.assets,
            "liab_equity": self.liab_equity,
            "difference": self.difference,
            "balanced": self.balanced,
        }


def _members_total(balance_sheet: Statement, categories, period: str) -> float:
    total = 0.0
    for category in categories:
        for line in rows_for_category(balance_sheet, category, include_subtotals=False):
            total += current_value(line, period)
    return total


def _total(balance_sheet: Statement, line_id: str, categories, period: str) -> float:
    """合计行的当前值；合计行缺失时直接加总类别成员"""
    line = balance_sheet.find(line_id)
    if line is not None:
        return current_value(line, period)
    return _members_total(balance_sheet, categories, period)


def check_balance(balance_sheet: Statement, periods: List[str],
                  tolerance: float = BALANCE_TOLERANCE) -> List[BalanceResult]:
    """
    逐期检查资产负债表是否平衡

    Args:
        balance_sheet: 资产负债表（已重算）
        periods: 期间列表
        tolerance: 容差，|差额| < tolerance 为平衡

    Returns:
        每期一个 BalanceResult
    """
    results = []
    for period in periods:
        assets = _total(balance_sheet, "total_assets",
                        (Category.CURRENT_ASSETS, Category.FIXED_ASSETS), period)
        liab_equity = _total(balance_sheet, "total_liab_and_equity",
                             (Category.CURRENT_LIABILITIES, Category.NON_CURRENT_LIABILITIES,
                              Category.EQUITY), period)
        difference = assets - liab_equity
        results.append(BalanceResult(
            period=period,
            assets=assets,
            liab_equity=liab_equity,
            difference=difference,
            balanced=abs(difference) < tolerance,
        ))
    return results
