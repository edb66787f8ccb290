# -*- coding: utf-8 -*-
"""
位置分类器

区段（现金流三大活动 / 资产负债表三大类）和类别（资产负债表五类）
都由行在报表中的位置相对边界行推断。每次调用都重新读取当前顺序，
不做缓存：移动一行跨过边界就会改变它的分类。

使用方法:
    category_of("ar", balance_sheet)        # Category.CURRENT_ASSETS
    section_of("capex", cash_flow)          # Section.INVESTING
    section_members(cash_flow, Section.FINANCING)
"""

from typing import List, Optional

from ..core.line import Category, Impact, Line, LineKind, Section, Statement, StatementKind
from ..core.well_known import (
    CATEGORY_BOUNDARIES,
    CATEGORY_ORDER,
    CATEGORY_SECTIONS,
    CATEGORY_SUBTOTALS,
    CASH_FLOW_SECTIONS,
    GRAND_TOTALS,
    NET_CHANGE_CASH,
    OUTFLOW_IDS,
    SECTION_OPENERS,
    SECTION_TOTALS,
    STANDARD_CATEGORIES,
    STANDARD_SECTIONS,
)


_CATEGORY_CLOSERS = {category: boundary for boundary, category in CATEGORY_BOUNDARIES}

# 大合计之后类别游标的位置（None 表示已结束）
_GRAND_TOTAL_ADVANCE = {
    "total_assets": CATEGORY_ORDER.index(Category.CURRENT_LIABILITIES),
    "total_liabilities": CATEGORY_ORDER.index(Category.EQUITY),
    "total_liab_and_equity": None,
}

_CLOSING_GRAND_TOTALS = {
    Category.FIXED_ASSETS: "total_assets",
    Category.NON_CURRENT_LIABILITIES: "total_liabilities",
    Category.EQUITY: "total_liab_and_equity",
}

_SECTION_CLOSERS = {section: total for total, section in SECTION_TOTALS.items()}


# ==================== 资产负债表类别 ====================

def assign_categories(statement: Statement) -> List[Optional[Category]]:
    """
    按顶层顺序给每一行分配类别

    规则:
        1. 游标从流动资产开始，遇到关闭当前类别的边界行后前进
        2. 大合计行（total_assets 等）不属于任何类别，但会推进游标
        3. 当前类别的边界行缺失时，标准科目（如 ppe）可把游标推进到其类别

    Returns:
        与 statement.lines 等长的类别列表
    """
    present = {line.id for line in statement.lines}
    result: List[Optional[Category]] = []
    cursor: Optional[int] = 0

    for line in statement.lines:
        if line.id in GRAND_TOTALS:
            result.append(None)
            target = _GRAND_TOTAL_ADVANCE[line.id]
            if cursor is not None:
                cursor = None if target is None else max(cursor, target)
            continue
        if cursor is None:
            result.append(None)
            continue

        current = CATEGORY_ORDER[cursor]
        standard = STANDARD_CATEGORIES.get(line.id) or CATEGORY_SUBTOTALS.get(line.id)
        if standard is not None and _CATEGORY_CLOSERS[current] not in present:
            standard_index = CATEGORY_ORDER.index(standard)
            if standard_index > cursor:
                cursor = standard_index
                current = standard

        result.append(current)
        if line.id == _CATEGORY_CLOSERS[current]:
            cursor = cursor + 1 if cursor + 1 < len(CATEGORY_ORDER) else None

    return result


def category_of(line_id: str, statement: Statement) -> Optional[Category]:
    """资产负债表行的类别；子项继承其顶层行的类别"""
    if statement.kind is not StatementKind.BS:
        return None
    top = statement.top_level_of(line_id)
    if top is None:
        return None
    return assign_categories(statement)[statement.index_of(top.id)]


def rows_for_category(statement: Statement, category: Category,
                      include_subtotals: bool = True) -> List[Line]:
    """某类别下的顶层行（按位置）"""
    categories = assign_categories(statement)
    return [
        line for line, assigned in zip(statement.lines, categories)
        if assigned is category and (include_subtotals or not line.is_subtotal)
    ]


def insertion_index_for_category(statement: Statement, category: Category) -> int:
    """
    新行插入位置：类别末尾（小计行之前）

    Returns:
        statement.lines 中的插入下标
    """
    categories = assign_categories(statement)
    indices = [i for i, assigned in enumerate(categories) if assigned is category]

    for i in indices:
        if CATEGORY_SUBTOTALS.get(statement.lines[i].id) is category:
            return i
    if indices:
        return indices[-1] + 1

    # 类别为空：放在关闭它的大合计之前，否则放在下一个类别之前
    closing_total = _CLOSING_GRAND_TOTALS.get(category)
    if closing_total and statement.index_of(closing_total) >= 0:
        return statement.index_of(closing_total)
    target = CATEGORY_ORDER.index(category)
    for i, assigned in enumerate(categories):
        if assigned is not None and CATEGORY_ORDER.index(assigned) > target:
            return i
    return len(statement.lines)


# ==================== 现金流区段 ====================

def assign_sections(statement: Statement) -> List[Optional[Section]]:
    """
    按顶层顺序给现金流量表每一行分配区段

    operating_cf 之前为经营活动，investing_cf 之前为投资活动，
    financing_cf 之前为筹资活动，之后（如 net_change_cash）不属于任何区段
    """
    present = {line.id for line in statement.lines}
    result: List[Optional[Section]] = []
    cursor: Optional[int] = 0

    for line in statement.lines:
        if line.id == NET_CHANGE_CASH:
            result.append(None)
            cursor = None
            continue
        if cursor is None:
            result.append(None)
            continue

        current = CASH_FLOW_SECTIONS[cursor]
        standard = STANDARD_SECTIONS.get(line.id) or SECTION_TOTALS.get(line.id)
        if standard is not None and _SECTION_CLOSERS[current] not in present:
            standard_index = CASH_FLOW_SECTIONS.index(standard)
            if standard_index > cursor:
                cursor = standard_index
                current = standard

        result.append(current)
        if line.id == _SECTION_CLOSERS[current]:
            cursor = cursor + 1 if cursor + 1 < len(CASH_FLOW_SECTIONS) else None

    return result


def section_of(line_id: str, statement: Statement) -> Optional[Section]:
    """
    行所属区段

    顺序:
        1. 显式 cfs_link.section（现金流量表、利润表）
        2. 保留边界行按身份
        3. 顶层行的位置
    资产负债表的区段由类别决定
    """
    line = statement.find(line_id)
    if line is None:
        return None

    if statement.kind is StatementKind.BS:
        if line_id in GRAND_TOTALS:
            return GRAND_TOTALS[line_id]
        category = category_of(line_id, statement)
        return CATEGORY_SECTIONS.get(category) if category else None

    if line.cfs_link is not None:
        return line.cfs_link.section
    if statement.kind is not StatementKind.CFS:
        return None

    if line_id in SECTION_TOTALS:
        return SECTION_TOTALS[line_id]
    if line_id in SECTION_OPENERS:
        return SECTION_OPENERS[line_id]
    if line_id == NET_CHANGE_CASH:
        return None

    top = statement.top_level_of(line_id)
    if top is not line:
        return section_of(top.id, statement)
    return assign_sections(statement)[statement.index_of(line_id)]


def section_members(statement: Statement, section: Section) -> List[Line]:
    """区段合计需要加总的顶层行（不含区段合计本身和 net_change_cash）"""
    return [
        line for line in statement.lines
        if line.id not in SECTION_TOTALS
        and line.id != NET_CHANGE_CASH
        and section_of(line.id, statement) is section
    ]


def sign_indicator(line: Line, statement: Statement) -> Optional[str]:
    """
    现金流行的方向提示（"+" / "-"）

    金额本身已带符号，这里只用于展示
    """
    if statement.kind is not StatementKind.CFS:
        return None
    if line.cfs_link is not None:
        return "-" if line.cfs_link.impact is Impact.NEGATIVE else "+"
    if line.id in OUTFLOW_IDS:
        return "-"
    if line.kind is not LineKind.INPUT or section_of(line.id, statement) is not None:
        return "+"
    return None
