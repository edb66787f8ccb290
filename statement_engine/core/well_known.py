# -*- coding: utf-8 -*-
"""
保留 ID

公式分派、位置分类、删除保护都依赖这些固定 ID
"""

from .line import Category, Section


# 不可删除的结构行
PROTECTED_IDS = frozenset({
    "net_income",
    "operating_cf",
    "investing_cf",
    "financing_cf",
    "net_change_cash",
    "total_current_assets",
    "total_assets",
    "total_current_liabilities",
    "total_liabilities",
    "total_equity",
    "total_liab_and_equity",
    "gross_profit",
    "ebit",
    "ebt",
})

# 营业费用（EBITDA 位置窗口不可用时的回退列表）
OPEX_IDS = ("sga", "rd", "other_opex")

# ==================== 资产负债表 ====================

# 类别边界链: (边界ID, 该边界所关闭的类别)
CATEGORY_BOUNDARIES = (
    ("total_current_assets", Category.CURRENT_ASSETS),
    ("total_assets", Category.FIXED_ASSETS),
    ("total_current_liabilities", Category.CURRENT_LIABILITIES),
    ("total_liabilities", Category.NON_CURRENT_LIABILITIES),
    ("total_equity", Category.EQUITY),
)

CATEGORY_ORDER = (
    Category.CURRENT_ASSETS,
    Category.FIXED_ASSETS,
    Category.CURRENT_LIABILITIES,
    Category.NON_CURRENT_LIABILITIES,
    Category.EQUITY,
)

# 类别内小计（不切换类别）
CATEGORY_SUBTOTALS = {
    "total_current_assets": Category.CURRENT_ASSETS,
    "total_fixed_assets": Category.FIXED_ASSETS,
    "total_current_liabilities": Category.CURRENT_LIABILITIES,
    "total_non_current_liabilities": Category.NON_CURRENT_LIABILITIES,
    "total_equity": Category.EQUITY,
}

# 大合计：不属于任何类别
GRAND_TOTALS = {
    "total_assets": Section.ASSETS,
    "total_liabilities": Section.LIABILITIES,
    "total_liab_and_equity": None,
}

# 标准科目的默认类别（边界缺失时用来推进类别）
STANDARD_CATEGORIES = {
    "cash": Category.CURRENT_ASSETS,
    "ar": Category.CURRENT_ASSETS,
    "inventory": Category.CURRENT_ASSETS,
    "other_ca": Category.CURRENT_ASSETS,
    "ppe": Category.FIXED_ASSETS,
    "intangible_assets": Category.FIXED_ASSETS,
    "goodwill": Category.FIXED_ASSETS,
    "other_assets": Category.FIXED_ASSETS,
    "ap": Category.CURRENT_LIABILITIES,
    "st_debt": Category.CURRENT_LIABILITIES,
    "other_cl": Category.CURRENT_LIABILITIES,
    "lt_debt": Category.NON_CURRENT_LIABILITIES,
    "other_liab": Category.NON_CURRENT_LIABILITIES,
    "preferred_stock": Category.EQUITY,
    "common_stock": Category.EQUITY,
    "apic": Category.EQUITY,
    "treasury_stock": Category.EQUITY,
    "aoci": Category.EQUITY,
    "retained_earnings": Category.EQUITY,
    "other_equity": Category.EQUITY,
}

CATEGORY_SECTIONS = {
    Category.CURRENT_ASSETS: Section.ASSETS,
    Category.FIXED_ASSETS: Section.ASSETS,
    Category.CURRENT_LIABILITIES: Section.LIABILITIES,
    Category.NON_CURRENT_LIABILITIES: Section.LIABILITIES,
    Category.EQUITY: Section.EQUITY,
}

# 营运资本计算中排除的行
WORKING_CAPITAL_EXCLUDED = ("cash", "st_debt")

# ==================== 现金流量表 ====================

CASH_FLOW_SECTIONS = (Section.OPERATING, Section.INVESTING, Section.FINANCING)

# 区段合计行，按顺序关闭对应区段
SECTION_TOTALS = {
    "operating_cf": Section.OPERATING,
    "investing_cf": Section.INVESTING,
    "financing_cf": Section.FINANCING,
}

# 区段起始行
SECTION_OPENERS = {
    "net_income": Section.OPERATING,
    "capex": Section.INVESTING,
    "debt_issuance": Section.FINANCING,
}

NET_CHANGE_CASH = "net_change_cash"

# 标准现金流科目的默认区段（边界缺失时用来推进区段）
STANDARD_SECTIONS = {
    "net_income": Section.OPERATING,
    "danda": Section.OPERATING,
    "sbc": Section.OPERATING,
    "wc_change": Section.OPERATING,
    "other_operating": Section.OPERATING,
    "capex": Section.INVESTING,
    "acquisitions": Section.INVESTING,
    "other_investing": Section.INVESTING,
    "debt_issuance": Section.FINANCING,
    "debt_repayment": Section.FINANCING,
    "equity_issuance": Section.FINANCING,
    "dividends": Section.FINANCING,
    "share_repurchases": Section.FINANCING,
    "other_financing": Section.FINANCING,
}

# 现金流出科目（用于符号提示）
OUTFLOW_IDS = frozenset({"capex", "acquisitions", "debt_repayment", "dividends", "share_repurchases", "wc_change"})

# 由资产负债表变动计算的经营现金流行前缀
CFO_PREFIX = "cfo_"
