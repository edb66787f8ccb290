# -*- coding: utf-8 -*-
"""
现金流科目词典

- 经营活动术语知识库（含资产负债表科目的现金流去向）
- 投资活动常见科目
- 筹资活动常见科目

查找规则：先精确匹配，再按整词包含匹配（标签包含词条或词条包含标签）
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..core.line import Category, Impact, Section


@dataclass(frozen=True)
class TermKnowledge:
    """
    术语知识

    impact 为 None 表示金额由资产负债表变动计算（营运资本等）
    """
    term: str
    category: Optional[Category]
    section: Optional[Section]
    cfs_item_id: str
    impact: Optional[Impact]
    description: str
    is_item_id: Optional[str] = None


@dataclass(frozen=True)
class CatalogueItem:
    """投资/筹资活动常见科目"""
    label: str
    section: Section
    impact: Impact
    description: str
    common_names: Tuple[str, ...] = ()
    category: str = ""


def normalize_label(label: str) -> str:
    """小写，非字母数字替换为空格，合并空白"""
    text = re.sub(r"[^a-z0-9\s]", " ", (label or "").lower())
    return re.sub(r"\s+", " ", text).strip()


def _contains_phrase(text: str, phrase: str) -> bool:
    """整词包含（避免 "ar" 命中 "warranty"）"""
    return bool(phrase) and f" {phrase} " in f" {text} "


def _loose_match(normalized: str, candidate: str) -> bool:
    return _contains_phrase(normalized, candidate) or _contains_phrase(candidate, normalized)


_OP = Section.OPERATING
_INV = Section.INVESTING
_FIN = Section.FINANCING
_POS = Impact.POSITIVE
_NEG = Impact.NEGATIVE
_NEU = Impact.NEUTRAL


# ==================== 经营活动术语 ====================

_TERMS: List[TermKnowledge] = [
    # 非现金加回
    TermKnowledge("depreciation and amortization", None, _OP, "danda", _POS,
                  "D&A is a non-cash expense added back in Operating CF.", "danda"),
    TermKnowledge("depreciation", None, _OP, "danda", _POS,
                  "Depreciation is a non-cash expense added back in Operating CF.", "danda"),
    TermKnowledge("amortization", None, _OP, "danda", _POS,
                  "Amortization is a non-cash expense added back in Operating CF.", "danda"),
    TermKnowledge("stock based compensation", None, _OP, "sbc", _POS,
                  "Stock-based compensation is non-cash and added back in Operating CF."),
    TermKnowledge("share based compensation", None, _OP, "sbc", _POS,
                  "Share-based compensation is non-cash and added back in Operating CF."),
    TermKnowledge("impairment", None, _OP, "other_operating", _POS,
                  "Impairment charges are non-cash and added back in Operating CF."),
    TermKnowledge("loss on sale", None, _OP, "other_operating", _POS,
                  "Losses on asset sales are non-cash and added back; proceeds go to Investing CF."),
    TermKnowledge("gain on sale", None, _OP, "other_operating", _NEG,
                  "Gains on asset sales are removed from Operating CF; proceeds go to Investing CF."),
    # 流动资产
    TermKnowledge("cash and cash equivalents", Category.CURRENT_ASSETS, _OP, "wc_change", None,
                  "Cash is the ending balance from the Cash Flow Statement."),
    TermKnowledge("marketable securities", Category.CURRENT_ASSETS, _INV, "other_investing", None,
                  "Purchases and sales of marketable securities flow to Investing CF."),
    TermKnowledge("short term investments", Category.CURRENT_ASSETS, _INV, "other_investing", None,
                  "Short-term investment activity flows to Investing CF."),
    TermKnowledge("accounts receivable", Category.CURRENT_ASSETS, _OP, "wc_change", _NEG,
                  "Increases in receivables use cash (Working Capital in Operating CF)."),
    TermKnowledge("ar", Category.CURRENT_ASSETS, _OP, "wc_change", _NEG,
                  "Increases in receivables use cash (Working Capital in Operating CF)."),
    TermKnowledge("inventory", Category.CURRENT_ASSETS, _OP, "wc_change", _NEG,
                  "Increases in inventory use cash (Working Capital in Operating CF)."),
    TermKnowledge("prepaid expenses", Category.CURRENT_ASSETS, _OP, "wc_change", _NEG,
                  "Increases in prepaid expenses use cash (Working Capital in Operating CF)."),
    TermKnowledge("other current assets", Category.CURRENT_ASSETS, _OP, "wc_change", _NEG,
                  "Changes in other current assets affect Working Capital in Operating CF."),
    # 非流动资产
    TermKnowledge("property plant and equipment", Category.FIXED_ASSETS, _INV, "capex", _NEG,
                  "PP&E additions are Capital Expenditures (Investing CF outflow).", "danda"),
    TermKnowledge("ppe", Category.FIXED_ASSETS, _INV, "capex", _NEG,
                  "PP&E additions are Capital Expenditures (Investing CF outflow).", "danda"),
    TermKnowledge("intangible assets", Category.FIXED_ASSETS, _INV, "capex", _NEG,
                  "Intangible asset additions flow to Investing CF.", "danda"),
    TermKnowledge("goodwill", Category.FIXED_ASSETS, _INV, "acquisitions", None,
                  "Goodwill arises from acquisitions, which flow to Investing CF."),
    TermKnowledge("long term investments", Category.FIXED_ASSETS, _INV, "other_investing", None,
                  "Long-term investment activity flows to Investing CF."),
    # 流动负债
    TermKnowledge("accounts payable", Category.CURRENT_LIABILITIES, _OP, "wc_change", _POS,
                  "Increases in payables provide cash (Working Capital in Operating CF)."),
    TermKnowledge("ap", Category.CURRENT_LIABILITIES, _OP, "wc_change", _POS,
                  "Increases in payables provide cash (Working Capital in Operating CF)."),
    TermKnowledge("accrued expenses", Category.CURRENT_LIABILITIES, _OP, "wc_change", _POS,
                  "Increases in accrued expenses provide cash (Working Capital in Operating CF)."),
    TermKnowledge("accrued liabilities", Category.CURRENT_LIABILITIES, _OP, "wc_change", _POS,
                  "Increases in accrued liabilities provide cash (Working Capital in Operating CF)."),
    TermKnowledge("deferred revenue", Category.CURRENT_LIABILITIES, _OP, "wc_change", _POS,
                  "Increases in deferred revenue provide cash (cash received before recognition)."),
    TermKnowledge("unearned revenue", Category.CURRENT_LIABILITIES, _OP, "wc_change", _POS,
                  "Increases in unearned revenue provide cash (cash received before recognition)."),
    TermKnowledge("short term debt", Category.CURRENT_LIABILITIES, _FIN, "debt_issuance", None,
                  "Short-term borrowings and repayments flow to Financing CF."),
    # 非流动负债
    TermKnowledge("long term debt", Category.NON_CURRENT_LIABILITIES, _FIN, "debt_issuance", None,
                  "Debt issuance and repayment flow to Financing CF.", "interest_expense"),
    TermKnowledge("deferred tax liabilities", Category.NON_CURRENT_LIABILITIES, _OP, "other_operating", _NEU,
                  "Deferred taxes are non-cash adjustments in Operating CF.", "tax"),
    TermKnowledge("pension liabilities", Category.NON_CURRENT_LIABILITIES, _OP, "other_operating", _POS,
                  "Pension expense in excess of contributions is added back in Operating CF."),
    TermKnowledge("operating leases", Category.NON_CURRENT_LIABILITIES, _OP, "other_operating", _NEG,
                  "Operating lease liabilities are operating items; changes flow to Operating CF.",
                  "other_opex"),
    TermKnowledge("lease liabilities", Category.NON_CURRENT_LIABILITIES, _OP, "other_operating", _NEG,
                  "Lease liabilities are operating items; changes flow to Operating CF.", "other_opex"),
    TermKnowledge("finance leases", Category.NON_CURRENT_LIABILITIES, _FIN, "other_financing", _NEG,
                  "Finance lease principal repayments flow to Financing CF.", "danda"),
    # 权益
    TermKnowledge("common stock", Category.EQUITY, _FIN, "equity_issuance", _POS,
                  "New share issuances flow to Financing CF as inflows."),
    TermKnowledge("additional paid in capital", Category.EQUITY, _FIN, "equity_issuance", _POS,
                  "Increases in APIC flow to Financing CF as inflows."),
    TermKnowledge("apic", Category.EQUITY, _FIN, "equity_issuance", _POS,
                  "Increases in APIC flow to Financing CF as inflows."),
    TermKnowledge("retained earnings", Category.EQUITY, _OP, "net_income", None,
                  "Retained earnings roll forward with net income less dividends.", "net_income"),
    TermKnowledge("treasury stock", Category.EQUITY, _FIN, "share_repurchases", _NEG,
                  "Share repurchases flow to Financing CF as outflows."),
    TermKnowledge("accumulated other comprehensive income", Category.EQUITY, None, "", _NEU,
                  "AOCI changes are non-cash and do not flow through the Cash Flow Statement."),
    TermKnowledge("aoci", Category.EQUITY, None, "", _NEU,
                  "AOCI changes are non-cash and do not flow through the Cash Flow Statement."),
]

FINANCIAL_TERMS: Dict[str, TermKnowledge] = {item.term: item for item in _TERMS}

# 单词级回退（按顺序，第一个命中生效）
_TERM_KEYWORDS: List[TermKnowledge] = [
    TermKnowledge("marketable", Category.CURRENT_ASSETS, _INV, "other_investing", None,
                  "Marketable securities changes flow to Investing CF."),
    TermKnowledge("securities", Category.CURRENT_ASSETS, _INV, "other_investing", None,
                  "Securities changes flow to Investing CF."),
    TermKnowledge("prepaid", Category.CURRENT_ASSETS, _OP, "wc_change", _NEG,
                  "Prepaid items affect Working Capital in Operating CF."),
    TermKnowledge("accrued", Category.CURRENT_LIABILITIES, _OP, "wc_change", _POS,
                  "Accrued items affect Working Capital in Operating CF."),
    TermKnowledge("deferred", Category.CURRENT_LIABILITIES, _OP, "wc_change", None,
                  "Deferred items affect Working Capital in Operating CF."),
    TermKnowledge("lease", Category.NON_CURRENT_LIABILITIES, _OP, "other_operating", _NEG,
                  "Lease items are operating; lease expense appears in operating expenses.",
                  "other_opex"),
]


def find_term_knowledge(label: str) -> Optional[TermKnowledge]:
    """
    术语知识查找

    Args:
        label: 行标签

    Returns:
        命中的 TermKnowledge，未命中返回 None
    """
    normalized = normalize_label(label)
    if not normalized:
        return None
    if normalized in FINANCIAL_TERMS:
        return FINANCIAL_TERMS[normalized]
    for term, knowledge in FINANCIAL_TERMS.items():
        if _loose_match(normalized, term):
            return knowledge
    words = normalized.split()
    for knowledge in _TERM_KEYWORDS:
        if any(word.startswith(knowledge.term) for word in words):
            return knowledge
    return None


# ==================== 投资活动 ====================

COMMON_CFI_ITEMS: List[CatalogueItem] = [
    CatalogueItem("Capital Expenditures (CapEx)", _INV, _NEG,
                  "Cash used for purchases of PP&E. Typically a cash outflow.",
                  ("capex", "capital expenditures", "capital spending", "pp&e purchases",
                   "property plant equipment"), "capex"),
    CatalogueItem("Acquisitions", _INV, _NEG,
                  "Cash used for business acquisitions. Typically a cash outflow.",
                  ("acquisitions", "business acquisitions", "m&a", "acquisition of businesses"),
                  "acquisitions"),
    CatalogueItem("Disposals / Divestitures", _INV, _POS,
                  "Cash received from selling businesses or assets. Typically a cash inflow.",
                  ("disposals", "divestitures", "asset sales", "sale of business"), "disposals"),
    CatalogueItem("Purchase of Marketable Securities", _INV, _NEG,
                  "Cash used to buy short-term investments.",
                  ("purchase of marketable securities", "purchases of investments",
                   "purchase of short term investments"), "securities"),
    CatalogueItem("Sale of Marketable Securities", _INV, _POS,
                  "Cash received from selling short-term investments.",
                  ("sale of marketable securities", "sales of investments",
                   "sale of short term investments"), "securities"),
    CatalogueItem("Maturities of Marketable Securities", _INV, _POS,
                  "Cash received when securities mature.",
                  ("maturities of marketable securities", "maturities of investments"), "securities"),
    CatalogueItem("Purchase of Intangible Assets", _INV, _NEG,
                  "Cash used to acquire intangible assets.",
                  ("purchase of intangible assets", "intangible asset purchases"), "intangibles"),
    CatalogueItem("Proceeds from Sale of PP&E", _INV, _POS,
                  "Cash received from selling fixed assets.",
                  ("proceeds from sale of ppe", "sale of property plant and equipment",
                   "proceeds from asset sales"), "disposals"),
    CatalogueItem("Investments in Affiliates", _INV, _NEG,
                  "Cash invested in equity-method affiliates.",
                  ("investments in affiliates", "investment in joint venture"), "affiliates"),
    CatalogueItem("Capitalized Software Development Costs", _INV, _NEG,
                  "Software development costs capitalized as intangible assets.",
                  ("capitalized software", "capitalized software development costs"), "capex"),
    CatalogueItem("Other Investing Activities", _INV, _NEG,
                  "Other investing cash flows. Sign varies; outflow by default.",
                  ("other investing", "other investing activities"), "other"),
]

# ==================== 筹资活动 ====================

COMMON_CFF_ITEMS: List[CatalogueItem] = [
    CatalogueItem("Debt Issuance", _FIN, _POS,
                  "Cash received from issuing new debt. Typically a cash inflow.",
                  ("debt issuance", "debt issued", "proceeds from debt", "borrowings",
                   "new debt", "debt proceeds"), "debt"),
    CatalogueItem("Debt Repayment", _FIN, _NEG,
                  "Cash used to repay debt principal. Typically a cash outflow.",
                  ("debt repayment", "debt repaid", "repayment of debt", "principal repayment",
                   "debt paydown"), "debt"),
    CatalogueItem("Equity Issuance", _FIN, _POS,
                  "Cash received from issuing new shares. Typically a cash inflow.",
                  ("equity issuance", "stock issuance", "issuance of common stock",
                   "proceeds from equity"), "equity"),
    CatalogueItem("Dividends Paid", _FIN, _NEG,
                  "Cash paid to shareholders as dividends. Typically a cash outflow.",
                  ("dividends", "dividends paid", "cash dividends"), "dividends"),
    CatalogueItem("Share Repurchases", _FIN, _NEG,
                  "Cash used to buy back shares. Typically a cash outflow.",
                  ("share repurchases", "stock buyback", "share buyback", "treasury stock purchases",
                   "repurchase of common stock"), "equity"),
    CatalogueItem("Proceeds from Exercise of Stock Options", _FIN, _POS,
                  "Cash received when employees exercise options.",
                  ("stock option exercises", "exercise of stock options"), "equity"),
    CatalogueItem("Repayment of Finance Lease Obligations", _FIN, _NEG,
                  "Principal payments on finance leases.",
                  ("finance lease payments", "repayment of finance lease obligations",
                   "capital lease payments"), "leases"),
    CatalogueItem("Distributions to Non-Controlling Interests", _FIN, _NEG,
                  "Cash distributed to minority holders.",
                  ("distributions to non controlling interests", "distributions to minority interests"),
                  "nci"),
    CatalogueItem("Contributions from Non-Controlling Interests", _FIN, _POS,
                  "Cash contributed by minority holders.",
                  ("contributions from non controlling interests",
                   "contributions from minority interests"), "nci"),
    CatalogueItem("Other Financing Activities", _FIN, _NEG,
                  "Other financing cash flows. Sign varies; outflow by default.",
                  ("other financing", "other financing activities"), "other"),
]


def _find_catalogue_item(label: str, items: List[CatalogueItem]) -> Optional[CatalogueItem]:
    normalized = normalize_label(label)
    if not normalized:
        return None
    for item in items:
        if normalize_label(item.label) == normalized:
            return item
        names = [normalize_label(name) for name in item.common_names]
        if normalized in names:
            return item
        if any(_loose_match(normalized, name) for name in names):
            return item
    return None


def find_cfi_item(label: str) -> Optional[CatalogueItem]:
    """投资活动科目查找"""
    return _find_catalogue_item(label, COMMON_CFI_ITEMS)


def find_cff_item(label: str) -> Optional[CatalogueItem]:
    """筹资活动科目查找"""
    return _find_catalogue_item(label, COMMON_CFF_ITEMS)
