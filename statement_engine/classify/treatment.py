# -*- coding: utf-8 -*-
"""
现金流处理推断

给用户自定义的现金流行推断方向（流入/流出），只在创建时运行一次，
结果写入 Line.cfs_link，之后求值和公式编译都不再调用。

规则是有序的 (predicate, verdict) 列表，第一个命中的规则生效:
    1. 区段词典（精确 / 整词包含匹配）
    2. 区段关键词（按顺序扫描小写标签）
    3. 区段默认方向（低置信度）

使用方法:
    result = infer_treatment("Proceeds from sale of equipment", Section.INVESTING)
    result.impact       # Impact.POSITIVE
    result.confident    # True
    line.cfs_link = result.to_cfs_link(Section.INVESTING)
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ..core.line import CfsLink, Category, Impact, Line, LineKind, Section, Statement
from ..core.well_known import CFO_PREFIX
from .catalogue import (
    find_cff_item,
    find_cfi_item,
    find_term_knowledge,
    normalize_label,
)
from .classifier import category_of


@dataclass
class TreatmentResult:
    """推断结果"""
    impact: Impact
    description: str
    confident: bool
    source: str                                   # dictionary / keyword / fallback
    matched_label: Optional[str] = None
    suggested_section: Optional[Section] = None

    def to_cfs_link(self, section: Section) -> CfsLink:
        return CfsLink(section=section, impact=self.impact, description=self.description)

    def to_dict(self):
        return {
            "impact": self.impact.value,
            "description": self.description,
            "confident": self.confident,
            "source": self.source,
            "matched_label": self.matched_label,
            "suggested_section": self.suggested_section.value if self.suggested_section else None,
        }


@dataclass(frozen=True)
class TreatmentRule:
    """一条推断规则：predicate 命中时由 verdict 给出结果"""
    name: str
    predicate: Callable[[str, Section], bool]
    verdict: Callable[[str, Section], TreatmentResult]


# ==================== 关键词 ====================

_POS = Impact.POSITIVE
_NEG = Impact.NEGATIVE

# 区段关键词：按顺序扫描，第一个命中生效
SECTION_KEYWORDS = {
    Section.OPERATING: [
        ("refund", _POS),
        ("proceeds", _POS),
        ("add back", _POS),
        ("non cash", _POS),
        ("impairment", _POS),
        ("write down", _POS),
        ("write off", _POS),
        ("depreciation", _POS),
        ("amortization", _POS),
        ("loss", _POS),
        ("gain", _NEG),
        ("repayment", _NEG),
        ("payment", _NEG),
        ("paid", _NEG),
        ("expense", _NEG),
    ],
    Section.INVESTING: [
        ("proceeds", _POS),
        ("sale", _POS),
        ("disposal", _POS),
        ("divest", _POS),
        ("maturit", _POS),
        ("refund", _POS),
        ("purchase", _NEG),
        ("acquisition", _NEG),
        ("investment in", _NEG),
        ("capex", _NEG),
        ("expenditure", _NEG),
        ("payment", _NEG),
        ("loan to", _NEG),
    ],
    Section.FINANCING: [
        ("repayment", _NEG),
        ("repurchase", _NEG),
        ("buyback", _NEG),
        ("dividend", _NEG),
        ("distribution", _NEG),
        ("redemption", _NEG),
        ("payment", _NEG),
        ("paid", _NEG),
        ("proceeds", _POS),
        ("issuance", _POS),
        ("borrowing", _POS),
        ("contribution", _POS),
        ("refund", _POS),
    ],
}

# 未命中时的默认方向
FALLBACK_IMPACTS = {
    Section.OPERATING: _POS,
    Section.INVESTING: _NEG,
    Section.FINANCING: _POS,
}

# 用于判断条目是否更适合其他区段
VALIDATION_KEYWORDS = {
    Section.OPERATING: ("operating", "working capital", "depreciation", "amortization",
                        "sbc", "compensation"),
    Section.INVESTING: ("capex", "capital", "expenditure", "acquisition", "disposal",
                        "divestiture", "investment", "security", "ppe", "property", "plant",
                        "equipment", "intangible", "asset", "sale", "purchase", "proceeds",
                        "affiliate"),
    Section.FINANCING: ("debt", "loan", "borrowing", "repayment", "equity", "dividend",
                        "share", "stock", "repurchase", "buyback", "issuance", "proceeds",
                        "financing", "lease", "option", "contribution", "distribution",
                        "non controlling", "minority"),
}

# 其他区段提示时使用的关键词（不含两个区段都出现的通用词）
_SUGGESTION_KEYWORDS = {
    Section.OPERATING: VALIDATION_KEYWORDS[Section.OPERATING],
    Section.INVESTING: ("capex", "capital", "expenditure", "acquisition", "disposal",
                        "investment", "security", "ppe"),
    Section.FINANCING: ("debt", "loan", "equity", "dividend", "financing", "repayment",
                        "issuance"),
}


def _section_name(section: Section) -> str:
    return {
        Section.OPERATING: "Operating",
        Section.INVESTING: "Investing",
        Section.FINANCING: "Financing",
    }.get(section, section.value)


def _keyword_hit(label: str, section: Section) -> Optional[Tuple[str, Impact]]:
    normalized = normalize_label(label)
    for keyword, impact in SECTION_KEYWORDS.get(section, []):
        if keyword in normalized:
            return keyword, impact
    return None


# ==================== 词典 ====================

def lookup_dictionary(label: str, section: Section) -> Optional[Tuple[str, Impact, str]]:
    """
    区段词典查找

    Returns:
        (匹配到的标准名称, 方向, 说明)，未命中返回 None
    """
    if section is Section.INVESTING:
        item = find_cfi_item(label)
        return (item.label, item.impact, item.description) if item else None
    if section is Section.FINANCING:
        item = find_cff_item(label)
        return (item.label, item.impact, item.description) if item else None

    knowledge = find_term_knowledge(label)
    # 经营活动只接受归属经营活动、方向明确的术语
    if knowledge is None or knowledge.section is not Section.OPERATING or knowledge.impact is None:
        return None
    return knowledge.term, knowledge.impact, knowledge.description


def _dictionary_verdict(label: str, section: Section) -> TreatmentResult:
    matched, impact, description = lookup_dictionary(label, section)
    return TreatmentResult(impact, description, True, "dictionary", matched_label=matched)


def _keyword_verdict(label: str, section: Section) -> TreatmentResult:
    keyword, impact = _keyword_hit(label, section)
    direction = "inflow" if impact is Impact.POSITIVE else "outflow"
    return TreatmentResult(
        impact,
        f'Label contains "{keyword}", treated as a cash {direction} in {_section_name(section)} CF.',
        True,
        "keyword",
    )


def _fallback_verdict(label: str, section: Section) -> TreatmentResult:
    impact = FALLBACK_IMPACTS.get(section, Impact.POSITIVE)
    direction = "inflow" if impact is Impact.POSITIVE else "outflow"
    return TreatmentResult(
        impact,
        f"Unrecognized item; defaulted to a cash {direction} in {_section_name(section)} CF. "
        "Please review.",
        False,
        "fallback",
    )


DEFAULT_RULES: Tuple[TreatmentRule, ...] = (
    TreatmentRule("dictionary", lambda label, section: lookup_dictionary(label, section) is not None,
                  _dictionary_verdict),
    TreatmentRule("keyword", lambda label, section: _keyword_hit(label, section) is not None,
                  _keyword_verdict),
    TreatmentRule("fallback", lambda label, section: True, _fallback_verdict),
)


def infer_treatment(label: str, section: Section,
                    rules: Sequence[TreatmentRule] = DEFAULT_RULES) -> TreatmentResult:
    """
    推断现金流方向

    Args:
        label: 行标签
        section: 目标区段（经营/投资/筹资）
        rules: 有序规则，默认 词典 -> 关键词 -> 默认方向

    Returns:
        TreatmentResult；未识别的条目也会被接受，confident=False
    """
    result = None
    for rule in rules:
        if rule.predicate(label, section):
            result = rule.verdict(label, section)
            break
    if result is None:
        result = _fallback_verdict(label, section)
    if not result.confident:
        result.suggested_section = validate_item(label, section).suggested_section
    return result


# ==================== 校验 ====================

@dataclass
class ItemValidation:
    """条目是否适合放在目标区段"""
    is_valid: bool
    matched_label: Optional[str] = None
    suggestion: Optional[str] = None
    reason: Optional[str] = None
    suggested_section: Optional[Section] = None


def validate_item(label: str, section: Section) -> ItemValidation:
    """
    校验自定义条目

    词典命中或包含本区段关键词为有效；
    包含其他区段关键词时给出 suggested_section
    """
    matched = lookup_dictionary(label, section)
    if matched:
        return ItemValidation(
            True, matched_label=matched[0],
            reason=f'Recognized as "{matched[0]}". This is a standard {_section_name(section)} item.',
        )

    normalized = normalize_label(label)
    own_keywords = VALIDATION_KEYWORDS.get(section, ())
    if any(keyword in normalized for keyword in own_keywords):
        return ItemValidation(
            True,
            reason=f"Contains {_section_name(section).lower()}-related keywords. Please verify it "
                   "is not better suited for another section.",
        )

    for other in (Section.OPERATING, Section.INVESTING, Section.FINANCING):
        if other is section:
            continue
        if any(keyword in normalized for keyword in _SUGGESTION_KEYWORDS[other]):
            return ItemValidation(
                False,
                suggestion=f"Consider adding this to {_section_name(other)} Activities instead.",
                reason=f"This item contains {_section_name(other).lower()}-related keywords.",
                suggested_section=other,
            )

    return ItemValidation(
        False,
        suggestion=f"This term is not recognized as a standard {_section_name(section)} item. "
                   f"Please verify it belongs in {_section_name(section)} Activities.",
        reason="Unrecognized term.",
    )


# ==================== 资产负债表 -> 经营现金流 ====================

_CFO_EXCLUDE = [re.compile(p, re.I) for p in (
    r"debt", r"loan", r"note", r"bond", r"credit facility", r"revolver", r"capex",
    r"capital expenditure", r"ppe", r"property.*plant", r"equipment", r"intangible", r"goodwill",
)]

_CFO_INCLUDE = [re.compile(p, re.I) for p in (
    r"operating.*lease", r"lease.*liabilit", r"deferred.*revenue", r"deferred.*tax",
    r"accrued.*expense", r"accrued.*liabilit", r"warranty", r"pension", r"other.*long.*term",
    r"other.*liabilit",
)]

# 营运资本已覆盖的标准科目
_WORKING_CAPITAL_IDS = ("cash", "ar", "inventory", "ap", "st_debt")


@dataclass
class CfoSuggestion:
    """建议加入经营现金流的资产负债表科目"""
    line_id: str
    label: str
    treatment: str                      # auto_add / suggest_review
    description: str
    impact: Impact
    method: str = "change"
    is_item_id: Optional[str] = None

    @property
    def cfs_line_id(self) -> str:
        return f"{CFO_PREFIX}{self.line_id}"

    def to_line(self) -> Line:
        """生成对应的现金流行（值由资产负债表变动计算）"""
        return Line(
            id=self.cfs_line_id,
            label=f"Change in {self.label}",
            kind=LineKind.CALCULATED,
            cfs_link=CfsLink(Section.OPERATING, self.impact, self.description),
        )


def analyze_bs_items_for_cfo(balance_sheet: Statement) -> List[CfoSuggestion]:
    """
    分析资产负债表的非流动科目，找出应进入经营现金流的项目

    只看固定资产和非流动负债类别，排除债务和资本开支相关科目
    """
    suggestions: List[CfoSuggestion] = []
    for line in balance_sheet.lines:
        if line.is_subtotal or line.id in _WORKING_CAPITAL_IDS:
            continue
        category = category_of(line.id, balance_sheet)
        if category not in (Category.FIXED_ASSETS, Category.NON_CURRENT_LIABILITIES):
            continue

        label = line.label.lower()
        if any(p.search(label) or p.search(line.id) for p in _CFO_EXCLUDE):
            continue
        include = any(p.search(label) or p.search(line.id) for p in _CFO_INCLUDE)
        knowledge = find_term_knowledge(line.label)

        treatment, impact, description = "suggest_review", Impact.NEUTRAL, ""
        if re.search(r"operating.*lease|lease.*liabilit", label):
            treatment, impact = "auto_add", Impact.NEGATIVE
            description = ("Operating lease liabilities are operating items. Increases are a cash "
                           "obligation (negative), decreases positive.")
        elif re.search(r"deferred.*revenue", label):
            treatment, impact = "auto_add", Impact.POSITIVE
            description = "Deferred revenue increases are cash received ahead of recognition."
        elif re.search(r"deferred.*tax", label):
            treatment = "auto_add"
            description = "Deferred taxes are non-cash operating adjustments."
        elif re.search(r"other.*long.*term|other.*liabilit", label):
            description = ("Other long-term liabilities may hold operating items (warranties, "
                           "pensions) or financing items. Review the treatment.")
        elif knowledge is not None and knowledge.section is Section.OPERATING:
            treatment = "auto_add"
            impact = knowledge.impact or Impact.NEUTRAL
            description = knowledge.description
        elif include:
            description = "This item appears operating-related. Review to confirm."

        if treatment == "auto_add" or include:
            suggestions.append(CfoSuggestion(
                line_id=line.id,
                label=line.label,
                treatment=treatment,
                description=description,
                impact=impact,
                is_item_id=knowledge.is_item_id if knowledge else None,
            ))
    return suggestions
