# -*- coding: utf-8 -*-
"""
现金流方向推断测试
"""

from statement_engine.classify.catalogue import find_cff_item, find_cfi_item, find_term_knowledge, normalize_label
from statement_engine.classify.treatment import (
    DEFAULT_RULES,
    TreatmentResult,
    TreatmentRule,
    analyze_bs_items_for_cfo,
    infer_treatment,
    validate_item,
)
from statement_engine.core.line import Category, Impact, Line, Section, StatementKind
from statement_engine.core.templates import build_statement


class TestCatalogue:
    """词典查找"""

    def test_normalize(self):
        """测试标签归一化"""
        assert normalize_label("  PP&E -- Net ") == "pp e net"

    def test_whole_word_match(self):
        """测试整词匹配（ar 不会命中 warranty）"""
        assert find_term_knowledge("Accounts Receivable, net").term == "accounts receivable"
        assert find_term_knowledge("Warranty Reserve") is None

    def test_keyword_fallback(self):
        """测试单词前缀回退"""
        knowledge = find_term_knowledge("Prepayments and prepaid insurance")
        assert knowledge.term == "prepaid"
        assert knowledge.category is Category.CURRENT_ASSETS

    def test_investing_and_financing_items(self):
        """测试投资 / 筹资常见科目"""
        assert find_cfi_item("CapEx").impact is Impact.NEGATIVE
        assert find_cfi_item("Sale of marketable securities").impact is Impact.POSITIVE
        assert find_cff_item("Stock buyback").label == "Share Repurchases"
        assert find_cff_item("Something else") is None


class TestInferTreatment:
    """推断规则: 词典 -> 关键词 -> 默认"""

    def test_dictionary_match(self):
        """测试词典命中"""
        result = infer_treatment("Capital Expenditures", Section.INVESTING)
        assert result.impact is Impact.NEGATIVE
        assert result.confident
        assert result.source == "dictionary"
        assert result.matched_label == "Capital Expenditures (CapEx)"

    def test_operating_dictionary(self):
        """测试经营活动术语"""
        gain = infer_treatment("Gain on sale of assets", Section.OPERATING)
        assert gain.impact is Impact.NEGATIVE
        assert gain.source == "dictionary"

        impairment = infer_treatment("Impairment of goodwill", Section.OPERATING)
        assert impairment.impact is Impact.POSITIVE

    def test_keyword_match(self):
        """测试关键词命中"""
        result = infer_treatment("Proceeds from sale of equipment", Section.INVESTING)
        assert result.impact is Impact.POSITIVE
        assert result.confident
        assert result.source == "keyword"
        assert "proceeds" in result.description

    def test_keywords_are_section_specific(self):
        """测试同一关键词在不同区段方向不同"""
        assert infer_treatment("Insurance refund", Section.OPERATING).impact is Impact.POSITIVE
        assert infer_treatment("Loan repayment", Section.FINANCING).impact is Impact.NEGATIVE

    def test_fallback_signs(self):
        """测试默认方向：经营 +，投资 -，筹资 +"""
        operating = infer_treatment("Unclassified adjustment", Section.OPERATING)
        investing = infer_treatment("Miscellaneous", Section.INVESTING)
        financing = infer_treatment("Mystery item", Section.FINANCING)

        assert operating.impact is Impact.POSITIVE
        assert investing.impact is Impact.NEGATIVE
        assert financing.impact is Impact.POSITIVE
        assert not operating.confident and not investing.confident and not financing.confident
        assert financing.source == "fallback"

    def test_fallback_suggests_other_section(self):
        """测试未识别条目给出更合适的区段"""
        result = infer_treatment("Capital equipment purchase", Section.FINANCING)
        assert not result.confident
        assert result.suggested_section is Section.INVESTING

    def test_custom_rules(self):
        """测试可替换的规则列表"""
        always_negative = TreatmentRule(
            "always_negative",
            lambda label, section: "fee" in label.lower(),
            lambda label, section: TreatmentResult(Impact.NEGATIVE, "fees", True, "custom"),
        )
        result = infer_treatment("Bank fee", Section.OPERATING, rules=(always_negative,) + DEFAULT_RULES)
        assert result.source == "custom"
        assert infer_treatment("Bank charge", Section.OPERATING,
                               rules=(always_negative,) + DEFAULT_RULES).source == "fallback"

    def test_to_cfs_link(self):
        """测试推断结果写入 cfs_link"""
        link = infer_treatment("Dividends paid", Section.FINANCING).to_cfs_link(Section.FINANCING)
        assert link.section is Section.FINANCING
        assert link.impact is Impact.NEGATIVE


class TestValidateItem:
    """条目校验"""

    def test_own_section_keywords(self):
        """测试本区段关键词为有效"""
        assert validate_item("Other debt costs", Section.FINANCING).is_valid

    def test_other_section_keywords(self):
        """测试其他区段关键词给出建议"""
        validation = validate_item("Dividend received from JV", Section.OPERATING)
        assert not validation.is_valid
        assert validation.suggested_section is Section.FINANCING


class TestAnalyzeBsItems:
    """资产负债表 -> 经营现金流建议"""

    def test_template_only_reviews_other_liabilities(self):
        """测试标准模板只建议复核 other_liab"""
        suggestions = analyze_bs_items_for_cfo(build_statement(StatementKind.BS))
        assert [(s.line_id, s.treatment) for s in suggestions] == [("other_liab", "suggest_review")]

    def test_operating_lease_auto_added(self):
        """测试经营租赁负债自动加入"""
        bs = build_statement(StatementKind.BS)
        bs.lines.insert(bs.index_of("total_non_current_liabilities"),
                        Line("lease_liab", "Operating Lease Liabilities"))
        bs.lines.insert(bs.index_of("total_non_current_liabilities"),
                        Line("bonds", "Senior Notes"))

        by_id = {s.line_id: s for s in analyze_bs_items_for_cfo(bs)}
        assert "bonds" not in by_id
        lease = by_id["lease_liab"]
        assert lease.treatment == "auto_add"
        assert lease.impact is Impact.NEGATIVE

        line = lease.to_line()
        assert line.id == "cfo_lease_liab"
        assert line.cfs_link.section is Section.OPERATING

    def test_current_items_ignored(self):
        """测试流动项目由营运资本处理，不在建议中"""
        bs = build_statement(StatementKind.BS)
        bs.lines.insert(bs.index_of("total_current_liabilities"),
                        Line("deferred_rev", "Deferred Revenue"))
        assert all(s.line_id != "deferred_rev" for s in analyze_bs_items_for_cfo(bs))
