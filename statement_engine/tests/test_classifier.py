# -*- coding: utf-8 -*-
"""
位置分类测试

逐个验证边界行的切换:
1. 资产负债表类别 - 五个边界、大合计、边界缺失
2. 现金流区段 - 三个区段合计、net_change_cash、显式归属
3. 插入位置与方向提示
"""

import pytest

from statement_engine.classify.classifier import (
    assign_categories,
    assign_sections,
    category_of,
    insertion_index_for_category,
    rows_for_category,
    section_members,
    section_of,
    sign_indicator,
)
from statement_engine.core.line import CfsLink, Category, Impact, Line, Section, Statement, StatementKind
from statement_engine.core.templates import build_statement


def _bs(*ids):
    return Statement(StatementKind.BS, [Line(line_id, line_id) for line_id in ids])


def _cfs(*ids):
    return Statement(StatementKind.CFS, [Line(line_id, line_id) for line_id in ids])


class TestCategories:
    """资产负债表类别"""

    def test_template_categories(self):
        """测试标准模板的每个边界"""
        bs = build_statement(StatementKind.BS)

        assert category_of("cash", bs) is Category.CURRENT_ASSETS
        assert category_of("total_current_assets", bs) is Category.CURRENT_ASSETS
        assert category_of("ppe", bs) is Category.FIXED_ASSETS
        assert category_of("total_fixed_assets", bs) is Category.FIXED_ASSETS
        assert category_of("total_assets", bs) is None
        assert category_of("ap", bs) is Category.CURRENT_LIABILITIES
        assert category_of("total_current_liabilities", bs) is Category.CURRENT_LIABILITIES
        assert category_of("lt_debt", bs) is Category.NON_CURRENT_LIABILITIES
        assert category_of("total_liabilities", bs) is None
        assert category_of("retained_earnings", bs) is Category.EQUITY
        assert category_of("total_equity", bs) is Category.EQUITY
        assert category_of("total_liab_and_equity", bs) is None

    @pytest.mark.parametrize("boundary, before, after", [
        ("total_current_assets", Category.CURRENT_ASSETS, Category.FIXED_ASSETS),
        ("total_assets", Category.FIXED_ASSETS, Category.CURRENT_LIABILITIES),
        ("total_current_liabilities", Category.CURRENT_LIABILITIES, Category.NON_CURRENT_LIABILITIES),
        ("total_liabilities", Category.NON_CURRENT_LIABILITIES, Category.EQUITY),
    ])
    def test_custom_line_each_side_of_boundary(self, boundary, before, after):
        """测试自定义行在边界两侧的类别"""
        bs = build_statement(StatementKind.BS)
        index = bs.index_of(boundary)
        bs.lines.insert(index, Line("custom_before", "Custom Before"))
        bs.lines.insert(bs.index_of(boundary) + 1, Line("custom_after", "Custom After"))

        assert category_of("custom_before", bs) is before
        assert category_of("custom_after", bs) is after

    def test_after_total_equity(self):
        """测试 total_equity 之后不属于任何类别"""
        bs = build_statement(StatementKind.BS)
        bs.lines.append(Line("memo", "Memo"))
        assert category_of("memo", bs) is None

    def test_move_changes_category(self):
        """测试移动跨过边界会改变类别（不缓存）"""
        bs = build_statement(StatementKind.BS)
        ar = bs.find("ar")
        assert category_of("ar", bs) is Category.CURRENT_ASSETS

        bs.lines.remove(ar)
        bs.lines.insert(bs.index_of("total_current_assets") + 1, ar)
        assert category_of("ar", bs) is Category.FIXED_ASSETS

    def test_missing_boundary_uses_standard_ids(self):
        """测试边界缺失时标准科目推进类别"""
        bs = _bs("cash", "ar", "ppe", "custom_fa", "ap", "lt_debt", "common_stock")
        categories = dict(zip([line.id for line in bs.lines], assign_categories(bs)))

        assert categories["ar"] is Category.CURRENT_ASSETS
        assert categories["ppe"] is Category.FIXED_ASSETS
        assert categories["custom_fa"] is Category.FIXED_ASSETS
        assert categories["ap"] is Category.CURRENT_LIABILITIES
        assert categories["lt_debt"] is Category.NON_CURRENT_LIABILITIES
        assert categories["common_stock"] is Category.EQUITY

    def test_nested_line_inherits_category(self):
        """测试子项继承顶层行的类别"""
        bs = build_statement(StatementKind.BS)
        bs.find("ppe").children.append(Line("land", "Land"))
        assert category_of("land", bs) is Category.FIXED_ASSETS

    def test_rows_for_category(self):
        """测试类别成员（可排除小计）"""
        bs = build_statement(StatementKind.BS)
        ids = [line.id for line in rows_for_category(bs, Category.CURRENT_ASSETS, include_subtotals=False)]
        assert ids == ["cash", "ar", "inventory", "other_ca"]
        with_subtotal = rows_for_category(bs, Category.CURRENT_ASSETS)
        assert with_subtotal[-1].id == "total_current_assets"

    def test_not_balance_sheet(self):
        """测试非资产负债表没有类别"""
        assert category_of("rev", build_statement(StatementKind.IS)) is None


class TestInsertionIndex:
    """新行插入位置"""

    def test_before_subtotal(self):
        """测试插在类别小计之前"""
        bs = build_statement(StatementKind.BS)
        assert insertion_index_for_category(bs, Category.CURRENT_ASSETS) == bs.index_of("total_current_assets")
        assert insertion_index_for_category(bs, Category.EQUITY) == bs.index_of("total_equity")

    def test_without_subtotal(self):
        """测试没有小计时插在类别最后一行之后"""
        bs = _bs("cash", "total_current_assets", "ppe", "total_assets", "ap")
        assert insertion_index_for_category(bs, Category.FIXED_ASSETS) == 3

    def test_empty_category(self):
        """测试空类别插在关闭它的大合计之前"""
        bs = _bs("cash", "total_current_assets", "total_assets", "ap")
        assert insertion_index_for_category(bs, Category.FIXED_ASSETS) == bs.index_of("total_assets")


class TestSections:
    """现金流区段"""

    def test_template_sections(self):
        """测试标准模板每个区段"""
        cfs = build_statement(StatementKind.CFS)

        assert section_of("net_income", cfs) is Section.OPERATING
        assert section_of("wc_change", cfs) is Section.OPERATING
        assert section_of("operating_cf", cfs) is Section.OPERATING
        assert section_of("capex", cfs) is Section.INVESTING
        assert section_of("investing_cf", cfs) is Section.INVESTING
        assert section_of("dividends", cfs) is Section.FINANCING
        assert section_of("financing_cf", cfs) is Section.FINANCING
        assert section_of("net_change_cash", cfs) is None

    @pytest.mark.parametrize("boundary, before, after", [
        ("operating_cf", Section.OPERATING, Section.INVESTING),
        ("investing_cf", Section.INVESTING, Section.FINANCING),
        ("financing_cf", Section.FINANCING, None),
    ])
    def test_custom_line_each_side_of_boundary(self, boundary, before, after):
        """测试自定义行在区段合计两侧"""
        cfs = build_statement(StatementKind.CFS)
        cfs.lines.insert(cfs.index_of(boundary), Line("custom_before", "Custom Before"))
        cfs.lines.insert(cfs.index_of(boundary) + 1, Line("custom_after", "Custom After"))

        assert section_of("custom_before", cfs) is before
        assert section_of("custom_after", cfs) is after

    def test_explicit_link_wins(self):
        """测试显式 cfs_link 优先于位置"""
        cfs = build_statement(StatementKind.CFS)
        line = Line("asset_sale", "Asset Sale",
                    cfs_link=CfsLink(Section.INVESTING, Impact.POSITIVE))
        cfs.lines.insert(1, line)

        assert section_of("asset_sale", cfs) is Section.INVESTING
        assert line in section_members(cfs, Section.INVESTING)
        assert line not in section_members(cfs, Section.OPERATING)

    def test_missing_totals_use_standard_ids(self):
        """测试区段合计缺失时标准科目推进区段"""
        cfs = _cfs("net_income", "other_operating", "capex", "custom", "dividends")
        assert assign_sections(cfs) == [
            Section.OPERATING, Section.OPERATING, Section.INVESTING, Section.INVESTING, Section.FINANCING,
        ]

    def test_section_members_top_level_only(self):
        """测试区段成员只含顶层行，不含合计"""
        cfs = build_statement(StatementKind.CFS)
        cfs.find("capex").children.append(Line("maintenance", "Maintenance Capex"))
        ids = [line.id for line in section_members(cfs, Section.INVESTING)]
        assert ids == ["capex", "other_investing"]
        assert section_of("maintenance", cfs) is Section.INVESTING

    def test_balance_sheet_sections(self):
        """测试资产负债表区段由类别决定"""
        bs = build_statement(StatementKind.BS)
        assert section_of("ar", bs) is Section.ASSETS
        assert section_of("total_assets", bs) is Section.ASSETS
        assert section_of("lt_debt", bs) is Section.LIABILITIES
        assert section_of("apic", bs) is Section.EQUITY

    def test_income_statement_has_no_section(self):
        """测试利润表行没有区段"""
        assert section_of("rev", build_statement(StatementKind.IS)) is None


class TestSignIndicator:
    """方向提示"""

    def test_indicators(self):
        """测试显式方向、标准流出科目和默认"""
        cfs = build_statement(StatementKind.CFS)
        refund = Line("tax_refund", "Tax Refund", cfs_link=CfsLink(Section.OPERATING, Impact.POSITIVE))
        fee = Line("fee", "Fee", cfs_link=CfsLink(Section.FINANCING, Impact.NEGATIVE))
        cfs.lines.insert(1, refund)
        cfs.lines.insert(cfs.index_of("financing_cf"), fee)

        assert sign_indicator(cfs.find("capex"), cfs) == "-"
        assert sign_indicator(cfs.find("dividends"), cfs) == "-"
        assert sign_indicator(cfs.find("debt_issuance"), cfs) == "+"
        assert sign_indicator(refund, cfs) == "+"
        assert sign_indicator(fee, cfs) == "-"
        assert sign_indicator(Line("rev", "Revenue"), build_statement(StatementKind.IS)) is None
