# -*- coding: utf-8 -*-
"""
资产负债表平衡检查测试
"""

import pytest

from statement_engine.core.line import Category, Line, Statement, StatementKind
from statement_engine.engine.balance import check_balance
from statement_engine.engine.editor import ModelEditor
from conftest import PERIODS


class TestCheckBalance:
    """平衡检查"""

    def test_sample_model_balanced(self, sample_model):
        """测试样例模型每期平衡"""
        results = check_balance(sample_model.balance_sheet, PERIODS)

        assert [r.period for r in results] == PERIODS
        assert all(r.balanced for r in results)
        assert results[0].assets == 1500
        assert results[0].liab_equity == 1500
        assert results[-1].assets == 1550
        assert results[-1].difference == 0

    def test_perturbed_line(self, editor):
        """测试修改一行后该期不平衡，差额等于修改量"""
        editor.set_value("BS", "cash", "2024A", 130)
        by_period = {r.period: r for r in editor.check_balance()}

        assert by_period["2023A"].balanced
        assert not by_period["2024A"].balanced
        assert by_period["2024A"].difference == pytest.approx(30)
        assert by_period["2025E"].balanced

    def test_within_tolerance(self, editor):
        """测试容差内的差额视为平衡"""
        editor.set_value("BS", "cash", "2024A", 100.004)
        result = {r.period: r for r in editor.check_balance()}["2024A"]
        assert result.balanced
        assert result.to_dict()["difference"] == pytest.approx(0.004)

    def test_report_only(self, editor):
        """测试检查不修改模型"""
        editor.set_value("BS", "cash", "2024A", 130)
        editor.check_balance()
        assert editor.model.balance_sheet.find("cash").value("2024A") == 130

    def test_missing_totals_sum_members(self, sample_model):
        """测试合计行缺失时直接加总类别成员"""
        bs = sample_model.balance_sheet
        lines = [line for line in bs.lines if line.id not in ("total_assets", "total_liab_and_equity")]
        result = check_balance(Statement(StatementKind.BS, lines), ["2024A"])[0]

        assert result.assets == 1500
        assert result.liab_equity == 1500
        assert result.balanced

    def test_custom_line_counts_in_category(self, sample_model):
        """测试类别内新增的行计入合计，破坏平衡"""
        editor = ModelEditor(sample_model)
        editor.add_line("BS", Line("deposits", "Security Deposits", values={"2024A": 25.0}),
                        category=Category.FIXED_ASSETS)

        result = {r.period: r for r in editor.check_balance()}["2024A"]
        assert sample_model.balance_sheet.find("total_fixed_assets").value("2024A") == 1025
        assert result.difference == pytest.approx(25)
        assert not result.balanced
