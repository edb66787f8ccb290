# -*- coding: utf-8 -*-
"""
公式编译器测试

测试场景:
1. 表达式渲染与公式文本求值
2. 名称与布局
3. 编译内容 - 公式、历史引用、常量
4. 编译结果与求值器一致、行顺序变化不影响结果
5. 名称未绑定时回退为常量
"""

import pytest

from statement_engine.core.line import Line, Section
from statement_engine.engine.editor import ModelEditor
from statement_engine.errors import ModelError
from statement_engine.io.compiler import FormulaCompiler, compile_model, sanitize, unique_fragments
from statement_engine.io.expr import Combine, Const, Ref, SafeDiv, Scale, Sum, format_number
from statement_engine.io.formula_eval import evaluate_formula, parse_formula
from statement_engine.io.sink import AREA_CHECK, AREA_HISTORICAL, AREA_STATEMENT, CellKey, MemorySink, cell_key
from conftest import value


def _refs(formula):
    """公式文本引用的名称"""
    found = set()

    def visit(node):
        if node[0] == "ref":
            found.add(node[1])
        elif node[0] == "neg":
            visit(node[1])
        elif node[0] == "bin":
            visit(node[2])
            visit(node[3])
        elif node[0] == "call":
            for arg in node[2]:
                visit(arg)

    visit(parse_formula(formula))
    return found


def _compiled(model, **kwargs):
    sink = MemorySink(**kwargs)
    report = compile_model(model, sink)
    return sink, report


class TestExpr:
    """表达式渲染"""

    def test_render(self):
        """测试括号、负常量和空表达式"""
        nested = Combine([(1, Ref("a")), (-1, Combine([(1, Ref("b")), (1, Ref("c"))]))])
        assert nested.render() == "a-(b+c)"
        assert Const(-5).render() == "(-5)"
        assert Combine([]).render() == "0"
        assert Sum([]).render() == "0"
        assert Sum([Ref("a"), Ref("b")]).formula() == "=SUM(a,b)"
        assert SafeDiv(Ref("n"), Ref("d")).render() == "IF(d=0,0,n/d)"

    def test_evaluate(self):
        """测试表达式求值"""
        expr = SafeDiv(Combine([(1, Ref("a")), (-1, Ref("b"))]), Ref("c"))
        assert expr.evaluate({"a": 10, "b": 4, "c": 2}.get) == 3
        assert expr.evaluate({"a": 10, "b": 4, "c": 0}.get) == 0

    def test_scale(self):
        """测试常数倍数的渲染与求值"""
        assert Scale(Ref("IS_rev_C"), 1.05).render() == "IS_rev_C*1.05"
        assert Scale(Combine([(1, Ref("a")), (1, Ref("b"))]), 0.3).render() == "(a+b)*0.3"
        assert Scale(Ref("a"), -2).render() == "a*(-2)"
        assert Scale(Ref("a"), 1.05).evaluate({"a": 100}.get) == 100 * 1.05

    def test_format_number(self):
        """测试数字常量不使用科学计数法"""
        assert format_number(1000.0) == "1000"
        assert format_number(2.5) == "2.5"
        assert format_number(1e-7) == "0.0000001"


class TestFormulaEval:
    """公式文本求值"""

    def test_arithmetic(self):
        """测试四则运算与一元负号"""
        values = {"IS_rev_D": 1000, "IS_cogs_D": 400}
        assert evaluate_formula("=IS_rev_D-IS_cogs_D", values.get) == 600
        assert evaluate_formula("=(-5)+2*3", values.get) == 1
        assert evaluate_formula("=-(IS_rev_D-IS_cogs_D)/2", values.get) == -300

    def test_functions(self):
        """测试 SUM / ABS / 比较"""
        assert evaluate_formula("=SUM(1,2,3)", {}.get) == 6
        assert evaluate_formula("=ABS(-3)<1", {}.get) is False
        assert evaluate_formula("=ABS(0.001)<0.01", {}.get) is True

    def test_if_is_lazy(self):
        """测试 IF 只求值选中的分支"""
        assert evaluate_formula("=IF(d=0,0,n/d)", {"d": 0, "n": 5}.get) == 0

    def test_errors(self):
        """测试除零与不支持的函数"""
        with pytest.raises(ModelError) as exc_info:
            evaluate_formula("=1/0", {}.get)
        assert exc_info.value.code == "FORMULA_INVALID"
        with pytest.raises(ModelError):
            evaluate_formula("=MAX(1,2)", {}.get)


class TestNamesAndLayout:
    """名称与布局"""

    def test_sanitize(self):
        """测试行 ID 中的非法字符"""
        assert sanitize("r&d-costs") == "r_d_costs"
        assert sanitize("其他") == "u5176u4ed6"

    def test_unique_fragments(self):
        """测试清洗后相同（含大小写）的 ID 得到不同片段"""
        fragments = unique_fragments(["a-b", "a_b", "Rev", "rev", "a_b_2"], reserved=["CHECK_x"])
        assert fragments["a_b"] == "a_b"
        assert fragments["rev"] == "rev"
        assert fragments["a_b_2"] == "a_b_2"
        assert fragments["a-b"] == "a_b_3"
        assert fragments["Rev"] == "Rev_2"
        assert unique_fragments(["check_x"], reserved=["CHECK_x"]) == {"check_x": "check_x_2"}

    def test_names(self, sample_model):
        """测试各区域的名称格式"""
        sink = MemorySink()
        sink.prepare(sample_model)
        compiler = FormulaCompiler(sample_model)

        assert compiler.name_for(cell_key("IS", "rev", "2025E"), sink) == "IS_rev_D"
        assert compiler.name_for(cell_key("BS", "cash", "2023A"), sink) == "BS_cash_B"
        assert compiler.name_for(cell_key("IS", "rev", "2024A", AREA_HISTORICAL), sink) == "HIST_IS_rev_C"
        assert compiler.name_for(CellKey("SBC", "sga", "2025E", "schedule"), sink) == "SBC_sga_D"
        assert compiler.name_for(CellKey("BS", "balanced", "2025E", AREA_CHECK), sink) == "BS_CHECK_balanced_D"

    def test_layout(self, sample_model):
        """测试标题行、类别标题行和子项缩进"""
        ModelEditor(sample_model).add_child("IS", "sga", Line("sales", "Sales", values={"2024A": 300.0}))
        sink = MemorySink()
        sink.prepare(sample_model)

        assert sink.position(cell_key("IS", "rev", "2025E")) == ("Income Statement", 3, 4)
        assert sink.cells[("Balance Sheet", 3, 1)] == "Current Assets"
        assert sink.styles[("Balance Sheet", 3, 1)] == "section"
        assert sink.position(cell_key("BS", "cash", "2023A")) == ("Balance Sheet", 4, 2)
        assert sink.cells[("Cash Flow", 3, 1)] == "Operating Activities"

        _, row, _ = sink.position(cell_key("IS", "sales", "2024A"))
        assert sink.cells[("Income Statement", row, 1)] == "  Sales"

    def test_historicals_only_for_stored_cells(self, sample_model):
        """测试 Historicals 只包含历史期的存储输入"""
        sink = MemorySink()
        sink.prepare(sample_model)

        assert sink.has(cell_key("IS", "rev", "2024A", AREA_HISTORICAL))
        assert not sink.has(cell_key("IS", "rev", "2025E", AREA_HISTORICAL))
        assert not sink.has(cell_key("IS", "gross_profit", "2024A", AREA_HISTORICAL))
        assert sink.has(cell_key("CFS", "wc_change", "2024A", AREA_HISTORICAL))

    def test_unknown_cell_and_period(self, sample_model):
        """测试布局外的单元格和期间"""
        sink = MemorySink()
        sink.prepare(sample_model)

        with pytest.raises(ModelError) as exc_info:
            sink.position(cell_key("IS", "missing", "2024A"))
        assert exc_info.value.code == "UNKNOWN_CELL"
        with pytest.raises(ModelError) as exc_info:
            sink.column_letter("2030E")
        assert exc_info.value.code == "UNKNOWN_PERIOD"


class TestCompile:
    """编译内容"""

    def test_formula_contents(self, sample_model):
        """测试推导单元格为名称公式"""
        sink, report = _compiled(sample_model)

        assert sink.content(cell_key("IS", "gross_profit", "2025E")) == "=IS_rev_D-IS_cogs_D"
        assert sink.content(cell_key("IS", "gross_margin", "2025E")) == \
            "=IF(IS_rev_D=0,0,IS_gross_profit_D/IS_rev_D)"
        assert sink.content(cell_key("CFS", "net_income", "2025E")) == "=IS_net_income_D"
        assert sink.content(cell_key("CFS", "sbc", "2025E")) == "=SBC_sga_D+SBC_cogs_D"
        assert sink.content(cell_key("BS", "total_liab_and_equity", "2025E")) == \
            "=BS_total_liabilities_D+BS_total_equity_D"
        assert report.fallbacks == []
        assert report.formulas > 0

    def test_historical_and_projected_inputs(self, sample_model):
        """测试历史输入引用 Historicals，预测输入为常量"""
        sink, _ = _compiled(sample_model)

        assert sink.content(cell_key("IS", "rev", "2024A")) == "=HIST_IS_rev_C"
        assert sink.content(cell_key("IS", "rev", "2025E")) == 1000.0
        assert sink.content(cell_key("IS", "rev", "2024A", AREA_HISTORICAL)) == 1000.0
        assert sink.content(cell_key("CFS", "wc_change", "2024A")) == "=HIST_CFS_wc_change_C"
        assert sink.content(cell_key("CFS", "wc_change", "2025E")).startswith("=")

    def test_without_historicals(self, sample_model):
        """测试不生成 Historicals 时历史输入为常量"""
        sink, _ = _compiled(sample_model, include_historicals=False)
        assert not sink.has_historicals
        assert sink.content(cell_key("IS", "rev", "2024A")) == 1000.0

    def test_children_sum(self, sample_model):
        """测试有子项的行编译为 SUM"""
        editor = ModelEditor(sample_model)
        editor.add_child("IS", "sga", Line("sales", "Sales", values={"2025E": 200.0}))
        editor.add_child("IS", "sga", Line("admin", "G&A", values={"2025E": 100.0}))
        sink, _ = _compiled(sample_model)

        assert sink.content(cell_key("IS", "sga", "2025E")) == "=SUM(IS_sales_D,IS_admin_D)"
        assert sink.evaluate(cell_key("IS", "sga", "2025E")) == 300

    def test_balance_check_block(self, sample_model):
        """测试平衡检查块引用报表合计"""
        sink, _ = _compiled(sample_model)

        assets = CellKey("BS", "assets", "2025E", AREA_CHECK)
        balanced = CellKey("BS", "balanced", "2025E", AREA_CHECK)
        assert sink.content(assets) == "=BS_total_assets_D"
        assert sink.content(balanced) == "=ABS(BS_CHECK_difference_D)<0.01"
        assert sink.evaluate(assets) == 1550
        assert sink.evaluate(balanced) is True

    def test_balance_check_detects_imbalance(self, sample_model):
        """测试不平衡时检查单元格为 FALSE"""
        ModelEditor(sample_model).set_value("BS", "cash", "2024A", 130)
        sink, _ = _compiled(sample_model)

        assert sink.value_of("BS_CHECK_difference_C") == pytest.approx(30)
        assert sink.value_of("BS_CHECK_balanced_C") is False


class TestRoundTrip:
    """编译结果与求值器一致"""

    def test_values_match_evaluator(self, sample_model):
        """测试每个报表单元格的公式求值等于模型值"""
        sink, _ = _compiled(sample_model)

        for key, result in sink.evaluate_all(AREA_STATEMENT).items():
            expected = sample_model.statement(key.statement).find(key.line_id).value(key.period)
            assert result == pytest.approx(expected), key

    def test_values_match_after_edits(self, sample_model):
        """测试编辑后（子项、自定义条目、侧表）仍一致"""
        editor = ModelEditor(sample_model)
        editor.add_child("IS", "sga", Line("sales", "Sales", values={"2025E": 180.0}))
        editor.add_cash_flow_item("Proceeds from sale of equipment", Section.INVESTING, values={"2025E": 25.0})
        editor.set_sbc("sales", "2025E", 12)
        sink, _ = _compiled(sample_model)

        for key, result in sink.evaluate_all(AREA_STATEMENT).items():
            expected = sample_model.statement(key.statement).find(key.line_id).value(key.period)
            assert result == pytest.approx(expected), key

    def test_non_ascii_ids_get_distinct_names(self, sample_model):
        """测试同长度的中文条目各自绑定名称，区段合计与求值器一致"""
        editor = ModelEditor(sample_model)
        income, _ = editor.add_cash_flow_item("其他收入", Section.OPERATING, values={"2025E": 10.0})
        expense, _ = editor.add_cash_flow_item("其他支出", Section.OPERATING, values={"2025E": -3.0})
        sink, _ = _compiled(sample_model)

        compiler = FormulaCompiler(sample_model)
        names = {compiler.name_for(cell_key("CFS", line.id, "2025E"), sink) for line in (income, expense)}
        assert len(names) == 2
        operating = cell_key("CFS", "operating_cf", "2025E")
        assert names <= _refs(sink.content(operating))
        assert sink.evaluate(operating) == pytest.approx(value(sample_model, "CFS", "operating_cf", "2025E"))
        assert sink.evaluate(cell_key("CFS", income.id, "2025E")) == 10
        assert sink.evaluate(cell_key("CFS", expense.id, "2025E")) == -3

    def test_case_variant_ids(self, sample_model):
        """测试只差大小写的 ID 不共用名称"""
        ModelEditor(sample_model).add_line("IS", Line("Rev", "Revenue (restated)", values={"2025E": 5.0}))
        sink, _ = _compiled(sample_model)

        assert sink.content(cell_key("IS", "gross_profit", "2025E")) == "=IS_rev_D-IS_cogs_D"
        assert sink.value_of("IS_Rev_2_D") == 5
        assert sink.value_of("IS_rev_D") == 1000

    def test_reorder_invariance(self, sample_model):
        """测试同一类别内调整行顺序后，值和引用集合不变"""
        before, _ = _compiled(sample_model)
        before_values = before.evaluate_all()
        before_refs = {
            key: _refs(content)
            for key, content in ((k, before.content(k)) for k in before.keys(AREA_STATEMENT))
            if isinstance(content, str)
        }

        ModelEditor(sample_model).move_line("BS", "ar", 0)
        after, _ = _compiled(sample_model)

        assert after.position(cell_key("BS", "ar", "2024A")) != before.position(cell_key("BS", "ar", "2024A"))
        assert after.evaluate_all() == pytest.approx(before_values)
        for key, refs in before_refs.items():
            assert _refs(after.content(key)) == refs, key


class FilteringSink(MemorySink):
    """不绑定 SBC 侧表名称的输出目标"""

    def define_name(self, name, key):
        if name.startswith("SBC_"):
            return
        super().define_name(name, key)


class TestFallback:
    """名称无法解析时回退为常量"""

    def test_literal_fallback(self, sample_model, caplog):
        """测试引用未绑定名称的单元格写入计算值并记入报告"""
        ModelEditor(sample_model).set_sbc("sga", "2025E", 15)
        sink = FilteringSink()
        report = FormulaCompiler(sample_model).compile_model(sink)

        assert sink.content(cell_key("CFS", "sbc", "2025E")) == 15
        assert sink.content(cell_key("CFS", "sbc", "2024A")) == 0
        assert {entry["line_id"] for entry in report.fallbacks} == {"sbc"}
        assert len(report.fallbacks) == len(sample_model.periods)
        assert report.fallbacks[0]["name"].startswith("SBC_")
        assert report.to_dict()["literals"] == report.literals
        # 依赖 sbc 的合计仍是公式
        assert sink.content(cell_key("CFS", "operating_cf", "2025E")).startswith("=")
        assert sink.evaluate(cell_key("CFS", "operating_cf", "2025E")) == 235
        assert "SBC_" in caplog.text
