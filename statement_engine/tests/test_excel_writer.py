# -*- coding: utf-8 -*-
"""
Excel 导出测试
"""

from openpyxl import load_workbook

from statement_engine.core.line import Line
from statement_engine.io.cell_tracker import CellTracker
from statement_engine.io.excel_writer import WorkbookSink, export_model
from statement_engine.io.compiler import FormulaCompiler
from statement_engine.io.sink import cell_key


class TestCellTracker:
    """名称位置追踪"""

    def test_qualified_target(self):
        """测试定义名称的目标文本"""
        tracker = CellTracker()
        tracker.set("IS_rev_B", "Income Statement", row=3, col=2)

        assert tracker.qualified("IS_rev_B") == "'Income Statement'!$B$3"
        assert tracker.qualified("missing") is None
        assert "IS_rev_B" in tracker
        assert len(tracker) == 1

        tracker.clear()
        assert not tracker.has("IS_rev_B")


class TestExport:
    """工作簿导出"""

    def test_export_round_trip(self, sample_model, tmp_path):
        """测试导出的文件包含公式和定义名称"""
        path = tmp_path / "out" / "model.xlsx"
        report = export_model(sample_model, path)

        assert path.exists()
        assert report.fallbacks == []

        wb = load_workbook(path)
        assert wb.sheetnames == ["Income Statement", "Balance Sheet", "Cash Flow", "Schedules", "Historicals"]

        sheet, coord = next(wb.defined_names["IS_rev_D"].destinations)
        assert (sheet, coord) == ("Income Statement", "$D$3")
        assert wb[sheet]["D3"].value == 1000

        ws = wb["Income Statement"]
        assert ws["C3"].value == "=HIST_IS_rev_C"
        assert ws["A1"].value == "Acme - Income Statement"
        assert ws["B2"].value == "2023A"

    def test_export_formats(self, sample_model, tmp_path):
        """测试数字格式与比率格式"""
        path = tmp_path / "model.xlsx"
        export_model(sample_model, path, include_historicals=False)

        wb = load_workbook(path)
        assert "Historicals" not in wb.sheetnames
        ws = wb["Income Statement"]
        # gross_margin 在第 6 行（标题、表头、rev、cogs、gross_profit 之后）
        assert ws["A6"].value == "Gross Margin %"
        assert ws["D6"].number_format == "0.00%"
        assert ws["D3"].number_format == "#,##0.00;(#,##0.00)"

    def test_workbook_sink_names(self, sample_model):
        """测试名称绑定到工作簿"""
        sink = WorkbookSink()
        FormulaCompiler(sample_model).compile_model(sink)

        assert "BS_CHECK_balanced_D" in sink.wb.defined_names
        assert sink.tracker.qualified("BS_CHECK_balanced_D").startswith("'Balance Sheet'!")

    def test_editor_export(self, editor, tmp_path):
        """测试编辑器导出入口"""
        editor.set_sbc("sga", "2025E", 15)
        report = editor.export(tmp_path / "edited.xlsx")

        assert (tmp_path / "edited.xlsx").exists()
        assert report.formulas > 0

    def test_labels_are_text(self, editor):
        """测试以 "=" 开头的标签按文本写入，不变成公式"""
        editor.add_line("IS", Line("adjusted", "=Adjusted EBITDA", values={"2024A": 1.0}))
        sink = WorkbookSink()
        FormulaCompiler(editor.model).compile_model(sink)

        _, row, _ = sink.position(cell_key("IS", "adjusted", "2024A"))
        label = sink.wb["Income Statement"].cell(row=row, column=1)
        assert label.value == "=Adjusted EBITDA"
        assert label.data_type == "s"
