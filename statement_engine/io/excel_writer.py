# -*- coding: utf-8 -*-
"""
Excel 导出工具

把编译后的模型写成带公式和定义名称的 Excel 文件，方便人类阅读和继续修改
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.workbook.defined_name import DefinedName

from ..core.model import Model
from ..engine.evaluator import recompute_model
from .compiler import CompileReport, FormulaCompiler
from .sink import SpreadsheetSink

logger = logging.getLogger(__name__)


class WorkbookSink(SpreadsheetSink):
    """
    openpyxl 输出目标

    使用方法:
        sink = WorkbookSink()
        FormulaCompiler(model).compile_model(sink)
        sink.save("model.xlsx")
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, include_historicals: bool = True):
        super().__init__(config, include_historicals)
        self.wb = Workbook()
        # 删除默认的 sheet
        self.wb.remove(self.wb.active)

        # 样式定义
        self.title_font = Font(bold=True, size=14)
        self.header_font = Font(bold=True, size=11)
        self.header_fill = PatternFill(start_color="DAEEF3", end_color="DAEEF3", fill_type="solid")
        self.section_fill = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")
        self.thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )
        self.total_border = Border(top=Side(style='thin'))

    def _sheet(self, name: str):
        if name in self.wb.sheetnames:
            return self.wb[name]
        return self.wb.create_sheet(title=name)

    def _set_column_width(self, ws, col, width):
        """设置列宽"""
        ws.column_dimensions[get_column_letter(col)].width = width

    def prepare(self, model: Model) -> None:
        super().prepare(model)
        last_col = self.config["first_period_column"] + len(self.periods)
        for ws in self.wb.worksheets:
            self._set_column_width(ws, 1, 40)
            for col in range(self.config["first_period_column"], last_col):
                self._set_column_width(ws, col, 16)
            ws.freeze_panes = ws.cell(row=3, column=self.config["first_period_column"])

    # ==================== 写入原语 ====================

    def _put(self, sheet, row, col, value):
        self._sheet(sheet).cell(row=row, column=col, value=value)

    def _put_text(self, sheet, row, col, text):
        cell = self._sheet(sheet).cell(row=row, column=col, value=text)
        # openpyxl 会把 "=" 开头的字符串识别为公式
        cell.data_type = "s"

    def _style(self, sheet, row, col, style):
        cell = self._sheet(sheet).cell(row=row, column=col)
        if style == "title":
            cell.font = self.title_font
        elif style == "header":
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.border = self.thin_border
            cell.alignment = Alignment(horizontal='center')
        elif style == "section":
            cell.font = Font(bold=True, italic=True)
            cell.fill = self.section_fill
        elif style == "total":
            cell.font = Font(bold=True)
            cell.border = self.total_border
        else:
            cell.alignment = Alignment(horizontal='left')

    def _number_format(self, sheet, row, col, number_format):
        cell = self._sheet(sheet).cell(row=row, column=col)
        cell.number_format = number_format
        cell.alignment = Alignment(horizontal='right')

    def _bind_name(self, name, sheet, row, col):
        self.wb.defined_names[name] = DefinedName(name, attr_text=self.tracker.qualified(name))

    def save(self, filepath: Union[str, Path]) -> Path:
        """
        保存 Excel 文件

        Args:
            filepath: 文件路径

        Returns:
            保存的路径
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.wb.save(path)
        return path


def export_model(model: Model, path: Union[str, Path],
                 config: Optional[Dict[str, Any]] = None,
                 include_historicals: bool = True,
                 recompute: bool = True) -> CompileReport:
    """
    导出模型为 Excel

    Args:
        model: 模型
        path: 输出路径
        config: 引擎配置（默认使用模型的配置）
        include_historicals: 是否生成 Historicals 工作表
        recompute: 导出前是否先重算（计算值回退需要最新值）

    Returns:
        CompileReport
    """
    config = config or model.config
    if recompute:
        recompute_model(model)
    sink = WorkbookSink(config, include_historicals)
    report = FormulaCompiler(model, config).compile_model(sink)
    saved = sink.save(path)
    logger.info("已导出 %s: %d 个公式, %d 个常量", saved, report.formulas, report.literals)
    return report
