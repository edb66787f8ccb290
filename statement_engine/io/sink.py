# -*- coding: utf-8 -*-
"""
表格输出目标（Sink）

编译器只提供逻辑单元格（报表 + 行 + 期间）和公式文本；
物理布局（行号、列号、分类标题行、样式）全部由 Sink 决定。

布局:
    - 每张报表一个工作表：标题行、期间表头行，
      资产负债表插入类别标题行，现金流量表插入区段标题行，子项缩进
    - 资产负债表末尾追加平衡检查块
    - Schedules 工作表：SBC 分类明细、D&A
    - Historicals 工作表（可选）：历史期输入

名称在 prepare() 之后由编译器一次性绑定，之后不再变化。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from openpyxl.utils import get_column_letter

from ..config import default_config
from ..errors import ModelError
from ..core.line import Category, Section, Statement, StatementKind, ValueType
from ..core.model import Model
from ..classify.classifier import assign_categories, assign_sections
from ..engine.formulas import is_stored_cell, sbc_categories
from .cell_tracker import CellTracker
from .formula_eval import evaluate_formula

AREA_STATEMENT = "statement"
AREA_HISTORICAL = "historical"
AREA_SCHEDULE = "schedule"
AREA_CHECK = "check"

Position = Tuple[str, int, int]


@dataclass(frozen=True)
class CellKey:
    """
    逻辑单元格

    statement 为报表代码（"IS"/"BS"/"CFS"），
    侧表区域为表名（"SBC"/"DANA"）
    """
    statement: str
    line_id: str
    period: str
    area: str = AREA_STATEMENT


def cell_key(statement, line_id: str, period: str, area: str = AREA_STATEMENT) -> CellKey:
    code = statement.value if isinstance(statement, StatementKind) else str(statement)
    return CellKey(code, line_id, period, area)


CATEGORY_LABELS = {
    Category.CURRENT_ASSETS: "Current Assets",
    Category.FIXED_ASSETS: "Fixed Assets",
    Category.CURRENT_LIABILITIES: "Current Liabilities",
    Category.NON_CURRENT_LIABILITIES: "Non-Current Liabilities",
    Category.EQUITY: "Shareholders' Equity",
}

SECTION_LABELS = {
    Section.OPERATING: "Operating Activities",
    Section.INVESTING: "Investing Activities",
    Section.FINANCING: "Financing Activities",
}

# 平衡检查块的行
CHECK_ROWS = [
    ("assets", "Total Assets"),
    ("liab_equity", "Total Liabilities & Equity"),
    ("difference", "Difference"),
    ("balanced", "Balanced?"),
]

CHECK_IDS = [check_id for check_id, _ in CHECK_ROWS]

NUMBER_FORMATS = {
    ValueType.CURRENCY: "#,##0.00;(#,##0.00)",
    ValueType.PERCENT: "0.00%",
    ValueType.COUNT: "#,##0",
}


class SpreadsheetSink:
    """
    输出目标基类

    子类实现 _put / _style / _number_format / _bind_name 写入原语，
    需要区分文本和公式的输出目标再覆盖 _put_text

    使用方法:
        sink = MemorySink()
        sink.prepare(model)
        sink.define_name("IS_rev_B", cell_key("IS", "rev", "2024A"))
        sink.set_value(cell_key("IS", "rev", "2024A"), 1000)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, include_historicals: bool = True):
        self.config = config if config is not None else default_config()
        self.include_historicals = include_historicals
        self.tracker = CellTracker()
        self.positions: Dict[CellKey, Position] = {}
        self.periods: List[str] = []
        self.historical_periods: List[str] = []

    # ==================== 布局 ====================

    def prepare(self, model: Model) -> None:
        """计算所有逻辑单元格的位置，并写入标题、表头和行标签"""
        self.tracker.clear()
        self.positions = {}
        self.periods = model.periods
        self.historical_periods = [p for p in self.periods if model.is_historical(p)]

        for statement in model.statements:
            self._layout_statement(model, statement)
        self._layout_schedules(model)
        if self.include_historicals and self.historical_periods:
            self._layout_historicals(model)

    def sheet_name(self, key: str) -> str:
        return self.config["sheet_names"][key]

    def column(self, period: str) -> int:
        if period not in self.periods:
            raise ModelError("UNKNOWN_PERIOD", f"期间不在布局中: {period}", {"period": period})
        return self.config["first_period_column"] + self.periods.index(period)

    def column_letter(self, period: str) -> str:
        return get_column_letter(self.column(period))

    def _write_heading(self, sheet: str, title: str, periods: List[str]) -> int:
        self._put_text(sheet, 1, 1, title)
        self._style(sheet, 1, 1, "title")
        self._put_text(sheet, 2, 1, "")
        self._style(sheet, 2, 1, "header")
        for period in periods:
            col = self.column(period)
            self._put_text(sheet, 2, col, period)
            self._style(sheet, 2, col, "header")
        return 3

    def _write_label_row(self, sheet: str, row: int, label: str, style: str) -> int:
        self._put_text(sheet, row, 1, label)
        self._style(sheet, row, 1, style)
        return row + 1

    def _place(self, key: CellKey, sheet: str, row: int, periods: List[str]) -> None:
        for period in periods:
            self.positions[CellKey(key.statement, key.line_id, period, key.area)] = (
                sheet, row, self.column(period))

    def _layout_statement(self, model: Model, statement: Statement) -> None:
        sheet = self.sheet_name(statement.kind.value)
        title = f"{model.meta.company_name} - {sheet}".strip(" -")
        row = self._write_heading(sheet, title, self.periods)

        if statement.kind is StatementKind.BS:
            groups = assign_categories(statement)
            labels = CATEGORY_LABELS
        elif statement.kind is StatementKind.CFS:
            groups = assign_sections(statement)
            labels = SECTION_LABELS
        else:
            groups = [None] * len(statement.lines)
            labels = {}

        shown = None
        for top, group in zip(statement.lines, groups):
            if group is not None and group is not shown:
                row = self._write_label_row(sheet, row, labels[group], "section")
                shown = group
            for line, depth in top.walk():
                self._write_label_row(sheet, row, "  " * depth + line.label,
                                      "total" if line.is_subtotal else "label")
                self._place(cell_key(statement.kind, line.id, ""), sheet, row, self.periods)
                row += 1

        if statement.kind is StatementKind.BS:
            row = self._write_label_row(sheet, row + 1, "Balance Check", "section")
            for check_id, label in CHECK_ROWS:
                self._write_label_row(sheet, row, label, "label")
                self._place(CellKey("BS", check_id, "", AREA_CHECK), sheet, row, self.periods)
                row += 1

    def schedule_keys(self, model: Model) -> List[str]:
        """SBC 明细行：公式需要的分类键在前，其余已录入的分类在后"""
        keys = sbc_categories(model)
        keys.extend(k for k in model.sbc_breakdowns if k not in keys)
        return keys

    def _layout_schedules(self, model: Model) -> None:
        sheet = self.sheet_name("schedule")
        row = self._write_heading(sheet, "Schedules", self.periods)
        row = self._write_label_row(sheet, row, "Stock-Based Compensation", "section")
        for key in self.schedule_keys(model):
            self._write_label_row(sheet, row, key, "label")
            self._place(CellKey("SBC", key, "", AREA_SCHEDULE), sheet, row, self.periods)
            row += 1
        row = self._write_label_row(sheet, row, "Depreciation & Amortization", "section")
        self._write_label_row(sheet, row, "Total D&A", "label")
        self._place(CellKey("DANA", "total", "", AREA_SCHEDULE), sheet, row, self.periods)

    def _layout_historicals(self, model: Model) -> None:
        sheet = self.sheet_name("historical")
        row = self._write_heading(sheet, "Historicals", self.historical_periods)
        for statement in model.statements:
            row = self._write_label_row(sheet, row, self.sheet_name(statement.kind.value), "section")
            for line, depth in statement.walk():
                periods = [
                    p for p in self.historical_periods
                    if is_stored_cell(model, statement.kind, line, p)
                ]
                if not periods:
                    continue
                self._write_label_row(sheet, row, "  " * depth + line.label, "label")
                self._place(cell_key(statement.kind, line.id, "", AREA_HISTORICAL), sheet, row, periods)
                row += 1

    # ==================== 查询 ====================

    def keys(self, area: Optional[str] = None) -> List[CellKey]:
        return [key for key in self.positions if area is None or key.area == area]

    def position(self, key: CellKey) -> Position:
        position = self.positions.get(key)
        if position is None:
            raise ModelError("UNKNOWN_CELL", f"布局中没有该单元格: {key}",
                             {"statement": key.statement, "line_id": key.line_id,
                              "period": key.period, "area": key.area})
        return position

    def has(self, key: CellKey) -> bool:
        return key in self.positions

    def has_name(self, name: str) -> bool:
        return self.tracker.has(name)

    @property
    def has_historicals(self) -> bool:
        return any(key.area == AREA_HISTORICAL for key in self.positions)

    # ==================== 写入 ====================

    def define_name(self, name: str, key: CellKey) -> None:
        """把名称绑定到逻辑单元格当前的物理位置"""
        sheet, row, col = self.position(key)
        self.tracker.set(name, sheet, row, col)
        self._bind_name(name, sheet, row, col)

    def set_value(self, key: CellKey, value) -> None:
        sheet, row, col = self.position(key)
        self._put(sheet, row, col, value)

    def set_formula(self, key: CellKey, formula: str) -> None:
        sheet, row, col = self.position(key)
        self._put(sheet, row, col, formula if formula.startswith("=") else "=" + formula)

    def set_format(self, key: CellKey, number_format: str) -> None:
        sheet, row, col = self.position(key)
        self._number_format(sheet, row, col, number_format)

    # ==================== 写入原语 ====================

    def _put(self, sheet: str, row: int, col: int, value) -> None:
        raise NotImplementedError

    def _put_text(self, sheet: str, row: int, col: int, text: str) -> None:
        """标题和标签：始终按文本写入（以 "=" 开头也不当作公式）"""
        self._put(sheet, row, col, text)

    def _style(self, sheet: str, row: int, col: int, style: str) -> None:
        raise NotImplementedError

    def _number_format(self, sheet: str, row: int, col: int, number_format: str) -> None:
        raise NotImplementedError

    def _bind_name(self, name: str, sheet: str, row: int, col: int) -> None:
        raise NotImplementedError


class MemorySink(SpreadsheetSink):
    """
    内存输出目标

    保存单元格内容，并能按公式文本求值（测试公式与求值器是否一致）

    使用方法:
        sink = MemorySink()
        FormulaCompiler(model).compile_model(sink)
        sink.value_of("BS_total_assets_C")
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, include_historicals: bool = True):
        super().__init__(config, include_historicals)
        self.cells: Dict[Position, Any] = {}
        self.styles: Dict[Position, str] = {}
        self.formats: Dict[Position, str] = {}
        self.names: Dict[str, Position] = {}
        self._cache: Dict[Position, Any] = {}
        self._active: set = set()

    def prepare(self, model: Model) -> None:
        self.cells = {}
        self.styles = {}
        self.formats = {}
        self.names = {}
        self._cache = {}
        super().prepare(model)

    def _put(self, sheet, row, col, value):
        self.cells[(sheet, row, col)] = value
        self._cache.clear()

    def _style(self, sheet, row, col, style):
        self.styles[(sheet, row, col)] = style

    def _number_format(self, sheet, row, col, number_format):
        self.formats[(sheet, row, col)] = number_format

    def _bind_name(self, name, sheet, row, col):
        self.names[name] = (sheet, row, col)

    def content(self, key: CellKey):
        """单元格原始内容（数值或 "=" 开头的公式文本）"""
        return self.cells.get(self.position(key))

    def evaluate(self, key: CellKey):
        return self._evaluate_position(self.position(key))

    def value_of(self, name: str):
        return self._resolve(name)

    def evaluate_all(self, area: str = AREA_STATEMENT) -> Dict[CellKey, Any]:
        return {key: self.evaluate(key) for key in self.keys(area)}

    def _resolve(self, name: str):
        position = self.names.get(name)
        if position is None:
            raise ModelError("FORMULA_INVALID", f"#NAME? {name}", {"name": name})
        return self._evaluate_position(position)

    def _evaluate_position(self, position: Position):
        if position in self._cache:
            return self._cache[position]
        if position in self._active:
            raise ModelError("FORMULA_INVALID", f"循环引用: {position}")
        content = self.cells.get(position)
        if isinstance(content, str) and content.startswith("="):
            self._active.add(position)
            try:
                value = evaluate_formula(content, self._resolve)
            finally:
                self._active.discard(position)
        elif content is None:
            value = 0.0
        else:
            value = content
        self._cache[position] = value
        return value
