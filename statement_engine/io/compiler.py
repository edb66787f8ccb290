# -*- coding: utf-8 -*-
"""
公式编译器

把模型编译成带公式的表格:
    - 推导单元格 -> 只由名称引用构成的公式
    - 历史期输入 -> 引用 Historicals 区域（没有该区域时写常量）
    - 预测期输入 -> 常量
    - 名称无法解析 -> 写入求值器的计算值，并记入报告

名称格式:
    <IS|BS|CFS>_<行ID>_<列>          报表单元格
    HIST_<IS|BS|CFS>_<行ID>_<列>     历史期输入
    SBC_<分类>_<列> / DANA_total_<列>  侧表
    BS_CHECK_<检查项>_<列>            平衡检查块

名称绑定逻辑单元格，行顺序变化不影响已生成的公式。
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..errors import ModelError
from ..core.line import Category, Line, Statement, StatementKind, ValueType
from ..core.model import Model
from ..classify.classifier import rows_for_category
from ..engine.evaluator import evaluate
from ..engine.formulas import compute, is_stored_cell, sbc_categories
from ..engine.balance import check_balance
from .expr import Abs, Combine, Const, Expr, LessThan, Ref
from .formula_builder import FormulaBuilder
from .sink import (
    AREA_CHECK, AREA_HISTORICAL, AREA_SCHEDULE, CHECK_IDS, NUMBER_FORMATS,
    CellKey, SpreadsheetSink, cell_key,
)

logger = logging.getLogger(__name__)

_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


def _escape(match) -> str:
    char = match.group(0)
    return f"u{ord(char):04x}" if ord(char) > 127 else "_"


def sanitize(identifier: str) -> str:
    """行 ID -> 名称片段（非 ASCII 字符写成 u+码位，其他不安全字符替换为下划线）"""
    return _NAME_UNSAFE.sub(_escape, identifier)


def unique_fragments(identifiers: Iterable[str], reserved: Iterable[str] = ()) -> Dict[str, str]:
    """
    标识符 -> 名称片段，一一对应

    Excel 名称不区分大小写。清洗后（忽略大小写）冲突时，
    本身就是合法小写片段的标识符保留原样，其余按排序加 _2、_3 后缀

    Args:
        identifiers: 同一命名空间内的标识符
        reserved: 已被占用的片段（如平衡检查块）
    """
    ordered = sorted(set(identifiers), key=lambda i: (sanitize(i) != i, i != i.lower(), i))
    taken = {fragment.lower() for fragment in reserved}
    result: Dict[str, str] = {}
    for identifier in ordered:
        base = sanitize(identifier)
        fragment, n = base, 2
        while fragment.lower() in taken:
            fragment = f"{base}_{n}"
            n += 1
        taken.add(fragment.lower())
        result[identifier] = fragment
    return result


@dataclass
class CompileReport:
    """编译统计"""
    formulas: int = 0
    literals: int = 0
    fallbacks: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formulas": self.formulas,
            "literals": self.literals,
            "fallbacks": list(self.fallbacks),
        }


class FormulaCompiler:
    """
    公式编译器

    使用方法:
        compiler = FormulaCompiler(model)
        sink = MemorySink()
        report = compiler.compile_model(sink)
        sink.content(cell_key("IS", "gross_profit", "2025E"))   # "=IS_rev_C-IS_cogs_C"
    """

    def __init__(self, model: Model, config: Optional[Dict[str, Any]] = None):
        self.model = model
        self.config = config or model.config
        self.report = CompileReport()
        self._fragments: Optional[Dict[str, Dict[str, str]]] = None

    # ==================== 名称 ====================

    def _fragment_table(self) -> Dict[str, Dict[str, str]]:
        """每个命名空间（报表、SBC 侧表）内 行 ID -> 名称片段"""
        if self._fragments is None:
            model = self.model
            check = self.config["name_prefixes"]["check"]
            table = {}
            for statement in model.statements:
                reserved = []
                if statement.kind is StatementKind.BS:
                    reserved = [f"{check}_{check_id}" for check_id in CHECK_IDS]
                table[statement.kind.value] = unique_fragments(
                    (line.id for line, _ in statement.walk()), reserved)
            table["SBC"] = unique_fragments(sbc_categories(model) + list(model.sbc_breakdowns))
            self._fragments = table
        return self._fragments

    def fragment(self, key: CellKey) -> str:
        if key.area == AREA_CHECK:
            return sanitize(key.line_id)
        fragments = self._fragment_table().get(key.statement, {})
        return fragments.get(key.line_id) or sanitize(key.line_id)

    def name_for(self, key: CellKey, sink: SpreadsheetSink) -> str:
        """逻辑单元格的定义名称（同一模型内一一对应）"""
        prefixes = self.config["name_prefixes"]
        column = sink.column_letter(key.period)
        ident = self.fragment(key)
        if key.area == AREA_HISTORICAL:
            return f"{prefixes['historical']}_{prefixes.get(key.statement, key.statement)}_{ident}_{column}"
        if key.area == AREA_SCHEDULE:
            return f"{key.statement}_{ident}_{column}"
        if key.area == AREA_CHECK:
            return f"{prefixes['BS']}_{prefixes['check']}_{ident}_{column}"
        return f"{prefixes.get(key.statement, key.statement)}_{ident}_{column}"

    def _builder(self, sink: SpreadsheetSink) -> FormulaBuilder:
        return FormulaBuilder(lambda key: self.name_for(key, sink), sink.tracker)

    # ==================== 编译 ====================

    def compile(self, line: Line, statement: Statement, period: str, sink: SpreadsheetSink):
        """
        编译一个单元格并写入 sink

        Args:
            line: 报表行
            statement: 行所在报表
            period: 期间
            sink: 输出目标（已 prepare 并绑定名称）

        Returns:
            写入的内容（公式文本或数值）
        """
        model = self.model
        key = cell_key(statement.kind, line.id, period)

        if is_stored_cell(model, statement.kind, line, period):
            content = self._input_content(statement, line, period, sink)
        else:
            try:
                content = compute(self._builder(sink), model, statement, line, period).formula()
                self.report.formulas += 1
            except ModelError as exc:
                if exc.code != "UNRESOLVED_REFERENCE":
                    raise
                content = evaluate(line, period, model, statement)
                self.report.literals += 1
                self.report.fallbacks.append({
                    "statement": statement.kind.value,
                    "line_id": line.id,
                    "period": period,
                    "name": (exc.details or {}).get("name"),
                })
                logger.warning("%s.%s %s 引用未绑定的名称 %s, 写入计算值 %s",
                               statement.kind.value, line.id, period,
                               (exc.details or {}).get("name"), content)

        if isinstance(content, str):
            sink.set_formula(key, content)
        else:
            sink.set_value(key, content)
        sink.set_format(key, NUMBER_FORMATS[line.value_type])
        return content

    def _input_content(self, statement: Statement, line: Line, period: str, sink: SpreadsheetSink):
        """输入单元格：历史期引用 Historicals 区域，否则为常量"""
        if self.model.is_historical(period) and sink.has_historicals:
            hist_key = cell_key(statement.kind, line.id, period, AREA_HISTORICAL)
            if sink.has(hist_key):
                name = self.name_for(hist_key, sink)
                if sink.has_name(name):
                    self.report.formulas += 1
                    return Ref(name).formula()
        self.report.literals += 1
        return line.value(period)

    def compile_model(self, sink: SpreadsheetSink) -> CompileReport:
        """
        编译整个模型: 布局 -> 绑定名称 -> 侧表与历史输入 -> 报表单元格 -> 平衡检查

        Returns:
            CompileReport
        """
        model = self.model
        self.report = CompileReport()
        self._fragments = None
        sink.prepare(model)
        for key in sink.keys():
            sink.define_name(self.name_for(key, sink), key)

        currency = NUMBER_FORMATS[ValueType.CURRENCY]
        for key in sink.keys(AREA_SCHEDULE):
            if key.statement == "SBC":
                value = model.sbc_for(key.line_id, key.period)
            else:
                value = model.dana_for(key.period)
            sink.set_value(key, value)
            sink.set_format(key, currency)

        for key in sink.keys(AREA_HISTORICAL):
            line = model.statement(key.statement).find(key.line_id)
            sink.set_value(key, line.value(key.period))
            sink.set_format(key, NUMBER_FORMATS[line.value_type])

        for statement in model.statements:
            for line, _ in statement.walk():
                for period in model.periods:
                    self.compile(line, statement, period, sink)

        for period in model.periods:
            self.compile_balance_check(sink, period)

        logger.info("编译完成: %d 个公式, %d 个常量, %d 个回退",
                    self.report.formulas, self.report.literals, len(self.report.fallbacks))
        return self.report

    # ==================== 平衡检查块 ====================

    def _total_expr(self, builder: FormulaBuilder, line_id: str, categories, period: str) -> Expr:
        balance_sheet = self.model.balance_sheet
        line = balance_sheet.find(line_id)
        if line is not None:
            return builder.cell(StatementKind.BS, line, period)
        members = [
            builder.cell(StatementKind.BS, member, period)
            for category in categories
            for member in rows_for_category(balance_sheet, category, include_subtotals=False)
        ]
        return builder.sum_cells(members)

    def compile_balance_check(self, sink: SpreadsheetSink, period: str) -> None:
        """平衡检查块：引用与报表相同的合计单元格"""
        builder = self._builder(sink)
        keys = {check_id: CellKey("BS", check_id, period, AREA_CHECK) for check_id in CHECK_IDS}
        names = {check_id: self.name_for(key, sink) for check_id, key in keys.items()}
        tolerance = self.config["balance_tolerance"]

        try:
            assets = self._total_expr(builder, "total_assets",
                                      (Category.CURRENT_ASSETS, Category.FIXED_ASSETS), period)
            liab_equity = self._total_expr(builder, "total_liab_and_equity",
                                           (Category.CURRENT_LIABILITIES,
                                            Category.NON_CURRENT_LIABILITIES, Category.EQUITY), period)
        except ModelError as exc:
            if exc.code != "UNRESOLVED_REFERENCE":
                raise
            result = check_balance(self.model.balance_sheet, [period], tolerance)[0]
            assets, liab_equity = Const(result.assets), Const(result.liab_equity)
            self.report.fallbacks.append({"statement": "BS", "line_id": "balance_check", "period": period,
                                          "name": (exc.details or {}).get("name")})
            logger.warning("平衡检查 %s 引用未绑定的名称, 写入计算值", period)

        sink.set_formula(keys["assets"], assets.formula())
        sink.set_formula(keys["liab_equity"], liab_equity.formula())
        sink.set_formula(keys["difference"],
                         Combine([(1, Ref(names["assets"])), (-1, Ref(names["liab_equity"]))]).formula())
        sink.set_formula(keys["balanced"],
                         LessThan(Abs(Ref(names["difference"])), Const(tolerance)).formula())
        currency = NUMBER_FORMATS[ValueType.CURRENCY]
        for check_id in ("assets", "liab_equity", "difference"):
            sink.set_format(keys[check_id], currency)
        self.report.formulas += 4


def compile_model(model: Model, sink: SpreadsheetSink) -> CompileReport:
    """编译模型到 sink"""
    return FormulaCompiler(model).compile_model(sink)
