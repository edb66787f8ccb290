# -*- coding: utf-8 -*-
"""
输入输出模块

- expr / formula_eval: 公式表达式与公式文本求值
- cell_tracker / formula_builder: 名称绑定与公式构建
- sink: 输出目标（布局）与内存实现
- compiler: 公式编译器
- excel_writer: openpyxl 输出与导出入口
"""

from .cell_tracker import CellTracker
from .compiler import CompileReport, FormulaCompiler, compile_model, sanitize, unique_fragments
from .excel_writer import WorkbookSink, export_model
from .expr import Abs, Combine, Const, Expr, LessThan, Ref, SafeDiv, Scale, Sum
from .formula_builder import FormulaBuilder
from .formula_eval import evaluate_formula, parse_formula
from .sink import CellKey, MemorySink, SpreadsheetSink, cell_key

__all__ = [
    "CellTracker", "CompileReport", "FormulaCompiler", "compile_model", "sanitize", "unique_fragments",
    "WorkbookSink", "export_model",
    "Abs", "Combine", "Const", "Expr", "LessThan", "Ref", "SafeDiv", "Scale", "Sum",
    "FormulaBuilder", "evaluate_formula", "parse_formula",
    "CellKey", "MemorySink", "SpreadsheetSink", "cell_key",
]
