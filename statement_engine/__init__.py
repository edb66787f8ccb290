# -*- coding: utf-8 -*-
"""
三表模型引擎

提供:
- 报表树 (Line / Statement / Model) 与标准模板
- 收入预测（增长率、单价×销量、客户×ARPU、占比、产品线）
- 位置分类（资产负债表类别、现金流区段）与现金流方向推断
- 求值器与有界重算、资产负债表平衡检查
- 变更入口 (ModelEditor)：受保护行、循环检测
- 公式编译器：导出带定义名称公式的 Excel

利润表、资产负债表、现金流量表共用一张公式表，
预览数值和导出公式按构造保持一致。

使用示例:
    from statement_engine import create_model, ModelEditor

    model = create_model("Acme", ["2024A"], ["2025E"])
    editor = ModelEditor(model)
    editor.set_value("IS", "rev", "2024A", 1000)
    editor.set_value("IS", "cogs", "2024A", 400)

    model.income_statement.find("gross_profit").value("2024A")   # 600.0
    editor.check_balance()
    editor.export("acme.xlsx")
"""

from .errors import ModelError
from .config import DEFAULT_ENGINE_CONFIG, default_config, load_engine_config
from .core import (
    CfsLink, IsLink, Line, LineKind, Statement, StatementKind, ValueType,
    Section, Category, Impact, Model, ModelMeta, create_model, build_statement,
    ProductLineItem, Projection, ProjectionMethod,
)
from .classify import category_of, section_of, infer_treatment, TreatmentResult
from .engine import (
    evaluate, Recalculator, RecomputeReport, recompute_model,
    BalanceResult, check_balance, ModelEditor,
)
from .io import FormulaCompiler, MemorySink, WorkbookSink, export_model

__version__ = "0.1.0"
__all__ = [
    'ModelError',
    'DEFAULT_ENGINE_CONFIG',
    'default_config',
    'load_engine_config',
    'CfsLink',
    'IsLink',
    'Line',
    'LineKind',
    'Statement',
    'StatementKind',
    'ValueType',
    'Section',
    'Category',
    'Impact',
    'Model',
    'ModelMeta',
    'create_model',
    'build_statement',
    'ProductLineItem',
    'Projection',
    'ProjectionMethod',
    'category_of',
    'section_of',
    'infer_treatment',
    'TreatmentResult',
    'evaluate',
    'Recalculator',
    'RecomputeReport',
    'recompute_model',
    'BalanceResult',
    'check_balance',
    'ModelEditor',
    'FormulaCompiler',
    'MemorySink',
    'WorkbookSink',
    'export_model',
]
