# -*- coding: utf-8 -*-
"""
计算引擎

- formulas: 公式表与 Algebra
- evaluator: 求值与有界重算
- balance: 资产负债表平衡检查
- editor: 变更入口
"""

from .formulas import (
    Algebra, NumberAlgebra, DependencyAlgebra, FormulaContext,
    FORMULAS, compute, current_value, is_stored_cell, lookup_formula, projected_value,
)
from .evaluator import evaluate, Recalculator, RecomputeReport, recompute_model
from .balance import BalanceResult, check_balance
from .editor import ModelEditor

__all__ = [
    "Algebra", "NumberAlgebra", "DependencyAlgebra", "FormulaContext",
    "FORMULAS", "compute", "current_value", "is_stored_cell", "lookup_formula", "projected_value",
    "evaluate", "Recalculator", "RecomputeReport", "recompute_model",
    "BalanceResult", "check_balance", "ModelEditor",
]
