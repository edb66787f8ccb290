# -*- coding: utf-8 -*-
"""
Excel 公式构建器

公式表的第三种 Algebra：不算数，而是生成引用定义名称的表达式。
名称必须已经由 Sink 绑定，否则抛出 UNRESOLVED_REFERENCE，
由编译器回退为常量。
"""

from typing import Callable, List, Tuple

from ..errors import ModelError
from ..engine.formulas import Algebra
from .cell_tracker import CellTracker
from .expr import Combine, Const, Expr, Ref, SafeDiv, Scale, Sum
from .sink import AREA_SCHEDULE, CellKey, cell_key


class FormulaBuilder(Algebra):
    """
    Excel 公式构建器

    使用方法:
        builder = FormulaBuilder(namer, sink.tracker)
        expr = compute(builder, model, model.income_statement, line, "2025E")
        expr.formula()      # "=IS_rev_C-IS_cogs_C"
    """

    def __init__(self, namer: Callable[[CellKey], str], tracker: CellTracker):
        """
        Args:
            namer: 逻辑单元格 -> 定义名称
            tracker: 已绑定的名称
        """
        self.namer = namer
        self.tracker = tracker

    def ref(self, key: CellKey) -> Ref:
        """
        逻辑单元格的名称引用

        Raises:
            ModelError: UNRESOLVED_REFERENCE，名称未绑定
        """
        name = self.namer(key)
        if not self.tracker.has(name):
            raise ModelError("UNRESOLVED_REFERENCE", f"名称未绑定: {name}",
                             {"name": name, "statement": key.statement,
                              "line_id": key.line_id, "period": key.period})
        return Ref(name)

    # ==================== Algebra ====================

    def const(self, value: float) -> Expr:
        return Const(value)

    def cell(self, statement, line, period) -> Expr:
        return self.ref(cell_key(statement, line.id, period))

    def side(self, table, key, period) -> Expr:
        return self.ref(CellKey(table, key, period, AREA_SCHEDULE))

    def combine(self, terms: List[Tuple[int, Expr]]) -> Expr:
        if len(terms) == 1 and terms[0][0] > 0:
            return terms[0][1]
        return Combine(terms)

    def divide(self, numerator: Expr, denominator: Expr) -> Expr:
        return SafeDiv(numerator, denominator)

    def scale(self, term: Expr, factor: float) -> Expr:
        return Scale(term, factor)

    def sum_cells(self, terms: List[Expr]) -> Expr:
        return Sum(terms)
