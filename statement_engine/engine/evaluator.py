# -*- coding: utf-8 -*-
"""
求值器与重算

evaluate(): 单个单元格的纯函数求值
Recalculator: 有界工作队列重算
    1. 自底向上：有子项的行存储子项之和
    2. 用 DependencyAlgebra 记录每个推导行的依赖
    3. 按 IS -> BS -> CFS 顺序逐轮处理队列，值变化超过容差时
       把依赖它（及其祖先）的行放回队列
    4. 队列清空即收敛；达到轮数上限仍非空则报告未收敛
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.line import Line, Statement, StatementKind
from ..core.model import Model
from .formulas import DependencyAlgebra, NumberAlgebra, compute, current_value, is_stored_cell

logger = logging.getLogger(__name__)

LineKey = Tuple[StatementKind, str]


def evaluate(line: Line, period: str, model: Model, statement: Optional[Statement] = None) -> float:
    """
    求值

    - 无子项的输入行：存储值（默认 0）
    - 有子项的行：直接子项 evaluate 之和（不论 kind）
    - 其他：按公式表分派，引用的行读取当前值；未知 ID 为 0

    Args:
        line: 报表行
        period: 期间
        model: 模型
        statement: 行所在报表（省略时按对象身份查找）

    Returns:
        数值
    """
    statement = statement or model.statement_of(line)
    if line.children:
        return sum(evaluate(child, period, model, statement) for child in line.children)
    return compute(NumberAlgebra(model), model, statement, line, period)


@dataclass
class RecomputeReport:
    """一次重算的结果"""
    period: str
    converged: bool
    rounds: int
    evaluations: int
    changed: List[LineKey] = field(default_factory=list)
    pending: List[LineKey] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "converged": self.converged,
            "rounds": self.rounds,
            "evaluations": self.evaluations,
            "changed": [f"{kind.value}.{line_id}" for kind, line_id in self.changed],
            "pending": [f"{kind.value}.{line_id}" for kind, line_id in self.pending],
        }


class Recalculator:
    """
    重算器

    使用方法:
        calc = Recalculator(model)
        report = calc.recompute("2025E")
        if not report.converged:
            print(report.pending)
    """

    def __init__(self, model: Model, tolerance: Optional[float] = None,
                 max_iterations: Optional[int] = None):
        self.model = model
        self.tolerance = model.config["tolerance"] if tolerance is None else tolerance
        self.max_iterations = model.config["max_iterations"] if max_iterations is None else max_iterations

    def recompute_all(self) -> List[RecomputeReport]:
        """按期间顺序重算所有期间"""
        return [self.recompute(period) for period in self.model.periods]

    def recompute(self, period: str) -> RecomputeReport:
        model = self.model
        for statement in model.statements:
            for line in statement.lines:
                self._roll_up(line, period)

        derived = self._derived_cells(period)
        keys = [(statement.kind, line.id) for statement, line in derived]
        dependents = self._dependents(derived, period)
        algebra = NumberAlgebra(model)

        queue = list(range(len(derived)))
        rounds = 0
        evaluations = 0
        changed: Dict[LineKey, None] = {}

        while queue and rounds < self.max_iterations:
            rounds += 1
            waiting = set(queue)
            next_round = set()
            for i in queue:
                waiting.discard(i)
                statement, line = derived[i]
                new_value = compute(algebra, model, statement, line, period)
                evaluations += 1
                old_value = line.values.get(period)
                line.values[period] = new_value
                if old_value is not None and abs(new_value - old_value) <= self.tolerance:
                    continue

                changed[keys[i]] = None
                touched = [keys[i]]
                for ancestor in statement.ancestors(line.id):
                    ancestor.values[period] = current_value(ancestor, period)
                    touched.append((statement.kind, ancestor.id))
                for key in touched:
                    for dependent in dependents.get(key, ()):
                        if dependent not in waiting:
                            next_round.add(dependent)

            logger.debug("重算 %s 第 %d 轮: 处理 %d 行, 下一轮 %d 行",
                         period, rounds, len(queue), len(next_round))
            queue = sorted(next_round)

        report = RecomputeReport(
            period=period,
            converged=not queue,
            rounds=rounds,
            evaluations=evaluations,
            changed=list(changed),
            pending=[keys[i] for i in queue],
        )
        if not report.converged:
            logger.warning("重算 %s 在 %d 轮后未收敛, 仍待处理: %s",
                           period, rounds, [f"{k.value}.{i}" for k, i in report.pending])
        return report

    def _roll_up(self, line: Line, period: str) -> None:
        """自底向上存储子项之和"""
        if not line.children:
            return
        for child in line.children:
            self._roll_up(child, period)
        line.values[period] = sum(current_value(child, period) for child in line.children)

    def _derived_cells(self, period: str) -> List[Tuple[Statement, Line]]:
        """需要按公式计算的无子项单元格，按报表顺序"""
        cells = []
        for statement in self.model.statements:
            for line, _ in statement.walk():
                if line.children:
                    continue
                if is_stored_cell(self.model, statement.kind, line, period):
                    continue
                cells.append((statement, line))
        return cells

    def _dependents(self, derived: List[Tuple[Statement, Line]], period: str) -> Dict[LineKey, List[int]]:
        """依赖反查表: 被引用的行 -> 引用它的推导单元格下标"""
        algebra = DependencyAlgebra(period)
        dependents: Dict[LineKey, List[int]] = {}
        for i, (statement, line) in enumerate(derived):
            for key in compute(algebra, self.model, statement, line, period):
                dependents.setdefault(key, []).append(i)
        return dependents


def recompute_model(model: Model, period: Optional[str] = None) -> List[RecomputeReport]:
    """重算指定期间（省略时全部期间）"""
    calc = Recalculator(model)
    if period is None:
        return calc.recompute_all()
    return [calc.recompute(period)]
