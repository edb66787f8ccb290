# -*- coding: utf-8 -*-
"""
模型编辑入口

所有结构变更（增、删、移动、改挂）和数值编辑都经过 ModelEditor。
非法操作在这里被拒绝，不会进入求值器:
    - 删除受保护的结构行 -> PROTECTED_LINE
    - 把行挂到自己或自己的后代之下 -> CYCLE_DETECTED
    - 按依赖自身的行的占比做预测 -> CYCLE_DETECTED

每次变更后立即重算受影响的期间。
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..errors import ModelError
from ..core.line import Category, IsLink, Line, Section, Statement, StatementKind
from ..core.model import Model
from ..core.projection import Projection, ProjectionMethod
from ..core.well_known import PROTECTED_IDS, SECTION_TOTALS
from ..classify.catalogue import find_term_knowledge
from ..classify.classifier import insertion_index_for_category, section_of
from ..classify.treatment import TreatmentResult, analyze_bs_items_for_cfo, infer_treatment
from .balance import BalanceResult, check_balance
from .evaluator import Recalculator, RecomputeReport
from .formulas import DependencyAlgebra, compute, is_stored_cell, lookup_formula, projected_periods

logger = logging.getLogger(__name__)

_SECTION_TOTAL_IDS = {section: line_id for line_id, section in SECTION_TOTALS.items()}


class ModelEditor:
    """
    模型编辑器

    使用方法:
        editor = ModelEditor(create_model("Acme", ["2024A"], ["2025E"]))
        editor.set_value("IS", "rev", "2024A", 1000)
        editor.set_projection("IS", "rev", Projection.growth(5))
        line, treatment = editor.add_cash_flow_item("Proceeds from asset sales", Section.INVESTING)
        editor.remove_line("BS", "other_ca")
        editor.export("model.xlsx")
    """

    def __init__(self, model: Model):
        self.model = model
        self.recalculator = Recalculator(model)
        self.treatments: Dict[str, TreatmentResult] = {}
        self.last_reports: List[RecomputeReport] = []

    # ==================== 查找 ====================

    def _statement(self, statement) -> Statement:
        if isinstance(statement, Statement):
            return statement
        return self.model.statement(statement)

    def _require(self, statement: Statement, line_id: str) -> Line:
        line = statement.find(line_id)
        if line is None:
            raise ModelError("LINE_NOT_FOUND", f"{statement.kind.value} 中不存在行: {line_id}",
                             {"statement": statement.kind.value, "line_id": line_id})
        return line

    def _check_new_ids(self, statement: Statement, line: Line) -> None:
        for node, _ in line.walk():
            if statement.find(node.id) is not None:
                raise ModelError("DUPLICATE_LINE_ID", f"{statement.kind.value} 中已存在行: {node.id}",
                                 {"statement": statement.kind.value, "line_id": node.id})

    # ==================== 新增 ====================

    def add_line(self, statement, line: Line, index: Optional[int] = None,
                 category: Optional[Category] = None,
                 section: Optional[Section] = None) -> Line:
        """
        新增顶层行

        Args:
            statement: 报表（"IS"/"BS"/"CFS" 或 Statement）
            line: 新行
            index: 插入位置，省略时按 category / section 决定，否则追加到末尾
            category: 资产负债表类别（插到该类别末尾）
            section: 现金流区段（插到该区段合计之前）

        Returns:
            插入的行
        """
        target = self._statement(statement)
        self._check_new_ids(target, line)
        if index is None:
            index = self._default_index(target, category, section)
        if index < 0 or index > len(target.lines):
            raise ModelError("INVALID_POSITION", f"插入位置越界: {index}",
                             {"index": index, "size": len(target.lines)})
        target.lines.insert(index, line)
        self._annotate_new_line(target, line, section)
        self.recompute()
        return line

    def add_child(self, statement, parent_id: str, line: Line, index: Optional[int] = None) -> Line:
        """在 parent_id 下新增子项（父行随后取子项之和）"""
        target = self._statement(statement)
        parent = self._require(target, parent_id)
        self._check_new_ids(target, line)
        if index is None:
            index = len(parent.children)
        if index < 0 or index > len(parent.children):
            raise ModelError("INVALID_POSITION", f"插入位置越界: {index}",
                             {"index": index, "size": len(parent.children)})
        parent.children.insert(index, line)
        self._annotate_new_line(target, line, None)
        self.recompute()
        return line

    def add_cash_flow_item(self, label: str, section: Section, line_id: Optional[str] = None,
                           values: Optional[Dict[str, float]] = None) -> Tuple[Line, TreatmentResult]:
        """
        新增自定义现金流条目，返回推断结果（含 confident 标记）

        未识别的条目同样被接受，只是 confident=False
        """
        line = Line(id=line_id or self._unique_id(self.model.cash_flow, label),
                    label=label, values=dict(values or {}))
        self.add_line(StatementKind.CFS, line, section=section)
        return line, self.treatments[line.id]

    def _default_index(self, statement: Statement, category: Optional[Category],
                       section: Optional[Section]) -> int:
        if category is not None and statement.kind is StatementKind.BS:
            return insertion_index_for_category(statement, category)
        if section is not None and statement.kind is StatementKind.CFS:
            total_index = statement.index_of(_SECTION_TOTAL_IDS.get(section, ""))
            if total_index >= 0:
                return total_index
        return len(statement.lines)

    def _annotate_new_line(self, statement: Statement, line: Line, section: Optional[Section]) -> None:
        """创建时的一次性推断：现金流行写入 cfs_link，资产负债表行补 is_link"""
        for node, _ in line.walk():
            if statement.kind is StatementKind.CFS and node.cfs_link is None and not node.is_derived_kind:
                target_section = section or section_of(node.id, statement)
                if target_section is None:
                    continue
                result = infer_treatment(node.label, target_section)
                node.cfs_link = result.to_cfs_link(target_section)
                self.treatments[node.id] = result
                if not result.confident:
                    logger.warning("未识别的现金流条目 %r, 按默认方向 %s 处理",
                                   node.label, result.impact.value)
            elif statement.kind is StatementKind.BS and node.is_link is None:
                knowledge = find_term_knowledge(node.label)
                if knowledge is not None and knowledge.is_item_id:
                    node.is_link = IsLink(knowledge.is_item_id, knowledge.description)

    @staticmethod
    def _unique_id(statement: Statement, label: str) -> str:
        base = "".join(ch if ch.isalnum() else "_" for ch in label.lower()).strip("_") or "item"
        while "__" in base:
            base = base.replace("__", "_")
        candidate, n = base, 2
        while statement.find(candidate) is not None:
            candidate = f"{base}_{n}"
            n += 1
        return candidate

    # ==================== 删除 / 移动 ====================

    def remove_line(self, statement, line_id: str) -> Line:
        """删除行（含其子项），受保护的结构行不可删除"""
        target = self._statement(statement)
        line = self._require(target, line_id)
        protected = [node.id for node, _ in line.walk() if node.id in PROTECTED_IDS]
        if protected:
            raise ModelError("PROTECTED_LINE", f"受保护的结构行不可删除: {', '.join(protected)}",
                             {"statement": target.kind.value, "line_id": line_id})
        self._detach(target, line)
        for node, _ in line.walk():
            self.treatments.pop(node.id, None)
        self.recompute()
        return line

    def move_line(self, statement, line_id: str, new_index: int) -> None:
        """在同级内调整顺序（会改变位置分类）"""
        target = self._statement(statement)
        line = self._require(target, line_id)
        siblings = self._siblings(target, line)
        if new_index < 0 or new_index >= len(siblings):
            raise ModelError("INVALID_POSITION", f"目标位置越界: {new_index}",
                             {"index": new_index, "size": len(siblings)})
        siblings.remove(line)
        siblings.insert(new_index, line)
        self.recompute()

    def reparent(self, statement, line_id: str, new_parent_id: Optional[str],
                 index: Optional[int] = None) -> None:
        """
        改挂到新的父行（new_parent_id 为 None 时提升为顶层行）

        新父行是自身或自身后代时拒绝（CYCLE_DETECTED）
        """
        target = self._statement(statement)
        line = self._require(target, line_id)
        if new_parent_id is None:
            destination = target.lines
        else:
            parent = self._require(target, new_parent_id)
            if any(node is parent for node, _ in line.walk()):
                raise ModelError("CYCLE_DETECTED", f"不能把 {line_id} 挂到自身或其后代 {new_parent_id} 之下",
                                 {"line_id": line_id, "new_parent_id": new_parent_id})
            destination = parent.children

        # 先校验位置再摘下，失败时模型保持不变
        size = len(destination)
        if destination is self._siblings(target, line):
            size -= 1
        position = size if index is None else index
        if position < 0 or position > size:
            raise ModelError("INVALID_POSITION", f"插入位置越界: {position}",
                             {"index": position, "size": size})
        self._detach(target, line)
        destination.insert(position, line)
        self.recompute()

    def _siblings(self, statement: Statement, line: Line) -> List[Line]:
        parent = statement.parent_of(line.id)
        return parent.children if parent is not None else statement.lines

    def _detach(self, statement: Statement, line: Line) -> None:
        self._siblings(statement, line).remove(line)

    # ==================== 数值 ====================

    def set_value(self, statement, line_id: str, period: str, value: float) -> List[RecomputeReport]:
        """编辑输入值，然后重算该期及之后的期间"""
        target = self._statement(statement)
        line = self._require(target, line_id)
        if not is_stored_cell(self.model, target.kind, line, period):
            raise ModelError("NOT_EDITABLE", f"{line_id} 在 {period} 为计算值，不可直接编辑",
                             {"line_id": line_id, "period": period})
        line.values[period] = float(value)
        return self.recompute(period, following=True)

    def set_projection(self, statement, line_id: str,
                       projection: Optional[Projection]) -> List[RecomputeReport]:
        """
        设置行的预测方法（None 为清除），然后重算全部期间

        拒绝:
            - 有子项、计算行或有专用公式的行 -> NOT_EDITABLE
            - product_line 没有产品线 -> PROJECTION_INVALID
            - pct_of_total 的参考行不存在 -> LINE_NOT_FOUND
            - 参考行直接或间接依赖本行 -> CYCLE_DETECTED
        """
        target = self._statement(statement)
        line = self._require(target, line_id)
        if projection is not None:
            if line.children or line.is_derived_kind or lookup_formula(target.kind, line.id) is not None:
                raise ModelError("NOT_EDITABLE", f"{line_id} 不是可预测的输入行",
                                 {"line_id": line_id})
            if projection.method is ProjectionMethod.PRODUCT_LINE and not projection.items:
                raise ModelError("PROJECTION_INVALID", f"{line_id} 的产品线预测缺少产品线",
                                 {"line_id": line_id, "method": projection.method.value})
            if projection.method is ProjectionMethod.PCT_OF_TOTAL:
                reference = self._require(target, projection.reference_id)
                if self._depends_on(target, reference, line):
                    raise ModelError("CYCLE_DETECTED",
                                     f"{line_id} 不能按依赖自身的 {reference.id} 的占比预测",
                                     {"line_id": line_id, "reference_id": reference.id})
        line.projection = projection
        return self.recompute()

    def _depends_on(self, statement: Statement, start: Line, target: Line) -> bool:
        """预测期内 start 的值是否（传递地）依赖 target"""
        periods = projected_periods(self.model)
        if not periods:
            return False
        algebra = DependencyAlgebra(periods[0])
        goal = (statement.kind, target.id)
        stack = [(statement.kind, start.id)]
        seen = set()
        while stack:
            key = stack.pop()
            if key == goal:
                return True
            if key in seen:
                continue
            seen.add(key)
            owner = self.model.statement(key[0])
            line = owner.find(key[1])
            if line is not None:
                stack.extend(compute(algebra, self.model, owner, line, periods[0]))
        return False

    def set_sbc(self, category_id: str, period: str, value: float) -> List[RecomputeReport]:
        self.model.sbc_breakdowns.setdefault(category_id, {})[period] = float(value)
        return self.recompute(period)

    def set_dana(self, period: str, value: float) -> List[RecomputeReport]:
        self.model.dana_breakdowns[period] = float(value)
        return self.recompute(period)

    # ==================== 资产负债表 -> 经营现金流 ====================

    def apply_cfo_suggestions(self) -> List[Line]:
        """把自动判定的资产负债表科目加入经营现金流（已存在的跳过）"""
        added = []
        for suggestion in analyze_bs_items_for_cfo(self.model.balance_sheet):
            if suggestion.treatment != "auto_add":
                continue
            if self.model.cash_flow.find(suggestion.cfs_line_id) is not None:
                continue
            line = suggestion.to_line()
            index = self._default_index(self.model.cash_flow, None, Section.OPERATING)
            self.model.cash_flow.lines.insert(index, line)
            added.append(line)
        if added:
            self.recompute()
        return added

    # ==================== 重算 / 检查 / 导出 ====================

    def recompute(self, period: Optional[str] = None, following: bool = False) -> List[RecomputeReport]:
        """
        重算

        Args:
            period: 指定期间，省略时重算全部
            following: 同时重算之后的期间（下一期的变动类公式依赖本期）
        """
        periods = self.model.periods
        if period is None:
            targets = periods
        elif following and period in periods:
            targets = periods[periods.index(period):]
        else:
            targets = [period]
        self.last_reports = [self.recalculator.recompute(p) for p in targets]
        return self.last_reports

    def check_balance(self) -> List[BalanceResult]:
        return check_balance(self.model.balance_sheet, self.model.periods,
                             self.model.config["balance_tolerance"])

    def export(self, path):
        """导出为带公式的 Excel 工作簿"""
        from ..io.excel_writer import export_model
        return export_model(self.model, path)
