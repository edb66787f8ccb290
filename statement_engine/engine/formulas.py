# -*- coding: utf-8 -*-
"""
公式表

每个保留 ID 对应一个公式函数，公式只通过 FormulaContext 读取其他行，
运算交给 Algebra。同一张表配合不同的 Algebra 使用:

- NumberAlgebra: 直接得到数值（求值器）
- DependencyAlgebra: 收集依赖（重算工作队列）
- FormulaBuilder (io.formula_builder): 生成 Excel 表达式（公式编译器）

所以预览数值和导出公式按构造一致，不需要两套公式。
"""

from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from ..core.line import Category, Impact, Line, LineKind, Section, Statement, StatementKind
from ..core.model import Model
from ..core.projection import ProjectionMethod
from ..core.well_known import CFO_PREFIX, OPEX_IDS, WORKING_CAPITAL_EXCLUDED
from ..classify.classifier import rows_for_category, section_members


# ==================== Algebra ====================

class Algebra:
    """
    公式运算接口

    cell() 的语义是"该行在该期间的当前值"：有子项时为子项之和，否则为存储值
    """

    def const(self, value: float):
        raise NotImplementedError

    def cell(self, statement: StatementKind, line: Line, period: str):
        raise NotImplementedError

    def side(self, table: str, key: str, period: str):
        """侧表取值，table 为 "SBC" 或 "DANA" """
        raise NotImplementedError

    def combine(self, terms: List[Tuple[int, Any]]):
        """带符号求和: [(+1, a), (-1, b)] -> a - b"""
        raise NotImplementedError

    def divide(self, numerator, denominator):
        """除法，分母为 0 时结果为 0"""
        raise NotImplementedError

    def scale(self, term, factor: float):
        """乘以常数倍数"""
        raise NotImplementedError

    def sum_cells(self, terms: List[Any]):
        """子项求和"""
        return self.combine([(1, term) for term in terms])

    # 便捷方法
    def add(self, *terms):
        if not terms:
            return self.const(0.0)
        return self.combine([(1, term) for term in terms])

    def subtract(self, a, b):
        return self.combine([(1, a), (-1, b)])

    def negate(self, a):
        return self.combine([(-1, a)])


def current_value(line: Line, period: str) -> float:
    """当前值：有子项为子项之和（逐层），否则为存储值"""
    if line.children:
        return sum(current_value(child, period) for child in line.children)
    return line.value(period)


class NumberAlgebra(Algebra):
    """数值运算"""

    def __init__(self, model: Model):
        self.model = model

    def const(self, value: float) -> float:
        return float(value)

    def cell(self, statement, line, period) -> float:
        return current_value(line, period)

    def side(self, table, key, period) -> float:
        if table == "SBC":
            return self.model.sbc_for(key, period)
        return self.model.dana_for(period)

    def combine(self, terms) -> float:
        return float(sum(sign * value for sign, value in terms))

    def divide(self, numerator, denominator) -> float:
        if denominator == 0:
            return 0.0
        return numerator / denominator

    def scale(self, term, factor) -> float:
        return term * factor

    def sum_cells(self, terms) -> float:
        return float(sum(terms))


class DependencyAlgebra(Algebra):
    """
    依赖收集

    只记录同一期间的行依赖；上一期间的值在本期重算中不会变化
    """

    def __init__(self, period: str):
        self.period = period

    def const(self, value) -> FrozenSet:
        return frozenset()

    def cell(self, statement, line, period) -> FrozenSet:
        if period != self.period:
            return frozenset()
        return frozenset({(statement, line.id)})

    def side(self, table, key, period) -> FrozenSet:
        return frozenset()

    def combine(self, terms) -> FrozenSet:
        result = frozenset()
        for _, deps in terms:
            result = result | deps
        return result

    def divide(self, numerator, denominator) -> FrozenSet:
        return numerator | denominator

    def scale(self, term, factor) -> FrozenSet:
        return term


# ==================== 公式上下文 ====================

class FormulaContext:
    """
    单个单元格（报表 + 行 + 期间）的公式上下文

    缺失的行按 0 处理
    """

    def __init__(self, algebra: Algebra, model: Model, statement: Statement, line: Line, period: str):
        self.algebra = algebra
        self.model = model
        self.statement = statement
        self.line = line
        self.period = period

    @property
    def a(self) -> Algebra:
        return self.algebra

    def find(self, line_id: str, statement: Optional[StatementKind] = None) -> Optional[Line]:
        target = self.model.statement(statement) if statement else self.statement
        return target.find(line_id)

    def ref(self, line_id: str, statement: Optional[StatementKind] = None, period: Optional[str] = None):
        kind = statement or self.statement.kind
        line = self.find(line_id, kind)
        if line is None:
            return self.algebra.const(0.0)
        return self.algebra.cell(kind, line, period or self.period)

    def ref_line(self, line: Line, period: Optional[str] = None):
        return self.algebra.cell(self.statement.kind, line, period or self.period)

    def ref_line_in(self, statement: StatementKind, line: Line, period: Optional[str] = None):
        return self.algebra.cell(statement, line, period or self.period)

    def has(self, line_id: str, statement: Optional[StatementKind] = None) -> bool:
        return self.find(line_id, statement) is not None

    def index(self, line_id: str) -> int:
        return self.statement.index_of(line_id)

    @property
    def previous_period(self) -> Optional[str]:
        return self.model.previous_period(self.period)

    def sum_lines(self, lines: List[Line], period: Optional[str] = None):
        if not lines:
            return self.algebra.const(0.0)
        return self.algebra.add(*[self.ref_line(line, period) for line in lines])

    def between(self, start_id: str, end_id: str) -> Optional[List[Line]]:
        """两个顶层行之间的顶层行；任一不存在或顺序颠倒返回 None"""
        start, end = self.index(start_id), self.index(end_id)
        if start < 0 or end < 0 or end <= start:
            return None
        return self.statement.lines[start + 1:end]


FormulaFn = Callable[[FormulaContext], Any]

FORMULAS: Dict[Tuple[StatementKind, str], FormulaFn] = {}


def formula(statement: StatementKind, line_id: str):
    """注册公式"""
    def decorator(fn: FormulaFn) -> FormulaFn:
        FORMULAS[(statement, line_id)] = fn
        return fn
    return decorator


def lookup_formula(statement: StatementKind, line_id: str) -> Optional[FormulaFn]:
    fn = FORMULAS.get((statement, line_id))
    if fn is None and statement is StatementKind.CFS and line_id.startswith(CFO_PREFIX):
        return cfo_change
    return fn


def is_stored_cell(model: Model, statement: StatementKind, line: Line, period: str) -> bool:
    """
    该单元格是否为存储输入（而非推导）

    wc_change 在历史期为输入，预测期由资产负债表推导；
    带 projection 的输入行在预测期按预测方法推导
    """
    if line.children:
        return False
    if statement is StatementKind.CFS and line.id == "wc_change":
        return not model.is_projected(period)
    if line.kind is not LineKind.INPUT:
        return False
    return line.projection is None or not model.is_projected(period)


def compute(algebra: Algebra, model: Model, statement: Statement, line: Line, period: str):
    """
    按公式表计算一个单元格

    有子项 -> 子项求和；存储输入 -> 当前值；预测行 -> 预测方法；
    否则按 ID 分派，未知 ID 为 0
    """
    if line.children:
        return algebra.sum_cells([algebra.cell(statement.kind, child, period) for child in line.children])
    if is_stored_cell(model, statement.kind, line, period):
        return algebra.cell(statement.kind, line, period)
    if line.projection is not None and line.kind is LineKind.INPUT:
        return projected_value(FormulaContext(algebra, model, statement, line, period))
    fn = lookup_formula(statement.kind, line.id)
    if fn is None:
        return algebra.const(0.0)
    return fn(FormulaContext(algebra, model, statement, line, period))


# ==================== 利润表 ====================

_IS = StatementKind.IS
_BS = StatementKind.BS
_CFS = StatementKind.CFS


@formula(_IS, "gross_profit")
def gross_profit(ctx: FormulaContext):
    return ctx.a.subtract(ctx.ref("rev"), ctx.ref("cogs"))


@formula(_IS, "gross_margin")
def gross_margin(ctx: FormulaContext):
    return ctx.a.divide(ctx.ref("gross_profit"), ctx.ref("rev"))


def operating_expenses(ctx: FormulaContext, upto: str) -> List[Line]:
    """
    营业费用：gross_profit 与 upto 之间的顶层输入行

    位置窗口不可用时回退到 sga / rd / other_opex，
    跳过嵌套在其他营业费用之下的行（已被父行汇总）
    """
    window = ctx.between("gross_profit", upto)
    if window is not None:
        return [line for line in window if line.kind is LineKind.INPUT]

    expenses = []
    for line_id in OPEX_IDS:
        line = ctx.find(line_id)
        if line is None:
            continue
        if any(parent.id in OPEX_IDS for parent in ctx.statement.ancestors(line_id)):
            continue
        expenses.append(line)
    return expenses


@formula(_IS, "ebitda")
def ebitda(ctx: FormulaContext):
    expenses = operating_expenses(ctx, "ebitda")
    if not expenses:
        return ctx.ref("gross_profit")
    return ctx.a.combine([(1, ctx.ref("gross_profit"))] + [(-1, ctx.ref_line(line)) for line in expenses])


@formula(_IS, "ebitda_margin")
def ebitda_margin(ctx: FormulaContext):
    return ctx.a.divide(ctx.ref("ebitda"), ctx.ref("rev"))


@formula(_IS, "ebit")
def ebit(ctx: FormulaContext):
    if ctx.has("ebitda") and 0 <= ctx.index("ebitda") < ctx.index("ebit"):
        return ctx.a.subtract(ctx.ref("ebitda"), ctx.ref("danda"))
    expenses = operating_expenses(ctx, "ebit")
    return ctx.a.combine([(1, ctx.ref("gross_profit"))] + [(-1, ctx.ref_line(line)) for line in expenses])


@formula(_IS, "ebit_margin")
def ebit_margin(ctx: FormulaContext):
    return ctx.a.divide(ctx.ref("ebit"), ctx.ref("rev"))


@formula(_IS, "ebt")
def ebt(ctx: FormulaContext):
    """EBT = EBIT - 利息费用 + ebit 与 ebt 之间的其他输入行（含用户新增）"""
    window = ctx.between("ebit", "ebt")
    if window is None:
        return ctx.a.combine([
            (1, ctx.ref("ebit")),
            (-1, ctx.ref("interest_expense")),
            (1, ctx.ref("interest_income")),
            (1, ctx.ref("other_income")),
        ])
    terms = [(1, ctx.ref("ebit"))]
    for line in window:
        if line.kind is not LineKind.INPUT:
            continue
        sign = -1 if line.id == "interest_expense" else 1
        terms.append((sign, ctx.ref_line(line)))
    return ctx.a.combine(terms)


@formula(_IS, "net_income")
def net_income(ctx: FormulaContext):
    return ctx.a.subtract(ctx.ref("ebt"), ctx.ref("tax"))


@formula(_IS, "net_income_margin")
def net_income_margin(ctx: FormulaContext):
    return ctx.a.divide(ctx.ref("net_income"), ctx.ref("rev"))


# ==================== 资产负债表 ====================

def category_members(ctx: FormulaContext, category: Category) -> List[Line]:
    return rows_for_category(ctx.statement, category, include_subtotals=False)


def _category_total(category: Category):
    def fn(ctx: FormulaContext):
        return ctx.sum_lines(category_members(ctx, category))
    fn.__name__ = f"total_{category.value}"
    return fn


for _line_id, _category in (
    ("total_current_assets", Category.CURRENT_ASSETS),
    ("total_fixed_assets", Category.FIXED_ASSETS),
    ("total_current_liabilities", Category.CURRENT_LIABILITIES),
    ("total_non_current_liabilities", Category.NON_CURRENT_LIABILITIES),
    ("total_equity", Category.EQUITY),
):
    formula(_BS, _line_id)(_category_total(_category))


def _two_part_total(ctx: FormulaContext, first: str, second: str, second_category: Category):
    """合计 = 第一部分小计 + 第二部分小计（小计缺失时直接加总成员）"""
    if ctx.has(second):
        return ctx.a.add(ctx.ref(first), ctx.ref(second))
    members = category_members(ctx, second_category)
    return ctx.a.add(ctx.ref(first), *[ctx.ref_line(line) for line in members])


@formula(_BS, "total_assets")
def total_assets(ctx: FormulaContext):
    return _two_part_total(ctx, "total_current_assets", "total_fixed_assets", Category.FIXED_ASSETS)


@formula(_BS, "total_liabilities")
def total_liabilities(ctx: FormulaContext):
    return _two_part_total(ctx, "total_current_liabilities", "total_non_current_liabilities",
                           Category.NON_CURRENT_LIABILITIES)


@formula(_BS, "total_liab_and_equity")
def total_liab_and_equity(ctx: FormulaContext):
    return ctx.a.add(ctx.ref("total_liabilities"), ctx.ref("total_equity"))


# ==================== 现金流量表 ====================

@formula(_CFS, "net_income")
def cfs_net_income(ctx: FormulaContext):
    return ctx.ref("net_income", _IS)


@formula(_CFS, "danda")
def cfs_danda(ctx: FormulaContext):
    if ctx.has("danda", _IS):
        return ctx.ref("danda", _IS)
    return ctx.a.side("DANA", "total", ctx.period)


def sbc_categories(model: Model) -> List[str]:
    """
    SBC 侧表需要加总的分类键

    sga / cogs 有明细时取明细 ID，否则取 "sga" / "cogs" 本身，避免重复计算
    """
    keys: List[str] = []
    for parent_id in ("sga", "cogs"):
        parent = model.income_statement.find(parent_id)
        if parent is not None and parent.children:
            keys.extend(child.id for child in parent.children)
        else:
            keys.append(parent_id)
    return keys


@formula(_CFS, "sbc")
def cfs_sbc(ctx: FormulaContext):
    return ctx.a.add(*[ctx.a.side("SBC", key, ctx.period) for key in sbc_categories(ctx.model)])


def working_capital_lines(model: Model) -> Tuple[List[Line], List[Line]]:
    """营运资本口径：流动资产（不含现金）与流动负债（不含短期借款）"""
    balance_sheet = model.balance_sheet
    assets = [
        line for line in rows_for_category(balance_sheet, Category.CURRENT_ASSETS, include_subtotals=False)
        if line.id not in WORKING_CAPITAL_EXCLUDED
    ]
    liabilities = [
        line for line in rows_for_category(balance_sheet, Category.CURRENT_LIABILITIES, include_subtotals=False)
        if line.id not in WORKING_CAPITAL_EXCLUDED
    ]
    return assets, liabilities


@formula(_CFS, "wc_change")
def wc_change(ctx: FormulaContext):
    """
    预测期营运资本变动 = -(本期营运资本 - 上期营运资本)

    营运资本增加占用现金，所以取负；没有上一期时为 0
    """
    previous = ctx.previous_period
    if previous is None:
        return ctx.a.const(0.0)
    assets, liabilities = working_capital_lines(ctx.model)
    terms = []
    for line in assets:
        terms.append((-1, ctx.ref_line_in(_BS, line, ctx.period)))
        terms.append((1, ctx.ref_line_in(_BS, line, previous)))
    for line in liabilities:
        terms.append((1, ctx.ref_line_in(_BS, line, ctx.period)))
        terms.append((-1, ctx.ref_line_in(_BS, line, previous)))
    if not terms:
        return ctx.a.const(0.0)
    return ctx.a.combine(terms)


def cfo_change(ctx: FormulaContext):
    """
    cfo_<bs_id>：资产负债表行的本期变动

    cfs_link.impact 为 negative 时取负；没有上一期或找不到对应行时为 0
    """
    bs_id = ctx.line.id[len(CFO_PREFIX):]
    bs_line = ctx.find(bs_id, _BS)
    previous = ctx.previous_period
    if bs_line is None or previous is None:
        return ctx.a.const(0.0)
    current_ref = ctx.ref_line_in(_BS, bs_line, ctx.period)
    previous_ref = ctx.ref_line_in(_BS, bs_line, previous)
    link = ctx.line.cfs_link
    if link is not None and link.impact is Impact.NEGATIVE:
        return ctx.a.subtract(previous_ref, current_ref)
    return ctx.a.subtract(current_ref, previous_ref)


def _section_total(section: Section):
    def fn(ctx: FormulaContext):
        return ctx.sum_lines(section_members(ctx.statement, section))
    fn.__name__ = f"{section.value}_cf"
    return fn


for _line_id, _section in (
    ("operating_cf", Section.OPERATING),
    ("investing_cf", Section.INVESTING),
    ("financing_cf", Section.FINANCING),
):
    formula(_CFS, _line_id)(_section_total(_section))


@formula(_CFS, "net_change_cash")
def net_change_cash(ctx: FormulaContext):
    return ctx.a.add(ctx.ref("operating_cf"), ctx.ref("investing_cf"), ctx.ref("financing_cf"))


# ==================== 收入预测 ====================

def projected_periods(model: Model) -> List[str]:
    return [period for period in model.periods if model.is_projected(period)]


def _growth_base(ctx: FormulaContext, first: bool):
    """增长的基数：上一期的值，第一个预测期可用 base_amount 覆盖"""
    projection = ctx.line.projection
    if first and projection.base_amount is not None:
        return ctx.a.const(projection.base_amount)
    previous = ctx.previous_period
    if previous is None:
        return ctx.a.const(0.0)
    return ctx.ref_line(ctx.line, previous)


def projected_value(ctx: FormulaContext):
    """
    预测行在预测期的值

    增长类方法引用上一期的同一行，导出的公式因此是
    "=IS_rev_C*1.05" 这样的逐期链式引用
    """
    projection = ctx.line.projection
    method = projection.method
    previous = ctx.previous_period
    first = previous is None or ctx.model.is_historical(previous)

    if method is ProjectionMethod.GROWTH_RATE:
        return ctx.a.scale(_growth_base(ctx, first), 1 + projection.rate_for(ctx.period))

    if method in (ProjectionMethod.PRICE_VOLUME, ProjectionMethod.CUSTOMERS_ARPU):
        growth = projection.driver_growth()
        if first:
            return ctx.a.const(projection.driver_base() * growth)
        return ctx.a.scale(ctx.ref_line(ctx.line, previous), growth)

    if method is ProjectionMethod.PCT_OF_TOTAL:
        return ctx.a.scale(ctx.ref(projection.reference_id), projection.pct_of_total / 100)

    # 产品线：以最后一个历史期为基数，不逐期链式增长
    periods = projected_periods(ctx.model)
    step = periods.index(ctx.period) if ctx.period in periods else 0
    if projection.base_amount is not None:
        base = ctx.a.const(projection.base_amount)
    else:
        anchor = ctx.model.previous_period(periods[0]) if periods else None
        base = ctx.a.const(0.0) if anchor is None else ctx.ref_line(ctx.line, anchor)
    return ctx.a.scale(base, projection.product_line_factor(step))
