# -*- coding: utf-8 -*-
"""
三表模型

Model 是一致性的单位：求值和公式编译都相对于整个模型，
因为现金流量表的行会引用利润表和资产负债表的行。
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import default_config
from ..errors import ModelError
from .line import Line, Statement, StatementKind


@dataclass
class ModelMeta:
    """模型元信息"""
    company_name: str = ""
    historical_periods: List[str] = field(default_factory=list)
    projection_periods: List[str] = field(default_factory=list)
    currency_unit: str = "millions"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_name": self.company_name,
            "historical_periods": list(self.historical_periods),
            "projection_periods": list(self.projection_periods),
            "currency_unit": self.currency_unit,
        }


class Model:
    """
    三表模型

    提供:
    - 三张报表 + 侧表（SBC 分类明细、D&A 明细）
    - 期间判断（历史期 / 预测期、上一期）
    - JSON 导出

    使用方法:
        model = Model(ModelMeta("Acme", ["2023A", "2024A"], ["2025E"]))
        model.income_statement.lines.append(Line("rev", "Revenue"))
        model.is_projected("2025E")    # True
        model.previous_period("2025E") # "2024A"
    """

    def __init__(self, meta: Optional[ModelMeta] = None,
                 income_statement: Optional[Statement] = None,
                 balance_sheet: Optional[Statement] = None,
                 cash_flow: Optional[Statement] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.meta = meta or ModelMeta()
        self.income_statement = income_statement or Statement(StatementKind.IS)
        self.balance_sheet = balance_sheet or Statement(StatementKind.BS)
        self.cash_flow = cash_flow or Statement(StatementKind.CFS)
        # {分类ID: {期间: 金额}}
        self.sbc_breakdowns: Dict[str, Dict[str, float]] = {}
        # {期间: 金额}
        self.dana_breakdowns: Dict[str, float] = {}
        self.config = config if config is not None else default_config()

    # ==================== 报表访问 ====================

    @property
    def statements(self) -> List[Statement]:
        """按求值顺序: IS -> BS -> CFS"""
        return [self.income_statement, self.balance_sheet, self.cash_flow]

    def statement(self, kind) -> Statement:
        if isinstance(kind, str):
            try:
                kind = StatementKind(kind)
            except ValueError as exc:
                raise ModelError("UNKNOWN_STATEMENT", f"未知报表: {kind}") from exc
        for statement in self.statements:
            if statement.kind is kind:
                return statement
        raise ModelError("UNKNOWN_STATEMENT", f"未知报表: {kind}")

    def statement_of(self, line: Line) -> Statement:
        """按对象身份找到行所在的报表"""
        for statement in self.statements:
            if statement.contains(line):
                return statement
        raise ModelError("LINE_NOT_FOUND", f"行不在模型中: {line.id}")

    # ==================== 期间 ====================

    @property
    def periods(self) -> List[str]:
        return list(self.meta.historical_periods) + list(self.meta.projection_periods)

    def is_projected(self, period: str) -> bool:
        """预测期每次重算都会重新推导；无法判断的期间按历史期（输入）处理"""
        if period in self.meta.projection_periods:
            return True
        if period in self.meta.historical_periods:
            return False
        return period.endswith(self.config["projection_suffix"])

    def is_historical(self, period: str) -> bool:
        return not self.is_projected(period)

    def previous_period(self, period: str) -> Optional[str]:
        periods = self.periods
        if period not in periods:
            return None
        index = periods.index(period)
        return periods[index - 1] if index > 0 else None

    # ==================== 侧表 ====================

    def sbc_for(self, category_id: str, period: str) -> float:
        return self.sbc_breakdowns.get(category_id, {}).get(period, 0.0)

    def dana_for(self, period: str) -> float:
        return self.dana_breakdowns.get(period, 0.0)

    # ==================== 导出 ====================

    def to_dict(self) -> Dict[str, Any]:
        """导出为字典"""
        return {
            "_meta": self.meta.to_dict(),
            "income_statement": [line.to_dict() for line in self.income_statement.lines],
            "balance_sheet": [line.to_dict() for line in self.balance_sheet.lines],
            "cash_flow": [line.to_dict() for line in self.cash_flow.lines],
            "sbc_breakdowns": {k: dict(v) for k, v in self.sbc_breakdowns.items()},
            "dana_breakdowns": dict(self.dana_breakdowns),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> "Model":
        meta = data.get("_meta", {})
        model = cls(
            ModelMeta(
                company_name=meta.get("company_name", ""),
                historical_periods=list(meta.get("historical_periods", [])),
                projection_periods=list(meta.get("projection_periods", [])),
                currency_unit=meta.get("currency_unit", "millions"),
            ),
            Statement(StatementKind.IS, [Line.from_dict(d) for d in data.get("income_statement", [])]),
            Statement(StatementKind.BS, [Line.from_dict(d) for d in data.get("balance_sheet", [])]),
            Statement(StatementKind.CFS, [Line.from_dict(d) for d in data.get("cash_flow", [])]),
            config=config,
        )
        model.sbc_breakdowns = {
            k: {p: float(v) for p, v in values.items()}
            for k, values in data.get("sbc_breakdowns", {}).items()
        }
        model.dana_breakdowns = {p: float(v) for p, v in data.get("dana_breakdowns", {}).items()}
        return model

    def to_json(self, indent: int = 2) -> str:
        """导出为JSON字符串"""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def summary(self) -> str:
        """生成模型摘要"""
        lines = [
            f"公司: {self.meta.company_name}",
            f"历史期: {', '.join(self.meta.historical_periods) or '-'}",
            f"预测期: {', '.join(self.meta.projection_periods) or '-'}",
            f"单位: {self.meta.currency_unit}",
            "",
        ]
        for statement in self.statements:
            lines.append(f"{statement.kind.value}: {len(statement.all_lines())} 行")
        return "\n".join(lines)
