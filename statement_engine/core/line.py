# -*- coding: utf-8 -*-
"""
报表行与报表

Line 是报表树的节点；Statement 是有序的顶层行序列，顺序本身有语义
（分类和现金流区段都由位置推断）。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .projection import Projection


class StatementKind(Enum):
    """报表类型"""
    IS = "IS"      # 利润表
    BS = "BS"      # 资产负债表
    CFS = "CFS"    # 现金流量表


class LineKind(Enum):
    """行类型"""
    INPUT = "input"
    CALCULATED = "calculated"
    SUBTOTAL = "subtotal"
    TOTAL = "total"


class ValueType(Enum):
    """显示类型（只影响显示，不影响计算）"""
    CURRENCY = "currency"
    PERCENT = "percent"
    COUNT = "count"


class Section(Enum):
    """区段：现金流量表三大活动 + 资产负债表三大类"""
    OPERATING = "operating"
    INVESTING = "investing"
    FINANCING = "financing"
    ASSETS = "assets"
    LIABILITIES = "liabilities"
    EQUITY = "equity"


class Category(Enum):
    """资产负债表科目类别"""
    CURRENT_ASSETS = "current_assets"
    FIXED_ASSETS = "fixed_assets"
    CURRENT_LIABILITIES = "current_liabilities"
    NON_CURRENT_LIABILITIES = "non_current_liabilities"
    EQUITY = "equity"


class Impact(Enum):
    """现金流方向"""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


@dataclass
class CfsLink:
    """显式现金流归属（存在时优先于启发式分类）"""
    section: Section
    impact: Impact
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section": self.section.value,
            "impact": self.impact.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CfsLink":
        return cls(
            section=Section(data["section"]),
            impact=Impact(data.get("impact", "neutral")),
            description=data.get("description", ""),
        )


@dataclass
class IsLink:
    """关联的利润表科目（仅用于展示说明）"""
    is_item_id: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"is_item_id": self.is_item_id, "description": self.description}


@dataclass
class Line:
    """
    报表行

    - input 行无子项时取存储值；有子项时取子项之和
    - calculated / subtotal / total 行由公式表计算
    - 带 projection 的输入行在预测期按预测方法推导
    """
    id: str
    label: str
    kind: LineKind = LineKind.INPUT
    value_type: ValueType = ValueType.CURRENCY
    values: Dict[str, float] = field(default_factory=dict)
    children: List["Line"] = field(default_factory=list)
    cfs_link: Optional[CfsLink] = None
    is_link: Optional[IsLink] = None
    projection: Optional[Projection] = None

    @property
    def is_derived_kind(self) -> bool:
        return self.kind is not LineKind.INPUT

    @property
    def is_subtotal(self) -> bool:
        """小计/合计行（分类求和时排除）"""
        return self.kind in (LineKind.SUBTOTAL, LineKind.TOTAL) or self.id.startswith("total_")

    def value(self, period: str) -> float:
        return self.values.get(period, 0.0)

    def walk(self, depth: int = 0) -> Iterator[Tuple["Line", int]]:
        """先序遍历（自身，然后子项）"""
        yield self, depth
        for child in self.children:
            yield from child.walk(depth + 1)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "kind": self.kind.value,
            "value_type": self.value_type.value,
            "values": dict(self.values),
        }
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        if self.cfs_link:
            result["cfs_link"] = self.cfs_link.to_dict()
        if self.is_link:
            result["is_link"] = self.is_link.to_dict()
        if self.projection:
            result["projection"] = self.projection.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Line":
        is_link = data.get("is_link")
        return cls(
            id=data["id"],
            label=data.get("label", data["id"]),
            kind=LineKind(data.get("kind", "input")),
            value_type=ValueType(data.get("value_type", "currency")),
            values={k: float(v) for k, v in data.get("values", {}).items()},
            children=[cls.from_dict(child) for child in data.get("children", [])],
            cfs_link=CfsLink.from_dict(data["cfs_link"]) if data.get("cfs_link") else None,
            is_link=IsLink(**is_link) if is_link else None,
            projection=Projection.from_dict(data["projection"]) if data.get("projection") else None,
        )


class Statement:
    """
    报表：有序的顶层行序列

    使用方法:
        bs = Statement(StatementKind.BS, [Line("cash", "Cash"), ...])
        bs.find("cash")              # 任意深度查找
        bs.top_level_of("child_id")  # 所属顶层行
        bs.index_of("total_assets")  # 顶层位置，不存在返回 -1
    """

    def __init__(self, kind: StatementKind, lines: Optional[List[Line]] = None):
        self.kind = kind
        self.lines: List[Line] = list(lines or [])

    def walk(self) -> Iterator[Tuple[Line, int]]:
        for line in self.lines:
            yield from line.walk()

    def all_lines(self) -> List[Line]:
        return [line for line, _ in self.walk()]

    def find(self, line_id: str) -> Optional[Line]:
        for line, _ in self.walk():
            if line.id == line_id:
                return line
        return None

    def path_to(self, line_id: str) -> Optional[List[Line]]:
        """从顶层到目标行的路径（含目标本身）"""
        def search(lines: List[Line], trail: List[Line]) -> Optional[List[Line]]:
            for line in lines:
                if line.id == line_id:
                    return trail + [line]
                found = search(line.children, trail + [line])
                if found:
                    return found
            return None
        return search(self.lines, [])

    def parent_of(self, line_id: str) -> Optional[Line]:
        path = self.path_to(line_id)
        if path and len(path) > 1:
            return path[-2]
        return None

    def ancestors(self, line_id: str) -> List[Line]:
        """祖先链，由近及远"""
        path = self.path_to(line_id) or []
        return list(reversed(path[:-1]))

    def top_level_of(self, line_id: str) -> Optional[Line]:
        path = self.path_to(line_id)
        return path[0] if path else None

    def index_of(self, line_id: str) -> int:
        for i, line in enumerate(self.lines):
            if line.id == line_id:
                return i
        return -1

    def contains(self, line: Line) -> bool:
        return any(candidate is line for candidate, _ in self.walk())

    def __len__(self) -> int:
        return len(self.lines)

    def __repr__(self):
        return f"Statement({self.kind.value}, {[line.id for line in self.lines]})"
