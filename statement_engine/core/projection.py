# -*- coding: utf-8 -*-
"""
收入预测配置

挂在无子项的输入行上（通常是 rev 或其下的收入流），
预测期的值由方法推导，历史期仍为输入。

方法:
    growth_rate     上期值 × (1 + 增长率)，可按期间单独设定增长率
    price_volume    单价 × 销量（可按月年化 ×12），两者各自增长
    customers_arpu  客户数 × ARPU，两者各自增长
    pct_of_total    同期参考行（默认 rev）× 占比
    product_line    最后历史期基数 × Σ 产品线份额 × (1 + 产品线增长率)^第几个预测期

百分比字段与界面一致，按百分数存储（5 表示 5%）。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ProjectionMethod(Enum):
    """预测方法"""
    GROWTH_RATE = "growth_rate"
    PRICE_VOLUME = "price_volume"
    CUSTOMERS_ARPU = "customers_arpu"
    PCT_OF_TOTAL = "pct_of_total"
    PRODUCT_LINE = "product_line"


@dataclass
class ProductLineItem:
    """产品线 / 渠道：基期份额与年增长率"""
    id: str
    label: str
    share_percent: float
    growth_percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "share_percent": self.share_percent,
            "growth_percent": self.growth_percent,
        }


@dataclass
class Projection:
    """
    单行的预测配置

    只有与 method 对应的字段生效

    使用方法:
        Projection.growth(5)                                   # 每期 +5%
        Projection.growth(5, rates_by_period={"2026E": 8})     # 2026E 用 8%
        Projection.pct_of("rev", 30)                           # 同期收入的 30%
        Projection(ProjectionMethod.PRICE_VOLUME, price=2.5, volume=400)
    """
    method: ProjectionMethod
    # growth_rate
    rate_percent: float = 0.0
    rates_by_period: Dict[str, float] = field(default_factory=dict)
    # growth_rate / product_line: 第一个预测期的基数（缺省取上一期的值）
    base_amount: Optional[float] = None
    # price_volume
    price: float = 0.0
    volume: float = 0.0
    price_growth_percent: float = 0.0
    volume_growth_percent: float = 0.0
    annualize_from_monthly: bool = False
    # customers_arpu
    customers: float = 0.0
    arpu: float = 0.0
    customer_growth_percent: float = 0.0
    arpu_growth_percent: float = 0.0
    # pct_of_total
    reference_id: str = "rev"
    pct_of_total: float = 0.0
    # product_line
    items: List[ProductLineItem] = field(default_factory=list)

    @classmethod
    def growth(cls, rate_percent: float, rates_by_period: Optional[Dict[str, float]] = None,
               base_amount: Optional[float] = None) -> "Projection":
        return cls(ProjectionMethod.GROWTH_RATE, rate_percent=rate_percent,
                   rates_by_period=dict(rates_by_period or {}), base_amount=base_amount)

    @classmethod
    def pct_of(cls, reference_id: str, pct_of_total: float) -> "Projection":
        return cls(ProjectionMethod.PCT_OF_TOTAL, reference_id=reference_id, pct_of_total=pct_of_total)

    def rate_for(self, period: str) -> float:
        """某期的增长率（小数）"""
        return self.rates_by_period.get(period, self.rate_percent) / 100

    def driver_base(self) -> float:
        """price_volume / customers_arpu 的基期收入"""
        if self.method is ProjectionMethod.PRICE_VOLUME:
            months = 12 if self.annualize_from_monthly else 1
            return self.price * self.volume * months
        return self.customers * self.arpu

    def driver_growth(self) -> float:
        """price_volume / customers_arpu 每期的复合增长倍数"""
        if self.method is ProjectionMethod.PRICE_VOLUME:
            return (1 + self.price_growth_percent / 100) * (1 + self.volume_growth_percent / 100)
        return (1 + self.customer_growth_percent / 100) * (1 + self.arpu_growth_percent / 100)

    def product_line_factor(self, step: int) -> float:
        """第 step 个预测期（从 0 开始）相对基数的倍数"""
        return sum(
            item.share_percent / 100 * (1 + item.growth_percent / 100) ** step
            for item in self.items
        )

    def product_line_values(self, base: float, step: int) -> Dict[str, float]:
        """各产品线在第 step 个预测期的金额（展示明细用）"""
        return {
            item.id: base * item.share_percent / 100 * (1 + item.growth_percent / 100) ** step
            for item in self.items
        }

    def to_dict(self) -> Dict[str, Any]:
        method = self.method
        result: Dict[str, Any] = {"method": method.value}
        if method is ProjectionMethod.GROWTH_RATE:
            result["rate_percent"] = self.rate_percent
            if self.rates_by_period:
                result["rates_by_period"] = dict(self.rates_by_period)
        elif method is ProjectionMethod.PRICE_VOLUME:
            result.update(price=self.price, volume=self.volume,
                          price_growth_percent=self.price_growth_percent,
                          volume_growth_percent=self.volume_growth_percent,
                          annualize_from_monthly=self.annualize_from_monthly)
        elif method is ProjectionMethod.CUSTOMERS_ARPU:
            result.update(customers=self.customers, arpu=self.arpu,
                          customer_growth_percent=self.customer_growth_percent,
                          arpu_growth_percent=self.arpu_growth_percent)
        elif method is ProjectionMethod.PCT_OF_TOTAL:
            result.update(reference_id=self.reference_id, pct_of_total=self.pct_of_total)
        else:
            result["items"] = [item.to_dict() for item in self.items]
        if self.base_amount is not None:
            result["base_amount"] = self.base_amount
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Projection":
        fields = dict(data)
        method = ProjectionMethod(fields.pop("method"))
        items = [ProductLineItem(**item) for item in fields.pop("items", [])]
        return cls(method, items=items, **fields)
