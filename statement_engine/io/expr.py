# -*- coding: utf-8 -*-
"""
公式表达式节点

公式编译器先生成表达式树，再渲染为 Excel 公式文本。
表达式本身也能求值（给定名称 -> 数值的解析函数），便于测试。

使用方法:
    expr = Combine([(1, Ref("IS_rev_B")), (-1, Ref("IS_cogs_B"))])
    expr.render()                              # "IS_rev_B-IS_cogs_B"
    expr.evaluate({"IS_rev_B": 10, "IS_cogs_B": 4}.get)   # 6.0
    Scale(Ref("IS_rev_C"), 1.05).render()     # "IS_rev_C*1.05"
"""

from typing import Any, Callable, List, Tuple

Resolver = Callable[[str], Any]


def format_number(value: float) -> str:
    """数字常量的公式写法（不使用科学计数法）"""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = f"{value:.15f}".rstrip("0").rstrip(".")
    return text


class Expr:
    """表达式基类"""

    def render(self) -> str:
        raise NotImplementedError

    def evaluate(self, resolve: Resolver):
        raise NotImplementedError

    def formula(self) -> str:
        return "=" + self.render()

    def __repr__(self):
        return f"{type(self).__name__}({self.render()})"


class Const(Expr):
    def __init__(self, value: float):
        self.value = float(value)

    def render(self) -> str:
        text = format_number(self.value)
        return f"({text})" if self.value < 0 else text

    def evaluate(self, resolve: Resolver) -> float:
        return self.value


class Ref(Expr):
    """定义名称引用"""

    def __init__(self, name: str):
        self.name = name

    def render(self) -> str:
        return self.name

    def evaluate(self, resolve: Resolver) -> float:
        return float(resolve(self.name))


def _operand(expr: Expr) -> str:
    """作为运算数时，多项式需要加括号"""
    if isinstance(expr, Combine) and (len(expr.terms) > 1 or (expr.terms and expr.terms[0][0] < 0)):
        return f"({expr.render()})"
    return expr.render()


class Combine(Expr):
    """带符号求和: [(+1, a), (-1, b)] -> a-b"""

    def __init__(self, terms: List[Tuple[int, Expr]]):
        self.terms = list(terms)

    def render(self) -> str:
        if not self.terms:
            return "0"
        parts = []
        for i, (sign, term) in enumerate(self.terms):
            text = _operand(term)
            if sign < 0:
                parts.append(f"-{text}")
            elif i == 0:
                parts.append(text)
            else:
                parts.append(f"+{text}")
        return "".join(parts)

    def evaluate(self, resolve: Resolver) -> float:
        return float(sum(sign * term.evaluate(resolve) for sign, term in self.terms))


class Scale(Expr):
    """乘以常数: a*1.05"""

    def __init__(self, inner: Expr, factor: float):
        self.inner = inner
        self.factor = float(factor)

    def render(self) -> str:
        return f"{_operand(self.inner)}*{Const(self.factor).render()}"

    def evaluate(self, resolve: Resolver) -> float:
        return self.inner.evaluate(resolve) * self.factor


class Sum(Expr):
    """SUM(a,b,c)"""

    def __init__(self, items: List[Expr]):
        self.items = list(items)

    def render(self) -> str:
        if not self.items:
            return "0"
        return f"SUM({','.join(item.render() for item in self.items)})"

    def evaluate(self, resolve: Resolver) -> float:
        return float(sum(item.evaluate(resolve) for item in self.items))


class SafeDiv(Expr):
    """除法，分母为 0 时为 0: IF(d=0,0,n/d)"""

    def __init__(self, numerator: Expr, denominator: Expr):
        self.numerator = numerator
        self.denominator = denominator

    def render(self) -> str:
        n, d = _operand(self.numerator), _operand(self.denominator)
        return f"IF({d}=0,0,{n}/{d})"

    def evaluate(self, resolve: Resolver) -> float:
        denominator = self.denominator.evaluate(resolve)
        if denominator == 0:
            return 0.0
        return self.numerator.evaluate(resolve) / denominator


class Abs(Expr):
    def __init__(self, inner: Expr):
        self.inner = inner

    def render(self) -> str:
        return f"ABS({self.inner.render()})"

    def evaluate(self, resolve: Resolver) -> float:
        return abs(self.inner.evaluate(resolve))


class LessThan(Expr):
    """比较，结果为 TRUE / FALSE"""

    def __init__(self, left: Expr, right: Expr):
        self.left = left
        self.right = right

    def render(self) -> str:
        return f"{_operand(self.left)}<{_operand(self.right)}"

    def evaluate(self, resolve: Resolver) -> bool:
        return self.left.evaluate(resolve) < self.right.evaluate(resolve)
