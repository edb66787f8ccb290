# -*- coding: utf-8 -*-
"""
公式文本求值

用 openpyxl 的公式分词器解析已渲染的公式文本并求值，
覆盖编译器会生成的子集:
    - 数字、定义名称
    - + - * / 与一元负号、括号
    - 比较 = < > <= >= <>
    - SUM / IF / ABS

IF 只求值被选中的分支，和 Excel 一致（IF(d=0,0,n/d) 不会除零）。
"""

from typing import Any, Callable, List, Tuple

from openpyxl.formula.tokenizer import Token, Tokenizer

from ..errors import ModelError

Node = Tuple[Any, ...]

_COMPARISONS = {"=", "<", ">", "<=", ">=", "<>"}


class _Parser:
    def __init__(self, formula: str):
        text = formula if formula.startswith("=") else "=" + formula
        self.formula = text
        self.tokens: List[Token] = [
            token for token in Tokenizer(text).items if token.type != Token.WSPACE
        ]
        self.pos = 0

    def _error(self, message: str) -> ModelError:
        return ModelError("FORMULA_INVALID", f"{message}: {self.formula}",
                          {"formula": self.formula, "position": self.pos})

    def peek(self) -> Token:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> Token:
        token = self.peek()
        if token is None:
            raise self._error("公式意外结束")
        self.pos += 1
        return token

    def parse(self) -> Node:
        node = self.comparison()
        if self.peek() is not None:
            raise self._error(f"无法解析的符号 {self.peek().value!r}")
        return node

    def _infix(self, ops) -> str:
        token = self.peek()
        if token is not None and token.type == Token.OP_IN and token.value in ops:
            self.pos += 1
            return token.value
        return ""

    def comparison(self) -> Node:
        left = self.additive()
        op = self._infix(_COMPARISONS)
        if op:
            left = ("bin", op, left, self.additive())
        return left

    def additive(self) -> Node:
        node = self.term()
        while True:
            op = self._infix({"+", "-"})
            if not op:
                return node
            node = ("bin", op, node, self.term())

    def term(self) -> Node:
        node = self.unary()
        while True:
            op = self._infix({"*", "/"})
            if not op:
                return node
            node = ("bin", op, node, self.unary())

    def unary(self) -> Node:
        token = self.peek()
        if token is not None and token.type == Token.OP_PRE:
            self.pos += 1
            operand = self.unary()
            return ("neg", operand) if token.value == "-" else operand
        return self.primary()

    def primary(self) -> Node:
        token = self.take()
        if token.type == Token.OPERAND:
            if token.subtype == Token.NUMBER:
                return ("num", float(token.value))
            if token.subtype == Token.LOGICAL:
                return ("num", token.value.upper() == "TRUE")
            if token.subtype == Token.RANGE:
                return ("ref", token.value)
            raise self._error(f"不支持的运算数 {token.value!r}")

        if token.type == Token.PAREN and token.subtype == Token.OPEN:
            node = self.comparison()
            closing = self.take()
            if closing.type != Token.PAREN or closing.subtype != Token.CLOSE:
                raise self._error("括号不匹配")
            return node

        if token.type == Token.FUNC and token.subtype == Token.OPEN:
            name = token.value[:-1].upper()
            args: List[Node] = []
            closing = self.peek()
            if closing is not None and closing.type == Token.FUNC and closing.subtype == Token.CLOSE:
                self.pos += 1
                return ("call", name, args)
            while True:
                args.append(self.comparison())
                sep = self.take()
                if sep.type == Token.SEP and sep.subtype == Token.ARG:
                    continue
                if sep.type == Token.FUNC and sep.subtype == Token.CLOSE:
                    return ("call", name, args)
                raise self._error(f"函数参数错误 {sep.value!r}")

        raise self._error(f"无法解析的符号 {token.value!r}")


def parse_formula(formula: str) -> Node:
    """解析为语法树"""
    return _Parser(formula).parse()


def _compare(op: str, a, b) -> bool:
    if op == "=":
        return a == b
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    if op == ">=":
        return a >= b
    return a != b


def _eval(node: Node, resolve: Callable[[str], Any]):
    tag = node[0]
    if tag == "num":
        return node[1]
    if tag == "ref":
        return resolve(node[1])
    if tag == "neg":
        return -_eval(node[1], resolve)
    if tag == "bin":
        op, left, right = node[1], _eval(node[2], resolve), _eval(node[3], resolve)
        if op in _COMPARISONS:
            return _compare(op, left, right)
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if right == 0:
            raise ModelError("FORMULA_INVALID", "#DIV/0!")
        return left / right

    name, args = node[1], node[2]
    if name == "IF":
        if len(args) not in (2, 3):
            raise ModelError("FORMULA_INVALID", "IF 需要 2 或 3 个参数")
        if _eval(args[0], resolve):
            return _eval(args[1], resolve)
        return _eval(args[2], resolve) if len(args) == 3 else False
    values = [_eval(arg, resolve) for arg in args]
    if name == "SUM":
        return float(sum(values))
    if name == "ABS" and len(values) == 1:
        return abs(values[0])
    raise ModelError("FORMULA_INVALID", f"不支持的函数: {name}")


def evaluate_formula(formula: str, resolve: Callable[[str], Any]):
    """
    求值公式文本

    Args:
        formula: 公式文本（可带或不带前导 "="）
        resolve: 定义名称 -> 数值

    Returns:
        数值或布尔值
    """
    return _eval(parse_formula(formula), resolve)
