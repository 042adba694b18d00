"""Arithmetic evaluator for placeholder expressions.

Grammar::

    expr    := term (('+' | '-') term)*
    term    := unary (('*' | '/') unary)*
    unary   := ('+' | '-') unary | primary
    primary := NUMBER | '(' expr ')'

Only numbers, the four operators, parentheses and whitespace are accepted;
anything else is a syntax error. Nothing is ever handed to ``eval``.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Union

_TOKEN_RE = re.compile(r"\s*(?:(\d+\.\d*|\.\d+|\d+)|(.))")
_IDENT_RE = re.compile(r"\b[A-Za-z_]\w*\b")
_ARITHMETIC_CHARS_RE = re.compile(r"^[\d\s+\-*/().]+$")
_OPERATOR_RE = re.compile(r"[+\-*/]")

_BINARY_OPS: dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


class ArithmeticSyntaxError(ValueError):
    pass


class ArithmeticEvaluationError(ArithmeticError):
    pass


@dataclass(frozen=True)
class Number:
    value: Union[int, float]


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Number, UnaryOp, BinaryOp]


def tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            break
        number, symbol = match.groups()
        if number is not None:
            tokens.append(number)
        elif symbol in "+-*/()":
            tokens.append(symbol)
        else:
            raise ArithmeticSyntaxError(f"Unexpected character {symbol!r} at {match.start(2)}")
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[str]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> str:
        token = self.peek()
        if token is None:
            raise ArithmeticSyntaxError("Unexpected end of expression")
        self.pos += 1
        return token

    def parse(self) -> Node:
        node = self.expr()
        if self.peek() is not None:
            raise ArithmeticSyntaxError(f"Unexpected token {self.peek()!r}")
        return node

    def expr(self) -> Node:
        node = self.term()
        while self.peek() in ("+", "-"):
            op = self.advance()
            node = BinaryOp(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self.peek() in ("*", "/"):
            op = self.advance()
            node = BinaryOp(op, node, self.unary())
        return node

    def unary(self) -> Node:
        if self.peek() in ("+", "-"):
            op = self.advance()
            return UnaryOp(op, self.unary())
        return self.primary()

    def primary(self) -> Node:
        token = self.advance()
        if token == "(":
            node = self.expr()
            if self.advance() != ")":
                raise ArithmeticSyntaxError("Expected ')'")
            return node
        if token in _BINARY_OPS or token == ")":
            raise ArithmeticSyntaxError(f"Unexpected token {token!r}")
        return Number(float(token) if "." in token else int(token))


def parse(text: str) -> Node:
    tokens = tokenize(text)
    if not tokens:
        raise ArithmeticSyntaxError("Empty expression")
    return _Parser(tokens).parse()


def evaluate(node: Node) -> Union[int, float]:
    if isinstance(node, Number):
        return node.value
    if isinstance(node, UnaryOp):
        value = evaluate(node.operand)
        return -value if node.op == "-" else value
    if isinstance(node, BinaryOp):
        left = evaluate(node.left)
        right = evaluate(node.right)
        if node.op == "/" and right == 0:
            raise ArithmeticEvaluationError("Division by zero")
        return _BINARY_OPS[node.op](left, right)
    raise ArithmeticSyntaxError(f"Unsupported node {node!r}")


def _normalize(value: Union[int, float]) -> Union[int, float]:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def substitute_numeric_variables(expression: str, scope: dict) -> str:
    """Replace identifiers bound to numbers in ``scope`` with their values."""

    def replace(match: re.Match) -> str:
        name = match.group(0)
        value = scope.get(name)
        if isinstance(value, bool):
            return name
        if isinstance(value, float):
            # Positional notation, the grammar has no exponents.
            return format(Decimal(repr(value)), "f")
        if isinstance(value, int):
            return str(value)
        return name

    return _IDENT_RE.sub(replace, expression)


def is_arithmetic(text: str) -> bool:
    return bool(_ARITHMETIC_CHARS_RE.match(text)) and bool(_OPERATOR_RE.search(text))


def evaluate_arithmetic(expression: str, scope: dict | None = None) -> Union[int, float]:
    """Substitute numeric variables and evaluate.

    Raises ArithmeticSyntaxError when the substituted text is not arithmetic.
    """
    text = substitute_numeric_variables(expression, scope or {})
    if not is_arithmetic(text):
        raise ArithmeticSyntaxError(f"Not an arithmetic expression: {expression!r}")
    return _normalize(evaluate(parse(text)))
