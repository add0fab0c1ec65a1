"""Generic syntax tree for the assembly inputs of front-end architectures."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Union


class UnaryOpKind(Enum):
    NEGATION = "-"

    def __str__(self) -> str:
        return self.value


class BinaryOpKind(Enum):
    OR = "|"
    XOR = "^"
    AND = "&"
    LEFT_SHIFT = "<<"
    RIGHT_SHIFT = ">>"
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"

    def __str__(self) -> str:
        return self.value


class _ExpressionNode:
    """Traversal shared by all expression nodes."""

    __slots__ = ()

    def _children(self) -> tuple:
        return ()

    def _rebuild(self, children: tuple):
        return self

    def post_visit(self) -> Iterator["Expression"]:
        """Yield the sub-expressions and then this expression, in post-order."""
        for child in self._children():
            yield from child.post_visit()
        yield self

    def transform(self, f: Callable[["Expression"], "Expression"]) -> "Expression":
        """Rebuild the tree bottom-up, applying `f` to each node after its children."""
        children = tuple(child.transform(f) for child in self._children())
        return f(self._rebuild(children) if children else self)


@dataclass(frozen=True)
class Number(_ExpressionNode):
    value: int

    def post_visit(self) -> Iterator["Expression"]:
        """Yield this leaf expression."""
        yield self

    def transform(self, f: Callable[["Expression"], "Expression"]) -> "Expression":
        """Apply `f` to this leaf expression."""
        return f(self)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Symbol(_ExpressionNode):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class UnaryOp(_ExpressionNode):
    op: UnaryOpKind
    operand: "Expression"

    def _children(self) -> tuple:
        return (self.operand,)

    def _rebuild(self, children: tuple):
        return dataclasses.replace(self, operand=children[0])

    def __str__(self) -> str:
        return f"({self.op}{self.operand})"


@dataclass(frozen=True)
class BinaryOp(_ExpressionNode):
    op: BinaryOpKind
    left: "Expression"
    right: "Expression"

    def _children(self) -> tuple:
        return (self.left, self.right)

    def _rebuild(self, children: tuple):
        return dataclasses.replace(self, left=children[0], right=children[1])

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class FunctionOp(_ExpressionNode):
    """An architecture-specific function applied to an expression, e.g. `%hi(x)`."""

    op: Any
    operand: "Expression"

    def _children(self) -> tuple:
        return (self.operand,)

    def _rebuild(self, children: tuple):
        return dataclasses.replace(self, operand=children[0])

    def __str__(self) -> str:
        return f"{self.op}({self.operand})"


Expression = Union[Number, Symbol, UnaryOp, BinaryOp, FunctionOp]


def new_unary_op(op: UnaryOpKind, v: Expression) -> UnaryOp:
    return UnaryOp(op, v)


def new_binary_op(op: BinaryOpKind, left: Expression, right: Expression) -> BinaryOp:
    return BinaryOp(op, left, right)


def new_function_op(op: Any, v: Expression) -> FunctionOp:
    return FunctionOp(op, v)


# --- arguments -------------------------------------------------------------


@dataclass(frozen=True)
class RegisterArg:
    register: Any

    def post_visit_expressions(self) -> Iterator[Expression]:
        return iter(())

    def map_expressions(self, f: Callable[[Expression], Expression]) -> "RegisterArg":
        return self

    def __str__(self) -> str:
        return str(self.register)


@dataclass(frozen=True)
class RegOffset:
    register: Any
    offset: Expression

    def post_visit_expressions(self) -> Iterator[Expression]:
        """Yield the offset's sub-expressions in post-order."""
        return self.offset.post_visit()

    def map_expressions(self, f: Callable[[Expression], Expression]) -> "RegOffset":
        """Return a copy whose offset is transformed by `f` in post-order."""
        return dataclasses.replace(self, offset=self.offset.transform(f))

    def __str__(self) -> str:
        return f"{self.offset}({self.register})"


@dataclass(frozen=True)
class StringLiteral:
    data: bytes

    def post_visit_expressions(self) -> Iterator[Expression]:
        return iter(())

    def map_expressions(self, f: Callable[[Expression], Expression]) -> "StringLiteral":
        return self

    def __str__(self) -> str:
        return f'"{bytes(self.data).decode("utf-8", errors="replace")}"'


@dataclass(frozen=True)
class ExpressionArg:
    expression: Expression

    def post_visit_expressions(self) -> Iterator[Expression]:
        """Yield the expression's sub-expressions in post-order."""
        return self.expression.post_visit()

    def map_expressions(self, f: Callable[[Expression], Expression]) -> "ExpressionArg":
        """Return a copy whose expression is transformed by `f` in post-order."""
        return dataclasses.replace(self, expression=self.expression.transform(f))

    def __str__(self) -> str:
        return str(self.expression)


Argument = Union[RegisterArg, RegOffset, StringLiteral, ExpressionArg]


def _format_arguments(args) -> str:
    return ", ".join(str(a) for a in args)


# --- statements ------------------------------------------------------------


@dataclass
class Label:
    name: str

    def __str__(self) -> str:
        return f"{self.name}:\n"


@dataclass
class Directive:
    name: str
    args: list = field(default_factory=list)

    def __str__(self) -> str:
        return f"  {self.name} {_format_arguments(self.args)}\n"


@dataclass
class Instruction:
    name: str
    args: list = field(default_factory=list)

    def __str__(self) -> str:
        return f"  {self.name} {_format_arguments(self.args)}\n"


Statement = Union[Label, Directive, Instruction]


# --- string literals -------------------------------------------------------

_ESCAPES = {"n": 10, "r": 13, "t": 9, "b": 8, "f": 12}


def _next_char(chars: Iterator[str], source: str) -> str:
    try:
        return next(chars)
    except StopIteration:
        raise ValueError(f"Unterminated escape sequence in {source!r}") from None


def unescape_string(s: str) -> bytes:
    """Parse a double-quoted, backslash-escaped string literal into bytes."""
    if len(s) < 2 or not (s.startswith('"') and s.endswith('"')):
        raise ValueError(f"Not a quoted string literal: {s!r}")
    chars = iter(s[1:-1])
    result = bytearray()
    for c in chars:
        if c != "\\":
            result.append(ord(c) & 0xFF)
            continue
        escaped = _next_char(chars, s)
        if escaped.isascii() and escaped.isdigit():
            digits = [escaped, _next_char(chars, s), _next_char(chars, s)]
            parts = [ord(d) - ord("0") for d in digits]
            value = parts[0] * 64 + parts[1] * 8 + parts[2]
            if min(parts) < 0 or value > 0xFF:
                raise ValueError(f"Invalid octal escape \\{''.join(digits)} in {s!r}")
            result.append(value)
        elif escaped == "x":
            raise ValueError(f"Hexadecimal escapes are not supported: {s!r}")
        else:
            result.append(_ESCAPES.get(escaped, ord(escaped) & 0xFF))
    return bytes(result)