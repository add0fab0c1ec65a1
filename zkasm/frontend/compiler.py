"""Helpers shared by compilers from architecture assembly to the machine language."""

from __future__ import annotations

from typing import Mapping, Protocol

from zkasm.frontend.syntax import ExpressionArg, Number, Symbol

_U32_MASK = 0xFFFFFFFF


class Compiler(Protocol):
    """Compiles a set of named assembly sources into one program text."""

    def compile(self, assemblies: Mapping[str, str]) -> str:
        """Compile the assemblies, keyed by file name, into program text."""


def next_multiple_of_four(x: int) -> int:
    return ((x + 3) // 4) * 4


def quote(s: str) -> str:
    """Quote a string, escaping backslashes and double quotes."""
    escaped = s.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def escape_label(label: str) -> str:
    """Make a label safe to use as an identifier."""
    return label.replace(".", "_dot_").replace("/", "_slash_")


def argument_to_escaped_symbol(argument) -> str:
    match argument:
        case ExpressionArg(Symbol(name)):
            return escape_label(name)
        case _:
            raise ValueError(f"Expected a symbol, got {argument}")


def argument_to_number(argument) -> int:
    match argument:
        case ExpressionArg(expr):
            return expression_to_number(expr)
        case _:
            raise ValueError(f"Expected numeric expression, got {argument}")


def expression_to_number(expr) -> int:
    """The value of a number expression as an unsigned 32-bit integer."""
    match expr:
        case Number(n):
            return n & _U32_MASK
        case _:
            raise ValueError(
                "Constant expression could not be fully resolved to a number "
                f"during preprocessing: {expr}"
            )