"""Extraction of data objects from assembly directives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from zkasm.frontend.syntax import Directive, ExpressionArg, Label, Number, StringLiteral, Symbol

_DATA_DIRECTIVES = (".zero", ".ascii", ".asciz", ".word", ".byte")
_USIZE_MASK = (1 << 64) - 1


@dataclass(frozen=True)
class Direct:
    """Bytes given directly."""

    data: bytes

    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Zero:
    """A run of zero bytes."""

    length: int

    def size(self) -> int:
        return self.length


@dataclass(frozen=True)
class Reference:
    """A 32-bit reference to another label."""

    name: str

    def size(self) -> int:
        return 4


DataValue = Union[Direct, Zero, Reference]


def _word_value(argument) -> DataValue:
    match argument:
        case ExpressionArg(Number(n)):
            return Direct((n & 0xFFFFFFFF).to_bytes(4, "little"))
        case ExpressionArg(Symbol(name)):
            return Reference(name)
        case _:
            raise ValueError("Invalid .word directive")


def _byte_value(argument) -> int:
    match argument:
        case ExpressionArg(Number(n)):
            return n & 0xFF
        case _:
            raise ValueError("Invalid argument to .byte directive")


def _extract_data_value(directive: str, args) -> list:
    match directive, args:
        case ".zero", ([ExpressionArg(Number(n))] | [ExpressionArg(Number(n)), _]):
            return [Zero(n & _USIZE_MASK)]
        case ".ascii", [StringLiteral(data)]:
            return [Direct(bytes(data))]
        case ".asciz", [StringLiteral(data)]:
            return [Direct(bytes(data) + b"\0")]
        case ".word", _:
            return [_word_value(a) for a in args]
        case ".byte", _:
            return [Direct(bytes(_byte_value(a) for a in args))]
        case _:
            raise ValueError(f"Invalid arguments for data directive {directive}")


def extract_data_objects(statements) -> tuple:
    """Collect the data objects declared in the statements.

    Returns the objects, mapping each name to its list of data values and
    sorted by name, and the names in the order they were declared.
    """
    order: list = []
    objects: dict = {}
    current = None
    for statement in statements:
        match statement:
            case Label(name):
                current = name
            case Directive(
                name=".type",
                args=[ExpressionArg(Symbol(object_name)), ExpressionArg(Symbol("@object"))],
            ):
                if object_name in objects:
                    raise ValueError(f"Data object {object_name} is declared twice.")
                order.append(object_name)
                objects[object_name] = []
            case Directive(name=directive) if directive in _DATA_DIRECTIVES:
                if current is None:
                    raise ValueError(f"Data directive {directive} appears before any label.")
                if current in objects:
                    objects[current].extend(_extract_data_value(directive, statement.args))
            case Directive(
                name=".size",
                args=[ExpressionArg(Symbol(object_name)), ExpressionArg(Number(n))],
            ) if object_name == current:
                if object_name in objects:
                    size = sum(v.size() for v in objects[object_name])
                    if size != n:
                        raise ValueError(
                            f"Invalid size for data object {object_name}: "
                            f"computed: {size} vs. specified: {n}"
                        )
                else:
                    if n != 0:
                        raise ValueError(
                            f"Nonzero size for object without elements: {object_name}"
                        )
                    objects[object_name] = []
    return dict(sorted(objects.items())), order