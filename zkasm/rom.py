"""Building blocks for turning a machine's ROM into fixed PIL columns."""

from __future__ import annotations

import copy
import dataclasses
import functools
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

from zkasm.parsed import (
    ArrayDefinition,
    ArrayValue,
    BinaryOperation,
    BinaryOperator,
    Expression,
    FreeInput,
    MatchExpression,
    Number,
    PolynomialCommitDeclaration,
    PolynomialConstantDefinition,
    PolynomialName,
    PolynomialReference,
    QueryDefinition,
    RepeatedValue,
    UnaryOperation,
    UnaryOperator,
    build_add,
    build_mul,
    build_number,
    build_sub,
    direct_reference,
)

GOLDILOCKS_MODULUS = 0xFFFFFFFF00000001
_U32_MAX = 0xFFFFFFFF


class CompilationError(Exception):
    """Raised when assembly cannot be compiled to PIL."""


@dataclass(frozen=True)
class PrimeField:
    """Arithmetic on canonical integer representatives of a prime field."""

    modulus: int = GOLDILOCKS_MODULUS

    def reduce(self, value: int) -> int:
        return value % self.modulus

    def neg(self, value: int) -> int:
        return (-value) % self.modulus

    def mul(self, left: int, right: int) -> int:
        return (left * right) % self.modulus

    def pow(self, base: int, exponent: int) -> int:
        return pow(base % self.modulus, exponent, self.modulus)

    def is_in_lower_half(self, value: int) -> bool:
        return self.reduce(value) <= (self.modulus - 1) // 2


# --- instructions and registers --------------------------------------------


class LiteralKind(Enum):
    LABEL = "label"
    SIGNED_CONSTANT = "signed"
    UNSIGNED_CONSTANT = "unsigned"


@dataclass
class RegisterInput:
    """An instruction input read through an assignment register."""

    name: str


@dataclass
class LiteralInput:
    """An instruction input given as a literal stored in the ROM."""

    name: str
    kind: LiteralKind


Input = Union[RegisterInput, LiteralInput]


@dataclass
class Instruction:
    inputs: list = dataclasses.field(default_factory=list)
    outputs: list = dataclasses.field(default_factory=list)

    def literal_arg_names(self) -> Iterator[str]:
        """Names of the literal inputs, in declaration order."""
        return (i.name for i in self.inputs if isinstance(i, LiteralInput))


@dataclass
class Register:
    """Update rules of a register: (condition, value) pairs and a default."""

    conditioned_updates: list = dataclasses.field(default_factory=list)
    default_update: Optional[Expression] = None
    is_assignment: bool = False

    def update_expression(self) -> Optional[Expression]:
        """The expression assigned to this register in the next row."""
        if not self.conditioned_updates:
            return copy.deepcopy(self.default_update)
        updates = functools.reduce(
            build_add,
            (
                build_mul(copy.deepcopy(cond), copy.deepcopy(value))
                for cond, value in self.conditioned_updates
            ),
        )
        if self.default_update is None:
            return updates
        condition_sum = functools.reduce(
            build_add, (copy.deepcopy(cond) for cond, _ in self.conditioned_updates)
        )
        default_condition = build_sub(build_number(1), condition_sum)
        return build_add(
            updates, build_mul(default_condition, copy.deepcopy(self.default_update))
        )


# --- affine values and code lines ------------------------------------------


@dataclass
class RegisterComponent:
    name: str


@dataclass
class ConstantComponent:
    pass


@dataclass
class FreeInputComponent:
    expr: Expression


AffineComponent = Union[RegisterComponent, ConstantComponent, FreeInputComponent]


@dataclass
class LabelRef:
    name: str


@dataclass
class NumberArg:
    value: int


InstructionLiteralArg = Union[LabelRef, NumberArg]


@dataclass
class CodeLine:
    """One row of the ROM.

    `write_regs` maps an assignment register to the regular registers it
    writes, `value` maps an assignment register to its affine value as a
    list of (coefficient, component) pairs, and `instructions` holds
    (instruction name, literal arguments) pairs.
    """

    write_regs: dict = dataclasses.field(default_factory=dict)
    value: dict = dataclasses.field(default_factory=dict)
    labels: set = dataclasses.field(default_factory=set)
    instructions: list = dataclasses.field(default_factory=list)

    def merge(self, other: "CodeLine") -> "CodeLine":
        """Combine two lines of one batch; only a label-only line can absorb another."""
        if self.write_regs:
            raise CompilationError("Cannot combine two register writes in one row.")
        if self.value:
            raise CompilationError("Cannot combine two assigned values in one row.")
        if self.instructions:
            raise CompilationError("Cannot combine two instructions in one row.")
        return CodeLine(
            write_regs=dict(other.write_regs),
            value=dict(other.value),
            labels=set(self.labels) | set(other.labels),
            instructions=list(other.instructions),
        )


# --- helpers ---------------------------------------------------------------


def witness_column(start: int, name: str, definition=None) -> PolynomialCommitDeclaration:
    """Declare a single witness column, optionally with a definition."""
    return PolynomialCommitDeclaration(start, [PolynomialName(name)], definition)


def extract_update(expr: Expression) -> tuple:
    """Split `r' - e` into ("r", e); any other expression gives (None, expr)."""
    if (
        isinstance(expr, BinaryOperation)
        and expr.op is BinaryOperator.SUB
        and isinstance(expr.left, PolynomialReference)
        and expr.left.next
    ):
        left = expr.left
        if left.namespace is not None:
            raise CompilationError(f"Register update cannot use a namespace: {left}")
        if left.index is not None:
            raise CompilationError(f"Register update cannot use an index: {left}")
        return left.name, expr.right
    return None, expr


def _is_single_constant(terms: list) -> bool:
    return len(terms) == 1 and isinstance(terms[0][1], ConstantComponent)


def _negate(terms: list, field: PrimeField) -> list:
    return [(field.neg(coeff), component) for coeff, component in terms]


def _scale(terms: list, factor: int, field: PrimeField) -> list:
    return [(field.mul(factor, coeff), component) for coeff, component in terms]


def _process_binary(expr: BinaryOperation, field: PrimeField) -> list:
    left = process_assignment_value(expr.left, field)
    right = process_assignment_value(expr.right, field)
    match expr.op:
        case BinaryOperator.ADD:
            return left + right
        case BinaryOperator.SUB:
            return left + _negate(right, field)
        case BinaryOperator.MUL:
            if _is_single_constant(left):
                return _scale(right, left[0][0], field)
            if _is_single_constant(right):
                return _scale(left, right[0][0], field)
            raise CompilationError("Multiplication by non-constant.")
        case BinaryOperator.POW:
            if not (_is_single_constant(left) and _is_single_constant(right)):
                raise CompilationError("Exponentiation of non-constants.")
            exponent = right[0][0]
            if exponent > _U32_MAX:
                raise CompilationError("Exponent too large")
            return [(field.pow(left[0][0], exponent), ConstantComponent())]
        case _:
            raise CompilationError(
                f"Invalid operation in expression {expr.left} {expr.op} {expr.right}"
            )


def process_assignment_value(value: Expression, field: PrimeField) -> list:
    """Turn an assigned expression into (coefficient, component) pairs."""
    match value:
        case PolynomialReference():
            if value.namespace is not None or value.index is not None or value.next:
                raise CompilationError(f"Expected a plain register reference, got {value}")
            return [(1, RegisterComponent(value.name))]
        case Number(n):
            return [(field.reduce(n), ConstantComponent())]
        case FreeInput(inner):
            return [(1, FreeInputComponent(inner))]
        case BinaryOperation():
            return _process_binary(value, field)
        case UnaryOperation(op, inner):
            if op is not UnaryOperator.MINUS:
                raise CompilationError(f"Invalid unary operator in expression {value}")
            return _negate(process_assignment_value(inner, field), field)
        case _:
            raise CompilationError(f"Invalid expression in assignment: {value}")


def compute_label_positions(code_lines: list) -> dict:
    """Map each label to the index of the code line that carries it."""
    positions: dict = {}
    for i, line in enumerate(code_lines):
        for label in sorted(line.labels):
            if label in positions:
                raise CompilationError(f"Duplicate label: {label}")
            positions[label] = i
    return positions


def _array_definition(values: list) -> ArrayDefinition:
    padded = ArrayValue([build_number(v) for v in values]).pad_with_last()
    return ArrayDefinition(padded if padded is not None else RepeatedValue([build_number(0)]))


def translate_code_lines(
    code_lines: list,
    rom_constant_names: list,
    assignment_registers,
    instructions: dict,
    pc_name: Optional[str],
    field: PrimeField,
) -> list:
    """Build the fixed ROM columns and the free-input query columns.

    Returns the PIL statements: the `p_line` column, one free-value witness
    column per assignment register, then the ROM columns sorted by name.
    """
    statements: list = [
        PolynomialConstantDefinition(0, "p_line", _array_definition(list(range(len(code_lines)))))
    ]
    rom_constants = {name: [0] * len(code_lines) for name in rom_constant_names}
    registers = sorted(set(assignment_registers))
    query_arms: dict = {reg: [] for reg in registers}
    label_positions = compute_label_positions(code_lines)

    def column(name: str, error: Optional[str] = None) -> list:
        try:
            return rom_constants[name]
        except KeyError:
            raise CompilationError(error or f"Fixed column {name} not found.") from None

    for i, line in enumerate(code_lines):
        for assign_reg, writes in sorted(line.write_regs.items()):
            for reg in writes:
                column(
                    f"p_reg_write_{assign_reg}_{reg}",
                    f"Register combination {reg} <={assign_reg}= not found.",
                )[i] = 1
        for assign_reg, terms in sorted(line.value.items()):
            for coeff, component in terms:
                match component:
                    case RegisterComponent(reg):
                        values = column(
                            f"p_read_{assign_reg}_{reg}",
                            f"Register combination <={assign_reg}= {reg} not found.",
                        )
                    case ConstantComponent():
                        values = column(f"p_{assign_reg}_const")
                    case FreeInputComponent(expr):
                        values = column(f"p_{assign_reg}_read_free")
                        if assign_reg not in query_arms:
                            raise CompilationError(
                                f"{assign_reg} is not an assignment register."
                            )
                        query_arms[assign_reg].append((build_number(i), copy.deepcopy(expr)))
                    case _:
                        raise CompilationError(f"Unknown value component: {component!r}")
                values[i] = field.reduce(values[i] + coeff)
        for instr, literal_args in line.instructions:
            for reg, writes in sorted(line.write_regs.items()):
                if writes:
                    column(f"p_{reg}_read_free")[i] = 1
            column(f"p_instr_{instr}")[i] = 1
            instruction = instructions.get(instr)
            if instruction is None:
                raise CompilationError(f"Instruction not found: {instr}")
            for arg, param in zip(literal_args, instruction.literal_arg_names()):
                values = column(f"p_instr_{instr}_param_{param}")
                match arg:
                    case LabelRef(name):
                        if name not in label_positions:
                            raise CompilationError(f"{name} not found in labels")
                        values[i] = label_positions[name]
                    case NumberArg(n):
                        values[i] = n
                    case _:
                        raise CompilationError(f"Unknown literal argument: {arg!r}")

    for reg in registers:
        if pc_name is None:
            raise CompilationError("Free inputs need a machine with a pc.")
        statements.append(
            witness_column(
                0,
                f"{reg}_free_value",
                QueryDefinition(
                    ["i"],
                    MatchExpression(direct_reference(pc_name), list(query_arms[reg])),
                ),
            )
        )

    statements.extend(
        PolynomialConstantDefinition(0, name, _array_definition(rom_constants[name]))
        for name in sorted(rom_constants)
    )
    return statements