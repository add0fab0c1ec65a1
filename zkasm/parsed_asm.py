"""Parsed assembly syntax tree: machines, their statements and display."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from zkasm.parsed import Expression, FunctionCall, SelectedExpressions, quote


def _join(items) -> str:
    return ", ".join(str(i) for i in items)


class RegisterFlag(Enum):
    IS_PC = "@pc"
    IS_ASSIGNMENT = "<="

    def __str__(self) -> str:
        return self.value


class PlookupOperator(Enum):
    IN = "in"
    IS = "is"

    def __str__(self) -> str:
        return self.value


@dataclass
class Param:
    name: str
    ty: Optional[str] = None

    def __str__(self) -> str:
        ty = f": {self.ty}" if self.ty is not None else ""
        return f"{self.name}{ty}"


@dataclass
class ParamList:
    params: list = field(default_factory=list)

    def __str__(self) -> str:
        return _join(self.params)


@dataclass
class Params:
    inputs: ParamList = field(default_factory=ParamList)
    outputs: Optional[ParamList] = None

    def __str__(self) -> str:
        count = len(self.inputs.params)
        if self.outputs is not None:
            count += len(self.outputs.params)
        prefix = "" if count == 0 else " "
        outputs = f" -> {self.outputs}" if self.outputs is not None else ""
        return f"{prefix}{self.inputs}{outputs}"


# --- instruction bodies ----------------------------------------------------


@dataclass
class PolynomialIdentityElement:
    left: Expression
    right: Expression

    def __str__(self) -> str:
        return f"{self.left} = {self.right}"


@dataclass
class PlookupIdentityElement:
    left: SelectedExpressions
    operator: PlookupOperator
    right: SelectedExpressions

    def __str__(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


@dataclass
class FunctionCallElement:
    call: FunctionCall

    def __str__(self) -> str:
        return str(self.call)


InstructionBodyElement = Union[
    PolynomialIdentityElement, PlookupIdentityElement, FunctionCallElement
]


@dataclass
class InstructionBody:
    """A locally defined instruction body: a list of constraint elements."""

    elements: list = field(default_factory=list)

    def __str__(self) -> str:
        return _join(self.elements)


# --- debug directives ------------------------------------------------------


@dataclass
class DebugFile:
    number: int
    path: str
    file: str

    def __str__(self) -> str:
        return f"debug file {self.number} {quote(self.path)} {quote(self.file)};"


@dataclass
class DebugLoc:
    file: int
    line: int
    column: int

    def __str__(self) -> str:
        return f"debug loc {self.file} {self.line} {self.column};"


DebugDirective = Union[DebugFile, DebugLoc]


# --- function statements ---------------------------------------------------


@dataclass
class Assignment:
    start: int
    lhs: list
    using_reg: Optional[str]
    rhs: Expression

    def __str__(self) -> str:
        using = self.using_reg if self.using_reg is not None else ""
        return f"{', '.join(self.lhs)} <={using}= {self.rhs};"


@dataclass
class InstructionCall:
    start: int
    instruction: str
    inputs: list = field(default_factory=list)

    def __str__(self) -> str:
        inputs = f" {_join(self.inputs)}" if self.inputs else ""
        return f"{self.instruction}{inputs};"


@dataclass
class Label:
    start: int
    name: str

    def __str__(self) -> str:
        return f"{self.name}::"


@dataclass
class DebugStatement:
    start: int
    directive: DebugDirective

    def __str__(self) -> str:
        return str(self.directive)


FunctionStatement = Union[Assignment, InstructionCall, Label, DebugStatement]


# --- machine statements ----------------------------------------------------


@dataclass
class Degree:
    start: int
    degree: int

    def __str__(self) -> str:
        return f"degree {self.degree};"


@dataclass
class Submachine:
    start: int
    ty: str
    name: str

    def __str__(self) -> str:
        return f"{self.ty} {self.name}"


@dataclass
class RegisterDeclaration:
    start: int
    name: str
    flag: Optional[RegisterFlag] = None

    def __str__(self) -> str:
        flag = f"[{self.flag}]" if self.flag is not None else ""
        return f"reg {self.name}{flag};"


@dataclass
class InstructionDeclaration:
    start: int
    name: str
    params: Params
    body: InstructionBody

    def __str__(self) -> str:
        return f"instr {self.name}{self.params} {{{self.body}}}"


@dataclass
class InlinePil:
    start: int
    statements: list = field(default_factory=list)

    def __str__(self) -> str:
        body = "\n".join(str(s) for s in self.statements)
        return f"pil{{\n{body}\n}}"


@dataclass
class FunctionDeclaration:
    start: int
    name: str
    params: Params
    statements: list = field(default_factory=list)

    def __str__(self) -> str:
        body = "\n".join(str(s) for s in self.statements)
        return f"function {self.name}{self.params} {{\n{body}\n}}"


MachineStatement = Union[
    Degree,
    Submachine,
    RegisterDeclaration,
    InstructionDeclaration,
    InlinePil,
    FunctionDeclaration,
]


@dataclass
class Machine:
    start: int
    name: str
    statements: list = field(default_factory=list)

    def __str__(self) -> str:
        body = "".join(f"{s}\n" for s in self.statements)
        return f"machine {self.name} {{\n{body}}}\n"


@dataclass
class ASMFile:
    machines: list = field(default_factory=list)

    def __str__(self) -> str:
        return "".join(f"{m}\n" for m in self.machines)