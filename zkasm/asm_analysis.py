"""Type-checked assembly tree used by the analysis passes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from zkasm.parsed import Expression
from zkasm.parsed_asm import DebugDirective, InstructionBody, Params, RegisterFlag


def _join(items) -> str:
    return ", ".join(str(i) for i in items)


@dataclass
class RegisterDeclarationStatement:
    start: int
    name: str
    flag: Optional[RegisterFlag] = None

    def __str__(self) -> str:
        flag = f"[{self.flag}]" if self.flag is not None else ""
        return f"reg {self.name}{flag};"


@dataclass
class InstructionDefinitionStatement:
    start: int
    name: str
    params: Params
    body: InstructionBody

    def __str__(self) -> str:
        return f"instr {self.name}{self.params} {{ {self.body} }}"


@dataclass
class AssignmentStatement:
    start: int
    lhs: list
    using_reg: Optional[str]
    rhs: Expression

    def __str__(self) -> str:
        using = self.using_reg if self.using_reg is not None else ""
        return f"{', '.join(self.lhs)} <={using}= {self.rhs};"


@dataclass
class InstructionStatement:
    start: int
    instruction: str
    inputs: list = field(default_factory=list)

    def __str__(self) -> str:
        inputs = f" {_join(self.inputs)}" if self.inputs else ""
        return f"{self.instruction}{inputs};"


@dataclass
class LabelStatement:
    start: int
    name: str

    def __str__(self) -> str:
        return f"{self.name}::"


@dataclass
class DebugDirectiveStatement:
    start: int
    directive: DebugDirective

    def __str__(self) -> str:
        return str(self.directive)


FunctionStatement = Union[
    AssignmentStatement, InstructionStatement, LabelStatement, DebugDirectiveStatement
]


@dataclass
class FunctionBody:
    statements: list = field(default_factory=list)

    def __str__(self) -> str:
        return "".join(f"\t\t{s}\n" for s in self.statements)


@dataclass
class FunctionDefinitionStatement:
    start: int
    name: str
    params: Params
    body: FunctionBody

    def __str__(self) -> str:
        return f"function {self.name}{self.params} {{\n{self.body}\n\t}}"


@dataclass
class DegreeStatement:
    degree: int

    def __str__(self) -> str:
        return f"degree {self.degree};"


@dataclass
class PilBlock:
    start: int
    statements: list = field(default_factory=list)

    def __str__(self) -> str:
        body = "\n".join(str(s) for s in self.statements)
        return f"constraints {{\n{body}\n}}"


class Incompatible(Enum):
    """Why a batch of statements had to end."""

    LABEL = "Label"
    UNIMPLEMENTED = "Unimplemented"

    def __str__(self) -> str:
        return self.value


_INCOMPATIBLE_ORDER = {kind: i for i, kind in enumerate(Incompatible)}


@dataclass(frozen=True)
class IncompatibleSet:
    reasons: frozenset = frozenset()

    def __str__(self) -> str:
        ordered = sorted(self.reasons, key=_INCOMPATIBLE_ORDER.__getitem__)
        return _join(ordered)


@dataclass
class BatchMetadata:
    size: int = 0
    reason: Optional[IncompatibleSet] = None


@dataclass
class Rom:
    statements: list = field(default_factory=list)
    batches: Optional[list] = None

    def __str__(self) -> str:
        lines = ["\t// rom {\n"]
        statements = iter(self.statements)
        if self.batches is not None:
            for batch in self.batches:
                for _, statement in zip(range(batch.size), statements):
                    lines.append(f"\t// \t{statement}\n")
                reason = f" {batch.reason}" if batch.reason is not None else ""
                lines.append(f"\t// \t// END BATCH{reason}\n")
        else:
            lines.extend(f"\t// \t {statement}\n" for statement in statements)
        lines.append("\t// }")
        return "".join(lines)


@dataclass
class Machine:
    degree: Optional[DegreeStatement] = None
    registers: list = field(default_factory=list)
    pc: Optional[int] = None
    constraints: list = field(default_factory=list)
    instructions: list = field(default_factory=list)
    functions: list = field(default_factory=list)
    rom: Optional[Rom] = None

    def has_pc(self) -> bool:
        return self.pc is not None

    def pc_name(self) -> Optional[str]:
        """Name of the program counter register, if the machine has one."""
        if self.pc is None:
            return None
        return self.registers[self.pc].name

    def __str__(self) -> str:
        parts = []
        if self.degree is not None:
            parts.append(f"\t{self.degree}\n")
        for group in (self.registers, self.constraints, self.instructions, self.functions):
            parts.extend(f"\t{item}\n" for item in group)
        if self.rom is not None:
            parts.append(f"{self.rom}\n")
        return "".join(parts)


@dataclass
class AnalysisASMFile:
    machines: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return "".join(
            f"machine {name} {{\n{machine}\n}}\n\n"
            for name, machine in sorted(self.machines.items())
        )