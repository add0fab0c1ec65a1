"""Type checking of parsed assembly files into the analysis tree."""

from __future__ import annotations

from typing import Optional

from zkasm.asm_analysis import (
    AnalysisASMFile,
    AssignmentStatement,
    DebugDirectiveStatement,
    DegreeStatement,
    FunctionBody,
    FunctionDefinitionStatement,
    InstructionDefinitionStatement,
    InstructionStatement,
    LabelStatement,
    Machine,
    PilBlock,
    RegisterDeclarationStatement,
)
from zkasm.parsed_asm import (
    ASMFile,
    Assignment,
    DebugStatement,
    Degree,
    FunctionDeclaration,
    InlinePil,
    InstructionCall,
    InstructionDeclaration,
    Label,
    RegisterDeclaration,
    RegisterFlag,
    Submachine,
)
from zkasm.parsed_asm import Machine as ParsedMachine


class TypeCheckError(Exception):
    """Raised with every error found while checking a file."""

    def __init__(self, errors: list):
        self.errors = list(errors)
        super().__init__("\n".join(self.errors))


def _convert_function_statement(statement):
    match statement:
        case Assignment(start, lhs, using_reg, rhs):
            return AssignmentStatement(start, lhs, using_reg, rhs)
        case InstructionCall(start, instruction, inputs):
            return InstructionStatement(start, instruction, inputs)
        case Label(start, name):
            return LabelStatement(start, name)
        case DebugStatement(start, directive):
            return DebugDirectiveStatement(start, directive)
        case _:
            raise TypeError(f"Unknown function statement: {statement!r}")


def _check_machine(machine: ParsedMachine) -> tuple[Machine, list]:
    errors = []
    degree: Optional[DegreeStatement] = None
    registers = []
    constraints = []
    instructions = []
    functions = []

    for statement in machine.statements:
        match statement:
            case Degree(_, value):
                degree = DegreeStatement(value)
            case RegisterDeclaration(start, name, flag):
                registers.append(RegisterDeclarationStatement(start, name, flag))
            case InstructionDeclaration(start, name, params, body):
                instructions.append(InstructionDefinitionStatement(start, name, params, body))
            case InlinePil(start, statements):
                constraints.append(PilBlock(start, statements))
            case Submachine():
                errors.append("Submachines are not supported yet")
            case FunctionDeclaration(start, name, params, statements):
                body = FunctionBody([_convert_function_statement(s) for s in statements])
                functions.append(FunctionDefinitionStatement(start, name, params, body))

    pc_indices = [i for i, r in enumerate(registers) if r.flag is RegisterFlag.IS_PC]

    if not pc_indices:
        errors.extend(
            f"Function {f.name} in machine {machine.name} should have an empty body "
            "because this machine does not have a pc"
            for f in functions
            if f.body.statements
        )

    if len(pc_indices) > 1:
        errors.append(f"Machine {machine.name} cannot have more than one pc")

    checked = Machine(
        degree=degree,
        registers=registers,
        pc=pc_indices[0] if pc_indices else None,
        constraints=constraints,
        instructions=instructions,
        functions=functions,
        rom=None,
    )
    return checked, errors


def check(file: ASMFile) -> AnalysisASMFile:
    """Check a parsed file; raise TypeCheckError listing all problems found."""
    errors = []
    machine_types: dict = {}

    for machine in file.machines:
        if machine.name in machine_types:
            errors.append(f"Machine with name {machine.name} is already declared")
        else:
            machine_types[machine.name] = None

    for machine in file.machines:
        if machine_types[machine.name] is not None:
            continue
        checked, machine_errors = _check_machine(machine)
        machine_types[machine.name] = checked
        errors.extend(machine_errors)

    if errors:
        raise TypeCheckError(errors)

    return AnalysisASMFile({name: machine_types[name] for name in sorted(machine_types)})