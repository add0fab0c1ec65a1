"""Compilation of analysed assembly machines into PIL statements."""

from __future__ import annotations

import copy
import dataclasses
import functools
import itertools
from dataclasses import dataclass
from typing import Iterator, Optional

from zkasm.asm_analysis import (
    AnalysisASMFile,
    AssignmentStatement,
    BatchMetadata,
    DebugDirectiveStatement,
    InstructionDefinitionStatement,
    InstructionStatement,
    LabelStatement,
    Machine,
    RegisterDeclarationStatement,
    Rom,
)
from zkasm.parsed import (
    ArrayDefinition,
    ArrayValue,
    Expression,
    FunctionCall,
    FunctionCallStatement,
    Number,
    PermutationIdentity,
    PlookupIdentity,
    PolynomialConstantDefinition,
    PolynomialIdentity,
    PolynomialReference,
    SelectedExpressions,
    UnaryOperation,
    UnaryOperator,
    build_add,
    build_mul,
    build_number,
    build_sub,
    direct_reference,
    next_reference,
    postvisit_expressions_in_statement,
)
from zkasm.parsed_asm import (
    FunctionCallElement,
    PlookupIdentityElement,
    PlookupOperator,
    PolynomialIdentityElement,
    RegisterFlag,
)
from zkasm.pil_object import Location, PILGraph, PilObject
from zkasm.rom import (
    CodeLine,
    CompilationError,
    Instruction,
    LabelRef,
    LiteralInput,
    LiteralKind,
    NumberArg,
    PrimeField,
    Register,
    RegisterInput,
    extract_update,
    process_assignment_value,
    translate_code_lines,
    witness_column,
)

DEFAULT_DEGREE = 1024

_LITERAL_KINDS = {
    "label": LiteralKind.LABEL,
    "signed": LiteralKind.SIGNED_CONSTANT,
    "unsigned": LiteralKind.UNSIGNED_CONSTANT,
}


@dataclass
class ConversionOutput:
    """The PIL statements of one machine and its degree."""

    pil: list
    degree: int


class ASMPILConverter:
    """Turns one analysed machine into PIL statements."""

    def __init__(self, field: Optional[PrimeField] = None):
        self.field = field if field is not None else PrimeField()
        self._reset()

    def _reset(self) -> None:
        self.pil: list = []
        self.pc_name: Optional[str] = None
        self.registers: dict = {}
        self.instructions: dict = {}
        self.code_lines: list = []
        self.line_lookup: list = []
        self.rom_constant_names: list = []

    # --- entry point -------------------------------------------------------

    def convert_machine(self, machine: Machine) -> ConversionOutput:
        """Compile a machine into PIL; raise CompilationError on invalid input."""
        self._reset()
        degree = (
            self.field.reduce(machine.degree.degree)
            if machine.degree is not None
            else DEFAULT_DEGREE
        )

        if machine.registers:
            self.pil.append(
                PolynomialConstantDefinition(
                    0,
                    "first_step",
                    ArrayDefinition(ArrayValue([build_number(1)]).pad_with_zeroes()),
                )
            )

        for register in machine.registers:
            self._handle_register_declaration(register)

        if self.pc_name is None and self.registers:
            raise CompilationError(
                "pc-less machine cannot have registers, only PIL is allowed"
            )

        for block in machine.constraints:
            self.pil.extend(copy.deepcopy(block.statements))

        for definition in machine.instructions:
            self._handle_instruction_def(definition)

        if machine.rom is not None:
            self._handle_rom(machine.rom)

        for register in self._assignment_registers():
            self._create_constraints_for_assignment_reg(register)

        self.pil.extend(list(self._register_updates()))

        if self.pc_name is not None:
            self.pil.extend(
                translate_code_lines(
                    self.code_lines,
                    self.rom_constant_names,
                    self._assignment_registers(),
                    self.instructions,
                    self.pc_name,
                    self.field,
                )
            )
            self.pil.append(
                PlookupIdentity(
                    0,
                    SelectedExpressions(
                        None, [direct_reference(w) for w, _ in self.line_lookup]
                    ),
                    SelectedExpressions(
                        None, [direct_reference(f) for _, f in self.line_lookup]
                    ),
                )
            )

        return ConversionOutput(self.pil, degree)

    # --- registers ---------------------------------------------------------

    def _assignment_registers(self) -> list:
        return [n for n in sorted(self.registers) if self.registers[n].is_assignment]

    def _regular_registers(self) -> list:
        return [n for n in sorted(self.registers) if not self.registers[n].is_assignment]

    def _handle_register_declaration(self, declaration: RegisterDeclarationStatement) -> None:
        name, start, flag = declaration.name, declaration.start, declaration.flag
        conditioned_updates: list = []
        default_update: Optional[Expression] = None

        if flag is RegisterFlag.IS_PC:
            if self.pc_name is not None:
                raise CompilationError(
                    f"Machine cannot have more than one pc: {self.pc_name} and {name}"
                )
            self.pc_name = name
            self.line_lookup.append((name, "p_line"))
            default_update = build_add(direct_reference(name), build_number(1))
        elif flag is None:
            # Makes it easy to see that the register is zero in the first row.
            self.pil.append(
                PolynomialIdentity(
                    start, build_mul(direct_reference("first_step"), direct_reference(name))
                )
            )
            # Only the presence of first_step' matters for the default condition.
            conditioned_updates = [(next_reference("first_step"), build_number(0))]
            for register in self._assignment_registers():
                write_flag = f"reg_write_{register}_{name}"
                self._create_witness_fixed_pair(start, write_flag)
                conditioned_updates.append(
                    (direct_reference(write_flag), direct_reference(register))
                )
            default_update = direct_reference(name)

        self.registers[name] = Register(
            conditioned_updates=conditioned_updates,
            default_update=default_update,
            is_assignment=flag is RegisterFlag.IS_ASSIGNMENT,
        )
        self.pil.append(witness_column(start, name, None))

    def _register_updates(self) -> Iterator[PolynomialIdentity]:
        for name in sorted(self.registers):
            update = self.registers[name].update_expression()
            if update is None:
                continue
            if name == self.pc_name:
                # Force the pc to zero on the first row.
                update = build_mul(
                    build_sub(build_number(1), next_reference("first_step")), update
                )
            yield PolynomialIdentity(0, build_sub(next_reference(name), update))

    def _create_constraints_for_assignment_reg(self, register: str) -> None:
        assign_const = f"{register}_const"
        self._create_witness_fixed_pair(0, assign_const)
        read_free = f"{register}_read_free"
        self._create_witness_fixed_pair(0, read_free)
        free_value = f"{register}_free_value"

        terms = []
        for name in self._regular_registers():
            read_coefficient = f"read_{register}_{name}"
            self._create_witness_fixed_pair(0, read_coefficient)
            terms.append(build_mul(direct_reference(read_coefficient), direct_reference(name)))
        terms.append(direct_reference(assign_const))
        terms.append(build_mul(direct_reference(read_free), direct_reference(free_value)))

        constraint = functools.reduce(build_add, terms)
        self.pil.append(
            PolynomialIdentity(0, build_sub(direct_reference(register), constraint))
        )

    def _create_witness_fixed_pair(self, start: int, name: str) -> None:
        """Declare a witness column and its fixed counterpart in the lookup."""
        fixed_name = f"p_{name}"
        self.pil.append(witness_column(start, name, None))
        self.line_lookup.append((name, fixed_name))
        self.rom_constant_names.append(fixed_name)

    # --- instruction definitions -------------------------------------------

    def _handle_instruction_def(self, definition: InstructionDefinitionStatement) -> None:
        name, start, params = definition.name, definition.start, definition.params
        instruction_flag = f"instr_{name}"
        self._create_witness_fixed_pair(start, instruction_flag)

        inputs = []
        for param in params.inputs.params:
            if param.ty is None:
                inputs.append(RegisterInput(param.name))
            elif param.ty in _LITERAL_KINDS:
                inputs.append(LiteralInput(param.name, _LITERAL_KINDS[param.ty]))
            else:
                raise CompilationError(
                    f"param type must be nothing or label, found `{param.ty}`"
                )

        outputs = []
        if params.outputs is not None:
            for param in params.outputs.params:
                if param.ty is not None:
                    raise CompilationError("output must be a register")
                outputs.append(param.name)

        instruction = Instruction(inputs, outputs)

        statements = [
            self._body_element_to_statement(start, element)
            for element in definition.body.elements
        ]

        substitutions = {}
        for arg_name in instruction.literal_arg_names():
            column = f"instr_{name}_param_{arg_name}"
            self._create_witness_fixed_pair(start, column)
            substitutions[arg_name] = column

        def substitute(expr: Expression) -> Expression:
            if isinstance(expr, PolynomialReference) and expr.name in substitutions:
                return dataclasses.replace(expr, name=substitutions[expr.name])
            return expr

        statements = [postvisit_expressions_in_statement(s, substitute) for s in statements]

        for statement in statements:
            self._add_instruction_constraint(instruction_flag, statement)

        self.instructions[name] = instruction

    @staticmethod
    def _body_element_to_statement(start: int, element):
        match element:
            case PolynomialIdentityElement(left, right):
                return PolynomialIdentity(
                    start, build_sub(copy.deepcopy(left), copy.deepcopy(right))
                )
            case PlookupIdentityElement(left, operator, right):
                if left.selector is not None:
                    raise CompilationError(
                        "LHS selector not supported, could and-combine with "
                        "instruction flag later."
                    )
                left, right = copy.deepcopy(left), copy.deepcopy(right)
                if operator is PlookupOperator.IN:
                    return PlookupIdentity(start, left, right)
                return PermutationIdentity(start, left, right)
            case FunctionCallElement(call):
                return FunctionCallStatement(
                    start, call.id, copy.deepcopy(call.arguments)
                )
            case _:
                raise CompilationError(f"Invalid instruction body element: {element!r}")

    def _add_instruction_constraint(self, instruction_flag: str, statement) -> None:
        match statement:
            case PolynomialIdentity(_, expression):
                register, expr = extract_update(expression)
                if register is None:
                    self.pil.append(
                        PolynomialIdentity(
                            0, build_mul(direct_reference(instruction_flag), expr)
                        )
                    )
                    return
                if register not in self.registers:
                    raise CompilationError(f"Unknown register in update: {register}")
                self.registers[register].conditioned_updates.append(
                    (direct_reference(instruction_flag), expr)
                )
            case PlookupIdentity() | PermutationIdentity():
                if statement.left.selector is not None:
                    raise CompilationError(
                        "LHS selector not supported, could and-combine with "
                        "instruction flag later."
                    )
                left = dataclasses.replace(
                    statement.left, selector=direct_reference(instruction_flag)
                )
                self.pil.append(dataclasses.replace(statement, left=left))
            case _:
                raise CompilationError(
                    f"Invalid statement for instruction body: {statement}"
                )

    # --- the rom -----------------------------------------------------------

    def _handle_rom(self, rom: Rom) -> None:
        batches = (
            rom.batches
            if rom.batches is not None
            else [BatchMetadata(1, None) for _ in rom.statements]
        )
        statements = iter(rom.statements)
        for batch in batches:
            lines = [
                line
                for statement in itertools.islice(statements, batch.size)
                if (line := self._handle_statement(statement)) is not None
            ]
            if lines:
                self.code_lines.append(functools.reduce(CodeLine.merge, lines))

    def _handle_statement(self, statement) -> Optional[CodeLine]:
        match statement:
            case AssignmentStatement(_, lhs, using_reg, rhs):
                if isinstance(rhs, FunctionCall):
                    if using_reg is None:
                        raise CompilationError(
                            "Implicit assign register not yet supported."
                        )
                    return self._handle_functional_instruction(
                        lhs, using_reg, rhs.id, rhs.arguments
                    )
                return self._handle_assignment(lhs, using_reg, rhs)
            case InstructionStatement(_, instruction, inputs):
                return self._handle_instruction(instruction, inputs)
            case LabelStatement(_, name):
                return CodeLine(labels={name})
            case DebugDirectiveStatement():
                return None
            case _:
                raise CompilationError(f"Unknown function statement: {statement!r}")

    def _handle_assignment(
        self, write_regs: list, assign_reg: Optional[str], value: Expression
    ) -> CodeLine:
        if len(write_regs) > 1:
            raise CompilationError("An assignment can write at most one register.")
        if assign_reg is None:
            raise CompilationError("Implicit assign register not yet supported.")
        terms = process_assignment_value(value, self.field)
        return CodeLine(write_regs={assign_reg: list(write_regs)}, value={assign_reg: terms})

    def _lookup_instruction(self, name: str) -> Instruction:
        instruction = self.instructions.get(name)
        if instruction is None:
            raise CompilationError(f"Instruction not found: {name}")
        return instruction

    def _handle_functional_instruction(
        self, write_regs: list, assign_reg: str, instr_name: str, args: list
    ) -> CodeLine:
        if len(write_regs) != 1:
            raise CompilationError(
                "A functional instruction call must write exactly one register."
            )
        instruction = self._lookup_instruction(instr_name)
        if len(instruction.outputs) != 1:
            raise CompilationError(
                f"Instruction {instr_name} must have exactly one output to be "
                "called as a function."
            )
        output = instruction.outputs[0]
        if output != assign_reg:
            raise CompilationError(
                f"The instruction {instr_name} uses the assignment register {output}, "
                f"but the caller uses {assign_reg} to further process the value."
            )
        return self._handle_instruction(
            instr_name, list(args) + [direct_reference(write_regs[0])]
        )

    def _literal_arg(self, kind: LiteralKind, arg: Expression):
        match kind, arg:
            case LiteralKind.LABEL, PolynomialReference(name=name):
                return LabelRef(name)
            case LiteralKind.LABEL, _:
                raise CompilationError(f"expected label, received {arg}")
            case LiteralKind.UNSIGNED_CONSTANT, Number(n):
                if not self.field.is_in_lower_half(n):
                    raise CompilationError(
                        f"Number passed to unsigned parameter is negative or too large: {n}"
                    )
                return NumberArg(self.field.reduce(n))
            case LiteralKind.UNSIGNED_CONSTANT, _:
                raise CompilationError(f"expected unsigned number, received {arg}")
            case LiteralKind.SIGNED_CONSTANT, Number(n):
                return NumberArg(self.field.reduce(n))
            case LiteralKind.SIGNED_CONSTANT, UnaryOperation(
                UnaryOperator.MINUS, Number(n)
            ):
                return NumberArg(self.field.neg(n))
            case _:
                raise CompilationError(f"expected signed number, received {arg}")

    def _handle_instruction(self, instr_name: str, args: list) -> CodeLine:
        instruction = self._lookup_instruction(instr_name)
        if len(instruction.inputs) + len(instruction.outputs) != len(args):
            raise CompilationError(
                f"Called instruction {instr_name} with the wrong number of arguments"
            )

        input_args = args[: len(instruction.inputs)]
        output_args = args[len(instruction.inputs):]

        value: dict = {}
        literal_args = []
        for param, arg in zip(instruction.inputs, input_args):
            if isinstance(param, RegisterInput):
                if param.name in value:
                    raise CompilationError(
                        f"Assignment register {param.name} is read twice."
                    )
                value[param.name] = process_assignment_value(arg, self.field)
            else:
                literal_args.append(self._literal_arg(param.kind, arg))

        write_regs: dict = {}
        for register, arg in zip(instruction.outputs, output_args):
            if (
                not isinstance(arg, PolynomialReference)
                or arg.next
                or arg.index is not None
            ):
                raise CompilationError(
                    "Expected direct register to assign to in instruction call."
                )
            write_regs[register] = [arg.name]

        if len(write_regs) != len(instruction.outputs):
            raise CompilationError(
                f"Instruction {instr_name} writes the same output register twice."
            )

        return CodeLine(
            write_regs=write_regs,
            value=value,
            instructions=[(instr_name, literal_args)],
        )


def compile_machine(machine: Machine, field: Optional[PrimeField] = None) -> ConversionOutput:
    """Compile a single machine into PIL statements."""
    return ASMPILConverter(field).convert_machine(machine)


def compile(analysis: AnalysisASMFile, field: Optional[PrimeField] = None) -> PILGraph:
    """Compile the main machine of an analysed file into a PIL graph.

    A file with a single machine uses it as main; otherwise the machine
    named "Main" is used.
    """
    if len(analysis.machines) == 1:
        main = next(iter(analysis.machines.values()))
    else:
        main = analysis.machines.get("Main")
        if main is None:
            raise CompilationError("couldn't find a Main state machine")

    output = compile_machine(copy.deepcopy(main), field)
    location = Location().join("main")
    return PILGraph({location: PilObject(output.degree, output.pil)})