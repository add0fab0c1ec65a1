from zkasm.asm_analysis import (
    AnalysisASMFile,
    AssignmentStatement,
    BatchMetadata,
    DebugDirectiveStatement,
    DegreeStatement,
    FunctionBody,
    FunctionDefinitionStatement,
    Incompatible,
    IncompatibleSet,
    InstructionDefinitionStatement,
    InstructionStatement,
    LabelStatement,
    Machine,
    PilBlock,
    RegisterDeclarationStatement,
    Rom,
)
from zkasm.parsed import Number, direct_reference
from zkasm.parsed_asm import (
    DebugLoc,
    InstructionBody,
    Param,
    ParamList,
    Params,
    PolynomialIdentityElement,
    RegisterFlag,
)


def _registers():
    return [
        RegisterDeclarationStatement(0, "X", RegisterFlag.IS_ASSIGNMENT),
        RegisterDeclarationStatement(0, "pc", RegisterFlag.IS_PC),
        RegisterDeclarationStatement(0, "A"),
    ]


def test_machine_pc_lookup():
    machine = Machine(registers=_registers(), pc=1)
    assert machine.has_pc()
    assert machine.pc_name() == "pc"


def test_machine_without_pc():
    machine = Machine(registers=_registers())
    assert not machine.has_pc()
    assert machine.pc_name() is None


def test_incompatible_set_is_ordered():
    reasons = IncompatibleSet(frozenset({Incompatible.UNIMPLEMENTED, Incompatible.LABEL}))
    assert str(reasons) == "Label, Unimplemented"


def test_batch_metadata_defaults():
    batch = BatchMetadata(size=2)
    assert batch.size == 2
    assert batch.reason is None


def test_rom_with_batches_marks_each_batch_end():
    statements = [LabelStatement(0, "start"), InstructionStatement(0, "nop"), LabelStatement(0, "end")]
    reason = IncompatibleSet(frozenset({Incompatible.LABEL}))
    rom = Rom(statements, [BatchMetadata(2, reason), BatchMetadata(1, None)])
    text = str(rom)
    lines = text.splitlines()
    assert lines[0] == "\t// rom {"
    assert lines[-1] == "\t// }"
    assert text.count("END BATCH") == 2
    assert f"END BATCH {reason}" in text
    assert len(lines) == len(statements) + 2 + 2


def test_rom_without_batches_lists_statements():
    statements = [InstructionStatement(0, "nop"), LabelStatement(0, "l")]
    lines = str(Rom(statements)).splitlines()
    body = lines[1:-1]
    assert len(body) == len(statements)
    assert all(line.startswith("\t// \t ") for line in body)
    assert body[1].endswith(str(statements[1]))


def test_register_declaration_statement_display():
    text = str(RegisterDeclarationStatement(0, "pc", RegisterFlag.IS_PC))
    assert text == f"reg pc[{RegisterFlag.IS_PC}];"


def test_instruction_definition_display():
    body = InstructionBody([PolynomialIdentityElement(direct_reference("X"), Number(1))])
    instr = InstructionDefinitionStatement(0, "set", Params(ParamList([Param("a")])), body)
    text = str(instr)
    assert text.startswith("instr set a { ")
    assert text.endswith(f"{body} }}")


def test_function_definition_indents_body():
    body = FunctionBody([AssignmentStatement(0, ["A"], "X", Number(1)), DebugDirectiveStatement(0, DebugLoc(0, 1, 2))])
    func = FunctionDefinitionStatement(0, "main", Params(), body)
    lines = str(func).splitlines()
    assert lines[0] == "function main {"
    assert lines[1] == f"\t\t{body.statements[0]}"
    assert lines[-1] == "\t}"


def test_machine_display_order():
    machine = Machine(
        degree=DegreeStatement(16),
        registers=_registers(),
        pc=1,
        constraints=[PilBlock(0, [])],
    )
    lines = str(machine).splitlines()
    assert lines[0] == f"\t{DegreeStatement(16)}"
    assert lines[1] == f"\t{machine.registers[0]}"


def test_analysis_file_machines_sorted_by_name():
    file = AnalysisASMFile({"B": Machine(), "A": Machine()})
    text = str(file)
    assert text.count("machine ") == 2
    assert text.index("machine A {") < text.index("machine B {")