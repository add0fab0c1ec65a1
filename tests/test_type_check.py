import pytest

from zkasm.asm_analysis import AssignmentStatement, InstructionStatement, LabelStatement
from zkasm.parsed import Number, direct_reference
from zkasm.parsed_asm import (
    ASMFile,
    Assignment,
    Degree,
    FunctionDeclaration,
    InlinePil,
    InstructionCall,
    Label,
    Machine,
    Params,
    RegisterDeclaration,
    RegisterFlag,
    Submachine,
)
from zkasm.type_check import TypeCheckError, check


def pc_machine(name="Main"):
    return Machine(
        0,
        name,
        [
            Degree(0, 8),
            RegisterDeclaration(0, "X"),
            RegisterDeclaration(0, "pc", RegisterFlag.IS_PC),
            RegisterDeclaration(0, "A", RegisterFlag.IS_ASSIGNMENT),
            InlinePil(0, []),
            FunctionDeclaration(
                0,
                "main",
                Params(),
                [
                    Label(0, "start"),
                    Assignment(0, ["X"], "A", Number(1)),
                    InstructionCall(0, "jmp", [direct_reference("start")]),
                ],
            ),
        ],
    )


def test_valid_machine_is_converted():
    result = check(ASMFile([pc_machine()]))
    machine = result.machines["Main"]
    assert machine.pc == 1
    assert machine.pc_name() == "pc"
    assert machine.degree.degree == 8
    assert [r.name for r in machine.registers] == ["X", "pc", "A"]
    assert len(machine.constraints) == 1
    assert machine.rom is None
    kinds = [type(s) for s in machine.functions[0].body.statements]
    assert kinds == [LabelStatement, AssignmentStatement, InstructionStatement]


def test_machines_are_sorted_by_name():
    result = check(ASMFile([pc_machine("B"), pc_machine("A")]))
    assert list(result.machines) == ["A", "B"]


def test_duplicate_machine_names():
    with pytest.raises(TypeCheckError) as info:
        check(ASMFile([pc_machine("M"), pc_machine("M")]))
    assert info.value.errors == ["Machine with name M is already declared"]


def test_submachines_are_rejected():
    machine = Machine(0, "M", [Submachine(0, "Other", "sub")])
    with pytest.raises(TypeCheckError) as info:
        check(ASMFile([machine]))
    assert info.value.errors == ["Submachines are not supported yet"]


def test_function_body_without_pc():
    machine = Machine(
        0,
        "M",
        [FunctionDeclaration(0, "main", Params(), [Label(0, "l")])],
    )
    with pytest.raises(TypeCheckError) as info:
        check(ASMFile([machine]))
    assert info.value.errors == [
        "Function main in machine M should have an empty body because this machine "
        "does not have a pc"
    ]


def test_empty_function_without_pc_is_fine():
    machine = Machine(0, "M", [FunctionDeclaration(0, "main", Params(), [])])
    result = check(ASMFile([machine]))
    assert result.machines["M"].has_pc() is False


def test_two_pcs_rejected():
    machine = Machine(
        0,
        "M",
        [
            RegisterDeclaration(0, "pc", RegisterFlag.IS_PC),
            RegisterDeclaration(0, "pc2", RegisterFlag.IS_PC),
        ],
    )
    with pytest.raises(TypeCheckError) as info:
        check(ASMFile([machine]))
    assert info.value.errors == ["Machine M cannot have more than one pc"]


def test_errors_from_several_machines_are_collected():
    bad_a = Machine(0, "A", [Submachine(0, "X", "x")])
    bad_b = Machine(0, "B", [Submachine(0, "Y", "y")])
    with pytest.raises(TypeCheckError) as info:
        check(ASMFile([bad_a, bad_b]))
    assert len(info.value.errors) == 2
    assert "Submachines are not supported yet" in str(info.value)