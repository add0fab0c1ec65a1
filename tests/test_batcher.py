from zkasm.asm_analysis import (
    AnalysisASMFile,
    BatchMetadata,
    Incompatible,
    IncompatibleSet,
    InstructionStatement,
    LabelStatement,
    Machine,
    Rom,
)
from zkasm.batcher import batch


def label(name):
    return LabelStatement(0, name)


def instr(name):
    return InstructionStatement(0, name, [])


def batched(statements):
    file = AnalysisASMFile({"M": Machine(pc=0, rom=Rom(statements=statements))})
    return batch(file).machines["M"].rom


def test_labels_join_following_instruction():
    statements = [label("a"), label("b"), instr("x"), instr("y"), label("c"), instr("z")]
    rom = batched(statements)
    assert [b.size for b in rom.batches] == [3, 1, 2]
    assert rom.batches[0].reason == IncompatibleSet(frozenset({Incompatible.UNIMPLEMENTED}))
    assert rom.batches[1].reason == IncompatibleSet(frozenset({Incompatible.LABEL}))
    assert rom.batches[-1].reason is None
    assert rom.statements == statements


def test_sizes_cover_all_statements():
    statements = [instr("a"), label("l"), label("m"), instr("b"), instr("c")]
    rom = batched(statements)
    assert sum(b.size for b in rom.batches) == len(statements)
    assert rom.batches[-1].reason is None


def test_only_labels_form_one_batch():
    rom = batched([label("a"), label("b")])
    assert rom.batches == [BatchMetadata(2, None)]


def test_empty_rom_has_no_batches():
    assert batched([]).batches == []


def test_consecutive_instructions_each_own_batch():
    statements = [instr(n) for n in "abcd"]
    rom = batched(statements)
    assert all(b.size == 1 for b in rom.batches)
    assert len(rom.batches) == len(statements)
    assert all(
        b.reason == IncompatibleSet(frozenset({Incompatible.UNIMPLEMENTED}))
        for b in rom.batches[:-1]
    )


def test_machine_without_rom_untouched():
    machine = Machine()
    result = batch(AnalysisASMFile({"M": machine}))
    assert result.machines["M"].rom is None


def test_display_marks_batch_ends():
    rom = batched([instr("x"), label("l")])
    text = str(rom)
    assert "// END BATCH Label" in text
    assert text.count("END BATCH") == len(rom.batches)