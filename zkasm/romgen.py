"""Generation of each machine's ROM from its single main function."""

from __future__ import annotations

import copy
import dataclasses

from zkasm.asm_analysis import AnalysisASMFile, Machine, Rom


class RomGenerationError(Exception):
    """Raised when a machine's functions cannot be turned into a ROM."""


def _generate_machine_rom(machine: Machine) -> Machine:
    if not machine.has_pc():
        return dataclasses.replace(machine, rom=None)

    if len(machine.functions) != 1:
        raise RomGenerationError("only a single function is supported")
    main = machine.functions[0]
    if main.name != "main":
        raise RomGenerationError('the main function must be named "main"')
    if main.params.inputs.params:
        raise RomGenerationError("public inputs are not supported")
    if main.params.outputs is not None and main.params.outputs.params:
        raise RomGenerationError("public outputs are not supported")

    rom = Rom(statements=copy.deepcopy(main.body.statements), batches=None)
    return dataclasses.replace(machine, rom=rom)


def generate_rom(file: AnalysisASMFile) -> AnalysisASMFile:
    """Give every machine with a pc a ROM: the body of its main function."""
    return AnalysisASMFile(
        {name: _generate_machine_rom(m) for name, m in file.machines.items()}
    )