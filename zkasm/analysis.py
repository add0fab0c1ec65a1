"""The full analysis pipeline from parsed assembly to the analysis tree."""

from __future__ import annotations

from zkasm.asm_analysis import AnalysisASMFile
from zkasm.batcher import batch
from zkasm.macro_expansion import expand
from zkasm.parsed_asm import ASMFile
from zkasm.romgen import generate_rom
from zkasm.type_check import check


def analyze(file: ASMFile) -> AnalysisASMFile:
    """Expand macros, type-check, build ROMs and batch them.

    Raises TypeCheckError if the file does not type-check.
    """
    expanded = expand(file)
    checked = check(expanded)
    rommed = generate_rom(checked)
    return batch(rommed)