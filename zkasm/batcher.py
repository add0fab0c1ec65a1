"""Grouping of ROM statements into batches that share an execution row."""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterator, Optional

from zkasm.asm_analysis import (
    AnalysisASMFile,
    BatchMetadata,
    Incompatible,
    IncompatibleSet,
    LabelStatement,
    Machine,
)

_log = logging.getLogger(__name__)


def _incompatibility(current: list, statement) -> Optional[Incompatible]:
    """Why `statement` cannot join the batch `current`, or None if it can."""
    if all(isinstance(s, LabelStatement) for s in current):
        return None
    if isinstance(statement, LabelStatement):
        return Incompatible.LABEL
    return Incompatible.UNIMPLEMENTED


def _split_batches(statements: list) -> Iterator[BatchMetadata]:
    current: list = []
    for statement in statements:
        reason = _incompatibility(current, statement)
        if reason is not None:
            yield BatchMetadata(len(current), IncompatibleSet(frozenset({reason})))
            current = []
        current.append(statement)
    if current:
        yield BatchMetadata(len(current), None)


def _batch_machine(name: str, machine: Machine) -> Machine:
    if machine.rom is None:
        return machine
    batches = list(_split_batches(machine.rom.statements))
    lines_before = sum(b.size for b in batches)
    lines_after = len(batches)
    savings = 0.0 if lines_before == 0 else (1 - lines_after / lines_before) * 100
    _log.debug(
        "Batching complete for machine %s with savings of %s%% in execution trace lines",
        name,
        savings,
    )
    return dataclasses.replace(machine, rom=dataclasses.replace(machine.rom, batches=batches))


def batch(file: AnalysisASMFile) -> AnalysisASMFile:
    """Split each machine's ROM into batches of compatible statements."""
    return AnalysisASMFile(
        {name: _batch_machine(name, m) for name, m in file.machines.items()}
    )