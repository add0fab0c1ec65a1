"""Removal of code and data that cannot be reached from an entry label."""

from __future__ import annotations

import heapq
import itertools
from typing import Iterable, Optional

from zkasm.frontend.data import Reference
from zkasm.frontend.syntax import Directive, ExpressionArg, Instruction, Label, Symbol

_FALLTHROUGH = frozenset(
    {
        "li", "lui", "la", "mv", "add", "addi", "sub", "neg", "mul", "mulhu",
        "divu", "xor", "xori", "and", "andi", "or", "ori", "not", "slli", "sll",
        "srli", "srl", "srai", "seqz", "snez", "slt", "slti", "sltu", "sltiu",
        "sgtz", "beq", "beqz", "bgeu", "bltu", "blt", "bge", "bltz", "blez",
        "bgtz", "bgez", "bne", "bnez", "jal", "jalr", "call", "ecall", "ebreak",
        "lw", "lb", "lbu", "sw", "sh", "sb", "nop",
    }
)
_TERMINATORS = frozenset({"j", "jr", "tail", "ret", "unimp"})


class ReachabilityError(Exception):
    """Raised for unknown instructions, missing labels or invalid `.set` directives."""


def _ends_control_flow(statement) -> bool:
    if not isinstance(statement, Instruction):
        return False
    if statement.name in _TERMINATORS:
        return True
    if statement.name in _FALLTHROUGH:
        return False
    raise ReachabilityError(f"Unknown instruction: {statement.name}")


def _extract_replacements(statements) -> dict:
    replacements: dict = {}
    for statement in statements:
        if not (isinstance(statement, Directive) and statement.name == ".set"):
            continue
        match statement.args:
            case [ExpressionArg(Symbol(source)), ExpressionArg(Symbol(target))]:
                if source in replacements:
                    raise ReachabilityError(f"Duplicate .set directive: {source}")
                replacements[source] = target
            case _:
                raise ReachabilityError(
                    f".set directive needs two symbols: {', '.join(map(str, statement.args))}"
                )

    # Follow chains of indirections to their final name.
    for key in sorted(replacements):
        current = key
        seen: set = set()
        while current in replacements:
            if current in seen:
                involved = "\n  ".join(sorted(seen))
                raise ReachabilityError(
                    f"Cycle detected among .set directives involving:\n  {involved}"
                )
            seen.add(current)
            current = replacements[current]
        for name in seen:
            replacements[name] = current
    return replacements


def extract_label_offsets(statements) -> dict:
    """Map each label to the index of its statement; labels must be unique."""
    offsets: dict = {}
    for i, statement in enumerate(statements):
        if isinstance(statement, Label):
            if statement.name in offsets:
                raise ReachabilityError(f"Duplicate label: {statement.name}")
            offsets[statement.name] = i
    return offsets


def references_in_statement(statement) -> set:
    """The symbols referenced by the arguments of an instruction."""
    if not isinstance(statement, Instruction):
        return set()
    return {
        expr.name
        for arg in statement.args
        for expr in arg.post_visit_expressions()
        if isinstance(expr, Symbol)
    }


def _basic_block(statements: Iterable) -> Iterable:
    for statement in statements:
        yield statement
        if _ends_control_flow(statement):
            break


def _basic_block_references(statements: Iterable) -> tuple:
    seen_labels: list = []
    referenced: set = set()
    for statement in _basic_block(statements):
        if isinstance(statement, Label):
            seen_labels.append(statement.name)
        else:
            referenced |= references_in_statement(statement)
    return sorted(referenced), seen_labels


def find_reachable_labels(
    label: str, statements, objects: dict, replacements: Optional[dict] = None
) -> set:
    """All labels and data objects reachable from `label`."""
    replacements = replacements or {}
    offsets = extract_label_offsets(statements)
    queued = [label]
    in_queue = {label}
    processed: set = set()
    while queued:
        current = heapq.heappop(queued)
        in_queue.discard(current)
        current = replacements.get(current, current)
        if current in processed:
            continue
        processed.add(current)

        if current in objects:
            new_references = [v.name for v in objects[current] if isinstance(v, Reference)]
        elif current in offsets:
            new_references, seen = _basic_block_references(
                itertools.islice(statements, offsets[current], None)
            )
            processed.update(seen)
        else:
            raise ReachabilityError(
                "The assembly code references an external routine / label that is "
                f"not available:\n{current}"
            )

        for referenced in new_references:
            if referenced not in processed and referenced not in in_queue:
                heapq.heappush(queued, referenced)
                in_queue.add(referenced)
    return processed


def _replace_in_object(values: list, replacements: dict) -> list:
    return [
        Reference(replacements[v.name])
        if isinstance(v, Reference) and v.name in replacements
        else v
        for v in values
    ]


def _replace_in_statement(statement, replacements: dict):
    if not isinstance(statement, Instruction):
        return statement

    def rename(expr):
        if isinstance(expr, Symbol) and expr.name in replacements:
            return Symbol(replacements[expr.name])
        return expr

    return Instruction(statement.name, [a.map_expressions(rename) for a in statement.args])


def filter_reachable_from(label: str, statements, objects: dict) -> tuple:
    """Keep only the code and data reachable from `label`.

    Returns the filtered statements, in their original order, and the
    filtered objects, with `.set` aliases resolved in both.
    """
    statements = list(statements)
    replacements = _extract_replacements(statements)
    referenced = find_reachable_labels(label, statements, objects, replacements)

    kept_objects = {
        name: _replace_in_object(values, replacements)
        for name, values in sorted(objects.items())
        if name in referenced
    }

    kept_statements = []
    active = False
    for statement in statements:
        if active:
            if _ends_control_flow(statement):
                active = False
            include = True
        else:
            if isinstance(statement, Label):
                active = statement.name in referenced and statement.name not in kept_objects
            include = active
        if include:
            kept_statements.append(_replace_in_statement(statement, replacements))
    return kept_statements, kept_objects