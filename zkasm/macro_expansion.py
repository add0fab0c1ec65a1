"""Expansion of PIL macros inside assembly files and PIL statement lists."""

from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass, field
from typing import Optional

from zkasm.parsed import (
    Expression,
    FunctionCall,
    FunctionCallStatement,
    MacroDefinition,
    MappingDefinition,
    PolynomialCommitDeclaration,
    PolynomialConstantDefinition,
    PolynomialReference,
    QueryDefinition,
    SelectedExpressions,
    postvisit_expression,
    postvisit_expressions_in_statement,
)
from zkasm.parsed_asm import (
    ASMFile,
    FunctionCallElement,
    InlinePil,
    InstructionBody,
    InstructionDeclaration,
    PlookupIdentityElement,
    PolynomialIdentityElement,
)


class MacroError(Exception):
    """Raised when a macro is missing, redefined or used in the wrong context."""


@dataclass
class _MacroDefinition:
    parameters: list
    identities: list
    expression: Optional[Expression] = None


@dataclass
class MacroExpander:
    """Collects macro definitions and expands their invocations.

    Macros are not namespaced: a macro defined once is visible to every
    statement expanded afterwards by the same expander.
    """

    _macros: dict = field(default_factory=dict, repr=False)
    _arguments: list = field(default_factory=list, repr=False)
    _parameter_names: dict = field(default_factory=dict, repr=False)
    _shadowing_locals: set = field(default_factory=set, repr=False)
    _statements: list = field(default_factory=list, repr=False)

    def expand_asm(self, file: ASMFile) -> ASMFile:
        """Expand macros in all inline PIL blocks and instruction bodies of a file."""
        inline_expander = MacroExpander()
        machines = [
            dataclasses.replace(
                machine,
                statements=[
                    self._expand_machine_statement(s, inline_expander)
                    for s in machine.statements
                ],
            )
            for machine in file.machines
        ]
        return ASMFile(machines)

    def expand_macros(self, statements: list) -> list:
        """Expand all macro references in the statements and record new macros."""
        if self._statements:
            raise RuntimeError("macro expansion is already in progress")
        for statement in statements:
            self._handle_statement(statement)
        result, self._statements = self._statements, []
        return result

    # --- assembly parts ----------------------------------------------------

    def _expand_machine_statement(self, statement, inline_expander: "MacroExpander"):
        match statement:
            case InstructionDeclaration():
                body = InstructionBody(
                    [self._expand_body_element(e) for e in statement.body.elements]
                )
                return dataclasses.replace(statement, body=body)
            case InlinePil():
                return dataclasses.replace(
                    statement,
                    statements=inline_expander.expand_macros(statement.statements),
                )
            case _:
                return statement

    def _expand_body_element(self, element):
        match element:
            case PolynomialIdentityElement(left, right):
                new_left = self._process_expression(left)
                new_right = self._process_expression(right)
                return dataclasses.replace(element, left=new_left, right=new_right)
            case PlookupIdentityElement():
                left = self._process_selected(element.left)
                right = self._process_selected(element.right)
                return dataclasses.replace(element, left=left, right=right)
            case FunctionCallElement(call):
                arguments = [self._process_expression(a) for a in call.arguments]
                return dataclasses.replace(
                    element, call=dataclasses.replace(call, arguments=arguments)
                )
            case _:
                return element

    def _process_selected(self, selected: SelectedExpressions) -> SelectedExpressions:
        selector = (
            None
            if selected.selector is None
            else self._process_expression(selected.selector)
        )
        expressions = [self._process_expression(e) for e in selected.expressions]
        return SelectedExpressions(selector, expressions)

    # --- statements --------------------------------------------------------

    def _handle_statement(self, statement) -> None:
        added_locals = False
        if isinstance(
            statement, (PolynomialConstantDefinition, PolynomialCommitDeclaration)
        ) and isinstance(statement.definition, (MappingDefinition, QueryDefinition)):
            if self._shadowing_locals:
                raise MacroError("Nested local variable scopes are not supported.")
            self._shadowing_locals.update(statement.definition.params)
            added_locals = True

        try:
            statement = postvisit_expressions_in_statement(
                statement, self._process_expression
            )
            match statement:
                case FunctionCallStatement(name=name, arguments=arguments):
                    if name not in self._macros:
                        raise MacroError(
                            f"Macro {name} not found - only macros allowed at this "
                            "point, no fixed columns."
                        )
                    if self._expand_macro(name, arguments) is not None:
                        raise MacroError(
                            "Invoked a macro in statement context with non-empty "
                            "expression."
                        )
                case MacroDefinition(name=name):
                    if name in self._macros:
                        raise MacroError(f"Macro {name} is already defined.")
                    self._macros[name] = _MacroDefinition(
                        list(statement.parameters),
                        list(statement.statements),
                        statement.expression,
                    )
                case _:
                    self._statements.append(statement)
        finally:
            if added_locals:
                self._shadowing_locals.clear()

    def _expand_macro(self, name: str, arguments: list) -> Optional[Expression]:
        macro = self._macros.get(name)
        if macro is None:
            raise MacroError(f"Macro {name} not found.")

        old_arguments, old_parameters = self._arguments, self._parameter_names
        self._arguments = list(arguments)
        self._parameter_names = {n: i for i, n in enumerate(macro.parameters)}
        try:
            for identity in macro.identities:
                self._handle_statement(copy.deepcopy(identity))
            if macro.expression is None:
                return None
            return postvisit_expression(
                copy.deepcopy(macro.expression), self._process_expression
            )
        finally:
            self._arguments = old_arguments
            self._parameter_names = old_parameters

    def _process_expression(self, expr: Expression) -> Expression:
        match expr:
            case PolynomialReference(namespace=None) if expr.name in self._parameter_names:
                if expr.next or expr.index is not None:
                    raise MacroError(
                        f"Macro parameter {expr.name} cannot be used with next or index."
                    )
                position = self._parameter_names[expr.name]
                if position >= len(self._arguments):
                    raise MacroError(f"Missing argument for macro parameter {expr.name}.")
                return copy.deepcopy(self._arguments[position])
            case FunctionCall() if expr.id in self._macros:
                result = self._expand_macro(expr.id, expr.arguments)
                if result is None:
                    raise MacroError(
                        "Invoked a macro in expression context with empty expression."
                    )
                return result
            case _:
                return expr


def expand(file: ASMFile) -> ASMFile:
    """Expand the macros of an assembly file."""
    return MacroExpander().expand_asm(file)