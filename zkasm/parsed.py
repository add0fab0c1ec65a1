"""Parsed PIL syntax tree: expressions, statements, builders and traversal."""

from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union


class UnaryOperator(Enum):
    PLUS = "+"
    MINUS = "-"

    def __str__(self) -> str:
        return self.value


class BinaryOperator(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    POW = "**"
    BINARY_AND = "&"
    BINARY_XOR = "^"
    BINARY_OR = "|"
    SHIFT_LEFT = "<<"
    SHIFT_RIGHT = ">>"

    def __str__(self) -> str:
        return self.value


def _join(expressions) -> str:
    return ", ".join(str(e) for e in expressions)


# --- expressions -----------------------------------------------------------


@dataclass
class ConstantRef:
    """Reference to a named constant."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass
class PolynomialReference:
    name: str
    namespace: Optional[str] = None
    index: Optional["Expression"] = None
    next: bool = False

    def __str__(self) -> str:
        namespace = f"{self.namespace}." if self.namespace is not None else ""
        index = f"[{self.index}]" if self.index is not None else ""
        tick = "'" if self.next else ""
        return f"{namespace}{self.name}{index}{tick}"


@dataclass
class PublicReference:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass
class Number:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass
class String:
    value: str

    def __str__(self) -> str:
        return f'"{self.value}"'


@dataclass
class Tuple:
    items: list = field(default_factory=list)

    def __str__(self) -> str:
        return f"({_join(self.items)})"


@dataclass
class BinaryOperation:
    left: "Expression"
    op: BinaryOperator
    right: "Expression"

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass
class UnaryOperation:
    op: UnaryOperator
    expr: "Expression"

    def __str__(self) -> str:
        return f"{self.op}{self.expr}"


@dataclass
class FunctionCall:
    id: str
    arguments: list = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.id}({_join(self.arguments)})"


@dataclass
class FreeInput:
    expr: "Expression"

    def __str__(self) -> str:
        return f"${{ {self.expr} }}"


@dataclass
class MatchExpression:
    """A match over a scrutinee; arms are (pattern or None, value) pairs."""

    scrutinee: "Expression"
    arms: list = field(default_factory=list)

    def __str__(self) -> str:
        arms = " ".join(
            f"{'_' if pattern is None else pattern} => {value},"
            for pattern, value in self.arms
        )
        return f"match {self.scrutinee} {{ {arms} }}"


Expression = Union[
    ConstantRef,
    PolynomialReference,
    PublicReference,
    Number,
    String,
    Tuple,
    BinaryOperation,
    UnaryOperation,
    FunctionCall,
    FreeInput,
    MatchExpression,
]


@dataclass
class SelectedExpressions:
    selector: Optional[Expression] = None
    expressions: list = field(default_factory=list)

    def __str__(self) -> str:
        selector = f"{self.selector} " if self.selector is not None else ""
        return f"{selector}{{ {_join(self.expressions)} }}"


@dataclass
class PolynomialName:
    name: str
    array_size: Optional[Expression] = None

    def __str__(self) -> str:
        size = f"[{self.array_size}]" if self.array_size is not None else ""
        return f"{self.name}{size}"


# --- array expressions -----------------------------------------------------


class ArrayExpression:
    """Base of array literals used in fixed column definitions."""

    def concat(self, other: "ArrayExpression") -> "Concat":
        return Concat(self, other)

    def _pad_with(self, pad: Expression) -> "Concat":
        return self.concat(RepeatedValue([pad]))

    def pad_with_zeroes(self) -> "Concat":
        return self._pad_with(Number(0))

    def _last(self) -> Optional[Expression]:
        raise NotImplementedError

    def pad_with_last(self) -> Optional["Concat"]:
        """Pad by repeating the last element; None if there is no last element."""
        last = self._last()
        if last is None:
            return None
        return self._pad_with(copy.deepcopy(last))

    def _number_of_repetitions(self) -> int:
        raise NotImplementedError

    def _constant_length(self) -> int:
        raise NotImplementedError

    def solve(self, degree: int) -> int:
        """Return how many values the repeated part has to fill for `degree` rows."""
        if self._number_of_repetitions() > 1:
            raise ValueError("`*` can be used only once in rhs of array definition")
        length = self._constant_length()
        if length > degree:
            raise ValueError(
                f"Array literal is too large ({length}) for degree ({degree})."
            )
        return degree - length


@dataclass
class ArrayValue(ArrayExpression):
    items: list = field(default_factory=list)

    def _last(self) -> Optional[Expression]:
        return self.items[-1] if self.items else None

    def _number_of_repetitions(self) -> int:
        return 0

    def _constant_length(self) -> int:
        return len(self.items)

    def __str__(self) -> str:
        return f"[{_join(self.items)}]"


@dataclass
class RepeatedValue(ArrayExpression):
    items: list = field(default_factory=list)

    def _last(self) -> Optional[Expression]:
        return self.items[-1] if self.items else None

    def _number_of_repetitions(self) -> int:
        return 1

    def _constant_length(self) -> int:
        return 0

    def __str__(self) -> str:
        return f"[{_join(self.items)}]*"


@dataclass
class Concat(ArrayExpression):
    left: ArrayExpression
    right: ArrayExpression

    def _last(self) -> Optional[Expression]:
        return self.right._last()

    def _number_of_repetitions(self) -> int:
        return self.left._number_of_repetitions() + self.right._number_of_repetitions()

    def _constant_length(self) -> int:
        return self.left._constant_length() + self.right._constant_length()

    def __str__(self) -> str:
        return f"{self.left} + {self.right}"


# --- function definitions --------------------------------------------------


@dataclass
class MappingDefinition:
    params: list
    body: Expression

    def __str__(self) -> str:
        return f"({', '.join(self.params)}) {{ {self.body} }}"


@dataclass
class ArrayDefinition:
    array: ArrayExpression

    def __str__(self) -> str:
        return f" = {self.array}"


@dataclass
class QueryDefinition:
    params: list
    body: Expression

    def __str__(self) -> str:
        return f"({', '.join(self.params)}) query {self.body}"


FunctionDefinition = Union[MappingDefinition, ArrayDefinition, QueryDefinition]


# --- statements ------------------------------------------------------------


def quote(text: str) -> str:
    """Wrap text in double quotes, escaping backslashes and quotes."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass
class Include:
    start: int
    path: str

    def __str__(self) -> str:
        return f"include {quote(self.path)};"


@dataclass
class Namespace:
    start: int
    name: str
    degree: Expression

    def __str__(self) -> str:
        return f"namespace {self.name}({self.degree});"


@dataclass
class PolynomialDefinition:
    start: int
    name: str
    value: Expression

    def __str__(self) -> str:
        return f"pol {self.name} = {self.value};"


@dataclass
class PublicDeclaration:
    start: int
    name: str
    polynomial: PolynomialReference
    index: Expression

    def __str__(self) -> str:
        return f"public {self.name} = {self.polynomial}({self.index});"


@dataclass
class PolynomialConstantDeclaration:
    start: int
    names: list

    def __str__(self) -> str:
        return f"pol constant {_join(self.names)};"


@dataclass
class PolynomialConstantDefinition:
    start: int
    name: str
    definition: FunctionDefinition

    def __str__(self) -> str:
        return f"pol constant {self.name}{self.definition};"


@dataclass
class PolynomialCommitDeclaration:
    start: int
    names: list
    definition: Optional[FunctionDefinition] = None

    def __str__(self) -> str:
        definition = str(self.definition) if self.definition is not None else ""
        return f"pol commit {_join(self.names)}{definition};"


@dataclass
class PolynomialIdentity:
    start: int
    expression: Expression

    def __str__(self) -> str:
        e = self.expression
        if isinstance(e, BinaryOperation) and e.op is BinaryOperator.SUB:
            return f"{e.left} = {e.right};"
        return f"{e} = 0;"


@dataclass
class PlookupIdentity:
    start: int
    left: SelectedExpressions
    right: SelectedExpressions

    def __str__(self) -> str:
        return f"{self.left} in {self.right};"


@dataclass
class PermutationIdentity:
    start: int
    left: SelectedExpressions
    right: SelectedExpressions

    def __str__(self) -> str:
        return f"{self.left} is {self.right};"


@dataclass
class ConnectIdentity:
    start: int
    left: list
    right: list

    def __str__(self) -> str:
        return f"{{ {_join(self.left)} }} connect {{ {_join(self.right)} }};"


@dataclass
class ConstantDefinition:
    start: int
    name: str
    value: Expression

    def __str__(self) -> str:
        return f"constant {self.name} = {self.value};"


@dataclass
class MacroDefinition:
    start: int
    name: str
    parameters: list
    statements: list
    expression: Optional[Expression] = None

    def __str__(self) -> str:
        parts = [str(s) for s in self.statements]
        if self.expression is not None:
            parts.append(str(self.expression))
        if len(parts) <= 1:
            body = f" {''.join(parts)} "
        else:
            body = "\n    " + "\n    ".join(parts) + "\n"
        return f"macro {self.name}({', '.join(self.parameters)}) {{{body}}};"


@dataclass
class FunctionCallStatement:
    start: int
    name: str
    arguments: list = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.name}({_join(self.arguments)});"


PilStatement = Union[
    Include,
    Namespace,
    PolynomialDefinition,
    PublicDeclaration,
    PolynomialConstantDeclaration,
    PolynomialConstantDefinition,
    PolynomialCommitDeclaration,
    PolynomialIdentity,
    PlookupIdentity,
    PermutationIdentity,
    ConnectIdentity,
    ConstantDefinition,
    MacroDefinition,
    FunctionCallStatement,
]


@dataclass
class PILFile:
    statements: list = field(default_factory=list)

    def __str__(self) -> str:
        return "".join(f"{s}\n" for s in self.statements)


# --- traversal -------------------------------------------------------------

Visitor = Callable[[Expression], Expression]


def postvisit_expression(expr: Expression, f: Visitor) -> Expression:
    """Rewrite an expression tree bottom-up.

    Children are visited first; `f` then receives each node (with its
    children already rewritten) and returns the node to put in its place.
    """

    def visit(e: Expression) -> Expression:
        return postvisit_expression(e, f)

    match expr:
        case BinaryOperation(left, _, right):
            new_left = visit(left)
            new_right = visit(right)
            expr = dataclasses.replace(expr, left=new_left, right=new_right)
        case UnaryOperation(_, inner):
            expr = dataclasses.replace(expr, expr=visit(inner))
        case Tuple(items):
            expr = dataclasses.replace(expr, items=[visit(i) for i in items])
        case FunctionCall(_, arguments):
            expr = dataclasses.replace(expr, arguments=[visit(a) for a in arguments])
        case FreeInput(inner):
            expr = dataclasses.replace(expr, expr=visit(inner))
        case MatchExpression(scrutinee, arms):
            new_scrutinee = visit(scrutinee)
            new_arms = [(pattern, visit(value)) for pattern, value in arms]
            expr = dataclasses.replace(expr, scrutinee=new_scrutinee, arms=new_arms)
        case _:
            pass
    return f(expr)


def _visit_selected(selected: SelectedExpressions, f: Visitor) -> SelectedExpressions:
    selector = (
        None if selected.selector is None else postvisit_expression(selected.selector, f)
    )
    return SelectedExpressions(
        selector, [postvisit_expression(e, f) for e in selected.expressions]
    )


def _visit_array(array: ArrayExpression, f: Visitor) -> ArrayExpression:
    if isinstance(array, Concat):
        return Concat(_visit_array(array.left, f), _visit_array(array.right, f))
    return dataclasses.replace(
        array, items=[postvisit_expression(e, f) for e in array.items]
    )


def _visit_definition(definition: FunctionDefinition, f: Visitor) -> FunctionDefinition:
    if isinstance(definition, ArrayDefinition):
        return ArrayDefinition(_visit_array(definition.array, f))
    return dataclasses.replace(definition, body=postvisit_expression(definition.body, f))


def postvisit_expressions_in_statement(statement: PilStatement, f: Visitor) -> PilStatement:
    """Rewrite every expression tree of a statement bottom-up.

    Macro definitions are not entered.
    """
    match statement:
        case FunctionCallStatement():
            return dataclasses.replace(
                statement,
                arguments=[postvisit_expression(e, f) for e in statement.arguments],
            )
        case PlookupIdentity() | PermutationIdentity():
            left = _visit_selected(statement.left, f)
            right = _visit_selected(statement.right, f)
            return dataclasses.replace(statement, left=left, right=right)
        case ConnectIdentity():
            left = [postvisit_expression(e, f) for e in statement.left]
            right = [postvisit_expression(e, f) for e in statement.right]
            return dataclasses.replace(statement, left=left, right=right)
        case Namespace():
            return dataclasses.replace(
                statement, degree=postvisit_expression(statement.degree, f)
            )
        case PolynomialDefinition() | ConstantDefinition():
            return dataclasses.replace(
                statement, value=postvisit_expression(statement.value, f)
            )
        case PolynomialIdentity():
            return dataclasses.replace(
                statement, expression=postvisit_expression(statement.expression, f)
            )
        case PublicDeclaration():
            return dataclasses.replace(
                statement, index=postvisit_expression(statement.index, f)
            )
        case PolynomialConstantDefinition():
            return dataclasses.replace(
                statement, definition=_visit_definition(statement.definition, f)
            )
        case PolynomialCommitDeclaration(definition=definition) if definition is not None:
            return dataclasses.replace(
                statement, definition=_visit_definition(definition, f)
            )
        case _:
            return statement


# --- builders --------------------------------------------------------------


def direct_reference(name: str) -> PolynomialReference:
    return PolynomialReference(name=name)


def next_reference(name: str) -> PolynomialReference:
    return PolynomialReference(name=name, next=True)


def build_binary_expr(left: Expression, op: BinaryOperator, right: Expression) -> BinaryOperation:
    return BinaryOperation(left, op, right)


def build_mul(left: Expression, right: Expression) -> BinaryOperation:
    return build_binary_expr(left, BinaryOperator.MUL, right)


def build_sub(left: Expression, right: Expression) -> BinaryOperation:
    return build_binary_expr(left, BinaryOperator.SUB, right)


def build_add(left: Expression, right: Expression) -> BinaryOperation:
    return build_binary_expr(left, BinaryOperator.ADD, right)


def build_number(value: int) -> Number:
    return Number(value)