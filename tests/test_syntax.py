from dataclasses import dataclass

import pytest

from zkasm.frontend.syntax import (
    BinaryOp,
    BinaryOpKind,
    Directive,
    ExpressionArg,
    FunctionOp,
    Instruction,
    Label,
    Number,
    RegisterArg,
    RegOffset,
    StringLiteral,
    Symbol,
    UnaryOp,
    UnaryOpKind,
    new_binary_op,
    new_function_op,
    new_unary_op,
    unescape_string,
)


@dataclass(frozen=True)
class Reg:
    name: str

    def __str__(self) -> str:
        return self.name


def _sample():
    return new_binary_op(
        BinaryOpKind.ADD, Number(1), new_unary_op(UnaryOpKind.NEGATION, Symbol("a"))
    )


def test_plain_string_is_unchanged():
    assert unescape_string('"abc"') == b"abc"


def test_newline_escape():
    assert unescape_string(r'"a\nb"') == b"a\nb"


def test_control_escapes():
    assert unescape_string(r'"\t\r\b\f"') == bytes([9, 13, 8, 12])


def test_other_escape_is_literal():
    assert unescape_string(r'"\"\\"') == b'"\\'


def test_octal_escape():
    assert unescape_string(r'"\101"') == b"A"


@pytest.mark.parametrize("text", ["abc", '"', '"abc', r'"\x41"', '"\\"'])
def test_invalid_literals_raise(text):
    with pytest.raises(ValueError):
        unescape_string(text)


def test_string_literal_round_trip():
    assert str(StringLiteral(unescape_string('"hello"'))) == '"hello"'


def test_label_display():
    assert str(Label("main")) == "main:\n"


def test_instruction_display():
    instr = Instruction("li", [RegisterArg(Reg("x1")), ExpressionArg(Number(5))])
    assert str(instr) == "  li x1, 5\n"


def test_directive_and_instruction_display_alike():
    args = [ExpressionArg(Symbol("x"))]
    assert str(Directive("go", args)) == str(Instruction("go", args))


def test_operator_expression_display():
    shifted = new_binary_op(BinaryOpKind.LEFT_SHIFT, Symbol("a"), Number(2))
    assert str(shifted) == "(a << 2)"
    assert str(new_unary_op(UnaryOpKind.NEGATION, Number(3))) == "(-3)"
    assert str(new_function_op("%hi", Symbol("x"))) == "%hi(x)"


def test_constructors_build_nodes():
    expr = _sample()
    assert isinstance(expr, BinaryOp)
    assert expr.left == Number(1)
    assert expr.right == UnaryOp(UnaryOpKind.NEGATION, Symbol("a"))
    f = new_function_op("%hi", Symbol("x"))
    assert f == FunctionOp("%hi", Symbol("x"))


def test_post_visit_order():
    expr = _sample()
    assert list(expr.post_visit()) == [Number(1), Symbol("a"), expr.right, expr]


def test_number_leaf_traversal():
    assert list(Number(7).post_visit()) == [Number(7)]
    assert Number(7).transform(lambda e: Number(e.value + 1)) == Number(8)


def test_transform_replaces_symbols():
    def zero_symbols(e):
        return Number(0) if isinstance(e, Symbol) else e

    result = _sample().transform(zero_symbols)
    assert result == new_binary_op(
        BinaryOpKind.ADD, Number(1), new_unary_op(UnaryOpKind.NEGATION, Number(0))
    )


def test_transform_visits_every_node_once():
    seen = []

    def record(e):
        seen.append(e)
        return e

    expr = _sample()
    assert expr.transform(record) == expr
    assert seen == list(expr.post_visit())


def test_reg_offset_expressions():
    arg = RegOffset(Reg("sp"), Symbol("off"))
    assert list(arg.post_visit_expressions()) == [Symbol("off")]
    mapped = arg.map_expressions(lambda e: Number(4) if e == Symbol("off") else e)
    assert mapped == RegOffset(Reg("sp"), Number(4))


def test_register_and_string_have_no_expressions():
    assert list(RegisterArg(Reg("a0")).post_visit_expressions()) == []
    literal = StringLiteral(b"x")
    assert literal.map_expressions(lambda e: Number(0)) == literal


def test_expression_arg_map():
    arg = ExpressionArg(Symbol("a"))
    assert arg.map_expressions(lambda e: Symbol("b")) == ExpressionArg(Symbol("b"))
    assert list(arg.post_visit_expressions()) == [Symbol("a")]