from dataclasses import dataclass

import pytest

from zkasm.frontend.compiler import (
    argument_to_escaped_symbol,
    argument_to_number,
    escape_label,
    expression_to_number,
    next_multiple_of_four,
    quote,
)
from zkasm.frontend.syntax import ExpressionArg, Number, RegisterArg, Symbol


@dataclass(frozen=True)
class Reg:
    name: str

    def __str__(self) -> str:
        return self.name


@pytest.mark.parametrize("x", range(0, 17))
def test_next_multiple_of_four(x):
    result = next_multiple_of_four(x)
    assert result % 4 == 0
    assert x <= result < x + 4


def test_quote_plain_text():
    assert quote("plain") == '"plain"'


def test_quote_escapes_backslash():
    assert quote("\\") == '"\\\\"'


def test_quote_escapes_double_quote():
    result = quote('a"b')
    assert result[1:-1].replace('\\"', '"') == 'a"b'
    assert result.count('\\"') == 1


def test_escape_label():
    assert escape_label("a.b/c") == "a_dot_b_slash_c"


def test_escape_label_without_special_characters():
    assert escape_label("main") == "main"


def test_argument_to_escaped_symbol():
    assert argument_to_escaped_symbol(ExpressionArg(Symbol("x.y"))) == escape_label("x.y")


def test_argument_to_escaped_symbol_rejects_number():
    with pytest.raises(ValueError):
        argument_to_escaped_symbol(ExpressionArg(Number(1)))


def test_argument_to_number():
    assert argument_to_number(ExpressionArg(Number(7))) == 7


def test_negative_number_wraps_to_u32():
    assert argument_to_number(ExpressionArg(Number(-1))) == 0xFFFFFFFF


def test_argument_to_number_rejects_register():
    with pytest.raises(ValueError):
        argument_to_number(RegisterArg(Reg("a0")))


def test_expression_to_number_rejects_symbol():
    with pytest.raises(ValueError):
        expression_to_number(Symbol("x"))