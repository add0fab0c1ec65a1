import pytest

from zkasm.macro_expansion import MacroError, MacroExpander, expand
from zkasm.parsed import (
    FunctionCall,
    FunctionCallStatement,
    MacroDefinition,
    Number,
    PolynomialIdentity,
    PolynomialReference,
    build_add,
    build_sub,
    direct_reference,
)
from zkasm.parsed_asm import ASMFile, InlinePil, Machine


def double_macro():
    x = direct_reference("x")
    return MacroDefinition(0, "double", ["x"], [], build_add(x, direct_reference("x")))


def test_expression_macro_is_expanded():
    statements = [
        double_macro(),
        PolynomialIdentity(
            0, build_sub(FunctionCall("double", [direct_reference("a")]), Number(0))
        ),
    ]
    result = MacroExpander().expand_macros(statements)
    expected = PolynomialIdentity(
        0,
        build_sub(build_add(direct_reference("a"), direct_reference("a")), Number(0)),
    )
    assert result == [expected]
    assert str(result[0]) == "(a + a) = 0;"


def test_statement_macro_emits_identities():
    constrain = MacroDefinition(
        0,
        "constrain",
        ["x"],
        [PolynomialIdentity(0, build_sub(direct_reference("x"), Number(1)))],
        None,
    )
    call = FunctionCallStatement(0, "constrain", [direct_reference("b")])
    result = MacroExpander().expand_macros([constrain, call])
    assert result == [PolynomialIdentity(0, build_sub(direct_reference("b"), Number(1)))]


def test_nested_macros():
    inc = MacroDefinition(0, "inc", ["x"], [], build_add(direct_reference("x"), Number(1)))
    twice = MacroDefinition(
        0,
        "twice",
        ["y"],
        [],
        FunctionCall("inc", [FunctionCall("inc", [direct_reference("y")])]),
    )
    use = PolynomialIdentity(
        0, build_sub(FunctionCall("twice", [direct_reference("a")]), Number(0))
    )
    result = MacroExpander().expand_macros([inc, twice, use])
    inner = build_add(direct_reference("a"), Number(1))
    assert result == [PolynomialIdentity(0, build_sub(build_add(inner, Number(1)), Number(0)))]


def test_macro_definition_not_changed_by_use():
    expander = MacroExpander()
    call_a = PolynomialIdentity(0, FunctionCall("double", [direct_reference("a")]))
    call_b = PolynomialIdentity(0, FunctionCall("double", [direct_reference("b")]))
    first = expander.expand_macros([double_macro(), call_a])
    second = expander.expand_macros([call_b])
    assert first[0].expression == build_add(direct_reference("a"), direct_reference("a"))
    assert second[0].expression == build_add(direct_reference("b"), direct_reference("b"))


def test_non_macro_statements_pass_through():
    identity = PolynomialIdentity(0, build_sub(direct_reference("a"), Number(3)))
    assert MacroExpander().expand_macros([identity]) == [identity]


def test_unknown_statement_macro_raises():
    with pytest.raises(MacroError, match="Macro missing not found"):
        MacroExpander().expand_macros([FunctionCallStatement(0, "missing", [])])


def test_duplicate_macro_raises():
    with pytest.raises(MacroError):
        MacroExpander().expand_macros([double_macro(), double_macro()])


def test_statement_context_with_expression_raises():
    call = FunctionCallStatement(0, "double", [Number(1)])
    with pytest.raises(MacroError, match="statement context"):
        MacroExpander().expand_macros([double_macro(), call])


def test_expression_context_without_expression_raises():
    empty = MacroDefinition(0, "empty", [], [], None)
    use = PolynomialIdentity(0, FunctionCall("empty", []))
    with pytest.raises(MacroError, match="expression context"):
        MacroExpander().expand_macros([empty, use])


def test_parameter_with_next_raises():
    bad = MacroDefinition(0, "bad", ["x"], [], PolynomialReference("x", next=True))
    use = PolynomialIdentity(0, FunctionCall("bad", [Number(1)]))
    with pytest.raises(MacroError):
        MacroExpander().expand_macros([bad, use])


def test_expand_shares_macros_between_machines():
    first = Machine(0, "A", [InlinePil(0, [double_macro()])])
    use = PolynomialIdentity(0, FunctionCall("double", [direct_reference("c")]))
    second = Machine(0, "B", [InlinePil(0, [use])])
    result = expand(ASMFile([first, second]))
    assert result.machines[0].statements[0].statements == []
    assert result.machines[1].statements[0].statements == [
        PolynomialIdentity(0, build_add(direct_reference("c"), direct_reference("c")))
    ]
    assert [m.name for m in result.machines] == ["A", "B"]