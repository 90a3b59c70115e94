"""Parser tests: tree shapes, automatic semicolons and error recovery."""

import pytest

from compiler import SAMPLE_PROGRAM
from js_ast import (
    AssignmentExpression, BinaryExpression, CallExpression, ClassDeclaration,
    ExpressionStatement, Identifier, Literal, MemberExpression, NewExpression,
    NodeVisitor, ObjectExpression, Program, Property, ReturnStatement,
    TemplateLiteral, VariableDeclaration, contains_errors,
)
from js_parser import parse
from lexer import tokenize


def parse_source(code):
    return parse(tokenize(code).tokens)


def error_codes(code):
    return [d.code for d in parse_source(code).diagnostics]


def only_expression(code):
    result = parse_source(code)
    assert result.diagnostics == ()
    (stmt,) = result.tree.body
    assert isinstance(stmt, ExpressionStatement)
    return stmt.expression


def test_sample_program_parses_cleanly():
    result = parse_source(SAMPLE_PROGRAM)
    assert result.diagnostics == ()
    assert not contains_errors(result.tree)
    cls = result.tree.body[0]
    assert isinstance(cls, ClassDeclaration)
    assert [m.name for m in cls.methods] == ["constructor", "add", "divide"]
    assert [type(s) for s in result.tree.body[1:]] == [
        VariableDeclaration, VariableDeclaration, VariableDeclaration, ExpressionStatement,
    ]


def test_multiplication_binds_tighter_than_addition():
    expr = only_expression("x = 1 + 2 * 3;")
    assert expr == AssignmentExpression(
        "=", Identifier("x"),
        BinaryExpression("+", Literal(1, "1"),
                         BinaryExpression("*", Literal(2, "2"), Literal(3, "3"))))


def test_exponent_is_right_associative():
    expr = only_expression("2 ** 3 ** 2;")
    assert expr == BinaryExpression("**", Literal(2, "2"),
                                    BinaryExpression("**", Literal(3, "3"), Literal(2, "2")))


def test_member_call():
    expr = only_expression("obj.method(1, 2);")
    assert expr == CallExpression(MemberExpression(Identifier("obj"), Identifier("method")),
                                  (Literal(1, "1"), Literal(2, "2")))


def test_new_expression():
    assert only_expression("new Foo(1);") == NewExpression(Identifier("Foo"), (Literal(1, "1"),))


def test_template_literal():
    expr = only_expression("`a${x}b`;")
    assert expr == TemplateLiteral(("a", "b"), (Identifier("x"),))


def test_object_literal_with_shorthand():
    result = parse_source("let o = {a: 1, b};")
    assert result.diagnostics == ()
    init = result.tree.body[0].declarations[0].init
    assert init == ObjectExpression((Property("a", Literal(1, "1")), Property("b", Identifier("b"))))


def test_positions_are_recorded():
    result = parse_source("let a = 1;\n  foo(a);")
    call = result.tree.body[1].expression
    assert (call.line, call.column) == (2, 3)


def test_semicolon_may_be_omitted_at_line_break():
    result = parse_source("let a = 1\nlet b = 2")
    assert result.diagnostics == ()
    assert len(result.tree.body) == 2


def test_return_argument_must_start_on_same_line():
    result = parse_source("function f() { return\n1 }")
    assert result.diagnostics == ()
    body = result.tree.body[0].body.body
    assert body[0] == ReturnStatement(None)
    assert body[1] == ExpressionStatement(Literal(1, "1"))


def test_missing_semicolon_on_same_line_recovers():
    result = parse_source("let a = 1 let b = 2")
    assert [d.code for d in result.diagnostics] == ["P002"]
    assert [s.declarations[0].name for s in result.tree.body] == ["a", "b"]


def test_missing_expression_recovers_at_next_statement():
    result = parse_source("let a = ;\nlet b = 2;")
    assert [d.code for d in result.diagnostics] == ["P001"]
    assert result.tree.body[1].declarations[0].name == "b"
    assert contains_errors(result.tree)


@pytest.mark.parametrize("code", [
    "for (;;) {}",
    "const f = (a) => a;",
    "x ? 1 : 2;",
    "a?.b;",
    "class B extends A {}",
    "let [a, b] = c;",
    "f(...args);",
    "let r = /ab+c/;",
])
def test_unsupported_syntax_reports_once(code):
    assert error_codes(code) == ["P100"]


def test_const_requires_initializer():
    assert error_codes("const x;") == ["P005"]


def test_invalid_assignment_target():
    assert error_codes("1 = 2;") == ["P004"]


def test_duplicate_constructor():
    assert error_codes("class A { constructor() {} constructor() {} }") == ["P006"]


def test_invalid_token_is_a_syntax_error():
    result = parse_source("let x = 1 + @;")
    assert "P003" in [d.code for d in result.diagnostics]


def test_parser_never_raises_on_garbage():
    result = parse_source(") } ] ( { [ let = ; class { if")
    assert isinstance(result.tree, Program)
    assert result.diagnostics


def test_empty_program():
    result = parse_source("")
    assert result.tree == Program(())
    assert result.diagnostics == ()


def test_deeply_nested_parentheses_are_reported_not_raised():
    code = "let x = " + "(" * 400 + "1" + ")" * 400 + ";\nlet y = 2;"
    result = parse_source(code)
    assert [d.code for d in result.diagnostics] == ["P007"]
    assert contains_errors(result.tree)
    assert result.tree.body[-1].declarations[0].name == "y"


def test_deeply_nested_blocks_are_reported():
    result = parse_source("{" * 100 + "}" * 100 + "\nlet y = 2;")
    assert [d.code for d in result.diagnostics] == ["P007"]
    assert result.tree.body[-1].declarations[0].name == "y"


@pytest.mark.parametrize("code", [
    "let x = " + " + ".join(["1"] * 400) + ";",
    "!" * 300 + "x;",
    "let p = " + " ** ".join(["2"] * 300) + ";",
    "a" + ".b" * 400 + ";",
])
def test_overly_deep_expressions_are_reported(code):
    assert error_codes(code) == ["P007"]


def test_ordinary_nesting_is_accepted():
    code = "let x = f(g([1, {k: (2 + 3) * -(4)}]), `${h(1)}`);"
    assert error_codes(code) == []


def test_visitor_missing_a_node_kind_is_rejected():
    with pytest.raises(TypeError, match="ErrorNode"):
        class Incomplete(NodeVisitor):
            def visit_Program(self, node):
                pass
