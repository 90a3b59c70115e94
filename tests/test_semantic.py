"""Scope resolution and lint checks."""

from compiler import SAMPLE_PROGRAM
from js_parser import parse
from lexer import tokenize
from semantic import analyze


def check(code):
    return analyze(parse(tokenize(code).tokens).tree)


def codes(code):
    return [d.code for d in check(code).diagnostics]


def test_undeclared_identifier_is_an_error():
    result = check("foo;")
    (diag,) = result.diagnostics
    assert diag.code == "S001"
    assert diag.is_error
    assert "foo" in diag.message
    assert result.error_count == 1


def test_builtins_resolve_without_declaration():
    assert codes("console.log(Math.max(1, 2), JSON, Infinity);") == []


def test_assignment_to_const():
    assert "S002" in codes("const a = 1;\na = 2;")


def test_return_outside_function():
    assert codes("return 1;") == ["S003"]


def test_redeclaration_warns():
    result = check("let a = 1;\nlet a = 2;\nconsole.log(a);")
    assert [d.code for d in result.diagnostics] == ["W001"]
    assert result.error_count == 0
    assert result.warning_count == 1


def test_division_by_literal_zero_is_a_warning():
    result = check("let a = 10 / 0;\nconsole.log(a);")
    assert [d.code for d in result.diagnostics] == ["W002"]
    assert result.error_count == 0


def test_modulo_assignment_by_zero():
    assert codes("let a = 1;\na %= 0;") == ["W002"]


def test_one_unreachable_warning_per_block():
    code = "function f() {\n  return 1;\n  let x = 2;\n  x;\n}\nf();"
    assert codes(code) == ["W003"]


def test_unused_variable():
    result = check("let unused = 1;")
    (diag,) = result.diagnostics
    assert diag.code == "W004"
    assert "unused" in diag.message


def test_this_outside_method():
    assert codes("this;") == ["W005"]
    assert codes("function f() { return this; }\nf();") == ["W005"]


def test_this_inside_method_is_fine():
    assert codes("class A { m() { return this; } }\nnew A();") == []


def test_zero_passed_to_divisor_parameter():
    assert codes("function div(a, b) { return a / b; }\ndiv(1, 0);") == ["W006"]
    assert codes("function div(a, b) { return a / b; }\ndiv(0, 1);") == []


def test_function_declarations_are_hoisted():
    assert codes("f();\nfunction f() {}") == []


def test_variables_are_not_hoisted():
    assert "S001" in codes("x;\nlet x = 1;")


def test_initializer_is_checked_before_the_declaration():
    assert "S001" in codes("let y = y;")


def test_block_scope_ends_at_closing_brace():
    result = check("{ let inner = 1; }\ninner;")
    assert "S001" in [d.code for d in result.diagnostics]


def test_diagnostics_are_ordered_by_position():
    result = check("let a = 1;\nb;\nc;\nlet d = 10 / 0;")
    positions = [(d.line, d.column) for d in result.diagnostics]
    assert positions == sorted(positions)


def test_resolutions_point_at_declaring_scope():
    result = check("let a = 1;\nconsole.log(a);")
    assert result.scopes[0].kind == "program"
    assert list(result.resolutions.values()) == [0]
    assert result.scopes[0].lookup_local("a").used


def test_sample_program():
    result = check(SAMPLE_PROGRAM)
    found = [d.code for d in result.diagnostics]
    assert result.error_count == 1
    assert set(found) == {"S001", "W004", "W006"}
    assert found.count("W004") == 2
    assert any("undeclaredVariable" in d.message for d in result.diagnostics)
