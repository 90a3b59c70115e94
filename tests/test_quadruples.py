"""Lowering of syntax trees to quadruples."""

import pytest

from diagnostics import InternalCompilerError
from js_ast import ErrorNode, Program
from js_parser import parse
from lexer import tokenize
from quadruples import GenerationContext, Op, generate


def gen(code):
    result = parse(tokenize(code).tokens)
    assert result.diagnostics == ()
    return generate(result.tree)


def rows(code):
    return [(q.op, q.arg1, q.arg2, q.result) for q in gen(code)]


def test_arithmetic_respects_precedence():
    assert rows("let x = 1 + 2 * 3;") == [
        (Op.MUL, "2", "3", "t1"),
        (Op.ADD, "1", "t1", "t2"),
        (Op.ASSIGN, "t2", None, "x"),
    ]


def test_if_else():
    assert rows("let a = 1;\nif (a) { a = 2; } else { a = 3; }") == [
        (Op.ASSIGN, "1", None, "a"),
        (Op.JUMP_IF_FALSE, "a", "L1", None),
        (Op.ASSIGN, "2", None, "a"),
        (Op.GOTO, "L2", None, None),
        (Op.LABEL, None, None, "L1"),
        (Op.ASSIGN, "3", None, "a"),
        (Op.LABEL, None, None, "L2"),
    ]


def test_if_without_else_jumps_to_end():
    assert rows("let a = 1;\nif (a > 0) { a = 0; }") == [
        (Op.ASSIGN, "1", None, "a"),
        (Op.GT, "a", "0", "t1"),
        (Op.JUMP_IF_FALSE, "t1", "L1", None),
        (Op.ASSIGN, "0", None, "a"),
        (Op.LABEL, None, None, "L1"),
    ]


def test_while_loop():
    assert rows("let i = 0;\nwhile (i < 3) { i = i + 1; }") == [
        (Op.ASSIGN, "0", None, "i"),
        (Op.LABEL, None, None, "L1"),
        (Op.LT, "i", "3", "t1"),
        (Op.JUMP_IF_FALSE, "t1", "L2", None),
        (Op.ADD, "i", "1", "t2"),
        (Op.ASSIGN, "t2", None, "i"),
        (Op.GOTO, "L1", None, None),
        (Op.LABEL, None, None, "L2"),
    ]


def test_call_passes_params_in_order():
    assert rows('console.log(1, "a");') == [
        (Op.PARAM, "1", None, None),
        (Op.PARAM, '"a"', None, None),
        (Op.CALL, "console.log", "2", "t1"),
    ]


def test_nested_call_arguments_are_evaluated_first():
    assert rows("f(g(1));") == [
        (Op.PARAM, "1", None, None),
        (Op.CALL, "g", "1", "t1"),
        (Op.PARAM, "t1", None, None),
        (Op.CALL, "f", "1", "t2"),
    ]


def test_class_methods_get_entry_labels():
    assert rows("class A {\n  m(x) { return x; }\n  n() {}\n}") == [
        (Op.GOTO, "L1", None, None),
        (Op.LABEL, None, None, "A.m"),
        (Op.RETURN, "x", None, None),
        (Op.LABEL, None, None, "A.n"),
        (Op.RETURN, None, None, None),
        (Op.LABEL, None, None, "L1"),
    ]


def test_function_without_return_gets_one():
    assert rows("function f() { g(); }") == [
        (Op.GOTO, "L1", None, None),
        (Op.LABEL, None, None, "f"),
        (Op.CALL, "g", "0", "t1"),
        (Op.RETURN, None, None, None),
        (Op.LABEL, None, None, "L1"),
    ]


def test_new_and_property_access():
    assert rows("let c = new C(1);\nc.v = c.w;") == [
        (Op.PARAM, "1", None, None),
        (Op.NEW, "C", "1", "t1"),
        (Op.ASSIGN, "t1", None, "c"),
        (Op.GET_PROP, "c", '"w"', "t2"),
        (Op.SET_PROP, "t2", '"v"', "c"),
    ]


def test_temporaries_skip_program_names():
    assert rows("let t1 = 5;\nlet y = t1 + 1;") == [
        (Op.ASSIGN, "5", None, "t1"),
        (Op.ADD, "t1", "1", "t2"),
        (Op.ASSIGN, "t2", None, "y"),
    ]


def test_postfix_increment_keeps_old_value():
    assert rows("let i = 0;\ni++;") == [
        (Op.ASSIGN, "0", None, "i"),
        (Op.ASSIGN, "i", None, "t1"),
        (Op.ADD, "t1", "1", "t2"),
        (Op.ASSIGN, "t2", None, "i"),
    ]


def test_compound_assignment():
    assert rows("let a = 1;\na *= 4;") == [
        (Op.ASSIGN, "1", None, "a"),
        (Op.MUL, "a", "4", "t1"),
        (Op.ASSIGN, "t1", None, "a"),
    ]


def test_template_literal_concatenates():
    assert rows("let x = 1;\nlet s = `a${x}b`;") == [
        (Op.ASSIGN, "1", None, "x"),
        (Op.CONCAT, '"a"', "x", "t1"),
        (Op.CONCAT, "t1", '"b"', "t2"),
        (Op.ASSIGN, "t2", None, "s"),
    ]


def test_array_and_object_literals():
    assert rows('let a = [1, 2];\nlet o = {k: true};') == [
        (Op.NEW_ARRAY, "2", None, "t1"),
        (Op.SET_PROP, "1", "0", "t1"),
        (Op.SET_PROP, "2", "1", "t1"),
        (Op.ASSIGN, "t1", None, "a"),
        (Op.NEW_OBJECT, None, None, "t2"),
        (Op.SET_PROP, "true", '"k"', "t2"),
        (Op.ASSIGN, "t2", None, "o"),
    ]


def test_indices_and_record_shape():
    quads = gen("let x = 1 + y;")
    assert [q.index for q in quads] == list(range(len(quads)))
    assert quads[0].to_dict() == {"op": "ADD", "arg1": "1", "arg2": "y", "res": "t1"}


def test_every_run_starts_counting_afresh():
    assert gen("let x = a + b;") == gen("let x = a + b;")


def test_context_never_repeats_names():
    ctx = GenerationContext(reserved={"t2", "L1"})
    assert [ctx.new_temp() for _ in range(3)] == ["t1", "t3", "t4"]
    assert [ctx.new_label() for _ in range(2)] == ["L2", "L3"]


def test_error_placeholder_is_an_internal_error():
    with pytest.raises(InternalCompilerError):
        generate(Program((ErrorNode("broken"),)))


def test_logical_and_runs_right_operand_only_when_needed():
    assert rows("let o = null;\nlet ok = o && f();") == [
        (Op.ASSIGN, "null", None, "o"),
        (Op.ASSIGN, "o", None, "t1"),
        (Op.JUMP_IF_FALSE, "t1", "L1", None),
        (Op.CALL, "f", "0", "t2"),
        (Op.ASSIGN, "t2", None, "t1"),
        (Op.LABEL, None, None, "L1"),
        (Op.ASSIGN, "t1", None, "ok"),
    ]


def test_logical_or_jumps_over_right_operand_when_left_is_truthy():
    assert rows("let v = a || g();") == [
        (Op.ASSIGN, "a", None, "t1"),
        (Op.NOT, "t1", None, "t2"),
        (Op.JUMP_IF_FALSE, "t2", "L1", None),
        (Op.CALL, "g", "0", "t3"),
        (Op.ASSIGN, "t3", None, "t1"),
        (Op.LABEL, None, None, "L1"),
        (Op.ASSIGN, "t1", None, "v"),
    ]


def test_nullish_coalescing_tests_for_null_or_undefined():
    assert rows("let v = a ?? 0;") == [
        (Op.ASSIGN, "a", None, "t1"),
        (Op.EQ, "t1", "null", "t2"),
        (Op.JUMP_IF_FALSE, "t2", "L1", None),
        (Op.ASSIGN, "0", None, "t1"),
        (Op.LABEL, None, None, "L1"),
        (Op.ASSIGN, "t1", None, "v"),
    ]
