"""
quadruples.py
Lowering of the syntax tree into three-address code (quadruples).

Operands are plain strings: identifiers by name, numbers in JavaScript
formatting, strings JSON-quoted, ``true``/``false``/``null``. Temporaries
(t1, t2, ...) and labels (L1, L2, ...) come from a GenerationContext that is
created per run and never reuses a name or takes one the program uses.
``&&``, ``||`` and ``??`` are lowered to jumps, not to eager operators.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from diagnostics import InternalCompilerError
from js_ast import (
    ClassDeclaration, FunctionDeclaration, Identifier, MemberExpression,
    NodeVisitor, Parameter, ReturnStatement, VariableDeclarator, walk,
)

log = logging.getLogger(__name__)


class Op(str, Enum):
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    MOD = "MOD"
    POW = "POW"
    EQ = "EQ"
    NE = "NE"
    STRICT_EQ = "STRICT_EQ"
    STRICT_NE = "STRICT_NE"
    LT = "LT"
    LE = "LE"
    GT = "GT"
    GE = "GE"
    INSTANCEOF = "INSTANCEOF"
    IN = "IN"
    CONCAT = "CONCAT"
    NEG = "NEG"
    POS = "POS"
    NOT = "NOT"
    TYPEOF = "TYPEOF"
    ASSIGN = "ASSIGN"
    GET_PROP = "GET_PROP"
    SET_PROP = "SET_PROP"
    NEW_ARRAY = "NEW_ARRAY"
    NEW_OBJECT = "NEW_OBJECT"
    PARAM = "PARAM"
    CALL = "CALL"
    NEW = "NEW"
    RETURN = "RETURN"
    LABEL = "LABEL"
    GOTO = "GOTO"
    JUMP_IF_FALSE = "JUMP_IF_FALSE"


BINARY_OPS = {
    '+': Op.ADD, '-': Op.SUB, '*': Op.MUL, '/': Op.DIV, '%': Op.MOD, '**': Op.POW,
    '==': Op.EQ, '!=': Op.NE, '===': Op.STRICT_EQ, '!==': Op.STRICT_NE,
    '<': Op.LT, '<=': Op.LE, '>': Op.GT, '>=': Op.GE,
    'instanceof': Op.INSTANCEOF, 'in': Op.IN,
}
SHORT_CIRCUIT_OPS = frozenset({'&&', '||', '??'})
UNARY_OPS = {'-': Op.NEG, '+': Op.POS, '!': Op.NOT, 'typeof': Op.TYPEOF}
COMPOUND_ASSIGN_OPS = {'+=': Op.ADD, '-=': Op.SUB, '*=': Op.MUL, '/=': Op.DIV,
                       '%=': Op.MOD, '**=': Op.POW}


@dataclass(frozen=True)
class Quadruple:
    index: int
    op: Op
    arg1: Optional[str] = None
    arg2: Optional[str] = None
    result: Optional[str] = None

    def to_dict(self):
        return {"op": self.op.value, "arg1": self.arg1, "arg2": self.arg2, "res": self.result}

    def __str__(self):
        cells = [c if c is not None else '-' for c in (self.arg1, self.arg2, self.result)]
        return f"{self.index:>4}  {self.op.value:<14}{cells[0]:<16}{cells[1]:<16}{cells[2]}"


def format_number(value):
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def literal_operand(value):
    if value is True:
        return 'true'
    if value is False:
        return 'false'
    if value is None:
        return 'null'
    if isinstance(value, (int, float)):
        return format_number(value)
    return json.dumps(value, ensure_ascii=False)


def format_quadruples(quads):
    if not quads:
        return ["  (no quadruples)"]
    header = f"{'#':>4}  {'op':<14}{'arg1':<16}{'arg2':<16}result"
    return [header] + [str(q) for q in quads]


class GenerationContext:
    """Per-run counters and output buffer for quadruple generation."""

    def __init__(self, reserved=()):
        self.reserved = frozenset(reserved)
        self.temp_count = 0
        self.label_count = 0
        self.code = []

    def new_temp(self):
        while True:
            self.temp_count += 1
            name = f"t{self.temp_count}"
            if name not in self.reserved:
                return name

    def new_label(self):
        while True:
            self.label_count += 1
            name = f"L{self.label_count}"
            if name not in self.reserved:
                return name

    def emit(self, op, arg1=None, arg2=None, result=None):
        self.code.append(Quadruple(len(self.code), op, arg1, arg2, result))


def program_names(tree):
    """Every name the program itself binds or mentions."""
    names = set()
    for node in walk(tree):
        if isinstance(node, (Identifier, VariableDeclarator, Parameter,
                             FunctionDeclaration, ClassDeclaration)):
            names.add(node.name)
    return names


class QuadrupleGenerator(NodeVisitor):
    """Statements emit code and return None; expressions return the operand holding their value."""

    def __init__(self):
        self.ctx = None

    def generate(self, tree):
        self.ctx = GenerationContext(program_names(tree))
        self.visit(tree)
        log.debug("generated %d quadruples (%d temps, %d labels)", len(self.ctx.code),
                  self.ctx.temp_count, self.ctx.label_count)
        return tuple(self.ctx.code)

    def emit(self, op, arg1=None, arg2=None, result=None):
        self.ctx.emit(op, arg1, arg2, result)

    def function_body(self, entry, params, body):
        self.emit(Op.LABEL, result=entry)
        for param in params:
            self.visit(param)
        for stmt in body.body:
            self.visit(stmt)
        if not body.body or not isinstance(body.body[-1], ReturnStatement):
            self.emit(Op.RETURN)

    def property_key(self, member):
        if member.computed:
            return self.visit(member.property)
        return json.dumps(member.property.name)

    def callee_reference(self, callee):
        if isinstance(callee, Identifier):
            return callee.name
        if isinstance(callee, MemberExpression):
            obj = self.visit(callee.object)
            if callee.computed:
                return f"{obj}[{self.visit(callee.property)}]"
            return f"{obj}.{callee.property.name}"
        return self.visit(callee)

    def emit_arguments(self, arguments):
        values = [self.visit(arg) for arg in arguments]
        for value in values:
            self.emit(Op.PARAM, value)
        return str(len(values))

    # -- declarations ------------------------------------------------------

    def visit_Program(self, node):
        for stmt in node.body:
            self.visit(stmt)

    def visit_ClassDeclaration(self, node):
        skip = self.ctx.new_label()
        self.emit(Op.GOTO, skip)
        for method in node.methods:
            self.visit(method, node.name)
        self.emit(Op.LABEL, result=skip)

    def visit_MethodDeclaration(self, node, class_name):
        self.function_body(f"{class_name}.{node.name}", node.params, node.body)

    def visit_FunctionDeclaration(self, node):
        skip = self.ctx.new_label()
        self.emit(Op.GOTO, skip)
        self.function_body(node.name, node.params, node.body)
        self.emit(Op.LABEL, result=skip)

    def visit_Parameter(self, node):
        if node.default is None:
            return
        cond = self.ctx.new_temp()
        done = self.ctx.new_label()
        self.emit(Op.STRICT_EQ, node.name, 'undefined', cond)
        self.emit(Op.JUMP_IF_FALSE, cond, done)
        value = self.visit(node.default)
        self.emit(Op.ASSIGN, value, result=node.name)
        self.emit(Op.LABEL, result=done)

    def visit_VariableDeclaration(self, node):
        for declarator in node.declarations:
            self.visit(declarator)

    def visit_VariableDeclarator(self, node):
        value = self.visit(node.init) if node.init is not None else 'undefined'
        self.emit(Op.ASSIGN, value, result=node.name)

    # -- statements --------------------------------------------------------

    def visit_IfStatement(self, node):
        cond = self.visit(node.test)
        else_label = self.ctx.new_label() if node.alternate is not None else None
        end_label = self.ctx.new_label()
        self.emit(Op.JUMP_IF_FALSE, cond, else_label or end_label)
        self.visit(node.consequent)
        if node.alternate is not None:
            self.emit(Op.GOTO, end_label)
            self.emit(Op.LABEL, result=else_label)
            self.visit(node.alternate)
        self.emit(Op.LABEL, result=end_label)

    def visit_WhileStatement(self, node):
        start = self.ctx.new_label()
        end = self.ctx.new_label()
        self.emit(Op.LABEL, result=start)
        cond = self.visit(node.test)
        self.emit(Op.JUMP_IF_FALSE, cond, end)
        self.visit(node.body)
        self.emit(Op.GOTO, start)
        self.emit(Op.LABEL, result=end)

    def visit_ReturnStatement(self, node):
        value = self.visit(node.argument) if node.argument is not None else None
        self.emit(Op.RETURN, value)

    def visit_ExpressionStatement(self, node):
        self.visit(node.expression)

    def visit_BlockStatement(self, node):
        for stmt in node.body:
            self.visit(stmt)

    def visit_EmptyStatement(self, node):
        pass

    # -- expressions -------------------------------------------------------

    def visit_BinaryExpression(self, node):
        if node.operator in SHORT_CIRCUIT_OPS:
            return self.short_circuit(node)
        left = self.visit(node.left)
        right = self.visit(node.right)
        temp = self.ctx.new_temp()
        self.emit(BINARY_OPS[node.operator], left, right, temp)
        return temp

    def short_circuit(self, node):
        """Lower ``&&``, ``||`` and ``??`` so the right operand runs only when the
        left one does not already decide the value.

        Both operands are copied into one result temporary; the jump skips the
        right-hand code (and its side effects) when the left value stands.
        """
        left = self.visit(node.left)
        result = self.ctx.new_temp()
        end = self.ctx.new_label()
        self.emit(Op.ASSIGN, left, result=result)
        if node.operator == '&&':
            cond = result
        elif node.operator == '||':
            cond = self.ctx.new_temp()
            self.emit(Op.NOT, result, result=cond)
        else:
            # loose equality with null also matches undefined
            cond = self.ctx.new_temp()
            self.emit(Op.EQ, result, 'null', cond)
        self.emit(Op.JUMP_IF_FALSE, cond, end)
        right = self.visit(node.right)
        self.emit(Op.ASSIGN, right, result=result)
        self.emit(Op.LABEL, result=end)
        return result

    def visit_UnaryExpression(self, node):
        operand = self.visit(node.argument)
        temp = self.ctx.new_temp()
        self.emit(UNARY_OPS[node.operator], operand, result=temp)
        return temp

    def visit_UpdateExpression(self, node):
        op = Op.ADD if node.operator == '++' else Op.SUB
        target = node.argument
        if isinstance(target, Identifier):
            old = target.name
            if not node.prefix:
                old = self.ctx.new_temp()
                self.emit(Op.ASSIGN, target.name, result=old)
            new = self.ctx.new_temp()
            self.emit(op, old, '1', new)
            self.emit(Op.ASSIGN, new, result=target.name)
            return new if node.prefix else old
        obj = self.visit(target.object)
        key = self.property_key(target)
        old = self.ctx.new_temp()
        self.emit(Op.GET_PROP, obj, key, old)
        new = self.ctx.new_temp()
        self.emit(op, old, '1', new)
        self.emit(Op.SET_PROP, new, key, obj)
        return new if node.prefix else old

    def visit_AssignmentExpression(self, node):
        target = node.target
        if isinstance(target, Identifier):
            value = self.visit(node.value)
            if node.operator != '=':
                temp = self.ctx.new_temp()
                self.emit(COMPOUND_ASSIGN_OPS[node.operator], target.name, value, temp)
                value = temp
            self.emit(Op.ASSIGN, value, result=target.name)
            return target.name
        obj = self.visit(target.object)
        key = self.property_key(target)
        if node.operator == '=':
            value = self.visit(node.value)
        else:
            current = self.ctx.new_temp()
            self.emit(Op.GET_PROP, obj, key, current)
            operand = self.visit(node.value)
            value = self.ctx.new_temp()
            self.emit(COMPOUND_ASSIGN_OPS[node.operator], current, operand, value)
        self.emit(Op.SET_PROP, value, key, obj)
        return value

    def visit_CallExpression(self, node):
        callee = self.callee_reference(node.callee)
        argc = self.emit_arguments(node.arguments)
        temp = self.ctx.new_temp()
        self.emit(Op.CALL, callee, argc, temp)
        return temp

    def visit_NewExpression(self, node):
        callee = self.callee_reference(node.callee)
        argc = self.emit_arguments(node.arguments)
        temp = self.ctx.new_temp()
        self.emit(Op.NEW, callee, argc, temp)
        return temp

    def visit_MemberExpression(self, node):
        obj = self.visit(node.object)
        key = self.property_key(node)
        temp = self.ctx.new_temp()
        self.emit(Op.GET_PROP, obj, key, temp)
        return temp

    def visit_ThisExpression(self, node):
        return 'this'

    def visit_Identifier(self, node):
        return node.name

    def visit_Literal(self, node):
        return literal_operand(node.value)

    def visit_TemplateLiteral(self, node):
        acc = json.dumps(node.quasis[0], ensure_ascii=False)
        for expr, quasi in zip(node.expressions, node.quasis[1:]):
            value = self.visit(expr)
            temp = self.ctx.new_temp()
            self.emit(Op.CONCAT, acc, value, temp)
            acc = temp
            if quasi:
                temp = self.ctx.new_temp()
                self.emit(Op.CONCAT, acc, json.dumps(quasi, ensure_ascii=False), temp)
                acc = temp
        return acc

    def visit_ArrayExpression(self, node):
        array = self.ctx.new_temp()
        self.emit(Op.NEW_ARRAY, str(len(node.elements)), result=array)
        for i, element in enumerate(node.elements):
            value = self.visit(element)
            self.emit(Op.SET_PROP, value, str(i), array)
        return array

    def visit_ObjectExpression(self, node):
        obj = self.ctx.new_temp()
        self.emit(Op.NEW_OBJECT, result=obj)
        for prop in node.properties:
            value = self.visit(prop)
            self.emit(Op.SET_PROP, value, json.dumps(prop.key, ensure_ascii=False), obj)
        return obj

    def visit_Property(self, node):
        return self.visit(node.value)

    def visit_ErrorNode(self, node, *context):
        raise InternalCompilerError(
            f"error placeholder at line {node.line} reached quadruple generation")


def generate(tree):
    return QuadrupleGenerator().generate(tree)
