"""
semantic.py
Scope-aware name resolution and lint-style checks over the syntax tree.

The analyzer never changes the tree. What it learns about names is returned
next to it: the scopes it built and a side table from each resolved
Identifier node to the scope that declares it.
"""

import logging
from collections import namedtuple
from dataclasses import dataclass

from diagnostics import DiagnosticCollector, Phase
from js_ast import (
    AssignmentExpression, BinaryExpression, EmptyStatement,
    FunctionDeclaration, Identifier, Literal, MemberExpression,
    MethodDeclaration, NodeVisitor, ReturnStatement, UnaryExpression, walk,
)

log = logging.getLogger(__name__)

BUILTIN_GLOBALS = frozenset({
    'console', 'Math', 'JSON', 'Number', 'String', 'Boolean', 'Array',
    'Object', 'Date', 'Promise', 'Error', 'TypeError', 'RangeError', 'Symbol',
    'Map', 'Set', 'WeakMap', 'WeakSet', 'parseInt', 'parseFloat', 'isNaN',
    'isFinite', 'Infinity', 'NaN', 'undefined', 'globalThis', 'window',
    'document', 'setTimeout', 'clearTimeout', 'setInterval', 'clearInterval',
    'alert', 'fetch', 'require', 'module', 'exports', 'process',
})

SemanticResult = namedtuple('SemanticResult', [
    'tree', 'diagnostics', 'error_count', 'warning_count', 'scopes', 'resolutions',
])


@dataclass
class SymbolEntry:
    name: str
    kind: str  # variable | parameter | method | class | function
    line: int
    column: int
    scope_id: int
    constant: bool = False
    used: bool = False


class Scope:
    def __init__(self, scope_id, kind, name, parent=None):
        self.id = scope_id
        self.kind = kind  # program | class | method | function | block
        self.name = name
        self.parent = parent
        self.symbols = {}

    def lookup_local(self, name):
        return self.symbols.get(name)

    def resolve(self, name):
        scope = self
        while scope is not None:
            entry = scope.symbols.get(name)
            if entry is not None:
                return entry
            scope = scope.parent
        return None

    def describe(self):
        head = f"[{self.id}] {self.kind} {self.name}"
        if not self.symbols:
            return f"{head}: (no symbols)"
        names = ', '.join(f"{e.name} ({e.kind}, line {e.line})" for e in self.symbols.values())
        return f"{head}: {names}"


def is_zero_literal(node):
    if isinstance(node, UnaryExpression) and node.operator in ('-', '+'):
        node = node.argument
    return (isinstance(node, Literal) and not isinstance(node.value, bool)
            and isinstance(node.value, (int, float)) and node.value == 0)


def callee_name(callee):
    if isinstance(callee, Identifier):
        return callee.name
    if isinstance(callee, MemberExpression) and not callee.computed:
        return callee.property.name
    return None


def collect_divisor_params(tree):
    """Map function/method name -> {parameter index: parameter name} for
    parameters that appear directly as the right operand of '/' or '%'."""
    found = {}
    for node in walk(tree):
        if not isinstance(node, (MethodDeclaration, FunctionDeclaration)):
            continue
        index_of = {p.name: i for i, p in enumerate(node.params) if hasattr(p, 'name')}
        for inner in walk(node.body):
            divisor = None
            if isinstance(inner, BinaryExpression) and inner.operator in ('/', '%'):
                divisor = inner.right
            elif isinstance(inner, AssignmentExpression) and inner.operator in ('/=', '%='):
                divisor = inner.value
            if isinstance(divisor, Identifier) and divisor.name in index_of:
                found.setdefault(node.name, {})[index_of[divisor.name]] = divisor.name
    return found


class SemanticAnalyzer(NodeVisitor):
    def __init__(self):
        self.diagnostics = DiagnosticCollector(Phase.SEMANTIC)
        self.scopes = []
        self.current = None
        self.resolutions = {}
        self.divisor_params = {}
        # innermost-last stack of 'method' / 'function'
        self.contexts = []

    def analyze(self, tree):
        self.divisor_params = collect_divisor_params(tree)
        self.visit(tree)
        diagnostics = tuple(sorted(self.diagnostics.freeze(), key=lambda d: (d.line, d.column)))
        log.debug("semantic analysis: %d scopes, %d errors, %d warnings", len(self.scopes),
                  self.diagnostics.error_count, self.diagnostics.warning_count)
        return SemanticResult(tree, diagnostics, self.diagnostics.error_count,
                              self.diagnostics.warning_count, tuple(self.scopes),
                              dict(self.resolutions))

    # -- scopes -------------------------------------------------------------

    def enter_scope(self, kind, name):
        scope = Scope(len(self.scopes), kind, name, self.current)
        self.scopes.append(scope)
        self.current = scope
        return scope

    def exit_scope(self):
        for entry in self.current.symbols.values():
            if entry.kind == 'variable' and not entry.used:
                self.diagnostics.warning(f"'{entry.name}' is declared but never used",
                                         entry.line, entry.column, "W004")
        self.current = self.current.parent

    def declare(self, name, kind, node, constant=False):
        if self.current.lookup_local(name) is not None:
            self.diagnostics.warning(f"'{name}' is already declared in this scope",
                                     node.line, node.column, "W001")
        self.current.symbols[name] = SymbolEntry(name, kind, node.line, node.column,
                                                 self.current.id, constant)

    def reference(self, node, used=True):
        entry = self.current.resolve(node.name)
        if entry is None:
            if node.name not in BUILTIN_GLOBALS:
                self.diagnostics.error(f"undeclared identifier '{node.name}'",
                                       node.line, node.column, "S001")
            return None
        if used:
            entry.used = True
        self.resolutions[id(node)] = entry.scope_id
        return entry

    def visit_body(self, statements):
        for stmt in statements:
            if isinstance(stmt, FunctionDeclaration):
                self.declare(stmt.name, 'function', stmt)
        returned = False
        for stmt in statements:
            if returned and not isinstance(stmt, (FunctionDeclaration, EmptyStatement)):
                self.diagnostics.warning("unreachable code after return statement",
                                         stmt.line, stmt.column, "W003")
                returned = False
            self.visit(stmt)
            if isinstance(stmt, ReturnStatement):
                returned = True

    def visit_function_like(self, kind, name, params, body):
        self.contexts.append(kind)
        self.enter_scope(kind, name)
        for param in params:
            self.visit(param)
        self.visit_body(body.body)
        self.exit_scope()
        self.contexts.pop()

    # -- declarations ------------------------------------------------------

    def visit_Program(self, node):
        self.enter_scope('program', '<program>')
        self.visit_body(node.body)
        self.exit_scope()

    def visit_ClassDeclaration(self, node):
        self.declare(node.name, 'class', node)
        self.enter_scope('class', node.name)
        for method in node.methods:
            if isinstance(method, MethodDeclaration):
                self.declare(method.name, 'method', method)
        for method in node.methods:
            self.visit(method, node.name)
        self.exit_scope()

    def visit_MethodDeclaration(self, node, class_name='?'):
        self.visit_function_like('method', f"{class_name}.{node.name}", node.params, node.body)

    def visit_FunctionDeclaration(self, node):
        # the name itself was hoisted by visit_body
        self.visit_function_like('function', node.name, node.params, node.body)

    def visit_Parameter(self, node):
        if node.default is not None:
            self.visit(node.default)
        self.declare(node.name, 'parameter', node)

    def visit_VariableDeclaration(self, node):
        for declarator in node.declarations:
            self.visit(declarator, node.kind)

    def visit_VariableDeclarator(self, node, kind='let'):
        if node.init is not None:
            self.visit(node.init)
        self.declare(node.name, 'variable', node, constant=(kind == 'const'))

    # -- statements --------------------------------------------------------

    def visit_BlockStatement(self, node):
        self.enter_scope('block', f"<block@{node.line}>")
        self.visit_body(node.body)
        self.exit_scope()

    def visit_IfStatement(self, node):
        self.visit(node.test)
        self.visit(node.consequent)
        if node.alternate is not None:
            self.visit(node.alternate)

    def visit_WhileStatement(self, node):
        self.visit(node.test)
        self.visit(node.body)

    def visit_ReturnStatement(self, node):
        if not self.contexts:
            self.diagnostics.error("'return' statement outside of a function",
                                   node.line, node.column, "S003")
        if node.argument is not None:
            self.visit(node.argument)

    def visit_ExpressionStatement(self, node):
        self.visit(node.expression)

    def visit_EmptyStatement(self, node):
        pass

    # -- expressions -------------------------------------------------------

    def check_target(self, target, used):
        if isinstance(target, Identifier):
            entry = self.reference(target, used=used)
            if entry is not None and entry.constant:
                self.diagnostics.error(f"assignment to constant variable '{target.name}'",
                                       target.line, target.column, "S002")
        else:
            self.visit(target)

    def visit_BinaryExpression(self, node):
        self.visit(node.left)
        self.visit(node.right)
        if node.operator in ('/', '%') and is_zero_literal(node.right):
            what = "division" if node.operator == '/' else "modulo"
            self.diagnostics.warning(f"{what} by zero yields a non-finite value",
                                     node.line, node.column, "W002")

    def visit_UnaryExpression(self, node):
        self.visit(node.argument)

    def visit_UpdateExpression(self, node):
        self.check_target(node.argument, used=True)

    def visit_AssignmentExpression(self, node):
        self.check_target(node.target, used=node.operator != '=')
        self.visit(node.value)
        if node.operator in ('/=', '%=') and is_zero_literal(node.value):
            what = "division" if node.operator == '/=' else "modulo"
            self.diagnostics.warning(f"{what} by zero yields a non-finite value",
                                     node.line, node.column, "W002")

    def visit_CallExpression(self, node):
        self.visit(node.callee)
        for arg in node.arguments:
            self.visit(arg)
        name = callee_name(node.callee)
        for index, param in sorted(self.divisor_params.get(name, {}).items()):
            if index < len(node.arguments) and is_zero_literal(node.arguments[index]):
                arg = node.arguments[index]
                self.diagnostics.warning(
                    f"'{name}' divides by its parameter '{param}', which receives 0 here",
                    arg.line, arg.column, "W006")

    def visit_NewExpression(self, node):
        self.visit(node.callee)
        for arg in node.arguments:
            self.visit(arg)

    def visit_MemberExpression(self, node):
        self.visit(node.object)
        if node.computed:
            self.visit(node.property)

    def visit_ThisExpression(self, node):
        if not self.contexts or self.contexts[-1] != 'method':
            self.diagnostics.warning("'this' used outside of a class method",
                                     node.line, node.column, "W005")

    def visit_Identifier(self, node):
        self.reference(node)

    def visit_Literal(self, node):
        pass

    def visit_TemplateLiteral(self, node):
        for expr in node.expressions:
            self.visit(expr)

    def visit_ArrayExpression(self, node):
        for element in node.elements:
            self.visit(element)

    def visit_ObjectExpression(self, node):
        for prop in node.properties:
            self.visit(prop)

    def visit_Property(self, node):
        self.visit(node.value)

    def visit_ErrorNode(self, node, *context):
        pass


def analyze(tree):
    return SemanticAnalyzer().analyze(tree)
