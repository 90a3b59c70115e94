"""
js_ast.py
Syntax tree for the analysed JavaScript subset.

Nodes are immutable; positions are keyword-only and ignored by equality so
trees can be compared structurally. ErrorNode stands in wherever the parser
had to throw a malformed construct away.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Node:
    line: int = field(default=0, compare=False, kw_only=True)
    column: int = field(default=0, compare=False, kw_only=True)


# -- program structure -------------------------------------------------------

@dataclass(frozen=True)
class Program(Node):
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class Parameter(Node):
    name: str
    default: Optional[Node] = None


@dataclass(frozen=True)
class BlockStatement(Node):
    body: Tuple[Node, ...]


@dataclass(frozen=True)
class MethodDeclaration(Node):
    name: str
    params: Tuple[Parameter, ...]
    body: BlockStatement
    is_static: bool = False

    @property
    def is_constructor(self):
        return self.name == 'constructor' and not self.is_static


@dataclass(frozen=True)
class ClassDeclaration(Node):
    name: str
    methods: Tuple[MethodDeclaration, ...]


@dataclass(frozen=True)
class FunctionDeclaration(Node):
    name: str
    params: Tuple[Parameter, ...]
    body: BlockStatement


@dataclass(frozen=True)
class VariableDeclarator(Node):
    name: str
    init: Optional[Node] = None


@dataclass(frozen=True)
class VariableDeclaration(Node):
    kind: str  # 'const' | 'let' | 'var'
    declarations: Tuple[VariableDeclarator, ...]


# -- statements ----------------------------------------------------------------

@dataclass(frozen=True)
class IfStatement(Node):
    test: Node
    consequent: Node
    alternate: Optional[Node] = None


@dataclass(frozen=True)
class WhileStatement(Node):
    test: Node
    body: Node


@dataclass(frozen=True)
class ReturnStatement(Node):
    argument: Optional[Node] = None


@dataclass(frozen=True)
class ExpressionStatement(Node):
    expression: Node


@dataclass(frozen=True)
class EmptyStatement(Node):
    pass


# -- expressions ---------------------------------------------------------------

@dataclass(frozen=True)
class BinaryExpression(Node):
    operator: str
    left: Node
    right: Node


@dataclass(frozen=True)
class UnaryExpression(Node):
    operator: str
    argument: Node


@dataclass(frozen=True)
class UpdateExpression(Node):
    operator: str  # '++' | '--'
    argument: Node
    prefix: bool


@dataclass(frozen=True)
class AssignmentExpression(Node):
    operator: str
    target: Node
    value: Node


@dataclass(frozen=True)
class CallExpression(Node):
    callee: Node
    arguments: Tuple[Node, ...]


@dataclass(frozen=True)
class NewExpression(Node):
    callee: Node
    arguments: Tuple[Node, ...]


@dataclass(frozen=True)
class MemberExpression(Node):
    object: Node
    property: Node  # an Identifier naming the property unless computed
    computed: bool = False


@dataclass(frozen=True)
class ThisExpression(Node):
    pass


@dataclass(frozen=True)
class Identifier(Node):
    name: str


@dataclass(frozen=True)
class Literal(Node):
    value: Any  # int | float | str | bool | None
    raw: str


@dataclass(frozen=True)
class TemplateLiteral(Node):
    quasis: Tuple[str, ...]
    expressions: Tuple[Node, ...]


@dataclass(frozen=True)
class ArrayExpression(Node):
    elements: Tuple[Node, ...]


@dataclass(frozen=True)
class Property(Node):
    key: str
    value: Node


@dataclass(frozen=True)
class ObjectExpression(Node):
    properties: Tuple[Property, ...]


@dataclass(frozen=True)
class ErrorNode(Node):
    message: str


NODE_TYPES = (
    Program, Parameter, BlockStatement, MethodDeclaration, ClassDeclaration,
    FunctionDeclaration, VariableDeclarator, VariableDeclaration, IfStatement,
    WhileStatement, ReturnStatement, ExpressionStatement, EmptyStatement,
    BinaryExpression, UnaryExpression, UpdateExpression, AssignmentExpression,
    CallExpression, NewExpression, MemberExpression, ThisExpression, Identifier,
    Literal, TemplateLiteral, ArrayExpression, Property, ObjectExpression,
    ErrorNode,
)


class NodeVisitor:
    """Dispatches on the node's class to ``visit_<ClassName>``.

    Every subclass must provide a visit method for every node kind; the
    check runs when the subclass is defined, so a forgotten kind fails at
    import time instead of halfway through an analysis.
    """

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        missing = [t.__name__ for t in NODE_TYPES
                   if not callable(getattr(cls, 'visit_' + t.__name__, None))]
        if missing:
            raise TypeError(f"{cls.__name__} does not handle node kinds: {', '.join(missing)}")

    def visit(self, node, *args):
        return getattr(self, 'visit_' + type(node).__name__)(node, *args)


def node_fields(node):
    """(name, value) pairs of a node, positions excluded."""
    return [(f.name, getattr(node, f.name)) for f in fields(node)
            if f.name not in ('line', 'column')]


def iter_children(node):
    for _, value in node_fields(node):
        if isinstance(value, Node):
            yield value
        elif isinstance(value, tuple):
            for item in value:
                if isinstance(item, Node):
                    yield item


def walk(node):
    """Pre-order traversal of ``node`` and all its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_children(current))))


def contains_errors(node):
    return any(isinstance(n, ErrorNode) for n in walk(node))


def format_tree(node, indent=0):
    """Indented outline of a tree, one node per line."""
    pad = '  ' * indent
    scalars = []
    children = []
    for name, value in node_fields(node):
        if isinstance(value, Node):
            children.append((name, value))
        elif isinstance(value, tuple) and any(isinstance(v, Node) for v in value):
            children.extend((name, v) for v in value)
        elif value is not None and value != ():
            scalars.append(f"{name}={value!r}")
    head = type(node).__name__
    if scalars:
        head += ' ' + ' '.join(scalars)
    lines = [f"{pad}{head}  @{node.line}:{node.column}"]
    for _, child in children:
        lines.extend(format_tree(child, indent + 1))
    return lines


def ast_to_dict(node):
    """
    Serialize a tree to plain dicts/lists recursively
    """
    if node is None:
        return None
    d = {"type": type(node).__name__, "line": node.line, "column": node.column}
    for name, value in node_fields(node):
        if isinstance(value, Node):
            d[name] = ast_to_dict(value)
        elif isinstance(value, tuple):
            d[name] = [ast_to_dict(v) if isinstance(v, Node) else v for v in value]
        else:
            d[name] = value
    return d
