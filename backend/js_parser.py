"""
js_parser.py
Recursive-descent parser (one method per grammar rule) for the analysed
JavaScript subset.

Error recovery is panic mode: the first problem in a construct is reported
and sets ``panic``; further reports are muted until the parser resynchronises,
either at a statement boundary (``synchronize``) or at the bracket closing the
group it was inside (``recover``). Malformed pieces become ErrorNode
placeholders, so the tree keeps its shape.

Nesting is capped so that neither this parser nor the tree walkers after it
run out of Python stack: statements and expressions may nest MAX_NESTING
levels deep, and one expression tree may be at most MAX_EXPRESSION_HEIGHT
nodes tall. Anything deeper is reported as P007 and replaced by an ErrorNode.
"""

import logging
from collections import namedtuple

from diagnostics import DiagnosticCollector, Phase
from js_ast import (
    ArrayExpression, AssignmentExpression, BinaryExpression, BlockStatement,
    CallExpression, ClassDeclaration, EmptyStatement, ErrorNode,
    ExpressionStatement, FunctionDeclaration, Identifier, IfStatement, Literal,
    MemberExpression, MethodDeclaration, NewExpression, ObjectExpression,
    Parameter, Program, Property, ReturnStatement, TemplateLiteral,
    ThisExpression, UnaryExpression, UpdateExpression, VariableDeclaration,
    VariableDeclarator, WhileStatement, iter_children,
)
from lexer import Token, TokenKind, split_lines

log = logging.getLogger(__name__)

ParseResult = namedtuple('ParseResult', ['tree', 'diagnostics'])

MAX_NESTING = 32
MAX_EXPRESSION_HEIGHT = 150

ASSIGN_OPS = frozenset({'=', '+=', '-=', '*=', '/=', '%=', '**='})

UNSUPPORTED_STATEMENTS = {
    'for': "'for' loops",
    'do': "'do...while' loops",
    'switch': "'switch' statements",
    'try': "'try' statements",
    'catch': "'catch' clauses",
    'finally': "'finally' clauses",
    'throw': "'throw' statements",
    'break': "'break' statements",
    'continue': "'continue' statements",
    'import': "modules ('import')",
    'export': "modules ('export')",
    'debugger': "'debugger' statements",
    'with': "'with' statements",
}
STATEMENT_KEYWORDS = frozenset({'const', 'let', 'var', 'class', 'function',
                                'if', 'while', 'return'})
SYNC_KEYWORDS = STATEMENT_KEYWORDS | frozenset(UNSUPPORTED_STATEMENTS)
CONTINUATION_KEYWORDS = frozenset({'else', 'catch', 'finally'})
OPENERS = {'(': ')', '[': ']', '{': '}'}


def token_end(tok):
    """(line, column) just past the last character of ``tok``."""
    parts = split_lines(tok.lexeme)
    if len(parts) == 1:
        return tok.line, tok.column + len(tok.lexeme)
    return tok.line + len(parts) - 1, len(parts[-1]) + 1


def describe(tok):
    if tok.kind is TokenKind.EOF:
        return "end of input"
    text = tok.lexeme if len(tok.lexeme) <= 20 else tok.lexeme[:17] + '...'
    return f"{tok.kind.value} {text!r}"


class Parser:
    def __init__(self, tokens):
        self.tokens = list(tokens)
        if self.tokens:
            line, column = token_end(self.tokens[-1])
        else:
            line, column = 1, 1
        self.tokens.append(Token(TokenKind.EOF, '', '', line, column))
        self.pos = 0
        self.panic = False
        self.diagnostics = DiagnosticCollector(Phase.SYNTACTIC)
        self.depth = 0
        # id(node) -> (node, height); the node is kept so its id stays unique
        self.heights = {}

    # -- token helpers --------------------------------------------------------

    def peek(self):
        return self.tokens[self.pos]

    def peek_n(self, n):
        return self.tokens[min(self.pos + n, len(self.tokens) - 1)]

    def previous(self):
        return self.tokens[self.pos - 1] if self.pos > 0 else None

    def advance(self):
        tok = self.peek()
        if tok.kind is not TokenKind.EOF:
            self.pos += 1
        return tok

    def at_end(self):
        return self.peek().kind is TokenKind.EOF

    def check(self, kind, lexeme=None, tok=None):
        tok = tok or self.peek()
        return tok.kind is kind and (lexeme is None or tok.lexeme == lexeme)

    def check_punct(self, p, tok=None):
        return self.check(TokenKind.PUNCTUATION, p, tok)

    def check_op(self, op, tok=None):
        return self.check(TokenKind.OPERATOR, op, tok)

    def check_keyword(self, kw, tok=None):
        return self.check(TokenKind.KEYWORD, kw, tok)

    def match_punct(self, p):
        if self.check_punct(p):
            return self.advance()
        return None

    def match_op(self, op):
        if self.check_op(op):
            return self.advance()
        return None

    def on_new_line(self):
        prev = self.previous()
        return prev is not None and self.peek().line > token_end(prev)[0]

    @staticmethod
    def at(tok):
        return {'line': tok.line, 'column': tok.column}

    # -- diagnostics ----------------------------------------------------------

    def error_at(self, tok, message, code):
        if self.panic:
            return
        self.panic = True
        self.diagnostics.error(message, tok.line, tok.column, code)

    def expect(self, kind, lexeme, what):
        if self.check(kind, lexeme):
            return self.advance()
        tok = self.peek()
        self.error_at(tok, f"expected {what} but found {describe(tok)}", "P002")
        return None

    def expect_punct(self, p, what=None):
        return self.expect(TokenKind.PUNCTUATION, p, what or f"'{p}'")

    def unsupported(self, tok, what):
        """Report an unsupported construct starting at ``tok`` and consume that token."""
        self.error_at(tok, f"unsupported syntax: {what}", "P100")
        if self.peek() is tok:
            self.advance()
        return ErrorNode(f"unsupported {what}", **self.at(tok))

    def nested(self, tok, what):
        """Enter one more nesting level, or report P007 and return False at the limit."""
        if self.depth >= MAX_NESTING:
            self.error_at(tok, f"{what} nested too deeply", "P007")
            return False
        self.depth += 1
        return True

    def height(self, root):
        stack = [(root, False)]
        while stack:
            node, measured = stack.pop()
            if id(node) in self.heights:
                continue
            if measured:
                tallest = max((self.heights[id(child)][1] for child in iter_children(node)),
                              default=0)
                self.heights[id(node)] = (node, tallest + 1)
            else:
                stack.append((node, True))
                stack.extend((child, False) for child in iter_children(node))
        return self.heights[id(root)][1]

    def consume_terminator(self):
        if self.match_punct(';'):
            return True
        tok = self.peek()
        if tok.kind is TokenKind.EOF or self.check_punct('}') or self.on_new_line():
            return True
        self.error_at(tok, f"expected ';' but found {describe(tok)}", "P002")
        return False

    # -- recovery -------------------------------------------------------------

    def skip_group(self):
        """Consume a balanced bracket group starting at the current opener."""
        depth = 0
        while not self.at_end():
            tok = self.advance()
            if tok.kind is TokenKind.PUNCTUATION:
                if tok.lexeme in OPENERS:
                    depth += 1
                elif tok.lexeme in (')', ']', '}'):
                    depth -= 1
                    if depth <= 0:
                        return

    def synchronize(self):
        """Skip to the next statement boundary and leave panic mode."""
        self.panic = False
        if self.previous() is not None and self.check_punct(';', self.previous()):
            return
        while not self.at_end():
            tok = self.peek()
            if tok.kind is TokenKind.PUNCTUATION:
                if tok.lexeme == ';':
                    self.advance()
                    return
                if tok.lexeme == '}':
                    return
                if tok.lexeme in OPENERS:
                    self.skip_group()
                    if tok.lexeme == '{' and not (
                            self.peek().kind is TokenKind.KEYWORD
                            and self.peek().lexeme in CONTINUATION_KEYWORDS):
                        return
                    continue
            if tok.kind is TokenKind.KEYWORD and tok.lexeme in SYNC_KEYWORDS:
                return
            if self.on_new_line():
                return
            self.advance()

    def recover(self, closer):
        """Skip to ``closer`` ending the current group; leaves panic mode when found."""
        while not self.at_end():
            tok = self.peek()
            if tok.kind is TokenKind.PUNCTUATION:
                if tok.lexeme == closer:
                    self.advance()
                    self.panic = False
                    return True
                if tok.lexeme in OPENERS:
                    self.skip_group()
                    continue
                if tok.lexeme in (';', '}', ')', ']'):
                    return False
            self.advance()
        return False

    # -- statements -----------------------------------------------------------

    def parse(self):
        body = self.statement_list(in_block=False)
        log.debug("parsed %d top-level statements, %d syntax errors",
                  len(body), self.diagnostics.error_count)
        return ParseResult(Program(tuple(body), line=1, column=1), self.diagnostics.freeze())

    def statement_list(self, in_block):
        stmts = []
        while not self.at_end() and not (in_block and self.check_punct('}')):
            start = self.pos
            stmts.append(self.statement())
            if self.panic:
                self.synchronize()
            if self.pos == start:
                self.advance()
        return stmts

    def statement(self):
        tok = self.peek()
        if not self.nested(tok, "statement"):
            return ErrorNode("statement nested too deeply", **self.at(tok))
        node = self._statement(tok)
        self.depth -= 1
        return node

    def _statement(self, tok):
        if tok.kind is TokenKind.KEYWORD:
            kw = tok.lexeme
            if kw in ('const', 'let', 'var'):
                return self.variable_declaration()
            if kw == 'class':
                return self.class_declaration()
            if kw == 'function':
                return self.function_declaration()
            if kw == 'if':
                return self.if_statement()
            if kw == 'while':
                return self.while_statement()
            if kw == 'return':
                return self.return_statement()
            if kw in UNSUPPORTED_STATEMENTS:
                return self.unsupported(tok, UNSUPPORTED_STATEMENTS[kw])
        if (tok.kind is TokenKind.IDENTIFIER and tok.lexeme == 'async'
                and self.check_keyword('function', self.peek_n(1))):
            return self.unsupported(tok, "async functions")
        if self.check_punct('{'):
            return self.block()
        if self.check_punct(';'):
            self.advance()
            return EmptyStatement(**self.at(tok))
        if self.check_punct('}'):
            self.error_at(tok, "unexpected '}'", "P001")
            self.advance()
            return ErrorNode("unmatched '}'", **self.at(tok))
        return self.expression_statement()

    def variable_declaration(self):
        kw = self.advance()
        decls = []
        while True:
            name_tok = self.peek()
            if self.check_punct('{') or self.check_punct('['):
                return self.unsupported(name_tok, "destructuring patterns")
            if not self.check(TokenKind.IDENTIFIER):
                self.error_at(name_tok, f"expected variable name after '{kw.lexeme}' "
                                        f"but found {describe(name_tok)}", "P002")
                return ErrorNode("malformed variable declaration", **self.at(kw))
            self.advance()
            init = None
            if self.match_op('='):
                init = self.assignment()
            elif kw.lexeme == 'const':
                self.error_at(name_tok, f"missing initializer in const declaration "
                                        f"'{name_tok.lexeme}'", "P005")
            decls.append(VariableDeclarator(name_tok.lexeme, init, **self.at(name_tok)))
            if not self.match_punct(','):
                break
        self.consume_terminator()
        return VariableDeclaration(kw.lexeme, tuple(decls), **self.at(kw))

    def class_declaration(self):
        kw = self.advance()
        name_tok = self.expect(TokenKind.IDENTIFIER, None, "class name")
        if name_tok is None:
            return ErrorNode("malformed class declaration", **self.at(kw))
        if self.check_keyword('extends'):
            return self.unsupported(self.peek(), "class inheritance ('extends')")
        if self.expect_punct('{', "'{' after class name") is None:
            return ErrorNode("malformed class declaration", **self.at(kw))
        methods = []
        has_constructor = False
        while not self.check_punct('}') and not self.at_end():
            start = self.pos
            member = self.class_member()
            if member is not None:
                if isinstance(member, MethodDeclaration) and member.is_constructor:
                    if has_constructor:
                        self.diagnostics.error("a class may only have one constructor",
                                               member.line, member.column, "P006")
                    has_constructor = True
                methods.append(member)
            if self.panic:
                self.synchronize()
            if self.pos == start:
                self.advance()
        self.expect_punct('}', "'}' to close class body")
        return ClassDeclaration(name_tok.lexeme, tuple(methods), **self.at(kw))

    def class_member(self):
        tok = self.peek()
        if self.match_punct(';'):
            return None
        is_static = False
        if (tok.kind is TokenKind.IDENTIFIER and tok.lexeme == 'static'
                and not self.check_punct('(', self.peek_n(1))):
            is_static = True
            self.advance()
            tok = self.peek()
        nxt = self.peek_n(1)
        if (tok.kind is TokenKind.IDENTIFIER and tok.lexeme in ('get', 'set', 'async')
                and nxt.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD)):
            what = "async methods" if tok.lexeme == 'async' else "getters and setters"
            return self.unsupported(tok, what)
        if self.check_op('*'):
            return self.unsupported(tok, "generator methods")
        if self.check_punct('['):
            return self.unsupported(tok, "computed member names")
        if tok.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD):
            self.advance()
            if self.check_punct('('):
                params = self.parameters()
                if self.panic:
                    return ErrorNode("malformed method", **self.at(tok))
                body = self.block()
                return MethodDeclaration(tok.lexeme, params, body, is_static, **self.at(tok))
            return self.unsupported(tok, "class fields")
        self.error_at(tok, f"expected a method definition but found {describe(tok)}", "P001")
        return ErrorNode("malformed class member", **self.at(tok))

    def function_declaration(self):
        kw = self.advance()
        if self.check_op('*'):
            return self.unsupported(self.peek(), "generator functions")
        name_tok = self.expect(TokenKind.IDENTIFIER, None, "function name")
        if name_tok is None:
            return ErrorNode("malformed function declaration", **self.at(kw))
        params = self.parameters()
        if self.panic:
            return ErrorNode("malformed function declaration", **self.at(kw))
        body = self.block()
        return FunctionDeclaration(name_tok.lexeme, params, body, **self.at(kw))

    def parameters(self):
        params = []
        if self.expect_punct('(', "'(' to open parameter list") is None:
            return ()
        while not self.check_punct(')') and not self.at_end():
            tok = self.peek()
            if self.check_op('...'):
                params.append(self.unsupported(tok, "rest parameters"))
                break
            if self.check_punct('{') or self.check_punct('['):
                params.append(self.unsupported(tok, "destructuring patterns"))
                break
            if self.expect(TokenKind.IDENTIFIER, None, "parameter name") is None:
                break
            default = self.assignment() if self.match_op('=') else None
            params.append(Parameter(tok.lexeme, default, **self.at(tok)))
            if not self.match_punct(','):
                break
        if self.panic:
            self.recover(')')
        else:
            self.expect_punct(')', "')' to close parameter list")
            if self.panic:
                self.recover(')')
        return tuple(params)

    def block(self):
        open_tok = self.peek()
        if self.expect_punct('{', "'{' to open block") is None:
            return BlockStatement((ErrorNode("missing block", **self.at(open_tok)),),
                                  **self.at(open_tok))
        stmts = self.statement_list(in_block=True)
        self.expect_punct('}', "'}' to close block")
        return BlockStatement(tuple(stmts), **self.at(open_tok))

    def if_statement(self):
        kw = self.advance()
        if self.expect_punct('(', "'(' after 'if'") is None:
            return ErrorNode("malformed if statement", **self.at(kw))
        test = self.expression()
        if self.expect_punct(')', "')' after if condition") is None:
            return ErrorNode("malformed if statement", **self.at(kw))
        consequent = self.statement()
        alternate = None
        if self.check_keyword('else'):
            self.advance()
            alternate = self.statement()
        return IfStatement(test, consequent, alternate, **self.at(kw))

    def while_statement(self):
        kw = self.advance()
        if self.expect_punct('(', "'(' after 'while'") is None:
            return ErrorNode("malformed while statement", **self.at(kw))
        test = self.expression()
        if self.expect_punct(')', "')' after while condition") is None:
            return ErrorNode("malformed while statement", **self.at(kw))
        body = self.statement()
        return WhileStatement(test, body, **self.at(kw))

    def return_statement(self):
        kw = self.advance()
        argument = None
        if not (self.check_punct(';') or self.check_punct('}') or self.at_end()
                or self.on_new_line()):
            argument = self.expression()
        self.consume_terminator()
        return ReturnStatement(argument, **self.at(kw))

    def expression_statement(self):
        tok = self.peek()
        expr = self.expression()
        self.consume_terminator()
        return ExpressionStatement(expr, **self.at(tok))

    # -- expressions (lowest to highest precedence) ------------------------

    def expression(self):
        return self.assignment()

    def assignment(self):
        start = self.peek()
        if not self.nested(start, "expression"):
            return ErrorNode("expression nested too deeply", **self.at(start))
        node = self._assignment(start)
        self.depth -= 1
        if self.height(node) > MAX_EXPRESSION_HEIGHT:
            self.error_at(start, "expression nested too deeply", "P007")
            return ErrorNode("expression nested too deeply", **self.at(start))
        return node

    def _assignment(self, start):
        left = self.logical_or()
        tok = self.peek()
        if tok.kind is not TokenKind.OPERATOR:
            return left
        if tok.lexeme in ASSIGN_OPS:
            self.advance()
            value = self.assignment()
            if not isinstance(left, (Identifier, MemberExpression)):
                if not isinstance(left, ErrorNode):
                    self.error_at(start, "invalid assignment target", "P004")
                return ErrorNode("invalid assignment", **self.at(start))
            return AssignmentExpression(tok.lexeme, left, value, **self.at(tok))
        if tok.lexeme == '?':
            return self.unsupported(tok, "conditional ('?:') expressions")
        if tok.lexeme == '=>':
            return self.unsupported(tok, "arrow functions")
        return left

    def _binary_level(self, operand, operators):
        node = operand()
        while True:
            tok = self.peek()
            if tok.kind not in (TokenKind.OPERATOR, TokenKind.KEYWORD) or tok.lexeme not in operators:
                return node
            self.advance()
            right = operand()
            node = BinaryExpression(tok.lexeme, node, right, **self.at(tok))

    def logical_or(self):
        return self._binary_level(self.logical_and, ('||', '??'))

    def logical_and(self):
        return self._binary_level(self.equality, ('&&',))

    def equality(self):
        return self._binary_level(self.relational, ('==', '!=', '===', '!=='))

    def relational(self):
        return self._binary_level(self.additive, ('<', '>', '<=', '>=', 'instanceof', 'in'))

    def additive(self):
        return self._binary_level(self.multiplicative, ('+', '-'))

    def multiplicative(self):
        return self._binary_level(self.exponent, ('*', '/', '%'))

    def exponent(self):
        base = self.unary()
        tok = self.match_op('**')
        if tok is None:
            return base
        if not self.nested(tok, "expression"):
            return ErrorNode("expression nested too deeply", **self.at(tok))
        power = self.exponent()
        self.depth -= 1
        return BinaryExpression('**', base, power, **self.at(tok))

    def unary(self):
        tok = self.peek()
        prefix = (tok.kind is TokenKind.OPERATOR and tok.lexeme in ('!', '-', '+', '++', '--')) \
            or self.check_keyword('typeof')
        if prefix:
            if not self.nested(tok, "expression"):
                return ErrorNode("expression nested too deeply", **self.at(tok))
            self.advance()
            argument = self.unary()
            self.depth -= 1
            if tok.lexeme in ('++', '--'):
                return self._update(tok, argument, prefix=True)
            return UnaryExpression(tok.lexeme, argument, **self.at(tok))
        if tok.kind is TokenKind.KEYWORD and tok.lexeme in ('delete', 'void'):
            return self.unsupported(tok, f"the '{tok.lexeme}' operator")
        return self.postfix()

    def _update(self, op_tok, target, prefix):
        if not isinstance(target, (Identifier, MemberExpression)):
            if not isinstance(target, ErrorNode):
                self.error_at(op_tok, f"invalid operand for '{op_tok.lexeme}'", "P004")
            return ErrorNode("invalid update", **self.at(op_tok))
        pos = self.at(op_tok) if prefix else {'line': target.line, 'column': target.column}
        return UpdateExpression(op_tok.lexeme, target, prefix, **pos)

    def postfix(self):
        node = self.call_member()
        tok = self.peek()
        if tok.kind is TokenKind.OPERATOR and tok.lexeme in ('++', '--') and not self.on_new_line():
            self.advance()
            return self._update(tok, node, prefix=False)
        return node

    def call_member(self):
        if self.check_keyword('new'):
            node = self.new_expression()
        else:
            node = self.primary()
        while True:
            tok = self.peek()
            if self.match_op('.'):
                name_tok = self.peek()
                if name_tok.kind not in (TokenKind.IDENTIFIER, TokenKind.KEYWORD):
                    self.error_at(name_tok, f"expected property name after '.' "
                                            f"but found {describe(name_tok)}", "P002")
                    return ErrorNode("malformed member access", **self.at(tok))
                self.advance()
                prop = Identifier(name_tok.lexeme, **self.at(name_tok))
                node = MemberExpression(node, prop, False, line=node.line, column=node.column)
            elif self.check_op('?.'):
                return self.unsupported(tok, "optional chaining ('?.')")
            elif self.match_punct('['):
                prop = self.expression()
                if self.expect_punct(']', "']' after computed property") is None:
                    self.recover(']')
                node = MemberExpression(node, prop, True, line=node.line, column=node.column)
            elif self.check_punct('('):
                args = self.arguments()
                node = CallExpression(node, args, line=node.line, column=node.column)
            else:
                return node

    def new_expression(self):
        kw = self.advance()
        callee = self.primary()
        while self.check_op('.'):
            self.advance()
            name_tok = self.expect(TokenKind.IDENTIFIER, None, "property name after '.'")
            if name_tok is None:
                return ErrorNode("malformed 'new' expression", **self.at(kw))
            callee = MemberExpression(callee, Identifier(name_tok.lexeme, **self.at(name_tok)),
                                      False, line=callee.line, column=callee.column)
        args = self.arguments() if self.check_punct('(') else ()
        return NewExpression(callee, args, **self.at(kw))

    def arguments(self):
        self.advance()  # '('
        args = []
        while not self.check_punct(')') and not self.at_end():
            if self.check_op('...'):
                args.append(self.unsupported(self.peek(), "spread arguments"))
                break
            args.append(self.assignment())
            if not self.match_punct(','):
                break
        if not self.panic:
            self.expect_punct(')', "')' to close argument list")
        if self.panic:
            self.recover(')')
        return tuple(args)

    def _is_arrow_head(self):
        depth = 0
        for i in range(self.pos, len(self.tokens)):
            tok = self.tokens[i]
            if tok.kind is TokenKind.PUNCTUATION:
                if tok.lexeme in OPENERS:
                    depth += 1
                elif tok.lexeme in (')', ']', '}'):
                    depth -= 1
                    if depth == 0:
                        return self.check_op('=>', self.tokens[i + 1])
            elif tok.kind is TokenKind.EOF:
                return False
        return False

    def primary(self):
        tok = self.peek()
        kind = tok.kind
        if kind is TokenKind.NUMBER:
            self.advance()
            value = float(tok.lexeme) if '.' in tok.lexeme else int(tok.lexeme)
            return Literal(value, tok.lexeme, **self.at(tok))
        if kind is TokenKind.STRING:
            self.advance()
            return Literal(tok.value, tok.lexeme, **self.at(tok))
        if kind is TokenKind.TEMPLATE_STRING:
            self.advance()
            return TemplateLiteral((tok.value,), (), **self.at(tok))
        if kind is TokenKind.TEMPLATE_HEAD:
            return self.template_literal()
        if kind is TokenKind.KEYWORD:
            kw = tok.lexeme
            if kw in ('true', 'false', 'null'):
                self.advance()
                return Literal({'true': True, 'false': False, 'null': None}[kw], kw, **self.at(tok))
            if kw == 'this':
                self.advance()
                return ThisExpression(**self.at(tok))
            if kw == 'function':
                return self.unsupported(tok, "function expressions")
            if kw == 'class':
                return self.unsupported(tok, "class expressions")
            if kw == 'super':
                return self.unsupported(tok, "'super' references")
            if kw == 'yield':
                return self.unsupported(tok, "generators ('yield')")
        if kind is TokenKind.IDENTIFIER:
            if self.check_op('=>', self.peek_n(1)):
                return self.unsupported(tok, "arrow functions")
            self.advance()
            return Identifier(tok.lexeme, **self.at(tok))
        if kind is TokenKind.PUNCTUATION:
            if tok.lexeme == '(':
                if self._is_arrow_head():
                    return self.unsupported(tok, "arrow functions")
                self.advance()
                expr = self.expression()
                if self.expect_punct(')', "')' to close parenthesised expression") is None:
                    self.recover(')')
                return expr
            if tok.lexeme == '[':
                return self.array_literal()
            if tok.lexeme == '{':
                return self.object_literal()
        if kind is TokenKind.OPERATOR:
            if tok.lexeme == '...':
                return self.unsupported(tok, "spread syntax")
            if tok.lexeme in ('/', '/='):
                return self.unsupported(tok, "regular expression literals")
        if kind is TokenKind.INVALID:
            self.error_at(tok, f"invalid token {tok.lexeme!r}", "P003")
            self.advance()
            return ErrorNode("invalid token", **self.at(tok))
        self.error_at(tok, f"expected an expression but found {describe(tok)}", "P001")
        return ErrorNode("missing expression", **self.at(tok))

    def template_literal(self):
        head = self.advance()
        quasis = [head.value]
        expressions = []
        while True:
            expressions.append(self.expression())
            tok = self.peek()
            if tok.kind is TokenKind.TEMPLATE_MIDDLE:
                self.advance()
                quasis.append(tok.value)
            elif tok.kind is TokenKind.TEMPLATE_TAIL:
                self.advance()
                quasis.append(tok.value)
                return TemplateLiteral(tuple(quasis), tuple(expressions), **self.at(head))
            else:
                self.error_at(tok, f"expected '}}' to close template interpolation "
                                   f"but found {describe(tok)}", "P002")
                return ErrorNode("malformed template literal", **self.at(head))

    def array_literal(self):
        open_tok = self.advance()
        elements = []
        while not self.check_punct(']') and not self.at_end():
            tok = self.peek()
            if self.check_punct(','):
                elements.append(self.unsupported(tok, "array holes"))
                break
            if self.check_op('...'):
                elements.append(self.unsupported(tok, "spread syntax"))
                break
            elements.append(self.assignment())
            if not self.match_punct(','):
                break
        if not self.panic:
            self.expect_punct(']', "']' to close array literal")
        if self.panic:
            self.recover(']')
        return ArrayExpression(tuple(elements), **self.at(open_tok))

    def object_literal(self):
        open_tok = self.advance()
        properties = []
        while not self.check_punct('}') and not self.at_end():
            tok = self.peek()
            if tok.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD,
                            TokenKind.STRING, TokenKind.NUMBER):
                self.advance()
                if self.match_punct(':'):
                    value = self.assignment()
                elif tok.kind is TokenKind.IDENTIFIER and (self.check_punct(',') or self.check_punct('}')):
                    value = Identifier(tok.lexeme, **self.at(tok))
                elif self.check_punct('('):
                    properties.append(self.unsupported(self.peek(), "object method shorthand"))
                    break
                else:
                    self.expect_punct(':', "':' after property name")
                    properties.append(ErrorNode("malformed property", **self.at(tok)))
                    break
                properties.append(Property(tok.value, value, **self.at(tok)))
            elif self.check_punct('['):
                properties.append(self.unsupported(tok, "computed property keys"))
                break
            elif self.check_op('...'):
                properties.append(self.unsupported(tok, "spread syntax"))
                break
            else:
                self.error_at(tok, f"expected a property name but found {describe(tok)}", "P002")
                properties.append(ErrorNode("malformed property", **self.at(tok)))
                break
            if not self.match_punct(','):
                break
        if not self.panic:
            self.expect_punct('}', "'}' to close object literal")
        if self.panic:
            self.recover('}')
        return ObjectExpression(tuple(properties), **self.at(open_tok))


def parse(tokens):
    return Parser(tokens).parse()
