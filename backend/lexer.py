"""
lexer.py
Tokenizer for the analysed JavaScript subset.

Regular tokens come from one table-driven master regex; string and template
literals are scanned by hand because they need escape handling and `${ ... }` tracking.
Errors never stop the scan: the offending text becomes an INVALID token and
scanning resumes at the next plausible boundary.
"""

import logging
import re
from collections import namedtuple
from enum import Enum

from diagnostics import DiagnosticCollector, Phase

log = logging.getLogger(__name__)


class TokenKind(str, Enum):
    KEYWORD = "keyword"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    TEMPLATE_STRING = "template"
    TEMPLATE_HEAD = "template-head"
    TEMPLATE_MIDDLE = "template-middle"
    TEMPLATE_TAIL = "template-tail"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    INVALID = "invalid"
    EOF = "eof"


Token = namedtuple('Token', ['kind', 'lexeme', 'value', 'line', 'column'])
LexResult = namedtuple('LexResult', ['tokens', 'diagnostics'])

_NEWLINE_RE = re.compile(r'\r\n|\r|\n')
_HEX_RE = re.compile(r'[0-9A-Fa-f]+')

_SIMPLE_ESCAPES = {
    'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', 'f': '\f', 'v': '\v',
    '\\': '\\', "'": "'", '"': '"', '`': '`',
}


class Lexer:
    KEYWORDS = frozenset({
        'break', 'case', 'catch', 'class', 'const', 'continue', 'debugger',
        'default', 'delete', 'do', 'else', 'export', 'extends', 'false',
        'finally', 'for', 'function', 'if', 'import', 'in', 'instanceof',
        'let', 'new', 'null', 'return', 'super', 'switch', 'this', 'throw',
        'true', 'try', 'typeof', 'var', 'void', 'while', 'with', 'yield',
    })
    OPERATORS = sorted([
        '===', '!==', '**=', '...', '=>', '==', '!=', '<=', '>=', '&&', '||',
        '??', '?.', '++', '--', '+=', '-=', '*=', '/=', '%=', '**',
        '+', '-', '*', '/', '%', '=', '<', '>', '!', '?', '.',
    ], key=len, reverse=True)
    token_specification = [
        ("NEWLINE",       r'\r\n|\r|\n'),
        ("SKIP",          r"[ \t\f\v\u00a0\ufeff]+"),
        ("LINE_COMMENT",  r'//[^\r\n]*'),
        ("BLOCK_COMMENT", r'/\*[\s\S]*?\*/'),
        ("NUMBER",        r'\d+(?:\.\d+)?'),
        ("IDENT",         r'(?:[^\W\d]|\$)(?:\w|\$)*'),
        ("OPERATOR",      '|'.join(re.escape(op) for op in OPERATORS)),
        ("PUNCT",         r'[()\[\]{};,:]'),
    ]
    tok_regex = '|'.join(f'(?P<{n}>{p})' for n, p in token_specification)
    master_re = re.compile(tok_regex)

    def __init__(self, code):
        self.code = code
        self.pos = 0
        self.line = 1
        self.line_start = 0
        self.tokens = []
        self.diagnostics = DiagnosticCollector(Phase.LEXICAL)
        # one [brace_depth, line, column] entry per open `${`
        self._templates = []

    def column(self):
        return self.pos - self.line_start + 1

    def _consume(self, end):
        for mo in _NEWLINE_RE.finditer(self.code, self.pos, end):
            self.line += 1
            self.line_start = mo.end()
        self.pos = end

    def _line_end(self, index):
        mo = _NEWLINE_RE.search(self.code, index)
        return mo.start() if mo else len(self.code)

    def _emit(self, kind, end, value=None):
        lexeme = self.code[self.pos:end]
        self.tokens.append(Token(kind, lexeme, lexeme if value is None else value,
                                 self.line, self.column()))
        self._consume(end)

    def tokenize(self):
        code = self.code
        n = len(code)
        while self.pos < n:
            ch = code[self.pos]
            if ch in '"\'':
                self._scan_string(ch)
                continue
            if ch == '`':
                self._scan_template('`')
                continue
            if ch == '}' and self._templates and self._templates[-1][0] == 0:
                self._scan_template('}')
                continue
            if code.startswith('/*', self.pos) and code.find('*/', self.pos + 2) == -1:
                self.diagnostics.error("unterminated block comment",
                                       self.line, self.column(), "L004")
                self._emit(TokenKind.INVALID, n)
                break

            mo = self.master_re.match(code, self.pos)
            if mo is None:
                self.diagnostics.error(f"unexpected character {ch!r}",
                                       self.line, self.column(), "L001")
                self._emit(TokenKind.INVALID, self.pos + 1)
                continue

            kind = mo.lastgroup
            val = mo.group()
            if kind in ("NEWLINE", "SKIP", "LINE_COMMENT", "BLOCK_COMMENT"):
                self._consume(mo.end())
            elif kind == "NUMBER":
                self._emit(TokenKind.NUMBER, mo.end())
            elif kind == "IDENT":
                tkind = TokenKind.KEYWORD if val in self.KEYWORDS else TokenKind.IDENTIFIER
                self._emit(tkind, mo.end())
            elif kind == "OPERATOR":
                self._emit(TokenKind.OPERATOR, mo.end())
            else:
                if self._templates:
                    if val == '{':
                        self._templates[-1][0] += 1
                    elif val == '}':
                        self._templates[-1][0] -= 1
                self._emit(TokenKind.PUNCTUATION, mo.end())

        # EOF inside a `${ ... }` interpolation
        while self._templates:
            _, line, column = self._templates.pop()
            self.diagnostics.error("unterminated template literal", line, column, "L003")

        log.debug("lexed %d tokens, %d diagnostics", len(self.tokens), len(self.diagnostics))
        return LexResult(tuple(self.tokens), self.diagnostics.freeze())

    def _read_escape(self, i):
        """Cook the escape sequence starting at the backslash at ``i``."""
        code = self.code
        nxt = code[i + 1:i + 2]
        if nxt == '':
            return '', i + 1
        if nxt == '\r' and code[i + 2:i + 3] == '\n':
            return '', i + 3
        if nxt in '\r\n':
            return '', i + 2
        if nxt in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[nxt], i + 2
        if nxt == '0' and not code[i + 2:i + 3].isdigit():
            return '\0', i + 2
        if nxt == 'x':
            digits = code[i + 2:i + 4]
            if len(digits) == 2 and _HEX_RE.fullmatch(digits):
                return chr(int(digits, 16)), i + 4
            return 'x', i + 2
        if nxt == 'u':
            if code[i + 2:i + 3] == '{':
                close = code.find('}', i + 3)
                digits = code[i + 3:close] if close != -1 else ''
                if digits and _HEX_RE.fullmatch(digits) and int(digits, 16) <= 0x10FFFF:
                    return chr(int(digits, 16)), close + 1
                return 'u', i + 2
            digits = code[i + 2:i + 6]
            if len(digits) == 4 and _HEX_RE.fullmatch(digits):
                return chr(int(digits, 16)), i + 6
            return 'u', i + 2
        return nxt, i + 2

    def _scan_string(self, quote):
        code = self.code
        i = self.pos + 1
        chars = []
        while i < len(code):
            ch = code[i]
            if ch == quote:
                self._emit(TokenKind.STRING, i + 1, ''.join(chars))
                return
            if ch in '\r\n':
                break
            if ch == '\\':
                text, i = self._read_escape(i)
                chars.append(text)
                continue
            chars.append(ch)
            i += 1
        self.diagnostics.error("unterminated string literal", self.line, self.column(), "L002")
        # the rest of the line is the invalid token; the newline is left for the main loop
        self._emit(TokenKind.INVALID, i)

    def _scan_template(self, opening):
        """Scan one template chunk, opened by a backtick or by the `}` closing an interpolation."""
        code = self.code
        i = self.pos + 1
        chars = []
        while i < len(code):
            ch = code[i]
            if ch == '`':
                if opening == '`':
                    self._emit(TokenKind.TEMPLATE_STRING, i + 1, ''.join(chars))
                else:
                    self._templates.pop()
                    self._emit(TokenKind.TEMPLATE_TAIL, i + 1, ''.join(chars))
                return
            if ch == '$' and code[i + 1:i + 2] == '{':
                if opening == '`':
                    self._templates.append([0, self.line, self.column()])
                    self._emit(TokenKind.TEMPLATE_HEAD, i + 2, ''.join(chars))
                else:
                    self._emit(TokenKind.TEMPLATE_MIDDLE, i + 2, ''.join(chars))
                return
            if ch == '\\':
                text, i = self._read_escape(i)
                chars.append(text)
                continue
            chars.append(ch)
            i += 1

        if opening == '`':
            line, column = self.line, self.column()
        else:
            _, line, column = self._templates.pop()
        self.diagnostics.error("unterminated template literal", line, column, "L003")
        self._emit(TokenKind.INVALID, self._line_end(self.pos))


def split_lines(source):
    """Split on every line terminator the lexer counts (CRLF, CR and LF)."""
    return _NEWLINE_RE.split(source)


def tokenize(source):
    return Lexer(source).tokenize()
