#!/usr/bin/env python3
"""
compiler.py
Pipeline driver: lexer -> parser -> semantic analysis -> quadruples -> optimizer.

Every call to ``analyze_source`` builds fresh state for every stage, so runs
are independent of each other. Problems in the analysed program come back as
diagnostics; only an internal fault raises.

Run directly to analyse a file (or the built-in sample) and print the reports:

    python compiler.py [path/to/file.js]
"""

import logging
import sys
from collections import Counter
from dataclasses import dataclass

from diagnostics import format_diagnostics
from js_ast import format_tree
from js_parser import parse
from lexer import split_lines, tokenize
from optimizer import optimize
from quadruples import format_quadruples, generate, program_names
from semantic import analyze

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisStats:
    lexical_errors: int
    syntax_errors: int
    semantic_errors: int
    warnings: int
    lines_of_code: int
    tokens: int
    characters: int

    def to_dict(self):
        return {
            "lexicalErrors": self.lexical_errors,
            "syntaxErrors": self.syntax_errors,
            "semanticErrors": self.semantic_errors,
            "warnings": self.warnings,
            "linesOfCode": self.lines_of_code,
            "tokens": self.tokens,
            "characters": self.characters,
        }


@dataclass(frozen=True)
class AnalysisResult:
    source: str
    tokens: tuple
    tree: object
    lexical_diagnostics: tuple
    syntax_diagnostics: tuple
    semantic: object  # semantic.SemanticResult
    quadruples: tuple
    optimized: tuple
    stats: AnalysisStats
    lexical_report: str
    syntactic_report: str
    semantic_report: str

    @property
    def diagnostics(self):
        return self.lexical_diagnostics + self.syntax_diagnostics + self.semantic.diagnostics

    @property
    def errors(self):
        return [str(d) for d in self.diagnostics if d.is_error]

    def to_dict(self):
        return {
            "lexical": self.lexical_report,
            "syntactic": self.syntactic_report,
            "semantic": self.semantic_report,
            "intermediate": [q.to_dict() for q in self.quadruples],
            "optimized": [q.to_dict() for q in self.optimized],
            "stats": self.stats.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "errors": self.errors,
        }


def count_lines(code):
    return len(split_lines(code)) if code else 0


# =====================================================
# REPORTS
# =====================================================
def lexical_report(tokens, diagnostics):
    lines = ["LEXICAL ANALYSIS", f"Tokens: {len(tokens)}"]
    by_kind = Counter(tok.kind.value for tok in tokens)
    for kind, count in sorted(by_kind.items()):
        lines.append(f"  {kind}: {count}")
    if tokens:
        lines.append("Token stream:")
        for tok in tokens:
            lines.append(f"  {tok.line}:{tok.column:<6}{tok.kind.value:<16}{tok.lexeme}")
    errors = sum(1 for d in diagnostics if d.is_error)
    lines.append(f"Lexical errors: {errors}")
    lines.extend(format_diagnostics(diagnostics, "  No lexical errors found."))
    return "\n".join(lines)


def syntactic_report(tree, diagnostics):
    lines = ["SYNTAX ANALYSIS", f"Top-level statements: {len(tree.body)}", "Syntax tree:"]
    lines.extend("  " + line for line in format_tree(tree))
    errors = sum(1 for d in diagnostics if d.is_error)
    lines.append(f"Syntax errors: {errors}")
    lines.extend(format_diagnostics(diagnostics, "  No syntax errors found."))
    return "\n".join(lines)


def semantic_report(result):
    lines = ["SEMANTIC ANALYSIS", "Scopes:"]
    lines.extend("  " + scope.describe() for scope in result.scopes)
    lines.append(f"Errors: {result.error_count}  Warnings: {result.warning_count}")
    lines.extend(format_diagnostics(result.diagnostics, "  No semantic problems found."))
    return "\n".join(lines)


# =====================================================
# DRIVER
# =====================================================
def analyze_source(code):
    lexed = tokenize(code)
    parsed = parse(lexed.tokens)
    checked = analyze(parsed.tree)

    lexical_errors = sum(1 for d in lexed.diagnostics if d.is_error)
    syntax_errors = sum(1 for d in parsed.diagnostics if d.is_error)

    if syntax_errors == 0:
        quads = generate(parsed.tree)
        optimized = optimize(quads, program_names(parsed.tree))
    else:
        quads = optimized = ()

    stats = AnalysisStats(
        lexical_errors=lexical_errors,
        syntax_errors=syntax_errors,
        semantic_errors=checked.error_count,
        warnings=checked.warning_count,
        lines_of_code=count_lines(code),
        tokens=len(lexed.tokens),
        characters=len(code),
    )
    log.info("analysed %d chars: %d lexical, %d syntax, %d semantic errors, %d warnings, "
             "%d -> %d quadruples", stats.characters, lexical_errors, syntax_errors,
             checked.error_count, checked.warning_count, len(quads), len(optimized))

    return AnalysisResult(
        source=code,
        tokens=lexed.tokens,
        tree=parsed.tree,
        lexical_diagnostics=lexed.diagnostics,
        syntax_diagnostics=parsed.diagnostics,
        semantic=checked,
        quadruples=quads,
        optimized=optimized,
        stats=stats,
        lexical_report=lexical_report(lexed.tokens, lexed.diagnostics),
        syntactic_report=syntactic_report(parsed.tree, parsed.diagnostics),
        semantic_report=semantic_report(checked),
    )


# =====================================================
# SAMPLE PROGRAM
# =====================================================
SAMPLE_PROGRAM = r'''class Calculator {
  constructor() {
    this.history = [];
    this.precision = 2;
  }

  add(a, b) {
    const result = a + b;
    this.history.push(`${a} + ${b} = ${result}`);
    return parseFloat(result.toFixed(this.precision));
  }

  divide(a, b) {
    if (b === 0) {
      console.warn("División por cero detectada");
      return Infinity;
    }
    return a / b;
  }
}

const calc = new Calculator();
const sum = calc.add(10, 5);
const division = calc.divide(10, 0);

console.log(undeclaredVariable);'''


def main(argv):
    if len(argv) > 1:
        with open(argv[1], encoding="utf-8") as fh:
            code = fh.read()
    else:
        code = SAMPLE_PROGRAM
    result = analyze_source(code)
    print(result.lexical_report, end="\n\n")
    print(result.syntactic_report, end="\n\n")
    print(result.semantic_report, end="\n\n")
    print("INTERMEDIATE CODE")
    print("\n".join(format_quadruples(result.quadruples)), end="\n\n")
    print("OPTIMIZED CODE")
    print("\n".join(format_quadruples(result.optimized)))
    return 1 if result.errors else 0


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(levelname)s:%(name)s:%(lineno)d: %(message)s')
    sys.exit(main(sys.argv))
