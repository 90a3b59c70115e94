"""
diagnostics.py
Diagnostic records shared by every analysis phase.

Each phase owns one DiagnosticCollector for the duration of a run and hands
its frozen contents back in the phase result. Nothing here is global.
"""

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Phase(str, Enum):
    LEXICAL = "lexical"
    SYNTACTIC = "syntactic"
    SEMANTIC = "semantic"


class InternalCompilerError(Exception):
    """Raised when a stage reaches a state its own invariants rule out."""


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    phase: Phase
    message: str
    line: int
    column: int
    code: str

    @property
    def is_error(self):
        return self.severity is Severity.ERROR

    def __str__(self):
        return (f"{self.severity.value} [{self.code}] (line {self.line}, "
                f"column {self.column}): {self.message}")

    def to_dict(self):
        return {
            "severity": self.severity.value,
            "phase": self.phase.value,
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "code": self.code,
        }


class DiagnosticCollector:
    """Ordered accumulator for the diagnostics of a single phase."""

    def __init__(self, phase):
        self.phase = phase
        self._items = []

    def error(self, message, line, column, code):
        self._items.append(Diagnostic(Severity.ERROR, self.phase, message, line, column, code))

    def warning(self, message, line, column, code):
        self._items.append(Diagnostic(Severity.WARNING, self.phase, message, line, column, code))

    @property
    def error_count(self):
        return sum(1 for d in self._items if d.severity is Severity.ERROR)

    @property
    def warning_count(self):
        return sum(1 for d in self._items if d.severity is Severity.WARNING)

    def __len__(self):
        return len(self._items)

    def freeze(self):
        return tuple(self._items)


def format_diagnostics(diagnostics, empty_message):
    if not diagnostics:
        return [empty_message]
    return [f"  {d}" for d in diagnostics]
