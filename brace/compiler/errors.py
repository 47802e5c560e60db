"""
brace.compiler.errors - Source positions and compilation errors

Every error raised by the compiler carries exactly one Position: the site
nearest the detected problem. The three subclasses follow the stages of the
pipeline:

- ParseError: unmatched delimiters, end of input inside an open construct
- ValidationError: wrong argument counts, malformed blocks, misplaced forms
- LoweringError: unsupported call shapes found during code generation

Defects in the compiler itself (e.g. asking a Token for its arguments) are
not CompileErrors; they raise TypeError and should never be caught.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """A zero-based (line, column) location in the source text."""

    line: int = 0
    column: int = 0

    def __str__(self):
        return f"line {self.line}, column {self.column}"

    def __repr__(self):
        return f"Position({self.line}:{self.column})"


class CompileError(Exception):
    """Base class for errors caused by the program being compiled."""

    def __init__(self, description: str, position: Position):
        super().__init__(description)
        self.description = description
        self.position = position

    def report(self) -> str:
        """Render the two-line report shown to users."""
        return f"compilation error at {self.position}\n{self.description}"

    def __repr__(self):
        return f"{type(self).__name__}({self.description!r}, {self.position!r})"


class ParseError(CompileError):
    """Raised by the reader for lexical and structural problems."""


class ValidationError(CompileError):
    """Raised when a form has the wrong shape or arity."""


class LoweringError(CompileError):
    """Raised when a validated tree cannot be turned into IR."""


__all__ = [
    "Position",
    "CompileError",
    "ParseError",
    "ValidationError",
    "LoweringError",
]
