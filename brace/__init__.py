"""
Brace - a minimal Lisp-like language compiled to LLVM-style IR.

    define start { x
        print_number x
    }

The only special form is `define`, whose body is a `{ ... }` block.
"""

from brace.compiler import (
    CompileError,
    LoweringError,
    ParseError,
    Position,
    ValidationError,
    compile_source,
    parse,
    validate,
)
from brace.config import CompilerConfig

__version__ = "0.1.0"

__all__ = [
    "compile_source",
    "parse",
    "validate",
    "CompilerConfig",
    "Position",
    "CompileError",
    "ParseError",
    "ValidationError",
    "LoweringError",
]
