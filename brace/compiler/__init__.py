"""
brace.compiler - The Brace Compiler Toolchain

This package compiles Brace source code to LLVM-style textual IR.

Phases:
1. Read (reader.py): Text -> AbstractTree
2. Validate (validator.py): Check the shape of special forms
3. Lower (codegen.py): AbstractTree -> IR lines
"""

import logging
from typing import TYPE_CHECKING, Optional

from brace.compiler.codegen import (
    Assignee,
    Backend,
    Lowered,
    compile_block,
    compile_define,
    default_backend,
    render_preamble,
)
from brace.compiler.errors import (
    CompileError,
    LoweringError,
    ParseError,
    Position,
    ValidationError,
)
from brace.compiler.reader import Parser, make_parser, parse
from brace.compiler.tree import AbstractTree, Node, Token, TokenKind
from brace.compiler.validator import (
    assert_only_top_level,
    match_symbol,
    validate,
    walk,
)

if TYPE_CHECKING:
    from brace.config import CompilerConfig

logger = logging.getLogger(__name__)


def compile_source(source: str, config: Optional["CompilerConfig"] = None) -> list[str]:
    """
    Process Brace source through all compilation phases.
    Returns the IR lines, starting with the configured preamble.
    """
    preamble = config.preamble() if config is not None else render_preamble()
    # Phase 1: Read
    tree = parse(source)
    if tree is None:
        return preamble
    # Phase 2: Validate
    validate(tree)
    # Phase 3: Lower
    ir = default_backend(preamble).compile(tree)
    logger.debug("compiled %d forms into %d lines", len(tree.children), len(ir))
    return ir


__all__ = [
    "compile_source",
    # Reader
    "Parser",
    "make_parser",
    "parse",
    # Tree
    "AbstractTree",
    "Node",
    "Token",
    "TokenKind",
    # Validator
    "walk",
    "match_symbol",
    "assert_only_top_level",
    "validate",
    # Codegen
    "Assignee",
    "Backend",
    "Lowered",
    "compile_define",
    "compile_block",
    "default_backend",
    "render_preamble",
    # Errors
    "Position",
    "CompileError",
    "ParseError",
    "ValidationError",
    "LoweringError",
]
