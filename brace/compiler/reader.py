"""
brace.compiler.reader - Reader for Brace source code

This module handles Phase 1 of compilation: reading source text into an
AbstractTree with a Position on every node and token.

The Parser walks the characters once, keeping a (line, column) cursor. Each
character is looked up in a dispatch table; characters without a handler are
plain and accumulate into Symbol (or Integer) tokens.

Handlers registered by parse():
- ' ', '\\t', '\\r': skipped
- '\\n': ends a line, unless inside (...)
- '(' ... ')': a call, read until the matching close paren
- '{' ... '}': a block (see read_block)
- ')' and '}': emit Flag tokens consumed by their opening counterpart

Top-level lines are separated by newlines. A line holding several
expressions becomes one Node: `print_number x` reads as (print_number x).
A line that is a single parenthesized form is that form, so
`(print_number x)` reads the same as `print_number x`.

Blocks come in two shapes:

    { print_number }            (block ((print_number)))

    { x y                       (block (x y) ((print_number x) (foo y)))
      print_number x
      foo y
    }

When the first line of a block ends with a newline it is the block's
parameter list; when it ends with the close brace it is the whole body.
"""

import logging
import re
from typing import Callable, Optional

from brace.compiler.errors import ParseError, Position
from brace.compiler.tree import (
    BLOCK,
    CLOSE_BRACE,
    CLOSE_PAREN,
    NEWLINE,
    AbstractTree,
    Node,
    Token,
    TokenKind,
    flag,
)
from brace.compiler.validator import walk

logger = logging.getLogger(__name__)

Handler = Callable[["Parser"], Optional[AbstractTree]]

INTEGER_PATTERN = re.compile(r"-?[0-9]+")

# Deepest nesting of ( and { accepted by parse()
MAX_NESTING = 100

# Context names used in "unexpected ... while reading ..." errors
TOP_LEVEL = "the top level"
OPEN_PAREN = "an open paren"
BLOCK_CONTEXT = "a block"


# =============================================================================
# Parser
# =============================================================================


class Parser:
    """
    Character-level recursive descent reader driven by a dispatch table.
    """

    def __init__(self, source: str):
        self.source = source
        self.index = 0
        self.line = 0
        self.column = 0
        self.table: dict[str, Handler] = {}
        # Whether a newline ends the expression list currently being read.
        # ( pushes False, { pushes True.
        self.newline_stack: list[bool] = [True]

    @property
    def position(self) -> Position:
        return Position(self.line, self.column)

    def read_as(self, key: str, handler: Handler) -> "Parser":
        """Register handler for the trigger character key."""
        self.table[key] = handler
        return self

    def at_eof(self) -> bool:
        return self.index >= len(self.source)

    def current_char(self) -> Optional[str]:
        if self.at_eof():
            return None
        return self.source[self.index]

    def advance_char(self) -> Optional[str]:
        """Consume one character, moving the cursor past it."""
        c = self.current_char()
        if c is None:
            return None
        self.index += 1
        if c == "\n":
            self.line += 1
            self.column = 0
        else:
            self.column += 1
        return c

    def current_reader(self) -> Optional[Handler]:
        c = self.current_char()
        if c is None:
            return None
        return self.table.get(c)

    def newlines_significant(self) -> bool:
        return self.newline_stack[-1]

    def enter(self, newlines: bool, start: Position) -> None:
        """Open a nested ( or { starting at start."""
        if len(self.newline_stack) > MAX_NESTING:
            raise ParseError("expression nested too deeply", start)
        self.newline_stack.append(newlines)

    def leave(self) -> None:
        self.newline_stack.pop()

    def parse_expression(self) -> Optional[AbstractTree]:
        """Read one item with the handler for the next character."""
        reader = self.current_reader() or default_parse
        return reader(self)

    def read_sequence(
        self, context: str, terminators: tuple[str, ...]
    ) -> tuple[list[AbstractTree], Optional[Token]]:
        """
        Read expressions until a Flag in terminators is seen.

        Returns the expressions and the terminating flag, or None as the flag
        when the input ran out first. Any other flag is an error.
        """
        items: list[AbstractTree] = []
        while not self.at_eof():
            tree = self.parse_expression()
            if tree is None:
                continue
            if isinstance(tree, Token) and tree.kind is TokenKind.FLAG:
                if tree.lexeme in terminators:
                    return items, tree
                raise ParseError(
                    f"unexpected {tree.describe()} while reading {context}",
                    tree.position,
                )
            items.append(tree)
        return items, None

    def read_lines(
        self, context: str, terminator: Optional[str]
    ) -> tuple[list[AbstractTree], Optional[Token]]:
        """
        Read newline separated lines, each becoming one form, until the
        terminator flag (or the end of input when terminator is None).
        Empty lines produce nothing.
        """
        terminators = (NEWLINE,) if terminator is None else (NEWLINE, terminator)
        lines: list[AbstractTree] = []
        while True:
            start = self.position
            items, end = self.read_sequence(context, terminators)
            if items:
                lines.append(line_node(items, start))
            if end is None or not end.is_flag(NEWLINE):
                return lines, end


# =============================================================================
# Handlers
# =============================================================================


def line_node(items: list[AbstractTree], start: Position) -> AbstractTree:
    """A line is one Node of its items, unless it is a single Node already."""
    if len(items) == 1 and items[0].is_node():
        return items[0]
    return Node(items, start)


def default_parse(parser: Parser) -> Optional[AbstractTree]:
    """Accumulate plain characters into a Symbol or Integer token."""
    start = parser.position
    chars = []
    while not parser.at_eof() and parser.current_reader() is None:
        chars.append(parser.advance_char())
    if not chars:
        return None
    lexeme = "".join(chars)
    if INTEGER_PATTERN.fullmatch(lexeme):
        return Token(TokenKind.INTEGER, lexeme, start)
    return Token(TokenKind.SYMBOL, lexeme, start)


def no_op(parser: Parser) -> Optional[AbstractTree]:
    parser.advance_char()
    return None


def newline(parser: Parser) -> Optional[AbstractTree]:
    start = parser.position
    parser.advance_char()
    if parser.newlines_significant():
        return flag(NEWLINE, start)
    return None


def close_paren(parser: Parser) -> Optional[AbstractTree]:
    start = parser.position
    parser.advance_char()
    return flag(CLOSE_PAREN, start)


def close_brace(parser: Parser) -> Optional[AbstractTree]:
    start = parser.position
    parser.advance_char()
    return flag(CLOSE_BRACE, start)


def open_paren(parser: Parser) -> Optional[AbstractTree]:
    start = parser.position
    parser.enter(False, start)
    parser.advance_char()
    try:
        items, end = parser.read_sequence(OPEN_PAREN, (CLOSE_PAREN,))
    finally:
        parser.leave()
    if end is None:
        raise ParseError("hit end of file while reading an open paren", start)
    return Node(items, start)


def read_block(parser: Parser) -> Optional[AbstractTree]:
    """
    Read { ... } into (block params? statements).

    The first line decides the shape: ended by a newline it holds the
    parameter names, ended by } it is the only statement.
    """
    start = parser.position
    parser.enter(True, start)
    parser.advance_char()
    try:
        first_start = parser.position
        first, end = parser.read_sequence(BLOCK_CONTEXT, (NEWLINE, CLOSE_BRACE))
        if end is None:
            raise ParseError("hit end of file while reading a block", start)

        head = Token(TokenKind.SYMBOL, BLOCK, start)
        if end.is_flag(CLOSE_BRACE):
            statements = [line_node(first, first_start)] if first else []
            return Node([head, Node(statements, first_start)], start)

        params = Node(first, first_start)
        body_start = parser.position
        statements, end = parser.read_lines(BLOCK_CONTEXT, CLOSE_BRACE)
        if end is None:
            raise ParseError("hit end of file while reading a block", start)
        return Node([head, params, Node(statements, body_start)], start)
    finally:
        parser.leave()


# =============================================================================
# Entry Point
# =============================================================================


def make_parser(source: str) -> Parser:
    """A Parser with the standard Brace dispatch table."""
    return (
        Parser(source)
        .read_as(" ", no_op)
        .read_as("\t", no_op)
        .read_as("\r", no_op)
        .read_as("\n", newline)
        .read_as("(", open_paren)
        .read_as(")", close_paren)
        .read_as("{", read_block)
        .read_as("}", close_brace)
    )


def _reject_flags(tree: AbstractTree) -> None:
    if tree.is_flag():
        raise TypeError(f"reader left {tree!r} in a finished tree")


def parse(source: str) -> Optional[Node]:
    """
    Phase 1: Read - parse source into a root Node of top-level lines.

    Returns None for empty input. Raises ParseError on structural problems.
    """
    if not source:
        return None
    parser = make_parser(source)
    lines, _ = parser.read_lines(TOP_LEVEL, None)
    root = Node(lines, Position(0, 0))
    walk(root, _reject_flags)
    logger.debug("read %d top-level forms over %d lines", len(lines), parser.line + 1)
    return root


__all__ = [
    "Parser",
    "Handler",
    "MAX_NESTING",
    "make_parser",
    "parse",
    "default_parse",
    "no_op",
    "newline",
    "open_paren",
    "close_paren",
    "read_block",
    "close_brace",
]
