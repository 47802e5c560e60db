"""
brace.compiler.tree - The abstract tree produced by the reader

An AbstractTree is either:
- Token: a leaf holding a lexeme (Symbol, Integer or the reader-internal Flag)
- Node: an ordered list of sub-trees

Every tree carries the Position it was read from. A Node's name is the
lexeme of its first child, which must be a Symbol; every meaningful form in
Brace is a call or special form headed by an identifier.

The shape checks (check_length, check_min_length, check_argument_block) live
here next to the accessors they use and raise ValidationError.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from brace.compiler.errors import Position, ValidationError


class TokenKind(Enum):
    SYMBOL = "symbol"
    INTEGER = "integer"
    # Delimiter markers handed between reader handlers. Never part of a
    # finished tree.
    FLAG = "flag"


# Lexemes carried by Flag tokens
CLOSE_PAREN = ")"
CLOSE_BRACE = "}"
NEWLINE = "\n"

FLAG_NAMES = {
    CLOSE_PAREN: "close paren",
    CLOSE_BRACE: "close brace",
    NEWLINE: "newline",
}

BLOCK = "block"


class AbstractTree:
    """Common base of Node and Token."""

    position: Position

    def is_node(self) -> bool:
        return isinstance(self, Node)

    def is_token(self) -> bool:
        return isinstance(self, Token)

    def is_symbol(self, name: Optional[str] = None) -> bool:
        return False

    def is_flag(self, lexeme: Optional[str] = None) -> bool:
        return False

    def head(self) -> Optional[str]:
        """The form's name, or None when it has none."""
        return None

    def to_sexp(self) -> str:
        raise NotImplementedError


@dataclass
class Token(AbstractTree):
    kind: TokenKind
    lexeme: str
    position: Position = field(default_factory=Position)

    def __repr__(self):
        return f"Token({self.kind.value} {self.lexeme!r} @ {self.position.line}:{self.position.column})"

    def is_symbol(self, name: Optional[str] = None) -> bool:
        if self.kind is not TokenKind.SYMBOL:
            return False
        return name is None or self.lexeme == name

    def is_flag(self, lexeme: Optional[str] = None) -> bool:
        if self.kind is not TokenKind.FLAG:
            return False
        return lexeme is None or self.lexeme == lexeme

    def describe(self) -> str:
        """Human readable name, used in error messages."""
        if self.kind is TokenKind.FLAG:
            return FLAG_NAMES.get(self.lexeme, repr(self.lexeme))
        return f"{self.kind.value} {self.lexeme}"

    @property
    def name(self) -> str:
        raise TypeError(f"name called on token {self.lexeme!r}, not a node")

    def argument(self, i: int) -> AbstractTree:
        raise TypeError(f"argument called on token {self.lexeme!r}, not a node")

    def arguments(self) -> list[AbstractTree]:
        raise TypeError(f"arguments called on token {self.lexeme!r}, not a node")

    def check_length(self, n: int) -> None:
        raise TypeError(f"check_length called on token {self.lexeme!r}, not a node")

    def check_min_length(self, n: int) -> None:
        raise TypeError(
            f"check_min_length called on token {self.lexeme!r}, not a node"
        )

    def check_argument_block(self, i: int) -> None:
        raise TypeError(
            f"check_argument_block called on token {self.lexeme!r}, not a node"
        )

    def to_sexp(self) -> str:
        if self.kind is TokenKind.FLAG:
            return f"<{self.describe()}>"
        return self.lexeme


@dataclass
class Node(AbstractTree):
    children: list[AbstractTree] = field(default_factory=list)
    position: Position = field(default_factory=Position)

    def __repr__(self):
        return f"Node({self.children!r} @ {self.position.line}:{self.position.column})"

    def head(self) -> Optional[str]:
        if self.children and self.children[0].is_symbol():
            return self.children[0].lexeme  # type: ignore[attr-defined]
        return None

    @property
    def name(self) -> str:
        """The lexeme of the leading Symbol. Anything else is a compiler bug."""
        name = self.head()
        if name is None:
            raise TypeError(f"node at {self.position} is not headed by a symbol")
        return name

    def argument(self, i: int) -> AbstractTree:
        """Child i; argument 0 is the form's own name."""
        return self.children[i]

    def arguments(self) -> list[AbstractTree]:
        """Every child after the form's name."""
        return self.children[1:]

    def check_length(self, n: int) -> None:
        if len(self.children) != n:
            raise ValidationError(
                f"{self.name} takes {n - 1} arguments", self.position
            )

    def check_min_length(self, n: int) -> None:
        if len(self.children) < n:
            raise ValidationError(
                f"{self.name} takes {n - 1} arguments", self.position
            )

    def check_argument_block(self, i: int) -> None:
        """Argument i must be (block ... (statements))."""
        argument = self.children[i] if i < len(self.children) else None
        if (
            argument is None
            or not argument.is_node()
            or len(argument.children) < 2  # type: ignore[attr-defined]
            or not argument.children[0].is_symbol(BLOCK)  # type: ignore[attr-defined]
            or not argument.children[-1].is_node()  # type: ignore[attr-defined]
        ):
            position = argument.position if argument is not None else self.position
            raise ValidationError(
                f"{self.name} expects a block for its {i}th argument", position
            )

    def to_sexp(self) -> str:
        return "(" + " ".join(child.to_sexp() for child in self.children) + ")"


def symbol(lexeme: str, line: int = 0, column: int = 0) -> Token:
    return Token(TokenKind.SYMBOL, lexeme, Position(line, column))


def integer(lexeme: str, line: int = 0, column: int = 0) -> Token:
    return Token(TokenKind.INTEGER, lexeme, Position(line, column))


def flag(lexeme: str, position: Position) -> Token:
    return Token(TokenKind.FLAG, lexeme, position)


__all__ = [
    "TokenKind",
    "AbstractTree",
    "Token",
    "Node",
    "BLOCK",
    "CLOSE_PAREN",
    "CLOSE_BRACE",
    "NEWLINE",
    "symbol",
    "integer",
    "flag",
]
