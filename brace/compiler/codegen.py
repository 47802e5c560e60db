"""
brace.compiler.codegen - Code generation (AbstractTree -> IR lines)

This module handles Phase 3 of compilation: lowering a validated tree into
LLVM-style textual IR, one instruction per line.

Every value lives in a two-word %object record. Each lowering step returns a
Lowered pair: the IR lines it emitted and the name of the temporary holding
its value. Temporaries are numbered from named counters (%ret1, %ret2, ...)
so no name is assigned twice within a function; locals live in stack slots
(%x.1) that are stored once on entry and loaded on every use, so no phi
nodes are needed.

Local names come in three shapes:

    %ret<N>        temporaries (no dot)
    %<name>.<N>    stack slot of a local
    %<name>.arg    incoming parameter

The last dot-separated part tells the three apart, so a parameter called
ret1 or x.1 cannot clash with a generated name.

Special forms are looked up by name in Backend.handlers; anything else is a
function call or a literal.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

from brace.compiler.errors import LoweringError
from brace.compiler.tree import BLOCK, AbstractTree, Node, Token, TokenKind
from brace.compiler.validator import DEFINE

logger = logging.getLogger(__name__)

# =============================================================================
# IR Vocabulary
# =============================================================================

DEFAULT_DATA_LAYOUT = "e-m:e-i64:64-f80:128-n8:16:32:64-S128"
OBJECT = "%object"
OBJECT_TYPE = "{ i64, i64 }"
DEFAULT_EXTERNS = {"print_number": 1}

RET = "ret"
PARAMETER_SUFFIX = "arg"
INDENT = "  "

_BARE_IDENTIFIER = re.compile(r"[-a-zA-Z$._][-a-zA-Z$._0-9]*")


def ir_name(sigil: str, name: str) -> str:
    """Spell name as an IR identifier, quoting it when needed."""
    if _BARE_IDENTIFIER.fullmatch(name):
        return f"{sigil}{name}"
    escaped = name.replace("\\", "\\5C").replace('"', "\\22")
    return f'{sigil}"{escaped}"'


def render_preamble(
    data_layout: str = DEFAULT_DATA_LAYOUT,
    externs: Optional[dict[str, int]] = None,
) -> list[str]:
    """The declaration lines emitted ahead of any generated code."""
    if externs is None:
        externs = DEFAULT_EXTERNS
    lines = [
        f'target datalayout = "{data_layout}"',
        f"{OBJECT} = type {OBJECT_TYPE}",
    ]
    for name, arity in externs.items():
        params = ", ".join([OBJECT] * arity)
        lines.append(f"declare {OBJECT} {ir_name('@', name)}({params})")
    return lines


# =============================================================================
# Backend State
# =============================================================================


@dataclass
class Assignee:
    """A local variable declared in one scope frame, backed by a stack slot."""

    name: str
    version: int

    @property
    def slot(self) -> str:
        return ir_name("%", f"{self.name}.{self.version}")

    @property
    def incoming(self) -> str:
        """The function parameter the slot is initialised from."""
        return ir_name("%", f"{self.name}.{PARAMETER_SUFFIX}")


class Lowered(NamedTuple):
    """IR emitted for a tree, and the temporary that holds its value."""

    ir: list[str]
    result: Optional[str]


SpecialForm = Callable[["Backend", Node], Lowered]


class Backend:
    """
    Lowers a validated tree into IR lines.

    State is owned by one compilation: the special form registry, the scope
    stack of local variables and the named counters used for temporaries.
    """

    def __init__(self, preamble: Optional[list[str]] = None):
        self.preamble = list(preamble) if preamble is not None else render_preamble()
        self.handlers: dict[str, SpecialForm] = {}
        self.scopes: list[dict[str, Assignee]] = []
        self.counters: dict[str, int] = {}
        self._saved_counters: list[dict[str, int]] = []

    def handle(self, name: str, handler: SpecialForm) -> "Backend":
        """Register handler as the lowering of forms headed by name."""
        self.handlers[name] = handler
        return self

    # --- counters ---

    def next_value(self, counter: str = RET) -> int:
        value = self.counters.get(counter, 0) + 1
        self.counters[counter] = value
        return value

    def current_value(self, counter: str = RET) -> int:
        return self.counters.get(counter, 0)

    def temporary(self) -> str:
        """A fresh temporary name."""
        return f"%{RET}{self.next_value(RET)}"

    # --- scopes ---

    def push_scope(self) -> None:
        self.scopes.append({})

    def pop_scope(self) -> list[Assignee]:
        """Drop the innermost frame, returning the locals it declared."""
        return list(self.scopes.pop().values())

    def bind(self, name: str) -> Assignee:
        """Declare name in the innermost frame."""
        if not self.scopes:
            raise TypeError(f"cannot bind {name!r} outside of a scope")
        local = Assignee(name, self.next_value(f"local {name}"))
        self.scopes[-1][name] = local
        return local

    def lookup(self, name: str) -> Optional[Assignee]:
        """The innermost local called name, if any."""
        for frame in reversed(self.scopes):
            if name in frame:
                return frame[name]
        return None

    def start_function(self) -> None:
        """Enter a function body: new frame, fresh counters."""
        self.push_scope()
        self._saved_counters.append(self.counters)
        self.counters = {}

    def end_function(self) -> list[Assignee]:
        self.counters = self._saved_counters.pop()
        return self.pop_scope()

    # --- lowering ---

    def compile(self, tree: AbstractTree) -> list[str]:
        """Lower every top-level form of the root node, after the preamble."""
        if not isinstance(tree, Node):
            raise TypeError("compile must be called on the root node")
        ir = list(self.preamble)
        for form in tree.children:
            ir.extend(self.compile_inner(form).ir)
        return ir

    def compile_inner(self, tree: AbstractTree) -> Lowered:
        name = tree.head()
        if name is not None and name in self.handlers:
            return self.handlers[name](self, tree)  # type: ignore[arg-type]
        if isinstance(tree, Node):
            return self.compile_function_call(tree)
        return self.compile_token(tree)  # type: ignore[arg-type]

    def compile_value(self, tree: AbstractTree) -> Lowered:
        """Like compile_inner, for trees whose value is used."""
        lowered = self.compile_inner(tree)
        if lowered.result is None:
            raise LoweringError(
                f"{tree.to_sexp()} does not produce a value", tree.position
            )
        return lowered

    def compile_function_call(self, node: Node) -> Lowered:
        children = node.children
        if not children:
            raise LoweringError("node with zero items", node.position)
        if len(children) == 1:
            return self.compile_inner(children[0])

        callee = children[0]
        if isinstance(callee, Node):
            raise LoweringError(
                "calling a computed expression is not yet supported",
                callee.position,
            )
        assert isinstance(callee, Token)
        if not callee.is_symbol():
            raise LoweringError(
                f"cannot call token {callee.lexeme} of type {callee.kind.value}",
                callee.position,
            )

        ir: list[str] = []
        arguments = []
        for argument in children[1:]:
            lowered = self.compile_value(argument)
            ir.extend(lowered.ir)
            arguments.append(f"{OBJECT} {lowered.result}")
        result = self.temporary()
        ir.append(
            f"{result} = call {OBJECT} {ir_name('@', callee.lexeme)}({', '.join(arguments)})"
        )
        return Lowered(ir, result)

    def compile_token(self, token: Token) -> Lowered:
        if token.kind is TokenKind.INTEGER:
            result = self.temporary()
            return Lowered(
                [f"{result} = insertvalue {OBJECT} zeroinitializer, i64 {token.lexeme}, 1"],
                result,
            )
        if token.kind is TokenKind.SYMBOL:
            local = self.lookup(token.lexeme)
            result = self.temporary()
            if local is not None:
                return Lowered(
                    [f"{result} = load {OBJECT}, {OBJECT}* {local.slot}"], result
                )
            # A bare name is a call with no arguments
            return Lowered(
                [f"{result} = call {OBJECT} {ir_name('@', token.lexeme)}()"], result
            )
        raise TypeError(f"compile_token called on {token!r}")


# =============================================================================
# Special Forms
# =============================================================================


def compile_define(backend: Backend, node: Node) -> Lowered:
    """
    (define name (block (params...) (statements...)))

    Parameters are copied into stack slots on entry. The function returns
    the value of its last statement.
    """
    name = node.argument(1)
    block = node.children[-1]
    assert isinstance(name, Token) and isinstance(block, Node)
    params = block.children[1].children if len(block.children) == 3 else []  # type: ignore[attr-defined]
    statements = block.children[-1].children  # type: ignore[attr-defined]

    body: list[str] = []
    incoming: list[str] = []
    backend.start_function()
    try:
        for param in params:
            local = backend.bind(param.lexeme)  # type: ignore[attr-defined]
            incoming.append(f"{OBJECT} {local.incoming}")
            body.append(f"store {OBJECT} {local.incoming}, {OBJECT}* {local.slot}")
        result = None
        for statement in statements:
            lowered = backend.compile_inner(statement)
            body.extend(lowered.ir)
            result = lowered.result
        body.append(f"ret {OBJECT} {result or 'zeroinitializer'}")
    finally:
        locals_ = backend.end_function()

    # Slots are declared once every local is known, ahead of their first use
    declarations = [f"{local.slot} = alloca {OBJECT}" for local in locals_]
    logger.debug(
        "compiled %s: %d params, %d statements", name.lexeme, len(params), len(statements)
    )
    return Lowered(
        [f"define {OBJECT} {ir_name('@', name.lexeme)}({', '.join(incoming)}) {{"]
        + [INDENT + line for line in declarations + body]
        + ["}"],
        None,
    )


def compile_block(backend: Backend, node: Node) -> Lowered:
    raise LoweringError(
        f"{BLOCK} can only be used as the body of a {DEFINE}", node.position
    )


def default_backend(preamble: Optional[list[str]] = None) -> Backend:
    """A Backend with the standard special forms registered."""
    return Backend(preamble).handle(DEFINE, compile_define).handle(BLOCK, compile_block)


__all__ = [
    "Assignee",
    "Lowered",
    "SpecialForm",
    "Backend",
    "compile_define",
    "compile_block",
    "default_backend",
    "render_preamble",
    "ir_name",
    "DEFAULT_DATA_LAYOUT",
    "DEFAULT_EXTERNS",
    "OBJECT",
]
