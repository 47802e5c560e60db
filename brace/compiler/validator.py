"""
brace.compiler.validator - Structural checks over the abstract tree

This module handles Phase 2 of compilation: making sure every special form
has the shape code generation expects before any IR is produced.

All traversal goes through walk(), a pre-order visit of every sub-tree.
Checks are visitors that raise; the first ValidationError aborts the walk.
The same traversal backs match_symbol(), which calls a function on every
node headed by a given symbol.
"""

import logging
from typing import Callable

from brace.compiler.errors import ValidationError
from brace.compiler.tree import BLOCK, AbstractTree, Node

logger = logging.getLogger(__name__)

DEFINE = "define"


def walk(tree: AbstractTree, visit: Callable[[AbstractTree], None]) -> None:
    """Call visit on tree and then on each of its sub-trees, depth first."""
    visit(tree)
    if isinstance(tree, Node):
        # visit may rewrite children in place
        for child in list(tree.children):
            walk(child, visit)


def match_symbol(tree: AbstractTree, name: str, f: Callable[[Node], None]) -> None:
    """Call f on every node headed by the symbol name, parents first."""

    def visit(subtree: AbstractTree) -> None:
        if isinstance(subtree, Node) and subtree.head() == name:
            f(subtree)

    walk(tree, visit)


def assert_only_top_level(tree: AbstractTree, name: str) -> None:
    """
    Reject any use of the form name that is not a top-level form.

    Top-level forms are the root's children; their own children are the
    form's arguments. Anything deeper than that is nested in a body.
    """

    def fail(node: Node) -> None:
        raise ValidationError(
            f"{name} was invoked without being on the top level", node.position
        )

    if not isinstance(tree, Node):
        return
    for form in tree.children:
        if not isinstance(form, Node):
            continue
        for argument in form.children:
            match_symbol(argument, name, fail)


# =============================================================================
# Form Rules
# =============================================================================


def check_define(node: Node) -> None:
    """(define name (block ...))"""
    node.check_length(3)
    if not node.argument(1).is_symbol():
        raise ValidationError(
            f"{node.name} expects a name for its 1th argument",
            node.argument(1).position,
        )
    node.check_argument_block(2)


def check_block(node: Node) -> None:
    """(block (params...) (statements...)) or (block (statements...))"""
    node.check_min_length(2)
    if len(node.children) == 3:
        params = node.argument(1)
        if not isinstance(params, Node):
            raise ValidationError("block parameters must be symbols", params.position)
        seen = set()
        for param in params.children:
            if not param.is_symbol():
                raise ValidationError(
                    "block parameters must be symbols", param.position
                )
            if param.lexeme in seen:  # type: ignore[attr-defined]
                raise ValidationError(
                    f"block parameter {param.lexeme} is declared twice",  # type: ignore[attr-defined]
                    param.position,
                )
            seen.add(param.lexeme)  # type: ignore[attr-defined]
    elif len(node.children) > 3:
        raise ValidationError(f"{node.name} takes at most 2 arguments", node.position)


FORM_RULES: dict[str, Callable[[Node], None]] = {
    DEFINE: check_define,
    BLOCK: check_block,
}


def validate(tree: AbstractTree) -> AbstractTree:
    """
    Phase 2: Validate - run every form rule over tree.

    Returns tree unchanged so the call can be chained. Validating a valid
    tree again always succeeds.
    """
    assert_only_top_level(tree, DEFINE)
    for name, rule in FORM_RULES.items():
        logger.debug("checking %s forms", name)
        match_symbol(tree, name, rule)
    return tree


__all__ = [
    "walk",
    "match_symbol",
    "assert_only_top_level",
    "check_define",
    "check_block",
    "FORM_RULES",
    "validate",
    "DEFINE",
]
