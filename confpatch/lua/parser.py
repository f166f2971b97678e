"""
Tree-sitter Lua parser — turns configuration source into a concrete syntax
tree and reports syntax diagnostics.

Uses the tree-sitter >= 0.22 API with the ``tree-sitter-lua`` grammar
package.  The grammar is loaded once into a :class:`LuaGrammar` handle that
callers create at startup and pass to every :class:`LuaParser`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import tree_sitter as ts
import tree_sitter_lua

from ..diagnostics import Diagnostic

logger = logging.getLogger(__name__)

# Control structures whose last child must be the `end` keyword
BLOCK_NODE_TYPES = frozenset({
    "if_statement",
    "for_statement",
    "while_statement",
    "function_declaration",
})

# Keywords that open one of the structures above
_BLOCK_KEYWORDS = frozenset({"if", "for", "while", "function"})


class LuaParseFailure(Exception):
    """Raised when Lua source cannot be parsed at all (grammar unavailable)."""


class LuaGrammar:
    """Process-wide tree-sitter Lua language handle.

    Construct once via :meth:`load`; ``initialized`` tells whether the
    grammar could be bound to the installed tree-sitter runtime.  The
    handle is never mutated afterwards.
    """

    def __init__(self, language: Optional[ts.Language] = None, error: str = "") -> None:
        self._language = language
        self._error = error

    @classmethod
    def load(cls) -> "LuaGrammar":
        try:
            language = ts.Language(tree_sitter_lua.language())
        except (TypeError, ValueError) as exc:
            # Raised on a tree-sitter / grammar ABI version mismatch
            logger.warning(
                "[Lua] Failed to initialize tree-sitter-lua (check tree-sitter "
                "and tree-sitter-lua versions): %s", exc,
            )
            return cls(None, str(exc))
        logger.debug("[Lua] tree-sitter-lua grammar initialized")
        return cls(language)

    @property
    def initialized(self) -> bool:
        return self._language is not None

    @property
    def language(self) -> Optional[ts.Language]:
        return self._language

    @property
    def error(self) -> str:
        return self._error


@dataclass
class ParsedSource:
    """A syntax tree together with the exact source it was built from."""
    source: str
    source_bytes: bytes
    tree: ts.Tree

    @property
    def root(self) -> ts.Node:
        return self.tree.root_node

    def slice(self, start: int, end: int) -> str:
        """Source text for the byte range [start, end)."""
        return self.source_bytes[start:end].decode("utf-8", errors="replace")

    def text(self, node: ts.Node) -> str:
        return self.slice(node.start_byte, node.end_byte)


class LuaParser:
    """Parse and syntax-check Lua configuration sources."""

    def __init__(self, grammar: LuaGrammar) -> None:
        self._grammar = grammar

    @property
    def initialized(self) -> bool:
        return self._grammar.initialized

    def parse(self, source: str) -> ParsedSource:
        """Parse *source* into a tree.

        Syntax errors do not fail parsing; they show up as ERROR and
        MISSING nodes in the tree.

        Raises
        ------
        LuaParseFailure
            When the grammar is not initialized or tree-sitter returns
            no tree.
        """
        if not self._grammar.initialized:
            raise LuaParseFailure(
                "Tree-sitter Lua grammar not initialized. Cannot parse Lua "
                f"source: {self._grammar.error or 'unknown error'}"
            )
        data = source.encode("utf-8")
        # Parser objects are cheap and not shared between calls
        parser = ts.Parser(self._grammar.language)
        tree = parser.parse(data)
        if tree is None:
            raise LuaParseFailure(
                f"Failed to parse Lua source (length: {len(data)} bytes)"
            )
        return ParsedSource(source=source, source_bytes=data, tree=tree)

    def validate_syntax(self, source: str) -> list[Diagnostic]:
        """Return syntax diagnostics for *source* (empty when clean)."""
        if not self._grammar.initialized:
            return [Diagnostic.error(
                "Tree-sitter Lua grammar not initialized. Cannot validate syntax.",
                code="parser_not_initialized",
            )]

        try:
            parsed = self.parse(source)
        except LuaParseFailure as exc:
            return [Diagnostic.error(
                f"Parse error: {exc}",
                byte_range=(0, len(source.encode("utf-8"))),
                code="parse_error",
            )]

        diagnostics: list[Diagnostic] = []
        size = len(parsed.source_bytes)
        if parsed.root.has_error:
            diagnostics.append(Diagnostic.error(
                f"Syntax error detected in Lua code (source length: {size} bytes)",
                byte_range=(0, size),
                code="syntax_error",
            ))

        diagnostics.extend(self._missing_ends(parsed.root))
        if diagnostics:
            logger.debug("[Lua] %d syntax diagnostic(s) for %d-byte source",
                         len(diagnostics), size)
        return diagnostics

    # ------------------------------------------------------------------
    # Missing `end` detection
    # ------------------------------------------------------------------

    def _missing_ends(self, root: ts.Node) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type in BLOCK_NODE_TYPES:
                if not _ends_with_end(node):
                    diagnostics.append(Diagnostic.error(
                        f"Missing 'end' for {node.type}",
                        byte_range=(node.start_byte, node.end_byte),
                        code="missing_end",
                    ))
            elif node.type == "ERROR":
                opener = _unclosed_opener(node)
                if opener is not None:
                    diagnostics.append(Diagnostic.error(
                        f"Missing 'end' for '{opener.type}' block",
                        byte_range=(opener.start_byte, node.end_byte),
                        code="missing_end",
                    ))
            # Pre-order: push children reversed so the first is visited first
            stack.extend(reversed(node.children))
        return diagnostics


def _ends_with_end(node: ts.Node) -> bool:
    """True when the last child is a real (not error-recovered) ``end``."""
    if node.child_count == 0:
        return False
    last = node.children[-1]
    return last.type == "end" and not last.is_missing


def _unclosed_opener(error_node: ts.Node) -> Optional[ts.Node]:
    """First block keyword in an ERROR node that has no matching ``end``."""
    openers = [
        child for child in error_node.children
        if child.type in _BLOCK_KEYWORDS and not child.is_missing
    ]
    ends = [
        child for child in error_node.children
        if child.type == "end" and not child.is_missing
    ]
    if len(openers) > len(ends):
        return openers[0]
    return None
