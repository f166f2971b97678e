"""
Structural extractor — recovers named declarations (functions and
key/value assignments) with their byte ranges from a parsed Lua tree.
"""

from __future__ import annotations

from dataclasses import dataclass

import tree_sitter as ts

from .parser import ParsedSource

_NAME_NODE_TYPES = frozenset({
    "identifier",
    "dot_index_expression",
    "method_index_expression",
})

# Top-level nodes the merge can skip without losing a declaration
_IGNORABLE_TOP_LEVEL = frozenset({"comment", "hash_bang_line", "empty_statement"})


@dataclass(frozen=True)
class FunctionInfo:
    """A function declaration and its byte range in the source."""
    name: str
    byte_range: tuple[int, int]


@dataclass(frozen=True)
class TableAssignment:
    """A top-level assignment such as ``vim.opt.tabstop = 4``."""
    key: str
    value: str
    byte_range: tuple[int, int]


def extract_functions(parsed: ParsedSource, top_level_only: bool = False) -> list[FunctionInfo]:
    """Return function declarations in source order.

    With *top_level_only* only direct children of the chunk are returned;
    otherwise nested declarations are included too.
    """
    if top_level_only:
        candidates = [n for n in parsed.root.children if n.type == "function_declaration"]
    else:
        candidates = []
        stack = [parsed.root]
        while stack:
            node = stack.pop()
            if node.type == "function_declaration":
                candidates.append(node)
            stack.extend(reversed(node.children))

    functions: list[FunctionInfo] = []
    for node in candidates:
        if node.start_byte > node.end_byte:
            continue
        functions.append(FunctionInfo(
            name=_function_name(node, parsed),
            byte_range=(node.start_byte, node.end_byte),
        ))
    return functions


def extract_assignments(parsed: ParsedSource) -> list[TableAssignment]:
    """Return top-level assignments (global and ``local``) in source order."""
    assignments: list[TableAssignment] = []
    for node in parsed.root.children:
        assignment = _as_assignment(node, parsed)
        if assignment is not None:
            assignments.append(assignment)
    return assignments


def unrecognized_statements(parsed: ParsedSource) -> list[ts.Node]:
    """Top-level statements that are neither functions nor assignments."""
    leftovers: list[ts.Node] = []
    for node in parsed.root.children:
        if node.type == "function_declaration" or node.type in _IGNORABLE_TOP_LEVEL:
            continue
        if _as_assignment(node, parsed) is not None:
            continue
        leftovers.append(node)
    return leftovers


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _function_name(node: ts.Node, parsed: ParsedSource) -> str:
    name_node = node.child_by_field_name("name")
    index = 0
    if name_node is None:
        for i, child in enumerate(node.children):
            if child.type in _NAME_NODE_TYPES:
                name_node, index = child, i
                break
    else:
        index = next(
            (i for i, child in enumerate(node.children) if child == name_node), 0
        )
    if name_node is None:
        return "anonymous"

    start, end = name_node.start_byte, name_node.end_byte
    if start < end <= len(parsed.source_bytes):
        return parsed.slice(start, end)
    return f"func_{index}"


def _as_assignment(node: ts.Node, parsed: ParsedSource) -> TableAssignment | None:
    statement = node
    if node.type == "variable_declaration":
        # `local x = 1` wraps an assignment_statement; `local x` has none
        statement = next(
            (c for c in node.children if c.type == "assignment_statement"), None
        )
        if statement is None:
            return None
    elif node.type != "assignment_statement":
        return None

    variables = next((c for c in statement.children if c.type == "variable_list"), None)
    values = next((c for c in statement.children if c.type == "expression_list"), None)
    if variables is None or values is None:
        return None

    return TableAssignment(
        key=parsed.text(variables),
        value=parsed.text(values),
        byte_range=(node.start_byte, node.end_byte),
    )
