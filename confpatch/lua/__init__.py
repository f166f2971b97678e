"""Lua configuration support — tree-sitter parsing, extraction and merging."""

from .parser import LuaGrammar, LuaParseFailure, LuaParser, ParsedSource
from .extractor import FunctionInfo, TableAssignment, extract_assignments, extract_functions
from .patcher import LuaPatcher, MergeOutcome, PatchOutcome, append_text

__all__ = [
    "LuaGrammar", "LuaParseFailure", "LuaParser", "ParsedSource",
    "FunctionInfo", "TableAssignment", "extract_assignments", "extract_functions",
    "LuaPatcher", "MergeOutcome", "PatchOutcome", "append_text",
]
