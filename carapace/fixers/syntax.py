"""Post-fix syntax validation for languages we can parse."""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from carapace.static.base import PY, extension_of
from carapace.static.js_ast import get_ts_parser

if TYPE_CHECKING:
    from tree_sitter import Node


def validate_syntax(path: str, content: str) -> str | None:
    """Return a description of the first syntax error, or None when valid.

    Files in languages without a parser here are always accepted.
    """
    if extension_of(path) in PY:
        return _validate_python(path, content)
    parser = get_ts_parser(path)
    if parser is None:
        return None
    root = parser.parse(content.encode("utf-8")).root_node
    if not root.has_error:
        return None
    return _describe_tree_error(root)


def _validate_python(path: str, content: str) -> str | None:
    try:
        ast.parse(content, filename=path)
    except SyntaxError as exc:
        return f"Syntax error at line {exc.lineno}: {exc.msg}"
    except ValueError as exc:
        return f"Syntax error: {exc}"
    return None


def _describe_tree_error(root: Node) -> str:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            line = node.start_point[0] + 1
            if node.is_missing:
                return f"Syntax error at line {line}: missing {node.type}"
            return f"Syntax error at line {line}: unexpected input"
        stack.extend(reversed(node.children))
    return "Syntax error"
