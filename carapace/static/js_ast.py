"""Structural checks for JavaScript and TypeScript built on tree-sitter grammars."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterator
from typing import TYPE_CHECKING

from tree_sitter_language_pack import get_parser

from carapace.static.base import AstIssue, extension_of

if TYPE_CHECKING:
    from tree_sitter import Node, Parser

COMPLEXITY_THRESHOLD = 10
MAX_FUNCTION_LINES = 50

JS_GRAMMARS = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

FUNCTION_TYPES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "function",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)
NAME_TYPES = frozenset(
    {
        "identifier",
        "shorthand_property_identifier",
        "shorthand_property_identifier_pattern",
        "type_identifier",
    }
)
BRANCH_TYPES = frozenset(
    {
        "if_statement",
        "ternary_expression",
        "for_statement",
        "for_in_statement",
        "while_statement",
        "do_statement",
        "switch_case",
    }
)
LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})

_parsers: dict[str, Parser] = {}


def grammar_for(path: str) -> str | None:
    return JS_GRAMMARS.get(extension_of(path))


def get_ts_parser(path: str) -> Parser | None:
    """Return a cached tree-sitter parser for the file's grammar."""
    grammar = grammar_for(path)
    if grammar is None:
        return None
    if grammar not in _parsers:
        _parsers[grammar] = get_parser(grammar)
    return _parsers[grammar]


def analyze_js(path: str, content: str) -> list[AstIssue]:
    """Return structural issues for a JS/TS file; syntax errors yield none."""
    parser = get_ts_parser(path)
    if parser is None:
        return []
    source = content.encode("utf-8")
    root = parser.parse(source).root_node
    if root.has_error:
        return []

    lines = source.split(b"\n")
    occurrences = Counter(_text(node, source) for node in _walk(root) if node.type in NAME_TYPES)

    issues: list[AstIssue] = []
    issues.extend(_unused_imports(root, source, occurrences))
    issues.extend(_unused_declarations(root, source, occurrences))
    issues.extend(_function_metrics(root, source))
    issues.extend(_prefer_const(root, source, lines))
    if extension_of(path) in {".ts", ".tsx"}:
        issues.extend(_unsafe_assertions(root, source, lines, allow_angle=extension_of(path) == ".ts"))
    return sorted(issues, key=lambda issue: (issue.start_line, issue.rule_id))


def cyclomatic_complexity(function: Node) -> int:
    score = 1
    for node in _walk_local(function):
        if node.type in BRANCH_TYPES:
            score += 1
        elif node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in LOGICAL_OPERATORS:
                score += 1
    return score


def _walk(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _walk_local(function: Node) -> Iterator[Node]:
    stack = list(reversed(function.children))
    while stack:
        node = stack.pop()
        yield node
        if node.type in FUNCTION_TYPES:
            continue
        stack.extend(reversed(node.children))


def _text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _is_exported(node: Node) -> bool:
    parent = node.parent
    while parent is not None and parent.type in {"lexical_declaration", "variable_declaration"}:
        parent = parent.parent
    return parent is not None and parent.type == "export_statement"


def _has_type_keyword(node: Node) -> bool:
    return any(child.type == "type" for child in node.children)


def _unused_imports(root: Node, source: bytes, occurrences: Counter[str]) -> list[AstIssue]:
    issues: list[AstIssue] = []
    for statement in _walk(root):
        if statement.type != "import_statement" or _has_type_keyword(statement):
            continue
        clause = next((child for child in statement.children if child.type == "import_clause"), None)
        if clause is None:
            continue
        for binding in _import_bindings(clause):
            name = _text(binding, source)
            if name.startswith("_") or occurrences[name] > 1:
                continue
            issues.append(
                AstIssue(
                    rule_id="cp-clean-unused-import",
                    start_line=_line(binding),
                    end_line=_line(binding),
                    message=f"'{name}' is imported but never used.",
                )
            )
    return issues


def _import_bindings(clause: Node) -> Iterator[Node]:
    for child in clause.children:
        if child.type == "identifier":
            yield child
        elif child.type == "namespace_import":
            yield from (item for item in child.children if item.type == "identifier")
        elif child.type == "named_imports":
            for specifier in child.children:
                if specifier.type != "import_specifier" or _has_type_keyword(specifier):
                    continue
                bound = specifier.child_by_field_name("alias") or specifier.child_by_field_name("name")
                if bound is not None:
                    yield bound


def _unused_declarations(root: Node, source: bytes, occurrences: Counter[str]) -> list[AstIssue]:
    issues: list[AstIssue] = []
    for node in _walk(root):
        if node.type == "variable_declarator":
            name_node = node.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            if _is_exported(node.parent):
                continue
            name = _text(name_node, source)
            if name.startswith("_") or occurrences[name] > 1:
                continue
            issues.append(
                AstIssue(
                    rule_id="cp-clean-unused-variable",
                    start_line=_line(name_node),
                    end_line=_line(name_node),
                    message=f"Variable '{name}' is declared but never used.",
                )
            )
        elif node.type in {"function_declaration", "generator_function_declaration"}:
            name_node = node.child_by_field_name("name")
            if name_node is None or _is_exported(node):
                continue
            name = _text(name_node, source)
            if name.startswith("_") or occurrences[name] > 1:
                continue
            issues.append(
                AstIssue(
                    rule_id="cp-clean-unused-function",
                    start_line=_line(node),
                    end_line=_line(node),
                    message=f"Function '{name}' is never called or exported.",
                )
            )
    return issues


def _function_name(node: Node, source: bytes) -> str:
    name_node = node.child_by_field_name("name")
    if name_node is None and node.parent is not None and node.parent.type == "variable_declarator":
        name_node = node.parent.child_by_field_name("name")
    return _text(name_node, source) if name_node is not None else "<anonymous>"


def _function_metrics(root: Node, source: bytes) -> list[AstIssue]:
    issues: list[AstIssue] = []
    for node in _walk(root):
        if node.type not in FUNCTION_TYPES:
            continue
        start = node.start_point[0] + 1
        end = node.end_point[0] + 1
        name = _function_name(node, source)

        complexity = cyclomatic_complexity(node)
        if complexity >= COMPLEXITY_THRESHOLD:
            issues.append(
                AstIssue(
                    rule_id="cp-clean-cyclomatic-complexity",
                    start_line=start,
                    end_line=end,
                    message=f"Function '{name}' has cyclomatic complexity {complexity}.",
                )
            )
        length = end - start + 1
        if length > MAX_FUNCTION_LINES:
            issues.append(
                AstIssue(
                    rule_id="cp-clean-function-too-long",
                    start_line=start,
                    end_line=end,
                    message=f"Function '{name}' spans {length} lines.",
                )
            )
    return issues


def _reassigned_names(root: Node, source: bytes) -> set[str]:
    names: set[str] = set()
    for node in _walk(root):
        if node.type in {"assignment_expression", "augmented_assignment_expression"}:
            target = node.child_by_field_name("left")
        elif node.type == "update_expression":
            target = node.child_by_field_name("argument")
        else:
            continue
        if target is not None and target.type == "identifier":
            names.add(_text(target, source))
    return names


def _prefer_const(root: Node, source: bytes, lines: list[bytes]) -> list[AstIssue]:
    reassigned = _reassigned_names(root, source)
    issues: list[AstIssue] = []
    for node in _walk(root):
        if node.type != "lexical_declaration" or not node.children:
            continue
        keyword = node.children[0]
        if keyword.type != "let":
            continue
        declarators = [child for child in node.children if child.type == "variable_declarator"]
        if not declarators or not all(
            _never_reassigned(declarator, source, reassigned) for declarator in declarators
        ):
            continue
        row, column = keyword.start_point
        original = lines[row]
        replacement = original[:column] + b"const" + original[column + 3 :]
        names = ", ".join(_text(d.child_by_field_name("name"), source) for d in declarators)
        issues.append(
            AstIssue(
                rule_id="cp-qual-prefer-const",
                start_line=row + 1,
                end_line=row + 1,
                message=f"'{names}' is never reassigned; declare it with const.",
                replacement=replacement.decode("utf-8", errors="replace"),
            )
        )
    return issues


def _never_reassigned(declarator: Node, source: bytes, reassigned: set[str]) -> bool:
    name_node = declarator.child_by_field_name("name")
    if name_node is None or name_node.type != "identifier":
        return False
    if declarator.child_by_field_name("value") is None:
        return False
    return _text(name_node, source) not in reassigned


def _unsafe_assertions(
    root: Node, source: bytes, lines: list[bytes], *, allow_angle: bool
) -> list[AstIssue]:
    columns: dict[int, list[int]] = defaultdict(list)
    for node in _walk(root):
        if node.type == "as_expression" or (allow_angle and node.type == "type_assertion"):
            for any_node in _any_types(node, source):
                row, column = any_node.start_point
                columns[row].append(column)

    issues: list[AstIssue] = []
    for row in sorted(columns):
        updated = lines[row]
        for column in sorted(set(columns[row]), reverse=True):
            updated = updated[:column] + b"unknown" + updated[column + 3 :]
        issues.append(
            AstIssue(
                rule_id="cp-qual-unsafe-type-assertion",
                start_line=row + 1,
                end_line=row + 1,
                message="Type assertion to 'any' bypasses the type checker.",
                replacement=updated.decode("utf-8", errors="replace"),
            )
        )
    return issues


def _any_types(node: Node, source: bytes) -> Iterator[Node]:
    for child in node.children:
        if child.type == "predefined_type" and _text(child, source) == "any":
            yield child
        elif child.type == "type_arguments":
            yield from (
                item
                for item in child.children
                if item.type == "predefined_type" and _text(item, source) == "any"
            )
