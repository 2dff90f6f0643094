"""Structural checks for Python sources built on the stdlib ``ast`` module."""

from __future__ import annotations

import ast
from collections.abc import Iterator
from pathlib import PurePosixPath

from carapace.static.base import AstIssue

COMPLEXITY_THRESHOLD = 10
MAX_FUNCTION_LINES = 50

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef
_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)


def analyze_python(path: str, content: str) -> list[AstIssue]:
    """Return structural issues for a Python file; unparseable input yields none."""
    tree = _safe_parse(content, path)
    if tree is None:
        return []

    used = _used_names(tree)
    exported = _explicit_exports(tree)
    is_package_init = PurePosixPath(path).name == "__init__.py"

    issues: list[AstIssue] = []
    if not is_package_init:
        issues.extend(_unused_imports(tree, used, exported))
    issues.extend(_unused_module_bindings(tree, used, exported))
    for function in _functions(tree):
        issues.extend(_unused_locals(function))
        issues.extend(_complexity_and_length(function))
    return sorted(issues, key=lambda issue: (issue.start_line, issue.rule_id))


def cyclomatic_complexity(function: FunctionNode) -> int:
    """1 plus one per branch point, excluding nested function and class bodies."""
    score = 1
    for node in _walk_local(function):
        if isinstance(node, (ast.If, ast.IfExp, ast.For, ast.AsyncFor, ast.While)):
            score += 1
        elif isinstance(node, ast.match_case):
            score += 1
        elif isinstance(node, ast.BoolOp):
            score += len(node.values) - 1
    return score


def _safe_parse(content: str, path: str) -> ast.Module | None:
    try:
        return ast.parse(content, filename=path)
    except (SyntaxError, ValueError):
        return None


def _walk_local(root: ast.AST) -> Iterator[ast.AST]:
    stack = list(ast.iter_child_nodes(root))
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, _SCOPE_NODES):
            continue
        stack.extend(ast.iter_child_nodes(node))


def _functions(tree: ast.AST) -> Iterator[FunctionNode]:
    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            yield node


def _used_names(tree: ast.AST) -> set[str]:
    used: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and not isinstance(node.ctx, ast.Store):
            used.add(node.id)
        elif isinstance(node, ast.Constant) and isinstance(node.value, str):
            # String annotations such as "Finding" or "list[Finding]".
            text = node.value
            if text.isidentifier():
                used.add(text)
            elif "[" in text:
                used.update(part for part in _split_annotation(text) if part.isidentifier())
    return used


def _split_annotation(text: str) -> list[str]:
    for char in "[],|. ":
        text = text.replace(char, " ")
    return text.split()


def _explicit_exports(tree: ast.Module) -> set[str] | None:
    """Names listed in a literal module-level ``__all__``, or None when absent."""
    for node in tree.body:
        targets: list[ast.expr] = []
        if isinstance(node, ast.Assign):
            targets = node.targets
            value = node.value
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            targets = [node.target]
            value = node.value
        else:
            continue
        if not any(isinstance(target, ast.Name) and target.id == "__all__" for target in targets):
            continue
        if isinstance(value, (ast.List, ast.Tuple)):
            return {
                item.value
                for item in value.elts
                if isinstance(item, ast.Constant) and isinstance(item.value, str)
            }
        return set()
    return None


def _is_exported(name: str, exported: set[str] | None) -> bool:
    if exported is None:
        return not name.startswith("_")
    return name in exported


def _unused_imports(tree: ast.Module, used: set[str], exported: set[str] | None) -> list[AstIssue]:
    issues: list[AstIssue] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom) and node.module == "__future__":
            continue
        if not isinstance(node, (ast.Import, ast.ImportFrom)):
            continue
        for alias in node.names:
            if alias.name == "*":
                continue
            bound = alias.asname or alias.name.split(".")[0]
            if bound.startswith("_") or bound in used:
                continue
            if exported is not None and bound in exported:
                continue
            # "import x as x" and "from m import x as x" are explicit re-exports.
            if alias.asname is not None and alias.asname == alias.name:
                continue
            line = getattr(alias, "lineno", node.lineno)
            issues.append(
                AstIssue(
                    rule_id="cp-clean-unused-import",
                    start_line=line,
                    end_line=line,
                    message=f"'{bound}' is imported but never used.",
                )
            )
    return issues


def _unused_module_bindings(
    tree: ast.Module, used: set[str], exported: set[str] | None
) -> list[AstIssue]:
    """Module-level functions and variables that are neither used nor exported."""
    issues: list[AstIssue] = []
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            name = node.name
            if node.decorator_list or name.startswith("_") or name in used:
                continue
            if _is_exported(name, exported):
                continue
            issues.append(
                AstIssue(
                    rule_id="cp-clean-unused-function",
                    start_line=node.lineno,
                    end_line=node.lineno,
                    message=f"Function '{name}' is never called or exported.",
                )
            )
        elif isinstance(node, (ast.Assign, ast.AnnAssign)):
            targets = node.targets if isinstance(node, ast.Assign) else [node.target]
            for target in targets:
                if not isinstance(target, ast.Name):
                    continue
                name = target.id
                if name.startswith("_") or name in used or _is_exported(name, exported):
                    continue
                issues.append(
                    AstIssue(
                        rule_id="cp-clean-unused-variable",
                        start_line=node.lineno,
                        end_line=node.lineno,
                        message=f"Variable '{name}' is assigned but never used.",
                    )
                )
    return issues


def _unused_locals(function: FunctionNode) -> list[AstIssue]:
    """Local variables and nested functions never read inside ``function``."""
    declared_outer: set[str] = set()
    assigned: dict[str, int] = {}
    nested: dict[str, int] = {}
    for node in _walk_local(function):
        if isinstance(node, (ast.Global, ast.Nonlocal)):
            declared_outer.update(node.names)
        elif isinstance(node, ast.Assign):
            for target in node.targets:
                if isinstance(target, ast.Name):
                    assigned.setdefault(target.id, node.lineno)
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            if isinstance(node.target, ast.Name):
                assigned.setdefault(node.target.id, node.lineno)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and not node.decorator_list:
            nested.setdefault(node.name, node.lineno)

    # Reads from nested scopes count: closures keep locals alive.
    loaded = {
        node.id
        for node in ast.walk(function)
        if isinstance(node, ast.Name) and not isinstance(node.ctx, ast.Store)
    }

    issues: list[AstIssue] = []
    for name, line in assigned.items():
        if name.startswith("_") or name in loaded or name in declared_outer:
            continue
        issues.append(
            AstIssue(
                rule_id="cp-clean-unused-variable",
                start_line=line,
                end_line=line,
                message=f"Local variable '{name}' is assigned but never used.",
            )
        )
    for name, line in nested.items():
        if name.startswith("_") or name in loaded:
            continue
        issues.append(
            AstIssue(
                rule_id="cp-clean-unused-function",
                start_line=line,
                end_line=line,
                message=f"Nested function '{name}' is never called.",
            )
        )
    return issues


def _complexity_and_length(function: FunctionNode) -> list[AstIssue]:
    issues: list[AstIssue] = []
    start = function.lineno
    end = function.end_lineno or function.lineno

    complexity = cyclomatic_complexity(function)
    if complexity >= COMPLEXITY_THRESHOLD:
        issues.append(
            AstIssue(
                rule_id="cp-clean-cyclomatic-complexity",
                start_line=start,
                end_line=end,
                message=f"Function '{function.name}' has cyclomatic complexity {complexity}.",
            )
        )

    length = end - start + 1
    if length > MAX_FUNCTION_LINES:
        issues.append(
            AstIssue(
                rule_id="cp-clean-function-too-long",
                start_line=start,
                end_line=end,
                message=f"Function '{function.name}' spans {length} lines.",
            )
        )
    return issues
