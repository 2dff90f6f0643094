"""Configuration loading for carapace."""

from __future__ import annotations

import fnmatch
import tomllib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from carapace.chunking import DEFAULT_MAX_CHUNK_TOKENS
from carapace.findings import SEVERITIES, Finding, severity_rank
from carapace.rules import KNOWN_RULESETS
from carapace.scoring import (
    DEFAULT_CONFIDENCE_MULTIPLIERS,
    DEFAULT_DEDUCTIONS,
    DEFAULT_DENSITY_DIVISOR,
    DEFAULT_RULE_CAP,
    DEFAULT_TIER_CAPS,
    ScoringConfig,
)

CONFIG_FILENAMES = (".carapace.toml", "carapace.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEY = "carapace"

DEFAULT_RULESETS = ("general", "attack", "quality")
CONFIDENCES = ("high", "medium", "low")
MAX_SUGGESTION_DISTANCE = 3


@dataclass(slots=True)
class AIConfig:
    """AI review defaults."""

    provider: str | None = None
    model: str | None = None
    concurrency: int = 3
    max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS
    timeout_seconds: float = 120.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "concurrency": self.concurrency,
            "max_chunk_tokens": self.max_chunk_tokens,
            "timeout_seconds": self.timeout_seconds,
        }


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    fail_below: int | None = None
    rulesets: list[str] = field(default_factory=lambda: list(DEFAULT_RULESETS))
    severity_threshold: str = "info"
    ignore: list[str] = field(default_factory=list)
    disable: list[str] = field(default_factory=list)
    ai: AIConfig = field(default_factory=AIConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "fail_below": self.fail_below,
            "rulesets": list(self.rulesets),
            "severity_threshold": self.severity_threshold,
            "ignore": list(self.ignore),
            "disable": list(self.disable),
            "ai": self.ai.to_dict(),
            "scoring": {
                "deductions": dict(self.scoring.deductions),
                "confidence_multipliers": dict(self.scoring.confidence_multipliers),
                "rule_cap": self.scoring.rule_cap,
                "tier_caps": dict(self.scoring.tier_caps),
                "density_divisor": self.scoring.density_divisor,
            },
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def matches_ignore(path: str, patterns: Iterable[str]) -> bool:
    """Match a repo-relative path against ignore globs.

    A bare name matches any path segment; ``dir/`` matches everything below it.
    """
    segments = path.split("/")
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True
        if "/" not in pattern.rstrip("/") and any(fnmatch.fnmatch(part, pattern.rstrip("/")) for part in segments):
            return True
        prefix = pattern.rstrip("/")
        if path == prefix or path.startswith(f"{prefix}/"):
            return True
    return False


def filter_by_config(findings: Iterable[Finding], config: AppConfig) -> list[Finding]:
    """Drop ignored paths, disabled rules and findings below the severity threshold."""
    return filter_findings(
        findings,
        ignore=config.ignore,
        disabled=config.disable,
        severity_threshold=config.severity_threshold,
    )


def filter_findings(
    findings: Iterable[Finding],
    *,
    ignore: Sequence[str] = (),
    disabled: Iterable[str] = (),
    severity_threshold: str = "info",
) -> list[Finding]:
    threshold = severity_rank(severity_threshold)
    disabled_ids = set(disabled)
    kept: list[Finding] = []
    for finding in findings:
        if finding.rule_id in disabled_ids:
            continue
        if finding.rank > threshold:
            continue
        if ignore and matches_ignore(finding.file_path, ignore):
            continue
        kept.append(finding)
    return kept


def suggest(value: str, choices: Sequence[str]) -> str | None:
    """Closest choice within a small edit distance, if any."""
    best: str | None = None
    best_distance = MAX_SUGGESTION_DISTANCE + 1
    for choice in choices:
        distance = _levenshtein(value.lower(), choice.lower())
        if distance < best_distance:
            best, best_distance = choice, distance
    return best


def default_config_template() -> str:
    """Return a starter config template users can customize."""
    return "\n".join(
        [
            'format = "human"',
            "fail_below = 70",
            'rulesets = ["general", "attack", "quality"]',
            'severity_threshold = "info"',
            'ignore = ["node_modules", "dist", "*.min.js"]',
            'disable = ["cp-qual-todo-fixme"]',
            "",
            "[ai]",
            '# provider = "anthropic"',
            '# model = "claude-sonnet-4-20250514"',
            "concurrency = 3",
            "max_chunk_tokens = 12000",
            "timeout_seconds = 120",
            "",
            "[scoring]",
            f"rule_cap = {DEFAULT_RULE_CAP:g}",
            f"density_divisor = {DEFAULT_DENSITY_DIVISOR:g}",
            "",
            "[scoring.deductions]",
            *(f"{key} = {value:g}" for key, value in DEFAULT_DEDUCTIONS.items()),
            "",
            "[scoring.confidence_multipliers]",
            *(f"{key} = {value:g}" for key, value in DEFAULT_CONFIDENCE_MULTIPLIERS.items()),
            "",
            "[scoring.tier_caps]",
            *(f"{key} = {value:g}" for key, value in DEFAULT_TIER_CAPS.items()),
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    tool_section = _find_pyproject_tool_section(loaded)
    if source_path.name == PYPROJECT_FILENAME:
        return tool_section if tool_section is not None else {}
    return tool_section if tool_section is not None else loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    section = tool.get(PYPROJECT_TOOL_KEY)
    return section if isinstance(section, dict) else None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    ai_mapping = _as_table(mapping.get("ai"), "ai")
    scoring_mapping = _as_table(mapping.get("scoring"), "scoring")

    raw_format = mapping.get("format", "human")
    format_value = str(raw_format).lower()
    if format_value not in {"human", "json"}:
        format_value = "human"

    raw_fail = mapping.get("fail_below")
    if raw_fail is None:
        fail_value: int | None = None
    elif isinstance(raw_fail, int) and not isinstance(raw_fail, bool):
        fail_value = raw_fail
    else:
        raise ValueError("fail_below must be an integer")

    rulesets = _as_str_list(mapping.get("rulesets")) if "rulesets" in mapping else list(DEFAULT_RULESETS)
    for ruleset in rulesets:
        _check_known(ruleset, KNOWN_RULESETS, "ruleset")

    threshold = str(mapping.get("severity_threshold", "info")).lower()
    _check_known(threshold, SEVERITIES, "severity_threshold")

    return AppConfig(
        format=format_value,
        fail_below=fail_value,
        rulesets=rulesets,
        severity_threshold=threshold,
        ignore=_as_str_list(mapping.get("ignore")),
        disable=_as_str_list(mapping.get("disable")),
        ai=_parse_ai_config(ai_mapping),
        scoring=_parse_scoring_config(scoring_mapping),
        source=source,
    )


def _parse_ai_config(value: dict[str, Any]) -> AIConfig:
    provider = value.get("provider")
    model = value.get("model")
    concurrency = _as_int(value.get("concurrency", 3), "ai.concurrency")
    if concurrency < 1:
        raise ValueError("ai.concurrency must be >= 1")
    max_chunk_tokens = _as_int(value.get("max_chunk_tokens", DEFAULT_MAX_CHUNK_TOKENS), "ai.max_chunk_tokens")
    timeout = _as_float(value.get("timeout_seconds", 120.0), "ai.timeout_seconds")
    if timeout <= 0:
        raise ValueError("ai.timeout_seconds must be > 0")
    return AIConfig(
        provider=_as_str(provider, "ai.provider") if provider is not None else None,
        model=_as_str(model, "ai.model") if model is not None else None,
        concurrency=concurrency,
        max_chunk_tokens=max_chunk_tokens,
        timeout_seconds=timeout,
    )


def _parse_scoring_config(value: dict[str, Any]) -> ScoringConfig:
    deductions = dict(DEFAULT_DEDUCTIONS)
    deductions.update(
        _as_float_mapping(value.get("deductions"), "scoring.deductions", allowed=SEVERITIES)
    )
    multipliers = dict(DEFAULT_CONFIDENCE_MULTIPLIERS)
    multipliers.update(
        _as_float_mapping(
            value.get("confidence_multipliers"),
            "scoring.confidence_multipliers",
            allowed=CONFIDENCES,
        )
    )
    tier_caps = dict(DEFAULT_TIER_CAPS)
    tier_caps.update(_as_float_mapping(value.get("tier_caps"), "scoring.tier_caps", allowed=SEVERITIES))
    density_divisor = _as_float(value.get("density_divisor", DEFAULT_DENSITY_DIVISOR), "scoring.density_divisor")
    if density_divisor <= 0:
        raise ValueError("scoring.density_divisor must be > 0")
    return ScoringConfig(
        deductions=deductions,
        confidence_multipliers=multipliers,
        rule_cap=_as_float(value.get("rule_cap", DEFAULT_RULE_CAP), "scoring.rule_cap"),
        tier_caps=tier_caps,
        density_divisor=density_divisor,
    )


def _check_known(value: str, allowed: Sequence[str], field_name: str) -> None:
    if value in allowed:
        return
    hint = suggest(value, allowed)
    message = f"Unknown {field_name} '{value}'"
    if hint is not None:
        message += f" (did you mean '{hint}'?)"
    raise ValueError(f"{message}. Expected one of: {', '.join(allowed)}")


def _levenshtein(left: str, right: str) -> int:
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("Expected a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError("Expected a list of strings")
        items.append(item)
    return items


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    return raw


def _as_float_mapping(value: Any, field_name: str, *, allowed: Sequence[str]) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")

    parsed: dict[str, float] = {}
    for key, raw in value.items():
        _check_known(str(key), allowed, f"{field_name} key")
        parsed[key] = _as_float(raw, f"{field_name}.{key}")
    return parsed


def _as_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    return float(raw)
