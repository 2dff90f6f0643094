"""CLI entrypoint for carapace."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Annotated

import typer

from carapace import __version__
from carapace.ai.provider import AIProvider
from carapace.ai.providers import create_provider, provider_from_env
from carapace.analyzer import AnalyzeParams, ReviewResult, analyze
from carapace.config import AppConfig, default_config_template, load_app_config
from carapace.findings import SEVERITIES, severity_rank
from carapace.fixers import BackupStore, SkippedFix, apply_fixes, read_sources, write_fixes
from carapace.full_scan import full_scan
from carapace.git import GitError, get_diff_between, get_working_tree_diff
from carapace.log import configure_logging, get_logger
from carapace.output import render_fix_report, render_human, render_json
from carapace.rules import KNOWN_RULESETS, list_rule_info

app = typer.Typer(
    name="carapace",
    no_args_is_help=True,
    help="Hybrid static and AI security review for diffs and codebases.",
)

API_KEY_ENV = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY"}


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Root command callback."""
    _ = version
    configure_logging(verbose)


@app.command("review")
def review_command(
    diff_file: Annotated[Path | None, typer.Option(help="Path to unified diff file.")] = None,
    stdin: Annotated[bool, typer.Option(help="Read unified diff from stdin.")] = False,
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    base: Annotated[str | None, typer.Option(help="Base git revision.")] = None,
    head: Annotated[str | None, typer.Option(help="Head git revision.")] = None,
    static_only: Annotated[bool, typer.Option(help="Skip AI review.")] = False,
    provider: Annotated[
        str | None, typer.Option(help="AI provider: anthropic|openai|ollama|mock.")
    ] = None,
    model: Annotated[str | None, typer.Option(help="AI model override.")] = None,
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    fail_below: Annotated[
        int | None, typer.Option(help="Exit nonzero if the security score is below this value.")
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Review a diff with static analysis and, when configured, an AI provider."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _output_format(format, app_config)

    if diff_file and stdin:
        raise typer.BadParameter("Use either --diff-file or --stdin, not both.")

    if (base is None) ^ (head is None):
        raise typer.BadParameter("Provide both --base and --head together.")

    try:
        diff_text, input_source = _resolve_diff_input(
            diff_file=diff_file,
            stdin=stdin,
            repo=repo,
            base=base,
            head=head,
        )
    except GitError as exc:
        raise typer.BadParameter(str(exc)) from exc

    ai_provider = None if static_only else _resolve_provider(provider, model, app_config)
    params = AnalyzeParams(
        diff=diff_text,
        rulesets=tuple(app_config.rulesets),
        provider=ai_provider,
        static_only=ai_provider is None,
        repo_path=repo.resolve(),
        max_chunk_tokens=app_config.ai.max_chunk_tokens,
        ai_concurrency=app_config.ai.concurrency,
        ai_timeout=app_config.ai.timeout_seconds,
        disabled_rules=tuple(app_config.disable),
        ignore=tuple(app_config.ignore),
        severity_threshold=app_config.severity_threshold,
        scoring=app_config.scoring,
    )
    try:
        result = asyncio.run(analyze(params, logger=get_logger("review")))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    _emit(result, output_format, input_source=input_source, base=base, head=head)
    _exit_on_threshold(result, fail_below if fail_below is not None else app_config.fail_below)


@app.command("scan")
def scan_command(
    path: Annotated[Path, typer.Argument(help="Directory to scan.")] = Path("."),
    static_only: Annotated[bool, typer.Option(help="Skip AI review.")] = False,
    provider: Annotated[
        str | None, typer.Option(help="AI provider: anthropic|openai|ollama|mock.")
    ] = None,
    model: Annotated[str | None, typer.Option(help="AI model override.")] = None,
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    fail_below: Annotated[
        int | None, typer.Option(help="Exit nonzero if the security score is below this value.")
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Scan every source file in a directory, with AI review when a provider is configured."""
    root = _existing_directory(path)
    app_config = _load_config_or_raise(root, config_file)
    output_format = _output_format(format, app_config)

    ai_provider = None if static_only else _resolve_provider(provider, model, app_config)
    result = asyncio.run(full_scan(root, app_config, provider=ai_provider, logger=get_logger("scan")))
    _emit(result, output_format, input_source=f"path:{root}")
    _exit_on_threshold(result, fail_below if fail_below is not None else app_config.fail_below)


@app.command("fix")
def fix_command(
    path: Annotated[Path, typer.Argument(help="Directory to fix.")] = Path("."),
    dry_run: Annotated[bool, typer.Option(help="Show fixes without writing files.")] = False,
    undo: Annotated[bool, typer.Option(help="Restore files from the last fix backup.")] = False,
    severity: Annotated[
        str, typer.Option(help="Only fix findings at or above this severity.")
    ] = "info",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Apply the mechanical fixes suggested by static analysis."""
    root = _existing_directory(path)
    backup = BackupStore(root)
    if undo:
        if not backup.exists():
            typer.echo("Nothing to undo: no backup found.")
            raise typer.Exit(code=1)
        typer.echo(f"Restored {backup.restore()} file(s) from {backup.directory}.")
        return

    threshold = severity.lower()
    if threshold not in SEVERITIES:
        raise typer.BadParameter(f"severity must be one of: {', '.join(SEVERITIES)}", param_hint="--severity")

    app_config = _load_config_or_raise(root, config_file)
    logger = get_logger("fix")
    result = asyncio.run(full_scan(root, app_config, tools=(), logger=logger))
    fixable = [
        finding
        for finding in result.findings
        if finding.fix_diff and severity_rank(finding.severity) <= severity_rank(threshold)
    ]
    if not fixable:
        typer.echo("No fixable findings.")
        return

    contents, unreadable = read_sources(
        root, sorted({finding.file_path for finding in fixable}), logger=logger
    )
    fix_result = apply_fixes([item for item in fixable if item.file_path not in unreadable], contents)
    fix_result.skipped.extend(
        SkippedFix(item, unreadable[item.file_path]) for item in fixable if item.file_path in unreadable
    )
    if not dry_run:
        write_fixes(fix_result, root, backup, logger=logger)
    typer.echo(render_fix_report(fix_result, dry_run=dry_run))
    if not dry_run and fix_result.files:
        typer.echo("Run `carapace fix --undo` to restore the originals.")


@app.command("rules")
def rules_command(
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    chain: Annotated[str | None, typer.Option(help="Only rules for this chain.")] = None,
) -> None:
    """List the review rule catalogue."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    rule_info = list_rule_info(chain=chain)
    if output_format == "json":
        payload = {
            "rules": [
                {
                    "rule_id": item.rule_id,
                    "name": item.name,
                    "description": item.description,
                    "category": item.category,
                    "severity": item.severity,
                    "ruleset": item.ruleset,
                    "chain": item.chain,
                    "cwe_ids": list(item.cwe_ids),
                    "owasp_category": item.owasp_category,
                }
                for item in rule_info
            ],
            "meta": {"rulesets": list(KNOWN_RULESETS)},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [f"Available rules ({len(rule_info)}):"]
    for item in rule_info:
        chain_tag = f" {item.chain}" if item.chain else ""
        lines.append(f"- {item.rule_id} [{item.severity}{chain_tag}] - {item.name}")
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    payload = _load_config_or_raise(repo, config_file).to_dict()
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- fail_below: {payload['fail_below']}",
        f"- rulesets: {payload['rulesets']}",
        f"- severity_threshold: {payload['severity_threshold']}",
        f"- ignore: {payload['ignore']}",
        f"- disable: {payload['disable']}",
        f"- ai.provider: {payload['ai']['provider'] or 'auto'}",
        f"- ai.concurrency: {payload['ai']['concurrency']}",
        f"- scoring.rule_cap: {payload['scoring']['rule_cap']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Where to write the config file.")] = Path(".carapace.toml"),
    force: Annotated[bool, typer.Option(help="Overwrite an existing file.")] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


def main() -> None:
    """Console script entrypoint."""
    app()


def _resolve_diff_input(
    *,
    diff_file: Path | None,
    stdin: bool,
    repo: Path,
    base: str | None,
    head: str | None,
) -> tuple[str, str]:
    if diff_file is not None:
        return (diff_file.read_text(encoding="utf-8"), f"diff_file:{diff_file}")

    if stdin:
        return (sys.stdin.read(), "stdin")

    if base is not None and head is not None:
        return (get_diff_between(repo, base, head), "git_range")

    return (get_working_tree_diff(repo), "git_working_tree")


def _resolve_provider(name: str | None, model: str | None, app_config: AppConfig) -> AIProvider | None:
    """Explicit provider (flag or config) must be usable; otherwise fall back to the environment."""
    chosen = name or app_config.ai.provider
    chosen_model = model or app_config.ai.model
    timeout = app_config.ai.timeout_seconds
    try:
        if chosen:
            api_key = os.environ.get(API_KEY_ENV.get(chosen.lower(), ""), "") or None
            return create_provider(chosen, api_key=api_key, model=chosen_model, timeout=timeout)
        resolved = provider_from_env(model=chosen_model, timeout=timeout)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--provider") from exc
    if resolved is None:
        typer.echo("No AI provider configured; running static analysis only.", err=True)
    return resolved


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _output_format(value: str | None, app_config: AppConfig) -> str:
    output_format = (value or app_config.format).lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format


def _existing_directory(path: Path) -> Path:
    resolved = path.resolve()
    if not resolved.is_dir():
        raise typer.BadParameter(f"Not a directory: {resolved}", param_hint="PATH")
    return resolved


def _emit(
    result: ReviewResult,
    output_format: str,
    *,
    input_source: str,
    base: str | None = None,
    head: str | None = None,
) -> None:
    if output_format == "json":
        typer.echo(render_json(result, input_source=input_source, base=base, head=head))
    else:
        typer.echo(render_human(result))


def _exit_on_threshold(result: ReviewResult, fail_below: int | None) -> None:
    if fail_below is not None and result.score is not None and result.score.score < fail_below:
        raise typer.Exit(code=1)
