"""
RepoGate CLI

Command-line interface for the RepoGate server and its safety tooling.

Commands:
    repogate serve                  Run the JSON-RPC tool server on stdio
    repogate check OP --param k=v   Preview the safety contract for an operation
    repogate audit                  View audit log entries
    repogate stats                  Summarize the audit log
    repogate cleanup --days N       Delete old audit log files
    repogate config init|show|validate

Usage:
    export GITHUB_TOKEN=...
    repogate serve
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from repogate import __version__
from repogate.config import (
    CONFIG_PATH_ENV,
    config_to_dict,
    create_default_config,
    load_config,
    resolve_config_path,
    validate_config,
)
from repogate.core.models import AuditEntry, SafetyConfig
from repogate.exceptions import AuditIOError, ConfigError
from repogate.safety import audit
from repogate.safety.engine import SafetyEngine

RISK_COLORS = {
    "LOW": "green",
    "MEDIUM": "yellow",
    "HIGH": "red",
    "CRITICAL": "bold red",
}

RESULT_COLORS = {
    "success": "green",
    "partial": "yellow",
    "failed": "red",
}


def _load(ctx: click.Context) -> SafetyConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def _parse_param(raw: str) -> tuple[str, Any]:
    """Parse ``key=value``; ``true``/``false`` become bools and digits become ints."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise click.BadParameter(f"expected key=value, got '{raw}'", param_hint="--param")
    if value.lower() in ("true", "false"):
        return key, value.lower() == "true"
    if value.isdigit():
        return key, int(value)
    if "," in value and key == "events":
        return key, [v for v in value.split(",") if v]
    return key, value


@click.group()
@click.version_option(version=__version__, prog_name="repogate")
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    envvar=CONFIG_PATH_ENV,
    default=None,
    help="Safety configuration file (default: mcp-admin-config.json)",
)
@click.pass_context
def app(ctx: click.Context, config_path: str | None) -> None:
    """RepoGate: risk-governed source-control tools for agents"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ─── Server ──────────────────────────────────────────────────

@app.command()
@click.option("--api-url", envvar="GITHUB_API_URL", default=None, help="Forge API root URL")
@click.option("--cwd", type=click.Path(file_okay=False), default=".", help="Git working copy")
@click.pass_context
def serve(ctx: click.Context, api_url: str | None, cwd: str) -> None:
    """Run the JSON-RPC tool server on stdin/stdout."""
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        raise click.ClickException("GITHUB_TOKEN environment variable is required")
    config = _load(ctx)
    asyncio.run(_serve(token, config, api_url, cwd))


async def _serve(token: str, config: SafetyConfig, api_url: str | None, cwd: str) -> None:
    from repogate.forge.client import DEFAULT_API_URL, ForgeClient
    from repogate.git.runner import GitRunner
    from repogate.server.jsonrpc import JSONRPCServer, build_registry

    console = Console(stderr=True)
    engine = SafetyEngine(config=config)
    runner = GitRunner(cwd)
    git_available = runner.is_available()

    async with ForgeClient(token, base_url=api_url or DEFAULT_API_URL) as client:
        registry = build_registry(client, engine, runner)
        console.print(
            f"[bold green]RepoGate[/] {__version__} serving {len(registry)} tools "
            f"(safety mode: {config.mode.value}, git: {'yes' if git_available else 'no'})"
        )
        await JSONRPCServer(registry, git_available=git_available).serve()


# ─── Safety ──────────────────────────────────────────────────

@app.command()
@click.argument("operation")
@click.option("--param", "-p", "params", multiple=True, help="Operation parameter as key=value (repeatable)")
@click.pass_context
def check(ctx: click.Context, operation: str, params: tuple[str, ...]) -> None:
    """Preview the safety contract for OPERATION without running it."""
    parameters = dict(_parse_param(p) for p in params)
    engine = SafetyEngine(config=_load(ctx))
    click.echo(engine.preview_operation(operation, parameters))


@app.command(name="audit")
@click.option("--limit", "-n", default=20, show_default=True, type=click.IntRange(min=1), help="Entries to show")
@click.option("--operation", default=None, help="Only this operation")
@click.option("--risk", default=None, type=click.Choice(list(RISK_COLORS), case_sensitive=False), help="Only this risk level")
@click.option("--result", default=None, type=click.Choice(list(RESULT_COLORS), case_sensitive=False), help="Only this result")
@click.pass_context
def audit_cmd(
    ctx: click.Context,
    limit: int,
    operation: str | None,
    risk: str | None,
    result: str | None,
) -> None:
    """View recent audit log entries."""
    path = _load(ctx).audit_log_path
    try:
        entries = audit.read_all(path)
    except AuditIOError as e:
        raise click.ClickException(str(e)) from e

    if operation:
        entries = [e for e in entries if e.operation == operation]
    if risk:
        entries = [e for e in entries if e.risk_level == risk.upper()]
    if result:
        entries = [e for e in entries if e.result.value == result.lower()]
    entries = entries[-limit:]

    console = Console()
    if not entries:
        console.print("  No audit entries found.")
        return
    console.print(_audit_table(entries, path))


def _audit_table(entries: list[AuditEntry], path: str) -> Table:
    table = Table(title=f"Audit Log: {path}")
    table.add_column("Timestamp", style="dim")
    table.add_column("Operation")
    table.add_column("Risk")
    table.add_column("Result")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Error")
    for entry in entries:
        risk_color = RISK_COLORS.get(entry.risk_level, "white")
        result_color = RESULT_COLORS.get(entry.result.value, "white")
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.operation,
            f"[{risk_color}]{entry.risk_level}[/]",
            f"[{result_color}]{entry.result.value}[/]",
            str(entry.execution_time_ms),
            (entry.error_message or "")[:60],
        )
    return table


@app.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Summarize the audit log by risk level, result and operation."""
    path = _load(ctx).audit_log_path
    try:
        summary = audit.statistics(path)
    except AuditIOError as e:
        raise click.ClickException(str(e)) from e

    console = Console()
    console.print(f"\n[bold]Audit entries:[/] {summary['total_entries']}\n")
    for title, key in (("By risk level", "by_risk_level"), ("By result", "by_result"), ("By operation", "by_operation")):
        table = Table(title=title)
        table.add_column("Value")
        table.add_column("Count", justify="right")
        for value, count in sorted(summary[key].items(), key=lambda kv: (-kv[1], kv[0])):
            table.add_row(value, str(count))
        console.print(table)


@app.command()
@click.option("--days", default=90, show_default=True, type=click.IntRange(min=0), help="Keep files newer than this")
@click.pass_context
def cleanup(ctx: click.Context, days: int) -> None:
    """Delete audit log files older than --days from the audit log directory."""
    directory = Path(_load(ctx).audit_log_path).parent
    try:
        removed = audit.cleanup_old(directory, days)
    except AuditIOError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Removed {removed} audit log file(s) older than {days} days from {directory}")


# ─── Configuration ───────────────────────────────────────────

@app.group()
def config() -> None:
    """Manage the safety configuration file."""


@config.command(name="init")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write a configuration file holding the defaults."""
    path = resolve_config_path(ctx.obj["config_path"])
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    try:
        written = create_default_config(path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Wrote default configuration to {written}")


@config.command(name="show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    Console().print_json(json.dumps(config_to_dict(_load(ctx))))


@config.command(name="validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Check the configuration file for problems."""
    problems = validate_config(_load(ctx))
    if not problems:
        click.echo("✅ Configuration is valid")
        return
    for problem in problems:
        click.echo(f"⚠️  {problem}")
    ctx.exit(1)


def main() -> None:
    """Main CLI entry point."""
    app()
