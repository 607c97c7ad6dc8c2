"""Typer-based CLI for Scopegate diff-scoped verification."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__, config
from .config_manager import load_full_config, save_github_setting, save_limit
from .graph_export import export_dot, render_dot
from .models import EngineLimits, Finding, Verdict
from .orchestrator import VerificationEngine

console = Console()

app = typer.Typer(
    help="🔎 Scopegate — diff-scoped reachability checks for PR findings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration — limits and GitHub settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")

_VERDICT_COLORS = {
    Verdict.VERIFIED: "red",
    Verdict.REFUTED: "green",
    Verdict.UNKNOWN: "yellow",
}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Scopegate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging."),
):
    """Scopegate: which findings are new in this PR, and which are reachable."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _engine(token: Optional[str]) -> VerificationEngine:
    return VerificationEngine(token=token)


def _load_findings(findings_file: Path) -> List[Finding]:
    try:
        data = json.loads(findings_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"Could not read findings from {findings_file}: {exc}")

    if isinstance(data, dict):
        data = data.get("findings", [])
    if not isinstance(data, list):
        raise typer.BadParameter("Findings file must hold a list or an object with a 'findings' list.")
    return [Finding.from_dict(item) for item in data if isinstance(item, dict)]


@app.command("scope")
def scope(
    repo_url: str = typer.Argument(..., help="Repository URL, e.g. https://github.com/owner/repo"),
    sha: str = typer.Argument(..., help="Commit SHA pushed to the pull request."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
    token: Optional[str] = typer.Option(None, "--token", help="GitHub token (overrides config.toml and GITHUB_TOKEN)."),
):
    """Show the files and lines the commit's pull request changed."""
    diff_scope = _engine(token).diff_scope(repo_url, sha)

    if diff_scope is None:
        if as_json:
            typer.echo("null")
        else:
            console.print("[yellow]No pull request scope found[/yellow]; all lines are in scope.")
        return

    if as_json:
        typer.echo(json.dumps(diff_scope.to_dict(), indent=2))
        return

    console.print(
        f"[bold]PR #{diff_scope.pull_request_number}[/bold] "
        f"{diff_scope.base_ref}@{diff_scope.base_commit[:7]} → {diff_scope.head_commit[:7]}"
    )
    table = Table(show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Changed lines")
    for path in sorted(diff_scope.changed_files):
        if path in diff_scope.files_missing_patch:
            detail = "[yellow]whole file (no patch)[/yellow]"
        else:
            lines = sorted(diff_scope.changed_lines_by_file.get(path, set()))
            detail = ", ".join(str(n) for n in lines[:30]) + (" …" if len(lines) > 30 else "")
        table.add_row(path, detail or "-")
    console.print(table)


@app.command("verify")
def verify(
    repo_url: str = typer.Argument(..., help="Repository URL."),
    sha: str = typer.Argument(..., help="Commit SHA to analyse."),
    findings_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON findings file."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
    token: Optional[str] = typer.Option(None, "--token", help="GitHub token (overrides config.toml and GITHUB_TOKEN)."),
):
    """Classify findings as VERIFIED / REFUTED / UNKNOWN by call-graph reachability."""
    findings = _load_findings(findings_file)
    report = _engine(token).verify(repo_url, sha, findings)

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return

    table = Table(title="Reachability verdicts", show_header=True)
    table.add_column("Finding", style="cyan")
    table.add_column("Location")
    table.add_column("Function")
    table.add_column("Verdict")
    table.add_column("Reason")
    for v in report.verdicts:
        color = _VERDICT_COLORS[v.verdict]
        table.add_row(
            v.rule_id,
            f"{v.file_path}:{v.line_number}",
            v.containing_function or "-",
            f"[{color}]{v.verdict.value}[/{color}]",
            v.reason,
        )
    console.print(table)
    console.print(
        f"verified={report.verified_count} refuted={report.refuted_count} unknown={report.unknown_count}"
    )


@app.command("annotate")
def annotate(
    repo_url: str = typer.Argument(..., help="Repository URL."),
    sha: str = typer.Argument(..., help="Commit SHA to attach the check run to."),
    findings_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON findings file."),
    passed: bool = typer.Option(..., "--passed/--failed", help="Quality gate decision."),
    scan_id: str = typer.Option("", "--scan-id", help="Scan identifier for the details link."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build the check run without publishing."),
    token: Optional[str] = typer.Option(None, "--token", help="GitHub token (overrides config.toml and GITHUB_TOKEN)."),
):
    """Build the PR gate check run and publish it."""
    findings = _load_findings(findings_file)
    payload, published = _engine(token).annotate(
        repo_url, sha, findings, passed_gate=passed, scan_id=scan_id, publish=not dry_run
    )

    color = "green" if payload.conclusion == "success" else "red"
    console.print(Panel(payload.summary, title=f"[bold {color}]{payload.title}[/bold {color}]", border_style=color))
    console.print(f"Annotations: {len(payload.annotations)} (omitted: {payload.omitted_count})")
    if dry_run:
        console.print("[dim]Dry run: check run not published[/dim]")
    elif published:
        console.print("[green]✓[/green] Check run published")
    else:
        console.print("[yellow]Check run not published[/yellow] (no token, unknown repo, or local commit)")


@app.command("export-graph")
def export_graph(
    repo_url: str = typer.Argument(..., help="Repository URL."),
    sha: str = typer.Argument(..., help="Commit SHA to analyse."),
    focus: str = typer.Option("", "--focus", help="Only export the neighbourhood of this symbol."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output DOT file (stdout if omitted)."),
    token: Optional[str] = typer.Option(None, "--token", help="GitHub token (overrides config.toml and GITHUB_TOKEN)."),
):
    """Export the commit's call graph as Graphviz DOT."""
    snap = _engine(token).snapshot(repo_url, sha)
    entrypoints = snap.extraction.entrypoints

    if output is None:
        typer.echo(render_dot(snap.call_graph, entrypoints, focus=focus))
        return
    export_dot(snap.call_graph, entrypoints, output, focus=focus)
    typer.echo(f"Exported {len(snap.call_graph.edges)} functions to {output}")


@config_app.command("show")
def config_show():
    """Print effective limits and GitHub settings."""
    table = Table(title="Engine limits", show_header=True)
    table.add_column("Limit", style="cyan")
    table.add_column("Value")
    for name, value in config.default_limits().to_dict().items():
        table.add_row(name, str(value))
    console.print(table)

    github = load_full_config().get("github", {})
    if github.get("token"):
        token_source = "config.toml"
    elif config.resolve_token():
        token_source = "environment (GITHUB_TOKEN)"
    else:
        token_source = "unset"
    console.print(f"API URL: {config.GITHUB_API_URL}")
    console.print(f"App URL: {config.APP_BASE_URL}")
    console.print(f"Token:   {token_source}")
    console.print(f"Config:  {config.CONFIG_FILE}")


@config_app.command("set-limit")
def config_set_limit(
    name: str = typer.Argument(..., help="Limit name, e.g. max_annotations."),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist an engine limit to config.toml."""
    types = EngineLimits.field_types()
    if name not in types:
        raise typer.BadParameter(f"Unknown limit '{name}'. Choose from: {', '.join(sorted(types))}")
    try:
        coerced = types[name](value)
    except ValueError:
        raise typer.BadParameter(f"Limit '{name}' expects a {types[name].__name__}, got '{value}'.")
    if coerced <= 0:
        raise typer.BadParameter(f"Limit '{name}' must be positive.")

    if not save_limit(name, coerced):
        typer.echo(f"Failed to write {config.CONFIG_FILE}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Set {name} = {coerced}")


@config_app.command("set-github")
def config_set_github(
    key: str = typer.Argument(..., help="One of: token, api_url, app_url."),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist a GitHub setting to config.toml."""
    if key not in {"token", "api_url", "app_url"}:
        raise typer.BadParameter("Key must be one of: token, api_url, app_url")
    if not save_github_setting(key, value):
        typer.echo(f"Failed to write {config.CONFIG_FILE}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Saved github.{key}")


if __name__ == "__main__":
    app()
