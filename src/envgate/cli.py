"""envgate CLI - pre-commit secret gate commands."""

import getpass
import json
import sys
from pathlib import Path

import typer

from envgate import __version__
from envgate.approval import write_marker
from envgate.config import ConfigError, load_config
from envgate.gate import check_repository
from envgate.git.exec import ExecError, run_git
from envgate.git.staged import CollectorError, resolve_git_dir, resolve_repo_root
from envgate.hook import HookError, install_hook as install_hook_impl, resolve_hooks_dir
from envgate.report import render_report, report_to_dict
from envgate.scan.rules import RegistryError, load_registry
from envgate.ui import configure_logging, make_console

cli = typer.Typer(
    name="envgate",
    help="envgate - block commits whose added lines look like leaked credentials",
    add_completion=False,
)
console = make_console()
err_console = make_console(stderr=True)


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _run_check(repo: Path | None, context: bool | None, as_json: bool) -> int:
    report = check_repository(repo, context=context)
    if as_json:
        typer.echo(json.dumps(report_to_dict(report), indent=2, sort_keys=True))
    else:
        render_report(report, console)
    return report.exit_code


@cli.callback(invoke_without_command=True)
def _cli_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log diagnostics to stderr.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show envgate version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """
    Runs on every invocation.

    With no subcommand (the way a git hook calls it) the staged index is
    checked, so `envgate` alone is a complete pre-commit hook.
    """
    _ = version
    configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        raise typer.Exit(_run_check(None, None, False))


@cli.command()
def check(
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Repository path (defaults to current working directory).",
    ),
    context: bool | None = typer.Option(
        None,
        "--context/--no-context",
        help="Show the (masked) matching line for each violation.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Emit the report as JSON instead of text.",
    ),
) -> None:
    """Scan lines added by the staged change set; exit 1 to block the commit."""
    raise typer.Exit(_run_check(repo, context, as_json))


def _default_reviewer(repo_root: Path) -> str:
    try:
        name = run_git(["config", "user.name"], repo_root=repo_root, check=False).stdout.strip()
    except ExecError:
        name = ""
    return name or getpass.getuser()


@cli.command()
def approve(
    reviewer: str | None = typer.Option(
        None,
        "--reviewer",
        help="Who approves (defaults to git user.name).",
    ),
    reason: str | None = typer.Option(
        None,
        "--reason",
        help="Why the flagged content is safe to commit.",
    ),
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Repository path (defaults to current working directory).",
    ),
) -> None:
    """Write the single-use approval marker for the next commit."""
    try:
        repo_root = resolve_repo_root(repo)
        config = load_config(repo_root)
        marker = resolve_git_dir(repo_root) / config.approval.marker
        write_marker(marker, reviewer=reviewer or _default_reviewer(repo_root), reason=reason)
    except (CollectorError, ConfigError, OSError) as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    console.print(f"[green]Approval written:[/green] {marker}")
    console.print("[dim]It is consumed by the next commit that needs it.[/dim]")


@cli.command()
def rules(
    rules_file: Path | None = typer.Option(
        None,
        "--rules-file",
        help="Rule registry YAML (defaults to the packaged registry).",
    ),
) -> None:
    """List the rule registry."""
    try:
        registry = load_registry(rules_file)
    except RegistryError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    for rule in registry.rules:
        case = "case-sensitive" if rule.case_sensitive else "case-insensitive"
        console.print(f"[bold]{rule.id}[/bold]  {rule.category.value}  {case}  [dim]{rule.label}[/dim]")


@cli.command("install-hook")
def install_hook(
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Repository path (defaults to current working directory).",
    ),
    remove: bool = typer.Option(
        False,
        "--remove",
        help="Remove the envgate block instead of adding it.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show the change without writing it.",
    ),
) -> None:
    """Add envgate to the repository's pre-commit hook."""
    try:
        repo_root = resolve_repo_root(repo)
        result = install_hook_impl(hooks_dir=resolve_hooks_dir(repo_root), remove=remove, dry_run=dry_run)
    except (CollectorError, HookError) as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc

    console.print(f"[bold]Target:[/bold] {result.path}")
    console.print("[dim]Mode: dry-run[/dim]" if dry_run else "[dim]Mode: write[/dim]")
    if result.diff:
        print(result.diff, end="" if result.diff.endswith("\n") else "\n")
    else:
        console.print("[green]No changes.[/green]")


def main() -> None:
    cli(prog_name="envgate", args=sys.argv[1:])


if __name__ == "__main__":
    main()
