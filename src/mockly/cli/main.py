"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from mockly import __version__
from mockly.core.config import Config, create_default_config, load_config
from mockly.core.connection import ConnectionConfig
from mockly.core.errors import InvalidConnectionError
from mockly.core.utils import inspect_key, setup_logging
from mockly.integrations.fix_generator import FixGenerator, FixRequest
from mockly.reporting.models import IssueType, ScanResult, Severity
from mockly.reporting.scoring import health_score_label
from mockly.scanners.policy import check_policy_for_vulnerabilities
from mockly.scanners.rls_scanner import run_security_scan

app = typer.Typer(
    name="mockly",
    help="Mockly - find Supabase tables exposed to the anon key",
    add_completion=False,
)

console = Console()
logger = logging.getLogger("mockly.cli")

SEVERITY_COLORS = {
    "critical": "red",
    "warning": "yellow",
    "info": "blue",
}


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"Mockly v{__version__}")
        raise typer.Exit()


def _load(config_file: Optional[Path], verbose: bool) -> Config:
    try:
        config = load_config(config_file)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=2)

    config.verbose = verbose
    setup_logging("DEBUG" if verbose else config.log_level, rich=True)
    logger.debug(f"Configuration: {json.dumps(config.to_dict())}")
    return config


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """
    Mockly CLI.

    Scan a Supabase project, check policy expressions and generate fixes.
    """


@app.command()
def scan(
    url: str = typer.Argument(..., help="Supabase project URL"),
    anon_key: str = typer.Option(
        ...,
        "--anon-key",
        "-k",
        envvar="SUPABASE_ANON_KEY",
        help="Project anon key",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file"
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Save results to a JSON file"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose output"),
):
    """
    Scan a project for tables readable with the anon key.

    Example:
        mockly scan https://abc.supabase.co --anon-key eyJ...
    """
    config = _load(config_file, verbose)

    try:
        connection = ConnectionConfig(url=url, anon_key=anon_key)
    except InvalidConnectionError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=2)

    if not as_json:
        console.print("[bold blue]🔍 Mockly Security Scan[/bold blue]")
        console.print(f"Target: {connection.url}")
        claims = inspect_key(connection.anon_key)
        if claims.get("role"):
            console.print(f"Key role: {claims['role']}")

    try:
        result = asyncio.run(run_security_scan(connection, config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Scan cancelled by user[/yellow]")
        raise typer.Exit(code=130)

    payload = result.to_response()
    if as_json:
        typer.echo(json.dumps(payload, indent=2))
    else:
        _display_results(result)

    if output_file:
        output_file.write_text(json.dumps(payload, indent=2))
        if not as_json:
            console.print(f"[green]✓[/green] Results saved to: {output_file}")

    if result.has_critical_issues():
        if not as_json:
            console.print("[red]⚠ Critical issues detected! Review the report.[/red]")
        raise typer.Exit(code=1)


@app.command("check-policy")
def check_policy(
    policy: str = typer.Argument(..., help="Policy expression, e.g. 'USING (true)'"),
):
    """
    Check a policy expression for always-true patterns.

    Example:
        mockly check-policy "USING (auth.uid() = user_id)"
    """
    result = check_policy_for_vulnerabilities(policy)
    if not result.is_vulnerable:
        console.print("[green]✓ No permissive patterns found[/green]")
        return

    console.print("[red]⚠ Policy looks permissive:[/red]")
    for reason in result.reasons:
        console.print(f"  - {reason}")
    raise typer.Exit(code=1)


@app.command("generate-fix")
def generate_fix(
    table_name: str = typer.Argument(..., help="Table to fix"),
    issue_type: str = typer.Option("public_table", "--issue-type", "-t", help="Issue type"),
    description: str = typer.Option("", "--description", "-d", help="Issue description"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the fix as JSON"),
):
    """
    Generate SQL and an assistant prompt that fix an exposed table.
    """
    config = _load(config_file, verbose=False)
    fix = FixGenerator(config.ai).generate(
        FixRequest(table_name=table_name, issue_type=issue_type, issue_description=description)
    )

    if as_json:
        typer.echo(json.dumps(fix.to_dict(), indent=2))
        return

    console.print(f"[bold]{fix.explanation}[/bold]\n")
    console.print(fix.sql, markup=False)
    console.print("\n[bold]Assistant prompt[/bold]\n")
    console.print(fix.agent_prompt, markup=False)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port"),
    store_dir: Optional[Path] = typer.Option(
        None, "--store-dir", help="Persist scans as JSON under this directory"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file"
    ),
):
    """Run the Mockly web API."""
    from mockly.dashboard.server import run_server

    config = _load(config_file, verbose=False)
    setup_logging(config.log_level, rich=False)
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if store_dir:
        config.server.store_dir = store_dir

    run_server(config)


@app.command("init-config")
def init_config(
    output_file: Path = typer.Option(
        Path("mockly.json"), "--output", "-o", help="Path for the config file"
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite existing file"),
):
    """
    Create a default configuration file.

    Example:
        mockly init-config --output my-config.json
    """
    if output_file.exists() and not force:
        console.print(f"[yellow]File already exists: {output_file}[/yellow]")
        console.print("Use --force to overwrite")
        raise typer.Exit(code=1)

    create_default_config(output_file)
    console.print(f"[green]✓[/green] Configuration file created: {output_file}")


def _display_results(result: ScanResult) -> None:
    """Display scan results in the console."""
    label = health_score_label(result.health_score)
    console.print("\n[bold]📊 Scan Results[/bold]")
    console.print(f"Tables scanned: {result.tables_scanned}")
    console.print(f"Health Score: [bold]{result.health_score}/100[/bold] ({label})")

    if not result.issues:
        console.print("[green]✓ No exposed tables found[/green]")
        return

    counts = ", ".join(
        f"{len(result.get_issues_by_severity(severity))} {severity.value}" for severity in Severity
    )
    public_tables = len(result.get_issues_by_type(IssueType.PUBLIC_TABLE))
    console.print(f"Issues: {counts} ({public_tables} publicly readable tables)")

    table = Table(title=f"Issues ({len(result.issues)})")
    table.add_column("Severity", style="bold")
    table.add_column("Table")
    table.add_column("Issue")

    for issue in result.issues:
        color = SEVERITY_COLORS.get(issue.severity.value, "white")
        table.add_row(
            f"[{color}]{issue.severity.value.upper()}[/{color}]",
            issue.table_name,
            issue.title,
        )

    console.print(table)


if __name__ == "__main__":
    app()
