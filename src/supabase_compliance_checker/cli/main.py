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
from rich.logging import RichHandler
from rich.table import Table

from supabase_compliance_checker import __version__
from supabase_compliance_checker.checks import create_checks
from supabase_compliance_checker.core import CheckContext, CompositeCheck, Config, Credentials, load_config
from supabase_compliance_checker.core.errors import ComplianceError
from supabase_compliance_checker.core.utils import check_database_connection
from supabase_compliance_checker.reporting import (
    CheckStatus,
    CheckType,
    ComplianceLogStore,
    ComplianceReport,
    extract_summary_data,
    log_compliance_result,
)

# Create Typer app
app = typer.Typer(
    name="supabase-compliance",
    help="Supabase Compliance Checker - MFA, RLS and PITR checks for Supabase projects",
    add_completion=False,
)

console = Console()

STATUS_STYLE = {CheckStatus.PASS: "green", CheckStatus.FAIL: "red"}


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"Supabase Compliance Checker v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path]) -> Config:
    try:
        return load_config(config_file)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


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
    Supabase Compliance Checker CLI.

    Check MFA, RLS and PITR compliance and browse stored compliance logs.
    """


@app.command()
def check(
    project_ref: str = typer.Option(
        ..., "--project-ref", "-p", envvar="SUPABASE_PROJECT_REF", help="Project reference"
    ),
    service_role_key: str = typer.Option(
        ...,
        "--service-role-key",
        "-k",
        envvar="SUPABASE_SERVICE_ROLE_KEY",
        help="Service role key of the project",
    ),
    access_token: Optional[str] = typer.Option(
        None,
        "--access-token",
        "-t",
        envvar="SUPABASE_ACCESS_TOKEN",
        help="Personal access token for the Management API (PITR check)",
    ),
    db_url: Optional[str] = typer.Option(
        None,
        "--db-url",
        envvar="SUPABASE_DB_URL",
        help="Postgres connection URL; RLS is then read from pg_tables directly",
    ),
    email: Optional[str] = typer.Option(
        None, "--email", "-e", help="Log the results under this user email"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file", exists=True
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Save the JSON report to file"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose output"),
):
    """
    Run the MFA, RLS and PITR checks against a project.

    Example:
        supabase-compliance check -p abcdefghijklmnop -k $SERVICE_ROLE_KEY -t $PAT
    """
    _configure_logging(verbose)
    config = _load(config_file)
    config.verbose = verbose

    credentials = Credentials(
        project_ref=project_ref,
        service_role_key=service_role_key,
        personal_access_token=access_token,
        user_email=email,
        database_url=db_url,
    )

    console.print(f"[bold blue]🔍 Supabase Compliance Check[/bold blue] ({project_ref})")

    try:
        report = asyncio.run(_run_checks(config, credentials))
    except KeyboardInterrupt:
        console.print("\n[yellow]Check cancelled by user[/yellow]")
        raise typer.Exit(code=130)
    except ComplianceError as e:
        console.print(f"[red]Check failed: {e.message}[/red]")
        raise typer.Exit(code=1)

    _display_report(report)

    if output_file:
        with open(output_file, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
        console.print(f"[green]✓[/green] Report saved to: {output_file}")

    if report.all_failed:
        console.print("[red]All compliance checks failed. Verify your credentials.[/red]")
        raise typer.Exit(code=1)
    if report.has_failures():
        raise typer.Exit(code=1)


@app.command()
def logs(
    email: str = typer.Option(..., "--email", "-e", help="User email the logs belong to"),
    check_type: Optional[CheckType] = typer.Option(None, "--check-type", help="RLS, MFA or PITR"),
    project_ref: Optional[str] = typer.Option(None, "--project-ref", "-p"),
    status: Optional[CheckStatus] = typer.Option(None, "--status", help="pass or fail"),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum number of logs"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file", exists=True
    ),
):
    """
    List stored compliance logs, newest first.

    Example:
        supabase-compliance logs -e admin@example.com --check-type RLS
    """
    _configure_logging(False)
    config = _load(config_file)
    store = ComplianceLogStore(config.log_store, timeout=config.request_timeout)

    try:
        entries = asyncio.run(
            store.query(email, check_type=check_type, project_ref=project_ref, status=status, limit=limit)
        )
    except ComplianceError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Compliance logs for {email}")
    table.add_column("Date")
    table.add_column("Check", style="bold")
    table.add_column("Project")
    table.add_column("Status")
    table.add_column("Compliant", justify="right")
    table.add_column("Rate", justify="right")

    for entry in entries:
        color = STATUS_STYLE[entry.status]
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M") if entry.created_at else "-",
            entry.check_type.value,
            entry.project_ref,
            f"[{color}]{entry.status.value}[/{color}]",
            f"{entry.compliant_items}/{entry.total_items}",
            f"{entry.compliance_rate}%",
        )

    console.print(table)
    console.print(f"{len(entries)} log(s)")


@app.command()
def dashboard(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port to listen on"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file", exists=True
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose output"),
):
    """
    Serve the dashboard JSON API.

    Example:
        supabase-compliance dashboard --port 8080
    """
    from supabase_compliance_checker.dashboard.server import run_server

    _configure_logging(verbose)
    config = _load(config_file)
    console.print(
        f"[bold]Dashboard API:[/bold] http://{host or config.dashboard.host}:{port or config.dashboard.port}/api/health"
    )
    run_server(config, host=host, port=port)


@app.command()
def init_config(
    output_file: Path = typer.Option(
        Path("config.json"),
        "--output",
        "-o",
        help="Path for the config file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite existing file",
    ),
):
    """
    Create a default configuration file.

    Example:
        supabase-compliance init-config --output my-config.json
    """
    if output_file.exists() and not force:
        console.print(f"[yellow]File already exists: {output_file}[/yellow]")
        console.print("Use --force to overwrite")
        raise typer.Exit(code=1)

    from supabase_compliance_checker.core.config import create_default_config

    create_default_config(output_file)
    console.print(f"[green]✓[/green] Configuration file created: {output_file}")
    console.print("[yellow]⚠[/yellow] Please edit the file to add your credentials")


# Helper functions

async def _run_checks(config: Config, credentials: Credentials) -> ComplianceReport:
    """Run every check concurrently and log the outcomes when an email was given."""
    context = CheckContext(config=config, credentials=credentials)

    if credentials.database_url:
        if not await check_database_connection(credentials.database_url):
            raise ComplianceError("Could not connect to the database at --db-url")
        await context.open_db_connection()

    try:
        report = await CompositeCheck(context, create_checks(context)).run_all()
    finally:
        await context.close_db_connection()

    if credentials.user_email:
        store = ComplianceLogStore(config.log_store, timeout=config.request_timeout)
        if not store.is_configured:
            console.print("[yellow]Logging database not configured, results not logged[/yellow]")
            return report
        for check_type, response in report.results.items():
            await log_compliance_result(
                store, credentials.user_email, check_type, credentials.project_ref, response
            )
        for check_type, message in report.loggable_errors().items():
            await log_compliance_result(
                store,
                credentials.user_email,
                check_type,
                credentials.project_ref,
                {"error": message},
                error_message=message,
            )

    return report


def _display_report(report: ComplianceReport) -> None:
    """Display check results in the console."""
    console.print("\n[bold]📊 Compliance Results[/bold]")

    table = Table(title="Summary")
    table.add_column("Check", style="bold")
    table.add_column("Status")
    table.add_column("Compliant", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Note")

    for check_type in CheckType:
        if check_type in report.errors:
            table.add_row(check_type.value, "[red]error[/red]", "-", "-", report.errors[check_type])
            continue
        response = report.results.get(check_type)
        if response is None:
            continue
        if response.setup_required:
            table.add_row(
                check_type.value, "[yellow]setup required[/yellow]", "-", "-", response.instructions.title
            )
            continue

        summary = extract_summary_data(response)
        status = report.status_of(check_type)
        color = STATUS_STYLE[status]
        table.add_row(
            check_type.value,
            f"[{color}]{status.value}[/{color}]",
            f"{summary.compliant_items}/{summary.total_items}",
            f"{summary.compliance_rate}%",
            response.note or "",
        )

    console.print(table)

    for check_type, response in report.results.items():
        if response.setup_required and response.instructions:
            console.print(f"\n[bold yellow]{response.instructions.title}[/bold yellow]")
            console.print(response.instructions.description)
            console.print(response.instructions.sql, markup=False, highlight=False)
            for i, step in enumerate(response.instructions.steps, 1):
                console.print(f"{i}. {step}")

        failing = [item for item in response.data or [] if item.status == CheckStatus.FAIL]
        if failing:
            console.print(f"\n[bold]🔍 Failing {check_type.value} items ({len(failing)} total)[/bold]")
            for item in failing[:10]:
                console.print(f"  [red]✗[/red] {_describe_item(item)}")
            if len(failing) > 10:
                console.print(f"  ... and {len(failing) - 10} more")


def _describe_item(item) -> str:
    if hasattr(item, "email"):
        return item.email or item.id
    if hasattr(item, "table"):
        return f"{item.schema_name}.{item.table}"
    return item.name


if __name__ == "__main__":
    app()
