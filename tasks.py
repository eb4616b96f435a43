"""Tasks for the iflux-client project."""

import os
import sys
from pathlib import Path

from invoke import Context, task  # type: ignore[import-not-found]
from rich import box  # type: ignore[import-not-found]
from rich.console import Console  # type: ignore[import-not-found]
from rich.panel import Panel  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

console = Console()


IFLUX_URL = os.getenv("IFLUX_URL", "http://localhost:3000/v1")
IFLUX_ORGANIZATION = os.getenv("IFLUX_ORGANIZATION", "")
MAIN_DIRECTORY_PATH = Path(__file__).parent
DEFAULT_DATA_FILE = MAIN_DIRECTORY_PATH / "data" / "provisioning.example.yml"
DEFAULT_PARAMS_FILE = MAIN_DIRECTORY_PATH / "data" / "params.example.yml"


@task(name="list")
def list_tasks(context: Context) -> None:
    """List all available invoke tasks with descriptions."""
    import inspect

    current_module = inspect.getmodule(inspect.currentframe())

    tasks_info = []

    # Get all task objects from the current module
    for name, obj in inspect.getmembers(current_module):
        if "Task" in obj.__class__.__name__:
            display_name = getattr(obj, "name", name)
            if display_name.startswith("_"):
                continue
            if obj.__doc__:
                description = obj.__doc__.strip().split("\n")[0]
            else:
                description = "No description available"
            tasks_info.append((display_name, description))

    tasks_info.sort(key=lambda x: x[0])

    table = Table(
        title="Available Invoke Tasks",
        box=box.SIMPLE,
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Task", style="green", no_wrap=True)
    table.add_column("Description", style="white")

    for name, desc in tasks_info:
        table.add_row(name, desc)

    console.print()
    console.print(table)
    console.print()


@task
def info(context: Context) -> None:
    """Show current iFLUX configuration."""
    info_msg = (
        f"[cyan]API:[/cyan] {IFLUX_URL}\n"
        f"[cyan]Organization:[/cyan] {IFLUX_ORGANIZATION or '[dim]not set[/dim]'}\n"
        f"[cyan]Data file:[/cyan] [dim]{DEFAULT_DATA_FILE}[/dim]"
    )

    console.print()
    console.print(
        Panel(
            info_msg,
            title="[bold]iFLUX Configuration[/bold]",
            border_style="blue",
            box=box.SIMPLE,
        )
    )
    console.print()


@task(optional=["data", "params", "organization"])
def provision(
    context: Context,
    data: str = str(DEFAULT_DATA_FILE),
    params: str = str(DEFAULT_PARAMS_FILE),
    organization: str = IFLUX_ORGANIZATION,
) -> None:
    """Provision iFLUX entities from a YAML file."""
    command = f"uv run iflux-provision --data {data} --params {params}"
    if organization:
        command += f' --organization "{organization}"'

    output = context.run(command, pty=True, warn=True)
    if output and output.exited != 0:
        console.print("[red]✗[/red] Provisioning failed")
        sys.exit(output.exited)


@task(name="run-tests")
def run_tests(context: Context) -> None:
    """Run all tests."""
    console.print()
    console.print(
        Panel(
            "[bold cyan]Running Tests[/bold cyan]", border_style="cyan", box=box.SIMPLE
        )
    )
    context.run("pytest -vv tests")
    console.print("[green]✓[/green] Tests completed")


@task(name="_lint-yaml")
def lint_yaml(context: Context) -> None:
    """Run Linter to check all YAML files."""
    print(" - Check code with yamllint")
    exec_cmd = "yamllint ."
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run(exec_cmd)


@task(name="_lint-mypy")
def lint_mypy(context: Context) -> None:
    """Run mypy to check all Python files."""
    print(" - Check code with mypy")
    exec_cmd = "mypy --show-error-codes ."
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run(exec_cmd)


@task(name="_lint-ruff")
def lint_ruff(context: Context) -> None:
    """Run ruff to check all Python files."""
    print(" - Check code with ruff")
    exec_cmd = "ruff check ."
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run(exec_cmd)


@task(name="lint")
def lint_all(context: Context) -> None:
    """Run all linters."""
    console.print()
    console.print(
        Panel(
            "[bold yellow]Running All Linters[/bold yellow]\n"
            "[dim]YAML → Ruff → Mypy[/dim]",
            border_style="yellow",
            box=box.SIMPLE,
        )
    )

    console.print("\n[yellow]→[/yellow] Running yamllint...")
    lint_yaml(context)

    console.print("\n[yellow]→[/yellow] Running ruff...")
    lint_ruff(context)

    console.print("\n[yellow]→[/yellow] Running mypy...")
    lint_mypy(context)

    console.print("\n[green]✓[/green] All linters completed!")
    console.print()
