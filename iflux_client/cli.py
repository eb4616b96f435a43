#!/usr/bin/env python3
"""
Provision an iFLUX platform from a YAML provisioning file.

Usage:
======
    iflux-provision --data provisioning.yml --organization "My Org"
    iflux-provision --data provisioning.yml --params params.yml --param slack_active=true
    uv run invoke provision --data provisioning.yml --organization "My Org"

Parameters are merged in this order (later wins): environment (IFLUX_URL,
IFLUX_USER, IFLUX_PASSWORD, IFLUX_SLACK_ACTIVE), --params file, --param.

Exit Codes:
===========
    0: Every entity was provisioned
    1: Provisioning failed (connection error, authentication error, halted run)
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from . import __version__
from .config import (
    BASE_URL_PARAM,
    CREATE_FAILURE_POLICIES,
    CREATE_FAILURE_POLICY,
    IFLUX_ORGANIZATION,
    MAX_RETRIES,
    PASSWORD_PARAM,
    USER_PARAM,
    default_params,
    validate_config,
)
from .exceptions import ConfigurationError, IfluxError
from .loader import load_collections, load_params
from .runner import Runner

console = Console()


def setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def parse_param(raw: str) -> tuple[str, Any]:
    """Split a name=value command line parameter.

    "true" and "false" become booleans so that flags like slack_active can be
    given on the command line.
    """
    name, sep, value = raw.partition("=")
    if not sep or not name:
        raise ConfigurationError(f"Invalid parameter '{raw}', expected name=value")
    lowered = value.lower()
    if lowered in ("true", "false"):
        return name, lowered == "true"
    return name, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="iflux-provision", description="Provision iFLUX entities")
    parser.add_argument("--data", required=True, help="Path to the provisioning YAML file")
    parser.add_argument("--params", help="Path to a YAML file with run parameters")
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Run parameter, can be repeated",
    )
    parser.add_argument("--organization", default=IFLUX_ORGANIZATION, help="Organization to provision")
    parser.add_argument("--base-url-param", default=BASE_URL_PARAM)
    parser.add_argument("--user-param", default=USER_PARAM)
    parser.add_argument("--password-param", default=PASSWORD_PARAM)
    parser.add_argument(
        "--on-create-failure",
        choices=CREATE_FAILURE_POLICIES,
        default=CREATE_FAILURE_POLICY,
        help="Stop the run or skip the entity when it cannot be created",
    )
    parser.add_argument("--max-retries", type=int, default=MAX_RETRIES)
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        validate_config()

        params: Dict[str, Any] = default_params()
        if args.params:
            params.update(load_params(args.params))
        params.update(parse_param(raw) for raw in args.param)

        runner = Runner(
            console=console,
            failure_policy=args.on_create_failure,
            max_retries=args.max_retries,
        )
        runner.add_params(params)
        for name, collection in load_collections(args.data).items():
            runner.add_collection(name, collection)

        console.print(
            Panel(
                f"[bold cyan]iFLUX provisioning[/bold cyan]\n"
                f"[dim]Organization:[/dim] {args.organization}\n"
                f"[dim]Data:[/dim] {args.data}",
                border_style="cyan",
                box=box.SIMPLE,
            )
        )

        report = runner.run(
            base_url_param=args.base_url_param,
            user_param=args.user_param,
            password_param=args.password_param,
            orga_name=args.organization,
        )

    except (IfluxError, ValueError) as e:
        console.print(
            Panel(
                f"[red]✗ ERROR: {e}[/red]",
                title="Provisioning Error",
                border_style="red",
                box=box.SIMPLE,
            )
        )
        return 1

    if not report.succeeded:
        console.print(f"\n[yellow]→[/yellow] Not provisioned: {', '.join(report.failed())}")
        return 1

    console.print("\n[bold green]✓ Provisioning completed successfully![/bold green]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
