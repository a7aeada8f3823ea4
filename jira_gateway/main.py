"""
Jira Gateway - command line entry point.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jira_gateway import __version__
from jira_gateway.config.settings import Settings, get_settings
from jira_gateway.content.scaffolder import BlogScaffolder
from jira_gateway.error_handling.exceptions import (
    ConfigurationError,
    GatewayError,
    InvalidArgument,
)
from jira_gateway.jira.client import JiraClient
from jira_gateway.monitoring.logger import get_logger, setup_logging
from jira_gateway.security.sanitizer import sanitize_error_text
from jira_gateway.security.validators import VALID_FORMATS
from jira_gateway.server import serve

console = Console()
err_console = Console(stderr=True)
logger = get_logger("jira_gateway.main")


def parse_board_list(value: str) -> List[str]:
    """Split a comma-separated ``--boards`` value."""
    return [item.strip() for item in value.split(",") if item.strip()]


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="jira-gateway",
        description=f"Jira Gateway - rate-limited MCP access to Jira Cloud v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the MCP server on stdio (with health endpoints on :3000)
  jira-gateway serve

  # List the boards the configured account can see
  jira-gateway boards

  # Issues closed in the last two weeks on boards 12 and 34
  jira-gateway closed-items --boards 12,34 --days 14

  # Draft a release blog post into a file
  jira-gateway scaffold --boards 12 --format blog -o update.md

  # Test your Jira credentials
  jira-gateway check
        """,
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level",
    )

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the MCP stdio server")
    serve_parser.add_argument(
        "--no-health",
        action="store_true",
        help="Do not start the HTTP health service",
    )

    subparsers.add_parser("boards", help="List Jira boards")

    closed_parser = subparsers.add_parser(
        "closed-items", help="List recently closed issues"
    )
    closed_parser.add_argument(
        "--boards",
        type=parse_board_list,
        required=True,
        help="Comma-separated board IDs",
    )
    closed_parser.add_argument(
        "--days",
        type=int,
        default=7,
        help="Days to look back (default: 7)",
    )

    scaffold_parser = subparsers.add_parser(
        "scaffold", help="Generate blog/announcement drafts"
    )
    scaffold_parser.add_argument(
        "--boards",
        type=parse_board_list,
        required=True,
        help="Comma-separated board IDs",
    )
    scaffold_parser.add_argument(
        "--days",
        type=int,
        default=7,
        help="Days to look back (default: 7)",
    )
    scaffold_parser.add_argument(
        "--format",
        choices=list(VALID_FORMATS),
        default="both",
        help="Content format (default: both)",
    )
    scaffold_parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Write the Markdown to this file instead of stdout",
    )

    subparsers.add_parser("check", help="Test the Jira connection")

    return parser


def show_version() -> int:
    """Show version information."""
    console.print("\n[bold cyan]Jira Gateway[/bold cyan]")
    console.print(f"Version: [green]{__version__}[/green]")
    console.print("Python: [dim]3.10+[/dim]")
    return 0


async def list_boards(client: JiraClient) -> int:
    boards = await client.get_boards()
    if not boards:
        console.print("[yellow]No boards found[/yellow]")
        return 0

    table = Table(title="Jira Boards")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name")
    table.add_column("Type", style="dim")
    for board in boards:
        table.add_row(str(board.id), escape(board.name), escape(board.type))
    console.print(table)
    return 0


async def list_closed_items(client: JiraClient, board_ids: List[str], days: int) -> int:
    issues = await client.get_closed_items(board_ids, days)
    if not issues:
        console.print("[yellow]No closed items found in the specified time period.[/yellow]")
        return 0

    table = Table(title=f"Closed items (last {days} days)")
    table.add_column("Key", style="cyan")
    table.add_column("Type")
    table.add_column("Summary")
    table.add_column("Assignee", style="dim")
    table.add_column("Resolved", style="dim")
    for issue in issues:
        table.add_row(
            issue.key,
            escape(issue.issue_type),
            escape(issue.fields.summary),
            escape(issue.assignee_name or "-"),
            (issue.fields.resolutiondate or "")[:10],
        )
    console.print(table)
    return 0


async def scaffold_content(
    client: JiraClient,
    board_ids: List[str],
    days: int,
    content_format: str,
    output: Optional[Path],
) -> int:
    issues = await client.get_closed_items(board_ids, days)
    content = BlogScaffolder().generate_content(issues, content_format)

    if output is None:
        console.print(content, markup=False, highlight=False)
        return 0

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    console.print(f"[green]Content saved to:[/green] {escape(str(output))}")
    return 0


async def check_connection(client: JiraClient) -> int:
    """Test the configured Jira credentials."""
    console.print(f"[cyan]Testing connection to[/cyan] {client.host}")
    user = await client.get_current_user()
    name = user.get("displayName") or user.get("accountId") or "unknown"
    console.print(f"[green]Connected as:[/green] {escape(str(name))}")
    return 0


async def run_command(parsed_args: argparse.Namespace, settings: Settings) -> int:
    """Run one Jira-backed command."""
    try:
        client = JiraClient.from_settings(settings)
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {e.message}[/red]")
        missing = settings.missing_credentials()
        if missing:
            err_console.print(f"[dim]Missing: {', '.join(missing)}[/dim]")
        return 1

    async with client:
        try:
            if parsed_args.command == "boards":
                return await list_boards(client)
            if parsed_args.command == "closed-items":
                return await list_closed_items(
                    client, parsed_args.boards, parsed_args.days
                )
            if parsed_args.command == "scaffold":
                return await scaffold_content(
                    client,
                    parsed_args.boards,
                    parsed_args.days,
                    parsed_args.format,
                    parsed_args.output,
                )
            if parsed_args.command == "check":
                return await check_connection(client)
        except InvalidArgument as e:
            err_console.print(f"[red]Error: {escape(e.message)}[/red]")
            return 2
        except GatewayError as e:
            err_console.print(f"[red]Error: {escape(sanitize_error_text(e))}[/red]")
            return 1

    return 1


async def async_main(args: Optional[list[str]] = None) -> int:
    """Async main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.version:
        return show_version()

    if parsed_args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()

    if parsed_args.log_level:
        settings.log_level = parsed_args.log_level

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
    )

    if parsed_args.command == "serve":
        if parsed_args.no_health:
            settings.health_enabled = False
        await serve(settings)
        return 0

    return await run_command(parsed_args, settings)


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for the Jira gateway.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        return asyncio.run(async_main(args))
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except Exception as e:
        logger.exception("Fatal error")
        err_console.print(f"[red]Fatal error: {escape(sanitize_error_text(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
