"""
MCP tool entry points.

Every tool returns text. Validation failures come back verbatim as
``Error: <message>``; any other failure is redacted before it leaves the
process.
"""

import asyncio
import json
import time
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from jira_gateway.config.settings import Settings
from jira_gateway.content.scaffolder import NO_ITEMS_MESSAGE, BlogScaffolder
from jira_gateway.error_handling.exceptions import GatewayError, InvalidArgument
from jira_gateway.health.service import HealthService
from jira_gateway.jira.client import JiraClient
from jira_gateway.monitoring.logger import (
    CorrelationContext,
    get_logger,
    log_performance_metric,
    log_validation_error,
)
from jira_gateway.notifiers import WebhookNotifier, build_notifiers
from jira_gateway.security.sanitizer import sanitize_error_text
from jira_gateway.security.validators import (
    validate_board_ids,
    validate_days,
    validate_format,
)

logger = get_logger(__name__)

SERVER_NAME = "jira-gateway"
MAX_BOARD_NAME_LENGTH = 100

BoardIdsArg = Annotated[
    Any, Field(description="List of board IDs to check (at most 10)")
]
DaysArg = Annotated[
    Any, Field(description="Number of days to look back for closed items (1-90)")
]
FormatArg = Annotated[
    Any, Field(description="Output format: blog, announcement or both")
]


class JiraTools:
    """The gateway's tool implementations, independent of the MCP transport."""

    def __init__(
        self,
        jira_client: JiraClient,
        scaffolder: Optional[BlogScaffolder] = None,
        notifiers: Optional[List[WebhookNotifier]] = None,
    ):
        self.jira_client = jira_client
        self.scaffolder = scaffolder or BlogScaffolder()
        self.notifiers = list(notifiers or [])

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[str]],
        args: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Run one tool call under a correlation ID and turn errors into text."""
        with CorrelationContext() as correlation_id:
            tool_logger = get_logger(
                __name__, operation=operation, correlation_id=correlation_id
            )
            start = time.perf_counter()
            tool_logger.info(f"Tool call: {operation}")
            try:
                result = await call()
            except InvalidArgument as exc:
                log_validation_error(exc.field or "arguments", args, exc.message)
                return f"Error: {exc.message}"
            except GatewayError as exc:
                tool_logger.error(
                    f"Tool call failed: {operation}: {sanitize_error_text(exc)}",
                    extra={"error_code": exc.error_code},
                )
                return f"Error: {sanitize_error_text(exc)}"
            except Exception as exc:
                tool_logger.exception(f"Unexpected error in {operation}")
                return f"Error: {sanitize_error_text(exc)}"

            log_performance_metric(
                operation,
                round((time.perf_counter() - start) * 1000, 2),
                context={"correlation_id": correlation_id},
            )
            return result

    async def get_boards(self) -> str:
        """List boards as JSON."""

        async def call() -> str:
            boards = await self.jira_client.get_boards()
            return json.dumps([board.to_payload() for board in boards], indent=2)

        return await self._run("get_boards", call)

    async def get_closed_items(self, board_ids: Any, days: Any = 7) -> str:
        """List issues closed in the last ``days`` days as JSON."""

        async def call() -> str:
            valid_board_ids = validate_board_ids(board_ids)
            valid_days = validate_days(days)
            issues = await self.jira_client.get_closed_items(valid_board_ids, valid_days)
            return json.dumps([issue.to_payload() for issue in issues], indent=2)

        return await self._run(
            "get_closed_items", call, {"board_ids": board_ids, "days": days}
        )

    async def scaffold_announcement(
        self, board_ids: Any, days: Any = 7, format: Any = "both"
    ) -> str:
        """Generate Markdown release content for closed issues."""

        async def call() -> str:
            valid_board_ids = validate_board_ids(board_ids)
            valid_days = validate_days(days)
            valid_format = validate_format(format)
            issues = await self.jira_client.get_closed_items(valid_board_ids, valid_days)
            return self.scaffolder.generate_content(issues, valid_format)

        return await self._run(
            "scaffold_announcement",
            call,
            {"board_ids": board_ids, "days": days, "format": format},
        )

    async def notify_closed_items(
        self, board_ids: Any, days: Any = 7, board_name: Any = "Jira"
    ) -> str:
        """Push a closed-items summary to every configured chat webhook."""

        async def call() -> str:
            valid_board_ids = validate_board_ids(board_ids)
            valid_days = validate_days(days)
            if not self.notifiers:
                raise InvalidArgument(
                    "No notification channels configured", field="notifiers"
                )

            issues = await self.jira_client.get_closed_items(valid_board_ids, valid_days)
            if not issues:
                return NO_ITEMS_MESSAGE

            name = str(board_name).strip()[:MAX_BOARD_NAME_LENGTH] or "Jira"
            for notifier in self.notifiers:
                await notifier.send_closed_items_notification(issues, name, valid_days)

            channels = ", ".join(notifier.channel for notifier in self.notifiers)
            return f"Sent summary of {len(issues)} closed items to: {channels}"

        return await self._run(
            "notify_closed_items",
            call,
            {"board_ids": board_ids, "days": days, "board_name": board_name},
        )


def build_mcp_server(tools: JiraTools) -> FastMCP:
    """Register the tools on a FastMCP server."""
    mcp = FastMCP(SERVER_NAME)

    @mcp.tool()
    async def get_boards() -> str:
        """List all available Jira boards"""
        return await tools.get_boards()

    @mcp.tool()
    async def get_closed_items(board_ids: BoardIdsArg, days: DaysArg = 7) -> str:
        """Get closed items from specific Jira boards"""
        return await tools.get_closed_items(board_ids, days)

    @mcp.tool()
    async def scaffold_announcement(
        board_ids: BoardIdsArg, days: DaysArg = 7, format: FormatArg = "both"
    ) -> str:
        """Generate blog and announcement content for closed Jira items"""
        return await tools.scaffold_announcement(board_ids, days, format)

    @mcp.tool()
    async def notify_closed_items(
        board_ids: BoardIdsArg,
        days: DaysArg = 7,
        board_name: Annotated[
            str, Field(description="Board name shown in the notification")
        ] = "Jira",
    ) -> str:
        """Send a summary of closed Jira items to the configured Slack/Teams channels"""
        return await tools.notify_closed_items(board_ids, days, board_name)

    return mcp


async def serve(settings: Settings) -> None:
    """
    Run the MCP stdio server until the host disconnects.

    The health service, when enabled, runs alongside and is stopped when the
    stdio session ends.
    """
    jira_client = JiraClient.from_settings(settings)
    tools = JiraTools(jira_client, notifiers=build_notifiers(settings))
    mcp = build_mcp_server(tools)

    health: Optional[HealthService] = None
    health_task: Optional[asyncio.Task] = None
    if settings.health_enabled:
        health = HealthService(settings, jira_client)
        health_task = asyncio.create_task(health.serve())

    logger.info(
        "Starting Jira gateway",
        extra={
            "transport": "stdio",
            "allowed_project_count": len(settings.allowed_projects),
            "notifier_count": len(tools.notifiers),
        },
    )
    try:
        await mcp.run_stdio_async()
    finally:
        if health is not None and health_task is not None:
            health.shutdown()
            await health_task
        await jira_client.aclose()
        logger.info("Jira gateway shutdown complete")
