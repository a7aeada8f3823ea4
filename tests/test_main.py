"""
Tests for the command line entry point.
"""

from unittest.mock import patch

import httpx
import pytest

from jira_gateway.jira.client import JiraClient
from jira_gateway.main import create_parser, main, parse_board_list, run_command


def client_with(routes):
    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={})
        status, body = route
        return httpx.Response(status, json=body)

    return JiraClient(
        "example.atlassian.net",
        "bot@example.com",
        "secret-token",
        transport=httpx.MockTransport(handler),
    )


CLOSED_ROUTES = {
    "/rest/agile/1.0/board/1/configuration": (200, {"filter": {"projectId": "100"}}),
    "/rest/api/2/project/100": (200, {"key": "PROJ"}),
    "/rest/api/2/search": (200, {"issues": [
        {"id": "1", "key": "PROJ-1", "fields": {"summary": "Crash", "issuetype": {"name": "Bug"}}},
    ]}),
}


class TestParser:
    """Test argument parsing."""

    def test_parse_board_list(self):
        assert parse_board_list("1, 2,,3 ") == ["1", "2", "3"]

    def test_closed_items_args(self):
        args = create_parser().parse_args(["closed-items", "--boards", "12,34", "--days", "14"])
        assert args.command == "closed-items"
        assert args.boards == ["12", "34"]
        assert args.days == 14

    def test_scaffold_defaults(self):
        args = create_parser().parse_args(["scaffold", "--boards", "1"])
        assert args.format == "both"
        assert args.days == 7
        assert args.output is None

    def test_scaffold_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["scaffold", "--boards", "1", "--format", "html"])

    def test_serve_no_health(self):
        args = create_parser().parse_args(["--log-level", "DEBUG", "serve", "--no-health"])
        assert args.no_health is True
        assert args.log_level == "DEBUG"


class TestMain:
    """Test top-level exit codes."""

    def test_version(self, capsys):
        assert main(["--version"]) == 0
        assert "Jira Gateway" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage: jira-gateway" in capsys.readouterr().out

    def test_keyboard_interrupt(self):
        with patch("jira_gateway.main.async_main", side_effect=KeyboardInterrupt):
            assert main(["boards"]) == 130

    def test_unexpected_error(self):
        with patch("jira_gateway.main.async_main", side_effect=RuntimeError("boom")):
            assert main(["boards"]) == 1


class TestRunCommand:
    """Test Jira-backed commands."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self, settings):
        settings.jira_email = ""
        args = create_parser().parse_args(["boards"])

        assert await run_command(args, settings) == 1

    @pytest.mark.asyncio
    async def test_boards(self, settings):
        client = client_with({
            "/rest/agile/1.0/board": (200, {"values": [{"id": 1, "name": "Platform"}]}),
        })
        args = create_parser().parse_args(["boards"])

        with patch.object(JiraClient, "from_settings", return_value=client):
            assert await run_command(args, settings) == 0

    @pytest.mark.asyncio
    async def test_invalid_days_exit_code(self, settings):
        args = create_parser().parse_args(["closed-items", "--boards", "1", "--days", "400"])

        with patch.object(JiraClient, "from_settings", return_value=client_with({})):
            assert await run_command(args, settings) == 2

    @pytest.mark.asyncio
    async def test_failed_check(self, settings):
        client = client_with({"/rest/api/2/myself": (401, {})})
        args = create_parser().parse_args(["check"])

        with patch.object(JiraClient, "from_settings", return_value=client):
            assert await run_command(args, settings) == 1

    @pytest.mark.asyncio
    async def test_scaffold_to_file(self, settings, tmp_path):
        output = tmp_path / "drafts" / "update.md"
        args = create_parser().parse_args(
            ["scaffold", "--boards", "1", "--format", "blog", "-o", str(output)]
        )

        with patch.object(JiraClient, "from_settings", return_value=client_with(CLOSED_ROUTES)):
            assert await run_command(args, settings) == 0

        content = output.read_text(encoding="utf-8")
        assert content.startswith("# Product Updates - ")
        assert "- **Crash** (PROJ-1)" in content
