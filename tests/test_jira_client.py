"""
Tests for the Jira client, with Jira faked by httpx.MockTransport.
"""

import base64
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
import pytest

from jira_gateway.error_handling.exceptions import (
    ConfigurationError,
    InvalidArgument,
    RateLimitExceeded,
    UpstreamFailure,
)
from jira_gateway.jira.client import JiraClient, build_closed_items_jql
from jira_gateway.jira.models import JiraBoard, JiraIssue
from jira_gateway.security.rate_limiter import RateLimiter

HOST = "example.atlassian.net"
TODAY = date(2026, 10, 19)


def make_transport(routes: Dict[str, Any], calls: Optional[List[httpx.Request]] = None):
    """Route by URL path; a value is (status, json), a callable or an exception."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"errorMessages": ["Not found"]})
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


def make_client(routes, calls=None, **kwargs) -> JiraClient:
    kwargs.setdefault("rate_limiter", RateLimiter(100, 60000, cleanup_probability=0))
    return JiraClient(
        HOST,
        "bot@example.com",
        "secret-token",
        transport=make_transport(routes, calls),
        today=lambda: TODAY,
        **kwargs,
    )


def issue_payload(key: str, issue_type: str = "Story") -> Dict[str, Any]:
    return {
        "id": key.split("-")[1],
        "key": key,
        "fields": {
            "summary": f"Summary {key}",
            "issuetype": {"name": issue_type},
            "status": {"name": "Done"},
        },
    }


BOARD_ROUTES = {
    "/rest/agile/1.0/board/1/configuration": (200, {"filter": {"projectId": "100"}}),
    "/rest/agile/1.0/board/2/configuration": (200, {"filter": {}, "location": {"projectId": 200}}),
    "/rest/api/2/project/100": (200, {"id": "100", "key": "PROJ"}),
    "/rest/api/2/project/200": (200, {"id": "200", "key": "OTHER"}),
}


class TestJiraClientConstruction:
    """Test credential and host checks."""

    @pytest.mark.parametrize(
        "host,email,token",
        [("", "a@b.com", "t"), (HOST, "", "t"), (HOST, "a@b.com", "")],
    )
    def test_missing_credentials(self, host, email, token):
        with pytest.raises(ConfigurationError, match="Jira credentials not configured"):
            JiraClient(host, email, token)

    @pytest.mark.parametrize(
        "host",
        ["example.com", "example.atlassian.net.evil.com", "https://example.atlassian.net", "a b.atlassian.net"],
    )
    def test_invalid_host(self, host):
        with pytest.raises(ConfigurationError, match="Invalid Jira host format"):
            JiraClient(host, "a@b.com", "t")

    def test_default_rate_limiter(self):
        client = JiraClient(HOST, "a@b.com", "t")
        assert client.rate_limiter.max_requests == 30
        assert client.rate_limiter.window_ms == 60000

    def test_from_settings(self, settings):
        settings.rate_limit_max_requests = 5
        settings.rate_limit_window_ms = 1000
        settings.jira_allowed_projects = "PROJ,OPS"

        client = JiraClient.from_settings(settings)

        assert client.rate_limiter.max_requests == 5
        assert client.rate_limiter.window_ms == 1000
        assert client.allowed_projects == {"PROJ", "OPS"}


class TestGetBoards:
    """Test board listing."""

    @pytest.mark.asyncio
    async def test_returns_boards_with_auth(self):
        calls = []
        routes = {
            "/rest/agile/1.0/board": (200, {"values": [
                {"id": 1, "name": "Team <script>steal()</script>Board", "type": "scrum"},
                {"id": 2, "name": "Ops", "type": "kanban"},
            ]}),
        }

        async with make_client(routes, calls) as client:
            boards = await client.get_boards()

        assert boards == [
            JiraBoard(id=1, name="Team Board", type="scrum"),
            JiraBoard(id=2, name="Ops", type="kanban"),
        ]
        request = calls[0]
        assert request.url.params["maxResults"] == "50"
        expected = base64.b64encode(b"bot@example.com:secret-token").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_filtered_by_allowed_projects(self):
        routes = dict(BOARD_ROUTES)
        routes["/rest/agile/1.0/board"] = (200, {"values": [
            {"id": 1, "name": "Mine", "type": "scrum"},
            {"id": 2, "name": "Theirs", "type": "scrum"},
        ]})

        async with make_client(routes, allowed_projects=["PROJ"]) as client:
            boards = await client.get_boards()

        assert [board.id for board in boards] == [1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"values": "oops"}, {"values": 3}, [1, 2], None])
    async def test_malformed_listing_yields_no_boards(self, body):
        async with make_client({"/rest/agile/1.0/board": (200, body)}) as client:
            assert await client.get_boards() == []

    @pytest.mark.asyncio
    async def test_malformed_entries_are_skipped(self):
        routes = {
            "/rest/agile/1.0/board": (200, {"values": ["junk", {"id": 4, "name": "Ok"}]}),
        }
        async with make_client(routes) as client:
            boards = await client.get_boards()

        assert [board.id for board in boards] == [4]

    @pytest.mark.asyncio
    async def test_non_200_status(self):
        async with make_client({"/rest/agile/1.0/board": (403, {"errorMessages": ["x"]})}) as client:
            with pytest.raises(UpstreamFailure) as exc_info:
                await client.get_boards()

        assert exc_info.value.message == "Failed to fetch boards"
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_server_error_is_wrapped(self):
        async with make_client({"/rest/agile/1.0/board": (502, {})}) as client:
            with pytest.raises(UpstreamFailure) as exc_info:
                await client.get_boards()

        assert exc_info.value.message == (
            "Failed to fetch boards: Request failed with status code 502"
        )

    @pytest.mark.asyncio
    async def test_transport_error_is_redacted(self):
        routes = {
            "/rest/agile/1.0/board": httpx.ConnectError(
                "Connection refused by https://example.atlassian.net/rest"
            ),
        }

        async with make_client(routes) as client:
            with pytest.raises(UpstreamFailure) as exc_info:
                await client.get_boards()

        assert exc_info.value.message == (
            "Failed to fetch boards: Connection refused by [URL_REDACTED]"
        )
        assert "atlassian" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rate_limited_without_network(self):
        calls = []
        limiter = RateLimiter(0, 60000, cleanup_probability=0)

        async with make_client({}, calls, rate_limiter=limiter) as client:
            with pytest.raises(RateLimitExceeded) as exc_info:
                await client.get_boards()

        assert str(exc_info.value) == "Rate limit exceeded. Please try again later."
        assert calls == []


class TestGetClosedItems:
    """Test closed-items search."""

    @pytest.mark.asyncio
    async def test_search_query(self):
        calls = []
        routes = dict(BOARD_ROUTES)
        routes["/rest/api/2/search"] = (200, {"issues": [
            issue_payload("PROJ-1"),
            issue_payload("PROJ-2", "Bug"),
        ]})

        async with make_client(routes, calls) as client:
            issues = await client.get_closed_items(["1"], 7)

        assert [issue.key for issue in issues] == ["PROJ-1", "PROJ-2"]
        assert issues[1].issue_type == "Bug"

        search = [c for c in calls if c.url.path == "/rest/api/2/search"][0]
        assert search.url.params["jql"] == (
            'project = "PROJ" AND status in (Done, Closed, Resolved) '
            'AND resolutiondate >= "2026-10-12" ORDER BY resolutiondate DESC'
        )
        assert search.url.params["maxResults"] == "50"
        assert "resolutiondate" in search.url.params["fields"]

    @pytest.mark.asyncio
    async def test_invalid_days_fails_before_network(self):
        calls = []

        async with make_client(BOARD_ROUTES, calls) as client:
            with pytest.raises(InvalidArgument, match="days must be between 1 and 90"):
                await client.get_closed_items(["1"], 400)

        assert calls == []

    @pytest.mark.asyncio
    async def test_invalid_board_ids_fail_before_network(self):
        calls = []

        async with make_client(BOARD_ROUTES, calls) as client:
            with pytest.raises(InvalidArgument, match="Invalid board ID format"):
                await client.get_closed_items(["1", "1 OR 1=1"])

        assert calls == []

    @pytest.mark.asyncio
    async def test_exhausted_limiter_propagates(self):
        calls = []
        limiter = RateLimiter(0, 60000, cleanup_probability=0)

        async with make_client(BOARD_ROUTES, calls, rate_limiter=limiter) as client:
            with pytest.raises(RateLimitExceeded):
                await client.get_closed_items(["1"], 7)

        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_board_is_skipped(self):
        def search(request: httpx.Request) -> httpx.Response:
            if '"PROJ"' in request.url.params["jql"]:
                return httpx.Response(500, json={})
            return httpx.Response(200, json={"issues": [issue_payload("OTHER-7")]})

        routes = dict(BOARD_ROUTES)
        routes["/rest/api/2/search"] = search

        async with make_client(routes) as client:
            issues = await client.get_closed_items(["1", "2"], 14)

        assert [issue.key for issue in issues] == ["OTHER-7"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "config",
        [
            {"filter": "weird"},
            {"filter": ["100"], "location": 7},
            {"filter": {"projectId": {"id": "200"}}},
            {"filter": {"projectId": "../myself"}},
            ["not", "an", "object"],
        ],
    )
    async def test_malformed_board_configuration_skips_board(self, config):
        calls = []
        routes = dict(BOARD_ROUTES)
        routes["/rest/agile/1.0/board/2/configuration"] = (200, config)
        routes["/rest/api/2/search"] = (200, {"issues": [issue_payload("PROJ-1")]})

        async with make_client(routes, calls) as client:
            issues = await client.get_closed_items(["1", "2"])

        assert [issue.key for issue in issues] == ["PROJ-1"]
        assert not any(c.url.path == "/rest/api/2/myself" for c in calls)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"issues": 5}, {"issues": {"key": "X-1"}}, ["PROJ-1"], None])
    async def test_malformed_search_response_skips_board(self, body):
        def search(request: httpx.Request) -> httpx.Response:
            if '"PROJ"' in request.url.params["jql"]:
                return httpx.Response(200, json=body)
            return httpx.Response(200, json={"issues": [issue_payload("OTHER-7")]})

        routes = dict(BOARD_ROUTES)
        routes["/rest/api/2/search"] = search

        async with make_client(routes) as client:
            issues = await client.get_closed_items(["1", "2"])

        assert [issue.key for issue in issues] == ["OTHER-7"]

    @pytest.mark.asyncio
    async def test_malformed_project_response(self):
        routes = dict(BOARD_ROUTES)
        routes["/rest/api/2/project/100"] = (200, {"key": ["PROJ"]})

        async with make_client(routes) as client:
            assert await client.get_board_project("1") is None

    @pytest.mark.asyncio
    async def test_disallowed_and_unresolvable_boards_skipped(self):
        calls = []
        routes = dict(BOARD_ROUTES)
        routes["/rest/api/2/search"] = (200, {"issues": [issue_payload("PROJ-1")]})

        async with make_client(routes, calls, allowed_projects=["OTHER"]) as client:
            issues = await client.get_closed_items(["1", "abc", "99"])

        assert issues == []
        assert not any(c.url.path == "/rest/api/2/search" for c in calls)
        # "abc" is never sent: only numeric boards are resolved
        assert not any("abc" in c.url.path for c in calls)

    @pytest.mark.asyncio
    async def test_script_blocks_stripped_from_issues(self):
        payload = issue_payload("PROJ-1")
        payload["fields"]["summary"] = "Fix<script>alert(1)</script> login"
        routes = dict(BOARD_ROUTES)
        routes["/rest/api/2/search"] = (200, {"issues": [payload]})

        async with make_client(routes) as client:
            issues = await client.get_closed_items(["1"])

        assert issues[0].fields.summary == "Fix login"


class TestOtherOperations:
    """Test project resolution, issue lookup and connection check."""

    @pytest.mark.asyncio
    async def test_board_project_via_location(self):
        async with make_client(BOARD_ROUTES) as client:
            assert await client.get_board_project("2") == "OTHER"

    @pytest.mark.asyncio
    async def test_board_project_missing(self):
        async with make_client(BOARD_ROUTES) as client:
            assert await client.get_board_project("404") is None
            assert await client.get_board_project("not-numeric") is None

    @pytest.mark.asyncio
    async def test_get_issue_details(self):
        routes = {"/rest/api/2/issue/PROJ-1": (200, issue_payload("PROJ-1"))}

        async with make_client(routes) as client:
            issue = await client.get_issue_details("PROJ-1")
            missing = await client.get_issue_details("PROJ-2")

        assert isinstance(issue, JiraIssue)
        assert issue.key == "PROJ-1"
        assert missing is None

    @pytest.mark.asyncio
    async def test_get_issue_details_validates_key(self):
        calls = []
        async with make_client({}, calls) as client:
            with pytest.raises(InvalidArgument, match="Invalid issue key format"):
                await client.get_issue_details("proj-1")
        assert calls == []

    @pytest.mark.asyncio
    async def test_get_current_user(self):
        routes = {"/rest/api/2/myself": (200, {"accountId": "abc", "displayName": "Bot"})}

        async with make_client(routes) as client:
            user = await client.get_current_user()

        assert user["displayName"] == "Bot"

    @pytest.mark.asyncio
    async def test_get_current_user_unauthorized(self):
        routes = {"/rest/api/2/myself": (401, {"errorMessages": ["Unauthorized"]})}

        async with make_client(routes) as client:
            with pytest.raises(UpstreamFailure) as exc_info:
                await client.get_current_user()

        assert exc_info.value.status_code == 401


class TestBuildJql:
    """Test JQL construction."""

    def test_plain_key(self):
        assert build_closed_items_jql("PROJ", "2026-01-01") == (
            'project = "PROJ" AND status in (Done, Closed, Resolved) '
            'AND resolutiondate >= "2026-01-01" ORDER BY resolutiondate DESC'
        )

    def test_quotes_and_backslashes_escaped(self):
        jql = build_closed_items_jql('A"B\'C\\D', "2026-01-01")
        assert jql.startswith('project = "A\\"B\\\'C\\\\D"')
