"""
Rate-limited, sanitizing client for the Jira Cloud REST API.

Every request is admitted by the rate limiter before it touches the network,
and every response body has script blocks stripped before it is parsed.
"""

import re
import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from jira_gateway.config.settings import Settings
from jira_gateway.error_handling.exceptions import (
    ConfigurationError,
    RateLimitExceeded,
    UpstreamFailure,
)
from jira_gateway.jira.models import JiraBoard, JiraIssue
from jira_gateway.monitoring.logger import (
    get_logger,
    log_api_request,
    log_rate_limit_hit,
)
from jira_gateway.security.rate_limiter import RateLimiter
from jira_gateway.security.sanitizer import sanitize_error_text, sanitize_response_body
from jira_gateway.security.validators import (
    validate_board_ids,
    validate_days,
    validate_issue_key,
)

logger = get_logger(__name__)

HOST_PATTERN = re.compile(r"[a-zA-Z0-9.-]+\.atlassian\.net")
NUMERIC_ID_PATTERN = re.compile(r"[0-9]+")
_JQL_ESCAPE = re.compile(r"(['\"\\])")

RATE_LIMIT_KEY = "global"
DEFAULT_MAX_REQUESTS = 30
DEFAULT_WINDOW_MS = 60000
MAX_REDIRECTS = 5

CLOSED_STATUSES = ("Done", "Closed", "Resolved")
SEARCH_FIELDS = (
    "summary,description,status,issuetype,assignee,resolution,"
    "resolutiondate,created,updated,priority,labels,components"
)


def build_closed_items_jql(project_key: str, from_date: str) -> str:
    """Build the closed-items JQL query with the project key escaped."""
    escaped_project = _JQL_ESCAPE.sub(r"\\\1", project_key)
    return " ".join(
        [
            f'project = "{escaped_project}"',
            f"AND status in ({', '.join(CLOSED_STATUSES)})",
            f'AND resolutiondate >= "{from_date}"',
            "ORDER BY resolutiondate DESC",
        ]
    )


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


class JiraClient:
    """
    Async Jira client.

    The rate limiter is owned by the client instance and shared by every
    call it makes; pass one in to share it across clients.
    """

    def __init__(
        self,
        host: str,
        email: str,
        api_token: str,
        allowed_projects: Optional[Iterable[str]] = None,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 10.0,
        max_results: int = 50,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize the client.

        Args:
            host: Jira Cloud host name, e.g. ``example.atlassian.net``
            email: Account email used for basic auth
            api_token: API token used for basic auth
            allowed_projects: Project keys the client may read; empty means all
            rate_limiter: Limiter admitting requests (30 per minute by default)
            timeout: Per-request timeout in seconds
            max_results: Result cap for board listing and search
            transport: Optional httpx transport, used by tests
            today: Date source for the closed-items look-back

        Raises:
            ConfigurationError: If credentials are missing or the host is not
                an Atlassian Cloud host
        """
        if not host or not email or not api_token:
            raise ConfigurationError("Jira credentials not configured")

        if not HOST_PATTERN.fullmatch(host):
            raise ConfigurationError("Invalid Jira host format", setting="jira_host")

        self.host = host
        self.rate_limiter = rate_limiter or RateLimiter(
            DEFAULT_MAX_REQUESTS, DEFAULT_WINDOW_MS
        )
        self.allowed_projects = set(allowed_projects or [])
        self.max_results = max_results
        self._today = today or _utc_today

        self._client = httpx.AsyncClient(
            base_url=f"https://{host}/rest",
            auth=(email, api_token),
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "JiraClient":
        """Build a client and its rate limiter from application settings."""
        limiter = RateLimiter(
            settings.rate_limit_max_requests,
            settings.rate_limit_window_ms,
            enabled=settings.rate_limit_enabled,
        )
        return cls(
            settings.jira_host,
            settings.jira_email,
            settings.jira_api_token,
            settings.allowed_projects,
            rate_limiter=limiter,
            timeout=settings.jira_timeout_seconds,
            max_results=settings.jira_max_results,
            transport=transport,
        )

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    def _is_project_allowed(self, project_key: str) -> bool:
        return not self.allowed_projects or project_key in self.allowed_projects

    async def _get(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, Any]:
        """
        Issue one rate-limited GET.

        Returns:
            The status code and the sanitized JSON body (None when the body
            is not JSON)

        Raises:
            RateLimitExceeded: If the limiter rejects the call; no request is sent
            UpstreamFailure: On transport errors or a 5xx response
        """
        if not self.rate_limiter.is_allowed(RATE_LIMIT_KEY):
            log_rate_limit_hit(
                RATE_LIMIT_KEY, self.rate_limiter.max_requests, self.rate_limiter.window_ms
            )
            raise RateLimitExceeded(
                limit=self.rate_limiter.max_requests,
                window_ms=self.rate_limiter.window_ms,
            )

        start = time.perf_counter()
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamFailure(sanitize_error_text(exc), cause=exc) from exc

        log_api_request(
            "GET",
            path,
            status_code=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

        if response.status_code >= 500:
            raise UpstreamFailure(
                sanitize_error_text(
                    f"Request failed with status code {response.status_code}"
                ),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        return response.status_code, sanitize_response_body(data)

    async def get_boards(self) -> List[JiraBoard]:
        """
        List agile boards, filtered by the project allow-list.

        Raises:
            RateLimitExceeded: If the limiter rejects any call
            UpstreamFailure: If the board listing cannot be fetched
        """
        try:
            status, data = await self._get(
                "/agile/1.0/board", params={"maxResults": self.max_results}
            )
        except UpstreamFailure as exc:
            raise UpstreamFailure(
                f"Failed to fetch boards: {sanitize_error_text(exc)}",
                status_code=exc.status_code,
                cause=exc,
            ) from exc

        if status != 200:
            raise UpstreamFailure("Failed to fetch boards", status_code=status)

        boards = self._parse_boards(_as_list(_as_dict(data).get("values")))

        if not self.allowed_projects:
            return boards

        filtered = []
        for board in boards:
            project_key = await self.get_board_project(str(board.id))
            if project_key and project_key in self.allowed_projects:
                filtered.append(board)
        return filtered

    def _parse_boards(self, raw_boards: Sequence[Any]) -> List[JiraBoard]:
        boards = []
        for raw in raw_boards:
            try:
                boards.append(JiraBoard.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed board entry")
        return boards

    def _parse_issues(self, raw_issues: Sequence[Any]) -> List[JiraIssue]:
        issues = []
        for raw in raw_issues:
            try:
                issues.append(JiraIssue.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed issue entry")
        return issues

    async def get_closed_items(self, board_ids: Any, days: Any = 7) -> List[JiraIssue]:
        """
        Fetch issues resolved in the last ``days`` days on the given boards.

        Both arguments are validated before any request is made. A board
        whose project cannot be resolved, is not allowed, or whose search
        fails is logged and skipped.

        Raises:
            InvalidArgument: If ``board_ids`` or ``days`` is invalid
            RateLimitExceeded: If the limiter rejects any call
        """
        valid_board_ids = validate_board_ids(board_ids)
        valid_days = validate_days(days)

        from_date = (self._today() - timedelta(days=valid_days)).isoformat()
        closed_items: List[JiraIssue] = []

        for board_id in valid_board_ids:
            try:
                project_key = await self.get_board_project(board_id)
                if not project_key:
                    logger.warning(f"No project found for board {board_id}")
                    continue

                if not self._is_project_allowed(project_key):
                    logger.warning(f"Project {project_key} is not in allowed list")
                    continue

                status, data = await self._get(
                    "/api/2/search",
                    params={
                        "jql": build_closed_items_jql(project_key, from_date),
                        "maxResults": self.max_results,
                        "fields": SEARCH_FIELDS,
                    },
                )

                if status == 200:
                    closed_items.extend(
                        self._parse_issues(_as_list(_as_dict(data).get("issues")))
                    )
            except UpstreamFailure as exc:
                logger.error(
                    f"Error fetching issues for board {board_id}: "
                    f"{sanitize_error_text(exc)}"
                )

        return closed_items

    async def get_board_project(self, board_id: str) -> Optional[str]:
        """
        Resolve the project key behind a board.

        Returns:
            The project key, or None when the board id is not numeric or the
            project cannot be resolved

        Raises:
            RateLimitExceeded: If the limiter rejects any call
        """
        if not NUMERIC_ID_PATTERN.fullmatch(board_id):
            logger.warning("Invalid board ID format")
            return None

        try:
            status, config = await self._get(f"/agile/1.0/board/{board_id}/configuration")
            if status != 200:
                return None

            config = _as_dict(config)
            project_id = _as_dict(config.get("filter")).get("projectId") or _as_dict(
                config.get("location")
            ).get("projectId")
            # Only numeric project ids are interpolated into the request path
            if isinstance(project_id, bool) or not NUMERIC_ID_PATTERN.fullmatch(
                str(project_id or "")
            ):
                return None

            status, project = await self._get(f"/api/2/project/{project_id}")
            project_key = _as_dict(project).get("key")
            if status == 200 and isinstance(project_key, str) and project_key:
                return project_key
            return None
        except UpstreamFailure as exc:
            logger.error(f"Error fetching board configuration: {sanitize_error_text(exc)}")
            return None

    async def get_issue_details(self, issue_key: Any) -> Optional[JiraIssue]:
        """
        Fetch a single issue.

        Raises:
            InvalidArgument: If the key is not of the form ``PROJ-123``
            RateLimitExceeded: If the limiter rejects the call
        """
        key = validate_issue_key(issue_key)

        try:
            status, data = await self._get(f"/api/2/issue/{key}")
        except UpstreamFailure as exc:
            logger.error(f"Error fetching issue: {sanitize_error_text(exc)}")
            return None

        if status != 200 or not isinstance(data, dict):
            return None

        try:
            return JiraIssue.model_validate(data)
        except ValidationError:
            logger.warning("Malformed issue payload")
            return None

    async def get_current_user(self) -> Dict[str, Any]:
        """
        Return the authenticated user, confirming credentials work.

        Raises:
            UpstreamFailure: If Jira does not answer 200
        """
        status, data = await self._get("/api/2/myself")
        if status != 200 or not isinstance(data, dict):
            raise UpstreamFailure(
                f"Jira connection check failed with status {status}",
                status_code=status,
            )
        return data
