"""
Validation of caller-supplied tool arguments.

Tool arguments arrive untyped from the MCP host, so each validator dispatches
on the runtime type of its input and either returns a value that satisfies
its constraint or raises InvalidArgument. Nothing is silently coerced to a
default.
"""

import math
import re
from typing import Any, List, Literal, Tuple

from jira_gateway.error_handling.exceptions import InvalidArgument

ContentFormat = Literal["blog", "announcement", "both"]

MAX_BOARD_IDS = 10
MIN_DAYS = 1
MAX_DAYS = 90
VALID_FORMATS: Tuple[str, ...] = ("blog", "announcement", "both")

BOARD_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
ISSUE_KEY_PATTERN = re.compile(r"[A-Z]+-[0-9]+")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def validate_board_ids(value: Any) -> List[str]:
    """
    Validate a list of board identifiers.

    Args:
        value: Raw caller input, expected to be a list or tuple

    Returns:
        Trimmed board ids in their original order

    Raises:
        InvalidArgument: If the input is not a sequence, is empty, has more
            than ten entries, or contains a malformed id
    """
    if not isinstance(value, (list, tuple)):
        raise InvalidArgument("board_ids must be a list", field="board_ids")

    if len(value) == 0:
        raise InvalidArgument("board_ids cannot be empty", field="board_ids")

    if len(value) > MAX_BOARD_IDS:
        raise InvalidArgument(
            f"Cannot query more than {MAX_BOARD_IDS} boards at once",
            field="board_ids",
        )

    board_ids = []
    for raw in value:
        board_id = str(raw).strip()
        if not BOARD_ID_PATTERN.fullmatch(board_id):
            raise InvalidArgument(
                f"Invalid board ID format: {board_id}", field="board_ids"
            )
        board_ids.append(board_id)

    return board_ids


def _parse_int(value: Any) -> int:
    """Parse like a base-10 parseInt; raises ValueError when there is no number."""
    if isinstance(value, bool) or value is None:
        raise ValueError(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(value)
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match is None:
            raise ValueError(value)
        return int(match.group(1))
    raise ValueError(value)


def validate_days(value: Any) -> int:
    """
    Validate a look-back window in days.

    Numeric strings are accepted ("30" -> 30). Floats are truncated.

    Raises:
        InvalidArgument: If the value is not a number or is outside 1..90
    """
    try:
        days = _parse_int(value)
    except ValueError:
        raise InvalidArgument("days must be a number", field="days") from None

    if days < MIN_DAYS or days > MAX_DAYS:
        raise InvalidArgument(
            f"days must be between {MIN_DAYS} and {MAX_DAYS}", field="days"
        )

    return days


def validate_format(value: Any) -> ContentFormat:
    """
    Validate the content output format (case-sensitive).

    Raises:
        InvalidArgument: Listing the allowed values
    """
    if not isinstance(value, str) or value not in VALID_FORMATS:
        raise InvalidArgument(
            f"Invalid format. Must be one of: {', '.join(VALID_FORMATS)}",
            field="format",
        )
    return value  # type: ignore[return-value]


def validate_issue_key(value: Any) -> str:
    """Validate a Jira issue key such as ``PROJ-123``."""
    if not isinstance(value, str) or not ISSUE_KEY_PATTERN.fullmatch(value):
        raise InvalidArgument("Invalid issue key format", field="issue_key")
    return value
