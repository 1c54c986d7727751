"""
Accessibility Prober

Checks whether a table can be read through the project's REST interface
using only the anonymous key, and estimates how many rows it exposes.
"""

import asyncio
import logging
from typing import Any, List, Optional

from mockly.core.scanner import ScanContext
from mockly.reporting.models import AccessibilityResult

logger = logging.getLogger("mockly.accessibility")

NOT_ACCESSIBLE_ERROR = "Table not accessible with anon key"


def is_success(status: int) -> bool:
    return 200 <= status < 300


def parse_content_range(value: Optional[str]) -> Optional[int]:
    """
    Extract the total from a ``Content-Range`` header such as ``0-0/42``.

    Returns:
        The total row count, or None if the header is absent or has no total
    """
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1].strip()
    try:
        return int(total)
    except ValueError:
        return None


async def check_accessibility(context: ScanContext, table_name: str) -> AccessibilityResult:
    """
    Probe a table with the anon key.

    The first request reads at most one row. Only when it succeeds is a second
    request made asking for an exact count in the response headers. Network
    and decoding failures become a non-accessible result; this function never
    raises.

    Args:
        context: Scan context with connection and HTTP session
        table_name: Table to probe

    Returns:
        AccessibilityResult for the table
    """
    session = context.get_session()
    connection = context.connection
    url = connection.table_url(table_name)

    try:
        async with session.get(
            url,
            params={"select": "*", "limit": "1"},
            headers=connection.headers,
            **context.request_options(),
        ) as response:
            if not is_success(response.status):
                return AccessibilityResult(
                    accessible=False,
                    error=f"{NOT_ACCESSIBLE_ERROR} (HTTP {response.status})",
                )
            data = await response.json(content_type=None)
    except Exception as e:
        logger.debug(f"Probe of {table_name} failed: {e}")
        return AccessibilityResult(accessible=False, error=str(e) or type(e).__name__)

    rows: List[Any] = data if isinstance(data, list) else []

    row_count = await _fetch_row_count(context, table_name)
    if row_count is None:
        row_count = len(rows)

    return AccessibilityResult(accessible=True, row_count=row_count)


async def _fetch_row_count(context: ScanContext, table_name: str) -> Optional[int]:
    """Ask for an exact count via the Content-Range header."""
    session = context.get_session()
    connection = context.connection
    headers = {**connection.headers, "Prefer": "count=exact"}

    try:
        async with session.get(
            connection.table_url(table_name),
            params={"select": "count"},
            headers=headers,
            **context.request_options(),
        ) as response:
            return parse_content_range(response.headers.get("Content-Range"))
    except Exception as e:
        logger.debug(f"Count request for {table_name} failed: {e}")
        return None


async def probe_tables(context: ScanContext, table_names: List[str]) -> List[AccessibilityResult]:
    """
    Probe several tables, at most ``scanner.probe_concurrency`` at a time.

    Results come back in the order of ``table_names`` regardless of how the
    probes interleave.
    """
    limit = max(1, context.config.scanner.probe_concurrency)
    if limit == 1:
        return [await check_accessibility(context, name) for name in table_names]

    semaphore = asyncio.Semaphore(limit)

    async def probe(name: str) -> AccessibilityResult:
        async with semaphore:
            return await check_accessibility(context, name)

    return list(await asyncio.gather(*(probe(name) for name in table_names)))
