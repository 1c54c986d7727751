"""
RLS (Row Level Security) Exposure Scanner

Classifies discovered tables by what the anonymous key can read:
- Tables readable without authentication
- Sensitive-looking columns on readable tables
- Readable tables whose names suggest they hold private data (escalated)

and folds the findings into a health score.
"""

import logging
import re
from typing import Iterable, List, Optional, Pattern, Set, Tuple

import aiohttp

from mockly.core.config import Config
from mockly.core.connection import ConnectionConfig
from mockly.core.scanner import BaseScanner, ScanContext
from mockly.core.utils import is_service_role_key, redact_secret
from mockly.reporting.models import (
    AccessibilityResult,
    IssueType,
    ScanResult,
    SecurityIssue,
    Severity,
    TableDescriptor,
)
from mockly.reporting.scoring import calculate_health_score
from mockly.scanners.accessibility import probe_tables
from mockly.scanners.discovery import discover_tables

logger = logging.getLogger("mockly.rls_scanner")

# Order matters: the first pattern that matches a column decides its issue.
SENSITIVE_COLUMN_PATTERNS: List[Tuple[Pattern[str], Severity, str]] = [
    (re.compile(r"password", re.IGNORECASE), Severity.CRITICAL, "password data"),
    (re.compile(r"secret", re.IGNORECASE), Severity.CRITICAL, "secret data"),
    (re.compile(r"token", re.IGNORECASE), Severity.CRITICAL, "authentication tokens"),
    (re.compile(r"api[_-]?key", re.IGNORECASE), Severity.CRITICAL, "API keys"),
    (re.compile(r"ssn|social[_-]?security", re.IGNORECASE), Severity.CRITICAL, "social security numbers"),
    (re.compile(r"credit[_-]?card|card[_-]?number", re.IGNORECASE), Severity.CRITICAL, "credit card data"),
    (re.compile(r"email", re.IGNORECASE), Severity.WARNING, "email addresses"),
    (re.compile(r"phone", re.IGNORECASE), Severity.WARNING, "phone numbers"),
    (re.compile(r"address", re.IGNORECASE), Severity.INFO, "address information"),
    (re.compile(r"birth[_-]?date|dob", re.IGNORECASE), Severity.INFO, "birth date information"),
]

SENSITIVE_TABLE_PATTERNS: List[Pattern[str]] = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^users?$",
        r"^accounts?$",
        r"^profiles?$",
        r"^customers?$",
        r"^members?$",
        r"^admins?$",
        r"^auth",
        r"^sessions?$",
        r"^tokens?$",
        r"^payments?$",
        r"^orders?$",
        r"^transactions?$",
        r"^invoices?$",
        r"^subscriptions?$",
    )
]

PUBLIC_TABLE_FIX = """-- Enable RLS on the table
ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;

-- Add a policy (example: only authenticated users)
CREATE POLICY "Enable read for authenticated users only"
ON {table}
FOR SELECT
TO authenticated
USING (true);"""

SENSITIVE_COLUMN_FIX = """-- Restrict access to sensitive columns
CREATE POLICY "Hide sensitive data"
ON {table}
FOR SELECT
USING (
  -- Only allow users to see their own data
  auth.uid() = user_id
);"""


def match_sensitive_column(column_name: str) -> Optional[Tuple[Severity, str]]:
    """
    Find the first sensitive pattern a column name matches.

    Returns:
        (severity, reason) for the first match, or None
    """
    for pattern, severity, reason in SENSITIVE_COLUMN_PATTERNS:
        if pattern.search(column_name):
            return severity, reason
    return None


def is_likely_sensitive_table(table_name: str) -> bool:
    """Check whether a table name suggests it holds private data."""
    return any(pattern.search(table_name) for pattern in SENSITIVE_TABLE_PATTERNS)


def escalate_sensitive_tables(
    issues: Iterable[SecurityIssue], accessible_tables: Set[str]
) -> List[SecurityIssue]:
    """
    Raise public-table issues on likely-sensitive tables to critical.

    Returns a new list; the input issues are left untouched.
    """
    escalated: List[SecurityIssue] = []
    for issue in issues:
        if (
            issue.type == IssueType.PUBLIC_TABLE
            and issue.table_name in accessible_tables
            and is_likely_sensitive_table(issue.table_name)
        ):
            issue = issue.model_copy(
                update={
                    "severity": Severity.CRITICAL,
                    "title": f'Critical: "{issue.table_name}" table is publicly accessible',
                }
            )
        escalated.append(issue)
    return escalated


class RLSScanner(BaseScanner):
    """Scanner for tables readable with the anonymous key."""

    name = "rls_scanner"
    description = "Finds tables and sensitive columns exposed to the anon key"

    def __init__(self, context: ScanContext, tables: List[TableDescriptor]):
        super().__init__(context)
        self.tables = tables

    async def scan(self) -> List[SecurityIssue]:
        """
        Probe every table and classify what is exposed.

        Returns:
            Issues for all tables, with sensitive tables already escalated
        """
        results = await probe_tables(self.context, [table.name for table in self.tables])

        issues: List[SecurityIssue] = []
        accessible: Set[str] = set()

        for table, result in zip(self.tables, results):
            if not result.accessible:
                self.logger.debug(f"{table.name}: not accessible ({result.error})")
                continue

            accessible.add(table.name)
            issues.append(self._public_table_issue(table, result))
            issues.extend(self._sensitive_column_issues(table))

        return escalate_sensitive_tables(issues, accessible)

    def _public_table_issue(
        self, table: TableDescriptor, result: AccessibilityResult
    ) -> SecurityIssue:
        description = (
            "Anyone with your project URL and anon key can read data from this table."
        )
        if result.row_count is not None:
            plural = "" if result.row_count == 1 else "s"
            description += f" Currently contains {result.row_count} row{plural}."

        return self.create_issue(
            issue_type=IssueType.PUBLIC_TABLE,
            severity=Severity.WARNING,
            table_name=table.name,
            title=f'Table "{table.name}" is publicly accessible',
            description=description,
            technical_details="Table accessible via REST API without additional authentication",
            suggested_fix=PUBLIC_TABLE_FIX.format(table=table.name),
        )

    def _sensitive_column_issues(self, table: TableDescriptor) -> List[SecurityIssue]:
        issues = []
        for column in table.columns:
            match = match_sensitive_column(column.name)
            if match is None:
                continue

            severity, reason = match
            issues.append(
                self.create_issue(
                    issue_type=IssueType.SENSITIVE_DATA,
                    severity=severity,
                    table_name=table.name,
                    title=f"Sensitive data exposed: {column.name}",
                    description=(
                        f'The column "{column.name}" in table "{table.name}" appears to contain '
                        f"{reason}. This data is currently accessible to anyone."
                    ),
                    technical_details=f'Column "{column.name}" matches pattern for {reason}',
                    suggested_fix=SENSITIVE_COLUMN_FIX.format(table=table.name),
                    column_name=column.name,
                )
            )
        return issues


async def classify_tables(context: ScanContext, tables: List[TableDescriptor]) -> ScanResult:
    """
    Classify discovered tables and score the result.

    Args:
        context: Scan context with an open HTTP session
        tables: Tables from discovery

    Returns:
        ScanResult with issues and health score
    """
    issues = await RLSScanner(context, tables).scan()
    return ScanResult(
        health_score=calculate_health_score(issues, len(tables)),
        tables_scanned=len(tables),
        issues=issues,
        tables=tables,
    )


async def run_security_scan(
    connection: ConnectionConfig,
    config: Optional[Config] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> ScanResult:
    """
    Run one full scan: discover tables, probe and classify them, score.

    Args:
        connection: Validated project URL and anon key
        config: Configuration (defaults from the environment when omitted)
        session: Existing HTTP session to reuse; one is opened otherwise

    Returns:
        ScanResult for the project
    """
    config = config or Config()
    context = ScanContext(config=config, connection=connection, session=session)

    logger.info(
        f"Starting scan {context.scan_id} of {connection.url} "
        f"(key {redact_secret(connection.anon_key)})"
    )
    if is_service_role_key(connection.anon_key):
        logger.warning(
            "The submitted key has the service_role role; results will not reflect anonymous access"
        )

    await context.open_session()
    try:
        tables = await discover_tables(context)
        result = await classify_tables(context, tables)
    finally:
        await context.close_session()

    logger.info(
        f"Scan {context.scan_id} finished: {result.tables_scanned} tables, "
        f"{len(result.issues)} issues, score {result.health_score}"
    )
    return result
