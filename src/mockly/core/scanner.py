"""
Base scanner class and scan context shared by the scan pipeline.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from mockly.core.config import Config
from mockly.core.connection import ConnectionConfig
from mockly.reporting.models import IssueType, SecurityIssue, Severity


@dataclass
class ScanContext:
    """
    Context passed to every stage of a scan: configuration, the target
    connection and the HTTP session used to reach it.
    """

    config: Config
    connection: ConnectionConfig
    scan_id: str = field(default_factory=lambda: f"scan_{uuid.uuid4().hex[:12]}")
    session: Optional[aiohttp.ClientSession] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def request_options(self) -> Dict[str, Any]:
        """Extra keyword arguments for every outbound request."""
        seconds = self.config.scanner.request_timeout
        if seconds is None:
            return {}
        return {"timeout": aiohttp.ClientTimeout(total=seconds)}

    def get_session(self) -> aiohttp.ClientSession:
        """Get the HTTP session for this scan."""
        if self.session is None:
            raise RuntimeError("HTTP session not initialized. Call open_session() first.")
        return self.session

    async def open_session(self) -> None:
        """Open the HTTP session used for all requests of this scan."""
        if self.session is not None:
            return

        self.session = aiohttp.ClientSession()
        self.metadata["owns_session"] = True

    async def close_session(self) -> None:
        """Close the HTTP session if this context opened it."""
        if self.session is not None and self.metadata.pop("owns_session", False):
            await self.session.close()
            self.session = None


class BaseScanner(ABC):
    """
    Abstract base class for scan stages that produce security issues.
    """

    name: str = "base_scanner"
    description: str = "Base scanner class"

    def __init__(self, context: ScanContext):
        """
        Initialize the scanner with a scan context.

        Args:
            context: ScanContext containing configuration and shared resources
        """
        self.context = context
        self.config = context.config
        self.logger = logging.getLogger(f"mockly.{self.name}")

    @abstractmethod
    async def scan(self) -> List[SecurityIssue]:
        """
        Run the scanner and return the issues it found.
        """

    def create_issue(
        self,
        issue_type: IssueType,
        severity: Severity,
        table_name: str,
        title: str,
        description: str,
        technical_details: Optional[str] = None,
        suggested_fix: Optional[str] = None,
        column_name: Optional[str] = None,
    ) -> SecurityIssue:
        """Helper method to create a SecurityIssue."""
        return SecurityIssue(
            type=issue_type,
            severity=severity,
            table_name=table_name,
            title=title,
            description=description,
            technical_details=technical_details,
            suggested_fix=suggested_fix,
            column_name=column_name,
        )


__all__ = [
    "ScanContext",
    "BaseScanner",
]
