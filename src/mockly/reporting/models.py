"""
Pydantic models for discovered tables, security issues and scan results.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Severity(str, Enum):
    """Severity levels for security issues."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class IssueType(str, Enum):
    """Kinds of security issue a scan can report."""

    RLS_MISSING = "rls_missing"
    RLS_PERMISSIVE = "rls_permissive"
    PUBLIC_TABLE = "public_table"
    SENSITIVE_DATA = "sensitive_data"


class ScanStatus(str, Enum):
    PENDING = "pending"
    SCANNING = "scanning"
    COMPLETED = "completed"
    FAILED = "failed"


class ColumnDescriptor(CamelModel):
    """A column of a discovered table."""

    name: str
    type: str = "unknown"
    is_nullable: bool = True


class TableDescriptor(CamelModel):
    """A table found by discovery. ``rls_enabled`` is best-effort."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    schema_name: str = Field("public", alias="schema")
    rls_enabled: bool = False
    columns: List[ColumnDescriptor] = Field(default_factory=list)


class AccessibilityResult(CamelModel):
    """Outcome of probing one table with the anon key."""

    accessible: bool
    row_count: Optional[int] = None
    error: Optional[str] = None


class SecurityIssue(CamelModel):
    """A single security finding. Immutable once created."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: IssueType
    severity: Severity
    table_name: str
    title: str
    description: str
    technical_details: Optional[str] = None
    suggested_fix: Optional[str] = None
    column_name: Optional[str] = None


class PolicyCheckResult(CamelModel):
    """Result of testing a policy expression for permissive patterns."""

    is_vulnerable: bool
    reasons: List[str] = Field(default_factory=list)


class ScanResult(CamelModel):
    """Complete result of one scan."""

    health_score: int = Field(100, ge=0, le=100, description="Health score (0-100)")
    tables_scanned: int = 0
    issues: List[SecurityIssue] = Field(default_factory=list)
    tables: List[TableDescriptor] = Field(default_factory=list)

    def get_issues_by_severity(self, severity: Severity) -> List[SecurityIssue]:
        """Get all issues of a specific severity."""
        return [i for i in self.issues if i.severity == severity]

    def get_issues_by_type(self, issue_type: IssueType) -> List[SecurityIssue]:
        return [i for i in self.issues if i.type == issue_type]

    def has_critical_issues(self) -> bool:
        """Check if there are any critical issues."""
        return any(i.severity == Severity.CRITICAL for i in self.issues)

    def to_response(self) -> Dict[str, Any]:
        """Payload returned by the scan endpoint."""
        return {
            "healthScore": self.health_score,
            "tablesScanned": self.tables_scanned,
            "issues": [issue.to_json_dict() for issue in self.issues],
        }


class ProjectRecord(CamelModel):
    """A scanned Supabase project. The anon key is never stored."""

    id: str = Field(default_factory=lambda: _new_id("project"))
    user_id: str = "anonymous"
    name: str
    supabase_url: str
    last_scanned_at: Optional[datetime] = None
    total_scans: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ScanRecord(CamelModel):
    """Stored lifecycle of one scan."""

    id: str = Field(default_factory=lambda: _new_id("scan"))
    project_id: str
    user_id: str = "anonymous"
    status: ScanStatus = ScanStatus.PENDING
    health_score: Optional[int] = None
    issues_found: Optional[int] = None
    tables_scanned: Optional[int] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None


class IssueRecord(CamelModel):
    """Stored copy of a :class:`SecurityIssue` plus its remediation state."""

    id: str = Field(default_factory=lambda: _new_id("issue"))
    scan_id: str
    project_id: str
    user_id: str = "anonymous"
    type: IssueType
    severity: Severity
    table_name: str
    title: str
    description: str
    technical_details: Optional[str] = None
    suggested_fix: Optional[str] = None
    column_name: Optional[str] = None
    ai_generated_fix: Optional[str] = None
    ai_agent_prompt: Optional[str] = None
    is_resolved: bool = False
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_issue(
        cls, issue: SecurityIssue, scan_id: str, project_id: str, user_id: str
    ) -> "IssueRecord":
        return cls(
            scan_id=scan_id,
            project_id=project_id,
            user_id=user_id,
            **issue.model_dump(),
        )
