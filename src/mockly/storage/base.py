"""
Storage interface for projects, scans and issues.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from mockly.reporting.models import (
    IssueRecord,
    ProjectRecord,
    ScanRecord,
    ScanStatus,
    SecurityIssue,
    Severity,
)

TERMINAL_STATUSES = (ScanStatus.COMPLETED, ScanStatus.FAILED)

ISSUE_UPDATE_FIELDS = frozenset(
    {"ai_generated_fix", "ai_agent_prompt", "is_resolved", "resolved_at"}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanStore(ABC):
    """
    Persists scan history. Records are created on first write, looked up by
    id, and never expire. Lookups of unknown ids return None.

    Subclasses implement the record primitives; the lifecycle rules (scan
    counters, completion timestamps, resolution) live here.
    """

    # Record primitives

    @abstractmethod
    def _save_project(self, project: ProjectRecord) -> None: ...

    @abstractmethod
    def _save_scan(self, scan: ScanRecord) -> None: ...

    @abstractmethod
    def _save_issue(self, issue: IssueRecord) -> None: ...

    @abstractmethod
    def get_project(self, project_id: str) -> Optional[ProjectRecord]: ...

    @abstractmethod
    def get_scan(self, scan_id: str) -> Optional[ScanRecord]: ...

    @abstractmethod
    def get_issue(self, issue_id: str) -> Optional[IssueRecord]: ...

    @abstractmethod
    def _all_projects(self) -> List[ProjectRecord]: ...

    @abstractmethod
    def _all_scans(self) -> List[ScanRecord]: ...

    @abstractmethod
    def _all_issues(self) -> List[IssueRecord]: ...

    @abstractmethod
    def _delete_project(self, project_id: str) -> None: ...

    @abstractmethod
    def _delete_scan(self, scan_id: str) -> None: ...

    @abstractmethod
    def _delete_issue(self, issue_id: str) -> None: ...

    # Projects

    def create_project(
        self, name: str, supabase_url: str, user_id: str = "anonymous"
    ) -> ProjectRecord:
        project = ProjectRecord(name=name, supabase_url=supabase_url, user_id=user_id)
        self._save_project(project)
        return project

    def find_project_by_url(self, user_id: str, supabase_url: str) -> Optional[ProjectRecord]:
        for project in self._all_projects():
            if project.user_id == user_id and project.supabase_url == supabase_url:
                return project
        return None

    def list_projects(self, user_id: Optional[str] = None) -> List[ProjectRecord]:
        projects = [p for p in self._all_projects() if user_id is None or p.user_id == user_id]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def update_project(self, project_id: str, name: Optional[str] = None) -> Optional[ProjectRecord]:
        """Rename a project (an empty name keeps the current one). None for unknown ids."""
        project = self.get_project(project_id)
        if project is None:
            return None

        project = project.model_copy(update={"name": name or project.name, "updated_at": utcnow()})
        self._save_project(project)
        return project

    def delete_project(self, project_id: str) -> bool:
        """
        Delete a project together with its scans and their issues.

        Returns:
            False if the project does not exist
        """
        if self.get_project(project_id) is None:
            return False

        for scan in self._all_scans():
            if scan.project_id != project_id:
                continue
            for issue in self.list_issues(scan.id):
                self._delete_issue(issue.id)
            self._delete_scan(scan.id)

        self._delete_project(project_id)
        return True

    # Scans

    def create_scan(self, project_id: str, user_id: str = "anonymous") -> ScanRecord:
        """
        Create a pending scan and bump the project's scan counters.

        Raises:
            KeyError: If the project does not exist
        """
        project = self.get_project(project_id)
        if project is None:
            raise KeyError(f"Project not found: {project_id}")

        scan = ScanRecord(project_id=project_id, user_id=user_id)
        self._save_scan(scan)

        now = utcnow()
        self._save_project(
            project.model_copy(
                update={
                    "last_scanned_at": now,
                    "total_scans": project.total_scans + 1,
                    "updated_at": now,
                }
            )
        )
        return scan

    def update_scan(self, scan_id: str, status: ScanStatus, **fields: Any) -> ScanRecord:
        """
        Move a scan to a new status, setting ``completed_at`` when it ends.

        Raises:
            KeyError: If the scan does not exist
        """
        scan = self.get_scan(scan_id)
        if scan is None:
            raise KeyError(f"Scan not found: {scan_id}")

        updates = {key: value for key, value in fields.items() if value is not None}
        updates["status"] = status
        if status in TERMINAL_STATUSES:
            updates["completed_at"] = utcnow()

        scan = scan.model_copy(update=updates)
        self._save_scan(scan)
        return scan

    def list_scans(
        self,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[ScanRecord]:
        """Scans newest first, optionally filtered by user or project."""
        scans = [
            s
            for s in self._all_scans()
            if (user_id is None or s.user_id == user_id)
            and (project_id is None or s.project_id == project_id)
        ]
        scans.sort(key=lambda s: s.started_at, reverse=True)
        return scans[:limit]

    # Issues

    def add_issues(
        self, scan_id: str, issues: Sequence[SecurityIssue]
    ) -> List[IssueRecord]:
        """
        Store copies of a scan's issues.

        Raises:
            KeyError: If the scan does not exist
        """
        scan = self.get_scan(scan_id)
        if scan is None:
            raise KeyError(f"Scan not found: {scan_id}")

        records = [
            IssueRecord.from_issue(issue, scan.id, scan.project_id, scan.user_id)
            for issue in issues
        ]
        for record in records:
            self._save_issue(record)
        return records

    def list_issues(self, scan_id: str) -> List[IssueRecord]:
        return sorted(
            (i for i in self._all_issues() if i.scan_id == scan_id),
            key=lambda i: i.created_at,
        )

    def update_issue(self, issue_id: str, **fields: Any) -> Optional[IssueRecord]:
        """
        Update an issue's remediation fields. Returns None for unknown ids.

        Raises:
            ValueError: If a field other than the remediation fields is given
        """
        unknown = set(fields) - ISSUE_UPDATE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update issue fields: {', '.join(sorted(unknown))}")

        issue = self.get_issue(issue_id)
        if issue is None:
            return None

        issue = issue.model_copy(update=fields)
        self._save_issue(issue)
        return issue

    def resolve_issue(self, issue_id: str) -> Optional[IssueRecord]:
        return self.update_issue(issue_id, is_resolved=True, resolved_at=utcnow())

    def unresolve_issue(self, issue_id: str) -> Optional[IssueRecord]:
        return self.update_issue(issue_id, is_resolved=False, resolved_at=None)

    def issue_stats(self, user_id: Optional[str] = None) -> Dict[str, int]:
        """
        Count issues for a user.

        ``total`` and ``resolved`` cover every issue; the per-severity
        counts only include issues that are still open.
        """
        issues = [i for i in self._all_issues() if user_id is None or i.user_id == user_id]
        open_issues = [i for i in issues if not i.is_resolved]

        stats = {"total": len(issues), "resolved": len(issues) - len(open_issues)}
        for severity in Severity:
            stats[severity.value] = sum(1 for i in open_issues if i.severity == severity)
        return stats
