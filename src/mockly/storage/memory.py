"""
In-process scan store.
"""

import threading
from typing import Dict, List, Optional

from mockly.reporting.models import IssueRecord, ProjectRecord, ScanRecord
from mockly.storage.base import ScanStore


class MemoryScanStore(ScanStore):
    """Keeps records in dictionaries for the lifetime of the process."""

    def __init__(self):
        self._lock = threading.RLock()
        self._projects: Dict[str, ProjectRecord] = {}
        self._scans: Dict[str, ScanRecord] = {}
        self._issues: Dict[str, IssueRecord] = {}

    def _save_project(self, project: ProjectRecord) -> None:
        with self._lock:
            self._projects[project.id] = project

    def _save_scan(self, scan: ScanRecord) -> None:
        with self._lock:
            self._scans[scan.id] = scan

    def _save_issue(self, issue: IssueRecord) -> None:
        with self._lock:
            self._issues[issue.id] = issue

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        with self._lock:
            return self._projects.get(project_id)

    def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        with self._lock:
            return self._scans.get(scan_id)

    def get_issue(self, issue_id: str) -> Optional[IssueRecord]:
        with self._lock:
            return self._issues.get(issue_id)

    def _all_projects(self) -> List[ProjectRecord]:
        with self._lock:
            return list(self._projects.values())

    def _all_scans(self) -> List[ScanRecord]:
        with self._lock:
            return list(self._scans.values())

    def _all_issues(self) -> List[IssueRecord]:
        with self._lock:
            return list(self._issues.values())

    def _delete_project(self, project_id: str) -> None:
        with self._lock:
            self._projects.pop(project_id, None)

    def _delete_scan(self, scan_id: str) -> None:
        with self._lock:
            self._scans.pop(scan_id, None)

    def _delete_issue(self, issue_id: str) -> None:
        with self._lock:
            self._issues.pop(issue_id, None)
