"""
Directory-backed scan store: one JSON document per record.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from mockly.reporting.models import IssueRecord, ProjectRecord, ScanRecord
from mockly.storage.base import ScanStore

logger = logging.getLogger("mockly.storage")

RecordT = TypeVar("RecordT", bound=BaseModel)


class JsonScanStore(ScanStore):
    """
    Stores records as ``<root>/<kind>/<id>.json``.

    Layout::

        root/
          projects/project_ab12cd34ef56.json
          scans/scan_....json
          issues/issue_....json
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self._lock = threading.RLock()
        for kind in ("projects", "scans", "issues"):
            (self.root / kind).mkdir(parents=True, exist_ok=True)

    def _path(self, kind: str, record_id: str) -> Path:
        # Ids are generated internally, but never let one escape the directory.
        if not record_id or "/" in record_id or "\\" in record_id or record_id.startswith("."):
            raise KeyError(f"Invalid record id: {record_id!r}")
        return self.root / kind / f"{record_id}.json"

    def _write(self, kind: str, record: BaseModel) -> None:
        path = self._path(kind, record.id)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(record.model_dump_json(by_alias=True, indent=2))
                os.replace(tmp_name, path)
            except Exception:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def _read(self, kind: str, record_id: str, model: Type[RecordT]) -> Optional[RecordT]:
        try:
            path = self._path(kind, record_id)
        except KeyError:
            return None
        if not path.exists():
            return None
        with self._lock:
            return model.model_validate_json(path.read_text())

    def _read_all(self, kind: str, model: Type[RecordT]) -> List[RecordT]:
        records = []
        with self._lock:
            for path in sorted((self.root / kind).glob("*.json")):
                try:
                    records.append(model.model_validate_json(path.read_text()))
                except ValidationError as e:
                    logger.error(f"Skipping unreadable record {path}: {e}")
        return records

    def _save_project(self, project: ProjectRecord) -> None:
        self._write("projects", project)

    def _save_scan(self, scan: ScanRecord) -> None:
        self._write("scans", scan)

    def _save_issue(self, issue: IssueRecord) -> None:
        self._write("issues", issue)

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        return self._read("projects", project_id, ProjectRecord)

    def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        return self._read("scans", scan_id, ScanRecord)

    def get_issue(self, issue_id: str) -> Optional[IssueRecord]:
        return self._read("issues", issue_id, IssueRecord)

    def _all_projects(self) -> List[ProjectRecord]:
        return self._read_all("projects", ProjectRecord)

    def _all_scans(self) -> List[ScanRecord]:
        return self._read_all("scans", ScanRecord)

    def _all_issues(self) -> List[IssueRecord]:
        return self._read_all("issues", IssueRecord)

    def _delete(self, kind: str, record_id: str) -> None:
        path = self._path(kind, record_id)
        with self._lock:
            path.unlink(missing_ok=True)

    def _delete_project(self, project_id: str) -> None:
        self._delete("projects", project_id)

    def _delete_scan(self, scan_id: str) -> None:
        self._delete("scans", scan_id)

    def _delete_issue(self, issue_id: str) -> None:
        self._delete("issues", issue_id)
