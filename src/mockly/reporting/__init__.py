"""
Reporting module: data model and health scoring.
"""

from mockly.reporting.models import (
    AccessibilityResult,
    ColumnDescriptor,
    IssueRecord,
    IssueType,
    PolicyCheckResult,
    ProjectRecord,
    ScanRecord,
    ScanResult,
    ScanStatus,
    SecurityIssue,
    Severity,
    TableDescriptor,
)
from mockly.reporting.scoring import calculate_health_score, health_score_label

__all__ = [
    "AccessibilityResult",
    "ColumnDescriptor",
    "IssueRecord",
    "IssueType",
    "PolicyCheckResult",
    "ProjectRecord",
    "ScanRecord",
    "ScanResult",
    "ScanStatus",
    "SecurityIssue",
    "Severity",
    "TableDescriptor",
    "calculate_health_score",
    "health_score_label",
]
