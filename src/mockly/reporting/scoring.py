"""
Health score calculation.
"""

from typing import Iterable, Sequence

from mockly.reporting.models import IssueType, SecurityIssue, Severity

SEVERITY_PENALTIES = {
    Severity.CRITICAL: 25,
    Severity.WARNING: 10,
    Severity.INFO: 3,
}

MAX_UNEXPOSED_BONUS = 10
UNEXPOSED_TABLE_BONUS = 2

SCORE_LABELS = (
    (90, "Excellent"),
    (80, "Good"),
    (60, "Needs Work"),
    (40, "At Risk"),
)


def calculate_health_score(issues: Sequence[SecurityIssue], table_count: int) -> int:
    """
    Fold issues into a 0-100 health score.

    Every issue costs points by severity. Tables that were not found to be
    publicly readable earn a small bonus. A scan with no tables is vacuously
    secure and scores 100.

    Args:
        issues: Final (already escalated) issue list
        table_count: Number of tables scanned

    Returns:
        Score clamped to [0, 100]
    """
    if table_count == 0:
        return 100

    score = 100
    for issue in issues:
        score -= SEVERITY_PENALTIES.get(issue.severity, 0)

    public_tables = _count_public_tables(issues)
    if public_tables < table_count:
        score += min(MAX_UNEXPOSED_BONUS, (table_count - public_tables) * UNEXPOSED_TABLE_BONUS)

    return max(0, min(100, int(round(score))))


def health_score_label(score: int) -> str:
    """Human-readable label for a health score."""
    for threshold, label in SCORE_LABELS:
        if score >= threshold:
            return label
    return "Critical"


def _count_public_tables(issues: Iterable[SecurityIssue]) -> int:
    return sum(1 for issue in issues if issue.type == IssueType.PUBLIC_TABLE)
