"""
Policy expression checks.

Tests the text of an RLS policy definition for patterns that make it grant
access unconditionally.
"""

import re
from typing import List, Pattern, Tuple

from mockly.reporting.models import PolicyCheckResult

PERMISSIVE_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"\btrue\b", re.IGNORECASE), "Policy always evaluates to true"),
    (re.compile(r"1\s*=\s*1"), "Policy uses 1=1 pattern (always true)"),
    (re.compile(r"'\w+'\s*=\s*'\w+'"), "Policy uses string comparison that always matches"),
    (re.compile(r"public\s*=\s*true", re.IGNORECASE), "Policy explicitly allows public access"),
]


def check_policy_for_vulnerabilities(policy_definition: str) -> PolicyCheckResult:
    """
    Check a policy definition against every permissive pattern.

    Args:
        policy_definition: Raw policy text, e.g. ``USING (true)``

    Returns:
        PolicyCheckResult listing every matching reason
    """
    reasons = [
        reason
        for pattern, reason in PERMISSIVE_PATTERNS
        if pattern.search(policy_definition or "")
    ]
    return PolicyCheckResult(is_vulnerable=bool(reasons), reasons=reasons)
