"""
Mockly - security scanner for Supabase projects.

This package provides:
- Table discovery through a project's public REST interface
- Anonymous-access probing and sensitive column detection
- A 0-100 health score for the exposed surface
- AI-assisted (or templated) RLS fixes
- A JSON web API and a command line interface
"""

__version__ = "1.0.0"
__license__ = "MIT"

from mockly.core.connection import ConnectionConfig
from mockly.reporting.models import IssueType, ScanResult, SecurityIssue, Severity

__all__ = [
    "__version__",
    "ConnectionConfig",
    "IssueType",
    "ScanResult",
    "SecurityIssue",
    "Severity",
]
