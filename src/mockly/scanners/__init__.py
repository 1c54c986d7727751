"""
Scan pipeline stages: discovery, accessibility probing and classification.
"""

from .accessibility import check_accessibility, probe_tables
from .discovery import TableDiscoverer, discover_tables
from .policy import check_policy_for_vulnerabilities
from .rls_scanner import RLSScanner, classify_tables, run_security_scan

__all__ = [
    "check_accessibility",
    "probe_tables",
    "TableDiscoverer",
    "discover_tables",
    "check_policy_for_vulnerabilities",
    "RLSScanner",
    "classify_tables",
    "run_security_scan",
]
