"""
Web API for Mockly.
"""

from mockly.dashboard.server import create_app, run_server

__all__ = ["create_app", "run_server"]
