"""
Pytest configuration and shared fixtures for Mockly.
"""

from typing import Any, Callable, Dict, List, Optional

import jwt
import pytest

from mockly.core.config import AIConfig, Config, ScannerConfig
from mockly.core.connection import ConnectionConfig
from mockly.core.scanner import ScanContext
from mockly.reporting.models import IssueType, SecurityIssue, Severity
from mockly.storage.memory import MemoryScanStore

PROJECT_URL = "https://abcdefghijklmnop.supabase.co"


def make_key(role: str = "anon") -> str:
    """Build a Supabase-style API key (a signed JWT)."""
    return jwt.encode(
        {"iss": "supabase", "ref": "abcdefghijklmnop", "role": role},
        "test-jwt-secret-with-enough-length-for-hs256",
        algorithm="HS256",
    )


ANON_KEY = make_key()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# HTTP doubles
# ============================================================================

class FakeResponse:
    """Stand-in for an aiohttp response used as an async context manager."""

    def __init__(
        self,
        status: int = 200,
        json_data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        json_error: Optional[Exception] = None,
    ):
        self.status = status
        self._json = json_data
        self.headers = headers or {}
        self._json_error = json_error

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if self._json_error is not None:
            raise self._json_error
        return self._json


class _RequestContext:
    def __init__(self, handler, url: str, params: Dict[str, str], headers: Dict[str, str]):
        self._handler = handler
        self._args = (url, params, headers)

    async def __aenter__(self) -> FakeResponse:
        return self._handler(*self._args)

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """
    Records GET requests and answers them with ``handler(url, params, headers)``.
    The handler may raise to simulate a network failure.
    """

    def __init__(self, handler: Callable[[str, Dict[str, str], Dict[str, str]], FakeResponse]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, params=None, headers=None, **kwargs) -> _RequestContext:
        params = dict(params or {})
        headers = dict(headers or {})
        self.calls.append({"url": url, "params": params, "headers": headers, **kwargs})
        return _RequestContext(self.handler, url, params, headers)

    async def close(self) -> None:
        self.closed = True


def postgrest_handler(
    tables: Dict[str, Optional[List[Dict[str, Any]]]],
    counts: Optional[Dict[str, Optional[str]]] = None,
    schema: Optional[Dict[str, Any]] = None,
    rpc: Optional[Any] = None,
    schema_status: int = 200,
):
    """
    Emulate a PostgREST project.

    Args:
        tables: table name -> rows (None means the table refuses the anon key)
        counts: table name -> raw Content-Range header value
        schema: OpenAPI document served at the REST root (None -> HTTP 500)
        rpc: table-metadata RPC body (None -> HTTP 404)
        schema_status: status for the schema endpoint when a schema is given
    """
    counts = counts or {}
    rest = f"{PROJECT_URL}/rest/v1"

    def handler(url: str, params: Dict[str, str], headers: Dict[str, str]) -> FakeResponse:
        if url.startswith(f"{rest}/rpc/"):
            if rpc is None:
                return FakeResponse(404, {"message": "function not found"})
            return FakeResponse(200, rpc)

        if url == f"{rest}/":
            if schema is None:
                return FakeResponse(500, {"message": "schema unavailable"})
            return FakeResponse(schema_status, schema)

        name = url[len(rest) + 1:]
        rows = tables.get(name)
        if rows is None:
            return FakeResponse(401, {"message": "permission denied"})

        if params.get("select") == "count":
            response_headers = {}
            if counts.get(name) is not None:
                response_headers["Content-Range"] = counts[name]
            return FakeResponse(200, [{"count": len(rows)}], headers=response_headers)

        return FakeResponse(200, rows[:1])

    return handler


def openapi_schema(tables: Dict[str, List[str]]) -> Dict[str, Any]:
    """Build a minimal OpenAPI document with string-typed columns."""
    return {
        "swagger": "2.0",
        "definitions": {
            name: {"properties": {column: {"type": "string"} for column in columns}}
            for name, columns in tables.items()
        },
    }


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def anon_key() -> str:
    return ANON_KEY


@pytest.fixture
def minimal_config() -> Config:
    """Create a minimal valid configuration."""
    return Config(scanner=ScannerConfig(), ai=AIConfig(provider="none"))


@pytest.fixture
def connection() -> ConnectionConfig:
    return ConnectionConfig(url=PROJECT_URL, anon_key=ANON_KEY)


@pytest.fixture
def make_context(minimal_config: Config, connection: ConnectionConfig):
    """Factory for scan contexts backed by a FakeSession."""

    def factory(handler, config: Optional[Config] = None) -> ScanContext:
        return ScanContext(
            config=config or minimal_config,
            connection=connection,
            session=FakeSession(handler),
        )

    return factory


# ============================================================================
# Issue Fixtures
# ============================================================================

@pytest.fixture
def public_users_issue() -> SecurityIssue:
    return SecurityIssue(
        type=IssueType.PUBLIC_TABLE,
        severity=Severity.WARNING,
        table_name="users",
        title='Table "users" is publicly accessible',
        description="Anyone with your project URL and anon key can read data from this table.",
    )


@pytest.fixture
def sensitive_email_issue() -> SecurityIssue:
    return SecurityIssue(
        type=IssueType.SENSITIVE_DATA,
        severity=Severity.WARNING,
        table_name="users",
        title="Sensitive data exposed: email",
        description='The column "email" in table "users" appears to contain email addresses.',
        column_name="email",
    )


@pytest.fixture
def memory_store() -> MemoryScanStore:
    return MemoryScanStore()


# ============================================================================
# Helper Fixtures (tests have no package, so helpers are handed out here)
# ============================================================================

@pytest.fixture
def project_url() -> str:
    return PROJECT_URL


@pytest.fixture
def key_factory():
    return make_key


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def postgrest():
    return postgrest_handler


@pytest.fixture
def schema_doc():
    return openapi_schema
