"""
Tests for the Flask web API.
"""

import pytest

from mockly.core.config import AIConfig, Config
from mockly.dashboard.server import create_app
from mockly.integrations.fix_generator import FixGenerator
from mockly.reporting.models import ScanResult, ScanStatus, Severity


@pytest.fixture
def scan_calls():
    return []


@pytest.fixture
def scan_result(public_users_issue, sensitive_email_issue):
    return ScanResult(
        health_score=62,
        tables_scanned=3,
        issues=[
            public_users_issue.model_copy(update={"severity": Severity.CRITICAL}),
            sensitive_email_issue,
        ],
    )


@pytest.fixture
def app(memory_store, scan_calls, scan_result):
    async def fake_runner(connection, config):
        scan_calls.append(connection)
        return scan_result

    config = Config(ai=AIConfig(provider="none"))
    app = create_app(
        config=config,
        store=memory_store,
        fix_generator=FixGenerator(config.ai),
        scan_runner=fake_runner,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def scan_payload(project_url, anon_key):
    return {"url": project_url, "anonKey": anon_key}


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"


class TestScanEndpoint:
    """Tests for POST /scan and /api/scan."""

    @pytest.mark.parametrize("path", ["/scan", "/api/scan"])
    def test_scan_success(self, client, scan_payload, scan_calls, path):
        response = client.post(path, json=scan_payload)

        assert response.status_code == 200
        data = response.get_json()
        assert data["healthScore"] == 62
        assert data["tablesScanned"] == 3
        assert data["healthLabel"] == "Needs Work"
        assert len(data["issues"]) == 2
        assert data["issues"][0]["severity"] == "critical"
        assert data["scanId"].startswith("scan_")
        assert data["projectId"].startswith("project_")
        assert len(scan_calls) == 1

    @pytest.mark.parametrize(
        "payload",
        [{}, {"url": "https://abcdefghijklmnop.supabase.co"}, {"anonKey": "eyJabc"}],
    )
    def test_missing_fields(self, client, payload, scan_calls):
        response = client.post("/scan", json=payload)

        assert response.status_code == 400
        assert response.get_json() == {"error": "Missing required fields"}
        assert scan_calls == []

    def test_non_json_body(self, client):
        response = client.post("/scan", data="url=x", content_type="text/plain")

        assert response.status_code == 400

    def test_invalid_url(self, client, anon_key, scan_calls):
        response = client.post("/scan", json={"url": "https://example.com", "anonKey": anon_key})

        assert response.status_code == 400
        assert "Invalid Supabase URL" in response.get_json()["error"]
        assert scan_calls == []

    def test_invalid_key(self, client, project_url):
        response = client.post("/scan", json={"url": project_url, "anonKey": "sk_123"})

        assert response.status_code == 400
        assert "Invalid anon key format" in response.get_json()["error"]

    def test_scan_is_stored(self, client, scan_payload, memory_store):
        data = client.post("/scan", json=scan_payload).get_json()

        scan = memory_store.get_scan(data["scanId"])
        assert scan.status == ScanStatus.COMPLETED
        assert scan.health_score == 62
        assert scan.issues_found == 2
        assert scan.completed_at is not None
        assert len(memory_store.list_issues(scan.id)) == 2

    def test_project_reused_for_same_url(self, client, scan_payload, memory_store):
        first = client.post("/scan", json=scan_payload).get_json()
        second = client.post("/scan", json=scan_payload).get_json()

        assert first["projectId"] == second["projectId"]
        assert memory_store.get_project(first["projectId"]).total_scans == 2

    def test_unknown_project(self, client, scan_payload):
        response = client.post("/scan", json={**scan_payload, "projectId": "project_nope"})

        assert response.status_code == 404
        assert response.get_json() == {"error": "Project not found"}

    def test_project_of_another_user(self, client, scan_payload, memory_store, project_url):
        project = memory_store.create_project("App", project_url, user_id="someone_else")

        response = client.post(
            "/scan", json={**scan_payload, "projectId": project.id, "userId": "me"}
        )

        assert response.status_code == 404

    def test_scan_failure(self, memory_store, scan_payload):
        async def failing_runner(connection, config):
            raise RuntimeError("network down")

        app = create_app(config=Config(), store=memory_store, scan_runner=failing_runner)
        response = app.test_client().post("/scan", json=scan_payload)

        assert response.status_code == 500
        assert response.get_json() == {"error": "Failed to run security scan"}
        scan = memory_store.list_scans()[0]
        assert scan.status == ScanStatus.FAILED
        assert scan.error_message == "network down"


class TestScanHistory:
    """Tests for reading stored scans and issues."""

    def test_get_scan(self, client, scan_payload):
        scan_id = client.post("/scan", json=scan_payload).get_json()["scanId"]

        response = client.get(f"/api/scan/{scan_id}")

        assert response.status_code == 200
        data = response.get_json()
        assert data["scanId"] == scan_id
        assert data["status"] == "completed"
        assert data["healthLabel"] == "Needs Work"
        assert len(data["issues"]) == 2

    def test_unknown_scan(self, client):
        response = client.get("/api/scan/scan_missing")

        assert response.status_code == 404
        assert response.get_json() == {"error": "Scan not found"}

    def test_list_scans(self, client, scan_payload):
        client.post("/scan", json=scan_payload)
        client.post("/scan", json={**scan_payload, "userId": "other"})

        all_scans = client.get("/api/scans").get_json()
        mine = client.get("/api/scans?userId=other").get_json()

        assert len(all_scans) == 2
        assert len(mine) == 1
        assert mine[0]["userId"] == "other"

    def test_list_scans_bad_limit(self, client):
        assert client.get("/api/scans?limit=ten").status_code == 400

    def test_get_and_resolve_issue(self, client, scan_payload, memory_store):
        scan_id = client.post("/scan", json=scan_payload).get_json()["scanId"]
        issue_id = memory_store.list_issues(scan_id)[0].id

        assert client.get(f"/api/issue/{issue_id}").get_json()["isResolved"] is False

        response = client.post(f"/api/issue/{issue_id}/resolve")

        assert response.status_code == 200
        assert response.get_json()["isResolved"] is True
        assert memory_store.get_issue(issue_id).is_resolved is True

    def test_unknown_issue(self, client):
        assert client.get("/api/issue/issue_missing").status_code == 404
        assert client.post("/api/issue/issue_missing/resolve").status_code == 404


class TestGenerateFix:
    """Tests for POST /api/generate-fix."""

    def test_fallback_fix(self, client):
        response = client.post(
            "/api/generate-fix", json={"tableName": "profiles", "issueType": "public_table"}
        )

        assert response.status_code == 200
        data = response.get_json()
        assert set(data) == {"explanation", "sql", "agentPrompt"}
        assert "ALTER TABLE profiles ENABLE ROW LEVEL SECURITY;" in data["sql"]

    def test_missing_fields(self, client):
        response = client.post("/api/generate-fix", json={"tableName": "profiles"})

        assert response.status_code == 400

    def test_fix_stored_on_issue(self, client, scan_payload, memory_store):
        scan_id = client.post("/scan", json=scan_payload).get_json()["scanId"]
        issue_id = memory_store.list_issues(scan_id)[0].id

        data = client.post(
            "/api/generate-fix",
            json={"tableName": "users", "issueType": "public_table", "issueId": issue_id},
        ).get_json()

        issue = memory_store.get_issue(issue_id)
        assert issue.ai_generated_fix == data["sql"]
        assert issue.ai_agent_prompt == data["agentPrompt"]

    def test_unknown_issue_id_still_returns_fix(self, client):
        response = client.post(
            "/api/generate-fix",
            json={"tableName": "users", "issueType": "public_table", "issueId": "issue_nope"},
        )

        assert response.status_code == 200


class TestPolicyCheck:
    """Tests for POST /api/policy/check."""

    def test_vulnerable(self, client):
        response = client.post("/api/policy/check", json={"policy": "USING (true)"})

        assert response.get_json() == {
            "isVulnerable": True,
            "reasons": ["Policy always evaluates to true"],
        }

    def test_safe(self, client):
        response = client.post("/api/policy/check", json={"policy": "USING (auth.uid() = user_id)"})

        assert response.get_json()["isVulnerable"] is False

    def test_missing_policy(self, client):
        assert client.post("/api/policy/check", json={}).status_code == 400


class TestMalformedBodies:
    """Bodies that are JSON but not the expected shape."""

    @pytest.mark.parametrize(
        "path", ["/scan", "/api/scan", "/api/generate-fix", "/api/policy/check"]
    )
    @pytest.mark.parametrize("body", [["users"], "profiles", 42, None])
    def test_non_object_body(self, client, path, body, scan_calls):
        response = client.post(path, json=body)

        assert response.status_code == 400
        assert response.get_json() == {"error": "Missing required fields"}
        assert scan_calls == []

    def test_numeric_url(self, client, scan_calls):
        response = client.post("/scan", json={"url": 123, "anonKey": "eyJabc"})

        assert response.status_code == 400
        assert "Invalid Supabase URL" in response.get_json()["error"]
        assert scan_calls == []

    def test_list_anon_key(self, client, project_url):
        response = client.post("/scan", json={"url": project_url, "anonKey": ["eyJ"]})

        assert response.status_code == 400
        assert "Invalid anon key format" in response.get_json()["error"]

    @pytest.mark.parametrize(
        "extra", [{"userId": ["me"]}, {"projectId": {"id": 1}}, {"projectName": 7}]
    )
    def test_non_string_optional_fields(self, client, scan_payload, extra, scan_calls):
        response = client.post("/scan", json={**scan_payload, **extra})

        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid field types"}
        assert scan_calls == []

    def test_non_string_table_name(self, client):
        response = client.post(
            "/api/generate-fix", json={"tableName": ["users"], "issueType": "public_table"}
        )

        assert response.status_code == 400


class TestProjects:
    """Tests for the project endpoints."""

    @pytest.fixture
    def scanned(self, client, scan_payload):
        return client.post("/scan", json={**scan_payload, "userId": "user_1"}).get_json()

    def test_list_projects(self, client, scanned, scan_payload):
        client.post("/scan", json={**scan_payload, "userId": "user_2"})

        mine = client.get("/api/projects?userId=user_1").get_json()

        assert [p["id"] for p in mine] == [scanned["projectId"]]
        assert mine[0]["totalScans"] == 1
        assert len(client.get("/api/projects").get_json()) == 2

    def test_get_project(self, client, scanned):
        response = client.get(f"/api/projects/{scanned['projectId']}?userId=user_1")

        assert response.status_code == 200
        assert response.get_json()["id"] == scanned["projectId"]

    def test_get_project_of_another_user(self, client, scanned):
        response = client.get(f"/api/projects/{scanned['projectId']}?userId=user_2")

        assert response.status_code == 404
        assert response.get_json() == {"error": "Project not found"}

    def test_rename_project(self, client, scanned, memory_store):
        response = client.patch(
            f"/api/projects/{scanned['projectId']}", json={"name": " Production ", "userId": "user_1"}
        )

        assert response.status_code == 200
        assert response.get_json()["name"] == "Production"
        assert memory_store.get_project(scanned["projectId"]).name == "Production"

    @pytest.mark.parametrize("body", [{}, {"name": ""}, {"name": 5}, ["Production"]])
    def test_rename_requires_name(self, client, scanned, body):
        response = client.patch(f"/api/projects/{scanned['projectId']}", json=body)

        assert response.status_code == 400

    def test_rename_unknown_project(self, client):
        response = client.patch("/api/projects/project_nope", json={"name": "x"})

        assert response.status_code == 404

    def test_delete_project(self, client, scanned, memory_store):
        response = client.delete(f"/api/projects/{scanned['projectId']}?userId=user_1")

        assert response.status_code == 200
        assert response.get_json() == {"deleted": scanned["projectId"]}
        assert memory_store.get_project(scanned["projectId"]) is None
        assert client.get(f"/api/scan/{scanned['scanId']}").status_code == 404
        assert memory_store.list_scans() == []

    def test_delete_project_of_another_user(self, client, scanned, memory_store):
        response = client.delete(f"/api/projects/{scanned['projectId']}?userId=user_2")

        assert response.status_code == 404
        assert memory_store.get_project(scanned["projectId"]) is not None


class TestIssueState:
    """Tests for reopening issues and issue counts."""

    def test_unresolve_issue(self, client, scan_payload, memory_store):
        scan_id = client.post("/scan", json=scan_payload).get_json()["scanId"]
        issue_id = memory_store.list_issues(scan_id)[0].id
        client.post(f"/api/issue/{issue_id}/resolve")

        response = client.post(f"/api/issue/{issue_id}/unresolve")

        assert response.status_code == 200
        data = response.get_json()
        assert data["isResolved"] is False
        assert "resolvedAt" not in data

    def test_unresolve_unknown_issue(self, client):
        assert client.post("/api/issue/issue_missing/unresolve").status_code == 404

    def test_issue_stats(self, client, scan_payload, memory_store):
        scan_id = client.post("/scan", json={**scan_payload, "userId": "user_1"}).get_json()[
            "scanId"
        ]
        critical = next(
            i for i in memory_store.list_issues(scan_id) if i.severity == Severity.CRITICAL
        )
        client.post(f"/api/issue/{critical.id}/resolve")

        stats = client.get("/api/issues/stats?userId=user_1").get_json()

        assert stats == {"total": 2, "resolved": 1, "critical": 0, "warning": 1, "info": 0}
        assert client.get("/api/issues/stats?userId=nobody").get_json()["total"] == 0
