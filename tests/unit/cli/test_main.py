"""
Tests for the Typer CLI.
"""

import json

import pytest
from typer.testing import CliRunner

from mockly import __version__
from mockly.cli import main as cli_main
from mockly.reporting.models import ScanResult, Severity

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
    monkeypatch.delenv("MOCKLY_AI__PROVIDER", raising=False)


@pytest.fixture
def fake_scan(monkeypatch):
    """Replace the network scan with a canned result."""
    state = {"result": ScanResult(health_score=100, tables_scanned=0), "calls": []}

    async def fake_run(connection, config=None, session=None):
        state["calls"].append(connection)
        return state["result"]

    monkeypatch.setattr(cli_main, "run_security_scan", fake_run)
    return state


class TestVersion:
    def test_version(self):
        result = runner.invoke(cli_main.app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestScanCommand:
    """Tests for `mockly scan`."""

    def test_clean_project(self, fake_scan, project_url, anon_key):
        result = runner.invoke(cli_main.app, ["scan", project_url, "--anon-key", anon_key])

        assert result.exit_code == 0
        assert "Health Score" in result.stdout
        assert "100/100" in result.stdout
        assert fake_scan["calls"][0].url == project_url

    def test_critical_issue_exit_code(self, fake_scan, project_url, anon_key, public_users_issue):
        critical = public_users_issue.model_copy(update={"severity": Severity.CRITICAL})
        fake_scan["result"] = ScanResult(health_score=79, tables_scanned=3, issues=[critical])

        result = runner.invoke(cli_main.app, ["scan", project_url, "-k", anon_key])

        assert result.exit_code == 1
        assert "users" in result.stdout
        assert "Issues: 1 critical, 0 warning, 0 info" in result.stdout

    def test_json_output(self, fake_scan, project_url, anon_key, sensitive_email_issue):
        fake_scan["result"] = ScanResult(
            health_score=92, tables_scanned=2, issues=[sensitive_email_issue]
        )

        result = runner.invoke(cli_main.app, ["scan", project_url, "-k", anon_key, "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["healthScore"] == 92
        assert data["tablesScanned"] == 2
        assert data["issues"][0]["columnName"] == "email"

    def test_output_file(self, fake_scan, project_url, anon_key, tmp_path):
        output = tmp_path / "report.json"

        result = runner.invoke(
            cli_main.app, ["scan", project_url, "-k", anon_key, "--output", str(output)]
        )

        assert result.exit_code == 0
        assert json.loads(output.read_text())["healthScore"] == 100

    def test_anon_key_from_env(self, fake_scan, project_url, anon_key, monkeypatch):
        monkeypatch.setenv("SUPABASE_ANON_KEY", anon_key)

        result = runner.invoke(cli_main.app, ["scan", project_url])

        assert result.exit_code == 0
        assert fake_scan["calls"][0].anon_key == anon_key

    def test_invalid_url(self, fake_scan, anon_key):
        result = runner.invoke(cli_main.app, ["scan", "https://example.com", "-k", anon_key])

        assert result.exit_code == 2
        assert "Invalid Supabase URL" in result.stdout
        assert fake_scan["calls"] == []

    def test_missing_config_file(self, fake_scan, project_url, anon_key, tmp_path):
        result = runner.invoke(
            cli_main.app,
            ["scan", project_url, "-k", anon_key, "--config", str(tmp_path / "missing.json")],
        )

        assert result.exit_code == 2


class TestCheckPolicyCommand:
    """Tests for `mockly check-policy`."""

    def test_permissive(self):
        result = runner.invoke(cli_main.app, ["check-policy", "USING (1=1)"])

        assert result.exit_code == 1
        assert "Policy uses 1=1 pattern (always true)" in result.stdout

    def test_safe(self):
        result = runner.invoke(cli_main.app, ["check-policy", "USING (auth.uid() = user_id)"])

        assert result.exit_code == 0


class TestGenerateFixCommand:
    """Tests for `mockly generate-fix`."""

    def test_json_fallback(self):
        result = runner.invoke(cli_main.app, ["generate-fix", "profiles", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert "ALTER TABLE profiles ENABLE ROW LEVEL SECURITY;" in data["sql"]
        assert data["agentPrompt"]

    def test_plain_output(self):
        result = runner.invoke(cli_main.app, ["generate-fix", "orders", "-t", "sensitive_data"])

        assert result.exit_code == 0
        assert "ENABLE ROW LEVEL SECURITY" in result.stdout
        assert "Assistant prompt" in result.stdout
        assert "Fix Row Level Security" in result.stdout


class TestInitConfigCommand:
    """Tests for `mockly init-config`."""

    def test_creates_file(self, tmp_path):
        output = tmp_path / "mockly.json"

        result = runner.invoke(cli_main.app, ["init-config", "--output", str(output)])

        assert result.exit_code == 0
        assert json.loads(output.read_text())["scanner"]["rpc_function"] == "get_tables_info"

    def test_refuses_overwrite(self, tmp_path):
        output = tmp_path / "mockly.json"
        output.write_text("{}")

        result = runner.invoke(cli_main.app, ["init-config", "--output", str(output)])

        assert result.exit_code == 1
        assert output.read_text() == "{}"

    def test_force_overwrite(self, tmp_path):
        output = tmp_path / "mockly.json"
        output.write_text("{}")

        result = runner.invoke(cli_main.app, ["init-config", "--output", str(output), "--force"])

        assert result.exit_code == 0
        assert "scanner" in json.loads(output.read_text())
