"""
Mockly web service.

JSON API for triggering scans, reading scan history and generating fixes.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from mockly import __version__
from mockly.core.config import Config
from mockly.core.connection import ConnectionConfig
from mockly.core.errors import InvalidConnectionError
from mockly.integrations.fix_generator import FixGenerator, FixRequest
from mockly.reporting.models import ScanResult, ScanStatus
from mockly.reporting.scoring import health_score_label
from mockly.scanners.policy import check_policy_for_vulnerabilities
from mockly.scanners.rls_scanner import run_security_scan
from mockly.storage import ScanStore, create_store

logger = logging.getLogger("mockly.dashboard")

ScanRunner = Callable[[ConnectionConfig, Config], Awaitable[ScanResult]]


def _default_scan_runner(connection: ConnectionConfig, config: Config) -> Awaitable[ScanResult]:
    return run_security_scan(connection, config)


def create_app(
    config: Optional[Config] = None,
    store: Optional[ScanStore] = None,
    fix_generator: Optional[FixGenerator] = None,
    scan_runner: Optional[ScanRunner] = None,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Application configuration (environment defaults when omitted)
        store: Scan history store (built from config when omitted)
        fix_generator: Fix generator (built from ``config.ai`` when omitted)
        scan_runner: Coroutine factory running one scan
    """
    config = config or Config()
    store = store or create_store(config)
    fix_generator = fix_generator or FixGenerator(config.ai)
    scan_runner = scan_runner or _default_scan_runner

    app = Flask(__name__)
    CORS(app)
    app.config["MOCKLY_CONFIG"] = config
    app.config["MOCKLY_STORE"] = store

    def error(message: str, status: int):
        return jsonify({"error": message}), status

    def json_body() -> Optional[Dict[str, Any]]:
        """The request body when it is a JSON object, else None."""
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "version": __version__})

    @app.route("/api/scan", methods=["POST"])
    @app.route("/scan", methods=["POST"])
    def start_scan():
        """Run a scan against a project and store the results."""
        data = json_body()
        if data is None:
            return error("Missing required fields", 400)
        url = data.get("url")
        anon_key = data.get("anonKey")

        if not url or not anon_key:
            return error("Missing required fields", 400)

        try:
            connection = ConnectionConfig(url=url, anon_key=anon_key)
        except InvalidConnectionError as e:
            return error(str(e), 400)

        user_id = data.get("userId") or "anonymous"
        project_id = data.get("projectId")
        project_name = data.get("projectName")
        if not all(isinstance(v, str) for v in (user_id, project_id or "", project_name or "")):
            return error("Invalid field types", 400)

        if project_id:
            project = store.get_project(project_id)
            if project is None or project.user_id != user_id:
                return error("Project not found", 404)
        else:
            project = store.find_project_by_url(user_id, connection.url) or store.create_project(
                name=project_name or connection.url,
                supabase_url=connection.url,
                user_id=user_id,
            )

        scan = store.create_scan(project.id, user_id)
        store.update_scan(scan.id, ScanStatus.SCANNING)

        try:
            result = asyncio.run(scan_runner(connection, config))
        except Exception as e:
            logger.exception(f"Scan {scan.id} failed")
            store.update_scan(scan.id, ScanStatus.FAILED, error_message=str(e))
            return error("Failed to run security scan", 500)

        store.add_issues(scan.id, result.issues)
        store.update_scan(
            scan.id,
            ScanStatus.COMPLETED,
            health_score=result.health_score,
            issues_found=len(result.issues),
            tables_scanned=result.tables_scanned,
        )

        return jsonify(
            {
                "scanId": scan.id,
                "projectId": project.id,
                "healthLabel": health_score_label(result.health_score),
                **result.to_response(),
            }
        )

    @app.route("/api/scan/<scan_id>")
    def get_scan(scan_id: str):
        """Get a stored scan with its issues."""
        scan = store.get_scan(scan_id)
        if scan is None:
            return error("Scan not found", 404)

        payload: Dict[str, Any] = scan.to_json_dict()
        payload["scanId"] = scan.id
        if scan.health_score is not None:
            payload["healthLabel"] = health_score_label(scan.health_score)
        payload["issues"] = [issue.to_json_dict() for issue in store.list_issues(scan_id)]
        return jsonify(payload)

    @app.route("/api/scans")
    def list_scans():
        """Recent scans, newest first."""
        try:
            limit = int(request.args.get("limit", 10))
        except ValueError:
            return error("limit must be an integer", 400)

        scans = store.list_scans(
            user_id=request.args.get("userId"),
            project_id=request.args.get("projectId"),
            limit=max(1, limit),
        )
        return jsonify([scan.to_json_dict() for scan in scans])

    @app.route("/api/issue/<issue_id>")
    def get_issue(issue_id: str):
        issue = store.get_issue(issue_id)
        if issue is None:
            return error("Issue not found", 404)
        return jsonify(issue.to_json_dict())

    @app.route("/api/issue/<issue_id>/resolve", methods=["POST"])
    def resolve_issue(issue_id: str):
        issue = store.resolve_issue(issue_id)
        if issue is None:
            return error("Issue not found", 404)
        return jsonify(issue.to_json_dict())

    @app.route("/api/issue/<issue_id>/unresolve", methods=["POST"])
    def unresolve_issue(issue_id: str):
        issue = store.unresolve_issue(issue_id)
        if issue is None:
            return error("Issue not found", 404)
        return jsonify(issue.to_json_dict())

    @app.route("/api/issues/stats")
    def issue_stats():
        """Issue counts for a user; open issues only in the per-severity counts."""
        return jsonify(store.issue_stats(user_id=request.args.get("userId")))

    @app.route("/api/projects")
    def list_projects():
        projects = store.list_projects(user_id=request.args.get("userId"))
        return jsonify([project.to_json_dict() for project in projects])

    def owned_project(project_id: str, user_id: Optional[str]):
        project = store.get_project(project_id)
        if project is None or (user_id is not None and project.user_id != user_id):
            return None
        return project

    @app.route("/api/projects/<project_id>")
    def get_project(project_id: str):
        project = owned_project(project_id, request.args.get("userId"))
        if project is None:
            return error("Project not found", 404)
        return jsonify(project.to_json_dict())

    @app.route("/api/projects/<project_id>", methods=["PATCH"])
    def update_project(project_id: str):
        data = json_body()
        if data is None or not isinstance(data.get("name"), str) or not data["name"].strip():
            return error("Missing required fields", 400)
        if owned_project(project_id, data.get("userId")) is None:
            return error("Project not found", 404)

        project = store.update_project(project_id, name=data["name"].strip())
        return jsonify(project.to_json_dict())

    @app.route("/api/projects/<project_id>", methods=["DELETE"])
    def delete_project(project_id: str):
        """Delete a project with its scans and issues."""
        if owned_project(project_id, request.args.get("userId")) is None:
            return error("Project not found", 404)
        store.delete_project(project_id)
        return jsonify({"deleted": project_id})

    @app.route("/api/generate-fix", methods=["POST"])
    def generate_fix():
        """Generate a fix for an issue (AI when configured, template otherwise)."""
        data = json_body()
        if data is None:
            return error("Missing required fields", 400)
        table_name = data.get("tableName")
        issue_type = data.get("issueType")

        if not table_name or not issue_type:
            return error("Missing required fields", 400)
        if not isinstance(table_name, str) or not isinstance(issue_type, str):
            return error("Invalid field types", 400)

        fix = fix_generator.generate(
            FixRequest(
                table_name=table_name,
                issue_type=issue_type,
                issue_description=data.get("issueDescription") or "",
                columns=list(data.get("columns") or []),
                current_policy=data.get("currentPolicy"),
            )
        )

        issue_id = data.get("issueId")
        if issue_id:
            updated = store.update_issue(
                issue_id, ai_generated_fix=fix.sql, ai_agent_prompt=fix.agent_prompt
            )
            if updated is None:
                logger.info(f"Generated fix for unknown issue {issue_id}; not stored")

        return jsonify(fix.to_dict())

    @app.route("/api/policy/check", methods=["POST"])
    def check_policy():
        data = json_body()
        if data is None:
            return error("Missing required fields", 400)
        policy = data.get("policy")
        if not isinstance(policy, str) or not policy.strip():
            return error("Missing required fields", 400)
        return jsonify(check_policy_for_vulnerabilities(policy).to_json_dict())

    return app


def run_server(config: Optional[Config] = None) -> None:
    """Create the app and serve it with Flask's threaded server."""
    config = config or Config()
    app = create_app(config)

    logger.info(f"Mockly API listening on http://{config.server.host}:{config.server.port}")
    app.run(host=config.server.host, port=config.server.port, debug=False, threaded=True)
