#!/usr/bin/env python3
"""
Supabase Compliance Dashboard API

JSON endpoints behind the compliance dashboard: the three checks, a combined
run, a connectivity probe, compliance logs and the security chat assistant.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Type

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from supabase_compliance_checker import __version__
from supabase_compliance_checker.checks import MFACheck, PITRCheck, RLSCheck, create_checks
from supabase_compliance_checker.core.check import (
    BaseCheck,
    CheckContext,
    CompositeCheck,
    Credentials,
)
from supabase_compliance_checker.core.config import Config, load_config
from supabase_compliance_checker.core.errors import (
    ComplianceError,
    InvalidRequestError,
    MissingCredentialsError,
)
from supabase_compliance_checker.core.utils import get_environment_info, mask_secret
from supabase_compliance_checker.integrations.assistant import SecurityAssistant, parse_messages
from supabase_compliance_checker.integrations.supabase_api import (
    ManagementApiClient,
    SupabaseRestClient,
)
from supabase_compliance_checker.reporting.compliance_log import (
    ComplianceLogStore,
    log_compliance_result,
)
from supabase_compliance_checker.reporting.models import (
    CheckResponse,
    CheckStatus,
    CheckType,
    ComplianceLog,
)

logger = logging.getLogger("supabase_compliance.dashboard")

ALL_FAILED_MESSAGE = (
    "All compliance checks failed. Please verify your credentials and try again."
)

RestClientFactory = Callable[[Credentials], SupabaseRestClient]
ManagementClientFactory = Callable[[Credentials], ManagementApiClient]


def create_app(
    config: Optional[Config] = None,
    rest_client_factory: Optional[RestClientFactory] = None,
    management_client_factory: Optional[ManagementClientFactory] = None,
    log_store: Optional[ComplianceLogStore] = None,
    assistant: Optional[SecurityAssistant] = None,
) -> Flask:
    """Create and configure the Flask application."""

    config = config or load_config()
    log_store = log_store or ComplianceLogStore(config.log_store, timeout=config.request_timeout)
    assistant = assistant or SecurityAssistant(config.ai)

    app = Flask(__name__)
    CORS(app, origins=config.dashboard.cors_origins)
    app.config["COMPLIANCE_CONFIG"] = config

    def make_context(credentials: Credentials) -> CheckContext:
        return CheckContext(
            config=config,
            credentials=credentials,
            rest_client=rest_client_factory(credentials) if rest_client_factory else None,
            management_client=(
                management_client_factory(credentials) if management_client_factory else None
            ),
        )

    async def record(
        credentials: Credentials,
        check_type: CheckType,
        response: Any,
        error_message: Optional[str] = None,
    ) -> None:
        if not credentials.user_email or not credentials.project_ref:
            return
        if not log_store.is_configured:
            logger.warning("Logging database configuration missing, result not logged")
            return
        await log_compliance_result(
            log_store,
            credentials.user_email,
            check_type,
            credentials.project_ref,
            response,
            error_message=error_message,
        )

    async def execute(check: BaseCheck) -> CheckResponse:
        """Run one check and log its outcome, success or failure."""
        try:
            response = await check.run()
        except MissingCredentialsError:
            raise
        except ComplianceError as e:
            await record(check.credentials, check.check_type, e.to_dict(), error_message=e.message)
            raise
        await record(check.credentials, check.check_type, response)
        return response

    def run_single(check_class: Type[BaseCheck]):
        credentials = Credentials.from_payload(request.get_json(silent=True))
        check = check_class(make_context(credentials))
        response = asyncio.run(execute(check))
        return jsonify(response.to_dict())

    @app.errorhandler(ComplianceError)
    def handle_compliance_error(error: ComplianceError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unhandled error while serving %s", request.path)
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/api/health")
    def health():
        """Environment diagnostics; never exposes secret values"""
        return jsonify({
            "status": "ok",
            "version": __version__,
            "environment": get_environment_info(),
            "has_openai": assistant.is_configured,
            "log_store_configured": log_store.is_configured,
        })

    @app.route("/api/compliance/users", methods=["POST"])
    def check_users():
        """MFA status of every auth user"""
        return run_single(MFACheck)

    @app.route("/api/compliance/tables", methods=["POST"])
    def check_tables():
        """RLS status of every public table"""
        return run_single(RLSCheck)

    @app.route("/api/compliance/projects", methods=["POST"])
    def check_projects():
        """PITR status of the project"""
        return run_single(PITRCheck)

    @app.route("/api/compliance/run", methods=["POST"])
    def run_all_checks():
        """Run every check concurrently; one failing check does not stop the others"""
        credentials = Credentials.from_payload(request.get_json(silent=True))
        context = make_context(credentials)
        checks = create_checks(context)

        async def run_and_log() -> Dict[str, Any]:
            report = await CompositeCheck(context, checks).run_all()
            for check_type, response in report.results.items():
                await record(credentials, check_type, response)
            for check_type, message in report.loggable_errors().items():
                await record(credentials, check_type, {"error": message}, error_message=message)

            body = report.to_dict()
            body["success"] = not report.all_failed
            if report.all_failed:
                body["error"] = ALL_FAILED_MESSAGE
            return body

        return jsonify(asyncio.run(run_and_log()))

    @app.route("/api/compliance/test", methods=["POST"])
    def test_connection():
        """Probe the project's REST endpoint with the submitted key"""
        credentials = Credentials.from_payload(request.get_json(silent=True))
        if not credentials.project_ref or not credentials.service_role_key:
            raise MissingCredentialsError("Project reference and service role key are required")

        client = make_context(credentials).get_rest_client()
        raw = asyncio.run(client.probe())
        masked = mask_secret(credentials.service_role_key)

        return jsonify({
            "success": raw.ok,
            "status": raw.status,
            "statusText": raw.reason,
            "response": raw.text,
            "url": f"{client.base_url}/rest/v1/",
            "headers": {
                "Authorization": f"Bearer {masked}",
                "apikey": masked,
            },
        })

    @app.route("/api/compliance/logs", methods=["GET"])
    def get_logs():
        """Compliance logs of a user, newest first"""
        user_email = request.args.get("email")
        if not user_email:
            raise InvalidRequestError("User email is required")

        check_type = _parse_enum(CheckType, request.args.get("checkType"), "checkType")
        status = _parse_enum(CheckStatus, request.args.get("status"), "status")
        try:
            limit = int(request.args.get("limit") or 50)
        except ValueError as e:
            raise InvalidRequestError("limit must be an integer") from e

        logs = asyncio.run(
            log_store.query(
                user_email,
                check_type=check_type,
                project_ref=request.args.get("projectRef") or None,
                status=status,
                limit=limit,
            )
        )
        return jsonify({
            "success": True,
            "data": [log.model_dump(mode="json") for log in logs],
            "count": len(logs),
        })

    @app.route("/api/compliance/logs", methods=["POST"])
    def create_log():
        """Store a compliance log sent by a client"""
        body = request.get_json(silent=True) or {}
        required = ("userEmail", "checkType", "projectRef", "status", "responseData")
        if any(not body.get(field) for field in required):
            raise InvalidRequestError(
                "Missing required fields: userEmail, checkType, projectRef, status, responseData"
            )
        if body["checkType"] not in {c.value for c in CheckType}:
            raise InvalidRequestError("Invalid checkType. Must be one of: RLS, MFA, PITR")
        if body["status"] not in {s.value for s in CheckStatus}:
            raise InvalidRequestError("Invalid status. Must be either pass or fail")

        try:
            log = ComplianceLog(
                user_email=body["userEmail"],
                check_type=body["checkType"],
                project_ref=body["projectRef"],
                status=body["status"],
                response_data=body["responseData"],
                total_items=body.get("totalItems") or 0,
                compliant_items=body.get("compliantItems") or 0,
                compliance_rate=body.get("complianceRate") or 0,
                error_message=body.get("errorMessage"),
                setup_title=body.get("setupTitle"),
                note=body.get("note"),
            )
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid compliance log: {e.errors()[0]['msg']}") from e

        stored = asyncio.run(log_store.insert(log))
        return jsonify({"success": True, "data": stored.model_dump(mode="json")})

    @app.route("/api/chat", methods=["POST"])
    def chat():
        """Supabase security chat assistant"""
        body = request.get_json(silent=True) or {}
        messages = parse_messages(body.get("messages"))
        return jsonify({"success": True, "message": assistant.reply(messages)})

    return app


def _parse_enum(enum_class, value: Optional[str], field: str):
    if not value:
        return None
    try:
        return enum_class(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_class)
        raise InvalidRequestError(f"Invalid {field}. Must be one of: {allowed}") from e


def run_server(config: Config, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the dashboard API."""
    app = create_app(config)
    host = host or config.dashboard.host
    port = port or config.dashboard.port
    logger.info(f"Dashboard API listening on http://{host}:{port}/api/health")
    app.run(host=host, port=port, debug=False, threaded=True)


def main():
    """Main entry point for the dashboard server."""
    logging.basicConfig(level=logging.INFO)
    run_server(load_config())


if __name__ == "__main__":
    main()
