"""HTTP API for the threat dashboard."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from flask import Flask, jsonify, request

from .aggregate import paginate_dashboard, threats_view
from .cache import CacheGate, utc_now
from .config import GEMINI_KEY_ENV, ConfigurationError, app_setting, require_api_key
from .genai import GeminiClient, GenerationError, SafetyBlocked
from .mitigation import (
    InvalidCveId,
    PlanFormatError,
    generate_mitigation_plan,
    parse_mitigation_request,
    validate_cve_id,
)
from .pipeline import ThreatPipeline, build_pipeline
from .storage import PlanStorage

logger = logging.getLogger(__name__)

CONFIG_ERROR_MESSAGE = "A server configuration error occurred."
INTERNAL_ERROR_MESSAGE = "Failed to generate mitigation plan due to an internal error."


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def create_app(
    config: Optional[dict] = None,
    pipeline: Optional[ThreatPipeline] = None,
    plan_client: Optional[GeminiClient] = None,
    storage: Optional[PlanStorage] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Parsed configuration (defaults apply when omitted)
        pipeline: Pipeline to serve; built from ``config`` when omitted
        plan_client: Generative client for on-demand plans; built per
            request from the configured API key when omitted
        storage: Where saved plans go
        clock: Time source shared by the cache gate and the pipeline
    """
    config = config or {}
    app = Flask(__name__)

    if pipeline is None:
        pipeline = build_pipeline(config, clock=clock)
    lookup = pipeline.enrichment.lookup
    storage = storage or PlanStorage(app_setting(config, "plans_dir", "data/mitigation-plans"))
    gate = CacheGate(ttl=timedelta(seconds=int(app_setting(config, "cache_ttl_seconds", 300))), clock=clock)
    gemini_config = config.get("gemini") or {}

    app.config["PIPELINE_GATE"] = gate

    def _plan_client() -> GeminiClient:
        if plan_client is not None:
            return plan_client
        key = require_api_key(config, "gemini", GEMINI_KEY_ENV)
        return GeminiClient(key, timeout=float(app_setting(config, "http_timeout", 20)))

    @app.route("/api/dashboard", methods=["GET"])
    def dashboard():
        try:
            run = gate.get(pipeline.run)
        except Exception:
            logger.exception("Error in GET /api/dashboard")
            return _error("Internal server error processing dashboard data.", 500)

        args = request.args
        if not any(name in args for name in ("page", "limit", "search")):
            return jsonify(run.snapshot.to_dict())

        try:
            page = int(args.get("page", 1))
            limit = int(args.get("limit", 10))
            return jsonify(paginate_dashboard(run.snapshot, page, limit, args.get("search", "").strip()))
        except ValueError:
            return _error("page and limit must be positive integers", 400)

    @app.route("/api/threats", methods=["GET"])
    def threats():
        try:
            run = gate.get(pipeline.run)
        except Exception:
            logger.exception("Error in GET /api/threats")
            return _error("Failed to process threat data", 500)
        return jsonify(threats_view(list(run.articles)))

    @app.route("/api/mitigation", methods=["POST"])
    def mitigation():
        body = request.get_json(silent=True)
        if body is None:
            return _error("Request body must be JSON", 400)

        try:
            plan_request = parse_mitigation_request(body)
        except InvalidCveId as e:
            logger.info(f"Rejected mitigation request: {e}")
            return _error(str(e), 400)

        try:
            client = _plan_client()
            plan = generate_mitigation_plan(
                plan_request,
                client,
                lookup=lookup,
                model=gemini_config.get("plan_model", "gemini-1.5-flash-latest"),
            )
        except ConfigurationError:
            logger.error("Generative service API key is not configured")
            return _error(CONFIG_ERROR_MESSAGE, 500)
        except SafetyBlocked as e:
            return _error(str(e), 400)
        except PlanFormatError as e:
            return _error(str(e), 502)
        except GenerationError as e:
            logger.error(f"Mitigation plan generation failed for {plan_request.cve_id}: {e}")
            return _error(INTERNAL_ERROR_MESSAGE, 502)

        return jsonify(plan)

    @app.route("/api/mitigation/save", methods=["POST"])
    def save_mitigation():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        cve_id = body.get("cveId")
        plan = body.get("mitigationPlan")
        if not cve_id or not plan:
            return _error("CVE ID and mitigation plan are required", 400)

        try:
            cve_id = validate_cve_id(cve_id)
            file_name = storage.save(cve_id, plan, clock().date())
        except InvalidCveId as e:
            return _error(str(e), 400)
        except OSError as e:
            logger.error(f"Error saving mitigation plan: {e}")
            return _error("Failed to save mitigation plan", 500)

        return jsonify(
            {"success": True, "message": "Mitigation plan saved successfully", "fileName": file_name}
        )

    return app
