from flask import Blueprint, jsonify

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return jsonify({"name": "taskmate", "api": "/api"})


@bp.get("/api/health")
def health():
    """Health check endpoint. Returns JSON."""
    return jsonify({"ok": True})


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
