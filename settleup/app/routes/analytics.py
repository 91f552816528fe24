"""
routes/analytics.py — Cross-group activity dashboard.

Endpoints (url_prefix=/api/v1/analytics):
  GET /analytics/dashboard  → 200  expenses and payments in all of the
                                   caller's groups, newest first
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from settleup.app.extensions import db
from settleup.app.middleware.auth_middleware import require_auth
from settleup.app.services import analytics_service

analytics_bp = Blueprint("analytics", __name__)


@analytics_bp.route("/dashboard", methods=["GET"])
@require_auth
def dashboard():
    result = analytics_service.get_dashboard(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
