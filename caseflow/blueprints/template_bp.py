"""
Process template blueprint.

Endpoints:
    GET  /api/v1/templates                          list (?active=true)
    POST /api/v1/templates                          create with steps
    GET  /api/v1/templates/<id>                     detail with steps
    POST /api/v1/templates/<id>/activate            mark active
    POST /api/v1/templates/<id>/deactivate          mark inactive
    POST /api/v1/templates/<id>/schedule-preview    compute a plan, no writes

Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import caseflow.services.template_service as ts
from caseflow.blueprints import register_error_handlers
from caseflow.utils.errors import E, api_error
from caseflow.utils.helpers import require_json_body

logger = logging.getLogger(__name__)

template_bp = Blueprint("template_bp", __name__, url_prefix="/api/v1")
register_error_handlers(template_bp)


@template_bp.route("/templates", methods=["GET"])
def list_templates():
    active_only = request.args.get("active", "").lower() in ("1", "true", "yes")
    templates = ts.list_templates(active_only=active_only)
    return jsonify({
        "items": [t.to_dict(include_steps=False) for t in templates],
        "total": len(templates),
    }), 200


@template_bp.route("/templates", methods=["POST"])
def create_template():
    """Create a template.

    Body: {
        name, description?, version?,
        steps: [{seq, name, basis, offset_days, depends_on: [seq...], required_artifacts?}]
    }
    """
    data, err = require_json_body()
    if err:
        return err
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    if len(name.strip()) > 200:
        return api_error(E.VALIDATION_INVALID, "name must be ≤ 200 characters")

    template = ts.create_template(data)
    return jsonify(template.to_dict()), 201


@template_bp.route("/templates/<int:template_id>", methods=["GET"])
def get_template(template_id):
    return jsonify(ts.get_template(template_id).to_dict()), 200


@template_bp.route("/templates/<int:template_id>/activate", methods=["POST"])
def activate_template(template_id):
    return jsonify(ts.set_template_active(template_id, True).to_dict(include_steps=False)), 200


@template_bp.route("/templates/<int:template_id>/deactivate", methods=["POST"])
def deactivate_template(template_id):
    return jsonify(ts.set_template_active(template_id, False).to_dict(include_steps=False)), 200


@template_bp.route("/templates/<int:template_id>/schedule-preview", methods=["POST"])
def schedule_preview(template_id):
    """Body: {goal_date, country_code?}. Returns the computed plan."""
    data, err = require_json_body()
    if err:
        return err
    if not data.get("goal_date"):
        return api_error(E.VALIDATION_REQUIRED, "goal_date is required")

    plan = ts.preview_template_schedule(template_id, data["goal_date"], data.get("country_code"))
    return jsonify(plan.to_dict()), 200
