"""
Case blueprint.

Endpoints:
    GET  /api/v1/cases                          list (?status=, ?process_id=)
    POST /api/v1/cases                          create from a template
    GET  /api/v1/cases/<id>                     detail with steps
    POST /api/v1/cases/<id>/replan/preview      deltas for a new goal date, no writes
    POST /api/v1/cases/<id>/replan/apply        apply deltas and the new goal date
    GET  /api/v1/cases/<id>/critical-path       slack per step
    POST /api/v1/steps/<id>/lock                pin a step's dates
    POST /api/v1/steps/<id>/unlock              release a step

Replan body: {goal_date, locked_step_ids?: [step instance id...]}.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import caseflow.services.case_service as cs
from caseflow.blueprints import register_error_handlers
from caseflow.utils.errors import E, api_error
from caseflow.utils.helpers import require_json_body

logger = logging.getLogger(__name__)

case_bp = Blueprint("case_bp", __name__, url_prefix="/api/v1")
register_error_handlers(case_bp)


def _replan_args():
    """(goal_date, locked_step_ids, None) or (None, None, error_tuple)."""
    data, err = require_json_body()
    if err:
        return None, None, err
    goal_date = data.get("goal_date")
    if not goal_date:
        return None, None, api_error(E.VALIDATION_REQUIRED, "goal_date is required")
    locked = data.get("locked_step_ids") or []
    if not isinstance(locked, list) or not all(
        isinstance(i, int) and not isinstance(i, bool) for i in locked
    ):
        return None, None, api_error(E.VALIDATION_INVALID, "locked_step_ids must be a list of step ids")
    return goal_date, locked, None


@case_bp.route("/cases", methods=["GET"])
def list_cases():
    cases = cs.list_cases(
        status=request.args.get("status") or None,
        process_id=request.args.get("process_id", type=int),
    )
    return jsonify({
        "items": [c.to_dict(include_steps=False) for c in cases],
        "total": len(cases),
    }), 200


@case_bp.route("/cases", methods=["POST"])
def create_case():
    """Body: {process_id, title, goal_date, country_code?, created_by?}."""
    data, err = require_json_body()
    if err:
        return err
    for field in ("process_id", "title", "goal_date"):
        if not data.get(field):
            return api_error(E.VALIDATION_REQUIRED, f"{field} is required")
    if not isinstance(data["process_id"], int):
        return api_error(E.VALIDATION_INVALID, "process_id must be an integer")

    case = cs.create_case(data, created_by=data.get("created_by"))
    return jsonify(case.to_dict()), 201


@case_bp.route("/cases/<int:case_id>", methods=["GET"])
def get_case(case_id):
    return jsonify(cs.get_case(case_id).to_dict()), 200


@case_bp.route("/cases/<int:case_id>/replan/preview", methods=["POST"])
def replan_preview(case_id):
    goal_date, locked, err = _replan_args()
    if err:
        return err
    return jsonify(cs.preview_replan(case_id, goal_date, locked)), 200


@case_bp.route("/cases/<int:case_id>/replan/apply", methods=["POST"])
def replan_apply(case_id):
    goal_date, locked, err = _replan_args()
    if err:
        return err
    return jsonify(cs.apply_replan(case_id, goal_date, locked)), 200


@case_bp.route("/cases/<int:case_id>/critical-path", methods=["GET"])
def critical_path(case_id):
    return jsonify(cs.case_critical_path(case_id)), 200


@case_bp.route("/steps/<int:step_id>/lock", methods=["POST"])
def lock_step(step_id):
    return jsonify(cs.set_step_lock(step_id, True).to_dict()), 200


@case_bp.route("/steps/<int:step_id>/unlock", methods=["POST"])
def unlock_step(step_id):
    return jsonify(cs.set_step_lock(step_id, False).to_dict()), 200
