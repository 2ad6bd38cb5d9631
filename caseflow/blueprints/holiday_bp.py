"""
Holiday calendar blueprint.

Endpoints:
    GET    /api/v1/holidays          ?country_code=JP&year=2025
    POST   /api/v1/holidays          {country_code, date, name?}
    DELETE /api/v1/holidays/<id>
    POST   /api/v1/holidays/seed     {year} - fixed-date JP holidays
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

import caseflow.services.holiday_service as hs
from caseflow.blueprints import register_error_handlers
from caseflow.utils.errors import E, api_error
from caseflow.utils.helpers import require_json_body

logger = logging.getLogger(__name__)

holiday_bp = Blueprint("holiday_bp", __name__, url_prefix="/api/v1")
register_error_handlers(holiday_bp)


@holiday_bp.route("/holidays", methods=["GET"])
def list_holidays():
    country = request.args.get("country_code") or current_app.config.get("DEFAULT_COUNTRY_CODE", "JP")
    year = request.args.get("year", type=int)
    holidays = hs.list_holidays(country, year)
    return jsonify({"items": [h.to_dict() for h in holidays], "total": len(holidays)}), 200


@holiday_bp.route("/holidays", methods=["POST"])
def create_holiday():
    data, err = require_json_body()
    if err:
        return err
    if not data.get("date"):
        return api_error(E.VALIDATION_REQUIRED, "date is required")
    data.setdefault("country_code", current_app.config.get("DEFAULT_COUNTRY_CODE", "JP"))
    return jsonify(hs.create_holiday(data).to_dict()), 201


@holiday_bp.route("/holidays/<int:holiday_id>", methods=["DELETE"])
def delete_holiday(holiday_id):
    hs.delete_holiday(holiday_id)
    return jsonify({"deleted": holiday_id}), 200


@holiday_bp.route("/holidays/seed", methods=["POST"])
def seed_holidays():
    data, err = require_json_body()
    if err:
        return err
    year = data.get("year")
    if isinstance(year, bool) or not isinstance(year, int) or not 2000 <= year <= 2100:
        return api_error(E.VALIDATION_INVALID, "year must be an integer between 2000 and 2100")
    created = hs.seed_japanese_holidays(year)
    return jsonify({"country_code": "JP", "year": year, "created": created}), 200
