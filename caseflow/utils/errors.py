"""Standardised API error responses.

Usage
-----
    from caseflow.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Case not found")
    return api_error(E.VALIDATION_REQUIRED, "goal_date is required")
    return api_error(E.SCHEDULE_GOAL_EXCEEDED, str(exc), details=exc.details)
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_           prefix for standard application errors
     • ERR_SCHEDULE_  prefix for schedule computation errors; these mirror
                      ``ScheduleError.code`` in ``caseflow.core.exceptions``
    """

    # Validation - HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"

    # Not-found - HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"

    # Conflict / duplicate - HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Throttling - HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server - HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"

    # Schedule engine
    SCHEDULE_INVALID_DATE = "ERR_SCHEDULE_INVALID_DATE"
    SCHEDULE_INVALID_GOAL_DATE = "ERR_SCHEDULE_INVALID_GOAL_DATE"
    SCHEDULE_DANGLING_DEPENDENCY = "ERR_SCHEDULE_DANGLING_DEPENDENCY"
    SCHEDULE_CIRCULAR_DEPENDENCY = "ERR_SCHEDULE_CIRCULAR_DEPENDENCY"
    SCHEDULE_INCOMPLETE = "ERR_SCHEDULE_INCOMPLETE"
    SCHEDULE_GOAL_EXCEEDED = "ERR_SCHEDULE_GOAL_EXCEEDED"
    SCHEDULE_DEPENDENCY_ORDER = "ERR_SCHEDULE_DEPENDENCY_ORDER"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 422,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
    E.SCHEDULE_INVALID_DATE: 500,
    E.SCHEDULE_INVALID_GOAL_DATE: 400,
    E.SCHEDULE_DANGLING_DEPENDENCY: 422,
    E.SCHEDULE_CIRCULAR_DEPENDENCY: 422,
    E.SCHEDULE_INCOMPLETE: 500,
    E.SCHEDULE_GOAL_EXCEEDED: 422,
    E.SCHEDULE_DEPENDENCY_ORDER: 422,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (violations, missing ids, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` - drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def schedule_error_response(exc):
    """JSON response for a ``ScheduleError`` using its own code and status."""
    return api_error(exc.code, str(exc), status=exc.http_status, details=exc.details)
