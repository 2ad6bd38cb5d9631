"""
Case Schedule Engine
Blueprint registry and shared service-error handlers.
"""

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from caseflow.core.exceptions import ConflictError, NotFoundError, ScheduleError, ValidationError
from caseflow.utils.errors import E, api_error, schedule_error_response

logger = logging.getLogger(__name__)


def register_error_handlers(bp):
    """Map service exceptions to JSON responses for every route of ``bp``."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @bp.errorhandler(ScheduleError)
    def _handle_schedule(error: ScheduleError):
        if error.http_status >= 500:
            logger.error("Schedule computation failed endpoint=%s: %s", request.endpoint, error)
        else:
            logger.info("Schedule rejected endpoint=%s code=%s: %s", request.endpoint, error.code, error)
        return schedule_error_response(error)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
