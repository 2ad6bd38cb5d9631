"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Two families live here:

  - Resource errors (NotFoundError, ValidationError, ConflictError) raised
    by the template / case / holiday services.
  - Schedule errors (ScheduleError subclasses) raised by the schedule
    engine. Every schedule computation either returns a complete, validated
    SchedulePlan or raises one of these; no partial plan escapes.

Usage:
    from caseflow.core.exceptions import NotFoundError, DanglingDependencyError

    raise NotFoundError(resource="Case", resource_id=42)
    raise DanglingDependencyError(step_id=3, missing_id=99)
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Case", "ProcessTemplate").
        resource_id: The PK that was looked up. Included in the message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint) - this
    exception signals that the data was well-formed but violated a business
    rule (bad basis value, offset out of range, inactive template).

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


# ═════════════════════════════════════════════════════════════════════════════
# Schedule engine errors
# ═════════════════════════════════════════════════════════════════════════════


class ScheduleError(Exception):
    """Base for every failure of a single schedule computation.

    Attributes:
        code: Machine-readable error code (mirrors ``caseflow.utils.errors.E``).
        http_status: Status the HTTP layer maps this error to.
        details: Structured payload for API responses and logs.
    """

    code = "ERR_SCHEDULE"
    http_status = 422

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidDateError(ScheduleError, ValueError):
    """A non-date value reached the business-day calculator.

    This is a programming error at the call site, never user input; the
    calculator fails fast instead of coercing.
    """

    code = "ERR_SCHEDULE_INVALID_DATE"
    http_status = 500

    def __init__(self, value, argument: str = "date") -> None:
        self.value = value
        self.argument = argument
        super().__init__(
            f"Invalid {argument}: {value!r}",
            details={"argument": argument, "value": repr(value)},
        )


class InvalidGoalDateError(ScheduleError):
    """The goal date handed to the engine is missing, unparseable or non-finite."""

    code = "ERR_SCHEDULE_INVALID_GOAL_DATE"
    http_status = 400

    def __init__(self, value) -> None:
        self.value = value
        super().__init__(
            f"Invalid goal date: {value!r}",
            details={"goal_date": repr(value)},
        )


class DanglingDependencyError(ScheduleError):
    """A step references a predecessor id that is not part of the template."""

    code = "ERR_SCHEDULE_DANGLING_DEPENDENCY"
    http_status = 422

    def __init__(self, step_id, missing_id, step_name: str | None = None) -> None:
        self.step_id = step_id
        self.missing_id = missing_id
        label = f"{step_id}:{step_name}" if step_name else f"{step_id}"
        super().__init__(
            f"Dependency {missing_id} not found for step {label}",
            details={"step_id": step_id, "missing_id": missing_id},
        )


class CircularDependencyError(ScheduleError):
    """The step graph contains at least one cycle."""

    code = "ERR_SCHEDULE_CIRCULAR_DEPENDENCY"
    http_status = 422

    def __init__(self, unresolved_ids: list | tuple = ()) -> None:
        self.unresolved_ids = list(unresolved_ids)
        msg = "Circular dependency detected in step definitions"
        if self.unresolved_ids:
            msg += f" (unresolved: {', '.join(str(i) for i in self.unresolved_ids)})"
        super().__init__(msg, details={"unresolved_ids": self.unresolved_ids})


class ScheduleValidationError(ScheduleError):
    """Post-computation invariant failure.

    Carries every violation found in the run, not just the first one, so a
    single response can report them together.
    """

    code = "ERR_SCHEDULE_VALIDATION"

    def __init__(self, message: str, violations: list | None = None) -> None:
        self.violations = list(violations or [])
        super().__init__(
            message,
            details={"violations": [v.to_dict() for v in self.violations]},
        )


class ScheduleIncompleteError(ScheduleValidationError):
    """A step was never assigned a usable schedule. Always a bug."""

    code = "ERR_SCHEDULE_INCOMPLETE"
    http_status = 500


class GoalDateExceededError(ScheduleValidationError):
    """A computed due date falls after the goal date."""

    code = "ERR_SCHEDULE_GOAL_EXCEEDED"
    http_status = 422


class DependencyOrderingViolationError(ScheduleValidationError):
    """A predecessor is due after one of its dependents."""

    code = "ERR_SCHEDULE_DEPENDENCY_ORDER"
    http_status = 422
