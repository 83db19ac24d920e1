class WorkoutError(Exception):
    """Base class for errors raised by the training services."""

    status_code = 500


class ValidationError(WorkoutError, ValueError):
    """Malformed or missing input."""

    status_code = 400


class InvalidDate(ValidationError):
    """Date cannot be parsed or lies before the plan start."""


class NotFoundError(WorkoutError, LookupError):
    status_code = 404


class NoActivePlan(NotFoundError):
    def __init__(self, message: str = "no active workout plan") -> None:
        super().__init__(message)


class ConflictError(WorkoutError):
    status_code = 409


class PlanAlreadyExists(ConflictError):
    """A second active plan was requested for the same user."""

    status_code = 400

    def __init__(self, message: str = "an active workout plan already exists") -> None:
        super().__init__(message)


class UnauthorizedError(WorkoutError):
    status_code = 403


class NotAuthorized(UnauthorizedError):
    def __init__(self, message: str = "not authorized to modify this exercise") -> None:
        super().__init__(message)


class UpstreamUnavailable(WorkoutError):
    """Exercise catalog timed out or answered with an error."""

    status_code = 502


class StoreError(WorkoutError):
    """Query or transaction failure in the relational store."""

    status_code = 500
