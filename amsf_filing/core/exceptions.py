"""
Exception hierarchy for the survey filer.

Services raise these types; blueprints translate them to HTTP responses once,
in ``create_app``.

    NotFoundError           -> 404
    ValidationError         -> 422
      InvalidTransitionError
      SubmissionFrozenError
    ConflictError           -> 409
      LockConflictError
    RenderError             -> 500 (RenderDataError -> 422)
    NotBuiltError           -> programming error, never mapped

Remote validator outages are deliberately absent: the gateway converts them
into a degraded result object and never raises.

Usage:
    from amsf_filing.core.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError(resource="Submission", resource_id=42)
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist.

    Args:
        resource: Human-readable model name (e.g. "Submission").
        resource_id: The key that was looked up. Included in logs.
        organization_id: Optional scope that was enforced.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        organization_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_id = organization_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_id is not None:
            msg += f" (organization={organization_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with existing state.

    Args:
        resource: Model name.
        field: The contended field.
        value: The conflicting value.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class InvalidTransitionError(ValidationError):
    """Illegal submission state move. Fatal; callers must not retry."""

    def __init__(self, event: str, current_status: str, submission_id: int | None = None):
        self.event = event
        self.current_status = current_status
        self.submission_id = submission_id
        msg = f"Cannot '{event}' submission"
        if submission_id is not None:
            msg += f" {submission_id}"
        msg += f" (status={current_status})"
        super().__init__(msg, details={"event": event, "status": current_status})


class SubmissionFrozenError(ValidationError):
    """Raised when something tries to recompute a validated/completed submission."""

    def __init__(self, submission_id: int | None, status: str):
        self.submission_id = submission_id
        self.status = status
        super().__init__(
            f"Submission {submission_id} is {status}; its values are a frozen snapshot",
            details={"status": status},
        )


class LockConflictError(ConflictError):
    """Raised when another editor holds the submission lock."""

    def __init__(self, submission_id: int, locked_by: str):
        self.submission_id = submission_id
        self.locked_by = locked_by
        super().__init__(
            "Submission", "locked_by", locked_by,
            message=f"Submission {submission_id} is locked by {locked_by!r}",
        )


class RenderError(Exception):
    """Generic failure while rendering a submission to an output format."""

    def __init__(self, message: str, format: str, submission_id: int | None = None, cause=None):
        self.format = format
        self.submission_id = submission_id
        self.cause = cause
        super().__init__(f"{format} render failed: {message}")


class RenderDataError(RenderError):
    """Malformed value for a typed element while rendering in strict mode."""

    def __init__(self, element: str, value, format: str = "xbrl", submission_id: int | None = None,
                 reason: str = "non-numeric value"):
        self.element = element
        self.value = value
        self.reason = reason
        super().__init__(
            f"element {element} has {reason} {value!r}",
            format=format,
            submission_id=submission_id,
        )


class NotBuiltError(Exception):
    """Raised when a SubmissionBuilder step runs before build()."""
