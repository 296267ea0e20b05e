"""Error taxonomy for scenario orchestration.

Every error carries the HTTP status the API layer responds with and a message
that can be shown to the user as-is.
"""


class OrchestrationError(Exception):
    """Base class for scenario orchestration errors."""

    status_code = 400
    kind = "orchestration_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrchestrationError):
    """Malformed input to a suite or run operation."""

    status_code = 400
    kind = "validation_error"


class NotFoundError(OrchestrationError):
    """Referenced suite, item, or run does not exist for the org."""

    status_code = 404
    kind = "not_found"


class EmptySuiteError(OrchestrationError):
    """A run was requested for a suite with no items."""

    status_code = 409
    kind = "empty_suite"

    def __init__(self, message: str = "Suite has no items"):
        super().__init__(message)


class ArchivedSuiteError(OrchestrationError):
    """A run was requested for an archived suite."""

    status_code = 409
    kind = "archived_suite"

    def __init__(self, message: str = "Cannot run archived suite"):
        super().__init__(message)


class InvalidRunStateError(OrchestrationError):
    """Operation requires a running suite run."""

    status_code = 409
    kind = "invalid_run_state"


class CannotAbortError(OrchestrationError):
    """Abort requested on a run that already reached a terminal status."""

    status_code = 409
    kind = "cannot_abort"

    def __init__(self, status: str):
        super().__init__(f"Cannot abort {status} run")
        self.status = status
