from typing import Optional


class ValidationFailed(ValueError):
    """Input rejected before any upstream call was made."""


class RoleViolation(PermissionError):
    """The caller's role does not allow the requested edit or save."""


class SaveFailed(ValueError):
    """An upsert or delete was not acknowledged by the backend."""

    def __init__(self, message: str, student_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.student_id = student_id


class SaveInProgress(RuntimeError):
    """A bulk save is already running for this workspace."""


class UpstreamError(RuntimeError):
    """Transport failure or non-2xx response from the ORDS backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RowNotFound(LookupError):
    """No row for the given student in the active sheet."""
