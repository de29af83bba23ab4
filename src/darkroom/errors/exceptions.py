"""Custom exception classes for the darkroom API."""


class DarkroomError(Exception):
    """Base exception for darkroom."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(DarkroomError):
    """Request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(DarkroomError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class AuthenticationError(DarkroomError):
    """Authentication required or token invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class ConflictError(DarkroomError):
    """Resource state conflict."""

    def __init__(self, message: str, details=None):
        super().__init__("CONFLICT", message, details, status_code=409)


class JobAlreadyRunningError(ConflictError):
    """A fresh, incomplete heartbeat says the job is still in flight."""

    def __init__(self, job_id: int, progress: int, message: str | None = None):
        super().__init__(
            f"Job {job_id} is already running ({progress}% complete)",
            details={"job_id": job_id, "progress": progress, "status_message": message},
        )
        self.code = "ALREADY_RUNNING"
        self.job_id = job_id
        self.progress = progress
