"""Domain exceptions, each carrying the HTTP status it renders as."""


class LissanError(Exception):
    """Base class for errors reported to API callers as ``{"error": message}``."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LissanError):
    """Missing or malformed input."""

    status_code = 400


class ConflictError(LissanError):
    """The resource already exists (e.g. duplicate registration)."""

    status_code = 400


class AuthError(LissanError):
    """Bad credentials, inactive account or unknown API key."""

    status_code = 401


class ForbiddenError(LissanError):
    """A token was presented but could not be verified."""

    status_code = 403


class NotFoundError(LissanError):
    """The resource is absent or belongs to another company."""

    status_code = 404

    def __init__(self, resource: str, message: str = None):
        self.resource = resource
        super().__init__(message or f"{resource} not found")


class ExternalServiceError(LissanError):
    """The LLM provider or a workflow webhook failed."""

    status_code = 500


class UnknownWorkflowTypeError(LissanError):
    """A workflow config names a ``type`` with no built-in handler."""

    status_code = 500

    def __init__(self, workflow_type=None):
        self.workflow_type = workflow_type
        super().__init__("Unknown workflow type")
