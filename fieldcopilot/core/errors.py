from __future__ import annotations


class FieldCopilotError(Exception):
    """Base error for the copilot service."""

    status_code = 500

    def __init__(self, message: str = "Request failed") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FieldCopilotError):
    """Malformed or missing request input."""

    status_code = 400


class AuthError(FieldCopilotError):
    """Missing or invalid credentials."""

    status_code = 401


class AccessAuthError(AuthError):
    """Access gateway failure; status distinguishes bad credentials from unmapped identities."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(FieldCopilotError):
    """Entity absent or not owned by the requesting tenant."""

    status_code = 404


class JobNotFoundError(NotFoundError):
    def __init__(self, tenant_id: str, job_id: str) -> None:
        super().__init__("Job not found")
        self.tenant_id = tenant_id
        self.job_id = job_id


class ConflictError(FieldCopilotError):
    """Write collided with existing state and is not a clean replay."""

    status_code = 409


class MethodNotAllowedError(FieldCopilotError):
    status_code = 405


class ProviderConfigError(FieldCopilotError):
    """Missing or invalid provider configuration."""

    status_code = 500


class UpstreamError(FieldCopilotError):
    """Model, embedding, or vector provider failure."""

    status_code = 500


class RetrievalError(UpstreamError):
    """Vector retrieval layer failure."""
