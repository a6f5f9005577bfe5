from typing import Optional


class AIServiceError(Exception):
    """Base class for errors raised by the AI session layer"""


class CredentialNotConfiguredError(AIServiceError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "OpenAI API key not configured. Configure the API key in Settings > OpenAI Configuration."
        )


class ConflictError(AIServiceError):
    pass


class NotFoundError(AIServiceError):
    pass


class RemoteResourceGoneError(AIServiceError):
    """A remote identifier we hold locally no longer resolves on the provider"""

    def __init__(self, resource: str, remote_id: str):
        self.resource = resource
        self.remote_id = remote_id
        super().__init__(f"Remote {resource} {remote_id} no longer exists")


class RunFailureError(AIServiceError):
    """The asynchronous run ended in a non-completed terminal state or timed out"""

    def __init__(self, status: str, message: str):
        self.status = status
        super().__init__(message)


class EmptyResponseError(AIServiceError):
    pass


class SecondaryEffectError(AIServiceError):
    pass


class InvalidStatusTransitionError(AIServiceError):
    def __init__(self, record_id: str, current: str, requested: str):
        self.record_id = record_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Audit record {record_id} cannot move from '{current}' to '{requested}'"
        )


class AssistantNotInitializedError(NotFoundError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No assistant created for the project. Initialize the AI context with "
            "POST /projects/{project_id}/ai/assistant/init before generating test cases."
        )
