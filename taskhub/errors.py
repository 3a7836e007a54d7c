"""Error taxonomy shared by the storage gateway and the HTTP layer."""

from __future__ import annotations


class TaskServiceError(Exception):
    """Base error; `message` is what clients are allowed to see."""

    status_code: int = 500
    client_message: str | None = None

    def __init__(self, message: str = "Internal server error") -> None:
        self.message = message
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return self.client_message or self.message


class ValidationError(TaskServiceError):
    status_code = 400

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(message)


class NotFoundError(TaskServiceError):
    status_code = 404

    def __init__(self, message: str = "Task not found") -> None:
        super().__init__(message)


class StorageUnavailable(TaskServiceError):
    """The database could not be reached (connection refused, pool exhausted, ...)."""

    status_code = 500
    client_message = "Internal server error"


class UnknownError(TaskServiceError):
    status_code = 500
    client_message = "Internal server error"
