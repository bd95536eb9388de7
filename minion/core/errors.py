"""Exceptions raised by minion services and mapped to HTTP errors by the API."""


class RecordAlreadyExistsError(Exception):
    """Raised when trying to create a record that already exists."""


class NotFoundError(Exception):
    """Raised when a resource is not found."""


class ValidationError(Exception):
    """Raised when validation fails."""


class SandboxError(Exception):
    """Raised when the container runtime fails to pull, start or wait."""
