"""
Domain error taxonomy.
Raised by the domain services, translated to HTTP statuses in app.main.
"""


class DomainError(Exception):
    """Base class for every error the task core raises on purpose."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed create/update input or a structural hierarchy violation."""


class NotFoundError(DomainError):
    """Operation references a task id that does not resolve."""

    def __init__(self, resource: str, resource_id):
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class ConfigEvaluationError(DomainError):
    """Urgency formula or thresholds are missing, malformed or non-numeric.

    Never surfaces to callers: the urgency engine recovers by falling back
    to the built-in defaults.
    """


class OperationCancelled(DomainError):
    """A long-running scan was cancelled by its caller."""
