"""Domain error types."""


class DomainError(Exception):
    """Base domain error."""


class NotFoundError(DomainError):
    """Resource not found (or not visible to the caller)."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class ValidationError(DomainError):
    """Request data is well-formed JSON but semantically invalid."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthorizationError(DomainError):
    def __init__(self, message: str = "Not authorized"):
        self.message = message
        super().__init__(message)


class ConflictError(DomainError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PushDeliveryError(DomainError):
    """A channel send failed for a reason that does not invalidate the endpoint."""


class PushGoneError(PushDeliveryError):
    """The channel reported the endpoint or device token as permanently invalid."""

    def __init__(self, target: str, reason: str = "gone"):
        self.target = target
        self.reason = reason
        super().__init__(f"Push target {target[:40]}... invalid: {reason}")
