"""Linkverse exception hierarchy."""

from typing import Optional


class LinkverseError(Exception):
    """Base exception for all Linkverse errors."""


class AuthRequired(LinkverseError):
    """No active session when a data operation is attempted."""

    def __init__(self, message: str = "Sign in required"):
        super().__init__(message)


class NotFound(LinkverseError):
    """An entity id did not resolve."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")


class NetworkOrServiceError(LinkverseError):
    """Transient failure of the data gateway or the enrichment service."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"[{service}] {message}")


class ValidationError(LinkverseError):
    """Malformed input rejected before any network call."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class ConfirmationRequired(ValidationError):
    """A destructive operation was attempted without explicit confirmation."""

    def __init__(self, action: str):
        self.action = action
        super().__init__("confirm", f"{action} requires explicit confirmation")
