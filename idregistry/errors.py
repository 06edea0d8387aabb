"""
Error taxonomy for the identity registry.

Every failure a caller can observe is a RegistryError subclass with a stable
machine-readable `code` and the HTTP status the access boundary maps it to.
A failed call leaves the registry exactly as it was before the call.
"""

from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base registry exception with stable error code."""

    code = "REGISTRY_ERROR"
    http_status = 400

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    @classmethod
    def from_wire(cls, message: str, details: Dict[str, Any]) -> "RegistryError":
        """Rebuild an error from the fields of its as_dict() body."""
        return cls(message, **details)

    def as_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            d["details"] = self.details
        return d

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class AlreadyExistsError(RegistryError):
    """Raised when a principal that already holds a record registers again."""

    code = "ALREADY_EXISTS"
    http_status = 409

    def __init__(self, principal: str):
        self.principal = principal
        super().__init__(f"identity already registered for {principal}", principal=principal)

    @classmethod
    def from_wire(cls, message, details):
        return cls(details.get("principal", ""))


class NotFoundError(RegistryError):
    """Raised when an attestation or lookup target has no record."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, principal: str):
        self.principal = principal
        super().__init__(f"no identity registered for {principal}", principal=principal)

    @classmethod
    def from_wire(cls, message, details):
        return cls(details.get("principal", ""))


class UnauthorizedError(RegistryError):
    """
    Reserved for restricting who may attest a record.

    No registry operation raises it: attestation is permissionless.
    """

    code = "UNAUTHORIZED"
    http_status = 403


class InvalidPrincipalError(RegistryError, ValueError):
    """Raised when a principal identifier is malformed or not usable as a caller."""

    code = "INVALID_PRINCIPAL"
    http_status = 400

    def __init__(self, value: Any, reason: str = "malformed address"):
        self.value = value
        self.reason = reason
        super().__init__(
            f"invalid principal {value!r}: {reason}",
            value=value if isinstance(value, str) else repr(value),
            reason=reason,
        )

    @classmethod
    def from_wire(cls, message, details):
        return cls(details.get("value"), details.get("reason", "malformed address"))


class RegistryNotBootstrappedError(RegistryError):
    """Raised by every operation attempted before the registry was created."""

    code = "REGISTRY_NOT_INITIALIZED"
    http_status = 503

    def __init__(self, message: str = "registry has not been bootstrapped"):
        super().__init__(message)

    @classmethod
    def from_wire(cls, message, details):
        return cls(message)


class RegistryAlreadyBootstrappedError(RegistryError):
    """Raised when bootstrap is attempted on an existing registry."""

    code = "REGISTRY_ALREADY_INITIALIZED"
    http_status = 409

    def __init__(self, admin: Optional[str] = None):
        self.admin = admin
        super().__init__("registry already bootstrapped", admin=admin)

    @classmethod
    def from_wire(cls, message, details):
        return cls(details.get("admin"))


class ClockError(RegistryError):
    """Raised when the clock source cannot produce a timestamp."""

    code = "CLOCK_UNAVAILABLE"
    http_status = 500


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        AlreadyExistsError,
        NotFoundError,
        UnauthorizedError,
        InvalidPrincipalError,
        RegistryNotBootstrappedError,
        RegistryAlreadyBootstrappedError,
        ClockError,
    )
}
