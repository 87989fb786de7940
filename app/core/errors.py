"""
Domain exceptions raised by the service layer.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""


class PayFlowError(Exception):
    """Base class for all PayFlow domain errors."""


class NotFoundError(PayFlowError):
    """Requested record does not exist (or is not visible to the caller)."""


class ValidationError(PayFlowError):
    """Input failed a business rule."""


class ConflictError(PayFlowError):
    """Record already exists."""


class AuthenticationError(PayFlowError):
    """Credentials are missing or wrong."""


class InvalidTransitionError(PayFlowError):
    """A status change is not allowed from the current status."""
