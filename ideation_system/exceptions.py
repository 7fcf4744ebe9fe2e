"""
Custom exceptions for the ideation system
"""


class IdeationSystemError(Exception):
    """Base exception for ideation system"""
    pass


class ConfigurationError(IdeationSystemError):
    """Configuration related errors, raised before any work starts"""
    pass


class ValidationError(IdeationSystemError):
    """Validation errors"""
    pass


class ServiceError(IdeationSystemError):
    """Failure reported by an external collaborator"""
    kind = "service"

    def __init__(self, message: str, service: str = None, status_code: int = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class ServiceTransientError(ServiceError):
    """Retryable failure (timeouts, rate limits, 5xx)"""
    kind = "transient"


class ServicePermanentError(ServiceError):
    """Non-retryable failure (auth, bad request)"""
    kind = "permanent"


class ServiceDataError(ServiceError):
    """Service answered but the payload could not be used"""
    kind = "data"
