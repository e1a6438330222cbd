"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ConfigurationError(DomainException):
    """Malformed input or configuration, rejected before any network call"""

    pass


class UpstreamError(DomainException):
    """A remote ledger API failed or returned an unusable response"""

    def __init__(self, message: str, service: str, status_code: int | None = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class UpstreamFetchError(UpstreamError):
    """Reading from a ledger failed, or pagination could not complete"""

    pass


class UpstreamWriteError(UpstreamError):
    """A ledger rejected a create, update or delete"""

    pass
