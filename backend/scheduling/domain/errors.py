class DomainError(Exception):
    """Base class for scheduling domain errors."""


class InvalidWindowError(DomainError, ValueError):
    """Raised when a time window or availability rule is malformed."""


class InvalidConfigurationError(DomainError):
    """Raised when an event type's host policy cannot be satisfied by its roster."""


class EventTypeNotFoundError(DomainError):
    pass
