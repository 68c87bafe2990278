"""Custom exceptions for DeskSpoons."""


class DeskSpoonsError(Exception):
    """Base exception for all DeskSpoons errors."""
    pass


class ConfigurationError(DeskSpoonsError):
    """Raised when configuration is invalid."""
    pass
