"""
Custom exception hierarchy for the image kraker.

This module defines specific exception types to improve error handling
and debugging throughout the application.
"""


class KrakerError(Exception):
    """Base exception for all image kraker errors."""
    pass


class ConfigurationError(KrakerError):
    """Raised when a configuration value is missing or invalid."""
    pass


class CredentialError(ConfigurationError):
    """Raised when the Kraken API credentials are missing or rejected."""
    pass


class DatabaseError(KrakerError):
    """Raised when metadata persistence fails."""
    pass


class TransportError(KrakerError):
    """Raised when the Kraken API cannot be reached (connection, timeout, DNS)."""
    pass


class ServiceError(KrakerError):
    """Raised when the Kraken API answers with an error or an unreadable payload."""
    pass


class DownloadError(KrakerError):
    """Raised when a kraked artifact cannot be downloaded."""
    pass


class SizeMismatchError(DownloadError):
    """Raised when a downloaded artifact does not have the announced size."""
    pass


class BackupError(KrakerError):
    """Raised when the original file cannot be moved to its backup name."""
    pass


class SwapError(KrakerError):
    """Raised when the kraked artifact cannot take the original file's place."""
    pass
