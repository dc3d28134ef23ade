"""Base exceptions for neo-quota.

All exceptions inherit from NeoQuotaError and carry an error code plus a
details mapping naming the invariant or object identity that caused them.
"""

from typing import Any, Dict, Optional


class NeoQuotaError(Exception):
    """Base exception for all neo-quota errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class StorageError(NeoQuotaError):
    """Raised when a registry or usage store operation fails."""
    pass


class ConfigurationError(NeoQuotaError):
    """Raised when the controller is misconfigured."""
    pass
