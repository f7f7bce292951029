"""Application-level exception types for vicon."""

from __future__ import annotations


class ViconError(Exception):
    """Base exception for vicon."""


class ConfigurationError(ViconError):
    """Base exception for configuration and startup validation errors."""


class ProviderNotConfiguredError(ConfigurationError):
    """Raised when no generation provider has been configured."""


class CredentialsMissingError(ConfigurationError):
    """Raised when the selected provider needs credentials that are not stored."""


class AgentNotFoundError(ConfigurationError):
    """Raised when the local agent binary is not on PATH."""


class CredentialStoreError(ConfigurationError):
    """Raised when the OS keychain rejects a write."""


class BackendError(ViconError):
    """Raised when a generation backend fails for one attempt."""


class ResponseValidationError(ViconError):
    """Raised when a model reply does not satisfy the command contract.

    ``raw`` is always the untouched reply text, never a cleaned intermediate.
    """

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw
