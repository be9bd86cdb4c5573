from __future__ import annotations

from typing import Any


class DriverError(RuntimeError):
    """A pipeline failure that ends one driver invocation with a failure result."""

    code = "driver_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InstallationError(DriverError):
    code = "installation_failure"


class VerificationError(DriverError):
    code = "verification_failure"


class MissingCredentialError(DriverError):
    code = "missing_credential"


class InvalidCredentialFormatError(DriverError):
    code = "invalid_credential_format"


class ConfigurationWriteError(DriverError):
    code = "configuration_write_failure"


class ExecutionError(DriverError):
    code = "execution_failure"


class CancelledError(DriverError):
    code = "cancelled"


class ConfigError(ValueError):
    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
