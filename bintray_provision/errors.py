"""Exception hierarchy for the provisioning toolchain."""

from __future__ import annotations

__all__ = [
    "CreationError",
    "ExistenceCheckError",
    "ManifestError",
    "ProvisionError",
    "ServiceError",
    "UploadError",
]


class ProvisionError(RuntimeError):
    """Base class for every error surfaced to the operator."""


class ManifestError(ProvisionError):
    """Raised when the manifest cannot be read or fails validation."""


class ServiceError(ProvisionError):
    """Raised when the remote service rejects a request or is unreachable.

    Parameters
    ----------
    message : str
        Human readable description of the failure.
    status_code : int | None, optional
        HTTP status returned by the service, ``None`` for transport errors.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExistenceCheckError(ServiceError):
    """Raised when an existence query cannot be answered."""


class CreationError(ProvisionError):
    """Raised when a repository or package cannot be created."""


class UploadError(ProvisionError):
    """Raised when an upload descriptor cannot be expanded into files."""
