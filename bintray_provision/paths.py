"""Composite keys addressing entities on the remote service."""

from __future__ import annotations

import dataclasses

__all__ = [
    "PackagePath",
    "RepositoryPath",
    "VersionPath",
]


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryPath:
    """Identify a repository by its ``(subject, name)`` key."""

    subject: str
    repo: str

    def __str__(self) -> str:
        return f"{self.subject}/{self.repo}"


@dataclasses.dataclass(frozen=True, slots=True)
class PackagePath:
    """Identify a package by ``(subject, repository, package)``."""

    subject: str
    repo: str
    package: str

    def version(self, version: str) -> VersionPath:
        """Return the key of ``version`` within this package."""
        return VersionPath(self.subject, self.repo, self.package, version)

    def __str__(self) -> str:
        return f"{self.subject}/{self.repo}/{self.package}"


@dataclasses.dataclass(frozen=True, slots=True)
class VersionPath:
    """Identify a package version."""

    subject: str
    repo: str
    package: str
    version: str

    @property
    def package_path(self) -> PackagePath:
        """Return the key of the owning package."""
        return PackagePath(self.subject, self.repo, self.package)

    def __str__(self) -> str:
        return f"{self.subject}/{self.repo}/{self.package}/{self.version}"
