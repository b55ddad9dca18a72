"""Create the repositories and packages missing from the remote service."""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

from .errors import CreationError, ExistenceCheckError, ServiceError
from .reporting import Reporter

if typ.TYPE_CHECKING:
    from .client import RemotePackageService
    from .manifest import Manifest, Package, Repository
    from .paths import PackagePath, RepositoryPath

__all__ = ["Action", "Outcome", "ReconcileReport", "Reconciler"]


class Action(enum.Enum):
    """What reconciliation did for one entity."""

    CREATED = "created"
    EXISTING = "existing"


@dataclasses.dataclass(frozen=True, slots=True)
class Outcome:
    """Result of reconciling a single repository or package."""

    path: RepositoryPath | PackagePath
    action: Action


@dataclasses.dataclass(slots=True)
class ReconcileReport:
    """Outcomes of :meth:`Reconciler.reconcile` in visiting order."""

    outcomes: list[Outcome] = dataclasses.field(default_factory=list)

    @property
    def created(self) -> list[Outcome]:
        return [item for item in self.outcomes if item.action is Action.CREATED]


class Reconciler:
    """Bring the remote service in line with a manifest, one entity at a time.

    Each repository and package is checked for existence and created when
    absent; existing entities are never touched. A failed existence check is
    reported and treated as "absent". A failed creation raises
    :class:`CreationError` and stops the pass.

    Examples
    --------
    >>> from bintray_provision.manifest import parse_manifest
    >>> class AlwaysThere:
    ...     def repository_exists(self, path): return True
    ...     def package_exists(self, path): return True
    >>> manifest = parse_manifest(
    ...     {"bintray": {"repos": [{"name": "deb", "subject": "acme"}]}}
    ... )
    >>> report = Reconciler(AlwaysThere(), Reporter()).reconcile(manifest)
    Repo already exists.. [acme/deb]
    >>> report.created
    []
    """

    def __init__(self, service: RemotePackageService, reporter: Reporter) -> None:
        self.service = service
        self.reporter = reporter

    def reconcile(self, manifest: Manifest) -> ReconcileReport:
        """Visit every repository and package of ``manifest`` in order.

        Raises
        ------
        CreationError
            Raised when a missing repository or package cannot be created.
        """
        report = ReconcileReport()
        for repository in manifest.repositories:
            report.outcomes.append(self._ensure_repository(repository))
            for package in repository.packages:
                report.outcomes.append(self._ensure_package(package))
        return report

    def _ensure_repository(self, repository: Repository) -> Outcome:
        path = repository.path
        if self._exists(self.service.repository_exists, path, "Repo"):
            self.reporter.info(f"Repo already exists.. [{path}]")
            return Outcome(path, Action.EXISTING)

        self.reporter.info(f"Repo does not exist, creating.. [{path}]")
        try:
            created = self.service.create_repository(path, repository.config)
        except ServiceError as exc:
            message = f"Failed to create repository '{path}': {exc}"
            raise CreationError(message) from exc
        return self._created(path, created, "Repo")

    def _ensure_package(self, package: Package) -> Outcome:
        path = package.path
        if self._exists(self.service.package_exists, path, "Package"):
            self.reporter.info(f"Package already exists.. [{path}]")
            return Outcome(path, Action.EXISTING)

        self.reporter.info(f"Package does not exist, creating.. [{path}]")
        try:
            created = self.service.create_package(path, package.config)
        except ServiceError as exc:
            message = f"Failed to create package '{path}': {exc}"
            raise CreationError(message) from exc
        return self._created(path, created, "Package")

    def _exists(
        self,
        check: typ.Callable[[typ.Any], bool],
        path: RepositoryPath | PackagePath,
        label: str,
    ) -> bool:
        try:
            return check(path)
        except ExistenceCheckError as exc:
            self.reporter.error(f"{label} existence check failed for [{path}]: {exc}")
            return False

    def _created(
        self, path: RepositoryPath | PackagePath, created: bool, label: str
    ) -> Outcome:
        # A conflict means someone else created it between check and create.
        if not created:
            self.reporter.info(f"{label} was created concurrently.. [{path}]")
            return Outcome(path, Action.EXISTING)
        self.reporter.info(f"{label} created.. [{path}]")
        return Outcome(path, Action.CREATED)
