"""Destructive pass deleting the manifest's packages and repositories."""

from __future__ import annotations

import dataclasses
import typing as typ

from .errors import ServiceError

if typ.TYPE_CHECKING:
    from .client import BintrayClient
    from .manifest import Manifest
    from .paths import PackagePath, RepositoryPath
    from .reporting import Reporter

__all__ = ["CleanupReport", "cleanup_manifest"]


@dataclasses.dataclass(slots=True)
class CleanupReport:
    """Entities deleted and deletions that failed during :func:`cleanup_manifest`."""

    deleted: list[RepositoryPath | PackagePath] = dataclasses.field(
        default_factory=list
    )
    failed: list[RepositoryPath | PackagePath] = dataclasses.field(
        default_factory=list
    )


def cleanup_manifest(
    manifest: Manifest, client: BintrayClient, reporter: Reporter
) -> CleanupReport:
    """Delete every package, then its repository, in manifest order.

    Failures are reported and recorded but never abort the pass; deleting an
    entity that does not exist yet is the common case on a first run.

    Parameters
    ----------
    manifest : Manifest
        Desired state naming the entities to delete.
    client : BintrayClient
        Service client performing the deletions.
    reporter : Reporter
        Output context for progress and failures.

    Returns
    -------
    CleanupReport
        Deleted and failed entity keys.
    """
    report = CleanupReport()
    for repository in manifest.repositories:
        for package in repository.packages:
            reporter.info(f"Deleting Package.. [{package.path}]")
            _delete(client.delete_package, package.path, report, reporter)
        reporter.info(f"Deleting Repo.. [{repository.path}]")
        _delete(client.delete_repository, repository.path, report, reporter)
    return report


def _delete(
    action: typ.Callable[[typ.Any], None],
    path: RepositoryPath | PackagePath,
    report: CleanupReport,
    reporter: Reporter,
) -> None:
    try:
        action(path)
    except ServiceError as exc:
        reporter.error(f"Could not delete [{path}]: {exc}")
        report.failed.append(path)
    else:
        report.deleted.append(path)
