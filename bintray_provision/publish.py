"""Upload, sign and publish the versions described by the manifest."""

from __future__ import annotations

import dataclasses
import typing as typ
from pathlib import Path

from .errors import ServiceError, UploadError
from .uploads import plan_uploads

if typ.TYPE_CHECKING:
    from .client import BintrayClient
    from .manifest import Manifest, Package, UploadSpec
    from .paths import VersionPath
    from .reporting import Reporter

__all__ = ["PublishFailure", "PublishReport", "publish_packages"]


@dataclasses.dataclass(frozen=True, slots=True)
class PublishFailure:
    """A pipeline step that failed for one version."""

    path: VersionPath
    step: str
    message: str


@dataclasses.dataclass(slots=True)
class PublishReport:
    """Summary of :func:`publish_packages`."""

    uploaded: int = 0
    failures: list[PublishFailure] = dataclasses.field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def publish_packages(
    manifest: Manifest,
    client: BintrayClient,
    reporter: Reporter,
    *,
    gpg_passphrase: str | None = None,
    workspace: Path | None = None,
) -> PublishReport:
    """Run the publishing pipeline for every package with an upload descriptor.

    For each version the pipeline uploads its files, GPG-signs it, publishes
    it when requested, schedules metadata calculation and prints the package
    details. A failing step is reported and recorded; later steps and
    packages still run. The pipeline for a package stops early only when its
    version cannot be created or its pattern matches nothing.

    Parameters
    ----------
    manifest : Manifest
        Desired state listing packages and their uploads.
    client : BintrayClient
        Service client.
    reporter : Reporter
        Output context.
    gpg_passphrase : str | None, optional
        Passphrase of the subject's signing key, when it has one.
    workspace : Path | None, optional
        Directory relative upload patterns are resolved against.

    Returns
    -------
    PublishReport
        Uploaded file count and failed steps.
    """
    report = PublishReport()
    for _repository, package in manifest.iter_packages():
        if package.upload is None:
            reporter.info(f"No upload configured, skipping.. [{package.path}]")
            continue
        _publish_package(
            package,
            package.upload,
            client,
            reporter,
            report,
            gpg_passphrase=gpg_passphrase,
            workspace=workspace,
        )
    return report


def _publish_package(
    package: Package,
    spec: UploadSpec,
    client: BintrayClient,
    reporter: Reporter,
    report: PublishReport,
    *,
    gpg_passphrase: str | None,
    workspace: Path | None,
) -> None:
    version = package.path.version(spec.version)

    def _fail(step: str, exc: Exception) -> None:
        reporter.error(f"{step} failed for [{version}]: {exc}")
        report.failures.append(PublishFailure(version, step, str(exc)))

    reporter.info(
        f"Uploading Files to Package [{package.path}] with Publish: [{spec.publish}]"
    )
    reporter.dump(
        "Package",
        {
            "package": str(package.path),
            "config": dict(package.config),
            "upload": dataclasses.asdict(spec),
        },
    )
    try:
        planned = plan_uploads(spec, workspace=workspace)
        if not client.version_exists(version):
            reporter.info(f"Creating Version.. [{version}]")
            client.create_version(version)
    except (ServiceError, UploadError) as exc:
        _fail("upload", exc)
        return

    summary = client.upload_files(version, planned, spec)
    report.uploaded += summary.uploaded
    reporter.info(f"Uploaded: {summary.uploaded}, Failed: {summary.failed}")
    if summary.failed:
        _fail("upload", UploadError(f"{summary.failed} file(s) failed to upload"))

    reporter.info(f"Signing versioned Package files.. [{version}]")
    try:
        client.gpg_sign_version(version, gpg_passphrase)
    except ServiceError as exc:
        _fail("sign", exc)

    if spec.publish:
        reporter.info(f"Publishing GPG Signatures.. [{version}]")
        try:
            client.publish_version(version)
        except ServiceError as exc:
            _fail("publish", exc)

    reporter.info(f"Scheduling metadata calculation.. [{version}]")
    try:
        client.calc_metadata(version)
    except ServiceError as exc:
        _fail("calc_metadata", exc)

    reporter.info(f"Package details.. [{package.path}]")
    try:
        details = client.show_package(package.path)
    except ServiceError as exc:
        if client.dry_run:
            reporter.info(f"[dry-run] Package details unavailable: {exc}")
        else:
            _fail("show", exc)
    else:
        reporter.dump("Package details", details, always=True)
