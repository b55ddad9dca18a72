"""Command-line entry point for provisioning and publishing packages.

Examples
--------
Provision everything described by ``bintray.yml``::

    export BINTRAY_USER=bot BINTRAY_KEY=secret
    bintray-provision bintray.yml

Inspect the planned mutations without changing anything::

    bintray-provision bintray.yml --dry-run --verbose
"""

from __future__ import annotations

import typing as typ
from pathlib import Path

import httpx
from cyclopts import App, Parameter

from .cleanup import cleanup_manifest
from .client import DEFAULT_API_URL, BintrayClient
from .errors import ProvisionError
from .manifest import load_manifest
from .publish import publish_packages
from .reconcile import Reconciler
from .reporting import Reporter

__all__ = ["app", "cli", "main", "run"]

app = App(help="Provision and publish packages described by a YAML manifest.")


def main(
    manifest_path: Path,
    *,
    user: str | None,
    key: str | None,
    gpg_passphrase: str | None = None,
    api_url: str = DEFAULT_API_URL,
    threads: int | None = None,
    cleanup_first: bool | None = None,
    dry_run: bool = False,
    verbose: bool = False,
    workspace: Path | None = None,
    reporter: Reporter | None = None,
    transport: httpx.BaseTransport | None = None,
) -> int:
    """Entry point shared by the CLI and tests.

    Parameters
    ----------
    manifest_path : Path
        YAML manifest describing the desired state.
    user, key : str | None
        Service credentials; both are required.
    gpg_passphrase : str | None, optional
        Passphrase forwarded when signing versions.
    api_url : str
        Base URL of the service REST API.
    threads : int | None, optional
        Upload worker count; overrides the manifest when given.
    cleanup_first : bool | None, optional
        Delete packages and repositories before reconciling; overrides the
        manifest's ``cleanup`` flag when given.
    dry_run : bool
        Send only read requests and print planned mutations.
    verbose : bool
        Print every request and the package dumps.
    workspace : Path | None, optional
        Directory relative upload patterns resolve against.
    reporter : Reporter | None, optional
        Output context; created from ``verbose`` when omitted.
    transport : httpx.BaseTransport | None, optional
        Transport override for the HTTP client.

    Returns
    -------
    int
        ``0`` on success, ``1`` when the manifest is invalid, credentials are
        missing, a creation fails, or any publishing step fails.
    """
    reporter = reporter or Reporter(verbose=verbose)
    if not user or not key:
        reporter.error("BINTRAY_USER and BINTRAY_KEY must be set (or --user/--key)")
        return 1
    if threads is not None and threads < 1:
        reporter.error("--threads must be a positive integer")
        return 1

    try:
        manifest = load_manifest(manifest_path)
        with BintrayClient(
            user=user,
            key=key,
            api_url=api_url,
            reporter=reporter,
            dry_run=dry_run,
            threads=threads or manifest.threads,
            default_license=manifest.default_license,
            transport=transport,
        ) as client:
            if cleanup_first is None:
                cleanup_first = manifest.cleanup
            if cleanup_first:
                cleanup_manifest(manifest, client, reporter)
            Reconciler(client, reporter).reconcile(manifest)
            report = publish_packages(
                manifest,
                client,
                reporter,
                gpg_passphrase=gpg_passphrase,
                workspace=workspace,
            )
    except ProvisionError as exc:
        reporter.error(str(exc))
        return 1

    if not report.ok:
        reporter.error(f"{len(report.failures)} publishing step(s) failed")
        return 1
    reporter.info(f"Done: {report.uploaded} file(s) uploaded.")
    return 0


@app.default
def cli(
    manifest: Path,
    *,
    user: typ.Annotated[str | None, Parameter(env_var="BINTRAY_USER")] = None,
    key: typ.Annotated[str | None, Parameter(env_var="BINTRAY_KEY")] = None,
    gpg_passphrase: typ.Annotated[
        str | None, Parameter(env_var="BINTRAY_ADMIN_GPG_PASSPHRASE")
    ] = None,
    api_url: str = DEFAULT_API_URL,
    threads: int | None = None,
    cleanup: bool | None = None,
    dry_run: bool = False,
    verbose: bool = False,
) -> int:
    """Reconcile and publish the repositories described by ``manifest``.

    Parameters
    ----------
    manifest:
        Path to the YAML manifest.
    user:
        Account used for authentication.
    key:
        API key of ``user``.
    gpg_passphrase:
        Passphrase of the signing key.
    api_url:
        Base URL of the REST API.
    threads:
        Upload worker count, overriding the manifest.
    cleanup:
        Delete packages and repositories first, overriding the manifest.
    dry_run:
        Print mutating requests instead of sending them.
    verbose:
        Print every request and package dumps.
    """
    return main(
        manifest,
        user=user,
        key=key,
        gpg_passphrase=gpg_passphrase,
        api_url=api_url,
        threads=threads,
        cleanup_first=cleanup,
        dry_run=dry_run,
        verbose=verbose,
    )


def run() -> None:
    """Console-script wrapper exiting with the command's status."""
    raise SystemExit(app())


if __name__ == "__main__":
    run()
