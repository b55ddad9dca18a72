"""Tests for entity keys and the operator-facing reporter."""

from __future__ import annotations

import io

import bintray_provision
from bintray_provision.paths import PackagePath, RepositoryPath, VersionPath
from bintray_provision.reporting import Reporter


def test_public_interface() -> None:
    """The package should expose the documented entry points."""
    for name in ("Reconciler", "BintrayClient", "load_manifest", "CreationError"):
        assert name in bintray_provision.__all__
        assert hasattr(bintray_provision, name)


def test_package_path_derives_related_keys() -> None:
    """Package keys derive their version keys and print as slash paths."""
    package = PackagePath("acme", "deb", "tool")

    assert str(RepositoryPath("acme", "deb")) == "acme/deb"
    assert package.version("1.0") == VersionPath("acme", "deb", "tool", "1.0")
    assert package.version("1.0").package_path == package
    assert str(package.version("1.0")) == "acme/deb/tool/1.0"


def test_reporter_separates_progress_and_errors() -> None:
    """Progress goes to the main stream, failures to the error stream."""
    out, err = io.StringIO(), io.StringIO()
    reporter = Reporter(stream=out, error_stream=err)

    reporter.info("Creating Repo..")
    reporter.debug("GET /repos/acme/deb")
    reporter.error("boom")

    assert out.getvalue() == "Creating Repo..\n"
    assert err.getvalue() == "error: boom\n"


def test_reporter_dump_respects_verbosity() -> None:
    """JSON dumps appear only when verbose or explicitly forced."""
    out = io.StringIO()
    quiet = Reporter(stream=out)

    quiet.dump("Package", {"name": "tool"})
    assert out.getvalue() == ""

    quiet.dump("Package", {"name": "tool"}, always=True)
    assert out.getvalue() == 'Package =>\n{\n  "name": "tool"\n}\n'

    loud = Reporter(stream=io.StringIO(), verbose=True)
    loud.debug("GET /repos/acme/deb")
    assert loud.stream.getvalue() == "GET /repos/acme/deb\n"
