"""Tests for the REST client against an in-memory service."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import httpx
import pytest
from provision_test_helpers import FakeBintray, create_file

from bintray_provision.client import BintrayClient
from bintray_provision.errors import ExistenceCheckError, ServiceError
from bintray_provision.manifest import DebianCoordinates, UploadSpec
from bintray_provision.paths import PackagePath, RepositoryPath, VersionPath
from bintray_provision.reporting import Reporter
from bintray_provision.uploads import PlannedUpload

REPO = RepositoryPath("acme", "deb")
PACKAGE = PackagePath("acme", "deb", "tool")
VERSION = PACKAGE.version("1.2.3")


def test_repository_lifecycle(client: BintrayClient, fake_bintray: FakeBintray) -> None:
    """Repositories can be checked, created and deleted."""
    assert client.repository_exists(REPO) is False
    assert client.create_repository(REPO, {"type": "debian"}) is True
    assert client.repository_exists(REPO) is True
    assert fake_bintray.repos["acme/deb"] == {"name": "deb", "type": "debian"}

    client.delete_repository(REPO)

    assert "acme/deb" not in fake_bintray.repos


def test_requests_use_basic_auth(client: BintrayClient, fake_bintray: FakeBintray) -> None:
    """Every request carries the configured credentials."""
    client.repository_exists(REPO)

    (request,) = fake_bintray.requests
    assert request.headers["Authorization"].startswith("Basic ")
    assert request.url.host == "api.bintray.com"


def test_create_conflict_means_already_exists(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """A 409 from the service is reported as "not created" rather than an error."""
    fake_bintray.repos["acme/deb"] = {"name": "deb"}

    assert client.create_repository(REPO, {}) is False


def test_create_rejection_raises_service_error(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """Other failures surface the service message and status."""
    fake_bintray.overrides[("POST", "/repos/acme/deb")] = httpx.Response(
        403, json={"message": "Forbidden for user bot"}
    )

    with pytest.raises(ServiceError) as exc:
        client.create_repository(REPO, {})

    assert exc.value.status_code == 403
    assert "Forbidden for user bot" in str(exc.value)


def test_existence_check_error_on_server_failure(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """Statuses other than 200 and 404 cannot answer an existence query."""
    fake_bintray.overrides[("GET", "/packages/acme/deb/tool")] = httpx.Response(502)

    with pytest.raises(ExistenceCheckError) as exc:
        client.package_exists(PACKAGE)

    assert exc.value.status_code == 502


def test_transport_failure_is_an_existence_check_error(reporter: Reporter) -> None:
    """Network errors during existence checks are wrapped as well."""

    def _refuse(request: httpx.Request) -> httpx.Response:
        message = "connection refused"
        raise httpx.ConnectError(message, request=request)

    with BintrayClient(
        user="bot", key="secret", reporter=reporter, transport=httpx.MockTransport(_refuse)
    ) as client, pytest.raises(ExistenceCheckError, match="connection refused"):
        client.repository_exists(REPO)


def test_create_package_applies_default_license(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """Packages without licences receive the client's default licence."""
    client.create_package(PACKAGE, {"desc": "A tool"})
    client.create_package(PackagePath("acme", "deb", "lib"), {"licenses": ["MIT"]})

    assert fake_bintray.packages["acme/deb/tool"] == {
        "name": "tool",
        "desc": "A tool",
        "licenses": ["Apache-2.0"],
    }
    assert fake_bintray.packages["acme/deb/lib"]["licenses"] == ["MIT"]
    assert client.package_exists(PACKAGE) is True


def test_version_creation(client: BintrayClient, fake_bintray: FakeBintray) -> None:
    """Versions are created beneath their package."""
    assert client.version_exists(VERSION) is False

    client.create_version(VERSION)

    assert client.version_exists(VERSION) is True
    assert ("POST", "/packages/acme/deb/tool/versions") in fake_bintray.calls("POST")


def test_upload_file_sends_flags_and_checksum(
    client: BintrayClient, fake_bintray: FakeBintray, tmp_path: Path
) -> None:
    """Uploads carry publish, override, explode, Debian and checksum headers."""
    source = tmp_path / "tool_1.2.3_amd64.deb"
    create_file(source, b"deb-bytes")
    spec = UploadSpec(
        pattern="*.deb",
        version="1.2.3",
        publish=True,
        deb=DebianCoordinates("stable", "main", "amd64"),
    )

    client.upload_file(VERSION, PlannedUpload(source, "pool/tool.deb"), spec)

    (request,) = fake_bintray.requests
    assert request.method == "PUT"
    assert request.url.path == "/content/acme/deb/tool/1.2.3/pool/tool.deb"
    assert request.headers["X-Bintray-Publish"] == "1"
    assert request.headers["X-Bintray-Override"] == "0"
    assert request.headers["X-Bintray-Debian-Distribution"] == "stable"
    assert request.headers["X-Bintray-Debian-Architecture"] == "amd64"
    assert request.headers["X-Checksum-Sha2"] == hashlib.sha256(b"deb-bytes").hexdigest()
    assert request.headers["Content-Length"] == str(len(b"deb-bytes"))
    assert fake_bintray.files["acme/deb/tool/1.2.3/pool/tool.deb"] == b"deb-bytes"


def test_upload_files_counts_failures(
    client: BintrayClient,
    fake_bintray: FakeBintray,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Failed uploads are counted and reported without stopping the others."""
    uploads = []
    for name in ("a.deb", "b.deb", "c.deb"):
        create_file(tmp_path / name)
        uploads.append(PlannedUpload(tmp_path / name, name))
    fake_bintray.overrides[("PUT", "/content/acme/deb/tool/1.2.3/b.deb")] = (
        httpx.Response(500, json={"message": "disk full"})
    )

    summary = client.upload_files(VERSION, uploads, UploadSpec("*.deb", "1.2.3"))

    assert (summary.uploaded, summary.failed) == (2, 1)
    assert "disk full" in capsys.readouterr().err


def test_sign_publish_and_metadata(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """Signing sends the passphrase; publishing and metadata hit their endpoints."""
    fake_bintray.files["acme/deb/tool/1.2.3/tool.deb"] = b""

    client.gpg_sign_version(VERSION, "s3cret")
    files = client.publish_version(VERSION)
    client.calc_metadata(VERSION)

    sign, publish, metadata = fake_bintray.requests
    assert sign.url.path == "/gpg/acme/deb/tool/versions/1.2.3"
    assert json.loads(sign.content) == {"passphrase": "s3cret"}
    assert publish.url.path == "/content/acme/deb/tool/1.2.3/publish"
    assert metadata.url.path == "/calc_metadata/acme/deb/tool/1.2.3"
    assert files == 1


def test_unexpected_metadata_status_is_a_service_error(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """Only 200 and 202 mean metadata calculation was scheduled."""
    fake_bintray.overrides[("POST", "/calc_metadata/acme/deb/tool/1.2.3")] = (
        httpx.Response(201, json={"message": "created"})
    )

    with pytest.raises(ServiceError, match="not scheduled") as exc:
        client.calc_metadata(VERSION)

    assert exc.value.status_code == 201


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>ok</html>"),
        httpx.Response(200, json={"files": "many"}),
        httpx.Response(200, json=["tool.deb"]),
    ],
)
def test_malformed_publish_response_is_a_service_error(
    client: BintrayClient, fake_bintray: FakeBintray, response: httpx.Response
) -> None:
    """Publish answers without an integer file count are rejected."""
    fake_bintray.overrides[("POST", "/content/acme/deb/tool/1.2.3/publish")] = response

    with pytest.raises(ServiceError):
        client.publish_version(VERSION)


def test_show_package_returns_details(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """Package details are returned as decoded JSON."""
    fake_bintray.packages["acme/deb/tool"] = {"name": "tool", "versions": ["1.2.3"]}

    assert client.show_package(PACKAGE)["versions"] == ["1.2.3"]


def test_show_package_rejects_non_json_details(
    client: BintrayClient, fake_bintray: FakeBintray
) -> None:
    """A success answer that is not a JSON object is a service error."""
    fake_bintray.overrides[("GET", "/packages/acme/deb/tool")] = httpx.Response(
        200, text="maintenance"
    )

    with pytest.raises(ServiceError, match="non-JSON body"):
        client.show_package(PACKAGE)


def test_show_missing_package_raises(client: BintrayClient) -> None:
    """Showing an unknown package is a service error."""
    with pytest.raises(ServiceError) as exc:
        client.show_package(PACKAGE)

    assert exc.value.status_code == 404


def test_dry_run_sends_only_reads(
    fake_bintray: FakeBintray,
    reporter: Reporter,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Mutations are printed, not sent, while reads still reach the service."""
    source = tmp_path / "tool.deb"
    create_file(source)
    with BintrayClient(
        user="bot",
        key="secret",
        reporter=reporter,
        dry_run=True,
        transport=fake_bintray.transport(),
    ) as client:
        assert client.repository_exists(REPO) is False
        assert client.create_repository(REPO, {}) is True
        client.create_package(PACKAGE, {})
        client.upload_file(VERSION, PlannedUpload(source, "tool.deb"), UploadSpec("*", "1"))
        client.delete_repository(REPO)

    assert fake_bintray.calls() == [("GET", "/repos/acme/deb")]
    out = capsys.readouterr().out
    assert "[dry-run] POST https://api.bintray.com/repos/acme/deb" in out
    assert "[dry-run] PUT https://api.bintray.com/content/acme/deb/tool/1.2.3/tool.deb" in out
    assert "[dry-run] DELETE https://api.bintray.com/repos/acme/deb" in out


def test_path_segments_are_quoted(client: BintrayClient, fake_bintray: FakeBintray) -> None:
    """Special characters in keys are percent-encoded."""
    client.version_exists(VersionPath("acme", "deb", "tool", "1.0 beta"))

    (request,) = fake_bintray.requests
    assert request.url.raw_path == b"/packages/acme/deb/tool/versions/1.0%20beta"
