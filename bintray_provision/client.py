"""REST client for the package-hosting service.

:class:`BintrayClient` owns a single :class:`httpx.Client` for the duration of
a run. Read requests are always sent; in dry-run mode every mutating request
is printed instead of being executed.

Examples
--------
Check whether a repository exists::

    from bintray_provision.client import BintrayClient
    from bintray_provision.paths import RepositoryPath

    with BintrayClient(user="bot", key="secret") as client:
        client.repository_exists(RepositoryPath("acme", "deb"))
"""

from __future__ import annotations

import dataclasses
import typing as typ
from concurrent.futures import ThreadPoolExecutor, as_completed
from urllib.parse import quote

import httpx

from .errors import ExistenceCheckError, ServiceError
from .manifest import DEFAULT_LICENSE, DEFAULT_THREADS
from .reporting import Reporter
from .uploads import file_checksum

if typ.TYPE_CHECKING:
    from .manifest import UploadSpec
    from .paths import PackagePath, RepositoryPath, VersionPath
    from .uploads import PlannedUpload

__all__ = [
    "DEFAULT_API_URL",
    "BintrayClient",
    "RemotePackageService",
    "UploadSummary",
]

DEFAULT_API_URL = "https://api.bintray.com"
DEFAULT_TIMEOUT = 60.0


class RemotePackageService(typ.Protocol):
    """Operations the reconciliation pass needs from the remote service."""

    def repository_exists(self, path: RepositoryPath) -> bool: ...

    def create_repository(
        self, path: RepositoryPath, config: typ.Mapping[str, typ.Any]
    ) -> bool: ...

    def package_exists(self, path: PackagePath) -> bool: ...

    def create_package(
        self, path: PackagePath, config: typ.Mapping[str, typ.Any]
    ) -> bool: ...


@dataclasses.dataclass(frozen=True, slots=True)
class UploadSummary:
    """Counts of files uploaded and failed for one version."""

    uploaded: int
    failed: int


def _segments(*parts: str) -> str:
    return "/".join(quote(part, safe="") for part in parts)


def _json_body(response: httpx.Response) -> typ.Any:
    try:
        return response.json()
    except ValueError as exc:
        request = response.request
        message = f"{request.method} {request.url.path} returned a non-JSON body"
        raise ServiceError(message, status_code=response.status_code) from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase


class BintrayClient:
    """Synchronous client for the repository, package and content APIs.

    Parameters
    ----------
    user, key : str
        Account name and API key used for HTTP basic authentication.
    api_url : str, default=DEFAULT_API_URL
        Base URL of the REST API.
    reporter : Reporter, optional
        Output context; a default :class:`Reporter` when omitted.
    dry_run : bool, default=False
        Print mutating requests instead of sending them.
    threads : int, default=DEFAULT_THREADS
        Worker count for :meth:`upload_files`.
    default_license : str, default=DEFAULT_LICENSE
        Licence assigned to new packages whose configuration names none.
    transport : httpx.BaseTransport, optional
        Transport override, used by tests to mount :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        *,
        user: str,
        key: str,
        api_url: str = DEFAULT_API_URL,
        reporter: Reporter | None = None,
        dry_run: bool = False,
        threads: int = DEFAULT_THREADS,
        default_license: str = DEFAULT_LICENSE,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.reporter = reporter or Reporter()
        self.dry_run = dry_run
        self.threads = threads
        self.default_license = default_license
        self._http = httpx.Client(
            base_url=api_url.rstrip("/"),
            auth=(user, key),
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    def __enter__(self) -> BintrayClient:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # Low level helpers

    def _send(self, method: str, url: str, **kwargs: typ.Any) -> httpx.Response:
        self.reporter.debug(f"{method} {url}")
        try:
            return self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            message = f"{method} {url} failed: {exc}"
            raise ServiceError(message) from exc

    def _check(self, response: httpx.Response) -> httpx.Response:
        if response.is_success:
            return response
        request = response.request
        message = (
            f"{request.method} {request.url.path} returned "
            f"{response.status_code}: {_error_detail(response)}"
        )
        raise ServiceError(message, status_code=response.status_code)

    def _absolute(self, url: str) -> str:
        return f"{str(self._http.base_url).rstrip('/')}{url}"

    def _mutate(
        self, method: str, url: str, **kwargs: typ.Any
    ) -> httpx.Response | None:
        if self.dry_run:
            self.reporter.info(f"[dry-run] {method} {self._absolute(url)}")
            return None
        return self._check(self._send(method, url, **kwargs))

    def _exists(self, url: str) -> bool:
        try:
            response = self._send("GET", url)
        except ServiceError as exc:
            raise ExistenceCheckError(str(exc)) from exc
        if response.status_code == httpx.codes.NOT_FOUND:
            return False
        if response.is_success:
            return True
        message = (
            f"GET {url} returned {response.status_code}: {_error_detail(response)}"
        )
        raise ExistenceCheckError(message, status_code=response.status_code)

    def _create(self, url: str, body: dict[str, typ.Any]) -> bool:
        """POST ``body`` and return ``False`` when the entity already exists."""
        try:
            self._mutate("POST", url, json=body)
        except ServiceError as exc:
            if exc.status_code == httpx.codes.CONFLICT:
                return False
            raise
        return True

    # Repositories

    def repository_exists(self, path: RepositoryPath) -> bool:
        return self._exists(f"/repos/{_segments(path.subject, path.repo)}")

    def create_repository(
        self, path: RepositoryPath, config: typ.Mapping[str, typ.Any]
    ) -> bool:
        """Create the repository at ``path``.

        Returns
        -------
        bool
            ``True`` when created, ``False`` when the service reports the
            repository already exists.

        Raises
        ------
        ServiceError
            Raised for any other rejection.
        """
        body = {"name": path.repo, **config}
        return self._create(f"/repos/{_segments(path.subject, path.repo)}", body)

    def delete_repository(self, path: RepositoryPath) -> None:
        self._mutate("DELETE", f"/repos/{_segments(path.subject, path.repo)}")

    # Packages

    def package_exists(self, path: PackagePath) -> bool:
        return self._exists(self._package_url(path))

    def create_package(
        self, path: PackagePath, config: typ.Mapping[str, typ.Any]
    ) -> bool:
        """Create the package at ``path``; see :meth:`create_repository`."""
        body = {"name": path.package, **config}
        if not body.get("licenses"):
            body["licenses"] = [self.default_license]
        return self._create(f"/packages/{_segments(path.subject, path.repo)}", body)

    def delete_package(self, path: PackagePath) -> None:
        self._mutate("DELETE", self._package_url(path))

    def show_package(self, path: PackagePath) -> dict[str, typ.Any]:
        """Return the package details published by the service."""
        response = self._check(self._send("GET", self._package_url(path)))
        payload = _json_body(response)
        if not isinstance(payload, dict):
            message = f"GET {response.request.url.path} did not return an object"
            raise ServiceError(message, status_code=response.status_code)
        return payload

    @staticmethod
    def _package_url(path: PackagePath) -> str:
        return f"/packages/{_segments(path.subject, path.repo, path.package)}"

    # Versions

    def version_exists(self, path: VersionPath) -> bool:
        return self._exists(self._version_url(path))

    def create_version(self, path: VersionPath) -> bool:
        url = f"{self._package_url(path.package_path)}/versions"
        return self._create(url, {"name": path.version})

    def gpg_sign_version(
        self, path: VersionPath, passphrase: str | None = None
    ) -> None:
        """Sign every file of the version with the subject's GPG key."""
        body = {"passphrase": passphrase} if passphrase else {}
        url = f"/gpg/{_segments(path.subject, path.repo, path.package)}"
        version = quote(path.version, safe="")
        self._mutate("POST", f"{url}/versions/{version}", json=body)

    def publish_version(self, path: VersionPath) -> int:
        """Publish unpublished files of the version and return their count."""
        url = f"{self._content_url(path)}/publish"
        response = self._mutate("POST", url, json={})
        if response is None:
            return 0
        payload = _json_body(response)
        files = payload.get("files", 0) if isinstance(payload, dict) else None
        if isinstance(files, bool) or not isinstance(files, int):
            message = f"POST {url} returned an unexpected body: {response.text}"
            raise ServiceError(message, status_code=response.status_code)
        return files

    def calc_metadata(self, path: VersionPath) -> None:
        """Ask the service to schedule metadata calculation for the version."""
        segments = _segments(path.subject, path.repo, path.package, path.version)
        response = self._mutate("POST", f"/calc_metadata/{segments}")
        if response is not None and response.status_code not in {
            httpx.codes.OK,
            httpx.codes.ACCEPTED,
        }:
            message = (
                "Metadata calculation was not scheduled: service answered "
                f"{response.status_code}"
            )
            raise ServiceError(message, status_code=response.status_code)

    @staticmethod
    def _version_url(path: VersionPath) -> str:
        return (
            f"/packages/{_segments(path.subject, path.repo, path.package)}"
            f"/versions/{quote(path.version, safe='')}"
        )

    @staticmethod
    def _content_url(path: VersionPath) -> str:
        segments = _segments(path.subject, path.repo, path.package, path.version)
        return f"/content/{segments}"

    # Content

    def upload_file(
        self, path: VersionPath, upload: PlannedUpload, spec: UploadSpec
    ) -> None:
        """Upload one file into the version at ``upload.remote_path``."""
        remote = upload.remote_path.split("/")
        url = f"{self._content_url(path)}/{_segments(*remote)}"
        if self.dry_run:
            self.reporter.info(
                f"[dry-run] PUT {self._absolute(url)} <- {upload.source}"
            )
            return
        headers = self._upload_headers(spec)
        headers["X-Checksum-Sha2"] = file_checksum(upload.source)
        with upload.source.open("rb") as handle:
            self._check(self._send("PUT", url, content=handle, headers=headers))

    def upload_files(
        self,
        path: VersionPath,
        uploads: typ.Sequence[PlannedUpload],
        spec: UploadSpec,
    ) -> UploadSummary:
        """Upload ``uploads`` concurrently and count successes and failures.

        Individual failures are reported and counted; they do not stop the
        remaining uploads.
        """
        uploaded = failed = 0
        with ThreadPoolExecutor(max_workers=self.threads) as pool:
            futures = {
                pool.submit(self.upload_file, path, upload, spec): upload
                for upload in uploads
            }
            for future in as_completed(futures):
                upload = futures[future]
                try:
                    future.result()
                except (ServiceError, OSError) as exc:
                    failed += 1
                    self.reporter.error(f"Upload of {upload.source} failed: {exc}")
                else:
                    uploaded += 1
                    self.reporter.debug(
                        f"Uploaded {upload.source} -> {upload.remote_path}"
                    )
        return UploadSummary(uploaded=uploaded, failed=failed)

    @staticmethod
    def _upload_headers(spec: UploadSpec) -> dict[str, str]:
        headers = {
            "X-Bintray-Publish": "1" if spec.publish else "0",
            "X-Bintray-Override": "1" if spec.override else "0",
            "X-Bintray-Explode": "1" if spec.explode else "0",
        }
        if spec.deb is not None:
            headers |= {
                "X-Bintray-Debian-Distribution": spec.deb.distribution,
                "X-Bintray-Debian-Component": spec.deb.component,
                "X-Bintray-Debian-Architecture": spec.deb.architecture,
            }
        return headers
