"""Shared helpers for the provisioning test suites."""

from __future__ import annotations

import json
import typing as typ
from pathlib import Path

import httpx
import yaml

from bintray_provision.errors import ExistenceCheckError, ServiceError

if typ.TYPE_CHECKING:
    from bintray_provision.paths import PackagePath, RepositoryPath

__all__ = ["FakeBintray", "FakeService", "create_file", "write_manifest"]


def write_manifest(directory: Path, data: dict[str, typ.Any]) -> Path:
    """Write ``data`` as ``bintray.yml`` inside ``directory`` and return its path."""
    path = directory / "bintray.yml"
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def create_file(path: Path, content: bytes = b"data") -> None:
    """Create a file with the given content, ensuring parent directories exist."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


class FakeService:
    """In-memory remote service recording each reconciliation call.

    Parameters
    ----------
    existing : Iterable
        Repository and package keys that already exist remotely.
    fail_create : Iterable
        Keys whose creation raises :class:`ServiceError`.
    fail_check : Iterable
        Keys whose existence check raises :class:`ExistenceCheckError`.
    """

    def __init__(
        self,
        *,
        existing: typ.Iterable[object] = (),
        fail_create: typ.Iterable[object] = (),
        fail_check: typ.Iterable[object] = (),
    ) -> None:
        self.existing = set(existing)
        self.fail_create = set(fail_create)
        self.fail_check = set(fail_check)
        self.calls: list[tuple[str, str]] = []
        self.configs: dict[str, dict[str, typ.Any]] = {}

    def _exists(self, name: str, path: object) -> bool:
        self.calls.append((name, str(path)))
        if path in self.fail_check:
            message = f"lookup of {path} timed out"
            raise ExistenceCheckError(message)
        return path in self.existing

    def _create(self, name: str, path: object, config: typ.Mapping[str, typ.Any]) -> bool:
        self.calls.append((name, str(path)))
        if path in self.fail_create:
            message = f"creation of {path} forbidden"
            raise ServiceError(message, status_code=403)
        self.existing.add(path)
        self.configs[str(path)] = dict(config)
        return True

    def repository_exists(self, path: RepositoryPath) -> bool:
        return self._exists("repository_exists", path)

    def create_repository(
        self, path: RepositoryPath, config: typ.Mapping[str, typ.Any]
    ) -> bool:
        return self._create("create_repository", path, config)

    def package_exists(self, path: PackagePath) -> bool:
        return self._exists("package_exists", path)

    def create_package(
        self, path: PackagePath, config: typ.Mapping[str, typ.Any]
    ) -> bool:
        return self._create("create_package", path, config)

    @property
    def creations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0].startswith("create_")]


class FakeBintray:
    """Stateful HTTP double of the REST API served through ``MockTransport``.

    ``overrides`` maps ``(method, path)`` to a canned response returned before
    any routing happens.
    """

    def __init__(self) -> None:
        self.repos: dict[str, dict[str, typ.Any]] = {}
        self.packages: dict[str, dict[str, typ.Any]] = {}
        self.versions: set[str] = set()
        self.files: dict[str, bytes] = {}
        self.published: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.overrides: dict[tuple[str, str], httpx.Response] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, *methods: str) -> list[tuple[str, str]]:
        """Return ``(method, path)`` pairs, optionally filtered by ``methods``."""
        return [
            (request.method, request.url.path)
            for request in self.requests
            if not methods or request.method in methods
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.overrides:
            return self.overrides[key]
        parts = request.url.path.strip("/").split("/")
        handler = {
            "repos": self._repos,
            "packages": self._packages,
            "content": self._content,
            "gpg": self._gpg,
            "calc_metadata": self._calc_metadata,
        }.get(parts[0])
        if handler is None:
            return httpx.Response(404, json={"message": "Unknown endpoint"})
        return handler(request, parts[1:])

    @staticmethod
    def _body(request: httpx.Request) -> dict[str, typ.Any]:
        return json.loads(request.content) if request.content else {}

    def _entity(
        self,
        request: httpx.Request,
        store: dict[str, dict[str, typ.Any]],
        key: str,
        label: str,
    ) -> httpx.Response:
        if request.method == "GET":
            if key in store:
                return httpx.Response(200, json=store[key])
            return httpx.Response(404, json={"message": f"{label} '{key}' was not found"})
        if request.method == "DELETE":
            if store.pop(key, None) is None:
                return httpx.Response(404, json={"message": f"{label} '{key}' was not found"})
            return httpx.Response(200, json={"message": "success"})
        return httpx.Response(405)

    def _create(
        self, store: dict[str, dict[str, typ.Any]], key: str, body: dict[str, typ.Any]
    ) -> httpx.Response:
        if key in store:
            return httpx.Response(409, json={"message": f"'{key}' already exists"})
        store[key] = body
        return httpx.Response(201, json=body)

    def _repos(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        key = "/".join(parts)
        if request.method == "POST":
            return self._create(self.repos, key, self._body(request))
        return self._entity(request, self.repos, key, "Repo")

    def _packages(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        if len(parts) == 2 and request.method == "POST":
            body = self._body(request)
            return self._create(self.packages, "/".join([*parts, body["name"]]), body)
        if len(parts) == 3:
            return self._entity(request, self.packages, "/".join(parts), "Package")
        if len(parts) == 4 and request.method == "POST":
            name = self._body(request)["name"]
            version = "/".join([*parts[:3], name])
            if version in self.versions:
                return httpx.Response(409, json={"message": "Version exists"})
            self.versions.add(version)
            return httpx.Response(201, json={"name": name})
        if len(parts) == 5 and request.method == "GET":
            version = "/".join([*parts[:3], parts[4]])
            if version in self.versions:
                return httpx.Response(200, json={"name": parts[4]})
            return httpx.Response(404, json={"message": "Version was not found"})
        return httpx.Response(405)

    def _content(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        version = "/".join(parts[:4])
        if request.method == "POST" and parts[4:] == ["publish"]:
            files = [name for name in self.files if name.startswith(f"{version}/")]
            self.published.add(version)
            return httpx.Response(200, json={"files": len(files)})
        if request.method == "PUT":
            self.files["/".join(parts)] = request.content
            return httpx.Response(201, json={"message": "success"})
        return httpx.Response(405)

    def _gpg(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        return httpx.Response(200, json={"message": "success"})

    def _calc_metadata(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        return httpx.Response(202, json={"message": "Calculation scheduled"})
