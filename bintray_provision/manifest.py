"""Manifest models and loader for the provisioning run.

The manifest is a YAML document describing the repositories, packages and
upload descriptors that should exist on the remote service. It is parsed once
into frozen dataclasses; configuration blobs stay opaque mappings that are
forwarded to the service unchanged.

Usage
-----
Load a manifest and walk its packages::

    from pathlib import Path
    from bintray_provision.manifest import load_manifest

    manifest = load_manifest(Path("bintray.yml"))
    for repository, package in manifest.iter_packages():
        print(package.path)
"""

from __future__ import annotations

import dataclasses
import json
import typing as typ
from pathlib import Path
from types import MappingProxyType

import yaml

from .errors import ManifestError
from .paths import PackagePath, RepositoryPath

__all__ = [
    "DEFAULT_LICENSE",
    "DEFAULT_THREADS",
    "DebianCoordinates",
    "Manifest",
    "Package",
    "Repository",
    "UploadSpec",
    "load_manifest",
    "parse_manifest",
]

DEFAULT_THREADS = 3
DEFAULT_LICENSE = "Apache-2.0"

_MANIFEST_KEYS = {"threads", "cleanup", "default_license", "bintray"}
_BINTRAY_KEYS = {"repos"}
_REPOSITORY_KEYS = {"name", "subject", "config", "packages"}
_PACKAGE_KEYS = {"package", "config", "upload"}
_UPLOAD_KEYS = {
    "pattern",
    "version",
    "target",
    "publish",
    "override",
    "explode",
    "recursive",
    "flat",
    "regexp",
    "deb",
}


@dataclasses.dataclass(frozen=True, slots=True)
class DebianCoordinates:
    """Distribution, component and architecture of a Debian upload."""

    distribution: str
    component: str
    architecture: str

    @classmethod
    def parse(cls, value: str) -> DebianCoordinates:
        """Parse ``distribution/component/architecture``.

        Examples
        --------
        >>> DebianCoordinates.parse("stable/main/amd64").component
        'main'
        """
        parts = value.split("/")
        if len(parts) != 3 or not all(parts):
            message = (
                "Debian coordinates must look like "
                f"'distribution/component/architecture', received '{value}'"
            )
            raise ValueError(message)
        return cls(*parts)


@dataclasses.dataclass(frozen=True, slots=True)
class UploadSpec:
    """Describe the files uploaded into one package version.

    Parameters
    ----------
    pattern : str
        Wildcard (or, with ``regexp``, regular expression) selecting local
        files.
    version : str
        Version receiving the files; created when absent.
    target : str, default=""
        Remote path template. Empty or ending in ``/`` denotes a directory.
        ``{1}``, ``{2}``... are replaced with the pattern's captures.
    publish, override, explode : bool, default=False
        Upload flags forwarded as request headers.
    recursive, flat : bool, default=True
        Descend into sub-directories; drop local directories from remote names.
    regexp : bool, default=False
        Treat ``pattern`` as a regular expression.
    deb : DebianCoordinates | None, optional
        Debian coordinates attached to every uploaded file.
    """

    pattern: str
    version: str
    target: str = ""
    publish: bool = False
    override: bool = False
    explode: bool = False
    recursive: bool = True
    flat: bool = True
    regexp: bool = False
    deb: DebianCoordinates | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class Package:
    """Package entry keyed by its owning repository and ``name``."""

    path: PackagePath
    config: typ.Mapping[str, typ.Any]
    upload: UploadSpec | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class Repository:
    """Repository entry keyed by ``(subject, name)``."""

    path: RepositoryPath
    config: typ.Mapping[str, typ.Any]
    packages: tuple[Package, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class Manifest:
    """Desired state loaded by :func:`load_manifest`.

    Examples
    --------
    >>> manifest = parse_manifest(
    ...     {"bintray": {"repos": [{"name": "deb", "subject": "acme"}]}}
    ... )
    >>> [str(repo.path) for repo in manifest.repositories]
    ['acme/deb']
    >>> manifest.threads
    3
    """

    repositories: tuple[Repository, ...]
    threads: int = DEFAULT_THREADS
    cleanup: bool = False
    default_license: str = DEFAULT_LICENSE

    def iter_packages(self) -> typ.Iterator[tuple[Repository, Package]]:
        """Yield ``(repository, package)`` pairs in manifest order."""
        for repository in self.repositories:
            for package in repository.packages:
                yield repository, package


def load_manifest(path: Path) -> Manifest:
    """Load and validate the YAML manifest at ``path``.

    Parameters
    ----------
    path : Path
        Location of the manifest file.

    Returns
    -------
    Manifest
        Immutable desired state.

    Raises
    ------
    ManifestError
        Raised when the file is missing, is not valid YAML, or violates the
        manifest schema.
    """
    path = Path(path)
    if not path.is_file():
        message = f"Manifest file not found at {path}"
        raise ManifestError(message)
    try:
        with path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        message = f"Error parsing manifest {path}: {exc}"
        raise ManifestError(message) from exc
    return parse_manifest(data, base_dir=path.parent, source=path)


def parse_manifest(
    data: object,
    *,
    base_dir: Path | None = None,
    source: Path | str = "<manifest>",
) -> Manifest:
    """Validate decoded manifest ``data`` and build a :class:`Manifest`.

    ``base_dir`` anchors relative ``config_file`` references of repository
    configurations; it defaults to the current directory.
    """
    # An empty document describes an empty desired state.
    root = _require_mapping({} if data is None else data, "manifest", source)
    _reject_unknown(root, _MANIFEST_KEYS, "manifest", source)
    bintray = _require_mapping(root.get("bintray", {}), "bintray", source)
    _reject_unknown(bintray, _BINTRAY_KEYS, "bintray", source)

    entries = bintray.get("repos") or []
    if not isinstance(entries, list):
        message = f"'bintray.repos' must be a list in {source}"
        raise ManifestError(message)

    base = base_dir if base_dir is not None else Path()
    repositories: list[Repository] = []
    seen_repos: set[RepositoryPath] = set()
    for index, entry in enumerate(entries, start=1):
        repository = _make_repository(entry, index, base, source)
        if repository.path in seen_repos:
            message = f"Duplicate repository '{repository.path}' in {source}"
            raise ManifestError(message)
        seen_repos.add(repository.path)
        repositories.append(repository)

    return Manifest(
        repositories=tuple(repositories),
        threads=_threads(root.get("threads", DEFAULT_THREADS), source),
        cleanup=_boolean(root.get("cleanup", False), "cleanup", source),
        default_license=_string(
            root.get("default_license", DEFAULT_LICENSE), "default_license", source
        ),
    )


def _make_repository(
    entry: object, index: int, base_dir: Path, source: Path | str
) -> Repository:
    label = f"repository #{index}"
    section = _require_mapping(entry, label, source)
    _reject_unknown(section, _REPOSITORY_KEYS, label, source)
    _require_keys(section, {"name", "subject"}, label, source)
    path = RepositoryPath(
        subject=_string(section["subject"], f"{label}.subject", source),
        repo=_string(section["name"], f"{label}.name", source),
    )
    config = _load_repository_config(section.get("config"), path, base_dir, source)

    packages = section.get("packages") or []
    if not isinstance(packages, list):
        message = f"'packages' of repository '{path}' must be a list in {source}"
        raise ManifestError(message)

    built: list[Package] = []
    seen: set[PackagePath] = set()
    for package_index, package_entry in enumerate(packages, start=1):
        package = _make_package(package_entry, package_index, path, source)
        if package.path in seen:
            message = f"Duplicate package '{package.path}' in {source}"
            raise ManifestError(message)
        seen.add(package.path)
        built.append(package)

    return Repository(path=path, config=config, packages=tuple(built))


def _load_repository_config(
    value: object, path: RepositoryPath, base_dir: Path, source: Path | str
) -> typ.Mapping[str, typ.Any]:
    """Return the repository configuration, merging ``config_file`` beneath it."""
    config = dict(_require_mapping(value or {}, f"config of '{path}'", source))
    config_file = config.pop("config_file", None)
    if config_file is None:
        return _json_config(config, path, source)

    file_path = Path(_string(config_file, f"config_file of '{path}'", source))
    if not file_path.is_absolute():
        file_path = base_dir / file_path
    try:
        loaded = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        message = f"Cannot read repository config file {file_path}: {exc}"
        raise ManifestError(message) from exc
    if not isinstance(loaded, dict):
        message = f"Repository config file {file_path} must hold a JSON object"
        raise ManifestError(message)
    return _json_config(loaded | config, path, source)


def _make_package(
    entry: object, index: int, repository: RepositoryPath, source: Path | str
) -> Package:
    label = f"package #{index} of '{repository}'"
    section = _require_mapping(entry, label, source)
    _reject_unknown(section, _PACKAGE_KEYS, label, source)
    _require_keys(section, {"package"}, label, source)
    path = PackagePath(
        repository.subject,
        repository.repo,
        _string(section["package"], f"{label}.package", source),
    )
    config = _require_mapping(
        section.get("config") or {}, f"config of '{path}'", source
    )
    upload = section.get("upload")
    return Package(
        path=path,
        config=_json_config(config, path, source),
        upload=None if upload is None else _make_upload(upload, path, source),
    )


def _make_upload(value: object, path: PackagePath, source: Path | str) -> UploadSpec:
    label = f"upload of '{path}'"
    section = _require_mapping(value, label, source)
    _reject_unknown(section, _UPLOAD_KEYS, label, source)
    _require_keys(section, {"pattern", "version"}, label, source)

    deb = section.get("deb")
    coordinates = None
    if deb:
        try:
            coordinates = DebianCoordinates.parse(_string(deb, f"{label}.deb", source))
        except ValueError as exc:
            message = f"Invalid {label}: {exc}"
            raise ManifestError(message) from exc

    flags = {
        key: _boolean(section.get(key, default), f"{label}.{key}", source)
        for key, default in (
            ("publish", False),
            ("override", False),
            ("explode", False),
            ("recursive", True),
            ("flat", True),
            ("regexp", False),
        )
    }
    target = section.get("target") or ""
    return UploadSpec(
        pattern=_string(section["pattern"], f"{label}.pattern", source),
        version=_string(section["version"], f"{label}.version", source),
        target=_string(target, f"{label}.target", source) if target else "",
        deb=coordinates,
        **flags,
    )


def _json_config(
    config: dict[str, typ.Any], path: RepositoryPath | PackagePath, source: Path | str
) -> typ.Mapping[str, typ.Any]:
    """Return ``config`` read-only once it is known to encode as JSON."""
    try:
        json.dumps(config)
    except (TypeError, ValueError) as exc:
        message = f"Config of '{path}' cannot be sent as JSON in {source}: {exc}"
        raise ManifestError(message) from exc
    return MappingProxyType(dict(config))


def _require_mapping(
    value: object, label: str, source: Path | str
) -> dict[str, typ.Any]:
    if not isinstance(value, dict):
        message = f"Expected a mapping for {label} in {source}"
        raise ManifestError(message)
    return value


def _require_keys(
    section: dict[str, typ.Any], keys: set[str], label: str, source: Path | str
) -> None:
    if missing := sorted(key for key in keys if key not in section):
        joined = ", ".join(missing)
        message = f"Missing required key(s) {joined} in {label} of {source}"
        raise ManifestError(message)


def _reject_unknown(
    section: dict[str, typ.Any], allowed: set[str], label: str, source: Path | str
) -> None:
    if unknown := sorted(str(key) for key in section if key not in allowed):
        joined = ", ".join(unknown)
        message = f"Unknown key(s) {joined} in {label} of {source}"
        raise ManifestError(message)


def _string(value: object, label: str, source: Path | str) -> str:
    # YAML reads bare versions such as 1.0 as floats.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        message = f"{label} must be a non-empty string in {source}"
        raise ManifestError(message)
    return value.strip()


def _boolean(value: object, label: str, source: Path | str) -> bool:
    if not isinstance(value, bool):
        message = f"{label} must be a boolean in {source}"
        raise ManifestError(message)
    return value


def _threads(value: object, source: Path | str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        message = f"threads must be a positive integer in {source}"
        raise ManifestError(message)
    return value
