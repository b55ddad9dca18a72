"""Expand upload descriptors into the files sent to the service."""

from __future__ import annotations

import dataclasses
import hashlib
import re
import typing as typ
from glob import has_magic
from pathlib import Path, PurePosixPath

from .errors import UploadError

if typ.TYPE_CHECKING:
    from .manifest import UploadSpec

__all__ = [
    "PlannedUpload",
    "file_checksum",
    "plan_uploads",
    "search_root_and_pattern",
]

_PLACEHOLDER = re.compile(r"\{(\d+)\}")
_REGEX_SPECIAL = frozenset("^$*+?{}[]\\|()")


@dataclasses.dataclass(frozen=True, slots=True)
class PlannedUpload:
    """Local file paired with the remote path it is uploaded to."""

    source: Path
    remote_path: str


def search_root_and_pattern(pattern: str, *, regexp: bool = False) -> tuple[Path, str]:
    """Split ``pattern`` into its literal directory prefix and matching remainder.

    Examples
    --------
    >>> search_root_and_pattern("dist/linux/*.deb")
    (PosixPath('dist/linux'), '*.deb')
    >>> search_root_and_pattern("tool.deb")
    (PosixPath('.'), 'tool.deb')
    """
    text = pattern if regexp else pattern.replace("\\", "/")
    parts = PurePosixPath(text).parts
    root_parts: list[str] = []
    for part in parts[:-1]:
        if _is_magic(part, regexp=regexp):
            break
        root_parts.append(part)
    remainder = PurePosixPath(*parts[len(root_parts):]).as_posix()
    root = Path(*root_parts) if root_parts else Path()
    return root, remainder


def _is_magic(part: str, *, regexp: bool) -> bool:
    if regexp:
        return any(char in _REGEX_SPECIAL for char in part)
    return has_magic(part)


def _wildcard_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a ``*``/``?`` wildcard into a regex with one group per ``*``."""
    pieces: list[str] = []
    for char in pattern:
        if char == "*":
            pieces.append("(.*)")
        elif char == "?":
            pieces.append(".")
        else:
            pieces.append(re.escape(char))
    return re.compile("".join(pieces))


def _compile(remainder: str, *, regexp: bool) -> re.Pattern[str]:
    if not regexp:
        return _wildcard_to_regex(remainder)
    try:
        return re.compile(remainder)
    except re.error as exc:
        message = f"Invalid upload regular expression '{remainder}': {exc}"
        raise UploadError(message) from exc


def _iter_files(root: Path, *, recursive: bool) -> typ.Iterator[Path]:
    candidates = root.rglob("*") if recursive else root.glob("*")
    for path in sorted(candidates):
        if path.is_file():
            yield path


def _render_target(target: str, groups: tuple[str | None, ...]) -> str:
    def _substitute(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if not 1 <= index <= len(groups):
            message = (
                f"Placeholder {{{index}}} in target '{target}' has no "
                "matching capture in the pattern"
            )
            raise UploadError(message)
        return groups[index - 1] or ""

    return _PLACEHOLDER.sub(_substitute, target)


def _remote_path(
    spec: UploadSpec, relative: str, groups: tuple[str | None, ...]
) -> str:
    target = _render_target(spec.target, groups)
    if target and not target.endswith("/"):
        return target.lstrip("/")
    name = PurePosixPath(relative).name if spec.flat else relative
    return f"{target}{name}".lstrip("/")


def plan_uploads(
    spec: UploadSpec, *, workspace: Path | None = None
) -> list[PlannedUpload]:
    """Return the files selected by ``spec`` with their remote paths.

    Parameters
    ----------
    spec : UploadSpec
        Upload descriptor from the manifest.
    workspace : Path, optional
        Directory relative patterns are resolved against; the current
        directory when omitted.

    Returns
    -------
    list[PlannedUpload]
        Uploads ordered by local path.

    Raises
    ------
    UploadError
        Raised when nothing matches, a placeholder has no capture, or two
        files would be uploaded to the same remote path.
    """
    root, remainder = search_root_and_pattern(spec.pattern, regexp=spec.regexp)
    if not root.is_absolute() and workspace is not None:
        root = workspace / root
    if not root.is_dir():
        message = f"Upload directory {root} does not exist"
        raise UploadError(message)

    matcher = _compile(remainder, regexp=spec.regexp)
    planned: list[PlannedUpload] = []
    seen: dict[str, Path] = {}
    for path in _iter_files(root, recursive=spec.recursive):
        relative = path.relative_to(root).as_posix()
        if (match := matcher.fullmatch(relative)) is None:
            continue
        remote = _remote_path(spec, relative, match.groups())
        if previous := seen.get(remote):
            message = (
                f"Remote path collision: {remote} would receive both "
                f"{previous} and {path}"
            )
            raise UploadError(message)
        seen[remote] = path
        planned.append(PlannedUpload(source=path, remote_path=remote))

    if not planned:
        message = f"No files match upload pattern '{spec.pattern}'"
        raise UploadError(message)
    return planned


def file_checksum(path: Path, algorithm: str = "sha256") -> str:
    """Return the hex digest of ``path`` computed with ``algorithm``."""
    hasher = hashlib.new(algorithm)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
