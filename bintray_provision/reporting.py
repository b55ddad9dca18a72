"""Operator-facing output shared by every provisioning step."""

from __future__ import annotations

import dataclasses
import json
import sys
import typing as typ

__all__ = ["Reporter"]


@dataclasses.dataclass(slots=True)
class Reporter:
    """Explicit output context scoped to a single run.

    Parameters
    ----------
    stream : TextIO, optional
        Destination for progress messages, ``sys.stdout`` when omitted.
    error_stream : TextIO, optional
        Destination for failures, ``sys.stderr`` when omitted.
    verbose : bool, default=False
        Emit :meth:`debug` messages and JSON dumps when ``True``.

    Examples
    --------
    >>> import io
    >>> buffer = io.StringIO()
    >>> Reporter(stream=buffer).info("Creating Repo.. [acme/deb]")
    >>> buffer.getvalue()
    'Creating Repo.. [acme/deb]\\n'
    """

    stream: typ.TextIO | None = None
    error_stream: typ.TextIO | None = None
    verbose: bool = False

    def info(self, message: str) -> None:
        print(message, file=self.stream or sys.stdout)

    def debug(self, message: str) -> None:
        if self.verbose:
            print(message, file=self.stream or sys.stdout)

    def error(self, message: str) -> None:
        print(f"error: {message}", file=self.error_stream or sys.stderr)

    def dump(self, label: str, value: object, *, always: bool = False) -> None:
        """Print ``value`` as indented JSON under ``label``.

        Dumps are suppressed outside verbose mode unless ``always`` is set.
        """
        if not (always or self.verbose):
            return
        rendered = json.dumps(value, indent=2, sort_keys=True, default=str)
        self.info(f"{label} =>\n{rendered}")
