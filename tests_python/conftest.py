"""Shared fixtures for the provisioning test suite."""

from __future__ import annotations

import typing as typ

import pytest
from provision_test_helpers import FakeBintray

from bintray_provision.client import BintrayClient
from bintray_provision.reporting import Reporter


@pytest.fixture
def reporter() -> Reporter:
    """Reporter writing to the streams captured by ``capsys``."""
    return Reporter()


@pytest.fixture
def fake_bintray() -> FakeBintray:
    """Provide an empty in-memory REST API."""
    return FakeBintray()


@pytest.fixture
def client(
    fake_bintray: FakeBintray, reporter: Reporter
) -> typ.Iterator[BintrayClient]:
    """Yield a client wired to :func:`fake_bintray` and close it afterwards."""
    with BintrayClient(
        user="bot",
        key="secret",
        reporter=reporter,
        threads=2,
        transport=fake_bintray.transport(),
    ) as service:
        yield service
