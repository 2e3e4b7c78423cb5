"""Shared fixtures built around the in-memory TestLink server."""

from __future__ import annotations

import pytest

from adaptor import TestLinkAdaptor
from models import ConnectionParameters, FixtureConfig, HierarchySelection
from tests.fakes import FakeTestLinkClient, seed_demo


@pytest.fixture()
def connection():
    return ConnectionParameters(url="http://testlink.local/xmlrpc.php", dev_key="abc123", user="ci")


@pytest.fixture()
def clients():
    """Every fake client the adaptor created, in creation order."""
    return []


@pytest.fixture()
def client_factory(clients):
    def factory(params):
        client = seed_demo(FakeTestLinkClient(params))
        clients.append(client)
        return client

    return factory


@pytest.fixture()
def adaptor(client_factory):
    return TestLinkAdaptor(client_factory=client_factory)


@pytest.fixture()
def connected(adaptor, connection, clients):
    """An adaptor with a live connection; returns ``(adaptor, fake_client)``."""
    assert adaptor.set_connection(connection)
    return adaptor, clients[-1]


@pytest.fixture()
def selection():
    return HierarchySelection(project="Demo", test_plan="Release1")


@pytest.fixture()
def fixture_config(connection):
    return FixtureConfig(connection=connection, project="Demo", test_plan="Release1")
