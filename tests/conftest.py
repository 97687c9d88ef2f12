"""Shared fixtures."""

import pytest

from podverify.app import AppContext
from podverify.keys import KeyPair
from podverify.registry import Customer, OwnershipRegistry, Podcast


@pytest.fixture(scope="session")
def keys():
    """One keypair for the whole run; generation is slow."""
    return KeyPair.generate()


@pytest.fixture
def alice():
    return Customer(email="alice@example.com", credential="password123")


@pytest.fixture
def bob():
    return Customer(email="bob@example.com", credential="password456")


@pytest.fixture
def registry(alice, bob):
    """Three podcasts, two owned by alice."""
    return OwnershipRegistry([
        Podcast(title="Morning Show", slug="morning-show", owner=alice),
        Podcast(title="Evening Show", slug="evening-show", owner=bob),
        Podcast(title="Night Show", slug="night-show", owner=alice),
    ])


@pytest.fixture
def ctx(registry, keys):
    return AppContext(registry=registry, keys=keys)
