"""Shared fixtures for attendance client tests."""

import pytest

from attendance_client.storage import TokenStore

from fakes import FakeBackend, FakeIdentityProvider


@pytest.fixture
def backend():
	return FakeBackend()


@pytest.fixture
def identity():
	return FakeIdentityProvider()


@pytest.fixture
def token_path(tmp_path):
	return tmp_path / "session.json"


@pytest.fixture
def store(token_path):
	return TokenStore(token_path)
