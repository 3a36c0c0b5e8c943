"""Shared fixtures for wpconverge tests."""

from __future__ import annotations

import pytest
import respx

import wpconverge
from wpconverge.schema import Attribute, ResourceKind


BASE_URL = "http://test-api.wpengine.local"

USER = ResourceKind(
    name="user",
    id_attribute="user_id",
    attributes=(
        Attribute("user_id", computed=True),
        Attribute("first_name", required=True, mutable=True),
        Attribute("last_name", required=True, mutable=True),
        Attribute("email", required=True, mutable=True),
    ),
    collection_path="/users",
    item_path="/users/{id}",
)


@pytest.fixture()
def mock_api():
    """Activate a respx mock router scoped to the test API base URL."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture()
def client():
    """Create a client pointed at the test base URL."""
    c = wpconverge.ApiClient(api_token="wpe_test_token", base_url=BASE_URL)
    yield c
    c.close()


@pytest.fixture()
def reconciler(client):
    return wpconverge.Reconciler(client)


@pytest.fixture()
def user_kind():
    """A minimal user kind with only mutable required attributes."""
    return USER
