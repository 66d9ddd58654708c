"""Integration test fixtures: TestClients over create_app() in memory mode."""

import pytest
from fastapi.testclient import TestClient

from app import create_app
from otp_support import build_settings


@pytest.fixture
def client():
    with TestClient(create_app(build_settings())) as c:
        yield c


@pytest.fixture
def prod_client():
    with TestClient(create_app(build_settings("production"))) as c:
        yield c
