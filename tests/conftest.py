"""Shared fixtures: Flask app on a temporary SQLite file with mocked external clients."""

from __future__ import annotations

import os
import sys
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from subdomain_manager.api.responses import EXTENSION_KEY
from subdomain_manager.app import create_app
from subdomain_manager.backends import DNSBackend
from subdomain_manager.config import AppConfig
from subdomain_manager.database import db
from subdomain_manager.models import Domain
from subdomain_manager.proxy_manager import ProxyManagerClient
from subdomain_manager.result import Ok

TARGET_HOST = "10.0.0.5"


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        cloudflare_api_token="cf-test-token",
        cloudflare_zone_id="zone-default",
        npm_api_url="http://npm.test/api",
        npm_email="admin@example.com",
        npm_password="changeme",
        target_host=TARGET_HOST,
        database_path=str(tmp_path / "test.db"),
        ratelimit_enabled=False,
    )


@pytest.fixture
def dns_backend():
    backend = MagicMock(spec=DNSBackend)
    backend.create_record.return_value = Ok("dns-rec-1")
    backend.delete_record.return_value = Ok()
    return backend


@pytest.fixture
def proxy_client():
    client = MagicMock(spec=ProxyManagerClient)
    client.create_proxy_host.return_value = Ok(42)
    client.update_proxy_host.return_value = Ok()
    client.delete_proxy_host.return_value = Ok()
    return client


@pytest.fixture
def app(config, dns_backend, proxy_client):
    app = create_app(config, dns_backend=dns_backend, proxy_client=proxy_client)
    app.config["TESTING"] = True

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def provisioner(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def domain(app):
    domain = Domain(domain_name="example.com", zone_id="zone-example")
    db.session.add(domain)
    db.session.commit()
    return domain
