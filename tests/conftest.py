import ssl

import httpx
import pytest
import pytest_asyncio

from unifi_access.config import TLSConfig
from unifi_access.platform.client import UnifiAccessClient
from tests.helpers import FakeController

ENV_VARS = (
    "UNIFI_ACCESS_CONFIG",
    "UNIFI_ACCESS_HOST",
    "UNIFI_ACCESS_TOKEN",
    "UNIFI_ACCESS_PORT",
    "UNIFI_ACCESS_TIMEOUT",
    "UNIFI_ACCESS_POLL_INTERVAL",
    "UNIFI_ACCESS_TLS_MODE",
    "UNIFI_ACCESS_CA_BUNDLE",
    "UNIFI_ACCESS_DEVICE_CERT",
)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network access")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def missing_config(tmp_path):
    return tmp_path / "missing.ini"


@pytest.fixture
def insecure_tls_config() -> TLSConfig:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return TLSConfig(mode="insecure", cert_path=None, verify_context=context)


@pytest.fixture
def controller() -> FakeController:
    return FakeController()


@pytest_asyncio.fixture
async def client(controller, insecure_tls_config, missing_config):
    api = UnifiAccessClient(
        "192.168.1.1",
        "test-token",
        tls_config=insecure_tls_config,
        poll_interval=0.001,
        config_path=missing_config,
        transport=httpx.MockTransport(controller.handler),
    )
    yield api
    await api.aclose()
