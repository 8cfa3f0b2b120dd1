import pytest
import responses

from coda_mcp import server
from coda_mcp.client import CodaClient
from coda_mcp.config import Config, ExportSettings
from coda_mcp.export import PageExporter

BASE_URL = "https://coda.test/apis/v1"
TOKEN = "test_token_0123456789"


@pytest.fixture
def config():
    return Config(api_token=TOKEN, base_url=BASE_URL, export=ExportSettings(3, 0))


@pytest.fixture
def client(config):
    return CodaClient(config)


@pytest.fixture
def exporter(client, config):
    return PageExporter(client, config.export)


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def configured_server(monkeypatch, client, exporter):
    monkeypatch.setattr(server, "coda", client)
    monkeypatch.setattr(server, "exporter", exporter)
    return server
