"""Wallet connector wrapping the provider"""
import asyncio

import httpx
import pytest
import respx

from oneauth.adapters.connector import OneAuthConnector
from oneauth.models.errors import ProviderError
from tests.utils.test_helpers import ALICE_ADDRESS, PROVIDER_URL, stored_alice


class RecordingEmitter:
    def __init__(self):
        self.events = []

    def emit(self, event, data=None):
        self.events.append((event, data))


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def connector(client, emitter):
    return OneAuthConnector(client, emitter, chains=[8453, 10])


def test_connector_identity(connector):
    assert connector.id == "1auth"
    assert connector.name == "1auth Passkey"
    assert connector.type == "wallet"


@pytest.mark.asyncio
async def test_connect_with_stored_user(client, connector):
    stored_alice(client)

    assert await connector.connect() == {"accounts": [ALICE_ADDRESS], "chainId": 8453}
    assert await connector.is_authorized() is True
    assert await connector.connect(with_capabilities=True) == {
        "accounts": [{"address": ALICE_ADDRESS, "capabilities": {}}],
        "chainId": 8453,
    }


@pytest.mark.asyncio
async def test_connect_to_requested_chain(client, connector, emitter):
    stored_alice(client)

    result = await connector.connect(chain_id=10, is_reconnecting=True)

    assert result == {"accounts": [ALICE_ADDRESS], "chainId": 10}
    assert await connector.get_chain_id() == 10


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_setup_forwards_first_connect(client, ui, connector, emitter, respx_mock: respx.MockRouter):
    respx_mock.get("/api/users/alice/account").mock(return_value=httpx.Response(200, json={"address": ALICE_ADDRESS}))
    await connector.setup()

    task = asyncio.create_task(connector.connect())
    await ui.ready()
    await ui.result("PASSKEY_CONNECT_RESULT", data={"username": "alice"})
    result = await task

    assert result["accounts"] == [ALICE_ADDRESS]
    assert emitter.events == [("connect", {"accounts": [ALICE_ADDRESS], "chainId": 8453})]


@pytest.mark.asyncio
async def test_switch_chain_and_disconnect_emit_changes(client, connector, emitter):
    stored_alice(client)
    await connector.connect()

    assert await connector.switch_chain(10) == 10
    with pytest.raises(ProviderError, match="Chain not configured"):
        await connector.switch_chain(137)
    await connector.disconnect()

    assert emitter.events == [
        ("change", {"chainId": 10}),
        ("change", {"accounts": []}),
        ("disconnect", None),
    ]
    assert await connector.is_authorized() is False


@pytest.mark.asyncio
async def test_connector_without_chains(client, emitter):
    connector = OneAuthConnector(client, emitter, chains=[])

    with pytest.raises(ProviderError, match="No chain configured"):
        await connector.connect()
    with pytest.raises(ProviderError, match="No chain configured"):
        await connector.get_provider()
