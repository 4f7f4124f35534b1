"""Intent status polling"""
import httpx
import pytest
import pytest_asyncio
import respx

from oneauth.core.http import ApiClient
from oneauth.models.errors import ApiError, NetworkError
from oneauth.models.intents import CloseOn
from oneauth.services.polling import StatusPoller
from tests.utils.test_helpers import PROVIDER_URL

STATUS_PATH = "/api/intent/status/int-1"


@pytest_asyncio.fixture
async def api():
    client = ApiClient(PROVIDER_URL, client_id="app-123")
    yield client
    await client.aclose()


@pytest.fixture
def poller(api):
    return StatusPoller(api, interval=0, max_attempts=5, hash_timeout=0.05, hash_interval=0)


def status(value, tx_hash=None):
    body = {"status": value}
    if tx_hash:
        body["transactionHash"] = tx_hash
    return httpx.Response(200, json=body)


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_poll_reports_changes_and_survives_errors(poller, respx_mock: respx.MockRouter):
    route = respx_mock.get(STATUS_PATH).mock(side_effect=[
        httpx.Response(500),
        httpx.ConnectError("offline"),
        status("PENDING"),
        status("CLAIMED"),
        status("PRECONFIRMED", "0xabc"),
    ])
    changes = []

    latest = await poller.poll_until_settled("int-1", CloseOn.PRECONFIRMED, on_change=lambda s, h: changes.append((s, h)))

    assert latest.status == "PRECONFIRMED"
    assert changes == [("claimed", None), ("preconfirmed", "0xabc")]
    assert route.call_count == 5
    assert route.calls.last.request.headers["x-client-id"] == "app-123"


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_poll_stops_on_failure_or_attempt_bound(poller, respx_mock: respx.MockRouter):
    failed = respx_mock.get("/api/intent/status/int-f").mock(side_effect=[status("PENDING"), status("FAILED")])
    stuck = respx_mock.get("/api/intent/status/int-s").mock(return_value=status("PENDING"))

    assert (await poller.poll_until_settled("int-f", CloseOn.COMPLETED)).status == "FAILED"
    assert (await poller.poll_until_settled("int-s", CloseOn.COMPLETED)).status == "PENDING"
    assert failed.call_count == 2
    assert stuck.call_count == 5


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_poll_without_any_response(poller, respx_mock: respx.MockRouter):
    respx_mock.get(STATUS_PATH).mock(return_value=httpx.Response(503))
    assert await poller.poll_until_settled("int-1", CloseOn.COMPLETED) is None


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_wait_for_hash(poller, respx_mock: respx.MockRouter):
    respx_mock.get("/api/intent/status/int-h").mock(side_effect=[status("PRECONFIRMED"), status("COMPLETED", "0xh")])
    respx_mock.get("/api/intent/status/int-x").mock(return_value=status("EXPIRED"))
    respx_mock.get("/api/intent/status/int-p").mock(return_value=status("PENDING"))

    assert await poller.wait_for_hash("int-h") == "0xh"
    assert await poller.wait_for_hash("int-x") is None
    assert await poller.wait_for_hash("int-p", timeout=0.01) is None


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_api_client_errors(api, respx_mock: respx.MockRouter):
    respx_mock.get("/api/a").mock(return_value=httpx.Response(404, json={"message": "missing thing"}))
    respx_mock.get("/api/b").mock(return_value=httpx.Response(500, text="<html>"))
    respx_mock.get("/api/c").mock(side_effect=httpx.ConnectTimeout("slow"))
    respx_mock.get("/api/d").mock(return_value=httpx.Response(200, text="not json"))

    with pytest.raises(ApiError) as missing:
        await api.get("/api/a")
    with pytest.raises(ApiError, match="fallback"):
        await api.get("/api/b", default_error="fallback")
    with pytest.raises(NetworkError):
        await api.get("/api/c")
    with pytest.raises(NetworkError, match="Invalid JSON"):
        await api.get("/api/d")

    assert missing.value.status_code == 404
    assert missing.value.message == "missing thing"


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_fetch_status_escapes_intent_id(poller, respx_mock: respx.MockRouter):
    route = respx_mock.get(path__startswith="/api/intent/status/").mock(return_value=status("PENDING"))

    await poller.fetch_status("int 1/2")

    assert route.calls.last.request.url.raw_path == b"/api/intent/status/int%201%2F2"
