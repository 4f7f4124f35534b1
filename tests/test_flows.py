"""Auth, connect and signing dialogs"""
import asyncio
import json
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
import pytest_asyncio
import respx

from oneauth.models.auth import ThemeConfig
from oneauth.models.errors import ApiError
from oneauth.models.signing import SigningRequestOptions, SignMessageOptions, SignTypedDataOptions
from tests.utils.test_helpers import (
    EVIL_ORIGIN,
    MAIL_DIGEST,
    MAIL_DOMAIN,
    MAIL_MESSAGE,
    MAIL_TYPES,
    PASSKEY,
    PROVIDER_URL,
    SIGNATURE,
    FakeDriver,
    HostedUI,
    make_client,
)


@pytest_asyncio.fixture
async def blocking_client():
    client = make_client(FakeDriver(block_popups=True))
    async with client:
        yield client


# -----------------------------
# Auth / connect / authenticate
# -----------------------------
@pytest.mark.asyncio
async def test_auth_login(client, ui):
    task = asyncio.create_task(client.auth_with_modal(username="alice", theme=ThemeConfig(mode="dark")))
    surface = await ui.ready()
    await ui.result("PASSKEY_LOGIN_RESULT", data={"username": "alice", "user": {"id": "u1"}})
    result = await task

    assert result.success is True
    assert result.username == "alice"
    assert result.registered is False
    assert surface.query["mode"] == "iframe"
    assert surface.query["username"] == "alice"
    assert surface.query["clientId"] == "app-123"
    assert surface.query["theme"] == "dark"
    assert "oauth" not in surface.query
    assert surface.posted[0]["mode"] == "iframe"
    assert surface.close_calls == 1


@pytest.mark.asyncio
async def test_auth_register_and_oauth_disabled(client, ui):
    task = asyncio.create_task(client.auth_with_modal(oauth_enabled=False))
    surface = await ui.ready()
    await ui.result("PASSKEY_REGISTER_RESULT", data={"username": "bob"})
    result = await task

    assert result.registered is True
    assert surface.query["oauth"] == "0"


@pytest.mark.asyncio
async def test_auth_cancelled_before_ready(client, ui):
    task = asyncio.create_task(client.auth_with_modal())
    surface = await ui.surface()
    surface.emit("backdrop_click")
    result = await task

    assert result.success is False
    assert result.error.code == "USER_CANCELLED"
    assert result.error.message == "Authentication was cancelled"


@pytest.mark.asyncio
async def test_auth_retries_in_popup(client, ui):
    task = asyncio.create_task(client.auth_with_modal())
    modal = await ui.ready()
    await ui.send({
        "type": "PASSKEY_RETRY_POPUP",
        "data": {"url": f"{PROVIDER_URL}/dialog/auth?mode=iframe&clientId=app-123"},
    })
    popup = await ui.surface(1)
    await ui.result("PASSKEY_LOGIN_RESULT", data={"username": "alice"})
    result = await task

    assert modal.close_calls == 1
    assert popup.variant == "popup"
    assert popup.query["mode"] == "popup"
    assert popup.posted == []
    assert result.success is True
    assert popup.close_calls == 1


@pytest.mark.asyncio
async def test_popup_retry_ignores_foreign_url(client, ui):
    task = asyncio.create_task(client.auth_with_modal())
    await ui.ready()
    await ui.send({"type": "PASSKEY_RETRY_POPUP", "data": {"url": f"{EVIL_ORIGIN}/phish?mode=iframe"}})
    popup = await ui.surface(1)
    await ui.close()
    result = await task

    assert urlsplit(popup.url).netloc == "passkey.test"
    assert urlsplit(popup.url).path == "/dialog/auth"
    assert popup.query["mode"] == "popup"
    assert popup.query["clientId"] == "app-123"
    assert result.error.code == "USER_CANCELLED"


@pytest.mark.asyncio
async def test_popup_retry_blocked(blocking_client):
    ui = HostedUI(blocking_client.channel, blocking_client.driver)
    task = asyncio.create_task(blocking_client.connect_with_modal())
    await ui.ready()
    await ui.send({"type": "PASSKEY_RETRY_POPUP"})
    result = await task

    assert result.success is False
    assert result.action is None
    assert result.error.code == "POPUP_BLOCKED"
    assert len(blocking_client.driver.blocked) == 1


@pytest.mark.asyncio
async def test_auth_popup_retry_blocked(blocking_client):
    ui = HostedUI(blocking_client.channel, blocking_client.driver)
    task = asyncio.create_task(blocking_client.auth_with_modal())
    modal = await ui.ready()
    await ui.send({"type": "PASSKEY_RETRY_POPUP"})
    result = await task

    assert result.success is False
    assert result.error.code == "POPUP_BLOCKED"
    assert modal.close_calls == 1


@pytest.mark.asyncio
async def test_connect_results(client, ui):
    task = asyncio.create_task(client.connect_with_modal())
    await ui.ready()
    await ui.result("PASSKEY_CONNECT_RESULT", data={"username": "alice", "autoConnected": True})
    connected = await task

    task = asyncio.create_task(client.connect_with_modal())
    await ui.ready(1)
    await ui.result("PASSKEY_CONNECT_RESULT", success=False, data={"action": "switch"})
    switched = await task

    task = asyncio.create_task(client.connect_with_modal())
    await ui.ready(2)
    await ui.close()
    closed = await task

    assert connected.success is True
    assert connected.auto_connected is True
    assert switched.success is False
    assert switched.action == "switch"
    assert closed.action == "cancel"
    assert closed.error.message == "Connection was cancelled"


@pytest.mark.asyncio
async def test_authenticate_with_challenge(client, ui):
    task = asyncio.create_task(client.authenticate(challenge="login:42"))
    surface = await ui.ready()
    await ui.result("PASSKEY_AUTHENTICATE_RESULT", data={
        "username": "alice",
        "accountAddress": "0xabc",
        "signature": SIGNATURE,
        "signedHash": "0xhash",
    })
    result = await task

    assert surface.query["challenge"] == "login:42"
    assert surface.posted[0]["challenge"] == "login:42"
    assert result.account_address == "0xabc"
    assert result.signature.challenge_index == 23
    assert result.signed_hash == "0xhash"


# -----------------------------
# Modal signing
# -----------------------------
@pytest.mark.asyncio
async def test_sign_message(client, ui):
    task = asyncio.create_task(client.sign_message(SignMessageOptions(username="alice", message="hello world")))
    surface = await ui.ready()
    await ui.sign({"signature": SIGNATURE, "passkey": PASSKEY, "signedHash": "0xd9eb"})
    result = await task

    init = surface.posted[0]
    assert init["message"] == "hello world"
    assert init["challenge"] == "hello world"
    assert init["username"] == "alice"
    assert "description" not in init
    assert result.success is True
    assert result.signed_message == "hello world"
    assert result.passkey.credential_id == "cred-1"
    assert surface.close_calls == 1


@pytest.mark.asyncio
async def test_sign_message_closed(client, ui):
    task = asyncio.create_task(client.sign_message(SignMessageOptions(username="alice", message="hi")))
    await ui.ready()
    await ui.close()
    result = await task

    assert result.success is False
    assert result.error.code == "USER_REJECTED"
    assert result.error.message == "User closed the dialog"


@pytest.mark.asyncio
async def test_sign_typed_data_sends_digest_as_challenge(client, ui):
    options = SignTypedDataOptions(
        username="alice",
        domain=MAIL_DOMAIN,
        types=MAIL_TYPES,
        primary_type="Mail",
        message=MAIL_MESSAGE,
    )
    task = asyncio.create_task(client.sign_typed_data(options))
    surface = await ui.ready()
    await ui.sign()
    result = await task

    init = surface.posted[0]
    assert init["signingMode"] == "typedData"
    assert init["challenge"] == MAIL_DIGEST
    assert init["typedData"]["primaryType"] == "Mail"
    assert result.success is True
    assert result.signed_hash == MAIL_DIGEST


@pytest.mark.asyncio
async def test_signing_result_error_is_passed_through(client, ui):
    task = asyncio.create_task(client.sign_with_modal(SigningRequestOptions(challenge="0x1", username="alice")))
    await ui.ready()
    await ui.result("PASSKEY_SIGNING_RESULT", success=False, error={"code": "USER_REJECTED", "message": "nope"})
    result = await task

    assert result.error.code == "USER_REJECTED"
    assert result.error.message == "nope"


# -----------------------------
# Popup and redirect signing
# -----------------------------
@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_sign_with_popup(client, ui, respx_mock: respx.MockRouter):
    create = respx_mock.post("/api/sign/request").mock(
        return_value=httpx.Response(200, json={"requestId": "req-1"})
    )

    task = asyncio.create_task(client.sign_with_popup(SigningRequestOptions(challenge="0x1", username="alice")))
    popup = await ui.surface()
    await ui.result("PASSKEY_SIGNING_RESULT", data={"requestId": "req-other", "signature": SIGNATURE})
    await ui.result("PASSKEY_SIGNING_RESULT", data={"requestId": "req-1", "signature": SIGNATURE})
    result = await task

    assert urlsplit(popup.url).path == "/dialog/sign/req-1"
    assert popup.query["mode"] == "popup"
    assert result.success is True
    assert result.request_id == "req-1"
    assert json.loads(create.calls.last.request.content) == {
        "username": "alice",
        "challenge": "0x1",
        "mode": "popup",
        "clientId": "app-123",
    }


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_sign_with_popup_closed_and_blocked(client, blocking_client, ui, respx_mock: respx.MockRouter):
    respx_mock.post("/api/sign/request").mock(return_value=httpx.Response(200, json={"requestId": "req-2"}))
    options = SigningRequestOptions(challenge="0x1", username="alice")

    task = asyncio.create_task(client.sign_with_popup(options))
    popup = await ui.surface()
    popup.emit("close")
    closed = await task
    blocked = await blocking_client.sign_with_popup(options)

    assert closed.error.code == "USER_REJECTED"
    assert closed.error.message == "Popup was closed without completing"
    assert blocked.error.code == "POPUP_BLOCKED"


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_sign_with_popup_raises_when_request_fails(client, respx_mock: respx.MockRouter):
    respx_mock.post("/api/sign/request").mock(return_value=httpx.Response(401, json={"error": "bad client"}))

    with pytest.raises(ApiError, match="bad client"):
        await client.sign_with_popup(SigningRequestOptions(challenge="0x1", username="alice"))


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_sign_with_redirect(client, driver, respx_mock: respx.MockRouter):
    create = respx_mock.post("/api/sign/request").mock(
        return_value=httpx.Response(200, json={"requestId": "req-9"})
    )
    options = SigningRequestOptions(challenge="0x1", username="alice")

    with pytest.raises(ValueError, match="redirectUrl is required"):
        await client.sign_with_redirect(options)

    url = await client.sign_with_redirect(options, redirect_url="https://app.test/done")
    parts = urlsplit(url)
    query = parse_qs(parts.query)

    assert driver.navigated == [url]
    assert parts.path == "/dialog/sign/req-9"
    assert query["mode"] == ["redirect"]
    assert query["redirectUrl"] == ["https://app.test/done"]
    body = json.loads(create.calls.last.request.content)
    assert body["mode"] == "redirect"
    assert body["redirectUrl"] == "https://app.test/done"


@pytest.mark.asyncio
async def test_redirect_callback_without_fetch(client):
    errored = await client.handle_redirect_callback(
        "https://app.test/done?request_id=r1&error=USER_REJECTED&error_message=Denied"
    )
    missing = await client.handle_redirect_callback("https://app.test/done?status=completed")
    pending = await client.handle_redirect_callback("https://app.test/done?request_id=r1&status=pending")

    assert errored.error.code == "USER_REJECTED"
    assert errored.error.message == "Denied"
    assert errored.request_id == "r1"
    assert missing.error.code == "INVALID_REQUEST"
    assert pending.error.message == "Unexpected status: pending"


@pytest.mark.asyncio
@pytest.mark.respx(base_url=PROVIDER_URL)
async def test_redirect_callback_fetches_result(client, respx_mock: respx.MockRouter):
    respx_mock.get("/api/sign/request/r1").mock(
        return_value=httpx.Response(200, json={"id": "r1", "status": "COMPLETED", "signature": SIGNATURE})
    )
    respx_mock.get("/api/sign/request/r2").mock(
        return_value=httpx.Response(200, json={"id": "r2", "status": "REJECTED"})
    )
    respx_mock.get("/api/sign/request/r3").mock(return_value=httpx.Response(500))

    completed = await client.handle_redirect_callback("https://app.test/done?request_id=r1&status=completed")
    rejected = await client.handle_redirect_callback("https://app.test/done?request_id=r2&status=completed")
    failed = await client.handle_redirect_callback("https://app.test/done?request_id=r3&status=completed")

    assert completed.success is True
    assert completed.signature.r == SIGNATURE["r"]
    assert rejected.error.message == "Request status: REJECTED"
    assert failed.error.code == "NETWORK_ERROR"
    assert failed.error.message == "Failed to fetch signing result"
