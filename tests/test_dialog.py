"""Dialog host: opening surfaces and idempotent cleanup"""
from oneauth.core.channel import MessageChannel
from oneauth.core.dialog import DialogHost, DialogVariant, set_query_params
from oneauth.core.storage import MemoryStore, StoredUser, UserStore
from tests.utils.test_helpers import ALICE_ADDRESS, DIALOG_ORIGIN, EVIL_ORIGIN, FakeDriver


def make_host(driver=None):
    channel = MessageChannel()
    store = UserStore(MemoryStore())
    store.set(StoredUser(username="alice", address=ALICE_ADDRESS))
    return DialogHost(driver or FakeDriver(), channel, DIALOG_ORIGIN, user_store=store), channel, store


def test_cleanup_is_idempotent_across_triggers():
    host, channel, _ = make_host()
    handle = host.open("https://passkey.test/dialog/auth")
    closed = []
    handle.on_close(lambda: closed.append(True))
    baseline = channel.listener_count

    handle.surface.emit("keydown", "Escape")
    handle.surface.emit("close")
    handle.surface.emit("backdrop_click")
    handle.cleanup()

    assert handle.closed
    assert handle.surface.close_calls == 1
    assert closed == [True]
    assert channel.listener_count == baseline - 1


def test_other_keys_do_not_close():
    host, _, _ = make_host()
    handle = host.open("https://passkey.test/dialog/auth")
    handle.surface.emit("keydown", "Enter")
    assert not handle.closed


def test_blocked_popup_returns_none():
    host, _, _ = make_host(FakeDriver(block_popups=True))
    assert host.open("https://passkey.test/dialog/auth", DialogVariant.POPUP) is None


def test_resize_and_disconnect_are_origin_guarded():
    host, channel, store = make_host()
    handle = host.open("https://passkey.test/dialog/auth")

    channel.post(EVIL_ORIGIN, {"type": "PASSKEY_RESIZE", "height": 999})
    channel.post(EVIL_ORIGIN, {"type": "PASSKEY_DISCONNECT"})
    assert handle.surface.sizes == []
    assert store.get() is not None

    channel.post(DIALOG_ORIGIN, {"type": "PASSKEY_RESIZE", "height": 520, "width": 380})
    channel.post(DIALOG_ORIGIN, {"type": "PASSKEY_DISCONNECT"})
    assert handle.surface.sizes == [(380, 520)]
    assert store.get() is None


def test_post_after_cleanup_is_dropped():
    host, _, _ = make_host()
    handle = host.open("https://passkey.test/dialog/auth")
    handle.post({"type": "PASSKEY_INIT"})
    handle.cleanup()
    handle.post({"type": "TRANSACTION_STATUS", "status": "pending"})
    assert handle.surface.posted == [{"type": "PASSKEY_INIT"}]
    assert handle.surface.target_origins == [DIALOG_ORIGIN]


def test_set_query_params():
    url = set_query_params("https://x.test/a?mode=iframe&theme=dark", mode="popup", theme=None, sessionId="s1")
    assert url == "https://x.test/a?mode=popup&sessionId=s1"
