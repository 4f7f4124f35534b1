"""Stored user persistence"""
import json

from oneauth.core.storage import JsonFileStore, MemoryStore, StoredUser, UserStore
from tests.utils.test_helpers import ALICE_ADDRESS


def test_user_store_round_trip_and_clear():
    store = UserStore(MemoryStore())
    assert store.get() is None

    store.set(StoredUser(username="alice", address=ALICE_ADDRESS))
    assert store.get() == StoredUser(username="alice", address=ALICE_ADDRESS)

    store.clear()
    assert store.get() is None


def test_incomplete_or_corrupt_records_are_absent():
    backing = MemoryStore({
        "partial": json.dumps({"username": "alice"}),
        "empty": json.dumps({"username": "", "address": ALICE_ADDRESS}),
        "garbage": "{not json",
    })

    assert UserStore(backing, "partial").get() is None
    assert UserStore(backing, "empty").get() is None
    assert UserStore(backing, "garbage").get() is None


def test_json_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "state" / "oneauth.json"
    UserStore(JsonFileStore(path)).set(StoredUser(username="alice", address=ALICE_ADDRESS))

    reopened = UserStore(JsonFileStore(path))
    assert reopened.get().address == ALICE_ADDRESS

    reopened.clear()
    assert json.loads(path.read_text()) == {}


def test_json_file_store_ignores_unreadable_files(tmp_path):
    path = tmp_path / "oneauth.json"
    path.write_text("[1, 2")
    store = JsonFileStore(path)
    assert store.get_item("1auth-user") is None

    path.write_text(json.dumps({"a": "1", "b": 2}))
    assert store.get_item("a") == "1"
    assert store.get_item("b") is None
