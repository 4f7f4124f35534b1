"""Status mapping and wire serialization"""
import pytest

from oneauth.models.intents import (
    BatchIntentItemResult,
    BatchResultItem,
    CloseOn,
    IntentCall,
    IntentStatus,
    OrchestratorStatus,
    meets_close_on,
    to_local_status,
)
from oneauth.models.messages import init_message, transaction_status_message


@pytest.mark.parametrize(
    "status,close_on,expected",
    [
        (OrchestratorStatus.CLAIMED, CloseOn.CLAIMED, True),
        (OrchestratorStatus.PRECONFIRMED, CloseOn.CLAIMED, True),
        (OrchestratorStatus.FILLED, CloseOn.CLAIMED, True),
        (OrchestratorStatus.COMPLETED, CloseOn.CLAIMED, True),
        (OrchestratorStatus.PENDING, CloseOn.CLAIMED, False),
        (OrchestratorStatus.CLAIMED, CloseOn.PRECONFIRMED, False),
        (OrchestratorStatus.FILLED, CloseOn.COMPLETED, False),
        (OrchestratorStatus.COMPLETED, CloseOn.COMPLETED, True),
        (OrchestratorStatus.FAILED, CloseOn.CLAIMED, False),
        (None, CloseOn.CLAIMED, False),
    ],
)
def test_meets_close_on(status, close_on, expected):
    assert meets_close_on(status, close_on) is expected


def test_status_parsing_and_local_mapping():
    assert OrchestratorStatus.parse("preconfirmed") is OrchestratorStatus.PRECONFIRMED
    assert OrchestratorStatus.parse("bogus") is None
    assert to_local_status(OrchestratorStatus.FILLED) is IntentStatus.COMPLETED
    assert to_local_status(OrchestratorStatus.CLAIMED) is IntentStatus.SUBMITTED
    assert to_local_status(OrchestratorStatus.EXPIRED) is IntentStatus.EXPIRED
    assert to_local_status(None) is IntentStatus.UNKNOWN


def test_batch_item_from_raw():
    failed = BatchIntentItemResult.from_raw(BatchResultItem.model_validate(
        {"index": 1, "operationId": "op-1", "status": "failed", "error": "no route"}
    ))
    pending = BatchIntentItemResult.from_raw(BatchResultItem.model_validate({"index": 0, "intentId": "int-0"}))

    assert failed.success is False
    assert failed.intent_id == "op-1"
    assert failed.error.code == "EXECUTE_FAILED"
    assert pending.success is True
    assert pending.status is IntentStatus.PENDING


def test_wire_serialization_drops_none():
    assert IntentCall(to="0x1", label="Pay").to_wire() == {"to": "0x1", "label": "Pay"}
    assert transaction_status_message("pending") == {"type": "TRANSACTION_STATUS", "status": "pending"}
    assert init_message({"a": 1, "b": None}, "s1") == {"type": "PASSKEY_INIT", "a": 1, "sessionId": "s1"}
