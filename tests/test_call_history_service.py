# tests/test_call_history_service.py
import json
import threading
import time
from datetime import datetime, timezone

import pytest

from callpilot.errors import CallValidationError, InvalidTransitionError, StorageError
from callpilot.schemas.call import CallDraft, CallRequestIn, ProviderCallResult
from callpilot.services.call_history_service import (
    CallHistoryManager,
    normalize_provider_status,
)
from callpilot.services.storage import InMemoryKeyValueStore

KEY = "callpilot-history"


def _draft(**overrides) -> CallRequestIn:
    data = dict(
        client_name="Jordan",
        business_name="Summit Dental",
        phone_number="+15551231234",
        preferred_date="2024-12-01",
        appointment_goal="Schedule a follow-up cleaning for Maria Lopez",
        script="Hi, this is Jordan from Summit Dental.",
    )
    data.update(overrides)
    return CallRequestIn(**data)


def _manager(initial=None) -> CallHistoryManager:
    return CallHistoryManager(InMemoryKeyValueStore(initial), storage_key=KEY)


class BrokenStore:
    def get(self, key):
        raise StorageError("disk on fire")

    def set(self, key, value):
        raise StorageError("disk on fire")


def test_create_stamps_id_created_at_and_status():
    manager = _manager()
    call = manager.create_from_validated_draft(
        _draft(),
        ProviderCallResult(status="queued", sid="CA123", message="Call queued successfully"),
    )

    assert call.id
    assert call.created_at.tzinfo is not None
    assert call.status == "queued"
    assert call.result_message == "Call queued successfully"
    assert call.provider_call_id == "CA123"
    assert call.client_name == "Jordan"


def test_create_defaults_to_queued_and_maps_provider_status():
    manager = _manager()
    assert manager.create_from_validated_draft(_draft(), ProviderCallResult()).status == "queued"
    assert manager.create_from_validated_draft(
        _draft(), ProviderCallResult(status="initiated")
    ).status == "queued"
    assert manager.create_from_validated_draft(
        _draft(), ProviderCallResult(status="busy")
    ).status == "failed"


def test_create_rejects_unvalidated_draft():
    manager = _manager()
    with pytest.raises(CallValidationError):
        manager.create_from_validated_draft(CallDraft(client_name="Jordan"), ProviderCallResult())


def test_ids_are_unique():
    manager = _manager()
    ids = {manager.create_from_validated_draft(_draft(), ProviderCallResult()).id for _ in range(50)}
    assert len(ids) == 50


def test_append_keeps_newest_first_without_touching_old_entries():
    manager = _manager()
    first = manager.create_from_validated_draft(_draft(client_name="First"), ProviderCallResult())
    second = manager.create_from_validated_draft(_draft(client_name="Second"), ProviderCallResult())

    before = manager.append_to_history(first)
    after = manager.append_to_history(second)

    assert [c.client_name for c in after] == ["Second", "First"]
    assert before == [first]
    assert after[1] is first


def test_append_rejects_duplicate_id():
    manager = _manager()
    call = manager.create_from_validated_draft(_draft(), ProviderCallResult())
    manager.append_to_history(call)

    with pytest.raises(ValueError):
        manager.append_to_history(call)


def test_persist_and_restore_round_trip():
    manager = _manager()
    for name in ("A", "B", "C"):
        manager.append_to_history(
            manager.create_from_validated_draft(
                _draft(client_name=name), ProviderCallResult(sid=f"CA_{name}")
            )
        )
    history = manager.history

    assert manager.persist() is True
    assert manager.restore() == history


def test_round_trip_of_empty_history():
    manager = _manager()
    assert manager.persist([]) is True
    assert manager.restore() == []


def test_stored_history_uses_camel_case_keys():
    store = InMemoryKeyValueStore()
    manager = CallHistoryManager(store, storage_key=KEY)
    manager.append_to_history(manager.create_from_validated_draft(_draft(), ProviderCallResult()))
    manager.persist()

    stored = json.loads(store.get(KEY))
    assert stored[0]["clientName"] == "Jordan"
    assert "createdAt" in stored[0]


def test_restore_backfills_missing_created_at():
    legacy = [
        {
            "id": "legacy-1",
            "clientName": "Jordan",
            "businessName": "Summit Dental",
            "phoneNumber": "+15551231234",
            "contactEmail": "",
            "preferredDate": "2024-12-01",
            "preferredTimeWindow": "",
            "appointmentGoal": "Cleaning",
            "notes": "",
            "script": "Hi",
            "status": "completed",
        }
    ]
    manager = _manager({KEY: json.dumps(legacy)})
    before = datetime.now(timezone.utc)

    restored = manager.restore()

    assert len(restored) == 1
    assert restored[0].id == "legacy-1"
    assert restored[0].status == "completed"
    assert restored[0].created_at >= before
    assert manager.history == restored


@pytest.mark.parametrize("raw", ["{not json", json.dumps({"id": "x"}), json.dumps([{"status": "queued"}])])
def test_restore_treats_corrupt_storage_as_empty(raw):
    manager = _manager({KEY: raw})
    assert manager.restore() == []


def test_storage_failures_never_raise():
    manager = CallHistoryManager(BrokenStore(), storage_key=KEY)
    call = manager.create_from_validated_draft(_draft(), ProviderCallResult())
    manager.append_to_history(call)

    assert manager.restore() == []
    assert manager.persist([call]) is False


def test_select_for_editing_drops_lifecycle_fields():
    manager = _manager()
    call = manager.create_from_validated_draft(_draft(notes="Bring X-rays"), ProviderCallResult(sid="CA1"))

    draft = manager.select_for_editing(call)

    assert isinstance(draft, CallDraft)
    assert draft.notes == "Bring X-rays"
    assert draft.script == call.script
    assert not hasattr(draft, "id")
    assert not hasattr(draft, "status")


def test_transition_replaces_entry_and_persists():
    store = InMemoryKeyValueStore()
    manager = CallHistoryManager(store, storage_key=KEY)
    call = manager.create_from_validated_draft(_draft(), ProviderCallResult(sid="CA1"))
    manager.append_to_history(call)

    updated = manager.transition(call.id, "completed", "Call finished")

    assert updated.status == "completed"
    assert updated.result_message == "Call finished"
    assert call.status == "queued"
    assert manager.get(call.id) == updated
    assert json.loads(store.get(KEY))[0]["status"] == "completed"


def test_terminal_states_reject_transitions():
    manager = _manager()
    call = manager.create_from_validated_draft(_draft(), ProviderCallResult(status="failed"))
    manager.append_to_history(call)

    with pytest.raises(InvalidTransitionError):
        manager.transition(call.id, "queued")


def test_apply_provider_status():
    manager = _manager()
    call = manager.create_from_validated_draft(_draft(), ProviderCallResult(sid="CA_STATUS"))
    manager.append_to_history(call)

    assert manager.apply_provider_status("CA_UNKNOWN", "completed") is None

    ringing = manager.apply_provider_status("CA_STATUS", "ringing")
    assert ringing.status == "queued"

    done = manager.apply_provider_status("CA_STATUS", "no-answer", "No answer")
    assert done.status == "failed"
    assert done.result_message == "No answer"

    # late callbacks don't reopen a finished call
    late = manager.apply_provider_status("CA_STATUS", "completed")
    assert late.status == "failed"


def test_normalize_provider_status():
    assert normalize_provider_status(None) == "queued"
    assert normalize_provider_status("in-progress") == "queued"
    assert normalize_provider_status("COMPLETED") == "completed"
    assert normalize_provider_status("canceled") == "failed"
    assert normalize_provider_status("something-new") == "queued"


def test_restore_skips_only_unreadable_records():
    good = {
        "id": "keep-me",
        "clientName": "Jordan",
        "createdAt": "2024-11-30T09:00:00+00:00",
        "status": "queued",
    }
    legacy_status = dict(good, id="legacy", status="initiated")
    manager = _manager({KEY: json.dumps([legacy_status, good, "garbage"])})

    restored = manager.restore()

    assert [c.id for c in restored] == ["keep-me"]


class SlowFirstWriteStore(InMemoryKeyValueStore):
    """The first write stalls, giving another thread time to mutate."""

    def __init__(self):
        super().__init__()
        self._first = True
        self.first_write_started = threading.Event()

    def set(self, key, value):
        if self._first:
            self._first = False
            self.first_write_started.set()
            time.sleep(0.3)
        super().set(key, value)


def test_concurrent_transitions_store_the_latest_history():
    store = SlowFirstWriteStore()
    manager = CallHistoryManager(store, storage_key=KEY)
    call_a = manager.create_from_validated_draft(_draft(client_name="A"), ProviderCallResult())
    call_b = manager.create_from_validated_draft(_draft(client_name="B"), ProviderCallResult())
    manager.append_to_history(call_a)
    manager.append_to_history(call_b)

    slow = threading.Thread(target=manager.transition, args=(call_a.id, "completed"))
    slow.start()
    assert store.first_write_started.wait(timeout=5)

    fast = threading.Thread(target=manager.transition, args=(call_b.id, "failed"))
    fast.start()
    slow.join(timeout=5)
    fast.join(timeout=5)

    in_memory = {c.client_name: c.status for c in manager.history}
    stored = {c["clientName"]: c["status"] for c in json.loads(store.get(KEY))}

    assert in_memory == {"A": "completed", "B": "failed"}
    assert stored == in_memory
    assert manager.restore() == [manager.get(call_b.id), manager.get(call_a.id)]
