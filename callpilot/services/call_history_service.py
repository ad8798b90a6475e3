# callpilot/services/call_history_service.py
import json
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Request
from pydantic import BaseModel

from callpilot.errors import InvalidTransitionError, StorageError
from callpilot.logging_config import get_logger
from callpilot.schemas.call import (
    CallDraft,
    CallRequest,
    CallRequestIn,
    CallStatus,
    ProviderCallResult,
)
from callpilot.services.storage import KeyValueStore
from callpilot.services.validation_service import validate_call_request

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "callpilot-history"

# completed / failed are terminal
ALLOWED_TRANSITIONS: Dict[str, frozenset] = {
    "draft": frozenset({"queued", "failed"}),
    "queued": frozenset({"completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}

# Twilio CallStatus values -> our four states
_PROVIDER_STATUS_MAP: Dict[str, CallStatus] = {
    "draft": "draft",
    "queued": "queued",
    "initiated": "queued",
    "ringing": "queued",
    "in-progress": "queued",
    "completed": "completed",
    "busy": "failed",
    "failed": "failed",
    "no-answer": "failed",
    "canceled": "failed",
}

_DRAFT_FIELDS = set(CallDraft.model_fields)


def normalize_provider_status(raw: Optional[str]) -> CallStatus:
    """Map a provider status onto draft/queued/completed/failed."""
    if not raw:
        return "queued"
    status = _PROVIDER_STATUS_MAP.get(raw.strip().lower())
    if status is None:
        logger.warning("Unknown provider status, treating as queued", extra={"provider_status": raw})
        return "queued"
    return status


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _backfill_created_at(record: Any) -> Any:
    """Older stored records may predate createdAt; stamp them with now."""
    if isinstance(record, dict) and not (record.get("createdAt") or record.get("created_at")):
        return {**record, "createdAt": _utcnow().isoformat()}
    return record


class CallHistoryManager:
    """
    Owns the call history: creates CallRequests, keeps them newest-first,
    applies status changes and writes the whole list to a KeyValueStore.

    The manager is the only writer. FastAPI runs sync endpoints on a thread
    pool, so mutations are serialized with a lock. It does not deduplicate
    rapid double submissions; the caller has to prevent those.
    """

    def __init__(self, store: KeyValueStore, storage_key: str = DEFAULT_STORAGE_KEY):
        self._store = store
        self._storage_key = storage_key
        self._lock = threading.RLock()
        self._history: List[CallRequest] = []

    @property
    def history(self) -> List[CallRequest]:
        with self._lock:
            return list(self._history)

    def get(self, request_id: str) -> Optional[CallRequest]:
        with self._lock:
            return next((c for c in self._history if c.id == request_id), None)

    def find_by_provider_call_id(self, provider_call_id: str) -> Optional[CallRequest]:
        with self._lock:
            return next(
                (c for c in self._history if c.provider_call_id == provider_call_id),
                None,
            )

    # ---------- creation ----------

    def create_from_validated_draft(
        self,
        draft: CallRequestIn,
        provider_result: ProviderCallResult,
    ) -> CallRequest:
        """
        Stamp a new id + createdAt on a validated draft.

        Anything other than a CallRequestIn is validated again, so an
        unvalidated draft raises CallValidationError here instead of being
        stored.
        """
        if not isinstance(draft, CallRequestIn):
            payload = draft.model_dump(by_alias=True) if isinstance(draft, BaseModel) else draft
            draft = validate_call_request(payload)

        return CallRequest(
            id=str(uuid.uuid4()),
            **draft.model_dump(),
            created_at=_utcnow(),
            status=normalize_provider_status(provider_result.status),
            result_message=provider_result.message,
            provider_call_id=provider_result.sid,
        )

    def append_to_history(self, request: CallRequest) -> List[CallRequest]:
        """Prepend `request` and return a snapshot of the new history."""
        with self._lock:
            if any(c.id == request.id for c in self._history):
                raise ValueError(f"Call {request.id} is already in history")
            self._history = [request, *self._history]
            return list(self._history)

    # ---------- status ----------

    def transition(
        self,
        request_id: str,
        target: CallStatus,
        result_message: Optional[str] = None,
    ) -> CallRequest:
        """
        Move one call to `target`, replacing the stored entry with an updated
        copy. Same-state updates only refresh the message.
        """
        with self._lock:
            index = next(
                (i for i, c in enumerate(self._history) if c.id == request_id),
                None,
            )
            if index is None:
                raise KeyError(request_id)

            current = self._history[index]
            if current.status != target and not can_transition(current.status, target):
                raise InvalidTransitionError(current.status, target)

            update: Dict[str, Any] = {"status": target}
            if result_message is not None:
                update["result_message"] = result_message
            updated = current.model_copy(update=update)

            self._history = [*self._history[:index], updated, *self._history[index + 1:]]
            # written before releasing the lock so a slower, older write
            # can never land after this one
            self.persist()

        logger.info(
            "Call status updated",
            extra={"call_id": request_id, "from_status": current.status, "to_status": target},
        )
        return updated

    def apply_provider_status(
        self,
        provider_call_id: str,
        raw_status: str,
        result_message: Optional[str] = None,
    ) -> Optional[CallRequest]:
        """
        Apply a provider status callback. Unknown calls return None;
        out-of-order callbacks (e.g. "ringing" after "completed") are ignored.
        """
        call = self.find_by_provider_call_id(provider_call_id)
        if call is None:
            logger.info("Status callback for unknown call", extra={"provider_call_id": provider_call_id})
            return None

        target = normalize_provider_status(raw_status)
        try:
            return self.transition(call.id, target, result_message)
        except InvalidTransitionError as exc:
            logger.warning(str(exc), extra={"provider_call_id": provider_call_id})
            return call

    # ---------- editing ----------

    @staticmethod
    def select_for_editing(request: CallRequest) -> CallDraft:
        """Project a stored call back into an editable draft."""
        return CallDraft(**request.model_dump(include=_DRAFT_FIELDS))

    # ---------- persistence ----------

    def persist(self, history: Optional[Iterable[CallRequest]] = None) -> bool:
        """
        Write `history` (default: the current one) to the store. Failures
        are logged and reported as False; they never raise.

        Snapshot and write happen under the manager lock, so stored history
        always follows the order of in-memory mutations.
        """
        with self._lock:
            if history is None:
                history = self._history
            payload = json.dumps([c.model_dump(mode="json", by_alias=True) for c in history])
            try:
                self._store.set(self._storage_key, payload)
            except (StorageError, OSError):
                logger.exception("Failed to persist call history", extra={"storage_key": self._storage_key})
                return False
            return True

    def restore(self) -> List[CallRequest]:
        """
        Load history from the store and make it the current one.

        Unreadable storage or a document that isn't a JSON list yields an
        empty history. Individual records that fail validation are logged
        and skipped; the rest are kept.
        """
        try:
            raw = self._store.get(self._storage_key)
        except (StorageError, OSError):
            logger.exception("Failed to read stored call history", extra={"storage_key": self._storage_key})
            raw = None

        records: List[Any] = []
        if raw:
            try:
                records = json.loads(raw)
                if not isinstance(records, list):
                    raise ValueError("stored history is not a list")
            except (ValueError, TypeError):
                logger.warning(
                    "Failed to parse stored history",
                    exc_info=True,
                    extra={"storage_key": self._storage_key},
                )
                records = []

        restored: List[CallRequest] = []
        for position, record in enumerate(records):
            try:
                restored.append(CallRequest.model_validate(_backfill_created_at(record)))
            except ValueError:
                # pydantic's ValidationError is a ValueError
                logger.warning(
                    "Skipping unreadable stored call",
                    exc_info=True,
                    extra={"storage_key": self._storage_key, "position": position},
                )

        with self._lock:
            self._history = restored
            return list(self._history)


def get_call_history(request: Request) -> CallHistoryManager:
    """
    FastAPI dependency. The manager is built in the app lifespan and kept on
    app.state; tests override this dependency with an in-memory one.
    """
    return request.app.state.call_history
