# callpilot/routers/calls.py
from typing import Any, List

from fastapi import APIRouter, Body, Depends, HTTPException

from callpilot.schemas.call import CallDraft, CallQueuedResponse, CallRequest, CallRequestIn
from callpilot.services.call_history_service import CallHistoryManager, get_call_history
from callpilot.services.call_service import QUEUED_MESSAGE, queue_call
from callpilot.services.twilio_client import TwilioClient, get_twilio_client
from callpilot.services.validation_service import validate_call_request

router = APIRouter(prefix="/api", tags=["calls"])


def call_request_body(payload: Any = Body(None)) -> CallRequestIn:
    return validate_call_request(payload)


@router.post("/call", response_model=CallQueuedResponse)
def create_call(
    # Declared first: dependencies resolve in order, so bad input is
    # reported (422) before missing Twilio config (503).
    validated: CallRequestIn = Depends(call_request_body),
    twilio_client: TwilioClient = Depends(get_twilio_client),
    history: CallHistoryManager = Depends(get_call_history),
):
    """
    Queue an outbound call with the reviewed script.

    - 422 if the blueprint is incomplete
    - 503 if Twilio credentials are missing
    - 500 with the provider's message if Twilio refuses the call
    """
    call = queue_call(payload=validated, twilio_client=twilio_client, history=history)

    return CallQueuedResponse(
        message=QUEUED_MESSAGE,
        status=call.status,
        sid=call.provider_call_id,
        call=call,
    )


@router.get("/calls", response_model=List[CallRequest])
def list_calls(history: CallHistoryManager = Depends(get_call_history)):
    """Call history, newest first."""
    return history.history


@router.get("/calls/{call_id}/draft", response_model=CallDraft)
def edit_call(call_id: str, history: CallHistoryManager = Depends(get_call_history)):
    """Load a past call back into the form. Submitting it creates a new call."""
    call = history.get(call_id)
    if call is None:
        raise HTTPException(status_code=404, detail="Call not found")
    return history.select_for_editing(call)
