# callpilot/routers/twilio_status.py
from typing import Optional

from fastapi import APIRouter, Depends, Form, Response

from callpilot.services.call_history_service import CallHistoryManager, get_call_history

router = APIRouter(prefix="/twilio", tags=["twilio-status"])


@router.post("/status", response_class=Response)
def twilio_status_webhook(
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    From: Optional[str] = Form(None),
    To: Optional[str] = Form(None),
    ErrorCode: Optional[str] = Form(None),
    ErrorMessage: Optional[str] = Form(None),
    history: CallHistoryManager = Depends(get_call_history),
):
    """
    Twilio call status callback webhook.

    Twilio will POST here with fields like:
      - CallSid: Twilio's call ID
      - CallStatus: queued | ringing | in-progress | completed | busy | failed | no-answer | canceled
      - ErrorCode / ErrorMessage (optional failure context)

    The matching history entry moves to completed/failed; unknown SIDs are
    acknowledged and ignored.
    """
    message = ErrorMessage
    if message and ErrorCode:
        message = f"{message} (Twilio error {ErrorCode})"

    history.apply_provider_status(
        provider_call_id=CallSid,
        raw_status=CallStatus,
        result_message=message,
    )

    # Just return a minimal TwiML response with the correct media type.
    return Response(content="<Response></Response>", media_type="text/xml")
