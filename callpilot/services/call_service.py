# callpilot/services/call_service.py
from typing import Protocol, Dict, Optional

from callpilot.schemas.call import CallRequest, CallRequestIn, ProviderCallResult
from callpilot.services.call_history_service import CallHistoryManager


class CallProvider(Protocol):
    def create_outbound_call(
        self,
        to_number: str,
        script: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderCallResult: ...


QUEUED_MESSAGE = "Call queued successfully"


def queue_call(
    payload: CallRequestIn,
    twilio_client: CallProvider,
    history: CallHistoryManager,
) -> CallRequest:
    """
    Place the call with the provider, then record it in history.

    Nothing is stored if the provider call raises: the error goes straight
    back to the caller.
    """
    result = twilio_client.create_outbound_call(
        to_number=payload.phone_number,
        script=payload.script,
        metadata={
            "clientName": payload.client_name,
            "businessName": payload.business_name,
        },
    )
    if result.message is None:
        result = result.model_copy(update={"message": QUEUED_MESSAGE})

    call = history.create_from_validated_draft(payload, result)
    history.append_to_history(call)
    history.persist()
    return call
