# callpilot/services/twilio_client.py
from typing import Dict, Optional

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client as TwilioSDKClient
from twilio.twiml.voice_response import VoiceResponse

from callpilot.config import get_settings
from callpilot.errors import ConfigurationError, ProviderError
from callpilot.logging_config import get_logger
from callpilot.schemas.call import ProviderCallResult

logger = get_logger(__name__)


def build_script_twiml(script: str) -> str:
    """TwiML that reads the script aloud once and hangs up."""
    response = VoiceResponse()
    response.say(script, voice="Polly.Joanna", language="en-US")
    response.hangup()
    return str(response)


class TwilioClient:
    """
    Thin wrapper around the Twilio Python SDK.

    This makes it easy to:
    - centralize config (account SID, auth token, caller ID, status callback)
    - mock in tests by replacing this class with a fake.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        status_callback_url: Optional[str] = None,
    ):
        self._client = TwilioSDKClient(account_sid, auth_token)
        self._from_number = from_number
        self._status_callback_url = status_callback_url

    def create_outbound_call(
        self,
        to_number: str,
        script: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderCallResult:
        """
        Create an outbound call that speaks `script` and return Twilio's
        status + Call SID.
        """
        kwargs = {
            "to": to_number,
            "from_": self._from_number,
            "twiml": build_script_twiml(script),
        }
        if self._status_callback_url:
            kwargs["status_callback"] = self._status_callback_url
            kwargs["status_callback_event"] = ["initiated", "ringing", "answered", "completed"]

        try:
            call = self._client.calls.create(**kwargs)
        except TwilioRestException as exc:
            logger.error(
                "Twilio rejected outbound call",
                extra={"twilio_code": exc.code, "metadata": metadata or {}},
            )
            raise ProviderError(exc.msg or "Failed to queue call") from exc
        except (TwilioException, requests.RequestException, OSError) as exc:
            # network / transport failures
            logger.error(
                "Twilio unreachable",
                extra={"error": str(exc), "metadata": metadata or {}},
            )
            raise ProviderError(str(exc) or "Failed to queue call") from exc

        logger.info(
            "Outbound call created",
            extra={"sid": call.sid, "twilio_status": call.status, "metadata": metadata or {}},
        )
        return ProviderCallResult(status=call.status, sid=call.sid)


def get_twilio_client() -> TwilioClient:
    """
    FastAPI dependency to get a configured TwilioClient.
    Raises ConfigurationError if configuration is incomplete.
    """
    settings = get_settings()

    missing: list[str] = []
    if not settings.TWILIO_ACCOUNT_SID:
        missing.append("TWILIO_ACCOUNT_SID")
    if not settings.TWILIO_AUTH_TOKEN:
        missing.append("TWILIO_AUTH_TOKEN")
    if not settings.TWILIO_CALLER_ID:
        missing.append("TWILIO_CALLER_ID")

    if missing:
        raise ConfigurationError(
            "Twilio environment variables are missing. "
            f"Provide {', '.join(missing)}."
        )

    return TwilioClient(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_CALLER_ID,
        status_callback_url=settings.TWILIO_STATUS_CALLBACK_URL,
    )
