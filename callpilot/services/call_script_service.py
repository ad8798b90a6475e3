# callpilot/services/call_script_service.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI

from callpilot.config import get_settings
from callpilot.logging_config import get_logger
from callpilot.schemas.call import ScriptInput
from callpilot.services.script_service import format_preferred_date, generate_fallback_script

logger = get_logger(__name__)

_SYSTEM_MSG = (
    "You write short, warm outbound phone scripts that a voice assistant reads "
    "aloud to book appointments. Output only what the caller should say, in plain "
    "text, no markdown, no stage directions."
)


@dataclass
class ScriptResult:
    script: str
    used_fallback: bool


def _build_user_prompt(script_input: ScriptInput) -> str:
    lines = [
        f"Caller name: {script_input.client_name}",
        f"Calling on behalf of: {script_input.business_name}",
        f"Goal of the call: {script_input.appointment_goal}",
        f"Preferred date: {format_preferred_date(script_input.preferred_date)}",
    ]
    if script_input.preferred_time_window:
        lines.append(f"Preferred time window: {script_input.preferred_time_window}")
    if script_input.notes:
        lines.append(f"Additional context: {script_input.notes}")

    return (
        "Write a phone script of at most 120 words for this appointment request.\n"
        + "\n".join(lines)
        + "\nIntroduce the caller, state the goal, propose the date and time, "
        "and ask for confirmation or an alternative."
    )


class ScriptGenerator:
    """
    AI-backed script writer with a deterministic safety net.

    `client` is any object exposing `chat.completions.create` (the OpenAI
    SDK client in production, a fake in tests). With no client, every call
    returns the template script.
    """

    def __init__(self, client: Optional[Any] = None, model: str = "gpt-4.1-mini"):
        self._client = client
        self._model = model

    def generate(self, script_input: ScriptInput) -> ScriptResult:
        if self._client is None:
            return ScriptResult(script=generate_fallback_script(script_input), used_fallback=True)

        try:
            resp = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": _SYSTEM_MSG},
                    {"role": "user", "content": _build_user_prompt(script_input)},
                ],
                max_tokens=300,
                temperature=0.4,
            )
            script = (resp.choices[0].message.content or "").strip()
        except Exception:
            logger.warning("AI script generation failed, using fallback script", exc_info=True)
            return ScriptResult(script=generate_fallback_script(script_input), used_fallback=True)

        # Guardrail: never return an empty script
        if not script:
            logger.warning("AI returned an empty script, using fallback script")
            return ScriptResult(script=generate_fallback_script(script_input), used_fallback=True)

        return ScriptResult(script=script, used_fallback=False)


def get_script_generator() -> ScriptGenerator:
    """
    FastAPI dependency. Only talks to OpenAI when explicitly enabled and a
    key is present.
    """
    settings = get_settings()
    if not settings.enable_openai or not settings.openai_api_key:
        return ScriptGenerator(client=None, model=settings.openai_model)

    return ScriptGenerator(
        client=OpenAI(api_key=settings.openai_api_key),
        model=settings.openai_model,
    )
