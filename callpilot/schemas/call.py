# callpilot/schemas/call.py
import re
from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel


CallStatus = Literal["draft", "queued", "completed", "failed"]

# Optional leading "+", then 7-15 digits.
PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    """
    snake_case in Python, camelCase on the wire and in stored history.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValidationIssue(BaseModel):
    field: str
    message: str


class CallDraft(CamelModel):
    """
    In-progress form state. Nothing is required here; the readiness
    scorer runs on whatever the user has typed so far.
    """
    client_name: str = ""
    business_name: str = ""
    phone_number: str = ""
    contact_email: str = ""
    preferred_date: str = ""
    preferred_time_window: str = ""
    appointment_goal: str = ""
    notes: str = ""
    script: str = ""


class ScriptInput(CamelModel):
    """The subset of a draft that shapes what the caller says."""
    client_name: str
    business_name: str
    appointment_goal: str
    preferred_date: str
    preferred_time_window: str = ""
    notes: str = ""


class ScriptRequestIn(CamelModel):
    """Validated draft fields, before a script exists."""
    model_config = ConfigDict(str_strip_whitespace=True)

    client_name: RequiredStr
    business_name: RequiredStr
    phone_number: RequiredStr
    contact_email: str = ""
    # Free-form on purpose: the script falls back to the raw text when
    # it is not a calendar date.
    preferred_date: RequiredStr
    preferred_time_window: str = ""
    appointment_goal: RequiredStr
    notes: str = ""

    @field_validator("contact_email", "preferred_time_window", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value

    @field_validator("phone_number")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError("Use an international format such as +15551231234")
        return value

    @field_validator("contact_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if value and not EMAIL_PATTERN.match(value):
            raise ValueError("Enter a valid email address")
        return value

    def to_script_input(self) -> ScriptInput:
        return ScriptInput(
            client_name=self.client_name,
            business_name=self.business_name,
            appointment_goal=self.appointment_goal,
            preferred_date=self.preferred_date,
            preferred_time_window=self.preferred_time_window,
            notes=self.notes,
        )


class CallRequestIn(ScriptRequestIn):
    """Validated draft, ready to be handed to the voice provider."""
    script: RequiredStr


class ProviderCallResult(BaseModel):
    """What the voice provider told us when the call was created."""
    status: Optional[str] = None
    sid: Optional[str] = None
    message: Optional[str] = None


class CallRequest(CamelModel):
    """
    A submitted call, as kept in history.

    Frozen: status updates produce a new copy via `model_copy`.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    client_name: str = ""
    business_name: str = ""
    phone_number: str = ""
    contact_email: str = ""
    preferred_date: str = ""
    preferred_time_window: str = ""
    appointment_goal: str = ""
    notes: str = ""
    script: str = ""
    created_at: datetime
    status: CallStatus = "queued"
    result_message: Optional[str] = None
    provider_call_id: Optional[str] = None


# ---------- HTTP responses ----------

class ScriptResponse(CamelModel):
    script: str
    used_fallback: bool


class ReadinessResponse(CamelModel):
    score: int = Field(ge=0, le=100)
    insight: str


class CallQueuedResponse(CamelModel):
    message: str
    status: CallStatus
    sid: Optional[str] = None
    call: CallRequest
