# callpilot/services/script_service.py
import re
from datetime import date, datetime
from typing import Optional

from callpilot.schemas.call import ScriptInput

# Fixed English month names so neither parsing nor output depends on the
# process locale.
_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
# "december" -> 12, "dec" -> 12, "sept" -> 9
_MONTH_LOOKUP = {name.lower(): i for i, name in enumerate(_MONTHS, start=1)}
_MONTH_LOOKUP.update({name[:3].lower(): i for i, name in enumerate(_MONTHS, start=1)})
_MONTH_LOOKUP["sept"] = 9

# "December 1, 2024" / "Dec. 1 2024"
_MONTH_FIRST = re.compile(r"^([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})$")
# "1 December 2024" / "1 Dec 2024"
_DAY_FIRST = re.compile(r"^(\d{1,2})\s+([A-Za-z]+)\.?,?\s+(\d{4})$")


def _named_month_date(text: str) -> Optional[date]:
    match = _MONTH_FIRST.match(text)
    if match:
        month_name, day, year = match.groups()
    else:
        match = _DAY_FIRST.match(text)
        if not match:
            return None
        day, month_name, year = match.groups()

    month = _MONTH_LOOKUP.get(month_name.lower())
    if month is None:
        return None
    try:
        return date(int(year), month, int(day))
    except ValueError:
        return None


def _parse_calendar_date(raw: str) -> Optional[date]:
    text = raw.strip()
    if not text:
        return None

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    # digits only, so strptime is locale-independent here
    try:
        return datetime.strptime(text, "%m/%d/%Y").date()
    except ValueError:
        pass

    return _named_month_date(text)


def format_preferred_date(raw: str) -> str:
    """
    "2024-12-01" -> "December 1, 2024".

    Anything that isn't a calendar date is echoed back unchanged, so the
    script always mentions what the user typed.
    """
    parsed = _parse_calendar_date(raw)
    if parsed is None:
        return raw
    return f"{_MONTHS[parsed.month - 1]} {parsed.day}, {parsed.year}"


def generate_fallback_script(script_input: ScriptInput) -> str:
    """
    Template-based phone script used whenever the AI generator is not
    available. Pure and deterministic: same input, same text.
    """
    timing = f"on {format_preferred_date(script_input.preferred_date)}"
    if script_input.preferred_time_window:
        timing = f"{timing}, ideally {script_input.preferred_time_window}"

    sentences = [
        f"Hi, this is {script_input.client_name} calling from {script_input.business_name}.",
        f"I'm reaching out about the following: {script_input.appointment_goal}.",
        f"We'd like to set this up {timing}.",
    ]

    if script_input.notes:
        sentences.append(f"Additional context: {script_input.notes}.")

    sentences.append(
        "Does that time work for you, or is there another slot you'd prefer? "
        "Thank you so much for your help."
    )

    return " ".join(sentences)
