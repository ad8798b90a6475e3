# callpilot/services/readiness_service.py
from callpilot.schemas.call import PHONE_PATTERN, CallDraft

EXCELLENT_THRESHOLD = 85


def _filled(value: str) -> bool:
    return bool(value and value.strip())


def compute_readiness_score(draft: CallDraft) -> int:
    """
    0-100 estimate of how ready a call blueprint is.

    Each signal only ever adds points, so filling in or lengthening a field
    never lowers the score. The raw sum can exceed 100 and is clamped.
    """
    score = 0

    if _filled(draft.client_name):
        score += 10
    if _filled(draft.business_name):
        score += 10

    phone = draft.phone_number.strip()
    if PHONE_PATTERN.match(phone):
        score += 20
    elif phone:
        score += 5

    goal = draft.appointment_goal.strip()
    if goal:
        # longer, more specific goals score higher, up to +15
        score += 10 + min(len(goal) // 4, 15)

    if _filled(draft.preferred_date):
        score += 10
    if _filled(draft.preferred_time_window):
        score += 5
    if _filled(draft.notes):
        score += 5

    words = len(draft.script.split())
    if words:
        score += 10 + min(words // 2, 15)

    return max(0, min(100, score))


def readiness_insight(score: int, has_script: bool) -> str:
    """Coaching message for a (score, has_script) pair. Total and stable."""
    if not has_script:
        if score < 40:
            return (
                "Add the client, business and appointment goal, then "
                "Generate or craft a script to get started."
            )
        return "Generate or craft a script so the call has something to say."

    if score >= EXCELLENT_THRESHOLD:
        return "Excellent! This call blueprint is ready to queue."
    if score >= 65:
        return "Great progress. A preferred time window or extra notes will make the call land better."
    if score >= 40:
        return "Good start. Make the appointment goal and script more specific."
    return "Keep going. Fill in the contact details so the call can be placed."
