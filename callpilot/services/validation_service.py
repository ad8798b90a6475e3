# callpilot/services/validation_service.py
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from callpilot.errors import CallValidationError
from callpilot.schemas.call import CallRequestIn, ScriptRequestIn, ValidationIssue

ModelT = TypeVar("ModelT", bound=BaseModel)


def _issue_from_error(model: Type[BaseModel], error: dict) -> ValidationIssue:
    """
    Turn one pydantic error into a (field, message) pair keyed by the
    camelCase field name the caller sent.
    """
    loc = error.get("loc") or ()
    field = str(loc[0]) if loc else "body"
    if field in model.model_fields:
        field = model.model_fields[field].alias or field

    kind = error.get("type", "")
    if kind in ("missing", "string_too_short"):
        message = f"{field} is required"
    elif kind == "string_type":
        message = f"{field} must be a string"
    elif kind == "value_error":
        # pydantic prefixes our ValueError text with "Value error, "
        message = str(error.get("ctx", {}).get("error") or error.get("msg", ""))
    else:
        message = error.get("msg", "Invalid value")

    return ValidationIssue(field=field, message=message)


def _validate(model: Type[ModelT], data: Any) -> ModelT:
    if not isinstance(data, dict):
        raise CallValidationError(
            [ValidationIssue(field="body", message="Expected a JSON object")]
        )
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        issues = [_issue_from_error(model, err) for err in exc.errors()]
        raise CallValidationError(issues) from exc


def validate_script_input(data: Any) -> ScriptRequestIn:
    """
    Validate draft fields for script generation. `script` is not required
    (it does not exist yet), everything else follows the call rules.
    """
    return _validate(ScriptRequestIn, data)


def validate_call_request(data: Any) -> CallRequestIn:
    """Validate a full call request, script included."""
    return _validate(CallRequestIn, data)


def collect_issues(data: Any, require_script: bool = True) -> List[ValidationIssue]:
    """Same checks as above, but return the violations instead of raising."""
    try:
        if require_script:
            validate_call_request(data)
        else:
            validate_script_input(data)
    except CallValidationError as exc:
        return exc.issues
    return []
