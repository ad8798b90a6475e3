# callpilot/routers/scripts.py
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from callpilot.logging_config import get_logger
from callpilot.schemas.call import ScriptResponse
from callpilot.services.call_script_service import ScriptGenerator, get_script_generator
from callpilot.services.validation_service import validate_script_input

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["scripts"])


@router.post("/generate-script", response_model=ScriptResponse)
def generate_script(
    payload: Any = Body(None),
    generator: ScriptGenerator = Depends(get_script_generator),
):
    """
    Draft a phone script from the call blueprint.

    Validation problems come back as 422. If the AI provider is down or not
    configured the template script is returned with usedFallback=true.
    """
    validated = validate_script_input(payload)

    try:
        result = generator.generate(validated.to_script_input())
    except Exception:
        logger.exception("Generate script API error")
        return JSONResponse(status_code=500, content={"message": "Failed to generate script"})

    return ScriptResponse(script=result.script, used_fallback=result.used_fallback)
