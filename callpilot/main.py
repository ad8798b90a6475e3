# callpilot/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from callpilot.config import get_settings
from callpilot.db.session import SessionLocal, engine
from callpilot.errors import CallValidationError, ConfigurationError, ProviderError
from callpilot.logging_config import get_logger
from callpilot.models import Base
from callpilot.routers import calls, readiness, scripts, twilio_status
from callpilot.services.call_history_service import CallHistoryManager
from callpilot.services.storage import SqlAlchemyKeyValueStore

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    history = CallHistoryManager(
        store=SqlAlchemyKeyValueStore(SessionLocal),
        storage_key=settings.HISTORY_STORAGE_KEY,
    )
    history.restore()
    app.state.call_history = history
    logger.info("Call history loaded", extra={"calls": len(history.history)})

    yield

    history.persist()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Routers
app.include_router(scripts.router)
app.include_router(calls.router)
app.include_router(readiness.router)
app.include_router(twilio_status.router)


@app.exception_handler(CallValidationError)
async def handle_validation_error(request: Request, exc: CallValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "message": "Validation error",
            "issues": [issue.model_dump() for issue in exc.issues],
        },
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    issues = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"message": "Validation error", "issues": issues})


@app.exception_handler(ConfigurationError)
async def handle_configuration_error(request: Request, exc: ConfigurationError):
    logger.warning(str(exc))
    return JSONResponse(status_code=503, content={"message": str(exc)})


@app.exception_handler(ProviderError)
async def handle_provider_error(request: Request, exc: ProviderError):
    logger.error("Call API error", extra={"error": str(exc)})
    return JSONResponse(status_code=500, content={"message": str(exc) or "Failed to queue call"})


@app.get("/health")
def health_check():
    db_status = "ok"
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        db_status = "error"

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "app": settings.APP_NAME,
        "env": settings.ENV,
        "database": db_status,
    }
