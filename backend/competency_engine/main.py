import logging
import os
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from sqlalchemy import text

from .competency_routes import router as competency_router
from .config import get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import get_engine
from .dynamic_questions import DynamicQuestionService, get_dynamic_question_service
from .logging_config import configure_logging


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Competency Engine", version="0.1.0")
app.include_router(competency_router)

settings_snapshot = get_settings()
logger.info(
    "Competency engine starting (cache_ttl=%ss store_timeout=%ss database_configured=%s)",
    settings_snapshot.cache_ttl_seconds,
    settings_snapshot.store_timeout_seconds,
    bool(settings_snapshot.database_url),
)


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ok", "pool": get_pool_snapshot(engine)}


@app.get("/healthz/cache")
def cache_health(service: DynamicQuestionService = Depends(get_dynamic_question_service)) -> Dict[str, Any]:
    return {"status": "ok", "cache": service.cache_stats()}


def run() -> None:
    import uvicorn

    host = os.getenv("COMPETENCY_HOST", "0.0.0.0")
    port = int(os.getenv("COMPETENCY_PORT", "8000"))
    logger.info("Starting competency engine on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info", timeout_graceful_shutdown=30)


if __name__ == "__main__":
    run()
