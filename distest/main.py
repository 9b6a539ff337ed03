from contextlib import asynccontextmanager
import logging
import os
import traceback

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from distest.database import engine, Base, SessionLocal
import distest.models  # noqa: F401  # Ensure all SQLAlchemy models are registered
from distest.routers import realtime as realtime_router
from distest.routers import session as session_router
from distest.services.session_manager import session_manager
from distest.utils.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    realtime_router.attach(session_manager)
    logging.getLogger("app").info("Replica database initialized.")
    yield
    realtime_router.detach(session_manager)
    session_manager.reset()
    logging.getLogger("app").info("Application shutdown.")


app = FastAPI(
    title="Distributed Estimation",
    description="Collaborative dot voting and effort estimation",
    lifespan=lifespan,
)

app.include_router(session_router.router)
app.include_router(realtime_router.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger = logging.getLogger("app")
    logger.error(f"Global exception: {str(exc)}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error. Please check logs."},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger = logging.getLogger("app")
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} error: {exc.detail}")
    else:
        logger.info(f"HTTP {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger = logging.getLogger("app")
    error_messages = [err["msg"] for err in exc.errors()]
    logger.warning(f"Validation error: {error_messages}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": error_messages},
    )


@app.get("/health", tags=["healthcheck"])
async def health_check():
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logging.getLogger("app").error("Health check database error: %s", e)
        raise HTTPException(
            status_code=503, detail=f"Database connection failed: {str(e)}"
        )


def run() -> None:
    import uvicorn

    uvicorn.run(
        "distest.main:app",
        host=os.getenv("DISTEST_HOST", "127.0.0.1"),
        port=int(os.getenv("DISTEST_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    run()
