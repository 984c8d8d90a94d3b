"""
Zhir Assistant API - FastAPI Application
Streams chat replies from an LLM provider and stores conversations and blogs.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from zhir.config import config
from zhir.db import db
from zhir.errors import AssistantError
from zhir.api.middleware import register_middleware
from zhir.api.routes import all_routers

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting Zhir assistant API...")

    try:
        config.validate()
        db.initialize()
        llm_config = config.get_llm_config()
        logger.info(
            "Database: %s, LLM provider: %s, model: %s",
            config.DATABASE_PATH,
            llm_config["provider"],
            llm_config.get("model"),
        )
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise

    yield

    logger.info("Shutting down Zhir assistant API...")
    db.close()


# Create FastAPI app
app = FastAPI(
    title="Zhir Assistant API",
    description="Streaming chat relay and blog generation for the Zhir assistant",
    version="1.0.0",
    lifespan=lifespan,
)

register_middleware(app)

for router in all_routers:
    app.include_router(router)


# Exception handlers
@app.exception_handler(AssistantError)
async def assistant_error_handler(request, exc: AssistantError):
    content = {"error": exc.message, "code": exc.error_code}
    if exc.details:
        content["detail"] = exc.details
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(ValueError)
async def value_error_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "code": "INVALID_REQUEST", "detail": str(exc)},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    content = {"error": "Internal server error", "code": "INTERNAL_ERROR"}
    if config.is_development():
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "zhir.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=False,
        log_level=config.LOG_LEVEL.lower(),
    )


# Entry point for running with uvicorn directly
if __name__ == "__main__":
    run()
