import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.routers import reviews
from app.services.firestore_client import init_firestore
from app.services.providers import build_provider

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the Firestore client and text provider once per process."""
    logger.info("Starting up: initializing Firestore and %s provider...", settings.llm_provider)
    app.state.db = init_firestore(settings)
    app.state.provider = build_provider(settings)
    logger.info("Startup complete.")
    yield
    logger.info("Shutting down.")


app = FastAPI(
    title="AI Ingredient Review",
    description=(
        "Generates short skincare review bullets from product ingredient lists "
        "with a generative-text provider and stores them on Firestore products."
    ),
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(StarletteHTTPException)
async def plain_text_http_exception(request: Request, exc: StarletteHTTPException):
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


app.include_router(reviews.router)


@app.get("/health", tags=["health"])
async def health_check():
    return {"status": "ok", "version": VERSION}
