import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import (
    PaymentValidationError,
    ReconciliationConflict,
    RecordNotFoundError,
)
from app.core.logging import setup_logging
from app.db.session import connect_to_mongo, close_mongo_connection
from app.api.v1.api import api_router
from app.utils.money import quantize

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the MongoDB connection for the life of the app."""
    await connect_to_mongo()
    try:
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PaymentValidationError)
async def validation_error_handler(request: Request, exc: PaymentValidationError):
    content = {"success": False, "error": "Validation failed", "details": exc.errors}
    if exc.invalid_fields:
        content["invalid_fields"] = exc.invalid_fields
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"success": False, "error": str(exc)}
    )


@app.exception_handler(ReconciliationConflict)
async def conflict_handler(request: Request, exc: ReconciliationConflict):
    content = {"success": False, "error": exc.message}
    if exc.attempted is not None:
        content["attempted"] = str(quantize(exc.attempted))
    if exc.outstanding is not None:
        content["outstanding"] = str(quantize(exc.outstanding))
    if exc.limit is not None:
        content["limit"] = str(quantize(exc.limit))
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=content)


@app.get("/")
async def root():
    return {"message": "Welcome to Ledger API"}

app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
