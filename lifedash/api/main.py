"""
FastAPI application entry-point.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lifedash.api.routers import assistant, budget, catalog, nutrition, todos
from lifedash.core.errors import AuthorizationError, DashboardError, NotFoundError
from lifedash.core.logging import get_logger
from lifedash.db.connection import create_store_engine

logger = get_logger(__name__)

ASSISTANT_PREFIX = "/api/ai"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    app.state.engine = create_store_engine()
    yield
    # Shutdown
    app.state.engine.dispose()
    logger.info("DB engine disposed")


app = FastAPI(
    title="LifeDash Assistant",
    version="0.1.0",
    description="Personal dashboard with a natural-language data assistant",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ())[1:]) or "body"
    return f"Invalid request: {loc}: {first.get('msg', 'invalid value')}"


@app.exception_handler(RequestValidationError)
async def _invalid_request(request: Request, exc: RequestValidationError):
    # assistant endpoints only ever answer with {error}
    if request.url.path.startswith(ASSISTANT_PREFIX + "/"):
        message = _describe_validation_error(exc)
        logger.warning("Rejected %s body: %s", request.url.path, message)
        return JSONResponse(status_code=500, content={"error": message})
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(AuthorizationError)
def _unauthorized(request: Request, exc: AuthorizationError):
    logger.info("Unauthorized request to %s", request.url.path)
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@app.exception_handler(NotFoundError)
def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(DashboardError)
def _bad_request(request: Request, exc: DashboardError):
    logger.warning("Dashboard request rejected: %s", exc)
    return JSONResponse(status_code=400, content={"error": str(exc)})


app.include_router(assistant.router, prefix=ASSISTANT_PREFIX, tags=["Assistant"])
app.include_router(catalog.router, tags=["Catalog"])
app.include_router(todos.router, prefix="/api/todos", tags=["Todos"])
app.include_router(budget.router, prefix="/api/budget", tags=["Budget"])
app.include_router(nutrition.router, prefix="/api/nutrition", tags=["Nutrition"])


@app.get("/health")
def health():
    return {"status": "ok"}
