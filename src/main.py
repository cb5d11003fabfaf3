"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.lc_common.database import engine
from src.lc_common.errors import AppError
from src.lc_common.redis_client import close_redis, get_redis
from src.lc_common.response import error_response
from src.lc_gateway.middleware.request_log import RequestLogMiddleware
from src.lc_ledger.api.router import router as ledger_router
from src.lc_policy.api.router import router as policy_router
from src.lc_refund.api.router import router as refund_router
from src.lc_shadow.api.router import router as shadow_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify the database and open the Redis pool. Shutdown: dispose both."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    # Redis only carries best-effort events; the pool is lazy and may be down
    await get_redis()
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(ledger_router, prefix="/api/v1")
app.include_router(refund_router, prefix="/api/v1")
app.include_router(policy_router, prefix="/api/v1")
app.include_router(shadow_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
