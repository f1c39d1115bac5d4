"""PeerAssist: peer-to-peer task marketplace."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from peerassist import __version__, notifications
from peerassist.api.router import api_router
from peerassist.background import background_loop
from peerassist.config import settings
from peerassist.content import render_response
from peerassist.database import close_db, get_session_factory, init_db
from peerassist.rate_limit import limiter

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("peerassist")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A misconfigured mail backend fails here, not after a commit
    notifier = notifications.get_notifier()
    logger.info("Notifications via %s", type(notifier).__name__)

    db_url = settings.database_url
    if not db_url.startswith("sqlite"):
        Path(db_url).parent.mkdir(parents=True, exist_ok=True)
        db_url = f"sqlite+aiosqlite:///{db_url}"
    await init_db(db_url)
    logger.info("Database connected: %s", db_url)

    bg_task = asyncio.create_task(background_loop(get_session_factory()))

    yield

    bg_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await bg_task
    await notifications.drain()
    await close_db()
    logger.info("Database closed")


app = FastAPI(
    title="PeerAssist",
    description="Post tasks, pick helpers, confirm completion with a one-time code",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.include_router(api_router)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    code = getattr(exc, "code", None) or _default_code(exc.status_code)
    return render_response(
        request,
        {"error": exc.detail, "code": code},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def _default_code(status_code: int) -> str:
    return {
        401: "Unauthenticated",
        403: "Unauthorized",
        404: "NotFound",
        409: "Conflict",
    }.get(status_code, "Error")


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


def main():
    import uvicorn

    uvicorn.run(
        "peerassist.main:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
