from __future__ import annotations

import sys
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi import _rate_limit_exceeded_handler

from .settings import settings
from .shell import Shell
from .services.gateway import AIGateway
from .services.storage import JsonFileStore
from .routers import sets, generate, practice, export, view

# ---------- logging ----------
logger.remove()
logger.add(
    sys.stderr,
    format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {message}",
    level=settings.LOG_LEVEL,
)

def default_shell() -> Shell:
    store = JsonFileStore.for_key(settings.DATA_DIR, settings.STORAGE_KEY)
    return Shell(store, AIGateway())

def create_app(shell: Optional[Shell] = None) -> FastAPI:
    # ---------- app / limiter ----------
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.RATE_LIMIT],
        enabled=settings.RATE_LIMIT_ENABLED,
    )
    app = FastAPI(title="ExamPrep API", version="1.0.0")
    app.state.limiter = limiter
    app.state.shell = shell or default_shell()

    # ---------- CORS ----------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*", "Content-Type", "X-Requested-With"],
    )

    # SlowAPI middleware + handler
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ---------- health ----------
    @app.get("/health")
    def health():
        return {
            "ok": True,
            "mock": settings.MOCK_MODE,
            "model": settings.OPENAI_MODEL,
            "rate_limit": settings.RATE_LIMIT,
            "max_source_chars": settings.MAX_SOURCE_CHARS,
            "sets": len(app.state.shell.sets),
        }

    # ---------- routers ----------
    app.include_router(view.router, tags=["view"])
    app.include_router(sets.router, tags=["sets"])
    app.include_router(generate.router, tags=["generate"])
    app.include_router(practice.router, tags=["practice"])
    app.include_router(export.router, tags=["export"])

    logger.info(f"ExamPrep API ready ({len(app.state.shell.sets)} set(s), mock={settings.MOCK_MODE})")
    return app

app = create_app()
