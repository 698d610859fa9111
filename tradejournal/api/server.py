"""API Server — aiohttp app with error middleware and REST routes."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from aiohttp import web

from tradejournal.api import VERSION, ctx_key
from tradejournal.api.routes import setup_routes
from tradejournal.shell.config import Config
from tradejournal.shell.store import JournalStore

log = structlog.get_logger()


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Catch unhandled exceptions and return generic error (no tracebacks to clients)."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise  # Let aiohttp handle HTTP errors (404, 405, etc.)
    except Exception as e:
        log.error("api.unhandled_error", path=request.path, error=str(e),
                  error_type=type(e).__name__)
        return web.json_response(
            {
                "error": {"code": "internal_error", "message": "An unexpected error occurred"},
                "meta": {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "version": VERSION,
                },
            },
            status=500,
        )


def create_app(config: Config, store: JournalStore) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application(middlewares=[error_middleware])

    # Shared context for route handlers
    app[ctx_key] = {
        "config": config,
        "store": store,
        "started_at": datetime.now(timezone.utc),
    }

    setup_routes(app)
    return app
