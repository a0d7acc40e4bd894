"""
Ember - member directory and article timeline API
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from ember import __version__
from ember.aggregation.rss import RSSConnector
from ember.app.routers import api
from ember.config.members import load_site_description
from ember.config.settings import Settings, get_settings
from ember.config.startup_validation import run_startup_validation
from ember.services.stores import ArticleStore, UserDirectory

load_dotenv()

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the API app. `transport` replaces the network for feed fetches (tests)."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the stores owned by this app instance."""
        run_startup_validation(settings, require_members=False)

        app.state.settings = settings
        app.state.feed_connector = RSSConnector.from_settings(settings, transport=transport)
        app.state.article_store = ArticleStore(
            settings,
            RSSConnector.from_settings(
                settings,
                timeout=settings.fallback_timeout_seconds,
                transport=transport,
            ),
        )
        app.state.user_directory = UserDirectory(settings)
        app.state.refresh_lock = asyncio.Lock()
        app.state.site_description = load_site_description(settings.config_path)

        yield

        app.state.article_store.invalidate()
        app.state.user_directory.invalidate()

    app = FastAPI(title="Ember", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "healthy",
            "articles": request.app.state.article_store.stats(),
            "users": request.app.state.user_directory.stats(),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ember.app.main:app", host="0.0.0.0", port=8000)
