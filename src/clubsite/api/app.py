"""Club site API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (origins from ``SiteConfig.cors_origins``)
- Lifespan handler that starts tracing and closes the Google HTTP clients
- Health endpoint at GET /api/health
- Event and resource routers
- Optional static file serving for a prebuilt site export
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from clubsite import __version__
from clubsite.api.deps import SiteServices, build_services
from clubsite.api.middleware import register_error_handlers
from clubsite.api.routers.events import router as events_router
from clubsite.api.routers.resources import router as resources_router
from clubsite.config import SiteConfig, load_config
from clubsite.core.telemetry import init_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_telemetry("clubsite")
    services: SiteServices = app.state.services
    logger.info("Serving catalogs from %s", services.store.data_dir)

    yield

    await services.aclose()


def create_app(
    config: SiteConfig | None = None,
    *,
    services: SiteServices | None = None,
    static_dir: str | Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Site configuration.  Loaded with ``load_config()`` when omitted.
    services:
        Prebuilt services (tests inject fake Google fetchers this way).
        Built from *config* when omitted.
    static_dir:
        Directory holding a static export of the site.  When set (or when
        ``CLUBSITE_STATIC_DIR`` is), it is mounted at ``/`` after the API
        routes.
    """
    if services is None:
        services = build_services(config or load_config())
    config = services.config

    app = FastAPI(
        title="Club Site API",
        version=__version__,
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(events_router)
    app.include_router(resources_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    # Mount AFTER all API routes so /api/* always takes precedence.
    resolved_static = static_dir or os.environ.get("CLUBSITE_STATIC_DIR")
    if resolved_static is not None:
        dist_path = Path(resolved_static)
        if dist_path.is_dir():
            app.mount("/", StaticFiles(directory=str(dist_path), html=True), name="site")
            logger.info("Mounted static site from %s", dist_path)
        else:
            logger.warning("static_dir %s does not exist; skipping static mount", dist_path)

    return app
