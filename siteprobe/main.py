"""FastAPI app entrypoint."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from siteprobe.api.routes import router
from siteprobe.config import get_settings
from siteprobe.logging_config import setup_logging
from siteprobe.pipeline.engine import ProbeEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # Initialize logging FIRST so all subsequent operations produce JSON logs
    setup_logging(settings.log_level)
    logger.info("starting siteprobe service")

    client = httpx.AsyncClient(
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    )
    engine = ProbeEngine(settings, client)

    app.state.settings = settings
    app.state.engine = engine

    logger.info(
        "siteprobe service ready",
        extra={
            "w3c_endpoint": settings.w3c_endpoint,
            "pagespeed_endpoint": settings.pagespeed_endpoint,
            "pagespeed_key_configured": bool(settings.google_api_key),
            "max_urls": settings.max_urls,
        },
    )

    yield

    logger.info("shutting down siteprobe service")
    await client.aclose()


app = FastAPI(title="Site Probe Service", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
