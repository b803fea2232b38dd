import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bank import make_loader
from config import load_settings
from driver import SessionController
from enrichment import EnrichmentFetcher

# Routers
from routers.health import router as health_router
from routers.session import router as session_router

logger = logging.getLogger("quiz-engine")
logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Re-read at startup so the environment can change between app runs (tests)
    settings = load_settings()
    timeout = httpx.Timeout(settings.http_timeout_s)
    # Tests may swap in an httpx.MockTransport here
    transport = getattr(app.state, "http_transport", None)

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as supply_client, httpx.AsyncClient(
        timeout=timeout, transport=transport, headers={"User-Agent": "quiz-engine/0.1"}
    ) as lookup_client:
        controller = SessionController(
            make_loader(settings, supply_client),
            EnrichmentFetcher(lookup_client, settings.wikipedia_api_url),
            time_budget_s=settings.time_budget_s,
            max_tab_warnings=settings.max_tab_warnings,
            tick_seconds=settings.tick_seconds,
            question_count=settings.question_count,
        )
        app.state.controller = controller
        logger.info("question source: %s", settings.question_source)
        await controller.open()
        try:
            yield
        finally:
            await controller.close()
            app.state.controller = None


app = FastAPI(title="Quiz Session Engine", lifespan=lifespan)

# Allow calls from the quiz front-end dev servers
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(load_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def health_root():
    return {"ok": True}


app.include_router(session_router)  # /session/...
app.include_router(health_router)  # /health/...
