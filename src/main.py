from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes_http import router as http_router
from api.routes_ws import router as ws_router
from bodies.catalog import catalog_from_settings
from bodies.processing import preprocess
from config import settings
from mechanics.orbits import positions_at
from phenomena.catalog import events_from_settings
from precompute.store import EventStore

logger = logging.getLogger("almanac")
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load catalogs, warm the position kernels, open the event store."""
    stars, planets = catalog_from_settings()
    system = preprocess(stars, planets, settings.hours_per_day)
    events = events_from_settings()

    logger.info("Compiling position kernels ...")
    positions_at(0.0, system)

    store = EventStore(settings.precomputed_events_path)
    store.load_all()
    logger.info("Almanac ready — %d bodies, %d events, %d precomputed occurrences",
                len(system), len(events), len(store))

    app.state.catalog = (*stars, *planets)
    app.state.system = system
    app.state.events = events
    app.state.store = store
    yield
    logger.info("Shutting down almanac")


app = FastAPI(
    title="Sebaka Almanac — Celestial Event Search",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(http_router)
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.reload)
