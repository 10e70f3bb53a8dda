from fastapi import FastAPI

from src.web.routers.alerts import router as alerts_router
from src.web.routers.committee import router as committee_router
from src.web.routers.discovery import router as discovery_router
from src.web.routers.enrichment import router as enrichment_router
from src.web.routers.opportunities import router as opportunities_router

def register_routers(app: FastAPI):
    """Register all routers with the application."""
    app.include_router(alerts_router)
    app.include_router(committee_router)
    app.include_router(discovery_router)
    app.include_router(enrichment_router)
    app.include_router(opportunities_router)
