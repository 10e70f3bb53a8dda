from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
import contextlib
import logging

from src.core.ai_client import ConfigurationError
from src.core.config import settings
from src.core.database import engine, async_session_factory, Base
from src.enrichment.job_store import SqlJobStore
from src.web.dependencies import get_current_username
from src.workflow import build_pipeline

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Urban Renewal Opportunity Pipeline",
    description="Discovery, scoring, committee tracking and enrichment of urban-renewal complexes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Opportunities", "description": "Ranked complexes, scores and listing prices"},
        {"name": "Enrichment", "description": "Batch and single-complex enrichment jobs"},
        {"name": "Discovery", "description": "Locality scans for new complexes"},
        {"name": "Committee", "description": "Planning committee approval tracking"},
        {"name": "Alerts", "description": "Alert feed"},
    ]
)

from src.web.routers import register_routers
from src.web.scheduler import start_scheduler, stop_scheduler

register_routers(app)

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Database Tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        app.state.pipeline = build_pipeline(settings, job_store=SqlJobStore(async_session_factory))
    except ConfigurationError as e:
        # Pipeline routes answer 503 until the keys are set
        logger.error(f"Pipeline not configured: {e}")
        app.state.pipeline = None

    if app.state.pipeline is not None:
        # Batches cut short by the last shutdown pick up where they stopped
        await app.state.pipeline.orchestrator.resume_interrupted()
        start_scheduler(app.state.pipeline)

    yield

    await stop_scheduler()
    if app.state.pipeline is not None:
        await app.state.pipeline.orchestrator.shutdown()

app.router.lifespan_context = lifespan


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", include_in_schema=False)
async def health(username: str = Depends(get_current_username)):
    return {"status": "ok", "pipeline": getattr(app.state, "pipeline", None) is not None}
