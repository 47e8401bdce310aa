import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router as api_router
from catalog.catalog import CountryCatalog
from config.settings import settings
from db.job_store import JobStore
from db.session import engine, init_db, make_session_factory
from fetchers.advisory_fetcher import HttpAdvisoryFetcher
from fetchers.ai_enhancer import AIEnhancer
from utils.timestamps import utc_now
from workers.orchestrator import BulkIngestionOrchestrator
from workers.scheduler import RefreshScheduler
from workers.types import RefreshConfig

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the long-lived services, resume orphaned jobs, start the scheduler.

    On shutdown, detached job tasks are cancelled without touching job
    status, so the next startup resumes them.
    """
    if settings.AUTO_CREATE_TABLES:
        init_db(engine)

    session_factory = make_session_factory(engine)
    catalog = CountryCatalog()

    enhancer = None
    if settings.is_ai_enabled():
        enhancer = AIEnhancer(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.AI_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
            http_timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    fetcher = HttpAdvisoryFetcher(
        session_factory,
        catalog,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        enhancer=enhancer,
    )
    orchestrator = BulkIngestionOrchestrator(
        JobStore(session_factory),
        fetcher,
        catalog,
        RefreshConfig.from_settings(settings),
    )
    scheduler = RefreshScheduler.from_settings(settings, orchestrator, fetcher)

    app.state.catalog = catalog
    app.state.fetcher = fetcher
    app.state.orchestrator = orchestrator
    app.state.scheduler = scheduler

    resumed = await orchestrator.start()
    if resumed:
        logger.info(f"Resumed {len(resumed)} interrupted refresh jobs")
    orchestrator.purge_expired_jobs()

    if settings.SCHEDULER_ENABLED:
        await scheduler.start()

    try:
        yield
    finally:
        await scheduler.stop()
        await orchestrator.stop()


app = FastAPI(
    title="Global Travel Advisor API",
    description="Aggregated travel advisories with durable bulk refresh jobs",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api_router, prefix="/api", tags=["API"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat().replace("+00:00", "Z")
    }
