"""
FastAPI dependencies for the long-lived services.

Services are built once in the app lifespan (see main.py) and stored on
app.state; routes receive them through these functions so tests can swap
them with app.dependency_overrides.
"""

from fastapi import Request

from catalog.catalog import CountryCatalog
from fetchers.advisory_fetcher import AdvisoryFetcher
from workers.orchestrator import BulkIngestionOrchestrator
from workers.scheduler import RefreshScheduler


def get_orchestrator(request: Request) -> BulkIngestionOrchestrator:
    return request.app.state.orchestrator


def get_scheduler(request: Request) -> RefreshScheduler:
    return request.app.state.scheduler


def get_fetcher(request: Request) -> AdvisoryFetcher:
    return request.app.state.fetcher


def get_catalog(request: Request) -> CountryCatalog:
    return request.app.state.catalog
