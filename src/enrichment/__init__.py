"""Enrichment: single-complex research and the batch job orchestrator."""
from src.enrichment.enricher import Enricher, ComplexNotFoundError
from src.enrichment.job_store import BatchJob, InMemoryJobStore, SqlJobStore
from src.enrichment.orchestrator import BatchOrchestrator, BatchSelection

__all__ = [
    "Enricher",
    "ComplexNotFoundError",
    "BatchJob",
    "InMemoryJobStore",
    "SqlJobStore",
    "BatchOrchestrator",
    "BatchSelection",
]
