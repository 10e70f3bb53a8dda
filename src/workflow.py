"""
Pipeline wiring.

Builds every component against one session factory and one pair of research
collaborators. Entry points (the API, the scheduler, the CLI) go through
build_pipeline(); nothing else constructs the collaborators.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from src.alerts.alert_engine import AlertEngine
from src.alerts.notification_channels import SlackClient
from src.committee.tracker import CommitteeTracker
from src.core.ai_client import CompletionClient, ReasoningClient, ResearchClient
from src.core.config import Settings, settings as default_settings
from src.discovery.service import DiscoveryService
from src.enrichment.enricher import Enricher
from src.enrichment.job_store import JobStore
from src.enrichment.orchestrator import BatchOrchestrator
from src.scoring.service import ScoringService

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    session_factory: async_sessionmaker
    alerts: AlertEngine
    scoring: ScoringService
    enricher: Enricher
    orchestrator: BatchOrchestrator
    committee: CommitteeTracker
    discovery: DiscoveryService


def build_pipeline(
    config: Settings = default_settings,
    session_factory: Optional[async_sessionmaker] = None,
    research: Optional[CompletionClient] = None,
    reasoning: Optional[CompletionClient] = None,
    job_store: Optional[JobStore] = None,
    notifier: Optional[SlackClient] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Pipeline:
    """
    Wire the pipeline. Raises ConfigurationError when a research collaborator
    is needed but its credentials are missing.
    """
    if session_factory is None:
        from src.core.database import async_session_factory
        session_factory = async_session_factory

    research = research or ResearchClient(config)
    reasoning = reasoning or ReasoningClient(config)
    if notifier is None and config.slack_webhook_url:
        notifier = SlackClient(config.slack_webhook_url)

    alerts = AlertEngine(session_factory, notifier=notifier)
    scoring = ScoringService(session_factory, alert_engine=alerts)
    enricher = Enricher(session_factory, research, reasoning, scoring, config=config, sleep=sleep)
    orchestrator = BatchOrchestrator(session_factory, enricher, store=job_store, config=config, sleep=sleep)
    committee = CommitteeTracker(session_factory, research, scoring, alerts, config=config, sleep=sleep)
    discovery = DiscoveryService(
        session_factory, research, alerts, orchestrator=orchestrator, config=config, sleep=sleep,
    )

    logger.info(
        f"Pipeline ready (environment: {config.environment}, "
        f"slack: {'on' if notifier and notifier.enabled else 'off'})"
    )
    return Pipeline(
        session_factory=session_factory,
        alerts=alerts,
        scoring=scoring,
        enricher=enricher,
        orchestrator=orchestrator,
        committee=committee,
        discovery=discovery,
    )
