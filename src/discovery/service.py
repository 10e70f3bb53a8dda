"""
Discovery of new urban-renewal complexes.

One research call per locality, with the names we already hold embedded as an
exclusion list. The research engine ignores that list often enough that every
candidate still goes through the fuzzy matcher, and the (name_key, city)
unique constraint is the final arbiter. Discovery only ever inserts; it never
touches a complex that already exists.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from src.alerts.alert_engine import AlertEngine
from src.complexes.service import existing_names, insert_complex
from src.core.ai_client import CompletionClient, ResearchError
from src.core.config import Settings, settings as default_settings
from src.core.data_types import DiscoveryCandidate
from src.core.json_extract import extract_json
from src.core.models import AlertType, AlertSeverity, EnrichmentMode, PlanningStatus
from src.core.utils import parse_date, to_int
from src.discovery.fuzzy_matcher import FuzzyMatcher, normalize_locality
from src.discovery.localities import region_of
from src.discovery.prompts import DISCOVERY_SYSTEM_PROMPT, build_discovery_prompt

logger = logging.getLogger(__name__)

DISCOVERY_SOURCE = "discovery-research"
# New complexes in these statuses get the full standard enrichment right away
ADVANCED_STATUSES = {
    PlanningStatus.DEPOSITED.value,
    PlanningStatus.APPROVED.value,
    PlanningStatus.PERMIT.value,
    PlanningStatus.CONSTRUCTION.value,
}


def _optional_text(value, limit: int = 500) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none"):
        return None
    return text[:limit]


def parse_candidates(data: Optional[Dict[str, Any]]) -> List[DiscoveryCandidate]:
    """Turn a discovery answer into candidates; entries without a name are dropped."""
    if not data:
        return []
    raw = data.get("discovered_complexes") or data.get("complexes") or []
    if not isinstance(raw, list):
        return []

    candidates = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = _optional_text(item.get("name"), 255)
        if not name:
            continue
        candidates.append(DiscoveryCandidate(
            name=name,
            addresses=_optional_text(item.get("addresses")),
            existing_units=to_int(item.get("existing_units")),
            planned_units=to_int(item.get("planned_units")),
            developer=_optional_text(item.get("developer"), 255),
            status=PlanningStatus.normalize(item.get("status"), default=PlanningStatus.DECLARED).value,
            plan_number=_optional_text(item.get("plan_number"), 100),
            declaration_date=parse_date(item.get("declaration_date")),
            source=_optional_text(item.get("source")),
            notes=_optional_text(item.get("notes"), 2000),
        ))
    return candidates


class DiscoveryService:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        research: CompletionClient,
        alert_engine: AlertEngine,
        orchestrator=None,
        config: Settings = default_settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.research = research
        self.alert_engine = alert_engine
        self.orchestrator = orchestrator
        self.config = config
        self.sleep = sleep
        self.matcher = FuzzyMatcher(self._existing_names)

    async def _existing_names(self, city: str) -> List[str]:
        async with self.session_factory() as session:
            return await existing_names(session, city)

    def _below_minimum(self, candidate: DiscoveryCandidate) -> bool:
        # Unknown unit counts are kept; enrichment fills them in later
        units = candidate.existing_units
        return units is not None and 0 < units < self.config.min_housing_units

    async def _insert(self, candidate: DiscoveryCandidate, city: str) -> Optional[int]:
        multiplier = None
        if candidate.existing_units and candidate.planned_units:
            multiplier = round(candidate.planned_units / candidate.existing_units, 2)

        async with self.session_factory() as session:
            return await insert_complex(
                session,
                candidate.name,
                city,
                region=region_of(city),
                addresses=candidate.addresses,
                existing_units=candidate.existing_units,
                planned_units=candidate.planned_units,
                multiplier=multiplier,
                developer=candidate.developer,
                status=candidate.status,
                plan_number=candidate.plan_number,
                declaration_date=candidate.declaration_date,
                research_summary=candidate.notes,
                discovery_source=DISCOVERY_SOURCE,
            )

    async def _announce(self, complex_id: int, candidate: DiscoveryCandidate, city: str):
        units = candidate.existing_units or "?"
        await self.alert_engine.raise_alert(
            complex_id,
            AlertType.NEW_ENTITY,
            title=f"מתחם חדש: {candidate.name} ({city})",
            message=(
                f"{units} יח\"ד קיימות, סטטוס: {candidate.status}"
                + (f", יזם: {candidate.developer}" if candidate.developer else "")
            ),
            severity=AlertSeverity.HIGH,
            data={
                "city": city,
                "existing_units": candidate.existing_units,
                "planned_units": candidate.planned_units,
                "status": candidate.status,
                "source": candidate.source,
            },
            dedup_window=None,
        )

    async def _schedule_enrichment(self, complex_id: int, candidate: DiscoveryCandidate):
        if self.orchestrator is None:
            return
        mode = EnrichmentMode.STANDARD if candidate.status in ADVANCED_STATUSES else EnrichmentMode.FAST
        try:
            await self.orchestrator.start_single(complex_id, mode)
        except Exception as e:
            # The complex is stored; it will be picked up by the next stale batch
            logger.warning(f"Could not schedule enrichment for complex {complex_id}: {e}")

    async def discover_locality(self, city: str) -> Dict[str, Any]:
        city = normalize_locality(city)
        detail = {"city": city, "found": 0, "added": 0, "existed": 0, "skipped": 0,
                  "new_ids": [], "error": None}

        names = await self._existing_names(city)
        prompt = build_discovery_prompt(city, self.config.min_housing_units, names)
        logger.info(f"[DISCOVERY] {city}: querying ({len(names)} known complexes)")

        text = await self.research.query(prompt, system_prompt=DISCOVERY_SYSTEM_PROMPT)
        data = extract_json(text)
        if data is None:
            logger.warning(f"[DISCOVERY] {city}: unparseable answer")
            detail["error"] = "unparseable answer"
            return detail

        candidates = parse_candidates(data)
        detail["found"] = len(candidates)

        for candidate in candidates:
            if self._below_minimum(candidate):
                detail["skipped"] += 1
                logger.debug(f"[DISCOVERY] Skipping {candidate.name}: {candidate.existing_units} units")
                continue

            if await self.matcher.exists(candidate.name, city):
                detail["existed"] += 1
                continue

            new_id = await self._insert(candidate, city)
            if new_id is None:
                detail["existed"] += 1
                continue

            detail["added"] += 1
            detail["new_ids"].append(new_id)
            logger.info(f"[DISCOVERY] NEW: {candidate.name} ({city}) - {candidate.existing_units or '?'} units")
            await self._announce(new_id, candidate, city)
            await self._schedule_enrichment(new_id, candidate)

        logger.info(
            f"[DISCOVERY] {city}: found {detail['found']}, added {detail['added']}, "
            f"existed {detail['existed']}, skipped {detail['skipped']}"
        )
        return detail

    async def discover(self, localities: List[str]) -> Dict[str, Any]:
        summary = {"scanned": 0, "found": 0, "added": 0, "existed": 0, "failed": 0, "details": []}

        for index, city in enumerate(localities):
            try:
                detail = await self.discover_locality(city)
            except ResearchError as e:
                logger.error(f"[DISCOVERY] {city}: research failed: {e}")
                detail = {"city": normalize_locality(city), "found": 0, "added": 0, "existed": 0,
                          "skipped": 0, "new_ids": [], "error": str(e)}
            except Exception as e:
                logger.error(f"[DISCOVERY] {city}: unexpected failure: {e}", exc_info=True)
                detail = {"city": normalize_locality(city), "found": 0, "added": 0, "existed": 0,
                          "skipped": 0, "new_ids": [], "error": str(e)}

            summary["scanned"] += 1
            summary["found"] += detail["found"]
            summary["added"] += detail["added"]
            summary["existed"] += detail["existed"]
            if detail["error"]:
                summary["failed"] += 1
            summary["details"].append(detail)

            if index < len(localities) - 1:
                await self.sleep(self.config.delay_between_localities)

        logger.info(
            f"[DISCOVERY] Done: {summary['scanned']} localities, {summary['added']} new, "
            f"{summary['existed']} existing, {summary['failed']} failed"
        )
        return summary
