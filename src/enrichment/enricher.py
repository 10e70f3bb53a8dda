"""
Single-complex enrichment.

Each mode is a fixed sequence of research steps. Every step is one external
call followed by the inter-call delay; its JSON answer is normalized into a
whitelisted field patch. Patches are merged in step order (later validation
steps override earlier research) and applied in one write, then the complex
is re-scored.

    fast      overview (research) + developer check (reasoning)
    standard  overview + pricing + signatures (research) + analysis (reasoning)
    full      standard + developer profile (deep research)

A rate-limited call is retried on its own with exponential backoff, so the
steps already answered are not asked again; once the retries are spent the
rate limit propagates and the item fails. Other collaborator failures and
unparseable answers only drop that step.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from src.complexes.database import ComplexModel
from src.complexes.service import apply_patch, get_complex
from src.core.ai_client import CompletionClient, RateLimitedError, ResearchError
from src.core.config import Settings, settings as default_settings
from src.core.data_types import EnrichmentResult
from src.core.json_extract import extract_json
from src.core.models import (
    EnrichmentMode, PlanningStatus, DeveloperStrength, RiskLevel, Sentiment,
)
from src.core.utils import to_float, to_int, utcnow
from src.enrichment import prompts
from src.scoring.service import ScoringService

logger = logging.getLogger(__name__)

MIN_PRICE_SQM = 5000
MAX_PRICE_SQM = 150000
LATE_STATUSES = {PlanningStatus.PERMIT.value, PlanningStatus.CONSTRUCTION.value}
# Filled only when the complex has no value yet
FILL_ONLY_FIELDS = {"developer", "existing_units", "planned_units", "num_buildings", "plan_number", "addresses"}
SIGNATURE_SOURCES = {
    "protocol": "official",
    "press": "press",
    "social": "social",
    "developer": "developer",
}


class ComplexNotFoundError(LookupError):
    pass


def _enum_value(enum_cls, raw) -> Optional[str]:
    member = enum_cls.normalize(raw)
    return None if member.value == "unknown" else member.value


def _bool(raw) -> Optional[bool]:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
        return raw.strip().lower() == "true"
    return None


def _percent(raw) -> Optional[float]:
    value = to_float(raw)
    if value is None or not 0 <= value <= 100:
        return None
    return value


def _price(raw) -> Optional[float]:
    value = to_float(raw)
    if value is None or not MIN_PRICE_SQM < value < MAX_PRICE_SQM:
        return None
    return value


def _positive_int(raw) -> Optional[int]:
    value = to_int(raw)
    return value if value and value > 0 else None


def _text(limit: int):
    def convert(raw) -> Optional[str]:
        if raw is None:
            return None
        text = str(raw).strip()
        if not text or text.lower() == "null":
            return None
        return text[:limit]
    return convert


# Research key -> (column, normalizer)
FIELD_MAP: Dict[str, Tuple[str, Callable[[Any], Any]]] = {
    "status": ("status", lambda v: _enum_value(PlanningStatus, v)),
    "plan_stage": ("plan_stage", _text(255)),
    "developer": ("developer", _text(255)),
    "developer_strength": ("developer_strength", lambda v: _enum_value(DeveloperStrength, v)),
    "strength": ("developer_strength", lambda v: _enum_value(DeveloperStrength, v)),
    "developer_risk_level": ("developer_risk_level", lambda v: _enum_value(RiskLevel, v)),
    "risk_level": ("developer_risk_level", lambda v: _enum_value(RiskLevel, v)),
    "sentiment": ("news_sentiment", lambda v: _enum_value(Sentiment, v)),
    "news_sentiment": ("news_sentiment", lambda v: _enum_value(Sentiment, v)),
    "has_negative_news": ("has_negative_news", _bool),
    "has_enforcement_cases": ("has_enforcement_cases", _bool),
    "is_receivership": ("is_receivership", _bool),
    "has_bankruptcy_proceedings": ("has_bankruptcy_proceedings", _bool),
    "existing_units": ("existing_units", _positive_int),
    "planned_units": ("planned_units", _positive_int),
    "num_buildings": ("num_buildings", _positive_int),
    "signature_percent": ("signature_percent", _percent),
    "price_per_sqm_area": ("accurate_price_sqm", _price),
    "price_per_sqm": ("accurate_price_sqm", _price),
    "price_per_sqm_city_avg": ("city_avg_price_sqm", _price),
    "price_trend": ("price_trend", _text(20)),
    "transaction_count": ("transaction_count", _positive_int),
    "news": ("research_summary", _text(2000)),
    "summary": ("research_summary", _text(2000)),
}


def normalize_patch(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map a research answer onto complex columns, dropping unknown keys and invalid values."""
    patch = {}
    for key, raw in data.items():
        if key not in FIELD_MAP:
            continue
        column, convert = FIELD_MAP[key]
        value = convert(raw)
        if value is not None:
            patch[column] = value
    return patch


def derived_fields(complex_: ComplexModel, patch: Dict[str, Any]) -> Dict[str, Any]:
    """Multiplier and actual premium, computed from the merged values."""
    derived = {}
    existing = patch.get("existing_units") or complex_.existing_units
    planned = patch.get("planned_units") or complex_.planned_units
    if existing and planned:
        derived["multiplier"] = round(planned / existing, 2)

    price = patch.get("accurate_price_sqm") or complex_.accurate_price_sqm
    city_avg = patch.get("city_avg_price_sqm") or complex_.city_avg_price_sqm
    if price and city_avg and ("accurate_price_sqm" in patch or "city_avg_price_sqm" in patch):
        premium = round((price - city_avg) / city_avg * 100, 1)
        if -80 <= premium <= 300:
            derived["actual_premium"] = premium
    return derived


class Enricher:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        research: CompletionClient,
        reasoning: CompletionClient,
        scoring: ScoringService,
        config: Settings = default_settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.research = research
        self.reasoning = reasoning
        self.scoring = scoring
        self.config = config
        self.sleep = sleep

    async def _query(self, step: str, client: CompletionClient, prompt: str, result: EnrichmentResult, **kwargs) -> str:
        """A 429 retries only this call, with exponential backoff, until the retry budget is spent."""
        attempt = 0
        while True:
            try:
                return await client.query(prompt, **kwargs)
            except RateLimitedError as e:
                attempt += 1
                if attempt > self.config.rate_limit_max_retries:
                    raise
                backoff = self.config.rate_limit_backoff_base * (2 ** (attempt - 1))
                backoff = max(backoff, e.retry_after or 0)
                logger.warning(
                    f"[ENRICH] {result.name}: {step} rate limited, "
                    f"retry {attempt}/{self.config.rate_limit_max_retries} in {backoff:.1f}s"
                )
                await self.sleep(backoff)

    async def _ask(
        self,
        step: str,
        client: CompletionClient,
        prompt: str,
        result: EnrichmentResult,
        system_prompt: Optional[str] = None,
        deep: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        One external call plus the mandatory delay. Returns the parsed object,
        or None on a soft failure (recorded as a warning on the result).
        """
        try:
            text = await self._query(step, client, prompt, result, system_prompt=system_prompt, deep=deep)
        except RateLimitedError:
            raise
        except ResearchError as e:
            result.warnings.append(f"{step}: {e}")
            logger.warning(f"[ENRICH] {result.name}: {step} failed: {e}")
            return None
        finally:
            await self.sleep(self.config.delay_between_ai_calls)

        data = extract_json(text)
        if data is None:
            result.warnings.append(f"{step}: unparseable answer")
            return None
        result.sources.append(step)
        return data

    async def _overview(self, c: ComplexModel, result: EnrichmentResult) -> Dict[str, Any]:
        data = await self._ask(
            "overview", self.research,
            prompts.build_overview_prompt(c.name, c.city, c.addresses, c.plan_number),
            result, system_prompt=prompts.RESEARCH_SYSTEM_PROMPT,
        )
        return normalize_patch(data) if data else {}

    async def _developer_check(self, c: ComplexModel, developer: Optional[str], result: EnrichmentResult) -> Dict[str, Any]:
        if not developer:
            return {}
        data = await self._ask(
            "developer_check", self.reasoning,
            prompts.build_developer_check_prompt(developer), result,
        )
        if not data:
            return {}
        return {k: v for k, v in normalize_patch(data).items()
                if k in ("developer_risk_level", "developer_strength")}

    async def _pricing(self, c: ComplexModel, result: EnrichmentResult) -> Dict[str, Any]:
        if c.accurate_price_sqm and c.city_avg_price_sqm and c.actual_premium is not None:
            return {}
        data = await self._ask(
            "pricing", self.research,
            prompts.build_pricing_prompt(c.city, c.addresses, c.neighborhood),
            result, system_prompt=prompts.PRICING_SYSTEM_PROMPT,
        )
        if not data:
            return {}
        return {k: v for k, v in normalize_patch(data).items()
                if k in ("accurate_price_sqm", "city_avg_price_sqm", "price_trend", "transaction_count")}

    async def _signatures(self, c: ComplexModel, result: EnrichmentResult) -> Dict[str, Any]:
        if c.signature_percent is not None:
            return {}
        if c.status in LATE_STATUSES:
            return {"signature_percent": 100.0, "signature_source": "inferred_from_status"}
        data = await self._ask(
            "signatures", self.research,
            prompts.build_signature_prompt(c.name, c.city, c.addresses, c.plan_number, c.developer),
            result, system_prompt=prompts.RESEARCH_SYSTEM_PROMPT,
        )
        if not data:
            return {}
        percent = _percent(data.get("signature_percent"))
        if percent is None:
            return {}
        return {
            "signature_percent": percent,
            "signature_source": SIGNATURE_SOURCES.get(str(data.get("source_type") or ""), "press"),
        }

    async def _analysis(self, c: ComplexModel, research: Dict[str, Any], result: EnrichmentResult) -> Dict[str, Any]:
        current = {
            "status": c.status,
            "plan_stage": c.plan_stage,
            "developer": c.developer,
            "developer_strength": c.developer_strength,
            "developer_risk_level": c.developer_risk_level,
            "signature_percent": c.signature_percent,
            "news_sentiment": c.news_sentiment,
        }
        data = await self._ask(
            "analysis", self.reasoning,
            prompts.build_analysis_prompt(c.name, c.city, current, research),
            result, system_prompt=prompts.ANALYST_SYSTEM_PROMPT,
        )
        return normalize_patch(data) if data else {}

    async def _developer_profile(self, developer: Optional[str], result: EnrichmentResult) -> Dict[str, Any]:
        if not developer:
            return {}
        data = await self._ask(
            "developer_profile", self.research,
            prompts.build_developer_profile_prompt(developer),
            result, system_prompt=prompts.RESEARCH_SYSTEM_PROMPT, deep=True,
        )
        if not data:
            return {}
        return {k: v for k, v in normalize_patch(data).items()
                if k in ("developer_risk_level", "developer_strength", "has_enforcement_cases",
                         "is_receivership", "has_bankruptcy_proceedings")}

    async def collect(self, c: ComplexModel, mode: EnrichmentMode, result: EnrichmentResult) -> Dict[str, Any]:
        """Run the mode's steps and merge their patches in order."""
        patch: Dict[str, Any] = {}
        patch.update(await self._overview(c, result))
        developer = c.developer or patch.get("developer")

        if mode == EnrichmentMode.FAST:
            patch.update(await self._developer_check(c, developer, result))
            return patch

        patch.update(await self._pricing(c, result))
        patch.update(await self._signatures(c, result))
        patch.update(await self._analysis(c, dict(patch), result))

        if mode == EnrichmentMode.FULL:
            patch.update(await self._developer_profile(developer, result))
        return patch

    async def enrich_complex(self, complex_id: int, mode=EnrichmentMode.STANDARD) -> EnrichmentResult:
        mode = EnrichmentMode.normalize(mode.value if isinstance(mode, EnrichmentMode) else mode)
        started = time.monotonic()

        async with self.session_factory() as session:
            complex_ = await get_complex(session, complex_id)
        if complex_ is None:
            raise ComplexNotFoundError(f"Complex {complex_id} not found")

        result = EnrichmentResult(complex_id=complex_id, name=complex_.name, city=complex_.city, mode=mode.value)
        logger.info(f"[ENRICH] {complex_.name} ({complex_.city}) [mode: {mode.value}]")

        patch = await self.collect(complex_, mode, result)
        if not result.sources and result.warnings and not patch:
            # Every call failed; the item as a whole failed
            raise ResearchError(f"All enrichment calls failed for {complex_.name}: {'; '.join(result.warnings)}")

        async with self.session_factory() as session:
            complex_ = await get_complex(session, complex_id)
            if complex_ is None:
                raise ComplexNotFoundError(f"Complex {complex_id} disappeared during enrichment")
            for key in FILL_ONLY_FIELDS:
                if key in patch and getattr(complex_, key):
                    patch.pop(key)
            patch.update(derived_fields(complex_, patch))
            result.updated_fields = apply_patch(complex_, patch)
            complex_.last_enriched_at = utcnow()
            await session.commit()

        await self.scoring.rescore_complex(complex_id)

        if result.updated_fields:
            result.status = "partial" if result.warnings else "success"
        else:
            result.status = "partial" if result.warnings else "no_data"
        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"[ENRICH] {result.name}: {result.fields_updated} fields in "
            f"{result.duration_ms / 1000:.1f}s [{mode.value}] ({result.status})"
        )
        return result
