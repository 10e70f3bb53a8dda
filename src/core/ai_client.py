import logging
from typing import Optional, Protocol

from anthropic import AsyncAnthropic
import anthropic
from openai import AsyncOpenAI
import openai

from src.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """A required collaborator is not configured. Raised at wiring time."""


class ResearchError(RuntimeError):
    """An external research/reasoning call failed."""


class RateLimitedError(ResearchError):
    """The external service answered HTTP 429."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class CompletionClient(Protocol):
    """Prompt in, free text out. The text is expected to hold one JSON object."""

    async def query(self, prompt: str, system_prompt: Optional[str] = None, deep: bool = False) -> str:
        ...


def _retry_after(exc) -> Optional[float]:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    try:
        return float(response.headers.get("retry-after"))
    except (TypeError, ValueError):
        return None


class ResearchClient:
    """
    Fast web research (Perplexity, OpenAI-compatible API).
    `deep=True` switches to the deep-research model and the long timeout.
    """

    DEFAULT_SYSTEM_PROMPT = "Return precise, current information. Answer with a single JSON object only."

    def __init__(self, config: Settings = default_settings, client: Optional[AsyncOpenAI] = None):
        if not config.perplexity_api_key and client is None:
            raise ConfigurationError("PERPLEXITY_API_KEY not set; research collaborator unavailable")
        self.config = config
        # Retries are owned by the batch orchestrator (backoff on 429)
        self.client = client or AsyncOpenAI(
            api_key=config.perplexity_api_key,
            base_url=config.perplexity_api_base,
            max_retries=0,
        )

    async def query(self, prompt: str, system_prompt: Optional[str] = None, deep: bool = False) -> str:
        model = self.config.perplexity_deep_model if deep else self.config.perplexity_model
        timeout = self.config.deep_research_timeout if deep else self.config.research_timeout
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt or self.DEFAULT_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.1,
                max_tokens=4000 if deep else 2000,
                timeout=timeout,
            )
        except openai.RateLimitError as e:
            logger.warning(f"Research API rate limited ({model})")
            raise RateLimitedError(f"Research API rate limited: {e}", retry_after=_retry_after(e)) from e
        except openai.APIError as e:
            logger.error(f"Research API error ({model}): {e}")
            raise ResearchError(f"Research API failed: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class ReasoningClient:
    """Slower validation/reasoning engine (Anthropic Messages API)."""

    DEFAULT_SYSTEM_PROMPT = (
        "You are an urban-renewal real estate analyst. Analyse the data carefully "
        "and answer with a single accurate JSON object."
    )

    def __init__(self, config: Settings = default_settings, client: Optional[AsyncAnthropic] = None):
        if not config.anthropic_api_key and client is None:
            raise ConfigurationError("ANTHROPIC_API_KEY not set; reasoning collaborator unavailable")
        self.config = config
        self.client = client or AsyncAnthropic(api_key=config.anthropic_api_key, max_retries=0)

    async def query(self, prompt: str, system_prompt: Optional[str] = None, deep: bool = False) -> str:
        timeout = self.config.deep_research_timeout if deep else self.config.research_timeout
        try:
            response = await self.client.messages.create(
                model=self.config.claude_model,
                max_tokens=4000 if deep else 2000,
                system=system_prompt or self.DEFAULT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout,
            )
        except anthropic.RateLimitError as e:
            logger.warning("Reasoning API rate limited")
            raise RateLimitedError(f"Reasoning API rate limited: {e}", retry_after=_retry_after(e)) from e
        except anthropic.APIError as e:
            logger.error(f"Reasoning API error: {e}")
            raise ResearchError(f"Reasoning API failed: {e}") from e

        parts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        return "".join(parts)
