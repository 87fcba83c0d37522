"""Multi-provider LLM content generation.

Providers are langchain chat models tried in priority order
(Google AI → DeepSeek → Azure OpenAI → Anthropic).  A provider is skipped
when it is not configured or has used up its per-minute request budget;
the first successful answer is cached for 24 hours under the caller's
cache key.  Only when every provider fails does the caller see an error.

Service pages are generated section by section in small concurrent
batches; blogs are generated one after another with a pause in between
to stay inside the providers' rate limits.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import AzureChatOpenAI, ChatOpenAI
from typing_extensions import TypedDict

from src import config
from src.prompts import (
    BLOG_TYPES,
    COMPREHENSIVE_SECTIONS,
    DENTAL_PROMPTS,
    WEBSITE_CONTEXT_TEMPLATE,
    get_blog_prompts,
    render_template,
)
from src.services.cache import LRUCache
from src.services.metrics import metrics
from src.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROVIDER_ORDER: tuple[str, ...] = ("google-ai", "deepseek", "azure-openai", "anthropic")
RATE_LIMITS: dict[str, int] = {"google-ai": 15, "deepseek": 20, "azure-openai": 20, "anthropic": 10}
DEFAULT_RATE_LIMIT = 10
CACHE_TTL_SECONDS = 24 * 60 * 60
_CK_DENTAL = "dental:"

SECTION_BATCH_SIZE = 3
BATCH_DELAY_SECONDS = 2.0
BLOG_SECTION_DELAY_SECONDS = 2.0
BLOG_DELAY_SECONDS = 3.0
FAQ_MAX_TOKENS = 3000
SECTION_MAX_TOKENS = 800
BLOG_FAQ_MAX_TOKENS = 2000


# ── Errors ───────────────────────────────────────────────────────────

class LLMServiceError(Exception):
    """Base class for content-generation failures."""


class NoProvidersAvailableError(LLMServiceError):
    pass


class ProviderUnavailableError(LLMServiceError):
    pass


class RateLimitExceededError(LLMServiceError):
    pass


class AllProvidersFailedError(LLMServiceError):
    pass


class UnknownContentTypeError(LLMServiceError):
    pass


class LLMResult(TypedDict, total=False):
    content: str
    provider: str
    model: str
    tokensUsed: int
    cached: bool


# ── Providers ────────────────────────────────────────────────────────

ModelFactory = Callable[[float, int], BaseChatModel]


@dataclass
class LLMProvider:
    key: str
    name: str
    model: str
    enabled: bool
    factory: ModelFactory


def _google_key_valid(key: str) -> bool:
    return key.startswith("AIzaSy")


def _deepseek_key_valid(key: str) -> bool:
    # Placeholder keys from the sample .env contain this run of digits
    return key.startswith("sk-") and "1234567890" not in key


def build_default_providers() -> dict[str, LLMProvider]:
    """Provider table built from the current configuration."""
    return {
        "google-ai": LLMProvider(
            key="google-ai",
            name="Google AI Studio",
            model=config.GOOGLE_AI_MODEL,
            enabled=_google_key_valid(config.GOOGLE_AI_API_KEY),
            factory=lambda temperature, max_tokens: ChatGoogleGenerativeAI(
                model=config.GOOGLE_AI_MODEL,
                google_api_key=config.GOOGLE_AI_API_KEY,
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        ),
        "deepseek": LLMProvider(
            key="deepseek",
            name="DeepSeek",
            model=config.DEEPSEEK_MODEL,
            enabled=_deepseek_key_valid(config.DEEPSEEK_API_KEY),
            factory=lambda temperature, max_tokens: ChatOpenAI(
                model=config.DEEPSEEK_MODEL,
                api_key=config.DEEPSEEK_API_KEY,
                base_url=config.DEEPSEEK_BASE_URL,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=60,
            ),
        ),
        "azure-openai": LLMProvider(
            key="azure-openai",
            name="Azure OpenAI",
            model=config.AZURE_OPENAI_API_DEPLOYMENT,
            enabled=bool(
                config.AZURE_OPENAI_API_KEY
                and config.AZURE_OPENAI_API_ENDPOINT
                and config.AZURE_OPENAI_API_DEPLOYMENT
            ),
            factory=lambda temperature, max_tokens: AzureChatOpenAI(
                azure_endpoint=config.AZURE_OPENAI_API_ENDPOINT,
                azure_deployment=config.AZURE_OPENAI_API_DEPLOYMENT,
                api_version=config.AZURE_OPENAI_API_VERSION,
                api_key=config.AZURE_OPENAI_API_KEY,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=60,
            ),
        ),
        "anthropic": LLMProvider(
            key="anthropic",
            name="Anthropic",
            model=config.ANTHROPIC_MODEL,
            enabled=bool(config.ANTHROPIC_API_KEY),
            factory=lambda temperature, max_tokens: ChatAnthropic(
                model=config.ANTHROPIC_MODEL,
                api_key=config.ANTHROPIC_API_KEY,
                temperature=temperature,
                max_tokens=max_tokens,
            ),
        ),
    }


def estimate_tokens(text: str) -> int:
    """Rough token count (four characters per token)."""
    return math.ceil(len(text or "") / 4)


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content)


# ── Service ──────────────────────────────────────────────────────────

class LLMService:
    """Provider chain with rate-limit bookkeeping and a response cache."""

    def __init__(
        self,
        providers: dict[str, LLMProvider] | None = None,
        *,
        cache: LRUCache | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._providers = providers if providers is not None else build_default_providers()
        self._cache = cache or LRUCache()
        self._rate_limiter = rate_limiter or RateLimiter(
            RATE_LIMITS, default_limit=DEFAULT_RATE_LIMIT,
        )
        enabled = self.enabled_providers()
        logger.info("LLM providers enabled: %s", ", ".join(enabled) or "none")

    # ── Provider bookkeeping ─────────────────────────────────────────

    def enabled_providers(self) -> list[str]:
        return [k for k in PROVIDER_ORDER if k in self._providers and self._providers[k].enabled] + [
            k for k, p in self._providers.items() if k not in PROVIDER_ORDER and p.enabled
        ]

    def is_rate_limited(self, provider: str) -> bool:
        return self._rate_limiter.is_limited(provider)

    async def call_provider(
        self, provider: str, prompt: str, *, temperature: float, max_tokens: int,
    ) -> LLMResult:
        """Send *prompt* to one provider.  Raises on any failure."""
        entry = self._providers.get(provider)
        if entry is None or not entry.enabled:
            raise ProviderUnavailableError(f"Provider {provider} is not available")
        if not self._rate_limiter.hit(provider):
            metrics.record_failure(provider, "llm_invoke", error_type="RateLimitExceededError")
            raise RateLimitExceededError(f"Rate limit exceeded for provider {provider}")

        model = entry.factory(temperature, max_tokens)
        with metrics.timed(provider, "llm_invoke"):
            response = await model.ainvoke([HumanMessage(content=prompt)])

        content = _message_text(response).strip()
        if not content:
            raise LLMServiceError(f"Provider {provider} returned an empty response")
        usage = getattr(response, "usage_metadata", None) or {}
        tokens = usage.get("total_tokens") or estimate_tokens(prompt) + estimate_tokens(content)
        return LLMResult(
            content=content, provider=provider, model=entry.model, tokensUsed=tokens, cached=False,
        )

    # ── Core generation ──────────────────────────────────────────────

    async def generate_content(
        self,
        prompt: str,
        *,
        provider: str = "auto",
        temperature: float = 0.7,
        max_tokens: int = 1000,
        variables: dict[str, Any] | None = None,
        cache_key: str | None = None,
    ) -> LLMResult:
        """Generate text with the first provider that succeeds."""
        if cache_key:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug("LLM cache hit: %s", cache_key)
                return LLMResult(**{**cached, "cached": True, "tokensUsed": 0})

        enabled = self.enabled_providers()
        if not enabled:
            raise NoProvidersAvailableError("No LLM providers are configured or available")
        if provider == "auto":
            candidates = enabled
        elif provider in enabled:
            candidates = [provider]
        else:
            raise ProviderUnavailableError(f"Provider {provider} is not available")

        rendered = render_template(prompt, variables)
        last_error: Exception | None = None
        for key in candidates:
            try:
                result = await self.call_provider(
                    key, rendered, temperature=temperature, max_tokens=max_tokens,
                )
            except Exception as exc:
                last_error = exc
                logger.warning("LLM provider %s failed: %s", key, exc)
                continue

            if cache_key:
                self._cache.put(cache_key, dict(result), ttl_seconds=CACHE_TTL_SECONDS)
            logger.info("Generated %d tokens with %s", result["tokensUsed"], key)
            return result

        raise AllProvidersFailedError(f"All LLM providers failed. Last error: {last_error}")

    async def generate_dental_content(
        self,
        service_name: str,
        content_type: str,
        *,
        keywords: list[str] | None = None,
        category: str | None = None,
        custom_prompt: str | None = None,
        website_id: str | None = None,
        website_name: str | None = None,
        doctor_name: str | None = None,
        practice_location: str | None = None,
        provider: str = "auto",
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> dict[str, Any]:
        """Generate one named section of dental service copy."""
        template = DENTAL_PROMPTS.get(content_type)
        if template is None:
            raise UnknownContentTypeError(f"Unknown dental content type: {content_type}")

        variables = {
            "serviceName": service_name,
            "keywords": ", ".join(keywords or [service_name.lower()]),
            "category": category or "general-dentistry",
            "websiteName": website_name or "Professional Dental Practice",
            "doctorName": doctor_name or "Our Expert Team",
            "practiceLocation": practice_location or "our clinic",
        }
        prompt = f"{template.system}\n\n{custom_prompt or template.user}"
        if website_id or website_name:
            prompt += WEBSITE_CONTEXT_TEMPLATE

        cache_key = (
            f"{_CK_DENTAL}{service_name.lower()}:{content_type}:{website_id or 'generic'}:"
            f"{json.dumps(variables, sort_keys=True)}"
        )
        result = await self.generate_content(
            prompt,
            provider=provider,
            temperature=temperature,
            max_tokens=max_tokens,
            variables=variables,
            cache_key=cache_key,
        )
        return {**result, "contentType": content_type, "serviceName": service_name}

    async def generate_comprehensive_content(
        self,
        service_name: str,
        *,
        category: str | None = None,
        keywords: list[str] | None = None,
        extra_sections: tuple[str, ...] = (),
        **website_context: Any,
    ) -> dict[str, Any]:
        """Generate every page section, three at a time.

        A failing section is recorded as ``{"error": ...}``; if no section
        succeeds the last provider error is raised.
        """
        sections = COMPREHENSIVE_SECTIONS + tuple(extra_sections)
        content: dict[str, dict[str, Any]] = {}
        last_error: LLMServiceError | None = None

        for start in range(0, len(sections), SECTION_BATCH_SIZE):
            batch = sections[start : start + SECTION_BATCH_SIZE]
            outcomes = await asyncio.gather(
                *(
                    self.generate_dental_content(
                        service_name,
                        section,
                        keywords=keywords,
                        category=category,
                        max_tokens=FAQ_MAX_TOKENS if section == "comprehensiveFAQ" else SECTION_MAX_TOKENS,
                        **website_context,
                    )
                    for section in batch
                ),
                return_exceptions=True,
            )
            for section, outcome in zip(batch, outcomes):
                if isinstance(outcome, LLMServiceError):
                    logger.warning("Section %s failed for %s: %s", section, service_name, outcome)
                    last_error = outcome
                    content[section] = {"error": str(outcome)}
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    content[section] = {
                        "content": outcome["content"],
                        "tokensUsed": outcome.get("tokensUsed", 0),
                        "provider": outcome.get("provider"),
                        "cached": outcome.get("cached", False),
                    }
            if start + SECTION_BATCH_SIZE < len(sections):
                await asyncio.sleep(BATCH_DELAY_SECONDS)

        generated = [s for s, v in content.items() if "error" not in v]
        if not generated and last_error is not None:
            raise last_error

        return {
            "success": True,
            "content": content,
            "generatedAt": datetime.now(UTC).isoformat(),
            "serviceName": service_name,
            "category": category,
            "keywords": keywords or [],
            "sectionsGenerated": len(generated),
            "totalSections": len(sections),
            "totalTokensUsed": sum(v.get("tokensUsed", 0) for v in content.values()),
            "comprehensive": True,
        }

    # ── Blogs ────────────────────────────────────────────────────────

    async def generate_single_blog_content(
        self,
        service_name: str,
        blog_type: str,
        *,
        website_name: str = "Our Practice",
        doctor_name: str = "Dr. Professional",
        keywords: list[str] | None = None,
    ) -> dict[str, Any]:
        """Generate the raw section texts for one blog article."""
        prompts = get_blog_prompts(
            service_name, blog_type,
            website_name=website_name, doctor_name=doctor_name, keywords=keywords,
        )
        sections: dict[str, dict[str, Any]] = {}
        for index, (section, prompt) in enumerate(prompts.items()):
            logger.info("Generating %s for %s blog (%s)", section, service_name, blog_type)
            try:
                result = await self.generate_content(
                    prompt,
                    temperature=0.7,
                    max_tokens=BLOG_FAQ_MAX_TOKENS if section == "faq" else SECTION_MAX_TOKENS,
                )
                sections[section] = {
                    "content": result["content"],
                    "tokensUsed": result.get("tokensUsed", 0),
                    "provider": result.get("provider"),
                }
            except LLMServiceError as exc:
                logger.warning("Blog section %s failed: %s", section, exc)
                sections[section] = {"error": str(exc)}
            if index < len(prompts) - 1:
                await asyncio.sleep(BLOG_SECTION_DELAY_SECONDS)

        generated = [k for k, v in sections.items() if "error" not in v]
        providers = {v["provider"] for v in sections.values() if v.get("provider")}
        return {
            "success": bool(generated),
            "sections": sections,
            "metadata": {
                "type": blog_type,
                "tokensUsed": sum(v.get("tokensUsed", 0) for v in sections.values()),
                "sectionsGenerated": len(generated),
                "totalSections": len(prompts),
                "provider": ",".join(sorted(providers)) or None,
            },
        }

    async def generate_service_blogs(
        self,
        service_name: str,
        *,
        keywords: list[str] | None = None,
        blog_count: int = len(BLOG_TYPES),
        website_name: str = "Our Practice",
        doctor_name: str = "Dr. Professional",
    ) -> dict[str, Any]:
        """Generate up to six blog articles, one at a time."""
        selected = BLOG_TYPES[: max(0, min(blog_count, len(BLOG_TYPES)))]
        blogs: list[dict[str, Any]] = []
        for index, (blog_type, title_template) in enumerate(selected):
            title = title_template.format(service=service_name)
            logger.info("Generating blog %d/%d: %s", index + 1, len(selected), title)
            outcome = await self.generate_single_blog_content(
                service_name, blog_type,
                website_name=website_name, doctor_name=doctor_name, keywords=keywords,
            )
            entry = {"type": blog_type, "title": title, **outcome}
            if not outcome["success"]:
                entry["error"] = "No blog sections could be generated"
            blogs.append(entry)
            if index < len(selected) - 1:
                await asyncio.sleep(BLOG_DELAY_SECONDS)

        successful = [b for b in blogs if b["success"]]
        return {
            "success": True,
            "blogs": blogs,
            "statistics": {
                "total": len(selected),
                "successful": len(successful),
                "failed": len(blogs) - len(successful),
                "totalTokensUsed": sum(b["metadata"]["tokensUsed"] for b in successful),
            },
        }

    # ── Introspection ────────────────────────────────────────────────

    def get_provider_status(self) -> dict[str, Any]:
        return {
            "providers": {
                key: {
                    "name": entry.name,
                    "model": entry.model,
                    "enabled": entry.enabled,
                    "rateLimit": self._rate_limiter.limit_for(key),
                    "requestsThisMinute": self._rate_limiter.count(key),
                    "rateLimited": self.is_rate_limited(key),
                }
                for key, entry in self._providers.items()
            },
            "enabledProviders": self.enabled_providers(),
            "cache": self.get_cache_stats(),
        }

    def get_cache_stats(self) -> dict[str, Any]:
        return self._cache.stats()

    def clear_cache(self, service_name: str | None = None) -> int:
        """Drop cached answers, only those for *service_name* when given.

        Returns the number of entries removed.
        """
        if service_name:
            removed = self._cache.invalidate_prefix(f"{_CK_DENTAL}{service_name.lower()}:")
            logger.info("LLM cache cleared for %s (%d entries)", service_name, removed)
            return removed
        removed = self._cache.entry_count
        self._cache.clear()
        logger.info("LLM response cache cleared")
        return removed


# ── Module-level singleton (thread-safe) ────────────────────────────
_service: LLMService | None = None
_service_lock = threading.Lock()


def get_llm_service() -> LLMService:
    """Return the process-wide LLMService, created on first use."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = LLMService()
    return _service
