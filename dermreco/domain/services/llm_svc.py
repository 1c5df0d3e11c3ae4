# dermreco/domain/services/llm_svc.py

from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse
import asyncio
import json
import logging
import re
from time import monotonic as _now

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from dermreco.domain.models.llm import LLMRankInput, LLMRankOutput, VisionAnalysis
from dermreco.domain.services.constants import (
    RERANK_MAX_CANDIDATES,
    RETRY_BASE_DELAY_S,
    RETRY_JITTER,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY_S,
)
from dermreco.domain.services.prompts import rerank_system_prompt, vision_prompt
from dermreco.utils.retry import RetryExhausted, exponential_backoff, retry_async

logger = logging.getLogger(__name__)

# =============================================================================
#                               ERRORS
# =============================================================================

class LLMError(Exception):
    """Base class for failures of an outbound LLM call."""


class RerankError(LLMError):
    pass


class VisionAnalysisError(LLMError):
    pass


def is_retryable_llm_error(exc: BaseException) -> bool:
    """Only rate limits (429) and provider-side 5xx are worth another attempt."""
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code == 429 or 500 <= exc.status_code < 600
    return False

# =============================================================================
#                               RESPONSE NORMALIZATION
# =============================================================================

# canonical field -> accepted aliases, checked in order
FIELD_ALIASES: Dict[str, tuple] = {
    "items": ("recommendations", "ranked_products", "products"),
    "confidence": ("overall_confidence", "confidence_score"),
}

# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

def _strip_fences(s: str) -> str:
    """Remove ``` or ```json fences the LLM might add."""
    return _CODE_FENCE_RE.sub("", s).strip()

def normalize_aliases(parsed: Dict[str, Any], aliases: Dict[str, tuple] = FIELD_ALIASES) -> Dict[str, Any]:
    """
    Copy the first present alias onto each missing canonical field.
    Returns a new dict; canonical fields already present always win.
    """
    out = dict(parsed)
    for canonical, names in aliases.items():
        if canonical in out:
            continue
        for name in names:
            if name in out:
                logger.debug(f"LLM response alias '{name}' mapped to '{canonical}'")
                out[canonical] = out[name]
                break
    return out

def _json_minify(obj: Dict[str, Any]) -> str:
    """Serialize to compact JSON (no spaces)."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))

def _parse_and_validate(
    content: Optional[str],
    model_cls: type[BaseModel],
    error_cls: type[LLMError],
    aliases: Optional[Dict[str, tuple]] = None,
):
    """
    Parse the completion text and validate it against `model_cls`.
    Empty / non-JSON / schema-mismatched content raises `error_cls` (never retried).
    """
    if not content:
        raise error_cls("OpenAI returned empty response")
    try:
        parsed = json.loads(_strip_fences(content))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM JSON. Raw response: {content[:500]}")
        raise error_cls("OpenAI response is not valid JSON") from e
    if not isinstance(parsed, dict):
        raise error_cls("OpenAI response is not a JSON object")

    logger.debug(f"Parsed LLM response keys: {list(parsed.keys())}")
    if aliases:
        parsed = normalize_aliases(parsed, aliases)

    try:
        return model_cls.model_validate(parsed)
    except ValidationError as e:
        logger.error(f"LLM schema validation failed: {e.errors()}")
        logger.debug(f"LLM response received: {json.dumps(parsed)[:1000]}")
        raise error_cls("OpenAI response does not match expected schema") from e

# =============================================================================
#                               SERVICE
# =============================================================================

class OpenAIService:
    """
    Outbound chat-completion calls (rerank + vision) over an injected AsyncOpenAI client.
    The client should be built with max_retries=0: retries are handled here.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        rerank_model: str = "gpt-4o-mini",
        vision_model: str = "gpt-4o-mini",
        timeout_s: float = 30,
        rerank_max_tokens: int = 1500,
        vision_max_tokens: int = 1500,
        max_attempts: int = RETRY_MAX_ATTEMPTS,
        backoff: Optional[Callable[[int], float]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.rerank_model = rerank_model
        self.vision_model = vision_model
        self.timeout_s = timeout_s
        self.rerank_max_tokens = rerank_max_tokens
        self.vision_max_tokens = vision_max_tokens
        self.max_attempts = max_attempts
        self.backoff = backoff or exponential_backoff(RETRY_BASE_DELAY_S, RETRY_MAX_DELAY_S, RETRY_JITTER)
        self.sleep = sleep

    async def _call_llm(self, *, messages: List[dict], model: str, max_tokens: int, temperature: float) -> Optional[str]:
        """
        Call the LLM once. Returns the raw content string (may be None/empty).
        """
        t0 = _now()
        resp = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=self.timeout_s,
            response_format={"type": "json_object"},
        )
        dt = _now() - t0
        # Best-effort usage logging
        u = getattr(resp, "usage", None)
        if u is not None:
            logger.info(
                f"LLM call model={getattr(resp, 'model', model)} duration={dt:.3f}s "
                f"tokens(prompt={getattr(u, 'prompt_tokens', None)}, "
                f"completion={getattr(u, 'completion_tokens', None)}, total={getattr(u, 'total_tokens', None)})"
            )
        else:
            logger.info(f"LLM call model={model} duration={dt:.3f}s (usage unavailable)")
        choices = getattr(resp, "choices", None) or []
        return choices[0].message.content if choices else None

    async def _call_with_retry(self, *, label: str, error_cls: type[LLMError], **kwargs) -> Optional[str]:
        try:
            return await retry_async(
                lambda: self._call_llm(**kwargs),
                is_retryable=is_retryable_llm_error,
                backoff=self.backoff,
                max_attempts=self.max_attempts,
                sleep=self.sleep,
                label=label,
            )
        except RetryExhausted as e:
            raise error_cls(f"OpenAI {label} API failed after {e.attempts} attempts") from e.last_error
        except openai.OpenAIError as e:
            raise error_cls(f"OpenAI {label} API error: {e}") from e

    async def rerank_products(self, rank_input: LLMRankInput) -> LLMRankOutput:
        """
        Ask the LLM to select and order 8-12 products out of the candidate pool.

        - Only the first RERANK_MAX_CANDIDATES candidates are sent, whatever the caller passed.
        - Deterministic generation (temperature 0, JSON object mode).
        - 429/5xx are retried with exponential backoff + jitter; anything else fails fast.
        - Response field aliases are normalized before strict validation.
        """
        limited = rank_input.model_copy(
            update={"candidate_products": rank_input.candidate_products[:RERANK_MAX_CANDIDATES]}
        )
        user_json = _json_minify(limited.model_dump(mode="json"))
        messages = [
            {"role": "system", "content": rerank_system_prompt()},
            {"role": "user", "content": user_json},
        ]
        logger.info(
            f"LLM rerank request size={(len(user_json)/1024):.1f}KB "
            f"candidates={len(limited.candidate_products)}"
        )
        logger.debug(f"LLM rerank user JSON preview: {user_json[:2000]}{'…' if len(user_json) > 2000 else ''}")

        content = await self._call_with_retry(
            label="rerank",
            error_cls=RerankError,
            messages=messages,
            model=self.rerank_model,
            max_tokens=self.rerank_max_tokens,
            temperature=0.0,
        )
        output: LLMRankOutput = _parse_and_validate(content, LLMRankOutput, RerankError, FIELD_ALIASES)
        logger.info(f"LLM rerank complete: items={len(output.items)} confidence={output.confidence}")
        return output

    async def call_vision(self, image_urls: List[str]) -> VisionAnalysis:
        """
        Analyze three face photos (front, left 45, right 45) and return detected traits.
        Same retry policy as reranking.
        """
        if len(image_urls) != 3:
            raise VisionAnalysisError(f"Expected exactly 3 image URLs, received {len(image_urls)}")
        for url in image_urls:
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise VisionAnalysisError(f"Invalid image URL: {url[:50]}...")

        content_parts: List[dict] = [{"type": "text", "text": vision_prompt(self.vision_model)}]
        content_parts += [
            {"type": "image_url", "image_url": {"url": url, "detail": "high"}}
            for url in image_urls
        ]
        logger.info(f"LLM vision request model={self.vision_model}")

        content = await self._call_with_retry(
            label="vision",
            error_cls=VisionAnalysisError,
            messages=[{"role": "user", "content": content_parts}],
            model=self.vision_model,
            max_tokens=self.vision_max_tokens,
            temperature=0.3,
        )
        analysis: VisionAnalysis = _parse_and_validate(content, VisionAnalysis, VisionAnalysisError)
        logger.info(
            f"LLM vision complete: skinType={analysis.skinType} confidence={analysis.confidence} "
            f"traits={len(analysis.traits)}"
        )
        return analysis
