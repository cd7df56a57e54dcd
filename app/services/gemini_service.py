"""
Pairwise — GeminiService: AI Analysis Bridge

Produces a structured comparative judgment for a design pair from the two
image URLs and the pair's descriptive text.  It orchestrates:

- Image retrieval over HTTP (both variations, fetched concurrently)
- Multi-model fallback chains with exponential-backoff retry
- Robust JSON response parsing with multiple fallback strategies
- Normalisation into the ``AIAnalysis`` shape
  (recommendedDesign A|B|tie, confidence 0-100, strengths, weaknesses, ...)

A single-image "insights" call returns free text for one design.

Every failure leaves this module as ``AnalysisUnavailable``; callers treat
it as non-fatal so that voting never depends on the bridge.

Model fallback chain:
    GEMINI_MODEL_PRIMARY -> GEMINI_MODEL_FALLBACK
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import google.generativeai as genai
import httpx
import structlog
from json_repair import repair_json
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import get_settings
from app.schemas.analysis import AIAnalysis
from app.services.errors import AnalysisUnavailable, ValidationFailed

logger = structlog.get_logger("pairwise.gemini_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

_DEFAULT_IMAGE_MIME = "image/jpeg"
_MAX_RETRY_ATTEMPTS = 4

_RECOMMENDATION_ALIASES: dict[str, str] = {
    "a": "A",
    "design a": "A",
    "variation a": "A",
    "b": "B",
    "design b": "B",
    "variation b": "B",
    "tie": "tie",
    "draw": "tie",
    "equal": "tie",
}

PAIR_ANALYSIS_PROMPT = """
You are an expert UI/UX designer and design analyst. Analyze these two design variations and provide a comprehensive comparison.
The first image is Design A, the second image is Design B.

Design Context:
- Title: {title}
- Description: {description}

Please analyze both designs considering:

1. **Visual Hierarchy**: Which design has better information architecture and visual flow?
2. **User Experience**: Which design would be more intuitive and user-friendly?
3. **Aesthetics**: Which design is more visually appealing and modern?
4. **Accessibility**: Which design is more accessible to users with different abilities?
5. **Brand Consistency**: Which design better represents a professional brand?
6. **Mobile Responsiveness**: Which design would work better across different screen sizes?
7. **Performance**: Which design would load faster and be more efficient?

Provide your analysis in the following JSON format:
{{
  "recommendedDesign": "A" or "B" or "tie",
  "confidence": 0-100,
  "reasoning": "Detailed explanation of your recommendation",
  "strengths": {{
    "designA": ["strength1", "strength2"],
    "designB": ["strength1", "strength2"]
  }},
  "weaknesses": {{
    "designA": ["weakness1", "weakness2"],
    "designB": ["weakness1", "weakness2"]
  }},
  "designPrinciples": ["principle1", "principle2"],
  "userExperience": "Analysis of user experience",
  "visualHierarchy": "Analysis of visual hierarchy",
  "accessibility": "Analysis of accessibility"
}}

Be objective, thorough, and provide actionable insights.
"""

SINGLE_INSIGHTS_PROMPT = """
You are a design expert. Analyze this design and provide insights about:

1. Visual design principles used
2. Color scheme and typography choices
3. Layout and spacing
4. User experience considerations
5. Potential improvements

Context: {context}

Provide a concise, professional analysis with specific observations and recommendations.
"""


def _is_retryable_api_error(exc: BaseException) -> bool:
    """Return True if the exception signals a retryable Gemini API error.

    We retry on HTTP 429 (rate limit) and 500/503 (server-side transient)
    errors.  The google-generativeai SDK wraps these as various exception
    types, so we inspect both the type name and string representation.
    """
    exc_str = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    if "429" in exc_str or "resource_exhausted" in exc_str:
        return True
    if "500" in exc_str or "503" in exc_str or "internal" in exc_str:
        return True
    if "resourceexhausted" in exc_type or "serviceunavailable" in exc_type:
        return True

    return False


class GeminiService:
    """Gemini-backed comparative design analysis."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        """Configure the Gemini client and model fallback chain.

        Parameters
        ----------
        http_client:
            Optional shared ``httpx.AsyncClient`` used to fetch design
            images.  When ``None`` a short-lived client is opened per call.
        """
        settings = get_settings()
        self._enabled = settings.ai_enabled
        self._http_client = http_client
        self._image_timeout = settings.IMAGE_FETCH_TIMEOUT_SECONDS

        if self._enabled:
            genai.configure(api_key=settings.GEMINI_API_KEY)

        self._model_chain: list[str] = [
            m for m in (settings.GEMINI_MODEL_PRIMARY, settings.GEMINI_MODEL_FALLBACK) if m
        ]

        self._generation_config = genai.GenerationConfig(
            max_output_tokens=2048,
            response_mime_type="application/json",
        )

        logger.info(
            "gemini_service_initialised",
            enabled=self._enabled,
            model_chain=self._model_chain,
        )

    # ══════════════════════════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════════════════════════

    async def analyze_design_pair(
        self,
        design_a_url: str | None,
        design_b_url: str | None,
        title: str,
        description: str | None = None,
    ) -> tuple[AIAnalysis, str]:
        """Compare two design images.

        Returns
        -------
        tuple
            ``(analysis, model_used)``.

        Raises
        ------
        ValidationFailed
            Either URL is missing; the bridge is not invoked.
        AnalysisUnavailable
            The bridge is unconfigured, an image cannot be fetched, or
            every model in the chain failed.
        """
        if not design_a_url or not design_b_url:
            raise ValidationFailed("Both design images are required for analysis.")

        self._ensure_enabled()
        log = logger.bind(title=title)
        log.info("analyze_design_pair_start")

        image_a, image_b = await asyncio.gather(
            self._fetch_image(design_a_url),
            self._fetch_image(design_b_url),
        )

        prompt = PAIR_ANALYSIS_PROMPT.format(
            title=title,
            description=description or "No description provided",
        )
        contents = [prompt, image_a, image_b]

        last_exception: Exception | None = None

        for model_name in self._model_chain:
            try:
                text = await self._call_gemini_with_retry(model_name, contents)
                analysis = self._to_analysis(self._parse_json_response(text))
            except Exception as exc:
                last_exception = exc
                log.warning("model_fallback", failed_model=model_name, error=str(exc))
                continue

            log.info(
                "analyze_design_pair_complete",
                model=model_name,
                recommended=analysis.recommended_design,
                confidence=analysis.confidence,
            )
            return analysis, model_name

        log.error("analyze_design_pair_failed", error=str(last_exception))
        raise AnalysisUnavailable("Failed to analyze designs with AI.") from last_exception

    async def get_design_insights(
        self,
        design_url: str | None,
        context: str | None = None,
    ) -> str:
        """Free-text insights for a single design image."""
        if not design_url:
            raise ValidationFailed("A design image is required for insights.")

        self._ensure_enabled()
        image = await self._fetch_image(design_url)
        prompt = SINGLE_INSIGHTS_PROMPT.format(context=context or "General design analysis")

        last_exception: Exception | None = None
        for model_name in self._model_chain:
            try:
                return await self._call_gemini_with_retry(
                    model_name, [prompt, image], as_json=False
                )
            except Exception as exc:
                last_exception = exc
                logger.warning("model_fallback", failed_model=model_name, error=str(exc))

        raise AnalysisUnavailable("Failed to get design insights.") from last_exception

    # ══════════════════════════════════════════════════════════════════
    # Transport
    # ══════════════════════════════════════════════════════════════════

    def _ensure_enabled(self) -> None:
        if not self._enabled or not self._model_chain:
            raise AnalysisUnavailable("AI analysis is not configured.")

    async def _fetch_image(self, url: str) -> dict[str, Any]:
        """Download an image and wrap it as an inline Gemini blob."""
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=self._image_timeout)
            else:
                async with httpx.AsyncClient(timeout=self._image_timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("image_fetch_failed", url=url, error=str(exc))
            raise AnalysisUnavailable("Failed to fetch image for AI analysis.") from exc

        mime = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime.startswith("image/"):
            mime = _DEFAULT_IMAGE_MIME
        return {"mime_type": mime, "data": response.content}

    async def _call_gemini_with_retry(
        self,
        model_name: str,
        contents: list[Any],
        as_json: bool = True,
    ) -> str:
        """Call a specific Gemini model with tenacity retry on transient
        errors.

        Uses exponential backoff: 1s initial wait, 2x multiplier, 30s
        max wait, up to ``_MAX_RETRY_ATTEMPTS`` attempts.
        """
        model = genai.GenerativeModel(model_name)
        generation_config = self._generation_config if as_json else None

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_retryable_api_error),
                stop=stop_after_attempt(_MAX_RETRY_ATTEMPTS),
                wait=wait_exponential(multiplier=1, min=1, max=30, exp_base=2),
                reraise=True,
            ):
                with attempt:
                    logger.debug(
                        "gemini_call_attempt",
                        model=model_name,
                        attempt_number=attempt.retry_state.attempt_number,
                    )
                    response = await model.generate_content_async(
                        contents,
                        generation_config=generation_config,
                    )

                    if not response.candidates:
                        raise ValueError(
                            f"Gemini returned no candidates for model "
                            f"{model_name}. Prompt feedback: "
                            f"{response.prompt_feedback}"
                        )

                    text = response.text
                    if not text or not text.strip():
                        raise ValueError(
                            f"Gemini returned empty text for model {model_name}"
                        )

                    return text

        except RetryError as retry_err:
            logger.error(
                "gemini_retry_exhausted",
                model=model_name,
                attempts=_MAX_RETRY_ATTEMPTS,
                last_error=str(retry_err.last_attempt.exception()),
            )
            raise retry_err.last_attempt.exception() from retry_err

    # ══════════════════════════════════════════════════════════════════
    # Response handling
    # ══════════════════════════════════════════════════════════════════

    def _to_analysis(self, parsed: dict) -> AIAnalysis:
        """Normalise a parsed model payload into ``AIAnalysis``.

        Confidence is clamped to [0, 100]; recommendation spellings such as
        ``"Design A"`` or ``"draw"`` are mapped onto ``A``/``B``/``tie``.
        """
        raw_choice = str(parsed.get("recommendedDesign", "")).strip().lower()
        choice = _RECOMMENDATION_ALIASES.get(raw_choice)
        if choice is None:
            raise ValueError(f"Unrecognised recommendedDesign: {raw_choice!r}")

        try:
            confidence = float(parsed.get("confidence", 50))
        except (TypeError, ValueError):
            confidence = 50.0
        confidence = max(0.0, min(100.0, confidence))

        payload = dict(parsed)
        payload["recommendedDesign"] = choice
        payload["confidence"] = int(round(confidence))
        payload.setdefault("reasoning", "")
        payload.setdefault("strengths", {})
        payload.setdefault("weaknesses", {})

        try:
            return AIAnalysis.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(f"AI response has the wrong shape: {exc}") from exc

    def _parse_json_response(self, text: str) -> dict:
        """Parse a JSON response from Gemini using multiple fallback
        strategies.

        Pipeline:
        1. Direct ``json.loads`` on the raw text
        2. Markdown code-fence extraction
        3. Prefix/suffix stripping (first ``{`` to last ``}``)
        4. ``jsonrepair`` library as a last resort

        Raises
        ------
        ValueError
            If no strategy can extract valid JSON.
        """
        if not text or not text.strip():
            raise ValueError("Empty response text — cannot parse JSON")

        cleaned = text.strip()

        # Strategy 1: Direct parse
        try:
            result = json.loads(cleaned)
            if isinstance(result, dict):
                return result
        except (json.JSONDecodeError, TypeError):
            pass

        # Strategy 2: Markdown code-fence extraction
        md_pattern = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
        md_match = md_pattern.search(cleaned)
        if md_match:
            try:
                result = json.loads(md_match.group(1).strip())
                if isinstance(result, dict):
                    return result
            except (json.JSONDecodeError, TypeError):
                pass

        # Strategy 3: first '{' to last '}'
        first_brace = cleaned.find("{")
        last_brace = cleaned.rfind("}")
        if first_brace >= 0 and last_brace > first_brace:
            try:
                result = json.loads(cleaned[first_brace : last_brace + 1])
                if isinstance(result, dict):
                    return result
            except (json.JSONDecodeError, TypeError):
                pass

        # Strategy 4: jsonrepair (best-effort)
        candidate = (
            cleaned[first_brace : last_brace + 1]
            if first_brace >= 0 and last_brace > first_brace
            else cleaned
        )
        try:
            result = json.loads(repair_json(candidate))
            if isinstance(result, dict):
                logger.info("json_parsed_via_jsonrepair", original_preview=cleaned[:80])
                return result
        except Exception as exc:
            logger.debug("jsonrepair_failed", error=str(exc))

        raise ValueError(
            f"Failed to parse JSON from Gemini response. Preview: {cleaned[:200]}"
        )
