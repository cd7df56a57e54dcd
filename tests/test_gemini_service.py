"""Unit tests for GeminiService — AI analysis bridge."""
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.services.errors import AnalysisUnavailable, ValidationFailed
from app.services.gemini_service import GeminiService, _is_retryable_api_error

PNG_BYTES = b"\x89PNG\r\n\x1a\n"

VALID_PAYLOAD = {
    "recommendedDesign": "B",
    "confidence": 74,
    "reasoning": "B separates primary and secondary actions.",
    "strengths": {"designA": ["Bold type"], "designB": ["Clear CTA", "Whitespace"]},
    "weaknesses": {"designA": ["Two competing buttons"], "designB": []},
    "designPrinciples": ["Hierarchy", "Proximity"],
    "userExperience": "B is quicker to scan.",
    "visualHierarchy": "B leads with the headline.",
    "accessibility": "Both pass contrast.",
}


def _settings(api_key="test-key"):
    settings = MagicMock()
    settings.GEMINI_API_KEY = api_key
    settings.GEMINI_MODEL_PRIMARY = "gemini-2.5-flash"
    settings.GEMINI_MODEL_FALLBACK = "gemini-1.5-flash"
    settings.IMAGE_FETCH_TIMEOUT_SECONDS = 5
    settings.ai_enabled = bool(api_key)
    return settings


def _image_client(status_code=200, content_type="image/png"):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code, content=PNG_BYTES, headers={"content-type": content_type}
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def gemini_service():
    """GeminiService with mocked settings and an in-process image server."""
    with patch("app.services.gemini_service.get_settings") as mock_settings:
        mock_settings.return_value = _settings()
        with patch("app.services.gemini_service.genai"):
            service = GeminiService(http_client=_image_client())
    return service


@pytest.fixture
def disabled_service():
    with patch("app.services.gemini_service.get_settings") as mock_settings:
        mock_settings.return_value = _settings(api_key="")
        with patch("app.services.gemini_service.genai"):
            service = GeminiService(http_client=_image_client())
    return service


class TestParseJsonResponse:
    """Tests for _parse_json_response fallback strategies."""

    def test_plain_json(self, gemini_service):
        assert gemini_service._parse_json_response(json.dumps(VALID_PAYLOAD)) == VALID_PAYLOAD

    def test_markdown_fence(self, gemini_service):
        text = "Here you go:\n```json\n" + json.dumps(VALID_PAYLOAD) + "\n```"
        assert gemini_service._parse_json_response(text)["recommendedDesign"] == "B"

    def test_surrounding_prose(self, gemini_service):
        text = "Analysis follows. " + json.dumps(VALID_PAYLOAD) + " Hope this helps."
        assert gemini_service._parse_json_response(text)["confidence"] == 74

    def test_trailing_comma_repaired(self, gemini_service):
        text = '{"recommendedDesign": "A", "confidence": 60, "reasoning": "ok",}'
        parsed = gemini_service._parse_json_response(text)
        assert parsed["recommendedDesign"] == "A"

    def test_empty_text(self, gemini_service):
        with pytest.raises(ValueError):
            gemini_service._parse_json_response("   ")


class TestToAnalysis:
    """Tests for _to_analysis normalisation."""

    def test_valid_payload(self, gemini_service):
        analysis = gemini_service._to_analysis(VALID_PAYLOAD)
        assert analysis.recommended_design == "B"
        assert analysis.confidence == 74
        assert analysis.strengths.design_b == ["Clear CTA", "Whitespace"]
        assert analysis.weaknesses.design_a == ["Two competing buttons"]
        assert analysis.design_principles == ["Hierarchy", "Proximity"]

    @pytest.mark.parametrize(
        "raw,expected",
        [("a", "A"), ("Design A", "A"), ("variation b", "B"), ("TIE", "tie"), ("draw", "tie")],
    )
    def test_recommendation_spellings(self, gemini_service, raw, expected):
        analysis = gemini_service._to_analysis({**VALID_PAYLOAD, "recommendedDesign": raw})
        assert analysis.recommended_design == expected

    def test_unknown_recommendation(self, gemini_service):
        with pytest.raises(ValueError):
            gemini_service._to_analysis({**VALID_PAYLOAD, "recommendedDesign": "C"})

    @pytest.mark.parametrize("raw,expected", [(140, 100), (-5, 0), ("88", 88), (66.6, 67), ("high", 50)])
    def test_confidence_clamped(self, gemini_service, raw, expected):
        analysis = gemini_service._to_analysis({**VALID_PAYLOAD, "confidence": raw})
        assert analysis.confidence == expected

    def test_missing_optional_fields_default(self, gemini_service):
        analysis = gemini_service._to_analysis({"recommendedDesign": "A", "confidence": 50})
        assert analysis.reasoning == ""
        assert analysis.strengths.design_a == []
        assert analysis.accessibility == ""

    def test_camel_case_dump(self, gemini_service):
        dumped = gemini_service._to_analysis(VALID_PAYLOAD).model_dump(by_alias=True)
        assert dumped["recommendedDesign"] == "B"
        assert dumped["strengths"]["designB"] == ["Clear CTA", "Whitespace"]


class TestAnalyzeDesignPair:
    """Tests for analyze_design_pair."""

    @pytest.mark.asyncio
    async def test_success_returns_model_used(self, gemini_service):
        gemini_service._call_gemini_with_retry = AsyncMock(return_value=json.dumps(VALID_PAYLOAD))

        analysis, model_used = await gemini_service.analyze_design_pair(
            "https://img.test/a.png", "https://img.test/b.png", "Header v1", "Hero"
        )

        assert analysis.recommended_design == "B"
        assert model_used == "gemini-2.5-flash"
        contents = gemini_service._call_gemini_with_retry.call_args.args[1]
        assert "Header v1" in contents[0]
        assert contents[1] == {"mime_type": "image/png", "data": PNG_BYTES}

    @pytest.mark.asyncio
    async def test_falls_back_to_second_model(self, gemini_service):
        gemini_service._call_gemini_with_retry = AsyncMock(
            side_effect=[RuntimeError("model overloaded"), json.dumps(VALID_PAYLOAD)]
        )

        _, model_used = await gemini_service.analyze_design_pair(
            "https://img.test/a.png", "https://img.test/b.png", "Header v1"
        )
        assert model_used == "gemini-1.5-flash"

    @pytest.mark.asyncio
    async def test_unparseable_everywhere(self, gemini_service):
        gemini_service._call_gemini_with_retry = AsyncMock(return_value="I cannot help with that.")
        with pytest.raises(AnalysisUnavailable):
            await gemini_service.analyze_design_pair(
                "https://img.test/a.png", "https://img.test/b.png", "Header v1"
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url_a,url_b", [(None, "https://img.test/b.png"), ("https://img.test/a.png", "")])
    async def test_missing_url_never_calls_bridge(self, gemini_service, url_a, url_b):
        gemini_service._call_gemini_with_retry = AsyncMock()
        with pytest.raises(ValidationFailed):
            await gemini_service.analyze_design_pair(url_a, url_b, "Header v1")
        gemini_service._call_gemini_with_retry.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled_bridge(self, disabled_service):
        with pytest.raises(AnalysisUnavailable):
            await disabled_service.analyze_design_pair(
                "https://img.test/a.png", "https://img.test/b.png", "Header v1"
            )

    @pytest.mark.asyncio
    async def test_image_fetch_failure(self):
        with patch("app.services.gemini_service.get_settings") as mock_settings:
            mock_settings.return_value = _settings()
            with patch("app.services.gemini_service.genai"):
                service = GeminiService(http_client=_image_client(status_code=404))
        service._call_gemini_with_retry = AsyncMock()

        with pytest.raises(AnalysisUnavailable):
            await service.analyze_design_pair(
                "https://img.test/a.png", "https://img.test/b.png", "Header v1"
            )
        service._call_gemini_with_retry.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_image_content_type_defaults_to_jpeg(self):
        with patch("app.services.gemini_service.get_settings") as mock_settings:
            mock_settings.return_value = _settings()
            with patch("app.services.gemini_service.genai"):
                service = GeminiService(
                    http_client=_image_client(content_type="application/octet-stream")
                )
        blob = await service._fetch_image("https://img.test/a")
        assert blob["mime_type"] == "image/jpeg"


class TestDesignInsights:
    """Tests for get_design_insights."""

    @pytest.mark.asyncio
    async def test_returns_text(self, gemini_service):
        gemini_service._call_gemini_with_retry = AsyncMock(return_value="Good use of whitespace.")
        insights = await gemini_service.get_design_insights("https://img.test/a.png", "Landing page")
        assert insights == "Good use of whitespace."
        assert gemini_service._call_gemini_with_retry.call_args.kwargs["as_json"] is False

    @pytest.mark.asyncio
    async def test_missing_url(self, gemini_service):
        with pytest.raises(ValidationFailed):
            await gemini_service.get_design_insights(None)


class TestRetryClassification:
    """Tests for _is_retryable_api_error."""

    def test_rate_limit(self):
        assert _is_retryable_api_error(Exception("429 Resource has been exhausted")) is True

    def test_server_error(self):
        assert _is_retryable_api_error(Exception("503 Service Unavailable")) is True

    def test_bad_request(self):
        assert _is_retryable_api_error(ValueError("400 invalid argument")) is False
