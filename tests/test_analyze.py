import json

import pytest

from makeup_atelier.core import color_analysis
from makeup_atelier.core.color_analysis import (
    ColorAnalysisConfigError,
    ColorAnalysisError,
    LipColor,
    build_payload,
    parse_lip_color,
)

from .conftest import PNG_B64, PNG_DATA_URI


def chat_result(content) -> dict:
    return {"choices": [{"message": {"content": content}}]}


class TestParseLipColor:
    def test_valid_output(self):
        content = json.dumps({"hex": "#B3123A", "finish": "satin", "confidence": 0.82})

        assert parse_lip_color(chat_result(content)) == LipColor(
            hex="#B3123A", finish="satin", confidence=0.82
        )

    @pytest.mark.parametrize(
        "content",
        [
            "not json",
            json.dumps({"hex": "red", "finish": "satin", "confidence": 0.5}),
            json.dumps({"hex": "#B3123A", "finish": "velvet", "confidence": 0.5}),
            json.dumps({"hex": "#B3123A", "finish": "matte", "confidence": 1.5}),
            None,
        ],
    )
    def test_invalid_output(self, content):
        with pytest.raises(ColorAnalysisError):
            parse_lip_color(chat_result(content))

    def test_missing_choices(self):
        with pytest.raises(ColorAnalysisError):
            parse_lip_color({"choices": []})


def test_payload_uses_json_schema_and_image():
    payload = build_payload("image/png", PNG_B64)

    assert payload["model"] == "gpt-4o"
    assert payload["response_format"]["type"] == "json_schema"
    assert payload["response_format"]["json_schema"]["strict"] is True
    image_part = payload["messages"][0]["content"][1]
    assert image_part["image_url"]["url"] == PNG_DATA_URI


class TestAnalyzeEndpoint:
    def test_returns_lip_color(self, client, monkeypatch):
        received = []

        async def fake_analyze(product_image):
            received.append(product_image)
            return LipColor(hex="#8A1C2B", finish="matte", confidence=0.9)

        monkeypatch.setattr(color_analysis, "analyze_lip_color", fake_analyze)

        response = client.post("/api/v1/analyze", json={"productBase64": PNG_DATA_URI})

        assert response.status_code == 200
        assert response.json() == {"hex": "#8A1C2B", "finish": "matte", "confidence": 0.9}
        assert received == [PNG_DATA_URI]

    def test_missing_image(self, client):
        response = client.post("/api/v1/analyze", json={})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "missing_image"

    def test_invalid_base64(self, client):
        response = client.post("/api/v1/analyze", json={"productBase64": "%%%"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_image"

    def test_missing_api_key(self, client, monkeypatch):
        monkeypatch.setattr(color_analysis, "OPENAI_API_KEY", None)

        response = client.post("/api/v1/analyze", json={"productBase64": PNG_DATA_URI})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "server_config"

    def test_provider_failure(self, client, monkeypatch):
        async def fake_analyze(product_image):
            raise ColorAnalysisError("OpenAI request failed: 500 - upstream")

        monkeypatch.setattr(color_analysis, "analyze_lip_color", fake_analyze)

        response = client.post("/api/v1/analyze", json={"productBase64": PNG_DATA_URI})

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "analysis_failed"

    def test_analysis_has_its_own_ip_window(self, client, fake_supabase, monkeypatch):
        async def fake_analyze(product_image):
            return LipColor(hex="#8A1C2B", finish="matte", confidence=0.9)

        monkeypatch.setattr(color_analysis, "analyze_lip_color", fake_analyze)

        codes = [
            client.post("/api/v1/analyze", json={"productBase64": PNG_DATA_URI}).status_code
            for _ in range(6)
        ]
        usage = client.get("/api/v1/usage").json()

        assert codes == [200] * 5 + [429]
        assert usage["ip"]["remaining"] == 5


def test_config_error_is_an_analysis_error():
    assert issubclass(ColorAnalysisConfigError, ColorAnalysisError)
