"""Lipstick shade extraction using OpenAI vision with a strict JSON schema."""

import json
from typing import Any, Dict, Literal

import httpx
from pydantic import BaseModel, Field, ValidationError

from makeup_atelier.config import OPENAI_API_KEY, logger
from makeup_atelier.core.generation import split_image_input
from makeup_atelier.core.prompt_templates import build_color_analysis_prompt

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_VISION_MODEL = "gpt-4o"
ANALYSIS_TIMEOUT_SECONDS = 60.0

LipFinish = Literal["matte", "satin", "cream", "gloss", "shimmer", "metallic", "sheer"]


class LipColor(BaseModel):
    hex: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$")
    finish: LipFinish
    confidence: float = Field(..., ge=0, le=1)


class ColorAnalysisError(Exception):
    """The analysis provider failed or returned output that does not fit LipColor."""


class ColorAnalysisConfigError(ColorAnalysisError):
    pass


LIP_COLOR_SCHEMA: Dict[str, Any] = {
    "name": "LipColor",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "hex": {"type": "string", "pattern": "^#[0-9A-Fa-f]{6}$"},
            "finish": {
                "type": "string",
                "enum": ["matte", "satin", "cream", "gloss", "shimmer", "metallic", "sheer"],
            },
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        },
        "required": ["hex", "finish", "confidence"],
    },
}


def build_payload(mime_type: str, image_b64: str) -> Dict[str, Any]:
    return {
        "model": OPENAI_VISION_MODEL,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": build_color_analysis_prompt()},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{image_b64}"},
                    },
                ],
            }
        ],
        "response_format": {"type": "json_schema", "json_schema": LIP_COLOR_SCHEMA},
        "max_tokens": 200,
    }


def parse_lip_color(api_result: Dict[str, Any]) -> LipColor:
    try:
        content = api_result["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ColorAnalysisError("OpenAI response had no message content") from exc

    try:
        return LipColor.model_validate(json.loads(content))
    except (json.JSONDecodeError, TypeError, ValidationError) as exc:
        logger.error(f"Color analysis output rejected: {str(content)[:500]}")
        raise ColorAnalysisError(f"Color analysis returned invalid output: {exc}") from exc


async def analyze_lip_color(product_image: str) -> LipColor:
    """
    Extract the dominant lipstick shade and finish from a product photo.

    Args:
        product_image: Product photo as a data URI or bare base64 string

    Returns:
        LipColor with hex, finish and the model's confidence

    Raises:
        ValueError: If the image payload is not valid base64
        ColorAnalysisConfigError: If OPENAI_API_KEY is not configured
        ColorAnalysisError: If the request fails or the output is unusable
    """
    if not OPENAI_API_KEY:
        raise ColorAnalysisConfigError("Missing OPENAI_API_KEY")

    mime_type, image_b64 = split_image_input(product_image)

    try:
        async with httpx.AsyncClient(timeout=ANALYSIS_TIMEOUT_SECONDS) as client:
            response = await client.post(
                OPENAI_CHAT_URL,
                json=build_payload(mime_type, image_b64),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {OPENAI_API_KEY}",
                },
            )
            response.raise_for_status()
            api_result = response.json()
    except httpx.HTTPStatusError as exc:
        raise ColorAnalysisError(
            f"OpenAI request failed: {exc.response.status_code} - {exc.response.text}"
        ) from exc
    except httpx.RequestError as exc:
        raise ColorAnalysisError(f"Network error calling OpenAI: {exc}") from exc

    lip_color = parse_lip_color(api_result)
    logger.info(f"Lip color analyzed: {lip_color.hex} {lip_color.finish}")
    return lip_color
