import asyncio
import base64
import binascii
from typing import Any, Dict, Optional, Tuple

import httpx
import replicate

# Import from centralized config
from makeup_atelier.config import (
    GEMINI_KEY,
    GENERATION_TIMEOUT_SECONDS,
    IMAGE_PROVIDER,
    REPLICATE_API_TOKEN,
    logger,
)
from makeup_atelier.core.errors import (
    GenerationError,
    GenerationTimeoutError,
    ProviderAuthError,
    ProviderConfigError,
    ProviderPermissionError,
    ProviderQuotaError,
    SafetyFilterError,
    classify_provider_error,
)
from makeup_atelier.core.prompt_templates import build_lipstick_tryon_prompt

REPLICATE_MODEL = "google/nano-banana"
GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image-preview"
GEMINI_SAFETY_REASONS = {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST"}
DEFAULT_MIME_TYPE = "image/jpeg"

logger.info(
    f"Generation module initialized with provider: {IMAGE_PROVIDER} "
    f"(replicate key: {bool(REPLICATE_API_TOKEN)}, gemini key: {bool(GEMINI_KEY)})"
)


def split_image_input(reference: str) -> Tuple[str, str]:
    """
    Normalize a data URI or bare base64 string to ``(mime_type, base64_data)``.

    Raises:
        ValueError: If the payload is empty or not valid base64
    """
    cleaned = (reference or "").strip()
    mime_type = DEFAULT_MIME_TYPE

    if cleaned.startswith("data:"):
        header, sep, data = cleaned.partition(",")
        if not sep:
            raise ValueError("Invalid data URI provided for image input")
        declared = header[len("data:") :].split(";")[0]
        if declared:
            mime_type = declared
        cleaned = data.strip()

    if not cleaned:
        raise ValueError("Empty base64 image input provided")

    try:
        base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Provided image string is not valid base64") from exc

    if not mime_type.startswith("image/"):
        raise ValueError(f"Unsupported image type: {mime_type}")

    return mime_type, cleaned


def to_data_uri(reference: str) -> str:
    mime_type, data = split_image_input(reference)
    return f"data:{mime_type};base64,{data}"


def extract_replicate_url(output: Any) -> str:
    """Pull the result URL out of whatever shape ``replicate.run`` returned."""
    if isinstance(output, str):
        return output

    if isinstance(output, (list, tuple)):
        if not output:
            raise GenerationError("Unexpected output format from Replicate")
        return extract_replicate_url(output[0])

    url = getattr(output, "url", None)
    if callable(url):
        url = url()
    if isinstance(url, str) and url:
        return url

    raise GenerationError("Unexpected output format from Replicate")


async def _run_replicate(prompt: str, lipstick_image: str, selfie_image: str) -> str:
    if not REPLICATE_API_TOKEN:
        raise ProviderConfigError("Server configuration error: API key not set")

    client = replicate.Client(api_token=REPLICATE_API_TOKEN)
    logger.info(f"Starting virtual try-on with {REPLICATE_MODEL}...")

    output = await client.async_run(
        REPLICATE_MODEL,
        input={
            "prompt": prompt,
            "image_input": [to_data_uri(selfie_image), to_data_uri(lipstick_image)],
            "aspect_ratio": "match_input_image",
            "resolution": "2K",
            "output_format": "png",
            "safety_filter_level": "block_only_high",
        },
    )

    result_url = extract_replicate_url(output)
    logger.info(f"Replicate result URL: {result_url}")
    return result_url


def _raise_for_gemini_status(exc: httpx.HTTPStatusError) -> None:
    status = exc.response.status_code
    message = f"Gemini API HTTP error: {status} - {exc.response.text}"
    if status == 401:
        raise ProviderAuthError(message) from exc
    if status == 403:
        raise ProviderPermissionError(message) from exc
    if status == 429:
        raise ProviderQuotaError(message) from exc
    raise classify_provider_error(Exception(message)) from exc


def extract_gemini_image(api_result: Dict[str, Any]) -> str:
    """Return the generated image from a Gemini response as a data URI."""
    block_reason = (api_result.get("promptFeedback") or {}).get("blockReason")
    if block_reason:
        raise SafetyFilterError(f"Prompt blocked by safety filter: {block_reason}")

    if "candidates" not in api_result or not api_result["candidates"]:
        raise GenerationError("Gemini API returned no candidates")

    candidate = api_result["candidates"][0]
    finish_reason = candidate.get("finishReason")
    if finish_reason in GEMINI_SAFETY_REASONS:
        raise SafetyFilterError(f"Image blocked by safety filter: {finish_reason}")

    if "content" not in candidate or "parts" not in candidate["content"]:
        raise GenerationError("Invalid Gemini API response structure")

    # Check both camelCase and snake_case formats
    for part in candidate["content"]["parts"]:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return f"data:{mime_type};base64,{inline['data']}"

    raise GenerationError("No image found in Gemini API response")


async def _run_gemini(prompt: str, lipstick_image: str, selfie_image: str) -> str:
    if not GEMINI_KEY:
        raise ProviderConfigError("Server configuration error: API key not set")

    selfie_mime, selfie_b64 = split_image_input(selfie_image)
    lipstick_mime, lipstick_b64 = split_image_input(lipstick_image)

    # Order: selfie first, then the lipstick reference, then the text prompt
    content_parts = [
        {"inline_data": {"mime_type": selfie_mime, "data": selfie_b64}},
        {"inline_data": {"mime_type": lipstick_mime, "data": lipstick_b64}},
        {"text": prompt},
    ]

    gemini_url = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        f"{GEMINI_IMAGE_MODEL}:generateContent"
    )
    gemini_payload = {
        "contents": [{"parts": content_parts}],
        "generationConfig": {
            "temperature": 0.4,
            "topK": 32,
            "topP": 1,
        },
    }

    logger.info(f"Starting virtual try-on with {GEMINI_IMAGE_MODEL}...")

    try:
        async with httpx.AsyncClient(timeout=GENERATION_TIMEOUT_SECONDS) as client:
            response = await client.post(
                gemini_url,
                json=gemini_payload,
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": GEMINI_KEY,
                },
            )
            response.raise_for_status()
            api_result = response.json()
    except httpx.HTTPStatusError as e:
        _raise_for_gemini_status(e)
    except httpx.TimeoutException as e:
        raise GenerationTimeoutError(f"Gemini request timeout: {e}") from e
    except httpx.RequestError as e:
        raise GenerationError(f"Network error calling Gemini API: {e}") from e

    return extract_gemini_image(api_result)


PROVIDERS = {
    "replicate": _run_replicate,
    "gemini": _run_gemini,
}


async def generate_tryon(
    lipstick_image: str,
    selfie_image: str,
    shade_hex: Optional[str] = None,
    finish: Optional[str] = None,
    provider: Optional[str] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Composite the lipstick shade from ``lipstick_image`` onto ``selfie_image``.

    Args:
        lipstick_image: Product photo as a data URI or base64 string
        selfie_image: Selfie as a data URI or base64 string
        shade_hex: Optional analyzed shade to pin in the prompt
        finish: Optional analyzed finish (matte, gloss, ...)
        provider: Override for IMAGE_PROVIDER
        timeout: Override for GENERATION_TIMEOUT_SECONDS

    Returns:
        Reference to the generated image (an https URL or a data URI)

    Raises:
        GenerationError: Or one of its subclasses, describing why it failed
    """
    provider_name = (provider or IMAGE_PROVIDER).lower()
    runner = PROVIDERS.get(provider_name)
    if runner is None:
        raise ProviderConfigError(f"Unknown image provider: {provider_name}")

    limit = timeout if timeout is not None else GENERATION_TIMEOUT_SECONDS
    prompt = build_lipstick_tryon_prompt(shade_hex=shade_hex, finish=finish)

    try:
        result = await asyncio.wait_for(
            runner(prompt, lipstick_image, selfie_image), timeout=limit
        )
    except asyncio.TimeoutError as e:
        raise GenerationTimeoutError(
            f"Request timeout after {limit:g} seconds"
        ) from e
    except GenerationError:
        raise
    except ValueError as e:
        raise GenerationError(f"Invalid image input: {e}") from e
    except Exception as e:
        logger.error(f"Provider {provider_name} raised: {e}")
        raise classify_provider_error(e) from e

    logger.info("Try-on completed successfully")
    return result


__all__ = [
    "generate_tryon",
    "split_image_input",
    "to_data_uri",
    "extract_replicate_url",
    "extract_gemini_image",
]
