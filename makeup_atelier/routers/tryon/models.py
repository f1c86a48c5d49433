"""Pydantic models used by the try-on router."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from makeup_atelier.core.color_analysis import LipFinish
from makeup_atelier.core.quota import QuotaStatus


class GenerateRequest(BaseModel):
    """Request payload for a lipstick try-on.

    Images may be data URIs (as produced by the browser's FileReader) or
    bare base64 strings. Presence is checked by the handler so a missing
    image is a 400, not a validation 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    lipstick_image: Optional[str] = Field(None, alias="lipstickImage")
    selfie_image: Optional[str] = Field(None, alias="selfieImage")
    shade_hex: Optional[str] = Field(
        None,
        alias="shadeHex",
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Shade from /analyze to pin in the prompt",
    )
    finish: Optional[LipFinish] = None


class GenerateResponse(BaseModel):
    """Response payload for a successful try-on."""

    success: bool
    image: str = Field(..., description="Result image URL or data URI")
    usage: QuotaStatus


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_base64: Optional[str] = Field(None, alias="productBase64")


class IpWindowStatus(BaseModel):
    remaining: int
    reset_in_seconds: float


class UsageResponse(BaseModel):
    """Current daily usage for the caller."""

    identity: Literal["user", "anon"]
    usage: QuotaStatus
    ip: IpWindowStatus


class ErrorDetail(BaseModel):
    """Shape of ``detail`` on try-on errors."""

    error: str
    message: str
    usage: Optional[QuotaStatus] = None
    details: Optional[str] = None
