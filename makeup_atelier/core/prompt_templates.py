"""Prompt templates and builders for the lipstick try-on and color analysis flows."""

from __future__ import annotations
from dataclasses import dataclass


# --- GENERATION PROMPT ---

PROMPT_TEMPLATE = (
    "Apply the exact lipstick color from the reference image to the person's lips. "
    "Keep everything else identical - same person, same face, same hair, "
    "same background, same lighting. Only change the lip color to match the "
    "lipstick shade. {FINISH_DESCRIPTION}{STYLE_DESCRIPTION}"
)


@dataclass(frozen=True)
class PromptDefaults:
    """Default wording for the try-on generation prompt."""

    style_description: str = (
        "Professional makeup application, photorealistic, natural looking."
    )
    finish_template: str = "Render a {finish} finish in the {hex} shade. "


DEFAULTS = PromptDefaults()


def build_lipstick_tryon_prompt(
    shade_hex: str | None = None,
    finish: str | None = None,
    style_description: str | None = None,
) -> str:
    """Render the generation prompt, optionally pinning an analyzed shade."""
    finish_text = ""
    if shade_hex and finish:
        finish_text = DEFAULTS.finish_template.format(finish=finish, hex=shade_hex)

    return PROMPT_TEMPLATE.format(
        FINISH_DESCRIPTION=finish_text,
        STYLE_DESCRIPTION=style_description or DEFAULTS.style_description,
    )


# --- COLOR ANALYSIS PROMPT ---

COLOR_ANALYSIS_PROMPT = (
    "Extract the dominant lipstick color from the product image. "
    "Return hex + finish. Ignore background/packaging."
)


def build_color_analysis_prompt() -> str:
    """Return the fixed color analysis prompt."""
    return COLOR_ANALYSIS_PROMPT


__all__ = [
    "PROMPT_TEMPLATE",
    "COLOR_ANALYSIS_PROMPT",
    "DEFAULTS",
    "PromptDefaults",
    "build_lipstick_tryon_prompt",
    "build_color_analysis_prompt",
]
