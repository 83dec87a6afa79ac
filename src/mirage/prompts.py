"""Prompt construction for website generation.

The wording lives here; the sanitizing contract for user-supplied hints
lives in ``AdvancedOptions`` so it can be tested without the prompt text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mirage.models.inputs import AdvancedOptions

_BASE_PROMPT = """\
Analyze "{path}" and determine what type of website this should be, then create \
an extremely authentic HTML website that perfectly matches that concept.

FIRST - ANALYZE THE CONCEPT:
- What does "{path}" sound like? (Professional business, meme site, hobby project, \
corporate entity, fun concept, etc.)
- What industry or category does it belong to, and what era of the internet?
- Who would visit this site, and what tone should it have?

DESIGN:
- Professional concepts get clean, conservative styling and structured sections.
- Fun or quirky concepts get bold colors, personality and period-appropriate flourishes.
- Niche concepts are themed heavily around their topic with authentic terminology.

CONTENT:
- Make it feel like a real website that has been online for years.
- Use realistic details: addresses, dates, testimonials, pricing, FAQs.
- Internal links should point to other plausible paths on this site.
{customization}
TECHNICAL RULES:
- NO IMAGES whatsoever (no <img>, background-image, or image references).
- Use text, emojis, Unicode symbols, CSS shapes and creative typography instead.
- Responsive, semantic HTML with all CSS inline in a <style> tag.
- Start with <!DOCTYPE html>. Only return HTML - no explanations or markdown.

Transform "{path}" into the most convincing, authentic website possible."""

_CUSTOMIZATION_HEADER = "\nADVANCED CUSTOMIZATION (follow these closely):"


def _customization_block(options: AdvancedOptions | None) -> str:
    if options is None or options.is_empty:
        return ""
    lines = [_CUSTOMIZATION_HEADER]
    if options.style:
        lines.append(f"- STYLE DIRECTION: {options.style}")
    if options.content:
        lines.append(f"- CONTENT TYPE: {options.content}")
    if options.topic:
        lines.append(f"- TOPIC/FOCUS: {options.topic}")
    return "\n".join(lines) + "\n"


def build_prompt(path: str, options: AdvancedOptions | None = None) -> str:
    """Render the generation prompt for a normalized path."""
    return _BASE_PROMPT.format(path=path, customization=_customization_block(options))
