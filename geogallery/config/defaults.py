"""
Default configuration values.
"""

from __future__ import annotations

ALT_TEXT_PROMPT = """This is a photo of an advertisement or billboard in San Francisco.

Write a 1-2 sentence alt text description that:
- Describes what the advertisement says or shows
- Mentions the brand/company name if visible
- Notes any distinctive visual elements

Return JSON: {"alt_text": "..."}"""

DEFAULTS: dict[str, object] = {
    "paths": {
        "manifest": "src/data/images.yaml",
        "images": "public/images",
        "originals": "originals",
        "alt_text_cache": ".cache/alt-text",
        "logs": "logs",
    },
    "import": {
        "extensions": [".heic", ".jpg", ".jpeg"],
        "native_metadata": "auto",
        "heic_converter": "auto",
    },
    "derivatives": {
        "full_quality": 90,
        "thumb_quality": 85,
        "working_quality": 95,
        "id_width": 5,
        "extension": "jpg",
    },
    "alt_text": {
        "enabled": True,
        "model": "gpt-4o",
        "max_tokens": 300,
        "prompt": ALT_TEXT_PROMPT,
        "fallback": "An advertisement from San Francisco.",
    },
    "logging": {"level": "info"},
}
