"""
AI alt text with a content-addressed cache.

The cache is checked before any network call and written only after a
successful one. Transport, model and parse failures are logged and converted
to the configured fallback description; they never fail an import.
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any, Protocol

from openai import OpenAI

from geogallery.utils.hashing import digest_to_filename

LOGGER = logging.getLogger(__name__)

DEFAULT_FALLBACK = "An advertisement from San Francisco."


class AltTextCache(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


class FileAltTextCache:
    """One UTF-8 text file per digest; entries never expire."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, key: str) -> Path:
        return self.directory / digest_to_filename(key)

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        value = path.read_text(encoding="utf-8")
        return value or None

    def put(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path_for(key).write_text(value, encoding="utf-8")


class MemoryAltTextCache:
    def __init__(self) -> None:
        self.entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.entries.get(key)

    def put(self, key: str, value: str) -> None:
        self.entries[key] = value


def create_openai_client(api_key: str | None = None) -> OpenAI:
    """Build the SDK client once; ``OPENAI_API_KEY`` is used when no key is given."""
    return OpenAI(api_key=api_key) if api_key else OpenAI()


class AltTextGenerator:
    def __init__(
        self,
        client: Any | None,
        cache: AltTextCache,
        prompt: str,
        model: str = "gpt-4o",
        max_tokens: int = 300,
        fallback: str = DEFAULT_FALLBACK,
    ) -> None:
        self.client = client
        self.cache = cache
        self.prompt = prompt
        self.model = model
        self.max_tokens = max_tokens
        self.fallback = fallback

    def generate(self, image_bytes: bytes, digest: str) -> str:
        cached = self.cache.get(digest)
        if cached:
            LOGGER.info("Alt (cached): %s", cached[:50])
            return cached

        if self.client is None:
            LOGGER.info("No alt text client; using fallback for %s", digest)
            return self.fallback

        LOGGER.info("Generating alt text...")
        try:
            alt_text = self._request(image_bytes)
        except Exception as exc:
            LOGGER.warning("Alt text generation failed: %s", exc)
            return self.fallback

        self.cache.put(digest, alt_text)
        LOGGER.info("Alt: %s", alt_text[:50])
        return alt_text

    def _request(self, image_bytes: bytes) -> str:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.prompt},
                        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
                    ],
                }
            ],
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValueError("No response from model")
        parsed = json.loads(content)
        if not isinstance(parsed, dict):
            raise ValueError("Model response was not a JSON object")
        alt_text = str(parsed.get("alt_text") or "").strip()
        if not alt_text:
            raise ValueError("Model response had no alt_text")
        return alt_text
