"""
codegen/client.py

Gemini client that turns a prompt into a raw model response.

The client does no parsing: malformed content is the parser's concern.
Every transport, auth or configuration problem is reported as
CollaboratorUnavailable.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from codegen.prompts import SYSTEM_PROMPT
from errors import CollaboratorUnavailable
from settings import get_settings

log = logging.getLogger(__name__)

# Optional Gemini import
try:
    from google import genai
    from google.genai import types as genai_types
except ImportError:
    genai = None
    genai_types = None


class GeminiCodegenClient:
    """Sends a prompt to Gemini with the drawing system instruction.

    Args:
        model: Model name (default from settings).
        api_key: Explicit API key; otherwise read from the environment
            variable named by ``codegen.api_key_env``.
        temperature: Sampling temperature (default from settings).
        max_output_tokens: Response token limit (default from settings).
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ):
        cfg = get_settings().settings.codegen
        self.model = model or cfg.model
        self.temperature = cfg.temperature if temperature is None else temperature
        self.max_output_tokens = max_output_tokens or cfg.max_output_tokens
        self._api_key = api_key
        self._api_key_env = cfg.api_key_env
        self._client = None

    def _resolve_api_key(self) -> str:
        key = (self._api_key or os.environ.get(self._api_key_env, "")).strip()
        if not key:
            raise CollaboratorUnavailable(f"{self._api_key_env} is not set.")
        return key

    def _get_client(self):
        if genai is None:
            raise CollaboratorUnavailable("google-genai not installed. pip install google-genai")
        if self._client is None:
            self._client = genai.Client(api_key=self._resolve_api_key())
        return self._client

    def generate(self, prompt: str) -> str:
        """Request a visualization program for ``prompt``.

        Returns:
            The raw response text.

        Raises:
            CollaboratorUnavailable: On missing configuration or any API failure.
        """
        client = self._get_client()
        config = genai_types.GenerateContentConfig(
            system_instruction=SYSTEM_PROMPT,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )
        log.info("Requesting program from %s (%d chars prompt)", self.model, len(prompt))
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=[prompt],
                config=config,
            )
        except Exception as e:
            raise CollaboratorUnavailable(f"Model request failed: {e}") from e

        usage = getattr(response, "usage_metadata", None)
        tokens = (getattr(usage, "total_token_count", 0) or 0) if usage else 0

        text = getattr(response, "text", None) or ""
        log.debug("Model responded with %d chars (%d tokens)", len(text), tokens)
        return text
