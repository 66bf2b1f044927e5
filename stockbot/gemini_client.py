from __future__ import annotations

import logging
from typing import Dict, Optional

import google.generativeai as genai

from .config import Settings, is_placeholder
from .errors import ConfigurationError

logger = logging.getLogger("stockbot.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


class GeminiClient:
    """Thin async wrapper around the Gemini SDK with model caching."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize the model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK global API key and caches a model.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ConfigurationError if the API key is missing or a
            placeholder, or the model name is empty.
        If Removed: The intent classifier has no model to call.
        Testing Notes: Validate a missing key raises ConfigurationError.
        """
        # Configure API key and seed the default model cache.
        if is_placeholder(settings.gemini_api_key):
            raise ConfigurationError("GEMINI_API_KEY is required")
        self._default_model = _normalize_model_name(settings.gemini_model)
        if not self._default_model:
            raise ConfigurationError("GEMINI_MODEL is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[str, genai.GenerativeModel] = {
            self._default_model: genai.GenerativeModel(self._default_model)
        }

    @property
    def model_name(self) -> str:
        return self._default_model

    def _model(self, model: Optional[str]) -> genai.GenerativeModel:
        model_name = _normalize_model_name(model) if model else self._default_model
        if model_name not in self._models:
            self._models[model_name] = genai.GenerativeModel(model_name)
        return self._models[model_name]

    async def generate_text(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_output_tokens: int = 256,
    ) -> str:
        """Purpose: Generate a single text response from a string prompt.
        Inputs/Outputs: Input is prompt string and optional model/config; returns text.
        Side Effects / State: May add a model to the internal cache; network call.
        Dependencies: Uses genai.GenerativeModel.generate_content_async.
        Failure Modes: SDK/network errors propagate to the caller.
        If Removed: Intent classification and the startup probe cannot call the LLM.
        Testing Notes: Replace with a fake in controller tests.
        """
        logger.debug("model=%s prompt=%s", model or self._default_model, prompt[:100])
        response = await self._model(model).generate_content_async(
            prompt,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            },
            safety_settings=DEFAULT_SAFETY_SETTINGS,
        )
        text: Optional[str] = getattr(response, "text", None)
        return (text or "").strip()

    async def verify_connection(self) -> bool:
        """Ask the model to answer 'OK'; True when it does."""
        try:
            text = await self.generate_text("Olá, Gemini. Responda apenas 'OK'", max_output_tokens=8)
        except Exception as exc:  # SDK raises a variety of transport/api errors
            logger.error("gemini probe failed model=%s error=%s", self._default_model, exc)
            return False
        ok = text.strip().strip(".").upper() == "OK"
        if ok:
            logger.info("gemini probe ok model=%s", self._default_model)
        else:
            logger.warning("gemini probe unexpected answer model=%s answer=%s", self._default_model, text[:50])
        return ok


def _normalize_model_name(name: Optional[str]) -> str:
    """Purpose: Normalize model names by stripping prefix and whitespace.
    Inputs/Outputs: Input is a model name string; output is normalized name.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.
    Failure Modes: Returns empty string for falsy input.
    If Removed: Model caching and selection may use invalid names and fail.
    Testing Notes: Ensure "models/foo" becomes "foo" and whitespace is trimmed.
    """
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
