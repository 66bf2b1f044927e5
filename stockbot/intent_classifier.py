from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from .errors import ConfigurationError, MalformedResponseError, StockbotError, UpstreamError
from .models import INTENT_ADAPTER, Intent
from .prompt_loader import load_prompt, render_prompt
from .utils import safe_json_loads

logger = logging.getLogger("stockbot.intent")

PROMPT_FILE = "intent_classifier.txt"


class TextGenerator(Protocol):
    async def generate_text(self, prompt: str) -> str:
        ...


def decode_intent(raw: str) -> Intent:
    """Purpose: Strictly decode classifier output into the closed Intent union.
    Inputs/Outputs: Input is raw model text (possibly code-fenced); output is one of
        ConfirmSearch, Search, NewSearch, UnknownIntent.
    Side Effects / State: None.
    Dependencies: safe_json_loads and the pydantic INTENT_ADAPTER.
    Failure Modes: Raises MalformedResponseError for non-JSON text, unknown actions, or
        missing/empty terms.
    If Removed: The controller would read unchecked fields from model output.
    Testing Notes: '```json {"action":"search","term":"cuba"}```' -> Search(term="cuba").
    """
    data = safe_json_loads(raw)
    if data is None:
        raise MalformedResponseError("classifier output is not a JSON object", raw=raw)
    try:
        return INTENT_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise MalformedResponseError(f"classifier output rejected: {exc.error_count()} error(s)", raw=raw) from exc


class IntentClassifier:
    """Turns a free-text message into an Intent through an LLM collaborator."""

    def __init__(self, generator: Optional[TextGenerator], prompt_template: str) -> None:
        """Purpose: Bind the text generator and prompt template.
        Inputs/Outputs: Inputs are a generator (None when credentials are missing) and
            the prompt template with a $message placeholder; no return value.
        Side Effects / State: Stores collaborators.
        Dependencies: None at init.
        Failure Modes: None at init; classify() raises ConfigurationError without a
            generator.
        If Removed: The controller cannot escalate unrecognized messages.
        Testing Notes: Build with a fake generator returning canned JSON.
        """
        self._generator = generator
        self._template = prompt_template

    @classmethod
    def from_prompts_dir(cls, generator: Optional[TextGenerator], prompts_dir: Path) -> "IntentClassifier":
        return cls(generator, load_prompt(prompts_dir / PROMPT_FILE))

    def build_prompt(self, message: str) -> str:
        return render_prompt(self._template, {"message": message.replace('"', "'")})

    async def classify(self, message: str) -> Intent:
        """Purpose: Classify one message.
        Inputs/Outputs: Input is the full message text; output is a decoded Intent.
        Side Effects / State: One network call through the generator.
        Dependencies: build_prompt, TextGenerator.generate_text, decode_intent.
        Failure Modes: ConfigurationError without a generator; UpstreamError when the
            call raises; MalformedResponseError when the answer does not decode.
        If Removed: Fallback classification in the dialogue controller breaks.
        Testing Notes: A generator that raises must surface as UpstreamError.
        """
        if self._generator is None:
            raise ConfigurationError("intent classifier is not configured")
        prompt = self.build_prompt(message)
        try:
            raw = await self._generator.generate_text(prompt)
        except StockbotError:
            raise
        except Exception as exc:  # SDK/network failures of any kind
            raise UpstreamError(f"classifier call failed: {exc}") from exc
        logger.debug("classifier raw=%s", raw[:200])
        intent = decode_intent(raw)
        logger.info("classifier action=%s", intent.action)
        return intent
