import json
import re
import unicodedata
from typing import Any, Dict, List, Optional

GLUED_NUMBER_RE = re.compile(r"^(\d+)([a-z]+)$")
JSON_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form text for stable command matching.
    Inputs/Outputs: Input is a raw string; output is a lowercase ASCII-only string with
        diacritics removed and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by command classification.
    Failure Modes: Returns an empty string when input is falsy; punctuation is stripped,
        which is intended for matching ("Não!" -> "nao").
    If Removed: Command vocabularies only match exact accents and casing.
    Testing Notes: Validate "  Nova   Busca " -> "nova busca" and "Não" -> "nao".
    """
    # Normalize to lowercase and strip diacritics for consistent matching.
    if not text:
        return ""
    lowered = text.lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^a-z0-9\s]+", " ", stripped)
    return re.sub(r"\s+", " ", cleaned).strip()


def tokenize(text: str) -> List[str]:
    """Purpose: Split text into comparable lowercase tokens for relevance scoring.
    Inputs/Outputs: Input is a raw string; output is the token list in input order,
        duplicates preserved.
    Side Effects / State: None; pure function.
    Dependencies: GLUED_NUMBER_RE; used by relevance scoring for phrases and names.
    Failure Modes: Returns an empty list for empty or whitespace-only input.
    If Removed: Refinement cannot compare a phrase against product names.
    Testing Notes: "Cuba 50mm Inox" -> ["cuba", "50", "mm", "inox"].
    """
    # Lowercase, split on whitespace runs, then split glued number+unit tokens.
    tokens: List[str] = []
    for token in (text or "").lower().split():
        match = GLUED_NUMBER_RE.match(token)
        if match:
            tokens.extend([match.group(1), match.group(2)])
        else:
            tokens.append(token)
    return tokens


def unwrap_code_fence(text: str) -> str:
    """Return the body of a ```json fenced block, or the text with bare fences removed."""
    if not text:
        return ""
    match = JSON_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```", "").strip()


def extract_json_block(text: str) -> Optional[str]:
    """Purpose: Extract the first JSON object block from an arbitrary string.
    Inputs/Outputs: Input is a raw string; output is JSON substring or None.
    Side Effects / State: None; pure function.
    Dependencies: None beyond built-ins; used by safe_json_loads.
    Failure Modes: Returns None if braces are missing or inverted.
    If Removed: Model outputs cannot be parsed safely, breaking intent parsing.
    Testing Notes: Provide strings with extra text before/after JSON and ensure extraction.
    """
    # Locate the outermost JSON braces to extract a parseable block.
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def safe_json_loads(text: str) -> Optional[Dict[str, Any]]:
    """Parse the JSON object inside model output; None when there is none."""
    block = extract_json_block(unwrap_code_fence(text))
    if not block:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
