from __future__ import annotations

from pathlib import Path
from string import Template
from typing import Dict


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt template as UTF-8 text and strip BOM if present.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: None; reads the filesystem.
    Dependencies: Uses Path.read_text/read_bytes; used by the intent classifier.
    Failure Modes: Missing files raise FileNotFoundError; UnicodeDecodeError triggers a
        fallback decode with errors ignored, which can drop invalid bytes.
    If Removed: The classifier has no instructions to send to the model.
    Testing Notes: Validate BOM-stripping on the bundled prompt.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        return prompt_path.read_bytes().decode("utf-8", errors="ignore").lstrip("\ufeff")


def render_prompt(template: str, values: Dict[str, str]) -> str:
    # $placeholders, so JSON braces in the template need no escaping.
    return Template(template).safe_substitute(values)
