from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent

PLACEHOLDER_TOKENS = {"SEU_TOKEN_AQUI", "YOUR_TOKEN_HERE", "changeme"}


@dataclass(frozen=True)
class Settings:
    """Configuration container for collaborators, dialogue limits, and transport."""
    gemini_api_key: str
    gemini_model: str
    tiny_api_token: str
    tiny_api_url: str
    http_timeout_seconds: float
    display_threshold: int
    freshness_window_seconds: int
    stock_lookup_concurrency: int
    results_snapshot_path: Optional[Path]
    prompts_dir: Path
    wpp_base_url: str
    wpp_session: str
    wpp_token: str


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid integer/float env values raise ValueError; a
        DISPLAY_THRESHOLD below 1 raises ValueError.
    If Removed: App cannot configure the classifier, catalog, or dialogue limits.
    Testing Notes: Verify defaults and overrides via monkeypatched environment.
    """
    # Resolve the snapshot path; an explicitly empty value disables snapshots.
    snapshot_env = os.getenv("RESULTS_SNAPSHOT_PATH")
    if snapshot_env is None:
        snapshot_path: Optional[Path] = (BASE_DIR / "data" / "produtos.json").resolve()
    elif snapshot_env.strip():
        snapshot_path = Path(snapshot_env.strip())
    else:
        snapshot_path = None

    display_threshold = int(os.getenv("DISPLAY_THRESHOLD", "1"))
    if display_threshold < 1:
        raise ValueError("DISPLAY_THRESHOLD must be >= 1")

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
        tiny_api_token=os.getenv("TINY_API_TOKEN", "").strip(),
        tiny_api_url=os.getenv("TINY_API_URL", "https://api.tiny.com.br/api2").rstrip("/"),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "15")),
        display_threshold=display_threshold,
        freshness_window_seconds=int(os.getenv("FRESHNESS_WINDOW_SECONDS", "300")),
        stock_lookup_concurrency=max(1, int(os.getenv("STOCK_LOOKUP_CONCURRENCY", "5"))),
        results_snapshot_path=snapshot_path,
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        wpp_base_url=os.getenv("WPP_BASE_URL", "").rstrip("/"),
        wpp_session=os.getenv("WPP_SESSION", "whatsapp-bot"),
        wpp_token=os.getenv("WPP_TOKEN", ""),
    )


def is_placeholder(value: str) -> bool:
    """Return True when a credential is empty or one of the known placeholders."""
    return not value or value.strip() in PLACEHOLDER_TOKENS
