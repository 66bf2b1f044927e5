from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Sequence

from .models import Product

logger = logging.getLogger("stockbot.snapshots")


class ResultSnapshotWriter:
    """Writes the latest catalog search results to a JSON file for inspection."""

    def __init__(self, path: Path) -> None:
        """Purpose: Configure the snapshot file location.
        Inputs/Outputs: Input is a Path; no return value.
        Side Effects / State: None until write() is called.
        Dependencies: None.
        Failure Modes: None at init.
        If Removed: Operators lose the last-search dump used to debug catalog data.
        Testing Notes: Write to a tmp_path and read the JSON back.
        """
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, conversation_id: str, term: str, products: Sequence[Product]) -> bool:
        """Purpose: Persist one search result set.
        Inputs/Outputs: Inputs are the conversation id, term, and products; output is
            True when the file was written.
        Side Effects / State: Creates parent directories and overwrites the file.
        Dependencies: json.dumps and Path.write_text; Product.model_dump.
        Failure Modes: OSError is logged and reported as False; never raised.
        If Removed: No snapshot of intermediate results is kept.
        Testing Notes: Decimal prices are serialized as strings.
        """
        # Serialize the result set with enough context to correlate with logs.
        payload = {
            "conversation_id": conversation_id,
            "term": term,
            "saved_at": time.time(),
            "products": [product.model_dump(mode="json") for product in products],
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("snapshot write failed path=%s error=%s", self._path, exc)
            return False
        logger.debug("snapshot saved path=%s products=%d", self._path, len(products))
        return True
