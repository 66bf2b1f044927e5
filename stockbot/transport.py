"""Edge of the chat transport: inbound message gate and outbound delivery."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .models import InboundMessage

logger = logging.getLogger("stockbot.transport")

BROADCAST_SUFFIX = "@newsletter"
DEFAULT_FRESHNESS_WINDOW_SECONDS = 5 * 60


@dataclass(frozen=True)
class GateDecision:
    accepted: bool
    reason: Optional[str] = None


class MessageGate:
    """Drops inbound messages that must never reach the dialogue controller."""

    def __init__(
        self,
        freshness_window_seconds: int = DEFAULT_FRESHNESS_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._window = freshness_window_seconds
        self._clock = clock

    def is_fresh(self, timestamp_seconds: float) -> bool:
        return (self._clock() - timestamp_seconds) < self._window

    def check(self, message: InboundMessage) -> GateDecision:
        """Purpose: Decide whether an inbound message enters the pipeline.
        Inputs/Outputs: Input is an InboundMessage; output is a GateDecision.
        Side Effects / State: Reads the clock; logs dropped messages at DEBUG.
        Dependencies: is_fresh and BROADCAST_SUFFIX.
        Failure Modes: None.
        If Removed: Stale, group, status, broadcast, and empty messages get answers.
        Testing Notes: A message 6 minutes old is rejected with reason 'stale'.
        """
        # Stale first: after a restart the transport replays old messages.
        if not self.is_fresh(message.timestamp_seconds):
            reason = "stale"
        elif message.is_group:
            reason = "group"
        elif message.is_status:
            reason = "status"
        elif message.is_broadcast_channel or message.conversation_id.endswith(BROADCAST_SUFFIX):
            reason = "broadcast_channel"
        elif not message.body or not message.body.strip():
            reason = "empty"
        else:
            return GateDecision(accepted=True)
        logger.debug(
            "message dropped conversation=%s reason=%s body=%s",
            message.conversation_id,
            reason,
            (message.body or "")[:50],
        )
        return GateDecision(accepted=False, reason=reason)


class WppConnectSender:
    """Delivers replies through a WPPConnect server REST API."""

    def __init__(
        self,
        base_url: str,
        session_name: str,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        """Purpose: Configure the WPPConnect endpoint and HTTP client.
        Inputs/Outputs: Inputs are base url, session name, bearer token, optional httpx
            client, and timeout; no return value.
        Side Effects / State: Creates an httpx.AsyncClient when none is given.
        Dependencies: httpx.
        Failure Modes: None at init.
        If Removed: Replies are only returned in the webhook response.
        Testing Notes: Inject an httpx.MockTransport and inspect the request.
        """
        self._url = f"{base_url.rstrip('/')}/api/{session_name}/send-message"
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send_message(self, conversation_id: str, text: str) -> bool:
        """Fire-and-forget delivery; failures are logged and reported as False."""
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        payload = {"phone": conversation_id, "message": text, "isGroup": False}
        try:
            response = await self._client.post(self._url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("send failed conversation=%s error=%s", conversation_id, exc)
            return False
        logger.info("reply sent conversation=%s", conversation_id)
        return True
