from __future__ import annotations

import logging
import os
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, HTTPException

from .catalog import TinyCatalogClient
from .config import Settings, load_settings
from .dialogue import DialogueController
from .errors import ConfigurationError
from .gemini_client import GeminiClient
from .intent_classifier import IntentClassifier
from .models import ChatRequest, ChatResponse, InboundMessage, MessageResult, SessionView
from .session_store import SessionStore
from .snapshots import ResultSnapshotWriter
from .transport import MessageGate, WppConnectSender

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("stockbot").setLevel(log_level)
logger = logging.getLogger("stockbot.app")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)
else:
    load_dotenv()


def build_gemini(settings: Settings) -> Optional[GeminiClient]:
    """Return a Gemini client, or None when credentials are missing."""
    try:
        return GeminiClient(settings)
    except ConfigurationError as exc:
        logger.warning("gemini disabled: %s", exc)
        return None


def build_controller(settings: Settings, gemini: Optional[GeminiClient], catalog: TinyCatalogClient) -> DialogueController:
    """Purpose: Assemble the dialogue controller from settings and collaborators.
    Inputs/Outputs: Inputs are Settings, an optional Gemini client, and the catalog
        client; output is a DialogueController with a fresh SessionStore.
    Side Effects / State: Reads the classifier prompt from the prompts directory.
    Dependencies: IntentClassifier, SessionStore, ResultSnapshotWriter.
    Failure Modes: A missing prompt file raises FileNotFoundError at startup.
    If Removed: create_app cannot answer messages.
    Testing Notes: Covered through create_app with injected collaborators.
    """
    snapshots = ResultSnapshotWriter(settings.results_snapshot_path) if settings.results_snapshot_path else None
    return DialogueController(
        store=SessionStore(),
        classifier=IntentClassifier.from_prompts_dir(gemini, settings.prompts_dir),
        catalog=catalog,
        display_threshold=settings.display_threshold,
        snapshots=snapshots,
    )


def create_app(
    settings: Optional[Settings] = None,
    controller: Optional[DialogueController] = None,
    gate: Optional[MessageGate] = None,
    sender: Optional[WppConnectSender] = None,
) -> FastAPI:
    """Purpose: Build the FastAPI application (uvicorn --factory entrypoint).
    Inputs/Outputs: Optional settings and pre-built collaborators; output is a FastAPI app.
    Side Effects / State: Creates HTTP clients when collaborators are not injected and
        closes them on shutdown; probes the classifier once at startup.
    Dependencies: load_settings, build_gemini, build_controller, MessageGate,
        WppConnectSender.
    Failure Modes: Invalid settings raise ValueError; missing credentials only
        degrade replies.
    If Removed: There is no HTTP surface for the transport or direct chat.
    Testing Notes: Inject a controller built with fakes and use TestClient.
    """
    settings = settings or load_settings()
    closers: List = []
    gemini: Optional[GeminiClient] = None

    if controller is None:
        gemini = build_gemini(settings)
        catalog = TinyCatalogClient(
            token=settings.tiny_api_token,
            base_url=settings.tiny_api_url,
            timeout_seconds=settings.http_timeout_seconds,
            stock_concurrency=settings.stock_lookup_concurrency,
        )
        closers.append(catalog)
        controller = build_controller(settings, gemini, catalog)
    if gate is None:
        gate = MessageGate(freshness_window_seconds=settings.freshness_window_seconds)
    if sender is None and settings.wpp_base_url:
        sender = WppConnectSender(
            settings.wpp_base_url,
            settings.wpp_session,
            settings.wpp_token,
            timeout_seconds=settings.http_timeout_seconds,
        )
        closers.append(sender)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("stockbot starting model=%s threshold=%d", settings.gemini_model, settings.display_threshold)
        if gemini is not None and not await gemini.verify_connection():
            logger.error("gemini unreachable; classification will answer with apologies")
        yield
        for closer in closers:
            await closer.aclose()
        logger.info("stockbot stopped")

    app = FastAPI(title="Stockbot Catalog Assistant", lifespan=lifespan)
    app.state.controller = controller
    app.state.gate = gate
    app.state.sender = sender

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "sessions": len(controller.store)}

    @app.post("/api/messages", response_model=MessageResult)
    async def receive_message(message: InboundMessage, background_tasks: BackgroundTasks) -> MessageResult:
        """Purpose: Transport webhook; answer one inbound chat message.
        Inputs/Outputs: Input is InboundMessage; output is MessageResult with the reply.
        Side Effects / State: Mutates the conversation session; schedules outbound
            delivery when a sender is configured.
        Dependencies: MessageGate, DialogueController, WppConnectSender.
        Failure Modes: Dropped messages return handled=False; pipeline failures are
            already converted to apology replies by the controller.
        If Removed: The chat transport cannot reach the assistant.
        Testing Notes: A group message returns handled=False reason='group'.
        """
        decision = gate.check(message)
        if not decision.accepted:
            return MessageResult(conversation_id=message.conversation_id, handled=False, reason=decision.reason)
        logger.info(
            "message received conversation=%s sender=%s",
            message.conversation_id,
            message.sender_name or "unknown",
        )
        reply = await controller.handle(message.conversation_id, message.body)
        if sender is not None:
            background_tasks.add_task(sender.send_message, message.conversation_id, reply)
        return MessageResult(conversation_id=message.conversation_id, handled=True, reply=reply)

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest) -> ChatResponse:
        """Direct chat without the transport gate; a missing session id starts a new one."""
        if not request.message.strip():
            raise HTTPException(status_code=400, detail="message must not be empty")
        session_id = request.session_id or uuid.uuid4().hex
        reply = await controller.handle(session_id, request.message)
        state = controller.store.get_or_create(session_id).state
        return ChatResponse(answer_text=reply, session_id=session_id, state=state.value)

    @app.get("/api/sessions/{conversation_id}", response_model=SessionView)
    def get_session(conversation_id: str) -> SessionView:
        session = controller.store.get(conversation_id)
        if session is None:
            raise HTTPException(status_code=404, detail="unknown conversation")
        return SessionView(
            conversation_id=conversation_id,
            state=session.state.value,
            pending_term=session.pending_action.term if session.pending_action else None,
            result_count=len(session.current_results),
            history_depth=len(session.result_history),
        )

    return app
