"""Conversation state machine for the stock assistant.

Role:
    Interprets each inbound message against the conversation's Session and
    produces the reply. Decisions are pure transition functions that take a
    Session and return a Transition (new Session + reply); DialogueController
    only performs the I/O those transitions ask for (intent classification and
    catalog search) and writes the resulting Session back to the store.

Evaluation order for every message (first match wins):
    1. Control commands: cancel family resets everything; 'voltar' pops history.
    2. Show all / show first N: only with an active result set; otherwise the
       message continues down the list.
    3. Pending confirmation: affirmative runs the pending search, anything else
       cancels it.
    4. Refinement of the active result set by token overlap.
    5. Greeting shortcut (INITIAL only).
    6. External intent classification.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Protocol

from . import formatter
from .catalog import CatalogSearcher, SEARCH_FAILED_MESSAGE, not_found_message
from .commands import Command, CommandKind, CommandVocabulary, classify_command
from .errors import ConfigurationError, MalformedResponseError
from .models import CatalogResult, ConfirmSearch, Intent, NewSearch, Search, UnknownIntent
from .relevance import score_products
from .session_store import Session, SessionState, SessionStore
from .snapshots import ResultSnapshotWriter

logger = logging.getLogger("stockbot.dialogue")

DEFAULT_DISPLAY_THRESHOLD = 1


class IntentSource(Protocol):
    async def classify(self, message: str) -> Intent:
        ...


@dataclass(frozen=True)
class Transition:
    """Result of one decision; search_term asks the controller to run a catalog search."""
    session: Session
    reply: str
    route: str
    search_term: Optional[str] = None


def cancel(session: Session) -> Transition:
    return Transition(Session(), formatter.CANCEL_ACK, "cancel")


def go_back(session: Session) -> Transition:
    """Restore the previous result set; informative no-op when history is empty."""
    if not session.result_history:
        return Transition(session, formatter.BACK_EMPTY, "back_empty")
    previous = session.result_history[-1]
    restored = Session(
        state=SessionState.SEARCH_MODE,
        current_results=previous,
        result_history=session.result_history[:-1],
    )
    return Transition(restored, formatter.back_restored(len(previous)), "back")


def show_all(session: Session) -> Transition:
    """List every product of the active result set; the session is unchanged."""
    reply = formatter.render_full_list(session.current_results, bool(session.result_history))
    return Transition(session, reply, "show_all")


def show_first(session: Session, count: int) -> Transition:
    reply = formatter.render_first(session.current_results, count, bool(session.result_history))
    return Transition(session, reply, "show_first")


def resolve_confirmation(session: Session, command: Command) -> Transition:
    """Purpose: Consume the pending confirmation.
    Inputs/Outputs: Inputs are an AWAITING_CONFIRMATION session and the classified
        command; output is a Transition.
    Side Effects / State: None; pure function.
    Dependencies: Session, formatter constants.
    Failure Modes: A session without a pending action is declined.
    If Removed: Broad searches can never be confirmed.
    Testing Notes: 'sim' -> SEARCH_MODE with search_term; 'talvez' -> INITIAL.
    """
    pending = session.pending_action
    if command.kind is CommandKind.AFFIRM and pending is not None:
        return Transition(Session(state=SessionState.SEARCH_MODE), "", "confirmed", search_term=pending.term)
    return Transition(Session(), formatter.CONFIRM_DECLINED, "confirm_declined")


def refine(session: Session, phrase: str, page_size: int) -> Transition:
    """Purpose: Narrow the active result set by token overlap with the message.
    Inputs/Outputs: Inputs are a SEARCH_MODE session with results, the phrase, and the
        page size; output is a Transition.
    Side Effects / State: None; pure function.
    Dependencies: score_products, formatter.render_refinement, formatter.no_match.
    Failure Modes: No match keeps results and history untouched.
    If Removed: Users cannot narrow large result sets.
    Testing Notes: A matching phrase pushes exactly one history entry.
    """
    refined = score_products(session.current_results, phrase)
    if not refined:
        return Transition(session, formatter.no_match(phrase), "refine_no_match")
    history = session.result_history + (session.current_results,)
    updated = replace(session, current_results=tuple(refined), result_history=history)
    reply = formatter.render_refinement(phrase, refined, page_size, has_history=True)
    return Transition(updated, reply, "refine")


def greet(session: Session) -> Transition:
    return Transition(session, formatter.GREETING_REPLY, "greeting")


def apply_intent(session: Session, intent: Intent) -> Transition:
    """Map a decoded classifier intent onto the session."""
    if isinstance(intent, ConfirmSearch):
        waiting = Session(state=SessionState.AWAITING_CONFIRMATION, pending_action=intent)
        return Transition(waiting, formatter.confirm_prompt(intent.term), "confirm_search")
    if isinstance(intent, (Search, NewSearch)):
        return Transition(Session(state=SessionState.SEARCH_MODE), "", intent.action, search_term=intent.term)
    if isinstance(intent, UnknownIntent):
        return Transition(session, formatter.HELP_PROMPT, "unknown")
    return Transition(session, formatter.CLASSIFIER_APOLOGY, "unrecognized_intent")


def apply_search_result(session: Session, term: str, result: CatalogResult, display_threshold: int) -> Transition:
    """Purpose: Store a catalog search outcome in the session.
    Inputs/Outputs: Inputs are the session, term, CatalogResult, and threshold; output
        is a Transition in SEARCH_MODE.
    Side Effects / State: None; pure function.
    Dependencies: formatter.narrow_prompt and formatter.render_search_results.
    Failure Modes: Failed or empty results clear results and history and reply the
        collaborator's error text.
    If Removed: Searches would never populate the active result set.
    Testing Notes: 5 products with threshold 1 -> narrow prompt, 5 results, no history.
    """
    if not result.success or not result.products:
        error = result.error or not_found_message(term)
        cleared = Session(state=SessionState.SEARCH_MODE)
        return Transition(cleared, error, "search_failed")
    products = tuple(result.products)
    updated = Session(state=SessionState.SEARCH_MODE, current_results=products)
    if len(products) > display_threshold:
        return Transition(updated, formatter.narrow_prompt(term, len(products)), "search_narrow")
    return Transition(updated, formatter.render_search_results(term, products), "search_direct")


class DialogueController:
    """Runs the per-message decision pipeline under the conversation lock."""

    def __init__(
        self,
        store: SessionStore,
        classifier: IntentSource,
        catalog: CatalogSearcher,
        display_threshold: int = DEFAULT_DISPLAY_THRESHOLD,
        vocabulary: Optional[CommandVocabulary] = None,
        snapshots: Optional[ResultSnapshotWriter] = None,
    ) -> None:
        """Purpose: Wire the session store and collaborators.
        Inputs/Outputs: Inputs are the store, classifier, catalog, display threshold,
            optional command vocabulary, and optional snapshot writer; no return value.
        Side Effects / State: Stores references only.
        Dependencies: SessionStore, IntentSource, CatalogSearcher.
        Failure Modes: display_threshold below 1 raises ValueError.
        If Removed: Inbound messages cannot be answered.
        Testing Notes: Build with fakes for classifier and catalog.
        """
        if display_threshold < 1:
            raise ValueError("display_threshold must be >= 1")
        self._store = store
        self._classifier = classifier
        self._catalog = catalog
        self._display_threshold = display_threshold
        self._vocabulary = vocabulary or CommandVocabulary()
        self._snapshots = snapshots
        self._config_warned = False

    @property
    def store(self) -> SessionStore:
        return self._store

    async def handle(self, conversation_id: str, text: str) -> str:
        """Purpose: Answer one message for one conversation.
        Inputs/Outputs: Inputs are the conversation id and raw text; output is the reply.
        Side Effects / State: Holds the conversation lock while deciding; saves the new
            session on success.
        Dependencies: SessionStore.locked, decide.
        Failure Modes: Unexpected exceptions are logged and answered with a generic
            apology; the session is left as it was.
        If Removed: The transport layer has no entry point into the dialogue.
        Testing Notes: Concurrent calls for one conversation are serialized.
        """
        async with self._store.locked(conversation_id) as session:
            logger.debug("conversation=%s state=%s message=%s", conversation_id, session.state.value, text)
            try:
                transition = await self.decide(conversation_id, session, text)
            except Exception:
                logger.exception("conversation=%s pipeline failure", conversation_id)
                return formatter.PIPELINE_APOLOGY
            self._store.save(conversation_id, transition.session)
        logger.info(
            "conversation=%s route=%s state=%s results=%d",
            conversation_id,
            transition.route,
            transition.session.state.value,
            len(transition.session.current_results),
        )
        return transition.reply

    async def decide(self, conversation_id: str, session: Session, text: str) -> Transition:
        command = classify_command(text, self._vocabulary)

        if command.kind is CommandKind.CANCEL:
            return cancel(session)
        if command.kind is CommandKind.BACK:
            return go_back(session)
        # Without an active result set these fall through like any other text.
        if session.has_results:
            if command.kind is CommandKind.SHOW_ALL:
                return show_all(session)
            if command.kind is CommandKind.SHOW_FIRST and command.count is not None:
                return show_first(session, command.count)

        if session.state is SessionState.AWAITING_CONFIRMATION:
            transition = resolve_confirmation(session, command)
            return await self._follow(conversation_id, transition)

        if session.has_results:
            return refine(session, command.text, self._display_threshold)

        if command.kind is CommandKind.GREETING and session.state is SessionState.INITIAL:
            return greet(session)

        return await self._classify(conversation_id, session, command.text)

    async def _classify(self, conversation_id: str, session: Session, text: str) -> Transition:
        try:
            intent = await self._classifier.classify(text)
        except ConfigurationError as exc:
            if not self._config_warned:
                logger.warning("classifier not configured: %s", exc)
                self._config_warned = True
            return Transition(session, formatter.CONFIGURATION_MESSAGE, "config_error")
        except MalformedResponseError as exc:
            logger.warning("conversation=%s malformed classifier output error=%s raw=%s", conversation_id, exc, exc.raw[:200])
            return Transition(session, formatter.CLASSIFIER_APOLOGY, "classifier_malformed")
        except Exception as exc:  # UpstreamError or anything a collaborator raises
            logger.error("conversation=%s classifier failed error=%s", conversation_id, exc)
            return Transition(session, formatter.CLASSIFIER_APOLOGY, "classifier_error")
        return await self._follow(conversation_id, apply_intent(session, intent))

    async def _follow(self, conversation_id: str, transition: Transition) -> Transition:
        if transition.search_term is None:
            return transition
        return await self._search(conversation_id, transition.session, transition.search_term)

    async def _search(self, conversation_id: str, session: Session, term: str) -> Transition:
        logger.info("conversation=%s search term=%s", conversation_id, term)
        try:
            result = await self._catalog.search_catalog(term)
        except Exception as exc:  # adapters should return error shapes; keep the reply path alive
            logger.error("conversation=%s catalog failed term=%s error=%s", conversation_id, term, exc)
            result = CatalogResult(success=False, error=SEARCH_FAILED_MESSAGE)
        if result.success and result.products and self._snapshots is not None:
            self._snapshots.write(conversation_id, term, result.products)
        return apply_search_result(session, term, result, self._display_threshold)
