"""User-facing panel: snapshot refresh, question submission, conversation history."""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import fallback
from bus import (
    COORDINATOR,
    EXTRACT_CONTEXT,
    GET_CONTEXT,
    HEALTH_STATUS,
    PANEL,
    TAB_ACTIVATED,
    TAB_CLOSED,
    Message,
    MessageBus,
)
from dispatcher import Dispatcher
from errors import InvalidQuery
from models import ConnectionStatus, ConversationEntry, Query, Snapshot

log = logging.getLogger(__name__)

HISTORY_LIMIT = 10


def format_age(timestamp: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    hours = minutes // 60
    return f"{hours} hour{'s' if hours > 1 else ''} ago"


class PanelController:
    """State behind the side panel.

    `session` is the (tab_id, generation) pair whose snapshot is on screen.
    An answer that comes back after the session changed is dropped.
    """

    def __init__(
        self,
        bus: MessageBus,
        dispatcher: Dispatcher,
        copy_to_clipboard: Optional[Callable[[str], None]] = None,
    ):
        self.bus = bus
        self.dispatcher = dispatcher
        self.copy_to_clipboard = copy_to_clipboard
        self.status = ConnectionStatus.DISCONNECTED
        self.session: Optional[tuple[int, int]] = None
        self.snapshot: Optional[Snapshot] = None
        self.answer: Optional[str] = None
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.connection_notice: Optional[str] = None
        self.is_loading = False
        self.history: list[ConversationEntry] = []

    async def start(self) -> None:
        self.bus.register(PANEL, self.handle)
        await self.check_connection()
        await self.refresh_snapshot()

    def stop(self) -> None:
        self.bus.unregister(PANEL, self.handle)

    async def check_connection(self) -> bool:
        """Probe the answering service. Only drives the indicator; never blocks submit()."""
        self.status = ConnectionStatus.CONNECTING
        healthy = await self.dispatcher.health_check()
        self._set_health(healthy)
        return healthy

    retry_connection = check_connection

    def _set_health(self, healthy: bool) -> None:
        self.status = ConnectionStatus.CONNECTED if healthy else ConnectionStatus.DISCONNECTED
        self.connection_notice = None if healthy else (
            "Answering service unreachable; answers will come from the page structure."
        )

    def _show_session(self, tab_id: Optional[int], generation: Optional[int]) -> None:
        key = (tab_id, generation) if tab_id is not None else None
        if key != self.session:
            self.session = key
            self.snapshot = None

    async def refresh_snapshot(self) -> Optional[Snapshot]:
        """Pull the active tab's snapshot from the coordinator, extracting it if needed.

        Failures leave a notice and return None; they are never fatal.
        """
        self.notice = None
        try:
            reply = await self.bus.request(COORDINATOR, Message(action=GET_CONTEXT))
            if not reply.get("available"):
                reply = await self.bus.request(COORDINATOR, Message(action=EXTRACT_CONTEXT))
        except LookupError as e:
            log.warning("Coordinator unavailable: %s", e)
            self.notice = "Coordinator unavailable"
            return None

        if reply.get("success") is False:
            self.notice = reply.get("error") or "Failed to extract page context"
            return None

        self._show_session(reply.get("tab_id"), reply.get("generation"))
        if not reply.get("available"):
            self.notice = "Page context not available yet"
            return None
        self.snapshot = Snapshot.model_validate(reply["context"])
        return self.snapshot

    async def submit(self, question: str) -> Optional[ConversationEntry]:
        """Ask `question` about the current snapshot.

        Raises InvalidQuery for blank input. Returns None when a question is
        already in flight, when no snapshot can be had, on failure, or when the
        tab changed before the answer arrived.
        """
        question = (question or "").strip()
        if not question:
            raise InvalidQuery("Question is empty")
        if self.is_loading:
            log.debug("Submit ignored: a question is already in flight")
            return None

        self.is_loading = True
        self.error = None
        try:
            if self.snapshot is None:
                await self.refresh_snapshot()
            if self.snapshot is None:
                self.error = "No page context available. Refresh and try again."
                return None
            session = self.session
            answer = await self.dispatcher.answer(Query(question=question, snapshot=self.snapshot))
        except Exception as e:
            log.error("Failed to get an answer: %s", e)
            self.error = "Failed to get a response. Please try again."
            return None
        finally:
            self.is_loading = False

        if self.session != session:
            log.info("Dropping answer for a tab that is no longer shown")
            return None

        entry = ConversationEntry(question=question, answer=answer.text)
        self.answer = answer.text
        self.history = [entry, *self.history][:HISTORY_LIMIT]
        return entry

    def clear_history(self) -> None:
        self.history = []

    def copy_answer(self) -> bool:
        if not self.answer or self.copy_to_clipboard is None:
            return False
        self.copy_to_clipboard(self.answer)
        return True

    def suggestions(self) -> list[str]:
        return fallback.suggest(self.snapshot or Snapshot())

    async def handle(self, message: Message) -> None:
        if message.action == TAB_ACTIVATED:
            self._show_session(message.tab_id, message.generation)
        elif message.action == TAB_CLOSED:
            if self.session and self.session[0] == message.tab_id:
                self._show_session(None, None)
        elif message.action == HEALTH_STATUS:
            self._set_health(bool(message.payload.get("healthy")))
        else:
            log.debug("Panel ignoring %s", message.action)
