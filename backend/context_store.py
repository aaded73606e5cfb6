"""Coordinator: owns one TabSession per tab and the snapshot inside it."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from bus import (
    CONTEXT_EXTRACTED,
    COORDINATOR,
    EXTRACT_CONTEXT,
    GET_CONTEXT,
    HEALTH_STATUS,
    PANEL,
    SELECTION_CHANGED,
    TAB_ACTIVATED,
    TAB_CLOSED,
    Message,
    MessageBus,
)
from config import config
from errors import ExtractionDenied, ExtractionFailed, StaleResult
from models import Snapshot

log = logging.getLogger(__name__)

PRIVILEGED_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "devtools://",
    "view-source:",
)


def is_privileged(url: str) -> bool:
    return url.lower().startswith(PRIVILEGED_PREFIXES)


@dataclass
class TabSession:
    tab_id: int
    generation: int = 0
    snapshot: Optional[Snapshot] = None
    url: str = ""


class HostSurface(ABC):
    """What the coordinator needs from the browser it runs in."""

    @abstractmethod
    def tab_url(self, tab_id: int) -> Optional[str]:
        """Current URL of the tab, or None if there is no such tab."""

    @abstractmethod
    async def execute_extractor(self, tab_id: int, generation: int) -> dict:
        """Run the extractor inside the tab and return its reply."""

    @abstractmethod
    def set_panel_enabled(self, tab_id: int, enabled: bool) -> None:
        """Idempotently toggle the panel for a tab."""


class ContextStore:
    def __init__(
        self,
        bus: MessageBus,
        host: HostSurface,
        health_check: Callable[[], Awaitable[bool]] | None = None,
        health_interval: float | None = None,
        health_initial_delay: float | None = None,
    ):
        self.bus = bus
        self.host = host
        self.sessions: dict[int, TabSession] = {}
        self.active_tab_id: Optional[int] = None
        self.backend_healthy: Optional[bool] = None
        self.health_check = health_check
        self.health_interval = (
            config["health_interval"] if health_interval is None else health_interval
        )
        self.health_initial_delay = (
            config["health_initial_delay"] if health_initial_delay is None else health_initial_delay
        )
        self._health_task: asyncio.Task | None = None

    # ── Lifecycle ────────────────────────────────────────────

    def start(self) -> None:
        self.bus.register(COORDINATOR, self.handle)
        if self.health_check is not None:
            self._health_task = asyncio.get_running_loop().create_task(self._poll_health())

    async def stop(self) -> None:
        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None
        self.bus.unregister(COORDINATOR, self.handle)

    # ── Tab events ───────────────────────────────────────────

    def _session(self, tab_id: int) -> TabSession:
        session = self.sessions.get(tab_id)
        if session is None:
            session = self.sessions[tab_id] = TabSession(tab_id=tab_id)
            log.info("Session created for tab %d", tab_id)
        return session

    def _invalidate(self, session: TabSession, url: Optional[str]) -> None:
        session.generation += 1
        session.snapshot = None
        if url is not None:
            session.url = url

    def _make_active(self, session: TabSession) -> None:
        self.active_tab_id = session.tab_id
        self.host.set_panel_enabled(session.tab_id, True)
        self.bus.post(PANEL, Message(
            action=TAB_ACTIVATED, tab_id=session.tab_id, generation=session.generation,
        ))

    def activate(self, tab_id: int, url: Optional[str] = None) -> int:
        """Tab switch. Returns the tab's new generation."""
        session = self._session(tab_id)
        self._invalidate(session, url)
        self._make_active(session)
        return session.generation

    def navigation_complete(self, tab_id: int, url: str, active: bool = True) -> int:
        """A tab finished loading `url`. Returns the generation new results must carry.

        Background tabs without a session stay without one until activated.
        """
        session = self.sessions.get(tab_id)
        if session is None and not active:
            return 0
        session = self._session(tab_id)
        self._invalidate(session, url)
        if active:
            self._make_active(session)
        return session.generation

    def close(self, tab_id: int) -> None:
        session = self.sessions.pop(tab_id, None)
        if self.active_tab_id == tab_id:
            self.active_tab_id = None
        if session is not None:
            log.info("Session closed for tab %d", tab_id)
            self.bus.post(PANEL, Message(action=TAB_CLOSED, tab_id=tab_id))

    # ── Results ──────────────────────────────────────────────

    def accept_extraction(self, tab_id: int, generation: Optional[int], snapshot: Snapshot) -> Snapshot:
        """Store `snapshot` if it belongs to the tab's current generation.

        Raises StaleResult otherwise; the session is left untouched.
        """
        session = self.sessions.get(tab_id)
        if session is None or generation != session.generation:
            raise StaleResult(tab_id, generation, session.generation if session else None)
        session.snapshot = snapshot
        log.info(
            "Snapshot accepted for tab %d (generation %d, %d headings, %d actions)",
            tab_id, generation, len(snapshot.headings), len(snapshot.actions),
        )
        return snapshot

    def merge_selection(self, tab_id: int, generation: Optional[int], text: str) -> bool:
        session = self.sessions.get(tab_id)
        if (
            session is None
            or session.snapshot is None
            or tab_id != self.active_tab_id
            or (generation is not None and generation != session.generation)
        ):
            log.debug("Ignoring selection change for tab %s", tab_id)
            return False
        text = text or ""
        session.snapshot = session.snapshot.with_selection(text)
        log.debug("Selection updated for tab %d: %s", tab_id, text[:50])
        return True

    def get_context(self, tab_id: Optional[int] = None) -> Optional[Snapshot]:
        """Current snapshot for the tab (default: active tab), None if not available yet."""
        tab_id = self.active_tab_id if tab_id is None else tab_id
        session = self.sessions.get(tab_id) if tab_id is not None else None
        return session.snapshot if session else None

    async def request_extraction(self, tab_id: Optional[int] = None) -> Optional[Snapshot]:
        """Run the extractor in a tab and store the result.

        Returns None when the tab moved on while the extractor ran.
        """
        tab_id = self.active_tab_id if tab_id is None else tab_id
        if tab_id is None:
            raise ExtractionFailed("No active tab")
        url = self.host.tab_url(tab_id)
        if url is None:
            raise ExtractionFailed(f"Tab {tab_id} does not exist")
        if is_privileged(url):
            raise ExtractionDenied(f"Cannot access privileged page {url}")

        generation = self._session(tab_id).generation
        reply = await self.host.execute_extractor(tab_id, generation)
        if not reply.get("success"):
            raise ExtractionFailed(reply.get("error") or "Failed to extract context")
        try:
            snapshot = Snapshot.model_validate(reply.get("context"))
        except ValidationError as e:
            raise ExtractionFailed(f"Malformed snapshot: {e.error_count()} errors") from e

        try:
            return self.accept_extraction(tab_id, generation, snapshot)
        except StaleResult as e:
            log.debug("Discarding extraction: %s", e)
            return None

    # ── Messages ─────────────────────────────────────────────

    def _context_reply(self, tab_id: Optional[int]) -> dict:
        tab_id = self.active_tab_id if tab_id is None else tab_id
        session = self.sessions.get(tab_id) if tab_id is not None else None
        snapshot = session.snapshot if session else None
        return {
            "available": snapshot is not None,
            "tab_id": tab_id,
            "generation": session.generation if session else None,
            "context": snapshot.model_dump(mode="json") if snapshot else None,
        }

    async def handle(self, message: Message) -> Optional[dict]:
        action = message.action

        if action == CONTEXT_EXTRACTED:
            try:
                snapshot = Snapshot.model_validate(message.payload.get("context"))
                self.accept_extraction(message.tab_id, message.generation, snapshot)
            except StaleResult as e:
                log.debug("Discarding pushed snapshot: %s", e)
            except ValidationError as e:
                log.warning("Malformed snapshot from tab %s: %s", message.tab_id, e)
            return None

        if action == SELECTION_CHANGED:
            self.merge_selection(
                message.tab_id, message.generation, message.payload.get("selected_text") or "",
            )
            return None

        if action == GET_CONTEXT:
            return self._context_reply(message.tab_id)

        if action == EXTRACT_CONTEXT:
            tab_id = self.active_tab_id if message.tab_id is None else message.tab_id
            try:
                await self.request_extraction(tab_id)
            except ExtractionDenied as e:
                log.info("Extraction denied for tab %s: %s", tab_id, e)
                return {"success": False, "denied": True, "error": str(e)}
            except ExtractionFailed as e:
                log.warning("Extraction failed for tab %s: %s", tab_id, e)
                return {"success": False, "denied": False, "error": str(e)}
            return {"success": True, **self._context_reply(tab_id)}

        log.info("Unknown message action: %s", action)
        return None

    # ── Health ───────────────────────────────────────────────

    async def _poll_health(self) -> None:
        await asyncio.sleep(self.health_initial_delay)
        while True:
            try:
                healthy = bool(await self.health_check())
            except Exception as e:
                log.error("Health check raised: %s", e)
                healthy = False
            if healthy != self.backend_healthy:
                if healthy:
                    log.info("Answering service is healthy")
                else:
                    log.warning("Answering service not reachable")
            self.backend_healthy = healthy
            self.bus.post(PANEL, Message(action=HEALTH_STATUS, payload={"healthy": healthy}))
            await asyncio.sleep(self.health_interval)
