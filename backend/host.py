"""In-process browser host: tabs, their page agents, and the events the coordinator listens to."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from bus import EXTRACT_CONTEXT, Message, MessageBus, tab_endpoint
from config import config
from context_store import ContextStore, HostSurface, is_privileged
from extractor import PageAgent

log = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def fetch_document(url: str) -> str | None:
    """Fetch a page's HTML. Returns None on failure."""
    try:
        resp = httpx.get(
            url,
            follow_redirects=True,
            timeout=config["fetch_timeout"],
            headers={"User-Agent": _USER_AGENT},
        )
        resp.raise_for_status()
    except Exception as e:
        log.warning("Failed to fetch %s: %s", url, e)
        return None
    return resp.text


@dataclass
class Tab:
    tab_id: int
    url: str
    agent: Optional[PageAgent] = None


class BrowserHost(HostSurface):
    """Owns the open tabs and forwards tab events to the coordinator.

    Privileged tabs get no page agent, matching browsers that refuse to
    inject scripts into them.
    """

    def __init__(
        self,
        bus: MessageBus,
        fetch: Callable[[str], str | None] = fetch_document,
        settle_delay: float | None = None,
        selection_debounce: float | None = None,
    ):
        self.bus = bus
        self.fetch = fetch
        self.settle_delay = settle_delay
        self.selection_debounce = selection_debounce
        self.tabs: dict[int, Tab] = {}
        self.panel_enabled: dict[int, bool] = {}
        self.active_tab_id: Optional[int] = None
        self.store: Optional[ContextStore] = None

    def attach(self, store: ContextStore) -> None:
        self.store = store

    # ── HostSurface ─────────────────────────────────────────

    def tab_url(self, tab_id: int) -> Optional[str]:
        tab = self.tabs.get(tab_id)
        return tab.url if tab else None

    async def execute_extractor(self, tab_id: int, generation: int) -> dict:
        tab = self.tabs.get(tab_id)
        if tab is None or tab.agent is None:
            return {"success": False, "error": f"No extractor running in tab {tab_id}"}
        return await self.bus.request(
            tab_endpoint(tab_id),
            Message(action=EXTRACT_CONTEXT, tab_id=tab_id, generation=generation),
        )

    def set_panel_enabled(self, tab_id: int, enabled: bool) -> None:
        self.panel_enabled[tab_id] = enabled

    # ── Browser events ──────────────────────────────────────

    async def open_tab(self, tab_id: int, url: str, html: str | None = None, active: bool = True) -> None:
        self.tabs[tab_id] = Tab(tab_id=tab_id, url=url)
        if active:
            self.active_tab_id = tab_id
        await self.navigate(tab_id, url, html)

    async def navigate(self, tab_id: int, url: str, html: str | None = None) -> None:
        """Load `url` in the tab, replacing its page agent once loading completes."""
        tab = self.tabs[tab_id]
        if tab.agent:
            tab.agent.stop()
            tab.agent = None
        tab.url = url

        if not is_privileged(url):
            if html is None:
                html = await asyncio.to_thread(self.fetch, url) or ""
            tab.agent = PageAgent(
                self.bus, tab_id, url, html,
                settle_delay=self.settle_delay,
                selection_debounce=self.selection_debounce,
            )

        generation = self.store.navigation_complete(tab_id, url, active=tab_id == self.active_tab_id)
        if tab.agent:
            tab.agent.generation = generation
            tab.agent.start()

    def activate(self, tab_id: int) -> None:
        tab = self.tabs[tab_id]
        self.active_tab_id = tab_id
        self.store.activate(tab_id, tab.url)

    def select(self, tab_id: int, text: str) -> None:
        tab = self.tabs[tab_id]
        if tab.agent:
            tab.agent.select(text)

    def close_tab(self, tab_id: int) -> None:
        tab = self.tabs.pop(tab_id, None)
        if tab and tab.agent:
            tab.agent.stop()
        self.panel_enabled.pop(tab_id, None)
        if self.active_tab_id == tab_id:
            self.active_tab_id = None
        self.store.close(tab_id)

    def shutdown(self) -> None:
        for tab in self.tabs.values():
            if tab.agent:
                tab.agent.stop()
