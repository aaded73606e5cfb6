"""Wires one browser host, coordinator, dispatcher and panel onto a shared bus."""

import logging
from dataclasses import dataclass
from typing import Callable

from bus import MessageBus
from context_store import ContextStore
from dispatcher import Dispatcher
from host import BrowserHost, fetch_document
from panel import PanelController

log = logging.getLogger(__name__)


@dataclass
class AskPageSession:
    bus: MessageBus
    host: BrowserHost
    store: ContextStore
    dispatcher: Dispatcher
    panel: PanelController

    async def start(self) -> None:
        """Start the coordinator (with health polling) and open the panel."""
        self.store.start()
        await self.panel.start()
        log.info("AskPage session started against %s", self.dispatcher.base_url)

    async def stop(self) -> None:
        self.panel.stop()
        self.host.shutdown()
        await self.store.stop()
        await self.bus.drain()
        await self.dispatcher.aclose()


def build_session(
    dispatcher: Dispatcher | None = None,
    fetch: Callable[[str], str | None] = fetch_document,
    copy_to_clipboard: Callable[[str], None] | None = None,
    settle_delay: float | None = None,
    selection_debounce: float | None = None,
    health_interval: float | None = None,
    health_initial_delay: float | None = None,
) -> AskPageSession:
    """Build a session; the coordinator polls the dispatcher's health endpoint."""
    bus = MessageBus()
    dispatcher = dispatcher or Dispatcher()
    host = BrowserHost(bus, fetch=fetch, settle_delay=settle_delay, selection_debounce=selection_debounce)
    store = ContextStore(
        bus,
        host,
        health_check=dispatcher.health_check,
        health_interval=health_interval,
        health_initial_delay=health_initial_delay,
    )
    host.attach(store)
    panel = PanelController(bus, dispatcher, copy_to_clipboard=copy_to_clipboard)
    return AskPageSession(bus=bus, host=host, store=store, dispatcher=dispatcher, panel=panel)
