"""Tagged message channel between page agents, the coordinator and the panel.

Each context only ever sees its own copy of a message: every delivery is
round-tripped through JSON, so no two contexts hold the same object.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field

log = logging.getLogger(__name__)

COORDINATOR = "coordinator"
PANEL = "panel"

CONTEXT_EXTRACTED = "contextExtracted"
SELECTION_CHANGED = "selectionChanged"
GET_CONTEXT = "getContext"
EXTRACT_CONTEXT = "extractContext"
TAB_ACTIVATED = "tabActivated"
TAB_CLOSED = "tabClosed"
HEALTH_STATUS = "healthStatus"


def tab_endpoint(tab_id: int) -> str:
    return f"tab:{tab_id}"


class Message(BaseModel):
    action: str
    tab_id: Optional[int] = None
    generation: Optional[int] = None
    payload: dict[str, Any] = Field(default_factory=dict)


Handler = Callable[[Message], Awaitable[Optional[dict]]]


class MessageBus:
    def __init__(self):
        self._handlers: dict[str, Handler] = {}
        self._pending: set[asyncio.Task] = set()

    def register(self, endpoint: str, handler: Handler) -> None:
        self._handlers[endpoint] = handler

    def unregister(self, endpoint: str, handler: Handler | None = None) -> None:
        """Drop an endpoint. With `handler`, only if it is still the registered one."""
        if handler is not None and self._handlers.get(endpoint) != handler:
            return
        self._handlers.pop(endpoint, None)

    def has(self, endpoint: str) -> bool:
        return endpoint in self._handlers

    async def request(self, endpoint: str, message: Message) -> dict:
        """Deliver `message` and wait for the handler's reply."""
        handler = self._handlers.get(endpoint)
        if handler is None:
            raise LookupError(f"No handler registered for {endpoint!r}")
        reply = await handler(Message.model_validate_json(message.model_dump_json()))
        return json.loads(json.dumps(reply)) if reply is not None else {}

    def post(self, endpoint: str, message: Message) -> None:
        """Fire-and-forget delivery. Unknown endpoints drop the message."""
        handler = self._handlers.get(endpoint)
        if handler is None:
            log.debug("Dropping %s: no handler for %s", message.action, endpoint)
            return
        copy = Message.model_validate_json(message.model_dump_json())
        task = asyncio.get_running_loop().create_task(self._deliver(handler, copy))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, handler: Handler, message: Message) -> None:
        try:
            await handler(message)
        except Exception:
            log.exception("Handler failed for %s", message.action)

    async def drain(self) -> None:
        """Wait until every posted message has been handled."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
