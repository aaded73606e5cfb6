"""Page-scoped snapshot extraction using BeautifulSoup + trafilatura."""

import asyncio
import logging
import time
from urllib.parse import urljoin

import trafilatura
from bs4 import BeautifulSoup

from bus import (
    COORDINATOR,
    CONTEXT_EXTRACTED,
    EXTRACT_CONTEXT,
    SELECTION_CHANGED,
    Message,
    MessageBus,
    tab_endpoint,
)
from config import config
from models import (
    MAX_ACTION_LEN,
    MAX_ACTIONS,
    MAX_FIELD_LEN,
    MAX_FORM_INPUTS,
    MAX_FORMS,
    MAX_HEADING_LEN,
    MAX_HEADINGS,
    MAX_META_LEN,
    MAX_PARAGRAPH_LEN,
    MAX_PARAGRAPHS,
    MAX_SELECTION_LEN,
    MAX_TITLE_LEN,
    MAX_URL_LEN,
    Action,
    ExtractionResult,
    Form,
    FormInput,
    Heading,
    Snapshot,
    clip,
)

log = logging.getLogger(__name__)

_HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6"
_ACTION_SELECTOR = 'button, a[href], [role="button"], input[type="submit"], input[type="button"]'
_FIELD_SELECTOR = "input, select, textarea"
_FORM_METHODS = ("GET", "POST", "DIALOG")

# Action labels this short are icons or stray glyphs.
MIN_ACTION_LEN = 3
MIN_PARAGRAPH_LEN = 21


def extract_snapshot(html: str, url: str, selected_text: str = "") -> ExtractionResult:
    """Build a bounded Snapshot of `html`.

    Never raises: any parsing fault comes back as a failed ExtractionResult.
    Elements past the caps are dropped silently.
    """
    started = time.perf_counter()
    try:
        snapshot = _build_snapshot(html or "", url or "", selected_text, started)
    except Exception as e:
        log.warning("Extraction failed for %s: %s", url, e)
        return ExtractionResult(success=False, error=str(e) or e.__class__.__name__)
    return ExtractionResult(success=True, snapshot=snapshot)


def _build_snapshot(html: str, url: str, selected_text: str, started: float) -> Snapshot:
    soup = BeautifulSoup(html, "html.parser")

    title = clip(soup.title.get_text() if soup.title else "", MAX_TITLE_LEN)
    meta = soup.find("meta", attrs={"name": "description"})
    description = clip(meta.get("content") if meta else "", MAX_META_LEN)
    if html and not (title and description):
        title, description = _metadata_fallback(html, title, description)

    snapshot = Snapshot(
        title=title,
        url=clip(url, MAX_URL_LEN),
        meta_description=description,
        headings=_headings(soup),
        actions=_actions(soup, url),
        forms=_forms(soup, url),
        paragraphs=_paragraphs(soup),
        selected_text=clip(selected_text, MAX_SELECTION_LEN),
    )
    elapsed_ms = round((time.perf_counter() - started) * 1000)
    return snapshot.model_copy(update={"extraction_duration_ms": elapsed_ms})


def _metadata_fallback(html: str, title: str, description: str) -> tuple[str, str]:
    """Fill a missing title/description from OpenGraph and friends."""
    try:
        metadata = trafilatura.extract_metadata(html)
    except Exception as e:
        log.debug("Metadata extraction failed: %s", e)
        return title, description
    if metadata:
        title = title or clip(metadata.title, MAX_TITLE_LEN)
        description = description or clip(metadata.description, MAX_META_LEN)
    return title, description


def _headings(soup: BeautifulSoup) -> tuple[Heading, ...]:
    headings = []
    for el in soup.select(_HEADING_SELECTOR):
        if len(headings) >= MAX_HEADINGS:
            break
        text = clip(el.get_text(" "), MAX_HEADING_LEN)
        if text:
            headings.append(Heading(level=int(el.name[1]), text=text))
    return tuple(headings)


def _action_kind(el) -> str:
    if el.name in ("button", "input") or el.get("role") == "button":
        return "button"
    return "link"


def _actions(soup: BeautifulSoup, base_url: str) -> tuple[Action, ...]:
    actions = []
    for el in soup.select(_ACTION_SELECTOR):
        if len(actions) >= MAX_ACTIONS:
            break
        label = (
            clip(el.get_text(" "), MAX_ACTION_LEN)
            or clip(el.get("value"), MAX_ACTION_LEN)
            or clip(el.get("aria-label"), MAX_ACTION_LEN)
        )
        if len(label) < MIN_ACTION_LEN:
            continue
        href = el.get("href")
        actions.append(Action(
            text=label,
            kind=_action_kind(el),
            href=clip(urljoin(base_url, href), MAX_URL_LEN) if href else None,
        ))
    return tuple(actions)


def _field_type(el) -> str:
    if el.name == "select":
        return "select-multiple" if el.has_attr("multiple") else "select-one"
    if el.name == "textarea":
        return "textarea"
    return clip(el.get("type"), MAX_FIELD_LEN).lower() or "text"


def _forms(soup: BeautifulSoup, base_url: str) -> tuple[Form, ...]:
    forms = []
    for form in soup.find_all("form", limit=MAX_FORMS):
        method = (form.get("method") or "GET").upper()
        inputs = tuple(
            FormInput(
                type=_field_type(field),
                name=clip(field.get("name"), MAX_FIELD_LEN),
                placeholder=clip(field.get("placeholder"), MAX_FIELD_LEN),
                required=field.has_attr("required"),
            )
            for field in form.select(_FIELD_SELECTOR)[:MAX_FORM_INPUTS]
        )
        forms.append(Form(
            action_url=clip(urljoin(base_url, form.get("action") or ""), MAX_URL_LEN),
            method=method if method in _FORM_METHODS else "GET",
            inputs=inputs,
        ))
    return tuple(forms)


def _paragraphs(soup: BeautifulSoup) -> tuple[str, ...]:
    paragraphs = []
    for p in soup.find_all("p"):
        if len(paragraphs) >= MAX_PARAGRAPHS:
            break
        text = " ".join(p.get_text(" ").split())
        if MIN_PARAGRAPH_LEN <= len(text) < MAX_PARAGRAPH_LEN:
            paragraphs.append(text)
    return tuple(paragraphs)


class PageAgent:
    """Extraction agent bound to one tab's loaded document.

    Answers `extractContext` requests from the coordinator, pushes a snapshot
    once the document has settled, and pushes debounced selection changes.
    Both timers belong to the agent and are cancelled by stop().
    """

    def __init__(
        self,
        bus: MessageBus,
        tab_id: int,
        url: str,
        html: str,
        generation: int = 0,
        settle_delay: float | None = None,
        selection_debounce: float | None = None,
    ):
        self.bus = bus
        self.tab_id = tab_id
        self.url = url
        self.html = html
        self.generation = generation
        self.settle_delay = config["settle_delay"] if settle_delay is None else settle_delay
        self.selection_debounce = (
            config["selection_debounce"] if selection_debounce is None else selection_debounce
        )
        self.selection = ""
        self._settle_task: asyncio.Task | None = None
        self._debounce_task: asyncio.Task | None = None

    @property
    def endpoint(self) -> str:
        return tab_endpoint(self.tab_id)

    def start(self) -> None:
        self.bus.register(self.endpoint, self.handle)
        self._settle_task = asyncio.get_running_loop().create_task(self._push_after_settle())

    def stop(self) -> None:
        for task in (self._settle_task, self._debounce_task):
            if task and not task.done():
                task.cancel()
        self.bus.unregister(self.endpoint, self.handle)

    def extract(self) -> ExtractionResult:
        return extract_snapshot(self.html, self.url, self.selection)

    async def handle(self, message: Message) -> dict | None:
        if message.action != EXTRACT_CONTEXT:
            log.debug("Tab %d ignoring %s", self.tab_id, message.action)
            return None
        if message.generation is not None:
            self.generation = message.generation
        result = self.extract()
        if not result.success:
            return {"success": False, "error": result.error}
        return {
            "success": True,
            "generation": self.generation,
            "context": result.snapshot.model_dump(mode="json"),
        }

    async def _push_after_settle(self) -> None:
        await asyncio.sleep(self.settle_delay)
        result = self.extract()
        if not result.success:
            log.warning("Auto extraction failed in tab %d: %s", self.tab_id, result.error)
            return
        self.bus.post(COORDINATOR, Message(
            action=CONTEXT_EXTRACTED,
            tab_id=self.tab_id,
            generation=self.generation,
            payload={"context": result.snapshot.model_dump(mode="json")},
        ))

    def select(self, text: str) -> None:
        """Record a new document selection; the push waits out the debounce window."""
        self.selection = clip(text, MAX_SELECTION_LEN)
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(self._push_selection())

    async def _push_selection(self) -> None:
        await asyncio.sleep(self.selection_debounce)
        if not self.selection:
            return
        self.bus.post(COORDINATOR, Message(
            action=SELECTION_CHANGED,
            tab_id=self.tab_id,
            generation=self.generation,
            payload={"selected_text": self.selection},
        ))
