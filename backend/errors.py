"""Error types shared by the coordinator, dispatcher and panel."""


class AskPageError(Exception):
    pass


class ExtractionDenied(AskPageError):
    """The tab shows a privileged or unreadable surface. Not retried."""


class ExtractionFailed(AskPageError):
    """The extractor ran but could not produce a snapshot."""


class StaleResult(AskPageError):
    """An extraction result tagged with an outdated generation."""

    def __init__(self, tab_id: int, generation: int | None, current: int | None):
        super().__init__(f"tab {tab_id}: generation {generation} is stale (current: {current})")
        self.tab_id = tab_id
        self.generation = generation
        self.current = current


class RemoteAnswerFailed(AskPageError):
    """The remote answering service failed; callers recover via the fallback."""


class InvalidQuery(AskPageError):
    """Empty or whitespace-only question, rejected before dispatch."""
