"""Sends questions to the answering service, falling back to rule-based answers."""

import logging

import httpx

import fallback
from config import config
from errors import RemoteAnswerFailed
from models import AnalyzeResponse, Answer, AskResponse, ContextUsed, Query, Snapshot

log = logging.getLogger(__name__)

HEALTH_TIMEOUT = 5.0


class Dispatcher:
    """Client for the answering service.

    One attempt per call, bounded by `timeout`. Any failure of that attempt
    (transport error, timeout, non-2xx, malformed body) is answered by the
    fallback module instead, so answer() never raises for remote faults.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url or config["answer_service_url"]
        self.timeout = config["answer_timeout"] if timeout is None else timeout
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    async def answer(self, query: Query) -> Answer:
        try:
            return await self._ask_remote(query)
        except RemoteAnswerFailed as e:
            log.warning("Remote answer failed, using fallback: %s", e)
        return Answer(
            text=fallback.answer(query.question, query.snapshot),
            source="fallback",
            context_used=ContextUsed.from_snapshot(query.snapshot),
        )

    async def _ask_remote(self, query: Query) -> Answer:
        body = {
            "question": query.question,
            "context": query.snapshot.model_dump(mode="json"),
        }
        try:
            resp = await self.client.post("/api/ask", json=body)
            resp.raise_for_status()
            data = AskResponse.model_validate(resp.json())
        except Exception as e:
            raise RemoteAnswerFailed(str(e) or e.__class__.__name__) from e
        return Answer(text=data.answer, source="remote", context_used=data.context_used)

    async def analyze(self, snapshot: Snapshot) -> AnalyzeResponse:
        """Page classification and suggested questions, computed locally if the service is down."""
        try:
            resp = await self.client.post(
                "/api/analyze-context", json={"context": snapshot.model_dump(mode="json")}
            )
            resp.raise_for_status()
            return AnalyzeResponse.model_validate(resp.json())
        except Exception as e:
            log.warning("Remote analysis failed, computing locally: %s", e)
        return AnalyzeResponse(
            analysis=fallback.classify(snapshot),
            suggestions=fallback.suggest(snapshot),
        )

    async def health_check(self) -> bool:
        try:
            resp = await self.client.get("/health", timeout=HEALTH_TIMEOUT)
        except httpx.HTTPError as e:
            log.debug("Health check failed: %s", e)
            return False
        return resp.is_success

    async def aclose(self) -> None:
        await self.client.aclose()
