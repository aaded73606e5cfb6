"""Tests for dispatcher.py — remote path, fallback on every failure mode, health probe."""

import json

import httpx
import pytest

import fallback
from dispatcher import Dispatcher
from models import Query


def _dispatcher(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://answer.test")
    return Dispatcher(base_url="http://answer.test", client=client)


def _ok_body(answer="Remote says hi"):
    return {
        "answer": answer,
        "contextUsed": {
            "title": "T", "url": "u", "headingsCount": 3, "actionsCount": 3, "hasSelectedText": False,
        },
    }


@pytest.fixture
def query(snapshot):
    return Query(question="What does the first section cover?", snapshot=snapshot)


class TestAnswer:
    @pytest.mark.asyncio
    async def test_remote_success(self, query):
        sent = {}

        def handler(request):
            sent["path"] = request.url.path
            sent["body"] = json.loads(request.content)
            return httpx.Response(200, json=_ok_body())

        answer = await _dispatcher(handler).answer(query)
        assert answer.source == "remote"
        assert answer.text == "Remote says hi"
        assert answer.context_used.headings_count == 3
        assert sent["path"] == "/api/ask"
        assert sent["body"]["question"] == query.question
        assert sent["body"]["context"]["title"] == query.snapshot.title

    @pytest.mark.asyncio
    async def test_http_500_matches_direct_fallback(self, query):
        answer = await _dispatcher(lambda request: httpx.Response(500, json={"error": "x"})).answer(query)
        assert answer.source == "fallback"
        assert answer.text == fallback.answer(query.question, query.snapshot)

    @pytest.mark.asyncio
    async def test_malformed_json_falls_back(self, query):
        answer = await _dispatcher(lambda request: httpx.Response(200, text="<html>oops</html>")).answer(query)
        assert answer.source == "fallback"

    @pytest.mark.asyncio
    async def test_missing_answer_field_falls_back(self, query):
        answer = await _dispatcher(lambda request: httpx.Response(200, json={"reply": "?"})).answer(query)
        assert answer.source == "fallback"

    @pytest.mark.asyncio
    async def test_empty_answer_falls_back(self, query):
        answer = await _dispatcher(lambda request: httpx.Response(200, json=_ok_body(""))).answer(query)
        assert answer.source == "fallback"

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, query):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        answer = await _dispatcher(handler).answer(query)
        assert answer.source == "fallback"
        assert answer.text == fallback.answer(query.question, query.snapshot)

    @pytest.mark.asyncio
    async def test_connection_error_falls_back(self, query):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        answer = await _dispatcher(handler).answer(query)
        assert answer.source == "fallback"
        assert answer.context_used.headings_count == 3

    @pytest.mark.asyncio
    async def test_single_attempt(self, query):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        await _dispatcher(handler).answer(query)
        assert len(calls) == 1

    def test_default_timeout_is_bounded(self):
        assert Dispatcher(base_url="http://answer.test").timeout == 15.0


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_remote(self, snapshot):
        body = {
            "analysis": {"pageType": "a web page", "complexity": "low", "interactivity": "low"},
            "suggestions": ["Q?"],
        }
        result = await _dispatcher(lambda request: httpx.Response(200, json=body)).analyze(snapshot)
        assert result.suggestions == ["Q?"]
        assert result.analysis.page_type == "a web page"

    @pytest.mark.asyncio
    async def test_local_when_down(self, snapshot):
        result = await _dispatcher(lambda request: httpx.Response(502)).analyze(snapshot)
        assert result.analysis == fallback.classify(snapshot)
        assert result.suggestions == fallback.suggest(snapshot)


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self):
        assert await _dispatcher(lambda request: httpx.Response(200, json={"status": "ok"})).health_check()

    @pytest.mark.asyncio
    async def test_unhealthy_status(self):
        assert not await _dispatcher(lambda request: httpx.Response(503)).health_check()

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await _dispatcher(handler).health_check() is False
