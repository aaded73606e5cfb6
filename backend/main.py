"""AskPage FastAPI Backend."""

import logging
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import fallback
from answerer import context_summary, generate_answer
from config import config
from models import AnalyzeRequest, AnalyzeResponse, AskRequest, AskResponse, ContextUsed

logging.basicConfig(level=config["log_level"], format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger(__name__)

SERVICE_NAME = "AskPage Backend"

app = FastAPI(title="AskPage", version="1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _bad_request(error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": error, "message": message})


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
    }


@app.post("/api/ask", response_model=AskResponse)
def ask(req: AskRequest):
    """Answer a question about the page described by `context`."""
    if not req.question.strip():
        return _bad_request("Question is required", "Please provide a question to ask about the page.")
    if req.context is None:
        return _bad_request("Context is required", "Page context is required to answer questions.")

    log.info("Question received: %s", req.question[:100])
    log.info("Context from: %s", req.context.url or "unknown URL")
    log.debug("Context: %s", context_summary(req.context))

    answer = generate_answer(req.question.strip(), req.context)
    return AskResponse(answer=answer, context_used=ContextUsed.from_snapshot(req.context))


@app.post("/api/analyze-context", response_model=AnalyzeResponse)
def analyze_context(req: AnalyzeRequest):
    """Classify the page and suggest questions to ask about it."""
    if req.context is None:
        return _bad_request("Context is required", "Page context is required for analysis.")
    return AnalyzeResponse(
        analysis=fallback.classify(req.context),
        suggestions=fallback.suggest(req.context),
    )


if __name__ == "__main__":
    log.info("Starting AskPage backend on port %d", config["backend_port"])
    uvicorn.run(app, host=config["backend_host"], port=config["backend_port"])
