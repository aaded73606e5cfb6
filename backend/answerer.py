"""Claude CLI answerer for questions about a page snapshot."""

import logging
import os
import subprocess

import fallback
from config import config
from models import Snapshot

log = logging.getLogger(__name__)

# Clean environment for Claude CLI subprocess
# Strip CLAUDECODE (causes "nested session" error) but KEEP CLAUDE_CONFIG_DIR (needed for auth)
_clean_env = {k: v for k, v in os.environ.items() if not k.startswith("CLAUDECODE")}
_clean_env["PATH"] = "/usr/local/bin:/usr/bin:/bin"

SYSTEM_PROMPT = (
    "You are AskPage, a helpful AI assistant for analyzing web pages. "
    "Provide clear, concise answers based on the page context provided."
)


def context_summary(snapshot: Snapshot) -> str:
    """One-line digest of a snapshot, for logs."""
    parts = []
    if snapshot.title:
        parts.append(f"Title: {snapshot.title}")
    if snapshot.url:
        parts.append(f"URL: {snapshot.url}")
    if snapshot.headings:
        parts.append(f"Headings: {', '.join(h.text for h in snapshot.headings)}")
    if snapshot.actions:
        parts.append(f"Interactive elements: {', '.join(a.text for a in snapshot.actions)}")
    if snapshot.selected_text:
        parts.append(f'Selected text: "{snapshot.selected_text}"')
    return " | ".join(parts)


def build_prompt(question: str, snapshot: Snapshot) -> str:
    headings = ", ".join(f"H{h.level}: {h.text}" for h in snapshot.headings) or "None"
    actions = ", ".join(f'{a.kind}: "{a.text}"' for a in snapshot.actions) or "None"
    selected = f'\n- Selected Text: "{snapshot.selected_text}"' if snapshot.selected_text else ""

    return f"""{SYSTEM_PROMPT}

Based on the page context provided below, please answer the user's question in a clear, helpful way.

Page Context:
- Title: {snapshot.title}
- URL: {snapshot.url}
- Meta Description: {snapshot.meta_description or 'None provided'}
- Main Headings: {headings}
- Interactive Elements: {actions}
- Forms: {len(snapshot.forms)} form(s) detected{selected}

User Question: {question}

Please provide a helpful, accurate answer based on this page context. If the question can't be answered from the available context, explain what information is available and suggest what the user might want to know about this page."""


def generate_answer(question: str, snapshot: Snapshot) -> str:
    """Ask the Claude CLI; any CLI fault is answered by the rule-based fallback."""
    prompt = build_prompt(question, snapshot)
    try:
        result = subprocess.run(
            [config["claude_bin"], "-p", "--output-format", "text"],
            input=prompt,
            capture_output=True,
            text=True,
            timeout=config["claude_timeout"],
            env=_clean_env,
        )
    except FileNotFoundError:
        log.error("Claude CLI not found.")
        return fallback.answer(question, snapshot)
    except subprocess.TimeoutExpired:
        log.error("Claude CLI timed out for: %s", question[:80])
        return fallback.answer(question, snapshot)

    if result.returncode != 0:
        log.error("Claude CLI failed (rc=%d): %s", result.returncode, result.stderr[:200])
        return fallback.answer(question, snapshot)

    text = result.stdout.strip()
    if not text:
        log.warning("Claude CLI returned an empty answer")
        return fallback.answer(question, snapshot)
    return text
