"""Shared fixtures for AskPage tests."""

import sys
from pathlib import Path

import pytest

# Add backend to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from models import Action, Heading, Snapshot  # noqa: E402


PAGE_HTML = """<!doctype html>
<html>
<head>
  <title>  Getting Started | Acme Docs </title>
  <meta name="description" content="How to install and configure Acme.">
</head>
<body>
  <h1>Getting Started</h1>
  <p>Acme is a toolkit for building dependable widgets in record time.</p>
  <h2>Installation</h2>
  <p>Short.</p>
  <h3>   </h3>
  <h2>Configuration</h2>
  <a href="/docs/install">Install guide</a>
  <a href="https://example.com/help">Help center</a>
  <a href="/x">Go</a>
  <button>Sign up</button>
  <div role="button" aria-label="Open menu"></div>
  <input type="submit" value="Search now">
  <form action="/search" method="post">
    <input type="text" name="q" placeholder="Search docs" required>
    <select name="lang"><option>en</option></select>
    <textarea name="notes"></textarea>
    <input name="plain">
  </form>
</body>
</html>
"""


@pytest.fixture
def page_html():
    return PAGE_HTML


@pytest.fixture
def snapshot():
    """A small docs-page snapshot."""
    return Snapshot(
        title="Getting Started | Acme Docs",
        url="https://acme.dev/docs/start",
        meta_description="How to install and configure Acme.",
        headings=(
            Heading(level=1, text="Getting Started"),
            Heading(level=2, text="Installation"),
            Heading(level=2, text="Configuration"),
        ),
        actions=(
            Action(text="Sign up", kind="button"),
            Action(text="Install guide", kind="link", href="https://acme.dev/docs/install"),
            Action(text="Help center", kind="link", href="https://acme.dev/help"),
        ),
    )
