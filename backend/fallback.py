"""Rule-based answers built from a snapshot alone.

Used whenever the answering service cannot be reached. Keyword classes are
checked in a fixed order and the first match wins, so the same question and
snapshot always produce the same answer.
"""

from typing import Callable, Optional

from models import Analysis, ContentStructure, Snapshot

HEADINGS_QUOTED = 5
SUMMARY_TOPICS = 3
ACTIONS_PER_KIND = 3
SUGGESTION_LIMIT = 5
SELECTION_PREVIEW = 50

# Policy constants, pinned by tests. classify() output depends on them.
COMPLEXITY_MEDIUM_MIN = 3
COMPLEXITY_HIGH_MIN = 6
INTERACTIVITY_MEDIUM_MIN = 4
INTERACTIVITY_HIGH_MIN = 11

_HELP_WORDS = ("help", "support", "guide", "tutorial")


def _count(n: int, noun: str) -> str:
    return f"{n} {noun}" if n == 1 else f"{n} {noun}s"


def _quoted(texts) -> str:
    return ", ".join(f'"{t}"' for t in texts)


def _has_any(*words: str) -> Callable[[str, Snapshot], bool]:
    return lambda q, s: any(w in q for w in words)


# ── Page heuristics ─────────────────────────────────────────

def page_type(snapshot: Snapshot) -> str:
    """Guess what kind of page this is. URL hints are checked before headings."""
    title = snapshot.title.lower()
    url = snapshot.url.lower()

    if "docs" in url or "documentation" in url:
        return "a documentation page"
    if "api" in url:
        return "an API reference page"
    if "blog" in url or "article" in url:
        return "a blog post or article"
    if "shop" in url or "store" in url or "buy" in url:
        return "an e-commerce page"
    if "login" in url or "signup" in url:
        return "a login or registration page"
    if "home" in title or url == "/" or "index" in url:
        return "a homepage"

    heading_text = " ".join(h.text.lower() for h in snapshot.headings)
    if "tutorial" in heading_text or "guide" in heading_text:
        return "a tutorial or guide"
    if "about" in heading_text:
        return "an about page"
    if "contact" in heading_text:
        return "a contact page"

    return "a web page"


def describe_selection(text: str) -> str:
    if len(text) < 10:
        return "a short phrase or keyword"
    if len(text) > 200:
        return "a longer passage of text"
    if "API" in text or "function" in text or "code" in text:
        return "technical content related to programming or APIs"
    if "$" in text or "price" in text or "cost" in text:
        return "pricing or cost information"
    return "important content you highlighted"


def _level(n: int, medium_min: int, high_min: int) -> str:
    if n >= high_min:
        return "high"
    if n >= medium_min:
        return "medium"
    return "low"


def classify(snapshot: Snapshot) -> Analysis:
    return Analysis(
        page_type=page_type(snapshot),
        complexity=_level(len(snapshot.headings), COMPLEXITY_MEDIUM_MIN, COMPLEXITY_HIGH_MIN),
        interactivity=_level(len(snapshot.actions), INTERACTIVITY_MEDIUM_MIN, INTERACTIVITY_HIGH_MIN),
        has_selected_content=bool(snapshot.selected_text),
        content_structure=ContentStructure(
            headings=len(snapshot.headings),
            actions=len(snapshot.actions),
            forms=len(snapshot.forms),
        ),
    )


def suggest(snapshot: Snapshot) -> list[str]:
    suggestions = []
    if snapshot.headings:
        suggestions.append(f'What does the "{snapshot.headings[0].text}" section cover?')
    if snapshot.actions:
        suggestions.append(f'What happens when I click "{snapshot.actions[0].text}"?')
    if snapshot.selected_text:
        suggestions.append(
            f'Explain the selected text: "{snapshot.selected_text[:SELECTION_PREVIEW]}..."'
        )
    suggestions.append("What is this page about?")
    suggestions.append("How do I navigate this page?")
    return suggestions[:SUGGESTION_LIMIT]


# ── Answer templates ────────────────────────────────────────

def _page_answer(s: Snapshot) -> str:
    titled = f'titled "{s.title}"' if s.title else "untitled"
    described = f'The page description states: "{s.meta_description}". ' if s.meta_description else ""
    return (
        f"This page is {titled} and appears to be {page_type(s)}. {described}"
        f"It contains {_count(len(s.headings), 'main heading')} and "
        f"{_count(len(s.actions), 'interactive element')} like buttons and links."
    )


def _title_answer(s: Snapshot) -> str:
    if not s.title:
        return "This page does not declare a title."
    return f'The page title is "{s.title}". This gives us insight into the main topic or purpose of the page.'


def _url_answer(s: Snapshot) -> str:
    answer = f"The current page URL is: {s.url}." if s.url else "The current page URL is not available."
    if s.actions:
        answer += (
            f" The page also contains {_count(len(s.actions), 'clickable element')}"
            " including buttons and links."
        )
    return answer


def _headings_answer(s: Snapshot) -> str:
    if not s.headings:
        return (
            "This page doesn't appear to have clear section headings, which might indicate "
            "it's a simple page or uses a different content structure."
        )
    quoted = _quoted(h.text for h in s.headings[:HEADINGS_QUOTED])
    return (
        f"The page has {_count(len(s.headings), 'main heading')}. The first few are: {quoted}. "
        "These headings help organize the content into different sections."
    )


def _actions_answer(s: Snapshot) -> str:
    if not s.actions:
        return (
            "This page doesn't appear to have many interactive buttons or clickable elements. "
            "It might be primarily informational content."
        )
    buttons = [a.text for a in s.actions if a.kind == "button"][:ACTIONS_PER_KIND]
    links = [a.text for a in s.actions if a.kind == "link"][:ACTIONS_PER_KIND]
    answer = f"The page has {_count(len(s.actions), 'interactive element')}."
    if buttons:
        answer += f" Buttons include: {_quoted(buttons)}."
    if links:
        answer += f" Links include: {_quoted(links)}."
    return answer


def _selection_answer(s: Snapshot) -> str:
    return (
        f'You have selected the text: "{s.selected_text}". This appears to be '
        f"{describe_selection(s.selected_text)}. Would you like me to explain this content in more detail?"
    )


def _summary_answer(s: Snapshot) -> str:
    titled = f' titled "{s.title}"' if s.title else ""
    description = s.meta_description or (
        "The page contains organized content with multiple sections and interactive elements."
    )
    answer = f"Based on the page context, this appears to be {page_type(s)}{titled}. {description}"
    if s.headings:
        topics = ", ".join(h.text.lower() for h in s.headings[:SUMMARY_TOPICS])
        answer += f" The main topics covered include sections on {topics}."
    return answer


def _help_answer(s: Snapshot) -> str:
    helpful = [a.text for a in s.actions if any(w in a.text.lower() for w in _HELP_WORDS)]
    if helpful:
        return (
            f"For help with this page, you can try clicking on: {_quoted(helpful)}. The page also has "
            f"{_count(len(s.actions), 'interactive element')} that might provide additional assistance."
        )
    help_headings = [
        h.text for h in s.headings if "help" in h.text.lower() or "guide" in h.text.lower()
    ]
    where = _quoted(help_headings) if help_headings else "help or support"
    answer = f"To get help with this page content, look for sections titled {where}."
    if s.actions:
        answer += f" You can also try the {_count(len(s.actions), 'interactive element')} on the page."
    return answer


def _generic_answer(s: Snapshot) -> str:
    named = f'the page "{s.title}"' if s.title else "this page"
    selected = f'You\'ve selected: "{s.selected_text}". ' if s.selected_text else ""
    return (
        f"Based on {named}, I can see {_count(len(s.headings), 'main section')} and "
        f"{_count(len(s.actions), 'interactive element')}. {selected}"
        "Could you be more specific about what you'd like to know about this page? "
        "I can help explain the content, navigation options, or specific sections."
    )


# Checked top to bottom; first match wins.
RULES: tuple[tuple[str, Callable[[str, Snapshot], bool], Callable[[Snapshot], str]], ...] = (
    ("page", lambda q, s: "what" in q and "page" in q, _page_answer),
    ("title", _has_any("title"), _title_answer),
    ("url", _has_any("url", "link"), _url_answer),
    ("headings", _has_any("heading", "section"), _headings_answer),
    ("actions", _has_any("button", "click", "action"), _actions_answer),
    (
        "selection",
        lambda q, s: bool(s.selected_text) and ("selected" in q or "highlight" in q),
        _selection_answer,
    ),
    ("summary", _has_any("summary", "about"), _summary_answer),
    ("help", _has_any("help", "how"), _help_answer),
)


def match_rule(question: str, snapshot: Optional[Snapshot] = None) -> str:
    """Name of the keyword class `question` falls into, or "generic"."""
    snapshot = snapshot or Snapshot()
    q = (question or "").lower()
    for name, matches, _ in RULES:
        if matches(q, snapshot):
            return name
    return "generic"


def answer(question: str, snapshot: Optional[Snapshot] = None) -> str:
    """Answer `question` from `snapshot` alone. Always returns a non-empty string."""
    snapshot = snapshot or Snapshot()
    q = (question or "").lower()
    for _, matches, respond in RULES:
        if matches(q, snapshot):
            return respond(snapshot)
    return _generic_answer(snapshot)
