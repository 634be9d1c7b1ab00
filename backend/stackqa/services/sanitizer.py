"""
StackQA Backend — Rich-Text Sanitizer
======================================

What:  Cleans author-supplied HTML (question descriptions, answers) against an
       allow-list before it is stored, and derives plain-text excerpts.
How:   bleach.clean with explicit tag/attribute/protocol allow-lists and
       strip=True, so disallowed markup disappears instead of being escaped
       into visible text. Links get rel="nofollow noopener".
Who:   QuestionService.create_question, AnswerService.post_answer, and the
       question list excerpt builder.

Content is sanitized on write, so every reader (API, live streams) sees the
same safe markup and no read path needs to remember to clean it.
"""

import html
import re

import bleach
from bleach.linkifier import Linker

ALLOWED_TAGS = frozenset({
    "p", "br",
    "strong", "b", "em", "i", "u", "s",
    "a",
    "ul", "ol", "li",
    "blockquote", "code", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6",
})

ALLOWED_ATTRIBUTES = {
    "a": ["href", "title"],
}

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})

_WHITESPACE = re.compile(r"\s+")


def _set_link_rel(attrs, new=False):
    attrs[(None, "rel")] = "nofollow noopener"
    return attrs


_linker = Linker(callbacks=[_set_link_rel], skip_tags={"pre", "code"}, parse_email=False)


def sanitize_rich_text(raw: str) -> str:
    """
    Return `raw` reduced to the allow-listed markup.

    Script/style elements, event-handler attributes and javascript: URLs are
    removed. Bare URLs in text become nofollow links.
    """
    cleaned = bleach.clean(
        raw or "",
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )
    return _linker.linkify(cleaned).strip()


def to_plain_text(markup: str, limit: int | None = None) -> str:
    """
    Strip all markup and collapse whitespace.

    With `limit`, the text is cut to that many characters and "..." appended
    when something was cut.
    """
    text = bleach.clean(markup or "", tags=frozenset(), strip=True, strip_comments=True)
    text = _WHITESPACE.sub(" ", html.unescape(text)).strip()
    if limit is not None and len(text) > limit:
        return text[:limit].rstrip() + "..."
    return text


def has_visible_text(markup: str) -> bool:
    """True when the markup renders at least one non-whitespace character."""
    return bool(to_plain_text(markup))
