"""
StackQA Backend — Sanitizer Unit Tests
=======================================

What we test:
    ✅ Scripts, event handlers and javascript: URLs are removed
    ✅ Allowed formatting survives, links get rel="nofollow noopener"
    ✅ Excerpts strip markup and only add "..." when text was cut
    ✅ Visible-text check ignores empty markup
"""

import pytest

from stackqa.services.sanitizer import has_visible_text, sanitize_rich_text, to_plain_text


class TestSanitizeRichText:

    def test_script_removed(self):
        cleaned = sanitize_rich_text("<p>Hello</p><script>steal()</script>")
        assert "<script" not in cleaned
        assert "<p>Hello</p>" in cleaned

    def test_event_handler_removed(self):
        cleaned = sanitize_rich_text('<p onclick="steal()">Hi</p>')
        assert cleaned == "<p>Hi</p>"

    def test_javascript_url_removed(self):
        cleaned = sanitize_rich_text('<a href="javascript:steal()">click</a>')
        assert "javascript:" not in cleaned
        assert "click" in cleaned

    def test_formatting_kept(self):
        markup = "<p><strong>bold</strong> <em>it</em></p><ul><li>one</li></ul><pre><code>x = 1</code></pre>"
        assert sanitize_rich_text(markup) == markup

    def test_links_are_nofollow(self):
        cleaned = sanitize_rich_text('<p><a href="https://example.com">docs</a></p>')
        assert 'href="https://example.com"' in cleaned
        assert 'rel="nofollow noopener"' in cleaned

    def test_layout_tags_stripped_text_kept(self):
        cleaned = sanitize_rich_text("<div><span>one</span><hr><sup>2</sup></div>")
        assert cleaned == "one2"

    def test_author_rel_replaced(self):
        cleaned = sanitize_rich_text('<a href="https://example.com" rel="opener">docs</a>')
        assert 'rel="opener"' not in cleaned
        assert 'rel="nofollow noopener"' in cleaned

    def test_bare_urls_linkified(self):
        cleaned = sanitize_rich_text("<p>See https://example.com/page</p>")
        assert '<a href="https://example.com/page"' in cleaned

    def test_none_becomes_empty(self):
        assert sanitize_rich_text(None) == ""


class TestPlainText:

    def test_markup_and_entities(self):
        assert to_plain_text("<p>a &amp; b</p>\n<p>c</p>") == "a & b c"

    def test_short_text_not_marked_as_cut(self):
        assert to_plain_text("<p>short</p>", limit=150) == "short"

    def test_long_text_cut_with_ellipsis(self):
        excerpt = to_plain_text("<p>" + "a" * 200 + "</p>", limit=150)
        assert excerpt == "a" * 150 + "..."

    @pytest.mark.parametrize(
        "markup, visible",
        [
            ("<p>text</p>", True),
            ("<p> </p>", False),
            ("<p><br></p>", False),
            ("", False),
            ("<p>&nbsp;</p>", False),
        ],
    )
    def test_has_visible_text(self, markup, visible):
        assert has_visible_text(markup) is visible
