"""Tests for text utility functions."""

from __future__ import annotations

from lfblog.utils.text import extract_snippet, strip_tags


class TestStripTags:
    """Test strip_tags function."""

    def test_removes_tags_and_collapses_whitespace(self) -> None:
        """Should leave only the visible text."""
        html = "<div>\n  <h1>Title</h1>\n  <p>Some   <em>text</em></p>\n</div>"

        assert strip_tags(html) == "Title Some text"

    def test_unescapes_entities(self) -> None:
        assert strip_tags("<p>Fish &amp; Chips &lt;3</p>") == "Fish & Chips <3"

    def test_drops_style_and_script_bodies(self) -> None:
        """Should not leak CSS or JavaScript into the text."""
        html = "<style>body { color: red; }</style><p>Hi</p><script>alert(1)</script>"

        assert strip_tags(html) == "Hi"

    def test_empty(self) -> None:
        assert strip_tags("") == ""


class TestExtractSnippet:
    """Test extract_snippet function."""

    def test_short_text_returned_whole(self) -> None:
        assert extract_snippet("<p>A red apple</p>", "red") == "A red apple"

    def test_context_markers(self) -> None:
        """Should add ellipses where text was cut."""
        text = "x" * 100 + " needle " + "y" * 100

        snippet = extract_snippet(text, "needle", context=10)

        assert snippet.startswith("...")
        assert snippet.endswith("...")
        assert "needle" in snippet
        assert len(snippet) == 3 + 10 + len("needle") + 10 + 3

    def test_case_insensitive(self) -> None:
        assert "APPLE" in extract_snippet("An APPLE a day", "apple")

    def test_falls_back_to_start(self) -> None:
        """Should use the beginning of the text when the query only matched markup."""
        text = "<a href='/needle'>" + "word " * 50 + "</a>"

        snippet = extract_snippet(text, "needle", context=10)

        assert snippet == "word word word word ..."

    def test_empty_content(self) -> None:
        assert extract_snippet("<br>", "x") == ""
