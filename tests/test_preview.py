"""Tests for Markdown preview rendering."""

from __future__ import annotations

from inkwell.editor.document_model import PreviewConfig, ViewMode
from inkwell.editor.preview import preview_style, render_chapter


def test_render_basic_markdown() -> None:
    document = render_chapter("# Title\n\nSome **bold** text.")

    assert "<h1>Title</h1>" in document.html
    assert "<strong>bold</strong>" in document.html
    assert document.html.startswith('<article class="inkwell-preview"')
    assert document.metadata["headings"] == [{"level": 1, "text": "Title"}]
    assert document.tokens


def test_footnotes_tables_and_strikethrough_are_enabled() -> None:
    content = (
        "Claim[^1].\n\n"
        "[^1]: Source.\n\n"
        "| a | b |\n|---|---|\n| 1 | 2 |\n\n"
        "~~gone~~\n"
    )

    html = render_chapter(content).html

    assert "footnote" in html
    assert "<table>" in html
    assert "<s>gone</s>" in html


def test_raw_html_is_escaped() -> None:
    html = render_chapter("<script>alert(1)</script>").html

    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_style_follows_preview_config() -> None:
    style = preview_style(PreviewConfig(view_mode=ViewMode.MOBILE, font_size=20, line_height=2.0, indent=0))

    assert style == {
        "font-size": "20px",
        "line-height": "2",
        "text-indent": "0em",
        "max-width": "375px",
    }


def test_long_content_is_truncated_without_touching_input() -> None:
    content = "word " * 1000

    document = render_chapter(content, max_chars=100)

    assert document.metadata["truncated"] is True
    assert document.metadata["length"] == len(content)
    assert "Preview truncated" in document.html
