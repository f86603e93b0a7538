"""Markdown preview rendering for chapters.

Rendering is delegated to ``markdown-it-py`` (CommonMark plus GFM tables,
strikethrough and footnotes). Raw HTML in chapter content is escaped.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdit_py_plugins.footnote import footnote_plugin

from .document_model import PreviewConfig, ViewMode

MAX_PREVIEW_CHARS = 200_000
TRUNCATION_NOTICE = "\n\n> _Preview truncated for performance._\n"
_VIEW_MODE_WIDTHS: Dict[ViewMode, str] = {
    ViewMode.DESKTOP: "48rem",
    ViewMode.MOBILE: "375px",
    ViewMode.PRINT: "210mm",
}


@dataclass(slots=True)
class PreviewDocument:
    """Rendered chapter: HTML, the markdown-it token tree and derived styling."""

    html: str
    tokens: list[Token]
    style: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


_MARKDOWN_RENDERER: Optional[MarkdownIt] = None


def _build_renderer() -> MarkdownIt:
    global _MARKDOWN_RENDERER
    if _MARKDOWN_RENDERER is None:
        renderer = MarkdownIt("commonmark", {"html": False, "typographer": True})
        renderer.enable("table")
        renderer.enable("strikethrough")
        renderer.use(footnote_plugin)
        _MARKDOWN_RENDERER = renderer
    return _MARKDOWN_RENDERER


def preview_style(config: PreviewConfig | None = None) -> Dict[str, str]:
    """Return CSS declarations derived from ``config``."""

    resolved = config or PreviewConfig()
    return {
        "font-size": f"{resolved.font_size}px",
        "line-height": f"{resolved.line_height:g}",
        "text-indent": f"{resolved.indent}em",
        "max-width": _VIEW_MODE_WIDTHS[resolved.view_mode],
    }


def render_chapter(
    content: str,
    *,
    config: PreviewConfig | None = None,
    max_chars: Optional[int] = MAX_PREVIEW_CHARS,
) -> PreviewDocument:
    """Render chapter ``content`` to HTML; the content itself is never modified.

    Content longer than ``max_chars`` is cut back to a line boundary and
    ends with a truncation notice; ``metadata["truncated"]`` reports it.
    """

    source = content or ""
    truncated = max_chars is not None and len(source) > max_chars
    body = _shorten(source, max_chars) if truncated else source
    renderer = _build_renderer()
    env: Dict[str, Any] = {}
    tokens = renderer.parse(body, env)
    style = preview_style(config)
    return PreviewDocument(
        html=_wrap(renderer.renderer.render(tokens, renderer.options, env), style),
        tokens=tokens,
        style=style,
        metadata={"length": len(source), "headings": _headings(tokens), "truncated": truncated},
    )


def _shorten(text: str, limit: int) -> str:
    head = text[:limit]
    cut = head.rfind("\n")
    # Prefer ending on a line break unless that would drop most of the budget.
    if cut > limit // 2:
        head = head[:cut]
    return head.rstrip() + TRUNCATION_NOTICE


def _headings(tokens: list[Token]) -> list[Dict[str, Any]]:
    found: list[Dict[str, Any]] = []
    for opening, inline in zip(tokens, tokens[1:]):
        if opening.type == "heading_open" and inline.type == "inline" and inline.content.strip():
            found.append({"level": int(opening.tag[1:]), "text": inline.content.strip()})
    return found


def _wrap(html_body: str, style: Dict[str, str]) -> str:
    declarations = "; ".join(f"{key}: {value}" for key, value in style.items())
    return f'<article class="inkwell-preview" style="{html.escape(declarations, quote=True)}">\n{html_body}</article>\n'


__all__ = ["MAX_PREVIEW_CHARS", "PreviewDocument", "preview_style", "render_chapter"]
