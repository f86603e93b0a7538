"""Selection-aware text mutations backing the formatting toolbar and AI inserts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..core.ranges import TextRange

ASSISTANT_MIN_SELECTION = 2


@dataclass(slots=True, frozen=True)
class Mutation:
    """Result of a selection-aware edit: the new text and the selection to restore."""

    text: str
    selection: TextRange


@dataclass(slots=True, frozen=True)
class FormatAction:
    """Markup inserted around the selection by a toolbar button."""

    name: str
    prefix: str
    suffix: str = ""
    label: str = ""


FORMAT_ACTIONS: Mapping[str, FormatAction] = {
    action.name: action
    for action in (
        FormatAction("bold", "**", "**", "Bold"),
        FormatAction("italic", "*", "*", "Italic"),
        FormatAction("heading1", "# ", "", "Heading 1"),
        FormatAction("heading2", "## ", "", "Heading 2"),
        FormatAction("list", "- ", "", "List"),
        FormatAction("quote", "> ", "", "Quote"),
        FormatAction("link", "[", "](url)", "Link"),
        FormatAction("rule", "\n---\n", "", "Horizontal rule"),
        FormatAction("footnote", "[^1]", "", "Footnote"),
    )
}


def resolve_selection(text: str, selection: TextRange | Mapping[str, Any] | Any) -> TextRange:
    """Coerce ``selection`` and clamp it to the bounds of ``text``."""

    return TextRange.from_value(selection).clamp(upper=len(text))


def wrap_selection(
    text: str,
    selection: TextRange | Any,
    prefix: str,
    suffix: str = "",
) -> Mutation:
    """Surround the selection with ``prefix``/``suffix``.

    A non-empty selection comes back spanning the whole wrapped text so the
    same span can be wrapped again; a caret lands between prefix and suffix.
    """

    span = resolve_selection(text, selection)
    selected = span.text_of(text)
    new_text = span.replace_in(text, prefix + selected + suffix)
    if span.is_caret:
        caret = span.start + len(prefix)
        restored = TextRange.caret(caret)
    else:
        restored = TextRange(span.start, span.start + len(prefix) + len(selected) + len(suffix))
    return Mutation(text=new_text, selection=restored)


def apply_format(text: str, selection: TextRange | Any, action: str | FormatAction) -> Mutation:
    """Apply a named toolbar action (see :data:`FORMAT_ACTIONS`)."""

    if isinstance(action, str):
        try:
            resolved = FORMAT_ACTIONS[action]
        except KeyError as exc:
            raise ValueError(f"Unknown format action: {action}") from exc
    else:
        resolved = action
    return wrap_selection(text, selection, resolved.prefix, resolved.suffix)


def splice_suggestion(
    text: str,
    selection: TextRange | Any,
    suggestion: str,
    *,
    min_selection: int = ASSISTANT_MIN_SELECTION,
) -> Mutation:
    """Insert an assistant suggestion into ``text``.

    Selections longer than ``min_selection`` characters are replaced;
    otherwise the suggestion is appended as a new paragraph.
    """

    span = resolve_selection(text, selection)
    if span.length > min_selection:
        new_text = span.replace_in(text, suggestion)
        caret = span.start + len(suggestion)
    else:
        new_text = text + "\n\n" + suggestion
        caret = len(new_text)
    return Mutation(text=new_text, selection=TextRange.caret(caret))


def assistant_context(
    text: str,
    selection: TextRange | Any,
    *,
    min_selection: int = ASSISTANT_MIN_SELECTION,
) -> str:
    """Return the text sent to the writing assistant for ``selection``."""

    span = resolve_selection(text, selection)
    selected = span.text_of(text)
    return selected if len(selected) > min_selection else text


__all__ = [
    "ASSISTANT_MIN_SELECTION",
    "FORMAT_ACTIONS",
    "FormatAction",
    "Mutation",
    "apply_format",
    "assistant_context",
    "resolve_selection",
    "splice_suggestion",
    "wrap_selection",
]
