"""Dataclasses representing the manuscript, its chapters and snapshots."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

MANUAL_SAVE = "Manual save"
AUTO_BACKUP = "Auto backup"

FONT_SIZE_RANGE: tuple[int, int] = (12, 32)
LINE_HEIGHT_RANGE: tuple[float, float] = (1.0, 3.0)
INDENT_RANGE: tuple[int, int] = (0, 4)

_DEFAULT_CHAPTER_CONTENT = (
    "# Chapter 1: Setting Out\n\n"
    "This is a story about dreams and adventure. Start writing here...\n\n"
    "Try adding a footnote[^1].\n\n"
    "[^1]: This is an example footnote."
)
_DEFAULT_CHAPTER_MEMO = (
    "Keep the outline, ideas or character notes for this chapter here "
    "(never exported to the e-book)..."
)


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def new_identifier() -> str:
    return uuid.uuid4().hex


class ViewMode(str, Enum):
    """Device layouts offered by the preview pane."""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    PRINT = "print"


class EditorLayout(str, Enum):
    """Which panes the main window shows."""

    EDITOR = "editor"
    SPLIT = "split"
    PREVIEW = "preview"


@dataclass(slots=True, frozen=True)
class CoverImage:
    """Binary cover payload attached to the book metadata."""

    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class BookMetadata:
    """Book-level metadata edited through the settings surface."""

    title: str = "Untitled"
    author: str = "Anonymous"
    publisher: str = ""
    description: str = ""
    language: str = "zh-CN"
    tags: set[str] = field(default_factory=set)
    cover: Optional[CoverImage] = None
    isbn: Optional[str] = None

    def updated(self, **changes: Any) -> BookMetadata:
        """Return a copy with ``changes`` applied field by field."""

        allowed = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise TypeError(f"Unknown metadata fields: {', '.join(unknown)}")
        if "tags" in changes:
            changes["tags"] = set(changes["tags"] or ())
        else:
            changes["tags"] = set(self.tags)
        return replace(self, **changes)


@dataclass(slots=True, frozen=True)
class Chapter:
    """A titled unit of book content with its own authoring notes."""

    chapter_id: str
    title: str
    content: str = ""
    memo: str = ""
    order: int = 0

    def with_content(self, content: str) -> Chapter:
        return replace(self, content=content)

    def with_title(self, title: str) -> Chapter:
        return replace(self, title=title)

    def with_memo(self, memo: str) -> Chapter:
        return replace(self, memo=memo)

    def with_order(self, order: int) -> Chapter:
        return replace(self, order=order)

    @classmethod
    def create(cls, index: int, *, chapter_id: str | None = None) -> Chapter:
        """Build the numbered placeholder chapter used by "add chapter"."""

        return cls(
            chapter_id=chapter_id or new_identifier(),
            title=f"New Chapter {index}",
            content=f"# Chapter {index}\n\n",
            memo="",
            order=max(0, index - 1),
        )


def default_chapter() -> Chapter:
    """Return the starter chapter of a freshly created book."""

    return Chapter(
        chapter_id=new_identifier(),
        title="Chapter 1: Setting Out",
        content=_DEFAULT_CHAPTER_CONTENT,
        memo=_DEFAULT_CHAPTER_MEMO,
        order=0,
    )


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Named, immutable content checkpoint kept by the time machine."""

    chapter_id: str
    content: str
    description: str = MANUAL_SAVE
    snapshot_id: str = field(default_factory=new_identifier)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def is_auto_backup(self) -> bool:
        return self.description == AUTO_BACKUP


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    lower, upper = bounds
    return max(lower, min(upper, value))


@dataclass(slots=True)
class PreviewConfig:
    """Presentation settings for the preview pane; never authoritative content."""

    view_mode: ViewMode = ViewMode.DESKTOP
    font_size: int = 16
    line_height: float = 1.8
    indent: int = 2

    def __post_init__(self) -> None:
        self.view_mode = ViewMode(self.view_mode)
        self.font_size = int(_clamp(int(self.font_size), FONT_SIZE_RANGE))
        self.line_height = float(_clamp(float(self.line_height), LINE_HEIGHT_RANGE))
        self.indent = int(_clamp(int(self.indent), INDENT_RANGE))

    def to_dict(self) -> dict[str, Any]:
        return {
            "view_mode": self.view_mode.value,
            "font_size": self.font_size,
            "line_height": self.line_height,
            "indent": self.indent,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> PreviewConfig:
        if not isinstance(payload, dict):
            return cls()
        known = {item.name for item in fields(cls)}
        try:
            return cls(**{key: value for key, value in payload.items() if key in known})
        except (TypeError, ValueError):
            return cls()


__all__ = [
    "AUTO_BACKUP",
    "BookMetadata",
    "Chapter",
    "CoverImage",
    "EditorLayout",
    "MANUAL_SAVE",
    "PreviewConfig",
    "Snapshot",
    "ViewMode",
    "default_chapter",
    "new_identifier",
]
