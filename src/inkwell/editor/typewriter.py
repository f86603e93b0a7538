"""Typewriter mode: keep the line being edited near the middle of the viewport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

NARROW_VIEWPORT_WIDTH = 768
NARROW_LINE_HEIGHT = 24.0
WIDE_LINE_HEIGHT = 20.0


@dataclass(slots=True, frozen=True)
class Viewport:
    """Visible editor area in pixels."""

    width: float
    height: float


LineHeightEstimator = Callable[[Viewport], float]


def estimate_line_height(viewport: Viewport) -> float:
    """Approximate rendered line height; narrow (mobile) layouts use taller lines."""

    if viewport.width < NARROW_VIEWPORT_WIDTH:
        return NARROW_LINE_HEIGHT
    return WIDE_LINE_HEIGHT


class TypewriterPositioner:
    """Estimates the scroll offset that centres the caret line.

    The estimate counts newline-delimited lines before the caret and ignores
    soft wrapping; it only aims for "roughly centred".
    """

    def __init__(
        self,
        *,
        enabled: bool = False,
        line_height: LineHeightEstimator = estimate_line_height,
    ) -> None:
        self.enabled = bool(enabled)
        self._line_height = line_height

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        return self.enabled

    def scroll_offset(self, text: str, caret: int, viewport: Viewport) -> float | None:
        """Return the scroll position to apply, or ``None`` when disabled."""

        if not self.enabled:
            return None
        caret = max(0, min(int(caret), len(text)))
        lines_before = text.count("\n", 0, caret) + 1
        estimated_top = lines_before * self._line_height(viewport)
        return max(0.0, estimated_top - viewport.height / 2)


__all__ = ["LineHeightEstimator", "TypewriterPositioner", "Viewport", "estimate_line_height"]
