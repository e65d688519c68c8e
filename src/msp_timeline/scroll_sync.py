from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ScrollListener = Callable[["ScrollPanel"], None]


class ScrollPanel:
    """
    Scrollable surface with a vertical and horizontal offset.

    Writing a different vertical offset notifies listeners synchronously,
    the way a scroll event would. Offsets are clamped to [0, max_scroll_top].
    """

    def __init__(self, name: str, max_scroll_top: float | None = None, width: float = 0.0) -> None:
        self.name = name
        self.max_scroll_top = max_scroll_top
        self.width = width
        self.scroll_left = 0.0
        self.pending_scroll_left: float | None = None
        self.writes = 0
        self._scroll_top = 0.0
        self._listeners: list[ScrollListener] = []

    @property
    def scroll_top(self) -> float:
        return self._scroll_top

    @scroll_top.setter
    def scroll_top(self, value: float) -> None:
        value = max(0.0, value)
        if self.max_scroll_top is not None:
            value = min(value, self.max_scroll_top)
        if value == self._scroll_top:
            return
        self._scroll_top = value
        self.writes += 1
        for listener in list(self._listeners):
            listener(self)

    def on_scroll(self, listener: ScrollListener) -> None:
        self._listeners.append(listener)

    def smooth_scroll_left(self, left: float) -> None:
        """Start a smooth horizontal scroll; nothing waits for it to finish."""
        self.pending_scroll_left = max(0.0, left)

    def settle(self) -> None:
        """Finish any in-flight smooth scroll (the shell's animation frame)."""
        if self.pending_scroll_left is not None:
            self.scroll_left = self.pending_scroll_left
            self.pending_scroll_left = None


class ScrollSynchronizer:
    """
    Keep the label panel and the time grid on one vertical offset.

    Each panel's scroll event copies its offset to the other one unless they
    already match; with synchronous single-threaded updates the strict
    equality check is what stops the two handlers from retriggering each
    other. A threaded shell would need a single writer instead.
    """

    def __init__(self, labels: ScrollPanel, grid: ScrollPanel) -> None:
        self.labels = labels
        self.grid = grid
        grid.on_scroll(self.sync_from_grid)
        labels.on_scroll(self.sync_from_labels)

    def sync_from_grid(self, _panel: ScrollPanel | None = None) -> None:
        if self.labels.scroll_top != self.grid.scroll_top:
            self.labels.scroll_top = self.grid.scroll_top

    def sync_from_labels(self, _panel: ScrollPanel | None = None) -> None:
        if self.grid.scroll_top != self.labels.scroll_top:
            self.grid.scroll_top = self.labels.scroll_top

    def scroll_vertical_to(self, top: float) -> None:
        """Programmatic jump: write the grid, then the labels directly as well."""
        logger.debug("vertical scroll to %s", top)
        self.grid.scroll_top = top
        self.labels.scroll_top = top

    def center_horizontally_on(self, x: float) -> None:
        """Smoothly bring `x` to the middle of the grid viewport."""
        self.grid.smooth_scroll_left(x - self.grid.width / 2)
