"""
Step 5: Score Stabilizer
Keeps the displayed score from flickering.

Once the display score is locked, later writes are ignored until the
stabilizer is cleared. The final score is tracked separately and can always
be written.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ScoreStabilizer:
    """Write-once display score."""

    def __init__(self):
        self._display: Optional[float] = None
        self._display_locked = False
        self._final: Optional[float] = None
        self._last: Optional[float] = None

    @property
    def display(self) -> Optional[float]:
        return self._display

    @property
    def final(self) -> Optional[float]:
        return self._final

    @property
    def last(self) -> Optional[float]:
        """Most recent final score, kept until clear_all()."""
        return self._last

    @property
    def is_locked(self) -> bool:
        return self._display_locked

    def set_display(self, score: Optional[float]) -> None:
        """
        Set the displayed score.

        None always unlocks and clears. Any other value is ignored while locked.
        """
        if score is None:
            self._display_locked = False
            self._display = None
            return
        if self._display_locked:
            logger.debug("Display locked, blocked update to %.1f", score)
            return
        self._display = score

    def lock(self) -> None:
        """Freeze the current display value until cleared."""
        self._display_locked = True

    def set_final(self, score: float) -> None:
        """Record the authoritative score (ignores the display lock)."""
        self._final = score
        self._last = score

    def clear_all(self) -> None:
        """Unlock and clear display, final and last scores."""
        self._display_locked = False
        self._display = None
        self._final = None
        self._last = None
