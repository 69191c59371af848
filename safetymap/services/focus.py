"""
focus.py — Single-report focus mode.

Two states: unfocused (every radius circle visible) and focused on one
report id (only that report's circle visible). Point markers are never
hidden. Entering focus asks the view layer to recentre on the report;
the controller itself holds no view objects.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FocusChange:
    previous: Optional[str]
    current: Optional[str]

    @property
    def entered_focus(self) -> bool:
        """True when the view should recentre on ``current``."""
        return self.current is not None and self.current != self.previous


class FocusController:
    def __init__(self, focused_id: Optional[str] = None) -> None:
        self._focused_id = focused_id

    @property
    def focused_id(self) -> Optional[str]:
        return self._focused_id

    @property
    def is_focused(self) -> bool:
        return self._focused_id is not None

    def toggle(self, report_id: str) -> FocusChange:
        """Focus *report_id*, or unfocus if it already has focus."""
        previous = self._focused_id
        self._focused_id = None if previous == report_id else report_id
        return FocusChange(previous, self._focused_id)

    def clear(self) -> FocusChange:
        previous = self._focused_id
        self._focused_id = None
        return FocusChange(previous, None)

    def is_visible(self, report_id: str) -> bool:
        """Visibility of the radius circle belonging to *report_id*."""
        return self._focused_id is None or self._focused_id == report_id

    def visibility(self, report_ids) -> dict[str, bool]:
        return {rid: self.is_visible(rid) for rid in report_ids}
