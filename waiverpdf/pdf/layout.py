from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class PageGeometry:
    """Page size and margins in points, measured from the top-left corner."""

    width: float
    height: float
    margin_top: float
    margin_bottom: float
    margin_left: float
    margin_right: float

    @property
    def content_width(self) -> float:
        return self.width - self.margin_left - self.margin_right

    @property
    def bottom_limit(self) -> float:
        return self.height - self.margin_bottom


class LayoutCursor:
    """Vertical write position that only moves down and starts over on each new page.

    ``y`` is a distance from the top of the current page. ``start_page`` is
    called whenever a page break happens so the owner can flush the
    finished page.
    """

    def __init__(self, geometry: PageGeometry, *, start_page: Callable[[], None] | None = None):
        self.geometry = geometry
        self.y = geometry.margin_top
        self.page_index = 0
        self._start_page = start_page

    def fits(self, height: float) -> bool:
        return self.y + height <= self.geometry.bottom_limit

    def remaining(self) -> float:
        return self.geometry.bottom_limit - self.y

    def check_page_break(self, height: float) -> bool:
        if self.fits(height):
            return False
        # A block taller than a whole page still starts at the top of a fresh one
        if self.y <= self.geometry.margin_top:
            return False
        self.new_page()
        return True

    def new_page(self) -> None:
        if self._start_page is not None:
            self._start_page()
        self.page_index += 1
        self.y = self.geometry.margin_top

    def advance(self, dy: float) -> float:
        if dy < 0:
            raise ValueError(f'cursor only moves down, got {dy}')
        self.y += dy
        return self.y
