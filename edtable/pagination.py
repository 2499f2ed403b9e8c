import logging
import math
from enum import StrEnum
from typing import Callable, Optional, Sequence

from attrs import define, field

from edtable.constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_PAGE_SIZE_OPTIONS,
    UNKNOWN_PAGE_COUNT,
)

logger = logging.getLogger(__name__)


class PaginationMode(StrEnum):
    """Who decides which rows make up a page.

    Attributes:
        CLIENT: The view engine windows the full local collection.
        SERVER: The host loads one page at a time and reports the page count.
    """

    CLIENT = "client"
    SERVER = "server"


def _positive(instance, attribute, value):
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


@define
class PaginationState:
    """Where the user is in the collection.

    Attributes:
        page_index: The 0-based index of the current page.
        page_size: The number of rows on a page.
        mode: How pages are computed.
    """

    page_index: int = 0
    page_size: int = field(default=DEFAULT_PAGE_SIZE, validator=_positive)
    mode: PaginationMode = PaginationMode.CLIENT


@define
class PaginationCoordinator:
    """Owns the pagination position and size.

    In client mode the coordinator only keeps the state; the view engine
    computes the row window. In server mode each change of the page index or
    page size is reported exactly once to the host, which loads the page and
    tells the coordinator how many pages exist.

    Attributes:
        state: The current position, size and mode.
        page_size_options: The sizes the user may choose from.
        on_change: The host callback for server mode; receives the page
            index and the page size.
        host_page_count: The page count reported by the host in server mode
            (-1 when unknown).
    """

    state: PaginationState = field(factory=PaginationState)
    page_size_options: Sequence[int] = field(default=DEFAULT_PAGE_SIZE_OPTIONS)
    on_change: Optional[Callable[[int, int], None]] = field(
        default=None, repr=False
    )
    host_page_count: int = field(default=UNKNOWN_PAGE_COUNT)

    @property
    def page_index(self) -> int:
        return self.state.page_index

    @property
    def page_size(self) -> int:
        return self.state.page_size

    @property
    def mode(self) -> PaginationMode:
        return self.state.mode

    @property
    def is_server(self) -> bool:
        return self.state.mode == PaginationMode.SERVER

    def _notify(self) -> None:
        if not self.is_server or self.on_change is None:
            return
        logger.debug(
            "Requesting page %d with %d rows from the host",
            self.state.page_index,
            self.state.page_size,
        )
        try:
            self.on_change(self.state.page_index, self.state.page_size)
        except Exception as e:
            logger.error(
                "Exception in the pagination change callback: %s",
                e,
                exc_info=True,
            )

    def page_count(self, total_rows: int = 0) -> int:
        """The number of pages.

        Args:
            total_rows: The number of rows in the local collection; ignored
                in server mode.

        Returns:
            The page count or -1 when the host has not reported it.
        """
        if self.is_server:
            return self.host_page_count
        return math.ceil(total_rows / self.state.page_size)

    def _clamped(self, page_index: int, page_count: int) -> int:
        if page_count >= 0:
            page_index = min(page_index, page_count - 1)
        return max(page_index, 0)

    def set_page(
        self, page_index: int, total_rows: Optional[int] = None
    ) -> bool:
        """Move to another page.

        Args:
            page_index: The requested page; clamped into the valid range
                when the page count is known.
            total_rows: The number of local rows (client mode). If None in
                client mode only the lower bound is enforced.

        Returns:
            True if the page index changed.
        """
        if self.is_server:
            count = self.host_page_count
        elif total_rows is None:
            count = UNKNOWN_PAGE_COUNT
        else:
            count = self.page_count(total_rows)
        page_index = self._clamped(page_index, count)
        if page_index == self.state.page_index:
            return False
        self.state.page_index = page_index
        self._notify()
        return True

    def set_page_size(self, page_size: int) -> bool:
        """Change the number of rows on a page.

        The page index is adjusted so that the first row of the current page
        is still on the new current page.

        Returns:
            True if the page size changed.
        """
        if page_size <= 0:
            raise ValueError(f"Page size must be positive, got {page_size}")
        if page_size == self.state.page_size:
            return False
        if page_size not in self.page_size_options:
            logger.debug("Page size %d is not one of the options", page_size)
        top_row = self.state.page_index * self.state.page_size
        self.state.page_index = top_row // page_size
        self.state.page_size = page_size
        self._notify()
        return True

    def set_mode(self, mode: PaginationMode) -> None:
        """Switch between client and server pagination.

        The page index goes back to the first page, since the old position
        may be out of range under the new counting scheme.
        """
        mode = PaginationMode(mode)
        if mode == self.state.mode:
            return
        self.state.mode = mode
        self.state.page_index = 0
        logger.debug("Pagination mode changed to %s", mode)
        self._notify()

    def set_page_count(self, page_count: int) -> None:
        """Record the page count reported by the host."""
        if page_count < UNKNOWN_PAGE_COUNT:
            raise ValueError(f"Invalid page count {page_count}")
        self.host_page_count = page_count

    def clamp(self, total_rows: int) -> None:
        """Keep a client-mode page index in range after the rows changed."""
        if self.is_server:
            return
        self.state.page_index = self._clamped(
            self.state.page_index, self.page_count(total_rows)
        )

    def can_previous_page(self) -> bool:
        return self.state.page_index > 0

    def can_next_page(self, total_rows: int = 0) -> bool:
        count = self.page_count(total_rows)
        if count == UNKNOWN_PAGE_COUNT:
            return True
        return self.state.page_index < count - 1

    def first_page(self) -> bool:
        return self.set_page(0)

    def previous_page(self) -> bool:
        return self.set_page(self.state.page_index - 1)

    def next_page(self, total_rows: int = 0) -> bool:
        return self.set_page(self.state.page_index + 1, total_rows)

    def last_page(self, total_rows: int = 0) -> bool:
        count = self.page_count(total_rows)
        if count <= 0:
            return False
        return self.set_page(count - 1, total_rows)
