"""Tests for edtable.pagination module."""

import logging
from unittest.mock import MagicMock

import pytest

from edtable.pagination import (
    PaginationCoordinator,
    PaginationMode,
    PaginationState,
)


def server(page_index=0, page_size=10, page_count=-1):
    callback = MagicMock()
    coordinator = PaginationCoordinator(
        state=PaginationState(
            page_index=page_index,
            page_size=page_size,
            mode=PaginationMode.SERVER,
        ),
        on_change=callback,
        host_page_count=page_count,
    )
    return coordinator, callback


class TestClientMode:
    def test_page_count(self):
        p = PaginationCoordinator()
        assert p.page_count(0) == 0
        assert p.page_count(10) == 1
        assert p.page_count(11) == 2

    def test_set_page_clamps(self):
        p = PaginationCoordinator()
        assert p.set_page(5, total_rows=25)
        assert p.page_index == 2
        assert p.set_page(-3, total_rows=25)
        assert p.page_index == 0

    def test_set_page_without_total(self):
        p = PaginationCoordinator()
        assert p.set_page(7)
        assert p.page_index == 7

    def test_set_same_page_reports_no_change(self):
        p = PaginationCoordinator()
        assert not p.set_page(0, total_rows=25)

    def test_callback_not_used(self):
        callback = MagicMock()
        p = PaginationCoordinator(on_change=callback)
        p.set_page(1, total_rows=25)
        p.set_page_size(5)
        callback.assert_not_called()

    def test_navigation(self):
        p = PaginationCoordinator()
        assert not p.can_previous_page()
        assert p.can_next_page(25)
        assert p.last_page(25)
        assert p.page_index == 2
        assert not p.can_next_page(25)
        assert not p.next_page(25)
        assert p.previous_page()
        assert p.page_index == 1
        assert p.first_page()
        assert p.page_index == 0

    def test_last_page_empty(self):
        p = PaginationCoordinator()
        assert not p.last_page(0)

    def test_clamp_after_rows_removed(self):
        p = PaginationCoordinator()
        p.set_page(2, total_rows=25)
        p.clamp(15)
        assert p.page_index == 1
        p.clamp(0)
        assert p.page_index == 0


class TestPageSize:
    def test_keeps_top_row_visible(self):
        p = PaginationCoordinator()
        p.set_page(3)
        assert p.set_page_size(20)
        # Row 30 was the first row; it is on page 1 with 20 rows a page.
        assert p.page_index == 1
        assert p.page_size == 20

    def test_smaller_size(self):
        p = PaginationCoordinator(state=PaginationState(page_size=20))
        p.set_page(1)
        p.set_page_size(5)
        assert p.page_index == 4

    def test_unchanged_size(self):
        p = PaginationCoordinator()
        assert not p.set_page_size(10)

    @pytest.mark.parametrize("size", [0, -5])
    def test_invalid_size(self, size):
        p = PaginationCoordinator()
        with pytest.raises(ValueError):
            p.set_page_size(size)

    def test_state_validates_size(self):
        with pytest.raises(ValueError):
            PaginationState(page_size=0)


class TestServerMode:
    def test_page_size_notifies_once(self):
        p, callback = server()
        p.set_page_size(20)
        callback.assert_called_once_with(0, 20)

    def test_set_page_notifies_once(self):
        p, callback = server(page_count=5)
        p.set_page(3)
        callback.assert_called_once_with(3, 10)

    def test_set_page_clamped_by_host_count(self):
        p, callback = server(page_count=5)
        p.set_page(9)
        assert p.page_index == 4
        callback.assert_called_once_with(4, 10)

    def test_unknown_count_does_not_clamp(self):
        p, callback = server()
        p.set_page(9)
        assert p.page_index == 9
        assert p.can_next_page()

    def test_no_notification_without_change(self):
        p, callback = server()
        p.set_page(0)
        p.set_page_size(10)
        callback.assert_not_called()

    def test_page_count_from_host(self):
        p, _ = server()
        assert p.page_count(1000) == -1
        p.set_page_count(7)
        assert p.page_count(1000) == 7
        with pytest.raises(ValueError):
            p.set_page_count(-2)

    def test_clamp_is_ignored(self):
        p, _ = server(page_index=4)
        p.clamp(0)
        assert p.page_index == 4


class TestModeSwitch:
    def test_switch_to_server_resets_and_notifies(self):
        callback = MagicMock()
        p = PaginationCoordinator(on_change=callback)
        p.set_page(2)
        p.set_mode(PaginationMode.SERVER)
        assert p.is_server
        assert p.page_index == 0
        callback.assert_called_once_with(0, 10)

    def test_switch_to_client_is_silent(self):
        p, callback = server(page_index=3)
        p.set_mode("client")
        assert p.mode == PaginationMode.CLIENT
        assert p.page_index == 0
        callback.assert_not_called()

    def test_same_mode_is_noop(self):
        p, callback = server(page_index=3)
        p.set_mode(PaginationMode.SERVER)
        assert p.page_index == 3
        callback.assert_not_called()

    def test_failing_callback_is_logged(self, caplog):
        callback = MagicMock(side_effect=RuntimeError("host"))
        p = PaginationCoordinator(
            state=PaginationState(mode=PaginationMode.SERVER),
            on_change=callback,
        )
        with caplog.at_level(logging.ERROR):
            assert p.set_page_size(20)
        assert p.page_size == 20
        assert "pagination change callback" in caplog.text
