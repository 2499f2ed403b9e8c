import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from attrs import define, field

from edtable.constants import RowKeyType, SortDir

logger = logging.getLogger(__name__)


@define
class ViewState:
    """The filter, sort, visibility and selection state of the table.

    The controller does not filter or sort rows itself; it keeps this state
    and hands it to the view engine, which computes the row views.

    Attributes:
        enable_sorting: If False, sort requests are ignored.
        enable_filtering: If False, filter requests are ignored.
        enable_row_selection: If False, selection requests are ignored.
        global_filter: The text searched in all columns.
        column_filters: Maps a column id to the value it is filtered by.
        sort_by: A list of tuples with the column id and order (asc or desc).
            The first entry is the primary sort.
        hidden_columns: The ids of the columns that are not shown.
        selected: The keys of the selected rows.
    """

    enable_sorting: bool = True
    enable_filtering: bool = True
    enable_row_selection: bool = False
    global_filter: str = ""
    column_filters: Dict[str, Any] = field(factory=dict)
    sort_by: List[Tuple[str, SortDir]] = field(factory=list)
    hidden_columns: Set[str] = field(factory=set)
    selected: Set[RowKeyType] = field(factory=set)

    def set_global_filter(self, text: Optional[str]) -> bool:
        """Change the text searched in all columns.

        Returns:
            True if the filter changed.
        """
        if not self.enable_filtering:
            logger.debug("Filtering is disabled; ignoring global filter")
            return False
        text = text or ""
        if text == self.global_filter:
            return False
        logger.debug(
            "Changing global filter from %r to %r", self.global_filter, text
        )
        self.global_filter = text
        return True

    def set_column_filter(self, column_id: str, value: Any) -> bool:
        """Filter a column by a value; None or an empty string removes it.

        Returns:
            True if the filters changed.
        """
        if not self.enable_filtering:
            logger.debug("Filtering is disabled; ignoring column filter")
            return False
        if value is None or value == "":
            return self.column_filters.pop(column_id, None) is not None
        if self.column_filters.get(column_id) == value:
            return False
        self.column_filters[column_id] = value
        return True

    def sort_direction(self, column_id: str) -> Optional[SortDir]:
        for col, order in self.sort_by:
            if col == column_id:
                return order
        return None

    def toggle_sort(self, column_id: str, multi: bool = False) -> bool:
        """Cycle the sort of a column: none, ascending, descending, none.

        Args:
            column_id: The column to sort by.
            multi: If True the column is added to (or updated in) the current
                sort; otherwise it becomes the only sort column.

        Returns:
            True if the sort changed.
        """
        if not self.enable_sorting:
            logger.debug("Sorting is disabled; ignoring sort request")
            return False
        current = self.sort_direction(column_id)
        if current is None:
            new_order: Optional[SortDir] = "asc"
        elif current == "asc":
            new_order = "desc"
        else:
            new_order = None

        others = [s for s in self.sort_by if s[0] != column_id]
        if not multi:
            others = []
        if new_order is None:
            self.sort_by = others
        elif current is not None and multi:
            self.sort_by = [
                (col, new_order if col == column_id else order)
                for col, order in self.sort_by
            ]
        else:
            self.sort_by = others + [(column_id, new_order)]
        logger.debug("Sorting by %s", self.sort_by)
        return True

    def clear_sort(self) -> None:
        self.sort_by = []

    def set_column_visible(self, column_id: str, visible: bool) -> bool:
        """Show or hide a column.

        Returns:
            True if the visibility changed.
        """
        if visible == self.is_column_visible(column_id):
            return False
        if visible:
            self.hidden_columns.discard(column_id)
        else:
            self.hidden_columns.add(column_id)
        return True

    def is_column_visible(self, column_id: str) -> bool:
        return column_id not in self.hidden_columns

    def visibility(self) -> Dict[str, bool]:
        """The visibility map in the form view engines expect."""
        return {col: False for col in sorted(self.hidden_columns)}

    def select_row(self, key: RowKeyType, selected: bool = True) -> bool:
        """Select or deselect one row.

        Returns:
            True if the selection changed.
        """
        if not self.enable_row_selection:
            logger.debug("Row selection is disabled; ignoring selection")
            return False
        if selected == (key in self.selected):
            return False
        if selected:
            self.selected.add(key)
        else:
            self.selected.discard(key)
        return True

    def select_all(self, keys: Iterable[RowKeyType], selected: bool) -> bool:
        """Select or deselect all the given rows (usually the current page).

        Returns:
            True if the selection changed.
        """
        if not self.enable_row_selection:
            logger.debug("Row selection is disabled; ignoring selection")
            return False
        keys = set(keys)
        before = set(self.selected)
        if selected:
            self.selected |= keys
        else:
            self.selected -= keys
        return before != self.selected

    def is_selected(self, key: RowKeyType) -> bool:
        return key in self.selected

    def prune_selection(self, keys: Iterable[RowKeyType]) -> None:
        """Forget the selection of rows that are no longer present."""
        self.selected &= set(keys)
