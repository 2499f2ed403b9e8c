# Constants for operation identifiers and messages.
from typing import Any, Dict, Hashable, List, Literal

# Operation id used while the whole collection is being saved.
OP_SAVE_ALL = "all"

# Operation id used while a new row is being committed.
OP_NEW_ROW = "newRow"

# Prefix of the operation ids used while a row is being deleted.
OP_DELETE_PREFIX = "delete-"

# Default identity field of a row.
DEFAULT_KEY_FIELD = "id"

DEFAULT_PAGE_SIZE = 10
DEFAULT_PAGE_SIZE_OPTIONS = (5, 10, 20, 50, 100)

# Page count reported by the host when the total is not known.
UNKNOWN_PAGE_COUNT = -1

# Translation keys and default texts for the generic failure messages.
MSG_SAVE_ROW_FAILED = ("edt.err.save_row", "Failed to save")
MSG_SAVE_ALL_FAILED = ("edt.err.save_all", "Failed to save all rows")
MSG_ADD_ROW_FAILED = ("edt.err.add_row", "Failed to add row")
MSG_DELETE_ROW_FAILED = ("edt.err.delete_row", "Failed to delete row")
MSG_UNEXPECTED = ("edt.err.unexpected", "An error occurred")

# A row is a mapping of field names to values.
RowType = Dict[str, Any]

# A row collection in display order.
RowsType = List[RowType]

# A row key is the value of the identity field, or the positional index
# when the rows have no identity field.
RowKeyType = Hashable

SortDir = Literal["asc", "desc"]

ToolbarMode = Literal["edit-all", "save-cancel"]


def row_op_id(key: RowKeyType) -> str:
    """Operation id used while a row is being saved."""
    return str(key)


def delete_op_id(key: RowKeyType) -> str:
    """Operation id used while a row is being deleted."""
    return f"{OP_DELETE_PREFIX}{key}"
