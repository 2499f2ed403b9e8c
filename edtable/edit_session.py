import logging
from typing import Dict, Iterable, List

from attrs import define, field

from edtable.constants import RowKeyType

logger = logging.getLogger(__name__)


@define
class EditSessionTracker:
    """Keeps track of the rows that accept user input.

    Attributes:
        sessions: Maps the key of each row in an edit session to True.
            Rows that are not being edited have no entry.
    """

    sessions: Dict[RowKeyType, bool] = field(factory=dict)

    def start_editing(self, key: RowKeyType, multi_row_allowed: bool) -> None:
        """Put a row in an edit session.

        Args:
            key: The key of the row.
            multi_row_allowed: If False, every other session ends in the same
                step, so there is never a moment with two rows editing.
        """
        if multi_row_allowed:
            self.sessions[key] = True
        else:
            self.sessions = {key: True}
        logger.debug("Row %s is now being edited", key)

    def stop_editing(self, key: RowKeyType) -> None:
        if self.sessions.pop(key, None) is not None:
            logger.debug("Row %s is no longer being edited", key)

    def start_editing_all(self, keys: Iterable[RowKeyType]) -> None:
        """Put all the given rows in an edit session, regardless of policy."""
        self.sessions = {key: True for key in keys}

    def clear(self) -> None:
        self.sessions = {}

    def is_editing(self, key: RowKeyType) -> bool:
        return self.sessions.get(key, False)

    def active_count(self) -> int:
        return len(self.sessions)

    def editing_keys(self) -> List[RowKeyType]:
        return list(self.sessions.keys())
