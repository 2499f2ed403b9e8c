import logging
from collections import Counter, defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from attrs import define, field
from pyrsistent import freeze, pvector, thaw
from pyrsistent.typing import PVector

from edtable.constants import (
    DEFAULT_KEY_FIELD,
    OP_DELETE_PREFIX,
    OP_NEW_ROW,
    OP_SAVE_ALL,
    RowKeyType,
    RowsType,
    RowType,
    row_op_id,
)

logger = logging.getLogger(__name__)


@define
class RowStore:
    """The working row collection and the last committed snapshot.

    The working collection is a list of plain dictionaries that the user
    edits in place. The snapshot is an immutable vector of maps that holds
    the last state confirmed as committed (either locally or by the remote
    side) and is the target of every rollback.

    Both collections always have the same length and the same order, so
    position `i` in the working collection corresponds to position `i` in the
    snapshot. Rows are located by their key at the moment an operation is
    applied and never by a position captured earlier.

    When the rows have no identity field each row receives a surrogate key
    as it enters the store. After a reseed the surrogate keys match the
    positions of the rows; they stay with their rows when other rows are
    removed, so they are not positions afterwards.

    Attributes:
        key_field: The name of the identity field of the rows. If None,
            surrogate keys are used.
        _working: The live, possibly unsaved rows.
        _snapshot: The last committed rows.
        _ids: The surrogate key of each row, parallel to `_working`.
        _next_id: The surrogate key given to the next inserted row.
    """

    key_field: Optional[str] = field(default=DEFAULT_KEY_FIELD)
    _working: RowsType = field(factory=list, init=False, repr=False)
    _snapshot: PVector[Any] = field(factory=pvector, init=False, repr=False)
    _ids: List[int] = field(factory=list, init=False, repr=False)
    _next_id: int = field(default=0, init=False, repr=False)

    def __len__(self) -> int:
        return len(self._working)

    def __contains__(self, key: RowKeyType) -> bool:
        return self.index_of(key) is not None

    def _new_ids(self, count: int) -> List[int]:
        start = self._next_id
        self._next_id += count
        return list(range(start, start + count))

    def key_of(self, index: int, row: Mapping[str, Any]) -> RowKeyType:
        """Compute the key of a row.

        Args:
            index: The position of the row in the collection.
            row: The row itself.
        """
        if self.key_field is None:
            return self._ids[index]
        return row.get(self.key_field)

    def key_at(self, index: int) -> Optional[RowKeyType]:
        """Get the key of the working row at the given position.

        Returns:
            The key or None if the index is out of range.
        """
        if index < 0 or index >= len(self._working):
            return None
        return self.key_of(index, self._working[index])

    def index_of(self, key: RowKeyType) -> Optional[int]:
        """Find the current position of a row in the working collection.

        Args:
            key: The key of the row.

        Returns:
            The index of the row or None if no row has that key.
        """
        if self.key_field is None:
            if not isinstance(key, int) or isinstance(key, bool):
                return None
            try:
                return self._ids.index(key)
            except ValueError:
                return None
        for i, row in enumerate(self._working):
            if row.get(self.key_field) == key:
                return i
        return None

    def keys(self) -> List[RowKeyType]:
        """The keys of all working rows in display order."""
        return [self.key_of(i, r) for i, r in enumerate(self._working)]

    def rows(self) -> RowsType:
        """A deep copy of the working collection."""
        return thaw(freeze(self._working))

    def snapshot_rows(self) -> RowsType:
        """A deep copy of the committed collection."""
        return thaw(self._snapshot)

    def get(self, key: RowKeyType) -> Optional[RowType]:
        """A copy of the working value of a row, or None if absent."""
        index = self.index_of(key)
        if index is None:
            return None
        return thaw(freeze(self._working[index]))

    def committed(self, key: RowKeyType) -> Optional[RowType]:
        """A copy of the committed value of a row, or None if absent."""
        index = self.index_of(key)
        if index is None:
            return None
        return thaw(self._snapshot[index])

    def _warn_ambiguous_keys(
        self, keys: Iterable[RowKeyType], others: Iterable[RowKeyType] = ()
    ) -> None:
        """Log the keys whose operation ids collide with other operations.

        Args:
            keys: The keys to check.
            others: Keys already checked earlier; they are only used to find
                collisions with `keys`.
        """
        if self.key_field is None:
            return
        by_op_id: Dict[str, Set[RowKeyType]] = defaultdict(set)
        for key in others:
            if key is not None:
                by_op_id[row_op_id(key)].add(key)
        reported = set()
        for key in keys:
            if key is None:
                continue
            op_id = row_op_id(key)
            if op_id in (OP_SAVE_ALL, OP_NEW_ROW) or op_id.startswith(
                OP_DELETE_PREFIX
            ):
                logger.warning(
                    "Row key %r is also the id of another operation; its "
                    "status will be shared",
                    key,
                )
            by_op_id[op_id].add(key)
            if len(by_op_id[op_id]) > 1 and op_id not in reported:
                reported.add(op_id)
                logger.warning(
                    "Row keys %s share the operation id %r",
                    sorted(repr(k) for k in by_op_id[op_id]),
                    op_id,
                )

    def replace(self, rows: Iterable[Mapping[str, Any]]) -> None:
        """Overwrite both the working collection and the snapshot.

        Args:
            rows: The new rows. They are copied; the caller keeps ownership
                of the objects it passed in.
        """
        self._snapshot = freeze([dict(r) for r in rows])
        self._working = thaw(self._snapshot)
        self._next_id = 0
        self._ids = self._new_ids(len(self._working))
        self._warn_ambiguous_keys(self.keys())
        logger.debug("Row store reseeded with %d rows", len(self._working))

    def update_field(self, key: RowKeyType, field: str, value: Any) -> bool:
        """Change one field of one row in the working collection.

        The snapshot is not touched.

        Returns:
            False if no row has the given key, True otherwise.
        """
        index = self.index_of(key)
        if index is None:
            logger.debug(
                "Cannot update field %s: no row with key %s", field, key
            )
            return False
        self._working[index][field] = value
        return True

    def commit(
        self, rows: Optional[Iterable[Mapping[str, Any]]] = None
    ) -> None:
        """Make the given rows (or the working collection) the snapshot.

        The working collection is then reset to the new snapshot.

        Args:
            rows: The rows confirmed by the remote side. If None, the working
                collection is committed as it is. Without an identity field
                the rows keep their keys when the count is unchanged and get
                new ones otherwise.
        """
        if rows is None:
            self._snapshot = freeze(self._working)
        else:
            self._snapshot = freeze([dict(r) for r in rows])
            if len(self._snapshot) != len(self._ids):
                self._ids = self._new_ids(len(self._snapshot))
            self._warn_ambiguous_keys(self.keys())
        self._working = thaw(self._snapshot)

    def commit_row(
        self, key: RowKeyType, row: Optional[Mapping[str, Any]] = None
    ) -> bool:
        """Make a row's value committed in both collections.

        Args:
            key: The key of the row.
            row: The value returned by the remote side. If None, the current
                working value of the row is promoted to the snapshot.

        Returns:
            False if no row has the given key, True otherwise.
        """
        index = self.index_of(key)
        if index is None:
            logger.warning("Cannot commit row %s: it is no longer present", key)
            return False
        value = freeze(dict(row if row is not None else self._working[index]))
        self._snapshot = self._snapshot.set(index, value)
        self._working[index] = thaw(value)
        return True

    def revert_row(self, key: RowKeyType) -> bool:
        """Set the working value of a row back to its committed value."""
        index = self.index_of(key)
        if index is None:
            logger.debug("Cannot revert row %s: no such row", key)
            return False
        self._working[index] = thaw(self._snapshot[index])
        return True

    def revert_all(self) -> None:
        """Set the working collection back to the snapshot."""
        self._working = thaw(self._snapshot)

    def remove(self, key: RowKeyType) -> Optional[RowType]:
        """Delete a row from both collections.

        Returns:
            The removed working row or None if no row has the given key.
        """
        index = self.index_of(key)
        if index is None:
            logger.warning("Cannot remove row %s: no such row", key)
            return None
        removed = self._working.pop(index)
        self._snapshot = self._snapshot.delete(index)
        del self._ids[index]
        return removed

    def append(self, row: Mapping[str, Any]) -> RowKeyType:
        """Add a committed row at the end of both collections.

        Returns:
            The key of the new row.
        """
        value = freeze(dict(row))
        self._snapshot = self._snapshot.append(value)
        self._working.append(thaw(value))
        self._ids.extend(self._new_ids(1))
        index = len(self._working) - 1
        key = self.key_of(index, self._working[index])
        self._warn_ambiguous_keys([key], self.keys()[:-1])
        return key

    def is_dirty(self, key: RowKeyType) -> bool:
        """Tell if the working value of a row differs from the committed one."""
        index = self.index_of(key)
        if index is None:
            return False
        return freeze(self._working[index]) != self._snapshot[index]

    def changed_fields(self, key: RowKeyType) -> List[str]:
        """The names of the fields whose working value is not committed."""
        index = self.index_of(key)
        if index is None:
            return []
        working = self._working[index]
        committed = thaw(self._snapshot[index])
        names = list(working.keys())
        names.extend(k for k in committed.keys() if k not in working)
        return [
            name
            for name in names
            if name not in working
            or name not in committed
            or working[name] != committed[name]
        ]

    def duplicate_keys(self) -> List[RowKeyType]:
        """Keys that appear on more than one row, in order of appearance."""
        counts = Counter(self.keys())
        return [k for k, c in counts.items() if c > 1]

    def rows_without_key(self) -> List[int]:
        """Positions of the rows that lack a value for the identity field."""
        if self.key_field is None:
            return []
        return [
            i
            for i, row in enumerate(self._working)
            if row.get(self.key_field) is None
        ]
