from typing import TYPE_CHECKING, Any, Awaitable, Mapping, Protocol, Union

from edtable.constants import RowsType, RowType

if TYPE_CHECKING:
    from edtable.gateway import GatewayResult  # noqa: F401


class HasTranslate(Protocol):
    """Protocol for contexts that provide translation.

    t(key: str, d: str, **kwargs: Any) -> str
    """

    def t(self, key: str, d: str, **kwargs: Any) -> str:
        """Translate a string using the context.

        Args:
            key: The translation key.
            d: The default string if translation is not found.
            **kwargs: Additional arguments for translation string.

        Returns:
            The translated string.
        """
        ...


class EditableRowsMeta(Protocol):
    """The capability object that cell renderers receive from the view engine.

    Renderers use `is_editing()` to decide between showing the value and
    showing an input and route edits back through `update_field()`. Both
    receive the positional index of the row in the working collection.
    """

    version: int

    def update_field(self, row_index: int, column_id: str, value: Any) -> None:
        """Change the value of one cell in the working collection."""
        ...

    def is_editing(self, row_index: int) -> bool:
        """Tell if the row is in an edit session."""
        ...


# What a gateway callable may resolve to: either the model itself or a
# mapping with the same keys (`success`, `data`, `error`).
RawResult = Union["GatewayResult", Mapping[str, Any]]


class SaveRowFn(Protocol):
    def __call__(self, row: RowType, index: int) -> Awaitable[RawResult]: ...


class SaveAllRowsFn(Protocol):
    def __call__(self, rows: RowsType) -> Awaitable[RawResult]: ...


class AddRowFn(Protocol):
    def __call__(self, fields: RowType) -> Awaitable[RawResult]: ...


class DeleteRowFn(Protocol):
    def __call__(self, row: RowType, index: int) -> Awaitable[RawResult]: ...
