from typing import TYPE_CHECKING, Any, ClassVar

from attrs import define, field

if TYPE_CHECKING:
    from edtable.controller import EditableTableController  # noqa: F401


@define
class TableMeta:
    """The capability object cell renderers receive through the view engine.

    Renderers know rows only by their position in the working collection
    (the index the view engine assigned to the row before sorting and
    filtering). The meta object translates that position into the row key
    and forwards the call to the controller.

    Attributes:
        version: The version of this interface.
        controller: The controller that owns the rows.
    """

    version: ClassVar[int] = 1

    controller: "EditableTableController" = field(repr=False)

    def update_field(self, row_index: int, column_id: str, value: Any) -> None:
        key = self.controller.store.key_at(row_index)
        if key is None:
            return
        self.controller.update_field(key, column_id, value)

    def is_editing(self, row_index: int) -> bool:
        key = self.controller.store.key_at(row_index)
        if key is None:
            return False
        return self.controller.is_editing(key)
