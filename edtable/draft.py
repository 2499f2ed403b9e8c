from typing import Any, Mapping

from attrs import define, field
from pyrsistent import freeze, pmap, thaw
from pyrsistent.typing import PMap

from edtable.constants import RowType


@define
class Draft:
    """A new row that is being composed before it is committed.

    Attributes:
        template: The default field values; stored frozen so that editing
            the draft never leaks into the template.
        values: The current field values of the draft.
    """

    template: PMap[str, Any] = field(default=pmap(), converter=freeze)
    values: RowType = field(factory=dict, init=False)

    def __attrs_post_init__(self) -> None:
        self.reset()

    @classmethod
    def from_template(cls, template: Mapping[str, Any]) -> "Draft":
        return cls(template=dict(template))

    def reset(self) -> None:
        """Discard the edits and seed the values from the template."""
        self.values = thaw(self.template)

    def update_field(self, name: str, value: Any) -> None:
        self.values[name] = value

    def fields(self) -> RowType:
        """A copy of the values, safe to hand to the remote side."""
        return thaw(freeze(self.values))
