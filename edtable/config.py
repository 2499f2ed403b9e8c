import logging
import os
import re
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from appdirs import user_config_dir
from attrs import asdict, define, field, fields
from pyrsistent import freeze, pmap, thaw
from pyrsistent.typing import PMap

from edtable.constants import (
    DEFAULT_KEY_FIELD,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PAGE_SIZE_OPTIONS,
)

logger = logging.getLogger(__name__)


def _to_options(value: Any) -> Tuple[int, ...]:
    return tuple(int(v) for v in value)


def _check_page_size(instance, attribute, value):
    if not isinstance(value, int) or value <= 0:
        raise ValueError(f"{attribute.name} must be a positive integer")


def _check_options(instance, attribute, value):
    if not value:
        raise ValueError(f"{attribute.name} must not be empty")
    for v in value:
        if v <= 0:
            raise ValueError(f"{attribute.name} must contain positive sizes")


@define(slots=True, kw_only=True)
class TableConfig:
    """The configuration of an editable table.

    Attributes:
        enable_editing: Show the edit controls.
        enable_multi_row_editing: Allow more than one row in an edit session.
        enable_row_selection: Allow rows to be selected.
        enable_pagination: Split the rows into pages.
        enable_sorting: Allow sorting by columns.
        enable_filtering: Allow filtering.
        enable_add_row: Show the controls for adding a row.
        manual_pagination: The host loads the rows one page at a time
            (server mode).
        initial_page_size: The page size used at start.
        page_size_options: The page sizes the user may choose from.
        new_row_template: Default field values of a new row.
        key_field: The identity field of the rows; None to use the
            positional index.
    """

    enable_editing: bool = False
    enable_multi_row_editing: bool = False
    enable_row_selection: bool = False
    enable_pagination: bool = True
    enable_sorting: bool = True
    enable_filtering: bool = True
    enable_add_row: bool = False
    manual_pagination: bool = False
    initial_page_size: int = field(
        default=DEFAULT_PAGE_SIZE, validator=_check_page_size
    )
    page_size_options: Tuple[int, ...] = field(
        default=DEFAULT_PAGE_SIZE_OPTIONS,
        converter=_to_options,
        validator=_check_options,
    )
    new_row_template: PMap[str, Any] = field(default=pmap(), converter=freeze)
    key_field: Optional[str] = DEFAULT_KEY_FIELD

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "TableConfig":
        """Create a configuration from a mapping.

        Keys may use either the snake_case names of this class or the
        camelCase names used by web hosts (`enableEditing`,
        `initialPageSize`, ...).

        Raises:
            KeyError: If a key names no known setting.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            name = _snake_case(key)
            if name not in known:
                raise KeyError(
                    f"Unknown table setting: {key}; valid names are "
                    f"{sorted(known)}"
                )
            kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """A plain dictionary with the settings, suitable for YAML."""
        result = asdict(self, recurse=False)
        result["page_size_options"] = list(self.page_size_options)
        result["new_row_template"] = thaw(self.new_row_template)
        return result


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def default_config_file() -> str:
    """Get the path of the default configuration file."""
    return os.path.join(user_config_dir("edtable"), "table.yaml")


def load_config(path: Optional[str] = None) -> TableConfig:
    """Load a table configuration from a YAML file.

    A missing or empty file results in the default configuration.

    Args:
        path: The file to read; the default configuration file if None.
    """
    if path is None:
        path = default_config_file()
    if not os.path.exists(path):
        logger.warning("configuration file %s does not exist", path)
        return TableConfig()

    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if data is None:
        logger.warning("configuration file %s is empty", path)
        return TableConfig()
    if not isinstance(data, Mapping):
        raise ValueError(f"configuration file {path} must contain a mapping")

    logger.debug("configuration loaded from %s", path)
    return TableConfig.from_dict(data)
