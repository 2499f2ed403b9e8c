from unittest.mock import AsyncMock, MagicMock

import pytest

from edtable.config import TableConfig
from edtable.controller import EditableTableController
from edtable.gateway import MutationGateway


@pytest.fixture
def rows():
    """Three rows with an explicit identity field."""
    return [
        {"id": "A", "name": "Alice", "age": 30},
        {"id": "B", "name": "Bob", "age": 25},
        {"id": "C", "name": "Carol", "age": 41},
    ]


@pytest.fixture
def config():
    """A configuration with editing and adding enabled."""
    return TableConfig(
        enable_editing=True,
        enable_add_row=True,
        enable_row_selection=True,
        new_row_template={"name": "", "age": 0},
    )


@pytest.fixture
def on_data_change():
    return MagicMock(name="on_data_change")


@pytest.fixture
def local_ctrl(rows, config, on_data_change):
    """A controller without a gateway (local-only commits)."""
    return EditableTableController(
        rows=rows, config=config, on_data_change=on_data_change
    )


@pytest.fixture
def gateway():
    """A gateway whose operations all succeed without returning data."""
    return MutationGateway(
        save_row=AsyncMock(return_value={"success": True}),
        save_all_rows=AsyncMock(return_value={"success": True}),
        add_row=AsyncMock(return_value={"success": True}),
        delete_row=AsyncMock(return_value={"success": True}),
    )


@pytest.fixture
def remote_ctrl(rows, config, gateway, on_data_change):
    """A controller backed by the gateway fixture."""
    return EditableTableController(
        rows=rows,
        config=config,
        gateway=gateway,
        on_data_change=on_data_change,
    )
