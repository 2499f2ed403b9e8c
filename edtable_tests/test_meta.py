from edtable.controller import EditableTableController
from edtable.meta import TableMeta


def test_meta_exposes_version():
    assert TableMeta.version == 1


def test_update_field_maps_index_to_key(rows):
    ctrl = EditableTableController(rows=rows)
    ctrl.meta.update_field(1, "name", "Robert")
    assert ctrl.store.get("B")["name"] == "Robert"
    assert ctrl.committed_row("B")["name"] == "Bob"


def test_update_field_out_of_range(rows):
    ctrl = EditableTableController(rows=rows)
    ctrl.meta.update_field(10, "name", "x")
    assert ctrl.rows == rows


def test_is_editing(rows):
    ctrl = EditableTableController(rows=rows)
    ctrl.start_edit("C")
    assert ctrl.meta.is_editing(2)
    assert not ctrl.meta.is_editing(0)
    assert not ctrl.meta.is_editing(10)
