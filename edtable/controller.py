import asyncio
import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from attrs import define, evolve, field

from edtable.config import TableConfig
from edtable.constants import (
    MSG_ADD_ROW_FAILED,
    MSG_DELETE_ROW_FAILED,
    MSG_SAVE_ALL_FAILED,
    MSG_SAVE_ROW_FAILED,
    MSG_UNEXPECTED,
    OP_NEW_ROW,
    OP_SAVE_ALL,
    UNKNOWN_PAGE_COUNT,
    RowKeyType,
    RowsType,
    RowType,
    ToolbarMode,
    delete_op_id,
    row_op_id,
)
from edtable.draft import Draft
from edtable.edit_session import EditSessionTracker
from edtable.gateway import GatewayResult, MutationGateway, invoke_gateway
from edtable.meta import TableMeta
from edtable.operations import OperationTracker, OpStatus
from edtable.pagination import (
    PaginationCoordinator,
    PaginationMode,
    PaginationState,
)
from edtable.row_store import RowStore
from edtable.typedefs import EditableRowsMeta, HasTranslate
from edtable.view_state import ViewState

logger = logging.getLogger(__name__)


@define
class ViewOptions:
    """Everything the view engine needs to compute the row views.

    Attributes:
        rows: A copy of the working collection.
        meta: The capability object for the cell renderers.
        pagination: A copy of the pagination state.
        page_count: The page count (computed locally in client mode,
            reported by the host in server mode, -1 when unknown).
        manual_pagination: True if the host supplies one page at a time.
        enable_pagination: False if the rows are not split into pages.
        view: The filter, sort, visibility and selection state.
    """

    rows: RowsType
    meta: EditableRowsMeta = field(repr=False)
    pagination: PaginationState
    page_count: int
    manual_pagination: bool
    enable_pagination: bool
    view: ViewState = field(repr=False)


class EditableTableController:
    """The state machine behind an editable table.

    The controller owns the rows (working collection and committed
    snapshot), the edit sessions, the status of the asynchronous operations,
    the draft of a new row, the pagination and the view state. The view
    layer renders from `view_options()` and calls back into the controller;
    the host receives the committed collection through `on_data_change`
    after each successful save, add or delete.

    Per row: viewing -> editing -> saving -> viewing (or back to editing,
    with an error). Deleting either removes the row or keeps it with an
    error. Adding: idle -> drafting -> committing -> idle (or back to
    drafting, with an error).

    Methods that talk to the gateway are coroutines; they suspend only while
    awaiting the gateway and never raise for remote failures. All other
    methods run to completion synchronously.

    Attributes:
        config: The table configuration.
        gateway: The remote operations; missing ones fall back to local
            commits (saves) or are unavailable (add, delete).
        ctx: Optional context used to translate the messages.
        on_data_change: Host callback receiving the new collection after
            each successful logical operation.
        on_state_changed: Callbacks invoked with the controller after each
            public method that changed the state (the re-render hook).
        store: The rows.
        sessions: The rows in an edit session.
        operations: The status of the asynchronous operations.
        pagination: The pagination state.
        view: The filter, sort, visibility and selection state.
        meta: The capability object handed to the cell renderers.
        draft: The new row being composed; None if not adding a row.
        _generation: Increases each time the rows are replaced; results of
            operations started before that are discarded.
        _disposed: Set by `dispose()`; results arriving later are discarded.
    """

    config: TableConfig
    gateway: MutationGateway
    ctx: Optional[HasTranslate]
    on_data_change: Optional[Callable[[RowsType], None]]
    on_state_changed: List[Callable[["EditableTableController"], None]]
    store: RowStore
    sessions: EditSessionTracker
    operations: OperationTracker
    pagination: PaginationCoordinator
    view: ViewState
    meta: TableMeta
    draft: Optional[Draft]
    _generation: int
    _disposed: bool

    def __init__(
        self,
        rows: Optional[Iterable[Mapping[str, Any]]] = None,
        config: Optional[TableConfig] = None,
        gateway: Optional[MutationGateway] = None,
        on_data_change: Optional[Callable[[RowsType], None]] = None,
        on_pagination_change: Optional[Callable[[int, int], None]] = None,
        page_count: int = UNKNOWN_PAGE_COUNT,
        ctx: Optional[HasTranslate] = None,
    ):
        """Initialize the controller.

        Args:
            rows: The initial rows.
            config: The table configuration; defaults are used if None.
            gateway: The remote operations.
            on_data_change: Host callback for committed changes.
            on_pagination_change: Host callback for server-mode pagination;
                required when `config.manual_pagination` is True.
            page_count: The page count in server mode, if already known.
            ctx: Optional translation context.

        Raises:
            ValueError: If manual pagination is requested without a
                pagination callback.
        """
        self.config = config if config is not None else TableConfig()
        if self.config.manual_pagination and on_pagination_change is None:
            raise ValueError(
                "on_pagination_change is required when manual_pagination "
                "is enabled"
            )

        self.gateway = gateway if gateway is not None else MutationGateway()
        self.ctx = ctx
        self.on_data_change = on_data_change
        self.on_state_changed = []

        self.store = RowStore(key_field=self.config.key_field)
        self.sessions = EditSessionTracker()
        self.operations = OperationTracker()
        self.pagination = PaginationCoordinator(
            state=PaginationState(
                page_size=self.config.initial_page_size,
                mode=(
                    PaginationMode.SERVER
                    if self.config.manual_pagination
                    else PaginationMode.CLIENT
                ),
            ),
            page_size_options=self.config.page_size_options,
            on_change=on_pagination_change,
            host_page_count=page_count,
        )
        self.view = ViewState(
            enable_sorting=self.config.enable_sorting,
            enable_filtering=self.config.enable_filtering,
            enable_row_selection=self.config.enable_row_selection,
        )
        self.meta = TableMeta(controller=self)
        self.draft = None
        self._generation = 0
        self._disposed = False

        self.store.replace(rows or [])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def t(self, text: str, d: str, **kwargs: Any) -> str:
        """Translates a string using the context, if there is one.

        Args:
            text: The translation key.
            d: The default string if translation is not found.
            **kwargs: Additional arguments for translation string.
        """
        if self.ctx is None:
            return d.format(**kwargs) if kwargs else d
        return self.ctx.t(text, d, **kwargs)

    def _changed(self) -> None:
        for callback in self.on_state_changed:
            try:
                callback(self)
            except Exception as e:
                logger.error(
                    "Exception in a state change callback: %s", e, exc_info=True
                )

    def _notify_data_change(self) -> None:
        if self.on_data_change is None:
            return
        try:
            self.on_data_change(self.store.rows())
        except Exception as e:
            logger.error(
                "Exception in the data change callback: %s", e, exc_info=True
            )

    def _is_stale(self, generation: int, op_id: str) -> bool:
        if self._disposed:
            logger.debug(
                "Discarding the result of %s: the controller was disposed",
                op_id,
            )
            return True
        if generation != self._generation:
            logger.debug(
                "Discarding the result of %s: the rows were replaced", op_id
            )
            return True
        return False

    def _after_rows_changed(self) -> None:
        self.view.prune_selection(self.store.keys())
        self.pagination.clamp(len(self.store))

    async def _run_operation(
        self,
        op_id: str,
        fn: Callable[..., Awaitable[Any]],
        args: Tuple[Any, ...],
        failure: Tuple[str, str],
        apply: Callable[[GatewayResult], bool],
    ) -> bool:
        """Run one gateway operation from start to end.

        The operation is marked as loading, the gateway is awaited and the
        outcome is classified. On success `apply` updates the rows, then the
        operation becomes idle and the host is notified. If the gateway
        reports a failure, raises, or `apply` rejects the result, the
        operation enters the error state and nothing else changes.
        If the awaiting task is cancelled the operation goes back to idle.

        Args:
            op_id: The operation id used in the tracker.
            fn: The gateway callable.
            args: The arguments for the callable.
            failure: Translation key and default text of the message used
                when the gateway gives no reason.
            apply: Applies a successful result; returns False if the result
                cannot be used.

        Returns:
            True if the operation succeeded and was applied.
        """
        generation = self._generation
        self.operations.begin(op_id)
        self._changed()

        try:
            result = await invoke_gateway(
                fn, *args, exc_message=self.t(*MSG_UNEXPECTED)
            )
        except asyncio.CancelledError:
            if not self._is_stale(generation, op_id):
                logger.debug("Operation %s was cancelled", op_id)
                self.operations.clear(op_id)
                self._changed()
            raise
        if self._is_stale(generation, op_id):
            return False

        if result.success and apply(result):
            self.operations.succeed(op_id)
            self._notify_data_change()
            self._changed()
            return True

        self.operations.fail(op_id, result.error or self.t(*failure))
        self._changed()
        return False

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    @property
    def rows(self) -> RowsType:
        """A copy of the working collection."""
        return self.store.rows()

    def set_rows(self, rows: Iterable[Mapping[str, Any]]) -> None:
        """Replace the rows with a new collection from the host.

        Edits in progress, edit sessions and operation statuses are
        discarded; results of operations that are still in flight will be
        ignored when they arrive.
        """
        self._generation += 1
        self.store.replace(rows)
        self.sessions.clear()
        self.operations.clear_all()
        self._after_rows_changed()
        self._changed()

    def update_field(self, key: RowKeyType, field: str, value: Any) -> None:
        """Change one field of a row in the working collection."""
        if self.store.update_field(key, field, value):
            self._changed()

    def committed_row(self, key: RowKeyType) -> Optional[RowType]:
        """A copy of the last committed value of a row."""
        return self.store.committed(key)

    def selected_rows(self) -> RowsType:
        """Copies of the selected rows, in display order."""
        return [
            row
            for key, row in zip(self.store.keys(), self.store.rows())
            if self.view.is_selected(key)
        ]

    # ------------------------------------------------------------------
    # Edit sessions
    # ------------------------------------------------------------------

    def is_editing(self, key: RowKeyType) -> bool:
        return self.sessions.is_editing(key)

    def active_count(self) -> int:
        return self.sessions.active_count()

    def toolbar_mode(self) -> ToolbarMode:
        """Which bulk controls the toolbar shows."""
        return "save-cancel" if self.sessions.active_count() else "edit-all"

    def start_edit(self, key: RowKeyType) -> None:
        if key not in self.store:
            logger.warning("Cannot edit row %s: no such row", key)
            return
        self.sessions.start_editing(key, self.config.enable_multi_row_editing)
        self._changed()

    def start_edit_all(self) -> None:
        self.sessions.start_editing_all(self.store.keys())
        self._changed()

    def cancel_edit(self, key: RowKeyType) -> None:
        """Revert the edits of a row and end its edit session."""
        self.store.revert_row(key)
        self.sessions.stop_editing(key)
        self.operations.clear(row_op_id(key))
        self._changed()

    def cancel_all(self) -> None:
        """Revert all edits and end all edit sessions."""
        self.store.revert_all()
        self.sessions.clear()
        self.operations.clear(OP_SAVE_ALL)
        self._changed()

    async def save_row(self, key: RowKeyType) -> bool:
        """Commit the edits of a row.

        Without a `save_row` gateway operation the whole working collection
        is committed locally and the call completes without suspending.

        Returns:
            True if the row was committed; False on failure, in which case
            the row stays in its edit session with its edits intact.
        """
        index = self.store.index_of(key)
        if index is None:
            logger.warning("Cannot save row %s: no such row", key)
            return False

        save_fn = self.gateway.save_row
        if save_fn is None:
            self.store.commit()
            self.sessions.stop_editing(key)
            self.operations.clear(row_op_id(key))
            self._notify_data_change()
            self._changed()
            return True

        def apply(result: GatewayResult) -> bool:
            data = result.data
            if data is not None and not isinstance(data, Mapping):
                logger.warning(
                    "Ignoring the row returned for %s: %r", key, data
                )
                data = None
            self.store.commit_row(key, data)
            self.sessions.stop_editing(key)
            return True

        return await self._run_operation(
            row_op_id(key),
            save_fn,
            (self.store.get(key), index),
            MSG_SAVE_ROW_FAILED,
            apply,
        )

    async def save_all(self) -> bool:
        """Commit the whole working collection.

        Returns:
            True if the rows were committed; False on failure, in which case
            every edit session stays open.
        """
        save_fn = self.gateway.save_all_rows
        if save_fn is None:
            self.store.commit()
            self.sessions.clear()
            self.operations.clear(OP_SAVE_ALL)
            self._notify_data_change()
            self._changed()
            return True

        def apply(result: GatewayResult) -> bool:
            data = result.data
            if isinstance(data, Sequence) and all(
                isinstance(r, Mapping) for r in data
            ):
                self.store.commit(data)
            else:
                if data is not None:
                    logger.warning("Ignoring the rows returned: %r", data)
                self.store.commit()
            self.sessions.clear()
            self._after_rows_changed()
            return True

        return await self._run_operation(
            OP_SAVE_ALL,
            save_fn,
            (self.store.rows(),),
            MSG_SAVE_ALL_FAILED,
            apply,
        )

    # ------------------------------------------------------------------
    # Adding rows
    # ------------------------------------------------------------------

    @property
    def is_adding(self) -> bool:
        return self.draft is not None

    def start_add(self) -> None:
        """Start composing a new row from the configured template."""
        self.draft = Draft.from_template(self.config.new_row_template)
        self.operations.clear(OP_NEW_ROW)
        self._changed()

    def update_draft_field(self, name: str, value: Any) -> None:
        if self.draft is None:
            logger.warning("Cannot set %s: no row is being added", name)
            return
        self.draft.update_field(name, value)
        self._changed()

    def cancel_add(self) -> None:
        """Discard the new row."""
        self.draft = None
        self.operations.clear(OP_NEW_ROW)
        self._changed()

    async def commit_add(self) -> bool:
        """Create the new row through the gateway.

        Without an `add_row` gateway operation nothing happens, since only
        the remote side can assign the identity of a new row.

        Returns:
            True if the row was added; False otherwise, in which case the
            draft is kept.
        """
        draft = self.draft
        if draft is None:
            logger.warning("Cannot commit: no row is being added")
            return False
        add_fn = self.gateway.add_row
        if add_fn is None:
            logger.debug("No add operation in the gateway; ignoring commit")
            return False

        def apply(result: GatewayResult) -> bool:
            if not isinstance(result.data, Mapping):
                logger.warning("The new row was not returned: %r", result)
                return False
            self.store.append(result.data)
            if self.draft is draft:
                self.draft = None
            self._after_rows_changed()
            return True

        return await self._run_operation(
            OP_NEW_ROW,
            add_fn,
            (draft.fields(),),
            MSG_ADD_ROW_FAILED,
            apply,
        )

    # ------------------------------------------------------------------
    # Deleting rows
    # ------------------------------------------------------------------

    async def delete_row(self, key: RowKeyType) -> bool:
        """Delete a row through the gateway.

        The row is removed (and its edit session closed) only after the
        gateway confirms the deletion. Without a `delete_row` gateway
        operation nothing happens.

        Returns:
            True if the row was deleted.
        """
        index = self.store.index_of(key)
        if index is None:
            logger.warning("Cannot delete row %s: no such row", key)
            return False
        delete_fn = self.gateway.delete_row
        if delete_fn is None:
            logger.debug("No delete operation in the gateway; ignoring")
            return False

        def apply(result: GatewayResult) -> bool:
            self.store.remove(key)
            self.sessions.stop_editing(key)
            self.operations.clear(row_op_id(key))
            self._after_rows_changed()
            return True

        return await self._run_operation(
            delete_op_id(key),
            delete_fn,
            (self.store.get(key), index),
            MSG_DELETE_ROW_FAILED,
            apply,
        )

    # ------------------------------------------------------------------
    # Operation status
    # ------------------------------------------------------------------

    def operation_status(self, op_id: str) -> OpStatus:
        return self.operations.status(op_id)

    def row_status(self, key: RowKeyType) -> OpStatus:
        return self.operations.status(row_op_id(key))

    def delete_status(self, key: RowKeyType) -> OpStatus:
        return self.operations.status(delete_op_id(key))

    def save_all_status(self) -> OpStatus:
        return self.operations.status(OP_SAVE_ALL)

    def add_status(self) -> OpStatus:
        return self.operations.status(OP_NEW_ROW)

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def page_count(self) -> int:
        return self.pagination.page_count(len(self.store))

    def set_page(self, page_index: int) -> None:
        if self.pagination.set_page(page_index, len(self.store)):
            self._changed()

    def set_page_size(self, page_size: int) -> None:
        if self.pagination.set_page_size(page_size):
            self._changed()

    def set_page_count(self, page_count: int) -> None:
        """Record the page count reported by the host (server mode)."""
        self.pagination.set_page_count(page_count)
        self._changed()

    def set_manual_pagination(
        self,
        manual: bool,
        on_pagination_change: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        """Switch between client and server pagination.

        Args:
            manual: True to let the host supply one page at a time.
            on_pagination_change: Replaces the host pagination callback.

        Raises:
            ValueError: If server mode is requested and there is no
                pagination callback.
        """
        if on_pagination_change is not None:
            self.pagination.on_change = on_pagination_change
        if manual and self.pagination.on_change is None:
            raise ValueError(
                "on_pagination_change is required when manual_pagination "
                "is enabled"
            )
        self.config = evolve(self.config, manual_pagination=manual)
        self.pagination.set_mode(
            PaginationMode.SERVER if manual else PaginationMode.CLIENT
        )
        self._changed()

    def can_previous_page(self) -> bool:
        return self.pagination.can_previous_page()

    def can_next_page(self) -> bool:
        return self.pagination.can_next_page(len(self.store))

    def first_page(self) -> None:
        if self.pagination.first_page():
            self._changed()

    def previous_page(self) -> None:
        if self.pagination.previous_page():
            self._changed()

    def next_page(self) -> None:
        if self.pagination.next_page(len(self.store)):
            self._changed()

    def last_page(self) -> None:
        if self.pagination.last_page(len(self.store)):
            self._changed()

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------

    def set_global_filter(self, text: Optional[str]) -> None:
        """Search all columns; a client-mode table goes back to page one."""
        if not self.view.set_global_filter(text):
            return
        if not self.pagination.is_server:
            self.pagination.set_page(0)
        self._changed()

    def set_column_filter(self, column_id: str, value: Any) -> None:
        if not self.view.set_column_filter(column_id, value):
            return
        if not self.pagination.is_server:
            self.pagination.set_page(0)
        self._changed()

    def toggle_sort(self, column_id: str, multi: bool = False) -> None:
        if self.view.toggle_sort(column_id, multi):
            self._changed()

    def set_column_visible(self, column_id: str, visible: bool) -> None:
        if self.view.set_column_visible(column_id, visible):
            self._changed()

    def select_row(self, key: RowKeyType, selected: bool = True) -> None:
        if key not in self.store:
            logger.warning("Cannot select row %s: no such row", key)
            return
        if self.view.select_row(key, selected):
            self._changed()

    def select_all(
        self,
        selected: bool = True,
        keys: Optional[Iterable[RowKeyType]] = None,
    ) -> None:
        """Select or deselect many rows at once.

        Args:
            selected: The new selection state.
            keys: The rows to change (usually those on the current page);
                all rows if None.
        """
        if keys is None:
            keys = self.store.keys()
        else:
            present = set(self.store.keys())
            keys = [k for k in keys if k in present]
        if self.view.select_all(keys, selected):
            self._changed()

    def view_options(self) -> ViewOptions:
        """The bundle handed to the view engine on each render."""
        return ViewOptions(
            rows=self.store.rows(),
            meta=self.meta,
            pagination=evolve(self.pagination.state),
            page_count=self.page_count(),
            manual_pagination=self.pagination.is_server,
            enable_pagination=self.config.enable_pagination,
            view=self.view,
        )

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Tear the controller down.

        Operations still in flight complete on the gateway side but their
        results are discarded.
        """
        self._disposed = True
        self.on_state_changed.clear()
        logger.debug("Editable table controller disposed")

