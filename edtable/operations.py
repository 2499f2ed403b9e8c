import logging
from enum import StrEnum
from typing import Callable, Dict, List, Optional

from attrs import define, field

logger = logging.getLogger(__name__)


class OpState(StrEnum):
    """The state of an asynchronous operation.

    Attributes:
        IDLE: Nothing is in flight and the last attempt (if any) succeeded.
        LOADING: The remote call is outstanding.
        ERROR: The last attempt failed.
    """

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


@define(frozen=True)
class OpStatus:
    """The status of one operation as seen by the view layer.

    Attributes:
        state: The state of the operation.
        error: The message of the last failure; only set in the error state.
    """

    state: OpState = OpState.IDLE
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.state == OpState.LOADING

    @property
    def failed(self) -> bool:
        return self.state == OpState.ERROR


IDLE_STATUS = OpStatus()


@define
class OperationTracker:
    """Loading and error status of asynchronous operations, by operation id.

    Entries are created lazily the first time an id is used and are kept
    (so that the last error stays visible) until the next attempt or an
    explicit clear.

    Attributes:
        statuses: Maps the operation id to its current status.
        on_changed: Callbacks invoked with the tracker, the operation id and
            the new status each time a status changes.
    """

    statuses: Dict[str, OpStatus] = field(factory=dict)
    on_changed: List[Callable[["OperationTracker", str, OpStatus], None]] = (
        field(factory=list, repr=False)
    )

    def _set(self, op_id: str, status: OpStatus) -> None:
        self.statuses[op_id] = status
        for callback in self.on_changed:
            try:
                callback(self, op_id, status)
            except Exception as e:
                logger.error(
                    "Exception in an operation status callback: %s",
                    e,
                    exc_info=True,
                )

    def begin(self, op_id: str) -> None:
        """Mark the operation as in flight and forget its previous error."""
        if self.is_loading(op_id):
            logger.debug("Operation %s restarted while still loading", op_id)
        else:
            logger.debug("Operation %s started", op_id)
        self._set(op_id, OpStatus(state=OpState.LOADING))

    def succeed(self, op_id: str) -> None:
        logger.debug("Operation %s succeeded", op_id)
        self._set(op_id, IDLE_STATUS)

    def fail(self, op_id: str, message: str) -> None:
        logger.debug("Operation %s failed: %s", op_id, message)
        self._set(op_id, OpStatus(state=OpState.ERROR, error=message))

    def clear(self, op_id: str) -> None:
        """Forget the status of an operation (used to dismiss an error)."""
        if op_id in self.statuses:
            self._set(op_id, IDLE_STATUS)
            del self.statuses[op_id]

    def clear_all(self) -> None:
        self.statuses.clear()

    def status(self, op_id: str) -> OpStatus:
        return self.statuses.get(op_id, IDLE_STATUS)

    def is_loading(self, op_id: str) -> bool:
        return self.status(op_id).loading

    def any_loading(self) -> bool:
        return any(s.loading for s in self.statuses.values())

    def errors(self) -> Dict[str, str]:
        """The error messages of all failed operations, by operation id."""
        return {
            op_id: s.error or ""
            for op_id, s in self.statuses.items()
            if s.failed
        }
