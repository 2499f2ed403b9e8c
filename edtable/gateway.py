import logging
from typing import Any, Awaitable, Callable, Optional

from attrs import define, field
from pydantic import BaseModel, ValidationError

from edtable.typedefs import AddRowFn, DeleteRowFn, SaveAllRowsFn, SaveRowFn

logger = logging.getLogger(__name__)


class GatewayResult(BaseModel):
    """The result of a remote operation.

    Attributes:
        success: True if the remote side accepted the operation.
        data: The canonical row (save, add) or rows (save all) as seen by
            the remote side. May be missing even on success.
        error: The reason of a failure, shown to the user verbatim.
    """

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "GatewayResult":
        return cls(success=False, error=message)


@define(slots=True, kw_only=True)
class MutationGateway:
    """The asynchronous operations used to persist edits remotely.

    Each operation is optional. A missing save operation means that edits
    are committed locally; a missing add or delete operation means that the
    controller cannot add or delete rows.

    Attributes:
        save_row: Persists the current working value of one row; receives a
            copy of the row and its position in the working collection.
        save_all_rows: Persists the whole working collection at once.
        add_row: Creates a row from the draft fields; on success `data` is
            the new row with its server-assigned identity.
        delete_row: Deletes one row; receives a copy of the row and its
            position.
    """

    save_row: Optional[SaveRowFn] = field(default=None)
    save_all_rows: Optional[SaveAllRowsFn] = field(default=None)
    add_row: Optional[AddRowFn] = field(default=None)
    delete_row: Optional[DeleteRowFn] = field(default=None)


async def invoke_gateway(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    exc_message: str = "An error occurred",
) -> GatewayResult:
    """Await a gateway operation and classify the outcome.

    This never raises for failures of the remote side: exceptions and
    malformed results become a failed result. Cancellation of the awaiting
    task is not intercepted.

    Args:
        fn: The gateway callable.
        *args: The arguments for the callable.
        exc_message: The message used when an exception carries no text.

    Returns:
        The result reported by the gateway or a failed result.
    """
    try:
        raw = await fn(*args)
    except Exception as e:
        logger.error(
            "Exception while calling the gateway: %s", e, exc_info=True
        )
        return GatewayResult.failure(str(e) or exc_message)

    if isinstance(raw, GatewayResult):
        return raw
    try:
        return GatewayResult.model_validate(raw)
    except ValidationError:
        logger.error("Invalid result from the gateway: %r", raw, exc_info=True)
        return GatewayResult.failure(exc_message)
