import asyncio
import logging
from unittest.mock import AsyncMock

from edtable.gateway import GatewayResult, MutationGateway, invoke_gateway


def test_gateway_defaults_to_no_operations():
    gateway = MutationGateway()
    assert gateway.save_row is None
    assert gateway.save_all_rows is None
    assert gateway.add_row is None
    assert gateway.delete_row is None


def test_invoke_passes_arguments():
    fn = AsyncMock(return_value={"success": True, "data": {"id": 1}})
    result = asyncio.run(invoke_gateway(fn, {"id": 1}, 0))
    fn.assert_awaited_once_with({"id": 1}, 0)
    assert result.success
    assert result.data == {"id": 1}


def test_invoke_accepts_model_instance():
    expected = GatewayResult(success=False, error="E")
    fn = AsyncMock(return_value=expected)
    assert asyncio.run(invoke_gateway(fn)) is expected


def test_invoke_converts_exception(caplog):
    fn = AsyncMock(side_effect=RuntimeError("boom"))
    with caplog.at_level(logging.ERROR):
        result = asyncio.run(invoke_gateway(fn))
    assert not result.success
    assert result.error == "boom"
    assert "Exception while calling the gateway" in caplog.text


def test_invoke_exception_without_text():
    fn = AsyncMock(side_effect=RuntimeError())
    result = asyncio.run(invoke_gateway(fn, exc_message="Oops"))
    assert not result.success
    assert result.error == "Oops"


def test_invoke_rejects_malformed_result(caplog):
    fn = AsyncMock(return_value={"data": 1})
    with caplog.at_level(logging.ERROR):
        result = asyncio.run(invoke_gateway(fn))
    assert not result.success
    assert result.error == "An error occurred"
    assert "Invalid result from the gateway" in caplog.text


def test_invoke_rejects_none():
    fn = AsyncMock(return_value=None)
    result = asyncio.run(invoke_gateway(fn))
    assert not result.success


def test_failure_factory():
    result = GatewayResult.failure("locked")
    assert result.success is False
    assert result.error == "locked"
    assert result.data is None
