import asyncio

import anyio
import pytest

from portal_api.core.async_utils import run_async
from portal_api.core.errors import CalendarError
from portal_api.services.consultation_service import _run_calendar


async def _sample() -> str:
    await anyio.sleep(0)
    return "ok"


async def _slow() -> str:
    await anyio.sleep(5)
    return "late"


@pytest.mark.asyncio
async def test_run_async_avoids_asyncio_run_in_worker_thread(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _fail_run(*_args: object, **_kwargs: object) -> None:
        pytest.fail("asyncio.run should not be used in request threads")

    monkeypatch.setattr(asyncio, "run", _fail_run)

    def _call() -> str:
        return run_async(_sample())

    result = await anyio.to_thread.run_sync(_call)
    assert result == "ok"


def test_run_async_without_event_loop() -> None:
    assert run_async(_sample()) == "ok"


def test_run_async_timeout() -> None:
    with pytest.raises(TimeoutError):
        run_async(_slow(), timeout=0.01)


def test_calendar_timeout_becomes_calendar_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("portal_api.services.consultation_service.CALENDAR_CALL_TIMEOUT", 0.01)

    with pytest.raises(CalendarError) as exc:
        _run_calendar(_slow())
    assert exc.value.kind == "timeout"
