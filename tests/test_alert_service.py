"""Tests for optimistic alert mutations and history backfill."""

import pytest

from nappi_live.api.models import AlertRecord
from nappi_live.services.alert_buffer import AlertBuffer
from nappi_live.services.alert_service import AlertService
from nappi_live.services.alert_stream import AlertStreamClient

from conftest import USER_ID, make_alert, sse_data, wait_for


def _filled_buffer(*ids: int, **overrides) -> AlertBuffer:
    buffer = AlertBuffer()
    for alert_id in ids:
        buffer.push(AlertRecord.model_validate(make_alert(alert_id, **overrides)))
    return buffer


@pytest.fixture
def service(api, session):
    return AlertService(api, _filled_buffer(1, 2, 3), session)


@pytest.mark.asyncio
async def test_mark_read_success(service, backend) -> None:
    assert await service.mark_read(2) is True
    assert service.buffer.get(2).read is True
    assert service.unread_count() == 2
    assert backend.calls_to("/alerts/2/read") == [("POST", "/alerts/2/read", {"user_id": str(USER_ID)})]


@pytest.mark.asyncio
async def test_scenario_d_mark_read_rolls_back_on_error(service, backend) -> None:
    backend.fail_mark_read = True
    assert await service.mark_read(1) is False
    assert service.buffer.get(1).read is False
    assert service.unread_count() == 3


@pytest.mark.asyncio
async def test_mark_read_rollback_touches_only_that_record(service, backend) -> None:
    service.buffer.set_read(3, True)
    backend.fail_mark_read = True
    await service.mark_read(1)
    assert service.buffer.get(3).read is True
    assert service.buffer.get(1).read is False


@pytest.mark.asyncio
async def test_mark_read_absent_or_already_read_is_noop(service, backend) -> None:
    service.buffer.set_read(2, True)
    assert await service.mark_read(2) is True
    assert await service.mark_read(999) is True
    assert backend.calls == []


@pytest.mark.asyncio
async def test_mark_all_read_success(service, backend) -> None:
    assert await service.mark_all_read() is True
    assert service.unread_count() == 0
    assert len(backend.calls_to("/alerts/read-all")) == 1


@pytest.mark.asyncio
async def test_mark_all_read_failure_restores_prior_flags(api, session, backend) -> None:
    buffer = _filled_buffer(1, 2, 3, 4)
    buffer.set_read(2, True)
    service = AlertService(api, buffer, session)
    before = [a.model_dump() for a in buffer]

    backend.fail_mark_all = True
    assert await service.mark_all_read() is False

    assert [a.model_dump() for a in buffer] == before
    assert service.unread_count() == 3


@pytest.mark.asyncio
async def test_mark_all_read_failure_resets_records_held_elsewhere(api, session, backend) -> None:
    stream = AlertStreamClient(api, AlertBuffer())
    stream.connect(USER_ID)
    try:
        await wait_for(lambda: len(backend.streams) == 1 and stream.connected)
        backend.streams[0].send(sse_data(make_alert(1)))
        await wait_for(lambda: stream.latest_alert is not None)
        held = stream.latest_alert

        service = AlertService(api, stream.buffer, session)
        backend.fail_mark_all = True
        assert await service.mark_all_read() is False

        assert held.read is False
        assert stream.latest_alert is stream.buffer.get(1)
        assert service.unread_count() == 1
    finally:
        await stream.aclose()


@pytest.mark.asyncio
async def test_delete_alerts_success(service, backend) -> None:
    assert await service.delete_alerts([1, 3]) is True
    assert [a.id for a in service.alerts] == [2]


@pytest.mark.asyncio
async def test_delete_alerts_failure_reinserts(service, backend) -> None:
    backend.fail_delete = True
    assert await service.delete_alerts([2]) is False
    assert [a.id for a in service.alerts] == [3, 2, 1]


@pytest.mark.asyncio
async def test_delete_alerts_validates_ids(service) -> None:
    with pytest.raises(ValueError):
        await service.delete_alerts([])
    with pytest.raises(ValueError):
        await service.delete_alerts(list(range(101)))


@pytest.mark.asyncio
async def test_load_history_backfills_tail(api, session, backend) -> None:
    backend.history = [make_alert(i) for i in (5, 4, 3, 2)]
    service = AlertService(api, _filled_buffer(5), session)

    added = await service.load_history()

    assert added == 3
    assert [a.id for a in service.alerts] == [5, 4, 3, 2]
    query = backend.calls_to("/alerts/history")[0][2]
    assert query["limit"] == "99"
    assert query["unread_only"] == "false"


@pytest.mark.asyncio
async def test_load_history_failure_is_soft(session) -> None:
    from nappi_live.api.client import NappiApiClient

    unreachable = NappiApiClient("http://127.0.0.1:9", timeout_seconds=1)
    try:
        service = AlertService(unreachable, AlertBuffer(), session)
        assert await service.load_history() == 0
    finally:
        await unreachable.close()
