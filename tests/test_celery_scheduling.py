import pytest

from worker import scheduling
from worker.scheduling import CelerySweepScheduler, sweep_task_id


class _Result:
    def __init__(self, ready: bool):
        self._ready = ready

    def ready(self) -> bool:
        return self._ready


@pytest.mark.asyncio
async def test_schedule_sends_countdown_task(monkeypatch):
    sent = []
    monkeypatch.setattr(
        scheduling.sweep_listing,
        "apply_async",
        lambda **kwargs: sent.append(kwargs),
    )

    await CelerySweepScheduler(delay_seconds=60).schedule("lst_1")

    assert sent == [{"args": ["lst_1"], "countdown": 60, "task_id": "sweep:lst_1"}]


@pytest.mark.asyncio
async def test_cancel_revokes_pending_task_by_listing_id(monkeypatch):
    revoked = []
    monkeypatch.setattr(scheduling.celery, "AsyncResult", lambda task_id: _Result(ready=False))
    monkeypatch.setattr(scheduling.celery.control, "revoke", lambda task_id: revoked.append(task_id))

    assert await CelerySweepScheduler(delay_seconds=60).cancel("lst_1")
    assert revoked == [sweep_task_id("lst_1")] == ["sweep:lst_1"]


@pytest.mark.asyncio
async def test_cancel_after_sweep_ran_reports_false(monkeypatch):
    revoked = []
    monkeypatch.setattr(scheduling.celery, "AsyncResult", lambda task_id: _Result(ready=True))
    monkeypatch.setattr(scheduling.celery.control, "revoke", lambda task_id: revoked.append(task_id))

    assert not await CelerySweepScheduler(delay_seconds=60).cancel("lst_1")
    assert revoked == []


def test_sweep_task_routes_to_sweeps_queue():
    routes = scheduling.celery.conf.task_routes
    assert routes["worker.tasks.sweep_listing"] == {"queue": "sweeps"}


@pytest.mark.asyncio
async def test_aclose_is_noop():
    await CelerySweepScheduler(delay_seconds=1).aclose()
