"""Tests for the sweep scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select

from uptime_monitor.config import Config
from uptime_monitor.core.exceptions import StoreUnavailable
from uptime_monitor.core.notifier import InMemoryNotifier
from uptime_monitor.core.prober import ProbeResult
from uptime_monitor.core.scheduler import MonitorScheduler, SchedulerState
from uptime_monitor.models.monitor import MonitorStatus
from uptime_monitor.models.notification_log import NotificationLog
from uptime_monitor.models.status_check import StatusCheck

UP = MonitorStatus.UP
DOWN = MonitorStatus.DOWN


async def _checks(db_session, monitor_id=None):
    query = select(StatusCheck).order_by(StatusCheck.id)
    if monitor_id is not None:
        query = query.where(StatusCheck.monitor_id == monitor_id)
    return (await db_session.execute(query)).scalars().all()


async def _logs(db_session):
    query = select(NotificationLog).order_by(NotificationLog.id)
    return (await db_session.execute(query)).scalars().all()


@pytest.mark.unit
class TestLifecycle:

    async def test_initial_state(self, scheduler):
        assert scheduler.state == SchedulerState.STOPPED
        assert not scheduler.is_running
        assert scheduler.get_status()["state"] == "stopped"

    async def test_start_registers_immediate_job(self, scheduler, prober):
        with patch.object(scheduler, "scheduler") as aps:
            aps.running = False

            await scheduler.start()

        assert scheduler.is_running
        assert prober.started
        aps.add_job.assert_called_once()
        kwargs = aps.add_job.call_args.kwargs
        assert kwargs["id"] == MonitorScheduler.JOB_ID
        assert kwargs["max_instances"] == 1
        assert kwargs["next_run_time"] is not None
        assert kwargs["trigger"].interval.total_seconds() == 60
        aps.start.assert_called_once()

    async def test_start_twice_is_noop(self, scheduler):
        with patch.object(scheduler, "scheduler") as aps:
            aps.running = False
            await scheduler.start()
            aps.running = True
            await scheduler.start()

        assert aps.add_job.call_count == 1
        assert aps.start.call_count == 1

    async def test_stop_removes_job_only(self, scheduler):
        with patch.object(scheduler, "scheduler") as aps:
            aps.running = False
            await scheduler.start()
            await scheduler.stop()

        assert scheduler.state == SchedulerState.STOPPED
        aps.remove_job.assert_called_once_with(MonitorScheduler.JOB_ID)
        aps.shutdown.assert_not_called()

    async def test_stop_lets_running_sweep_finish(self, scheduler, prober, sample_monitor, db_session):
        release = asyncio.Event()
        original_probe = prober.probe

        async def blocked_probe(url):
            await release.wait()
            return await original_probe(url)

        with patch.object(scheduler, "scheduler") as aps, \
                patch.object(prober, "probe", side_effect=blocked_probe):
            aps.running = False
            await scheduler.start()
            sweep = asyncio.create_task(scheduler.sweep())
            await asyncio.sleep(0)

            await scheduler.stop()
            release.set()

            assert await sweep == 1

        assert not scheduler.is_running
        assert len(await _checks(db_session, sample_monitor.id)) == 1

    async def test_stop_when_stopped_is_noop(self, scheduler):
        with patch.object(scheduler, "scheduler") as aps:
            await scheduler.stop()

        aps.remove_job.assert_not_called()
        assert scheduler.state == SchedulerState.STOPPED

    async def test_close_shuts_down_and_releases_prober(self, scheduler, prober):
        with patch.object(scheduler, "scheduler") as aps:
            aps.running = False
            await scheduler.start()
            aps.running = True
            await scheduler.close()

        aps.shutdown.assert_called_once_with(wait=False)
        assert prober.closed
        assert not scheduler.is_running

    async def test_real_start_and_stop(self, scheduler):
        await scheduler.start()
        try:
            status = scheduler.get_status()
            assert status["state"] == "running"
            assert status["interval_ms"] == 60000
            assert status["next_run_time"] is not None
        finally:
            await scheduler.close()

        assert scheduler.get_status()["next_run_time"] is None

    def test_from_config(self):
        config = Config()
        config.monitoring.interval_ms = 120000
        config.monitoring.check_delay = 0.5

        scheduler = MonitorScheduler.from_config(config, InMemoryNotifier())

        assert scheduler.interval_ms == 120000
        assert scheduler.check_delay == 0.5
        assert scheduler.prober.timeout == config.monitoring.probe_timeout
        assert scheduler.detector.enabled is True


@pytest.mark.functional
class TestSweep:

    async def test_each_sweep_records_one_check_per_monitor(self, scheduler, make_monitor, db_session):
        monitors = [await make_monitor(url=f"https://site{i}.example.com") for i in range(3)]

        for _ in range(2):
            assert await scheduler.sweep() == 3

        for monitor in monitors:
            assert len(await _checks(db_session, monitor.id)) == 2
        assert scheduler.last_sweep_at is not None

    async def test_sweep_updates_cached_status(self, scheduler, store, prober, sample_monitor):
        prober.script(sample_monitor.url, DOWN)

        await scheduler.sweep()

        record = await store.get_monitor(sample_monitor.id)
        assert record.status == DOWN
        assert record.response_time == 17
        assert record.last_checked is not None

    async def test_down_then_recovery_notifies_once_each(
        self, scheduler, prober, notifier, sample_monitor, db_session
    ):
        prober.script(sample_monitor.url, UP, DOWN, DOWN, UP, UP)

        for _ in range(5):
            await scheduler.sweep()

        assert len(notifier.by_kind("down")) == 1
        up_alerts = notifier.by_kind("up")
        assert len(up_alerts) == 1
        assert up_alerts[0]["duration_text"]

        logs = await _logs(db_session)
        assert [log.notification_type for log in logs] == ["down", "up"]
        assert all(log.success for log in logs)

    async def test_first_check_sets_baseline_silently(self, scheduler, prober, notifier, sample_monitor):
        prober.script(sample_monitor.url, DOWN)

        await scheduler.sweep()

        assert notifier.sent == []

    async def test_disabled_notifications_never_log(
        self, scheduler, prober, notifier, make_monitor, db_session
    ):
        monitor = await make_monitor(notifications_enabled=False)
        prober.script(monitor.url, UP, DOWN, UP)

        for _ in range(3):
            await scheduler.sweep()

        assert notifier.sent == []
        assert await _logs(db_session) == []
        assert len(await _checks(db_session)) == 3

    async def test_failing_monitor_does_not_abort_sweep(
        self, scheduler, make_monitor, history, db_session
    ):
        broken = await make_monitor(url="https://broken.example.com")
        healthy = await make_monitor(url="https://healthy.example.com")
        original_record = history.record

        async def record(monitor_id, *args, **kwargs):
            if monitor_id == broken.id:
                raise StoreUnavailable("disk full")
            return await original_record(monitor_id, *args, **kwargs)

        with patch.object(history, "record", side_effect=record):
            assert await scheduler.sweep() == 2

        assert len(await _checks(db_session, healthy.id)) == 1
        assert await _checks(db_session, broken.id) == []

    async def test_store_failure_skips_sweep(self, scheduler, store, prober):
        with patch.object(store, "list_monitors", AsyncMock(side_effect=StoreUnavailable("gone"))):
            assert await scheduler.sweep() == 0

        assert prober.calls == []

    async def test_sweeps_do_not_overlap(self, scheduler, sample_monitor, prober):
        active = 0
        peak = 0
        original_probe = prober.probe

        async def slow_probe(url):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1
            return await original_probe(url)

        with patch.object(prober, "probe", side_effect=slow_probe):
            await asyncio.gather(scheduler.sweep(), scheduler.sweep())

        assert peak == 1
        assert len(prober.calls) == 2

    async def test_delay_between_monitors(self, scheduler, make_monitor):
        await make_monitor(url="https://a.example.com")
        await make_monitor(url="https://b.example.com")
        await make_monitor(url="https://c.example.com")
        scheduler.check_delay = 0.01

        with patch("uptime_monitor.core.scheduler.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await scheduler.sweep()

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.01)

    async def test_raising_notifier_is_logged_as_failure(
        self, scheduler, prober, detector, sample_monitor, db_session
    ):
        failing = MagicMock()
        failing.send_down_notification = AsyncMock(side_effect=RuntimeError("boom"))
        detector.notifier = failing
        prober.script(sample_monitor.url, UP, DOWN)

        await scheduler.sweep()
        await scheduler.sweep()

        logs = await _logs(db_session)
        assert len(logs) == 1
        assert logs[0].success is False
        assert "boom" in logs[0].error_message


    async def test_sweep_acts_on_current_state_not_loaded_snapshot(
        self, scheduler, store, prober, notifier, make_monitor
    ):
        monitor = await make_monitor(status=UP)
        loaded_at_sweep_start = await store.list_monitors()
        prober.script(monitor.url, DOWN)

        # An on-demand check reports the outage before the sweep reaches the monitor
        await scheduler.refresh_and_check(monitor.id)
        with patch.object(store, "list_monitors", AsyncMock(return_value=loaded_at_sweep_start)):
            await scheduler.sweep()

        assert len(notifier.by_kind("down")) == 1

    async def test_concurrent_checks_of_one_monitor_alert_once(
        self, scheduler, prober, notifier, make_monitor, db_session
    ):
        monitor = await make_monitor(status=UP)
        prober.script(monitor.url, DOWN)
        original_probe = prober.probe

        async def slow_probe(url):
            await asyncio.sleep(0.05)
            return await original_probe(url)

        with patch.object(prober, "probe", side_effect=slow_probe):
            await asyncio.gather(scheduler.sweep(), scheduler.refresh_and_check(monitor.id))

        assert len(notifier.by_kind("down")) == 1
        assert len(await _checks(db_session, monitor.id)) == 2
        assert [log.notification_type for log in await _logs(db_session)] == ["down"]

    async def test_refresh_and_check_of_deleted_monitor(self, scheduler, prober):
        assert await scheduler.refresh_and_check(9999) is None
        assert prober.calls == []

@pytest.mark.functional
class TestCheckNewMonitor:

    async def test_treats_prior_state_as_pending(
        self, scheduler, prober, notifier, make_monitor, store
    ):
        # Even if the stored row claims "up", a fresh check only sets the baseline
        monitor = await make_monitor(status=UP)
        prober.script(monitor.url, DOWN)

        result = await scheduler.check_new_monitor(monitor.id)

        assert result.status == DOWN
        assert notifier.sent == []
        assert (await store.get_monitor(monitor.id)).status == DOWN

    async def test_unknown_monitor_returns_none(self, scheduler):
        assert await scheduler.check_new_monitor(9999) is None

    async def test_errors_are_swallowed(self, scheduler, store, sample_monitor):
        with patch.object(store, "get_monitor", AsyncMock(side_effect=StoreUnavailable("gone"))):
            assert await scheduler.check_new_monitor(sample_monitor.id) is None

    async def test_created_monitor_times_out_then_recovers(
        self, scheduler, prober, notifier, make_monitor, store, db_session
    ):
        monitor = await make_monitor(url="https://example.com", name="Example")
        prober.script(monitor.url, UP, ProbeResult(status=DOWN, error_detail="Timeout"), UP)

        initial = await scheduler.check_new_monitor(monitor.id)
        assert initial.status == UP
        assert notifier.sent == []

        await scheduler.sweep()

        assert (await store.get_monitor(monitor.id)).status == DOWN
        assert [log.notification_type for log in await _logs(db_session)] == ["down"]

        await scheduler.sweep()

        assert (await store.get_monitor(monitor.id)).status == UP
        checks = await _checks(db_session, monitor.id)
        assert [check.status for check in checks] == ["up", "down", "up"]
        assert checks[1].error_message == "Timeout"
        assert checks[1].response_time is None

        logs = await _logs(db_session)
        assert [log.notification_type for log in logs] == ["down", "up"]
        assert all(log.success for log in logs)
        assert notifier.by_kind("up")[0]["duration_text"]
