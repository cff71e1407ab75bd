"""
Unit tests for the poll scheduler and its registry.

Loops run with one scheduler second shrunk to 10 ms unless a test needs
real seconds to prove that stop does not wait out a pending sleep.
"""
import asyncio
import threading

import pytest

from ptvo import (
    EVENT_DEVICE_ANNOUNCE,
    EVENT_START,
    EVENT_STOP,
    PollRegistry,
    PollScheduler,
    PollState,
    TransportError,
    ValidationError,
)

from conftest import DEVICE_IEEE, FAST_TIME_UNIT, RequestRecorder

OTHER_IEEE = "00:12:4b:00:99:88:77:66"


class TestPollRegistry:
    """Registry keeps at most one config per device."""

    def test_register_creates_default_config(self):
        registry = PollRegistry()
        config = registry.register(DEVICE_IEEE)
        assert config.interval_seconds == 15
        assert config.stop is False
        assert registry.get(DEVICE_IEEE) is config
        assert DEVICE_IEEE in registry

    def test_second_register_is_rejected(self):
        registry = PollRegistry()
        first = registry.register(DEVICE_IEEE)
        assert registry.register(DEVICE_IEEE) is None
        assert registry.get(DEVICE_IEEE) is first
        assert len(registry) == 1

    def test_pop_removes(self):
        registry = PollRegistry()
        registry.register(DEVICE_IEEE)
        assert registry.pop(DEVICE_IEEE) is not None
        assert registry.pop(DEVICE_IEEE) is None
        assert len(registry) == 0

    def test_concurrent_register_yields_single_winner(self):
        registry = PollRegistry()
        results = []
        barrier = threading.Barrier(8)

        def _register():
            barrier.wait()
            results.append(registry.register(DEVICE_IEEE))

        threads = [threading.Thread(target=_register) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len([config for config in results if config is not None]) == 1
        assert len(registry) == 1


class TestLifecycle:
    """Host events drive the per-device state machine."""

    @pytest.mark.asyncio
    async def test_initial_state_is_idle(self, scheduler):
        assert scheduler.state(DEVICE_IEEE) == PollState.IDLE

    @pytest.mark.asyncio
    async def test_start_runs_loop(self, scheduler, recorder):
        await scheduler.async_handle_event(EVENT_START, DEVICE_IEEE)
        assert scheduler.state(DEVICE_IEEE) == PollState.RUNNING
        await recorder.wait_for_calls(1)
        assert recorder.calls[0][:2] == (DEVICE_IEEE, "distance")

    @pytest.mark.asyncio
    async def test_device_announce_starts_loop(self, scheduler, recorder):
        await scheduler.async_handle_event(EVENT_DEVICE_ANNOUNCE, DEVICE_IEEE)
        assert scheduler.state(DEVICE_IEEE) == PollState.RUNNING
        await recorder.wait_for_calls(1)

    @pytest.mark.asyncio
    async def test_double_start_keeps_one_loop(self, scheduler, recorder):
        assert scheduler.start(DEVICE_IEEE) is True
        assert scheduler.start(DEVICE_IEEE) is False
        await scheduler.async_handle_event(EVENT_DEVICE_ANNOUNCE, DEVICE_IEEE)

        await recorder.wait_for_calls(2)
        await asyncio.sleep(5 * FAST_TIME_UNIT)

        # Default interval keeps the second cycle 140 ms away
        assert recorder.channels == ["distance", "temperature"]
        assert len(scheduler.registry) == 1

    @pytest.mark.asyncio
    async def test_stop_deregisters(self, scheduler, recorder):
        scheduler.start(DEVICE_IEEE)
        await recorder.wait_for_calls(1)

        await scheduler.async_handle_event(EVENT_STOP, DEVICE_IEEE)

        assert scheduler.state(DEVICE_IEEE) == PollState.STOPPED
        assert scheduler.registry.get(DEVICE_IEEE) is None

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self, scheduler):
        assert scheduler.stop(DEVICE_IEEE) is None
        await scheduler.async_stop(DEVICE_IEEE)
        assert scheduler.state(DEVICE_IEEE) == PollState.IDLE

    @pytest.mark.asyncio
    async def test_unknown_event_is_ignored(self, scheduler):
        await scheduler.async_handle_event("configure", DEVICE_IEEE)
        assert scheduler.state(DEVICE_IEEE) == PollState.IDLE

    @pytest.mark.asyncio
    async def test_restart_uses_fresh_default_interval(self, scheduler, recorder):
        scheduler.start(DEVICE_IEEE)
        scheduler.set_interval(DEVICE_IEEE, 5)
        first = scheduler.registry.get(DEVICE_IEEE)
        await scheduler.async_stop(DEVICE_IEEE)

        scheduler.start(DEVICE_IEEE)
        second = scheduler.registry.get(DEVICE_IEEE)

        assert second is not first
        assert second.interval_seconds == 15
        assert first.stop is True
        assert scheduler.state(DEVICE_IEEE) == PollState.RUNNING

    @pytest.mark.asyncio
    async def test_devices_are_independent(self, scheduler, recorder):
        scheduler.start(DEVICE_IEEE)
        scheduler.start(OTHER_IEEE)
        await recorder.wait_for_calls(2)

        await scheduler.async_stop(DEVICE_IEEE)

        assert scheduler.state(OTHER_IEEE) == PollState.RUNNING
        assert scheduler.registry.get(OTHER_IEEE) is not None


class TestPollCycle:
    """Request ordering and cadence inside one device loop."""

    @pytest.mark.asyncio
    async def test_cycle_order_and_spacing(self, scheduler, recorder):
        scheduler.start(DEVICE_IEEE)
        await recorder.wait_for_calls(4)

        assert recorder.channels[:4] == ["distance", "temperature", "distance", "temperature"]
        times = [at for _device, _channel, at in recorder.calls]
        # 1 s to the temperature request, then interval - 1 = 14 s
        assert times[1] - times[0] >= 0.8 * FAST_TIME_UNIT
        assert times[2] - times[1] >= 0.8 * 14 * FAST_TIME_UNIT
        assert times[2] - times[1] > times[1] - times[0]

    @pytest.mark.asyncio
    async def test_interval_change_applies_to_current_cycle_tail(self, scheduler, recorder):
        scheduler.start(DEVICE_IEEE)
        await recorder.wait_for_calls(1)

        # Set while the loop waits for the temperature request
        scheduler.set_interval(DEVICE_IEEE, 3)
        await recorder.wait_for_calls(3)

        times = [at for _device, _channel, at in recorder.calls]
        assert recorder.channels[:3] == ["distance", "temperature", "distance"]
        assert times[2] - times[1] < 10 * FAST_TIME_UNIT

    @pytest.mark.asyncio
    async def test_transport_failures_do_not_stop_loop(self, scheduler, recorder):
        recorder.error = TransportError("device unreachable")
        scheduler.start(DEVICE_IEEE)
        scheduler.set_interval(DEVICE_IEEE, 2)

        await recorder.wait_for_calls(4)

        assert scheduler.state(DEVICE_IEEE) == PollState.RUNNING
        assert recorder.channels[:4] == ["distance", "temperature", "distance", "temperature"]

    @pytest.mark.asyncio
    async def test_stop_during_request_prevents_further_requests(self, scheduler, recorder):
        recorder.on_call = lambda device_id, _channel: scheduler.stop(device_id)
        scheduler.start(DEVICE_IEEE)
        task = scheduler.registry.get(DEVICE_IEEE).task

        await asyncio.wait_for(task, 1.0)

        assert recorder.channels == ["distance"]

    @pytest.mark.asyncio
    async def test_stop_wakes_pending_sleep(self):
        recorder = RequestRecorder()
        poll_scheduler = PollScheduler(recorder)  # real seconds
        poll_scheduler.start(DEVICE_IEEE)
        await recorder.wait_for_calls(1)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await asyncio.wait_for(poll_scheduler.async_stop(DEVICE_IEEE), 0.5)

        assert loop.time() - started < 0.5
        assert recorder.channels == ["distance"]


class TestSetInterval:
    """Interval updates are validated before they touch the config."""

    @pytest.mark.asyncio
    async def test_below_minimum_rejected_without_mutation(self, scheduler):
        scheduler.start(DEVICE_IEEE)
        with pytest.raises(ValidationError):
            scheduler.set_interval(DEVICE_IEEE, 1)
        assert scheduler.registry.get(DEVICE_IEEE).interval_seconds == 15

    @pytest.mark.asyncio
    async def test_minimum_applied(self, scheduler):
        scheduler.start(DEVICE_IEEE)
        state = scheduler.set_interval(DEVICE_IEEE, 2)
        assert state == {"poll_interval": 2}
        assert scheduler.registry.get(DEVICE_IEEE).interval_seconds == 2

    @pytest.mark.asyncio
    async def test_non_numeric_rejected(self, scheduler):
        scheduler.start(DEVICE_IEEE)
        with pytest.raises(ValidationError):
            scheduler.set_interval(DEVICE_IEEE, "soon")

    def test_without_running_loop_returns_state_only(self):
        poll_scheduler = PollScheduler(RequestRecorder())
        assert poll_scheduler.set_interval(DEVICE_IEEE, "12") == {"poll_interval": 12}
        assert poll_scheduler.registry.get(DEVICE_IEEE) is None
