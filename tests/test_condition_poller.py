import threading

import pytest

from securekey.condition_poller import ConditionPoller
from securekey.lock_state import BATTERY, NETWORK, TIME_OF_DAY


class FakeEnvironment:
    def __init__(self, battery=50.0, network=True, hour=12):
        self.battery = battery
        self.network = network
        self.hour = hour
        self.calls = 0
        # When set, battery queries block until the gate opens.
        self.gate = None
        self.entered = threading.Event()

    def battery_percentage(self):
        self.calls += 1
        if self.gate is not None:
            self.entered.set()
            self.gate.wait()
        if isinstance(self.battery, Exception):
            raise self.battery
        return self.battery

    def is_network_connected(self):
        if isinstance(self.network, Exception):
            raise self.network
        return self.network

    def current_hour_of_day(self):
        return self.hour


def make_poller(coordinator, env, interval=0.02):
    return ConditionPoller(coordinator.report_unlock, coordinator.all_open, env, interval_sec=interval)


def test_all_conditions_true(coordinator, recorder):
    make_poller(coordinator, FakeEnvironment()).check_now()

    assert sorted(recorder.changes) == [(BATTERY, True), (NETWORK, True), (TIME_OF_DAY, True)]


def test_evaluating_twice_is_idempotent(coordinator, recorder):
    poller = make_poller(coordinator, FakeEnvironment())
    poller.check_now()
    poller.check_now()

    assert len(recorder.changes) == 3


@pytest.mark.parametrize(
    "battery,expected",
    [(75.0, True), (74.9, True), (75.1, False), (100.0, False), (None, True)],
)
def test_battery_threshold(coordinator, battery, expected):
    make_poller(coordinator, FakeEnvironment(battery=battery, network=False, hour=3)).check_now()

    assert coordinator.is_open(BATTERY) is expected


@pytest.mark.parametrize("hour,expected", [(7, False), (8, True), (17, True), (18, False), (23, False)])
def test_hour_window(coordinator, hour, expected):
    make_poller(coordinator, FakeEnvironment(battery=90.0, network=False, hour=hour)).check_now()

    assert coordinator.is_open(TIME_OF_DAY) is expected


def test_no_network_keeps_lock_closed(coordinator):
    make_poller(coordinator, FakeEnvironment(network=False)).check_now()

    assert not coordinator.is_open(NETWORK)


def test_failing_query_is_not_satisfied(coordinator, recorder):
    env = FakeEnvironment(battery=RuntimeError("no sysfs"))
    make_poller(coordinator, env).check_now()

    assert not coordinator.is_open(BATTERY)
    assert coordinator.is_open(NETWORK)


def test_start_evaluates_immediately(coordinator):
    poller = make_poller(coordinator, FakeEnvironment(), interval=60.0)
    poller.start()
    try:
        assert coordinator.is_open(BATTERY)
        assert coordinator.is_open(NETWORK)
        assert coordinator.is_open(TIME_OF_DAY)
    finally:
        poller.stop()


def test_picks_up_later_changes(coordinator):
    env = FakeEnvironment(battery=90.0)
    opened = threading.Event()
    coordinator.add_lock_listener(lambda i, _open: opened.set() if i == BATTERY else None)

    poller = make_poller(coordinator, env)
    poller.start()
    try:
        assert not coordinator.is_open(BATTERY)
        env.battery = 40.0
        assert opened.wait(2.0)
    finally:
        poller.stop()


def test_stops_itself_when_all_open(coordinator):
    for i in (1, 2, 5):
        coordinator.report_unlock(i)

    poller = make_poller(coordinator, FakeEnvironment())
    poller.start()

    assert coordinator.all_open()
    assert not poller.is_running


def test_finishes_once_remaining_locks_open(coordinator):
    done = threading.Event()
    coordinator.add_completion_listener(done.set)

    poller = make_poller(coordinator, FakeEnvironment())
    poller.start()
    try:
        assert poller.is_running
        for i in (1, 2, 5):
            coordinator.report_unlock(i)
        assert done.wait(1.0)

        poller._thread.join(timeout=1.0)
        assert not poller.is_running
    finally:
        poller.stop()


def test_no_checks_after_stop(coordinator):
    env = FakeEnvironment(battery=90.0)
    poller = make_poller(coordinator, env)
    poller.start()
    poller.stop()

    calls = env.calls
    threading.Event().wait(0.1)
    assert env.calls == calls


def test_failing_network_check_counts_as_connected(coordinator):
    env = FakeEnvironment(battery=90.0, network=OSError("netlink unavailable"), hour=3)
    make_poller(coordinator, env).check_now()

    assert coordinator.is_open(NETWORK)
    assert not coordinator.is_open(BATTERY)


def test_restart_after_stop_during_slow_check(coordinator):
    env = FakeEnvironment(battery=90.0, network=False, hour=3)
    poller = make_poller(coordinator, env)
    poller.start()

    gate = threading.Event()
    env.gate = gate
    assert env.entered.wait(2.0)
    opener = threading.Timer(1.5, gate.set)
    opener.start()
    try:
        poller.stop()
        assert not poller.is_running

        env.gate = None
        env.battery = 40.0
        poller.start()
        assert coordinator.is_open(BATTERY)
        assert poller.is_running
    finally:
        gate.set()
        opener.cancel()
        poller.stop()
