"""Tests for PollScheduler."""

import random
from unittest.mock import MagicMock, Mock

import pytest

from jmxmon.collectors.jolokia_client import GcReading
from jmxmon.collectors.jvm_sampler import TargetSampler
from jmxmon.config.loader import ConfigLoader
from jmxmon.config.models import MonitoringSystemConfig, Target, TransportConfig
from jmxmon.scheduler import PollScheduler
from jmxmon.utils.errors import ConnectionFailure
from jmxmon.utils.metrics import GcGroup, SampleResult, TargetFailure
from jmxmon.writers.error_log import ErrorLogWriter


class FakeClock:
    """Clock advanced only by sleeping or by simulated work."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_config(*addresses, period=10):
    return MonitoringSystemConfig(
        period_seconds=period,
        targets=[Target(address=address) for address in addresses]
    )


def ok_result(target):
    return SampleResult(target=target, gc_group=GcGroup())


class TestRunPass:
    def test_writers_called_in_order_with_full_report(self, logger):
        config = make_config("a:1", "b:2")
        sampler = Mock()
        sampler.sample.side_effect = lambda target, state, attrs, period: ok_result(target)
        calls = []
        writers = [MagicMock(), MagicMock()]
        writers[0].write.side_effect = lambda report: calls.append(("first", report))
        writers[1].write.side_effect = lambda report: calls.append(("second", report))

        report = PollScheduler(config, sampler, writers, None, logger).run_pass()

        assert [name for name, _ in calls] == ["first", "second"]
        assert calls[0][1] is report
        assert [o.target.address for o in report.outcomes] == ["a:1", "b:2"]

    def test_targets_sampled_sequentially_with_own_state(self, logger):
        config = make_config("a:1", "b:2")
        sampler = Mock()
        sampler.sample.side_effect = lambda target, state, attrs, period: ok_result(target)
        scheduler = PollScheduler(config, sampler, [], None, logger)
        scheduler.run_pass()

        (first, second) = sampler.sample.call_args_list
        assert first.args[0].address == "a:1"
        assert second.args[0].address == "b:2"
        assert first.args[1] is scheduler.state_for(config.targets[0])
        assert first.args[1] is not second.args[1]
        assert first.args[3] == 10

    def test_failures_go_to_error_log(self, logger):
        config = make_config("a:1", "b:2")
        failure = TargetFailure(target=config.targets[0], cause=ConnectionFailure("down"))
        sampler = Mock()
        sampler.sample.side_effect = [failure, ok_result(config.targets[1])]
        error_log = Mock(spec=ErrorLogWriter)

        report = PollScheduler(config, sampler, [], error_log, logger).run_pass()

        error_log.record.assert_called_once_with(failure)
        assert report.failures() == [failure]
        assert len(report.successes()) == 1


class TestRun:
    def test_no_drift_with_random_processing_time(self, logger):
        period = 10
        clock = FakeClock()
        start = clock.now
        rng = random.Random(7)
        pass_starts = []
        config = make_config("a:1", period=period)

        def sample(target, state, attrs, period_seconds):
            pass_starts.append(clock.now)
            clock.now += rng.uniform(0, period / 2)
            return ok_result(target)

        sampler = Mock()
        sampler.sample.side_effect = sample
        PollScheduler(config, sampler, [], None, logger, clock=clock, sleep=clock.sleep).run(
            max_passes=10
        )

        assert len(pass_starts) == 10
        for k, started in enumerate(pass_starts):
            assert started == pytest.approx(start + k * period, abs=1e-6)

    def test_overrun_proceeds_without_sleeping(self, logger):
        clock = FakeClock()
        durations = iter([12, 1, 1])
        config = make_config("a:1", period=10)

        def sample(target, state, attrs, period_seconds):
            clock.now += next(durations)
            return ok_result(target)

        sampler = Mock()
        sampler.sample.side_effect = sample
        PollScheduler(config, sampler, [], None, logger, clock=clock, sleep=clock.sleep).run(
            max_passes=3
        )

        # pass 2 starts late at 1012 and the anchor of pass 3 stays at 1020
        assert clock.sleeps == [pytest.approx(7)]

    def test_large_overrun_reanchors(self, logger):
        clock = FakeClock()
        durations = iter([35, 1, 1])
        starts = []
        config = make_config("a:1", period=10)

        def sample(target, state, attrs, period_seconds):
            starts.append(clock.now)
            clock.now += next(durations)
            return ok_result(target)

        sampler = Mock()
        sampler.sample.side_effect = sample
        PollScheduler(config, sampler, [], None, logger, clock=clock, sleep=clock.sleep).run(
            max_passes=3
        )

        assert starts == [1000, 1035, 1045]

    def test_no_sleep_after_last_pass(self, logger):
        clock = FakeClock()
        sampler = Mock()
        sampler.sample.side_effect = lambda target, state, attrs, period: ok_result(target)
        PollScheduler(make_config("a:1"), sampler, [], None, logger,
                      clock=clock, sleep=clock.sleep).run(max_passes=1)
        assert clock.sleeps == []


class TestFailureRecovery:
    def test_failure_isolated_and_followed_by_bootstrap(self, logger, fake_connection):
        bean = "my.app:type=Requests"
        config = MonitoringSystemConfig(
            period_seconds=10,
            targets=[Target(address="a:1"), Target(address="b:2")],
            attributes=[ConfigLoader.parse_attribute_record(f"diff; Requests; Count; {bean}")]
        )
        connections = {
            address: fake_connection(
                uptime_ms=100000,
                collectors=[GcReading("G1 Young Generation", 50, 2000)],
                cpu_time_ns=20 * 10 ** 9,
                mbeans={bean: {"Count": 5000}}
            )
            for address in ("a:1", "b:2")
        }
        down = set()

        def connector(target, transport, log):
            if target.address in down:
                raise ConnectionFailure("connection refused")
            return connections[target.address]

        sampler = TargetSampler(TransportConfig(), logger, connector=connector)
        scheduler = PollScheduler(config, sampler, [], None, logger)
        a, b = config.targets

        first = scheduler.run_pass()
        assert first.outcomes[0].gc_group.cpu_percent == 20
        assert first.outcomes[0].attributes[0].value == "50.0"

        for connection in connections.values():
            connection.uptime = 110000
            connection.collectors = [GcReading("G1 Young Generation", 60, 2500)]
            connection.cpu_time_ns = 29 * 10 ** 9
            connection.mbeans[bean]["Count"] = 5600

        down.add("a:1")
        second = scheduler.run_pass()
        assert isinstance(second.outcomes[0], TargetFailure)
        assert len(scheduler.state_for(a)) == 0

        # b is untouched and computes deltas
        b_result = second.outcomes[1]
        b_metric = b_result.gc_group.metrics[0]
        assert (b_metric.count_per_period, b_metric.time_percent) == (10, 5.0)
        assert b_result.gc_group.cpu_percent == 90
        assert b_result.attributes[0].value == "1.0"

        down.clear()
        third = scheduler.run_pass()
        a_result = third.outcomes[0]
        a_metric = a_result.gc_group.metrics[0]
        # bootstrap: 60 * 10 * 1000 // 110000 and 2500 * 1000 // 110000 / 10
        assert (a_metric.count_per_period, a_metric.time_percent) == (5, 2.2)
        # bootstrap: 29e9 // (110000 * 10000)
        assert a_result.gc_group.cpu_percent == 26
        # bootstrap: 5600 * 10000 // 110000 / 10
        assert a_result.attributes[0].value == "50.9"
        assert len(scheduler.state_for(b)) == 3
