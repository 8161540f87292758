"""Tests for TargetSampler."""

import pytest
from unittest.mock import Mock

from jmxmon.collectors.jolokia_client import GcReading
from jmxmon.collectors.jvm_sampler import CPU_STATE_KEY, TargetSampler, normalize_gc_name
from jmxmon.config.loader import ConfigLoader
from jmxmon.config.models import TransportConfig
from jmxmon.services.rate_state import CounterPair, RateState
from jmxmon.utils.errors import ConnectionFailure, RemoteError
from jmxmon.utils.metrics import CPU_UNAVAILABLE, ERR_VALUE, SampleResult, TargetFailure
from jmxmon.utils.status import ObservationStatus


MEMORY = "java.lang:type=Memory"


def make_sampler(logger, connection):
    return TargetSampler(
        TransportConfig(),
        logger,
        connector=lambda target, config, log: connection
    )


class TestNormalizeGcName:
    def test_strips_to_young_marker(self):
        assert normalize_gc_name("ConcurrentMarkSweep Young Generation") == "Young Generation"

    def test_strips_to_old_marker(self):
        assert normalize_gc_name("G1 Old Generation") == "Old Generation"

    def test_name_without_marker_unchanged(self):
        assert normalize_gc_name("PS Scavenge") == "PS Scavenge"

    def test_marker_at_start_unchanged(self):
        assert normalize_gc_name("Young Collector") == "Young Collector"


class TestGcSampling:
    def test_first_pass_is_bootstrap(self, logger, target, fake_connection):
        connection = fake_connection(
            uptime_ms=100000,
            collectors=[GcReading("G1 Young Generation", 50, 2000)]
        )
        result = make_sampler(logger, connection).sample(target, RateState(), [], 10)

        assert isinstance(result, SampleResult)
        metric = result.gc_group.metrics[0]
        assert metric.name == "Young Generation"
        assert metric.count_per_period == 5
        assert metric.time_percent == 2.0
        assert connection.closed

    def test_second_pass_is_delta(self, logger, target, fake_connection):
        state = RateState()
        connection = fake_connection(
            uptime_ms=100000,
            collectors=[GcReading("G1 Young Generation", 50, 2000)]
        )
        sampler = make_sampler(logger, connection)
        sampler.sample(target, state, [], 10)

        connection.uptime = 110000
        connection.collectors = [GcReading("G1 Young Generation", 60, 2500)]
        result = sampler.sample(target, state, [], 10)

        metric = result.gc_group.metrics[0]
        assert metric.count_per_period == 10
        assert metric.time_percent == 5.0

    def test_sum_over_collectors(self, logger, target, fake_connection):
        connection = fake_connection(
            uptime_ms=100000,
            collectors=[
                GcReading("G1 Young Generation", 50, 2000),
                GcReading("G1 Old Generation", 1, 1000),
            ]
        )
        result = make_sampler(logger, connection).sample(target, RateState(), [], 10)
        assert result.gc_group.time_percent_sum == pytest.approx(3.0)

    def test_restart_falls_back_to_bootstrap(self, logger, target, fake_connection):
        state = RateState()
        state.put("Young Generation", CounterPair(500, 90000))
        connection = fake_connection(
            uptime_ms=5000,
            collectors=[GcReading("G1 Young Generation", 5, 100)]
        )
        result = make_sampler(logger, connection).sample(target, state, [], 10)

        metric = result.gc_group.metrics[0]
        assert metric.count_per_period == 10
        assert metric.time_percent == 2.0


class TestCpuSampling:
    def test_cpu_percent(self, logger, target, fake_connection):
        connection = fake_connection(uptime_ms=100000, cpu_time_ns=50 * 10 ** 9, processors=2)
        state = RateState()
        result = make_sampler(logger, connection).sample(target, state, [], 10)

        assert result.gc_group.cpu_percent == 25
        assert CPU_STATE_KEY in state

    def test_cpu_not_exposed(self, logger, target, fake_connection):
        connection = fake_connection(cpu_time_ns=None)
        result = make_sampler(logger, connection).sample(target, RateState(), [], 10)

        assert result.gc_group.cpu_percent == CPU_UNAVAILABLE
        cpu = result.observations[1]
        assert cpu.status == ObservationStatus.ERROR

    def test_remote_error_is_recovered(self, logger, target, fake_connection):
        connection = fake_connection()
        connection.process_cpu_time = Mock(side_effect=RemoteError("no such attribute", 404))
        result = make_sampler(logger, connection).sample(target, RateState(), [], 10)

        assert isinstance(result, SampleResult)
        assert result.gc_group.cpu_percent == CPU_UNAVAILABLE


class TestAttributeSampling:
    def test_hierarchical_path(self, logger, target, fake_connection):
        connection = fake_connection(mbeans={
            MEMORY: {"HeapMemoryUsage": {"used": 1024, "max": 4096}}
        })
        spec = ConfigLoader.parse_attribute_record(f"abs; HeapUsed; HeapMemoryUsage.used; {MEMORY}")
        result = make_sampler(logger, connection).sample(target, RateState(), [spec], 10)

        observation = result.attributes[0]
        assert observation.title == "HeapUsed"
        assert observation.value == "1024"
        assert observation.key == f"HeapMemoryUsage.used::{MEMORY}"

    def test_float_value_has_two_decimals(self, logger, target, fake_connection):
        os_bean = "java.lang:type=OperatingSystem"
        connection = fake_connection(mbeans={os_bean: {"SystemLoadAverage": 1.5}})
        spec = ConfigLoader.parse_attribute_record(f"abs; Load; SystemLoadAverage; {os_bean}")
        result = make_sampler(logger, connection).sample(target, RateState(), [spec], 10)

        assert result.attributes[0].value == "1.50"

    def test_pattern_matching_many_instances(self, logger, target, fake_connection):
        connection = fake_connection(mbeans={
            "java.lang:type=MemoryPool,name=Eden": {"Usage": {"used": 1}},
            "java.lang:type=MemoryPool,name=Survivor": {"Usage": {"used": 2}},
        })
        spec = ConfigLoader.parse_attribute_record(
            "abs; PoolUsed; Usage.used; java.lang:type=MemoryPool,*"
        )
        result = make_sampler(logger, connection).sample(target, RateState(), [spec], 10)

        assert [o.value for o in result.attributes] == ["1", "2"]

    def test_unmatched_pattern_yields_unresolved(self, logger, target, fake_connection):
        connection = fake_connection()
        spec = ConfigLoader.parse_attribute_record("abs; Missing; Count; my.app:type=Nothing")
        result = make_sampler(logger, connection).sample(target, RateState(), [spec], 10)

        assert len(result.attributes) == 1
        observation = result.attributes[0]
        assert observation.status == ObservationStatus.UNRESOLVED
        assert observation.value == ERR_VALUE
        assert not observation.is_reportable

    def test_unresolvable_path_yields_error_value(self, logger, target, fake_connection):
        connection = fake_connection(mbeans={MEMORY: {"HeapMemoryUsage": 5}})
        spec = ConfigLoader.parse_attribute_record(f"abs; Heap; HeapMemoryUsage.used; {MEMORY}")
        result = make_sampler(logger, connection).sample(target, RateState(), [spec], 10)

        assert isinstance(result, SampleResult)
        assert result.attributes[0].status == ObservationStatus.ERROR

    def test_rate_mode(self, logger, target, fake_connection):
        bean = "my.app:type=Requests"
        state = RateState()
        connection = fake_connection(uptime_ms=100000, mbeans={bean: {"Count": 5000}})
        spec = ConfigLoader.parse_attribute_record(f"diff; Requests; Count; {bean}")
        sampler = make_sampler(logger, connection)

        first = sampler.sample(target, state, [spec], 10)
        assert first.attributes[0].value == "50.0"

        connection.uptime = 110000
        connection.mbeans[bean]["Count"] = 5600
        second = sampler.sample(target, state, [spec], 10)
        assert second.attributes[0].value == "1.0"

    def test_rate_mode_with_text_value_formats_plainly(self, logger, target, fake_connection):
        bean = "my.app:type=Status"
        connection = fake_connection(mbeans={bean: {"State": "RUNNING"}})
        spec = ConfigLoader.parse_attribute_record(f"diff; State; State; {bean}")
        result = make_sampler(logger, connection).sample(target, RateState(), [spec], 10)

        assert result.attributes[0].value == "RUNNING"

    def test_invocation_passes_typed_params(self, logger, target, fake_connection):
        bean = "my.app:type=Cache"
        connection = fake_connection(mbeans={bean: {}}, operations={"size": 42})
        spec = ConfigLoader.parse_attribute_record(
            f"abs; CacheSize; invoke; {bean}; size; int, 3, java.lang.String, users"
        )
        result = make_sampler(logger, connection).sample(target, RateState(), [spec], 10)

        assert result.attributes[0].value == "42"
        _, operation, params = connection.invocations[0]
        assert operation == "size"
        assert [(p.type_name, p.value) for p in params] == [
            ("int", 3), ("java.lang.String", "users")
        ]

    def test_rate_invocations_of_different_methods_keep_separate_state(
        self, logger, target, fake_connection
    ):
        bean = "my.app:type=Cache"
        state = RateState()
        connection = fake_connection(
            uptime_ms=100000, mbeans={bean: {}}, operations={"hits": 1000, "misses": 5000}
        )
        specs = [
            ConfigLoader.parse_attribute_record(f"diff; Hits; invoke; {bean}; hits"),
            ConfigLoader.parse_attribute_record(f"diff; Misses; invoke; {bean}; misses"),
        ]
        sampler = make_sampler(logger, connection)
        first = sampler.sample(target, state, specs, 10)
        assert [o.value for o in first.attributes] == ["10.0", "50.0"]

        connection.uptime = 110000
        connection.operations = {"hits": 1600, "misses": 5000}
        second = sampler.sample(target, state, specs, 10)

        assert [o.value for o in second.attributes] == ["1.0", "0.0"]
        assert f"invoke:hits::{bean}" in state
        assert f"invoke:misses::{bean}" in state

    def test_observation_order(self, logger, target, fake_connection):
        connection = fake_connection(mbeans={MEMORY: {"A": 1, "B": 2}})
        specs = [
            ConfigLoader.parse_attribute_record(f"abs; B; B; {MEMORY}"),
            ConfigLoader.parse_attribute_record(f"abs; A; A; {MEMORY}"),
        ]
        result = make_sampler(logger, connection).sample(target, RateState(), specs, 10)

        titles = [o.title for o in result.observations]
        assert titles == ["GarbageCollectionPercent", "CpuTimePercent", "B", "A"]


class TestFailureIsolation:
    def test_connect_failure(self, logger, target):
        def refuse(target, config, log):
            raise ConnectionFailure("connection refused")

        state = RateState()
        state.put("Young Generation", CounterPair(1, 1))
        result = TargetSampler(TransportConfig(), logger, connector=refuse).sample(
            target, state, [], 10
        )

        assert isinstance(result, TargetFailure)
        assert result.target == target
        assert "connection refused" in result.message
        assert len(state) == 0

    def test_failure_mid_pass_closes_connection(self, logger, target, fake_connection):
        connection = fake_connection(collectors=[GcReading("G1 Young Generation", 1, 1)])
        connection.list_matching = Mock(side_effect=ConnectionFailure("read timed out"))
        spec = ConfigLoader.parse_attribute_record(f"abs; Heap; HeapMemoryUsage; {MEMORY}")
        state = RateState()
        result = make_sampler(logger, connection).sample(target, state, [spec], 10)

        assert isinstance(result, TargetFailure)
        assert connection.closed
        assert len(state) == 0

    def test_unexpected_error_is_contained(self, logger, target, fake_connection):
        connection = fake_connection()
        connection.uptime_ms = Mock(side_effect=KeyError("Uptime"))
        result = make_sampler(logger, connection).sample(target, RateState(), [], 10)

        assert isinstance(result, TargetFailure)
        assert isinstance(result.cause, KeyError)
