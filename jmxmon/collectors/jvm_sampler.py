"""Garbage-collection, CPU and custom attribute sampling of one JVM."""

import logging
from typing import Callable, List, Optional

from ..config.models import AttributeSpec, Target, TransportConfig
from ..services.rate_calculator import RateCalculator
from ..services.rate_state import CounterPair, RateState, UptimeSample
from ..utils.errors import RemoteError, ValueParseFailure
from ..utils.metrics import (
    CPU_UNAVAILABLE,
    ERR_VALUE,
    GcGroup,
    GcMetric,
    Observation,
    SampleResult,
    format_one_decimal,
)
from ..utils.status import ObservationStatus
from .base import BaseSampler, safe_sample
from .jolokia_client import OPERATING_SYSTEM_MBEAN, JolokiaConnection
from .values import format_plain, parse_int


# State key of the CPU sample; contains "::" so it can't clash with a collector name
CPU_STATE_KEY = f"ProcessCpuTime::{OPERATING_SYSTEM_MBEAN}"

GC_NAME_MARKERS = ("Young", "Old")


def normalize_gc_name(name: str) -> str:
    """
    Strip a collector name to its generation marker.

    "ConcurrentMarkSweep Young Generation" becomes "Young Generation"; a
    name without a marker after its first character is left unchanged.
    """
    for marker in GC_NAME_MARKERS:
        index = name.find(marker)
        if index > 0:
            name = name[index:]
    return name


Connector = Callable[[Target, TransportConfig, logging.Logger], JolokiaConnection]


class TargetSampler(BaseSampler):
    """Sampler for GC load, CPU load and configured attributes of a JVM."""

    def __init__(
        self,
        config: TransportConfig,
        logger: logging.Logger,
        connector: Optional[Connector] = None
    ):
        """
        Initialize sampler.

        Args:
            config: Transport settings handed to the connector
            logger: Logger instance
            connector: Opens a connection to a target (defaults to Jolokia)
        """
        super().__init__(config, logger)
        self.connector = connector or JolokiaConnection.connect

    @safe_sample
    def sample(
        self,
        target: Target,
        state: RateState,
        attributes: List[AttributeSpec],
        period_seconds: int
    ) -> SampleResult:
        """
        Sample one target.

        Returns:
            SampleResult: GC group with CPU percent and attribute observations
        """
        connection = self.connector(target, self.config, self.logger)
        try:
            uptime_ms = connection.uptime_ms()
            gc_group = self._sample_gc(connection, state, uptime_ms, period_seconds)
            gc_group.cpu_percent = self._sample_cpu(connection, state, uptime_ms)
            observations = self._sample_attributes(
                connection, target, state, attributes, uptime_ms, period_seconds
            )
        finally:
            connection.close()

        self.logger.debug(
            f"Sampled {target.display_name}: GC {gc_group.time_percent_sum:.1f}%, "
            f"CPU {gc_group.cpu_percent}%, {len(observations)} attribute value(s)"
        )
        return SampleResult(target=target, gc_group=gc_group, attributes=observations)

    def _sample_gc(
        self,
        connection: JolokiaConnection,
        state: RateState,
        uptime_ms: int,
        period_seconds: int
    ) -> GcGroup:
        """Count and time percentage per collector kind."""
        group = GcGroup()
        for reading in connection.garbage_collectors():
            name = normalize_gc_name(reading.name)
            current = CounterPair(reading.count, reading.time_ms)
            previous = state.swap(name, current)
            if not isinstance(previous, CounterPair):
                previous = None

            count, percent, mode = RateCalculator.gc_rates(
                name, current, previous, uptime_ms, period_seconds
            )
            self.logger.debug(f"{name}: {count} collections, {percent}% ({mode.value})")
            group.add(GcMetric(name=name, count_per_period=count, time_percent=percent))
        return group

    def _sample_cpu(
        self,
        connection: JolokiaConnection,
        state: RateState,
        uptime_ms: int
    ) -> int:
        """CPU percent, or CPU_UNAVAILABLE if the process doesn't expose it."""
        try:
            cpu_time = connection.process_cpu_time()
            if cpu_time is None:
                return CPU_UNAVAILABLE

            previous = state.swap(CPU_STATE_KEY, UptimeSample(uptime_ms, cpu_time))
            if not isinstance(previous, UptimeSample):
                previous = None
            cpu_count = connection.available_processors()
            return RateCalculator.cpu_percent(cpu_time, previous, uptime_ms, cpu_count)

        except (RemoteError, ValueParseFailure) as e:
            self.logger.warning(f"CPU time unavailable: {e}")
            return CPU_UNAVAILABLE

    def _sample_attributes(
        self,
        connection: JolokiaConnection,
        target: Target,
        state: RateState,
        attributes: List[AttributeSpec],
        uptime_ms: int,
        period_seconds: int
    ) -> List[Observation]:
        """Observations for every configured attribute, in configuration order."""
        observations = []
        for spec in attributes:
            instances = connection.list_matching(spec.object_pattern)
            if not instances:
                self.logger.debug(f"No MBean matches {spec.object_pattern}")
                observations.append(Observation(
                    target=target,
                    title=spec.title,
                    value=ERR_VALUE,
                    key=spec.key,
                    status=ObservationStatus.UNRESOLVED
                ))
                continue

            for instance in instances:
                observations.append(self._sample_instance(
                    connection, target, state, spec, instance, uptime_ms, period_seconds
                ))
        return observations

    def _sample_instance(
        self,
        connection: JolokiaConnection,
        target: Target,
        state: RateState,
        spec: AttributeSpec,
        instance: str,
        uptime_ms: int,
        period_seconds: int
    ) -> Observation:
        """Read or invoke one matched MBean and format the value."""
        key = spec.instance_key(instance)
        try:
            if spec.is_invocation:
                raw = connection.invoke(instance, spec.method_name, spec.method_params)
            else:
                raw = connection.read_composite(instance, spec.path_segments)
        except ValueParseFailure as e:
            self.logger.warning(f"Cannot resolve {key}: {e}")
            return Observation(
                target=target,
                title=spec.title,
                value=ERR_VALUE,
                key=key,
                status=ObservationStatus.ERROR
            )

        number = parse_int(raw)
        if spec.rate and number is not None and number >= 0:
            current = UptimeSample(uptime_ms, number)
            previous = state.swap(key, current)
            if not isinstance(previous, UptimeSample):
                previous = None
            rate = RateCalculator.attribute_rate(key, current, previous, period_seconds)
            value = format_one_decimal(rate.value)
        else:
            value = format_plain(raw)

        return Observation(target=target, title=spec.title, value=value, key=key)
