"""Metric data structures produced by a sampling pass."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Union

from ..config.models import AttributeSpec, Target
from .status import ObservationStatus


# Placeholder written for values that could not be measured
ERR_VALUE = "-0.1"

# CPU percent when the remote process does not expose its CPU time
CPU_UNAVAILABLE = -1

GC_PERCENT_TITLE = "GarbageCollectionPercent"
CPU_PERCENT_TITLE = "CpuTimePercent"


def format_one_decimal(value: float) -> str:
    """Format a value with one fractional digit ("0.0")."""
    return f"{value:.1f}"


def format_two_decimals(value: float) -> str:
    """Format a value with two fractional digits ("0.00")."""
    return f"{value:.2f}"


@dataclass(frozen=True)
class Observation:
    """One formatted, timestamped metric value ready for output."""

    target: Target
    title: str
    value: str
    key: str
    status: ObservationStatus = ObservationStatus.OK
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_reportable(self) -> bool:
        """True when the value is a real measurement, not a placeholder."""
        return bool(self.value) and self.status.is_reportable() and self.value != ERR_VALUE


@dataclass
class GcMetric:
    """Measurement of one garbage-collector kind for one period."""

    name: str
    count_per_period: int
    time_percent: float


@dataclass
class GcGroup:
    """All garbage-collector kinds of a target plus its CPU load."""

    metrics: List[GcMetric] = field(default_factory=list)
    time_percent_sum: float = 0.0
    cpu_percent: int = CPU_UNAVAILABLE
    timestamp: datetime = field(default_factory=datetime.now)

    def add(self, metric: GcMetric) -> None:
        self.metrics.append(metric)
        self.time_percent_sum += metric.time_percent

    @property
    def cpu_available(self) -> bool:
        return self.cpu_percent != CPU_UNAVAILABLE


@dataclass
class SampleResult:
    """Successful sampling pass for one target."""

    target: Target
    gc_group: GcGroup
    attributes: List[Observation] = field(default_factory=list)

    @property
    def observations(self) -> List[Observation]:
        """
        All observations in output order.

        GC time sum first, then CPU percent, then custom attributes in
        configuration order.
        """
        gc = Observation(
            target=self.target,
            title=GC_PERCENT_TITLE,
            value=format_one_decimal(self.gc_group.time_percent_sum),
            key=GC_PERCENT_TITLE,
            timestamp=self.gc_group.timestamp,
        )
        cpu = Observation(
            target=self.target,
            title=CPU_PERCENT_TITLE,
            value=str(self.gc_group.cpu_percent),
            key=CPU_PERCENT_TITLE,
            status=(ObservationStatus.OK if self.gc_group.cpu_available
                    else ObservationStatus.ERROR),
            timestamp=self.gc_group.timestamp,
        )
        return [gc, cpu] + list(self.attributes)


@dataclass
class TargetFailure:
    """Failed sampling pass for one target; nothing from the pass is kept."""

    target: Target
    cause: Exception
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def message(self) -> str:
        return f"{type(self.cause).__name__}: {self.cause}"


SampleOutcome = Union[SampleResult, TargetFailure]


@dataclass
class PassReport:
    """Everything one pass produced, in target order."""

    outcomes: List[SampleOutcome]
    attribute_specs: List[AttributeSpec] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    def successes(self) -> List[SampleResult]:
        return [o for o in self.outcomes if isinstance(o, SampleResult)]

    def failures(self) -> List[TargetFailure]:
        return [o for o in self.outcomes if isinstance(o, TargetFailure)]
