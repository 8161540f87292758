"""Delta and bootstrap arithmetic for cumulative counters."""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..utils.metrics import CPU_UNAVAILABLE
from ..utils.status import RateMode
from .rate_state import CounterPair, UptimeSample


logger = logging.getLogger(__name__)

# Highest CPU percent ever reported; a pegged 100 is never shown
CPU_PERCENT_MAX = 99

# Divisor of the attribute rate in delta mode, kept for output compatibility
ATTRIBUTE_DELTA_DIVISOR = 6


@dataclass(frozen=True)
class RateResult:
    """A computed rate and how it was obtained."""

    value: float
    mode: RateMode


class RateCalculator:
    """
    Turn cumulative counters into per-period rates.

    Delta mode uses the difference to the previous reading. Bootstrap mode
    assumes the counter grew at a constant rate since process start and is
    used when there is no previous reading, or when a counter or the uptime
    went backwards (process restart or wraparound). Integer arithmetic is
    done in tenths and divided by 10.0 for one-decimal precision.
    """

    @staticmethod
    def delta(
        metric_key: str,
        current: int,
        previous: Optional[int],
        elapsed_ms: Optional[int] = None
    ) -> Optional[int]:
        """
        Difference to the previous reading, or None when it can't be trusted.

        Args:
            metric_key: Key of the metric, used for diagnostics
            current: Current cumulative value
            previous: Previous cumulative value, None on first appearance
            elapsed_ms: Uptime elapsed since the previous reading, if known

        Returns:
            Optional[int]: Non-negative delta, or None for bootstrap mode
        """
        if previous is None:
            return None
        if elapsed_ms is not None and elapsed_ms < 0:
            logger.debug(f"Uptime went backwards for {metric_key}, bootstrapping")
            return None
        diff = current - previous
        if diff < 0:
            logger.debug(f"Counter reset detected for {metric_key}, bootstrapping")
            return None
        return diff

    @staticmethod
    def compute_rate(
        metric_key: str,
        current: int,
        previous: Optional[int],
        uptime_ms: int,
        period_seconds: int,
        elapsed_ms: Optional[int] = None
    ) -> RateResult:
        """
        Percentage of the period a millisecond counter advanced.

        Delta: (current - previous) / period gives per-mille, /10 gives
        percent. Bootstrap: current * 1000 / uptime, same scaling.
        """
        diff = RateCalculator.delta(metric_key, current, previous, elapsed_ms)
        if diff is not None:
            return RateResult((diff // period_seconds) / 10.0, RateMode.DELTA)
        return RateResult(
            (current * 1000 // _uptime(uptime_ms)) / 10.0, RateMode.BOOTSTRAP
        )

    @staticmethod
    def gc_rates(
        gc_name: str,
        current: CounterPair,
        previous: Optional[CounterPair],
        uptime_ms: int,
        period_seconds: int
    ) -> Tuple[int, float, RateMode]:
        """
        Collection count per period and collection time percentage.

        A negative delta in either counter sends both to bootstrap mode.

        Returns:
            Tuple[int, float, RateMode]: count per period, time percent, mode
        """
        count_diff = None
        previous_time = None
        if previous is not None:
            count_diff = RateCalculator.delta(gc_name, current.count, previous.count)
            if count_diff is not None:
                previous_time = previous.time_ms

        percent = RateCalculator.compute_rate(
            gc_name, current.time_ms, previous_time, uptime_ms, period_seconds
        )
        if percent.mode == RateMode.DELTA:
            return count_diff, percent.value, RateMode.DELTA

        count = current.count * period_seconds * 1000 // _uptime(uptime_ms)
        return count, percent.value, RateMode.BOOTSTRAP

    @staticmethod
    def attribute_rate(
        metric_key: str,
        current: UptimeSample,
        previous: Optional[UptimeSample],
        period_seconds: int
    ) -> RateResult:
        """
        Per-period rate of a custom integer attribute.

        Delta mode divides by period * 6; bootstrap mode yields the average
        per-second increase since process start.
        """
        elapsed = None
        previous_value = None
        if previous is not None:
            elapsed = current.uptime_ms - previous.uptime_ms
            previous_value = previous.value

        diff = RateCalculator.delta(metric_key, current.value, previous_value, elapsed)
        if diff is not None:
            tenths = diff // period_seconds // ATTRIBUTE_DELTA_DIVISOR
            return RateResult(tenths / 10.0, RateMode.DELTA)
        tenths = current.value * 10000 // _uptime(current.uptime_ms)
        return RateResult(tenths / 10.0, RateMode.BOOTSTRAP)

    @staticmethod
    def cpu_percent(
        cpu_time_ns: Optional[int],
        previous: Optional[UptimeSample],
        uptime_ms: int,
        cpu_count: int
    ) -> int:
        """
        Process CPU load over the period across all cores.

        Args:
            cpu_time_ns: Cumulative process CPU time, None if not exposed
            previous: Previous (uptime, CPU time) sample
            uptime_ms: Current process uptime
            cpu_count: Available processors, floor 1

        Returns:
            int: Percent in [0, 99], or CPU_UNAVAILABLE
        """
        if cpu_time_ns is None:
            return CPU_UNAVAILABLE

        cores = max(1, cpu_count)
        last_uptime, last_cpu = 0, 0
        if previous is not None:
            elapsed = uptime_ms - previous.uptime_ms
            if elapsed > 0 and cpu_time_ns - previous.value >= 0:
                last_uptime, last_cpu = previous.uptime_ms, previous.value
            else:
                logger.debug("CPU counters went backwards, bootstrapping")

        elapsed = uptime_ms - last_uptime
        if elapsed <= 0:
            return CPU_UNAVAILABLE

        percent = (cpu_time_ns - last_cpu) // (elapsed * cores * 10000)
        return max(0, min(CPU_PERCENT_MAX, percent))


def _uptime(uptime_ms: int) -> int:
    """Uptime used as divisor; a fresh process reporting 0 counts as 1 ms."""
    return max(uptime_ms, 1)
