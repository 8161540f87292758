"""Fixed-period polling loop over all targets."""

import logging
import time
from typing import Callable, List, Optional, Tuple

from .collectors.base import BaseSampler
from .config.models import MonitoringSystemConfig, Target
from .services.rate_state import RateState
from .utils.metrics import PassReport, TargetFailure
from .writers.base import BaseWriter
from .writers.error_log import ErrorLogWriter


class PollScheduler:
    """
    Sample every target once per period and fan the results out.

    Targets are visited sequentially. Each target owns a RateState for the
    lifetime of the scheduler; the sampler clears it when a pass fails.
    Wake times are anchored (anchor += period) so processing time never
    accumulates into drift.
    """

    def __init__(
        self,
        config: MonitoringSystemConfig,
        sampler: BaseSampler,
        writers: List[BaseWriter],
        error_log: Optional[ErrorLogWriter],
        logger: logging.Logger,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize scheduler.

        Args:
            config: Monitoring configuration
            sampler: Per-target sampler
            writers: Output writers, invoked in list order after every pass
            error_log: Receives each target failure as it happens
            logger: Logger instance
            clock: Returns the current time in seconds
            sleep: Blocks for the given number of seconds
        """
        self.config = config
        self.sampler = sampler
        self.writers = writers
        self.error_log = error_log
        self.logger = logger.getChild(self.__class__.__name__)
        self.clock = clock
        self.sleep = sleep
        self.passes = 0
        self._slots: List[Tuple[Target, RateState]] = [
            (target, RateState()) for target in config.targets
        ]

    @property
    def period_seconds(self) -> int:
        return self.config.period_seconds

    def state_for(self, target: Target) -> RateState:
        for slot_target, state in self._slots:
            if slot_target is target:
                return state
        raise KeyError(target.display_name)

    def run_pass(self) -> PassReport:
        """
        Sample all targets once, then invoke every writer.

        Returns:
            PassReport: Outcomes of this pass in target order
        """
        start = self.clock()
        outcomes = []

        for target, state in self._slots:
            outcome = self.sampler.sample(
                target, state, self.config.attributes, self.period_seconds
            )
            outcomes.append(outcome)
            if self.error_log is not None and isinstance(outcome, TargetFailure):
                self.error_log.record(outcome)

        report = PassReport(outcomes=outcomes, attribute_specs=list(self.config.attributes))
        for writer in self.writers:
            writer.write(report)

        self.passes += 1
        failed = len(report.failures())
        self.logger.info(
            f"Pass {self.passes} finished: {len(outcomes) - failed} ok, "
            f"{failed} failed in {self.clock() - start:.2f}s"
        )
        return report

    def run(self, max_passes: Optional[int] = None) -> None:
        """
        Run passes on anchored period boundaries.

        Args:
            max_passes: Stop after this many passes; None runs forever
        """
        period = float(self.period_seconds)
        anchor = self.clock()
        done = 0

        while max_passes is None or done < max_passes:
            self.run_pass()
            done += 1
            if max_passes is not None and done >= max_passes:
                break

            anchor += period
            wait = anchor - self.clock()
            if wait > 0:
                self.sleep(wait)
            elif -wait >= period:
                self.logger.warning(
                    f"Pass overran the period of {self.period_seconds}s by "
                    f"{-wait:.2f}s; re-anchoring"
                )
                anchor = self.clock()
