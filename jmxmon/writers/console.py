"""Console output of each pass."""

import logging
import sys
from typing import Optional, TextIO

from ..utils.metrics import CPU_PERCENT_TITLE, GC_PERCENT_TITLE, PassReport, format_one_decimal
from .base import STD_TIME_FORMAT, BaseWriter


class ConsoleWriter(BaseWriter):
    """Print GC load, CPU load and attribute values of successful targets."""

    def __init__(
        self,
        logger: logging.Logger,
        show: bool = True,
        stream: Optional[TextIO] = None
    ):
        super().__init__(logger)
        self.show = show
        self.stream = stream

    @property
    def enabled(self) -> bool:
        return self.show

    @property
    def destination(self) -> str:
        return "console"

    def _write(self, report: PassReport) -> None:
        out = self.stream or sys.stdout
        results = report.successes()

        for result in results:
            group = result.gc_group
            print(
                f"{group.timestamp.strftime(STD_TIME_FORMAT)}: {result.target.display_name}: "
                f"{GC_PERCENT_TITLE} = {format_one_decimal(group.time_percent_sum)} %",
                file=out
            )
        for result in results:
            group = result.gc_group
            print(
                f"{group.timestamp.strftime(STD_TIME_FORMAT)}: {result.target.display_name}: "
                f"{CPU_PERCENT_TITLE} = {group.cpu_percent} %",
                file=out
            )
        for result in results:
            for observation in result.attributes:
                if not observation.is_reportable:
                    continue
                print(
                    f"{observation.timestamp.strftime(STD_TIME_FORMAT)}: "
                    f"{result.target.display_name}: {observation.title} = {observation.value}",
                    file=out
                )
        print(file=out)
        out.flush()
