"""Summary file with the latest values, e.g. for Nagios checks."""

import logging
import re

from ..config.models import Target
from ..utils.metrics import CPU_PERCENT_TITLE, GC_PERCENT_TITLE, PassReport, format_one_decimal
from .base import BaseWriter, single_line


ALERT_TIME_FORMAT = "%Y-%m-%d_%H.%M.%S"


def key_prefix(target: Target) -> str:
    """Server name with ':' and '-' replaced by '.' plus a trailing dot."""
    return re.sub(r'[:-]', '.', target.server_name) + "."


class AlertFileWriter(BaseWriter):
    """Overwrite a key=value file with the results of the latest pass."""

    def __init__(self, logger: logging.Logger, path: str = None):
        super().__init__(logger)
        self.path = path

    @property
    def enabled(self) -> bool:
        return bool(self.path and self.path.strip())

    @property
    def destination(self) -> str:
        return f"alert file '{self.path}'"

    def _write(self, report: PassReport) -> None:
        results = report.successes()
        lines = [
            f"SecondsSince1970={int(report.timestamp.timestamp())}",
            f"DateTime={report.timestamp.strftime(ALERT_TIME_FORMAT)}",
        ]
        for result in results:
            lines.append(
                f"{key_prefix(result.target)}{GC_PERCENT_TITLE}="
                f"{format_one_decimal(result.gc_group.time_percent_sum)}"
            )
        for result in results:
            lines.append(
                f"{key_prefix(result.target)}{CPU_PERCENT_TITLE}={result.gc_group.cpu_percent}"
            )
        for result in results:
            for observation in result.attributes:
                if not observation.is_reportable:
                    continue
                value = single_line(observation.value.replace(",", "."))
                lines.append(f"{key_prefix(result.target)}{observation.title}={value}")

        with open(self.path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
