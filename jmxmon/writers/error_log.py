"""Append-only log of target failures."""

import logging

from ..utils.metrics import PassReport, TargetFailure
from .base import STD_TIME_FORMAT, BaseWriter


class ErrorLogWriter(BaseWriter):
    """Record when and why a target could not be sampled."""

    def __init__(self, logger: logging.Logger, path: str = None):
        super().__init__(logger)
        self.path = path

    @property
    def enabled(self) -> bool:
        return bool(self.path and self.path.strip())

    @property
    def destination(self) -> str:
        return f"error file '{self.path}'"

    def record(self, failure: TargetFailure) -> bool:
        """Append a single failure as soon as it happens."""
        return self.write(PassReport(outcomes=[failure], timestamp=failure.timestamp))

    def _write(self, report: PassReport) -> None:
        failures = report.failures()
        if not failures:
            return
        with open(self.path, "a", encoding="utf-8") as f:
            for failure in failures:
                f.write("\n")
                f.write(
                    f"{failure.timestamp.strftime(STD_TIME_FORMAT)}, "
                    f"Url={failure.target.address}: \n"
                )
                f.write(f"{failure.message}\n")
