"""Base class for output writers."""

from abc import ABC, abstractmethod
from typing import Callable
import logging

from ..utils.metrics import PassReport


STD_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class BaseWriter(ABC):
    """
    Abstract base class for all pass writers.

    A writer receives the complete report of a pass. Output problems are
    logged and never propagate into the polling loop.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger.getChild(self.__class__.__name__)

    @property
    def enabled(self) -> bool:
        return True

    @property
    @abstractmethod
    def destination(self) -> str:
        """Human-readable name of where output goes."""

    def write(self, report: PassReport) -> bool:
        """
        Write one pass report.

        Returns:
            bool: True if written (or disabled), False if writing failed
        """
        if not self.enabled:
            return True
        return self._safely(self._write, report)

    @abstractmethod
    def _write(self, report: PassReport) -> None:
        pass

    def _safely(self, action: Callable[[PassReport], None], report: PassReport) -> bool:
        try:
            action(report)
            return True
        except OSError as e:
            self.logger.error(f"Error writing {self.destination}: {e}")
            return False


def single_line(value: str) -> str:
    """Collapse line breaks so a value fits one output line."""
    return value.replace("\r\n", ". ").replace("\r", ". ").replace("\n", ". ")
