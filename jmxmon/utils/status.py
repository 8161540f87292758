"""Status enumerations for rates and observations."""

from enum import Enum


class RateMode(Enum):
    """How a rate value was derived."""

    DELTA = "delta"
    BOOTSTRAP = "bootstrap"


class ObservationStatus(Enum):
    """Outcome of a single observation."""

    OK = "ok"
    UNRESOLVED = "unresolved"
    ERROR = "error"

    def is_reportable(self) -> bool:
        """
        Check whether writers that skip placeholders should show this value.

        Returns:
            bool: True only for measured values
        """
        return self is ObservationStatus.OK
