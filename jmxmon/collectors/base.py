"""Base sampler abstract class and failure isolation."""

from abc import ABC, abstractmethod
from typing import List, Any
import logging
from functools import wraps

from ..config.models import AttributeSpec, Target
from ..services.rate_state import RateState
from ..utils.errors import TransportError
from ..utils.metrics import SampleOutcome, TargetFailure


class BaseSampler(ABC):
    """Abstract base class for per-target samplers."""

    def __init__(self, config: Any, logger: logging.Logger):
        """
        Initialize base sampler.

        Args:
            config: Sampler-specific configuration
            logger: Logger instance
        """
        self.config = config
        self.logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    def sample(
        self,
        target: Target,
        state: RateState,
        attributes: List[AttributeSpec],
        period_seconds: int
    ) -> SampleOutcome:
        """
        Run one sampling pass for a single target.

        Returns:
            SampleOutcome: SampleResult, or TargetFailure if anything went wrong

        Note:
            Implementations should use the @safe_sample decorator so that
            failures come back as values instead of exceptions.
        """
        pass


def safe_sample(func):
    """
    Decorator turning any sampling exception into a TargetFailure.

    The target's rate state is cleared so the next successful pass starts
    from bootstrap estimates; stale deltas across a gap are never used.

    Args:
        func: Sampler method to wrap

    Returns:
        Wrapped function that never raises
    """
    @wraps(func)
    def wrapper(self, target: Target, state: RateState, *args, **kwargs):
        try:
            return func(self, target, state, *args, **kwargs)
        except Exception as e:
            state.clear()
            self.logger.error(
                f"Sampling failed for {target.display_name}: {e}",
                exc_info=not isinstance(e, TransportError),
                extra={
                    "target": target.display_name,
                    "error_type": type(e).__name__
                }
            )
            return TargetFailure(target=target, cause=e)
    return wrapper
