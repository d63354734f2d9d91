"""Requeue delay policies for failed reconciles."""

from .config import REQUEUE_AFTER_SECONDS


class RetryPolicy:
    """Decides how long to wait before the next reconcile attempt."""

    kind = ""

    def next_delay(self, attempt: int = 0) -> float:
        raise NotImplementedError


class FixedDelay(RetryPolicy):
    """Same delay for every attempt, with no retry limit."""

    kind = "fixed"

    def __init__(self, delay: float = REQUEUE_AFTER_SECONDS):
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self.delay = delay

    def next_delay(self, attempt: int = 0) -> float:
        return self.delay

    def __repr__(self) -> str:
        return f"FixedDelay(delay={self.delay})"
