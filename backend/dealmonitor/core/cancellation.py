"""Cooperative cancellation token passed through the scrape pipeline."""


class CancellationToken:
    """A flag that long-running work polls at safe checkpoints.

    Cancelling never interrupts an in-flight request; callers check
    ``is_cancelled`` before starting the next website, page or batch.
    """

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def reset(self) -> None:
        self._cancelled = False
