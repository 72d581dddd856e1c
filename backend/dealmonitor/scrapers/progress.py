"""Live scrape progress and cooperative cancellation."""

import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Set

import structlog

from dealmonitor.core.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

TERMINAL_STATUSES = frozenset({"done", "error", "cancelled"})


@dataclass
class ScrapeProgress:
    """Snapshot of the current (or last) job run."""

    status: str = "idle"  # 'idle', 'running', 'done', 'error', 'cancelled'
    current_page: int = 0
    total_pages: int = 0
    total_products: int = 0
    unique_products: int = 0
    new_deals: int = 0
    current_website: Optional[str] = None
    elapsed_ms: int = 0
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProgressTracker:
    """Single-writer progress state owned by one orchestrator.

    Readers (the status endpoint) call ``snapshot`` and may call ``cancel``;
    the running job polls ``is_cancelled`` through its token.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._progress = ScrapeProgress()
        self._started_at: Optional[float] = None
        self._unique_ids: Set[str] = set()
        self.token = CancellationToken()

    @property
    def status(self) -> str:
        return self._progress.status

    @property
    def is_running(self) -> bool:
        return self._progress.status == "running"

    @property
    def is_cancelled(self) -> bool:
        return self.token.is_cancelled

    def _elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        return int((self._clock() - self._started_at) * 1000)

    def reset(self) -> None:
        """Start a new run: zero the counters and clear cancellation."""
        self._progress = ScrapeProgress(status="running")
        self._started_at = self._clock()
        self._unique_ids = set()
        self.token.reset()

    def update(self, **fields: Any) -> None:
        """Update counters of a running job. Terminal states are frozen."""
        if self._progress.status in TERMINAL_STATUSES:
            return
        for name, value in fields.items():
            if not hasattr(self._progress, name) or name == "status":
                raise AttributeError(f"Unknown progress field: {name}")
            setattr(self._progress, name, value)
        self._progress.elapsed_ms = self._elapsed_ms()

    def track_unique_product(self, composite_id: str) -> None:
        self._unique_ids.add(composite_id)

    @property
    def unique_product_count(self) -> int:
        return len(self._unique_ids)

    def complete(self, total_products: int, new_deals: int) -> None:
        """Mark the run done unless it was already cancelled."""
        if self._progress.status != "running":
            return
        self._progress.status = "done"
        self._progress.total_products = total_products
        self._progress.new_deals = new_deals
        self._progress.unique_products = self.unique_product_count
        self._progress.current_website = None
        self._progress.elapsed_ms = self._elapsed_ms()

    def fail(self, message: str) -> None:
        if self._progress.status != "running":
            return
        self._progress.status = "error"
        self._progress.error_message = message
        self._progress.elapsed_ms = self._elapsed_ms()

    def cancel(self) -> bool:
        """Request cancellation of the running job.

        Returns:
            True if a running job was marked cancelled
        """
        if self._progress.status != "running":
            return False
        self.token.cancel()
        self._progress.status = "cancelled"
        self._progress.elapsed_ms = self._elapsed_ms()
        logger.info("scrape_cancel_requested")
        return True

    def snapshot(self) -> ScrapeProgress:
        if self._progress.status == "running":
            self._progress.elapsed_ms = self._elapsed_ms()
        return ScrapeProgress(**asdict(self._progress))
