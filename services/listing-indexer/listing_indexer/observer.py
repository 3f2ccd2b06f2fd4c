"""
Per-pass observability hook.

The indexing pass reports (thing id, outcome, duration) to an injected
observer instead of logging directly, so tests and alternative sinks can
replace the default Prometheus + log observer.
"""
import enum
import logging
from typing import Protocol

from listing_indexer.telemetry import INDEX_PASS_LATENCY, INDEX_PASSES_TOTAL

logger = logging.getLogger(__name__)


class PassOutcome(str, enum.Enum):
    INDEXED = "indexed"        # a combined write was performed
    UNCHANGED = "unchanged"    # listings found, nothing to write
    SKIPPED = "skipped"        # thing belongs to no listing
    FAILED = "failed"


class PassObserver(Protocol):
    def record(self, thing_id: str, outcome: PassOutcome, duration: float) -> None:
        ...


class MetricsObserver:
    def record(self, thing_id: str, outcome: PassOutcome, duration: float) -> None:
        INDEX_PASS_LATENCY.observe(duration)
        INDEX_PASSES_TOTAL.labels(outcome=outcome.value).inc()
        logger.info("indexed %s in %.3fs (%s)", thing_id, duration, outcome.value)
