"""
Prometheus Metrics — labeling engine observability.

Exposes counters and a histogram for:
- Label creation outcomes (confirmed / pending / failed)
- Batch save outcomes
- Label-type validation errors per field
- Stale responses discarded per operation
- Bridge call latency per operation

Usage
-----
    from annotator.labeling.metrics import record_label_created, timed_bridge_call

    with timed_bridge_call("save_labels"):
        await bridge.save_labels(file_id, labels)
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

LABELS_CREATED: Counter = Counter(
    "annotator_labels_created_total",
    "Label creation attempts by outcome (confirmed / pending / failed)",
    ["outcome"],
)

LABEL_SAVES: Counter = Counter(
    "annotator_label_saves_total",
    "Batch label saves by outcome (ok / failed)",
    ["outcome"],
)

TYPE_VALIDATION_ERRORS: Counter = Counter(
    "annotator_label_type_validation_errors_total",
    "Label type create/update rejections by field",
    ["field"],
)

STALE_RESPONSES: Counter = Counter(
    "annotator_stale_responses_total",
    "Backend responses discarded because their document was no longer active",
    ["operation"],
)

BRIDGE_LATENCY: Histogram = Histogram(
    "annotator_bridge_call_seconds",
    "Persistence bridge call latency in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------

def record_label_created(outcome: str) -> None:
    """Increment the label creation counter for *outcome*."""
    LABELS_CREATED.labels(outcome=outcome).inc()


def record_label_save(outcome: str) -> None:
    LABEL_SAVES.labels(outcome=outcome).inc()


def record_type_validation_error(field: str) -> None:
    TYPE_VALIDATION_ERRORS.labels(field=field).inc()


def record_stale_response(operation: str) -> None:
    STALE_RESPONSES.labels(operation=operation).inc()


@contextmanager
def timed_bridge_call(operation: str) -> Iterator[None]:
    """
    Context manager that records bridge call latency.

    Usage::

        with timed_bridge_call("create_label"):
            label = await bridge.create_label(...)
    """
    with BRIDGE_LATENCY.labels(operation=operation).time():
        yield
