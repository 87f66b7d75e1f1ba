# services/trigger_observer.py
import logging
from typing import Dict, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST, generate_latest

from app.core.errors import ObservationFailure

logger = logging.getLogger(__name__)


class TriggerObserver:
    """
    Counts triggers per (experiment_id, treatment_id).

    Owns its CollectorRegistry rather than using the prometheus_client
    global one; build it once at startup and hand it to whoever needs it.
    Counter increments are atomic per label pair.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: Optional[str] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.triggers = Counter(
            "triggers",
            "Total number of triggers",
            labelnames=("experiment_id", "treatment_id"),
            namespace=namespace or "",
            registry=self.registry,
        )
        self._sample_name = f"{namespace}_triggers_total" if namespace else "triggers_total"

    def record(self, experiment_id: int, treatment_id: str) -> None:
        """
        Adds one trigger for the label pair, creating the counter at 1 if new.

        Best effort: a failure is logged and dropped so the caller's response
        is never affected by metrics.
        """
        try:
            self._increment(experiment_id, treatment_id)
        except ObservationFailure as failure:
            logger.warning("%s; continuing without it", failure, exc_info=failure.__cause__)

    def _increment(self, experiment_id: int, treatment_id: str) -> None:
        try:
            self.triggers.labels(
                experiment_id=str(experiment_id), treatment_id=treatment_id
            ).inc()
        except Exception as e:
            raise ObservationFailure(experiment_id, treatment_id) from e

    def snapshot(self) -> Dict[Tuple[int, str], int]:
        """Current value of every trigger counter created so far."""
        counts = {}
        for metric in self.registry.collect():
            for sample in metric.samples:
                if sample.name != self._sample_name:
                    continue
                key = (int(sample.labels["experiment_id"]), sample.labels["treatment_id"])
                counts[key] = int(sample.value)
        return counts

    def render(self) -> Tuple[bytes, str]:
        """OpenMetrics text of the registry and its content type, for /metrics."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
