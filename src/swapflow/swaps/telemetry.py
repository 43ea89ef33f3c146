"""Two-channel telemetry.

Every milestone is reported twice, in this order: an anonymized summary
carrying only the event name and category, then a detailed event carrying
the properties. Consumers of the summary stream rely on it being free of
high-cardinality fields.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from swapflow.swaps.constants import TELEMETRY_CATEGORY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryEvent:
    event: str
    category: str = TELEMETRY_CATEGORY
    properties: Optional[dict[str, Any]] = None
    anonymized: bool = True


TelemetrySink = Callable[[TelemetryEvent], None]


class LoggingTelemetrySink:
    """Default sink writing events to the log."""

    def __call__(self, event: TelemetryEvent) -> None:
        if event.properties is None:
            logger.info(f"[telemetry] {event.category}: {event.event}")
        else:
            logger.info(f"[telemetry] {event.category}: {event.event} {event.properties}")


class TelemetryEmitter:
    """Fire-and-forget emitter; sink failures never reach the swap flow."""

    def __init__(self, sink: Optional[TelemetrySink] = None, category: str = TELEMETRY_CATEGORY):
        self._sink = sink or LoggingTelemetrySink()
        self.category = category

    def emit(self, event: str, properties: dict[str, Any]) -> None:
        """Send the anonymized summary, then the detailed event."""
        self._send(TelemetryEvent(event=event, category=self.category))
        self._send(
            TelemetryEvent(
                event=event,
                category=self.category,
                properties=dict(properties),
                anonymized=False,
            )
        )

    def _send(self, event: TelemetryEvent) -> None:
        try:
            self._sink(event)
        except Exception as e:
            logger.warning(f"Telemetry sink failed for '{event.event}': {type(e).__name__}: {e}")
