"""Metric definitions for the realtime chat layer."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of chat websocket connections attached to this process.",
)

realtime_identities = registry.gauge(
    "realtime_online_identities",
    "Number of user identities with at least one live connection.",
)

realtime_room_joins_total = registry.counter(
    "realtime_room_joins_total",
    "Count of room joins accepted by the multiplexer.",
    label_names=("kind",),
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of inbound client events dispatched by the lifecycle handler.",
    label_names=("event",),
)

realtime_deliveries_dropped_total = registry.counter(
    "realtime_deliveries_dropped_total",
    "Deliveries skipped because the target was offline or its socket was stale.",
    label_names=("reason",),
)

realtime_errors_total = registry.counter(
    "realtime_errors_total",
    "Errors reported back to originating connections.",
    label_names=("error",),
)
