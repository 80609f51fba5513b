from __future__ import annotations

import pytest

from app.monitoring.registry import MetricsRegistry


def test_render_uses_prometheus_text_format():
    registry = MetricsRegistry()
    joins = registry.counter("joins_total", "Room joins.", label_names=("kind",))
    online = registry.gauge("online", "Online identities.")

    joins.labels("spot").inc()
    joins.labels("spot").inc()
    joins.labels("direct").inc(0.5)
    online.set(3)
    online.dec()

    assert registry.render().splitlines() == [
        "# HELP joins_total Room joins.",
        "# TYPE joins_total counter",
        'joins_total{kind="direct"} 0.5',
        'joins_total{kind="spot"} 2',
        "# HELP online Online identities.",
        "# TYPE online gauge",
        "online 2",
    ]


def test_unsampled_metric_renders_zero():
    registry = MetricsRegistry()
    registry.counter("errors_total", "Errors.", label_names=("error",))

    assert "errors_total 0" in registry.render()


def test_label_values_are_escaped():
    registry = MetricsRegistry()
    counter = registry.counter("events_total", "Events.", label_names=("event",))

    counter.labels('say "hi"\n').inc()

    assert 'events_total{event="say \\"hi\\"\\n"} 1' in registry.render()


def test_misuse_is_rejected():
    registry = MetricsRegistry()
    counter = registry.counter("c_total", "C.", label_names=("a",))

    with pytest.raises(ValueError):
        registry.counter("c_total", "Again.")
    with pytest.raises(ValueError):
        counter.labels()
    with pytest.raises(ValueError):
        counter.labels("x").inc(-1)
    with pytest.raises(AttributeError):
        counter.labels("x").dec()
