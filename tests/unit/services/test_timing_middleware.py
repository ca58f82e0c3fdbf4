"""Unit tests for timing middleware and the metrics sinks."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from recommendation_engine.middleware.timing import TimingMiddleware
from shared.metrics import InMemoryMetricsSink, LatencyStats, NullMetricsSink


class TestLatencyStats:
    """Tests for latency statistics calculation."""

    def test_empty_stats(self) -> None:
        d = LatencyStats().to_dict()
        assert d["count"] == 0
        assert d["avg_ms"] == 0.0
        assert d["p50_ms"] == 0.0
        assert d["p95_ms"] == 0.0

    def test_multiple_samples(self) -> None:
        stats = LatencyStats(latencies=[0.1, 0.2, 0.3, 0.4, 0.5])
        d = stats.to_dict()
        assert d["count"] == 5
        assert d["avg_ms"] == pytest.approx(300.0)
        assert d["p50_ms"] == 300.0
        assert d["p95_ms"] == 500.0

    def test_p95_with_outlier(self) -> None:
        """P95 should capture the tail latency."""
        stats = LatencyStats(latencies=[0.01] * 95 + [1.0] * 5)
        assert stats.to_dict()["p95_ms"] == 1000.0

    def test_samples_are_bounded(self) -> None:
        stats = LatencyStats()
        for i in range(1500):
            stats.add(float(i))
        assert stats.count == 1000
        assert stats.latencies[0] == 500.0


class TestInMemoryMetricsSink:
    def test_counters_are_keyed_by_tags(self) -> None:
        sink = InMemoryMetricsSink()
        sink.increment("feed", kind="popular")
        sink.increment("feed", kind="popular")
        sink.increment("feed", kind="trending", value=3)

        assert sink.count("feed", kind="popular") == 2
        assert sink.count("feed", kind="trending") == 3
        assert sink.count("feed") == 0

    def test_snapshot_and_reset(self) -> None:
        sink = InMemoryMetricsSink()
        sink.increment("hits")
        sink.observe("latency", 0.25, path="/x")

        snapshot = sink.snapshot()
        assert snapshot["counters"] == {"hits": 1}
        assert snapshot["latencies"]["latency[path=/x]"]["p50_ms"] == 250.0

        sink.reset()
        assert sink.snapshot() == {"counters": {}, "latencies": {}}

    def test_sinks_are_independent(self) -> None:
        a, b = InMemoryMetricsSink(), InMemoryMetricsSink()
        a.increment("hits")
        assert b.count("hits") == 0

    def test_null_sink_accepts_everything(self) -> None:
        sink = NullMetricsSink()
        sink.increment("x", kind="y")
        sink.observe("x", 1.0)


class TestTimingMiddleware:
    @pytest.fixture
    def sink(self) -> InMemoryMetricsSink:
        return InMemoryMetricsSink()

    @pytest.fixture
    def client(self, sink: InMemoryMetricsSink) -> TestClient:
        app = FastAPI()
        app.add_middleware(TimingMiddleware, sink=sink)

        @app.get("/ping")
        async def ping() -> dict[str, str]:
            return {"status": "ok"}

        return TestClient(app)

    def test_sets_header_and_reports(self, client: TestClient, sink: InMemoryMetricsSink) -> None:
        response = client.get("/ping")

        assert response.status_code == 200
        assert float(response.headers["x-response-time-ms"]) >= 0.0
        assert sink.count("http.responses", status="200") == 1
        assert sink.latencies["http.request[path=/ping]"].count == 1

    def test_counts_error_statuses(self, client: TestClient, sink: InMemoryMetricsSink) -> None:
        client.get("/nope")
        assert sink.count("http.responses", status="404") == 1
