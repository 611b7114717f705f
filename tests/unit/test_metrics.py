"""
Unit tests for metrics collection and contextual logging.
"""

import logging

import pytest

from mdb_connection.observability import (
    ContextualLoggerAdapter,
    MetricsCollector,
    OperationMetrics,
    clear_connection_context,
    connection_context,
    get_correlation_id,
    get_logger,
    get_logging_context,
    get_metrics_collector,
    log_operation,
    record_operation,
    set_connection_context,
    set_correlation_id,
)


@pytest.mark.unit
class TestOperationMetrics:
    def test_record(self):
        metrics = OperationMetrics(operation_name="maintenance.clear")
        metrics.record(10.0)
        metrics.record(30.0, success=False)

        data = metrics.to_dict()
        assert data["count"] == 2
        assert data["mean_ms"] == 20.0
        assert data["min_ms"] == 10.0
        assert data["max_ms"] == 30.0
        assert data["failures"] == 1
        assert data["failure_rate_percent"] == 50.0

    def test_empty(self):
        data = OperationMetrics(operation_name="x").to_dict()
        assert data["min_ms"] == 0.0
        assert data["last_seen"] is None

    def test_label(self):
        metrics = OperationMetrics("maintenance.clear", (("model_name", "User"),))
        assert metrics.label == "maintenance.clear[model_name=User]"
        assert OperationMetrics("connection.open").label == "connection.open"


@pytest.mark.unit
class TestMetricsCollector:
    def test_tags_make_separate_keys(self):
        collector = MetricsCollector()
        collector.record_operation("maintenance.clear", 1.0, model_name="User")
        collector.record_operation("maintenance.clear", 1.0, model_name="Post")
        collector.record_operation("connection.open", 1.0)

        metrics = collector.get_metrics("maintenance")["metrics"]
        assert set(metrics) == {
            "maintenance.clear[model_name=User]",
            "maintenance.clear[model_name=Post]",
        }
        assert collector.get_operation_count("maintenance.clear") == 2

    def test_summary_rolls_up_tags(self):
        collector = MetricsCollector()
        collector.record_operation("maintenance.clear", 10.0, model_name="User")
        collector.record_operation("maintenance.clear", 30.0, success=False, model_name="Post")

        summary = collector.summary()
        assert list(summary) == ["maintenance.clear"]
        assert summary["maintenance.clear"]["count"] == 2
        assert summary["maintenance.clear"]["min_ms"] == 10.0
        assert summary["maintenance.clear"]["max_ms"] == 30.0
        assert collector.get_failure_count("maintenance.clear") == 1

    def test_evicts_least_recently_used(self):
        collector = MetricsCollector(max_metrics=2)
        collector.record_operation("a", 1.0)
        collector.record_operation("b", 1.0)
        collector.record_operation("a", 1.0)
        collector.record_operation("c", 1.0)

        assert set(collector.get_metrics()["metrics"]) == {"a", "c"}

    def test_reset(self):
        collector = MetricsCollector()
        collector.record_operation("a", 1.0)
        collector.reset()
        assert collector.get_metrics()["total_operations"] == 0

    def test_global_collector(self):
        record_operation("connection.disconnect", 2.0)
        assert get_metrics_collector().get_operation_count("connection.disconnect") == 1


@pytest.mark.unit
class TestLoggingContext:
    def test_correlation_id(self):
        correlation_id = set_correlation_id()
        assert get_correlation_id() == correlation_id
        assert get_logging_context()["correlation_id"] == correlation_id

    def test_connection_context(self):
        set_connection_context(connection_id=3, db_name="app")
        context = get_logging_context()
        assert context["connection_id"] == 3
        assert context["db_name"] == "app"

        clear_connection_context()
        assert "connection_id" not in get_logging_context()

    def test_scoped_connection_context(self):
        set_connection_context(connection_id=1, db_name="app")
        with connection_context(model_name="User"):
            context = get_logging_context()
            assert context["connection_id"] == 1
            assert context["db_name"] == "app"
            assert context["model_name"] == "User"
        assert "model_name" not in get_logging_context()

    def test_contextual_logger_adds_context(self, caplog):
        caplog.set_level(logging.INFO)
        set_connection_context(connection_id=9)
        adapter = get_logger("mdb_connection.tests")
        assert isinstance(adapter, ContextualLoggerAdapter)

        adapter.info("opened", extra={"host": "db1"})

        record = caplog.records[-1]
        assert record.connection_id == 9
        assert record.host == "db1"

    def test_log_operation(self, caplog):
        caplog.set_level(logging.INFO)
        logger = logging.getLogger("mdb_connection.tests")

        log_operation(logger, "maintenance.drop", success=False, duration_ms=12.345)

        record = caplog.records[-1]
        assert record.getMessage() == "Operation failed: maintenance.drop in 12.35ms"
        assert record.operation == "maintenance.drop"
        assert record.duration_ms == 12.35
