"""Tests for Prometheus metrics."""

from __future__ import annotations

from securesign_operator.metrics import (
    action_duration_seconds,
    action_total,
    api_call_duration_seconds,
    api_call_total,
    error_total,
    rate_limit_hits_total,
    reconcile_duration_seconds,
    reconcile_total,
    resource_status_total,
    secret_operations_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_reconcile_total_exists(self):
        """Test reconcile_total counter exists."""
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_total._name == "securesign_operator_reconcile"

    def test_reconcile_duration_exists(self):
        assert reconcile_duration_seconds._name == "securesign_operator_reconcile_duration_seconds"

    def test_action_metrics_exist(self):
        assert action_total._name == "securesign_operator_action"
        assert action_duration_seconds._name == "securesign_operator_action_duration_seconds"

    def test_secret_operations_exists(self):
        assert secret_operations_total._name == "securesign_operator_secret_operations"

    def test_api_and_error_metrics_exist(self):
        assert api_call_total._name == "securesign_operator_api_call"
        assert api_call_duration_seconds._name == "securesign_operator_api_call_duration_seconds"
        assert rate_limit_hits_total._name == "securesign_operator_rate_limit_hits"
        assert error_total._name == "securesign_operator_error"
        assert resource_status_total._name == "securesign_operator_resource_status"


class TestMetricLabels:
    """Test that metrics accept the labels the operator uses."""

    def test_reconcile_total_labels(self):
        reconcile_total.labels(kind="Fulcio", result="success").inc()

    def test_action_labels(self):
        action_total.labels(kind="CTlog", action="generate-signer", result="StatusUpdate").inc()
        action_duration_seconds.labels(kind="CTlog", action="generate-signer").observe(0.01)

    def test_secret_operations_labels(self):
        secret_operations_total.labels(component="trillian-db", operation="create").inc()

    def test_resource_status_labels(self):
        resource_status_total.labels(kind="Tuf", phase="Ready").inc()


class TestMetricOperations:
    """Test metric operations."""

    def test_counter_increment(self):
        """Test that counters can be incremented."""
        initial = reconcile_total.labels(kind="TestCounter", result="test")._value.get()

        reconcile_total.labels(kind="TestCounter", result="test").inc()

        new_value = reconcile_total.labels(kind="TestCounter", result="test")._value.get()
        assert new_value == initial + 1

    def test_counter_increment_by_value(self):
        initial = error_total.labels(kind="TestCounterValue", error_type="test")._value.get()

        error_total.labels(kind="TestCounterValue", error_type="test").inc(5)

        new_value = error_total.labels(kind="TestCounterValue", error_type="test")._value.get()
        assert new_value == initial + 5

    def test_different_label_values_independent(self):
        """Test that metrics with different labels are independent."""
        secret_operations_total.labels(component="test1", operation="delete").inc(3)
        secret_operations_total.labels(component="test2", operation="delete").inc(5)

        value1 = secret_operations_total.labels(component="test1", operation="delete")._value.get()
        value2 = secret_operations_total.labels(component="test2", operation="delete")._value.get()

        assert value1 == 3
        assert value2 == 5
