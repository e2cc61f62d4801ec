"""Tests for base handler functionality."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import kopf
import pytest

from fakes import FakeRecorder, FakeStore, resource
from securesign_operator.action.base import BaseAction
from securesign_operator.action.result import Requeue, Return
from securesign_operator.config import OperatorConfig
from securesign_operator.constants import API_GROUP_VERSION
from securesign_operator.handlers import fulcio as fulcio_handlers
from securesign_operator.handlers import shared
from securesign_operator.handlers import tuf as tuf_handlers
from securesign_operator.handlers.base import ReconcileHandler, _KeyedLocks
from securesign_operator.utils.conditions import is_true, set_condition
from securesign_operator.utils.errors import ConfigurationError


class Step(BaseAction):
    """Sets one condition per pass until every condition is present."""

    def __init__(self, condition_type: str):
        super().__init__()
        self.name = f"set-{condition_type.lower()}"
        self.condition_type = condition_type

    def can_handle(self, ctx, instance: dict[str, Any]) -> bool:
        return not is_true(instance.get("status"), self.condition_type)

    def handle(self, ctx, instance: dict[str, Any]):
        set_condition(instance.setdefault("status", {}), self.condition_type, True, "Ready")
        return self.status_update(ctx, instance)


class Waiting(BaseAction):
    name = "waiting"

    def can_handle(self, ctx, instance):
        return True

    def handle(self, ctx, instance):
        return self.requeue(7)


class Broken(BaseAction):
    name = "broken"

    def __init__(self, error: Exception):
        super().__init__()
        self.err = error

    def can_handle(self, ctx, instance):
        return True

    def handle(self, ctx, instance):
        return self.error(ctx, self.err, instance)


def _handler(store: FakeStore, actions, max_passes: int = 10) -> ReconcileHandler:
    config = OperatorConfig(max_passes=max_passes, reconcile_timeout=0)
    return ReconcileHandler("Fulcio", actions, store, FakeRecorder(), config)


@pytest.fixture(autouse=True)
def _no_kopf_events():
    with patch("securesign_operator.utils.events.kopf.event") as mock_event:
        yield mock_event


class TestReconcileHandler:
    """Test cases for ReconcileHandler."""

    def test_init(self):
        handler = _handler(FakeStore(), [])
        assert handler.kind == "Fulcio"
        assert handler.logger is not None

    def test_status_updates_loop_until_settled(self):
        store = FakeStore()
        body = store.add(resource("Fulcio"))
        handler = _handler(store, [Step("A"), Step("B")])

        handler.reconcile(body)

        status = store.get(API_GROUP_VERSION, "Fulcio", "default", "test")["status"]
        assert is_true(status, "A")
        assert is_true(status, "B")

    def test_pass_limit_requeues(self):
        store = FakeStore()
        body = store.add(resource("Fulcio"))
        handler = _handler(store, [Step("A"), Step("B"), Step("C"), Step("D")], max_passes=2)

        assert handler.run_passes("test", "default") == Requeue(after=0.5)
        with pytest.raises(kopf.TemporaryError):
            handler.reconcile(body)

    def test_requeue_raises_temporary_error(self):
        store = FakeStore()
        body = store.add(resource("Fulcio"))

        with pytest.raises(kopf.TemporaryError) as exc_info:
            _handler(store, [Waiting()]).reconcile(body)

        assert exc_info.value.delay == 7

    def test_terminal_failure_raises_permanent_error(self, _no_kopf_events):
        store = FakeStore()
        body = store.add(resource("Fulcio"))
        handler = _handler(store, [Broken(ConfigurationError("organizationName is required"))])

        with pytest.raises(kopf.PermanentError):
            handler.reconcile(body)

        reasons = [c[1]["reason"] for c in _no_kopf_events.call_args_list]
        assert "ReconcileFailed" in reasons

    def test_other_failure_raises_temporary_error(self):
        store = FakeStore()
        body = store.add(resource("Fulcio"))

        with pytest.raises(kopf.TemporaryError):
            _handler(store, [Broken(RuntimeError("flaky"))]).reconcile(body)

    def test_missing_object_returns(self):
        store = FakeStore()
        handler = _handler(store, [Waiting()])

        assert handler.run_passes("gone", "default") == Return()
        handler.reconcile(resource("Fulcio", name="gone"))

    def test_deleting_object_is_skipped(self):
        store = FakeStore()
        store.add(resource("Fulcio"))
        store.objects[(API_GROUP_VERSION, "Fulcio", "default", "test")]["metadata"][
            "deletionTimestamp"
        ] = "2024-01-01T00:00:00Z"
        action = Waiting()

        assert _handler(store, [action]).run_passes("test", "default") == Return()

    def test_unexpected_store_error_propagates(self):
        store = FakeStore()
        body = store.add(resource("Fulcio"))

        def broken_get(*args):
            raise RuntimeError("connection refused")

        store.get = broken_get
        with pytest.raises(RuntimeError):
            _handler(store, [Waiting()]).reconcile(body)

    def test_forget(self):
        store = FakeStore()
        body = store.add(resource("Fulcio"))
        handler = _handler(store, [])
        handler._locks.get(body["metadata"]["uid"])

        handler.forget(body)

        assert body["metadata"]["uid"] not in handler._locks._locks


class TestKeyedLocks:
    """Test the per-object lock table."""

    def test_same_key_same_lock(self):
        locks = _KeyedLocks()
        assert locks.get("a") is locks.get("a")
        assert locks.get("a") is not locks.get("b")

    def test_forget_unknown_key(self):
        _KeyedLocks().forget("missing")


class TestSharedConfig:
    """Test the settings every kind's handler is built with."""

    def test_handlers_use_operator_config(self):
        assert fulcio_handlers._handler.config is shared.operator_config
        assert tuf_handlers._handler.config is shared.operator_config

    def test_resync_interval_from_environment(self, monkeypatch):
        monkeypatch.setenv("RESYNC_INTERVAL_SECONDS", "42")
        assert OperatorConfig.from_env().resync_interval == 42.0
        monkeypatch.delenv("RESYNC_INTERVAL_SECONDS")
        assert OperatorConfig.from_env().resync_interval == 300.0
