"""Unit tests for condition utilities and the derived lifecycle state."""

from __future__ import annotations

from securesign_operator.state import State, aggregate, current_state, derive_phase
from securesign_operator.utils.conditions import (
    find_condition,
    get_reason,
    is_false,
    is_ready,
    is_true,
    remove_condition,
    set_condition,
    update_condition,
)


class TestConditions:
    """Test condition utilities."""

    def test_update_condition_new(self) -> None:
        """Test adding a new condition."""
        conditions = []
        result = update_condition(
            conditions, "TestCondition", "True", "TestReason", "Test message", observed_generation=1
        )

        assert len(result) == 1
        assert result[0]["type"] == "TestCondition"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "TestReason"
        assert result[0]["message"] == "Test message"
        assert result[0]["observedGeneration"] == 1

    def test_update_condition_existing(self) -> None:
        """Test updating an existing condition."""
        conditions = [
            {
                "type": "TestCondition",
                "status": "False",
                "reason": "OldReason",
                "message": "Old message",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        result = update_condition(
            conditions, "TestCondition", "True", "NewReason", "New message", observed_generation=2
        )

        assert len(result) == 1
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "NewReason"
        assert result[0]["observedGeneration"] == 2
        assert result[0]["lastTransitionTime"] != "2023-01-01T00:00:00Z"

    def test_transition_time_kept_when_status_unchanged(self) -> None:
        """Only a status change moves lastTransitionTime."""
        conditions = [
            {
                "type": "DbAvailable",
                "status": "False",
                "reason": "Pending",
                "message": "",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        update_condition(conditions, "DbAvailable", "False", "Creating", "Creating database")

        assert conditions[0]["reason"] == "Creating"
        assert conditions[0]["lastTransitionTime"] == "2023-01-01T00:00:00Z"

    def test_set_condition_is_unique_per_type(self) -> None:
        """Repeated sets leave exactly one entry per condition type."""
        status: dict = {}
        for value, reason in [(False, "Pending"), (False, "Creating"), (True, "Ready"), (True, "Ready")]:
            set_condition(status, "ServerAvailable", value, reason)
        set_condition(status, "Ready", False, "Initialize")

        types = [c["type"] for c in status["conditions"]]
        assert types == ["ServerAvailable", "Ready"]
        assert is_true(status, "ServerAvailable")
        assert is_false(status, "Ready")

    def test_set_condition_accepts_bool(self) -> None:
        status: dict = {}
        stored = set_condition(status, "Ready", True, "Ready", "ok")
        assert stored["status"] == "True"

    def test_find_and_remove(self) -> None:
        status: dict = {}
        set_condition(status, "A", True, "Ready")
        set_condition(status, "B", False, "Pending")

        assert get_reason(status, "B") == "Pending"
        remove_condition(status, "A")
        assert find_condition(status, "A") is None
        assert get_reason(status, "A") is None
        assert find_condition(None, "B") is None

    def test_is_ready(self) -> None:
        instance = {"status": {}}
        assert not is_ready(instance)
        set_condition(instance["status"], "Ready", True, "Ready")
        assert is_ready(instance)


class TestState:
    """Test the lifecycle state derived from Ready."""

    def _status(self, reason: str, value: bool = False) -> dict:
        status: dict = {}
        set_condition(status, "Ready", value, reason)
        return status

    def test_no_ready_condition(self) -> None:
        assert current_state(None) == State.NONE
        assert current_state({"conditions": []}) == State.NONE

    def test_reason_to_state(self) -> None:
        assert current_state(self._status("Pending")) == State.PENDING
        assert current_state(self._status("Creating")) == State.CREATING
        assert current_state(self._status("Initialize")) == State.INITIALIZE
        assert current_state(self._status("Ready", True)) == State.READY

    def test_failure_orders_like_pending(self) -> None:
        assert current_state(self._status("Failure")) == State.PENDING
        assert State.PENDING < State.CREATING < State.INITIALIZE < State.READY

    def test_derive_phase(self) -> None:
        assert derive_phase(None) == "Pending"
        assert derive_phase(self._status("Creating")) == "Creating"
        assert derive_phase(self._status("Initialize")) == "Initializing"
        assert derive_phase(self._status("Failure")) == "Error"
        assert derive_phase(self._status("Ready", True)) == "Ready"

    def test_derive_phase_is_not_persisted(self) -> None:
        status = self._status("Creating")
        derive_phase(status)
        assert "phase" not in status


class TestAggregate:
    """Test folding component conditions into one."""

    def test_all_true(self) -> None:
        status: dict = {}
        set_condition(status, "A", True, "Ready")
        set_condition(status, "B", True, "Ready")
        assert aggregate(status, ["A", "B"]) == (True, "Ready", "")

    def test_worst_reason_wins(self) -> None:
        status: dict = {}
        set_condition(status, "A", False, "Initialize", "waiting for a")
        set_condition(status, "B", False, "Creating", "creating b")
        set_condition(status, "C", True, "Ready")

        all_true, reason, message = aggregate(status, ["A", "B", "C"])

        assert not all_true
        assert reason == "Creating"
        assert message == "creating b"

    def test_failure_is_worst(self) -> None:
        status: dict = {}
        set_condition(status, "A", False, "Pending")
        set_condition(status, "B", False, "Failure", "broken")
        assert aggregate(status, ["A", "B"])[1] == "Failure"

    def test_missing_counts_as_pending(self) -> None:
        status: dict = {}
        set_condition(status, "A", True, "Ready")
        all_true, reason, _ = aggregate(status, ["A", "B"])
        assert not all_true
        assert reason == "Pending"
