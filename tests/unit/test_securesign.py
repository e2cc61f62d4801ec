"""Tests for the Securesign composite."""

from __future__ import annotations

from fakes import resource, run_passes
from securesign_operator.action.result import Continue
from securesign_operator.components.securesign import build_actions
from securesign_operator.config import securesign_config
from securesign_operator.constants import API_GROUP_VERSION, LABEL_APP_INSTANCE
from securesign_operator.resolver import Availability, group_selector, lookup
from securesign_operator.utils.conditions import find_condition, get_reason, is_ready, is_true

ACTIONS = build_actions(securesign_config())

KINDS = ("Trillian", "Fulcio", "CTlog", "Tuf")

SPEC = {
    "trillian": {"database": {"create": True}},
    "fulcio": {"certificate": {"organizationName": "Red Hat"}},
    "ctlog": {},
    "tuf": {"port": 8081},
}


def _securesign(store):
    return store.get(API_GROUP_VERSION, "Securesign", "default", "test")


def _child(store, kind):
    return store.get(API_GROUP_VERSION, kind, "default", "test")


class TestChildren:
    """Test creation and update of the child resources."""

    def test_creates_one_child_per_kind(self, store, recorder):
        store.add(resource("Securesign", spec=SPEC))

        assert run_passes(store, recorder, ACTIONS, "Securesign") == Continue()

        for kind in KINDS:
            child = _child(store, kind)
            assert child["metadata"]["labels"][LABEL_APP_INSTANCE] == "test"
            owner = child["metadata"]["ownerReferences"][0]
            assert (owner["kind"], owner["name"]) == ("Securesign", "test")
        assert _child(store, "Fulcio")["spec"] == SPEC["fulcio"]
        assert _child(store, "Tuf")["spec"] == {"port": 8081}

    def test_conditions_while_children_start(self, store, recorder):
        store.add(resource("Securesign", spec=SPEC))

        run_passes(store, recorder, ACTIONS, "Securesign")

        status = _securesign(store)["status"]
        for name in ("TrillianAvailable", "FulcioAvailable", "CTlogAvailable", "TufAvailable"):
            cond = find_condition(status, name)
            assert cond["reason"] == "Creating"
            assert cond["message"].endswith("resource created test")
        assert get_reason(status, "Ready") == "Creating"

    def test_spec_change_reaches_child(self, store, recorder):
        store.add(resource("Securesign", spec=SPEC))
        run_passes(store, recorder, ACTIONS, "Securesign")

        instance = _securesign(store)
        instance["spec"]["fulcio"]["replicas"] = 3
        store.update(instance)
        run_passes(store, recorder, ACTIONS, "Securesign")

        assert _child(store, "Fulcio")["spec"]["replicas"] == 3
        assert _child(store, "Fulcio")["metadata"]["generation"] == 2

    def test_children_find_each_other(self, store, recorder, ctx):
        store.add(resource("Securesign", spec=SPEC))
        store.add(resource("Fulcio", name="unrelated"))
        run_passes(store, recorder, ACTIONS, "Securesign")

        tuf = _child(store, "Tuf")
        assert group_selector(tuf) == {LABEL_APP_INSTANCE: "test"}

        found = lookup(ctx, "default", group_selector(tuf), "Fulcio")
        assert found.availability is Availability.NOT_READY
        assert found.instance["metadata"]["name"] == "test"


class TestAggregation:
    """Test mirroring of child readiness."""

    def test_mirrors_child_conditions(self, store, recorder):
        store.add(resource("Securesign", spec=SPEC))
        run_passes(store, recorder, ACTIONS, "Securesign")

        store.set_ready("Trillian", "test")
        store.set_ready("Fulcio", "test", ready=False)
        run_passes(store, recorder, ACTIONS, "Securesign")

        status = _securesign(store)["status"]
        assert is_true(status, "TrillianAvailable")
        assert get_reason(status, "FulcioAvailable") == "Pending"
        assert get_reason(status, "Ready") == "Pending"
        assert not is_ready(_securesign(store))

    def test_ready_when_every_child_is_ready(self, store, recorder):
        store.add(resource("Securesign", spec=SPEC))
        run_passes(store, recorder, ACTIONS, "Securesign")
        for kind in KINDS:
            store.set_ready(kind, "test")
        store.objects[(API_GROUP_VERSION, "Fulcio", "default", "test")]["status"]["url"] = "http://fulcio-server.default.svc"
        store.objects[(API_GROUP_VERSION, "Tuf", "default", "test")]["status"]["url"] = "http://tuf.default.svc:8081"

        assert run_passes(store, recorder, ACTIONS, "Securesign") == Continue()

        instance = _securesign(store)
        assert is_ready(instance)
        assert instance["status"]["fulcio"] == {"url": "http://fulcio-server.default.svc"}
        assert instance["status"]["tuf"] == {"url": "http://tuf.default.svc:8081"}
        assert "ctlog" not in instance["status"]

    def test_child_regression_drops_ready(self, store, recorder):
        store.add(resource("Securesign", spec=SPEC))
        run_passes(store, recorder, ACTIONS, "Securesign")
        for kind in KINDS:
            store.set_ready(kind, "test")
        run_passes(store, recorder, ACTIONS, "Securesign")

        store.set_ready("CTlog", "test", ready=False)
        run_passes(store, recorder, ACTIONS, "Securesign")

        status = _securesign(store)["status"]
        assert not is_ready(_securesign(store))
        assert get_reason(status, "CTlogAvailable") == "Pending"

    def test_converged_composite_causes_no_writes(self, store, recorder):
        store.add(resource("Securesign", spec=SPEC))
        run_passes(store, recorder, ACTIONS, "Securesign")
        for kind in KINDS:
            store.set_ready(kind, "test")
        run_passes(store, recorder, ACTIONS, "Securesign")
        store.writes.clear()

        assert run_passes(store, recorder, ACTIONS, "Securesign") == Continue()
        assert store.writes == []
