"""Tests for the Trillian action set."""

from __future__ import annotations

from fakes import resource, run_passes
from securesign_operator.action.result import Continue, Fail, Requeue
from securesign_operator.components.trillian import build_actions
from securesign_operator.components.trillian.db import DB_SECRET_RESOURCE
from securesign_operator.config import trillian_config
from securesign_operator.constants import API_GROUP_VERSION, LABEL_RESOURCE
from securesign_operator.utils.conditions import find_condition, get_reason, is_ready, is_true
from securesign_operator.utils.secrets import make_secret, secret_value

ACTIONS = build_actions(trillian_config())


def _trillian(store):
    return store.get(API_GROUP_VERSION, "Trillian", "default", "test")


def _db_secrets(store):
    return [
        s for s in store.of_kind("Secret")
        if (s["metadata"].get("labels") or {}).get(LABEL_RESOURCE) == DB_SECRET_RESOURCE
    ]


def _deployment(store, name):
    return store.get("apps/v1", "Deployment", "default", name)


def _env(deployment):
    env = deployment["spec"]["template"]["spec"]["containers"][0]["env"]
    return {e["name"]: e["valueFrom"]["secretKeyRef"]["name"] for e in env}


class TestDatabaseSecret:
    """Test resolution and generation of the database connection secret."""

    def test_generates_one_connection_secret(self, store, recorder):
        store.add(resource("Trillian"))

        run_passes(store, recorder, ACTIONS, "Trillian")

        secrets = _db_secrets(store)
        assert len(secrets) == 1
        secret = secrets[0]
        assert set(secret["data"]) == {"root-password", "password", "database", "user", "port", "host"}
        assert secret_value(secret, "database") == b"trillian"
        assert secret_value(secret, "user") == b"mysql"
        assert secret_value(secret, "port") == b"3306"
        assert secret_value(secret, "host") == b"trillian-mysql"
        assert len(secret_value(secret, "password")) == 12
        assert secret_value(secret, "password").isalnum()
        assert secret["metadata"]["ownerReferences"][0]["kind"] == "Trillian"

        ref = _trillian(store)["status"]["database"]["databaseSecretRef"]["name"]
        assert ref == secret["metadata"]["name"]
        assert "SecretCreated" in recorder.reasons()

    def test_deleted_secret_is_regenerated(self, store, recorder):
        store.add(resource("Trillian"))
        run_passes(store, recorder, ACTIONS, "Trillian")
        old = _trillian(store)["status"]["database"]["databaseSecretRef"]["name"]

        store.delete("v1", "Secret", "default", old)
        run_passes(store, recorder, ACTIONS, "Trillian")

        secrets = _db_secrets(store)
        assert len(secrets) == 1
        new = secrets[0]["metadata"]["name"]
        assert new != old
        assert _trillian(store)["status"]["database"]["databaseSecretRef"]["name"] == new
        assert set(_env(_deployment(store, "trillian-db")).values()) == {new}
        assert set(_env(_deployment(store, "trillian-logserver")).values()) == {new}

    def test_stale_generated_secrets_are_removed(self, store, recorder):
        store.add(resource("Trillian"))
        run_passes(store, recorder, ACTIONS, "Trillian")
        current = _db_secrets(store)[0]
        duplicate = make_secret(
            "default",
            {"password": "x"},
            generate_name="trillian-db-connection-",
            labels=current["metadata"]["labels"],
        )
        store.add(duplicate)
        store.delete("v1", "Secret", "default", current["metadata"]["name"])

        run_passes(store, recorder, ACTIONS, "Trillian")

        assert len(_db_secrets(store)) == 1

    def test_user_secret_replaces_generated_one(self, store, recorder):
        store.add(resource("Trillian"))
        run_passes(store, recorder, ACTIONS, "Trillian")
        store.add(make_secret("default", {"password": "mine"}, name="my-db"))
        instance = _trillian(store)
        instance["spec"] = {"database": {"databaseSecretRef": {"name": "my-db"}}}
        store.update(instance)

        run_passes(store, recorder, ACTIONS, "Trillian")

        assert _trillian(store)["status"]["database"]["databaseSecretRef"]["name"] == "my-db"
        assert _db_secrets(store) == []
        assert set(_env(_deployment(store, "trillian-logserver")).values()) == {"my-db"}

    def test_external_database_requires_secret_ref(self, store, recorder):
        store.add(resource("Trillian", spec={"database": {"create": False}}))

        result = run_passes(store, recorder, ACTIONS, "Trillian")

        assert isinstance(result, Fail)
        assert result.terminal
        status = _trillian(store)["status"]
        assert get_reason(status, "DbAvailable") == "Failure"
        assert "databaseSecretRef" in find_condition(status, "DbAvailable")["message"]
        assert "ConfigurationError" in recorder.reasons()

    def test_failure_survives_resync_without_writes(self, store, recorder):
        store.add(resource("Trillian", spec={"database": {"create": False}}))
        run_passes(store, recorder, ACTIONS, "Trillian")
        store.writes.clear()
        recorder.events.clear()

        result = run_passes(store, recorder, ACTIONS, "Trillian")

        assert isinstance(result, Fail)
        assert store.writes == []
        assert recorder.events == []
        assert get_reason(_trillian(store)["status"], "Ready") == "Failure"

    def test_spec_change_recovers_from_failure(self, store, recorder):
        store.add(resource("Trillian", spec={"database": {"create": False}}))
        run_passes(store, recorder, ACTIONS, "Trillian")
        store.add(make_secret("default", {"host": "db.example.com"}, name="external-db"))
        instance = _trillian(store)
        instance["spec"]["database"]["databaseSecretRef"] = {"name": "external-db"}
        store.update(instance)

        run_passes(store, recorder, ACTIONS, "Trillian")

        status = _trillian(store)["status"]
        assert get_reason(status, "Ready") != "Failure"
        assert is_true(status, "DbAvailable")

    def test_external_database_skips_managed_db(self, store, recorder):
        store.add(make_secret("default", {"host": "db.example.com"}, name="external-db"))
        store.add(
            resource("Trillian", spec={"database": {"create": False, "databaseSecretRef": {"name": "external-db"}}})
        )

        run_passes(store, recorder, ACTIONS, "Trillian")

        status = _trillian(store)["status"]
        assert is_true(status, "DbAvailable")
        assert store.find("apps/v1", "Deployment", "default", "trillian-db") is None
        assert store.of_kind("PersistentVolumeClaim") == []
        assert _db_secrets(store) == []


class TestLifecycle:
    """Test the full progression to Ready."""

    def test_waits_for_workloads(self, store, recorder):
        store.add(resource("Trillian"))

        result = run_passes(store, recorder, ACTIONS, "Trillian")

        assert isinstance(result, Requeue)
        status = _trillian(store)["status"]
        assert get_reason(status, "Ready") == "Initialize"
        assert get_reason(status, "DbAvailable") == "Initialize"
        for name in ("trillian-db", "trillian-logserver", "trillian-logsigner"):
            assert store.find("apps/v1", "Deployment", "default", name) is not None
        assert store.find("v1", "Service", "default", "trillian-mysql") is not None
        assert store.find("v1", "PersistentVolumeClaim", "default", "trillian-mysql") is not None

    def test_becomes_ready(self, store, recorder):
        store.add(resource("Trillian"))
        run_passes(store, recorder, ACTIONS, "Trillian")

        store.mark_deployments_available()
        result = run_passes(store, recorder, ACTIONS, "Trillian")

        assert result == Continue()
        instance = _trillian(store)
        assert is_ready(instance)
        for name in ("DbAvailable", "ServerAvailable", "SignerAvailable"):
            assert is_true(instance["status"], name)

    def test_converged_instance_causes_no_writes(self, store, recorder):
        store.add(resource("Trillian"))
        run_passes(store, recorder, ACTIONS, "Trillian")
        store.mark_deployments_available()
        run_passes(store, recorder, ACTIONS, "Trillian")
        store.writes.clear()

        assert run_passes(store, recorder, ACTIONS, "Trillian") == Continue()
        assert store.writes == []

    def test_replica_change_rolls_out_again(self, store, recorder):
        store.add(resource("Trillian"))
        run_passes(store, recorder, ACTIONS, "Trillian")
        store.mark_deployments_available()
        run_passes(store, recorder, ACTIONS, "Trillian")

        instance = _trillian(store)
        instance["spec"] = {"server": {"replicas": 2}}
        store.update(instance)
        result = run_passes(store, recorder, ACTIONS, "Trillian")

        assert isinstance(result, Requeue)
        assert _deployment(store, "trillian-logserver")["spec"]["replicas"] == 2
        assert not is_ready(_trillian(store))
