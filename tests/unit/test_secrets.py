"""Tests for Kubernetes secrets utilities."""

from __future__ import annotations

import base64

import pytest

from securesign_operator.utils.errors import DependencyNotReadyError
from securesign_operator.utils.secrets import (
    annotations_match,
    cleanup_orphans,
    create_secret,
    delete_secret,
    find_secret_by_label,
    list_secrets,
    make_secret,
    read_selector,
    secret_value,
)

SLOT = {"app.kubernetes.io/instance": "test", "rhtas.redhat.com/slot": "signer"}


def _seed(store, count: int, labels=SLOT, annotations=None) -> list[str]:
    names = []
    for _ in range(count):
        secret = make_secret("default", {"private": "pem"}, generate_name="signer-", labels=labels,
                             annotations=annotations)
        names.append(store.add(secret)["metadata"]["name"])
    return names


class TestMakeSecret:
    """Test cases for make_secret function."""

    def test_encodes_data(self):
        secret = make_secret("default", {"password": "s3cret", "cert": b"\x00\x01"}, name="db")

        assert secret["kind"] == "Secret"
        assert secret["type"] == "Opaque"
        assert secret["metadata"]["name"] == "db"
        assert base64.b64decode(secret["data"]["password"]) == b"s3cret"
        assert base64.b64decode(secret["data"]["cert"]) == b"\x00\x01"

    def test_generate_name(self):
        secret = make_secret("default", {}, generate_name="fulcio-cert-", labels={"a": "b"})
        assert "name" not in secret["metadata"]
        assert secret["metadata"]["generateName"] == "fulcio-cert-"
        assert secret["metadata"]["labels"] == {"a": "b"}

    def test_owner_references_are_copied(self):
        owner = [{"kind": "Fulcio", "name": "test", "uid": "uid-test"}]
        secret = make_secret("default", {}, name="x", owner_references=owner)
        secret["metadata"]["ownerReferences"][0]["name"] = "changed"
        assert owner[0]["name"] == "test"


class TestSecretValue:
    """Test cases for secret_value function."""

    def test_data_value(self):
        assert secret_value(make_secret("default", {"k": "v"}, name="s"), "k") == b"v"

    def test_string_data_value(self):
        assert secret_value({"stringData": {"k": "v"}}, "k") == b"v"

    def test_missing_key(self):
        assert secret_value(make_secret("default", {"k": "v"}, name="s"), "other") is None
        assert secret_value({}, "k") is None


class TestReadSelector:
    """Test cases for read_selector function."""

    def test_reads_value(self, ctx, store):
        store.add(make_secret("default", {"private": "pem"}, name="keys"))
        assert read_selector(ctx, "default", {"name": "keys", "key": "private"}) == b"pem"

    def test_missing_secret(self, ctx):
        with pytest.raises(DependencyNotReadyError, match="Waiting for secret keys"):
            read_selector(ctx, "default", {"name": "keys", "key": "private"})

    def test_missing_key(self, ctx, store):
        store.add(make_secret("default", {"private": "pem"}, name="keys"))
        with pytest.raises(DependencyNotReadyError, match="Key 'public' not found"):
            read_selector(ctx, "default", {"name": "keys", "key": "public"})


class TestListing:
    """Test cases for listing and label lookup."""

    def test_list_secrets_oldest_first(self, ctx, store):
        names = _seed(store, 3)
        assert [s["metadata"]["name"] for s in list_secrets(ctx, "default", SLOT)] == names

    def test_list_secrets_filters_labels(self, ctx, store):
        _seed(store, 1)
        _seed(store, 1, labels={"other": "x"})
        assert len(list_secrets(ctx, "default", SLOT)) == 1

    def test_find_secret_by_label(self, ctx, store):
        first = _seed(store, 2, labels={"rhtas.redhat.com/ctfe.pub": "public"})[0]
        found = find_secret_by_label(ctx, "default", "rhtas.redhat.com/ctfe.pub")
        assert found["metadata"]["name"] == first

    def test_find_secret_by_label_missing(self, ctx):
        assert find_secret_by_label(ctx, "default", "rhtas.redhat.com/ctfe.pub") is None


class TestCreateDelete:
    """Test cases for create_secret and delete_secret."""

    def test_create_secret(self, ctx, store):
        created = create_secret(ctx, make_secret("default", {}, generate_name="db-"), component="trillian-db")
        assert created["metadata"]["name"].startswith("db-")
        assert store.writes == [("create", "Secret", created["metadata"]["name"])]

    def test_delete_secret(self, ctx, store):
        name = _seed(store, 1)[0]
        assert delete_secret(ctx, "default", name) is True
        assert store.of_kind("Secret") == []

    def test_delete_missing_secret(self, ctx):
        assert delete_secret(ctx, "default", "missing") is False


class TestAnnotationsMatch:
    def test_match(self):
        secret = make_secret("default", {}, name="s", annotations={"treeID": "1", "other": "x"})
        assert annotations_match(secret, {"treeID": "1"})

    def test_mismatch(self):
        secret = make_secret("default", {}, name="s", annotations={"treeID": "1"})
        assert not annotations_match(secret, {"treeID": "2"})
        assert not annotations_match(make_secret("default", {}, name="s"), {"treeID": "1"})


class TestCleanupOrphans:
    """Test cases for converging a slot to one generated secret."""

    def test_keeps_single_match(self, ctx, store):
        names = _seed(store, 2) + _seed(store, 1, annotations={"treeID": "42"}) + _seed(store, 2)

        survivor, deleted = cleanup_orphans(
            ctx, "default", SLOT, matcher=lambda s: annotations_match(s, {"treeID": "42"})
        )

        assert survivor["metadata"]["name"] == names[2]
        assert sorted(deleted) == sorted(n for n in names if n != names[2])
        assert [s["metadata"]["name"] for s in store.of_kind("Secret")] == [names[2]]

    def test_second_run_is_a_noop(self, ctx, store):
        _seed(store, 3, annotations={"treeID": "42"})
        cleanup_orphans(ctx, "default", SLOT, matcher=lambda s: annotations_match(s, {"treeID": "42"}))
        store.writes.clear()

        survivor, deleted = cleanup_orphans(
            ctx, "default", SLOT, matcher=lambda s: annotations_match(s, {"treeID": "42"})
        )

        assert survivor is not None
        assert deleted == []
        assert store.writes == []

    def test_keep_wins_among_matches(self, ctx, store):
        names = _seed(store, 3)

        survivor, _ = cleanup_orphans(ctx, "default", SLOT, keep=names[1], matcher=lambda s: True)

        assert survivor["metadata"]["name"] == names[1]
        assert [s["metadata"]["name"] for s in store.of_kind("Secret")] == [names[1]]

    def test_stale_keep_loses_to_match(self, ctx, store):
        stale = _seed(store, 1, annotations={"treeID": "1"})
        fresh = _seed(store, 1, annotations={"treeID": "42"})

        survivor, deleted = cleanup_orphans(
            ctx, "default", SLOT, keep=stale[0], matcher=lambda s: annotations_match(s, {"treeID": "42"})
        )

        assert survivor["metadata"]["name"] == fresh[0]
        assert deleted == stale

    def test_keep_without_matcher(self, ctx, store):
        names = _seed(store, 2)

        survivor, deleted = cleanup_orphans(ctx, "default", SLOT, keep=names[0])

        assert survivor["metadata"]["name"] == names[0]
        assert deleted == [names[1]]

    def test_no_survivor_deletes_everything(self, ctx, store):
        _seed(store, 2)

        survivor, deleted = cleanup_orphans(ctx, "default", SLOT, matcher=lambda s: False)

        assert survivor is None
        assert len(deleted) == 2
        assert store.of_kind("Secret") == []
