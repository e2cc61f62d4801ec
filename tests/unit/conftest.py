"""Shared fixtures for unit tests."""

from __future__ import annotations

import pytest

from fakes import FakeRecorder, FakeStore
from securesign_operator.action.context import ReconcileContext


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def recorder() -> FakeRecorder:
    return FakeRecorder()


@pytest.fixture
def ctx(store: FakeStore, recorder: FakeRecorder) -> ReconcileContext:
    return ReconcileContext(store=store, recorder=recorder)
