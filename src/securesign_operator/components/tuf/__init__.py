"""Tuf action set: trust root keys, key bundle and repository server."""

from __future__ import annotations

from typing import Any

from ...action.base import Action
from ...action.transitions import ToCreate, ToInitialize, ToPending, ToReady
from ...config import ComponentConfig
from ..common import InitializeAction
from .keys import KeyBundle, ResolveKeys, key_names
from .server import Deployment, Service


class _KeyConditions:
    """Adds one condition per trust root key to the static ones."""

    conditions: tuple[str, ...]

    def condition_names(self, instance: dict[str, Any]) -> tuple[str, ...]:
        return key_names(instance) + self.conditions


class TufToPending(_KeyConditions, ToPending):
    pass


class TufToReady(_KeyConditions, ToReady):
    pass


def build_actions(config: ComponentConfig) -> list[Action]:
    server_condition = config.name("server_condition")
    return [
        TufToPending(config.conditions),
        ResolveKeys(config),
        ToCreate(),
        KeyBundle(config),
        Deployment(config, condition=server_condition),
        Service(config, condition=server_condition),
        ToInitialize(),
        InitializeAction(config, server_condition, config.deployment),
        TufToReady(config.conditions),
    ]


__all__ = ["build_actions"]
