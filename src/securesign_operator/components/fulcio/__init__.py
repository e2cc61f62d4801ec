"""Fulcio action set: signing CA, issuer config and server."""

from __future__ import annotations

from ...action.base import Action
from ...action.transitions import ToCreate, ToInitialize, ToPending, ToReady
from ...config import ComponentConfig
from ..common import InitializeAction
from .cert import HandleCert
from .server import Deployment, Service, ServerConfig


def build_actions(config: ComponentConfig) -> list[Action]:
    server_condition = config.name("server_condition")
    return [
        ToPending(config.conditions),
        HandleCert(config),
        ToCreate(),
        ServerConfig(config),
        Deployment(config, condition=server_condition),
        Service(config, condition=server_condition),
        ToInitialize(),
        InitializeAction(config, server_condition, config.deployment),
        ToReady(config.conditions),
    ]


__all__ = ["build_actions"]
