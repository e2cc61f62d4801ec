"""CTlog action set: roots, signer keys, tree, config and server."""

from __future__ import annotations

from ...action.base import Action
from ...action.transitions import ToCreate, ToInitialize, ToPending, ToReady
from ...config import ComponentConfig
from ..common import InitializeAction
from .keys import GenerateSigner, ResolvePubKey
from .roots import HandleRootCerts
from .server import Deployment, Service
from .server_config import ServerConfig
from .tree import CreateTree, ResolveTree


def build_actions(config: ComponentConfig) -> list[Action]:
    server_condition = config.name("server_condition")
    return [
        ToPending(config.conditions),
        HandleRootCerts(config),
        GenerateSigner(config),
        ResolvePubKey(config),
        ToCreate(),
        CreateTree(config),
        ResolveTree(config),
        ServerConfig(config),
        Deployment(config, condition=server_condition),
        Service(config, condition=server_condition),
        ToInitialize(),
        InitializeAction(config, server_condition, config.deployment),
        ToReady(config.conditions),
    ]


__all__ = ["build_actions"]
