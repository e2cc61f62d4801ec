"""Trillian action set: database, log server and log signer."""

from __future__ import annotations

from ...action.base import Action
from ...action.transitions import ToCreate, ToInitialize, ToPending, ToReady
from ...config import ComponentConfig
from ..common import InitializeAction
from .db import DbDeployment, DbInitialize, DbPvc, DbService, HandleDbSecret
from .server import LogServerDeployment, LogServerService, LogSignerDeployment


def build_actions(config: ComponentConfig) -> list[Action]:
    db_condition = config.name("db_condition")
    server_condition = config.name("server_condition")
    signer_condition = config.name("signer_condition")
    return [
        ToPending(config.conditions),
        ToCreate(),
        HandleDbSecret(config),
        DbPvc(config),
        DbDeployment(config, condition=db_condition),
        DbService(config, condition=db_condition),
        LogServerDeployment(config, condition=server_condition),
        LogServerService(config, condition=server_condition),
        LogSignerDeployment(config, condition=signer_condition),
        ToInitialize(),
        DbInitialize(config, db_condition, config.name("db_deployment")),
        InitializeAction(config, server_condition, config.name("logserver_deployment")),
        InitializeAction(config, signer_condition, config.name("logsigner_deployment")),
        ToReady(config.conditions),
    ]


__all__ = ["build_actions"]
