"""Database tier of the Trillian stack."""

from __future__ import annotations

from typing import Any

from ...action.base import condition
from ...action.context import ReconcileContext
from ...action.ensure import ensure_labels
from ...action.result import Result
from ...constants import (
    API_GROUP,
    EVENT_REASON_SECRET_CREATED,
    LABEL_APP_INSTANCE,
    LABEL_RESOURCE,
    REASON_FAILURE,
    REASON_READY,
    STATUS_TRUE,
)
from ...state import State, current_state
from ...utils.conditions import set_condition
from ...utils.crypto import generate_password
from ...utils.errors import ConfigurationError, DependencyNotReadyError
from ...utils.secrets import (
    annotations_match,
    cleanup_orphans,
    create_secret,
    get_secret,
    make_secret,
)
from ..common import ComponentAction, EnsureWorkloadAction, InitializeAction
from ..templates import (
    container,
    deployment,
    owner_reference,
    persistent_volume_claim,
    resource_labels,
    secret_env,
    service,
)

DB_PORT = 3306
DB_USER = "mysql"
DB_NAME = "trillian"
DB_SECRET_RESOURCE = "trillian-db-connection"
DB_SECRET_PREFIX = "trillian-db-connection-"
DB_PASSWORD_LENGTH = 12
DEFAULT_PVC_NAME = "trillian-mysql"
DEFAULT_PVC_SIZE = "5Gi"

ANNOTATION_DATABASE = f"{API_GROUP}/database"
ANNOTATION_USER = f"{API_GROUP}/user"
ANNOTATION_PORT = f"{API_GROUP}/port"
ANNOTATION_HOST = f"{API_GROUP}/host"

# Keys of the connection secret
SECRET_ROOT_PASSWORD = "root-password"
SECRET_PASSWORD = "password"
SECRET_DATABASE = "database"
SECRET_USER = "user"
SECRET_PORT = "port"
SECRET_HOST = "host"


def database_spec(instance: dict[str, Any]) -> dict[str, Any]:
    return (instance.get("spec") or {}).get("database") or {}


def creates_database(instance: dict[str, Any]) -> bool:
    return database_spec(instance).get("create", True)


def status_secret_name(instance: dict[str, Any]) -> str | None:
    ref = ((instance.get("status") or {}).get("database") or {}).get("databaseSecretRef") or {}
    return ref.get("name")


def connection_env(secret_name: str) -> list[dict[str, Any]]:
    """Environment exposing the connection secret to Trillian containers."""
    return [
        secret_env("MYSQL_USER", secret_name, SECRET_USER),
        secret_env("MYSQL_PASSWORD", secret_name, SECRET_PASSWORD),
        secret_env("MYSQL_HOSTNAME", secret_name, SECRET_HOST),
        secret_env("MYSQL_PORT", secret_name, SECRET_PORT),
        secret_env("MYSQL_DATABASE", secret_name, SECRET_DATABASE),
    ]


class HandleDbSecret(ComponentAction):
    """Resolve, adopt or generate the database connection secret."""

    name = "handle-db-secret"

    def expected_annotations(self) -> dict[str, str]:
        return {
            ANNOTATION_DATABASE: DB_NAME,
            ANNOTATION_USER: DB_USER,
            ANNOTATION_PORT: str(DB_PORT),
            ANNOTATION_HOST: self.config.name("db_host"),
        }

    def ownership_labels(self, instance: dict[str, Any]) -> dict[str, str]:
        return resource_labels(
            self.config.component, self.config.name("db_deployment"), instance["metadata"]["name"], DB_SECRET_RESOURCE
        )

    def _owned(self, instance: dict[str, Any], secret: dict[str, Any]) -> bool:
        labels = secret["metadata"].get("labels") or {}
        return (
            labels.get(LABEL_RESOURCE) == DB_SECRET_RESOURCE
            and labels.get(LABEL_APP_INSTANCE) == instance["metadata"]["name"]
        )

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        current = status_secret_name(instance)
        if current is None:
            return True
        spec_ref = database_spec(instance).get("databaseSecretRef") or {}
        if spec_ref.get("name"):
            if spec_ref["name"] != current:
                return True
        secret = get_secret(ctx, instance["metadata"]["namespace"], current)
        if secret is None:
            return True
        # A user secret that is no longer referenced is replaced by a generated one
        return not spec_ref.get("name") and not self._owned(instance, secret)

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        db_condition = self.config.name("db_condition")
        namespace = instance["metadata"]["namespace"]
        spec_ref = database_spec(instance).get("databaseSecretRef") or {}
        status = instance.setdefault("status", {})
        status_db = status.setdefault("database", {})

        if not creates_database(instance):
            if not spec_ref.get("name"):
                err = ConfigurationError("databaseSecretRef is required when database.create is false")
                return self.error(ctx, err, instance, condition(db_condition, False, REASON_FAILURE, str(err)))
            status_db["databaseSecretRef"] = {"name": spec_ref["name"]}
            if get_secret(ctx, namespace, spec_ref["name"]) is None:
                return self.wait_for(ctx, instance, db_condition, f"Waiting for secret {spec_ref['name']}")
            set_condition(status, db_condition, STATUS_TRUE, REASON_READY, "Working with external DB")
            return self.status_update(ctx, instance)

        if spec_ref.get("name"):
            status_db["databaseSecretRef"] = {"name": spec_ref["name"]}
            if get_secret(ctx, namespace, spec_ref["name"]) is None:
                return self.wait_for(ctx, instance, db_condition, f"Waiting for secret {spec_ref['name']}")
            # Generated secrets are no longer used
            cleanup_orphans(ctx, namespace, self.ownership_labels(instance), component=self.config.component)
            self.log_info(instance, f"Using database secret {spec_ref['name']}")
            return self.status_update(ctx, instance)

        expected = self.expected_annotations()
        survivor, deleted = cleanup_orphans(
            ctx,
            namespace,
            self.ownership_labels(instance),
            keep=status_secret_name(instance),
            matcher=lambda s: annotations_match(s, expected),
            component=self.config.component,
        )
        if deleted:
            self.log_info(instance, "Removed stale database secrets", deleted=deleted)

        if survivor is not None:
            name = survivor["metadata"]["name"]
        else:
            name = self._create(ctx, instance, expected)
        status_db["databaseSecretRef"] = {"name": name}
        return self.status_update(ctx, instance)

    def _create(self, ctx: ReconcileContext, instance: dict[str, Any], annotations: dict[str, str]) -> str:
        secret = make_secret(
            instance["metadata"]["namespace"],
            {
                SECRET_ROOT_PASSWORD: generate_password(DB_PASSWORD_LENGTH),
                SECRET_PASSWORD: generate_password(DB_PASSWORD_LENGTH),
                SECRET_DATABASE: DB_NAME,
                SECRET_USER: DB_USER,
                SECRET_PORT: str(DB_PORT),
                SECRET_HOST: self.config.name("db_host"),
            },
            generate_name=DB_SECRET_PREFIX,
            labels=self.ownership_labels(instance),
            annotations=annotations,
            owner_references=[owner_reference(instance)],
        )
        created = create_secret(ctx, secret, component=self.config.component)
        name = created["metadata"]["name"]
        ctx.event(instance, EVENT_REASON_SECRET_CREATED, f"Database secret {name} created")
        self.log_info(instance, f"Database secret {name} created", reason="SecretCreated")
        return name


class DbPvc(ComponentAction):
    """Persistent volume for the managed database."""

    name = "db-pvc"

    def can_handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> bool:
        return current_state(instance.get("status")) >= State.CREATING and creates_database(instance)

    def handle(self, ctx: ReconcileContext, instance: dict[str, Any]) -> Result:
        pvc_spec = database_spec(instance).get("pvc") or {}
        name = pvc_spec.get("name") or DEFAULT_PVC_NAME
        # Retained volumes outlive the resource, so they get no owner
        owner = None if pvc_spec.get("retain", True) else instance
        desired = persistent_volume_claim(
            name,
            instance["metadata"]["namespace"],
            self.labels(instance, self.config.name("db_deployment")),
            pvc_spec.get("size") or DEFAULT_PVC_SIZE,
            storage_class=pvc_spec.get("storageClass"),
            owner=owner,
        )
        changed = self.ensure(ctx, desired, ensure_labels())

        status_db = instance.setdefault("status", {}).setdefault("database", {})
        if (status_db.get("pvc") or {}).get("name") != name:
            status_db["pvc"] = {"name": name}
            changed = True
        if changed:
            return self.status_update(ctx, instance)
        return self.continue_()


class DbDeployment(EnsureWorkloadAction):
    name = "db-deployment"

    def enabled(self, instance: dict[str, Any]) -> bool:
        return creates_database(instance)

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        secret_name = status_secret_name(instance)
        if secret_name is None:
            raise DependencyNotReadyError("Waiting for database secret")
        pvc_name = ((instance.get("status") or {}).get("database") or {}).get("pvc", {}).get("name") or DEFAULT_PVC_NAME
        name = self.config.name("db_deployment")
        env = [
            secret_env("MYSQL_ROOT_PASSWORD", secret_name, SECRET_ROOT_PASSWORD),
            secret_env("MYSQL_USER", secret_name, SECRET_USER),
            secret_env("MYSQL_PASSWORD", secret_name, SECRET_PASSWORD),
            secret_env("MYSQL_DATABASE", secret_name, SECRET_DATABASE),
        ]
        return deployment(
            name,
            instance["metadata"]["namespace"],
            self.labels(instance, name),
            self.selector(instance, name),
            [
                container(
                    "mysql",
                    self.config.image("db"),
                    env=env,
                    ports=[DB_PORT],
                    volume_mounts=[{"name": "storage", "mountPath": "/var/lib/mysql"}],
                    readiness_port=DB_PORT,
                )
            ],
            owner=instance,
            volumes=[{"name": "storage", "persistentVolumeClaim": {"claimName": pvc_name}}],
            strategy="Recreate",
        )


class DbService(EnsureWorkloadAction):
    name = "db-service"

    def enabled(self, instance: dict[str, Any]) -> bool:
        return creates_database(instance)

    def desired(self, ctx: ReconcileContext, instance: dict[str, Any]) -> dict[str, Any]:
        deployment_name = self.config.name("db_deployment")
        return service(
            self.config.name("db_host"),
            instance["metadata"]["namespace"],
            self.labels(instance, deployment_name),
            self.selector(instance, deployment_name),
            {"mysql": (DB_PORT, DB_PORT)},
            owner=instance,
        )


class DbInitialize(InitializeAction):
    def enabled(self, instance: dict[str, Any]) -> bool:
        return creates_database(instance)
