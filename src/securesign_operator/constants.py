"""Constants for the Securesign Operator."""

# API Group
API_GROUP = "rhtas.redhat.com"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_TRILLIAN = "Trillian"
KIND_FULCIO = "Fulcio"
KIND_CTLOG = "CTlog"
KIND_TUF = "Tuf"
KIND_SECURESIGN = "Securesign"

# Core kinds used by the action sets
KIND_SECRET = "Secret"
KIND_CONFIG_MAP = "ConfigMap"
KIND_SERVICE = "Service"
KIND_PVC = "PersistentVolumeClaim"
KIND_DEPLOYMENT = "Deployment"
KIND_JOB = "Job"

CORE_V1 = "v1"
APPS_V1 = "apps/v1"
BATCH_V1 = "batch/v1"

# Well-known labels
LABEL_APP_NAME = "app.kubernetes.io/name"
LABEL_APP_INSTANCE = "app.kubernetes.io/instance"
LABEL_APP_COMPONENT = "app.kubernetes.io/component"
LABEL_APP_PART_OF = "app.kubernetes.io/part-of"
LABEL_APP_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_RESOURCE = f"{API_GROUP}/resource"

PART_OF = "trusted-artifact-signer"
MANAGED_BY = "securesign-operator"

# Discovery labels put on generated public material
LABEL_FULCIO_CA = f"{API_GROUP}/fulcio_v1.crt.pem"
LABEL_CTLOG_PUBLIC_KEY = f"{API_GROUP}/ctfe.pub"

# Annotations
ANNOTATION_PAUSE_RECONCILIATION = f"{API_GROUP}/pause-reconciliation"

# Condition Types
COND_READY = "Ready"

# Condition Reasons
REASON_PENDING = "Pending"
REASON_CREATING = "Creating"
REASON_INITIALIZE = "Initialize"
REASON_READY = "Ready"
REASON_FAILURE = "Failure"

# Condition statuses
STATUS_TRUE = "True"
STATUS_FALSE = "False"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_SECRET_CREATED = "SecretCreated"
EVENT_REASON_KEY_ROTATED = "KeyRotated"
EVENT_REASON_CONFIGURATION_ERROR = "ConfigurationError"
