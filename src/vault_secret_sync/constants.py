"""Constants for Vault Secret Sync."""

APP_NAME = "vault-secret-sync"

# Label / annotation domain
API_GROUP = "vault-secret-sync.dev"

# Labels
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"

# Annotations
ANNOTATION_SYNC_ID = f"{API_GROUP}/sync-id"
ANNOTATION_SOURCE_PATH = f"{API_GROUP}/source-path"

# Field Manager
FIELD_MANAGER = APP_NAME

# Secret types
SECRET_TYPE_OPAQUE = "Opaque"

# Task kinds
TASK_CREATE = "create"
TASK_UPDATE = "update"

# Task sources
SOURCE_RECONCILE = "reconcile"
SOURCE_EVENT = "event"

# Defaults
DEFAULT_CONFIG_PATH = "/etc/vault-secret-sync/config.yaml"
DEFAULT_REFRESH_INTERVAL_SECONDS = 30.0
DEFAULT_VAULT_ADDR = "http://vault-active.vault.svc.cluster.local:8200"
DEFAULT_VAULT_AUTH_METHOD = "kubernetes"
DEFAULT_VAULT_KV_MOUNT = "secret"
DEFAULT_VAULT_KV_VERSION = 2
DEFAULT_SERVICE_ACCOUNT_TOKEN_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/token"
DEFAULT_WORKER_COUNT = 4
DEFAULT_QUEUE_SIZE = 100
DEFAULT_WATCH_WINDOW_SECONDS = 60
DEFAULT_METRICS_PORT = 8080

VAULT_AUTH_METHODS = ("kubernetes", "token", "userpass")

# Event Reasons
EVENT_REASON_SECRET_CREATED = "SecretCreated"
EVENT_REASON_SECRET_UPDATED = "SecretUpdated"
EVENT_REASON_OWNERSHIP_CONFLICT = "OwnershipConflict"
EVENT_REASON_DUPLICATE_DELETED = "DuplicateDeleted"
EVENT_REASON_SYNC_FAILED = "SyncFailed"
