"""Constants for the State Backend Operator."""

# API Group
API_GROUP = "backend.cloud37.dev"
API_GROUP_VERSION = f"{API_GROUP}/v1alpha1"

# Resource Kinds
KIND_STATE_BACKEND = "StateBackend"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "state-backend-operator"

# Cloud providers
PROVIDER_AWS = "aws"
PROVIDER_GCP = "gcp"
PROVIDER_AZURE = "azure"
KNOWN_PROVIDERS = frozenset({PROVIDER_AWS, PROVIDER_GCP, PROVIDER_AZURE})

# Configuration defaults
DEFAULT_CLOUD_PROVIDER = PROVIDER_AWS
DEFAULT_REGION = "us-west-2"
DEFAULT_DEFAULTS_PATH = "/etc/state-backend/defaults.yaml"

# Backend naming
BACKEND_ID_BYTES = 8
BUCKET_NAME_SUFFIX = "-terraform-backend"
LOCK_TABLE_NAME = "terraform-state-lock"
LOCK_TABLE_HASH_KEY = "LockID"
SERVICE_ACCOUNT_NAME = "terraform"
KMS_KEY_DESCRIPTION = "This key is used to encrypt bucket objects"
KMS_KEY_DELETION_WINDOW_DAYS = 10
KMS_ALIAS_NAME = "alias/terraform-bucket-key"
SERVICE_ACCOUNT_POLICY_ARNS = (
    "arn:aws:iam::aws:policy/AmazonS3FullAccess",
    "arn:aws:iam::aws:policy/AmazonDynamoDBFullAccess",
)

# Terraform resource types
TYPE_DYNAMODB_TABLE = "aws_dynamodb_table"
TYPE_IAM_USER = "aws_iam_user"
TYPE_IAM_USER_POLICY_ATTACHMENT = "aws_iam_user_policy_attachment"
TYPE_KMS_KEY = "aws_kms_key"
TYPE_KMS_ALIAS = "aws_kms_alias"
TYPE_S3_BUCKET = "aws_s3_bucket"
TYPE_S3_OWNERSHIP_CONTROLS = "aws_s3_bucket_ownership_controls"
TYPE_S3_PUBLIC_ACCESS_BLOCK = "aws_s3_bucket_public_access_block"
TYPE_S3_ACL = "aws_s3_bucket_acl"
TYPE_S3_ENCRYPTION = "aws_s3_bucket_server_side_encryption_configuration"
TYPE_S3_VERSIONING = "aws_s3_bucket_versioning"

# Condition Types
COND_READY = "Ready"
COND_PLAN_FAILED = "PlanFailed"
COND_APPLY_FAILED = "ApplyFailed"
COND_PROVIDER_UNSUPPORTED = "ProviderUnsupported"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_PLAN_COMPUTED = "PlanComputed"
EVENT_REASON_BACKEND_PROVISIONED = "BackendProvisioned"
EVENT_REASON_PROVIDER_UNSUPPORTED = "ProviderUnsupported"

# Reconcile modes
MODE_PLAN = "plan"
MODE_APPLY = "apply"
