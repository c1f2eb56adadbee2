"""Catalog of state backend resource templates."""

from __future__ import annotations

from typing import Any

from ..config import BackendConfiguration
from ..constants import (
    KMS_ALIAS_NAME,
    KMS_KEY_DELETION_WINDOW_DAYS,
    KMS_KEY_DESCRIPTION,
    LOCK_TABLE_HASH_KEY,
    LOCK_TABLE_NAME,
    PROVIDER_AWS,
    SERVICE_ACCOUNT_NAME,
    SERVICE_ACCOUNT_POLICY_ARNS,
    TYPE_DYNAMODB_TABLE,
    TYPE_IAM_USER,
    TYPE_IAM_USER_POLICY_ATTACHMENT,
    TYPE_KMS_ALIAS,
    TYPE_KMS_KEY,
    TYPE_S3_ACL,
    TYPE_S3_BUCKET,
    TYPE_S3_ENCRYPTION,
    TYPE_S3_OWNERSHIP_CONTROLS,
    TYPE_S3_PUBLIC_ACCESS_BLOCK,
    TYPE_S3_VERSIONING,
)
from ..models import Reference, ResourceTemplate

AWS_ONLY = frozenset({PROVIDER_AWS})

LOCK_TABLE = f"{TYPE_DYNAMODB_TABLE}.terraform_state_lock"
SERVICE_ACCOUNT = f"{TYPE_IAM_USER}.terraform"
S3_POLICY_ATTACHMENT = f"{TYPE_IAM_USER_POLICY_ATTACHMENT}.terraform_s3"
DYNAMODB_POLICY_ATTACHMENT = f"{TYPE_IAM_USER_POLICY_ATTACHMENT}.terraform_dynamodb"
KMS_KEY = f"{TYPE_KMS_KEY}.terraform_bucket_key"
KMS_ALIAS = f"{TYPE_KMS_ALIAS}.terraform_bucket_key"
STATE_BUCKET = f"{TYPE_S3_BUCKET}.terraform_state"
OWNERSHIP_CONTROLS = f"{TYPE_S3_OWNERSHIP_CONTROLS}.terraform_state"
PUBLIC_ACCESS_BLOCK = f"{TYPE_S3_PUBLIC_ACCESS_BLOCK}.terraform_state"
BUCKET_ACL = f"{TYPE_S3_ACL}.terraform_state"
BUCKET_ENCRYPTION = f"{TYPE_S3_ENCRYPTION}.terraform_state"
BUCKET_VERSIONING = f"{TYPE_S3_VERSIONING}.terraform_state"


def _lock_table(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "name": LOCK_TABLE_NAME,
        "billing_mode": "PAY_PER_REQUEST",
        "hash_key": LOCK_TABLE_HASH_KEY,
        "attribute": [{"name": LOCK_TABLE_HASH_KEY, "type": "S"}],
    }


def _service_account(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {"name": SERVICE_ACCOUNT_NAME}


def _policy_attachment(policy_arn: str):
    def build(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
        return {
            "user": Reference(SERVICE_ACCOUNT, "name"),
            "policy_arn": policy_arn,
        }

    return build


def _kms_key(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "description": KMS_KEY_DESCRIPTION,
        "deletion_window_in_days": KMS_KEY_DELETION_WINDOW_DAYS,
        "enable_key_rotation": True,
    }


def _kms_alias(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "name": KMS_ALIAS_NAME,
        "target_key_id": Reference(KMS_KEY, "key_id"),
    }


def _state_bucket(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {"bucket": bucket}


def _ownership_controls(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "bucket": Reference(STATE_BUCKET, "id"),
        "rule": {"object_ownership": "BucketOwnerPreferred"},
    }


def _public_access_block(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "bucket": Reference(STATE_BUCKET, "id"),
        "block_public_acls": True,
        "block_public_policy": True,
        "ignore_public_acls": True,
        "restrict_public_buckets": True,
    }


def _bucket_acl(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "bucket": Reference(STATE_BUCKET, "id"),
        "acl": "private",
    }


def _bucket_encryption(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "bucket": Reference(STATE_BUCKET, "id"),
        "rule": {
            "apply_server_side_encryption_by_default": {
                "kms_master_key_id": Reference(KMS_KEY, "arn"),
                "sse_algorithm": "aws:kms",
            },
        },
    }


def _bucket_versioning(config: BackendConfiguration, bucket: str) -> dict[str, Any]:
    return {
        "bucket": Reference(STATE_BUCKET, "id"),
        "versioning_configuration": {"status": "Enabled"},
    }


def _template(address: str, build, taggable: bool = False, depends_on: tuple[str, ...] = ()) -> ResourceTemplate:
    resource_type, name = address.split(".", 1)
    return ResourceTemplate(
        resource_type=resource_type,
        name=name,
        providers=AWS_ONLY,
        build=build,
        taggable=taggable,
        depends_on=depends_on,
    )


# Catalog order is the tie-break order when sorting steps
DEFAULT_CATALOG: tuple[ResourceTemplate, ...] = (
    _template(LOCK_TABLE, _lock_table, taggable=True),
    _template(SERVICE_ACCOUNT, _service_account, taggable=True),
    _template(S3_POLICY_ATTACHMENT, _policy_attachment(SERVICE_ACCOUNT_POLICY_ARNS[0]), depends_on=(SERVICE_ACCOUNT,)),
    _template(DYNAMODB_POLICY_ATTACHMENT, _policy_attachment(SERVICE_ACCOUNT_POLICY_ARNS[1]), depends_on=(SERVICE_ACCOUNT,)),
    _template(KMS_KEY, _kms_key, taggable=True),
    _template(KMS_ALIAS, _kms_alias, depends_on=(KMS_KEY,)),
    _template(STATE_BUCKET, _state_bucket, taggable=True),
    _template(OWNERSHIP_CONTROLS, _ownership_controls, depends_on=(STATE_BUCKET,)),
    _template(PUBLIC_ACCESS_BLOCK, _public_access_block, depends_on=(STATE_BUCKET,)),
    _template(BUCKET_ACL, _bucket_acl, depends_on=(OWNERSHIP_CONTROLS, PUBLIC_ACCESS_BLOCK)),
    _template(BUCKET_ENCRYPTION, _bucket_encryption, depends_on=(STATE_BUCKET, KMS_KEY)),
    _template(BUCKET_VERSIONING, _bucket_versioning, depends_on=(BUCKET_ACL, BUCKET_ENCRYPTION)),
)
