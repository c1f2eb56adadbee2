"""AWS backend provisioner implementation."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ... import metrics
from ...constants import (
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
from ...models import ProvisioningPlan, ProvisioningStep, Reference
from ...tracing import trace_span
from ...utils.rate_limit import rate_limit_aws, retry_on_throttling

logger = logging.getLogger(__name__)

# Throttling is retried by retry_on_throttling, so botocore makes a single attempt
_CLIENT_CONFIG = Config(retries={"mode": "standard", "total_max_attempts": 1})


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _tag_list(tags: dict[str, str] | None, key: str = "Key", value: str = "Value") -> list[dict[str, str]]:
    return [{key: k, value: v} for k, v in (tags or {}).items()]


class AWSBackendProvisioner:
    """Creates state backend resources with boto3, one plan step at a time."""

    def __init__(self, region: str, session: boto3.session.Session | None = None) -> None:
        """Initialize AWS backend provisioner.

        Args:
            region: AWS region for regional resources
            session: Optional boto3 session (credentials come from the default chain)
        """
        self.region = region
        self.session = session or boto3.session.Session(region_name=region)
        self._clients: dict[str, Any] = {}
        self._handlers: dict[str, Callable[[ProvisioningStep, dict[str, Any], ProvisioningPlan], dict[str, Any]]] = {
            TYPE_DYNAMODB_TABLE: self._create_lock_table,
            TYPE_IAM_USER: self._create_service_account,
            TYPE_IAM_USER_POLICY_ATTACHMENT: self._attach_policy,
            TYPE_KMS_KEY: self._create_kms_key,
            TYPE_KMS_ALIAS: self._create_kms_alias,
            TYPE_S3_BUCKET: self._create_bucket,
            TYPE_S3_OWNERSHIP_CONTROLS: self._put_ownership_controls,
            TYPE_S3_PUBLIC_ACCESS_BLOCK: self._put_public_access_block,
            TYPE_S3_ACL: self._put_bucket_acl,
            TYPE_S3_ENCRYPTION: self._put_bucket_encryption,
            TYPE_S3_VERSIONING: self._put_bucket_versioning,
        }

    def client(self, service: str) -> Any:
        """Get (and cache) a boto3 client for a service."""
        if service not in self._clients:
            self._clients[service] = self.session.client(service, region_name=self.region, config=_CLIENT_CONFIG)
        return self._clients[service]

    def _call(self, service: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Call an AWS API operation with rate limiting, retries and metrics."""
        method = retry_on_throttling(rate_limit_aws(getattr(self.client(service), operation)))
        start_time = time.time()
        try:
            response = method(**kwargs)
            metrics.api_call_total.labels(api_type="aws", operation=operation, result="success").inc()
            return response
        except ClientError:
            metrics.api_call_total.labels(api_type="aws", operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="aws", operation=operation).observe(duration)

    def _resolve(self, value: Any, results: dict[str, dict[str, Any]]) -> Any:
        if isinstance(value, Reference):
            try:
                return results[value.address][value.attribute]
            except KeyError:
                raise ValueError(f"Unresolved reference {value.expression()}") from None
        if isinstance(value, dict):
            return {key: self._resolve(item, results) for key, item in value.items()}
        if isinstance(value, list):
            return [self._resolve(item, results) for item in value]
        return value

    def apply(self, plan: ProvisioningPlan) -> dict[str, dict[str, Any]]:
        """Create every step of a plan, strictly in plan order.

        Args:
            plan: Provisioning plan

        Returns:
            Results (ids, arns) keyed by step address

        Raises:
            ClientError: If an AWS call fails
            ValueError: If a step has an unknown type or unresolved reference
        """
        results: dict[str, dict[str, Any]] = {}
        with trace_span("apply_backend", attributes={"backend.id": plan.backend_id, "backend.region": self.region}):
            for step in plan.steps:
                handler = self._handlers.get(step.resource_type)
                if handler is None:
                    raise ValueError(f"Unsupported resource type: {step.resource_type}")

                attributes = self._resolve(step.attributes, results)
                try:
                    results[step.address] = handler(step, attributes, plan)
                    metrics.provision_operations_total.labels(resource_type=step.resource_type, result="success").inc()
                    logger.info(f"Provisioned {step.address}")
                except ClientError as e:
                    metrics.provision_operations_total.labels(resource_type=step.resource_type, result="error").inc()
                    logger.error(f"Failed to provision {step.address}: {e}")
                    raise
        return results

    def bucket_exists(self, name: str) -> bool:
        """Check if a bucket exists."""
        try:
            self._call("s3", "head_bucket", Bucket=name)
            return True
        except ClientError as e:
            if _error_code(e) in ("404", "NoSuchBucket", "NotFound"):
                return False
            raise

    def _create_lock_table(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        name = attrs["name"]
        params: dict[str, Any] = {
            "TableName": name,
            "BillingMode": attrs["billing_mode"],
            "AttributeDefinitions": [
                {"AttributeName": attr["name"], "AttributeType": attr["type"]} for attr in attrs["attribute"]
            ],
            "KeySchema": [{"AttributeName": attrs["hash_key"], "KeyType": "HASH"}],
        }
        if step.tags:
            params["Tags"] = _tag_list(step.tags)
        try:
            response = self._call("dynamodb", "create_table", **params)
            description = response["TableDescription"]
        except ClientError as e:
            if _error_code(e) != "ResourceInUseException":
                raise
            logger.info(f"Lock table {name} already exists")
            description = self._call("dynamodb", "describe_table", TableName=name)["Table"]
        return {"id": name, "name": name, "arn": description.get("TableArn")}

    def _create_service_account(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        name = attrs["name"]
        params: dict[str, Any] = {"UserName": name}
        if step.tags:
            params["Tags"] = _tag_list(step.tags)
        try:
            user = self._call("iam", "create_user", **params)["User"]
        except ClientError as e:
            if _error_code(e) != "EntityAlreadyExists":
                raise
            logger.info(f"Service account {name} already exists")
            user = self._call("iam", "get_user", UserName=name)["User"]
        return {"id": name, "name": name, "arn": user.get("Arn")}

    def _attach_policy(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        # attach_user_policy is idempotent
        self._call("iam", "attach_user_policy", UserName=attrs["user"], PolicyArn=attrs["policy_arn"])
        return {"id": f"{attrs['user']}-{attrs['policy_arn']}"}

    def _find_aliased_key(self, step: ProvisioningStep, plan: ProvisioningPlan) -> dict[str, Any] | None:
        """Find a key created by an earlier run through the alias that targets it."""
        for other in plan.steps:
            target = other.attributes.get("target_key_id")
            if other.resource_type != TYPE_KMS_ALIAS or not isinstance(target, Reference):
                continue
            if target.address != step.address:
                continue
            try:
                return self._call("kms", "describe_key", KeyId=other.attributes["name"])["KeyMetadata"]
            except ClientError as e:
                if _error_code(e) != "NotFoundException":
                    raise
        return None

    def _create_kms_key(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        metadata = self._find_aliased_key(step, plan)
        if metadata is not None:
            logger.info(f"KMS key {metadata['KeyId']} already exists")
        else:
            params: dict[str, Any] = {"Description": attrs["description"]}
            if step.tags:
                params["Tags"] = _tag_list(step.tags, key="TagKey", value="TagValue")
            metadata = self._call("kms", "create_key", **params)["KeyMetadata"]

        if attrs.get("enable_key_rotation"):
            self._call("kms", "enable_key_rotation", KeyId=metadata["KeyId"])
        return {"id": metadata["KeyId"], "key_id": metadata["KeyId"], "arn": metadata["Arn"]}

    def _create_kms_alias(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        name = attrs["name"]
        try:
            self._call("kms", "create_alias", AliasName=name, TargetKeyId=attrs["target_key_id"])
        except ClientError as e:
            if _error_code(e) != "AlreadyExistsException":
                raise
            self._call("kms", "update_alias", AliasName=name, TargetKeyId=attrs["target_key_id"])
        return {"id": name, "name": name}

    def _create_bucket(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        name = attrs["bucket"]
        params: dict[str, Any] = {"Bucket": name}
        # us-east-1 rejects an explicit LocationConstraint
        if self.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self._call("s3", "create_bucket", **params)
        except ClientError as e:
            if _error_code(e) != "BucketAlreadyOwnedByYou":
                raise
            logger.info(f"Bucket {name} already exists")

        if step.tags:
            self._call("s3", "put_bucket_tagging", Bucket=name, Tagging={"TagSet": _tag_list(step.tags)})
        return {"id": name, "bucket": name, "arn": f"arn:aws:s3:::{name}"}

    def _put_ownership_controls(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        self._call(
            "s3",
            "put_bucket_ownership_controls",
            Bucket=attrs["bucket"],
            OwnershipControls={"Rules": [{"ObjectOwnership": attrs["rule"]["object_ownership"]}]},
        )
        return {"id": attrs["bucket"]}

    def _put_public_access_block(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        self._call(
            "s3",
            "put_public_access_block",
            Bucket=attrs["bucket"],
            PublicAccessBlockConfiguration={
                "BlockPublicAcls": attrs["block_public_acls"],
                "BlockPublicPolicy": attrs["block_public_policy"],
                "IgnorePublicAcls": attrs["ignore_public_acls"],
                "RestrictPublicBuckets": attrs["restrict_public_buckets"],
            },
        )
        return {"id": attrs["bucket"]}

    def _put_bucket_acl(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        self._call("s3", "put_bucket_acl", Bucket=attrs["bucket"], ACL=attrs["acl"])
        return {"id": f"{attrs['bucket']},{attrs['acl']}"}

    def _put_bucket_encryption(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        default = attrs["rule"]["apply_server_side_encryption_by_default"]
        self._call(
            "s3",
            "put_bucket_encryption",
            Bucket=attrs["bucket"],
            ServerSideEncryptionConfiguration={
                "Rules": [
                    {
                        "ApplyServerSideEncryptionByDefault": {
                            "SSEAlgorithm": default["sse_algorithm"],
                            "KMSMasterKeyID": default["kms_master_key_id"],
                        },
                    },
                ],
            },
        )
        return {"id": attrs["bucket"]}

    def _put_bucket_versioning(self, step: ProvisioningStep, attrs: dict[str, Any], plan: ProvisioningPlan) -> dict[str, Any]:
        self._call(
            "s3",
            "put_bucket_versioning",
            Bucket=attrs["bucket"],
            VersioningConfiguration={"Status": attrs["versioning_configuration"]["status"]},
        )
        return {"id": attrs["bucket"]}
