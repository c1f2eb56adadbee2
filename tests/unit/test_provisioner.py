"""Tests for the AWS backend provisioner."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from state_backend_operator.builders.provisioner import create_provisioner
from state_backend_operator.config import BackendConfiguration
from state_backend_operator.models import ProvisioningPlan, ProvisioningStep, Reference
from state_backend_operator.planner import plan_backend
from state_backend_operator.services.aws.client import AWSBackendProvisioner

BACKEND_ID = "0011223344556677"
BUCKET = f"{BACKEND_ID}-terraform-backend"
KEY_ARN = "arn:aws:kms:eu-west-1:123456789012:key/abcd"


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def clients():
    """Mock boto3 clients keyed by service name."""
    mocks = {service: MagicMock(name=service) for service in ("dynamodb", "iam", "kms", "s3")}
    mocks["dynamodb"].create_table.return_value = {
        "TableDescription": {"TableArn": "arn:aws:dynamodb:eu-west-1:123456789012:table/terraform-state-lock"}
    }
    mocks["iam"].create_user.return_value = {"User": {"Arn": "arn:aws:iam::123456789012:user/terraform"}}
    mocks["kms"].describe_key.side_effect = client_error("NotFoundException", "DescribeKey")
    mocks["kms"].create_key.return_value = {"KeyMetadata": {"KeyId": "abcd", "Arn": KEY_ARN}}
    return mocks


@pytest.fixture
def provisioner(clients):
    session = MagicMock()
    session.client.side_effect = lambda service, **kwargs: clients[service]
    return AWSBackendProvisioner(region="eu-west-1", session=session)


@pytest.fixture
def plan():
    return plan_backend(
        BackendConfiguration(region="eu-west-1", tags={"team": "platform"}),
        backend_id=BACKEND_ID,
    )


class TestApply:
    """Test cases for applying a plan."""

    def test_apply_creates_everything(self, provisioner, clients, plan):
        """Test that every step results in an AWS call."""
        results = provisioner.apply(plan)

        assert set(results) == set(plan.addresses)
        clients["dynamodb"].create_table.assert_called_once()
        clients["iam"].create_user.assert_called_once()
        assert clients["iam"].attach_user_policy.call_count == 2
        clients["kms"].create_key.assert_called_once()
        clients["kms"].enable_key_rotation.assert_called_once_with(KeyId="abcd")
        clients["kms"].create_alias.assert_called_once_with(
            AliasName="alias/terraform-bucket-key", TargetKeyId="abcd"
        )
        clients["s3"].create_bucket.assert_called_once_with(
            Bucket=BUCKET,
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )
        clients["s3"].put_bucket_acl.assert_called_once_with(Bucket=BUCKET, ACL="private")

    def test_encryption_uses_created_key(self, provisioner, clients, plan):
        """Test that references resolve to earlier step results."""
        provisioner.apply(plan)

        kwargs = clients["s3"].put_bucket_encryption.call_args.kwargs
        rule = kwargs["ServerSideEncryptionConfiguration"]["Rules"][0]
        assert kwargs["Bucket"] == BUCKET
        assert rule["ApplyServerSideEncryptionByDefault"] == {"SSEAlgorithm": "aws:kms", "KMSMasterKeyID": KEY_ARN}

    def test_bucket_calls_in_plan_order(self, provisioner, clients, plan):
        """Test that bucket configuration calls follow the plan order."""
        provisioner.apply(plan)

        calls = [name for name, _, _ in clients["s3"].method_calls]
        assert calls.index("create_bucket") < calls.index("put_bucket_ownership_controls")
        assert calls.index("put_bucket_ownership_controls") < calls.index("put_bucket_acl")
        assert calls.index("put_public_access_block") < calls.index("put_bucket_acl")
        assert calls.index("put_bucket_acl") < calls.index("put_bucket_versioning")
        assert calls.index("put_bucket_encryption") < calls.index("put_bucket_versioning")

    def test_tags_applied(self, provisioner, clients, plan):
        """Test that tags are passed to taggable resources."""
        provisioner.apply(plan)

        assert clients["dynamodb"].create_table.call_args.kwargs["Tags"] == [{"Key": "team", "Value": "platform"}]
        assert clients["kms"].create_key.call_args.kwargs["Tags"] == [{"TagKey": "team", "TagValue": "platform"}]
        clients["s3"].put_bucket_tagging.assert_called_once_with(
            Bucket=BUCKET, Tagging={"TagSet": [{"Key": "team", "Value": "platform"}]}
        )

    def test_untagged_plan_sends_no_tags(self, provisioner, clients):
        """Test that resources are created without Tags when none are configured."""
        untagged = plan_backend(BackendConfiguration(region="eu-west-1"), backend_id=BACKEND_ID)

        provisioner.apply(untagged)

        assert "Tags" not in clients["dynamodb"].create_table.call_args.kwargs
        assert "Tags" not in clients["iam"].create_user.call_args.kwargs
        assert "Tags" not in clients["kms"].create_key.call_args.kwargs
        clients["s3"].put_bucket_tagging.assert_not_called()

    def test_clients_make_single_attempt(self, clients):
        """Test that botocore retries are disabled in favor of throttling retries."""
        session = MagicMock()
        session.client.side_effect = lambda service, **kwargs: clients[service]

        AWSBackendProvisioner(region="eu-west-1", session=session).client("s3")

        config = session.client.call_args.kwargs["config"]
        assert config.retries == {"mode": "standard", "total_max_attempts": 1}

    def test_us_east_1_omits_location_constraint(self, clients, plan):
        """Test bucket creation in us-east-1."""
        session = MagicMock()
        session.client.side_effect = lambda service, **kwargs: clients[service]
        AWSBackendProvisioner(region="us-east-1", session=session).apply(plan)

        clients["s3"].create_bucket.assert_called_once_with(Bucket=BUCKET)

    def test_existing_resources_are_reused(self, provisioner, clients, plan):
        """Test that already-existing resources do not fail the apply."""
        clients["dynamodb"].create_table.side_effect = client_error("ResourceInUseException")
        clients["dynamodb"].describe_table.return_value = {"Table": {"TableArn": "arn"}}
        clients["iam"].create_user.side_effect = client_error("EntityAlreadyExists")
        clients["iam"].get_user.return_value = {"User": {"Arn": "arn"}}
        clients["kms"].describe_key.side_effect = None
        clients["kms"].describe_key.return_value = {"KeyMetadata": {"KeyId": "existing", "Arn": KEY_ARN}}
        clients["kms"].create_alias.side_effect = client_error("AlreadyExistsException")
        clients["s3"].create_bucket.side_effect = client_error("BucketAlreadyOwnedByYou")

        provisioner.apply(plan)

        clients["kms"].create_key.assert_not_called()
        clients["kms"].update_alias.assert_called_once_with(
            AliasName="alias/terraform-bucket-key", TargetKeyId="existing"
        )

    def test_failure_propagates(self, provisioner, clients, plan):
        """Test that other AWS errors propagate and stop the apply."""
        clients["s3"].create_bucket.side_effect = client_error("AccessDenied")

        with pytest.raises(ClientError):
            provisioner.apply(plan)

        clients["s3"].put_bucket_acl.assert_not_called()

    def test_throttling_is_retried(self, provisioner, clients, plan):
        """Test that throttling errors are retried."""
        clients["s3"].put_bucket_acl.side_effect = [client_error("SlowDown"), {}]

        provisioner.apply(plan)

        assert clients["s3"].put_bucket_acl.call_count == 2

    def test_unknown_resource_type(self, provisioner):
        """Test that unknown step types are rejected."""
        plan = ProvisioningPlan(
            configuration=BackendConfiguration(),
            backend_id=BACKEND_ID,
            steps=[ProvisioningStep("aws_unknown", "x", {})],
        )

        with pytest.raises(ValueError, match="aws_unknown"):
            provisioner.apply(plan)

    def test_unresolved_reference(self, provisioner):
        """Test that references to missing steps are rejected."""
        plan = ProvisioningPlan(
            configuration=BackendConfiguration(),
            backend_id=BACKEND_ID,
            steps=[ProvisioningStep("aws_s3_bucket_acl", "x", {"bucket": Reference("aws_s3_bucket.y", "id"), "acl": "private"})],
        )

        with pytest.raises(ValueError, match="Unresolved reference"):
            provisioner.apply(plan)


class TestBucketExists:
    """Test cases for bucket_exists."""

    def test_exists(self, provisioner, clients):
        """Test an existing bucket."""
        assert provisioner.bucket_exists(BUCKET) is True

    def test_missing(self, provisioner, clients):
        """Test a missing bucket."""
        clients["s3"].head_bucket.side_effect = client_error("404", "HeadBucket")
        assert provisioner.bucket_exists(BUCKET) is False

    def test_other_error(self, provisioner, clients):
        """Test that other errors propagate."""
        clients["s3"].head_bucket.side_effect = client_error("403", "HeadBucket")
        with pytest.raises(ClientError):
            provisioner.bucket_exists(BUCKET)


class TestCreateProvisioner:
    """Test cases for create_provisioner."""

    @patch("state_backend_operator.builders.provisioner.AWSBackendProvisioner")
    def test_aws(self, mock_provisioner):
        """Test creating a provisioner for aws."""
        create_provisioner(BackendConfiguration(region="eu-west-1"))

        mock_provisioner.assert_called_once_with(region="eu-west-1", session=None)

    @patch("state_backend_operator.builders.provisioner.boto3.session.Session")
    @patch("state_backend_operator.builders.provisioner.AWSBackendProvisioner")
    def test_profile(self, mock_provisioner, mock_session):
        """Test that spec.aws.profile selects a named profile."""
        create_provisioner(BackendConfiguration(region="eu-west-1"), {"aws": {"profile": "ops"}})

        mock_session.assert_called_once_with(profile_name="ops", region_name="eu-west-1")
        assert mock_provisioner.call_args.kwargs["session"] == mock_session.return_value

    def test_unsupported(self):
        """Test that non-aws providers are rejected."""
        with pytest.raises(ValueError, match="Unsupported provider type: gcp"):
            create_provisioner(BackendConfiguration(cloud_provider="gcp"))
