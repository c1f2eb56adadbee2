"""Tests for the backend provisioner planner."""

from __future__ import annotations

import pytest

from state_backend_operator.builders.catalog import (
    BUCKET_ACL,
    BUCKET_ENCRYPTION,
    BUCKET_VERSIONING,
    DEFAULT_CATALOG,
    KMS_KEY,
    OWNERSHIP_CONTROLS,
    PUBLIC_ACCESS_BLOCK,
    STATE_BUCKET,
)
from state_backend_operator.config import BackendConfiguration, merge_configuration
from state_backend_operator.identifier import get_backend_id
from state_backend_operator.models import ProvisioningStep, Reference
from state_backend_operator.planner import PlanError, order_steps, plan_backend, select_templates

BACKEND_ID = "0123456789abcdef"


@pytest.fixture
def aws_config() -> BackendConfiguration:
    return BackendConfiguration(cloud_provider="aws", region="eu-west-1", tags={"team": "platform"})


class TestPlanBackendAws:
    """Test planning for the aws provider."""

    def test_resource_counts(self, aws_config):
        """Test that each backend resource is planned exactly once."""
        plan = plan_backend(aws_config, backend_id=BACKEND_ID)

        assert plan.count("aws_dynamodb_table") == 1
        assert plan.count("aws_iam_user") == 1
        assert plan.count("aws_iam_user_policy_attachment") == 2
        assert plan.count("aws_kms_key") == 1
        assert plan.count("aws_kms_alias") == 1
        assert plan.count("aws_s3_bucket") == 1
        assert plan.count("aws_s3_bucket_ownership_controls") == 1
        assert plan.count("aws_s3_bucket_public_access_block") == 1
        assert plan.count("aws_s3_bucket_acl") == 1
        assert plan.count("aws_s3_bucket_server_side_encryption_configuration") == 1
        assert plan.count("aws_s3_bucket_versioning") == 1
        assert len(plan.steps) == 12

    def test_bucket_ordering(self, aws_config):
        """Test that ACL and versioning follow their dependencies."""
        order = plan_backend(aws_config, backend_id=BACKEND_ID).addresses

        assert order.index(STATE_BUCKET) < order.index(OWNERSHIP_CONTROLS)
        assert order.index(OWNERSHIP_CONTROLS) < order.index(BUCKET_ACL)
        assert order.index(PUBLIC_ACCESS_BLOCK) < order.index(BUCKET_ACL)
        assert order.index(BUCKET_ACL) < order.index(BUCKET_ENCRYPTION)
        assert order.index(BUCKET_ACL) < order.index(BUCKET_VERSIONING)
        assert order.index(BUCKET_ENCRYPTION) < order.index(BUCKET_VERSIONING)
        assert order.index(KMS_KEY) < order.index(BUCKET_ENCRYPTION)

    def test_every_dependency_precedes_its_step(self, aws_config):
        """Test that the plan is a valid topological order."""
        plan = plan_backend(aws_config, backend_id=BACKEND_ID)
        seen = set()
        for step in plan.steps:
            assert set(step.depends_on) <= seen
            seen.add(step.address)

    def test_depends_on_edges(self, aws_config):
        """Test the declared depends-on edges of bucket sub-resources."""
        plan = plan_backend(aws_config, backend_id=BACKEND_ID)

        assert set(plan.get_step(BUCKET_ACL).depends_on) == {OWNERSHIP_CONTROLS, PUBLIC_ACCESS_BLOCK}
        assert set(plan.get_step(BUCKET_VERSIONING).depends_on) == {BUCKET_ACL, BUCKET_ENCRYPTION}

    def test_tags_on_taggable_resources_only(self, aws_config):
        """Test that merged tags are attached only to resources accepting tags."""
        plan = plan_backend(aws_config, backend_id=BACKEND_ID)
        tagged = {step.resource_type for step in plan.steps if step.tags is not None}

        assert tagged == {"aws_dynamodb_table", "aws_iam_user", "aws_kms_key", "aws_s3_bucket"}
        for step in plan.steps:
            if step.tags is not None:
                assert step.tags == {"team": "platform"}

    def test_bucket_name_and_outputs(self, aws_config):
        """Test that the bucket name derives from the backend identifier."""
        plan = plan_backend(aws_config, backend_id=BACKEND_ID)

        assert plan.bucket_names == [f"{BACKEND_ID}-terraform-backend"]
        assert plan.outputs == {"bucket": f"{BACKEND_ID}-terraform-backend", "region": "eu-west-1"}

    def test_bucket_sub_resources_reference_bucket(self, aws_config):
        """Test that bucket sub-resources reference the bucket step."""
        plan = plan_backend(aws_config, backend_id=BACKEND_ID)

        for address in (OWNERSHIP_CONTROLS, PUBLIC_ACCESS_BLOCK, BUCKET_ACL, BUCKET_ENCRYPTION, BUCKET_VERSIONING):
            assert plan.get_step(address).attributes["bucket"] == Reference(STATE_BUCKET, "id")

    def test_process_wide_identifier_reused(self, aws_config):
        """Test that plans without an explicit identifier share one bucket name."""
        first = plan_backend(aws_config)
        second = plan_backend(aws_config)

        assert first.backend_id == second.backend_id == get_backend_id()
        assert first.bucket_names == second.bucket_names

    def test_deterministic(self, aws_config):
        """Test that planning twice yields the same order."""
        assert plan_backend(aws_config, backend_id=BACKEND_ID).addresses == plan_backend(
            aws_config, backend_id=BACKEND_ID
        ).addresses


class TestPlanBackendOtherProviders:
    """Test planning for providers without backend resources."""

    @pytest.mark.parametrize("provider", ["gcp", "azure", "digitalocean", "AWS", " aws"])
    def test_no_resources(self, provider):
        """Test that non-aws providers plan zero resources without raising."""
        plan = plan_backend(BackendConfiguration(cloud_provider=provider), backend_id=BACKEND_ID)

        assert plan.is_empty()
        assert plan.outputs == {"bucket": "", "region": "us-west-2"}

    def test_logs_warning(self, caplog):
        """Test that an unsupported provider is surfaced as a warning."""
        with caplog.at_level("WARNING"):
            plan_backend(BackendConfiguration(cloud_provider="gcp"), backend_id=BACKEND_ID)

        assert "gcp" in caplog.text

    def test_uppercase_override_plans_nothing(self):
        """Test that provider matching is exact after merging an override."""
        config = merge_configuration({"cloud_provider": "aws"}, {"cloud_provider": "AWS"})

        plan = plan_backend(config, backend_id=BACKEND_ID)

        assert plan.is_empty()


class TestSelectTemplates:
    """Test catalog filtering."""

    def test_aws_selects_full_catalog(self):
        """Test that aws selects every catalog entry."""
        assert select_templates(DEFAULT_CATALOG, "aws") == list(DEFAULT_CATALOG)

    def test_unknown_selects_nothing(self):
        """Test that an unknown provider selects nothing."""
        assert select_templates(DEFAULT_CATALOG, "unknown") == []


class TestOrderSteps:
    """Test topological ordering of steps."""

    def test_tie_break_by_input_order(self):
        """Test that independent steps keep their input order."""
        steps = [
            ProvisioningStep("t", "b", {}),
            ProvisioningStep("t", "a", {}),
        ]

        assert [step.name for step in order_steps(steps)] == ["b", "a"]

    def test_dependency_moves_step_later(self):
        """Test that a step is emitted after its dependency."""
        steps = [
            ProvisioningStep("t", "child", {}, depends_on=["t.parent"]),
            ProvisioningStep("t", "parent", {}),
        ]

        assert [step.name for step in order_steps(steps)] == ["parent", "child"]

    def test_cycle(self):
        """Test that a cycle is reported."""
        steps = [
            ProvisioningStep("t", "a", {}, depends_on=["t.b"]),
            ProvisioningStep("t", "b", {}, depends_on=["t.a"]),
        ]

        with pytest.raises(PlanError, match="cycle"):
            order_steps(steps)

    def test_unknown_dependency(self):
        """Test that an edge to a missing step is reported."""
        steps = [ProvisioningStep("t", "a", {}, depends_on=["t.missing"])]

        with pytest.raises(PlanError, match="t.missing"):
            order_steps(steps)
