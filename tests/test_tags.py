"""Tests for tag reconciliation."""

from collections.abc import Mapping, Sequence
from typing import Any

import pytest
from aws_mock import MockAddon, MockEksClient, client_error

from lifecycle.eks_addon import EksAddonClient
from lifecycle.tags import TagReconciler, compute_tag_diff

ARN = "arn:aws:eks:us-east-1:123456789012:addon/prod/vpc-cni/0000"


class RecordingTagClient:
    """Tag-only client recording each call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def tag_resource(self, resource_arn: str, tags: Mapping[str, str]) -> None:
        self.calls.append(("tag", dict(tags)))

    def untag_resource(self, resource_arn: str, tag_keys: Sequence[str]) -> None:
        self.calls.append(("untag", list(tag_keys)))


class TestComputeTagDiff:
    """Tests for compute_tag_diff."""

    def test_disjoint_sets(self) -> None:
        """Test that added, changed and removed keys are split apart."""
        diff = compute_tag_diff({"a": "1", "b": "2"}, {"b": "1", "c": "3"})

        assert diff.to_add == {"a": "1"}
        assert diff.to_update == {"b": "2"}
        assert diff.to_remove == ["c"]
        assert diff.to_set == {"a": "1", "b": "2"}

    def test_identical_tags_empty(self) -> None:
        assert compute_tag_diff({"env": "prod"}, {"env": "prod"}).is_empty

    def test_empty_desired_removes_all(self) -> None:
        """Test that clearing desired tags removes every observed key."""
        diff = compute_tag_diff({}, {"team": "core", "env": "prod"})

        assert diff.to_set == {}
        assert diff.to_remove == ["env", "team"]


class TestTagReconciler:
    """Tests for TagReconciler.reconcile."""

    @pytest.mark.asyncio
    async def test_one_batched_call_per_direction(self) -> None:
        """Test that adds and updates share one call and removes use another."""
        client = RecordingTagClient()

        await TagReconciler().reconcile(
            client, "prod:vpc-cni", ARN, {"a": "1", "b": "2"}, {"b": "1", "c": "3"}
        )

        assert client.calls == [("tag", {"a": "1", "b": "2"}), ("untag", ["c"])]

    @pytest.mark.asyncio
    async def test_no_change_issues_no_calls(self) -> None:
        """Test that converged tags are idempotent."""
        client = RecordingTagClient()

        diff = await TagReconciler().reconcile(
            client, "prod:vpc-cni", ARN, {"env": "prod"}, {"env": "prod"}
        )

        assert diff.is_empty
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_only_removals_skip_tag_call(self) -> None:
        client = RecordingTagClient()

        await TagReconciler().reconcile(client, "prod:vpc-cni", ARN, {}, {"old": "x"})

        assert client.calls == [("untag", ["old"])]

    @pytest.mark.asyncio
    async def test_converges_remote_tags(self) -> None:
        """Test reconciling against the mock EKS tagging API."""
        eks = MockEksClient()
        addon = eks.state.put_addon(
            MockAddon(cluster_name="prod", addon_name="vpc-cni", tags={"b": "1", "c": "3"})
        )

        await TagReconciler().reconcile(
            EksAddonClient(eks), "prod:vpc-cni", addon.arn, {"a": "1", "b": "2"}, addon.tags
        )

        assert eks.state.get_addon("prod", "vpc-cni").tags == {"a": "1", "b": "2"}
        assert eks.call_count("tag_resource") == 1
        assert eks.call_count("untag_resource") == 1

    @pytest.mark.asyncio
    async def test_remote_error_propagates_with_note(self) -> None:
        """Test that tagging errors are re-raised annotated with the key."""
        eks = MockEksClient()
        addon = eks.state.put_addon(MockAddon(cluster_name="prod", addon_name="vpc-cni"))
        error = client_error("AccessDeniedException", "Not allowed", "TagResource")
        eks.fail_next("tag_resource", error)

        with pytest.raises(type(error)) as exc_info:
            await TagReconciler().reconcile(
                EksAddonClient(eks), "prod:vpc-cni", addon.arn, {"env": "prod"}, {}
            )

        assert exc_info.value is error
        assert "while reconciling tags of resource prod:vpc-cni" in error.__notes__
