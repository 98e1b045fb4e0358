"""Tests for the lifecycle CLI."""

import json
from pathlib import Path

import pytest
from aws_mock import MockAddon, MockEksClient, MockResourceState, client_error
from click.testing import CliRunner, Result

from lifecycle.cli import EXIT_FAILURE, EXIT_NOT_FOUND, EXIT_USAGE, CliState, cli
from lifecycle.config import ReconcilerConfig
from lifecycle.eks_addon import EksAddonClient


@pytest.fixture
def eks() -> MockEksClient:
    return MockEksClient(MockResourceState(settle_polls=0))


@pytest.fixture
def state(eks: MockEksClient) -> CliState:
    config = ReconcilerConfig(poll_interval_seconds=0.01, retry_backoff_base_seconds=0)
    return CliState(config, client_factory=lambda resource_type: EksAddonClient(eks))


@pytest.fixture
def addon_file(tmp_path: Path) -> Path:
    path = tmp_path / "addon.yaml"
    path.write_text(
        "apiVersion: lifecycle/v1\n"
        "kind: aws_eks_addon\n"
        "spec:\n"
        "  clusterName: prod\n"
        "  addonName: vpc-cni\n"
        "  addonVersion: v1.18.0\n"
    )
    return path


def invoke(state: CliState, *args: str) -> Result:
    return CliRunner().invoke(cli, list(args), obj=state)


class TestTypes:
    """Tests for the types command."""

    def test_lists_registered_types(self, state: CliState) -> None:
        result = invoke(state, "types")

        assert result.exit_code == 0
        assert "aws_eks_addon" in result.output
        assert "Web ACL" in result.output


class TestCreate:
    """Tests for the create command."""

    def test_create_prints_observed_state(
        self, state: CliState, eks: MockEksClient, addon_file: Path
    ) -> None:
        result = invoke(state, "create", "-f", str(addon_file))

        assert result.exit_code == 0, result.output
        assert '"key": "prod:vpc-cni"' in result.output
        assert '"status": "ACTIVE"' in result.output
        assert eks.call_count("create_addon") == 1

    def test_create_existing_fails(
        self, state: CliState, eks: MockEksClient, addon_file: Path
    ) -> None:
        eks.state.put_addon(MockAddon(cluster_name="prod", addon_name="vpc-cni"))

        result = invoke(state, "create", "-f", str(addon_file))

        assert result.exit_code == 1

    def test_invalid_file_is_usage_error(self, state: CliState, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text("type: aws_eks_addon\nclusterName: prod\n")

        result = invoke(state, "create", "-f", str(bad))

        assert result.exit_code == EXIT_USAGE
        assert "addonName" in result.output

    def test_non_utf8_file_is_usage_error(self, state: CliState, tmp_path: Path) -> None:
        bad = tmp_path / "binary.yaml"
        bad.write_bytes(b"\xff\xfetype: aws_eks_addon\n")

        result = invoke(state, "create", "-f", str(bad))

        assert result.exit_code == EXIT_USAGE
        assert "not valid UTF-8" in result.output


class TestUpdate:
    """Tests for the update command."""

    def test_update_converges(
        self, state: CliState, eks: MockEksClient, addon_file: Path
    ) -> None:
        eks.state.put_addon(
            MockAddon(cluster_name="prod", addon_name="vpc-cni", addon_version="v1.17.0")
        )

        result = invoke(state, "update", "prod:vpc-cni", "-f", str(addon_file))

        assert result.exit_code == 0, result.output
        assert eks.state.get_addon("prod", "vpc-cni").addon_version == "v1.18.0"

    def test_tagging_error_exits_with_failure(
        self, state: CliState, eks: MockEksClient, tmp_path: Path
    ) -> None:
        """Test that a raw AWS error from tagging maps to the failure exit code."""
        eks.state.put_addon(MockAddon(cluster_name="prod", addon_name="vpc-cni"))
        eks.fail_next("tag_resource", client_error("AccessDeniedException", "Not allowed"))
        spec_file = tmp_path / "tagged.yaml"
        spec_file.write_text(
            "type: aws_eks_addon\nclusterName: prod\naddonName: vpc-cni\ntags:\n  env: prod\n"
        )

        result = invoke(state, "update", "prod:vpc-cni", "-f", str(spec_file))

        assert result.exit_code == EXIT_FAILURE
        assert isinstance(result.exception, SystemExit)
        assert "AccessDeniedException" in result.output


class TestRead:
    """Tests for the read and import commands."""

    def test_read_absent_exits_not_found(self, state: CliState) -> None:
        result = invoke(state, "read", "aws_eks_addon", "prod:vpc-cni")

        assert result.exit_code == EXIT_NOT_FOUND
        assert json.loads(result.output.strip().splitlines()[-1]) == {
            "key": "prod:vpc-cni",
            "status": "absent",
        }

    def test_read_malformed_key(self, state: CliState) -> None:
        result = invoke(state, "read", "aws_eks_addon", "prod")

        assert result.exit_code == EXIT_USAGE

    def test_unknown_type(self, state: CliState) -> None:
        result = invoke(state, "read", "aws_s3_bucket", "bucket")

        assert result.exit_code == EXIT_USAGE
        assert "Unknown resource type" in result.output

    def test_import_existing(self, state: CliState, eks: MockEksClient) -> None:
        eks.state.put_addon(MockAddon(cluster_name="prod", addon_name="vpc-cni"))

        result = invoke(state, "import", "aws_eks_addon", "prod:vpc-cni")

        assert result.exit_code == 0
        assert '"key": "prod:vpc-cni"' in result.output

    def test_import_missing(self, state: CliState) -> None:
        result = invoke(state, "import", "aws_eks_addon", "prod:vpc-cni")

        assert result.exit_code == EXIT_NOT_FOUND


class TestDelete:
    """Tests for the delete command."""

    def test_delete_existing(self, state: CliState, eks: MockEksClient) -> None:
        eks.state.put_addon(MockAddon(cluster_name="prod", addon_name="vpc-cni"))

        result = invoke(state, "delete", "aws_eks_addon", "prod:vpc-cni")

        assert result.exit_code == 0, result.output
        assert eks.state.addon_count == 0

    def test_delete_missing_succeeds(self, state: CliState) -> None:
        result = invoke(state, "delete", "aws_eks_addon", "prod:vpc-cni")

        assert result.exit_code == 0
