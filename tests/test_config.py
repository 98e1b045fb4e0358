"""Tests for configuration loading."""

import os
from unittest.mock import patch

import pytest

from lifecycle.config import (
    DEFAULT_NOT_FOUND_CHECKS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUTS,
    FALLBACK_TIMEOUT_POLICY,
    ConfigurationError,
    ReconcilerConfig,
    TimeoutPolicy,
)


class TestReconcilerConfig:
    """Tests for ReconcilerConfig validation."""

    def test_defaults(self) -> None:
        """Test that the default configuration is valid."""
        config = ReconcilerConfig()

        assert config.poll_interval_seconds == DEFAULT_POLL_INTERVAL_SECONDS
        assert config.not_found_checks == DEFAULT_NOT_FOUND_CHECKS
        assert config.region is None

    def test_invalid_region(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ReconcilerConfig(region="moon-base")

        assert "AWS_REGION" in str(exc_info.value)

    def test_poll_interval_bounds(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ReconcilerConfig(poll_interval_seconds=0)

        assert "LIFECYCLE_POLL_INTERVAL" in str(exc_info.value)

    def test_collects_all_errors(self) -> None:
        """Test that every invalid field is reported at once."""
        with pytest.raises(ConfigurationError) as exc_info:
            ReconcilerConfig(not_found_checks=-1, max_mutation_retries=0)

        message = str(exc_info.value)
        assert "LIFECYCLE_NOT_FOUND_CHECKS" in message
        assert "LIFECYCLE_MAX_MUTATION_RETRIES" in message

    def test_timeout_override_validated(self) -> None:
        with pytest.raises(ConfigurationError):
            ReconcilerConfig(
                timeouts={"aws_eks_addon": TimeoutPolicy(create=0, update=60, delete=60)}
            )


class TestTimeoutPolicy:
    """Tests for per-type timeout resolution."""

    def test_default_policy_per_type(self) -> None:
        config = ReconcilerConfig()

        policy = config.timeout_policy("aws_eks_addon")

        assert policy == DEFAULT_TIMEOUTS["aws_eks_addon"]
        assert policy.for_operation("delete") == 40 * 60

    def test_unknown_type_uses_fallback(self) -> None:
        assert ReconcilerConfig().timeout_policy("aws_unknown") == FALLBACK_TIMEOUT_POLICY

    def test_override_wins(self) -> None:
        override = TimeoutPolicy(create=60, update=60, delete=60)
        config = ReconcilerConfig(timeouts={"aws_waf_web_acl": override})

        assert config.timeout_policy("aws_waf_web_acl") is override

    def test_unknown_operation(self) -> None:
        with pytest.raises(ValueError):
            TimeoutPolicy(create=1, update=1, delete=1).for_operation("import")


class TestFromEnv:
    """Tests for ReconcilerConfig.from_env."""

    def test_reads_environment(self) -> None:
        env = {
            "AWS_REGION": "eu-west-1",
            "LIFECYCLE_POLL_INTERVAL": "2.5",
            "LIFECYCLE_NOT_FOUND_CHECKS": "5",
            "LIFECYCLE_MAX_MUTATION_RETRIES": "4",
            "LIFECYCLE_TIMEOUT_AWS_EKS_ADDON_CREATE": "600",
        }
        with patch.dict(os.environ, env, clear=True):
            config = ReconcilerConfig.from_env()

        assert config.region == "eu-west-1"
        assert config.poll_interval_seconds == 2.5
        assert config.not_found_checks == 5
        assert config.max_mutation_retries == 4
        eks_policy = config.timeout_policy("aws_eks_addon")
        assert eks_policy.create == 600
        assert eks_policy.delete == DEFAULT_TIMEOUTS["aws_eks_addon"].delete

    def test_default_region_fallback(self) -> None:
        with patch.dict(os.environ, {"AWS_DEFAULT_REGION": "us-west-2"}, clear=True):
            assert ReconcilerConfig.from_env().region == "us-west-2"

    def test_unset_timeouts_not_overridden(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert ReconcilerConfig.from_env().timeouts == {}

    def test_non_numeric_value(self) -> None:
        with patch.dict(os.environ, {"LIFECYCLE_NOT_FOUND_CHECKS": "many"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                ReconcilerConfig.from_env()

        assert "must be an integer" in str(exc_info.value)
