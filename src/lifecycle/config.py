"""Configuration management with validation.

Polling intervals, retry limits and per-resource-type timeouts are policy,
not architecture: they are loaded from the environment with the documented
defaults below and validated at load time.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_POLL_INTERVAL_SECONDS = 10.0
MIN_POLL_INTERVAL_SECONDS = 0.01
MAX_POLL_INTERVAL_SECONDS = 300.0

# Consecutive "not found" reads tolerated right after a create before the
# resource is considered gone (eventual consistency of describe calls)
DEFAULT_NOT_FOUND_CHECKS = 20
MAX_NOT_FOUND_CHECKS = 100

DEFAULT_MAX_MUTATION_RETRIES = 3
MAX_MUTATION_RETRIES = 10
RETRY_BACKOFF_BASE_SECONDS = 5.0

# Upper bound for any single wait, whatever the resource type
MAX_TIMEOUT_SECONDS = 4 * 3600

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max desired-state file

VALID_REGION_PATTERN = r"^[a-z]{2}(-[a-z]+)+-\d$"


@dataclass(frozen=True)
class TimeoutPolicy:
    """Wall-clock deadlines, in seconds, for each asynchronous operation."""

    create: float
    update: float
    delete: float

    def for_operation(self, operation: str) -> float:
        """Get the timeout for 'create', 'update' or 'delete'."""
        try:
            return float(getattr(self, operation))
        except AttributeError as e:
            raise ValueError(f"Unknown operation: {operation}") from e


# Defaults match the settle times observed for each resource family
DEFAULT_TIMEOUTS: dict[str, TimeoutPolicy] = {
    "aws_eks_addon": TimeoutPolicy(create=20 * 60, update=20 * 60, delete=40 * 60),
    "aws_opensearchserverless_vpc_endpoint": TimeoutPolicy(
        create=30 * 60, update=30 * 60, delete=30 * 60
    ),
    "aws_waf_web_acl": TimeoutPolicy(create=5 * 60, update=5 * 60, delete=5 * 60),
}

FALLBACK_TIMEOUT_POLICY = TimeoutPolicy(create=20 * 60, update=20 * 60, delete=20 * 60)


@dataclass(frozen=True)
class ReconcilerConfig:
    """Reconciler configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-operation.
    """

    region: str | None = None

    # Polling
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    not_found_checks: int = DEFAULT_NOT_FOUND_CHECKS

    # Retries of throttled mutating calls
    max_mutation_retries: int = DEFAULT_MAX_MUTATION_RETRIES
    retry_backoff_base_seconds: float = RETRY_BACKOFF_BASE_SECONDS

    # Per resource type overrides; types not listed use DEFAULT_TIMEOUTS
    timeouts: dict[str, TimeoutPolicy] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if self.region is not None and not re.match(VALID_REGION_PATTERN, self.region):
            errors.append(f"AWS_REGION must be a valid AWS region: {self.region}")

        if not (
            MIN_POLL_INTERVAL_SECONDS <= self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS
        ):
            errors.append(
                f"LIFECYCLE_POLL_INTERVAL must be between {MIN_POLL_INTERVAL_SECONDS} "
                f"and {MAX_POLL_INTERVAL_SECONDS} seconds"
            )

        if not 0 <= self.not_found_checks <= MAX_NOT_FOUND_CHECKS:
            errors.append(
                f"LIFECYCLE_NOT_FOUND_CHECKS must be between 0 and {MAX_NOT_FOUND_CHECKS}"
            )

        if not 1 <= self.max_mutation_retries <= MAX_MUTATION_RETRIES:
            errors.append(
                f"LIFECYCLE_MAX_MUTATION_RETRIES must be between 1 and {MAX_MUTATION_RETRIES}"
            )

        if self.retry_backoff_base_seconds < 0:
            errors.append("LIFECYCLE_RETRY_BACKOFF_BASE cannot be negative")

        for type_name, policy in self.timeouts.items():
            for operation in ("create", "update", "delete"):
                value = policy.for_operation(operation)
                if not 0 < value <= MAX_TIMEOUT_SECONDS:
                    errors.append(
                        f"{operation} timeout for {type_name} must be between 0 and "
                        f"{MAX_TIMEOUT_SECONDS} seconds: {value}"
                    )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    def timeout_policy(self, type_name: str) -> TimeoutPolicy:
        """Get the effective timeout policy for a resource type."""
        if type_name in self.timeouts:
            return self.timeouts[type_name]
        return DEFAULT_TIMEOUTS.get(type_name, FALLBACK_TIMEOUT_POLICY)

    @classmethod
    def from_env(cls) -> ReconcilerConfig:
        """Load configuration from environment variables.

        Environment Variables:
            AWS_REGION: Region used to build the AWS clients (optional)
            LIFECYCLE_POLL_INTERVAL: Seconds between status polls (default: 10)
            LIFECYCLE_NOT_FOUND_CHECKS: Not-found reads tolerated after a
                create (default: 20)
            LIFECYCLE_MAX_MUTATION_RETRIES: Attempts for throttled mutating
                calls (default: 3)
            LIFECYCLE_RETRY_BACKOFF_BASE: Base backoff in seconds (default: 5)

        Timeout Variables (seconds, one per type and operation):
            LIFECYCLE_TIMEOUT_AWS_EKS_ADDON_CREATE
            LIFECYCLE_TIMEOUT_AWS_EKS_ADDON_UPDATE
            LIFECYCLE_TIMEOUT_AWS_EKS_ADDON_DELETE
            ... and likewise for every registered resource type.
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        timeouts: dict[str, TimeoutPolicy] = {}
        for type_name, default_policy in DEFAULT_TIMEOUTS.items():
            prefix = f"LIFECYCLE_TIMEOUT_{type_name.upper()}"
            policy = TimeoutPolicy(
                create=get_float(f"{prefix}_CREATE", default_policy.create),
                update=get_float(f"{prefix}_UPDATE", default_policy.update),
                delete=get_float(f"{prefix}_DELETE", default_policy.delete),
            )
            if policy != default_policy:
                timeouts[type_name] = policy

        return cls(
            region=os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION"),
            poll_interval_seconds=get_float(
                "LIFECYCLE_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            not_found_checks=get_int("LIFECYCLE_NOT_FOUND_CHECKS", DEFAULT_NOT_FOUND_CHECKS),
            max_mutation_retries=get_int(
                "LIFECYCLE_MAX_MUTATION_RETRIES", DEFAULT_MAX_MUTATION_RETRIES
            ),
            retry_backoff_base_seconds=get_float(
                "LIFECYCLE_RETRY_BACKOFF_BASE", RETRY_BACKOFF_BASE_SECONDS
            ),
            timeouts=timeouts,
        )
