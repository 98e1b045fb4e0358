"""Pydantic models for desired and observed resource state.

These models provide:
1. Type-safe parsing of desired-state documents
2. Validation at the boundary (fail fast, fail loudly)
3. A uniform view of identity, mutable fields and tags for the reconciler
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Tag limits shared by the AWS tagging APIs
MAX_TAGS_PER_RESOURCE = 50
MAX_TAG_KEY_LENGTH = 128
MAX_TAG_VALUE_LENGTH = 256
RESERVED_TAG_PREFIX = "aws:"


class StatusClass(str, Enum):
    """Abstract status every resource-specific status collapses into."""

    PENDING = "pending"  # Mutation in flight
    ACTIVE = "active"  # Stable, usable
    FAILED = "failed"  # Degraded or failed, terminal
    ABSENT = "absent"  # Resource does not exist


# =============================================================================
# Desired State
# =============================================================================


class DesiredState(BaseModel):
    """Base desired state with the fields every resource type shares."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    # Mutable fields the remote never echoes back; sent on update, never diffed
    write_only_fields: ClassVar[frozenset[str]] = frozenset()

    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: dict[str, str]) -> dict[str, str]:
        if len(v) > MAX_TAGS_PER_RESOURCE:
            raise ValueError(f"at most {MAX_TAGS_PER_RESOURCE} tags are allowed")
        for key, value in v.items():
            if not key or len(key) > MAX_TAG_KEY_LENGTH:
                raise ValueError(f"tag key must be 1-{MAX_TAG_KEY_LENGTH} characters: {key!r}")
            if key.lower().startswith(RESERVED_TAG_PREFIX):
                raise ValueError(f"tag key uses reserved prefix '{RESERVED_TAG_PREFIX}': {key}")
            if len(value) > MAX_TAG_VALUE_LENGTH:
                raise ValueError(f"tag value for {key} exceeds {MAX_TAG_VALUE_LENGTH} characters")
        return v

    def key_segments(self) -> tuple[str, ...]:
        """Identifying segments, in key order."""
        raise NotImplementedError("Subclasses must implement key_segments")

    def mutable_fields(self) -> dict[str, Any]:
        """Configuration fields that can change in place.

        Fields left unset are omitted so a server-side default is never
        reported as drift.
        """
        raise NotImplementedError("Subclasses must implement mutable_fields")


class ResolveConflicts(str, Enum):
    """How EKS resolves field conflicts with an existing add-on configuration."""

    NONE = "NONE"
    OVERWRITE = "OVERWRITE"
    PRESERVE = "PRESERVE"


class EksAddonSpec(DesiredState):
    """Managed Kubernetes add-on attached to an EKS cluster."""

    write_only_fields: ClassVar[frozenset[str]] = frozenset({"resolve_conflicts"})

    cluster_name: Annotated[str, Field(min_length=1, max_length=100, alias="clusterName")]
    addon_name: Annotated[str, Field(min_length=1, alias="addonName")]
    addon_version: str | None = Field(None, alias="addonVersion")
    resolve_conflicts: ResolveConflicts | None = Field(None, alias="resolveConflicts")
    service_account_role_arn: str | None = Field(None, alias="serviceAccountRoleArn")

    @field_validator("service_account_role_arn")
    @classmethod
    def validate_role_arn(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith("arn:"):
            raise ValueError("serviceAccountRoleArn must be an IAM role ARN")
        return v

    def key_segments(self) -> tuple[str, ...]:
        return (self.cluster_name, self.addon_name)

    def mutable_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.addon_version is not None:
            fields["addon_version"] = self.addon_version
        if self.service_account_role_arn is not None:
            fields["service_account_role_arn"] = self.service_account_role_arn
        if self.resolve_conflicts is not None:
            fields["resolve_conflicts"] = self.resolve_conflicts.value
        return fields


class VpcEndpointSpec(DesiredState):
    """OpenSearch Serverless VPC endpoint.

    The endpoint id is assigned by the remote on create, so the desired state
    only carries it for update/delete (from the persisted key).
    """

    endpoint_id: str | None = Field(None, alias="id")
    name: Annotated[str, Field(min_length=3, max_length=32)]
    vpc_id: Annotated[str, Field(min_length=1, alias="vpcId")]
    subnet_ids: list[str] = Field(alias="subnetIds", min_length=1, max_length=6)
    # None leaves the VPC default security group assigned by AWS in place
    security_group_ids: list[str] | None = Field(None, alias="securityGroupIds", max_length=5)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v[0].isalpha() or not all(c.islower() or c.isdigit() or c == "-" for c in v):
            raise ValueError("name must start with a letter and contain only a-z, 0-9 and -")
        return v

    @field_validator("tags")
    @classmethod
    def reject_tags(cls, v: dict[str, str]) -> dict[str, str]:
        if v:
            raise ValueError("VPC endpoints do not support tags")
        return v

    def key_segments(self) -> tuple[str, ...]:
        if self.endpoint_id is None:
            raise ValueError("VPC endpoint id is assigned by the remote on create")
        return (self.endpoint_id,)

    def mutable_fields(self) -> dict[str, Any]:
        # Order is irrelevant remotely; compare as sorted lists
        fields: dict[str, Any] = {"subnet_ids": sorted(self.subnet_ids)}
        if self.security_group_ids is not None:
            fields["security_group_ids"] = sorted(self.security_group_ids)
        return fields


class WafAction(str, Enum):
    """Web ACL default action."""

    ALLOW = "ALLOW"
    BLOCK = "BLOCK"
    COUNT = "COUNT"


class WebAclSpec(DesiredState):
    """Classic WAF web ACL."""

    web_acl_id: str | None = Field(None, alias="id")
    name: Annotated[str, Field(min_length=1, max_length=128)]
    metric_name: Annotated[str, Field(min_length=1, max_length=128, alias="metricName")]
    default_action: WafAction = Field(WafAction.ALLOW, alias="defaultAction")

    @field_validator("metric_name")
    @classmethod
    def validate_metric_name(cls, v: str) -> str:
        if not v.isalnum():
            raise ValueError("metricName must be alphanumeric")
        return v

    def key_segments(self) -> tuple[str, ...]:
        if self.web_acl_id is None:
            raise ValueError("web ACL id is assigned by the remote on create")
        return (self.web_acl_id,)

    def mutable_fields(self) -> dict[str, Any]:
        return {"default_action": self.default_action.value}


# =============================================================================
# Observed State
# =============================================================================


class ObservedState(BaseModel):
    """Last-fetched remote representation of a resource.

    Produced only by adapter reads; never built from desired state.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    segments: tuple[str, ...]
    status: str
    status_class: StatusClass
    config: dict[str, Any] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)
    arn: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status_class == StatusClass.ACTIVE


def diff_mutable_fields(desired: DesiredState, observed: ObservedState) -> dict[str, Any]:
    """Get the mutable fields whose desired value differs from the observed one.

    Write-only fields are not compared; they ride along with any real change.
    """
    wanted = desired.mutable_fields()
    changed = {
        name: value
        for name, value in wanted.items()
        if name not in desired.write_only_fields and observed.config.get(name) != value
    }

    if changed:
        for name in desired.write_only_fields:
            if name in wanted:
                changed[name] = wanted[name]

    return changed
