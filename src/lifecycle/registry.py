"""Resource-type registry.

An explicit table from resource-type name to everything the reconciler
needs for that family: key codec, desired-state model, client factory,
error classifier, timeouts and tag support. Built once at
startup; there is no dynamic lookup beyond this mapping.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from . import eks_addon, vpc_endpoint, waf_web_acl
from .aws_errors import classify_aws_error
from .client import ErrorClassifier, RemoteClient
from .config import ReconcilerConfig, TimeoutPolicy
from .identifiers import ResourceKeyCodec
from .models import DesiredState, EksAddonSpec, VpcEndpointSpec, WebAclSpec


@dataclass(frozen=True)
class ResourceType:
    """Everything the orchestrator needs to manage one resource family."""

    name: str
    display_name: str
    codec: ResourceKeyCodec
    desired_model: type[DesiredState]
    client_factory: Callable[[Any], RemoteClient]
    classify_error: ErrorClassifier
    timeouts: TimeoutPolicy
    supports_tags: bool = True
    # Key segments assigned by the remote on create rather than by the caller
    remote_assigned_id: bool = False


def build_registry(config: ReconcilerConfig) -> dict[str, ResourceType]:
    """Build the resource-type table with timeouts from configuration."""
    types = [
        ResourceType(
            name=eks_addon.TYPE_NAME,
            display_name="EKS Add-On",
            codec=eks_addon.CODEC,
            desired_model=EksAddonSpec,
            client_factory=eks_addon.build_client,
            classify_error=classify_aws_error,
            timeouts=config.timeout_policy(eks_addon.TYPE_NAME),
        ),
        ResourceType(
            name=vpc_endpoint.TYPE_NAME,
            display_name="OpenSearch Serverless VPC Endpoint",
            codec=vpc_endpoint.CODEC,
            desired_model=VpcEndpointSpec,
            client_factory=vpc_endpoint.build_client,
            classify_error=classify_aws_error,
            timeouts=config.timeout_policy(vpc_endpoint.TYPE_NAME),
            supports_tags=False,
            remote_assigned_id=True,
        ),
        ResourceType(
            name=waf_web_acl.TYPE_NAME,
            display_name="Web ACL",
            codec=waf_web_acl.CODEC,
            desired_model=WebAclSpec,
            client_factory=waf_web_acl.build_client,
            classify_error=classify_aws_error,
            timeouts=config.timeout_policy(waf_web_acl.TYPE_NAME),
            remote_assigned_id=True,
        ),
    ]
    return {resource_type.name: resource_type for resource_type in types}


def get_resource_type(registry: dict[str, ResourceType], name: str) -> ResourceType:
    """Get a resource type by name.

    Raises:
        ValueError: If the type is not registered.
    """
    resource_type = registry.get(name)
    if resource_type is None:
        valid_types = sorted(registry)
        raise ValueError(f"Unknown resource type '{name}'. Valid types: {valid_types}")
    return resource_type
