"""EKS add-on adapter.

Resource key: "<cluster-name>:<addon-name>".

The conflict-resolution policy is write-only: DescribeAddon never returns
it, so it is sent with create/update but never compared.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .identifiers import ResourceKeyCodec
from .models import DesiredState, EksAddonSpec, ObservedState, StatusClass

logger = logging.getLogger(__name__)

TYPE_NAME = "aws_eks_addon"

CODEC = ResourceKeyCodec(arity=2)

_STATUS_CLASSES: dict[str, StatusClass] = {
    "CREATING": StatusClass.PENDING,
    "UPDATING": StatusClass.PENDING,
    "DELETING": StatusClass.PENDING,
    "ACTIVE": StatusClass.ACTIVE,
    "CREATE_FAILED": StatusClass.FAILED,
    "UPDATE_FAILED": StatusClass.FAILED,
    "DELETE_FAILED": StatusClass.FAILED,
    "DEGRADED": StatusClass.FAILED,
}

# Mutable field name -> EKS API parameter
_API_FIELDS = {
    "addon_version": "addonVersion",
    "service_account_role_arn": "serviceAccountRoleArn",
    "resolve_conflicts": "resolveConflicts",
}


def classify_status(status: str) -> StatusClass:
    """Map an EKS add-on status; unknown statuses keep the poller waiting."""
    return _STATUS_CLASSES.get(status, StatusClass.PENDING)


class EksAddonClient:
    """RemoteClient over a boto3 EKS client."""

    def __init__(self, eks: Any, codec: ResourceKeyCodec = CODEC) -> None:
        self._eks = eks
        self._codec = codec

    def _observed(self, addon: dict[str, Any]) -> ObservedState:
        cluster_name = addon["clusterName"]
        addon_name = addon["addonName"]
        status = addon.get("status", "")

        config: dict[str, Any] = {}
        if addon.get("addonVersion") is not None:
            config["addon_version"] = addon["addonVersion"]
        if addon.get("serviceAccountRoleArn") is not None:
            config["service_account_role_arn"] = addon["serviceAccountRoleArn"]
        issues = addon.get("health", {}).get("issues", [])
        if issues:
            config["health_issues"] = [
                f"{issue.get('code')}: {issue.get('message')}" for issue in issues
            ]

        return ObservedState(
            key=self._codec.encode(cluster_name, addon_name),
            segments=(cluster_name, addon_name),
            status=status,
            status_class=classify_status(status),
            config=config,
            tags=addon.get("tags") or {},
            arn=addon.get("addonArn"),
        )

    def create(self, desired: DesiredState) -> ObservedState:
        if not isinstance(desired, EksAddonSpec):
            raise TypeError(f"Expected EksAddonSpec, got {type(desired).__name__}")

        params: dict[str, Any] = {
            "clusterName": desired.cluster_name,
            "addonName": desired.addon_name,
        }
        for name, value in desired.mutable_fields().items():
            params[_API_FIELDS[name]] = value
        if desired.tags:
            params["tags"] = dict(desired.tags)

        logger.info(
            "Creating EKS add-on",
            extra={"cluster_name": desired.cluster_name, "addon_name": desired.addon_name},
        )
        response = self._eks.create_addon(**params)
        return self._observed(response["addon"])

    def describe(self, segments: Sequence[str]) -> ObservedState:
        cluster_name, addon_name = segments
        response = self._eks.describe_addon(clusterName=cluster_name, addonName=addon_name)
        return self._observed(response["addon"])

    def update(self, segments: Sequence[str], fields: Mapping[str, Any]) -> ObservedState:
        cluster_name, addon_name = segments
        params: dict[str, Any] = {"clusterName": cluster_name, "addonName": addon_name}
        for name, value in fields.items():
            params[_API_FIELDS[name]] = value

        response = self._eks.update_addon(**params)
        logger.info(
            "Started EKS add-on update",
            extra={
                "cluster_name": cluster_name,
                "addon_name": addon_name,
                "update_id": response.get("update", {}).get("id"),
                "fields": sorted(fields),
            },
        )
        return self.describe(segments)

    def delete(self, segments: Sequence[str]) -> None:
        cluster_name, addon_name = segments
        self._eks.delete_addon(clusterName=cluster_name, addonName=addon_name)

    def list_tags(self, resource_arn: str) -> dict[str, str]:
        response = self._eks.list_tags_for_resource(resourceArn=resource_arn)
        return response.get("tags") or {}

    def tag_resource(self, resource_arn: str, tags: Mapping[str, str]) -> None:
        self._eks.tag_resource(resourceArn=resource_arn, tags=dict(tags))

    def untag_resource(self, resource_arn: str, tag_keys: Sequence[str]) -> None:
        self._eks.untag_resource(resourceArn=resource_arn, tagKeys=list(tag_keys))


def build_client(session: Any) -> EksAddonClient:
    """Create the adapter from a boto3 session."""
    return EksAddonClient(session.client("eks"))
