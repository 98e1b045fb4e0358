"""OpenSearch Serverless VPC endpoint adapter.

Resource key: the endpoint id assigned by the service on create.

BatchGetVpcEndpoint reports unknown ids in vpcEndpointErrorDetails instead
of raising, so describe turns that into a ResourceNotFoundException
ClientError to keep error classification uniform.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from botocore.exceptions import ClientError

from .identifiers import ResourceKeyCodec
from .models import DesiredState, ObservedState, StatusClass, VpcEndpointSpec

logger = logging.getLogger(__name__)

TYPE_NAME = "aws_opensearchserverless_vpc_endpoint"

CODEC = ResourceKeyCodec(arity=1)

_STATUS_CLASSES: dict[str, StatusClass] = {
    "PENDING": StatusClass.PENDING,
    "DELETING": StatusClass.PENDING,
    "ACTIVE": StatusClass.ACTIVE,
    "FAILED": StatusClass.FAILED,
}


def classify_status(status: str) -> StatusClass:
    """Map a VPC endpoint status; unknown statuses keep the poller waiting."""
    return _STATUS_CLASSES.get(status, StatusClass.PENDING)


_NO_TAGS = "OpenSearch Serverless VPC endpoints do not support tags"


def _not_found(message: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": message}},
        "BatchGetVpcEndpoint",
    )


class VpcEndpointClient:
    """RemoteClient over a boto3 opensearchserverless client."""

    def __init__(self, aoss: Any, codec: ResourceKeyCodec = CODEC) -> None:
        self._aoss = aoss
        self._codec = codec

    def _observed(self, detail: dict[str, Any]) -> ObservedState:
        endpoint_id = detail["id"]
        status = detail.get("status", "")
        config = {
            "name": detail.get("name"),
            "vpc_id": detail.get("vpcId"),
            "subnet_ids": sorted(detail.get("subnetIds") or []),
            "security_group_ids": sorted(detail.get("securityGroupIds") or []),
        }
        return ObservedState(
            key=self._codec.encode(endpoint_id),
            segments=(endpoint_id,),
            status=status,
            status_class=classify_status(status),
            config=config,
        )

    def create(self, desired: DesiredState) -> ObservedState:
        if not isinstance(desired, VpcEndpointSpec):
            raise TypeError(f"Expected VpcEndpointSpec, got {type(desired).__name__}")

        params: dict[str, Any] = {
            "name": desired.name,
            "vpcId": desired.vpc_id,
            "subnetIds": list(desired.subnet_ids),
            "clientToken": str(uuid.uuid4()),
        }
        if desired.security_group_ids:
            params["securityGroupIds"] = list(desired.security_group_ids)

        logger.info("Creating VPC endpoint", extra={"endpoint_name": desired.name})
        response = self._aoss.create_vpc_endpoint(**params)
        detail = response["createVpcEndpointDetail"]
        # Create only echoes id, name and status
        return self._observed(
            {
                **detail,
                "vpcId": desired.vpc_id,
                "subnetIds": desired.subnet_ids,
                "securityGroupIds": desired.security_group_ids or [],
            }
        )

    def describe(self, segments: Sequence[str]) -> ObservedState:
        (endpoint_id,) = segments
        response = self._aoss.batch_get_vpc_endpoint(ids=[endpoint_id])

        for detail in response.get("vpcEndpointDetails") or []:
            if detail.get("id") == endpoint_id:
                return self._observed(detail)

        message = f"VPC endpoint {endpoint_id} not found"
        for error in response.get("vpcEndpointErrorDetails") or []:
            if error.get("id") == endpoint_id and error.get("errorMessage"):
                message = error["errorMessage"]
        raise _not_found(message)

    def update(self, segments: Sequence[str], fields: Mapping[str, Any]) -> ObservedState:
        (endpoint_id,) = segments
        current = self.describe(segments)
        params: dict[str, Any] = {"id": endpoint_id, "clientToken": str(uuid.uuid4())}

        if "subnet_ids" in fields:
            before = set(current.config.get("subnet_ids") or [])
            after = set(fields["subnet_ids"])
            if after - before:
                params["addSubnetIds"] = sorted(after - before)
            if before - after:
                params["removeSubnetIds"] = sorted(before - after)

        if "security_group_ids" in fields:
            before = set(current.config.get("security_group_ids") or [])
            after = set(fields["security_group_ids"])
            if after - before:
                params["addSecurityGroupIds"] = sorted(after - before)
            if before - after:
                params["removeSecurityGroupIds"] = sorted(before - after)

        self._aoss.update_vpc_endpoint(**params)
        return self.describe(segments)

    def delete(self, segments: Sequence[str]) -> None:
        (endpoint_id,) = segments
        self._aoss.delete_vpc_endpoint(id=endpoint_id, clientToken=str(uuid.uuid4()))

    def list_tags(self, resource_arn: str) -> dict[str, str]:
        raise TypeError(_NO_TAGS)

    def tag_resource(self, resource_arn: str, tags: Mapping[str, str]) -> None:
        raise TypeError(_NO_TAGS)

    def untag_resource(self, resource_arn: str, tag_keys: Sequence[str]) -> None:
        raise TypeError(_NO_TAGS)


def build_client(session: Any) -> VpcEndpointClient:
    """Create the adapter from a boto3 session."""
    return VpcEndpointClient(session.client("opensearchserverless"))
