"""Classic WAF web ACL adapter.

Resource key: the web ACL id assigned by the service on create.

Every WAF mutation needs a fresh change token. A token superseded by a
concurrent change fails with WAFStaleDataException, which is classified as
throttled so the orchestrator retries the whole call with a new token.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .identifiers import ResourceKeyCodec
from .models import DesiredState, ObservedState, StatusClass, WebAclSpec

logger = logging.getLogger(__name__)

TYPE_NAME = "aws_waf_web_acl"

CODEC = ResourceKeyCodec(arity=1)

# Web ACLs have no lifecycle status; existence means usable
ACTIVE_STATUS = "ACTIVE"


def classify_status(status: str) -> StatusClass:
    if status == ACTIVE_STATUS:
        return StatusClass.ACTIVE
    return StatusClass.PENDING


def _to_tag_list(tags: Mapping[str, str]) -> list[dict[str, str]]:
    return [{"Key": k, "Value": v} for k, v in sorted(tags.items())]


class WebAclClient:
    """RemoteClient over a boto3 classic WAF client."""

    def __init__(self, waf: Any, codec: ResourceKeyCodec = CODEC) -> None:
        self._waf = waf
        self._codec = codec

    def _change_token(self) -> str:
        return self._waf.get_change_token()["ChangeToken"]

    def _observed(self, web_acl: dict[str, Any], tags: dict[str, str]) -> ObservedState:
        web_acl_id = web_acl["WebACLId"]
        return ObservedState(
            key=self._codec.encode(web_acl_id),
            segments=(web_acl_id,),
            status=ACTIVE_STATUS,
            status_class=classify_status(ACTIVE_STATUS),
            config={
                "name": web_acl.get("Name"),
                "metric_name": web_acl.get("MetricName"),
                "default_action": web_acl.get("DefaultAction", {}).get("Type"),
                "rule_count": len(web_acl.get("Rules") or []),
            },
            tags=tags,
            arn=web_acl.get("WebACLArn"),
        )

    def create(self, desired: DesiredState) -> ObservedState:
        if not isinstance(desired, WebAclSpec):
            raise TypeError(f"Expected WebAclSpec, got {type(desired).__name__}")

        params: dict[str, Any] = {
            "Name": desired.name,
            "MetricName": desired.metric_name,
            "DefaultAction": {"Type": desired.default_action.value},
            "ChangeToken": self._change_token(),
        }
        if desired.tags:
            params["Tags"] = _to_tag_list(desired.tags)

        logger.info("Creating WAF web ACL", extra={"web_acl_name": desired.name})
        response = self._waf.create_web_acl(**params)
        return self._observed(response["WebACL"], dict(desired.tags))

    def describe(self, segments: Sequence[str]) -> ObservedState:
        (web_acl_id,) = segments
        web_acl = self._waf.get_web_acl(WebACLId=web_acl_id)["WebACL"]
        arn = web_acl.get("WebACLArn")
        tags = self.list_tags(arn) if arn else {}
        return self._observed(web_acl, tags)

    def update(self, segments: Sequence[str], fields: Mapping[str, Any]) -> ObservedState:
        (web_acl_id,) = segments
        params: dict[str, Any] = {
            "WebACLId": web_acl_id,
            "ChangeToken": self._change_token(),
            "Updates": [],
        }
        if "default_action" in fields:
            params["DefaultAction"] = {"Type": fields["default_action"]}

        self._waf.update_web_acl(**params)
        return self.describe(segments)

    def delete(self, segments: Sequence[str]) -> None:
        """Detach all rules, then delete; WAF refuses to delete a non-empty ACL."""
        (web_acl_id,) = segments
        web_acl = self._waf.get_web_acl(WebACLId=web_acl_id)["WebACL"]

        rules = web_acl.get("Rules") or []
        if rules:
            logger.info(
                "Removing rules before deleting web ACL",
                extra={"web_acl_id": web_acl_id, "rule_count": len(rules)},
            )
            self._waf.update_web_acl(
                WebACLId=web_acl_id,
                ChangeToken=self._change_token(),
                Updates=[{"Action": "DELETE", "ActivatedRule": rule} for rule in rules],
            )

        self._waf.delete_web_acl(WebACLId=web_acl_id, ChangeToken=self._change_token())

    def list_tags(self, resource_arn: str) -> dict[str, str]:
        tags: dict[str, str] = {}
        params: dict[str, Any] = {"ResourceARN": resource_arn}
        while True:
            response = self._waf.list_tags_for_resource(**params)
            for tag in response.get("TagInfoForResource", {}).get("TagList") or []:
                tags[tag["Key"]] = tag["Value"]
            marker = response.get("NextMarker")
            if not marker:
                return tags
            params["NextMarker"] = marker

    def tag_resource(self, resource_arn: str, tags: Mapping[str, str]) -> None:
        self._waf.tag_resource(ResourceARN=resource_arn, Tags=_to_tag_list(tags))

    def untag_resource(self, resource_arn: str, tag_keys: Sequence[str]) -> None:
        self._waf.untag_resource(ResourceARN=resource_arn, TagKeys=list(tag_keys))


def build_client(session: Any) -> WebAclClient:
    """Create the adapter from a boto3 session."""
    return WebAclClient(session.client("waf"))
