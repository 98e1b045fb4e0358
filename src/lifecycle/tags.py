"""Tag reconciliation.

Computes the minimal change between desired and observed tags and applies
it with at most one batched tag call and one batched untag call. Changed
values are folded into the tag call since the AWS tagging APIs upsert.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from .client import RemoteClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagDiff:
    """Tag changes needed to converge observed tags on desired tags."""

    to_add: dict[str, str] = field(default_factory=dict)
    to_update: dict[str, str] = field(default_factory=dict)
    to_remove: list[str] = field(default_factory=list)

    @property
    def to_set(self) -> dict[str, str]:
        """Keys to add or overwrite in a single upsert call."""
        return {**self.to_add, **self.to_update}

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_update or self.to_remove)


def compute_tag_diff(desired: Mapping[str, str], observed: Mapping[str, str]) -> TagDiff:
    """Split the difference into disjoint add, update and remove sets."""
    to_add = {k: v for k, v in desired.items() if k not in observed}
    to_update = {k: v for k, v in desired.items() if k in observed and observed[k] != v}
    to_remove = sorted(k for k in observed if k not in desired)
    return TagDiff(to_add=to_add, to_update=to_update, to_remove=to_remove)


class TagReconciler:
    """Apply a TagDiff through a remote client."""

    async def reconcile(
        self,
        client: RemoteClient,
        key: str,
        resource_arn: str,
        desired: Mapping[str, str],
        observed: Mapping[str, str],
    ) -> TagDiff:
        """Converge remote tags on `desired`.

        The add/overwrite and remove sets are disjoint, so the two calls are
        independent. Empty sets issue no call.

        Raises:
            Exception: Any remote error, unmodified, with a note naming the
                resource key.
        """
        diff = compute_tag_diff(desired, observed)
        if diff.is_empty:
            return diff

        logger.info(
            "Reconciling tags",
            extra={
                "key": key,
                "tags_added": sorted(diff.to_add),
                "tags_updated": sorted(diff.to_update),
                "tags_removed": diff.to_remove,
            },
        )

        loop = asyncio.get_running_loop()
        try:
            if diff.to_set:
                await loop.run_in_executor(
                    None, functools.partial(client.tag_resource, resource_arn, diff.to_set)
                )
            if diff.to_remove:
                await loop.run_in_executor(
                    None, functools.partial(client.untag_resource, resource_arn, diff.to_remove)
                )
        except Exception as e:
            e.add_note(f"while reconciling tags of resource {key}")
            raise

        return diff
