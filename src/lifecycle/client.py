"""Remote client contract consumed by the reconciler.

Adapters wrap a blocking SDK client (boto3 for the AWS families). The
orchestrator runs every method in the default executor so polling many
resources does not block the event loop.

Adapters raise the transport's own errors; classification into an
ErrorKind is done by the predicate registered alongside the adapter.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from .errors import ErrorKind
from .models import DesiredState, ObservedState

ErrorClassifier = Callable[[BaseException], ErrorKind]


class RemoteClient(Protocol):
    """Capability set every resource family implements."""

    def create(self, desired: DesiredState) -> ObservedState:
        """Issue the create call and return the first observed state."""
        ...

    def describe(self, segments: Sequence[str]) -> ObservedState:
        """Read the resource; raise the transport's not-found error if absent."""
        ...

    def update(self, segments: Sequence[str], fields: Mapping[str, Any]) -> ObservedState:
        """Apply changed mutable fields."""
        ...

    def delete(self, segments: Sequence[str]) -> None:
        """Issue the delete call."""
        ...

    # Tag methods are only called for types registered with supports_tags;
    # adapters for untaggable families raise TypeError
    def list_tags(self, resource_arn: str) -> dict[str, str]: ...

    def tag_resource(self, resource_arn: str, tags: Mapping[str, str]) -> None: ...

    def untag_resource(self, resource_arn: str, tag_keys: Sequence[str]) -> None: ...
