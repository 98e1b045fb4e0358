"""Lifecycle orchestration for asynchronous remote resources.

Each public method is one synchronous reconciliation step driven by the
caller; nothing runs in the background. The per-resource state machine is:

    Absent -> Creating -> Active -> Updating -> Active -> Deleting -> Absent

with Failed reachable from Creating, Updating and Deleting on a terminal
remote status.

ARCHITECTURE:
- Blocking SDK calls run in the default executor so concurrent
  reconciliations of different keys share one event loop.
- All eventual-consistency waiting goes through StatusWaiter.
- Throttled single calls are retried with exponential backoff and jitter,
  bounded by ReconcilerConfig.max_mutation_retries.
- The orchestrator assumes it is the only mutator of a key while an
  operation runs; callers needing that guarantee serialize per key.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from .client import RemoteClient
from .config import ReconcilerConfig
from .errors import (
    ConflictError,
    ErrorKind,
    InvalidSegmentError,
    OperationCanceledError,
    ReconcileError,
    RemoteCallError,
    RemoteFailureError,
    ResourceNotFoundError,
    ThrottledError,
    WaitTimeoutError,
)
from .models import DesiredState, ObservedState, StatusClass, diff_mutable_fields
from .registry import ResourceType
from .tags import TagReconciler
from .waiter import StatusWaiter

logger = logging.getLogger(__name__)


class LifecyclePhase(str, Enum):
    """Phases of the per-resource state machine."""

    ABSENT = "Absent"
    CREATING = "Creating"
    ACTIVE = "Active"
    UPDATING = "Updating"
    DELETING = "Deleting"
    FAILED = "Failed"


class LifecycleOrchestrator:
    """Create, read, update, delete and import resources of one type.

    The remote client is passed in explicitly; the orchestrator holds no
    state between calls beyond its collaborators.
    """

    def __init__(
        self,
        resource_type: ResourceType,
        client: RemoteClient,
        config: ReconcilerConfig,
        *,
        waiter: StatusWaiter | None = None,
        tag_reconciler: TagReconciler | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._type = resource_type
        self._client = client
        self._config = config
        self._waiter = waiter or StatusWaiter(config.poll_interval_seconds)
        self._tags = tag_reconciler or TagReconciler()
        self._sleep = sleep

    @property
    def resource_type(self) -> ResourceType:
        return self._type

    async def create(
        self,
        desired: DesiredState,
        *,
        timeout_seconds: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ObservedState:
        """Create the resource and wait until it is active.

        An "already exists" response is a fatal ConflictError, never retried.
        On WaitTimeoutError or RemoteFailureError the remote resource may be
        left behind; the caller decides whether to retry or tear down.
        """
        self._check_desired(desired)

        key: str | None = None
        if not self._type.remote_assigned_id:
            key = self._type.codec.encode(*desired.key_segments())

        self._log_phase(LifecyclePhase.CREATING, key)
        created = await self._invoke(
            "create", key, self._client.create, desired, cancel_event=cancel_event
        )
        key = created.key
        segments = created.segments

        timeout = self._type.timeouts.create if timeout_seconds is None else timeout_seconds
        observed = await self._wait(
            "create",
            key,
            segments,
            want={StatusClass.ACTIVE},
            timeout_seconds=timeout,
            not_found_checks=self._config.not_found_checks,
            cancel_event=cancel_event,
        )
        self._log_phase(LifecyclePhase.ACTIVE, key)
        return observed

    async def read(self, key: str) -> ObservedState | None:
        """Describe the resource.

        Returns:
            The observed state, or None when the resource does not exist
            (drift to absent, not a failure).
        """
        segments = self._type.codec.decode(key)
        try:
            return await self._invoke("read", key, self._client.describe, segments)
        except ResourceNotFoundError:
            logger.info(
                "Resource not found",
                extra={"resource_type": self._type.name, "key": key},
            )
            return None

    async def update(
        self,
        key: str,
        desired: DesiredState,
        *,
        timeout_seconds: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ObservedState:
        """Converge an existing resource on the desired state.

        Only changed mutable fields are sent; identical fields issue no
        update call. Tags are reconciled separately afterwards.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
        """
        self._check_desired(desired)
        segments = self._type.codec.decode(key)

        if not self._type.remote_assigned_id and tuple(desired.key_segments()) != segments:
            raise InvalidSegmentError(
                f"Desired identity {desired.key_segments()} does not match key", key=key
            )

        observed = await self._invoke("read", key, self._client.describe, segments)
        changed = diff_mutable_fields(desired, observed)

        if changed:
            self._log_phase(LifecyclePhase.UPDATING, key, fields=sorted(changed))
            await self._invoke(
                "update", key, self._client.update, segments, changed, cancel_event=cancel_event
            )
            timeout = self._type.timeouts.update if timeout_seconds is None else timeout_seconds
            observed = await self._wait(
                "update",
                key,
                segments,
                want={StatusClass.ACTIVE},
                timeout_seconds=timeout,
                cancel_event=cancel_event,
            )
            self._log_phase(LifecyclePhase.ACTIVE, key)
        else:
            logger.info(
                "No configuration drift, skipping update call",
                extra={"resource_type": self._type.name, "key": key},
            )

        if self._type.supports_tags and observed.arn:
            self._check_canceled(key, cancel_event)
            diff = await self._tags.reconcile(
                self._client, key, observed.arn, desired.tags, observed.tags
            )
            if not diff.is_empty:
                observed = await self._invoke("read", key, self._client.describe, segments)

        return observed

    async def delete(
        self,
        key: str,
        *,
        timeout_seconds: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Delete the resource and wait until it is gone.

        Deleting a resource that does not exist succeeds.
        """
        segments = self._type.codec.decode(key)

        self._log_phase(LifecyclePhase.DELETING, key)
        try:
            await self._invoke(
                "delete", key, self._client.delete, segments, cancel_event=cancel_event
            )
        except ResourceNotFoundError:
            self._log_phase(LifecyclePhase.ABSENT, key, already_absent=True)
            return

        timeout = self._type.timeouts.delete if timeout_seconds is None else timeout_seconds
        await self._wait(
            "delete",
            key,
            segments,
            want={StatusClass.ABSENT},
            timeout_seconds=timeout,
            cancel_event=cancel_event,
        )
        self._log_phase(LifecyclePhase.ABSENT, key)

    async def import_resource(self, raw_key: str) -> ObservedState:
        """Adopt an existing resource by its persisted identifier.

        Raises:
            MalformedKeyError: If the identifier does not decode.
            ResourceNotFoundError: If the decoded key does not resolve.
        """
        self._type.codec.decode(raw_key)
        observed = await self.read(raw_key)
        if observed is None:
            raise ResourceNotFoundError(
                f"Cannot import {self._type.display_name}: resource does not exist", key=raw_key
            )

        logger.info(
            "Imported resource",
            extra={"resource_type": self._type.name, "key": raw_key, "status": observed.status},
        )
        return observed

    def _check_desired(self, desired: DesiredState) -> None:
        if not isinstance(desired, self._type.desired_model):
            raise TypeError(
                f"{self._type.name} expects {self._type.desired_model.__name__}, "
                f"got {type(desired).__name__}"
            )

    def _check_canceled(self, key: str | None, cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCanceledError("Operation canceled", key=key)

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking client call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    async def _invoke(
        self,
        operation: str,
        key: str | None,
        fn: Callable[..., Any],
        *args: Any,
        cancel_event: asyncio.Event | None = None,
    ) -> Any:
        """Issue one remote call, retrying throttled attempts with backoff.

        Raises:
            ResourceNotFoundError: The remote reported not found.
            ConflictError: The remote reported a conflicting state.
            ThrottledError: Still throttled after all attempts.
            RemoteCallError: Any other remote error (fails fast).
        """
        max_attempts = self._config.max_mutation_retries

        for attempt in range(1, max_attempts + 1):
            self._check_canceled(key, cancel_event)
            try:
                return await self._call(fn, *args)
            except ReconcileError:
                raise
            except Exception as e:
                kind = self._type.classify_error(e)

                if kind == ErrorKind.NOT_FOUND:
                    raise ResourceNotFoundError(
                        f"{self._type.display_name} not found during {operation}", key=key
                    ) from e

                if kind == ErrorKind.CONFLICT:
                    raise ConflictError(
                        f"{self._type.display_name} {operation} conflicts with remote state: {e}",
                        key=key,
                    ) from e

                if kind != ErrorKind.THROTTLED:
                    raise RemoteCallError(
                        f"{self._type.display_name} {operation} failed: {e}", key=key, kind=kind
                    ) from e

                if attempt == max_attempts:
                    raise ThrottledError(
                        f"{self._type.display_name} {operation} still throttled after "
                        f"{max_attempts} attempts: {e}",
                        key=key,
                    ) from e

                # Exponential backoff with jitter
                backoff = self._config.retry_backoff_base_seconds * (2 ** (attempt - 1))
                jitter = random.uniform(0, backoff * 0.2)
                wait_time = backoff + jitter

                logger.warning(
                    "Remote call throttled, retrying",
                    extra={
                        "operation": operation,
                        "key": key,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "wait_seconds": wait_time,
                        "error": str(e),
                    },
                )
                await self._sleep(wait_time)

        raise AssertionError("unreachable: retry loop always returns or raises")

    async def _wait(
        self,
        operation: str,
        key: str,
        segments: tuple[str, ...],
        *,
        want: set[StatusClass],
        timeout_seconds: float,
        not_found_checks: int = 0,
        cancel_event: asyncio.Event | None = None,
    ) -> Any:
        """Poll describe until a status in `want`, logging terminal outcomes."""

        async def fetch() -> ObservedState:
            return await self._call(self._client.describe, segments)

        try:
            return await self._waiter.wait_until(
                fetch,
                want=want,
                fail={StatusClass.FAILED},
                timeout_seconds=timeout_seconds,
                classify_error=self._type.classify_error,
                key=key,
                not_found_checks=not_found_checks,
                cancel_event=cancel_event,
            )
        except RemoteFailureError as e:
            self._log_phase(LifecyclePhase.FAILED, key, operation=operation, status=e.status)
            raise
        except WaitTimeoutError as e:
            logger.error(
                "Timed out waiting for resource",
                extra={
                    "resource_type": self._type.name,
                    "key": key,
                    "operation": operation,
                    "timeout_seconds": timeout_seconds,
                    "last_status": e.last_status,
                },
            )
            raise
        except OperationCanceledError:
            logger.info(
                "Wait canceled",
                extra={"resource_type": self._type.name, "key": key, "operation": operation},
            )
            raise

    def _log_phase(self, phase: LifecyclePhase, key: str | None, **fields: Any) -> None:
        extra = {"resource_type": self._type.name, "key": key, "phase": phase.value, **fields}
        if phase == LifecyclePhase.FAILED:
            logger.error("Resource entered failed state", extra=extra)
        else:
            logger.info("Lifecycle transition", extra=extra)
