"""Status polling for eventually-consistent remote resources.

All eventual-consistency waiting funnels through StatusWaiter: create and
update wait for the resource to become active, delete waits for it to be
absent. The waiter polls on a fixed interval against a wall-clock deadline
measured from the start of the wait.

Polling semantics:
- A status in `want` ends the wait successfully.
- A status in `fail` ends the wait immediately with RemoteFailureError.
- A not-found condition is success when waiting for ABSENT. Otherwise it is
  tolerated `not_found_checks` consecutive times (describe lagging behind a
  create), then raises ResourceNotFoundError.
- Throttling and other transient errors are logged and polling continues.
- Unclassified errors fail fast instead of looping on an unknown condition.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Collection
from typing import Any

from .client import ErrorClassifier
from .errors import (
    ConflictError,
    ErrorKind,
    OperationCanceledError,
    ReconcileError,
    RemoteCallError,
    RemoteFailureError,
    ResourceNotFoundError,
    WaitTimeoutError,
)
from .models import StatusClass

logger = logging.getLogger(__name__)


def _status_of(result: Any) -> tuple[StatusClass, str]:
    """Get (status class, raw status) from a fetch result.

    Fetch functions return either a bare StatusClass or an ObservedState.
    """
    if isinstance(result, StatusClass):
        return result, result.value
    return result.status_class, result.status


class StatusWaiter:
    """Poll a fetch function until a terminal status or a deadline.

    The clock and sleep functions are injectable so tests can drive the
    waiter without real delays.
    """

    def __init__(
        self,
        interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive: {interval_seconds}")
        self._interval = interval_seconds
        self._clock = clock
        self._sleep = sleep

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def wait_until(
        self,
        fetch: Callable[[], Awaitable[Any]],
        *,
        want: Collection[StatusClass],
        fail: Collection[StatusClass] = (),
        timeout_seconds: float,
        classify_error: ErrorClassifier,
        key: str | None = None,
        not_found_checks: int = 0,
        cancel_event: asyncio.Event | None = None,
    ) -> Any:
        """Poll until `fetch` reports a status in `want`.

        Args:
            fetch: Async callable returning a StatusClass or an ObservedState.
            want: Statuses that end the wait successfully.
            fail: Statuses that end the wait with RemoteFailureError.
            timeout_seconds: Wall-clock deadline from the start of the wait.
            classify_error: Maps errors raised by `fetch` to an ErrorKind.
            key: Resource key, used for log records and error annotation.
            not_found_checks: Consecutive not-found results tolerated when
                not waiting for ABSENT.
            cancel_event: Cancellation token; once set no further remote
                calls are issued.

        Returns:
            The last fetch result (the one whose status is in `want`).

        Raises:
            RemoteFailureError: A status in `fail` was observed.
            WaitTimeoutError: The deadline elapsed; carries the last status.
            ResourceNotFoundError: The resource vanished while waiting for
                anything but ABSENT.
            ConflictError: A fetch error was classified as a conflict.
            RemoteCallError: A fetch error could not be classified.
            OperationCanceledError: `cancel_event` was set.
        """
        waiting_for_absent = StatusClass.ABSENT in want
        deadline = self._clock() + timeout_seconds
        last_status: str | None = None
        not_found_seen = 0
        polls = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCanceledError("Wait canceled", key=key)

            polls += 1
            result: Any = None
            try:
                result = await fetch()
            except ReconcileError:
                raise
            except Exception as e:
                kind = classify_error(e)
                if kind == ErrorKind.NOT_FOUND:
                    result = StatusClass.ABSENT
                elif kind == ErrorKind.THROTTLED:
                    logger.warning(
                        "Transient error while polling, will retry",
                        extra={"key": key, "poll": polls, "error": str(e)},
                    )
                elif kind == ErrorKind.CONFLICT:
                    raise ConflictError(f"Conflict while polling: {e}", key=key) from e
                else:
                    raise RemoteCallError(f"Error while polling: {e}", key=key, kind=kind) from e

            if result is not None:
                status_class, status = _status_of(result)
                last_status = status

                logger.debug(
                    "Polled status",
                    extra={"key": key, "poll": polls, "status": status},
                )

                if status_class in want:
                    return result

                if status_class in fail:
                    raise RemoteFailureError(
                        f"Resource entered failure status {status}",
                        key=key,
                        status=status,
                    )

                if status_class == StatusClass.ABSENT and not waiting_for_absent:
                    not_found_seen += 1
                    if not_found_seen > not_found_checks:
                        raise ResourceNotFoundError(
                            "Resource not found while waiting", key=key
                        )
                else:
                    not_found_seen = 0

            # The next poll would land at or past the deadline
            if self._clock() + self._interval >= deadline:
                raise WaitTimeoutError(
                    f"Timed out after {timeout_seconds}s waiting for status "
                    f"{sorted(s.value for s in want)}, last status {last_status}",
                    key=key,
                    last_status=last_status,
                )

            await self._pause(cancel_event)

    async def _pause(self, cancel_event: asyncio.Event | None) -> None:
        """Suspend for one interval, waking early if cancellation is requested."""
        if cancel_event is None:
            await self._sleep(self._interval)
            return

        sleeper = asyncio.ensure_future(self._sleep(self._interval))
        canceler = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, canceler}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, canceler):
                task.cancel()
            await asyncio.gather(sleeper, canceler, return_exceptions=True)
