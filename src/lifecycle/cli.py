"""Lifecycle CLI.

Runs single reconciliation steps against real AWS resources. Deciding
whether to create, update or delete is left to the caller.

Usage:
    lifecycle types                               # List resource types
    lifecycle create -f addon.yaml                # Create and wait until active
    lifecycle update prod:vpc-cni -f addon.yaml   # Converge an existing resource
    lifecycle read aws_eks_addon prod:vpc-cni     # Describe (exit 3 if absent)
    lifecycle import aws_eks_addon prod:vpc-cni   # Validate and adopt an identifier
    lifecycle delete aws_eks_addon prod:vpc-cni   # Delete and wait until gone

Exit codes: 0 success, 1 operation failure, 2 configuration or input
error, 3 resource not found.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, NoReturn

import boto3
import click

from .config import ConfigurationError, ReconcilerConfig
from .errors import (
    InvalidSegmentError,
    MalformedKeyError,
    OperationCanceledError,
    ReconcileError,
    ResourceNotFoundError,
)
from .main import run_cancellable, setup_logging
from .models import ObservedState
from .orchestrator import LifecycleOrchestrator
from .registry import ResourceType, build_registry, get_resource_type
from .spec_loader import SpecLoadError, load_desired_state

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_NOT_FOUND = 3

logger = logging.getLogger(__name__)


class CliState:
    """Objects shared by all commands of one invocation."""

    def __init__(
        self,
        config: ReconcilerConfig,
        client_factory: Callable[[ResourceType], Any] | None = None,
    ) -> None:
        self.config = config
        self.registry = build_registry(config)
        self._client_factory = client_factory

    def orchestrator(self, resource_type: ResourceType) -> LifecycleOrchestrator:
        if self._client_factory is not None:
            client = self._client_factory(resource_type)
        else:
            session = boto3.Session(region_name=self.config.region)
            client = resource_type.client_factory(session)
        return LifecycleOrchestrator(resource_type, client, self.config)


def _fail(message: str, code: int) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(code)


def _emit(observed: ObservedState) -> None:
    click.echo(observed.model_dump_json(indent=2))


def _run(operation: Callable[[asyncio.Event], Awaitable[Any]]) -> Any:
    """Run an async operation, mapping reconciler errors to exit codes."""
    try:
        return asyncio.run(run_cancellable(operation))
    except (MalformedKeyError, InvalidSegmentError) as e:
        _fail(str(e), EXIT_USAGE)
    except ResourceNotFoundError as e:
        _fail(str(e), EXIT_NOT_FOUND)
    except OperationCanceledError as e:
        logger.info("Operation canceled", extra={"key": e.key})
        _fail(str(e), EXIT_FAILURE)
    except ReconcileError as e:
        logger.error(
            "Operation failed",
            extra={"error": str(e), "error_type": type(e).__name__, "key": e.key},
        )
        _fail(str(e), EXIT_FAILURE)
    except Exception as e:
        # Raw transport errors, e.g. from tag reconciliation
        logger.error(
            "Operation failed with unexpected error",
            extra={"error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        _fail(str(e), EXIT_FAILURE)


def _resource_type(state: CliState, type_name: str) -> ResourceType:
    try:
        return get_resource_type(state.registry, type_name)
    except ValueError as e:
        _fail(str(e), EXIT_USAGE)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"]),
    default="json",
    show_default=True,
    help="Log record format on stderr.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_format: str) -> None:
    """Reconcile eventually-consistent AWS resources one step at a time."""
    # An embedding host that passes its own state also owns logging
    if isinstance(ctx.obj, CliState):
        return

    setup_logging(logging.DEBUG if verbose else logging.INFO, json_output=log_format == "json")

    try:
        config = ReconcilerConfig.from_env()
    except ConfigurationError as e:
        _fail(str(e), EXIT_USAGE)

    ctx.obj = CliState(config)


@cli.command("types")
@click.pass_obj
def list_types(state: CliState) -> None:
    """List the supported resource types."""
    for name, resource_type in sorted(state.registry.items()):
        timeouts = resource_type.timeouts
        click.echo(
            f"{name:<42} {resource_type.display_name:<36} "
            f"create={timeouts.create:.0f}s update={timeouts.update:.0f}s "
            f"delete={timeouts.delete:.0f}s"
        )


@cli.command()
@click.option(
    "--file",
    "-f",
    "spec_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Desired-state YAML file.",
)
@click.option("--timeout", type=float, default=None, help="Override the wait timeout (seconds).")
@click.pass_obj
def create(state: CliState, spec_file: Path, timeout: float | None) -> None:
    """Create a resource and wait until it is active."""
    try:
        resource_type, desired = load_desired_state(spec_file, state.registry)
    except SpecLoadError as e:
        _fail(str(e), EXIT_USAGE)

    orchestrator = state.orchestrator(resource_type)
    observed = _run(
        lambda cancel: orchestrator.create(desired, timeout_seconds=timeout, cancel_event=cancel)
    )
    _emit(observed)


@cli.command()
@click.argument("key")
@click.option(
    "--file",
    "-f",
    "spec_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Desired-state YAML file.",
)
@click.option("--timeout", type=float, default=None, help="Override the wait timeout (seconds).")
@click.pass_obj
def update(state: CliState, key: str, spec_file: Path, timeout: float | None) -> None:
    """Converge the resource KEY on a desired-state file."""
    try:
        resource_type, desired = load_desired_state(spec_file, state.registry)
    except SpecLoadError as e:
        _fail(str(e), EXIT_USAGE)

    orchestrator = state.orchestrator(resource_type)
    observed = _run(
        lambda cancel: orchestrator.update(
            key, desired, timeout_seconds=timeout, cancel_event=cancel
        )
    )
    _emit(observed)


@cli.command()
@click.argument("type_name", metavar="TYPE")
@click.argument("key")
@click.pass_obj
def read(state: CliState, type_name: str, key: str) -> None:
    """Describe the resource KEY of type TYPE."""
    orchestrator = state.orchestrator(_resource_type(state, type_name))

    async def operation(cancel: asyncio.Event) -> ObservedState | None:
        return await orchestrator.read(key)

    observed = _run(operation)
    if observed is None:
        click.echo(json.dumps({"key": key, "status": "absent"}))
        raise SystemExit(EXIT_NOT_FOUND)
    _emit(observed)


@cli.command("import")
@click.argument("type_name", metavar="TYPE")
@click.argument("key")
@click.pass_obj
def import_command(state: CliState, type_name: str, key: str) -> None:
    """Validate an existing identifier and print the resource state."""
    orchestrator = state.orchestrator(_resource_type(state, type_name))

    async def operation(cancel: asyncio.Event) -> ObservedState:
        return await orchestrator.import_resource(key)

    _emit(_run(operation))


@cli.command()
@click.argument("type_name", metavar="TYPE")
@click.argument("key")
@click.option("--timeout", type=float, default=None, help="Override the wait timeout (seconds).")
@click.pass_obj
def delete(state: CliState, type_name: str, key: str, timeout: float | None) -> None:
    """Delete the resource KEY of type TYPE and wait until it is gone."""
    orchestrator = state.orchestrator(_resource_type(state, type_name))
    _run(lambda cancel: orchestrator.delete(key, timeout_seconds=timeout, cancel_event=cancel))
    click.echo(json.dumps({"key": key, "status": "absent"}))


def run() -> None:
    """Entry point for the lifecycle CLI."""
    cli()


if __name__ == "__main__":
    run()
