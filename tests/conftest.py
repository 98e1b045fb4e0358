"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for aws_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from aws_mock import FakeClock, MockEksClient, MockResourceState  # noqa: E402
from lifecycle.config import ReconcilerConfig  # noqa: E402
from lifecycle.eks_addon import EksAddonClient  # noqa: E402
from lifecycle.orchestrator import LifecycleOrchestrator  # noqa: E402
from lifecycle.registry import ResourceType, build_registry  # noqa: E402
from lifecycle.waiter import StatusWaiter  # noqa: E402


@pytest.fixture
def config() -> ReconcilerConfig:
    return ReconcilerConfig(
        poll_interval_seconds=1.0,
        not_found_checks=2,
        max_mutation_retries=3,
        retry_backoff_base_seconds=0.5,
    )


@pytest.fixture
def registry(config: ReconcilerConfig) -> dict[str, ResourceType]:
    return build_registry(config)


@pytest.fixture
def eks_type(registry: dict[str, ResourceType]) -> ResourceType:
    return registry["aws_eks_addon"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def waiter(config: ReconcilerConfig, clock: FakeClock) -> StatusWaiter:
    return StatusWaiter(config.poll_interval_seconds, clock=clock, sleep=clock.sleep)


@pytest.fixture
def eks_state() -> MockResourceState:
    return MockResourceState(settle_polls=2)


@pytest.fixture
def eks(eks_state: MockResourceState) -> MockEksClient:
    return MockEksClient(eks_state)


@pytest.fixture
def orchestrator(
    eks_type: ResourceType,
    eks: MockEksClient,
    config: ReconcilerConfig,
    waiter: StatusWaiter,
    clock: FakeClock,
) -> LifecycleOrchestrator:
    return LifecycleOrchestrator(
        eks_type, EksAddonClient(eks), config, waiter=waiter, sleep=clock.sleep
    )
