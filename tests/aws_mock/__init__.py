"""AWS API Mock for reconciler testing.

This module provides an in-memory stand-in for an eventually-consistent
AWS resource API so the reconciler can be tested without AWS connectivity.

Key Features:
- In-memory state management for EKS add-ons
- Status settling after a configurable number of describe calls
- Error injection for testing throttling and failure scenarios
- Call recording for asserting on issued remote calls
- A fake clock that drives the status waiter without real delays

Usage:
    from aws_mock import FakeClock, MockEksClient

    eks = MockEksClient()
    client = EksAddonClient(eks)
    orchestrator = LifecycleOrchestrator(resource_type, client, config, waiter=waiter)
    await orchestrator.create(desired)

    assert eks.call_count("create_addon") == 1
"""

from .clock import FakeClock
from .errors import client_error
from .resources import MockAddon, MockEksClient, MockResourceState

__all__ = [
    "FakeClock",
    "MockAddon",
    "MockEksClient",
    "MockResourceState",
    "client_error",
]
