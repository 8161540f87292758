"""Shared pytest configuration and fixtures."""

import pytest
from typing import Any, Dict, List, Optional

from jmxmon.collectors.jolokia_client import GcReading
from jmxmon.collectors.values import resolve_path, unwrap, wrap
from jmxmon.config.models import Target
from jmxmon.utils.logger import setup_logger


class FakeConnection:
    """In-memory stand-in for a JolokiaConnection."""

    def __init__(
        self,
        uptime_ms: int = 100000,
        collectors: Optional[List[GcReading]] = None,
        cpu_time_ns: Optional[int] = None,
        processors: int = 1,
        mbeans: Optional[Dict[str, Dict[str, Any]]] = None,
        operations: Optional[Dict[str, Any]] = None
    ):
        self.uptime = uptime_ms
        self.collectors = collectors or []
        self.cpu_time_ns = cpu_time_ns
        self.processors = processors
        self.mbeans = mbeans or {}
        self.operations = operations or {}
        self.invocations = []
        self.closed = False

    def uptime_ms(self) -> int:
        return self.uptime

    def garbage_collectors(self) -> List[GcReading]:
        return list(self.collectors)

    def process_cpu_time(self) -> Optional[int]:
        return self.cpu_time_ns

    def available_processors(self) -> int:
        return self.processors

    def list_matching(self, pattern: str) -> List[str]:
        if pattern.endswith(",*"):
            prefix = pattern[:-2]
            return [name for name in self.mbeans if name.startswith(prefix)]
        return [pattern] if pattern in self.mbeans else []

    def read_composite(self, mbean, path):
        value = wrap(self.mbeans[mbean][path[0]])
        return unwrap(resolve_path(value, path[1:]))

    def invoke(self, mbean, operation, params=()):
        self.invocations.append((mbean, operation, list(params)))
        return self.operations[operation]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def target():
    return Target(address="srv1:8778", name="app1")


@pytest.fixture
def fake_connection():
    """Factory for fake connections."""
    return FakeConnection


@pytest.fixture
def connector_for():
    """Build a connector that always hands out the given connection."""
    def build(connection):
        return lambda target, config, logger: connection
    return build
