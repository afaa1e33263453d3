"""
Shared fixtures for Live Check tests.
"""

import pytest

from config_logging import CheckerConfig

from .helpers import ImmediateExecutor, DeferredExecutor


@pytest.fixture
def config(tmp_path) -> CheckerConfig:
    """Configuration with a long interval so timers never fire on their own."""
    return CheckerConfig(
        service_url='http://checker.test',
        check_interval=3600.0,
        request_timeout=5.0,
        block_size=1000,
        log_dir=tmp_path / 'logs',
    )


@pytest.fixture
def immediate_executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def deferred_executor() -> DeferredExecutor:
    return DeferredExecutor()
