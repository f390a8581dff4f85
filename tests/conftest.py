"""Pytest configuration and fixtures for meshprobe testing.

The loopback fixtures build a real (local) control plane and gateway through
the stage orchestrator, hand the resulting environment to the test and tear
everything down afterwards.
"""

import sys
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from loguru import logger

from meshprobe.core.config import reset_settings
from meshprobe.core.environment import Environment
from meshprobe.sim.scenario import build_loopback_suite
from tests.test_helpers import FakeClock

LOOPBACK_PROPAGATION_DELAY = 0.2


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Make every test read MESHPROBE_* variables afresh."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Collect loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Reinstall the default sink after code that reconfigures loguru."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest_asyncio.fixture
async def loopback_env() -> AsyncGenerator[Environment, None]:
    """Config store + gateway, built once for the test by ordered setup stages."""
    orchestrator = build_loopback_suite(LOOPBACK_PROPAGATION_DELAY)
    env = await orchestrator.run_async()
    yield env
    await orchestrator.teardown_async()
