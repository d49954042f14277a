"""Shared pytest configuration and fixtures for the page streamer test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "system: mark test as needing Xvfb, a browser and ffmpeg installed"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-system",
        action="store_true",
        default=False,
        help="Run tests that launch the real external tools",
    )


def pytest_collection_modifyitems(config, items):
    """Skip system tests unless --run-system is specified."""
    if config.getoption("--run-system"):
        return

    skip_system = pytest.mark.skip(reason="Need --run-system option to run")
    for item in items:
        if "system" in item.keywords:
            item.add_marker(skip_system)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_spawner():
    """Spawner whose processes all start and stay up."""
    from tests.infrastructure.mocks.process_mocks import MockSpawner
    return MockSpawner()
