"""Pytest configuration for UCI analysis tests."""

import os
import shutil
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add the src directory to the Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from fake_engine import FakeEngine  # noqa: E402

# Sample FEN positions for testing
STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
MATE_IN_1_FEN = "rnbqkbnr/pppp1ppp/4p3/8/6P1/5P2/PPPPP2P/RNBQKBNR b KQkq - 0 1"  # Qh4#
PROMOTION_FEN = "1n2kbnr/ppPppppp/1r6/8/8/8/PP1PPPPP/RNBQKBNR w KQk - 0 1"
MIDDLEGAME_FEN = "r2q1rk1/pp1nppbp/2p3p1/5n2/3PR3/1BP5/PP1N1PPP/R1BQ2K1 b - - 2 12"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires a UCI engine binary)"
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless --integration flag is passed."""
    run_integration = config.getoption("--integration", default=False)
    if not run_integration:
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests (requires a UCI engine binary)",
    )


@pytest.fixture
def starting_fen() -> str:
    """Starting position FEN."""
    return STARTING_FEN


@pytest.fixture
def mate_in_1_fen() -> str:
    """Black to move and mate with Qh4#."""
    return MATE_IN_1_FEN


@pytest.fixture
def engine_available() -> bool:
    """Check if a UCI engine binary is available."""
    engine_path = os.environ.get("UCI_ENGINE_PATH", "stockfish")
    return shutil.which(engine_path) is not None


@pytest.fixture
def engine_config():
    """Create a test engine configuration."""
    from uci_analysis.config import EngineConfig

    return EngineConfig(
        threads=1,
        hash_mb=16,
        elo=None,
        startup_timeout=1.0,
        shutdown_grace=0.5,
        response_timeout=2.0,
    )


@pytest.fixture
def scheduler_config():
    """Create a test scheduler configuration."""
    from uci_analysis.config import SchedulerConfig

    return SchedulerConfig(min_move_time_ms=250, wait_interval=0.05, max_workers=4)


@pytest.fixture
def fake_engine() -> FakeEngine:
    """A scripted engine process; tests append searches to ``fake_engine.searches``."""
    return FakeEngine()


@pytest.fixture
def session(fake_engine: FakeEngine, engine_config):
    """A started EngineSession backed by ``fake_engine``."""
    from uci_analysis.engine import EngineSession

    with patch("uci_analysis.engine.subprocess.Popen", return_value=fake_engine):
        session = EngineSession(engine_config)
        session.start()
        yield session
        session.stop()
