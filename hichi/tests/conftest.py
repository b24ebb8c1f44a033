"""
Global pytest fixtures and configuration for the test suite.

Provides reusable fixtures (temporary directories, mock HiForest files,
configurations) without duplicating setup code across test modules.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

from hichi.modules.data_handler import AnalysisConfig
from hichi.modules.histogram import HistogramStore
from hichi.tests.utils import MockEvent, chic_event, create_mock_forest, default_config_dict


@pytest.fixture(autouse=True)
def no_progress_bars(monkeypatch) -> None:
    """Keep tqdm output out of the test logs"""
    monkeypatch.setenv("ANALYSIS_PROGRESS", "off")


@pytest.fixture
def tmp_test_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test operations.

    Automatically cleaned up after test completion.
    """
    tmp_dir = Path(tempfile.mkdtemp(prefix="hichi_test_"))
    try:
        yield tmp_dir
    finally:
        if tmp_dir.exists():
            shutil.rmtree(tmp_dir)


@pytest.fixture
def tmp_output_dir(tmp_test_dir: Path) -> Path:
    output_dir = tmp_test_dir / "Plots"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@pytest.fixture
def three_events() -> list:
    """run=1, events 101..103, one χc candidate at 3.51 GeV in the second event"""
    return [
        MockEvent(run=1, number=101),
        chic_event(run=1, number=102, chi_mass=3.51),
        MockEvent(run=1, number=103),
    ]


@pytest.fixture
def mock_forest(tmp_test_dir: Path, three_events: list) -> Path:
    return create_mock_forest(tmp_test_dir / "HiChiForest.root", three_events)


@pytest.fixture
def config_dict(mock_forest: Path) -> Dict[str, Any]:
    return default_config_dict(mock_forest)


@pytest.fixture
def analysis_config(config_dict: Dict[str, Any]) -> AnalysisConfig:
    return AnalysisConfig.from_dict(config_dict)


@pytest.fixture
def histogram_store(tmp_output_dir: Path) -> HistogramStore:
    store = HistogramStore(output_dir=str(tmp_output_dir))
    yield store
    store.dispose()
