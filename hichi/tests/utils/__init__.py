"""
Test utilities and helper functions.

Provides mock HiForest files and configurations for the test suite.
"""

from .mock_data_generator import (
    JPSI_MASS,
    UPSILON_MASS,
    MockCandidate,
    MockEvent,
    chic_event,
    create_mock_forest,
    create_mock_root_file,
    default_config_dict,
    four_momentum,
)

__all__ = [
    "JPSI_MASS",
    "UPSILON_MASS",
    "MockCandidate",
    "MockEvent",
    "chic_event",
    "create_mock_forest",
    "create_mock_root_file",
    "default_config_dict",
    "four_momentum",
]
