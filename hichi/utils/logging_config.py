"""
Logging, warning and progress bar settings of the χ analysis

Usage:
    from hichi.utils.logging_config import setup_logging, suppress_warnings
    logger = setup_logging(verbose=False)
    suppress_warnings()

Environment variables:
    ANALYSIS_WARNINGS=on|off|error|default   overrides the warning level
    ANALYSIS_PROGRESS=off                    hides the event loop bars
"""

import logging
import os
import warnings
from typing import Literal, Optional

import numpy as np

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that flood DEBUG output
QUIET_LOGGERS = ("matplotlib", "PIL", "fsspec", "uproot")

WarningLevel = Literal["off", "error", "default", "all"]

_ENV_LEVELS = {
    "on": "all", "yes": "all", "true": "all", "1": "all",
    "off": "off", "no": "off", "false": "off", "0": "off",
    "error": "error", "default": "default",
}


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the root handler and return the ``HiChi`` logger"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logger = logging.getLogger("HiChi")
    logger.setLevel(level)
    return logger


def _env_warning_level() -> Optional[str]:
    return _ENV_LEVELS.get(os.environ.get("ANALYSIS_WARNINGS", "").lower())


def suppress_warnings(level: WarningLevel = "off") -> None:
    """
    Set the Python warning filters and numpy floating point error handling.

    Args:
        level:
            - 'off': ignore every warning (default)
            - 'error': turn warnings into exceptions, except deprecations
            - 'default': show warnings once, without uproot/awkward noise
            - 'all': show everything, numpy included

    ANALYSIS_WARNINGS takes precedence over ``level``.
    """
    level = _env_warning_level() or level

    if level == "off":
        warnings.filterwarnings("ignore")
        # Masses of slightly off-shell vectors take sqrt of tiny negatives
        np.seterr(all="ignore")
    elif level == "error":
        warnings.filterwarnings("error")
        warnings.filterwarnings("ignore", category=DeprecationWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
    elif level == "default":
        warnings.filterwarnings("default")
        warnings.filterwarnings("ignore", category=DeprecationWarning)
        warnings.filterwarnings("ignore", message=".*uproot.*")
        warnings.filterwarnings("ignore", message=".*awkward.*")
    elif level == "all":
        warnings.filterwarnings("default")
        np.seterr(all="warn")

    if level != "all":
        for module in ("awkward.*", "vector.*", "mplhep.*"):
            warnings.filterwarnings("ignore", module=module)
        warnings.filterwarnings("ignore", message=".*Matplotlib.*")


def enable_progress_bars() -> bool:
    """False when ANALYSIS_PROGRESS switches the bars off"""
    return os.environ.get("ANALYSIS_PROGRESS", "on").lower() in ("on", "yes", "true", "1")


def get_tqdm_kwargs(desc: str = "", **kwargs) -> dict:
    """
    Common tqdm settings of the event loops

    Args:
        desc: Bar label, the sample name
        **kwargs: Overrides (e.g. ``total``)
    """
    tqdm_kwargs = {
        "desc": desc,
        "unit": "evt",
        "unit_scale": True,
        "ncols": 80,
        "mininterval": 1.0,
        "disable": not enable_progress_bars(),
    }
    tqdm_kwargs.update(kwargs)
    return tqdm_kwargs
