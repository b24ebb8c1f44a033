"""
Analysis configuration

Loads the TOML steering file (samples, histogram binning, reference masses,
selection and drawing settings) and exposes it as typed values.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import tomli

from .exceptions import ConfigurationError
from .histogram import EnergyText, VarInfo
from .selection import AcceptanceRegion

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "config" / "analysis.toml"


class AnalysisConfig:
    """
    Load and manage the analysis TOML configuration

    Sections:
    - samples: input files and sample/beam types
    - histograms: axis label and binning per variable
    - physics: reference masses for the candidate sanity check
    - selection: acceptance, run ranges, tolerances and reading settings
    - render: output directory, drawing mode and CMS label texts
    """

    REQUIRED_SECTIONS = ("samples", "histograms", "physics", "selection")

    def __init__(self, config_path: Optional[str] = None):
        self.logger = logging.getLogger("HiChi.AnalysisConfig")
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG
        self.config = self._load_toml(self.config_path)
        self._validate()
        self.logger.info(f"Loaded configuration from {self.config_path}")

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "AnalysisConfig":
        """Build a configuration from an already parsed dictionary"""
        self = cls.__new__(cls)
        self.logger = logging.getLogger("HiChi.AnalysisConfig")
        self.config_path = None
        self.config = config
        self._validate()
        return self

    @staticmethod
    def _load_toml(path: Path) -> dict:
        """
        Load TOML configuration file with proper error handling

        Raises:
            ConfigurationError: If file not found or parsing fails
        """
        try:
            with open(path, 'rb') as f:
                return tomli.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Error parsing TOML file {path}: {e}")

    def _validate(self) -> None:
        missing = [s for s in self.REQUIRED_SECTIONS if s not in self.config]
        if missing:
            raise ConfigurationError(f"Missing configuration sections: {missing}")
        for key in ("files", "types"):
            if key not in self.config["samples"]:
                raise ConfigurationError(f"Missing [samples.{key}] in configuration")
        for var_name, binning in self.config["histograms"].items():
            for key in ("label", "bins", "low", "high"):
                if key not in binning:
                    raise ConfigurationError(f"Histogram '{var_name}' has no '{key}'")
            if binning["bins"] < 1 or binning["high"] <= binning["low"]:
                raise ConfigurationError(
                    f"Invalid binning for '{var_name}': "
                    f"{binning['bins']} bins in [{binning['low']}, {binning['high']}]"
                )
        if "reference_masses" not in self.config["physics"]:
            raise ConfigurationError("Missing [physics.reference_masses] in configuration")
        for key in ("progress_interval", "step_size"):
            value = self.config["selection"].get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)
                                      or value < 1):
                raise ConfigurationError(
                    f"[selection] {key} must be a positive integer, got {value!r}"
                )

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    @property
    def files(self) -> Dict[str, str]:
        return dict(self.config["samples"]["files"])

    @property
    def sample_types(self) -> List[str]:
        return list(self.config["samples"]["types"].get("sample", []))

    @property
    def beam_types(self) -> List[str]:
        return list(self.config["samples"]["types"].get("beam", []))

    # ------------------------------------------------------------------
    # Histograms and physics
    # ------------------------------------------------------------------

    @property
    def var_info(self) -> Dict[str, VarInfo]:
        return {
            name: VarInfo(binning["label"], int(binning["bins"]),
                          float(binning["low"]), float(binning["high"]))
            for name, binning in self.config["histograms"].items()
        }

    def get_reference_mass(self, state: str) -> float:
        """Reference mass (GeV/c²) for 'chic' or 'chib'"""
        try:
            return float(self.config["physics"]["reference_masses"][state])
        except KeyError:
            raise ConfigurationError(f"No reference mass for '{state}'")

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selection(self) -> dict:
        return self.config["selection"]

    @property
    def mass_tolerance(self) -> float:
        return float(self.selection.get("mass_tolerance", 0.001))

    @property
    def progress_interval(self) -> int:
        return int(self.selection.get("progress_interval", 1000000))

    @property
    def step_size(self) -> int:
        return int(self.selection.get("step_size", 10000))

    @property
    def acceptance(self) -> Tuple[AcceptanceRegion, ...]:
        regions = self.selection.get("muon_acceptance")
        if not regions:
            raise ConfigurationError("No [[selection.muon_acceptance]] region defined")
        try:
            return tuple(AcceptanceRegion(**region) for region in regions)
        except TypeError as e:
            raise ConfigurationError(f"Invalid muon acceptance region: {e}")

    @property
    def run_ranges(self) -> Dict[str, Tuple[int, int]]:
        ranges = {}
        for beam, bounds in self.selection.get("run_ranges", {}).items():
            if len(bounds) != 2 or bounds[0] > bounds[1]:
                raise ConfigurationError(f"Invalid run range for {beam}: {bounds}")
            ranges[beam] = (int(bounds[0]), int(bounds[1]))
        return ranges

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    @property
    def render(self) -> dict:
        return self.config.get("render", {})

    @property
    def output_dir(self) -> str:
        return self.render.get("output_dir", "Plots")

    @property
    def render_mode(self) -> str:
        return self.render.get("mode", "separate")

    @property
    def energy_text(self) -> EnergyText:
        texts = dict(self.render.get("energy_text", {}))
        if not texts:
            return EnergyText()
        default = texts.pop("default", EnergyText.default)
        return EnergyText(default=default, by_beam=tuple(texts.items()))
