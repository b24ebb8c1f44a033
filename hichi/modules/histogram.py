"""
Module for booking, filling and drawing one-dimensional histograms

Histograms are keyed by (category, variable), e.g. ("DATA_PA", "ChiC_M").
Bin counts follow the ROOT TH1 layout: slot 0 is the underflow, slots
1..nbins the bins, slot nbins+1 the overflow.

Example usage:
    store = HistogramStore(output_dir="Plots")
    store.book("DATA_PA", {"ChiC_M": VarInfo("X_{C} Mass (GeV/c^{2})", 100, 3., 4.)})
    store.fill("DATA_PA", {"ChiC_M": 3.51})
    store.render("separate")
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import mplhep as hep
import numpy as np

# Suppress font lookup noise from the style
logging.getLogger('matplotlib.font_manager').setLevel(logging.ERROR)

SEPARATE = "separate"
TOGETHER = "together"


@dataclass(frozen=True)
class VarInfo:
    """Axis label and binning of a histogrammed variable"""
    label: str
    bins: int
    low: float
    high: float


@dataclass(frozen=True)
class Palette:
    """Colours and markers assigned to overlaid histograms by drawing order"""
    colors: Tuple[str, ...] = (
        "red", "green", "blue", "darkorange", "darkviolet", "magenta", "black",
    )
    markers: Tuple[str, ...] = ("^", "v", "o", "s", "^", "D", "X")
    filled: Tuple[bool, ...] = (True, True, False, False, False, False, False)

    def style(self, index: int) -> Dict:
        """matplotlib keyword arguments for the index-th drawn histogram"""
        color = self.colors[index % len(self.colors)]
        filled = self.filled[index % len(self.filled)]
        return {
            "color": color,
            "marker": self.markers[index % len(self.markers)],
            "markerfacecolor": color if filled else "none",
        }


@dataclass(frozen=True)
class EnergyText:
    """CMS label text on the right of the frame, chosen by beam tag"""
    default: str = "pPb + Pbp (8.16 TeV)"
    by_beam: Tuple[Tuple[str, str], ...] = (
        ("pPb", "pPb (8.16 TeV)"),
        ("Pbp", "Pbp (8.16 TeV)"),
    )

    def __call__(self, name: str) -> str:
        for beam, text in self.by_beam:
            if beam in name:
                return text
        return self.default


@dataclass
class Hist1D:
    """Fixed-binning counter with under- and overflow"""
    name: str
    info: VarInfo
    counts: np.ndarray = field(init=False)

    def __post_init__(self):
        self.counts = np.zeros(self.info.bins + 2, dtype=np.float64)

    @property
    def edges(self) -> np.ndarray:
        return np.linspace(self.info.low, self.info.high, self.info.bins + 1)

    @property
    def values(self) -> np.ndarray:
        """Bin contents without under- and overflow"""
        return self.counts[1:-1]

    @property
    def underflow(self) -> float:
        return self.counts[0]

    @property
    def overflow(self) -> float:
        return self.counts[-1]

    @property
    def entries(self) -> float:
        return self.counts.sum()

    def find_bin(self, value: float) -> int:
        """ROOT convention: lower edge inclusive, upper edge exclusive"""
        if not np.isfinite(value):
            return 0 if value < 0 else self.info.bins + 1
        if value < self.info.low:
            return 0
        if value >= self.info.high:
            return self.info.bins + 1
        width = (self.info.high - self.info.low) / self.info.bins
        return min(int((value - self.info.low) / width), self.info.bins - 1) + 1

    def fill(self, value: float, weight: float = 1.0) -> None:
        self.counts[self.find_bin(value)] += weight


class HistogramStore:
    """Label-keyed collection of 1D histograms"""

    def __init__(self, output_dir: str = "Plots", energy_text: Optional[EnergyText] = None):
        """
        Initialize with output directory

        Parameters:
        - output_dir: Directory to save plots (created when drawing)
        - energy_text: Right-hand CMS label per beam configuration
        """
        self.output_dir = Path(output_dir)
        self.energy_text = energy_text or EnergyText()
        self.logger = logging.getLogger("HiChi.HistogramStore")
        self._hists: Dict[str, Dict[str, Hist1D]] = {}

    def book(self, category: str, var_map: Mapping[str, VarInfo]) -> None:
        """Create the histograms not yet booked for ``category``"""
        for var_name, info in var_map.items():
            if var_name in self._hists.get(category, {}):
                continue
            name = f"h_{category}_{var_name}"
            self._hists.setdefault(category, {})[var_name] = Hist1D(name, info)
            self.logger.info(f"Added histogram: {name}")

    def fill(self, category: str, value_map: Mapping[str, float]) -> None:
        """Fill booked histograms; unbooked (category, variable) pairs are ignored"""
        hists = self._hists.get(category)
        if not hists:
            return
        for var_name, value in value_map.items():
            hist = hists.get(var_name)
            if hist is not None:
                hist.fill(value)

    def get(self, category: str, var_name: str) -> Optional[Hist1D]:
        return self._hists.get(category, {}).get(var_name)

    def categories(self) -> List[str]:
        return sorted(self._hists)

    def items(self) -> Iterator[Tuple[str, str, Hist1D]]:
        """(category, variable, histogram) in drawing order"""
        for category in sorted(self._hists):
            for var_name in sorted(self._hists[category]):
                yield category, var_name, self._hists[category][var_name]

    def __len__(self) -> int:
        return sum(len(hists) for hists in self._hists.values())

    def __contains__(self, key: Tuple[str, str]) -> bool:
        category, var_name = key
        return self.get(category, var_name) is not None

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def render(self, tag: str = "", palette: Optional[Palette] = None) -> List[Path]:
        """
        Draw histograms to PNG files in ``output_dir``

        Parameters:
        - tag: "separate" for one canvas per histogram, "together" for all
               histograms on one canvas, any other non-empty string for the
               histograms whose category contains it; "" draws nothing
        - palette: Colours and markers of overlaid histograms

        Returns:
        - Paths of the written images
        """
        if tag == "":
            return []
        palette = palette or Palette()
        plt.style.use(hep.style.CMS)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if tag == SEPARATE:
            written = []
            for category, var_name, hist in self.items():
                fig, ax = plt.subplots(figsize=(10, 10))
                self._draw_points(ax, hist, color="black", marker="o")
                hep.cms.label(ax=ax, data=True, rlabel=self.energy_text(category))
                written.append(self._save(fig, f"c_{category}_{var_name}"))
            return written

        selected = [
            (category, var_name, hist) for category, var_name, hist in self.items()
            if tag == TOGETHER or tag in category
        ]
        if not selected:
            self.logger.warning(f"No histogram matches tag '{tag}'")
            return []

        fig, ax = plt.subplots(figsize=(10, 10))
        for i, (category, var_name, hist) in enumerate(selected):
            label = self._legend_label(f"{category}_{var_name}", tag)
            self._draw_points(ax, hist, label=label, **palette.style(i))
        ax.legend(loc="upper left", frameon=False)
        hep.cms.label(ax=ax, data=True, rlabel=self.energy_text(tag))
        name = "c_JOIN" if tag == TOGETHER else f"c_{tag}"
        return [self._save(fig, name)]

    @staticmethod
    def _legend_label(label: str, tag: str) -> str:
        if tag == TOGETHER:
            return label
        for token in (f"_{tag}", f"{tag}_", tag):
            if token in label:
                return label.replace(token, "", 1)
        return label

    @staticmethod
    def _draw_points(ax, hist: Hist1D, **style) -> None:
        edges = hist.edges
        centers = (edges[:-1] + edges[1:]) / 2
        values = hist.values
        ax.errorbar(centers, values, yerr=np.sqrt(values),
                    xerr=(edges[1] - edges[0]) / 2,
                    linestyle="none", markersize=8, elinewidth=1, **style)
        ax.set_xlim(hist.info.low, hist.info.high)
        ax.set_ylim(bottom=0)
        ax.set_xlabel(_latex(hist.info.label))
        ax.set_ylabel("Number of Entries")

    def _save(self, fig, name: str) -> Path:
        path = self.output_dir / f"{name}.png"
        fig.savefig(path, bbox_inches="tight")
        plt.close(fig)
        self.logger.info(f"Created plot: {path}")
        return path

    def dispose(self) -> None:
        """Release every histogram"""
        self._hists.clear()
        plt.close("all")


def _latex(label: str) -> str:
    """Turn a ROOT TLatex axis title into matplotlib mathtext"""
    if "{" not in label and "^" not in label and "_" not in label:
        return label
    label = label.replace("#", "\\")
    parts = label.split(" (", 1)
    text = f"${parts[0].replace(' ', '~')}$"
    if len(parts) == 2:
        unit = parts[1].rstrip(")")
        text += f" (${unit}$)"
    return text


def book_all(store: HistogramStore, categories: Sequence[str],
             var_info: Mapping[str, VarInfo]) -> None:
    """Book every variable for every category"""
    for category in categories:
        store.book(category, var_info)
