"""
Module for the event and muon selection criteria
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class AcceptanceRegion:
    """
    Single-muon kinematic acceptance region

    A muon is inside the region if abs_eta_min < |η| < abs_eta_max and
    pT > pt_min. Unset bounds are not applied.
    """
    abs_eta_min: Optional[float] = None
    abs_eta_max: Optional[float] = None
    pt_min: Optional[float] = None

    def contains(self, eta: float, pt: float) -> bool:
        abs_eta = abs(eta)
        if self.abs_eta_min is not None and not abs_eta > self.abs_eta_min:
            return False
        if self.abs_eta_max is not None and not abs_eta < self.abs_eta_max:
            return False
        if self.pt_min is not None and not pt > self.pt_min:
            return False
        return True


# |η| < 1.6 or |η| > 1.6, both with pT > 3 GeV/c
DEFAULT_ACCEPTANCE = (
    AcceptanceRegion(abs_eta_max=1.6, pt_min=3.0),
    AcceptanceRegion(abs_eta_min=1.6, pt_min=3.0),
)


def in_acceptance(muon, regions: Sequence[AcceptanceRegion] = DEFAULT_ACCEPTANCE) -> bool:
    """
    Check a muon four-vector against the acceptance regions

    Parameters:
    - muon: Object with ``eta`` and ``pt`` (vector Momentum4D record)
    - regions: The muon has to be inside at least one of them
    """
    eta = float(muon.eta)
    pt = float(muon.pt)
    return any(region.contains(eta, pt) for region in regions)


@dataclass(frozen=True)
class Category:
    """Histogram category <sample>_<beam>, e.g. DATA_pPb"""
    sample: str
    beam: str

    @property
    def name(self) -> str:
        return f"{self.sample}_{self.beam}"

    def accepts_run(self, run: int, run_ranges: Dict[str, Tuple[int, int]]) -> bool:
        """
        Beam-direction gate for data: the run has to be inside the range of
        every configured beam tag found in the category name
        """
        if "DATA" not in self.name:
            return True
        for beam, (first, last) in run_ranges.items():
            if beam in self.name and not first <= run <= last:
                return False
        return True


def make_sample_labels(files: Dict[str, str], samples: Iterable[str],
                       beams: Iterable[str]) -> List[str]:
    """
    Labels of the samples with an input file

    Data is labelled by itself; simulated samples get one label per beam.
    """
    beams = list(beams)
    labels = []
    for sample in samples:
        if sample == "DATA" and sample in files:
            labels.append(sample)
            continue
        for beam in beams:
            name = f"{sample}_{beam}"
            if name in files:
                labels.append(name)
    return labels


def make_categories(samples: Iterable[str], beams: Iterable[str],
                    labels: Sequence[str]) -> List[Category]:
    """Categories <sample>_<beam> matching at least one sample label"""
    beams = list(beams)
    categories = []
    for sample in samples:
        for beam in beams:
            category = Category(sample, beam)
            if any(label in category.name for label in labels):
                categories.append(category)
    return categories
