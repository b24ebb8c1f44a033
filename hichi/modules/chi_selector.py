"""
χc / χb → J/ψ(Υ) γ candidate selection

Loops over the muon and conversion trees of every sample in lockstep and
fills the χ mass histograms of each sample/beam category.

For every χ candidate of the conversion tree:
1. resolve its dimuon (muon tree) and conversion indices,
2. check that the mass difference correction reproduces the dimuon
   resonance mass: M(χ) + M(μμ) - M(μμγ) = M(J/ψ) or M(Υ(1S)),
3. require both muons of the dimuon inside the acceptance,
4. fill ChiC_M (type 1) or ChiB_M (type 2) with M(χ).

Inconsistent trees (entry count, run or event number) and candidates failing
the mass check stop the whole run.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Set, Tuple

from tqdm import tqdm

from .data_handler import AnalysisConfig
from .exceptions import CandidateMassError, DataLoadError, EventMismatchError
from .histogram import HistogramStore, book_all
from .selection import in_acceptance, make_categories, make_sample_labels
from .trees import HiConversionTree, HiMuonTree
from ..utils.logging_config import get_tqdm_kwargs


class ChiType(IntEnum):
    """Value of Reco_Chi_Type"""
    CHIC = 1
    CHIB = 2

    @property
    def variable(self) -> str:
        return _VARIABLES[self]

    @property
    def state(self) -> str:
        return _STATES[self]


_VARIABLES = {ChiType.CHIC: "ChiC_M", ChiType.CHIB: "ChiB_M"}
_STATES = {ChiType.CHIC: "chic", ChiType.CHIB: "chib"}

MUON_COLUMNS = (
    HiMuonTree.Event_Run,
    HiMuonTree.Event_Number,
    HiMuonTree.Reco_Muon_Mom,
    HiMuonTree.Reco_DiMuon_Mom,
    HiMuonTree.Reco_DiMuon_Muon1_Idx,
    HiMuonTree.Reco_DiMuon_Muon2_Idx,
)

CONVERSION_COLUMNS = (
    HiConversionTree.Event_Run,
    HiConversionTree.Event_Number,
    HiConversionTree.Reco_DiMuonConv_Mom,
    HiConversionTree.Reco_DiMuonConv_Conversion_Idx,
    HiConversionTree.Reco_DiMuonConv_DiMuon_Idx,
    HiConversionTree.Reco_Chi_Mass,
    HiConversionTree.Reco_Chi_Type,
)


@dataclass
class SelectionSummary:
    """Entries read per sample and distinct dimuons/conversions used per χ type"""
    entries: Counter = field(default_factory=Counter)
    dimuons: Counter = field(default_factory=Counter)
    conversions: Counter = field(default_factory=Counter)

    def log(self, logger: logging.Logger) -> None:
        for sample, n_entries in self.entries.items():
            logger.info(f"{sample}: processed {n_entries} entries")
        for chi_type in ChiType:
            logger.info(
                f"{chi_type.variable}: number of DiMuons: {self.dimuons[chi_type]} "
                f"and number of conversions: {self.conversions[chi_type]}"
            )


class ChiSelector:
    """Class for selecting χ candidates and filling their mass histograms"""

    def __init__(self, config: AnalysisConfig, histograms: Optional[HistogramStore] = None):
        """
        Parameters:
        - config: Analysis configuration
        - histograms: Store to fill (created from the configuration if None)
        """
        self.config = config
        self.logger = logging.getLogger("HiChi.ChiSelector")
        if histograms is None:
            histograms = HistogramStore(config.output_dir, config.energy_text)
        self.hist = histograms

        self.samples = make_sample_labels(config.files, config.sample_types, config.beam_types)
        self.categories = make_categories(config.sample_types, config.beam_types, self.samples)

        self.reference_mass = {t: config.get_reference_mass(t.state) for t in ChiType}
        self.mass_tolerance = config.mass_tolerance
        self.acceptance = config.acceptance
        self.run_ranges = config.run_ranges
        self.progress_interval = config.progress_interval

        self.muon_trees: Dict[str, HiMuonTree] = {}
        self.conv_trees: Dict[str, HiConversionTree] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def open(self) -> None:
        """
        Open the muon and conversion trees of every sample

        Raises:
        - DataLoadError: if a file cannot be read or the two trees of a
          sample do not have the same number of entries
        """
        step_size = self.config.step_size
        for sample in self.samples:
            path = self.config.files[sample]
            muon = HiMuonTree(step_size=step_size)
            self.muon_trees[sample] = muon
            muon.open(path)
            muon.declare(*MUON_COLUMNS)
            muon.activate()

            conv = HiConversionTree(step_size=step_size)
            self.conv_trees[sample] = conv
            conv.open(path)
            conv.declare(*CONVERSION_COLUMNS)
            conv.activate()

            if conv.num_entries != muon.num_entries:
                raise DataLoadError(
                    f"Inconsistent number of entries in {path}: "
                    f"{muon.num_entries} muon, {conv.num_entries} conversion"
                )

    def close(self) -> None:
        for tree in list(self.muon_trees.values()) + list(self.conv_trees.values()):
            tree.close()
        self.muon_trees.clear()
        self.conv_trees.clear()

    def book(self) -> None:
        book_all(self.hist, [c.name for c in self.categories], self.config.var_info)

    def run(self) -> SelectionSummary:
        """Process every sample and return the selection summary"""
        if not self.samples:
            self.logger.warning("No sample with an input file configured")
        if not self.muon_trees:
            self.open()
        self.book()

        summary = SelectionSummary()
        for sample in self.samples:
            self.process_sample(sample, summary)

        summary.log(self.logger)
        for category in self.categories:
            self.logger.info(f"Category: {category.name}")
        return summary

    def process_sample(self, sample: str, summary: SelectionSummary) -> None:
        muon = self.muon_trees[sample]
        conv = self.conv_trees[sample]
        n_entries = muon.num_entries
        categories = [c for c in self.categories if sample in c.name]

        for entry in tqdm(range(n_entries), **get_tqdm_kwargs(desc=sample, total=n_entries)):
            if not muon.advance(entry) or not conv.advance(entry):
                raise DataLoadError(f"Cannot read entry {entry} of sample {sample}")
            self.check_event(sample, entry, muon, conv)
            if entry % self.progress_interval == 0:
                self.logger.info(f"{sample} : {entry}/{n_entries}")

            run = int(muon[HiMuonTree.Event_Run])
            used: Set[Tuple] = set()
            for category in categories:
                if not category.accepts_run(run, self.run_ranges):
                    continue
                self.process_candidates(category.name, muon, conv, summary, used)
            summary.entries[sample] += 1

    @staticmethod
    def check_event(sample: str, entry: int, muon: HiMuonTree, conv: HiConversionTree) -> None:
        """Raise EventMismatchError unless both trees describe the same event"""
        for muon_col, conv_col in (
            (HiMuonTree.Event_Run, HiConversionTree.Event_Run),
            (HiMuonTree.Event_Number, HiConversionTree.Event_Number),
        ):
            expected = int(muon[muon_col])
            found = int(conv[conv_col])
            if expected != found:
                raise EventMismatchError(sample, entry, muon_col.name, expected, found)

    def process_candidates(self, category: str, muon: HiMuonTree, conv: HiConversionTree,
                           summary: SelectionSummary, used: Optional[Set[Tuple]] = None) -> List[float]:
        """
        Select the χ candidates of the current entry and fill ``category``

        Parameters:
        - used: (kind, χ type, index) already counted in this entry

        Returns:
        - Masses of the selected candidates
        """
        if used is None:
            used = set()

        chi_type = conv[HiConversionTree.Reco_Chi_Type]
        chi_mass = conv[HiConversionTree.Reco_Chi_Mass]
        dimuon_idx = conv[HiConversionTree.Reco_DiMuonConv_DiMuon_Idx]
        conversion_idx = conv[HiConversionTree.Reco_DiMuonConv_Conversion_Idx]
        dimuon_conv = conv[HiConversionTree.Reco_DiMuonConv_Mom]

        dimuons = muon[HiMuonTree.Reco_DiMuon_Mom]
        muon1_idx = muon[HiMuonTree.Reco_DiMuon_Muon1_Idx]
        muon2_idx = muon[HiMuonTree.Reco_DiMuon_Muon2_Idx]
        muons = muon[HiMuonTree.Reco_Muon_Mom]

        selected = []
        n_candidates = min(len(chi_type), len(chi_mass), len(dimuon_idx),
                           len(conversion_idx), len(dimuon_conv))
        for i in range(n_candidates):
            try:
                kind = ChiType(int(chi_type[i]))
            except ValueError:
                self.logger.debug(f"Unknown candidate type {chi_type[i]} at entry {conv.entry}")
                continue

            i_dm = int(dimuon_idx[i])
            i_conv = int(conversion_idx[i])
            if i_dm >= len(dimuons):
                self.logger.debug(f"Dimuon index {i_dm} out of range at entry {conv.entry}")
                continue

            mass = float(chi_mass[i])
            self.check_mass(kind, mass, float(dimuons[i_dm].mass),
                            float(dimuon_conv[i].mass), conv.entry)

            if i_dm >= len(muon1_idx) or i_dm >= len(muon2_idx):
                continue
            i_m1 = int(muon1_idx[i_dm])
            i_m2 = int(muon2_idx[i_dm])
            if i_m1 >= len(muons) or i_m2 >= len(muons):
                self.logger.debug(f"Muon index out of range at entry {conv.entry}")
                continue
            if not (in_acceptance(muons[i_m1], self.acceptance)
                    and in_acceptance(muons[i_m2], self.acceptance)):
                continue

            self.hist.fill(category, {kind.variable: mass})
            selected.append(mass)

            if ("dimuon", kind, i_dm) not in used:
                used.add(("dimuon", kind, i_dm))
                summary.dimuons[kind] += 1
            if ("conversion", kind, i_conv) not in used:
                used.add(("conversion", kind, i_conv))
                summary.conversions[kind] += 1

        return selected

    def check_mass(self, kind: ChiType, chi_mass: float, dimuon_mass: float,
                   dimuon_conv_mass: float, entry: int = None) -> float:
        """
        Sanity check of the stored χ mass against its constituents

        M(χ) is stored as M(μμγ) - M(μμ) + M(resonance), so adding back the
        dimuon mass and removing the μμγ mass has to give the resonance mass.
        """
        corrected = chi_mass + dimuon_mass - dimuon_conv_mass
        reference = self.reference_mass[kind]
        # NaN fails the comparison and is rejected too
        if not abs(corrected - reference) <= self.mass_tolerance:
            raise CandidateMassError(int(kind), corrected, reference, self.mass_tolerance, entry)
        return corrected
